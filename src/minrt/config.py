"""Configuration loading: restore config files, nuget.config and environment.

Restore config (YAML or JSON, keys case-insensitive)::

    framework: net10.0
    runtime: linux-x64
    behavior: lowest
    packagesDirectory: ~/.minrt/packages
    packages:
      - {id: Newtonsoft.Json, version: 13.0.3}
      - "Serilog [3.0.0, )"
    sources:
      - https://api.nuget.org/v3/index.json
      - {name: internal, url: https://pkgs.example.com/v3/index.json, username: me, password: secret}
    packageSourceMapping:
      nuget.org: ["*"]
      internal: ["Contoso.*"]

``packages`` may also be a mapping of id to version.
"""
from __future__ import annotations

import logging
import os
import xml.etree.ElementTree as ET
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional

import yaml

from minrt.constants import Constants
from minrt.errors import ConfigError, ParseError
from minrt.feeds.base import FeedSource
from minrt.versioning import PackageRequest, VersionRange

logger = logging.getLogger(__name__)


@dataclass
class RestoreConfig:
    """Everything a restore needs besides the CLI."""
    framework: Optional[str] = None
    runtime: Optional[str] = None
    behavior: Optional[str] = None
    packages_directory: Optional[str] = None
    packages: List[PackageRequest] = field(default_factory=list)
    sources: List[FeedSource] = field(default_factory=list)
    source_mapping: Dict[str, List[str]] = field(default_factory=dict)

    def merge(self, other: "RestoreConfig") -> "RestoreConfig":
        """Overlay ``other``: scalars it sets win, lists are appended."""
        return RestoreConfig(
            framework=other.framework or self.framework,
            runtime=other.runtime or self.runtime,
            behavior=other.behavior or self.behavior,
            packages_directory=other.packages_directory or self.packages_directory,
            packages=self.packages + other.packages,
            sources=_dedupe_sources(self.sources + other.sources),
            source_mapping={**self.source_mapping, **other.source_mapping},
        )


@dataclass
class NuGetConfig:
    """Sources and source mapping read from nuget.config files."""
    sources: List[FeedSource] = field(default_factory=list)
    source_mapping: Dict[str, List[str]] = field(default_factory=dict)
    disabled: List[str] = field(default_factory=list)

    def enabled_sources(self) -> List[FeedSource]:
        disabled = {name.lower() for name in self.disabled}
        return [s for s in self.sources if s.name.lower() not in disabled]


def _dedupe_sources(sources: List[FeedSource]) -> List[FeedSource]:
    seen = set()
    result = []
    for source in sources:
        key = source.url.rstrip("/").lower()
        if key in seen:
            continue
        seen.add(key)
        result.append(source)
    return result


def parse_package_spec(text: str, source: str = "cli") -> PackageRequest:
    """Parse ``"id version"`` or ``"id [range]"`` into a request."""
    parts = str(text).strip().split(None, 1)
    if len(parts) != 2:
        raise ConfigError(None, f"invalid package '{text}', expected 'id version'")
    try:
        return PackageRequest(parts[0], VersionRange.parse(parts[1]), source)
    except ParseError as exc:
        raise ConfigError(None, f"invalid package '{text}': {exc}") from exc


def _lower_keys(data: Mapping[str, Any]) -> Dict[str, Any]:
    return {str(k).lower(): v for k, v in data.items()}


def _parse_packages(raw: Any, path: str) -> List[PackageRequest]:
    requests: List[PackageRequest] = []
    try:
        if isinstance(raw, dict):
            for package_id, version in raw.items():
                requests.append(PackageRequest(str(package_id), VersionRange.parse(str(version)), "config"))
        elif isinstance(raw, list):
            for entry in raw:
                if isinstance(entry, str):
                    requests.append(parse_package_spec(entry, "config"))
                elif isinstance(entry, dict):
                    entry = _lower_keys(entry)
                    if not entry.get("id") or not entry.get("version"):
                        raise ConfigError(path, f"package entry needs 'id' and 'version': {entry}")
                    requests.append(
                        PackageRequest(str(entry["id"]), VersionRange.parse(str(entry["version"])), "config")
                    )
                else:
                    raise ConfigError(path, f"unsupported package entry: {entry!r}")
        elif raw is not None:
            raise ConfigError(path, "'packages' must be a list or mapping")
    except ParseError as exc:
        raise ConfigError(path, str(exc)) from exc
    return requests


def source_from_value(value: Any, path: Optional[str] = None) -> FeedSource:
    """Build a ``FeedSource`` from a URL string or a ``{name, url, ...}`` mapping."""
    if isinstance(value, str):
        url = value.strip()
        if not url:
            raise ConfigError(path, "empty source URL")
        return FeedSource(url, url)
    if isinstance(value, dict):
        entry = _lower_keys(value)
        url = str(entry.get("url") or entry.get("value") or "").strip()
        if not url:
            raise ConfigError(path, f"source entry needs 'url': {value!r}")
        return FeedSource(
            str(entry.get("name") or url),
            url,
            entry.get("username"),
            entry.get("password"),
        )
    raise ConfigError(path, f"unsupported source entry: {value!r}")


def config_from_dict(data: Mapping[str, Any], path: str = "<config>") -> RestoreConfig:
    """Interpret an already parsed restore config document."""
    if not isinstance(data, Mapping):
        raise ConfigError(path, "expected a mapping at the top level")
    data = _lower_keys(data)
    mapping_raw = data.get("packagesourcemapping") or {}
    if not isinstance(mapping_raw, dict):
        raise ConfigError(path, "'packageSourceMapping' must be a mapping")
    mapping = {}
    for name, patterns in mapping_raw.items():
        if isinstance(patterns, str):
            patterns = [patterns]
        mapping[str(name)] = [str(p) for p in patterns or []]
    return RestoreConfig(
        framework=data.get("framework"),
        runtime=data.get("runtime"),
        behavior=data.get("behavior"),
        packages_directory=data.get("packagesdirectory"),
        packages=_parse_packages(data.get("packages"), path),
        sources=[source_from_value(s, path) for s in data.get("sources") or []],
        source_mapping=mapping,
    )


def load_config(path: str) -> RestoreConfig:
    """Load a YAML or JSON restore config file."""
    if not os.path.isfile(path):
        raise ConfigError(path, "file not found")
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as exc:
        raise ConfigError(path, str(exc)) from exc
    logger.debug("Loaded config %s", path)
    return config_from_dict(data or {}, path)


def _strip_namespace(tag: str) -> str:
    return tag.split("}", 1)[1] if "}" in tag else tag


def _apply_nuget_config(config: NuGetConfig, path: str) -> None:
    try:
        root = ET.parse(path).getroot()
    except (ET.ParseError, OSError) as exc:
        raise ConfigError(path, str(exc)) from exc
    for elem in root.iter():
        elem.tag = _strip_namespace(elem.tag)

    credentials: Dict[str, Dict[str, str]] = {}
    creds_root = root.find("packageSourceCredentials")
    if creds_root is not None:
        for source_elem in creds_root:
            values = {
                add.get("key", "").lower(): add.get("value", "")
                for add in source_elem.findall("add")
            }
            # Element names encode spaces as _x0020_.
            credentials[source_elem.tag.replace("_x0020_", " ").lower()] = values

    sources_root = root.find("packageSources")
    if sources_root is not None:
        for child in sources_root:
            if child.tag == "clear":
                config.sources.clear()
            elif child.tag == "add":
                name = child.get("key", "").strip()
                url = child.get("value", "").strip()
                if not name or not url:
                    continue
                if not url.lower().startswith(("http://", "https://")) and not os.path.isabs(url):
                    url = os.path.normpath(os.path.join(os.path.dirname(os.path.abspath(path)), url))
                creds = credentials.get(name.lower(), {})
                source = FeedSource(name, url, creds.get("username"), creds.get("cleartextpassword"))
                config.sources[:] = [s for s in config.sources if s.name.lower() != name.lower()]
                config.sources.append(source)

    disabled_root = root.find("disabledPackageSources")
    if disabled_root is not None:
        for add in disabled_root.findall("add"):
            if add.get("value", "").strip().lower() == "true" and add.get("key"):
                config.disabled.append(add.get("key"))

    mapping_root = root.find("packageSourceMapping")
    if mapping_root is not None:
        for child in mapping_root:
            if child.tag == "clear":
                config.source_mapping.clear()
            elif child.tag == "packageSource" and child.get("key"):
                patterns = [p.get("pattern") for p in child.findall("package") if p.get("pattern")]
                config.source_mapping[child.get("key")] = patterns


def load_nuget_config(path: str) -> NuGetConfig:
    """Read a single nuget.config file."""
    config = NuGetConfig()
    _apply_nuget_config(config, path)
    return config


def discover_nuget_configs(root: Optional[str] = None) -> List[str]:
    """nuget.config files from ``root`` up to the file system root, nearest first."""
    current = os.path.abspath(root or os.getcwd())
    found: List[str] = []
    while True:
        try:
            entries = set(os.listdir(current))
        except OSError:
            entries = set()
        for name in Constants.NUGET_CONFIG_NAMES:
            if name in entries:
                found.append(os.path.join(current, name))
                break
        parent = os.path.dirname(current)
        if parent == current:
            return found
        current = parent


def load_default_nuget_config(root: Optional[str] = None) -> NuGetConfig:
    """Merge discovered nuget.config files; nearer files override farther ones."""
    config = NuGetConfig()
    for path in reversed(discover_nuget_configs(root)):
        logger.debug("Applying %s", path)
        _apply_nuget_config(config, path)
    return config


def apply_environment(config: RestoreConfig, environ: Optional[Mapping[str, str]] = None) -> RestoreConfig:
    """Apply ``MINRT_PACKAGES_DIR`` and ``MINRT_FEEDS`` overrides."""
    env = os.environ if environ is None else environ
    packages_dir = env.get(Constants.ENV_PACKAGES_DIR)
    feeds = [url.strip() for url in env.get(Constants.ENV_FEEDS, "").split(";") if url.strip()]
    overlay = RestoreConfig(
        packages_directory=packages_dir or None,
        sources=[FeedSource(url, url) for url in feeds],
    )
    return config.merge(overlay)


def default_source() -> FeedSource:
    """The public nuget.org feed, used when nothing else is configured."""
    return FeedSource(Constants.DEFAULT_FEED_NAME, Constants.DEFAULT_FEED_URL)

"""Asset selection over an extracted package's file listing.

Every function here is pure: it takes the relative file paths of a package
(as produced by ``PackageCache.list_files``) and returns what a consumer on
the given framework and RID should load. Each output uses first-match-wins
along the RID fallback chain; assets from several RIDs are never merged.

Recognized folders:
    runtimes/{rid}/lib/{tfm}/*.dll    RID-specific managed assemblies
    lib/{tfm}/*.dll                   portable managed assemblies
    runtimes/{rid}/native/**          native libraries
"""
from __future__ import annotations

import logging
import posixpath
import re
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from minrt.constants import Constants
from minrt.frameworks.framework import (
    ANY_FRAMEWORK,
    DEFAULT_COMPATIBILITY,
    FrameworkCompatibility,
    TargetFramework,
)
from minrt.frameworks.rid import DEFAULT_RID_GRAPH, RidGraph

logger = logging.getLogger(__name__)

_NATIVE_SUFFIX_RE = re.compile(r"(\.so(\.\d+)*|\.dylib|\.dll|\.a)$", re.IGNORECASE)


@dataclass
class AssetSelection:
    """Selected assets of one package, as paths relative to the package root."""
    package_id: str = ""
    version: str = ""
    root: Optional[str] = None
    runtime: Dict[str, str] = field(default_factory=dict)
    native: Dict[str, str] = field(default_factory=dict)
    framework_references: Tuple[str, ...] = ()
    runtime_group: Optional[str] = None
    native_rid: Optional[str] = None

    def absolute(self, relative: str) -> str:
        """Absolute path of a selected asset; requires ``root``."""
        if self.root is None:
            raise ValueError(f"{self.package_id} has no package root")
        return posixpath.join(self.root.replace("\\", "/"), relative)

    @property
    def is_empty(self) -> bool:
        return not (self.runtime or self.native or self.framework_references)


def _split(path: str) -> List[str]:
    return [part for part in path.replace("\\", "/").split("/") if part]


def _is_placeholder(name: str) -> bool:
    return name == Constants.PLACEHOLDER_FILE


def _managed_files(files: Iterable[str]) -> Dict[str, str]:
    """Logical assembly name -> path for managed binaries directly in a group."""
    selected: Dict[str, str] = {}
    for path in sorted(files):
        name = posixpath.basename(path)
        stem, ext = posixpath.splitext(name)
        if ext.lower() in Constants.MANAGED_EXTENSIONS:
            selected.setdefault(stem, path)
    return selected


def group_by_framework(files: Iterable[str], prefix: Sequence[str]) -> Dict[str, List[str]]:
    """Group ``{prefix}/{tfm}/{file}`` entries by their ``tfm`` folder.

    Files directly under ``prefix`` (legacy packages) form a group keyed ``""``.
    Only direct children of a framework folder are returned.
    """
    depth = len(prefix)
    lowered = [p.lower() for p in prefix]
    groups: Dict[str, List[str]] = {}
    for path in files:
        parts = _split(path)
        if len(parts) <= depth or [p.lower() for p in parts[:depth]] != lowered:
            continue
        rest = parts[depth:]
        if len(rest) == 1:
            groups.setdefault("", []).append(path)
        elif len(rest) == 2:
            groups.setdefault(rest[0], []).append(path)
    return groups


def _select_group(
    groups: Mapping[str, List[str]],
    framework: TargetFramework,
    compatibility: FrameworkCompatibility,
) -> Optional[Tuple[str, List[str]]]:
    candidates = []
    for folder in sorted(groups):
        folder_framework = ANY_FRAMEWORK if folder == "" else TargetFramework.try_parse(folder)
        candidates.append((folder, folder_framework))
    chosen = compatibility.get_nearest(candidates, framework, key=lambda item: item[1])
    if chosen is None:
        return None
    return chosen[0], groups[chosen[0]]


def _group_assets(files: List[str]) -> Dict[str, str]:
    if any(_is_placeholder(posixpath.basename(f)) for f in files):
        return {}
    return _managed_files(files)


def select_runtime_specific_assets(
    files: Sequence[str],
    framework: TargetFramework,
    rid: Optional[str],
    rid_graph: RidGraph = DEFAULT_RID_GRAPH,
    compatibility: FrameworkCompatibility = DEFAULT_COMPATIBILITY,
) -> Optional[Tuple[str, Dict[str, str]]]:
    """Managed assets from ``runtimes/{rid}/lib/{tfm}``.

    Returns ``(group, assets)`` for the first RID in the chain with a
    compatible framework folder, or None. A placeholder group is selected
    with no assets.
    """
    if not rid:
        return None
    for candidate in rid_graph.fallback_chain(rid):
        groups = group_by_framework(files, ("runtimes", candidate, "lib"))
        groups.pop("", None)
        if not groups:
            continue
        chosen = _select_group(groups, framework, compatibility)
        if chosen is None:
            continue
        folder, group_files = chosen
        return f"runtimes/{candidate}/lib/{folder}", _group_assets(group_files)
    return None


def select_portable_assets(
    files: Sequence[str],
    framework: TargetFramework,
    compatibility: FrameworkCompatibility = DEFAULT_COMPATIBILITY,
) -> Optional[Tuple[str, Dict[str, str]]]:
    """Managed assets from the nearest compatible ``lib/{tfm}`` folder."""
    groups = group_by_framework(files, ("lib",))
    if not groups:
        return None
    chosen = _select_group(groups, framework, compatibility)
    if chosen is None:
        return None
    folder, group_files = chosen
    return ("lib/" + folder).rstrip("/"), _group_assets(group_files)


def native_logical_name(file_name: str, windows: bool) -> str:
    """Lookup name of a native library file.

    ``libfoo.so.1`` and ``libfoo.dylib`` become ``foo`` off Windows;
    ``foo.dll`` becomes ``foo`` on Windows.
    """
    stem = _NATIVE_SUFFIX_RE.sub("", file_name)
    if not windows and stem.startswith("lib") and len(stem) > 3:
        stem = stem[3:]
    return stem or file_name


def select_native_assets(
    files: Sequence[str],
    rid: Optional[str],
    rid_graph: RidGraph = DEFAULT_RID_GRAPH,
) -> Optional[Tuple[str, Dict[str, str]]]:
    """Native libraries from the first ``runtimes/{rid}/native`` folder with files."""
    if not rid:
        return None
    chain = rid_graph.fallback_chain(rid)
    windows = any(entry.lower() == "win" for entry in chain)
    for candidate in chain:
        prefix = ["runtimes", candidate.lower(), "native"]
        matched = sorted(
            path for path in files
            if [p.lower() for p in _split(path)[:3]] == prefix and len(_split(path)) > 3
        )
        if not matched:
            continue
        selected: Dict[str, str] = {}
        for path in matched:
            name = posixpath.basename(path)
            if _is_placeholder(name):
                continue
            selected.setdefault(native_logical_name(name, windows), path)
        return candidate, selected
    return None


def select_framework_references(
    groups: Iterable[Tuple[TargetFramework, Sequence[str]]],
    framework: TargetFramework,
    compatibility: FrameworkCompatibility = DEFAULT_COMPATIBILITY,
) -> Tuple[str, ...]:
    """Reference names from every group compatible with ``framework``."""
    names: Dict[str, str] = {}
    for group_framework, references in groups:
        if framework.is_any or compatibility.is_compatible(group_framework, framework):
            for name in references:
                names.setdefault(name.lower(), name)
    return tuple(sorted(names.values(), key=str.lower))


def select_assets(
    files: Sequence[str],
    framework: TargetFramework,
    rid: Optional[str] = None,
    framework_reference_groups: Iterable[Tuple[TargetFramework, Sequence[str]]] = (),
    rid_graph: RidGraph = DEFAULT_RID_GRAPH,
    compatibility: FrameworkCompatibility = DEFAULT_COMPATIBILITY,
) -> AssetSelection:
    """Run every selection step over one package's file listing."""
    selection = AssetSelection()
    files = sorted(files)

    runtime = select_runtime_specific_assets(files, framework, rid, rid_graph, compatibility)
    if runtime is None:
        runtime = select_portable_assets(files, framework, compatibility)
    if runtime is not None:
        selection.runtime_group, selection.runtime = runtime

    native = select_native_assets(files, rid, rid_graph)
    if native is not None:
        selection.native_rid, selection.native = native

    selection.framework_references = select_framework_references(
        framework_reference_groups, framework, compatibility
    )
    logger.debug(
        "Selected %d managed, %d native assets (group=%s, native rid=%s)",
        len(selection.runtime),
        len(selection.native),
        selection.runtime_group,
        selection.native_rid,
    )
    return selection

"""Target framework monikers and the compatibility table between them.

Supported spellings:
    net10.0, net8.0-windows, net8.0-windows10.0.19041   (.NETCoreApp 5+)
    netcoreapp3.1                                       (.NETCoreApp < 5)
    netstandard2.0                                      (.NETStandard)
    net472, net48                                       (.NETFramework)
    .NETStandard2.0, .NETCoreApp,Version=v8.0           (nuspec long forms)
    any                                                 (wildcard)
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Callable, Iterable, Optional, Sequence, Tuple, TypeVar

from packaging.version import InvalidVersion
from packaging.version import Version as FrameworkVersion

from minrt.errors import ParseError

NETCOREAPP = ".NETCoreApp"
NETSTANDARD = ".NETStandard"
NETFRAMEWORK = ".NETFramework"
ANY = "Any"
UNSUPPORTED = "Unsupported"

_SHORT_RE = re.compile(
    r"^(?P<name>netcoreapp|netstandard|net)(?P<version>\d+(?:\.\d+)*)(?:-(?P<platform>[a-z]+)(?P<pversion>\d+(?:\.\d+)*)?)?$"
)
_LONG_RE = re.compile(
    r"^(?P<name>\.netcoreapp|\.netstandard|\.netframework|net|netcoreapp|netstandard)"
    r"(?:,version=v|\s*)(?P<version>\d+(?:\.\d+)*)$"
)
_LONG_NAMES = {
    ".netcoreapp": NETCOREAPP,
    "netcoreapp": NETCOREAPP,
    ".netstandard": NETSTANDARD,
    "netstandard": NETSTANDARD,
    ".netframework": NETFRAMEWORK,
    "net": NETFRAMEWORK,
}

T = TypeVar("T")


def _framework_version(text: str, original: str) -> FrameworkVersion:
    try:
        return FrameworkVersion(text)
    except InvalidVersion as exc:
        raise ParseError("target framework", original, str(exc)) from exc


@dataclass(frozen=True)
class TargetFramework:
    """A parsed target framework: family, version and optional OS platform."""
    family: str
    version: FrameworkVersion
    platform: str = ""
    platform_version: Optional[FrameworkVersion] = None

    @classmethod
    def parse(cls, text: str) -> "TargetFramework":
        """Parse a short or long framework moniker."""
        if not isinstance(text, str) or not text.strip():
            raise ParseError("target framework", str(text), "empty")
        s = text.strip().lower()
        if s in ("any", "*"):
            return ANY_FRAMEWORK
        match = _SHORT_RE.match(s)
        if match:
            name, raw = match.group("name"), match.group("version")
            platform = match.group("platform") or ""
            pversion = match.group("pversion")
            if name == "netcoreapp":
                family = NETCOREAPP
            elif name == "netstandard":
                family = NETSTANDARD
            elif "." in raw:
                family = NETCOREAPP
            else:
                # net472 -> 4.7.2, net48 -> 4.8
                family = NETFRAMEWORK
                raw = ".".join(raw)
            if platform and family != NETCOREAPP:
                raise ParseError("target framework", text, "platform suffix requires net5.0 or later")
            version = _framework_version(raw, text)
            if family == NETCOREAPP and name == "net" and version.major < 5:
                raise ParseError("target framework", text, "use netcoreappX.Y before net5.0")
            return cls(
                family,
                version,
                platform,
                _framework_version(pversion, text) if pversion else None,
            )
        match = _LONG_RE.match(s.replace(" ", ""))
        if match:
            family = _LONG_NAMES[match.group("name")]
            raw = match.group("version")
            if family == NETFRAMEWORK and "." not in raw:
                raw = ".".join(raw)
            return cls(family, _framework_version(raw, text))
        raise ParseError("target framework", text, "unrecognized moniker")

    @classmethod
    def try_parse(cls, text: Optional[str]) -> "TargetFramework":
        """Parse a moniker; unknown or empty text maps to ANY / UNSUPPORTED."""
        if text is None or not str(text).strip():
            return ANY_FRAMEWORK
        try:
            return cls.parse(text)
        except ParseError:
            return UNSUPPORTED_FRAMEWORK

    @property
    def is_any(self) -> bool:
        """True for the wildcard framework."""
        return self.family == ANY

    @property
    def is_unsupported(self) -> bool:
        """True when the moniker could not be understood."""
        return self.family == UNSUPPORTED

    def short_folder_name(self) -> str:
        """Folder spelling used inside packages, e.g. ``net8.0``."""
        if self.is_any:
            return "any"
        if self.is_unsupported:
            return "unsupported"
        release = self.version.release + (0,) * (2 - len(self.version.release))
        if self.family == NETFRAMEWORK:
            return "net" + "".join(str(p) for p in self.version.release)
        if self.family == NETSTANDARD:
            return f"netstandard{release[0]}.{release[1]}"
        if release[0] < 5:
            return f"netcoreapp{release[0]}.{release[1]}"
        name = f"net{release[0]}.{release[1]}"
        if self.platform:
            name += f"-{self.platform}"
            if self.platform_version is not None:
                name += str(self.platform_version)
        return name

    def __str__(self) -> str:
        return self.short_folder_name()


ANY_FRAMEWORK = TargetFramework(ANY, FrameworkVersion("0"))
UNSUPPORTED_FRAMEWORK = TargetFramework(UNSUPPORTED, FrameworkVersion("0"))


@dataclass(frozen=True)
class CompatibilityRule:
    """A consumer of ``framework`` >= ``min_version`` may use ``compatible_family`` <= ``max_version``."""
    framework: str
    min_version: str
    compatible_family: str
    max_version: str


DEFAULT_COMPATIBILITY_RULES: Tuple[CompatibilityRule, ...] = (
    CompatibilityRule(NETCOREAPP, "1.0", NETSTANDARD, "1.6"),
    CompatibilityRule(NETCOREAPP, "2.0", NETSTANDARD, "2.0"),
    CompatibilityRule(NETCOREAPP, "3.0", NETSTANDARD, "2.1"),
    CompatibilityRule(NETFRAMEWORK, "4.5", NETSTANDARD, "1.1"),
    CompatibilityRule(NETFRAMEWORK, "4.5.1", NETSTANDARD, "1.2"),
    CompatibilityRule(NETFRAMEWORK, "4.6", NETSTANDARD, "1.3"),
    CompatibilityRule(NETFRAMEWORK, "4.6.1", NETSTANDARD, "2.0"),
)


class FrameworkCompatibility:
    """Answers "may a consumer of X use an asset built for Y" from a static table.

    The table is injected so tests can supply a minimal synthetic one.
    """

    def __init__(self, rules: Sequence[CompatibilityRule] = DEFAULT_COMPATIBILITY_RULES):
        self._rules = tuple(
            (r.framework, FrameworkVersion(r.min_version), r.compatible_family, FrameworkVersion(r.max_version))
            for r in rules
        )

    def _platform_ok(self, package: TargetFramework, request: TargetFramework) -> bool:
        if not package.platform:
            return True
        if package.platform != request.platform:
            return False
        if package.platform_version is None or request.platform_version is None:
            return package.platform_version is None or request.platform_version is None
        return package.platform_version <= request.platform_version

    def _rule_allows(self, package: TargetFramework, request: TargetFramework) -> bool:
        for framework, min_version, family, max_version in self._rules:
            if (
                framework == request.family
                and request.version >= min_version
                and family == package.family
                and package.version <= max_version
            ):
                return True
        return False

    def is_compatible(self, package: TargetFramework, request: TargetFramework) -> bool:
        """True if a consumer targeting ``request`` may use ``package`` assets."""
        if package.is_unsupported or request.is_unsupported:
            return False
        if request.is_any or package.is_any:
            return True
        if not self._platform_ok(package, request):
            return False
        if package.family == request.family:
            return package.version <= request.version
        return self._rule_allows(package, request)

    def _rank(self, package: TargetFramework, request: TargetFramework):
        if package.is_any:
            family_rank = 0
        elif package.family == request.family:
            family_rank = 2
        else:
            family_rank = 1
        platform_rank = 1 if package.platform else 0
        return (family_rank, package.version, platform_rank, str(package))

    def get_nearest(
        self,
        candidates: Iterable[T],
        request: TargetFramework,
        key: Callable[[T], TargetFramework] = lambda item: item,  # type: ignore[assignment,return-value]
    ) -> Optional[T]:
        """Return the single nearest-compatible candidate, or None.

        Same family beats a compatible family, which beats the wildcard; within
        a tier the highest version not above the request wins.
        """
        best = None
        best_rank = None
        for item in candidates:
            framework = key(item)
            if not self.is_compatible(framework, request):
                continue
            rank = self._rank(framework, request)
            if best_rank is None or rank > best_rank:
                best, best_rank = item, rank
        return best


DEFAULT_COMPATIBILITY = FrameworkCompatibility()

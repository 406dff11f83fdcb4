"""Data models for versioning and package identity."""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Tuple

from minrt.errors import ParseError
from .version import Version

if TYPE_CHECKING:
    from .ranges import VersionRange


class DependencyBehavior(Enum):
    """Which satisfying version to prefer when several are eligible."""
    LOWEST = "lowest"
    HIGHEST_PATCH = "highest-patch"
    HIGHEST_MINOR = "highest-minor"
    HIGHEST = "highest"

    @classmethod
    def parse(cls, text: str) -> "DependencyBehavior":
        """Accept ``lowest``, ``Highest``, ``highest_patch``, ``HighestMinor`` and similar."""
        key = str(text).strip().lower().replace("_", "").replace("-", "")
        for member in cls:
            if member.value.replace("-", "") == key:
                return member
        raise ParseError("dependency behavior", text, "expected one of " + ", ".join(m.value for m in cls))


@dataclass(frozen=True)
class PackageIdentity:
    """A package id plus one exact version; id comparison ignores case."""
    id: str
    version: Version

    @property
    def key(self) -> str:
        """Lower-cased id used for case-insensitive lookups."""
        return self.id.lower()

    def __eq__(self, other) -> bool:
        if not isinstance(other, PackageIdentity):
            return NotImplemented
        return self.key == other.key and self.version == other.version

    def __hash__(self) -> int:
        return hash((self.key, self.version))

    def __str__(self) -> str:
        return f"{self.id} {self.version}"


@dataclass(frozen=True)
class PackageDependency:
    """A declared dependency edge: package id and accepted range."""
    id: str
    version_range: "VersionRange"

    @property
    def key(self) -> str:
        """Lower-cased id used for case-insensitive lookups."""
        return self.id.lower()

    def __str__(self) -> str:
        return f"{self.id} {self.version_range}"


@dataclass(frozen=True)
class PackageRequest:
    """A direct package request supplied by the caller."""
    id: str
    version_range: "VersionRange"
    source: str = field(default="direct", compare=False)  # "cli" | "json" | "config" | "direct"

    @property
    def key(self) -> str:
        """Lower-cased id used for case-insensitive lookups."""
        return self.id.lower()

    def __str__(self) -> str:
        return f"{self.id} {self.version_range}"


@dataclass(frozen=True)
class DependencyNode:
    """A package version as collected from a feed, with its dependencies for one framework."""
    identity: PackageIdentity
    source: str
    dependencies: Tuple[PackageDependency, ...] = ()

    @property
    def key(self) -> str:
        """Lower-cased id used for case-insensitive lookups."""
        return self.identity.key

    @property
    def id(self) -> str:
        return self.identity.id

    @property
    def version(self) -> Version:
        return self.identity.version

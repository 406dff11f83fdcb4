"""Package version model with NuGet-style ordering.

A version is ``major[.minor[.patch[.revision]]][-prerelease][+metadata]``.
Numeric parts compare numerically, a release sorts after every pre-release
of the same numeric tuple, pre-release labels compare per SemVer 2.0
(case-insensitive) and build metadata never takes part in ordering.
"""
from __future__ import annotations

import re
from functools import total_ordering
from typing import Optional, Tuple

import semantic_version

from minrt.errors import ParseError

_VERSION_RE = re.compile(
    r"""
    ^(?P<major>\d+)
    (?:\.(?P<minor>\d+))?
    (?:\.(?P<patch>\d+))?
    (?:\.(?P<revision>\d+))?
    (?:-(?P<release>[^+]+))?
    (?:\+(?P<metadata>.+))?$
    """,
    re.VERBOSE,
)

_LABEL_RE = re.compile(r"^[0-9A-Za-z-]+$")


def _prerelease_key(labels: Tuple[str, ...]) -> Optional[semantic_version.Version]:
    """Build a comparable key for pre-release labels using SemVer 2.0 precedence."""
    if not labels:
        return None
    return semantic_version.Version(
        major=0, minor=0, patch=0, prerelease=tuple(label.lower() for label in labels)
    )


@total_ordering
class Version:
    """Immutable parsed package version."""

    __slots__ = ("major", "minor", "patch", "revision", "release_labels", "metadata", "original", "_pre_key")

    def __init__(
        self,
        major: int,
        minor: int = 0,
        patch: int = 0,
        revision: int = 0,
        release_labels: Tuple[str, ...] = (),
        metadata: Optional[str] = None,
        original: Optional[str] = None,
    ):
        if min(major, minor, patch, revision) < 0:
            raise ParseError("version", original or f"{major}.{minor}.{patch}", "negative component")
        for label in release_labels:
            if not label or not _LABEL_RE.match(label):
                raise ParseError("version", original or "-".join(release_labels), f"bad pre-release label '{label}'")
        try:
            pre_key = _prerelease_key(tuple(release_labels))
        except ValueError as exc:
            raise ParseError("version", original or ".".join(release_labels), str(exc)) from exc
        object.__setattr__(self, "major", major)
        object.__setattr__(self, "minor", minor)
        object.__setattr__(self, "patch", patch)
        object.__setattr__(self, "revision", revision)
        object.__setattr__(self, "release_labels", tuple(release_labels))
        object.__setattr__(self, "metadata", metadata)
        object.__setattr__(self, "original", original)
        object.__setattr__(self, "_pre_key", pre_key)

    def __setattr__(self, name, value):
        raise AttributeError("Version is immutable")

    @classmethod
    def parse(cls, text: str) -> "Version":
        """Parse version text, raising ``ParseError`` when malformed."""
        if not isinstance(text, str):
            raise ParseError("version", repr(text), "expected a string")
        stripped = text.strip()
        match = _VERSION_RE.match(stripped)
        if not match:
            raise ParseError("version", text)
        release = match.group("release")
        labels: Tuple[str, ...] = tuple(release.split(".")) if release else ()
        metadata = match.group("metadata")
        if metadata is not None and not all(_LABEL_RE.match(p) for p in metadata.split(".")):
            raise ParseError("version", text, "bad build metadata")
        return cls(
            int(match.group("major")),
            int(match.group("minor") or 0),
            int(match.group("patch") or 0),
            int(match.group("revision") or 0),
            labels,
            metadata,
            stripped,
        )

    @classmethod
    def try_parse(cls, text: str) -> Optional["Version"]:
        """Parse version text, returning None instead of raising."""
        try:
            return cls.parse(text)
        except ParseError:
            return None

    @staticmethod
    def compare(a: "Version", b: "Version") -> int:
        """Return -1, 0 or 1 following the total version order."""
        ka, kb = a._numeric_key(), b._numeric_key()
        if ka != kb:
            return -1 if ka < kb else 1
        if a._pre_key is None and b._pre_key is None:
            return 0
        if a._pre_key is None:
            return 1
        if b._pre_key is None:
            return -1
        if a._pre_key == b._pre_key:
            return 0
        return -1 if a._pre_key < b._pre_key else 1

    def _numeric_key(self) -> Tuple[int, int, int, int]:
        return (self.major, self.minor, self.patch, self.revision)

    @property
    def is_prerelease(self) -> bool:
        """True when the version carries a pre-release label."""
        return bool(self.release_labels)

    @property
    def release(self) -> str:
        """Pre-release label as written, without the leading dash."""
        return ".".join(self.release_labels)

    def to_normalized_string(self) -> str:
        """Render ``major.minor.patch[.revision][-release]``; metadata is dropped."""
        text = f"{self.major}.{self.minor}.{self.patch}"
        if self.revision:
            text += f".{self.revision}"
        if self.release_labels:
            text += f"-{self.release}"
        return text

    def __eq__(self, other) -> bool:
        if not isinstance(other, Version):
            return NotImplemented
        return Version.compare(self, other) == 0

    def __lt__(self, other) -> bool:
        if not isinstance(other, Version):
            return NotImplemented
        return Version.compare(self, other) < 0

    def __hash__(self) -> int:
        return hash((self._numeric_key(), tuple(label.lower() for label in self.release_labels)))

    def __str__(self) -> str:
        return self.to_normalized_string()

    def __repr__(self) -> str:
        return f"Version('{self.to_normalized_string()}')"

"""Version range parsing and policy-driven best-match selection.

Syntax:
    1.0.0           exact version
    [1.0.0]         exact version
    [1.0.0, )       minimum, inclusive
    (1.0.0, )       minimum, exclusive
    (, 2.0.0]       maximum only
    [1.0.0, 2.0.0)  bounded interval
"""
from __future__ import annotations

from typing import Iterable, List, Optional

from minrt.errors import ParseError
from .models import DependencyBehavior
from .version import Version


def select_by_behavior(candidates: Iterable[Version], behavior: DependencyBehavior) -> Optional[Version]:
    """Pick one version from already-eligible candidates under ``behavior``.

    The result depends only on the set of candidates, never on their order.
    """
    pool = sorted(set(candidates))
    if not pool:
        return None
    lowest = pool[0]
    if behavior == DependencyBehavior.LOWEST:
        return lowest
    if behavior == DependencyBehavior.HIGHEST:
        return pool[-1]
    if behavior == DependencyBehavior.HIGHEST_MINOR:
        same_major = [v for v in pool if v.major == lowest.major]
        return same_major[-1]
    if behavior == DependencyBehavior.HIGHEST_PATCH:
        same_minor = [v for v in pool if (v.major, v.minor) == (lowest.major, lowest.minor)]
        return same_minor[-1]
    raise ValueError(f"Unsupported dependency behavior: {behavior}")


class VersionRange:
    """Immutable interval over versions with independent bound inclusivity."""

    __slots__ = ("min_version", "include_min", "max_version", "include_max", "original")

    def __init__(
        self,
        min_version: Optional[Version] = None,
        include_min: bool = True,
        max_version: Optional[Version] = None,
        include_max: bool = False,
        original: Optional[str] = None,
    ):
        text = original or "range"
        if min_version is not None and max_version is not None:
            if min_version > max_version:
                raise ParseError("version range", text, "minimum is greater than maximum")
            if min_version == max_version and not (include_min and include_max):
                raise ParseError("version range", text, "range is empty")
        object.__setattr__(self, "min_version", min_version)
        object.__setattr__(self, "include_min", include_min if min_version is not None else False)
        object.__setattr__(self, "max_version", max_version)
        object.__setattr__(self, "include_max", include_max if max_version is not None else False)
        object.__setattr__(self, "original", original)

    def __setattr__(self, name, value):
        raise AttributeError("VersionRange is immutable")

    @classmethod
    def exact(cls, version: Version) -> "VersionRange":
        """Range accepting only ``version``."""
        return cls(version, True, version, True)

    @classmethod
    def at_least(cls, version: Version) -> "VersionRange":
        """Range accepting ``version`` and anything newer."""
        return cls(version, True, None, False)

    @classmethod
    def all(cls) -> "VersionRange":
        """Unbounded range."""
        return cls()

    @classmethod
    def parse(cls, text: str) -> "VersionRange":
        """Parse range text, raising ``ParseError`` on malformed input."""
        if not isinstance(text, str) or not text.strip():
            raise ParseError("version range", str(text), "empty")
        s = text.strip()
        opener, closer = s[0], s[-1]
        if opener not in "[(" and closer not in "])":
            return cls.exact(Version.parse(s))
        if opener not in "[(" or closer not in "])" or len(s) < 2:
            raise ParseError("version range", text, "unbalanced brackets")
        inner = s[1:-1]
        if any(ch in inner for ch in "[]()"):
            raise ParseError("version range", text, "unbalanced brackets")
        include_min = opener == "["
        include_max = closer == "]"
        parts = inner.split(",")
        if len(parts) == 1:
            if not (include_min and include_max) or not parts[0].strip():
                raise ParseError("version range", text, "single-version range must be written [x]")
            version = Version.parse(parts[0])
            return cls(version, True, version, True, s)
        if len(parts) != 2:
            raise ParseError("version range", text, "too many commas")
        low_text, high_text = parts[0].strip(), parts[1].strip()
        if not low_text and not high_text:
            return cls(original=s)
        low = Version.parse(low_text) if low_text else None
        high = Version.parse(high_text) if high_text else None
        return cls(low, include_min, high, include_max, s)

    @property
    def is_exact(self) -> bool:
        """True when only one version can satisfy the range."""
        return (
            self.min_version is not None
            and self.max_version is not None
            and self.min_version == self.max_version
        )

    @property
    def allows_prerelease(self) -> bool:
        """Pre-release candidates are only considered when a bound is one."""
        return bool(
            (self.min_version is not None and self.min_version.is_prerelease)
            or (self.max_version is not None and self.max_version.is_prerelease)
        )

    def satisfies(self, version: Version) -> bool:
        """Bound check respecting inclusivity flags."""
        if self.min_version is not None:
            if self.include_min:
                if version < self.min_version:
                    return False
            elif version <= self.min_version:
                return False
        if self.max_version is not None:
            if self.include_max:
                if version > self.max_version:
                    return False
            elif version >= self.max_version:
                return False
        return True

    def __contains__(self, version: Version) -> bool:
        return self.satisfies(version)

    def filter(self, candidates: Iterable[Version]) -> List[Version]:
        """Return the candidates eligible under this range, sorted ascending."""
        allow_pre = self.allows_prerelease
        return sorted(
            {v for v in candidates if self.satisfies(v) and (allow_pre or not v.is_prerelease)}
        )

    def find_best_match(
        self,
        candidates: Iterable[Version],
        behavior: DependencyBehavior = DependencyBehavior.LOWEST,
    ) -> Optional[Version]:
        """Preferred satisfying candidate under ``behavior``, or None."""
        return select_by_behavior(self.filter(candidates), behavior)

    def is_better(
        self,
        current: Optional[Version],
        candidate: Version,
        behavior: DependencyBehavior = DependencyBehavior.LOWEST,
    ) -> bool:
        """True when ``candidate`` should replace ``current`` as the best match."""
        if not self.satisfies(candidate):
            return False
        if current is None:
            return True
        if candidate == current:
            return False
        return select_by_behavior([current, candidate], behavior) == candidate

    def _key(self):
        return (self.min_version, self.include_min, self.max_version, self.include_max)

    def __eq__(self, other) -> bool:
        if not isinstance(other, VersionRange):
            return NotImplemented
        return self._key() == other._key()

    def __hash__(self) -> int:
        return hash(self._key())

    def __str__(self) -> str:
        if self.is_exact:
            return f"[{self.min_version}]"
        if self.min_version is None and self.max_version is None:
            return "(, )"
        low = str(self.min_version) if self.min_version is not None else ""
        high = str(self.max_version) if self.max_version is not None else ""
        opener = "[" if self.include_min else "("
        closer = "]" if self.include_max else ")"
        return f"{opener}{low}, {high}{closer}"

    def __repr__(self) -> str:
        return f"VersionRange('{self}')"

"""Runtime identifier fallback chains."""
from __future__ import annotations

import logging
import platform
import re
import sys
from collections import deque
from types import MappingProxyType
from typing import List, Mapping, Optional, Sequence, Tuple

from .rid_data import DEFAULT_RID_IMPORTS

logger = logging.getLogger(__name__)

ANY_RID = "any"

_VERSIONED_RID_RE = re.compile(r"^(?P<os>[a-z][a-z-]*?)\.[0-9][0-9.]*-(?P<arch>[a-z0-9]+)$")

_ARCH_ALIASES = {
    "x86_64": "x64",
    "amd64": "x64",
    "i386": "x86",
    "i686": "x86",
    "x86": "x86",
    "aarch64": "arm64",
    "arm64": "arm64",
    "armv7l": "arm",
    "armv6l": "arm",
}


class RidGraph:
    """Expands a RID into its ordered fallback chain over an import graph.

    The chain starts with the RID itself, visits imports breadth-first in
    declaration order, never repeats an entry and always ends with ``any``.
    """

    def __init__(self, imports: Optional[Mapping[str, Sequence[str]]] = None):
        source = DEFAULT_RID_IMPORTS if imports is None else imports
        self._imports = MappingProxyType(
            {key.lower(): tuple(value) for key, value in source.items()}
        )
        self._cache = {}

    def __contains__(self, rid: str) -> bool:
        return rid.lower() in self._imports

    def fallback_chain(self, rid: Optional[str]) -> Tuple[str, ...]:
        """Ordered, duplicate-free RIDs from most specific to ``any``."""
        if rid is None or not rid.strip():
            return (ANY_RID,)
        rid = rid.strip()
        key = rid.lower()
        cached = self._cache.get(key)
        if cached is not None:
            return cached

        result: List[str] = []
        seen = {key}
        queue = deque([rid])
        if key not in self._imports:
            alias = self._known_alias(key)
            if alias is not None:
                logger.debug("Unknown RID '%s', falling back through '%s'", rid, alias)
                result.append(rid)
                queue = deque([alias])
                seen.add(alias)
        while queue:
            current = queue.popleft()
            if current.lower() != ANY_RID:
                result.append(current)
            for parent in self._imports.get(current.lower(), ()):
                if parent.lower() not in seen:
                    seen.add(parent.lower())
                    queue.append(parent)
        result.append(ANY_RID)
        chain = tuple(result)
        self._cache[key] = chain
        return chain

    def _known_alias(self, key: str) -> Optional[str]:
        """Map ``os.version-arch`` to ``os-arch`` when only the latter is known."""
        match = _VERSIONED_RID_RE.match(key)
        if not match:
            return None
        alias = f"{match.group('os')}-{match.group('arch')}"
        return alias if alias in self._imports else None

    def is_compatible(self, rid: Optional[str], target: Optional[str]) -> bool:
        """True when ``target`` appears in ``rid``'s fallback chain."""
        if not rid or not target:
            return False
        target = target.strip().lower()
        return any(entry.lower() == target for entry in self.fallback_chain(rid))


DEFAULT_RID_GRAPH = RidGraph()


def current_rid() -> str:
    """Best-effort RID of the running machine, e.g. ``linux-x64``."""
    machine = platform.machine().lower()
    arch = _ARCH_ALIASES.get(machine, "x64")
    if sys.platform.startswith("win"):
        return f"win-{arch}"
    if sys.platform == "darwin":
        return f"osx-{arch}"
    if sys.platform.startswith("linux"):
        return f"linux-{arch}"
    if sys.platform.startswith("freebsd"):
        return f"freebsd-{arch}"
    return f"unix-{arch}"

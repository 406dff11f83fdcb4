"""Conflict resolution over a collected dependency graph.

Resolution is a fixpoint: starting from the direct requests, pick one version
per id among the collected versions that satisfy every active constraint,
then recompute the active constraints as those reachable from the direct
requests through the chosen nodes only, until the choice is stable. Ids only
reachable through versions that were not chosen drop out.
"""
from __future__ import annotations

import logging
from collections import deque
from typing import Dict, List, Optional, Sequence

from minrt.errors import MinRTError, VersionConflictError
from minrt.versioning import DependencyBehavior, DependencyNode, PackageRequest, select_by_behavior

from .models import DIRECT_ORIGIN, CollectedGraph, ResolvedPackage, ResolvedPackageSet, VersionConstraint

logger = logging.getLogger(__name__)


class ConflictResolver:
    """Chooses exactly one version per package id under a dependency behavior."""

    def __init__(self, behavior: DependencyBehavior = DependencyBehavior.LOWEST):
        self.behavior = behavior

    def resolve(self, graph: CollectedGraph) -> ResolvedPackageSet:
        """Resolve ``graph`` into a ``ResolvedPackageSet``.

        An id with no eligible version in one pass stays unresolved while the
        other choices move; it only fails once the choice has settled.

        Raises:
            VersionConflictError: the constraints on some id cannot all hold.
        """
        by_id = graph.nodes_by_id()
        chosen: Dict[str, DependencyNode] = {}
        unresolved: Dict[str, List[VersionConstraint]] = {}
        limit = 2 * (len(graph.nodes) + len(graph.requests)) + 2
        for _ in range(limit):
            constraints = self._active_constraints(graph.requests, chosen)
            selected: Dict[str, DependencyNode] = {}
            missing: Dict[str, List[VersionConstraint]] = {}
            for key, cs in sorted(constraints.items()):
                node = self._choose(cs, by_id.get(key, []))
                if node is None:
                    missing[key] = cs
                else:
                    selected[key] = node
            settled = selected == chosen and missing.keys() == unresolved.keys()
            chosen, unresolved = selected, missing
            if settled:
                break
        else:
            if not unresolved:
                raise MinRTError("Dependency resolution did not converge")

        if unresolved:
            key = min(unresolved)
            raise VersionConflictError(
                unresolved[key][0].package_id, unresolved[key], [n.version for n in by_id.get(key, [])]
            )

        result = ResolvedPackageSet(behavior=self.behavior)
        for key in sorted(chosen):
            result.packages[key] = ResolvedPackage(chosen[key])
            result.constraints[key] = tuple(constraints[key])

        pruned = sorted(set(by_id) - set(chosen))
        if pruned:
            logger.debug("Dropped ids not reachable through chosen versions: %s", ", ".join(pruned))
        self._check_downgrades(graph.requests, by_id, result)
        logger.info("Resolved %d packages", len(result))
        return result

    def _active_constraints(
        self, requests: Sequence[PackageRequest], chosen: Dict[str, DependencyNode]
    ) -> Dict[str, List[VersionConstraint]]:
        constraints: Dict[str, List[VersionConstraint]] = {}
        queue = deque()
        for request in requests:
            constraints.setdefault(request.key, []).append(
                VersionConstraint(request.id, request.version_range, DIRECT_ORIGIN)
            )
            queue.append(request.key)
        expanded = set()
        while queue:
            key = queue.popleft()
            if key in expanded or key not in chosen:
                continue
            expanded.add(key)
            node = chosen[key]
            for dep in node.dependencies:
                constraints.setdefault(dep.key, []).append(
                    VersionConstraint(dep.id, dep.version_range, str(node.identity))
                )
                queue.append(dep.key)
        return constraints

    def _choose(
        self, constraints: List[VersionConstraint], nodes: List[DependencyNode]
    ) -> Optional[DependencyNode]:
        eligible = {
            node.version: node
            for node in nodes
            if all(c.version_range.satisfies(node.version) for c in constraints)
        }
        version = select_by_behavior(eligible, self.behavior)
        if version is None:
            return None
        return eligible[version]

    def _check_downgrades(self, requests, by_id, result: ResolvedPackageSet) -> None:
        for request in requests:
            resolved = result.get(request.id)
            if resolved is None:
                continue
            own = select_by_behavior(
                [n.version for n in by_id.get(request.key, []) if request.version_range.satisfies(n.version)],
                self.behavior,
            )
            if own is not None and own != resolved.version:
                message = (
                    f"{request.id}: requested {request.version_range} would select {own}, "
                    f"but transitive constraints selected {resolved.version}"
                )
                logger.warning(message)
                result.warnings.append(message)

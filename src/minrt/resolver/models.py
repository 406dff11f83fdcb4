"""Data models for graph collection and conflict resolution."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Optional, Tuple

from minrt.versioning import (
    DependencyBehavior,
    DependencyNode,
    PackageIdentity,
    PackageRequest,
    Version,
    VersionRange,
)

DIRECT_ORIGIN = "direct request"


@dataclass(frozen=True)
class VersionConstraint:
    """A range recorded against one package id, and where it came from."""
    package_id: str
    version_range: VersionRange
    origin: str

    def __str__(self) -> str:
        return f"{self.package_id} {self.version_range} (from {self.origin})"


@dataclass
class CollectedGraph:
    """Every node the collector visited, keyed by exact identity."""
    requests: Tuple[PackageRequest, ...]
    nodes: Dict[PackageIdentity, DependencyNode] = field(default_factory=dict)

    def add(self, node: DependencyNode) -> bool:
        """Record ``node``; False when this identity was already present."""
        if node.identity in self.nodes:
            return False
        self.nodes[node.identity] = node
        return True

    def __contains__(self, identity: PackageIdentity) -> bool:
        return identity in self.nodes

    def __len__(self) -> int:
        return len(self.nodes)

    def nodes_by_id(self) -> Dict[str, List[DependencyNode]]:
        """Collected nodes grouped by lower-cased id, each list sorted by version."""
        grouped: Dict[str, List[DependencyNode]] = {}
        for node in self.nodes.values():
            grouped.setdefault(node.key, []).append(node)
        for nodes in grouped.values():
            nodes.sort(key=lambda n: n.version)
        return grouped


@dataclass(frozen=True)
class ResolvedPackage:
    """The single version chosen for one package id."""
    node: DependencyNode

    @property
    def identity(self) -> PackageIdentity:
        return self.node.identity

    @property
    def id(self) -> str:
        return self.node.id

    @property
    def version(self) -> Version:
        return self.node.version

    @property
    def source(self) -> str:
        """Name of the feed the package will be downloaded from."""
        return self.node.source

    @property
    def dependencies(self):
        return self.node.dependencies


@dataclass
class ResolvedPackageSet:
    """Outcome of conflict resolution: one version per package id."""
    packages: Dict[str, ResolvedPackage] = field(default_factory=dict)
    constraints: Dict[str, Tuple[VersionConstraint, ...]] = field(default_factory=dict)
    behavior: DependencyBehavior = DependencyBehavior.LOWEST
    framework: Optional[str] = None
    runtime: Optional[str] = None
    warnings: List[str] = field(default_factory=list)

    def get(self, package_id: str) -> Optional[ResolvedPackage]:
        return self.packages.get(package_id.lower())

    def __getitem__(self, package_id: str) -> ResolvedPackage:
        return self.packages[package_id.lower()]

    def __contains__(self, package_id: str) -> bool:
        return package_id.lower() in self.packages

    def __len__(self) -> int:
        return len(self.packages)

    def __iter__(self) -> Iterator[ResolvedPackage]:
        return iter(self.packages[key] for key in sorted(self.packages))

    def versions(self) -> Dict[str, str]:
        """Mapping of package id to normalized version string, ordered by id."""
        return {pkg.id: pkg.version.to_normalized_string() for pkg in self}

"""Dependency graph collection and conflict resolution."""

from .collector import DependencyCollector
from .conflicts import ConflictResolver
from .models import CollectedGraph, ResolvedPackage, ResolvedPackageSet, VersionConstraint

__all__ = [
    "CollectedGraph",
    "ConflictResolver",
    "DependencyCollector",
    "ResolvedPackage",
    "ResolvedPackageSet",
    "VersionConstraint",
]

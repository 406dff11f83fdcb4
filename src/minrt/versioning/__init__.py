"""Version and version-range model."""

from .models import (
    DependencyBehavior,
    DependencyNode,
    PackageDependency,
    PackageIdentity,
    PackageRequest,
)
from .ranges import VersionRange, select_by_behavior
from .version import Version

__all__ = [
    "DependencyBehavior",
    "DependencyNode",
    "PackageDependency",
    "PackageIdentity",
    "PackageRequest",
    "Version",
    "VersionRange",
    "select_by_behavior",
]

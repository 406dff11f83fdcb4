"""Target framework and runtime identifier compatibility."""
from .framework import (
    ANY_FRAMEWORK,
    DEFAULT_COMPATIBILITY,
    CompatibilityRule,
    FrameworkCompatibility,
    TargetFramework,
)
from .rid import ANY_RID, DEFAULT_RID_GRAPH, RidGraph, current_rid

__all__ = [
    "ANY_FRAMEWORK",
    "ANY_RID",
    "CompatibilityRule",
    "DEFAULT_COMPATIBILITY",
    "DEFAULT_RID_GRAPH",
    "FrameworkCompatibility",
    "RidGraph",
    "TargetFramework",
    "current_rid",
]

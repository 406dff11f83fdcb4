"""Asset selection and launch layout."""

from .layout import LaunchManifest, LayoutResult, build_launch_manifest, layout, selections_from_lock_file
from .selector import AssetSelection, native_logical_name, select_assets

__all__ = [
    "AssetSelection",
    "LaunchManifest",
    "LayoutResult",
    "build_launch_manifest",
    "layout",
    "native_logical_name",
    "select_assets",
    "selections_from_lock_file",
]

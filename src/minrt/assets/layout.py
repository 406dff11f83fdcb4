"""Flattening selected assets for launch, and copying them into a layout."""
from __future__ import annotations

import logging
import os
import posixpath
import shutil
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Dict, Iterable, List, Optional, Union

from minrt.constants import Constants
from minrt.frameworks.rid import DEFAULT_RID_GRAPH

from .selector import AssetSelection, native_logical_name

if TYPE_CHECKING:
    from minrt.lockfile import LockFile

logger = logging.getLogger(__name__)


@dataclass
class LaunchManifest:
    """What a runtime host needs to start an application."""
    assemblies: Dict[str, str] = field(default_factory=dict)
    native_libraries: Dict[str, str] = field(default_factory=dict)
    framework_references: Dict[str, bool] = field(default_factory=dict)
    probing_directories: List[str] = field(default_factory=list)


@dataclass
class LayoutResult:
    """Summary of a layout copy."""
    output_dir: str
    copied: List[str] = field(default_factory=list)
    missing: List[str] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)


def _native_path(path: str) -> str:
    return os.path.normpath(path)


def build_launch_manifest(selections: Iterable[AssetSelection]) -> LaunchManifest:
    """Flatten per-package selections into absolute-path maps.

    Packages are visited in case-insensitive id order; on a logical-name
    clash the first package wins and the clash is logged.
    """
    manifest = LaunchManifest()
    probing: Dict[str, None] = {}
    for selection in sorted(selections, key=lambda s: s.package_id.lower()):
        for name, relative in sorted(selection.runtime.items()):
            path = _native_path(selection.absolute(relative))
            if name in manifest.assemblies:
                logger.warning("Assembly '%s' from %s ignored; already provided", name, selection.package_id)
                continue
            manifest.assemblies[name] = path
            probing.setdefault(os.path.dirname(path), None)
        for name, relative in sorted(selection.native.items()):
            path = _native_path(selection.absolute(relative))
            if name in manifest.native_libraries:
                logger.warning("Native library '%s' from %s ignored; already provided", name, selection.package_id)
                continue
            manifest.native_libraries[name] = path
            probing.setdefault(os.path.dirname(path), None)
        for reference in selection.framework_references:
            manifest.framework_references.setdefault(reference, True)
    manifest.probing_directories = list(probing)
    return manifest


def selections_from_lock_file(lock: "LockFile", packages_dir: Optional[str] = None) -> List[AssetSelection]:
    """Rebuild asset selections from a lock file's recorded relative paths."""
    root = packages_dir or (lock.package_folders[0] if lock.package_folders else Constants.DEFAULT_CACHE_DIR)
    chain = DEFAULT_RID_GRAPH.fallback_chain(lock.runtime) if lock.runtime else ()
    windows = any(entry.lower() == "win" for entry in chain)
    selections = []
    for package in lock.packages:
        selections.append(
            AssetSelection(
                package_id=package.id,
                version=package.version,
                root=os.path.join(root, *package.path.split("/")),
                runtime={posixpath.splitext(posixpath.basename(p))[0]: p for p in package.runtime},
                native={native_logical_name(posixpath.basename(p), windows): p for p in package.native},
                framework_references=tuple(package.framework_references),
            )
        )
    return selections


def layout(lock_file: Union[str, "LockFile"], output_dir: str, packages_dir: Optional[str] = None) -> LayoutResult:
    """Copy every locked managed and native asset into ``output_dir``.

    Args:
        lock_file: Path to a lock file, or an already loaded ``LockFile``.
        output_dir: Flat destination directory; created when missing.
        packages_dir: Package cache root; defaults to the lock file's first package folder.

    Returns:
        LayoutResult listing copied, missing and skipped files.
    """
    from minrt.lockfile import read_lock_file  # pylint: disable=import-outside-toplevel

    lock = read_lock_file(lock_file) if isinstance(lock_file, str) else lock_file
    os.makedirs(output_dir, exist_ok=True)
    result = LayoutResult(os.path.abspath(output_dir))
    placed = set()
    for selection in selections_from_lock_file(lock, packages_dir):
        for relative in list(selection.runtime.values()) + list(selection.native.values()):
            name = posixpath.basename(relative)
            if name == Constants.PLACEHOLDER_FILE:
                continue
            if name.lower() in placed:
                logger.warning("Skipping %s from %s; %s already laid out", relative, selection.package_id, name)
                result.skipped.append(f"{selection.package_id}/{relative}")
                continue
            source = _native_path(selection.absolute(relative))
            if not os.path.isfile(source):
                logger.warning("Missing asset %s", source)
                result.missing.append(source)
                continue
            shutil.copy2(source, os.path.join(output_dir, name))
            placed.add(name.lower())
            result.copied.append(name)
    logger.info(
        "Laid out %d files into %s (%d missing)", len(result.copied), result.output_dir, len(result.missing)
    )
    return result

"""Lock file: the persisted resolved graph plus selected asset paths.

Format (JSON)::

    {
      "version": 1,
      "framework": "net10.0",
      "runtime": "linux-x64",
      "behavior": "lowest",
      "packageFolders": ["/home/me/.minrt/packages"],
      "packages": [
        {
          "id": "Newtonsoft.Json",
          "version": "13.0.3",
          "source": "nuget.org",
          "path": "newtonsoft.json/13.0.3",
          "dependencies": {"Other.Package": "[1.0.0, )"},
          "runtime": ["lib/net6.0/Newtonsoft.Json.dll"],
          "native": [],
          "frameworkReferences": []
        }
      ]
    }

Writes go to a temporary file in the target directory that is renamed over
the destination, so a failed restore never leaves a partial lock file.
"""
from __future__ import annotations

import json
import logging
import os
import tempfile
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional

from minrt.assets.selector import AssetSelection
from minrt.constants import Constants
from minrt.errors import LockFileError
from minrt.resolver.models import ResolvedPackageSet

logger = logging.getLogger(__name__)


@dataclass
class LockedPackage:
    """One package entry of a lock file."""
    id: str
    version: str
    source: str = ""
    path: str = ""
    dependencies: Dict[str, str] = field(default_factory=dict)
    runtime: List[str] = field(default_factory=list)
    native: List[str] = field(default_factory=list)
    framework_references: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "version": self.version,
            "source": self.source,
            "path": self.path,
            "dependencies": dict(self.dependencies),
            "runtime": list(self.runtime),
            "native": list(self.native),
            "frameworkReferences": list(self.framework_references),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any], path: str) -> "LockedPackage":
        try:
            package_id = str(data["id"])
            version = str(data["version"])
        except (KeyError, TypeError) as exc:
            raise LockFileError(path, f"package entry missing {exc}") from exc
        return cls(
            id=package_id,
            version=version,
            source=str(data.get("source", "")),
            path=str(data.get("path") or f"{package_id.lower()}/{version.lower()}"),
            dependencies={str(k): str(v) for k, v in (data.get("dependencies") or {}).items()},
            runtime=[str(p) for p in data.get("runtime") or []],
            native=[str(p) for p in data.get("native") or []],
            framework_references=[str(p) for p in data.get("frameworkReferences") or []],
        )


@dataclass
class LockFile:
    """In-memory lock file."""
    framework: str
    runtime: Optional[str] = None
    behavior: str = "lowest"
    package_folders: List[str] = field(default_factory=list)
    packages: List[LockedPackage] = field(default_factory=list)
    version: int = Constants.LOCK_FILE_VERSION

    def get(self, package_id: str) -> Optional[LockedPackage]:
        for package in self.packages:
            if package.id.lower() == package_id.lower():
                return package
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "version": self.version,
            "framework": self.framework,
            "runtime": self.runtime,
            "behavior": self.behavior,
            "packageFolders": list(self.package_folders),
            "packages": [p.to_dict() for p in self.packages],
        }


def build_lock_file(
    resolved: ResolvedPackageSet,
    selections: Mapping[str, AssetSelection],
    packages_dir: str,
) -> LockFile:
    """Assemble a lock file from a resolution and its asset selections."""
    lock = LockFile(
        framework=resolved.framework or Constants.DEFAULT_FRAMEWORK,
        runtime=resolved.runtime,
        behavior=resolved.behavior.value,
        package_folders=[os.path.abspath(packages_dir)],
    )
    for package in resolved:
        normalized = package.version.to_normalized_string()
        selection = selections.get(package.identity.key) or AssetSelection()
        lock.packages.append(
            LockedPackage(
                id=package.id,
                version=normalized,
                source=package.source,
                path=f"{package.identity.key}/{normalized.lower()}",
                dependencies={dep.id: str(dep.version_range) for dep in package.dependencies},
                runtime=sorted(selection.runtime.values()),
                native=sorted(selection.native.values()),
                framework_references=list(selection.framework_references),
            )
        )
    return lock


def write_lock_file(lock: LockFile, path: str) -> None:
    """Atomically write ``lock`` to ``path``."""
    directory = os.path.dirname(os.path.abspath(path))
    os.makedirs(directory, exist_ok=True)
    fd, temp_path = tempfile.mkstemp(prefix=".minrt-lock-", suffix=".json", dir=directory)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            json.dump(lock.to_dict(), handle, indent=2)
            handle.write("\n")
        os.replace(temp_path, path)
    except BaseException:
        try:
            os.remove(temp_path)
        except FileNotFoundError:
            pass
        raise
    logger.info("Lock file written to %s (%d packages)", path, len(lock.packages))


def read_lock_file(path: str) -> LockFile:
    """Load a lock file, raising ``LockFileError`` when unreadable."""
    try:
        with open(path, "r", encoding="utf-8") as handle:
            data = json.load(handle)
    except FileNotFoundError as exc:
        raise LockFileError(path, "file not found") from exc
    except (OSError, ValueError) as exc:
        raise LockFileError(path, str(exc)) from exc
    if not isinstance(data, dict):
        raise LockFileError(path, "expected a JSON object")
    if data.get("version") != Constants.LOCK_FILE_VERSION:
        raise LockFileError(path, f"unsupported lock file version {data.get('version')!r}")
    packages = data.get("packages")
    if not isinstance(packages, list):
        raise LockFileError(path, "'packages' must be a list")
    return LockFile(
        framework=str(data.get("framework") or Constants.DEFAULT_FRAMEWORK),
        runtime=data.get("runtime"),
        behavior=str(data.get("behavior") or "lowest"),
        package_folders=[str(p) for p in data.get("packageFolders") or []],
        packages=[LockedPackage.from_dict(entry, path) for entry in packages],
        version=data["version"],
    )

"""Parsing of ``.nuspec`` package manifests.

Only the parts resolution needs are read: id, version, dependency groups
(grouped by ``targetFramework`` or legacy ungrouped) and framework
reference groups.
"""
from __future__ import annotations

import logging
import xml.etree.ElementTree as ET
from dataclasses import dataclass
from typing import Iterable, List, Optional, Tuple, Union

from minrt.errors import ParseError
from minrt.frameworks.framework import (
    ANY_FRAMEWORK,
    DEFAULT_COMPATIBILITY,
    FrameworkCompatibility,
    TargetFramework,
)
from minrt.versioning import PackageDependency, Version, VersionRange

logger = logging.getLogger(__name__)


def _strip_namespace(tag: str) -> str:
    """Remove XML namespace prefix from tag."""
    if tag.startswith("{"):
        close = tag.find("}")
        if close != -1:
            return tag[close + 1:]
    return tag


def parse_dependency_range(text: Optional[str]) -> VersionRange:
    """Parse a manifest dependency version.

    Manifests use NuGet's convention where a bare version is a minimum, so
    ``1.0.0`` means ``[1.0.0, )``. A missing attribute accepts any version.
    """
    if text is None or not text.strip():
        return VersionRange.all()
    stripped = text.strip()
    if stripped[0] in "[(":
        return VersionRange.parse(stripped)
    return VersionRange(Version.parse(stripped), True, None, False, stripped)


@dataclass(frozen=True)
class DependencyGroup:
    """Dependencies declared for one target framework."""
    framework: TargetFramework
    dependencies: Tuple[PackageDependency, ...]


@dataclass(frozen=True)
class FrameworkReferenceGroup:
    """Shared-framework names required on one target framework."""
    framework: TargetFramework
    references: Tuple[str, ...]


@dataclass(frozen=True)
class NuspecMetadata:
    """Resolution-relevant content of a ``.nuspec`` file."""
    id: str
    version: Version
    dependency_groups: Tuple[DependencyGroup, ...] = ()
    framework_reference_groups: Tuple[FrameworkReferenceGroup, ...] = ()

    def dependencies_for(
        self,
        framework: TargetFramework,
        compatibility: FrameworkCompatibility = DEFAULT_COMPATIBILITY,
    ) -> Tuple[PackageDependency, ...]:
        """Dependencies of the nearest compatible group, or none."""
        group = compatibility.get_nearest(self.dependency_groups, framework, key=lambda g: g.framework)
        return group.dependencies if group is not None else ()


def _parse_dependencies(elements: Iterable[ET.Element]) -> Tuple[PackageDependency, ...]:
    deps: List[PackageDependency] = []
    seen = set()
    for dep in elements:
        if _strip_namespace(dep.tag) != "dependency":
            continue
        dep_id = (dep.attrib.get("id") or "").strip()
        if not dep_id or dep_id.lower() in seen:
            continue
        seen.add(dep_id.lower())
        deps.append(PackageDependency(dep_id, parse_dependency_range(dep.attrib.get("version"))))
    return tuple(deps)


def _group_framework(element: ET.Element) -> TargetFramework:
    framework = TargetFramework.try_parse(element.attrib.get("targetFramework"))
    if framework.is_unsupported:
        logger.debug("Ignoring group for unsupported framework '%s'", element.attrib.get("targetFramework"))
    return framework


def parse_nuspec(content: Union[bytes, str], source: str = "<nuspec>") -> NuspecMetadata:
    """Parse manifest XML, raising ``ParseError`` when it is unusable."""
    try:
        root = ET.fromstring(content)
    except ET.ParseError as exc:
        raise ParseError("nuspec", source, str(exc)) from exc

    metadata = None
    for child in root:
        if _strip_namespace(child.tag) == "metadata":
            metadata = child
            break
    if metadata is None:
        raise ParseError("nuspec", source, "missing <metadata>")

    package_id = ""
    version_text = ""
    dependency_groups: List[DependencyGroup] = []
    reference_groups: List[FrameworkReferenceGroup] = []

    for element in metadata:
        tag = _strip_namespace(element.tag)
        if tag == "id":
            package_id = (element.text or "").strip()
        elif tag == "version":
            version_text = (element.text or "").strip()
        elif tag == "dependencies":
            ungrouped = []
            for child in element:
                child_tag = _strip_namespace(child.tag)
                if child_tag == "group":
                    dependency_groups.append(
                        DependencyGroup(_group_framework(child), _parse_dependencies(child))
                    )
                elif child_tag == "dependency":
                    ungrouped.append(child)
            if ungrouped:
                dependency_groups.append(DependencyGroup(ANY_FRAMEWORK, _parse_dependencies(ungrouped)))
        elif tag == "frameworkReferences":
            for group in element:
                if _strip_namespace(group.tag) != "group":
                    continue
                names = tuple(
                    ref.attrib["name"].strip()
                    for ref in group
                    if _strip_namespace(ref.tag) == "frameworkReference" and ref.attrib.get("name", "").strip()
                )
                reference_groups.append(FrameworkReferenceGroup(_group_framework(group), names))

    if not package_id:
        raise ParseError("nuspec", source, "missing <id>")
    if not version_text:
        raise ParseError("nuspec", source, "missing <version>")
    return NuspecMetadata(
        package_id,
        Version.parse(version_text),
        tuple(dependency_groups),
        tuple(reference_groups),
    )

"""Runtime identifier import graph.

Each key imports the RIDs listed for it, most specific first. The shape
follows the ``runtime.json`` shipped in Microsoft.NETCore.Platforms, reduced
to the families and architectures packages commonly ship assets for.
"""
from types import MappingProxyType

_ARCHES = ("x64", "x86", "arm64", "arm")


def _family(name, parent, arches=_ARCHES, arch_parent=None):
    """Entries for ``name`` plus ``name-{arch}`` importing the family and ``arch_parent-{arch}``."""
    entries = {name: (parent,)}
    for arch in arches:
        imports = [name]
        if arch_parent:
            imports.append(f"{arch_parent}-{arch}")
        entries[f"{name}-{arch}"] = tuple(imports)
    return entries


def _versioned(name, versions, arches=_ARCHES):
    """Entries for ``name.{version}`` and ``name.{version}-{arch}``, each version importing the previous one."""
    entries = {}
    previous = name
    for version in versions:
        versioned = f"{name}.{version}"
        entries[versioned] = (previous,)
        for arch in arches:
            entries[f"{versioned}-{arch}"] = (versioned, f"{previous}-{arch}")
        previous = versioned
    return entries


def _build():
    imports = {"any": ()}
    imports.update(_family("win", "any"))
    # Legacy Windows version RIDs chain through each other: win10 -> win81 -> win8 -> win7 -> win.
    previous = "win"
    for version in ("7", "8", "81", "10"):
        name = f"win{version}"
        imports[name] = (previous,)
        for arch in _ARCHES:
            imports[f"{name}-{arch}"] = (name, f"{previous}-{arch}")
        previous = name
    imports.update(_family("unix", "any"))
    imports.update(_family("linux", "unix", arch_parent="unix"))
    imports.update(_family("linux-musl", "linux", arch_parent="linux"))
    imports.update(_family("linux-bionic", "linux", ("x64", "arm64", "arm"), arch_parent="linux"))
    imports.update(_family("alpine", "linux-musl", ("x64", "arm64", "arm"), arch_parent="linux-musl"))
    imports.update(_versioned("alpine", ("3.17", "3.18", "3.19", "3.20"), ("x64", "arm64", "arm")))
    imports.update(_family("debian", "linux", arch_parent="linux"))
    imports.update(_versioned("debian", ("11", "12")))
    imports.update(_family("ubuntu", "debian", ("x64", "arm64", "arm"), arch_parent="debian"))
    imports.update(_versioned("ubuntu", ("20.04", "22.04", "24.04"), ("x64", "arm64", "arm")))
    imports.update(_family("rhel", "linux", ("x64", "arm64"), arch_parent="linux"))
    imports.update(_versioned("rhel", ("8", "9"), ("x64", "arm64")))
    imports.update(_family("fedora", "linux", ("x64", "arm64"), arch_parent="linux"))
    imports.update(_family("android", "linux-bionic", ("x64", "arm64", "arm"), arch_parent="linux-bionic"))
    imports.update(_family("freebsd", "unix", ("x64", "arm64"), arch_parent="unix"))
    imports.update(_family("osx", "unix", ("x64", "arm64"), arch_parent="unix"))
    imports.update(_versioned("osx", ("10.15", "11.0", "12", "13", "14"), ("x64", "arm64")))
    imports.update(_family("ios", "unix", ("arm64",), arch_parent="unix"))
    imports.update(_family("maccatalyst", "ios", ("x64", "arm64"), arch_parent="osx"))
    imports["browser"] = ("any",)
    imports["browser-wasm"] = ("browser",)
    return MappingProxyType(imports)


DEFAULT_RID_IMPORTS = _build()

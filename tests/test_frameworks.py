"""Tests for target framework parsing and compatibility."""

import pytest

from minrt.errors import ParseError
from minrt.frameworks import ANY_FRAMEWORK, CompatibilityRule, DEFAULT_COMPATIBILITY, FrameworkCompatibility, TargetFramework
from minrt.frameworks.framework import NETCOREAPP, NETFRAMEWORK, NETSTANDARD


def tf(text):
    return TargetFramework.parse(text)


class TestTargetFrameworkParsing:
    """Short and long moniker spellings."""

    @pytest.mark.parametrize("text,family,version", [
        ("net10.0", NETCOREAPP, "10.0"),
        ("net8.0", NETCOREAPP, "8.0"),
        ("netcoreapp3.1", NETCOREAPP, "3.1"),
        ("netstandard2.0", NETSTANDARD, "2.0"),
        ("net472", NETFRAMEWORK, "4.7.2"),
        ("net48", NETFRAMEWORK, "4.8"),
        (".NETStandard2.0", NETSTANDARD, "2.0"),
        (".NETCoreApp,Version=v8.0", NETCOREAPP, "8.0"),
        (".NETFramework4.6.1", NETFRAMEWORK, "4.6.1"),
    ])
    def test_parse(self, text, family, version):
        """Each spelling maps to the expected family and version."""
        framework = tf(text)
        assert framework.family == family
        assert str(framework.version) == version

    def test_platform_suffix(self):
        """net8.0-windows10.0.19041 carries platform and platform version."""
        framework = tf("net8.0-windows10.0.19041")
        assert framework.platform == "windows"
        assert str(framework.platform_version) == "10.0.19041"
        assert str(framework) == "net8.0-windows10.0.19041"

    def test_any(self):
        """'any' is the wildcard framework."""
        assert tf("any") is ANY_FRAMEWORK
        assert tf("any").is_any

    @pytest.mark.parametrize("text", ["", "java8", "net4.0", "netstandard2.0-windows"])
    def test_invalid(self, text):
        """Unknown monikers raise ParseError."""
        with pytest.raises(ParseError):
            tf(text)

    def test_try_parse_maps_to_any_and_unsupported(self):
        """try_parse never raises."""
        assert TargetFramework.try_parse(None).is_any
        assert TargetFramework.try_parse("").is_any
        assert TargetFramework.try_parse("silverlight5").is_unsupported

    def test_short_folder_names(self):
        """Round trip to the folder spelling used in packages."""
        assert str(tf("netcoreapp3.1")) == "netcoreapp3.1"
        assert str(tf(".NETFramework4.7.2")) == "net472"
        assert str(tf(".NETStandard2.1")) == "netstandard2.1"


class TestCompatibility:
    """Consumer/asset compatibility over the static table."""

    def test_same_family_lower_version(self):
        """A newer consumer may use an older asset of the same family."""
        assert DEFAULT_COMPATIBILITY.is_compatible(tf("net6.0"), tf("net10.0"))
        assert not DEFAULT_COMPATIBILITY.is_compatible(tf("net10.0"), tf("net8.0"))

    def test_netstandard_from_netcore(self):
        """.NET 5+ consumes netstandard2.1 and below."""
        assert DEFAULT_COMPATIBILITY.is_compatible(tf("netstandard2.1"), tf("net10.0"))
        assert DEFAULT_COMPATIBILITY.is_compatible(tf("netstandard1.0"), tf("netcoreapp1.0"))
        assert not DEFAULT_COMPATIBILITY.is_compatible(tf("netstandard2.0"), tf("netcoreapp1.1"))

    def test_netstandard_from_netframework(self):
        """net461 consumes netstandard2.0 but net45 only netstandard1.1."""
        assert DEFAULT_COMPATIBILITY.is_compatible(tf("netstandard2.0"), tf("net461"))
        assert DEFAULT_COMPATIBILITY.is_compatible(tf("netstandard1.1"), tf("net45"))
        assert not DEFAULT_COMPATIBILITY.is_compatible(tf("netstandard1.2"), tf("net45"))

    def test_netframework_never_compatible_with_netcore(self):
        """.NET Framework assets are not usable from .NET Core."""
        assert not DEFAULT_COMPATIBILITY.is_compatible(tf("net472"), tf("net8.0"))

    def test_platform_specific_needs_matching_platform(self):
        """A -windows asset requires a -windows consumer."""
        assert not DEFAULT_COMPATIBILITY.is_compatible(tf("net8.0-windows"), tf("net8.0"))
        assert DEFAULT_COMPATIBILITY.is_compatible(tf("net8.0-windows"), tf("net8.0-windows10.0.19041"))
        assert DEFAULT_COMPATIBILITY.is_compatible(tf("net8.0"), tf("net8.0-windows"))

    def test_any_and_unsupported(self):
        """The wildcard is compatible both ways; unsupported never is."""
        assert DEFAULT_COMPATIBILITY.is_compatible(ANY_FRAMEWORK, tf("net8.0"))
        assert DEFAULT_COMPATIBILITY.is_compatible(tf("net8.0"), ANY_FRAMEWORK)
        unsupported = TargetFramework.try_parse("silverlight5")
        assert not DEFAULT_COMPATIBILITY.is_compatible(unsupported, ANY_FRAMEWORK)

    def test_injected_table(self):
        """A synthetic empty table only allows same-family matches."""
        compat = FrameworkCompatibility(rules=())
        assert not compat.is_compatible(tf("netstandard2.0"), tf("net8.0"))
        assert compat.is_compatible(tf("net6.0"), tf("net8.0"))

    def test_injected_rule(self):
        """A custom rule extends compatibility."""
        compat = FrameworkCompatibility([CompatibilityRule(NETFRAMEWORK, "4.0", NETSTANDARD, "2.0")])
        assert compat.is_compatible(tf("netstandard2.0"), tf("net40"))


class TestNearest:
    """Nearest-compatible selection."""

    def test_prefers_same_family_highest(self):
        """Same family, highest version not above the request, wins."""
        candidates = [tf("netstandard2.0"), tf("net6.0"), tf("net8.0"), tf("net10.0")]
        assert DEFAULT_COMPATIBILITY.get_nearest(candidates, tf("net9.0")) == tf("net8.0")

    def test_falls_back_to_netstandard(self):
        """With no same-family match, the highest compatible netstandard wins."""
        candidates = [tf("netstandard1.3"), tf("netstandard2.0"), tf("net472")]
        assert DEFAULT_COMPATIBILITY.get_nearest(candidates, tf("net8.0")) == tf("netstandard2.0")

    def test_wildcard_is_last_resort(self):
        """The wildcard only wins when nothing else is compatible."""
        assert DEFAULT_COMPATIBILITY.get_nearest([ANY_FRAMEWORK, tf("net6.0")], tf("net8.0")) == tf("net6.0")
        assert DEFAULT_COMPATIBILITY.get_nearest([ANY_FRAMEWORK, tf("net472")], tf("net8.0")) is ANY_FRAMEWORK

    def test_none_when_incompatible(self):
        """No compatible candidate returns None."""
        assert DEFAULT_COMPATIBILITY.get_nearest([tf("net10.0")], tf("net8.0")) is None

    def test_key_function(self):
        """Candidates can be arbitrary objects via key."""
        items = [("a", tf("net6.0")), ("b", tf("netstandard2.0"))]
        assert DEFAULT_COMPATIBILITY.get_nearest(items, tf("net8.0"), key=lambda i: i[1])[0] == "a"

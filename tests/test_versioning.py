"""Tests for versions, ranges and dependency behaviors."""

import pytest

from minrt.errors import ParseError
from minrt.versioning import DependencyBehavior, PackageIdentity, Version, VersionRange, select_by_behavior


def v(text):
    return Version.parse(text)


class TestVersionParsing:
    """Version text parsing and normalization."""

    def test_parse_three_part(self):
        """Parse a plain major.minor.patch version."""
        version = v("13.0.3")
        assert (version.major, version.minor, version.patch, version.revision) == (13, 0, 3, 0)
        assert not version.is_prerelease

    def test_short_forms_are_padded(self):
        """Missing minor and patch parts default to zero."""
        assert v("1") == v("1.0.0")
        assert v("1.2").to_normalized_string() == "1.2.0"

    def test_revision_kept_only_when_nonzero(self):
        """The fourth component only appears in the normalized form when set."""
        assert v("1.2.3.4").to_normalized_string() == "1.2.3.4"
        assert v("1.2.3.0").to_normalized_string() == "1.2.3"

    def test_metadata_dropped_from_normalized_string(self):
        """Build metadata is kept as an attribute but never rendered."""
        version = v("2.0.0-beta.1+sha.abc")
        assert version.metadata == "sha.abc"
        assert version.to_normalized_string() == "2.0.0-beta.1"

    @pytest.mark.parametrize("text", ["", "abc", "1.0.0.0.0", "1..0", "-1.0", "1.0.0-", "1.0.0-be$ta"])
    def test_malformed_versions_raise(self, text):
        """Malformed text raises ParseError naming the input."""
        with pytest.raises(ParseError) as exc:
            Version.parse(text)
        assert exc.value.kind == "version"

    def test_try_parse_returns_none(self):
        """try_parse swallows malformed input."""
        assert Version.try_parse("not-a-version") is None
        assert Version.try_parse("1.0.0") == v("1.0.0")


class TestVersionOrdering:
    """Total order over versions."""

    def test_numeric_components_compare_numerically(self):
        """10 sorts after 9, not before."""
        assert v("1.10.0") > v("1.9.0")

    def test_release_sorts_after_prerelease(self):
        """A release outranks every pre-release of the same numbers."""
        assert v("1.0.0-rc.1") < v("1.0.0")

    def test_prerelease_labels_follow_semver(self):
        """Numeric labels compare numerically and labels are case-insensitive."""
        assert v("1.0.0-alpha.2") < v("1.0.0-alpha.10")
        assert v("1.0.0-alpha") < v("1.0.0-beta")
        assert v("1.0.0-RC.1") == v("1.0.0-rc.1")

    def test_metadata_does_not_affect_equality(self):
        """Build metadata is ignored by comparison and hashing."""
        assert v("1.0.0+a") == v("1.0.0+b")
        assert len({v("1.0.0+a"), v("1.0.0+b")}) == 1

    def test_revision_participates_in_ordering(self):
        """1.0.0.1 is newer than 1.0.0."""
        assert v("1.0.0.1") > v("1.0.0")

    def test_compare_returns_sign(self):
        """compare() yields -1, 0 or 1."""
        assert Version.compare(v("1.0.0"), v("2.0.0")) == -1
        assert Version.compare(v("2.0.0"), v("2.0")) == 0
        assert Version.compare(v("2.0.1"), v("2.0.0")) == 1


class TestVersionRange:
    """Range parsing and satisfaction."""

    def test_bare_version_is_exact(self):
        """A bare version accepts only itself."""
        rng = VersionRange.parse("1.0.0")
        assert rng.is_exact
        assert rng.satisfies(v("1.0.0"))
        assert not rng.satisfies(v("1.0.1"))

    def test_inclusive_minimum(self):
        """[1.0.0, ) accepts the bound and anything above."""
        rng = VersionRange.parse("[1.0.0, )")
        assert rng.satisfies(v("1.0.0"))
        assert rng.satisfies(v("99.0.0"))
        assert not rng.satisfies(v("0.9.9"))

    def test_exclusive_minimum(self):
        """(1.0.0, ) excludes the bound."""
        rng = VersionRange.parse("(1.0.0, )")
        assert not rng.satisfies(v("1.0.0"))
        assert rng.satisfies(v("1.0.1"))

    def test_bounded_interval(self):
        """[1.0, 2.0) is half open."""
        rng = VersionRange.parse("[1.0, 2.0)")
        assert rng.satisfies(v("1.5.0"))
        assert not rng.satisfies(v("2.0.0"))

    def test_maximum_only(self):
        """(, 2.0.0] has no lower bound."""
        rng = VersionRange.parse("(, 2.0.0]")
        assert rng.satisfies(v("0.0.1"))
        assert rng.satisfies(v("2.0.0"))
        assert not rng.satisfies(v("2.0.1"))

    def test_bracketed_single_version(self):
        """[1.2.3] is an exact range."""
        assert VersionRange.parse("[1.2.3]") == VersionRange.exact(v("1.2.3"))

    @pytest.mark.parametrize("text", ["", "[1.0.0", "(1.0.0)", "[2.0, 1.0]", "[1.0, 1.0)", "[1,2,3]"])
    def test_malformed_ranges_raise(self, text):
        """Malformed or empty ranges raise ParseError."""
        with pytest.raises(ParseError):
            VersionRange.parse(text)

    def test_prereleases_need_prerelease_bound(self):
        """Pre-release candidates are filtered unless a bound is a pre-release."""
        candidates = [v("1.0.0-beta"), v("1.0.0"), v("1.1.0-rc.1")]
        assert VersionRange.parse("[1.0.0-alpha, )").filter(candidates) == [v("1.0.0-beta"), v("1.0.0"), v("1.1.0-rc.1")]
        assert VersionRange.parse("[0.1.0, )").filter(candidates) == [v("1.0.0")]

    def test_string_forms(self):
        """Ranges render in interval notation."""
        assert str(VersionRange.parse("1.0")) == "[1.0.0]"
        assert str(VersionRange.parse("[1.0, )")) == "[1.0.0, )"
        assert str(VersionRange.all()) == "(, )"

    def test_unbounded_range_parses_back(self):
        """The rendered unbounded range parses to an unbounded range."""
        rng = VersionRange.parse(str(VersionRange.all()))
        assert rng == VersionRange.all()
        assert rng.satisfies(v("0.0.1"))
        assert VersionRange.parse("(,)") == VersionRange.all()

    def test_ranges_hash_by_bounds(self):
        """Equal bounds make equal, hashable ranges regardless of spelling."""
        assert VersionRange.parse("[1.0, )") == VersionRange.parse("[1.0.0,)")
        assert len({VersionRange.parse("[1.0, )"), VersionRange.at_least(v("1.0.0"))}) == 1


class TestBestMatch:
    """Policy-driven selection among satisfying candidates."""

    CANDIDATES = ["9.0.0", "9.0.1", "9.1.0", "10.0.0"]

    def _candidates(self):
        return [v(t) for t in self.CANDIDATES]

    def test_lowest(self):
        """LOWEST picks the smallest satisfying version."""
        rng = VersionRange.parse("[9.0.0, )")
        assert rng.find_best_match(self._candidates(), DependencyBehavior.LOWEST) == v("9.0.0")

    def test_highest(self):
        """HIGHEST picks the largest satisfying version."""
        rng = VersionRange.parse("[9.0.0, )")
        assert rng.find_best_match(self._candidates(), DependencyBehavior.HIGHEST) == v("10.0.0")

    def test_highest_patch_and_minor(self):
        """HIGHEST_PATCH stays on major.minor, HIGHEST_MINOR on major."""
        rng = VersionRange.parse("[9.0.0, )")
        assert rng.find_best_match(self._candidates(), DependencyBehavior.HIGHEST_PATCH) == v("9.0.1")
        assert rng.find_best_match(self._candidates(), DependencyBehavior.HIGHEST_MINOR) == v("9.1.0")

    def test_no_match_returns_none(self):
        """No satisfying candidate yields None."""
        assert VersionRange.parse("[11.0.0, )").find_best_match(self._candidates()) is None

    def test_selection_ignores_input_order(self):
        """The same candidate set gives the same answer in any order."""
        forward = select_by_behavior(self._candidates(), DependencyBehavior.HIGHEST)
        backward = select_by_behavior(list(reversed(self._candidates())), DependencyBehavior.HIGHEST)
        assert forward == backward

    def test_policy_monotonicity(self):
        """Switching lowest to highest never lowers the chosen version."""
        rng = VersionRange.parse("[9.0.0, 10.0.0)")
        low = rng.find_best_match(self._candidates(), DependencyBehavior.LOWEST)
        high = rng.find_best_match(self._candidates(), DependencyBehavior.HIGHEST)
        assert high >= low

    def test_is_better(self):
        """is_better follows the active behavior and the range."""
        rng = VersionRange.parse("[1.0.0, )")
        assert rng.is_better(None, v("1.0.0"))
        assert rng.is_better(v("1.2.0"), v("1.1.0"), DependencyBehavior.LOWEST)
        assert not rng.is_better(v("1.2.0"), v("1.1.0"), DependencyBehavior.HIGHEST)
        assert not rng.is_better(None, v("0.5.0"))


class TestBehaviorAndIdentity:
    """DependencyBehavior parsing and identity equality."""

    @pytest.mark.parametrize("text,expected", [
        ("lowest", DependencyBehavior.LOWEST),
        ("Highest", DependencyBehavior.HIGHEST),
        ("highest_patch", DependencyBehavior.HIGHEST_PATCH),
        ("HighestMinor", DependencyBehavior.HIGHEST_MINOR),
    ])
    def test_behavior_parse(self, text, expected):
        """Accept the usual spellings."""
        assert DependencyBehavior.parse(text) is expected

    def test_behavior_parse_rejects_unknown(self):
        """Unknown behaviors raise ParseError."""
        with pytest.raises(ParseError):
            DependencyBehavior.parse("newest")

    def test_identity_ignores_id_case(self):
        """Identity equality and hashing are case-insensitive on id."""
        a = PackageIdentity("Newtonsoft.Json", v("13.0.3"))
        b = PackageIdentity("newtonsoft.json", v("13.0.3"))
        assert a == b
        assert hash(a) == hash(b)

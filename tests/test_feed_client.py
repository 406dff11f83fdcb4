"""Tests for source mapping and the multi-feed client."""

import asyncio
import logging

import pytest

from minrt.errors import FeedUnavailableError, PackageNotFoundError
from minrt.feeds.client import FeedClient
from minrt.feeds.mapping import eligible_feeds, pattern_specificity
from minrt.frameworks import TargetFramework
from minrt.versioning import DependencyBehavior, Version, VersionRange


class _Named:
    def __init__(self, name):
        self.name = name


class TestPatternSpecificity:
    """Pattern scoring."""

    def test_wildcard_matches_everything(self):
        """'*' matches with the lowest score."""
        assert pattern_specificity("*", "Anything") == 0

    def test_prefix(self):
        """Prefix patterns match case-insensitively and score by prefix length."""
        assert pattern_specificity("Contoso.*", "contoso.core") == len("contoso.")
        assert pattern_specificity("Contoso.*", "Fabrikam.Core") is None

    def test_exact_beats_prefix(self):
        """An exact id outranks a prefix of equal length."""
        assert pattern_specificity("Contoso.Core", "Contoso.Core") > pattern_specificity("Contoso.Cor*", "Contoso.Core")

    def test_blank_pattern(self):
        """Blank patterns never match."""
        assert pattern_specificity("  ", "A") is None


class TestEligibleFeeds:
    """Pure feed filtering."""

    FEEDS = (_Named("nuget.org"), _Named("internal"), _Named("mirror"))

    def test_no_mapping_keeps_all(self):
        """Without mapping every feed is eligible."""
        selection = eligible_feeds("Anything", self.FEEDS, None)
        assert [f.name for f in selection.feeds] == ["nuget.org", "internal", "mirror"]
        assert not selection.fell_back

    def test_most_specific_pattern_wins(self):
        """Contoso.* beats * for Contoso ids."""
        mapping = {"nuget.org": ["*"], "internal": ["Contoso.*"]}
        assert [f.name for f in eligible_feeds("Contoso.Core", self.FEEDS, mapping).feeds] == ["internal"]
        assert [f.name for f in eligible_feeds("Newtonsoft.Json", self.FEEDS, mapping).feeds] == ["nuget.org"]

    def test_ties_keep_configured_order(self):
        """Feeds sharing the best pattern are all eligible, in configured order."""
        mapping = {"mirror": ["Contoso.*"], "internal": ["Contoso.*"]}
        names = [f.name for f in eligible_feeds("Contoso.Core", self.FEEDS, mapping).feeds]
        assert names == ["internal", "mirror"]

    def test_fallback_to_all_when_nothing_matches(self, caplog):
        """A mapping that excludes every feed falls back to all with a warning."""
        mapping = {"internal": ["Contoso.*"]}
        with caplog.at_level(logging.WARNING):
            selection = eligible_feeds("Newtonsoft.Json", self.FEEDS, mapping)
        assert selection.fell_back
        assert len(selection.feeds) == 3
        assert "falling back" in caplog.text

    def test_fallback_when_mapped_feed_not_configured(self):
        """Patterns naming unknown feeds count as no match."""
        selection = eligible_feeds("Contoso.Core", self.FEEDS, {"elsewhere": ["Contoso.*"]})
        assert selection.fell_back


class TestFeedClient:
    """Version picking across feeds."""

    def test_best_version_across_feeds(self, fake_feed):
        """The best version may come from any feed."""
        first = fake_feed("first").add("A", "1.0.0")
        second = fake_feed("second").add("A", "1.1.0")
        client = FeedClient([first, second], behavior=DependencyBehavior.HIGHEST)
        pick = asyncio.run(client.find_best_version("A", VersionRange.parse("[1.0.0, )")))
        assert pick.version == Version.parse("1.1.0")
        assert pick.feed is second

    def test_earliest_feed_serves_shared_version(self, fake_feed):
        """When several feeds list the chosen version, the first configured one wins."""
        first = fake_feed("first").add("A", "1.0.0")
        second = fake_feed("second").add("A", "1.0.0")
        client = FeedClient([second, first])
        pick = asyncio.run(client.find_best_version("A", VersionRange.parse("1.0.0")))
        assert pick.feed is second

    def test_listing_is_memoized(self, fake_feed):
        """Each (feed, id) pair is listed once."""
        feed = fake_feed().add("A", "1.0.0").add("A", "2.0.0")
        client = FeedClient([feed])

        async def scenario():
            await asyncio.gather(
                client.find_best_version("A", VersionRange.parse("[1.0.0, )")),
                client.find_best_version("a", VersionRange.parse("[2.0.0, )")),
            )

        asyncio.run(scenario())
        assert feed.list_calls == ["A"]

    def test_unavailable_feed_is_skipped(self, fake_feed, caplog):
        """A failing feed is logged and the others still answer."""
        broken = fake_feed("broken")
        broken.unavailable = True
        healthy = fake_feed("healthy").add("A", "1.0.0")
        client = FeedClient([broken, healthy])
        with caplog.at_level(logging.WARNING):
            pick = asyncio.run(client.find_best_version("A", VersionRange.parse("1.0.0")))
        assert pick.feed is healthy
        assert "broken" in caplog.text

    def test_not_found_names_id_and_feeds(self, fake_feed):
        """Missing packages raise PackageNotFoundError with context."""
        client = FeedClient([fake_feed("only")])
        with pytest.raises(PackageNotFoundError) as exc:
            asyncio.run(client.find_best_version("Missing.Package", VersionRange.parse("1.0.0")))
        assert exc.value.package_id == "Missing.Package"
        assert exc.value.feeds == ("only",)

    def test_all_feeds_unavailable_is_not_found(self, fake_feed):
        """When every feed fails the package is reported missing."""
        broken = fake_feed("broken")
        broken.unavailable = True
        client = FeedClient([broken])
        with pytest.raises(PackageNotFoundError):
            asyncio.run(client.find_best_version("A", VersionRange.parse("1.0.0")))

    def test_source_mapping_restricts_feeds(self, fake_feed):
        """Mapped ids are only looked up on their feeds."""
        public = fake_feed("public").add("Contoso.Core", "9.9.9")
        private = fake_feed("private").add("Contoso.Core", "1.0.0")
        client = FeedClient([public, private], {"public": ["*"], "private": ["Contoso.*"]}, DependencyBehavior.HIGHEST)
        pick = asyncio.run(client.find_best_version("Contoso.Core", VersionRange.parse("[1.0.0, )")))
        assert pick.feed is private
        assert public.list_calls == []

    def test_dependency_info_falls_back_to_other_feed(self, fake_feed):
        """If the winning feed fails to serve metadata, another listing feed is tried."""
        first = fake_feed("first").add("A", "1.0.0", {"B": "[1.0.0, )"})
        second = fake_feed("second").add("A", "1.0.0", {"B": "[1.0.0, )"})
        client = FeedClient([first, second])

        async def scenario():
            pick = await client.find_best_version("A", VersionRange.parse("1.0.0"))

            async def broken(*_args, **_kwargs):
                raise FeedUnavailableError("first", "timeout", "A")

            first.get_metadata = broken
            return await client.get_dependency_info(pick, TargetFramework.parse("net8.0"))

        node = asyncio.run(scenario())
        assert node.source == "second"
        assert [d.id for d in node.dependencies] == ["B"]

    def test_requires_feeds(self):
        """A client without feeds is a programming error."""
        with pytest.raises(ValueError):
            FeedClient([])

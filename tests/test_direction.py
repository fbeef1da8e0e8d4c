"""Tests for the navigation direction algebra."""

import pytest

from fluxreader.direction import (
    NavigationIntent,
    NavigationQuery,
    Predicate,
    SortDirection,
    build_navigation_query,
    parse_datetime,
    parse_timestamp,
    resolve_direction,
    status_filter,
)
from fluxreader.models import BrowsingContext, ContextKind


class TestResolveDirection:
    """Tests for the sort direction / intent table."""

    @pytest.mark.parametrize(
        "user_direction,intent,predicate,remote_direction",
        [
            (SortDirection.DESC, NavigationIntent.PREVIOUS, Predicate.PUBLISHED_AFTER, SortDirection.ASC),
            (SortDirection.DESC, NavigationIntent.NEXT, Predicate.PUBLISHED_BEFORE, SortDirection.DESC),
            (SortDirection.ASC, NavigationIntent.PREVIOUS, Predicate.PUBLISHED_BEFORE, SortDirection.DESC),
            (SortDirection.ASC, NavigationIntent.NEXT, Predicate.PUBLISHED_AFTER, SortDirection.ASC),
        ],
    )
    def test_table(self, user_direction, intent, predicate, remote_direction):
        """Test every row of the direction table."""
        rule = resolve_direction(user_direction, intent)

        assert rule.predicate is predicate
        assert rule.remote_direction is remote_direction

    def test_accepts_plain_strings(self):
        """Test that string values are accepted."""
        rule = resolve_direction("desc", "next")

        assert rule.predicate is Predicate.PUBLISHED_BEFORE

    def test_opposite_intents_use_opposite_predicates(self):
        """Test that previous and next never share a predicate."""
        for direction in SortDirection:
            previous = resolve_direction(direction, NavigationIntent.PREVIOUS)
            following = resolve_direction(direction, NavigationIntent.NEXT)
            assert previous.predicate is not following.predicate
            assert previous.remote_direction is not following.remote_direction

    def test_opposite_property(self):
        """Test NavigationIntent.opposite."""
        assert NavigationIntent.NEXT.opposite is NavigationIntent.PREVIOUS
        assert NavigationIntent.PREVIOUS.opposite is NavigationIntent.NEXT


class TestNavigationQuery:
    """Tests for NavigationQuery construction."""

    def test_requires_exactly_one_bound(self):
        """Test that zero or two bounds are rejected."""
        with pytest.raises(ValueError):
            NavigationQuery(ContextKind.GLOBAL, None, ("unread",), "published_at", SortDirection.ASC)

        with pytest.raises(ValueError):
            NavigationQuery(
                ContextKind.GLOBAL,
                None,
                ("unread",),
                "published_at",
                SortDirection.ASC,
                published_after=1,
                published_before=2,
            )

    def test_rejects_local_scope(self):
        """Test that local contexts cannot be queried remotely."""
        with pytest.raises(ValueError):
            NavigationQuery(
                ContextKind.LOCAL, None, ("unread",), "published_at", SortDirection.ASC, published_after=1
            )

    def test_to_params(self):
        """Test query string parameters."""
        query = NavigationQuery(
            ContextKind.FEED,
            7,
            ("unread", "read"),
            "published_at",
            SortDirection.DESC,
            published_before=1700000000,
        )

        assert query.to_params() == {
            "status": ["unread", "read"],
            "order": "published_at",
            "direction": "desc",
            "limit": 1,
            "published_before": 1700000000,
        }


class TestBuildNavigationQuery:
    """Tests for build_navigation_query."""

    def test_desc_previous_global(self):
        """Test previous in a newest-first list looks for newer entries."""
        query = build_navigation_query(
            BrowsingContext.global_(),
            1000,
            NavigationIntent.PREVIOUS,
            order="published_at",
            direction=SortDirection.DESC,
            hide_read_entries=True,
        )

        assert query.scope_kind is ContextKind.GLOBAL
        assert query.scope_id is None
        assert query.published_after == 1000
        assert query.published_before is None
        assert query.direction is SortDirection.ASC
        assert query.statuses == ("unread",)
        assert query.limit == 1

    def test_feed_scope_is_kept(self):
        """Test that feed scope carries through to the query."""
        query = build_navigation_query(
            BrowsingContext.feed(7),
            1000,
            NavigationIntent.NEXT,
            order="published_at",
            direction=SortDirection.DESC,
            hide_read_entries=False,
        )

        assert query.scope_kind is ContextKind.FEED
        assert query.scope_id == 7
        assert query.published_before == 1000
        assert query.statuses == ("unread", "read")

    def test_category_scope_is_kept(self):
        """Test that category scope carries through to the query."""
        query = build_navigation_query(
            BrowsingContext.category(3),
            1000,
            NavigationIntent.NEXT,
            order="id",
            direction=SortDirection.ASC,
            hide_read_entries=True,
        )

        assert query.scope_kind is ContextKind.CATEGORY
        assert query.scope_id == 3
        assert query.order == "id"
        assert query.published_after == 1000
        assert query.direction is SortDirection.ASC


class TestStatusFilter:
    """Tests for status_filter."""

    def test_hide_read(self):
        assert status_filter(True) == ("unread",)

    def test_show_read(self):
        assert status_filter(False) == ("unread", "read")


class TestParseTimestamp:
    """Tests for parse_timestamp."""

    def test_utc_suffix(self):
        """Test a trailing Z."""
        assert parse_timestamp("2024-01-01T00:00:00Z") == 1704067200

    def test_offset(self):
        """Test an explicit offset."""
        assert parse_timestamp("2024-01-01T02:00:00+02:00") == 1704067200

    def test_naive_is_utc(self):
        """Test that naive values are taken as UTC."""
        assert parse_timestamp("2024-01-01T00:00:00") == 1704067200

    def test_invalid(self):
        """Test that garbage raises ValueError."""
        with pytest.raises(ValueError):
            parse_timestamp("yesterday")

    def test_nanosecond_fraction(self):
        """Test the nine-digit fractions Miniflux sends."""
        assert parse_timestamp("2024-01-01T12:00:00.123456789Z") == 1704110400
        assert parse_datetime("2024-01-01T12:00:00.123456789Z").microsecond == 123456

    def test_short_fraction(self):
        """Test a two-digit fraction."""
        assert parse_timestamp("2024-01-01T12:00:00.12Z") == 1704110400
        assert parse_datetime("2024-01-01T12:00:00.12Z").microsecond == 120000

    def test_fraction_with_offset(self):
        """Test a long fraction followed by an explicit offset."""
        parsed = parse_datetime("2024-01-01T14:00:00.5000000+02:00")

        assert int(parsed.timestamp()) == 1704110400
        assert parsed.microsecond == 500000

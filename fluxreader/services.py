"""Cached access to feeds, categories and unread counts."""

import logging
from dataclasses import asdict
from typing import Any, Optional

from .api import MinifluxClient, MinifluxError
from .cache import TTLCache
from .config import Settings
from .direction import status_filter
from .models import Category, Entry, Feed, FeedCounters

logger = logging.getLogger(__name__)


class CollectionService:
    """Feeds, categories and counts, cached with per-kind TTLs.

    Entry lists are never cached. Status changes anywhere in the
    application must call invalidate_all() so counts stay correct.
    """

    def __init__(self, client: MinifluxClient, cache: Optional[TTLCache], settings: Settings):
        self.client = client
        self.cache = cache
        self.settings = settings

    @property
    def _caching(self) -> bool:
        return self.cache is not None and self.settings.api_cache_enabled

    def get_feeds(self) -> list[Feed]:
        if not self._caching:
            return self.client.get_feeds()
        data = self.cache.fetch(
            "feeds",
            lambda: [asdict(feed) for feed in self.client.get_feeds()],
            ttl=self.settings.api_cache_ttl,
        )
        return [_feed_from_dict(item) for item in data]

    def get_feeds_with_counters(self) -> tuple[list[Feed], FeedCounters]:
        """Feeds plus read/unread counters; counter failures give empty counters."""
        feeds = self.get_feeds()
        if not self._caching:
            return feeds, self._fetch_counters()

        data = self.cache.fetch(
            "feed_counters",
            lambda: asdict(self._fetch_counters()),
            ttl=self.settings.api_cache_ttl_counters,
        )
        counters = FeedCounters(
            reads={int(k): v for k, v in data["reads"].items()},
            unreads={int(k): v for k, v in data["unreads"].items()},
        )
        return feeds, counters

    def get_categories(self) -> list[Category]:
        if not self._caching:
            return self.client.get_categories(counts=True)
        data = self.cache.fetch(
            "categories",
            lambda: [asdict(category) for category in self.client.get_categories(counts=True)],
            ttl=self.settings.api_cache_ttl_categories,
        )
        return [Category(**item) for item in data]

    def get_unread_count(self) -> int:
        params = {
            "order": self.settings.order,
            "direction": self.settings.direction,
            "limit": 1,
            "status": ["unread"],
        }
        if not self._caching:
            return self.client.get_entries(params).total

        cache_key = self.client.entries_url(params) + "_count"
        return self.cache.fetch(
            cache_key,
            lambda: self.client.get_entries(params).total,
            ttl=self.settings.api_cache_ttl,
        )

    def get_unread_entries(self) -> list[Entry]:
        params = self._list_params()
        params["status"] = ["unread"]
        return self.client.get_entries(params).entries

    def get_feed_entries(self, feed_id: int) -> list[Entry]:
        return self.client.get_feed_entries(feed_id, self._list_params()).entries

    def get_category_entries(self, category_id: int) -> list[Entry]:
        return self.client.get_category_entries(category_id, self._list_params()).entries

    def invalidate_all(self) -> None:
        if not self._caching:
            return
        logger.info("Invalidating collection cache")
        self.cache.clear()

    def _list_params(self) -> dict[str, Any]:
        return {
            "order": self.settings.order,
            "direction": self.settings.direction,
            "limit": self.settings.limit,
            "status": list(status_filter(self.settings.hide_read_entries)),
        }

    def _fetch_counters(self) -> FeedCounters:
        try:
            return self.client.get_feed_counters()
        except MinifluxError as e:
            logger.warning("Failed to fetch feed counters: %s", e)
            return FeedCounters()


def _feed_from_dict(data: dict[str, Any]) -> Feed:
    category = data.get("category")
    return Feed(**{**data, "category": Category(**category) if category else None})

"""Data models for fluxreader."""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Optional

logger = logging.getLogger(__name__)


@dataclass
class Category:
    """Represents a Miniflux category."""

    id: int
    title: str
    total_unread: Optional[int] = None


@dataclass
class Feed:
    """Represents a Miniflux feed."""

    id: int
    title: str
    site_url: Optional[str] = None
    feed_url: Optional[str] = None
    category: Optional[Category] = None
    parsing_error_message: Optional[str] = None


@dataclass
class FeedCounters:
    """Read and unread counts per feed id."""

    reads: dict[int, int] = field(default_factory=dict)
    unreads: dict[int, int] = field(default_factory=dict)


@dataclass
class Entry:
    """Represents an entry as returned by the Miniflux API."""

    id: int
    title: str
    url: Optional[str] = None
    status: str = "unread"
    published_at: Optional[str] = None
    content: Optional[str] = None
    feed_id: Optional[int] = None
    feed_title: Optional[str] = None
    category_id: Optional[int] = None
    category_title: Optional[str] = None

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> "Entry":
        """Build an Entry from a Miniflux JSON object."""
        feed = data.get("feed") or {}
        category = feed.get("category") or {}
        return cls(
            id=int(data["id"]),
            title=data.get("title") or "",
            url=data.get("url"),
            status=data.get("status") or "unread",
            published_at=data.get("published_at"),
            content=data.get("content"),
            feed_id=feed.get("id", data.get("feed_id")),
            feed_title=feed.get("title"),
            category_id=category.get("id"),
            category_title=category.get("title"),
        )


@dataclass
class EntriesPage:
    """A page of entries plus the server-side total."""

    total: int
    entries: list[Entry]


class ContextKind(str, Enum):
    """Scope a user is browsing within."""

    GLOBAL = "global"
    FEED = "feed"
    CATEGORY = "category"
    LOCAL = "local"


@dataclass(frozen=True)
class LocalEntryRef:
    """Lightweight reference to a downloaded entry, enough to sort it."""

    id: int
    published_at: Optional[str] = None
    title: Optional[str] = None


@dataclass(frozen=True)
class BrowsingContext:
    """The scope a user navigates within.

    ``scope_id`` is only set for feed and category contexts, and
    ``ordered_entries`` only for local contexts. Instances are never
    mutated; use the constructors below to build new ones.
    """

    kind: ContextKind = ContextKind.GLOBAL
    scope_id: Optional[int] = None
    ordered_entries: Optional[tuple[LocalEntryRef, ...]] = None

    def __post_init__(self):
        if self.kind in (ContextKind.FEED, ContextKind.CATEGORY):
            if self.scope_id is None:
                raise ValueError(f"{self.kind.value} context requires a scope id")
        elif self.scope_id is not None:
            raise ValueError(f"{self.kind.value} context cannot carry a scope id")
        if self.ordered_entries is not None and self.kind is not ContextKind.LOCAL:
            raise ValueError("only local contexts carry an ordered entry list")

    @classmethod
    def global_(cls) -> "BrowsingContext":
        return cls(ContextKind.GLOBAL)

    @classmethod
    def feed(cls, feed_id: int) -> "BrowsingContext":
        return cls(ContextKind.FEED, scope_id=feed_id)

    @classmethod
    def category(cls, category_id: int) -> "BrowsingContext":
        return cls(ContextKind.CATEGORY, scope_id=category_id)

    @classmethod
    def local(cls, ordered_entries=None) -> "BrowsingContext":
        refs = tuple(ordered_entries) if ordered_entries is not None else None
        return cls(ContextKind.LOCAL, ordered_entries=refs)

    @property
    def is_local(self) -> bool:
        return self.kind is ContextKind.LOCAL

    def to_dict(self) -> dict[str, Any]:
        """Serialize for metadata.json. The local entry list is not persisted."""
        data: dict[str, Any] = {"kind": self.kind.value}
        if self.scope_id is not None:
            data["scope_id"] = self.scope_id
        return data

    @classmethod
    def from_dict(cls, data: Optional[dict[str, Any]]) -> "BrowsingContext":
        """Decode a saved context, falling back to global when malformed."""
        if not data:
            return cls.global_()
        try:
            kind = ContextKind(data.get("kind"))
            scope_id = data.get("scope_id")
            if kind in (ContextKind.FEED, ContextKind.CATEGORY):
                return cls(kind, scope_id=int(scope_id))
            return cls(kind)
        except (ValueError, TypeError, AttributeError) as e:
            logger.warning("Ignoring malformed browsing context %r: %s", data, e)
            return cls.global_()


@dataclass
class EntryMetadata:
    """Record stored next to a downloaded entry."""

    entry_id: int
    title: str
    published_at: Optional[str] = None
    url: Optional[str] = None
    status: str = "unread"
    feed_id: Optional[int] = None
    feed_title: Optional[str] = None
    category_id: Optional[int] = None
    category_title: Optional[str] = None
    browsing_context: Optional[BrowsingContext] = None
    last_updated: Optional[datetime] = None

    @classmethod
    def from_entry(
        cls, entry: Entry, context: Optional[BrowsingContext] = None
    ) -> "EntryMetadata":
        return cls(
            entry_id=entry.id,
            title=entry.title,
            published_at=entry.published_at,
            url=entry.url,
            status=entry.status,
            feed_id=entry.feed_id,
            feed_title=entry.feed_title,
            category_id=entry.category_id,
            category_title=entry.category_title,
            browsing_context=context,
            last_updated=datetime.now(),
        )

    def to_ref(self) -> LocalEntryRef:
        return LocalEntryRef(id=self.entry_id, published_at=self.published_at, title=self.title)

    def to_dict(self) -> dict[str, Any]:
        return {
            "entry_id": self.entry_id,
            "title": self.title,
            "published_at": self.published_at,
            "url": self.url,
            "status": self.status,
            "feed_id": self.feed_id,
            "feed_title": self.feed_title,
            "category_id": self.category_id,
            "category_title": self.category_title,
            "browsing_context": (
                self.browsing_context.to_dict() if self.browsing_context else None
            ),
            "last_updated": self.last_updated.isoformat() if self.last_updated else None,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "EntryMetadata":
        """Decode metadata.json contents.

        Raises:
            KeyError: If the entry id is missing
        """
        saved_context = data.get("browsing_context")
        return cls(
            entry_id=int(data["entry_id"]),
            title=data.get("title") or "",
            published_at=data.get("published_at"),
            url=data.get("url"),
            status=data.get("status") or "unread",
            feed_id=data.get("feed_id"),
            feed_title=data.get("feed_title"),
            category_id=data.get("category_id"),
            category_title=data.get("category_title"),
            browsing_context=(
                BrowsingContext.from_dict(saved_context) if saved_context else None
            ),
            last_updated=_parse_datetime(data.get("last_updated")),
        )


def _parse_datetime(value: Optional[str]) -> Optional[datetime]:
    if value is None:
        return None
    try:
        return datetime.fromisoformat(value)
    except (ValueError, TypeError):
        return None

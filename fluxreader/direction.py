"""Direction algebra for entry navigation.

"Previous" and "next" are positions in the list the user is looking at,
while the Miniflux API only filters on publication time. Which predicate
to send, and which sort direction makes ``limit=1`` return the nearest
match, depends on the sort direction the list is displayed in:

==========  ========  ==================  ======================
user sort   intent    predicate           forced remote sort
==========  ========  ==================  ======================
desc        previous  published_after     asc
desc        next      published_before    desc
asc         previous  published_before    desc
asc         next      published_after     asc
==========  ========  ==================  ======================
"""

import re
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from .models import BrowsingContext, ContextKind

_FRACTION = re.compile(r"\.(\d+)(?=[+-]\d\d:\d\d$|$)")


class SortDirection(str, Enum):
    ASC = "asc"
    DESC = "desc"


class NavigationIntent(str, Enum):
    PREVIOUS = "previous"
    NEXT = "next"

    @property
    def opposite(self) -> "NavigationIntent":
        if self is NavigationIntent.PREVIOUS:
            return NavigationIntent.NEXT
        return NavigationIntent.PREVIOUS


class Predicate(str, Enum):
    PUBLISHED_AFTER = "published_after"
    PUBLISHED_BEFORE = "published_before"


@dataclass(frozen=True)
class DirectionRule:
    """Remote predicate plus the sort direction that puts the nearest match first."""

    predicate: Predicate
    remote_direction: SortDirection


_RULES: dict[tuple[SortDirection, NavigationIntent], DirectionRule] = {
    (SortDirection.DESC, NavigationIntent.PREVIOUS): DirectionRule(
        Predicate.PUBLISHED_AFTER, SortDirection.ASC
    ),
    (SortDirection.DESC, NavigationIntent.NEXT): DirectionRule(
        Predicate.PUBLISHED_BEFORE, SortDirection.DESC
    ),
    (SortDirection.ASC, NavigationIntent.PREVIOUS): DirectionRule(
        Predicate.PUBLISHED_BEFORE, SortDirection.DESC
    ),
    (SortDirection.ASC, NavigationIntent.NEXT): DirectionRule(
        Predicate.PUBLISHED_AFTER, SortDirection.ASC
    ),
}


def resolve_direction(user_direction: SortDirection, intent: NavigationIntent) -> DirectionRule:
    """Map the configured sort direction and a navigation intent to a remote rule."""
    return _RULES[(SortDirection(user_direction), NavigationIntent(intent))]


@dataclass(frozen=True)
class NavigationQuery:
    """Parameters for a single adjacent-entry lookup.

    Exactly one of ``published_after`` and ``published_before`` is set.
    """

    scope_kind: ContextKind
    scope_id: Optional[int]
    statuses: tuple[str, ...]
    order: str
    direction: SortDirection
    limit: int = 1
    published_after: Optional[int] = None
    published_before: Optional[int] = None

    def __post_init__(self):
        if (self.published_after is None) == (self.published_before is None):
            raise ValueError("exactly one of published_after/published_before must be set")
        if self.scope_kind is ContextKind.LOCAL:
            raise ValueError("local contexts are never queried remotely")

    def to_params(self) -> dict[str, Any]:
        """Query string parameters for the entries endpoints."""
        params: dict[str, Any] = {
            "status": list(self.statuses),
            "order": self.order,
            "direction": self.direction.value,
            "limit": self.limit,
        }
        if self.published_after is not None:
            params["published_after"] = self.published_after
        else:
            params["published_before"] = self.published_before
        return params


def status_filter(hide_read_entries: bool) -> tuple[str, ...]:
    return ("unread",) if hide_read_entries else ("unread", "read")


def build_navigation_query(
    context: BrowsingContext,
    timestamp: int,
    intent: NavigationIntent,
    order: str,
    direction: SortDirection,
    hide_read_entries: bool,
) -> NavigationQuery:
    """Build the remote query for the entry adjacent to ``timestamp``.

    Args:
        context: Browsing context; feed and category contexts narrow the scope
        timestamp: Unix publication time of the current entry
        intent: Previous or next
        order: Configured sort order, passed through unchanged
        direction: Configured (user) sort direction
        hide_read_entries: Whether only unread entries are listed

    Returns:
        NavigationQuery with limit 1
    """
    rule = resolve_direction(direction, intent)
    bound = {rule.predicate.value: timestamp}
    return NavigationQuery(
        scope_kind=context.kind,
        scope_id=context.scope_id,
        statuses=status_filter(hide_read_entries),
        order=order,
        direction=rule.remote_direction,
        limit=1,
        **bound,
    )


def parse_datetime(published_at: str) -> datetime:
    """Parse an RFC 3339 date as sent by Miniflux into an aware datetime.

    Fractions of a second are cut or padded to microseconds, since
    ``fromisoformat`` before Python 3.11 only takes 3 or 6 digits and
    Miniflux sends nanoseconds. Naive values are taken as UTC.

    Raises:
        ValueError: If the value is not ISO-8601
    """
    value = published_at.strip()
    if value.endswith(("Z", "z")):
        value = value[:-1] + "+00:00"
    value = _FRACTION.sub(lambda m: "." + m.group(1)[:6].ljust(6, "0"), value, count=1)
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def parse_timestamp(published_at: str) -> int:
    """Convert an ISO-8601 publication date to a Unix timestamp.

    Raises:
        ValueError: If the value is not ISO-8601
    """
    return int(parse_datetime(published_at).timestamp())

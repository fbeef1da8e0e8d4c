"""Previous/next entry resolution for fluxreader.

Given the entry currently open and the browsing context it was opened
in, find the adjacent entry. Local contexts are resolved from their
ordered entry list without touching the network. Every other context is
resolved with a single remote query; when that query fails or matches
nothing, the nearest downloaded entry id on the requested side is used
instead. That offline fallback ignores the browsing scope and compares
ids, not publication dates.
"""

import logging
import threading
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Callable, Optional, Sequence

from .api import MinifluxClient, MinifluxError, NetworkError
from .config import Settings
from .direction import NavigationIntent, build_navigation_query, parse_timestamp
from .models import BrowsingContext, Entry, LocalEntryRef
from .store import LocalEntryStore, MetadataError

logger = logging.getLogger(__name__)


class NavigationStatus(str, Enum):
    FOUND = "found"
    MISSING_IDENTITY = "missing_identity"
    NO_REMOTE_CLIENT = "no_remote_client"
    MISSING_TIMESTAMP = "missing_timestamp"
    NO_ADJACENT_ENTRY = "no_adjacent_entry"
    CANCELLED = "cancelled"
    BUSY = "busy"


class ExhaustionReason(str, Enum):
    LOCAL_BOUNDARY = "local boundary"
    REMOTE_END = "remote end"
    OFFLINE_NO_ENTRIES = "offline no entries"
    REMOTE_FAILED = "remote failed"


class TargetSource(str, Enum):
    REMOTE = "remote"
    OFFLINE = "offline"
    LOCAL = "local"


@dataclass(frozen=True)
class NavigationTarget:
    """The entry to open. ``entry`` is only set when it came from the server."""

    entry_id: int
    source: TargetSource
    entry: Optional[Entry] = None


@dataclass
class NavigationResult:
    """Outcome of one resolve_adjacent call."""

    status: NavigationStatus
    intent: NavigationIntent
    target: Optional[NavigationTarget] = None
    context: Optional[BrowsingContext] = None
    reason: Optional[ExhaustionReason] = None
    error: Optional[str] = None

    @property
    def found(self) -> bool:
        return self.status is NavigationStatus.FOUND

    @property
    def message(self) -> str:
        """User-facing description of the outcome."""
        intent = self.intent.value
        if self.status is NavigationStatus.FOUND:
            if self.target.source is TargetSource.OFFLINE:
                return "Found a local entry"
            return f"Opening {intent} entry {self.target.entry_id}"
        if self.status is NavigationStatus.NO_ADJACENT_ENTRY:
            if self.reason is ExhaustionReason.REMOTE_END:
                return f"No {intent} entry available on server"
            if self.reason is ExhaustionReason.OFFLINE_NO_ENTRIES:
                return f"No {intent} entry available in local files (server unreachable)"
            if self.reason is ExhaustionReason.REMOTE_FAILED:
                return f"No {intent} entry available in local files (server request failed)"
            return f"No {intent} entry available in local files"
        return _STATUS_MESSAGES[self.status]


_STATUS_MESSAGES = {
    NavigationStatus.MISSING_IDENTITY: "Cannot navigate: missing entry ID",
    NavigationStatus.NO_REMOTE_CLIENT: "Cannot navigate: Miniflux API not available",
    NavigationStatus.MISSING_TIMESTAMP: "Cannot navigate: missing timestamp information",
    NavigationStatus.CANCELLED: "Navigation cancelled",
    NavigationStatus.BUSY: "Navigation already in progress",
}


@dataclass(frozen=True)
class NavigationSession:
    """The entry a navigation starts from.

    ``context`` overrides the context saved in the entry's metadata, so a
    host that already holds a materialized local list can reuse it.
    """

    entry_id: Optional[int]
    path: Optional[Path] = None
    context: Optional[BrowsingContext] = None

    @classmethod
    def from_path(
        cls, store: LocalEntryStore, path: Path, context: Optional[BrowsingContext] = None
    ) -> "NavigationSession":
        return cls(entry_id=store.id_of(path), path=Path(path), context=context)


class CancellationToken:
    """Set by the host when the user dismisses the progress indicator."""

    def __init__(self):
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()


class Navigator:
    """Resolves the entry adjacent to the current one."""

    def __init__(
        self,
        store: LocalEntryStore,
        client: Optional[MinifluxClient],
        settings: Callable[[], Settings],
        progress: Optional[Callable[[str], None]] = None,
    ):
        """Initialize the navigator.

        Args:
            store: Local entry store
            client: Content query client, or None when not configured
            settings: Callable returning current settings, invoked on every call
            progress: Optional callback receiving short progress messages
        """
        self.store = store
        self.client = client
        self.settings = settings
        self.progress = progress or (lambda message: None)
        self._in_flight = threading.Lock()

    def resolve_adjacent(
        self,
        session: NavigationSession,
        intent: NavigationIntent,
        cancel_token: Optional[CancellationToken] = None,
    ) -> NavigationResult:
        """Find the previous or next entry relative to the session's entry.

        Args:
            session: Current entry id and optional context override
            intent: NavigationIntent.PREVIOUS or NavigationIntent.NEXT
            cancel_token: Checked once after the remote call returns

        Returns:
            NavigationResult; its context is the one to save with the target
        """
        intent = NavigationIntent(intent)
        if session.entry_id is None:
            return NavigationResult(NavigationStatus.MISSING_IDENTITY, intent)
        if self.client is None:
            return NavigationResult(NavigationStatus.NO_REMOTE_CLIENT, intent)

        if not self._in_flight.acquire(blocking=False):
            logger.debug("Ignoring navigation request, another one is in flight")
            return NavigationResult(NavigationStatus.BUSY, intent)
        try:
            return self._resolve(session, intent, cancel_token)
        finally:
            self._in_flight.release()

    def _resolve(
        self,
        session: NavigationSession,
        intent: NavigationIntent,
        cancel_token: Optional[CancellationToken],
    ) -> NavigationResult:
        entry_id = session.entry_id
        settings = self.settings()

        try:
            metadata = self.store.read_metadata(entry_id)
        except MetadataError as e:
            logger.error("Cannot load metadata: %s", e)
            metadata = None
        if metadata is None or not metadata.published_at:
            return NavigationResult(NavigationStatus.MISSING_TIMESTAMP, intent)
        try:
            timestamp = parse_timestamp(metadata.published_at)
        except ValueError:
            logger.warning("Entry %s has invalid timestamp %r", entry_id, metadata.published_at)
            return NavigationResult(NavigationStatus.MISSING_TIMESTAMP, intent)

        context = session.context or metadata.browsing_context or BrowsingContext.global_()

        if context.is_local:
            return self._resolve_local(entry_id, intent, context, settings)

        query = build_navigation_query(
            context,
            timestamp,
            intent,
            order=settings.order,
            direction=settings.sort_direction,
            hide_read_entries=settings.hide_read_entries,
        )

        self.progress(f"Finding {intent.value} entry...")
        remote_error = None
        unreachable = False
        entries: Sequence[Entry] = ()
        try:
            entries = self.client.query(query).entries
        except MinifluxError as e:
            remote_error = str(e)
            unreachable = isinstance(e, NetworkError)
            logger.warning("Entry search failed, falling back to local files: %s", e)

        if cancel_token is not None and cancel_token.cancelled:
            logger.info("Navigation from entry %s cancelled", entry_id)
            return NavigationResult(NavigationStatus.CANCELLED, intent, error=remote_error)

        if entries:
            target = entries[0]
            return NavigationResult(
                NavigationStatus.FOUND,
                intent,
                target=NavigationTarget(target.id, TargetSource.REMOTE, entry=target),
                context=context,
            )

        local_id = find_adjacent_local_id(self.store, entry_id, intent)
        if local_id is not None:
            logger.info("Found offline entry: %s", local_id)
            self.progress("Found a local entry")
            return NavigationResult(
                NavigationStatus.FOUND,
                intent,
                target=NavigationTarget(local_id, TargetSource.OFFLINE),
                context=context,
                error=remote_error,
            )

        if remote_error is None:
            reason = ExhaustionReason.REMOTE_END
        elif unreachable:
            reason = ExhaustionReason.OFFLINE_NO_ENTRIES
        else:
            reason = ExhaustionReason.REMOTE_FAILED
        return NavigationResult(
            NavigationStatus.NO_ADJACENT_ENTRY, intent, reason=reason, error=remote_error
        )

    def _resolve_local(
        self,
        entry_id: int,
        intent: NavigationIntent,
        context: BrowsingContext,
        settings: Settings,
    ) -> NavigationResult:
        if context.ordered_entries is None:
            context = BrowsingContext.local(self.store.ordered_refs(settings.order, settings.direction))

        target_id = navigate_local_entries(context.ordered_entries, entry_id, intent)
        if target_id is None:
            return NavigationResult(
                NavigationStatus.NO_ADJACENT_ENTRY,
                intent,
                reason=ExhaustionReason.LOCAL_BOUNDARY,
            )
        return NavigationResult(
            NavigationStatus.FOUND,
            intent,
            target=NavigationTarget(target_id, TargetSource.LOCAL),
            context=context,
        )


def navigate_local_entries(
    ordered_entries: Sequence[LocalEntryRef], current_id: int, intent: NavigationIntent
) -> Optional[int]:
    """Return the id one position before/after current_id in an ordered list.

    Returns:
        The adjacent id, or None if current_id is absent or at the boundary
    """
    for index, ref in enumerate(ordered_entries):
        if ref.id == current_id:
            break
    else:
        logger.warning("Entry %s not found in local entries", current_id)
        return None

    target = index + 1 if intent is NavigationIntent.NEXT else index - 1
    if 0 <= target < len(ordered_entries):
        return ordered_entries[target].id
    return None


def find_adjacent_local_id(
    store: LocalEntryStore, current_id: int, intent: NavigationIntent
) -> Optional[int]:
    """Nearest downloaded entry id on the requested side of current_id.

    Previous picks the largest id below current_id, next the smallest id
    above it. Only completed downloads are considered.
    """
    target_id = None
    for entry_id in store.list_downloaded_ids():
        if intent is NavigationIntent.PREVIOUS:
            if entry_id < current_id and (target_id is None or entry_id > target_id):
                target_id = entry_id
        elif entry_id > current_id and (target_id is None or entry_id < target_id):
            target_id = entry_id
    return target_id

"""Entry opening, downloading and status changes for fluxreader."""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Optional

from .api import MinifluxClient, MinifluxError
from .config import Settings
from .models import BrowsingContext, Entry, EntryMetadata
from .navigation import NavigationResult
from .render import render_entry
from .store import LocalEntryStore, MetadataError

logger = logging.getLogger(__name__)

ENTRY_STATUSES = ("read", "unread")


class EntryNotDownloadedError(Exception):
    """Raised when a local operation targets an entry that is not downloaded."""

    def __init__(self, entry_id: int):
        self.entry_id = entry_id
        super().__init__(f"Entry {entry_id} is not downloaded")


class EmptyEntryError(Exception):
    """Raised when an entry has no content to download."""

    def __init__(self, entry_id: int):
        self.entry_id = entry_id
        super().__init__(f"No content available for entry {entry_id}")


def download_entry(
    store: LocalEntryStore, entry: Entry, context: Optional[BrowsingContext] = None
) -> Path:
    """Render an entry into the store together with its metadata.

    Args:
        store: Local entry store
        entry: Entry payload from the API
        context: Browsing context to save with the entry

    Returns:
        Path to the rendered HTML file

    Raises:
        EmptyEntryError: If the entry has no content and no local copy
        MetadataError: If the metadata cannot be written
        OSError: If the render cannot be written
    """
    if not entry.content:
        if not store.has_completed_render(entry.id):
            raise EmptyEntryError(entry.id)
        store.write_metadata(entry.id, EntryMetadata.from_entry(entry, context))
        return store.html_path(entry.id)

    store.write_metadata(entry.id, EntryMetadata.from_entry(entry, context))
    return store.write_render(entry.id, render_entry(entry))


@dataclass
class OpenOutcome:
    """Result of opening an entry.

    ``path`` is set when the entry was handed to the viewer; ``error``
    when nothing could be opened. ``warnings`` collects non-fatal problems.
    """

    entry_id: int
    path: Optional[Path] = None
    downloaded: bool = False
    error: Optional[str] = None
    warnings: list[str] = field(default_factory=list)

    @property
    def opened(self) -> bool:
        return self.path is not None


class EntryOpener:
    """Opens local entries or downloads them first."""

    def __init__(
        self,
        store: LocalEntryStore,
        client: Optional[MinifluxClient],
        settings: Settings,
        viewer: Optional[Callable[[Path], None]] = None,
        on_status_change: Optional[Callable[[], None]] = None,
    ):
        self.store = store
        self.client = client
        self.settings = settings
        self.viewer = viewer or (lambda path: None)
        self.on_status_change = on_status_change or (lambda: None)

    def open_target(self, result: NavigationResult) -> OpenOutcome:
        """Open the target of a successful navigation.

        A target that is already downloaded gets the navigation context
        saved over its own and is opened without a network call. Anything
        else is downloaded with that context.
        """
        if not result.found:
            raise ValueError(f"Cannot open unresolved navigation ({result.status.value})")

        target = result.target
        if self.store.has_completed_render(target.entry_id):
            return self.open_local(target.entry_id, result.context)

        entry = target.entry
        if entry is None:
            if self.client is None:
                return OpenOutcome(target.entry_id, error="Entry is not downloaded")
            try:
                entry = self.client.get_entry(target.entry_id)
            except MinifluxError as e:
                return OpenOutcome(target.entry_id, error=f"Failed to fetch entry: {e}")
        return self.download_and_open(entry, result.context)

    def open_local(self, entry_id: int, context: Optional[BrowsingContext] = None) -> OpenOutcome:
        """Open a downloaded entry, saving context with it when given."""
        if not self.store.has_completed_render(entry_id):
            return OpenOutcome(entry_id, error=f"Entry {entry_id} is not downloaded")

        outcome = OpenOutcome(entry_id)
        if context is not None:
            try:
                self.store.update_context(entry_id, context)
            except MetadataError as e:
                logger.error("Failed to save browsing context: %s", e)
                outcome.warnings.append(f"Could not save browsing context: {e}")

        return self._show(outcome, self.store.html_path(entry_id))

    def download_and_open(self, entry: Entry, context: Optional[BrowsingContext] = None) -> OpenOutcome:
        """Download an entry with context saved in its metadata, then open it."""
        try:
            path = download_entry(self.store, entry, context)
        except EmptyEntryError as e:
            return OpenOutcome(entry.id, error=str(e))
        except (MetadataError, OSError) as e:
            logger.error("Failed to download entry %s: %s", entry.id, e)
            return OpenOutcome(entry.id, error=f"Failed to download entry: {e}")

        return self._show(OpenOutcome(entry.id, downloaded=True), path)

    def _show(self, outcome: OpenOutcome, path: Path) -> OpenOutcome:
        self.viewer(path)
        outcome.path = path
        warning = self._mark_read_on_open(outcome.entry_id)
        if warning:
            outcome.warnings.append(warning)
        return outcome

    def _mark_read_on_open(self, entry_id: int) -> Optional[str]:
        """Mark an opened entry read locally, then on the server.

        The local status is reverted when the server update fails.
        """
        if not self.settings.mark_as_read_on_open:
            return None
        try:
            metadata = self.store.read_metadata(entry_id)
        except MetadataError as e:
            return str(e)
        if metadata is None or metadata.status == "read":
            return None

        original_status = metadata.status
        try:
            self.store.update_status(entry_id, "read")
        except MetadataError as e:
            return str(e)

        if self.client is not None:
            try:
                self.client.update_entries(entry_id, "read")
            except MinifluxError as e:
                logger.warning("Failed to mark entry %s read on server: %s", entry_id, e)
                try:
                    self.store.update_status(entry_id, original_status)
                except MetadataError as revert_error:
                    logger.error("Failed to revert entry status: %s", revert_error)
                return f"Could not mark entry as read on server: {e}"

        self.on_status_change()
        return None


def set_entry_status(
    store: LocalEntryStore,
    client: MinifluxClient,
    entry_id: int,
    status: str,
    on_status_change: Optional[Callable[[], None]] = None,
) -> bool:
    """Change an entry's status on the server and in its local copy.

    Args:
        store: Local entry store
        client: Miniflux client
        entry_id: Entry to update
        status: "read" or "unread"
        on_status_change: Called after the server accepted the change

    Returns:
        True if a local copy was updated too

    Raises:
        ValueError: If status is not read/unread
        MinifluxError: If the server update fails
    """
    if status not in ENTRY_STATUSES:
        raise ValueError(f"Invalid status '{status}'")

    client.update_entries(entry_id, status)
    if on_status_change:
        on_status_change()

    if not store.has_completed_render(entry_id):
        return False
    try:
        store.update_status(entry_id, status)
    except MetadataError as e:
        logger.error("Failed to update local status: %s", e)
        return False
    return True


def delete_local_entry(store: LocalEntryStore, entry_id: int) -> None:
    """Delete a downloaded entry.

    Raises:
        EntryNotDownloadedError: If the entry is not in the store
    """
    if not store.delete_entry(entry_id):
        raise EntryNotDownloadedError(entry_id)


def mark_feed_read(
    client: MinifluxClient, feed_id: int, on_status_change: Optional[Callable[[], None]] = None
) -> None:
    client.mark_feed_read(feed_id)
    if on_status_change:
        on_status_change()


def mark_category_read(
    client: MinifluxClient, category_id: int, on_status_change: Optional[Callable[[], None]] = None
) -> None:
    client.mark_category_read(category_id)
    if on_status_change:
        on_status_change()

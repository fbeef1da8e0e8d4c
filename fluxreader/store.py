"""Filesystem store of downloaded entries.

Each downloaded entry lives in a directory named after its id::

    <root>/<entry_id>/entry.html      the rendered article
    <root>/<entry_id>/metadata.json   EntryMetadata

All writes go through a temporary file and ``os.replace`` so a reader
never sees a half-written file. The render is written last, so an entry
directory without ``entry.html`` is an incomplete download.
"""

import json
import logging
import os
import shutil
import tempfile
from datetime import datetime
from pathlib import Path
from typing import Optional, Union

from .direction import parse_timestamp
from .models import BrowsingContext, EntryMetadata, LocalEntryRef

logger = logging.getLogger(__name__)

HTML_FILENAME = "entry.html"
METADATA_FILENAME = "metadata.json"


class MetadataError(Exception):
    """Raised when entry metadata cannot be read or written."""

    def __init__(self, entry_id: int, message: str):
        self.entry_id = entry_id
        super().__init__(f"Entry {entry_id}: {message}")


class LocalEntryStore:
    """Directory-per-entry storage for downloaded articles."""

    def __init__(self, root: Path):
        self.root = Path(root)

    # Paths

    def entry_dir(self, entry_id: int) -> Path:
        return self.root / str(entry_id)

    def html_path(self, entry_id: int) -> Path:
        return self.entry_dir(entry_id) / HTML_FILENAME

    def metadata_path(self, entry_id: int) -> Path:
        return self.entry_dir(entry_id) / METADATA_FILENAME

    def id_of(self, path: Union[str, Path]) -> Optional[int]:
        """Return the entry id a path inside the store belongs to, or None."""
        try:
            relative = Path(path).resolve().relative_to(self.root.resolve())
        except ValueError:
            return None
        if not relative.parts or not relative.parts[0].isdigit():
            return None
        return int(relative.parts[0])

    # Queries

    def has_completed_render(self, entry_id: int) -> bool:
        return self.html_path(entry_id).is_file()

    def list_downloaded_ids(self) -> list[int]:
        """Ids of all entries with a completed render, ascending."""
        if not self.root.is_dir():
            return []
        ids = []
        for child in self.root.iterdir():
            if child.is_dir() and child.name.isdigit() and (child / HTML_FILENAME).is_file():
                ids.append(int(child.name))
        return sorted(ids)

    def read_metadata(self, entry_id: int) -> Optional[EntryMetadata]:
        """Read an entry's metadata.

        Returns:
            EntryMetadata, or None if the entry has no metadata file

        Raises:
            MetadataError: If the file exists but cannot be decoded
        """
        path = self.metadata_path(entry_id)
        try:
            with open(path, encoding="utf-8") as f:
                data = json.load(f)
        except FileNotFoundError:
            return None
        except (OSError, ValueError) as e:
            raise MetadataError(entry_id, f"unreadable metadata: {e}") from e

        try:
            return EntryMetadata.from_dict(data)
        except (KeyError, TypeError, ValueError) as e:
            raise MetadataError(entry_id, f"corrupt metadata: {e}") from e

    def local_entries(self, order: str = "published_at", direction: str = "desc") -> list[EntryMetadata]:
        """Metadata of every completed download, sorted like the remote lists."""
        entries = []
        for entry_id in self.list_downloaded_ids():
            try:
                metadata = self.read_metadata(entry_id)
            except MetadataError as e:
                logger.warning("Skipping local entry: %s", e)
                continue
            if metadata is not None:
                entries.append(metadata)
        return sort_entries(entries, order, direction)

    def ordered_refs(self, order: str = "published_at", direction: str = "desc") -> list[LocalEntryRef]:
        """Lightweight sorted references used by local browsing contexts."""
        return [metadata.to_ref() for metadata in self.local_entries(order, direction)]

    # Writes

    def write_metadata(self, entry_id: int, metadata: EntryMetadata) -> None:
        """Atomically replace an entry's metadata.

        Raises:
            MetadataError: If the file cannot be written
        """
        payload = json.dumps(metadata.to_dict(), indent=2, ensure_ascii=False)
        try:
            atomic_write(self.metadata_path(entry_id), payload)
        except OSError as e:
            raise MetadataError(entry_id, f"failed to write metadata: {e}") from e

    def update_context(self, entry_id: int, context: BrowsingContext) -> EntryMetadata:
        """Overwrite the browsing context saved with an entry.

        Raises:
            MetadataError: If the entry has no metadata or it cannot be written
        """
        return self._update(entry_id, browsing_context=context)

    def update_status(self, entry_id: int, status: str) -> EntryMetadata:
        return self._update(entry_id, status=status)

    def write_render(self, entry_id: int, html: str) -> Path:
        """Atomically write the rendered article, marking the download complete."""
        path = self.html_path(entry_id)
        atomic_write(path, html)
        return path

    def delete_entry(self, entry_id: int) -> bool:
        """Remove an entry directory.

        Returns:
            True if the entry existed and was removed
        """
        entry_dir = self.entry_dir(entry_id)
        if not entry_dir.is_dir():
            return False
        shutil.rmtree(entry_dir)
        return True

    def _update(self, entry_id: int, **changes) -> EntryMetadata:
        metadata = self.read_metadata(entry_id)
        if metadata is None:
            raise MetadataError(entry_id, "no metadata found")
        for key, value in changes.items():
            setattr(metadata, key, value)
        metadata.last_updated = datetime.now()
        self.write_metadata(entry_id, metadata)
        return metadata


def atomic_write(path: Path, content: str) -> None:
    """Write a text file through a temporary sibling and os.replace.

    The temporary file is removed when anything fails.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(content)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_name, path)
    except BaseException:
        if os.path.exists(tmp_name):
            os.unlink(tmp_name)
        raise


def _published_key(metadata: EntryMetadata) -> int:
    if not metadata.published_at:
        return 0
    try:
        return parse_timestamp(metadata.published_at)
    except ValueError:
        return 0


_SORT_KEYS = {
    "id": lambda metadata: metadata.entry_id,
    "title": lambda metadata: (metadata.title or "").lower(),
}


def sort_entries(
    entries: list[EntryMetadata], order: str = "published_at", direction: str = "desc"
) -> list[EntryMetadata]:
    """Sort local entries by id, title (case-insensitive) or publication date."""
    key = _SORT_KEYS.get(order, _published_key)
    return sorted(entries, key=key, reverse=(direction != "asc"))

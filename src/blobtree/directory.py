"""Synthetic directories built from delimited object listings.

A ``Directory`` answers "does this prefix hold anything, and what are its
immediate children" from ``prefix + "/"`` listings. Each instance owns its
cursor (buffered entries, offset, exhaustion flag); cursors are never
shared, so two handles on the same path page independently.

Paging: each backend listing starts at the cursor offset, the full key of
the last entry handed out. Records at or before the offset are skipped,
which makes resuming after a partial page safe and guarantees no entry is
returned twice.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from typing import TYPE_CHECKING, Any

from blobtree.errors import (
    IsADirectoryPathError,
    NotExistError,
    ObjectStorageError,
    to_path_error,
)
from blobtree.keys import SEPARATOR, new_query, normalize_prefix
from blobtree.models import Entry, base_name

if TYPE_CHECKING:
    from blobtree.fs import BucketFS

logger = logging.getLogger(__name__)


class Directory:
    """A directory handle: the listing cursor over one prefix."""

    def __init__(self, fsys: BucketFS, name: str) -> None:
        self._fsys = fsys
        self._name = name
        self._prefix = normalize_prefix(fsys.key(name))
        self._entry = Entry(name=base_name(name), is_dir=True)
        self._offset = ""
        self._buffer: list[Entry] = []
        self._exhausted = False

    @property
    def name(self) -> str:
        return self._name

    @property
    def prefix(self) -> str:
        """Return the key prefix listed by this directory."""
        return self._prefix

    def stat(self) -> Entry:
        return self._entry

    def read(self, size: int = -1) -> bytes:
        raise IsADirectoryPathError("read", self._name)

    def close(self) -> None:
        """Directories hold no stream; closing is a no-op."""

    def __enter__(self) -> Directory:
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def __iter__(self) -> Iterator[Entry]:
        page_size = max(self._fsys.dir_open_buffer_size, 1)
        while True:
            entries = self.read_dir(page_size)
            if not entries:
                return
            yield from entries

    def __repr__(self) -> str:
        return f"Directory({self._name!r}, prefix={self._prefix!r})"

    def open(self, n: int, op: str = "open") -> Directory:
        """Fetch up to n entries and keep them buffered.

        A prefix without any entry does not exist, since directories have
        no existence of their own in a flat namespace. This holds for the
        root too: an empty bucket has no root to open.

        Args:
            n: Number of entries to fetch.
            op: Operation name reported in errors.

        Raises:
            NotExistError: If the listing is empty.
        """
        entries = self._list(n, op)
        if not entries:
            raise NotExistError(op, self._name)
        self._buffer = entries
        return self

    def read_dir(self, n: int = -1) -> list[Entry]:
        """Return the next entries of the directory.

        Args:
            n: With n > 0, return at most n entries in listing order; an
                empty list means the directory is exhausted. With n <= 0,
                return all remaining entries sorted by name.
        """
        entries = self._list(n, "read_dir")
        if n > 0:
            return entries
        unique: dict[str, Entry] = {}
        for entry in entries:
            unique.setdefault(entry.name, entry)
        return sorted(unique.values(), key=lambda e: e.name)

    def _drain(self, n: int) -> list[Entry]:
        if n <= 0 or n >= len(self._buffer):
            entries, self._buffer = self._buffer, []
        else:
            entries, self._buffer = self._buffer[:n], self._buffer[n:]
        return entries

    def _list(self, n: int, op: str) -> list[Entry]:
        entries: list[Entry] = []
        if self._buffer:
            buffered = len(self._buffer)
            entries = self._drain(n)
            if self._exhausted or (n > 0 and n <= buffered):
                return entries
            if n > 0:
                n -= buffered
        if self._exhausted:
            return entries

        fsys = self._fsys
        query = new_query(SEPARATOR, self._prefix, self._offset)
        fetched = 0
        try:
            records = fsys.client().bucket(fsys.bucket).objects(fsys.context, query)
            for attrs in records:
                key = attrs.full_name
                if key == self._prefix:
                    # placeholder object for the directory itself
                    continue
                if self._offset and key <= self._offset:
                    continue
                entries.append(Entry.from_attrs(attrs))
                self._offset = key
                fetched += 1
                if n > 0 and fetched >= n:
                    break
            else:
                self._exhausted = True
        except (ObjectStorageError, OSError) as e:
            raise to_path_error(e, op, self._name) from e

        logger.debug(
            "Listed directory: prefix=%s fetched=%d exhausted=%s",
            self._prefix,
            fetched,
            self._exhausted,
        )
        return entries

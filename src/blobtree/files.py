"""File handles over a single object.

Both handles open their backend stream lazily: a ``File`` used only for
``stat()`` never opens a download, and a ``WriterFile`` that is never
written to never starts an upload.
"""

from __future__ import annotations

import logging
import posixpath
from typing import TYPE_CHECKING, Any, BinaryIO

from blobtree.errors import ObjectStorageError, to_path_error
from blobtree.models import Entry, ObjectAttrs

if TYPE_CHECKING:
    from blobtree.backends.base import ObjectHandle
    from blobtree.context import Context

logger = logging.getLogger(__name__)


class File:
    """A read-only handle on one object."""

    def __init__(self, ctx: Context, obj: ObjectHandle, attrs: ObjectAttrs, name: str) -> None:
        self._ctx = ctx
        self._obj = obj
        self._entry = Entry.for_object(attrs)
        self._name = name
        self._reader: BinaryIO | None = None

    @property
    def name(self) -> str:
        """Return the path the file was opened with."""
        return self._name

    def stat(self) -> Entry:
        return self._entry

    def readable(self) -> bool:
        return True

    def read(self, size: int = -1) -> bytes:
        """Read up to size bytes, or everything left when size is negative."""
        try:
            if self._reader is None:
                self._reader = self._obj.new_reader(self._ctx)
                logger.debug("Opened reader: key=%s", self._obj.name)
            return self._reader.read(size)
        except (ObjectStorageError, OSError) as e:
            raise to_path_error(e, "read", self._name) from e

    def close(self) -> None:
        """Release the read stream. Closing twice is a no-op."""
        if self._reader is None:
            return
        reader, self._reader = self._reader, None
        try:
            reader.close()
        except (ObjectStorageError, OSError) as e:
            raise to_path_error(e, "close", self._name) from e

    def __enter__(self) -> File:
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def __repr__(self) -> str:
        return f"File({self._name!r}, size={self._entry.size})"


class WriterFile:
    """A write-only handle on one object.

    ``read`` always returns no data so the handle can stand in where a
    readable file is expected. The object is committed by ``close``.
    """

    def __init__(self, ctx: Context, obj: ObjectHandle, name: str) -> None:
        self._ctx = ctx
        self._obj = obj
        self._name = name
        self._writer: BinaryIO | None = None
        self._written = 0
        self._closed = False

    @property
    def name(self) -> str:
        return self._name

    def stat(self) -> Entry:
        return Entry(name=posixpath.basename(self._name), size=self._written)

    def writable(self) -> bool:
        return True

    def write(self, data: bytes) -> int:
        if self._closed:
            raise ValueError("write to closed file")
        try:
            if self._writer is None:
                self._writer = self._obj.new_writer(self._ctx)
                logger.debug("Opened writer: key=%s", self._obj.name)
            n = self._writer.write(data)
        except (ObjectStorageError, OSError) as e:
            raise to_path_error(e, "write", self._name) from e
        n = len(data) if n is None else n
        self._written += n
        return n

    def read(self, size: int = -1) -> bytes:
        return b""

    def close(self) -> None:
        """Commit the written bytes. Only the first call has an effect."""
        self._closed = True
        if self._writer is None:
            return
        writer, self._writer = self._writer, None
        try:
            writer.close()
        except (ObjectStorageError, OSError) as e:
            raise to_path_error(e, "close", self._name) from e
        logger.debug("Committed object: key=%s size=%d", self._obj.name, self._written)

    def __enter__(self) -> WriterFile:
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def __repr__(self) -> str:
        return f"WriterFile({self._name!r})"

"""blobtree in-memory storage backend.

Keeps objects in per-bucket dictionaries and reproduces the listing
semantics of a real object store: a flat sorted key space, prefix and
start-offset filtering, and delimiter folding into common prefixes. Used by
tests and for ephemeral scratch filesystems.
"""

from __future__ import annotations

import io
import logging
import threading
from collections.abc import Iterator
from datetime import UTC, datetime
from typing import TYPE_CHECKING, BinaryIO

from blobtree.backends.base import BucketHandle, ObjectHandle, StorageClient
from blobtree.context import background
from blobtree.errors import ObjectNotFoundError
from blobtree.models import ListingQuery, ObjectAttrs

if TYPE_CHECKING:
    from blobtree.context import Context

logger = logging.getLogger(__name__)


class _StoredBlob:
    __slots__ = ("data", "updated")

    def __init__(self, data: bytes, updated: datetime) -> None:
        self.data = data
        self.updated = updated


class _MemoryWriter(io.BytesIO):
    """Buffers written bytes and commits them to the bucket on close."""

    def __init__(self, bucket: _MemoryBucket, name: str) -> None:
        super().__init__()
        self._bucket = bucket
        self._name = name

    def close(self) -> None:
        if not self.closed:
            self._bucket.store(self._name, self.getvalue())
        super().close()

    def __del__(self) -> None:
        # abandoned without close: drop the buffer, commit nothing
        if not self.closed:
            logger.debug(
                "Discarded unclosed writer: bucket=%s key=%s", self._bucket.name, self._name
            )
            super().close()


class _MemoryObject(ObjectHandle):
    def __init__(self, bucket: _MemoryBucket, name: str) -> None:
        self._bucket = bucket
        self._name = name

    @property
    def name(self) -> str:
        return self._name

    def attrs(self, ctx: Context) -> ObjectAttrs:
        ctx.check()
        blob = self._bucket.lookup(self._name)
        return ObjectAttrs(
            bucket=self._bucket.name,
            name=self._name,
            size=len(blob.data),
            updated=blob.updated,
        )

    def new_reader(self, ctx: Context) -> BinaryIO:
        ctx.check()
        return io.BytesIO(self._bucket.lookup(self._name).data)

    def new_writer(self, ctx: Context) -> BinaryIO:
        ctx.check()
        return _MemoryWriter(self._bucket, self._name)

    def delete(self, ctx: Context) -> None:
        ctx.check()
        self._bucket.remove(self._name)


class _MemoryBucket(BucketHandle):
    def __init__(self, name: str) -> None:
        self.name = name
        self._blobs: dict[str, _StoredBlob] = {}
        self._lock = threading.Lock()

    def lookup(self, key: str) -> _StoredBlob:
        with self._lock:
            blob = self._blobs.get(key)
        if blob is None:
            raise ObjectNotFoundError(bucket=self.name, key=key)
        return blob

    def store(self, key: str, data: bytes, updated: datetime | None = None) -> None:
        with self._lock:
            self._blobs[key] = _StoredBlob(data, updated or datetime.now(UTC))
        logger.debug("Stored object: bucket=%s key=%s size=%d", self.name, key, len(data))

    def remove(self, key: str) -> None:
        with self._lock:
            if self._blobs.pop(key, None) is None:
                raise ObjectNotFoundError(bucket=self.name, key=key)
        logger.debug("Deleted object: bucket=%s key=%s", self.name, key)

    def object(self, name: str) -> ObjectHandle:
        return _MemoryObject(self, name)

    def objects(self, ctx: Context, query: ListingQuery) -> Iterator[ObjectAttrs]:
        ctx.check()
        with self._lock:
            snapshot = sorted(
                (key, blob)
                for key, blob in self._blobs.items()
                if key.startswith(query.prefix) and key >= query.start_offset
            )
        return self._fold(snapshot, query)

    def _fold(
        self, snapshot: list[tuple[str, _StoredBlob]], query: ListingQuery
    ) -> Iterator[ObjectAttrs]:
        last_prefix = None
        for key, blob in snapshot:
            if query.delimiter:
                rest = key[len(query.prefix) :]
                cut = rest.find(query.delimiter)
                if cut != -1:
                    common = query.prefix + rest[: cut + len(query.delimiter)]
                    if common != last_prefix:
                        last_prefix = common
                        yield ObjectAttrs(bucket=self.name, prefix=common)
                    continue
            yield ObjectAttrs(
                bucket=self.name,
                name=key,
                size=len(blob.data),
                updated=blob.updated,
            )


class MemoryClient(StorageClient):
    """In-memory object storage.

    Buckets are created on first use. Closing the client keeps its contents,
    so a test can inspect a bucket after the filesystem using it was closed.
    """

    def __init__(self) -> None:
        self._buckets: dict[str, _MemoryBucket] = {}
        self._lock = threading.Lock()

    @property
    def backend_name(self) -> str:
        """Return the backend identifier."""
        return "memory"

    def bucket(self, name: str) -> _MemoryBucket:
        with self._lock:
            bucket = self._buckets.get(name)
            if bucket is None:
                bucket = self._buckets[name] = _MemoryBucket(name)
        return bucket

    def put(
        self,
        bucket: str,
        key: str,
        data: bytes,
        *,
        updated: datetime | None = None,
    ) -> None:
        """Store an object directly, bypassing the stream API."""
        self.bucket(bucket).store(key, data, updated)

    def keys(self, bucket: str) -> list[str]:
        """Return all keys of a bucket in sorted order."""
        snapshot = self.bucket(bucket).objects(background(), ListingQuery())
        return [attrs.name for attrs in snapshot]

    def close(self) -> None:
        logger.debug("MemoryClient closed")


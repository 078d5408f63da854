"""blobtree storage backend interface definition.

The emulation core in ``blobtree.fs`` talks to object storage only through
these four abstractions, so the same logic runs against Google Cloud
Storage, a local directory or an in-memory bucket.

Implementations:
- GCSClient: Google Cloud Storage (production)
- FilesystemClient: Local filesystem (dev/test)
- MemoryClient: In-memory buckets (tests)
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Iterator
from typing import TYPE_CHECKING, BinaryIO

if TYPE_CHECKING:
    from blobtree.context import Context
    from blobtree.models import ListingQuery, ObjectAttrs


class ObjectHandle(ABC):
    """A handle on one object key. Creating it performs no I/O."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Return the object key."""
        ...

    @abstractmethod
    def attrs(self, ctx: Context) -> ObjectAttrs:
        """Fetch the object's attributes.

        Raises:
            ObjectNotFoundError: If the object does not exist.
            OperationCancelledError: If ctx is done.
            StorageBackendError: If the backend cannot complete the request.
        """
        ...

    @abstractmethod
    def new_reader(self, ctx: Context) -> BinaryIO:
        """Open a stream reading the object's content.

        Raises:
            ObjectNotFoundError: If the object does not exist.
            OperationCancelledError: If ctx is done.
            StorageBackendError: If the backend cannot open the stream.
        """
        ...

    @abstractmethod
    def new_writer(self, ctx: Context) -> BinaryIO:
        """Open a stream replacing the object's content.

        The object becomes visible when the stream is closed.

        Raises:
            OperationCancelledError: If ctx is done.
            StorageBackendError: If the backend cannot open the stream.
        """
        ...

    @abstractmethod
    def delete(self, ctx: Context) -> None:
        """Delete the object.

        Raises:
            ObjectNotFoundError: If the object does not exist.
            OperationCancelledError: If ctx is done.
            StorageBackendError: If the backend cannot complete the deletion.
        """
        ...


class BucketHandle(ABC):
    """A handle on one bucket."""

    @abstractmethod
    def object(self, name: str) -> ObjectHandle:
        """Return a handle on the object named name."""
        ...

    @abstractmethod
    def objects(self, ctx: Context, query: ListingQuery) -> Iterator[ObjectAttrs]:
        """List the bucket.

        Records come in ascending order of ``ObjectAttrs.full_name``. Only
        keys starting with ``query.prefix`` and not before
        ``query.start_offset`` are listed. With ``query.delimiter`` set,
        keys containing the delimiter after the prefix are folded into one
        common-prefix record each.

        Raises:
            OperationCancelledError: If ctx is done.
            StorageBackendError: If a listing page cannot be fetched.
        """
        ...


class StorageClient(ABC):
    """A connection to an object storage service."""

    @property
    @abstractmethod
    def backend_name(self) -> str:
        """Return the backend identifier for observability.

        Returns:
            Backend name string (e.g., "gcs", "filesystem", "memory").
        """
        ...

    @abstractmethod
    def bucket(self, name: str) -> BucketHandle:
        """Return a handle on the bucket named name."""
        ...

    @abstractmethod
    def close(self) -> None:
        """Release the connection."""
        ...

"""blobtree Google Cloud Storage backend.

Maps the backend interface onto ``google-cloud-storage``:
- attrs: ``Bucket.get_blob`` (one metadata request)
- streams: ``Blob.open("rb")`` / ``Blob.open("wb")`` (chunked transfers)
- listing: ``Client.list_blobs`` with prefix, delimiter, start offset and a
  partial-response field selector; each page's items and prefixes are
  merged into key order
- delete: ``Blob.delete``

``google.api_core.exceptions.NotFound`` becomes ``ObjectNotFoundError``;
any other Google API or transport error becomes ``StorageBackendError``.
Credentials come from Google's default discovery (environment, metadata
server or gcloud configuration).
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from typing import TYPE_CHECKING, Any, BinaryIO, cast

from google.api_core import exceptions as gcs_exceptions
from google.auth import exceptions as auth_exceptions
from google.cloud import storage

from blobtree.backends.base import BucketHandle, ObjectHandle, StorageClient
from blobtree.errors import (
    ObjectNotFoundError,
    ObjectStorageError,
    StorageBackendError,
)
from blobtree.models import ObjectAttrs

if TYPE_CHECKING:
    from blobtree.context import Context
    from blobtree.models import ListingQuery

logger = logging.getLogger(__name__)

_ITEM_FIELDS = {
    "name": "name",
    "size": "size",
    "updated": "updated",
}

_TRANSLATED_ERRORS = (
    gcs_exceptions.GoogleAPIError,
    auth_exceptions.GoogleAuthError,
    OSError,
)


def _fields_selector(attr_selection: tuple[str, ...]) -> str:
    """Build the partial-response selector for a listing request."""
    item_fields = [field for attr, field in _ITEM_FIELDS.items() if attr in attr_selection]
    if not item_fields:
        item_fields = ["name"]
    fields = [f"items({','.join(item_fields)})", "nextPageToken"]
    if "prefix" in attr_selection:
        fields.append("prefixes")
    return ",".join(fields)


def _translate(e: BaseException, *, bucket: str, key: str, action: str) -> ObjectStorageError:
    if isinstance(e, gcs_exceptions.NotFound):
        return ObjectNotFoundError(bucket=bucket, key=key)
    return StorageBackendError(
        message=f"Failed to {action}: {e}",
        bucket=bucket,
        key=key,
        cause=e,
    )


def _request_kwargs(ctx: Context) -> dict[str, Any]:
    remaining = ctx.remaining()
    if remaining is None:
        return {}
    return {"timeout": remaining}


class _GCSStream:
    """Wraps a BlobReader or BlobWriter so errors speak the backend vocabulary."""

    def __init__(self, stream: Any, *, bucket: str, key: str) -> None:
        self._stream = stream
        self._bucket = bucket
        self._key = key

    @property
    def closed(self) -> bool:
        return bool(self._stream.closed)

    def read(self, size: int = -1) -> bytes:
        try:
            return self._stream.read(size)
        except _TRANSLATED_ERRORS as e:
            raise _translate(e, bucket=self._bucket, key=self._key, action="read object") from e

    def write(self, data: bytes) -> int:
        try:
            return self._stream.write(data)
        except _TRANSLATED_ERRORS as e:
            raise _translate(e, bucket=self._bucket, key=self._key, action="write object") from e

    def close(self) -> None:
        try:
            self._stream.close()
        except _TRANSLATED_ERRORS as e:
            raise _translate(e, bucket=self._bucket, key=self._key, action="close object") from e


class _GCSObject(ObjectHandle):
    def __init__(self, bucket: storage.Bucket, name: str) -> None:
        self._bucket = bucket
        self._name = name

    @property
    def name(self) -> str:
        return self._name

    def attrs(self, ctx: Context) -> ObjectAttrs:
        ctx.check()
        try:
            blob = self._bucket.get_blob(self._name, **_request_kwargs(ctx))
        except _TRANSLATED_ERRORS as e:
            raise _translate(
                e, bucket=self._bucket.name, key=self._name, action="fetch attributes"
            ) from e
        if blob is None:
            raise ObjectNotFoundError(bucket=self._bucket.name, key=self._name)
        return ObjectAttrs(
            bucket=self._bucket.name,
            name=blob.name,
            size=blob.size or 0,
            updated=blob.updated,
        )

    def _open(self, ctx: Context, mode: str, action: str, **kwargs: Any) -> BinaryIO:
        ctx.check()
        blob = self._bucket.blob(self._name)
        try:
            stream = blob.open(mode, **kwargs, **_request_kwargs(ctx))
        except _TRANSLATED_ERRORS as e:
            raise _translate(e, bucket=self._bucket.name, key=self._name, action=action) from e
        wrapped = _GCSStream(stream, bucket=self._bucket.name, key=self._name)
        return cast(BinaryIO, wrapped)

    def new_reader(self, ctx: Context) -> BinaryIO:
        return self._open(ctx, "rb", "open reader")

    def new_writer(self, ctx: Context) -> BinaryIO:
        return self._open(ctx, "wb", "open writer", ignore_flush=True)

    def delete(self, ctx: Context) -> None:
        ctx.check()
        try:
            self._bucket.blob(self._name).delete(**_request_kwargs(ctx))
        except _TRANSLATED_ERRORS as e:
            raise _translate(e, bucket=self._bucket.name, key=self._name, action="delete") from e
        logger.debug("Deleted object: bucket=%s key=%s", self._bucket.name, self._name)


class _GCSBucket(BucketHandle):
    def __init__(self, client: storage.Client, bucket: storage.Bucket) -> None:
        self._client = client
        self._bucket = bucket

    @property
    def name(self) -> str:
        return self._bucket.name

    def object(self, name: str) -> ObjectHandle:
        return _GCSObject(self._bucket, name)

    def objects(self, ctx: Context, query: ListingQuery) -> Iterator[ObjectAttrs]:
        ctx.check()
        try:
            iterator = self._client.list_blobs(
                self._bucket,
                prefix=query.prefix or None,
                delimiter=query.delimiter or None,
                start_offset=query.start_offset or None,
                fields=_fields_selector(query.attr_selection),
                **_request_kwargs(ctx),
            )
        except _TRANSLATED_ERRORS as e:
            raise _translate(e, bucket=self.name, key=query.prefix, action="list objects") from e
        return self._records(ctx, iterator, query)

    def _records(self, ctx: Context, iterator: Any, query: ListingQuery) -> Iterator[ObjectAttrs]:
        pages = iter(iterator.pages)
        while True:
            ctx.check()
            try:
                page = next(pages)
                records = [
                    ObjectAttrs(
                        bucket=self.name,
                        name=blob.name,
                        size=blob.size or 0,
                        updated=blob.updated,
                    )
                    for blob in page
                ]
            except StopIteration:
                return
            except _TRANSLATED_ERRORS as e:
                raise _translate(
                    e, bucket=self.name, key=query.prefix, action="list objects"
                ) from e
            records.extend(
                ObjectAttrs(bucket=self.name, prefix=prefix)
                for prefix in getattr(page, "prefixes", ())
            )
            records.sort(key=lambda r: r.full_name)
            logger.debug(
                "Listed page: bucket=%s prefix=%s count=%d", self.name, query.prefix, len(records)
            )
            yield from records


class GCSClient(StorageClient):
    """Google Cloud Storage client.

    Usage:
        client = GCSClient(project="my-project")
        fsys = BucketFS("my-bucket", client=client)
    """

    def __init__(
        self,
        client: storage.Client | None = None,
        *,
        project: str | None = None,
    ) -> None:
        """Initialize the GCS backend.

        Args:
            client: An existing ``google.cloud.storage.Client``. It is closed
                by ``close``. If None, a client is created with default
                credentials.
            project: Google Cloud project ID (uses default if not provided).
        """
        if client is None:
            client_kwargs: dict[str, Any] = {}
            if project:
                client_kwargs["project"] = project
            try:
                client = storage.Client(**client_kwargs)
            except _TRANSLATED_ERRORS as e:
                raise StorageBackendError(
                    message=f"Failed to create storage client: {e}", cause=e
                ) from e
        self._client = client
        logger.debug("GCSClient initialized for project=%s", getattr(client, "project", None))

    @property
    def backend_name(self) -> str:
        """Return the backend identifier."""
        return "gcs"

    def bucket(self, name: str) -> BucketHandle:
        return _GCSBucket(self._client, self._client.bucket(name))

    def close(self) -> None:
        self._client.close()
        logger.debug("GCSClient closed")

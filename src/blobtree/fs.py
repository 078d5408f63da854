"""blobtree filesystem facade.

``BucketFS`` presents one bucket (or a directory inside it) as a read-write
hierarchical filesystem. Files are objects; directories are synthetic and
exist exactly when at least one object lives under ``dir + "/"``.

Design:
- Every path is validated before any backend request.
- A direct object lookup is tried first; on not-found, a one-level listing
  decides whether the path is a directory.
- Errors are ``PathError`` subclasses carrying the operation and the path.

Usage:
    with BucketFS("my-bucket") as fsys:
        fsys.write_file("reports/2024/q1.csv", data)
        for entry in fsys.read_dir("reports"):
            print(entry.name, entry.is_dir)
"""

from __future__ import annotations

import logging
import threading
from typing import Any

from blobtree.backends.base import ObjectHandle, StorageClient
from blobtree.context import Context, background
from blobtree.directory import Directory
from blobtree.errors import (
    InvalidPathError,
    IsADirectoryPathError,
    NotADirectoryPathError,
    NotExistError,
    ObjectStorageError,
    is_object_not_found,
    to_path_error,
)
from blobtree.files import File, WriterFile
from blobtree.globbing import glob
from blobtree.keys import (
    SEPARATOR,
    clean,
    new_query,
    normalize_prefix,
    to_key,
    to_relative,
    valid_path,
)
from blobtree.models import Entry
from blobtree.observability.operations import traced_fs_operation

logger = logging.getLogger(__name__)

DEFAULT_DIR_OPEN_BUFFER_SIZE = 100


class _ClientRef:
    """The backend client shared by a root and every ``sub`` derived from it."""

    def __init__(self, client: StorageClient | None) -> None:
        self.client = client
        self.lock = threading.Lock()


class BucketFS:
    """A filesystem over the objects of one bucket.

    Attributes:
        dir_open_buffer_size: Number of entries fetched when ``open`` returns
            a directory, and the page size used when iterating one.
    """

    def __init__(
        self,
        bucket: str,
        *,
        client: StorageClient | None = None,
        context: Context | None = None,
        root: str = "",
        dir_open_buffer_size: int = DEFAULT_DIR_OPEN_BUFFER_SIZE,
    ) -> None:
        """Initialize the filesystem.

        Args:
            bucket: Bucket name.
            client: Storage backend client. It is closed by ``close``. If
                None, a ``GCSClient`` with default credentials is created on
                first use.
            context: Cancellation context passed to every backend request.
            root: Directory inside the bucket that becomes the filesystem
                root.
            dir_open_buffer_size: See class attributes.

        Raises:
            ValueError: If bucket is empty.
            InvalidPathError: If root is not a valid path.
        """
        if not bucket:
            raise ValueError("bucket name is required")
        if not valid_path(root):
            raise InvalidPathError("sub", root)
        self._bucket = bucket
        self._root = clean(root)
        self._context = context if context is not None else background()
        self._client_ref = _ClientRef(client)
        self.dir_open_buffer_size = dir_open_buffer_size

    def __repr__(self) -> str:
        return f"BucketFS(bucket={self._bucket!r}, root={self._root!r})"

    def __enter__(self) -> BucketFS:
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    @property
    def bucket(self) -> str:
        return self._bucket

    @property
    def root(self) -> str:
        """Return the root key prefix without trailing separator ("" for the bucket)."""
        return self._root

    @property
    def context(self) -> Context:
        return self._context

    @property
    def backend_name(self) -> str:
        """Return the backend identifier without creating a client."""
        client = self._client_ref.client
        return client.backend_name if client is not None else "gcs"

    def client(self) -> StorageClient:
        """Return the backend client, creating a ``GCSClient`` on first use."""
        ref = self._client_ref
        with ref.lock:
            if ref.client is None:
                from blobtree.backends.gcs import GCSClient

                ref.client = GCSClient()
                logger.debug("Created default GCS client for bucket=%s", self._bucket)
            return ref.client

    def key(self, name: str) -> str:
        """Return the object key of name."""
        return to_key(self._root, name)

    def rel(self, key: str) -> str:
        """Return the path of key relative to the filesystem root."""
        return to_relative(self._root, key)

    def close(self) -> None:
        """Close the backend client.

        The client is shared with every filesystem returned by ``sub``;
        closing any of them closes it for all. A later operation creates a
        new default client.
        """
        ref = self._client_ref
        with ref.lock:
            client, ref.client = ref.client, None
        if client is not None:
            client.close()
            logger.debug("Closed client for bucket=%s", self._bucket)

    def _key(self, op: str, name: str) -> str:
        if not valid_path(name):
            raise InvalidPathError(op, name)
        return self.key(name)

    def _object(self, key: str) -> ObjectHandle:
        return self.client().bucket(self._bucket).object(key)

    def _open_file(self, op: str, name: str, key: str) -> File | None:
        """Return a handle on the object at key, or None if there is none."""
        if not key:
            # the bucket root is never an object
            return None
        try:
            obj = self._object(key)
            attrs = obj.attrs(self._context)
        except ObjectStorageError as e:
            if is_object_not_found(e):
                return None
            raise to_path_error(e, op, name) from e
        return File(self._context, obj, attrs, name)

    def _object_exists(self, op: str, name: str, key: str) -> bool:
        try:
            self._object(key).attrs(self._context)
        except ObjectStorageError as e:
            if is_object_not_found(e):
                return False
            raise to_path_error(e, op, name) from e
        return True

    def _file_ancestor(self, op: str, name: str, key: str) -> str | None:
        """Return the topmost ancestor key of key that is an existing object."""
        parts = key.split(SEPARATOR)
        for i in range(1, len(parts)):
            ancestor = SEPARATOR.join(parts[:i])
            if self._object_exists(op, name, ancestor):
                return ancestor
        return None

    @traced_fs_operation("open")
    def open(self, name: str) -> File | Directory:
        """Open the named file or directory.

        A directory handle comes back with up to ``dir_open_buffer_size``
        entries already fetched.

        Raises:
            InvalidPathError: If name is not a valid path.
            NotExistError: If there is neither an object nor a directory.
        """
        key = self._key("open", name)
        f = self._open_file("open", name, key)
        if f is not None:
            return f
        return Directory(self, name).open(self.dir_open_buffer_size, op="open")

    @traced_fs_operation("stat")
    def stat(self, name: str) -> Entry:
        """Return the info of the named file or directory.

        Directories are confirmed with a one-entry listing.
        """
        key = self._key("stat", name)
        f = self._open_file("stat", name, key)
        if f is not None:
            return f.stat()
        return Directory(self, name).open(1, op="stat").stat()

    @traced_fs_operation("read_dir")
    def read_dir(self, name: str) -> list[Entry]:
        """Read the named directory.

        Returns:
            All entries sorted by name. The root of an empty bucket has none.

        Raises:
            NotADirectoryPathError: If name, or one of its ancestors, is a file.
            NotExistError: If nothing lives under the directory.
        """
        key = self._key("read_dir", name)
        entries = Directory(self, name).read_dir(-1)
        if entries or not key:
            return entries
        if self._object_exists("read_dir", name, key):
            raise NotADirectoryPathError("read_dir", name)
        ancestor = self._file_ancestor("read_dir", name, key)
        if ancestor is not None:
            raise NotADirectoryPathError("read_dir", self.rel(ancestor))
        raise NotExistError("read_dir", name)

    @traced_fs_operation("read_file")
    def read_file(self, name: str) -> bytes:
        """Read the whole content of the named file.

        Raises:
            IsADirectoryPathError: If name is a directory.
            NotExistError: If name does not exist.
        """
        key = self._key("read_file", name)
        f = self._open_file("read_file", name, key)
        if f is None:
            Directory(self, name).open(1, op="read_file")
            raise IsADirectoryPathError("read_file", name)
        with f:
            return f.read()

    def sub(self, name: str) -> BucketFS:
        """Return a filesystem rooted at the named directory.

        The new filesystem shares this one's client and context. The
        directory does not have to exist.
        """
        if not valid_path(name):
            raise InvalidPathError("sub", name)
        fsys = BucketFS(
            self._bucket,
            context=self._context,
            root=self.key(name),
            dir_open_buffer_size=self.dir_open_buffer_size,
        )
        fsys._client_ref = self._client_ref
        return fsys

    @traced_fs_operation("glob")
    def glob(self, pattern: str) -> list[str]:
        """Return the sorted paths matching a shell pattern.

        Raises:
            InvalidPatternError: If pattern is malformed.
        """
        return glob(self, pattern)

    def mkdir_all(self, name: str, mode: int = 0o777) -> None:
        """Do nothing; directories exist as soon as a file is written below them."""
        if not valid_path(name):
            raise InvalidPathError("mkdir_all", name)

    @traced_fs_operation("create_file")
    def create_file(self, name: str, mode: int = 0o666) -> WriterFile:
        """Create the named file. mode is ignored.

        The object is written when the returned handle is closed.

        Raises:
            IsADirectoryPathError: If name is an existing directory.
            NotADirectoryPathError: If an ancestor of name is a file; the
                error path is that ancestor.
        """
        key = self._key("create_file", name)
        if not key:
            raise IsADirectoryPathError("create_file", name)
        if not self._object_exists("create_file", name, key):
            try:
                Directory(self, name).open(1, op="create_file")
            except NotExistError:
                pass
            else:
                raise IsADirectoryPathError("create_file", name)
        ancestor = self._file_ancestor("create_file", name, key)
        if ancestor is not None:
            raise NotADirectoryPathError("create_file", self.rel(ancestor))
        return WriterFile(self._context, self._object(key), name)

    @traced_fs_operation("write_file")
    def write_file(self, name: str, data: bytes, mode: int = 0o666) -> int:
        """Write data to the named file, replacing it. mode is ignored.

        Returns:
            Number of bytes written.
        """
        with self.create_file(name, mode) as f:
            return f.write(data)

    @traced_fs_operation("remove_file")
    def remove_file(self, name: str) -> None:
        """Remove the named file.

        Raises:
            NotExistError: If there is no object at name.
        """
        key = self._key("remove_file", name)
        try:
            self._object(key).delete(self._context)
        except ObjectStorageError as e:
            raise to_path_error(e, "remove_file", name) from e

    @traced_fs_operation("remove_all")
    def remove_all(self, name: str) -> None:
        """Remove every object below the named directory.

        Objects are deleted one at a time; the first failure stops the walk
        and objects already deleted stay deleted. A directory holding
        nothing is not an error.
        """
        key = self._key("remove_all", name)
        query = new_query("", normalize_prefix(key), "")
        try:
            bucket = self.client().bucket(self._bucket)
            records = list(bucket.objects(self._context, query))
        except ObjectStorageError as e:
            raise to_path_error(e, "remove_all", name) from e
        for attrs in records:
            try:
                bucket.object(attrs.name).delete(self._context)
            except ObjectStorageError as e:
                raise to_path_error(e, "remove_all", self.rel(attrs.name)) from e
        logger.debug(
            "Removed tree: bucket=%s prefix=%s count=%d", self._bucket, query.prefix, len(records)
        )

"""blobtree filesystem storage backend.

Provides local filesystem storage for development and testing. Each bucket
is a directory below the base directory and each object key maps to the
file at the same relative path:

    {base_dir}/{bucket}/{key}

The backend presents object-store semantics on top of the directory tree:
- directories are never objects; only regular files are
- directories holding no files are not reported as common prefixes
- deleting an object prunes parent directories left empty
- writes are atomic (temp file + replace) and visible only after close

Environment Variables:
    BLOBTREE_FILESYSTEM_BASE_DIR: Base directory for storage
        (default: tempfile.gettempdir() / blobtree_objects)
"""

from __future__ import annotations

import io
import logging
import os
import re
import stat
import tempfile
import uuid
from collections.abc import Iterator
from datetime import UTC, datetime
from pathlib import Path
from typing import TYPE_CHECKING, BinaryIO

from blobtree.backends.base import BucketHandle, ObjectHandle, StorageClient
from blobtree.errors import (
    ObjectNotFoundError,
    ObjectStorageError,
    StorageBackendError,
    is_object_not_found,
    to_object_not_found_if_missing,
)
from blobtree.models import ObjectAttrs

if TYPE_CHECKING:
    from blobtree.context import Context
    from blobtree.models import ListingQuery

logger = logging.getLogger(__name__)

BLOBTREE_FILESYSTEM_BASE_DIR_ENV = "BLOBTREE_FILESYSTEM_BASE_DIR"

_TEMP_FILE_PATTERN = re.compile(r"^\..+\.[0-9a-f]{32}\.tmp$")


def _is_temp_file(name: str) -> bool:
    """Check if name is an in-progress write of ``_AtomicFileWriter``."""
    return bool(_TEMP_FILE_PATTERN.match(name))


def _mtime(st: os.stat_result) -> datetime:
    return datetime.fromtimestamp(st.st_mtime, UTC)


class _AtomicFileWriter(io.FileIO):
    """Writes to a temp file next to the target and moves it in place on close."""

    def __init__(self, target: Path) -> None:
        self._target = target
        self._tmp = target.parent / f".{target.name}.{uuid.uuid4().hex}.tmp"
        super().__init__(self._tmp, "wb")

    def close(self) -> None:
        if self.closed:
            return
        super().close()
        try:
            self._tmp.replace(self._target)
        except OSError as e:
            self._tmp.unlink(missing_ok=True)
            raise StorageBackendError(
                message=f"Failed to commit object: {e}",
                key=self._target.name,
                cause=e,
            ) from e

    def __del__(self) -> None:
        # abandoned without close: remove the temp file, keep the target as it was
        if not self.closed:
            super().close()
            self._tmp.unlink(missing_ok=True)
            logger.debug("Discarded unclosed writer: target=%s", self._target)


class _FilesystemObject(ObjectHandle):
    def __init__(self, bucket: _FilesystemBucket, name: str) -> None:
        self._bucket = bucket
        self._name = name

    @property
    def name(self) -> str:
        return self._name

    def _not_found(self) -> ObjectNotFoundError:
        return ObjectNotFoundError(bucket=self._bucket.name, key=self._name)

    def _translate(self, action: str, e: OSError) -> ObjectStorageError:
        """Map an OS error to the backend vocabulary.

        A missing file, or a path crossing or naming a directory, is the
        object-not-found signal. Everything else is a backend failure.
        """
        translated = to_object_not_found_if_missing(e)
        if is_object_not_found(translated) or isinstance(
            e, (IsADirectoryError, NotADirectoryError)
        ):
            return self._not_found()
        return StorageBackendError(
            message=f"Failed to {action}: {e}",
            bucket=self._bucket.name,
            key=self._name,
            cause=e,
        )

    def attrs(self, ctx: Context) -> ObjectAttrs:
        ctx.check()
        path = self._bucket.path(self._name)
        try:
            st = path.stat()
        except OSError as e:
            raise self._translate("stat object", e) from e
        if stat.S_ISDIR(st.st_mode):
            raise self._not_found()
        return ObjectAttrs(
            bucket=self._bucket.name,
            name=self._name,
            size=st.st_size,
            updated=_mtime(st),
        )

    def new_reader(self, ctx: Context) -> BinaryIO:
        ctx.check()
        path = self._bucket.path(self._name)
        try:
            return path.open("rb")
        except OSError as e:
            raise self._translate("open object", e) from e

    def new_writer(self, ctx: Context) -> BinaryIO:
        ctx.check()
        path = self._bucket.path(self._name)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            return _AtomicFileWriter(path)
        except OSError as e:
            raise StorageBackendError(
                message=f"Failed to create object: {e}",
                bucket=self._bucket.name,
                key=self._name,
                cause=e,
            ) from e

    def delete(self, ctx: Context) -> None:
        ctx.check()
        path = self._bucket.path(self._name)
        if path.is_dir():
            raise self._not_found()
        try:
            path.unlink()
        except OSError as e:
            raise self._translate("delete object", e) from e
        self._bucket.prune(path.parent)
        logger.debug("Deleted object: bucket=%s key=%s", self._bucket.name, self._name)


class _FilesystemBucket(BucketHandle):
    def __init__(self, client: FilesystemClient, name: str) -> None:
        self.name = name
        self._root = client.base_dir / name

    @property
    def root(self) -> Path:
        return self._root

    def path(self, key: str) -> Path:
        """Return the file path of key, refusing paths outside the bucket."""
        path = self._root.joinpath(*[part for part in key.split("/") if part])
        resolved = path.resolve()
        try:
            resolved.relative_to(self._root.resolve())
        except ValueError as e:
            raise StorageBackendError(
                message="Key resolves outside bucket directory",
                bucket=self.name,
                key=key,
            ) from e
        return path

    def prune(self, directory: Path) -> None:
        """Remove directory and its ancestors while they are empty."""
        while directory != self._root and self._root in directory.parents:
            try:
                directory.rmdir()
            except OSError:
                return
            directory = directory.parent

    def object(self, name: str) -> ObjectHandle:
        return _FilesystemObject(self, name)

    def objects(self, ctx: Context, query: ListingQuery) -> Iterator[ObjectAttrs]:
        ctx.check()
        dir_key, name_prefix = self._split_prefix(query.prefix)
        directory = self.path(dir_key)
        try:
            if query.delimiter:
                records = self._read_dir(directory, dir_key, name_prefix)
            else:
                records = self._walk(directory, query.prefix)
        except (FileNotFoundError, NotADirectoryError):
            records = []
        except OSError as e:
            raise StorageBackendError(
                message=f"Failed to list objects: {e}",
                bucket=self.name,
                key=query.prefix,
                cause=e,
            ) from e
        records = [r for r in records if r.full_name >= query.start_offset]
        records.sort(key=lambda r: r.full_name)
        logger.debug(
            "Listed objects: bucket=%s prefix=%s delimiter=%r count=%d",
            self.name,
            query.prefix,
            query.delimiter,
            len(records),
        )
        return iter(records)

    @staticmethod
    def _split_prefix(prefix: str) -> tuple[str, str]:
        """Split a listing prefix into the directory to read and a name prefix.

        A prefix ending in "/" names a directory; otherwise its last element
        restricts the entries of the parent directory.
        """
        if not prefix or prefix.endswith("/"):
            return prefix.rstrip("/"), ""
        dir_key, _, name_prefix = prefix.rpartition("/")
        return dir_key, name_prefix

    def _read_dir(self, directory: Path, dir_key: str, name_prefix: str) -> list[ObjectAttrs]:
        records: list[ObjectAttrs] = []
        with os.scandir(directory) as it:
            for child in it:
                if not child.name.startswith(name_prefix) or _is_temp_file(child.name):
                    continue
                key = f"{dir_key}/{child.name}" if dir_key else child.name
                if child.is_dir():
                    if self._has_objects(Path(child.path)):
                        records.append(ObjectAttrs(bucket=self.name, prefix=key + "/"))
                    continue
                st = child.stat()
                records.append(
                    ObjectAttrs(bucket=self.name, name=key, size=st.st_size, updated=_mtime(st))
                )
        return records

    def _walk(self, directory: Path, prefix: str) -> list[ObjectAttrs]:
        if not directory.is_dir():
            return []
        records: list[ObjectAttrs] = []
        for current, _dirs, files in os.walk(directory):
            for file_name in files:
                if _is_temp_file(file_name):
                    continue
                path = Path(current) / file_name
                key = path.relative_to(self._root).as_posix()
                if not key.startswith(prefix):
                    continue
                st = path.stat()
                records.append(
                    ObjectAttrs(bucket=self.name, name=key, size=st.st_size, updated=_mtime(st))
                )
        return records

    @staticmethod
    def _has_objects(directory: Path) -> bool:
        for _current, _dirs, files in os.walk(directory):
            if any(not _is_temp_file(f) for f in files):
                return True
        return False


class FilesystemClient(StorageClient):
    """Filesystem-based object storage implementation."""

    def __init__(self, base_dir: str | Path | None = None) -> None:
        """Initialize filesystem storage.

        Args:
            base_dir: Base directory for storage. If None, uses
                BLOBTREE_FILESYSTEM_BASE_DIR env var or OS temp directory.
        """
        if base_dir is None:
            base_dir = os.environ.get(BLOBTREE_FILESYSTEM_BASE_DIR_ENV)

        if base_dir is None:
            base_dir = Path(tempfile.gettempdir()) / "blobtree_objects"
        else:
            base_dir = Path(base_dir)

        self._base_dir = base_dir.resolve()
        logger.debug("FilesystemClient initialized with base_dir=%s", self._base_dir)

    @property
    def backend_name(self) -> str:
        """Return the backend identifier."""
        return "filesystem"

    @property
    def base_dir(self) -> Path:
        """Return the base directory path."""
        return self._base_dir

    def bucket(self, name: str) -> _FilesystemBucket:
        if not name or "/" in name or "\\" in name or name in (".", ".."):
            raise StorageBackendError(message=f"Invalid bucket name: {name!r}", bucket=name)
        return _FilesystemBucket(self, name)

    def close(self) -> None:
        logger.debug("FilesystemClient closed")

"""blobtree error types and not-found normalization.

Two vocabularies meet in this package:

- Backend errors (``ObjectStorageError`` and subclasses) are raised by
  storage backends. ``ObjectNotFoundError`` is the backend's "no such
  object" signal.
- Filesystem errors (``PathError`` and subclasses) are raised by
  ``BucketFS`` and its handles. They are ``OSError`` subclasses carrying
  the operation and the path, so callers can use ``except FileNotFoundError``
  regardless of the backend.

``to_path_error`` and ``to_object_not_found_if_missing`` translate between
the two. Neither inspects error messages.
"""

from __future__ import annotations

import errno
import os
from typing import overload


class ObjectStorageError(Exception):
    """Base exception for storage backend operations.

    Attributes:
        message: Human-readable error message.
        bucket: Bucket associated with the operation (if applicable).
        key: Object key associated with the operation (if applicable).
    """

    def __init__(
        self,
        message: str,
        *,
        bucket: str | None = None,
        key: str | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.bucket = bucket
        self.key = key

    def __str__(self) -> str:
        parts = [self.message]
        if self.bucket:
            parts.append(f"bucket={self.bucket}")
        if self.key:
            parts.append(f"key={self.key}")
        return " ".join(parts)


class ObjectNotFoundError(ObjectStorageError):
    """Raised by a backend when an object does not exist."""

    def __init__(
        self,
        message: str = "Object not found",
        *,
        bucket: str | None = None,
        key: str | None = None,
    ) -> None:
        super().__init__(message, bucket=bucket, key=key)


class StorageBackendError(ObjectStorageError):
    """Raised when the storage backend cannot complete an operation.

    This error indicates the backend itself failed (network error, permission
    denied, I/O error) rather than a logical error like object not found.
    """

    def __init__(
        self,
        message: str = "Storage backend error",
        *,
        bucket: str | None = None,
        key: str | None = None,
        cause: BaseException | None = None,
    ) -> None:
        super().__init__(message, bucket=bucket, key=key)
        self.cause = cause


class OperationCancelledError(ObjectStorageError):
    """Raised when the operation context was cancelled or its deadline passed."""

    def __init__(self, message: str = "context canceled") -> None:
        super().__init__(message)


class PathError(OSError):
    """A filesystem error scoped to an operation and a path.

    Attributes:
        op: Operation name (e.g. "open", "read_dir").
        path: Path as given by the caller, relative to the filesystem root.
        err: Underlying error kind; a backend error, an ``OSError`` or None.
    """

    default_errno = errno.EIO

    def __init__(self, op: str, path: str, err: BaseException | None = None) -> None:
        code = getattr(err, "errno", None) or self.default_errno
        super().__init__(code, os.strerror(code), path)
        self.op = op
        self.path = path
        self.err = err

    def __str__(self) -> str:
        reason = self.err if self.err is not None else self.strerror
        return f"{self.op} {self.path}: {reason}"


class NotExistError(PathError, FileNotFoundError):
    """The path names neither an object nor a prefix with objects under it."""

    default_errno = errno.ENOENT


class IsADirectoryPathError(PathError, IsADirectoryError):
    """The path is a synthetic directory where a file was required."""

    default_errno = errno.EISDIR


class NotADirectoryPathError(PathError, NotADirectoryError):
    """A path component that must be a directory is an existing object."""

    default_errno = errno.ENOTDIR


class InvalidPathError(PathError):
    """The path is not a valid unrooted slash-separated path."""

    default_errno = errno.EINVAL


class InvalidPatternError(PathError):
    """The glob pattern is syntactically invalid."""

    default_errno = errno.EINVAL


def is_object_not_found(err: BaseException | None) -> bool:
    """Return True if err is the backend's object-not-found signal."""
    return isinstance(err, ObjectNotFoundError)


def is_not_found(err: BaseException | None) -> bool:
    """Return True for any not-found signal, backend or filesystem."""
    if isinstance(err, (ObjectNotFoundError, FileNotFoundError)):
        return True
    if isinstance(err, PathError):
        return is_not_found(err.err)
    return False


@overload
def to_path_error(err: None, op: str, path: str) -> None: ...


@overload
def to_path_error(err: BaseException, op: str, path: str) -> PathError: ...


def to_path_error(err: BaseException | None, op: str, path: str) -> PathError | None:
    """Scope err to an operation and a path.

    The backend not-found signal becomes ``NotExistError``. An error that is
    already a ``PathError`` is returned as is. Other errors are wrapped in a
    plain ``PathError`` with their kind kept in ``err``.

    Args:
        err: Error to translate; None passes through.
        op: Operation name.
        path: Path the operation was applied to.

    Returns:
        The path-scoped error, or None if err is None.
    """
    if err is None:
        return None
    if isinstance(err, PathError):
        return err
    if is_not_found(err):
        return NotExistError(op, path, err)
    if isinstance(err, IsADirectoryError):
        return IsADirectoryPathError(op, path, err)
    if isinstance(err, NotADirectoryError):
        return NotADirectoryPathError(op, path, err)
    return PathError(op, path, err)


def to_object_not_found_if_missing(err: BaseException | None) -> BaseException | None:
    """Translate a filesystem not-exist error into ``ObjectNotFoundError``.

    Used by backends built on top of a real filesystem. Any other error,
    including an ``ObjectNotFoundError``, is returned unchanged.
    """
    if isinstance(err, FileNotFoundError):
        key = err.filename if isinstance(err.filename, str) else None
        translated = ObjectNotFoundError(key=key)
        translated.__cause__ = err
        return translated
    return err

"""Tests for error normalization between backend and filesystem vocabularies."""

from __future__ import annotations

import errno

import pytest

from blobtree.errors import (
    InvalidPathError,
    IsADirectoryPathError,
    NotADirectoryPathError,
    NotExistError,
    ObjectNotFoundError,
    OperationCancelledError,
    PathError,
    StorageBackendError,
    is_not_found,
    is_object_not_found,
    to_object_not_found_if_missing,
    to_path_error,
)


class TestToPathError:
    """Tests for scoping errors to an operation and a path."""

    def test_none_passes_through(self) -> None:
        assert to_path_error(None, "open", "a") is None

    def test_object_not_found_becomes_not_exist(self) -> None:
        """The backend not-found signal becomes the generic not-exist kind."""
        cause = ObjectNotFoundError(bucket="b", key="a")

        err = to_path_error(cause, "open", "a")

        assert isinstance(err, NotExistError)
        assert isinstance(err, FileNotFoundError)
        assert err.op == "open"
        assert err.path == "a"
        assert err.err is cause
        assert err.errno == errno.ENOENT

    def test_file_not_found_becomes_not_exist(self) -> None:
        err = to_path_error(FileNotFoundError(errno.ENOENT, "missing"), "read", "a")

        assert isinstance(err, NotExistError)

    def test_path_error_is_returned_unchanged(self) -> None:
        """Translating twice is the same as translating once."""
        first = to_path_error(ObjectNotFoundError(), "open", "a")

        assert to_path_error(first, "stat", "b") is first

    @pytest.mark.parametrize(
        ("cause", "expected_type"),
        [
            (IsADirectoryError(errno.EISDIR, "dir"), IsADirectoryPathError),
            (NotADirectoryError(errno.ENOTDIR, "file"), NotADirectoryPathError),
        ],
    )
    def test_directory_kinds_are_kept(
        self, cause: OSError, expected_type: type[PathError]
    ) -> None:
        assert isinstance(to_path_error(cause, "open", "a"), expected_type)

    def test_cancellation_is_not_reinterpreted(self) -> None:
        """Cancellation stays a cancellation, never a not-found."""
        cause = OperationCancelledError()

        err = to_path_error(cause, "read_dir", "dir0")

        assert type(err) is PathError
        assert err.err is cause
        assert not is_not_found(err)

    def test_backend_failure_is_wrapped(self) -> None:
        cause = StorageBackendError("boom", bucket="b", key="k")

        err = to_path_error(cause, "open", "k")

        assert type(err) is PathError
        assert err.err is cause
        assert err.errno == errno.EIO

    def test_str_carries_op_and_path(self) -> None:
        err = to_path_error(OperationCancelledError(), "open", "dir0/file01.txt")

        assert str(err) == "open dir0/file01.txt: context canceled"


class TestIsNotFound:
    """Tests for the not-found predicates."""

    @pytest.mark.parametrize(
        "err",
        [
            ObjectNotFoundError(),
            FileNotFoundError(errno.ENOENT, "missing"),
            NotExistError("open", "a"),
            PathError("open", "a", ObjectNotFoundError()),
        ],
    )
    def test_not_found(self, err: BaseException) -> None:
        assert is_not_found(err)

    @pytest.mark.parametrize(
        "err",
        [
            None,
            StorageBackendError(),
            OperationCancelledError(),
            PathError("open", "a", StorageBackendError()),
            InvalidPathError("open", "../a"),
            PermissionError(errno.EACCES, "denied"),
        ],
    )
    def test_not_not_found(self, err: BaseException | None) -> None:
        assert not is_not_found(err)

    def test_is_object_not_found_only_matches_backend_signal(self) -> None:
        assert is_object_not_found(ObjectNotFoundError())
        assert not is_object_not_found(NotExistError("open", "a"))


class TestToObjectNotFoundIfMissing:
    """Tests for the translation used by filesystem-based backends."""

    def test_file_not_found_becomes_object_not_found(self) -> None:
        cause = FileNotFoundError(errno.ENOENT, "No such file", "dir0/a.txt")

        err = to_object_not_found_if_missing(cause)

        assert isinstance(err, ObjectNotFoundError)
        assert err.key == "dir0/a.txt"
        assert err.__cause__ is cause

    @pytest.mark.parametrize(
        "err",
        [
            None,
            ObjectNotFoundError(),
            PermissionError(errno.EACCES, "denied"),
            StorageBackendError(),
        ],
    )
    def test_other_errors_unchanged(self, err: BaseException | None) -> None:
        assert to_object_not_found_if_missing(err) is err

    def test_round_trip_back_to_not_exist(self) -> None:
        translated = to_object_not_found_if_missing(FileNotFoundError(errno.ENOENT, "x"))

        assert isinstance(to_path_error(translated, "open", "x"), NotExistError)

"""Tests for glob matching over the flat key space."""

from __future__ import annotations

from typing import Any
from unittest.mock import MagicMock

import pytest

from blobtree.backends.base import StorageClient
from blobtree.errors import InvalidPatternError
from blobtree.fs import BucketFS
from blobtree.globbing import match_segment, validate_pattern


class TestGlob:
    """Tests for glob expansion against the scenario objects."""

    @pytest.mark.parametrize(
        ("pattern", "expected"),
        [
            ("dir*/file0?.txt", ["dir0/file01.txt", "dir0/file02.txt"]),
            ("*", ["dir0", "dir1"]),
            ("", ["dir0", "dir1"]),
            ("dir0/*", ["dir0/file01.txt", "dir0/file02.txt"]),
            ("*/x.txt", ["dir1/x.txt"]),
            ("*/*", ["dir0/file01.txt", "dir0/file02.txt", "dir1/x.txt"]),
            ("dir[01]", ["dir0", "dir1"]),
            ("dir[!0]/*", ["dir1/x.txt"]),
            ("dir0/file01.txt", ["dir0/file01.txt"]),
            ("dir?", ["dir0", "dir1"]),
            ("nomatch*", []),
            ("dir0/*/x", []),
            ("dir0/file01.txt/*", []),
        ],
    )
    def test_glob(self, fsys: Any, pattern: str, expected: list[str]) -> None:
        assert fsys.glob(pattern) == expected

    def test_glob_is_idempotent(self, fsys: Any) -> None:
        assert fsys.glob("dir*/*") == fsys.glob("dir*/*")

    def test_glob_is_case_sensitive(self, fsys: Any) -> None:
        assert fsys.glob("DIR*") == []

    def test_star_does_not_cross_separator(self, fsys: Any, write_objects: Any) -> None:
        write_objects({"dir0/deep/nested.txt": b"n"})

        assert fsys.glob("dir0/*.txt") == ["dir0/file01.txt", "dir0/file02.txt"]
        assert fsys.glob("dir0/*/*.txt") == ["dir0/deep/nested.txt"]

    def test_glob_matches_directories_in_last_segment(self, fsys: Any, write_objects: Any) -> None:
        write_objects({"dir0/deep/nested.txt": b"n"})

        assert fsys.glob("dir0/d*") == ["dir0/deep"]

    def test_glob_below_sub_root(self, fsys: Any) -> None:
        """Results are relative to the filesystem root."""
        sub = fsys.sub("dir0")

        assert sub.glob("*.txt") == ["file01.txt", "file02.txt"]
        assert sub.glob("*") == ["file01.txt", "file02.txt"]

    def test_glob_empty_bucket(self, empty_fsys: Any) -> None:
        assert empty_fsys.glob("*") == []
        assert empty_fsys.glob("a/*") == []


class TestPatternValidation:
    """Tests for pattern syntax checks."""

    @pytest.mark.parametrize("pattern", ["dir[", "dir0/[!", "/dir0", "dir0/", "a//b", "[]"])
    def test_invalid_pattern(self, pattern: str) -> None:
        with pytest.raises(InvalidPatternError) as exc_info:
            validate_pattern(pattern)

        assert exc_info.value.op == "glob"
        assert exc_info.value.path == pattern

    @pytest.mark.parametrize("pattern", ["", "*", "a/b", "[]]", "[!]]x", "[a-z]/*", "?"])
    def test_valid_pattern(self, pattern: str) -> None:
        validate_pattern(pattern)

    def test_invalid_pattern_makes_no_backend_call(self) -> None:
        """Syntax errors are raised before the backend is touched."""
        client = MagicMock(spec=StorageClient)
        fsys = BucketFS("b", client=client)

        with pytest.raises(InvalidPatternError):
            fsys.glob("dir[/*")

        client.bucket.assert_not_called()

    @pytest.mark.parametrize(
        ("name", "segment", "expected"),
        [
            ("file01.txt", "file0?.txt", True),
            ("file1.txt", "file0?.txt", False),
            ("a", "[abc]", True),
            ("d", "[!abc]", True),
            ("a", "[!abc]", False),
            ("a.txt", "a.txt", True),
            ("a.txt", "A.txt", False),
        ],
    )
    def test_match_segment(self, name: str, segment: str, expected: bool) -> None:
        assert match_segment(name, segment) is expected

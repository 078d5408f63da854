"""Shell-style glob matching over a flat key space.

There is no directory index to walk, so a pattern is expanded one segment
at a time: each segment is matched against a delimited listing of every
directory matched so far. The literal part of a segment (everything before
its first metacharacter) is pushed into the listing prefix, which keeps
listings of large directories small for patterns like ``logs/2024-*``.

Matching is per segment with ``fnmatch.fnmatchcase``, so ``*`` and ``?``
never cross a "/" and matching is case-sensitive.
"""

from __future__ import annotations

import fnmatch
import logging
from collections.abc import Iterator
from typing import TYPE_CHECKING

from blobtree.errors import InvalidPatternError, ObjectStorageError, to_path_error
from blobtree.keys import (
    GLOB_METACHARACTERS,
    SEPARATOR,
    glob_prefix,
    new_query,
    normalize_prefix,
    to_key,
)

if TYPE_CHECKING:
    from blobtree.fs import BucketFS

logger = logging.getLogger(__name__)


def _class_end(segment: str, start: int) -> int:
    """Return the index of the "]" closing the class opened at start, or -1."""
    i = start + 1
    if i < len(segment) and segment[i] == "!":
        i += 1
    # a "]" right after the opening bracket is a literal member
    if i < len(segment) and segment[i] == "]":
        i += 1
    return segment.find("]", i)


def validate_pattern(pattern: str) -> None:
    """Check pattern syntax.

    Raises:
        InvalidPatternError: If a segment is empty (leading, trailing or
            doubled separator) or a character class is never closed.
    """
    if pattern in ("", "*"):
        return
    for segment in pattern.split(SEPARATOR):
        if not segment:
            raise InvalidPatternError("glob", pattern)
        i = segment.find("[")
        while i != -1:
            end = _class_end(segment, i)
            if end == -1:
                raise InvalidPatternError("glob", pattern)
            i = segment.find("[", end + 1)


def has_meta(segment: str) -> bool:
    return any(ch in segment for ch in GLOB_METACHARACTERS)


def match_segment(name: str, segment: str) -> bool:
    """Return True if a single path element matches a single pattern segment."""
    if not has_meta(segment):
        return name == segment
    return fnmatch.fnmatchcase(name, segment)


def _children(fsys: BucketFS, dir_name: str, segment: str) -> Iterator[tuple[str, bool]]:
    """Yield (path, is_dir) for the children of dir_name matching segment."""
    dir_prefix = normalize_prefix(to_key(fsys.root, dir_name))
    query = new_query(SEPARATOR, glob_prefix(fsys.root, dir_name, segment), "")
    records = fsys.client().bucket(fsys.bucket).objects(fsys.context, query)
    for attrs in records:
        key = attrs.full_name
        if not key.startswith(dir_prefix):
            continue
        child = key[len(dir_prefix) :]
        if attrs.is_prefix:
            child = child[: -len(SEPARATOR)]
        if child in ("", ".", "..") or SEPARATOR in child:
            # folder markers and keys that are not valid paths
            continue
        if match_segment(child, segment):
            yield (f"{dir_name}/{child}" if dir_name else child, attrs.is_prefix)


def glob(fsys: BucketFS, pattern: str) -> list[str]:
    """Return the sorted paths below the root of fsys that match pattern.

    Every segment but the last only matches directories; the last matches
    files and directories alike. ``""`` and ``"*"`` list the root.

    Raises:
        InvalidPatternError: If the pattern is malformed. Raised before any
            backend request.
        PathError: If a backend listing fails.
    """
    validate_pattern(pattern)
    segments = ["*"] if pattern in ("", "*") else pattern.split(SEPARATOR)

    dirs = [""]
    matches: set[str] = set()
    try:
        for i, segment in enumerate(segments):
            last = i == len(segments) - 1
            next_dirs: set[str] = set()
            for dir_name in dirs:
                for path, is_dir in _children(fsys, dir_name, segment):
                    if last:
                        matches.add(path)
                    elif is_dir:
                        next_dirs.add(path)
            if not last:
                dirs = sorted(next_dirs)
                if not dirs:
                    break
    except (ObjectStorageError, OSError) as e:
        raise to_path_error(e, "glob", pattern) from e

    logger.debug("Glob expanded: bucket=%s matches=%d", fsys.bucket, len(matches))
    return sorted(matches)

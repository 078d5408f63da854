"""Mapping between filesystem paths and object keys.

Paths handed to ``BucketFS`` are unrooted, slash-separated and relative to
the filesystem root. Keys are the object names inside the bucket. The root
prefix of a filesystem is itself a key without trailing slash ("" for the
bucket root).

Directory prefixes follow one rule: the empty prefix means "no restriction",
every other prefix ends with exactly one "/". ``normalize_prefix`` enforces
it so that the bucket root and named subdirectories share one code path.
"""

from __future__ import annotations

import posixpath

from blobtree.errors import InvalidPathError
from blobtree.models import ATTR_SELECTION, ListingQuery

SEPARATOR = "/"

GLOB_METACHARACTERS = "*?["


def valid_path(name: str) -> bool:
    """Check that name is a valid unrooted slash-separated path.

    "." and "" denote the root. Otherwise no element may be empty, "." or
    "..", which rules out leading, trailing and doubled separators.
    """
    if name in ("", "."):
        return True
    if "\x00" in name:
        return False
    return all(elem not in ("", ".", "..") for elem in name.split(SEPARATOR))


def clean(p: str) -> str:
    """Lexically clean p; the root comes back as ""."""
    if not p:
        return ""
    cleaned = posixpath.normpath(p)
    if cleaned in (".", SEPARATOR, "//"):
        return ""
    return cleaned


def to_key(root: str, name: str) -> str:
    """Return the object key for name below the root prefix.

    Raises:
        InvalidPathError: If name is not a valid path.
    """
    if not valid_path(name):
        raise InvalidPathError("key", name)
    if name in ("", "."):
        return clean(root)
    return clean(posixpath.join(root, name)) if root else clean(name)


def normalize_prefix(prefix: str) -> str:
    """Return prefix as a directory prefix: "" or a key ending in one "/"."""
    prefix = clean(prefix)
    if prefix and not prefix.endswith(SEPARATOR):
        prefix = prefix + SEPARATOR
    return prefix


def to_relative(root: str, key: str) -> str:
    """Strip the root's directory prefix from key."""
    prefix = normalize_prefix(root)
    if prefix and key.startswith(prefix):
        return key[len(prefix) :]
    return key


def literal_prefix(segment: str) -> str:
    """Return the part of a glob segment before its first metacharacter."""
    for i, ch in enumerate(segment):
        if ch in GLOB_METACHARACTERS:
            return segment[:i]
    return segment


def glob_prefix(root: str, dir_name: str, segment: str) -> str:
    """Return the listing prefix used to expand segment inside dir_name."""
    return normalize_prefix(to_key(root, dir_name)) + literal_prefix(segment)


def new_query(delimiter: str, prefix: str, start_offset: str) -> ListingQuery:
    """Build a listing query restricted to the attributes the lister reads."""
    return ListingQuery(
        prefix=prefix,
        delimiter=delimiter,
        start_offset=start_offset,
        attr_selection=ATTR_SELECTION,
    )

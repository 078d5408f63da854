"""blobtree data models.

Provides typed dataclasses for backend attribute records, listing queries
and directory entries.
"""

from __future__ import annotations

import stat
from dataclasses import dataclass
from datetime import datetime

ATTR_SELECTION: tuple[str, ...] = ("prefix", "name", "size", "updated")

DIR_MODE = stat.S_IFDIR | 0o777
FILE_MODE = stat.S_IFREG | 0o777


def base_name(key: str) -> str:
    """Return the last element of key, ignoring a trailing separator."""
    key = key.rstrip("/")
    if not key:
        return "."
    return key.rsplit("/", 1)[-1]


@dataclass(frozen=True)
class ObjectAttrs:
    """Attributes of one listing or lookup record returned by a backend.

    Exactly one of ``name`` and ``prefix`` is set: ``name`` for an object,
    ``prefix`` for a common prefix folded by a delimited listing.

    Attributes:
        bucket: Bucket the record belongs to.
        name: Full object key.
        prefix: Common prefix including its trailing separator.
        size: Object size in bytes.
        updated: Last modification time of the object.
    """

    bucket: str = ""
    name: str = ""
    prefix: str = ""
    size: int = 0
    updated: datetime | None = None

    @property
    def is_prefix(self) -> bool:
        return not self.name

    @property
    def full_name(self) -> str:
        """Return the key the record sorts by in a listing."""
        return self.name or self.prefix


@dataclass(frozen=True)
class ListingQuery:
    """Parameters of a paginated listing request.

    Attributes:
        prefix: Only keys starting with prefix are listed.
        delimiter: "/" folds keys below the next separator into common
            prefixes; "" lists every object recursively.
        start_offset: Only keys >= start_offset are listed.
        attr_selection: Attributes the caller reads from each record.
    """

    prefix: str = ""
    delimiter: str = ""
    start_offset: str = ""
    attr_selection: tuple[str, ...] = ATTR_SELECTION


@dataclass(frozen=True)
class Entry:
    """A directory entry that also serves as file info.

    Directories are synthetic: they have no size and no modification time.
    """

    name: str
    is_dir: bool = False
    size: int = 0
    mod_time: datetime | None = None

    @classmethod
    def from_attrs(cls, attrs: ObjectAttrs) -> Entry:
        if attrs.is_prefix:
            return cls.for_prefix(attrs.prefix)
        return cls.for_object(attrs)

    @classmethod
    def for_prefix(cls, prefix: str) -> Entry:
        return cls(name=base_name(prefix), is_dir=True)

    @classmethod
    def for_object(cls, attrs: ObjectAttrs) -> Entry:
        return cls(name=base_name(attrs.name), size=attrs.size, mod_time=attrs.updated)

    @property
    def mode(self) -> int:
        return DIR_MODE if self.is_dir else FILE_MODE

    @property
    def type(self) -> int:
        """Return the file-type bits of the mode."""
        return stat.S_IFMT(self.mode)

    def info(self) -> Entry:
        return self

"""blobtree: a hierarchical filesystem over a flat object-store bucket.

Files are objects; directories are synthetic and exist whenever an object
lives below ``dir + "/"``. The same filesystem core runs on Google Cloud
Storage, the local filesystem or memory.

Environment Variables:
    See ``blobtree.config`` and ``blobtree.observability.tracing``.
"""

from blobtree.config import ConfigError, FSConfig, open_fs
from blobtree.context import Context, background
from blobtree.directory import Directory
from blobtree.errors import (
    InvalidPathError,
    InvalidPatternError,
    IsADirectoryPathError,
    NotADirectoryPathError,
    NotExistError,
    ObjectNotFoundError,
    ObjectStorageError,
    OperationCancelledError,
    PathError,
    StorageBackendError,
    is_not_found,
)
from blobtree.files import File, WriterFile
from blobtree.fs import BucketFS
from blobtree.models import Entry

__all__ = [
    "BucketFS",
    "ConfigError",
    "Context",
    "Directory",
    "Entry",
    "File",
    "FSConfig",
    "InvalidPathError",
    "InvalidPatternError",
    "IsADirectoryPathError",
    "NotADirectoryPathError",
    "NotExistError",
    "ObjectNotFoundError",
    "ObjectStorageError",
    "OperationCancelledError",
    "PathError",
    "StorageBackendError",
    "WriterFile",
    "background",
    "is_not_found",
    "open_fs",
]

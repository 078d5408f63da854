"""blobtree storage backends.

Backends:
- GCSClient: Google Cloud Storage (production), in ``blobtree.backends.gcs``
- FilesystemClient: Local filesystem (dev/test)
- MemoryClient: In-process dictionaries (tests, scratch filesystems)
"""

from blobtree.backends.base import BucketHandle, ObjectHandle, StorageClient
from blobtree.backends.filesystem import FilesystemClient
from blobtree.backends.memory import MemoryClient

__all__ = [
    "BucketHandle",
    "FilesystemClient",
    "MemoryClient",
    "ObjectHandle",
    "StorageClient",
]

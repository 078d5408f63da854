"""Environment configuration for blobtree filesystems.

Environment variables:
    BLOBTREE_BACKEND: "gcs", "filesystem" or "memory" (default: "gcs")
    BLOBTREE_BUCKET: Bucket name (required by ``open_fs``)
    BLOBTREE_ROOT: Directory inside the bucket used as root (default: bucket root)
    BLOBTREE_DIR_OPEN_BUFFER_SIZE: Entries fetched when opening a directory (default: 100)
    BLOBTREE_TIMEOUT_SECONDS: Deadline for the filesystem context (default: none)
    BLOBTREE_FILESYSTEM_BASE_DIR: Base directory for the filesystem backend
    BLOBTREE_GCS_PROJECT: Google Cloud project for the GCS backend (default: inferred)
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Final

from blobtree.backends.base import StorageClient
from blobtree.context import Context, background
from blobtree.fs import DEFAULT_DIR_OPEN_BUFFER_SIZE, BucketFS
from blobtree.keys import valid_path

logger = logging.getLogger(__name__)

ENV_BACKEND: Final[str] = "BLOBTREE_BACKEND"
ENV_BUCKET: Final[str] = "BLOBTREE_BUCKET"
ENV_ROOT: Final[str] = "BLOBTREE_ROOT"
ENV_DIR_OPEN_BUFFER_SIZE: Final[str] = "BLOBTREE_DIR_OPEN_BUFFER_SIZE"
ENV_TIMEOUT_SECONDS: Final[str] = "BLOBTREE_TIMEOUT_SECONDS"
ENV_FILESYSTEM_BASE_DIR: Final[str] = "BLOBTREE_FILESYSTEM_BASE_DIR"
ENV_GCS_PROJECT: Final[str] = "BLOBTREE_GCS_PROJECT"

BACKENDS: Final[tuple[str, ...]] = ("gcs", "filesystem", "memory")
DEFAULT_BACKEND: Final[str] = "gcs"


class ConfigError(Exception):
    """Raised when blobtree configuration is invalid."""


@dataclass(frozen=True)
class FSConfig:
    """Filesystem configuration (immutable).

    Attributes:
        bucket: Bucket name.
        backend: Backend identifier, one of ``BACKENDS``.
        root: Directory inside the bucket used as filesystem root.
        dir_open_buffer_size: Entries fetched when opening a directory.
        timeout_seconds: Deadline of the filesystem context, or None.
        filesystem_base_dir: Base directory for the filesystem backend.
        gcs_project: Google Cloud project for the GCS backend.
    """

    bucket: str = ""
    backend: str = DEFAULT_BACKEND
    root: str = ""
    dir_open_buffer_size: int = DEFAULT_DIR_OPEN_BUFFER_SIZE
    timeout_seconds: float | None = None
    filesystem_base_dir: str | None = None
    gcs_project: str | None = None

    def __post_init__(self) -> None:
        """Validate configuration values."""
        if self.backend not in BACKENDS:
            raise ConfigError(
                f"{ENV_BACKEND} must be one of {', '.join(BACKENDS)}, got '{self.backend}'"
            )
        if not valid_path(self.root):
            raise ConfigError(
                f"{ENV_ROOT} must be an unrooted slash-separated path, got '{self.root}'"
            )
        if self.dir_open_buffer_size <= 0:
            raise ConfigError(
                f"{ENV_DIR_OPEN_BUFFER_SIZE} must be a positive integer, "
                f"got {self.dir_open_buffer_size}"
            )
        if self.timeout_seconds is not None and self.timeout_seconds <= 0:
            raise ConfigError(
                f"{ENV_TIMEOUT_SECONDS} must be a positive number, got {self.timeout_seconds}"
            )

    @classmethod
    def from_env(cls) -> FSConfig:
        """Load configuration from environment variables.

        Raises:
            ConfigError: If any value is invalid.
        """
        return cls(
            bucket=_get_env_str(ENV_BUCKET),
            backend=_get_env_str(ENV_BACKEND, DEFAULT_BACKEND).lower(),
            root=_get_env_str(ENV_ROOT),
            dir_open_buffer_size=_parse_positive_int(
                ENV_DIR_OPEN_BUFFER_SIZE, DEFAULT_DIR_OPEN_BUFFER_SIZE
            ),
            timeout_seconds=_parse_positive_float(ENV_TIMEOUT_SECONDS),
            filesystem_base_dir=_get_env_str(ENV_FILESYSTEM_BASE_DIR) or None,
            gcs_project=_get_env_str(ENV_GCS_PROJECT) or None,
        )


def _get_env_str(key: str, default: str = "") -> str:
    """Get string from environment variable."""
    return os.environ.get(key, default).strip()


def _parse_positive_int(env_var: str, default: int) -> int:
    """Parse a positive integer from environment variable.

    Raises:
        ConfigError: If value is set but not a positive integer.
    """
    raw = _get_env_str(env_var)
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError as e:
        raise ConfigError(f"{env_var} must be a positive integer, got '{raw}'") from e
    if value <= 0:
        raise ConfigError(f"{env_var} must be a positive integer, got {value}")
    return value


def _parse_positive_float(env_var: str) -> float | None:
    raw = _get_env_str(env_var)
    if not raw:
        return None
    try:
        value = float(raw)
    except ValueError as e:
        raise ConfigError(f"{env_var} must be a positive number, got '{raw}'") from e
    if value <= 0:
        raise ConfigError(f"{env_var} must be a positive number, got {value}")
    return value


def create_client(config: FSConfig) -> StorageClient:
    """Create the storage backend client selected by config."""
    if config.backend == "memory":
        from blobtree.backends.memory import MemoryClient

        return MemoryClient()
    if config.backend == "filesystem":
        from blobtree.backends.filesystem import FilesystemClient

        return FilesystemClient(config.filesystem_base_dir)

    from blobtree.backends.gcs import GCSClient

    return GCSClient(project=config.gcs_project)


def create_context(config: FSConfig) -> Context:
    if config.timeout_seconds is None:
        return background()
    return Context(timeout=config.timeout_seconds)


def open_fs(config: FSConfig | None = None) -> BucketFS:
    """Open a filesystem from config, or from the environment when None.

    Raises:
        ConfigError: If configuration is invalid or no bucket is set.
    """
    if config is None:
        config = FSConfig.from_env()
    if not config.bucket:
        raise ConfigError(f"{ENV_BUCKET} must be set")

    fsys = BucketFS(
        config.bucket,
        client=create_client(config),
        context=create_context(config),
        root=config.root,
        dir_open_buffer_size=config.dir_open_buffer_size,
    )
    logger.info(
        "Opened filesystem: backend=%s bucket=%s root=%s",
        config.backend,
        config.bucket,
        config.root or ".",
    )
    return fsys

"""Pytest configuration and fixtures for blobtree tests.

Facade tests run against every local backend through the parametrized
``client`` fixture, so the emulation core is checked against both the
in-memory key space and a real directory tree.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import pytest

from blobtree.backends.base import StorageClient
from blobtree.backends.filesystem import FilesystemClient
from blobtree.backends.memory import MemoryClient
from blobtree.context import background
from blobtree.fs import BucketFS

TEST_BUCKET = "test-bucket"

SCENARIO_OBJECTS = {
    "dir0/file01.txt": b"file01",
    "dir0/file02.txt": b"file02",
    "dir1/x.txt": b"x",
}


def seed(client: StorageClient, objects: dict[str, bytes], bucket: str = TEST_BUCKET) -> None:
    """Write objects through the backend stream API."""
    handle = client.bucket(bucket)
    for key, data in objects.items():
        writer = handle.object(key).new_writer(background())
        writer.write(data)
        writer.close()


@pytest.fixture(autouse=True)
def disable_tracing(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep tracing off unless a test enables it."""
    monkeypatch.delenv("BLOBTREE_OTEL_ENABLED", raising=False)
    monkeypatch.delenv("BLOBTREE_OTEL_TEST_CAPTURE", raising=False)


@pytest.fixture
def memory_client() -> MemoryClient:
    """Return an empty in-memory client."""
    return MemoryClient()


@pytest.fixture
def filesystem_client(tmp_path: Path) -> FilesystemClient:
    """Return a filesystem client rooted in a temp directory."""
    return FilesystemClient(base_dir=tmp_path / "objects")


@pytest.fixture(params=["memory", "filesystem"])
def client(request: pytest.FixtureRequest, tmp_path: Path) -> StorageClient:
    """Return an empty client for each local backend."""
    if request.param == "memory":
        return MemoryClient()
    return FilesystemClient(base_dir=tmp_path / "objects")


@pytest.fixture
def fsys(client: StorageClient) -> Any:
    """Return a filesystem over the scenario objects."""
    seed(client, SCENARIO_OBJECTS)
    with BucketFS(TEST_BUCKET, client=client) as fs:
        yield fs


@pytest.fixture
def empty_fsys(client: StorageClient) -> Any:
    """Return a filesystem over an empty bucket."""
    with BucketFS(TEST_BUCKET, client=client) as fs:
        yield fs


@pytest.fixture
def memory_fsys(memory_client: MemoryClient) -> BucketFS:
    """Return a memory-backed filesystem over the scenario objects."""
    for key, data in SCENARIO_OBJECTS.items():
        memory_client.put(TEST_BUCKET, key, data)
    return BucketFS(TEST_BUCKET, client=memory_client)


@pytest.fixture
def write_objects(client: StorageClient) -> Any:
    """Return a function writing extra objects into the test bucket."""

    def _write(objects: dict[str, bytes]) -> None:
        seed(client, objects)

    return _write

"""Tests for the in-memory storage backend."""

from __future__ import annotations

import gc
from datetime import UTC, datetime

import pytest

from blobtree.backends.memory import MemoryClient
from blobtree.context import Context, background
from blobtree.errors import ObjectNotFoundError, OperationCancelledError
from blobtree.models import ListingQuery


@pytest.fixture
def client() -> MemoryClient:
    """Return a memory client holding a small nested tree."""
    client = MemoryClient()
    for key in ["a.txt", "a/b.txt", "a/c/d.txt", "a0", "b/e.txt"]:
        client.put("bkt", key, key.encode())
    return client


def _full_names(client: MemoryClient, query: ListingQuery) -> list[str]:
    return [r.full_name for r in client.bucket("bkt").objects(background(), query)]


class TestListing:
    """Tests for listing semantics of a flat key space."""

    def test_recursive_listing(self, client: MemoryClient) -> None:
        assert _full_names(client, ListingQuery()) == [
            "a.txt",
            "a/b.txt",
            "a/c/d.txt",
            "a0",
            "b/e.txt",
        ]

    def test_delimiter_folds_common_prefixes(self, client: MemoryClient) -> None:
        """Keys below the next separator fold into one prefix record."""
        records = list(client.bucket("bkt").objects(background(), ListingQuery(delimiter="/")))

        assert [r.full_name for r in records] == ["a.txt", "a/", "a0", "b/"]
        assert [r.is_prefix for r in records] == [False, True, False, True]

    def test_prefix_restricts_listing(self, client: MemoryClient) -> None:
        query = ListingQuery(prefix="a/", delimiter="/")

        assert _full_names(client, query) == ["a/b.txt", "a/c/"]

    def test_start_offset_is_inclusive(self, client: MemoryClient) -> None:
        query = ListingQuery(delimiter="/", start_offset="a0")

        assert _full_names(client, query) == ["a0", "b/"]

    def test_start_offset_inside_prefix(self, client: MemoryClient) -> None:
        """An offset inside a folded prefix still reports that prefix."""
        query = ListingQuery(delimiter="/", start_offset="a/c/")

        assert _full_names(client, query) == ["a/", "a0", "b/"]

    def test_records_carry_attributes(self, client: MemoryClient) -> None:
        updated = datetime(2024, 1, 2, tzinfo=UTC)
        client.put("bkt", "z.bin", b"12345", updated=updated)

        record = list(client.bucket("bkt").objects(background(), ListingQuery(prefix="z")))[0]

        assert record.bucket == "bkt"
        assert record.name == "z.bin"
        assert record.size == 5
        assert record.updated == updated

    def test_cancelled_listing(self, client: MemoryClient) -> None:
        ctx = Context()
        ctx.cancel()

        with pytest.raises(OperationCancelledError):
            client.bucket("bkt").objects(ctx, ListingQuery())


class TestObjects:
    """Tests for object handles."""

    def test_writer_commits_on_close(self, client: MemoryClient) -> None:
        obj = client.bucket("bkt").object("new.txt")
        writer = obj.new_writer(background())
        writer.write(b"data")

        with pytest.raises(ObjectNotFoundError):
            obj.attrs(background())

        writer.close()

        assert obj.attrs(background()).size == 4
        assert obj.new_reader(background()).read() == b"data"

    def test_abandoned_writer_commits_nothing(self, client: MemoryClient) -> None:
        """Only close makes a written object visible; garbage collection does not."""
        obj = client.bucket("bkt").object("new.txt")
        writer = obj.new_writer(background())
        writer.write(b"partial")

        del writer
        gc.collect()

        with pytest.raises(ObjectNotFoundError):
            obj.attrs(background())

    def test_missing_object(self, client: MemoryClient) -> None:
        obj = client.bucket("bkt").object("missing")

        with pytest.raises(ObjectNotFoundError) as exc_info:
            obj.attrs(background())
        assert exc_info.value.key == "missing"
        assert exc_info.value.bucket == "bkt"

        with pytest.raises(ObjectNotFoundError):
            obj.new_reader(background())
        with pytest.raises(ObjectNotFoundError):
            obj.delete(background())

    def test_delete(self, client: MemoryClient) -> None:
        client.bucket("bkt").object("a0").delete(background())

        assert "a0" not in client.keys("bkt")

    def test_buckets_are_isolated(self, client: MemoryClient) -> None:
        assert client.keys("other") == []
        assert client.backend_name == "memory"

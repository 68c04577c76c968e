"""Tests for inkgen.core.usage_store — usage document backends."""

from __future__ import annotations

from datetime import datetime
from unittest.mock import AsyncMock, MagicMock

from google.cloud import firestore

from inkgen.core.usage_store import (
    COUNT_FIELD,
    UPDATED_FIELD,
    FirestoreUsageStore,
    InMemoryUsageStore,
)


class TestInMemoryUsageStore:
    async def test_missing_document(self):
        assert await InMemoryUsageStore().get("nobody") is None

    async def test_set_stamps_last_updated(self):
        store = InMemoryUsageStore()
        await store.set("u1", {COUNT_FIELD: 1})
        document = await store.get("u1")
        assert document[COUNT_FIELD] == 1
        assert isinstance(document[UPDATED_FIELD], datetime)

    async def test_merge_and_replace(self):
        store = InMemoryUsageStore()
        await store.set("u1", {"a": 1})
        await store.set("u1", {"b": 2})
        assert {"a", "b"} <= set(await store.get("u1"))

        await store.set("u1", {"c": 3}, merge=False)
        assert "a" not in await store.get("u1")

    async def test_get_returns_copy(self):
        store = InMemoryUsageStore()
        await store.set("u1", {COUNT_FIELD: 1})
        (await store.get("u1"))[COUNT_FIELD] = 99
        assert (await store.get("u1"))[COUNT_FIELD] == 1


def _firestore_client(snapshot: MagicMock) -> tuple[MagicMock, MagicMock]:
    document = MagicMock()
    document.get = AsyncMock(return_value=snapshot)
    document.set = AsyncMock()
    client = MagicMock()
    client.collection.return_value.document.return_value = document
    return client, document


class TestFirestoreUsageStore:
    async def test_get_existing_document(self):
        snapshot = MagicMock(exists=True)
        snapshot.to_dict.return_value = {COUNT_FIELD: 2}
        client, _ = _firestore_client(snapshot)

        store = FirestoreUsageStore(client, "users")

        assert await store.get("u1") == {COUNT_FIELD: 2}
        client.collection.assert_called_with("users")
        client.collection.return_value.document.assert_called_with("u1")

    async def test_get_missing_document(self):
        client, _ = _firestore_client(MagicMock(exists=False))
        assert await FirestoreUsageStore(client).get("u1") is None

    async def test_set_merges_with_server_timestamp(self):
        client, document = _firestore_client(MagicMock(exists=False))

        await FirestoreUsageStore(client, "accounts").set("u1", {COUNT_FIELD: 3})

        document.set.assert_awaited_once_with(
            {COUNT_FIELD: 3, UPDATED_FIELD: firestore.SERVER_TIMESTAMP},
            merge=True,
        )
        client.collection.assert_called_with("accounts")

"""Tests for the in-memory document store."""

from datetime import UTC, datetime

import pytest

from graincalc.core.client import DocumentNotFoundError, DocumentStoreAPIError
from graincalc.core.store import Document


class TestCrud:
    async def test_create_assigns_id(self, store):
        doc = await store.create("Farms", {"name": "Home Place"})
        assert doc.id
        assert await store.get("Farms", doc.id) == doc

    async def test_create_with_existing_id_conflicts(self, store):
        await store.create("Users", {"email": "a@b.c"}, document_id="u1")
        with pytest.raises(DocumentStoreAPIError) as exc_info:
            await store.create("Users", {}, document_id="u1")
        assert exc_info.value.status_code == 409

    async def test_datetimes_stored_as_strings(self, store):
        doc = await store.create("Farms", {"createdAt": datetime(2024, 1, 1, tzinfo=UTC)})
        assert doc.data["createdAt"] == "2024-01-01T00:00:00.000Z"

    async def test_returned_documents_are_copies(self, store):
        doc = await store.create("Farms", {"memberIds": ["u1"]})
        doc.data["memberIds"].append("intruder")
        stored = await store.get("Farms", doc.id)
        assert stored.data["memberIds"] == ["u1"]

    async def test_get_missing(self, store):
        assert await store.get("Farms", "nope") is None

    async def test_set_merge_keeps_other_fields(self, store):
        await store.set("Users", "u1", {"email": "a@b.c", "firstName": "Ann"})
        await store.set("Users", "u1", {"firstName": "Anne"}, merge=True)
        assert (await store.get("Users", "u1")).data == {"email": "a@b.c", "firstName": "Anne"}

    async def test_set_without_merge_replaces(self, store):
        await store.set("Users", "u1", {"email": "a@b.c", "firstName": "Ann"})
        await store.set("Users", "u1", {"email": "x@y.z"})
        assert (await store.get("Users", "u1")).data == {"email": "x@y.z"}

    async def test_update_array_union_and_remove(self, store):
        await store.set("Farms", "f", {"memberIds": ["u1", "u2"], "fieldIds": ["a", "b"]})
        await store.update("Farms", "f", {"name": "X"}, array_union={"memberIds": ["u2", "u3"]},
                           array_remove={"fieldIds": ["a"]})
        data = (await store.get("Farms", "f")).data
        assert data == {"memberIds": ["u1", "u2", "u3"], "fieldIds": ["b"], "name": "X"}

    async def test_update_union_creates_missing_array(self, store):
        await store.set("Farms", "f", {})
        await store.update("Farms", "f", {}, array_union={"fieldIds": ["a"]})
        assert (await store.get("Farms", "f")).data["fieldIds"] == ["a"]

    async def test_update_missing_document(self, store):
        with pytest.raises(DocumentNotFoundError):
            await store.update("Farms", "nope", {"name": "X"})

    async def test_delete(self, store):
        await store.set("Farms", "f", {})
        await store.delete("Farms", "f")
        assert await store.get("Farms", "f") is None
        # Deleting again is a no-op
        await store.delete("Farms", "f")

    async def test_query_sorted_by_id(self, store):
        await store.set("Farms", "b", {"ownerId": "u1"})
        await store.set("Farms", "a", {"ownerId": "u1"})
        await store.set("Farms", "c", {"ownerId": "u2"})
        assert [d.id for d in await store.query("Farms", "ownerId", "==", "u1")] == ["a", "b"]


class TestLiveQueries:
    async def test_initial_delivery_is_immediate(self, store):
        await store.set("Farms", "a", {"ownerId": "u1"})
        snapshots = []
        store.subscribe_where_equals("Farms", "ownerId", "u1", snapshots.append, pytest.fail)
        assert snapshots == [[Document("a", {"ownerId": "u1"})]]

    async def test_empty_initial_delivery(self, store):
        snapshots = []
        store.subscribe_where_array_contains("Farms", "memberIds", "u1", snapshots.append, pytest.fail)
        assert snapshots == [[]]

    async def test_redelivers_full_result_on_change(self, store):
        snapshots = []
        store.subscribe_where_array_contains("Farms", "memberIds", "u1", snapshots.append, pytest.fail)
        await store.set("Farms", "a", {"memberIds": ["u1"]})
        await store.set("Farms", "b", {"memberIds": ["u1"]})
        await store.update("Farms", "a", {}, array_remove={"memberIds": ["u1"]})
        assert [[d.id for d in s] for s in snapshots] == [[], ["a"], ["a", "b"], ["b"]]

    async def test_unrelated_writes_not_delivered(self, store):
        snapshots = []
        store.subscribe_where_equals("Farms", "ownerId", "u1", snapshots.append, pytest.fail)
        await store.set("Farms", "x", {"ownerId": "u2"})
        await store.set("Fields", "y", {"ownerId": "u1"})
        assert snapshots == [[]]

    async def test_unsubscribe(self, store):
        snapshots = []
        unsubscribe = store.subscribe_where_equals("Farms", "ownerId", "u1", snapshots.append, pytest.fail)
        assert store.watch_count == 1
        unsubscribe()
        unsubscribe()
        assert store.watch_count == 0
        await store.set("Farms", "a", {"ownerId": "u1"})
        assert snapshots == [[]]

    async def test_listener_exception_does_not_fail_write(self, store, caplog):
        def broken(documents):
            if documents:
                raise RuntimeError("listener bug")

        store.subscribe_where_equals("Farms", "ownerId", "u1", broken, pytest.fail)
        await store.set("Farms", "a", {"ownerId": "u1"})
        assert await store.get("Farms", "a") is not None
        assert "listener bug" in caplog.text

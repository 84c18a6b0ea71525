"""Shared test fixtures."""

import copy
import sys
from pathlib import Path

import pytest
from google.api_core import exceptions as google_exceptions
from tenacity import wait_none

# Add src/ to path so tests can import graincalc
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from graincalc.core.client import FirestoreClient  # noqa: E402
from graincalc.core.config import get_settings  # noqa: E402
from graincalc.core.memory import MemoryStore  # noqa: E402
from graincalc.core.store import Document, FirestoreStore, matches  # noqa: E402

TEST_PROJECT = "test-project"


# =============================================================================
# Firestore SDK
# =============================================================================


class FakeSnapshot:
    """Stands in for an SDK DocumentSnapshot."""

    def __init__(self, document_id: str, data: dict | None):
        self.id = document_id
        self._data = data
        self.exists = data is not None

    def to_dict(self) -> dict | None:
        return copy.deepcopy(self._data)


class FakeWatch:
    """Stands in for the SDK Watch returned by on_snapshot."""

    def __init__(self, callback):
        self.callback = callback
        self.is_active = True
        self.unsubscribed = False

    def fire(self, snapshots: list[FakeSnapshot]) -> None:
        self.callback(snapshots, [], None)

    def unsubscribe(self) -> None:
        self.unsubscribed = True
        self.is_active = False


class FakeDocumentRef:
    def __init__(self, db: "FakeFirestore", collection: str, document_id: str):
        self.db = db
        self.collection = collection
        self.id = document_id

    async def get(self, timeout=None):
        self.db.record("get", self.collection, self.id)
        return FakeSnapshot(self.id, self.db.documents.get((self.collection, self.id)))

    async def create(self, data, timeout=None):
        self.db.record("create", self.collection, self.id, data)
        if (self.collection, self.id) in self.db.documents:
            raise google_exceptions.AlreadyExists(f"{self.collection}/{self.id} exists")
        self.db.documents[(self.collection, self.id)] = dict(data)

    async def set(self, data, merge=False, timeout=None):
        self.db.record("set", self.collection, self.id, data, merge)

    async def update(self, changes, timeout=None):
        self.db.record("update", self.collection, self.id, changes)
        if (self.collection, self.id) not in self.db.documents:
            raise google_exceptions.NotFound(f"No document to update: {self.collection}/{self.id}")

    async def delete(self, timeout=None):
        self.db.record("delete", self.collection, self.id)


class FakeQuery:
    def __init__(self, db: "FakeFirestore", collection: str, field_filter):
        self.db = db
        self.collection = collection
        self.filter = field_filter

    async def get(self, timeout=None):
        f = self.filter
        self.db.record("query", self.collection, f.field_path, f.op_string, f.value)
        return [
            FakeSnapshot(document_id, data)
            for (collection, document_id), data in sorted(self.db.documents.items())
            if collection == self.collection and matches(data, f.field_path, f.op_string, f.value)
        ]

    def on_snapshot(self, callback) -> FakeWatch:
        f = self.filter
        self.db.record("listen", self.collection, f.field_path, f.op_string, f.value)
        watch = FakeWatch(callback)
        self.db.watches.append(watch)
        return watch


class FakeCollection:
    def __init__(self, db: "FakeFirestore", name: str):
        self.db = db
        self.name = name

    def document(self, document_id: str | None = None) -> FakeDocumentRef:
        if document_id is None:
            self.db.auto_ids += 1
            document_id = f"auto-{self.db.auto_ids}"
        return FakeDocumentRef(self.db, self.name, document_id)

    def where(self, *, filter) -> FakeQuery:
        return FakeQuery(self.db, self.name, filter)


class FakeFirestore:
    """Records SDK calls. Errors queued in ``errors`` are raised by the next calls, in order."""

    def __init__(self):
        self.documents: dict[tuple[str, str], dict] = {}
        self.calls: list[tuple] = []
        self.errors: list[Exception] = []
        self.watches: list[FakeWatch] = []
        self.auto_ids = 0

    def collection(self, name: str) -> FakeCollection:
        return FakeCollection(self, name)

    def record(self, *call) -> None:
        self.calls.append(call)
        if self.errors:
            raise self.errors.pop(0)

    def calls_of(self, kind: str) -> list[tuple]:
        return [call for call in self.calls if call[0] == kind]


@pytest.fixture
def test_settings():
    """Settings pointing at a fake Firestore project."""
    return get_settings(
        firestore_project_id=TEST_PROJECT,
        firestore_credentials_file=None,
        firestore_emulator_host=None,
        live_query_interval_seconds=0.01,
    )


@pytest.fixture
def fake_firestore():
    return FakeFirestore()


@pytest.fixture
def firestore_client(test_settings, fake_firestore):
    """A FirestoreClient whose SDK clients are replaced by the fake."""
    client = FirestoreClient(test_settings)
    client._db = fake_firestore
    client._listener_db = fake_firestore
    return client


@pytest.fixture
def firestore_store(firestore_client):
    return FirestoreStore(firestore_client)


@pytest.fixture
def no_retry_wait(monkeypatch):
    """Retry immediately instead of backing off."""
    monkeypatch.setattr(FirestoreClient.call_with_retry.retry, "wait", wait_none())


# =============================================================================
# In-memory store
# =============================================================================


@pytest.fixture
def store():
    return MemoryStore()


# =============================================================================
# Fake live backend for the merged farm view
# =============================================================================


def farm_doc(
    farm_id: str,
    name: str,
    owner: str = "u1",
    members: list[str] | None = None,
    created_at: str = "2024-01-01T00:00:00.000Z",
) -> Document:
    return Document(
        farm_id,
        {
            "name": name,
            "ownerId": owner,
            "memberIds": members if members is not None else [owner],
            "createdAt": created_at,
        },
    )


class FakeSubscription:
    """A live query whose deliveries are driven by the test.

    Deliveries still reach the view after cancellation, like callbacks
    already in flight when a real subscription is torn down.
    """

    def __init__(self, kind, collection, field, value, on_snapshot, on_error):
        self.kind = kind
        self.collection = collection
        self.field = field
        self.value = value
        self.on_snapshot = on_snapshot
        self.on_error = on_error
        self.cancelled = False

    def deliver(self, documents: list[Document]) -> None:
        self.on_snapshot(list(documents))

    def fail(self, error: Exception | None = None) -> None:
        self.on_error(error or RuntimeError("listen stream closed"))


class FakeLiveBackend:
    def __init__(self):
        self.subscriptions: list[FakeSubscription] = []
        self.fail_attach: set[str] = set()

    def subscribe_where_array_contains(self, collection, field, value, on_snapshot, on_error):
        return self._subscribe("member-of", collection, field, value, on_snapshot, on_error)

    def subscribe_where_equals(self, collection, field, value, on_snapshot, on_error):
        return self._subscribe("owned", collection, field, value, on_snapshot, on_error)

    def _subscribe(self, kind, collection, field, value, on_snapshot, on_error):
        if kind in self.fail_attach:
            raise RuntimeError(f"{kind} query rejected")
        sub = FakeSubscription(kind, collection, field, value, on_snapshot, on_error)
        self.subscriptions.append(sub)

        def unsubscribe():
            sub.cancelled = True

        return unsubscribe

    def latest(self, kind: str, user_id: str | None = None) -> FakeSubscription:
        """Most recent subscription of a kind ("member-of" or "owned")."""
        for sub in reversed(self.subscriptions):
            if sub.kind == kind and (user_id is None or sub.value == user_id):
                return sub
        raise LookupError(f"No {kind} subscription for {user_id}")

    @property
    def active(self) -> list[FakeSubscription]:
        return [sub for sub in self.subscriptions if not sub.cancelled]


@pytest.fixture
def live_backend():
    return FakeLiveBackend()

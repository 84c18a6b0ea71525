"""Document store contract and the Firestore implementation.

Services in ``graincalc.data`` only talk to a ``DocumentStore``. Two
implementations exist: ``FirestoreStore`` (hosted database through the
Firestore SDK) and ``graincalc.core.memory.MemoryStore`` (in-process, for
tests and offline use).
"""

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Literal, Protocol

from google.cloud import firestore
from google.cloud.firestore_v1.base_query import FieldFilter

from graincalc.core.client import DocumentNotFoundError, DocumentStoreAPIError, DocumentStoreError, FirestoreClient
from graincalc.core.values import normalize_fields

logger = logging.getLogger(__name__)

# Same spelling as the SDK's where() operators
Operator = Literal["==", "array-contains"]

SnapshotCallback = Callable[[list["Document"]], None]
ErrorCallback = Callable[[Exception], None]
Unsubscribe = Callable[[], None]


@dataclass(frozen=True)
class Document:
    """A stored document: opaque id plus its field bag."""

    id: str
    data: dict[str, Any]

    def get(self, key: str, default: Any = None) -> Any:
        return self.data.get(key, default)


class DocumentStore(Protocol):
    """What services and live views need from the backing database."""

    async def get(self, collection: str, document_id: str) -> Document | None: ...

    async def query(self, collection: str, field: str, op: Operator, value: Any) -> list[Document]: ...

    async def create(self, collection: str, data: dict, document_id: str | None = None) -> Document: ...

    async def set(self, collection: str, document_id: str, data: dict, merge: bool = False) -> None: ...

    async def update(
        self,
        collection: str,
        document_id: str,
        data: dict,
        array_union: dict[str, list] | None = None,
        array_remove: dict[str, list] | None = None,
    ) -> None: ...

    async def delete(self, collection: str, document_id: str) -> None: ...

    def subscribe_where_array_contains(
        self,
        collection: str,
        field: str,
        value: Any,
        on_snapshot: SnapshotCallback,
        on_error: ErrorCallback,
    ) -> Unsubscribe: ...

    def subscribe_where_equals(
        self,
        collection: str,
        field: str,
        value: Any,
        on_snapshot: SnapshotCallback,
        on_error: ErrorCallback,
    ) -> Unsubscribe: ...


def matches(data: dict, field: str, op: Operator, value: Any) -> bool:
    """Evaluate a single-field filter against a field bag."""
    if op == "==":
        return field in data and data[field] == value
    if op == "array-contains":
        candidates = data.get(field)
        return isinstance(candidates, list) and value in candidates
    raise ValueError(f"Unsupported operator: {op}")


def document_from_snapshot(snapshot) -> Document:
    """Build a Document from an SDK DocumentSnapshot, with timestamps as ISO strings."""
    return Document(snapshot.id, normalize_fields(snapshot.to_dict() or {}))


class _Listener:
    """One SDK snapshot listener, bridged onto the subscriber's event loop.

    The SDK calls ``handle`` on its own thread; deliveries are handed to the
    loop so subscribers only ever run there. The SDK retries a broken listen
    stream itself and has no error callback, so ``watch_stream`` checks the
    stream every ``interval`` seconds and reports once when it has stopped.
    """

    def __init__(
        self,
        loop: asyncio.AbstractEventLoop,
        description: str,
        on_snapshot: SnapshotCallback,
        on_error: ErrorCallback,
    ):
        self.loop = loop
        self.description = description
        self.on_snapshot = on_snapshot
        self.on_error = on_error
        self.watch = None
        self.monitor: asyncio.Task | None = None
        self.closed = False

    def handle(self, snapshots, changes, read_time) -> None:
        if self.closed:
            return
        try:
            self.loop.call_soon_threadsafe(self._deliver, list(snapshots))
        except RuntimeError:
            logger.debug("Dropping %s snapshot: event loop is closed", self.description)

    def _deliver(self, snapshots: list) -> None:
        if self.closed:
            return
        try:
            self.on_snapshot([document_from_snapshot(s) for s in snapshots])
        except Exception:
            # A broken subscriber must not stop later deliveries
            logger.exception("Snapshot listener for %s raised", self.description)

    async def watch_stream(self, interval: float) -> None:
        while self.watch.is_active:
            await asyncio.sleep(interval)
        if self.closed:
            return
        self.closed = True
        error = DocumentStoreError(f"Listen stream for {self.description} closed")
        logger.warning("%s", error)
        try:
            self.on_error(error)
        except Exception:
            logger.exception("Error callback for %s raised", self.description)

    def close(self) -> None:
        if self.closed and self.watch is None:
            return
        self.closed = True
        if self.monitor is not None:
            self.monitor.cancel()
            self.monitor = None
        if self.watch is not None:
            watch, self.watch = self.watch, None
            watch.unsubscribe()


class FirestoreStore:
    """DocumentStore backed by Cloud Firestore.

    Reads and writes go through the async SDK client with retry. Live
    queries are SDK ``on_snapshot`` listeners; each delivery is the full
    current result set.
    """

    def __init__(self, client: FirestoreClient | None = None, check_interval: float | None = None):
        self.client = client or FirestoreClient()
        self.check_interval = (
            check_interval if check_interval is not None else self.client.settings.live_query_interval_seconds
        )

    def _ref(self, collection: str, document_id: str | None = None):
        collection_ref = self.client.db.collection(collection)
        # document() without an id picks a new random one
        return collection_ref.document(document_id) if document_id else collection_ref.document()

    async def get(self, collection: str, document_id: str) -> Document | None:
        ref = self._ref(collection, document_id)
        snapshot = await self.client.call_with_retry(lambda: ref.get(timeout=self.client.timeout))
        return document_from_snapshot(snapshot) if snapshot.exists else None

    async def query(self, collection: str, field: str, op: Operator, value: Any) -> list[Document]:
        query = self.client.db.collection(collection).where(filter=FieldFilter(field, op, value))
        snapshots = await self.client.call_with_retry(lambda: query.get(timeout=self.client.timeout))
        return [document_from_snapshot(s) for s in snapshots]

    async def create(self, collection: str, data: dict, document_id: str | None = None) -> Document:
        ref = self._ref(collection, document_id)
        await self.client.call_with_retry(lambda: ref.create(data, timeout=self.client.timeout))
        return Document(ref.id, normalize_fields(data))

    async def set(self, collection: str, document_id: str, data: dict, merge: bool = False) -> None:
        ref = self._ref(collection, document_id)
        await self.client.call_with_retry(lambda: ref.set(data, merge=merge, timeout=self.client.timeout))

    async def update(
        self,
        collection: str,
        document_id: str,
        data: dict,
        array_union: dict[str, list] | None = None,
        array_remove: dict[str, list] | None = None,
    ) -> None:
        changes = dict(data)
        for path, values in (array_union or {}).items():
            changes[path] = firestore.ArrayUnion(list(values))
        for path, values in (array_remove or {}).items():
            changes[path] = firestore.ArrayRemove(list(values))

        ref = self._ref(collection, document_id)
        try:
            await self.client.call_with_retry(lambda: ref.update(changes, timeout=self.client.timeout))
        except DocumentStoreAPIError as e:
            if e.status_code == 404:
                raise DocumentNotFoundError(collection, document_id) from e
            raise

    async def delete(self, collection: str, document_id: str) -> None:
        ref = self._ref(collection, document_id)
        await self.client.call_with_retry(lambda: ref.delete(timeout=self.client.timeout))

    # -------------------------------------------------------------------------
    # Live queries
    # -------------------------------------------------------------------------

    def subscribe_where_array_contains(
        self,
        collection: str,
        field: str,
        value: Any,
        on_snapshot: SnapshotCallback,
        on_error: ErrorCallback,
    ) -> Unsubscribe:
        return self._watch(collection, field, "array-contains", value, on_snapshot, on_error)

    def subscribe_where_equals(
        self,
        collection: str,
        field: str,
        value: Any,
        on_snapshot: SnapshotCallback,
        on_error: ErrorCallback,
    ) -> Unsubscribe:
        return self._watch(collection, field, "==", value, on_snapshot, on_error)

    def _watch(
        self,
        collection: str,
        field: str,
        op: Operator,
        value: Any,
        on_snapshot: SnapshotCallback,
        on_error: ErrorCallback,
    ) -> Unsubscribe:
        # Raises RuntimeError outside an event loop; callers treat that as an attach failure
        loop = asyncio.get_running_loop()
        listener = _Listener(loop, f"{collection} where {field} {op} {value!r}", on_snapshot, on_error)

        query = self.client.listener_db.collection(collection).where(filter=FieldFilter(field, op, value))
        listener.watch = query.on_snapshot(listener.handle)
        listener.monitor = loop.create_task(listener.watch_stream(self.check_interval))
        return listener.close

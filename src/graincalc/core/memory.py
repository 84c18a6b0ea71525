"""In-process DocumentStore.

Behaves like the hosted store closely enough for tests and offline use:
server-assigned ids, merge writes, array union/remove, and live queries
that push the full result set after every change.
"""

import copy
import logging
import uuid
from collections import defaultdict
from dataclasses import dataclass
from typing import Any

from graincalc.core.client import DocumentNotFoundError, DocumentStoreAPIError
from graincalc.core.store import Document, ErrorCallback, Operator, SnapshotCallback, Unsubscribe, matches
from graincalc.core.values import normalize_fields

logger = logging.getLogger(__name__)


@dataclass(eq=False)
class _Watch:
    collection: str
    field: str
    op: Operator
    value: Any
    on_snapshot: SnapshotCallback
    on_error: ErrorCallback
    last: list[Document] | None = None


class MemoryStore:
    """Dictionary-backed DocumentStore with synchronous live queries."""

    def __init__(self):
        self._collections: dict[str, dict[str, dict]] = defaultdict(dict)
        self._watches: list[_Watch] = []

    def _run(self, collection: str, field: str, op: Operator, value: Any) -> list[Document]:
        docs = self._collections[collection]
        # Same default ordering as Firestore: by document id
        return [
            Document(doc_id, copy.deepcopy(data))
            for doc_id, data in sorted(docs.items())
            if matches(data, field, op, value)
        ]

    async def get(self, collection: str, document_id: str) -> Document | None:
        data = self._collections[collection].get(document_id)
        if data is None:
            return None
        return Document(document_id, copy.deepcopy(data))

    async def query(self, collection: str, field: str, op: Operator, value: Any) -> list[Document]:
        return self._run(collection, field, op, value)

    async def create(self, collection: str, data: dict, document_id: str | None = None) -> Document:
        document_id = document_id or uuid.uuid4().hex
        if document_id in self._collections[collection]:
            raise DocumentStoreAPIError(f"Document {collection}/{document_id} already exists", 409)
        self._collections[collection][document_id] = normalize_fields(data)
        self._notify(collection)
        return Document(document_id, copy.deepcopy(self._collections[collection][document_id]))

    async def set(self, collection: str, document_id: str, data: dict, merge: bool = False) -> None:
        docs = self._collections[collection]
        if merge and document_id in docs:
            docs[document_id].update(normalize_fields(data))
        else:
            docs[document_id] = normalize_fields(data)
        self._notify(collection)

    async def update(
        self,
        collection: str,
        document_id: str,
        data: dict,
        array_union: dict[str, list] | None = None,
        array_remove: dict[str, list] | None = None,
    ) -> None:
        doc = self._collections[collection].get(document_id)
        if doc is None:
            raise DocumentNotFoundError(collection, document_id)

        doc.update(normalize_fields(data))
        for path, values in (array_union or {}).items():
            current = doc.get(path) if isinstance(doc.get(path), list) else []
            for value in normalize_fields(list(values)):
                if value not in current:
                    current.append(value)
            doc[path] = current
        for path, values in (array_remove or {}).items():
            removed = normalize_fields(list(values))
            current = doc.get(path) if isinstance(doc.get(path), list) else []
            doc[path] = [v for v in current if v not in removed]
        self._notify(collection)

    async def delete(self, collection: str, document_id: str) -> None:
        if self._collections[collection].pop(document_id, None) is not None:
            self._notify(collection)

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
        return self._watch(_Watch(collection, field, "array-contains", value, on_snapshot, on_error))

    def subscribe_where_equals(
        self,
        collection: str,
        field: str,
        value: Any,
        on_snapshot: SnapshotCallback,
        on_error: ErrorCallback,
    ) -> Unsubscribe:
        return self._watch(_Watch(collection, field, "==", value, on_snapshot, on_error))

    def _watch(self, watch: _Watch) -> Unsubscribe:
        self._watches.append(watch)
        self._deliver(watch, force=True)

        def unsubscribe() -> None:
            if watch in self._watches:
                self._watches.remove(watch)

        return unsubscribe

    def _deliver(self, watch: _Watch, force: bool = False) -> None:
        documents = self._run(watch.collection, watch.field, watch.op, watch.value)
        if not force and documents == watch.last:
            return
        watch.last = documents
        try:
            watch.on_snapshot(list(documents))
        except Exception:
            # A broken listener must not fail the write that triggered it
            logger.exception("Snapshot listener for %s raised", watch.collection)

    def _notify(self, collection: str) -> None:
        for watch in list(self._watches):
            if watch.collection == collection and watch in self._watches:
                self._deliver(watch)

    @property
    def watch_count(self) -> int:
        """Number of live queries currently attached."""
        return len(self._watches)

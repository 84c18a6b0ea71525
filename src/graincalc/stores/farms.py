"""
Live, merged list of the farms a user can see.

A farm is visible to a user through two independent live queries:

- member-of: ``memberIds`` array-contains the user
- owned:     ``ownerId`` == the user

Each query delivers its complete result set on every change. Each
delivery replaces that query's mapping wholesale, and the union of both
mappings (keyed by farm id, owned entries winning) is re-sorted and
published to subscribers as an immutable tuple.

Each query is a small state machine:

    NOT_ATTACHED -> LOADING -> READY | ERROR

The view is ready once both are terminal, so a query that fails to
attach, or errors later, can never leave the view loading forever.

Every activate/deactivate bumps a generation counter. Callbacks carry
the generation they were created for and are dropped if it is stale, so
a late delivery for a previous user never reaches the current mappings.
"""

import logging
import re
import unicodedata
from collections.abc import Callable
from enum import Enum

from graincalc.core.store import Document, DocumentStore, Unsubscribe
from graincalc.data.models import FARMS, Farm

logger = logging.getLogger(__name__)

FarmList = tuple[Farm, ...]
FarmListCallback = Callable[[FarmList], None]

_DIGITS_RE = re.compile(r"(\d+)")


class QueryState(Enum):
    """Lifecycle of one live query."""

    NOT_ATTACHED = "not_attached"
    LOADING = "loading"
    READY = "ready"
    ERROR = "error"

    @property
    def terminal(self) -> bool:
        return self in (QueryState.READY, QueryState.ERROR)


def natural_key(name: str) -> tuple:
    """Case- and accent-insensitive, numeric-aware sort key for a name.

    "Field 2" sorts before "field 10", and "Élan" sorts with "elan".
    Digit runs sort before letters, as in a numeric locale collation.
    """
    folded = unicodedata.normalize("NFKD", name)
    folded = "".join(c for c in folded if not unicodedata.combining(c)).casefold()
    parts = []
    for chunk in _DIGITS_RE.split(folded):
        if not chunk:
            continue
        if chunk.isdigit():
            parts.append((0, int(chunk), chunk))
        else:
            parts.append((1, 0, chunk))
    return tuple(parts)


def farm_sort_key(farm: Farm) -> tuple:
    """Total order over farms: name, then created_at, then id.

    Every component is a string, so odd stored values can't make two keys
    incomparable.
    """
    return (natural_key(str(farm.name or "")), str(farm.created_at or ""), str(farm.id))


def merge_farms(member_of: dict[str, Farm], owned: dict[str, Farm]) -> FarmList:
    """Union two id-keyed mappings and sort deterministically."""
    union = {**member_of, **owned}
    return tuple(sorted(union.values(), key=farm_sort_key))


class _LiveQuery:
    """One side of the view: its state, latest mapping and cancel handle."""

    def __init__(self, name: str):
        self.name = name
        self.state = QueryState.NOT_ATTACHED
        self.farms: dict[str, Farm] = {}
        self.unsubscribe: Unsubscribe | None = None

    def reset(self) -> None:
        if self.unsubscribe is not None:
            try:
                self.unsubscribe()
            except Exception:
                logger.exception("Failed to cancel %s farm query", self.name)
        self.unsubscribe = None
        self.farms = {}
        self.state = QueryState.NOT_ATTACHED


class MergedFarmView:
    """De-duplicated, sorted, live list of a user's farms.

    One instance per session. Never raises out of activate, deactivate or
    subscribe; backend failures end up as an empty (or partial) ready list.
    """

    def __init__(self, backend: DocumentStore, collection: str = FARMS):
        self.backend = backend
        self.collection = collection
        self._member_of = _LiveQuery("member-of")
        self._owned = _LiveQuery("owned")
        self._generation = 0
        self._user_id: str | None = None
        self._farms: FarmList = ()
        self._subscribers: list[FarmListCallback] = []

    # -------------------------------------------------------------------------
    # State
    # -------------------------------------------------------------------------

    @property
    def user_id(self) -> str | None:
        return self._user_id

    @property
    def active(self) -> bool:
        return self._user_id is not None

    @property
    def ready(self) -> bool:
        return self.active and self._member_of.state.terminal and self._owned.state.terminal

    @property
    def loading(self) -> bool:
        return self.active and not self.ready

    @property
    def query_states(self) -> dict[str, QueryState]:
        return {self._member_of.name: self._member_of.state, self._owned.name: self._owned.state}

    def current_list(self) -> FarmList:
        return self._farms

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def activate(self, user_id: str | None) -> None:
        """Start (or keep) the live view for user_id. Empty user_id deactivates."""
        if not user_id:
            self.deactivate()
            return
        if self._user_id == user_id:
            return

        self._teardown()
        self._user_id = user_id
        generation = self._generation
        self._publish()

        self._attach(
            self._member_of,
            generation,
            lambda on_snapshot, on_error: self.backend.subscribe_where_array_contains(
                self.collection, "memberIds", user_id, on_snapshot, on_error
            ),
        )
        if generation != self._generation:
            # A member-of delivery ran subscriber code that re-activated the view
            return
        self._attach(
            self._owned,
            generation,
            lambda on_snapshot, on_error: self.backend.subscribe_where_equals(
                self.collection, "ownerId", user_id, on_snapshot, on_error
            ),
        )

    def deactivate(self) -> None:
        """Cancel both queries, clear everything and publish an empty list."""
        self._teardown()
        self._user_id = None
        self._publish()

    def _teardown(self) -> None:
        self._generation += 1
        self._member_of.reset()
        self._owned.reset()
        self._farms = ()

    def _attach(self, query: _LiveQuery, generation: int, subscribe) -> None:
        if generation != self._generation:
            # The query now belongs to a newer activation
            return
        query.state = QueryState.LOADING

        def on_snapshot(documents: list[Document]) -> None:
            self._on_snapshot(query, generation, documents)

        def on_error(error: Exception) -> None:
            self._on_error(query, generation, error)

        try:
            unsubscribe = subscribe(on_snapshot, on_error)
        except Exception as e:
            logger.warning("Failed to attach %s farm query for %s: %s", query.name, self._user_id, e)
            self._on_error(query, generation, e)
            return

        if generation != self._generation:
            # Superseded while subscribing (a callback re-activated the view)
            try:
                unsubscribe()
            except Exception:
                logger.exception("Failed to cancel superseded %s farm query", query.name)
            return
        query.unsubscribe = unsubscribe

    # -------------------------------------------------------------------------
    # Deliveries
    # -------------------------------------------------------------------------

    def _on_snapshot(self, query: _LiveQuery, generation: int, documents: list[Document]) -> None:
        if generation != self._generation:
            logger.debug("Dropping stale %s farm snapshot (generation %d)", query.name, generation)
            return
        try:
            farms = {doc.id: Farm.from_document(doc) for doc in documents}
            if query is self._member_of:
                merged = merge_farms(farms, self._owned.farms)
            else:
                merged = merge_farms(self._member_of.farms, farms)
        except Exception as e:
            # Nothing is replaced, so the mappings and the published list stay consistent
            logger.exception("Could not read %s farm snapshot for %s", query.name, self._user_id)
            self._on_error(query, generation, e)
            return
        query.farms = farms
        query.state = QueryState.READY
        self._farms = merged
        self._publish()

    def _on_error(self, query: _LiveQuery, generation: int, error: Exception) -> None:
        if generation != self._generation:
            return
        logger.warning("%s farm query for %s failed: %s", query.name, self._user_id, error)
        # Keep the last mapping; the other query keeps serving
        query.state = QueryState.ERROR
        self._merge_and_publish()

    def _merge_and_publish(self) -> None:
        self._farms = merge_farms(self._member_of.farms, self._owned.farms)
        self._publish()

    # -------------------------------------------------------------------------
    # Subscribers
    # -------------------------------------------------------------------------

    def subscribe(self, callback: FarmListCallback) -> Callable[[], None]:
        """Call callback now with the current list, then on every publication."""
        self._subscribers.append(callback)
        self._notify(callback, self._farms)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def _publish(self) -> None:
        farms = self._farms
        for callback in list(self._subscribers):
            self._notify(callback, farms)

    @staticmethod
    def _notify(callback: FarmListCallback, farms: FarmList) -> None:
        try:
            callback(farms)
        except Exception:
            logger.exception("Farm list subscriber raised")

"""Core module - configuration, document stores and unit helpers."""

from graincalc.core import units, values
from graincalc.core.client import (
    DocumentNotFoundError,
    DocumentStoreAPIError,
    DocumentStoreError,
    FirestoreClient,
    RetryableError,
)
from graincalc.core.config import Settings, get_settings, settings
from graincalc.core.memory import MemoryStore
from graincalc.core.store import Document, DocumentStore, FirestoreStore, Unsubscribe
from graincalc.core.units import format_bushels, format_weight, pounds_to_bushels, to_pounds
from graincalc.core.values import normalize_timestamp, now_timestamp

__all__ = [
    "units",
    "values",
    "settings",
    "Settings",
    "get_settings",
    "FirestoreClient",
    "DocumentStoreError",
    "DocumentStoreAPIError",
    "DocumentNotFoundError",
    "RetryableError",
    "Document",
    "DocumentStore",
    "FirestoreStore",
    "MemoryStore",
    "Unsubscribe",
    "normalize_timestamp",
    "now_timestamp",
    # Unit conversion helpers
    "to_pounds",
    "pounds_to_bushels",
    "format_bushels",
    "format_weight",
]

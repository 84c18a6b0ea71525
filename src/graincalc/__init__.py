"""Grain calculator farm records.

Data access and client state for farms, fields, equipment, soil moisture
readings, grain drying calculations and user profiles, stored in a hosted
document database with per-user and per-farm access checks.

Subpackages:
- graincalc.core: Configuration, document stores and unit helpers
- graincalc.data: Record types and CRUD services
- graincalc.analysis: Grain drying shrink calculation
- graincalc.stores: Live merged farm view and per-user sessions
"""

# Re-export common items for convenience
from graincalc.core import (
    FirestoreStore,
    MemoryStore,
    settings,
)
from graincalc.stores import MergedFarmView, Session

__all__ = [
    "settings",
    "FirestoreStore",
    "MemoryStore",
    "MergedFarmView",
    "Session",
]

__version__ = "0.1.0"

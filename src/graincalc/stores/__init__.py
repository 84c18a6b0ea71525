"""Client state - live farm view and per-user session caches."""

from graincalc.stores.farms import MergedFarmView, QueryState, farm_sort_key, merge_farms, natural_key
from graincalc.stores.session import ScopedCache, Session

__all__ = [
    "MergedFarmView",
    "QueryState",
    "Session",
    "ScopedCache",
    "farm_sort_key",
    "merge_farms",
    "natural_key",
]

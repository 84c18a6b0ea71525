"""Per-user session state.

A Session owns one of every service, the live farm view, and small
caches for the last-loaded field and calculation lists. Create one per
signed-in user (or per request in a server); nothing here is shared
between sessions.
"""

from dataclasses import dataclass, field
from typing import Any

from graincalc.core.store import DocumentStore
from graincalc.data.calculations import CalculationService
from graincalc.data.equipment import EquipmentService
from graincalc.data.farms import FarmService
from graincalc.data.fields import FieldService
from graincalc.data.models import Calculation, Farm, Field, UserProfile
from graincalc.data.soil_moisture import SoilMoistureService
from graincalc.data.users import UserService
from graincalc.stores.farms import MergedFarmView


@dataclass
class ScopedCache:
    """Remembers one list and the scope (user, farm, ...) it was loaded for.

    Callers always get a fresh list, so mutating it leaves the cache intact.
    """

    scope: tuple | None = None
    items: tuple[Any, ...] = field(default_factory=tuple)

    def get(self, scope: tuple) -> list[Any] | None:
        return list(self.items) if self.scope == scope else None

    def put(self, scope: tuple, items: list[Any]) -> list[Any]:
        self.scope = scope
        self.items = tuple(items)
        return list(self.items)

    def clear(self) -> None:
        self.scope = None
        self.items = ()


class Session:
    def __init__(self, store: DocumentStore):
        self.store = store
        self.farm_service = FarmService(store)
        self.field_service = FieldService(store, self.farm_service)
        self.calculation_service = CalculationService(store, self.farm_service, self.field_service)
        self.equipment_service = EquipmentService(store, self.farm_service)
        self.soil_moisture_service = SoilMoistureService(store, self.farm_service)
        self.user_service = UserService(store)

        self.farms = MergedFarmView(store)
        self._user_id: str | None = None
        self._fields = ScopedCache()
        self._calculations = ScopedCache()

    @property
    def user_id(self) -> str | None:
        return self._user_id

    def set_user(self, user_id: str | None) -> None:
        """Switch the signed-in user. None (or "") signs out."""
        user_id = user_id or None
        if user_id != self._user_id:
            self._fields.clear()
            self._calculations.clear()
        self._user_id = user_id
        self.farms.activate(user_id)

    def close(self) -> None:
        self.set_user(None)

    def _require_user(self, action: str) -> str:
        if not self._user_id:
            raise PermissionError(f"User must be authenticated to {action}")
        return self._user_id

    # -------------------------------------------------------------------------
    # Farms
    # -------------------------------------------------------------------------

    async def create_farm(self, name: str) -> Farm:
        return await self.farm_service.create(self._require_user("create a farm"), name)

    def owned_farms(self) -> list[Farm]:
        if not self._user_id:
            return []
        return [farm for farm in self.farms.current_list() if farm.is_owner(self._user_id)]

    # -------------------------------------------------------------------------
    # Fields
    # -------------------------------------------------------------------------

    async def fields(self, farm_id: str, refresh: bool = False) -> list[Field]:
        """Fields of a farm, loaded once per (user, farm) scope."""
        if not self._user_id or not farm_id:
            self._fields.clear()
            return []
        scope = (self._user_id, farm_id)
        cached = None if refresh else self._fields.get(scope)
        if cached is not None:
            return cached
        return self._fields.put(scope, await self.field_service.get_all(self._user_id, farm_id))

    async def create_field(self, farm_id: str, name: str, acres: float) -> Field:
        created = await self.field_service.create(self._require_user("create a field"), farm_id, name, acres)
        await self.fields(farm_id, refresh=True)
        return created

    async def update_field(self, farm_id: str, field_id: str, data: dict) -> Field | None:
        updated = await self.field_service.update(self._require_user("update a field"), farm_id, field_id, data)
        await self.fields(farm_id, refresh=True)
        return updated

    async def delete_field(self, farm_id: str, field_id: str) -> bool:
        deleted = await self.field_service.delete(self._require_user("delete a field"), farm_id, field_id)
        await self.fields(farm_id, refresh=True)
        return deleted

    # -------------------------------------------------------------------------
    # Calculations
    # -------------------------------------------------------------------------

    async def calculations(self, farm_id: str, field_id: str, refresh: bool = False) -> list[Calculation]:
        """Calculations of a field, loaded once per (user, farm, field) scope."""
        if not self._user_id or not farm_id or not field_id:
            self._calculations.clear()
            return []
        scope = (self._user_id, farm_id, field_id)
        cached = None if refresh else self._calculations.get(scope)
        if cached is not None:
            return cached
        items = await self.calculation_service.get_all(self._user_id, farm_id, field_id)
        return self._calculations.put(scope, items)

    async def get_calculation(self, farm_id: str, field_id: str, calculation_id: str) -> Calculation | None:
        for calculation in await self.calculations(farm_id, field_id):
            if calculation.id == calculation_id:
                return calculation
        if not self._user_id:
            return None
        return await self.calculation_service.get_by_id(self._user_id, farm_id, field_id, calculation_id)

    async def create_calculation(self, farm_id: str, field_id: str, data: dict) -> Calculation:
        user_id = self._require_user("create a calculation")
        created = await self.calculation_service.create(user_id, farm_id, field_id, data)
        await self.calculations(farm_id, field_id, refresh=True)
        return created

    async def update_calculation(
        self, farm_id: str, field_id: str, calculation_id: str, data: dict
    ) -> Calculation | None:
        user_id = self._require_user("update a calculation")
        updated = await self.calculation_service.update(user_id, farm_id, field_id, calculation_id, data)
        await self.calculations(farm_id, field_id, refresh=True)
        return updated

    async def delete_calculation(self, farm_id: str, field_id: str, calculation_id: str) -> bool:
        user_id = self._require_user("delete a calculation")
        deleted = await self.calculation_service.delete(user_id, farm_id, field_id, calculation_id)
        await self.calculations(farm_id, field_id, refresh=True)
        return deleted

    # -------------------------------------------------------------------------
    # Profile
    # -------------------------------------------------------------------------

    async def profile(self) -> UserProfile | None:
        if not self._user_id:
            return None
        return await self.user_service.get_by_id(self._user_id)

"""Farm equipment (dryers, combines, carts) and their hour meters."""

import logging
from datetime import UTC, datetime

from graincalc.core.store import DocumentStore
from graincalc.data.farms import FarmService
from graincalc.data.models import EQUIPMENT, Equipment

logger = logging.getLogger(__name__)

PROTECTED_FIELDS = ("farmId", "createdAt")


class EquipmentService:
    def __init__(self, store: DocumentStore, farms: FarmService | None = None):
        self.store = store
        self.farms = farms or FarmService(store)

    async def get_all(self, user_id: str, farm_id: str) -> list[Equipment]:
        if not user_id or not farm_id:
            logger.warning("No user_id or farm_id provided to EquipmentService.get_all")
            return []
        if await self.farms.get_by_id(user_id, farm_id) is None:
            return []
        docs = await self.store.query(EQUIPMENT, "farmId", "==", farm_id)
        return sorted((Equipment.from_document(doc) for doc in docs), key=lambda e: e.name.casefold())

    async def get_by_id(self, user_id: str, farm_id: str, equipment_id: str) -> Equipment | None:
        if not user_id or not farm_id or not equipment_id:
            return None
        if await self.farms.get_by_id(user_id, farm_id) is None:
            return None
        doc = await self.store.get(EQUIPMENT, equipment_id)
        if doc is None or doc.get("farmId") != farm_id:
            return None
        return Equipment.from_document(doc)

    async def save(self, user_id: str, farm_id: str, data: dict, equipment_id: str | None = None) -> Equipment:
        """Create equipment, or merge data into an existing item when equipment_id is given."""
        if not user_id or not farm_id:
            raise ValueError("user_id and farm_id are required to save equipment")

        await self.farms.require_member(user_id, farm_id)
        now = datetime.now(UTC)

        if equipment_id:
            if await self.get_by_id(user_id, farm_id, equipment_id) is None:
                raise LookupError("Equipment not found or does not belong to this farm")
            update = {k: v for k, v in data.items() if k not in PROTECTED_FIELDS}
            if "name" in update and not (update["name"] or "").strip():
                raise ValueError("Equipment name is required")
            update["updatedAt"] = now
            await self.store.set(EQUIPMENT, equipment_id, update, merge=True)
            return await self.get_by_id(user_id, farm_id, equipment_id)

        name = (data.get("name") or "").strip()
        if not name:
            raise ValueError("Equipment name is required")
        record = {
            "farmId": farm_id,
            "name": name,
            "kind": data.get("kind") or "",
            "totalHours": data.get("totalHours") or 0,
            "notes": data.get("notes") or "",
            "createdAt": now,
            "updatedAt": now,
        }
        doc = await self.store.create(EQUIPMENT, record)
        return Equipment.from_document(doc)

    async def delete(self, user_id: str, farm_id: str, equipment_id: str) -> bool:
        if await self.get_by_id(user_id, farm_id, equipment_id) is None:
            return False
        await self.store.delete(EQUIPMENT, equipment_id)
        return True

    async def update_hours(self, user_id: str, farm_id: str, equipment_id: str, hours: float) -> Equipment | None:
        """Set the hour meter reading. Returns None if the item isn't found."""
        if hours < 0:
            raise ValueError("Hours cannot be negative")
        if await self.get_by_id(user_id, farm_id, equipment_id) is None:
            return None
        await self.store.set(
            EQUIPMENT, equipment_id, {"totalHours": hours, "updatedAt": datetime.now(UTC)}, merge=True
        )
        return await self.get_by_id(user_id, farm_id, equipment_id)

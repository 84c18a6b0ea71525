"""Fields (plots) belonging to a farm. Any farm member may manage them."""

import logging
from datetime import UTC, datetime

from graincalc.core.client import DocumentStoreError
from graincalc.core.store import DocumentStore
from graincalc.data.farms import FarmService
from graincalc.data.models import FARMS, FIELDS, Field

logger = logging.getLogger(__name__)

PROTECTED_FIELDS = ("farmId", "createdAt")


class FieldService:
    def __init__(self, store: DocumentStore, farms: FarmService | None = None):
        self.store = store
        self.farms = farms or FarmService(store)

    async def get_all(self, user_id: str, farm_id: str) -> list[Field]:
        if not user_id or not farm_id:
            logger.warning("No user_id or farm_id provided to FieldService.get_all")
            return []

        if await self.farms.get_by_id(user_id, farm_id) is None:
            logger.warning("User %s does not have access to farm %s", user_id, farm_id)
            return []

        return [Field.from_document(doc) for doc in await self.store.query(FIELDS, "farmId", "==", farm_id)]

    async def get_by_id(self, user_id: str, farm_id: str, field_id: str) -> Field | None:
        """Get a field, or None if missing, not on this farm, or not visible to the user."""
        if not user_id or not farm_id or not field_id:
            return None

        if await self.farms.get_by_id(user_id, farm_id) is None:
            return None

        doc = await self.store.get(FIELDS, field_id)
        if doc is None or doc.get("farmId") != farm_id:
            return None
        return Field.from_document(doc)

    async def create(self, user_id: str, farm_id: str, name: str, acres: float) -> Field:
        if not user_id or not farm_id:
            raise ValueError("user_id and farm_id are required to create a field")
        if not name or not name.strip():
            raise ValueError("Field name is required")
        if isinstance(acres, bool) or not isinstance(acres, (int, float)) or acres <= 0:
            raise ValueError("Field acres must be a positive number")

        await self.farms.require_member(user_id, farm_id)

        now = datetime.now(UTC)
        data = {
            "farmId": farm_id,
            "name": name.strip(),
            "acres": acres,
            "calculations": [],
            "createdAt": now,
            "updatedAt": now,
        }
        doc = await self.store.create(FIELDS, data)

        try:
            await self.store.update(FARMS, farm_id, {"updatedAt": now}, array_union={"fieldIds": [doc.id]})
        except DocumentStoreError as e:
            logger.warning("Failed to add field %s to farm %s fieldIds: %s", doc.id, farm_id, e)

        return Field.from_document(doc)

    async def update(self, user_id: str, farm_id: str, field_id: str, data: dict) -> Field | None:
        if not user_id or not farm_id or not field_id:
            raise ValueError("user_id, farm_id, and field_id are required to update a field")

        await self.farms.require_member(user_id, farm_id)
        if await self.get_by_id(user_id, farm_id, field_id) is None:
            raise LookupError("Field not found or does not belong to this farm")

        update = {k: v for k, v in data.items() if k not in PROTECTED_FIELDS}
        if "acres" in update:
            acres = update["acres"]
            if isinstance(acres, bool) or not isinstance(acres, (int, float)) or acres <= 0:
                raise ValueError("Field acres must be a positive number")
        update["updatedAt"] = datetime.now(UTC)

        await self.store.set(FIELDS, field_id, update, merge=True)
        return await self.get_by_id(user_id, farm_id, field_id)

    async def delete(self, user_id: str, farm_id: str, field_id: str) -> bool:
        if not user_id or not farm_id or not field_id:
            return False

        if await self.get_by_id(user_id, farm_id, field_id) is None:
            return False

        await self.store.delete(FIELDS, field_id)

        try:
            await self.store.update(
                FARMS, farm_id, {"updatedAt": datetime.now(UTC)}, array_remove={"fieldIds": [field_id]}
            )
        except DocumentStoreError as e:
            logger.warning("Failed to remove field %s from farm %s fieldIds: %s", field_id, farm_id, e)
        return True

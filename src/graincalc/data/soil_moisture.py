"""Soil moisture monitoring sites and their readings.

Readings are embedded in the site document and kept newest first.
"""

import logging
import uuid
from datetime import UTC, datetime

from graincalc.core.store import DocumentStore
from graincalc.core.values import normalize_timestamp
from graincalc.data.farms import FarmService
from graincalc.data.models import SOIL_MOISTURE_FIELDS, SoilMoistureField, SoilMoistureReading

logger = logging.getLogger(__name__)


def _sort_readings(readings: list[dict]) -> list[dict]:
    return sorted(readings, key=lambda r: r.get("date") or "", reverse=True)


class SoilMoistureService:
    def __init__(self, store: DocumentStore, farms: FarmService | None = None):
        self.store = store
        self.farms = farms or FarmService(store)

    async def get_all_fields(self, user_id: str, farm_id: str) -> list[SoilMoistureField]:
        if not user_id or not farm_id:
            logger.warning("No user_id or farm_id provided to SoilMoistureService.get_all_fields")
            return []
        if await self.farms.get_by_id(user_id, farm_id) is None:
            return []
        docs = await self.store.query(SOIL_MOISTURE_FIELDS, "farmId", "==", farm_id)
        return [SoilMoistureField.from_document(doc) for doc in docs]

    async def get_field_by_id(self, user_id: str, farm_id: str, field_id: str) -> SoilMoistureField | None:
        if not user_id or not farm_id or not field_id:
            return None
        if await self.farms.get_by_id(user_id, farm_id) is None:
            return None
        doc = await self.store.get(SOIL_MOISTURE_FIELDS, field_id)
        if doc is None or doc.get("farmId") != farm_id:
            return None
        return SoilMoistureField.from_document(doc)

    async def save_field(
        self, user_id: str, farm_id: str, name: str, field_id: str | None = None
    ) -> SoilMoistureField:
        """Create a monitoring site, or rename an existing one."""
        if not user_id or not farm_id:
            raise ValueError("user_id and farm_id are required to save a soil moisture field")
        if not name or not name.strip():
            raise ValueError("Field name is required")

        await self.farms.require_member(user_id, farm_id)
        now = datetime.now(UTC)

        if field_id:
            if await self.get_field_by_id(user_id, farm_id, field_id) is None:
                raise LookupError(f"Field with id {field_id} not found")
            await self.store.set(SOIL_MOISTURE_FIELDS, field_id, {"name": name.strip(), "updatedAt": now}, merge=True)
            return await self.get_field_by_id(user_id, farm_id, field_id)

        doc = await self.store.create(
            SOIL_MOISTURE_FIELDS,
            {"farmId": farm_id, "name": name.strip(), "readings": [], "createdAt": now, "updatedAt": now},
        )
        return SoilMoistureField.from_document(doc)

    async def delete_field(self, user_id: str, farm_id: str, field_id: str) -> bool:
        if await self.get_field_by_id(user_id, farm_id, field_id) is None:
            return False
        await self.store.delete(SOIL_MOISTURE_FIELDS, field_id)
        return True

    async def save_reading(self, user_id: str, farm_id: str, field_id: str, reading: dict) -> SoilMoistureReading:
        """Add a reading, or replace the reading with the same id."""
        site = await self.get_field_by_id(user_id, farm_id, field_id)
        if site is None:
            raise LookupError(f"Field with id {field_id} not found")

        saved = SoilMoistureReading.from_dict(
            {
                **reading,
                "id": reading.get("id") or uuid.uuid4().hex,
                "date": normalize_timestamp(reading.get("date")) or normalize_timestamp(datetime.now(UTC)),
            }
        )

        readings = [r.to_dict() for r in site.readings if r.id != saved.id]
        readings.append(saved.to_dict())
        await self.store.set(
            SOIL_MOISTURE_FIELDS,
            field_id,
            {"readings": _sort_readings(readings), "updatedAt": datetime.now(UTC)},
            merge=True,
        )
        return saved

    async def delete_reading(self, user_id: str, farm_id: str, field_id: str, reading_id: str) -> bool:
        site = await self.get_field_by_id(user_id, farm_id, field_id)
        if site is None or not any(r.id == reading_id for r in site.readings):
            return False

        readings = [r.to_dict() for r in site.readings if r.id != reading_id]
        await self.store.set(
            SOIL_MOISTURE_FIELDS, field_id, {"readings": readings, "updatedAt": datetime.now(UTC)}, merge=True
        )
        return True

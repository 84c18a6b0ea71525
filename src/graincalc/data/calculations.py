"""Grain drying calculations recorded against a field.

A calculation is one load: wet weight and moisture in, dry weight and
bushels out. If the caller doesn't supply the calculated values they are
filled in with ``graincalc.analysis.shrink``.
"""

import logging
from datetime import UTC, datetime

from graincalc.analysis.shrink import calculate_shrink
from graincalc.core.client import DocumentStoreError
from graincalc.core.store import DocumentStore
from graincalc.core.values import parse_timestamp
from graincalc.data.farms import FarmService
from graincalc.data.fields import FieldService
from graincalc.data.models import CALCULATIONS, DEFAULT_TARGET_MOISTURE, FIELDS, Calculation

logger = logging.getLogger(__name__)

PROTECTED_FIELDS = ("farmId", "fieldId", "userId", "createdAt")

CALCULATED_FIELDS = ("calculatedWetBushels", "calculatedDryWeight", "calculatedDryBushels")


def _parse_date(value) -> datetime:
    """Turn a caller-supplied date into a datetime, defaulting to now."""
    if isinstance(value, datetime):
        return value
    if isinstance(value, str) and value:
        parsed = parse_timestamp(value)
        if parsed is None:
            raise ValueError(f"Invalid calculation date: {value!r}")
        return parsed
    return datetime.now(UTC)


def _with_shrink(data: dict) -> dict:
    """Fill in calculated_* values when inputs are present and outputs are not."""
    if any(data.get(key) for key in CALCULATED_FIELDS):
        return data
    if not data.get("wetWeight") or not data.get("moistureContent"):
        return data

    result = calculate_shrink(
        wet_weight=data["wetWeight"],
        moisture=data["moistureContent"],
        target_moisture=data["targetMoisture"],
        manual_shrink_factor=data.get("manualShrinkFactor") or 0.0,
    )
    return {
        **data,
        "calculatedWetBushels": result.calculated_wet_bushels,
        "calculatedDryWeight": result.calculated_dry_weight,
        "calculatedDryBushels": result.calculated_dry_bushels,
    }


class CalculationService:
    def __init__(self, store: DocumentStore, farms: FarmService | None = None, fields: FieldService | None = None):
        self.store = store
        self.farms = farms or FarmService(store)
        self.fields = fields or FieldService(store, self.farms)

    async def get_all(self, user_id: str, farm_id: str, field_id: str) -> list[Calculation]:
        """All calculations for a field, newest first."""
        if not user_id or not farm_id or not field_id:
            logger.warning("No user_id, farm_id, or field_id provided to CalculationService.get_all")
            return []

        if await self.farms.get_by_id(user_id, farm_id) is None:
            logger.warning("User %s does not have access to farm %s", user_id, farm_id)
            return []

        # Single equality filter (no composite index needed); sort client-side
        docs = await self.store.query(CALCULATIONS, "fieldId", "==", field_id)
        calculations = [Calculation.from_document(doc) for doc in docs if doc.get("farmId") == farm_id]
        calculations.sort(key=lambda c: c.created_at or c.date or "", reverse=True)
        return calculations

    async def get_by_id(self, user_id: str, farm_id: str, field_id: str, calculation_id: str) -> Calculation | None:
        if not user_id or not farm_id or not field_id or not calculation_id:
            return None

        if await self.farms.get_by_id(user_id, farm_id) is None:
            return None

        doc = await self.store.get(CALCULATIONS, calculation_id)
        if doc is None or doc.get("farmId") != farm_id or doc.get("fieldId") != field_id:
            return None
        return Calculation.from_document(doc)

    async def create(self, user_id: str, farm_id: str, field_id: str, data: dict) -> Calculation:
        if not user_id or not farm_id or not field_id:
            raise ValueError("user_id, farm_id, and field_id are required to create a calculation")

        await self.farms.require_member(user_id, farm_id)
        if await self.fields.get_by_id(user_id, farm_id, field_id) is None:
            raise LookupError("Field not found or does not belong to this farm")

        now = datetime.now(UTC)
        record = _with_shrink(
            {
                "farmId": farm_id,
                "fieldId": field_id,
                "userId": user_id,
                "date": _parse_date(data.get("date")),
                "operator": data.get("operator") or "",
                "loadNumber": data.get("loadNumber") or "",
                "wetWeight": data.get("wetWeight") or 0,
                "moistureContent": data.get("moistureContent") or 0,
                "targetMoisture": data.get("targetMoisture") or DEFAULT_TARGET_MOISTURE,
                "manualShrinkFactor": data.get("manualShrinkFactor") or 0,
                "calculatedWetBushels": data.get("calculatedWetBushels") or 0,
                "calculatedDryWeight": data.get("calculatedDryWeight") or 0,
                "calculatedDryBushels": data.get("calculatedDryBushels") or 0,
                "createdAt": now,
                "updatedAt": now,
            }
        )
        doc = await self.store.create(CALCULATIONS, record)

        # Keep a summary on the field so the field view doesn't need a second query
        summary = {"id": doc.id, **{k: v for k, v in record.items() if k not in ("farmId", "fieldId", "userId")}}
        try:
            await self.store.update(FIELDS, field_id, {"updatedAt": now}, array_union={"calculations": [summary]})
        except DocumentStoreError as e:
            logger.warning("Failed to append calculation %s to field %s: %s", doc.id, field_id, e)

        return Calculation.from_document(doc)

    async def update(
        self, user_id: str, farm_id: str, field_id: str, calculation_id: str, data: dict
    ) -> Calculation | None:
        if not user_id or not farm_id or not field_id or not calculation_id:
            raise ValueError("user_id, farm_id, field_id, and calculation_id are required to update a calculation")

        await self.farms.require_member(user_id, farm_id)
        if await self.get_by_id(user_id, farm_id, field_id, calculation_id) is None:
            raise LookupError("Calculation not found or does not belong to this farm and field")

        update = {k: v for k, v in data.items() if k not in PROTECTED_FIELDS}
        if update.get("date"):
            update["date"] = _parse_date(update["date"])
        update["updatedAt"] = datetime.now(UTC)

        await self.store.set(CALCULATIONS, calculation_id, update, merge=True)
        return await self.get_by_id(user_id, farm_id, field_id, calculation_id)

    async def delete(self, user_id: str, farm_id: str, field_id: str, calculation_id: str) -> bool:
        if not user_id or not farm_id or not field_id or not calculation_id:
            return False

        if await self.get_by_id(user_id, farm_id, field_id, calculation_id) is None:
            return False

        await self.store.delete(CALCULATIONS, calculation_id)
        return True

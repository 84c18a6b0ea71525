"""Record types for everything stored in the farm database.

Documents are stored with camelCase keys (``ownerId``, ``memberIds``,
``createdAt``). Each record knows how to build itself from a ``Document``
and tolerates missing optional fields. Timestamps are normalised to
ISO-8601 strings on the way in.
"""

from dataclasses import dataclass
from typing import Any

from graincalc.core.store import Document
from graincalc.core.values import normalize_timestamp

# Collection names
FARMS = "Farms"
FIELDS = "Fields"
CALCULATIONS = "calculations"
EQUIPMENT = "Equipment"
SOIL_MOISTURE_FIELDS = "SoilMoistureFields"
USERS = "Users"

DEFAULT_TARGET_MOISTURE = 15.5


def _float(value: Any, default: float = 0.0) -> float:
    try:
        return float(value) if value is not None else default
    except (TypeError, ValueError):
        return default


def _ids(value: Any) -> tuple[str, ...]:
    if not isinstance(value, (list, tuple)):
        return ()
    return tuple(str(v) for v in value)


@dataclass(frozen=True)
class Farm:
    id: str
    name: str
    owner_id: str
    member_ids: tuple[str, ...] = ()
    field_ids: tuple[str, ...] = ()
    created_at: str | None = None
    updated_at: str | None = None

    @classmethod
    def from_document(cls, doc: Document) -> "Farm":
        data = doc.data
        return cls(
            id=doc.id,
            name=str(data.get("name") or ""),
            owner_id=str(data.get("ownerId") or ""),
            member_ids=_ids(data.get("memberIds")),
            field_ids=_ids(data.get("fieldIds")),
            created_at=normalize_timestamp(data.get("createdAt")),
            updated_at=normalize_timestamp(data.get("updatedAt")),
        )

    def is_member(self, user_id: str) -> bool:
        return user_id in self.member_ids

    def is_owner(self, user_id: str) -> bool:
        return self.owner_id == user_id


@dataclass(frozen=True)
class Field:
    id: str
    farm_id: str
    name: str
    acres: float
    # Lightweight summaries of recent calculations, newest last
    calculations: tuple[dict, ...] = ()
    created_at: str | None = None
    updated_at: str | None = None

    @classmethod
    def from_document(cls, doc: Document) -> "Field":
        data = doc.data
        return cls(
            id=doc.id,
            farm_id=data.get("farmId") or "",
            name=data.get("name") or "",
            acres=_float(data.get("acres")),
            calculations=tuple(data.get("calculations") or ()),
            created_at=normalize_timestamp(data.get("createdAt")),
            updated_at=normalize_timestamp(data.get("updatedAt")),
        )


@dataclass(frozen=True)
class Calculation:
    id: str
    farm_id: str
    field_id: str
    user_id: str
    date: str | None = None
    operator: str = ""
    load_number: str = ""
    wet_weight: float = 0.0
    moisture_content: float = 0.0
    target_moisture: float = DEFAULT_TARGET_MOISTURE
    manual_shrink_factor: float = 0.0
    calculated_wet_bushels: float = 0.0
    calculated_dry_weight: float = 0.0
    calculated_dry_bushels: float = 0.0
    created_at: str | None = None
    updated_at: str | None = None

    @classmethod
    def from_document(cls, doc: Document) -> "Calculation":
        data = doc.data
        return cls(
            id=doc.id,
            farm_id=data.get("farmId") or "",
            field_id=data.get("fieldId") or "",
            user_id=data.get("userId") or "",
            date=normalize_timestamp(data.get("date")),
            operator=data.get("operator") or "",
            load_number=str(data.get("loadNumber") or ""),
            wet_weight=_float(data.get("wetWeight")),
            moisture_content=_float(data.get("moistureContent")),
            target_moisture=_float(data.get("targetMoisture"), DEFAULT_TARGET_MOISTURE),
            manual_shrink_factor=_float(data.get("manualShrinkFactor")),
            calculated_wet_bushels=_float(data.get("calculatedWetBushels")),
            calculated_dry_weight=_float(data.get("calculatedDryWeight")),
            calculated_dry_bushels=_float(data.get("calculatedDryBushels")),
            created_at=normalize_timestamp(data.get("createdAt")),
            updated_at=normalize_timestamp(data.get("updatedAt")),
        )


@dataclass(frozen=True)
class Equipment:
    id: str
    farm_id: str
    name: str
    kind: str = ""
    total_hours: float = 0.0
    notes: str = ""
    created_at: str | None = None
    updated_at: str | None = None

    @classmethod
    def from_document(cls, doc: Document) -> "Equipment":
        data = doc.data
        return cls(
            id=doc.id,
            farm_id=data.get("farmId") or "",
            name=data.get("name") or "",
            kind=data.get("kind") or "",
            total_hours=_float(data.get("totalHours")),
            notes=data.get("notes") or "",
            created_at=normalize_timestamp(data.get("createdAt")),
            updated_at=normalize_timestamp(data.get("updatedAt")),
        )


@dataclass(frozen=True)
class SoilMoistureReading:
    id: str
    date: str | None
    moisture: float
    depth: float | None = None
    notes: str = ""

    @classmethod
    def from_dict(cls, data: dict) -> "SoilMoistureReading":
        depth = data.get("depth")
        return cls(
            id=str(data.get("id") or ""),
            date=normalize_timestamp(data.get("date")),
            moisture=_float(data.get("moisture")),
            depth=_float(depth) if depth is not None else None,
            notes=data.get("notes") or "",
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "date": self.date,
            "moisture": self.moisture,
            "depth": self.depth,
            "notes": self.notes,
        }


@dataclass(frozen=True)
class SoilMoistureField:
    id: str
    farm_id: str
    name: str
    # Newest first
    readings: tuple[SoilMoistureReading, ...] = ()
    created_at: str | None = None
    updated_at: str | None = None

    @classmethod
    def from_document(cls, doc: Document) -> "SoilMoistureField":
        data = doc.data
        return cls(
            id=doc.id,
            farm_id=data.get("farmId") or "",
            name=data.get("name") or "",
            readings=tuple(SoilMoistureReading.from_dict(r) for r in data.get("readings") or ()),
            created_at=normalize_timestamp(data.get("createdAt")),
            updated_at=normalize_timestamp(data.get("updatedAt")),
        )


@dataclass(frozen=True)
class UserProfile:
    id: str
    email: str
    first_name: str | None = None
    last_name: str | None = None
    photo_url: str | None = None
    created_at: str | None = None
    updated_at: str | None = None

    @classmethod
    def from_document(cls, doc: Document) -> "UserProfile":
        data = doc.data
        return cls(
            id=doc.id,
            email=data.get("email") or "",
            first_name=data.get("firstName"),
            last_name=data.get("lastName"),
            photo_url=data.get("photoURL"),
            created_at=normalize_timestamp(data.get("createdAt")),
            updated_at=normalize_timestamp(data.get("updatedAt")),
        )

    @property
    def display_name(self) -> str:
        parts = [p for p in (self.first_name, self.last_name) if p]
        return " ".join(parts) or self.email

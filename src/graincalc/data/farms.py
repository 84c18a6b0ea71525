"""Farm records with owner/member access control.

Every farm has exactly one owner, who is always in ``memberIds``.
Members can read a farm and work with its fields, equipment and
calculations; only the owner can rename, delete, or change membership.
"""

import logging
from datetime import UTC, datetime

from graincalc.core.store import DocumentStore
from graincalc.data.models import FARMS, Farm

logger = logging.getLogger(__name__)

# Keys that update() never writes
PROTECTED_FIELDS = ("ownerId", "memberIds", "createdAt")


class FarmAccessError(PermissionError):
    """Raised when a user acts on a farm they don't own or belong to."""

    pass


class FarmService:
    def __init__(self, store: DocumentStore):
        self.store = store

    async def get_all(self, user_id: str) -> list[Farm]:
        """Farms the user is a member of, plus any they own but aren't listed on."""
        if not user_id:
            logger.warning("No user_id provided to FarmService.get_all")
            return []

        farms = [Farm.from_document(doc) for doc in await self.store.query(FARMS, "memberIds", "array-contains", user_id)]
        seen = {farm.id for farm in farms}
        for doc in await self.store.query(FARMS, "ownerId", "==", user_id):
            if doc.id not in seen:
                farms.append(Farm.from_document(doc))
                seen.add(doc.id)
        logger.debug("FarmService.get_all(%s) -> %d farms", user_id, len(farms))
        return farms

    async def get_owned(self, user_id: str) -> list[Farm]:
        if not user_id:
            logger.warning("No user_id provided to FarmService.get_owned")
            return []
        return [Farm.from_document(doc) for doc in await self.store.query(FARMS, "ownerId", "==", user_id)]

    async def get_by_id(self, user_id: str, farm_id: str) -> Farm | None:
        """Get a farm, or None if it doesn't exist or the user isn't a member."""
        if not user_id or not farm_id:
            return None

        doc = await self.store.get(FARMS, farm_id)
        if doc is None:
            return None
        farm = Farm.from_document(doc)
        return farm if farm.is_member(user_id) else None

    async def require_member(self, user_id: str, farm_id: str) -> Farm:
        """Like get_by_id, but raises FarmAccessError instead of returning None."""
        farm = await self.get_by_id(user_id, farm_id)
        if farm is None:
            raise FarmAccessError("User does not have access to this farm")
        return farm

    async def _require_owner(self, user_id: str, farm_id: str, action: str) -> Farm:
        farm = await self.get_by_id(user_id, farm_id)
        if farm is None or not farm.is_owner(user_id):
            raise FarmAccessError(f"Only the farm owner can {action}")
        return farm

    async def create(self, user_id: str, name: str) -> Farm:
        """Create a farm owned by user_id. The owner is its first member."""
        if not user_id:
            raise ValueError("user_id is required to create a farm")
        if not name or not name.strip():
            raise ValueError("Farm name is required")

        now = datetime.now(UTC)
        data = {
            "name": name.strip(),
            "ownerId": user_id,
            "memberIds": [user_id],
            "fieldIds": [],
            "createdAt": now,
            "updatedAt": now,
        }
        doc = await self.store.create(FARMS, data)
        logger.info("Created farm %s (%s) for %s", doc.id, data["name"], user_id)
        return Farm.from_document(doc)

    async def update(self, user_id: str, farm_id: str, data: dict) -> Farm | None:
        """Update farm fields (owner only). Ownership and membership are not writable here."""
        if not user_id or not farm_id:
            raise ValueError("user_id and farm_id are required to update a farm")

        await self._require_owner(user_id, farm_id, "update the farm")

        update = {k: v for k, v in data.items() if k not in PROTECTED_FIELDS}
        if "name" in update:
            if not isinstance(update["name"], str) or not update["name"].strip():
                raise ValueError("Farm name is required")
            update["name"] = update["name"].strip()
        update["updatedAt"] = datetime.now(UTC)

        await self.store.update(FARMS, farm_id, update)
        return await self.get_by_id(user_id, farm_id)

    async def delete(self, user_id: str, farm_id: str) -> bool:
        """Delete a farm (owner only). Returns False if the farm isn't visible to the user."""
        if not user_id or not farm_id:
            return False

        farm = await self.get_by_id(user_id, farm_id)
        if farm is None:
            return False
        if not farm.is_owner(user_id):
            raise FarmAccessError("Only the farm owner can delete the farm")

        await self.store.delete(FARMS, farm_id)
        logger.info("Deleted farm %s", farm_id)
        return True

    async def add_member(self, user_id: str, farm_id: str, member_id: str) -> Farm | None:
        if not user_id or not farm_id or not member_id:
            raise ValueError("user_id, farm_id, and member_id are required")
        if user_id == member_id:
            raise ValueError("Cannot add yourself as a member (you are already the owner)")

        farm = await self._require_owner(user_id, farm_id, "add members")
        if farm.is_member(member_id):
            raise ValueError("User is already a member of this farm")

        await self.store.update(
            FARMS, farm_id, {"updatedAt": datetime.now(UTC)}, array_union={"memberIds": [member_id]}
        )
        return await self.get_by_id(user_id, farm_id)

    async def remove_member(self, user_id: str, farm_id: str, member_id: str) -> Farm | None:
        if not user_id or not farm_id or not member_id:
            raise ValueError("user_id, farm_id, and member_id are required")
        if user_id == member_id:
            raise ValueError("Cannot remove the owner from the farm")

        farm = await self._require_owner(user_id, farm_id, "remove members")
        if not farm.is_member(member_id):
            raise ValueError("User is not a member of this farm")

        await self.store.update(
            FARMS, farm_id, {"updatedAt": datetime.now(UTC)}, array_remove={"memberIds": [member_id]}
        )
        return await self.get_by_id(user_id, farm_id)

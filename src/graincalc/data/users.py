"""User profiles, keyed by auth user id. Used to look users up by email."""

import logging
from datetime import UTC, datetime

from graincalc.core.store import DocumentStore
from graincalc.data.models import USERS, UserProfile

logger = logging.getLogger(__name__)


def normalize_email(email: str) -> str:
    return email.strip().lower()


class UserService:
    def __init__(self, store: DocumentStore):
        self.store = store

    async def create_or_update(self, user_id: str, email: str, **extra) -> UserProfile:
        """Upsert a profile on signup/login. createdAt is only set on first write.

        Extra keyword fields (firstName, lastName, photoURL, ...) are stored as
        given; None values are dropped.
        """
        if not user_id or not email:
            raise ValueError("user_id and email are required")

        now = datetime.now(UTC)
        data = {
            "email": normalize_email(email),
            "userId": user_id,
            **{k: v for k, v in extra.items() if v is not None},
            "updatedAt": now,
        }
        if await self.store.get(USERS, user_id) is None:
            data["createdAt"] = now

        await self.store.set(USERS, user_id, data, merge=True)
        return await self.get_by_id(user_id)

    async def update(self, user_id: str, data: dict) -> UserProfile | None:
        if not user_id or data is None:
            raise ValueError("user_id and data are required")

        update = {k: v for k, v in data.items() if v is not None and k != "createdAt"}
        if "email" in update:
            update["email"] = normalize_email(update["email"])
        update["updatedAt"] = datetime.now(UTC)

        await self.store.set(USERS, user_id, update, merge=True)
        return await self.get_by_id(user_id)

    async def get_by_id(self, user_id: str) -> UserProfile | None:
        if not user_id:
            return None
        doc = await self.store.get(USERS, user_id)
        return UserProfile.from_document(doc) if doc else None

    async def find_by_email(self, email: str) -> UserProfile | None:
        if not email:
            return None
        docs = await self.store.query(USERS, "email", "==", normalize_email(email))
        return UserProfile.from_document(docs[0]) if docs else None

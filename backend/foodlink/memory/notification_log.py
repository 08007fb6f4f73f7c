from __future__ import annotations

from datetime import datetime, timezone
from typing import List

from ..models.notification import Notification
from ..schemas.notification import notification_document
from ..store import MongoStore


class NotificationLog:
    """Append-only per-user messages shown on the profile page."""

    def __init__(self, store: MongoStore) -> None:
        self.store = store

    async def notify(self, user_id: str, message: str, donation_id: str | None = None) -> Notification:
        entry = {
            "user_id": user_id,
            "message": message,
            "donation_id": donation_id,
            "created_at": datetime.now(timezone.utc),
        }
        stored = await self.store.create(entry)
        return Notification(**notification_document(stored))

    async def history(self, user_id: str, limit: int = 50) -> List[Notification]:
        entries = await self.store.find_many({"user_id": user_id}, sort=[("created_at", -1)], limit=limit)
        return [Notification(**notification_document(entry)) for entry in entries]

    async def ensure_indexes(self) -> None:
        await self.store.ensure_index([("user_id", 1), ("created_at", -1)])

from __future__ import annotations

from typing import Any, Dict


def notification_document(entry: Dict[str, Any]) -> Dict[str, Any]:
    donation_id = entry.get("donation_id")
    return {
        "_id": str(entry.get("_id")),
        "user_id": str(entry.get("user_id")),
        "message": entry.get("message"),
        "donation_id": str(donation_id) if donation_id is not None else None,
        "created_at": entry.get("created_at"),
    }

from __future__ import annotations

from typing import Any, Dict


def _str_or_none(value: Any) -> str | None:
    return str(value) if value is not None else None


def donation_document(donation: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "_id": str(donation.get("_id")),
        "food_name": donation.get("food_name"),
        "quantity": donation.get("quantity"),
        "category": donation.get("category"),
        "district": donation.get("district"),
        "address": donation.get("address"),
        "meal": donation.get("meal"),
        "donor_name": donation.get("donor_name"),
        "phone_number": donation.get("phone_number"),
        "donor_id": _str_or_none(donation.get("donor_id")),
        "donor_email": donation.get("donor_email"),
        "status": donation.get("status", "Pending"),
        "delivery_method": donation.get("delivery_method", "self_pickup"),
        "delivery_charge": donation.get("delivery_charge"),
        "pickup_location": donation.get("pickup_location"),
        "drop_location": donation.get("drop_location"),
        "delivery_status": donation.get("delivery_status", "not_assigned"),
        "accepted_by": _str_or_none(donation.get("accepted_by")),
        "ngo_email": donation.get("ngo_email"),
        "delivery_agent_id": _str_or_none(donation.get("delivery_agent_id")),
        "created_at": donation.get("created_at"),
        "updated_at": donation.get("updated_at"),
    }

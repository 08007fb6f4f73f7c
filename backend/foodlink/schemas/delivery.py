from __future__ import annotations

from typing import Any, Dict


def pending_document(ticket: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "_id": str(ticket.get("_id")),
        "donation_id": str(ticket.get("donation_id")),
        "delivery_charge": ticket.get("delivery_charge"),
        "pickup_location": ticket.get("pickup_location"),
        "drop_location": ticket.get("drop_location"),
        "status": ticket.get("status", "pending"),
        "food_name": ticket.get("food_name"),
        "quantity": ticket.get("quantity"),
        "district": ticket.get("district"),
        "donor_email": ticket.get("donor_email"),
        "created_at": ticket.get("created_at"),
    }


def accepted_document(record: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "_id": str(record.get("_id")),
        "donation_id": str(record.get("donation_id")),
        "pending_delivery_id": str(record.get("pending_delivery_id")),
        "agent_id": str(record.get("agent_id")),
        "agent_email": record.get("agent_email"),
        "delivery_charge": record.get("delivery_charge"),
        "pickup_location": record.get("pickup_location"),
        "drop_location": record.get("drop_location"),
        "food_name": record.get("food_name"),
        "quantity": record.get("quantity"),
        "donor_email": record.get("donor_email"),
        "status": record.get("status", "accepted_delivery"),
        "accepted_at": record.get("accepted_at"),
    }

from __future__ import annotations

from datetime import datetime
from typing import List, Literal

from pydantic import BaseModel, ConfigDict, Field


class PendingDelivery(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(alias="_id")
    donation_id: str
    delivery_charge: float
    pickup_location: str
    drop_location: str
    status: Literal["pending"] = "pending"
    food_name: str | None = None
    quantity: str | None = None
    district: str | None = None
    donor_email: str | None = None
    created_at: datetime | None = None


class AcceptedDelivery(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(alias="_id")
    donation_id: str
    pending_delivery_id: str
    agent_id: str
    agent_email: str | None = None
    delivery_charge: float
    pickup_location: str
    drop_location: str
    food_name: str | None = None
    quantity: str | None = None
    donor_email: str | None = None
    status: Literal["accepted_delivery"] = "accepted_delivery"
    accepted_at: datetime | None = None


class PendingDeliveryList(BaseModel):
    pending_deliveries: List[PendingDelivery]


class AcceptedDeliveryList(BaseModel):
    accepted_deliveries: List[AcceptedDelivery]

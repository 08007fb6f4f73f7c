from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import AliasChoices, BaseModel, ConfigDict, Field


DonationStatus = Literal["Pending", "Accepted", "Collected", "pending_delivery", "in_transit", "Delivered"]
DeliveryMethod = Literal["self_pickup", "assigned_delivery"]
DeliveryStatus = Literal["not_assigned", "pending_delivery", "accepted_delivery"]


class DonationCreate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    food_name: str = Field(min_length=1, validation_alias=AliasChoices("food_name", "foodname"))
    quantity: str = Field(min_length=1)
    category: str = Field(min_length=1)
    district: str = Field(min_length=1)
    address: str = Field(min_length=1)
    meal: str | None = None
    donor_name: str | None = Field(default=None, validation_alias=AliasChoices("donor_name", "name"))
    phone_number: str | None = Field(default=None, validation_alias=AliasChoices("phone_number", "phoneno"))


class Donation(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(alias="_id")
    food_name: str
    quantity: str
    category: str
    district: str
    address: str
    meal: str | None = None
    donor_name: str | None = None
    phone_number: str | None = None
    donor_id: str
    donor_email: str | None = None
    status: DonationStatus = "Pending"
    delivery_method: DeliveryMethod = "self_pickup"
    delivery_charge: float | None = None
    pickup_location: str | None = None
    drop_location: str | None = None
    delivery_status: DeliveryStatus = "not_assigned"
    accepted_by: str | None = None
    ngo_email: str | None = None
    delivery_agent_id: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class DonationReview(BaseModel):
    status: Literal["Accepted"] = "Accepted"


class DeliveryMethodUpdate(BaseModel):
    delivery_method: DeliveryMethod
    delivery_charge: float | None = None
    pickup_location: str | None = None
    drop_location: str | None = None

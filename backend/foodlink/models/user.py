from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, EmailStr, Field


class Role(str, Enum):
    DONOR = "DONOR"
    NGO = "NGO"
    DELIVERY = "DELIVERY"


@dataclass(frozen=True)
class Actor:
    """Authenticated caller handed to every lifecycle operation."""

    id: str
    role: Role
    email: str | None = None


class UserCreate(BaseModel):
    email: EmailStr
    password: str = Field(min_length=8, max_length=72)
    name: str
    role: Role = Field(default=Role.DONOR)
    address: str | None = None
    phone_number: str | None = None


class UserPublic(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(alias="_id")
    email: EmailStr
    name: str
    role: Role
    address: str | None = None
    phone_number: str | None = None
    created_at: datetime

    def as_actor(self) -> Actor:
        return Actor(id=self.id, role=self.role, email=self.email)


class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"


class AuthResponse(Token):
    user: UserPublic
    message: str = "Authenticated"

from __future__ import annotations

from datetime import datetime
from typing import List

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from .donation import Donation
from .user import UserPublic


class Notification(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(alias="_id")
    user_id: str
    message: str
    donation_id: str | None = None
    created_at: datetime


class Profile(BaseModel):
    user: UserPublic
    donations: List[Donation]
    notifications: List[Notification]


class ContactMessage(BaseModel):
    name: str = Field(min_length=1)
    email: EmailStr
    message: str = Field(min_length=1)


class ChatQuery(BaseModel):
    question: str


class ChatAnswer(BaseModel):
    answer: str

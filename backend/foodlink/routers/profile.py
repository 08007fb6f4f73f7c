from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends, Query

from ..models.notification import Notification, Profile
from ..models.user import UserPublic
from ..routers.auth import get_current_user
from ..services.lifecycle import DonationLifecycleCoordinator, get_coordinator

router = APIRouter(tags=["profile"])


@router.get("/profile", response_model=Profile)
async def profile(
    user: UserPublic = Depends(get_current_user),
    coordinator: DonationLifecycleCoordinator = Depends(get_coordinator),
) -> Profile:
    actor = user.as_actor()
    return Profile(
        user=user,
        donations=await coordinator.profile_donations(actor),
        notifications=await coordinator.notifications_for(actor),
    )


@router.get("/notifications", response_model=List[Notification])
async def notifications(
    limit: int = Query(default=50, ge=1, le=200),
    user: UserPublic = Depends(get_current_user),
    coordinator: DonationLifecycleCoordinator = Depends(get_coordinator),
) -> List[Notification]:
    return await coordinator.notifications_for(user.as_actor(), limit=limit)

from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends, status

from ..models.donation import Donation, DonationCreate
from ..models.user import Actor
from ..routers.auth import get_actor
from ..services.lifecycle import DonationLifecycleCoordinator, get_coordinator

router = APIRouter(prefix="/donations", tags=["donations"])


@router.post("/", response_model=Donation, status_code=status.HTTP_201_CREATED)
async def create_donation(
    payload: DonationCreate,
    actor: Actor = Depends(get_actor),
    coordinator: DonationLifecycleCoordinator = Depends(get_coordinator),
) -> Donation:
    return await coordinator.record_donation(payload.model_dump(), actor)


@router.get("/mine", response_model=List[Donation])
async def my_donations(
    actor: Actor = Depends(get_actor),
    coordinator: DonationLifecycleCoordinator = Depends(get_coordinator),
) -> List[Donation]:
    return await coordinator.donations_for_donor(actor)

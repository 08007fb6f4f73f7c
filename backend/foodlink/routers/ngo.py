from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends

from ..models.donation import DeliveryMethodUpdate, Donation, DonationReview
from ..models.user import Actor
from ..routers.auth import get_actor
from ..services.lifecycle import DonationLifecycleCoordinator, get_coordinator

router = APIRouter(prefix="/ngo", tags=["ngo"])


@router.get("/donations", response_model=List[Donation])
async def donations_for_review(
    actor: Actor = Depends(get_actor),
    coordinator: DonationLifecycleCoordinator = Depends(get_coordinator),
) -> List[Donation]:
    return await coordinator.donations_for_review(actor)


@router.post("/donations/{donation_id}/review", response_model=Donation)
async def review_donation(
    donation_id: str,
    payload: DonationReview,
    actor: Actor = Depends(get_actor),
    coordinator: DonationLifecycleCoordinator = Depends(get_coordinator),
) -> Donation:
    return await coordinator.review_donation(donation_id, payload.status, actor)


@router.get("/dashboard", response_model=List[Donation])
async def dashboard(
    actor: Actor = Depends(get_actor),
    coordinator: DonationLifecycleCoordinator = Depends(get_coordinator),
) -> List[Donation]:
    """Accepted donations that no delivery agent has claimed yet."""
    return await coordinator.ngo_dashboard(actor)


@router.post("/donations/{donation_id}/delivery-method", response_model=Donation)
async def update_delivery_method(
    donation_id: str,
    payload: DeliveryMethodUpdate,
    actor: Actor = Depends(get_actor),
    coordinator: DonationLifecycleCoordinator = Depends(get_coordinator),
) -> Donation:
    return await coordinator.set_delivery_method(
        donation_id,
        payload.delivery_method,
        actor,
        charge=payload.delivery_charge,
        pickup=payload.pickup_location,
        drop=payload.drop_location,
    )

from __future__ import annotations

from fastapi import APIRouter, Depends, Query, status

from ..models.delivery import AcceptedDelivery, AcceptedDeliveryList, PendingDeliveryList
from ..models.user import Actor
from ..routers.auth import get_actor
from ..services.lifecycle import DonationLifecycleCoordinator, get_coordinator

router = APIRouter(prefix="/delivery", tags=["delivery"])


@router.get("/pending", response_model=PendingDeliveryList)
async def pending_deliveries(
    district: str | None = Query(default=None),
    actor: Actor = Depends(get_actor),
    coordinator: DonationLifecycleCoordinator = Depends(get_coordinator),
) -> PendingDeliveryList:
    return PendingDeliveryList(pending_deliveries=await coordinator.list_pending(actor, district=district))


@router.get("/accepted", response_model=AcceptedDeliveryList)
async def accepted_deliveries(
    agent_id: str | None = Query(default=None),
    actor: Actor = Depends(get_actor),
    coordinator: DonationLifecycleCoordinator = Depends(get_coordinator),
) -> AcceptedDeliveryList:
    return AcceptedDeliveryList(accepted_deliveries=await coordinator.list_accepted(actor, agent_id=agent_id))


@router.post(
    "/pending/{pending_id}/accept",
    response_model=AcceptedDelivery,
    status_code=status.HTTP_201_CREATED,
)
async def accept_delivery(
    pending_id: str,
    actor: Actor = Depends(get_actor),
    coordinator: DonationLifecycleCoordinator = Depends(get_coordinator),
) -> AcceptedDelivery:
    return await coordinator.accept_delivery(pending_id, actor)

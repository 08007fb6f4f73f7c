from __future__ import annotations

import asyncio
from dataclasses import dataclass
from datetime import datetime, timezone
from numbers import Real
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Mapping, Optional, Set

from fastapi import Request
from loguru import logger
from motor.motor_asyncio import AsyncIOMotorDatabase
from pydantic import ValidationError as SchemaError

from ..errors import AuthorizationError, NotFoundError, DependencyError, ValidationError
from ..memory.notification_log import NotificationLog
from ..models.delivery import AcceptedDelivery, PendingDelivery
from ..models.donation import Donation, DonationCreate
from ..models.notification import Notification
from ..models.user import Actor, Role
from ..schemas.delivery import accepted_document, pending_document
from ..schemas.donation import donation_document
from ..store import MongoStore
from ..utils.notifications import EmailNotification, NotificationService, SmsNotification

PENDING = "Pending"
ACCEPTED = "Accepted"

SELF_PICKUP = "self_pickup"
ASSIGNED_DELIVERY = "assigned_delivery"
DELIVERY_METHODS = (SELF_PICKUP, ASSIGNED_DELIVERY)

NOT_ASSIGNED = "not_assigned"
PENDING_DELIVERY = "pending_delivery"
ACCEPTED_DELIVERY = "accepted_delivery"

TICKET_OPEN = "pending"

# Donation fields copied onto a pending-delivery ticket at queue time.
TICKET_SNAPSHOT_FIELDS = ("food_name", "quantity", "district", "donor_id", "donor_email", "phone_number")


@dataclass
class LifecycleEvent:
    type: str
    payload: Dict[str, Any]


EventSink = Callable[[LifecycleEvent], Awaitable[None]]


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _require_role(actor: Actor, allowed: Iterable[Role], action: str) -> None:
    allowed = tuple(allowed)
    if actor.role not in allowed:
        names = " or ".join(role.value for role in allowed)
        raise AuthorizationError(f"{action} requires the {names} role")


def _describe_schema_error(exc: SchemaError) -> str:
    parts = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error.get("loc", ()))
        parts.append(f"{location}: {error.get('msg')}" if location else str(error.get("msg")))
    return "; ".join(parts)


def _is_blank(value: Optional[str]) -> bool:
    return value is None or not str(value).strip()


def _delivery_summary(ticket: Mapping[str, Any]) -> str:
    return "\n".join(
        [
            f"Food name: {ticket.get('food_name') or 'N/A'}",
            f"Quantity: {ticket.get('quantity') or 'N/A'}",
            f"Pickup location: {ticket.get('pickup_location')}",
            f"Drop location: {ticket.get('drop_location')}",
            f"Delivery charge: {ticket.get('delivery_charge')}",
        ]
    )


class DonationLifecycleCoordinator:
    """Single authority over donation status and the delivery queues.

    A donation moves ``Pending -> Accepted`` on NGO review. The NGO then picks
    self pickup, or assigned delivery which queues exactly one pending-delivery
    ticket. A delivery agent consumes that ticket with one atomic
    delete-and-return, so of several racing agents only one ends up in the
    accepted-delivery ledger. Donor and NGO notifications are best-effort and
    never undo a transition.
    """

    def __init__(
        self,
        donations: MongoStore,
        pending: MongoStore,
        accepted: MongoStore,
        notifications: NotificationLog,
        notifier: NotificationService,
        event_sink: EventSink | None = None,
        ngo_contact_email: str | None = None,
    ) -> None:
        self.donations = donations
        self.pending = pending
        self.accepted = accepted
        self.notifications = notifications
        self.notifier = notifier
        self.event_sink = event_sink
        self.ngo_contact_email = ngo_contact_email
        self._tasks: Set[asyncio.Task] = set()

    @classmethod
    def from_database(
        cls,
        database: AsyncIOMotorDatabase,
        notifier: NotificationService,
        event_sink: EventSink | None = None,
        ngo_contact_email: str | None = None,
    ) -> "DonationLifecycleCoordinator":
        return cls(
            donations=MongoStore(database.get_collection("donations"), "donations"),
            pending=MongoStore(database.get_collection("pending_deliveries"), "pending_deliveries"),
            accepted=MongoStore(database.get_collection("accepted_deliveries"), "accepted_deliveries"),
            notifications=NotificationLog(MongoStore(database.get_collection("notifications"), "notifications")),
            notifier=notifier,
            event_sink=event_sink,
            ngo_contact_email=ngo_contact_email,
        )

    async def ensure_indexes(self) -> None:
        await self.pending.ensure_index([("donation_id", 1)], unique=True)
        await self.accepted.ensure_index([("agent_id", 1), ("accepted_at", -1)])
        await self.donations.ensure_index([("donor_id", 1)])
        await self.notifications.ensure_indexes()

    # -- transitions -------------------------------------------------------

    async def record_donation(self, fields: Mapping[str, Any], actor: Actor) -> Donation:
        _require_role(actor, [Role.DONOR], "Recording a donation")
        try:
            payload = DonationCreate.model_validate(dict(fields))
        except SchemaError as exc:
            raise ValidationError(_describe_schema_error(exc)) from exc

        now = _now()
        document = {
            **payload.model_dump(),
            "donor_id": actor.id,
            "donor_email": actor.email,
            "status": PENDING,
            "delivery_method": SELF_PICKUP,
            "delivery_charge": None,
            "pickup_location": None,
            "drop_location": None,
            "delivery_status": NOT_ASSIGNED,
            "accepted_by": None,
            "ngo_email": None,
            "delivery_agent_id": None,
            "created_at": now,
            "updated_at": now,
        }
        stored = await self.donations.create(document)
        donation_id = str(stored["_id"])
        logger.info("Donation {} recorded by donor {}", donation_id, actor.id)
        await self._emit("donation_recorded", {"donation_id": donation_id, "district": payload.district})
        return Donation(**donation_document(stored))

    async def review_donation(self, donation_id: str, status: str, actor: Actor) -> Donation:
        _require_role(actor, [Role.NGO], "Reviewing a donation")
        if status != ACCEPTED:
            raise ValidationError(f"Unsupported review status '{status}'")

        donation = await self._load_donation(donation_id)
        if donation["status"] == ACCEPTED and donation.get("accepted_by") == actor.id:
            return Donation(**donation_document(donation))
        if donation["status"] != PENDING:
            raise ValidationError(f"Donation {donation_id} is {donation['status']} and can no longer be reviewed")

        updated = await self.donations.update_by_id(
            donation_id,
            {"status": ACCEPTED, "accepted_by": actor.id, "ngo_email": actor.email, "updated_at": _now()},
            condition={"status": PENDING},
        )
        if updated is None:
            raise ValidationError(f"Donation {donation_id} was already reviewed by another NGO")

        logger.info("Donation {} accepted by NGO {}", donation_id, actor.id)
        await self._notify(
            updated.get("donor_id"),
            f"Your donation of {updated.get('food_name')} has been accepted by an NGO.",
            donation_id,
        )
        if updated.get("donor_email"):
            self._dispatch(
                self.notifier.send_email(
                    EmailNotification(
                        to=updated["donor_email"],
                        subject="Your donation has been accepted",
                        body=f"Your donation of {updated.get('food_name')} ({updated.get('quantity')}) "
                        "has been accepted by an NGO.",
                    )
                ),
                f"donation {donation_id} accepted email",
            )
        await self._emit("donation_reviewed", {"donation_id": donation_id, "status": ACCEPTED})
        return Donation(**donation_document(updated))

    async def set_delivery_method(
        self,
        donation_id: str,
        method: str,
        actor: Actor,
        charge: float | None = None,
        pickup: str | None = None,
        drop: str | None = None,
    ) -> Donation:
        _require_role(actor, [Role.NGO], "Choosing a delivery method")
        if method not in DELIVERY_METHODS:
            raise ValidationError(f"Invalid delivery method '{method}'")
        if method == ASSIGNED_DELIVERY:
            missing = [
                name
                for name, value in (("delivery_charge", charge), ("pickup_location", pickup), ("drop_location", drop))
                if value is None or (isinstance(value, str) and _is_blank(value))
            ]
            if missing:
                raise ValidationError(f"Assigned delivery requires {', '.join(missing)}")
            if isinstance(charge, bool) or not isinstance(charge, Real) or charge < 0:
                raise ValidationError("delivery_charge must be a non-negative number")

        donation = await self._load_donation(donation_id)
        if donation["status"] not in (PENDING, ACCEPTED):
            raise ValidationError(
                f"Donation {donation_id} is {donation['status']}; a delivery method can only be set on accepted donations"
            )
        if donation.get("delivery_status") == ACCEPTED_DELIVERY:
            raise ValidationError(f"Donation {donation_id} was already claimed by a delivery agent")
        if donation["status"] == PENDING:
            await self.review_donation(donation_id, ACCEPTED, actor)
            donation = await self._load_donation(donation_id)

        if method == ASSIGNED_DELIVERY:
            return await self._assign_delivery(donation, float(charge), pickup.strip(), drop.strip())
        return await self._switch_to_self_pickup(donation)

    async def _assign_delivery(self, donation: Dict[str, Any], charge: float, pickup: str, drop: str) -> Donation:
        donation_id = str(donation["_id"])
        now = _now()
        fields = {
            "delivery_method": ASSIGNED_DELIVERY,
            "delivery_charge": charge,
            "pickup_location": pickup,
            "drop_location": drop,
            "delivery_status": PENDING_DELIVERY,
        }
        unchanged = all(donation.get(key) == value for key, value in fields.items())

        ticket = {
            "delivery_charge": charge,
            "pickup_location": pickup,
            "drop_location": drop,
            "ngo_id": donation.get("accepted_by"),
            "ngo_email": donation.get("ngo_email"),
            "updated_at": now,
        }
        ticket.update({key: donation.get(key) for key in TICKET_SNAPSHOT_FIELDS})

        # Ticket first, donation second; a retry converges from either half.
        if donation.get("delivery_status") == PENDING_DELIVERY:
            queued = await self.pending.update_one({"donation_id": donation_id, "status": TICKET_OPEN}, ticket)
            if queued is None:
                # Claimed ticket; the ledger write may not have landed yet.
                raise ValidationError(f"Donation {donation_id} was already claimed by a delivery agent")
        else:
            queued = None
        if queued is None:
            queued = await self.pending.upsert_one(
                {"donation_id": donation_id},
                ticket,
                on_insert={"status": TICKET_OPEN, "created_at": now},
            )

        updated = await self.donations.update_by_id(
            donation_id,
            {**fields, "updated_at": now},
            condition={"delivery_status": {"$ne": ACCEPTED_DELIVERY}},
        )
        if updated is None:
            # An agent finished claiming the ticket before this write landed.
            updated = await self._load_donation(donation_id)

        if not unchanged:
            logger.info(
                "Donation {} queued for delivery as ticket {} (charge {})", donation_id, queued["_id"], charge
            )
            await self._notify(updated.get("donor_id"), "Delivery method set to: assigned delivery", donation_id)
            pending_count = await self.pending.count({"status": TICKET_OPEN})
            await self._emit(
                "pending_delivery_created",
                {
                    "donation_id": donation_id,
                    "pending_delivery_id": str(queued["_id"]),
                    "delivery_pending_count": pending_count,
                },
            )
        return Donation(**donation_document(updated))

    async def _switch_to_self_pickup(self, donation: Dict[str, Any]) -> Donation:
        donation_id = str(donation["_id"])
        was_queued = donation.get("delivery_status") == PENDING_DELIVERY

        removed = await self.pending.delete_many({"donation_id": donation_id, "status": TICKET_OPEN})
        if was_queued and removed == 0:
            raise ValidationError(f"Donation {donation_id} was already claimed by a delivery agent")

        fields = {
            "delivery_method": SELF_PICKUP,
            "delivery_charge": None,
            "pickup_location": None,
            "drop_location": None,
            "delivery_status": NOT_ASSIGNED,
        }
        unchanged = removed == 0 and all(donation.get(key) == value for key, value in fields.items())
        if unchanged:
            return Donation(**donation_document(donation))

        updated = await self.donations.update_by_id(
            donation_id,
            {**fields, "updated_at": _now()},
            condition={"delivery_status": {"$ne": ACCEPTED_DELIVERY}},
        )
        if updated is None:
            raise ValidationError(f"Donation {donation_id} was already claimed by a delivery agent")

        logger.info("Donation {} switched to self pickup ({} ticket(s) withdrawn)", donation_id, removed)
        await self._notify(updated.get("donor_id"), "Delivery method set to: self pickup", donation_id)
        if removed:
            await self._emit("pending_delivery_withdrawn", {"donation_id": donation_id})
        return Donation(**donation_document(updated))

    async def accept_delivery(self, pending_id: str, actor: Actor) -> AcceptedDelivery:
        _require_role(actor, [Role.DELIVERY], "Accepting a delivery")

        ticket = await self.pending.claim_by_id(pending_id, TICKET_OPEN)
        if ticket is None:
            raise NotFoundError(f"Pending delivery {pending_id} not found or already accepted")

        donation_id = str(ticket["donation_id"])
        now = _now()
        record = {
            "donation_id": donation_id,
            "pending_delivery_id": str(ticket["_id"]),
            "agent_id": actor.id,
            "agent_email": actor.email,
            "delivery_charge": ticket.get("delivery_charge"),
            "pickup_location": ticket.get("pickup_location"),
            "drop_location": ticket.get("drop_location"),
            "ngo_id": ticket.get("ngo_id"),
            "status": ACCEPTED_DELIVERY,
            "accepted_at": now,
        }
        record.update({key: ticket.get(key) for key in TICKET_SNAPSHOT_FIELDS})

        try:
            stored = await self.accepted.create(record)
        except DependencyError:
            await self._restore_ticket(ticket)
            raise

        try:
            updated = await self.donations.update_by_id(
                donation_id,
                {"delivery_status": ACCEPTED_DELIVERY, "delivery_agent_id": actor.id, "updated_at": now},
                condition={"delivery_status": PENDING_DELIVERY, "delivery_method": ASSIGNED_DELIVERY},
            )
        except DependencyError:
            await self._rollback_acceptance(stored, ticket)
            raise
        if updated is None:
            logger.warning("Donation {} left assigned delivery while ticket {} was being accepted", donation_id, pending_id)
            await self._rollback_acceptance(stored, ticket)
            raise NotFoundError(f"Pending delivery {pending_id} is no longer awaiting a delivery agent")

        logger.info("Delivery ticket {} for donation {} accepted by agent {}", pending_id, donation_id, actor.id)
        await self._announce_acceptance(ticket, donation_id)
        await self._emit(
            "delivery_accepted",
            {
                "donation_id": donation_id,
                "pending_delivery_id": str(ticket["_id"]),
                "accepted_delivery_id": str(stored["_id"]),
                "agent_id": actor.id,
            },
        )
        return AcceptedDelivery(**accepted_document(stored))

    async def _restore_ticket(self, ticket: Dict[str, Any]) -> None:
        try:
            await self.pending.restore(ticket)
        except DependencyError as exc:
            logger.error("Could not restore pending delivery {} after failed accept: {}", ticket["_id"], exc)

    async def _rollback_acceptance(self, stored: Dict[str, Any], ticket: Dict[str, Any]) -> None:
        try:
            await self.accepted.delete_by_id(stored["_id"])
        except DependencyError as exc:
            logger.error("Could not remove accepted delivery {} during rollback: {}", stored["_id"], exc)
            return
        await self._restore_ticket(ticket)

    async def _announce_acceptance(self, ticket: Dict[str, Any], donation_id: str) -> None:
        food_name = ticket.get("food_name") or "your donation"
        summary = _delivery_summary(ticket)

        await self._notify(
            ticket.get("donor_id"),
            f"Your donation of {food_name} is on the way! A delivery partner has accepted it.",
            donation_id,
        )
        await self._notify(
            ticket.get("ngo_id"),
            f"Delivery of {food_name} ({ticket.get('quantity') or 'N/A'}) has been accepted by a delivery partner.",
            donation_id,
        )

        ngo_email = ticket.get("ngo_email") or self.ngo_contact_email
        if ngo_email:
            self._dispatch(
                self.notifier.send_email(
                    EmailNotification(
                        to=ngo_email,
                        subject="Delivery Accepted - Action Required",
                        body="A delivery has been accepted.\n\n" + summary,
                    )
                ),
                f"NGO email for donation {donation_id}",
            )
        if ticket.get("donor_email"):
            self._dispatch(
                self.notifier.send_email(
                    EmailNotification(
                        to=ticket["donor_email"],
                        subject="Your Donation is On the Way!",
                        body="A delivery partner has accepted your donation.\n\n" + summary,
                    )
                ),
                f"donor email for donation {donation_id}",
            )
        if ticket.get("phone_number"):
            self._dispatch(
                self.notifier.send_sms(
                    SmsNotification(
                        to=ticket["phone_number"],
                        body=f"FoodLink: your donation of {food_name} has been picked up for delivery.",
                    )
                ),
                f"donor SMS for donation {donation_id}",
            )

    # -- read projections --------------------------------------------------

    async def list_pending(self, actor: Actor, district: str | None = None) -> List[PendingDelivery]:
        _require_role(actor, [Role.DELIVERY, Role.NGO], "Viewing pending deliveries")
        query: Dict[str, Any] = {"status": TICKET_OPEN}
        if district:
            query["district"] = district
        tickets = await self.pending.find_many(query, sort=[("created_at", 1)])
        return [PendingDelivery(**pending_document(ticket)) for ticket in tickets]

    async def list_accepted(self, actor: Actor, agent_id: str | None = None) -> List[AcceptedDelivery]:
        _require_role(actor, [Role.DELIVERY, Role.NGO], "Viewing accepted deliveries")
        if actor.role == Role.DELIVERY:
            agent_id = actor.id
        query = {"agent_id": agent_id} if agent_id else {}
        records = await self.accepted.find_many(query, sort=[("accepted_at", -1)])
        return [AcceptedDelivery(**accepted_document(record)) for record in records]

    async def donations_for_review(self, actor: Actor) -> List[Donation]:
        _require_role(actor, [Role.NGO], "Reviewing donations")
        return await self._donations({"status": PENDING})

    async def ngo_dashboard(self, actor: Actor) -> List[Donation]:
        _require_role(actor, [Role.NGO], "Viewing the NGO dashboard")
        return await self._donations({"status": ACCEPTED, "delivery_status": {"$ne": ACCEPTED_DELIVERY}})

    async def donations_for_donor(self, actor: Actor) -> List[Donation]:
        return await self._donations({"donor_id": actor.id})

    async def profile_donations(self, actor: Actor) -> List[Donation]:
        if actor.role == Role.NGO:
            return await self._donations({})
        return await self.donations_for_donor(actor)

    async def notifications_for(self, actor: Actor, limit: int = 50) -> List[Notification]:
        return await self.notifications.history(actor.id, limit)

    async def drain(self) -> None:
        """Wait for outstanding email/SMS dispatches."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks))

    # -- helpers -----------------------------------------------------------

    async def _donations(self, query: Mapping[str, Any]) -> List[Donation]:
        documents = await self.donations.find_many(query, sort=[("created_at", -1)])
        return [Donation(**donation_document(document)) for document in documents]

    async def _load_donation(self, donation_id: str) -> Dict[str, Any]:
        donation = await self.donations.find_by_id(donation_id)
        if not donation:
            raise NotFoundError(f"Donation {donation_id} not found")
        return donation

    async def _notify(self, user_id: Any, message: str, donation_id: str | None = None) -> None:
        if not user_id:
            return
        try:
            await self.notifications.notify(str(user_id), message, donation_id)
        except Exception as exc:
            logger.warning("Notification for user {} not recorded: {}", user_id, exc)

    def _dispatch(self, send: Awaitable[None], context: str) -> None:
        task = asyncio.create_task(self._deliver(send, context))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    @staticmethod
    async def _deliver(send: Awaitable[None], context: str) -> None:
        try:
            await send
        except Exception as exc:
            logger.warning("Notification delivery failed ({}): {}", context, exc)

    async def _emit(self, event: str, payload: Dict[str, Any]) -> None:
        if self.event_sink is None:
            return
        try:
            await self.event_sink(LifecycleEvent(type=event, payload=payload))
        except Exception as exc:
            logger.warning("Live update {} not published: {}", event, exc)


def get_coordinator(request: Request) -> DonationLifecycleCoordinator:
    return request.app.state.coordinator

"""
Shared fixtures: an in-process motor-compatible database, a mocked
mail/SMS notifier and the three actor roles.
"""

from unittest.mock import AsyncMock, Mock

import pytest
from mongomock_motor import AsyncMongoMockClient

from foodlink.models.user import Actor, Role
from foodlink.services.lifecycle import DonationLifecycleCoordinator

DONATION_FIELDS = {
    "foodname": "Rice",
    "quantity": "10kg",
    "category": "Grains",
    "district": "Pune",
    "address": "12 MG Road",
    "phoneno": "+91 98765-43210",
}


@pytest.fixture
def mock_db():
    return AsyncMongoMockClient()["foodlink_test"]


@pytest.fixture
def notifier():
    service = Mock()
    service.send_email = AsyncMock()
    service.send_sms = AsyncMock()
    return service


@pytest.fixture
def events():
    return []


@pytest.fixture
def coordinator(mock_db, notifier, events):
    async def sink(event):
        events.append(event)

    return DonationLifecycleCoordinator.from_database(
        mock_db,
        notifier=notifier,
        event_sink=sink,
        ngo_contact_email="ngo-desk@example.org",
    )


@pytest.fixture
def donor():
    return Actor(id="donor-1", role=Role.DONOR, email="donor1@example.org")


@pytest.fixture
def ngo():
    return Actor(id="ngo-1", role=Role.NGO, email="ngo1@example.org")


@pytest.fixture
def agent():
    return Actor(id="agent-1", role=Role.DELIVERY, email="agent1@example.org")


@pytest.fixture
def agent2():
    return Actor(id="agent-2", role=Role.DELIVERY, email="agent2@example.org")


@pytest.fixture
def make_donation(coordinator, donor, ngo):
    """Record a donation and, unless told otherwise, have the NGO accept it."""

    async def _make(accept=True, **overrides):
        donation = await coordinator.record_donation({**DONATION_FIELDS, **overrides}, donor)
        if accept:
            donation = await coordinator.review_donation(donation.id, "Accepted", ngo)
        return donation

    return _make


@pytest.fixture
def queued_delivery(coordinator, ngo, make_donation):
    """An accepted donation routed to assigned delivery, plus its pending ticket."""

    async def _queue(charge=50, pickup="A", drop="B", **overrides):
        donation = await make_donation(**overrides)
        donation = await coordinator.set_delivery_method(
            donation.id, "assigned_delivery", ngo, charge=charge, pickup=pickup, drop=drop
        )
        tickets = [t for t in await coordinator.list_pending(ngo) if t.donation_id == donation.id]
        assert len(tickets) == 1
        return donation, tickets[0]

    return _queue

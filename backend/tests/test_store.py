"""
MongoStore contract and the notification log built on top of it.
"""

import asyncio
from unittest.mock import AsyncMock, Mock

import pytest
from bson import ObjectId
from pymongo.errors import ServerSelectionTimeoutError

from foodlink.errors import DependencyError
from foodlink.memory.notification_log import NotificationLog
from foodlink.store import MongoStore, resolve_id


@pytest.fixture
def tickets(mock_db):
    return MongoStore(mock_db["pending_deliveries"], "pending_deliveries")


def test_resolve_id_parses_object_ids_only():
    oid = ObjectId()

    assert resolve_id(str(oid)) == oid
    assert resolve_id(oid) is oid
    assert resolve_id("not-an-object-id") == "not-an-object-id"
    assert resolve_id(None) is None


@pytest.mark.asyncio
async def test_create_and_find_by_string_id(tickets):
    created = await tickets.create({"donation_id": "d1", "status": "pending"})

    found = await tickets.find_by_id(str(created["_id"]))

    assert found["donation_id"] == "d1"
    assert await tickets.find_by_id("missing") is None


@pytest.mark.asyncio
async def test_conditional_update_only_applies_when_condition_holds(tickets):
    created = await tickets.create({"donation_id": "d1", "status": "pending", "charge": 10})

    skipped = await tickets.update_by_id(created["_id"], {"charge": 20}, condition={"status": "claimed"})
    applied = await tickets.update_by_id(created["_id"], {"charge": 30}, condition={"status": "pending"})

    assert skipped is None
    assert applied["charge"] == 30


@pytest.mark.asyncio
async def test_upsert_one_inserts_then_updates(tickets):
    first = await tickets.upsert_one({"donation_id": "d1"}, {"charge": 10}, on_insert={"status": "pending"})
    second = await tickets.upsert_one({"donation_id": "d1"}, {"charge": 25}, on_insert={"status": "pending"})

    assert first["_id"] == second["_id"]
    assert second["charge"] == 25
    assert second["status"] == "pending"
    assert await tickets.count() == 1


@pytest.mark.asyncio
async def test_claim_by_id_consumes_once(tickets):
    created = await tickets.create({"donation_id": "d1", "status": "pending"})

    results = await asyncio.gather(*(tickets.claim_by_id(str(created["_id"]), "pending") for _ in range(5)))

    assert sum(1 for result in results if result is not None) == 1
    assert await tickets.count() == 0


@pytest.mark.asyncio
async def test_claim_by_id_respects_expected_status(tickets):
    created = await tickets.create({"donation_id": "d1", "status": "on_hold"})

    assert await tickets.claim_by_id(created["_id"], "pending") is None
    assert await tickets.count() == 1


@pytest.mark.asyncio
async def test_restore_reinserts_under_original_id(tickets):
    created = await tickets.create({"donation_id": "d1", "status": "pending"})
    claimed = await tickets.claim_by_id(created["_id"], "pending")

    await tickets.restore(claimed)

    assert (await tickets.find_by_id(created["_id"]))["donation_id"] == "d1"


@pytest.mark.asyncio
async def test_delete_helpers(tickets):
    first = await tickets.create({"donation_id": "d1", "status": "pending"})
    await tickets.create({"donation_id": "d2", "status": "pending"})
    await tickets.create({"donation_id": "d2", "status": "pending"})

    assert await tickets.delete_by_id(first["_id"]) is True
    assert await tickets.delete_by_id(first["_id"]) is False
    assert await tickets.delete_many({"donation_id": "d2"}) == 2


@pytest.mark.asyncio
async def test_driver_errors_become_dependency_errors():
    collection = Mock()
    collection.find_one = AsyncMock(side_effect=ServerSelectionTimeoutError("no servers"))
    store = MongoStore(collection, "donations")

    with pytest.raises(DependencyError) as exc_info:
        await store.find_by_id("abc")

    assert exc_info.value.status_code == 503
    assert "donations" in exc_info.value.detail


@pytest.mark.asyncio
async def test_notification_log_history_is_per_user(mock_db):
    log = NotificationLog(MongoStore(mock_db["notifications"], "notifications"))

    await log.notify("donor-1", "Your donation has been accepted", donation_id="d1")
    await log.notify("donor-1", "Delivery method set to: self pickup", donation_id="d1")
    await log.notify("ngo-1", "Delivery accepted")

    history = await log.history("donor-1")

    assert len(history) == 2
    assert {entry.message for entry in history} == {
        "Your donation has been accepted",
        "Delivery method set to: self pickup",
    }
    assert all(entry.donation_id == "d1" for entry in history)
    assert len(await log.history("donor-1", limit=1)) == 1

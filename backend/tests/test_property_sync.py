"""
Outbox de sincronização contrato -> imóvel.
"""
from datetime import datetime, timezone, timedelta

import pytest
from pymongo.errors import PyMongoError

import worker
import services.property_sync as property_sync
from services.property_status import ContractEvent, reconcile_property_status, reconcile_property_from_contracts
from services.property_sync import (
    dispatch_property_sync, retry_pending_syncs, list_outbox, cleanup_outbox, OutboxState
)


@pytest.fixture
def flaky_reconcile(monkeypatch):
    """Reconciliação que falha com erro de DB nas primeiras N chamadas."""
    state = {"failures": 0}

    async def _reconcile(contract, event, user=None, max_retries=None):
        if state["failures"] > 0:
            state["failures"] -= 1
            raise PyMongoError("write concern timeout")
        return await reconcile_property_status(contract, event, user=user, max_retries=max_retries)

    async def _reconcile_from_contracts(property_id, fallback_type=None, user=None, max_retries=None):
        if state["failures"] > 0:
            state["failures"] -= 1
            raise PyMongoError("write concern timeout")
        return await reconcile_property_from_contracts(property_id, fallback_type, user=user, max_retries=max_retries)

    monkeypatch.setattr(property_sync, "reconcile_property_status", _reconcile)
    monkeypatch.setattr(property_sync, "reconcile_property_from_contracts", _reconcile_from_contracts)
    return state


@pytest.mark.asyncio
async def test_dispatch_success_writes_no_outbox(test_db, make_property, make_contract):
    prop = await make_property()
    contract = await make_contract(prop["id"], status="Pending")

    result = await dispatch_property_sync(contract, ContractEvent.CREATED)

    assert result.applied is True
    assert await test_db.property_sync_outbox.count_documents({}) == 0


@pytest.mark.asyncio
async def test_dispatch_never_raises_and_records_failure(test_db, make_property, make_contract, flaky_reconcile):
    flaky_reconcile["failures"] = 1
    prop = await make_property()
    contract = await make_contract(prop["id"], status="Active")

    result = await dispatch_property_sync(contract, ContractEvent.CREATED)

    assert result is None
    entry = await test_db.property_sync_outbox.find_one({}, {"_id": 0})
    assert entry["state"] == OutboxState.PENDING.value
    assert entry["attempts"] == 1
    assert entry["event"] == "created"
    assert entry["contract"]["status"] == "Active"


@pytest.mark.asyncio
async def test_dispatch_logs_failure(test_db, make_contract, caplog):
    contract = await make_contract("missing-property")

    with caplog.at_level("ERROR"):
        await dispatch_property_sync(contract, ContractEvent.CREATED)

    assert any("missing-property" in r.getMessage() for r in caplog.records)


@pytest.mark.asyncio
async def test_retry_applies_pending_entry(test_db, make_property, make_contract, flaky_reconcile):
    flaky_reconcile["failures"] = 1
    prop = await make_property()
    contract = await make_contract(prop["id"], status="Active")
    await dispatch_property_sync(contract, ContractEvent.CREATED)

    summary = await retry_pending_syncs()

    assert summary == {"processed": 1, "done": 1, "pending": 0, "failed": 0}
    updated = await test_db.properties.find_one({"id": prop["id"]}, {"_id": 0})
    assert updated["advertised_status"] == "RentedActive"
    entry = await test_db.property_sync_outbox.find_one({}, {"_id": 0})
    assert entry["state"] == "done"
    assert entry["attempts"] == 2


@pytest.mark.asyncio
async def test_retry_uses_current_contract_state(test_db, make_property, make_contract, flaky_reconcile):
    flaky_reconcile["failures"] = 1
    prop = await make_property()
    contract = await make_contract(prop["id"], status="Pending")
    await dispatch_property_sync(contract, ContractEvent.CREATED)

    # o contrato foi activado entretanto (e essa sincronização também falhou)
    await test_db.contracts.update_one({"id": contract["id"]}, {"$set": {"status": "Active"}})

    await retry_pending_syncs()

    updated = await test_db.properties.find_one({"id": prop["id"]}, {"_id": 0})
    assert updated["advertised_status"] == "RentedActive"


@pytest.mark.asyncio
async def test_retry_of_deleted_contract_releases_property(test_db, make_property, make_contract, flaky_reconcile):
    prop = await make_property(advertised_status="Reserved")
    contract = await make_contract(prop["id"], status="Pending")
    await test_db.properties.update_one({"id": prop["id"]}, {"$set": {"linked_contract_id": contract["id"]}})

    flaky_reconcile["failures"] = 1
    await test_db.contracts.delete_one({"id": contract["id"]})
    await dispatch_property_sync(contract, ContractEvent.DELETED)

    summary = await retry_pending_syncs()

    assert summary["done"] == 1
    updated = await test_db.properties.find_one({"id": prop["id"]}, {"_id": 0})
    assert updated["advertised_status"] == "AvailableForRent"
    assert updated["linked_contract_id"] is None


@pytest.mark.asyncio
async def test_retry_of_deleted_sale_contract_releases_for_sale(test_db, make_property, make_contract, flaky_reconcile):
    prop = await make_property(advertised_status="Sold")
    contract = await make_contract(prop["id"], type="Sale", status="Active")
    await test_db.properties.update_one({"id": prop["id"]}, {"$set": {"linked_contract_id": contract["id"]}})

    flaky_reconcile["failures"] = 1
    await test_db.contracts.delete_one({"id": contract["id"]})
    await dispatch_property_sync(contract, ContractEvent.DELETED)

    await retry_pending_syncs()

    updated = await test_db.properties.find_one({"id": prop["id"]}, {"_id": 0})
    assert updated["advertised_status"] == "AvailableForSale"
    assert updated["history"][-1]["event"] == "sync_retry"


@pytest.mark.asyncio
async def test_retry_does_not_undo_newer_reservation(test_db, make_property, make_contract, flaky_reconcile):
    prop = await make_property()
    c1 = await make_contract(prop["id"], status="Pending")
    await reconcile_property_status(c1, ContractEvent.CREATED)

    # a remoção de C1 não chega ao imóvel
    flaky_reconcile["failures"] = 1
    await test_db.contracts.delete_one({"id": c1["id"]})
    await dispatch_property_sync(c1, ContractEvent.DELETED)

    # C2 reserva o imóvel entretanto
    c2 = await make_contract(prop["id"], status="Pending")
    await dispatch_property_sync(c2, ContractEvent.CREATED)
    before = await test_db.properties.find_one({"id": prop["id"]}, {"_id": 0})
    assert before["advertised_status"] == "Reserved"
    assert before["linked_contract_id"] == c2["id"]

    summary = await retry_pending_syncs()

    assert summary["done"] == 1
    after = await test_db.properties.find_one({"id": prop["id"]}, {"_id": 0})
    assert after["advertised_status"] == "Reserved"
    assert after["linked_contract_id"] == c2["id"]
    assert after["version"] == before["version"]


@pytest.mark.asyncio
async def test_retry_of_several_entries_converges(test_db, make_property, make_contract, flaky_reconcile):
    prop = await make_property()
    flaky_reconcile["failures"] = 2
    c1 = await make_contract(prop["id"], status="Pending", created_at="2024-01-01T00:00:00+00:00")
    await dispatch_property_sync(c1, ContractEvent.CREATED)
    c2 = await make_contract(prop["id"], status="Active", created_at="2024-02-01T00:00:00+00:00")
    await dispatch_property_sync(c2, ContractEvent.CREATED)

    summary = await retry_pending_syncs()

    assert summary == {"processed": 2, "done": 2, "pending": 0, "failed": 0}
    updated = await test_db.properties.find_one({"id": prop["id"]}, {"_id": 0})
    assert updated["advertised_status"] == "RentedActive"
    assert updated["linked_contract_id"] == c2["id"]


@pytest.mark.asyncio
async def test_retry_marks_failed_after_max_attempts(test_db, make_property, make_contract, flaky_reconcile, monkeypatch):
    monkeypatch.setattr(property_sync, "PROPERTY_SYNC_MAX_ATTEMPTS", 3)
    flaky_reconcile["failures"] = 100
    prop = await make_property()
    contract = await make_contract(prop["id"], status="Active")
    await dispatch_property_sync(contract, ContractEvent.CREATED)

    first = await retry_pending_syncs()
    second = await retry_pending_syncs()
    third = await retry_pending_syncs()

    assert first["pending"] == 1
    assert second["failed"] == 1
    assert third["processed"] == 0
    entry = await test_db.property_sync_outbox.find_one({}, {"_id": 0})
    assert entry["state"] == "failed"
    assert entry["attempts"] == 3


@pytest.mark.asyncio
async def test_missing_property_is_not_retried(test_db, make_contract):
    contract = await make_contract("missing-property")
    await dispatch_property_sync(contract, ContractEvent.CREATED)

    entry = await test_db.property_sync_outbox.find_one({}, {"_id": 0})
    assert entry["state"] == "failed"
    assert "PropertyNotFoundError" in entry["last_error"]
    assert (await retry_pending_syncs())["processed"] == 0


@pytest.mark.asyncio
async def test_list_outbox_filters_by_state(test_db, make_property, make_contract, flaky_reconcile):
    await dispatch_property_sync(await make_contract("missing-property"), ContractEvent.CREATED)
    flaky_reconcile["failures"] = 1
    prop = await make_property()
    await dispatch_property_sync(await make_contract(prop["id"]), ContractEvent.CREATED)

    assert len(await list_outbox()) == 2
    pending = await list_outbox(OutboxState.PENDING)
    assert len(pending) == 1
    assert pending[0]["property_id"] == prop["id"]


@pytest.mark.asyncio
async def test_outbox_endpoints(client, admin_headers, test_db, make_property, make_contract, flaky_reconcile):
    flaky_reconcile["failures"] = 1
    prop = await make_property()
    await dispatch_property_sync(await make_contract(prop["id"], status="Pending"), ContractEvent.CREATED)

    response = await client.get("/contracts/property-sync/outbox", params={"state": "pending"}, headers=admin_headers)
    assert response.status_code == 200
    assert len(response.json()) == 1

    response = await client.post("/contracts/property-sync/retry", headers=admin_headers)
    assert response.status_code == 200
    assert response.json()["done"] == 1

    updated = await test_db.properties.find_one({"id": prop["id"]}, {"_id": 0})
    assert updated["advertised_status"] == "Reserved"


# --- Limpeza da outbox ---

async def _outbox_entry(test_db, state, age_days):
    stamp = (datetime.now(timezone.utc) - timedelta(days=age_days)).isoformat()
    await test_db.property_sync_outbox.insert_one({
        "id": f"{state}-{age_days}",
        "state": state,
        "created_at": stamp,
        "updated_at": stamp,
    })


@pytest.mark.asyncio
async def test_cleanup_outbox_removes_only_old_resolved_entries(test_db):
    await _outbox_entry(test_db, "done", 40)
    await _outbox_entry(test_db, "failed", 40)
    await _outbox_entry(test_db, "pending", 40)
    await _outbox_entry(test_db, "done", 1)

    removed = await cleanup_outbox(days=30)

    assert removed == 2
    remaining = sorted(e["id"] for e in await list_outbox())
    assert remaining == ["done-1", "pending-40"]


@pytest.mark.asyncio
async def test_worker_pass_retries_and_cleans(test_db, make_property, make_contract, flaky_reconcile):
    await _outbox_entry(test_db, "done", 90)
    flaky_reconcile["failures"] = 1
    prop = await make_property()
    await dispatch_property_sync(await make_contract(prop["id"], status="Pending"), ContractEvent.CREATED)

    summary = await worker.run_once()

    assert summary["done"] == 1
    assert summary["cleaned"] == 1
    assert await test_db.property_sync_outbox.count_documents({}) == 1

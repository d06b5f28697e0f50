"""
Carga inicial de contratos (POST /contracts/sync-property-status).
"""
import pytest

from services.contract_seed import SeedPrerequisiteError, seed_sample_contracts, SAMPLE_CONTRACTS


@pytest.mark.asyncio
async def test_seed_inserts_five_contracts(test_db, make_property, make_tenant):
    tenants = [await make_tenant() for _ in range(5)]
    properties = [await make_property() for _ in range(5)]

    result = await seed_sample_contracts()

    assert result["created"] == 5
    contracts = await test_db.contracts.find({}, {"_id": 0}).sort("code", 1).to_list(None)
    assert [c["code"] for c in contracts] == [s["code"] for s in SAMPLE_CONTRACTS]
    assert [(c["type"], c["status"], c["amount"]) for c in contracts] == [
        ("Rental", "Active", 1800.0),
        ("Rental", "Active", 2200.0),
        ("Sale", "Completed", 350000.0),
        ("Rental", "Overdue", 1950.0),
        ("Rental", "Pending", 2100.0),
    ]
    assert [c["tenant_id"] for c in contracts] == [t["id"] for t in tenants]
    assert [c["property_id"] for c in contracts] == [p["id"] for p in properties]


@pytest.mark.asyncio
async def test_seed_is_idempotent(test_db, make_property, make_tenant):
    for _ in range(5):
        await make_tenant()
        await make_property()

    await seed_sample_contracts()
    second = await seed_sample_contracts()

    assert second["created"] == 0
    assert second["existing"] == 5
    assert await test_db.contracts.count_documents({}) == 5


@pytest.mark.asyncio
async def test_seed_skips_when_contracts_exist(test_db, make_property, make_tenant, make_contract):
    await make_tenant()
    prop = await make_property()
    await make_contract(prop["id"])

    result = await seed_sample_contracts()

    assert result == {"created": 0, "existing": 1, "message": "Já existem 1 contratos cadastrados."}
    assert await test_db.contracts.count_documents({}) == 1


@pytest.mark.asyncio
async def test_seed_cycles_fewer_references(test_db, make_property, make_tenant):
    tenants = [await make_tenant() for _ in range(2)]
    prop = await make_property()

    await seed_sample_contracts()

    contracts = await test_db.contracts.find({}, {"_id": 0}).sort("code", 1).to_list(None)
    assert [c["tenant_id"] for c in contracts] == [tenants[i % 2]["id"] for i in range(5)]
    assert {c["property_id"] for c in contracts} == {prop["id"]}


@pytest.mark.asyncio
async def test_seed_requires_tenants_and_properties(test_db, make_property):
    await make_property()
    with pytest.raises(SeedPrerequisiteError):
        await seed_sample_contracts()
    assert await test_db.contracts.count_documents({}) == 0


@pytest.mark.asyncio
async def test_seed_endpoint(client, admin_headers, make_property, make_tenant):
    response = await client.post("/contracts/sync-property-status", headers=admin_headers)
    assert response.status_code == 400

    await make_tenant()
    await make_property()
    response = await client.post("/contracts/sync-property-status", headers=admin_headers)
    assert response.status_code == 200
    assert response.json()["created"] == 5

    response = await client.post("/contracts/sync-property-status", headers=admin_headers)
    assert response.json() == {"created": 0, "existing": 5, "message": "Já existem 5 contratos cadastrados."}

"""Data service: backend selection, fallback, side effects on the remote path."""
import logging

import pytest

from immogest.data.local_store import LocalStore
from immogest.data.models import MAINTENANCE_REQUESTS, PROPERTIES, TENANTS, TRANSACTIONS, UNITS, utc_today
from immogest.data.service import DataService, get_data_service
from immogest.data.summaries import MaintenanceStats
from tests.conftest import (
    DEMO_PROPERTY_ID,
    REMOTE_KEY,
    REMOTE_URL,
    SCENARIO_PROPERTY_ID,
    StubProbe,
    make_config,
    scenario_dataset,
)


def _ids(rows):
    return [r["id"] for r in rows]


# ── Backend selection ──────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_unconfigured_uses_local(local_service):
    status = local_service.connection_status()
    assert status.connection_type == "local"
    assert status.is_remote_connected is False

    units = await local_service.get_units(DEMO_PROPERTY_ID)
    assert len(units) == 5
    assert local_service.connection_status().fallback_count == 0


@pytest.mark.asyncio
async def test_forced_local_never_calls_remote(store, remote_client, fake_remote):
    cfg = make_config(REMOTE_URL, REMOTE_KEY, use_local_data=True)
    service = DataService(cfg, local=store, remote=remote_client)

    properties = await service.get_properties()

    assert _ids(properties) == [DEMO_PROPERTY_ID]
    assert service.connection_status().connection_type == "local"
    assert fake_remote.calls == []


@pytest.mark.asyncio
async def test_remote_answers_when_available(remote_service, fake_remote, store):
    fake_remote.tables[PROPERTIES].append({"id": "remote-only", "name": "Immeuble Plateau", "created_at": "2024-06-01T00:00:00Z"})

    properties = await remote_service.get_properties()

    assert _ids(properties) == ["remote-only", DEMO_PROPERTY_ID]
    assert store.get(PROPERTIES, "remote-only") is None
    assert remote_service.connection_status().connection_type == "remote"


def test_factory_builds_service(local_cfg):
    service = get_data_service(local_cfg, local=LocalStore(seed=None))
    assert isinstance(service, DataService)
    assert service.connection_status().connection_type == "local"


# ── Fallback ───────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_remote_error_falls_back(remote_service, fake_remote, store, caplog):
    fake_remote.fail("GET", UNITS)

    with caplog.at_level(logging.WARNING, logger="immogest.data.service"):
        units = await remote_service.get_units(DEMO_PROPERTY_ID)

    assert _ids(units) == _ids(store.list_units(DEMO_PROPERTY_ID))
    status = remote_service.connection_status()
    assert status.fallback_count == 1
    assert status.last_fallback == "get_units on units: RemoteStoreError"
    assert "Fell back to local store for get_units on units" in caplog.text


@pytest.mark.asyncio
async def test_unexpected_error_logs_traceback_and_falls_back(remote_service, fake_remote, caplog):
    """A bug on the remote path is logged with its traceback, and the caller still gets an answer."""
    fake_remote.tables[UNITS].append({"property_id": DEMO_PROPERTY_ID, "unit_number": "9Z"})  # no id

    with caplog.at_level(logging.WARNING, logger="immogest.data.service"):
        tenants = await remote_service.get_tenants(DEMO_PROPERTY_ID)

    assert sorted(_ids(tenants)) == ["mock-tenant-1", "mock-tenant-2"]
    status = remote_service.connection_status()
    assert status.fallback_count == 1
    assert status.last_fallback == "get_tenants on tenants: KeyError"
    [record] = [r for r in caplog.records if r.name == "immogest.data.service"]
    assert record.levelno == logging.ERROR
    assert record.exc_info is not None
    assert "Unexpected error in get_tenants on tenants" in record.getMessage()


@pytest.mark.asyncio
async def test_unreachable_remote_still_answers(remote_service, fake_remote):
    fake_remote.down = True

    prop = await remote_service.get_property(DEMO_PROPERTY_ID)
    tenants = await remote_service.get_tenants()
    created = await remote_service.create_transaction(
        {"property_id": DEMO_PROPERTY_ID, "type": "income", "amount": 120000, "date": "2024-12-15"}
    )

    assert prop["name"] == "Résidence Les Palmiers"
    assert len(tenants) == 3
    assert created["id"].startswith("transaction-")
    assert remote_service.connection_status().fallback_count == 3


@pytest.mark.asyncio
async def test_not_found_is_not_a_fallback(remote_service):
    assert await remote_service.get_tenant("nope") is None
    assert await remote_service.get_tenant_by_unit("mock-unit-2") is None
    assert await remote_service.get_unit_with_details("nope") is None
    assert await remote_service.update_property("nope", {"name": "X"}) is None
    assert await remote_service.delete_transaction("nope") is False
    assert remote_service.connection_status().fallback_count == 0


@pytest.mark.asyncio
async def test_same_shape_from_both_backends(remote_service, local_service):
    """Same rows, same keys, same order, whichever backend answers."""
    for op in ("get_units", "get_tenants", "get_maintenance_requests", "get_transactions"):
        remote_rows = await getattr(remote_service, op)(DEMO_PROPERTY_ID)
        local_rows = await getattr(local_service, op)(DEMO_PROPERTY_ID)
        assert _ids(remote_rows) == _ids(local_rows), op
        assert {frozenset(r) for r in remote_rows} == {frozenset(r) for r in local_rows}, op

    assert _ids(await remote_service.get_tenants()) == _ids(await local_service.get_tenants())
    assert _ids(await remote_service.get_properties()) == _ids(await local_service.get_properties())
    assert await remote_service.get_property_stats(DEMO_PROPERTY_ID) == await local_service.get_property_stats(DEMO_PROPERTY_ID)
    assert await remote_service.get_financial_summary(DEMO_PROPERTY_ID) == await local_service.get_financial_summary(DEMO_PROPERTY_ID)
    assert remote_service.connection_status().fallback_count == 0


@pytest.mark.asyncio
async def test_new_rows_sort_the_same_on_both_backends(remote_service, local_service):
    for service in (remote_service, local_service):
        await service.create_unit({"property_id": DEMO_PROPERTY_ID, "unit_number": "0Z", "rent": 90000})
        await service.create_tenant({"name": "Zoé Ahoua"})

    remote_units = [u["unit_number"] for u in await remote_service.get_units(DEMO_PROPERTY_ID)]
    local_units = [u["unit_number"] for u in await local_service.get_units(DEMO_PROPERTY_ID)]
    assert remote_units == local_units == ["0Z", "1A", "1B", "2A", "2B", "3A"]

    remote_names = [t["name"] for t in await remote_service.get_tenants()]
    local_names = [t["name"] for t in await local_service.get_tenants()]
    assert remote_names == local_names == ["Aminata Kone", "Awa Traoré", "Kouadio Michel", "Zoé Ahoua"]
    assert remote_service.connection_status().fallback_count == 0


@pytest.mark.asyncio
async def test_unit_details_come_from_one_backend(remote_service, fake_remote, store):
    store.update(TENANTS, "mock-tenant-1", {"name": "Awa Traoré (local)"})

    details = await remote_service.get_unit_with_details("mock-unit-1")
    assert details["tenant"]["name"] == "Awa Traoré"
    assert _ids(details["maintenance_requests"]) == ["mock-maintenance-1"]

    fake_remote.fail("GET", MAINTENANCE_REQUESTS)
    details = await remote_service.get_unit_with_details("mock-unit-1")
    assert details["tenant"]["name"] == "Awa Traoré (local)"
    assert _ids(details["maintenance_requests"]) == ["mock-maintenance-1"]
    assert remote_service.connection_status().fallback_count == 1


# ── Tenant side effects on the remote path ─────────────────────────────

@pytest.mark.asyncio
async def test_remote_create_tenant_occupies_unit(remote_service, fake_remote, store):
    tenant = await remote_service.create_tenant({"name": "Yao Serge", "unit_id": "mock-unit-2", "rent_amount": 120000})

    assert tenant["id"] == "tenants-remote-1"
    assert fake_remote.row(UNITS, "mock-unit-2")["status"] == "occupied"
    # local store untouched
    assert store.get(UNITS, "mock-unit-2")["status"] == "available"


@pytest.mark.asyncio
async def test_remote_reassign_moves_occupancy(remote_service, fake_remote):
    assert await remote_service.assign_tenant_to_unit("mock-tenant-1", "mock-unit-5") is True

    assert fake_remote.row(TENANTS, "mock-tenant-1")["unit_id"] == "mock-unit-5"
    assert fake_remote.row(UNITS, "mock-unit-1")["status"] == "available"
    assert fake_remote.row(UNITS, "mock-unit-5")["status"] == "occupied"


@pytest.mark.asyncio
async def test_remote_assign_to_maintenance_unit_keeps_status(remote_service, fake_remote):
    assert await remote_service.assign_tenant_to_unit("mock-tenant-3", "mock-unit-4") is True

    assert fake_remote.row(TENANTS, "mock-tenant-3")["unit_id"] == "mock-unit-4"
    assert fake_remote.row(UNITS, "mock-unit-4")["status"] == "maintenance"


@pytest.mark.asyncio
async def test_remote_remove_and_delete_release_units(remote_service, fake_remote):
    assert await remote_service.remove_tenant_from_unit("mock-tenant-1") is True
    assert fake_remote.row(UNITS, "mock-unit-1")["status"] == "available"

    assert await remote_service.delete_tenant("mock-tenant-2") is True
    assert fake_remote.row(TENANTS, "mock-tenant-2") is None
    assert fake_remote.row(UNITS, "mock-unit-3")["status"] == "available"

    assert await remote_service.delete_tenant("mock-tenant-2") is False
    assert await remote_service.assign_tenant_to_unit("nope", "mock-unit-2") is False
    assert remote_service.connection_status().fallback_count == 0


@pytest.mark.asyncio
async def test_failed_side_effect_falls_back_whole_operation(remote_service, fake_remote, store):
    fake_remote.fail("PATCH", UNITS)

    tenant = await remote_service.create_tenant({"name": "Yao Serge", "unit_id": "mock-unit-2"})

    assert tenant["id"].startswith("tenant-")
    assert store.get(UNITS, "mock-unit-2")["status"] == "occupied"
    assert remote_service.connection_status().fallback_count == 1


# ── Entity operations ──────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_remote_unit_status(remote_service, fake_remote):
    assert await remote_service.update_unit_status("mock-unit-2", "maintenance") is True
    assert fake_remote.row(UNITS, "mock-unit-2")["status"] == "maintenance"
    assert await remote_service.update_unit_status("nope", "available") is False

    units = await remote_service.get_units_by_status(DEMO_PROPERTY_ID, "maintenance")
    assert [u["unit_number"] for u in units] == ["1B", "2B"]


@pytest.mark.asyncio
async def test_unit_status_writes_follow_tenants(remote_service, local_service, fake_remote):
    """Occupied/available writes are settled against tenant assignment on both backends."""
    async def stored(service, unit_id):
        if service is remote_service:
            return fake_remote.row(UNITS, unit_id)["status"]
        return (await service.get_unit(unit_id))["status"]

    for service in (remote_service, local_service):
        assert await service.update_unit_status("mock-unit-5", "occupied") is True
        assert await stored(service, "mock-unit-5") == "available"

        assert await service.update_unit_status("mock-unit-1", "available") is True
        assert await stored(service, "mock-unit-1") == "occupied"

        # 2B is under maintenance; a tenant moves in, then the works finish
        assert await service.assign_tenant_to_unit("mock-tenant-3", "mock-unit-4") is True
        assert await stored(service, "mock-unit-4") == "maintenance"
        assert await service.update_unit_status("mock-unit-4", "available") is True
        assert await stored(service, "mock-unit-4") == "occupied"

        created = await service.create_unit({"property_id": DEMO_PROPERTY_ID, "unit_number": "4A", "status": "occupied"})
        assert created["status"] == "available"

    assert remote_service.connection_status().fallback_count == 0


@pytest.mark.asyncio
async def test_remote_property_lifecycle(remote_service, fake_remote):
    created = await remote_service.create_property({"name": "Villa Bingerville", "total_units": 4})
    assert fake_remote.row(PROPERTIES, created["id"])["name"] == "Villa Bingerville"

    updated = await remote_service.update_property(created["id"], {"total_units": 6})
    assert updated["total_units"] == 6
    assert updated["updated_at"] != created["updated_at"]

    assert await remote_service.delete_property(created["id"]) is True
    assert await remote_service.get_property(created["id"]) is None


@pytest.mark.asyncio
async def test_tenants_by_property_exclude_unassigned(remote_service, local_service):
    for service in (remote_service, local_service):
        tenants = await service.get_tenants(DEMO_PROPERTY_ID)
        assert sorted(_ids(tenants)) == ["mock-tenant-1", "mock-tenant-2"]

    with_unit = await remote_service.get_tenant_with_unit("mock-tenant-2")
    assert with_unit["unit_number"] == "2A"


@pytest.mark.asyncio
async def test_maintenance_queries(remote_service, local_service):
    for service in (remote_service, local_service):
        pending = await service.get_maintenance_requests_by_status(DEMO_PROPERTY_ID, "pending")
        assert _ids(pending) == ["mock-maintenance-3"]
        by_unit = await service.get_maintenance_requests_by_unit("mock-unit-3")
        assert _ids(by_unit) == ["mock-maintenance-2"]
        request = await service.get_maintenance_request_with_unit("mock-maintenance-4")
        assert request["unit_number"] == "2B"

    assert await remote_service.get_maintenance_requests_by_status("no-such-property", "pending") == []


@pytest.mark.asyncio
async def test_maintenance_workflow(remote_service, local_service):
    for service in (remote_service, local_service):
        assert await service.assign_maintenance_request("mock-maintenance-3", "Peinture Pro CI") is True
        request = await service.get_maintenance_request("mock-maintenance-3")
        assert (request["status"], request["assigned_to"]) == ("in-progress", "Peinture Pro CI")

        assert await service.schedule_maintenance_request("mock-maintenance-3", "2025-01-06") is True
        request = await service.get_maintenance_request("mock-maintenance-3")
        assert (request["status"], request["scheduled_date"]) == ("scheduled", "2025-01-06")

        assert await service.update_maintenance_status("mock-maintenance-3", "completed", {"actual_cost": 70000}) is True
        request = await service.get_maintenance_request("mock-maintenance-3")
        assert request["status"] == "completed"
        assert request["completed_date"] == utc_today()
        assert request["actual_cost"] == 70000

        assert await service.update_maintenance_status("mock-maintenance-2", "completed", {"completed_date": "2024-12-19"}) is True
        assert (await service.get_maintenance_request("mock-maintenance-2"))["completed_date"] == "2024-12-19"

        assert await service.update_maintenance_status("nope", "completed") is False
        assert await service.assign_maintenance_request("nope", "Personne") is False
        assert await service.schedule_maintenance_request("nope", "2025-01-06") is False

    assert remote_service.connection_status().fallback_count == 0


@pytest.mark.asyncio
async def test_maintenance_stats(remote_service, local_service):
    for service in (remote_service, local_service):
        stats = await service.get_maintenance_stats(DEMO_PROPERTY_ID)
        assert stats == MaintenanceStats(total=4, pending=1, in_progress=1, scheduled=1, completed=1)
        assert (await service.get_maintenance_stats("no-such-property")).total == 0

    assert remote_service.connection_status().fallback_count == 0


@pytest.mark.asyncio
async def test_properties_by_owner(remote_service, local_service):
    for service in (remote_service, local_service):
        assert _ids(await service.get_properties_by_owner("mock-owner-1")) == [DEMO_PROPERTY_ID]
        assert await service.get_properties_by_owner("someone-else") == []


@pytest.mark.asyncio
async def test_maintenance_request_lifecycle(local_service):
    created = await local_service.create_maintenance_request({"unit_id": "mock-unit-5", "title": "Vitre fêlée", "status": "pending"})
    updated = await local_service.update_maintenance_request(created["id"], {"status": "completed"})
    assert updated["status"] == "completed"
    assert (await local_service.get_maintenance_request(created["id"]))["status"] == "completed"
    assert await local_service.delete_maintenance_request(created["id"]) is True


@pytest.mark.asyncio
async def test_transactions_in_range(remote_service, local_service):
    for service in (remote_service, local_service):
        rows = await service.get_transactions(DEMO_PROPERTY_ID, since="2024-12-05", until="2024-12-31")
        assert _ids(rows) == ["mock-transaction-3", "mock-transaction-4"]

    summary = await remote_service.get_financial_summary(DEMO_PROPERTY_ID)
    assert summary.net_income == 300000


@pytest.mark.asyncio
async def test_transaction_lifecycle(remote_service, fake_remote):
    created = await remote_service.create_transaction(
        {"property_id": DEMO_PROPERTY_ID, "type": "expense", "amount": 30000, "category": "Eau", "date": "2024-12-20"}
    )
    assert (await remote_service.get_transaction(created["id"]))["amount"] == 30000

    await remote_service.update_transaction(created["id"], {"amount": 32000})
    assert fake_remote.row(TRANSACTIONS, created["id"])["amount"] == 32000

    assert await remote_service.delete_transaction(created["id"]) is True


@pytest.mark.asyncio
async def test_local_scenario_assignment_updates_stats(local_cfg):
    service = DataService(local_cfg, local=LocalStore(scenario_dataset))

    assert await service.assign_tenant_to_unit("t-4", "u-1a") is True
    assert (await service.get_unit("u-1a"))["status"] == "occupied"

    stats = await service.get_property_stats(SCENARIO_PROPERTY_ID)
    assert stats.occupied_units == 4
    assert stats.monthly_revenue == 420000

    assert await service.delete_unit("u-1b") is True
    assert await service.get_maintenance_requests(SCENARIO_PROPERTY_ID) == []


# ── Connection ─────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_connection_test_unconfigured(local_service):
    result = await local_service.test_connection()
    assert result.success is False
    assert "not configured" in result.message


@pytest.mark.asyncio
async def test_connection_test_reachable(remote_service):
    result = await remote_service.test_connection()
    assert result.success is True
    assert "1 properties" in result.message


@pytest.mark.asyncio
async def test_connection_test_missing_table(remote_service, fake_remote):
    del fake_remote.tables[PROPERTIES]
    result = await remote_service.test_connection()
    assert result.success is False
    assert "create the tables" in result.message


@pytest.mark.asyncio
async def test_connection_test_unreachable(remote_service, fake_remote):
    fake_remote.down = True
    result = await remote_service.test_connection()
    assert result.success is False
    assert result.message.startswith("Remote store connection failed")


@pytest.mark.asyncio
async def test_refresh_connection_switches_backend(remote_cfg, store, remote_client, fake_remote):
    probe = StubProbe(False, after_refresh=True)
    service = DataService(remote_cfg, local=store, remote=remote_client, probe=probe)

    await service.get_properties()
    assert fake_remote.calls == []

    assert await service.refresh_connection() is True
    assert probe.refreshed == 1
    assert service.connection_status().connection_type == "remote"

    await service.get_properties()
    assert fake_remote.calls == [("GET", PROPERTIES)]

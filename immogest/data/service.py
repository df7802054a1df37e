from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional, TypeVar

from immogest.config import AppConfig
from immogest.data import integrity, queries
from immogest.data.connection import (
    TABLE_NOT_FOUND,
    AvailabilityProbe,
    RemoteNotFound,
    RemoteStoreClient,
    RemoteStoreError,
    get_remote_client,
)
from immogest.data.local_store import LocalStore
from immogest.data.models import (
    AVAILABLE,
    COMPLETED,
    IN_PROGRESS,
    MAINTENANCE_REQUESTS,
    PROPERTIES,
    SCHEDULED,
    TENANTS,
    TRANSACTIONS,
    UNITS,
    utc_now,
    utc_today,
    without_system_fields,
)
from immogest.data.summaries import (
    FinancialSummary,
    MaintenanceStats,
    PropertyStats,
    compute_property_stats,
    financial_summary,
    maintenance_stats,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class ConnectionStatus:
    is_remote_connected: bool
    connection_type: str  # "remote" | "local"
    fallback_count: int = 0
    last_fallback: Optional[str] = None


@dataclass(frozen=True)
class ConnectionTest:
    success: bool
    message: str


class DataService:
    """
    Single entry point for portal data.

    Each operation tries the remote store once (when the probe says it is available) and
    re-runs the same operation on the local store if anything goes wrong. Results have the
    same shape on both paths; fallbacks are logged and counted in `connection_status()`.
    Writes accepted by the local store are not replayed to the remote store later.
    """

    def __init__(
        self,
        cfg: AppConfig,
        local: Optional[LocalStore] = None,
        remote: Optional[RemoteStoreClient] = None,
        probe: Optional[AvailabilityProbe] = None,
    ):
        self.cfg = cfg
        self.local = local if local is not None else LocalStore()
        self.remote = remote if remote is not None else get_remote_client(cfg)
        self.probe = probe if probe is not None else AvailabilityProbe(cfg)
        self.use_local = cfg.use_local_data
        self._fallbacks = 0
        self._last_fallback: Optional[str] = None
        logger.info("DataService initialized with: %s", "remote store" if self._use_remote() else "local store")

    def _use_remote(self) -> bool:
        return not self.use_local and self.probe.is_available()

    async def _fallback(
        self,
        operation: str,
        collection: str,
        fn_remote: Callable[[], Awaitable[T]],
        fn_local: Callable[[], T],
    ) -> T:
        if not self._use_remote():
            return fn_local()
        try:
            return await fn_remote()
        except Exception as e:
            self._fallbacks += 1
            self._last_fallback = f"{operation} on {collection}: {type(e).__name__}"
            if isinstance(e, RemoteStoreError):
                logger.warning("Fell back to local store for %s on %s: %s", operation, collection, e)
            else:
                # not a store failure: keep the traceback
                logger.exception("Unexpected error in %s on %s; fell back to local store", operation, collection)
            return fn_local()

    # --- remote building blocks ---

    async def _remote_one(self, collection: str, params: queries.Params) -> Optional[dict]:
        # "No rows" is an answer, not a failure
        try:
            return await self.remote.select_one(collection, params)
        except RemoteNotFound:
            return None

    async def _remote_update(self, collection: str, entity_id: str, changes: dict) -> Optional[dict]:
        rows = await self.remote.update(
            collection, queries.q_match_id(entity_id), {**without_system_fields(changes), "updated_at": utc_now()}
        )
        return rows[0] if rows else None

    async def _remote_delete(self, collection: str, entity_id: str) -> bool:
        rows = await self.remote.delete(collection, queries.q_match_id(entity_id))
        return bool(rows)

    async def _remote_unit_ids(self, property_id: str) -> list[str]:
        units = await self.remote.select(UNITS, queries.q_units(property_id))
        return [u["id"] for u in units]

    # --- generic operations ---

    async def _get(self, operation: str, collection: str, entity_id: str) -> Optional[dict]:
        return await self._fallback(
            operation,
            collection,
            fn_remote=lambda: self._remote_one(collection, queries.q_by_id(entity_id)),
            fn_local=lambda: self.local.get(collection, entity_id),
        )

    async def _create(self, operation: str, collection: str, fields: dict) -> dict:
        return await self._fallback(
            operation,
            collection,
            fn_remote=lambda: self.remote.insert(collection, without_system_fields(fields)),
            fn_local=lambda: self.local.create(collection, fields),
        )

    async def _update(self, operation: str, collection: str, entity_id: str, changes: dict) -> Optional[dict]:
        return await self._fallback(
            operation,
            collection,
            fn_remote=lambda: self._remote_update(collection, entity_id, changes),
            fn_local=lambda: self.local.update(collection, entity_id, changes),
        )

    async def _delete(self, operation: str, collection: str, entity_id: str) -> bool:
        return await self._fallback(
            operation,
            collection,
            fn_remote=lambda: self._remote_delete(collection, entity_id),
            fn_local=lambda: self.local.delete(collection, entity_id),
        )

    # --- properties ---

    async def get_properties(self) -> list[dict]:
        return await self._fallback(
            "get_properties",
            PROPERTIES,
            fn_remote=lambda: self.remote.select(PROPERTIES, queries.q_properties()),
            fn_local=lambda: self.local.list(PROPERTIES),
        )

    async def get_properties_by_owner(self, owner_id: str) -> list[dict]:
        return await self._fallback(
            "get_properties_by_owner",
            PROPERTIES,
            fn_remote=lambda: self.remote.select(PROPERTIES, queries.q_properties_by_owner(owner_id)),
            fn_local=lambda: self.local.list(PROPERTIES, {"owner_id": owner_id}),
        )

    async def get_property(self, property_id: str) -> Optional[dict]:
        return await self._get("get_property", PROPERTIES, property_id)

    async def create_property(self, fields: dict) -> dict:
        return await self._create("create_property", PROPERTIES, fields)

    async def update_property(self, property_id: str, changes: dict) -> Optional[dict]:
        return await self._update("update_property", PROPERTIES, property_id, changes)

    async def delete_property(self, property_id: str) -> bool:
        return await self._delete("delete_property", PROPERTIES, property_id)

    # --- units ---

    async def get_units(self, property_id: Optional[str] = None) -> list[dict]:
        return await self._fallback(
            "get_units",
            UNITS,
            fn_remote=lambda: self.remote.select(UNITS, queries.q_units(property_id)),
            fn_local=lambda: self.local.list_units(property_id),
        )

    async def get_unit(self, unit_id: str) -> Optional[dict]:
        return await self._get("get_unit", UNITS, unit_id)

    async def get_units_by_status(self, property_id: str, status: str) -> list[dict]:
        return await self._fallback(
            "get_units_by_status",
            UNITS,
            fn_remote=lambda: self.remote.select(UNITS, queries.q_units_by_status(property_id, status)),
            fn_local=lambda: self.local.list_units(property_id, status),
        )

    async def create_unit(self, fields: dict) -> dict:
        async def _remote() -> dict:
            row = without_system_fields(fields)
            row["status"] = integrity.settle_status(row.get("unit_number", ""), row.get("status") or AVAILABLE, False)
            return await self.remote.insert(UNITS, row)

        return await self._fallback("create_unit", UNITS, _remote, lambda: self.local.create(UNITS, fields))

    async def update_unit(self, unit_id: str, changes: dict) -> Optional[dict]:
        # Direct unit updates are the only way in or out of maintenance
        async def _remote() -> Optional[dict]:
            if "status" not in changes:
                return await self._remote_update(UNITS, unit_id, changes)
            tenants = await self.remote.select(TENANTS, queries.q_tenant_ids_in_unit(unit_id))
            status = integrity.settle_status(unit_id, changes["status"], bool(tenants))
            return await self._remote_update(UNITS, unit_id, {**changes, "status": status})

        return await self._fallback("update_unit", UNITS, _remote, lambda: self.local.update(UNITS, unit_id, changes))

    async def update_unit_status(self, unit_id: str, status: str) -> bool:
        return await self.update_unit(unit_id, {"status": status}) is not None

    async def delete_unit(self, unit_id: str) -> bool:
        return await self._delete("delete_unit", UNITS, unit_id)

    # --- tenants ---

    async def get_tenants(self, property_id: Optional[str] = None) -> list[dict]:
        async def _remote() -> list[dict]:
            if not property_id:
                return await self.remote.select(TENANTS, queries.q_tenants())
            unit_ids = await self._remote_unit_ids(property_id)
            if not unit_ids:
                return []
            return await self.remote.select(TENANTS, queries.q_tenants_in_units(unit_ids))

        return await self._fallback("get_tenants", TENANTS, _remote, lambda: self.local.list_tenants(property_id))

    async def get_tenant(self, tenant_id: str) -> Optional[dict]:
        return await self._get("get_tenant", TENANTS, tenant_id)

    async def get_tenant_by_unit(self, unit_id: str) -> Optional[dict]:
        return await self._fallback(
            "get_tenant_by_unit",
            TENANTS,
            fn_remote=lambda: self._remote_one(TENANTS, queries.q_tenant_by_unit(unit_id)),
            fn_local=lambda: self.local.get_tenant_by_unit(unit_id),
        )

    async def get_tenant_with_unit(self, tenant_id: str) -> Optional[dict]:
        async def _remote() -> Optional[dict]:
            tenant = await self._remote_one(TENANTS, queries.q_by_id(tenant_id))
            if tenant is None:
                return None
            unit = await self._remote_one(UNITS, queries.q_by_id(tenant["unit_id"])) if tenant.get("unit_id") else None
            return {**tenant, "unit_number": unit.get("unit_number") if unit else None}

        return await self._fallback(
            "get_tenant_with_unit", TENANTS, _remote, lambda: self.local.get_tenant_with_unit(tenant_id)
        )

    async def create_tenant(self, fields: dict) -> dict:
        async def _remote() -> dict:
            row = await self.remote.insert(TENANTS, without_system_fields(fields))
            moves = integrity.unit_transitions(None, row.get("unit_id"))
            await integrity.apply_remote(self.remote, moves, row.get("id"))
            return row

        return await self._fallback("create_tenant", TENANTS, _remote, lambda: self.local.create(TENANTS, fields))

    async def update_tenant(self, tenant_id: str, changes: dict) -> Optional[dict]:
        async def _remote() -> Optional[dict]:
            current = await self._remote_one(TENANTS, queries.q_by_id(tenant_id))
            if current is None:
                return None
            updated = await self._remote_update(TENANTS, tenant_id, changes)
            if updated is None:
                return None
            if "unit_id" in changes:
                moves = integrity.unit_transitions(current.get("unit_id"), changes["unit_id"])
                await integrity.apply_remote(self.remote, moves, tenant_id)
            return updated

        return await self._fallback(
            "update_tenant", TENANTS, _remote, lambda: self.local.update(TENANTS, tenant_id, changes)
        )

    async def delete_tenant(self, tenant_id: str) -> bool:
        async def _remote() -> bool:
            current = await self._remote_one(TENANTS, queries.q_by_id(tenant_id))
            if current is None:
                return False
            if not await self._remote_delete(TENANTS, tenant_id):
                return False
            moves = integrity.unit_transitions(current.get("unit_id"), None)
            await integrity.apply_remote(self.remote, moves, tenant_id)
            return True

        return await self._fallback("delete_tenant", TENANTS, _remote, lambda: self.local.delete(TENANTS, tenant_id))

    async def assign_tenant_to_unit(self, tenant_id: str, unit_id: str) -> bool:
        return await self.update_tenant(tenant_id, {"unit_id": unit_id}) is not None

    async def remove_tenant_from_unit(self, tenant_id: str) -> bool:
        return await self.update_tenant(tenant_id, {"unit_id": None}) is not None

    # --- maintenance requests ---

    async def get_maintenance_requests(self, property_id: Optional[str] = None) -> list[dict]:
        async def _remote() -> list[dict]:
            if not property_id:
                return await self.remote.select(MAINTENANCE_REQUESTS, queries.q_maintenance_requests())
            unit_ids = await self._remote_unit_ids(property_id)
            if not unit_ids:
                return []
            return await self.remote.select(MAINTENANCE_REQUESTS, queries.q_maintenance_requests(unit_ids))

        return await self._fallback(
            "get_maintenance_requests",
            MAINTENANCE_REQUESTS,
            _remote,
            lambda: self.local.list_maintenance_requests(property_id),
        )

    async def get_maintenance_request(self, request_id: str) -> Optional[dict]:
        return await self._get("get_maintenance_request", MAINTENANCE_REQUESTS, request_id)

    async def get_maintenance_requests_by_unit(self, unit_id: str) -> list[dict]:
        return await self._fallback(
            "get_maintenance_requests_by_unit",
            MAINTENANCE_REQUESTS,
            fn_remote=lambda: self.remote.select(MAINTENANCE_REQUESTS, queries.q_maintenance_by_unit(unit_id)),
            fn_local=lambda: self.local.list_maintenance_requests(unit_id=unit_id),
        )

    async def get_maintenance_requests_by_status(self, property_id: str, status: str) -> list[dict]:
        async def _remote() -> list[dict]:
            unit_ids = await self._remote_unit_ids(property_id)
            if not unit_ids:
                return []
            return await self.remote.select(MAINTENANCE_REQUESTS, queries.q_maintenance_by_status(unit_ids, status))

        return await self._fallback(
            "get_maintenance_requests_by_status",
            MAINTENANCE_REQUESTS,
            _remote,
            lambda: self.local.list_maintenance_requests(property_id, status=status),
        )

    async def get_maintenance_request_with_unit(self, request_id: str) -> Optional[dict]:
        async def _remote() -> Optional[dict]:
            request = await self._remote_one(MAINTENANCE_REQUESTS, queries.q_by_id(request_id))
            if request is None:
                return None
            unit = await self._remote_one(UNITS, queries.q_by_id(request["unit_id"]))
            return {**request, "unit_number": unit.get("unit_number") if unit else None}

        return await self._fallback(
            "get_maintenance_request_with_unit",
            MAINTENANCE_REQUESTS,
            _remote,
            lambda: self.local.get_maintenance_request_with_unit(request_id),
        )

    async def create_maintenance_request(self, fields: dict) -> dict:
        return await self._create("create_maintenance_request", MAINTENANCE_REQUESTS, fields)

    async def update_maintenance_request(self, request_id: str, changes: dict) -> Optional[dict]:
        return await self._update("update_maintenance_request", MAINTENANCE_REQUESTS, request_id, changes)

    async def delete_maintenance_request(self, request_id: str) -> bool:
        return await self._delete("delete_maintenance_request", MAINTENANCE_REQUESTS, request_id)

    async def update_maintenance_status(self, request_id: str, status: str, extra: Optional[dict] = None) -> bool:
        """Set a request's status; closing it stamps `completed_date` unless `extra` gives one."""
        changes = {**(extra or {}), "status": status}
        if status == COMPLETED:
            changes.setdefault("completed_date", utc_today())
        return await self._update("update_maintenance_status", MAINTENANCE_REQUESTS, request_id, changes) is not None

    async def assign_maintenance_request(self, request_id: str, assigned_to: str) -> bool:
        changes = {"assigned_to": assigned_to, "status": IN_PROGRESS}
        return await self._update("assign_maintenance_request", MAINTENANCE_REQUESTS, request_id, changes) is not None

    async def schedule_maintenance_request(self, request_id: str, scheduled_date: str) -> bool:
        changes = {"scheduled_date": scheduled_date, "status": SCHEDULED}
        return await self._update("schedule_maintenance_request", MAINTENANCE_REQUESTS, request_id, changes) is not None

    async def get_maintenance_stats(self, property_id: str) -> MaintenanceStats:
        async def _remote() -> MaintenanceStats:
            unit_ids = await self._remote_unit_ids(property_id)
            if not unit_ids:
                return maintenance_stats([])
            return maintenance_stats(await self.remote.select(MAINTENANCE_REQUESTS, queries.q_maintenance_requests(unit_ids)))

        return await self._fallback(
            "get_maintenance_stats",
            MAINTENANCE_REQUESTS,
            _remote,
            lambda: maintenance_stats(self.local.list_maintenance_requests(property_id)),
        )

    # --- transactions ---

    async def get_transactions(
        self,
        property_id: Optional[str] = None,
        since: Optional[str] = None,
        until: Optional[str] = None,
    ) -> list[dict]:
        return await self._fallback(
            "get_transactions",
            TRANSACTIONS,
            fn_remote=lambda: self.remote.select(TRANSACTIONS, queries.q_transactions(property_id, since, until)),
            fn_local=lambda: self.local.list_transactions(property_id, since, until),
        )

    async def get_transaction(self, transaction_id: str) -> Optional[dict]:
        return await self._get("get_transaction", TRANSACTIONS, transaction_id)

    async def create_transaction(self, fields: dict) -> dict:
        return await self._create("create_transaction", TRANSACTIONS, fields)

    async def update_transaction(self, transaction_id: str, changes: dict) -> Optional[dict]:
        return await self._update("update_transaction", TRANSACTIONS, transaction_id, changes)

    async def delete_transaction(self, transaction_id: str) -> bool:
        return await self._delete("delete_transaction", TRANSACTIONS, transaction_id)

    # --- cross-entity reads ---

    async def get_unit_with_details(self, unit_id: str) -> Optional[dict]:
        # All three reads come from the same backend
        async def _remote() -> Optional[dict]:
            unit = await self._remote_one(UNITS, queries.q_by_id(unit_id))
            if unit is None:
                return None
            tenant = await self._remote_one(TENANTS, queries.q_tenant_by_unit(unit_id))
            requests = await self.remote.select(MAINTENANCE_REQUESTS, queries.q_maintenance_by_unit(unit_id))
            return {**unit, "tenant": tenant, "maintenance_requests": requests}

        return await self._fallback("get_unit_with_details", UNITS, _remote, lambda: self.local.get_unit_with_details(unit_id))

    async def get_property_stats(self, property_id: str) -> PropertyStats:
        async def _remote() -> PropertyStats:
            units = await self.remote.select(UNITS, queries.q_units(property_id))
            unit_ids = [u["id"] for u in units]
            tenants: list[dict] = []
            requests: list[dict] = []
            if unit_ids:
                tenants = await self.remote.select(TENANTS, queries.q_tenants_in_units(unit_ids))
                requests = await self.remote.select(MAINTENANCE_REQUESTS, queries.q_maintenance_requests(unit_ids))
            return compute_property_stats(property_id, units, tenants, requests)

        return await self._fallback("get_property_stats", UNITS, _remote, lambda: self.local.property_stats(property_id))

    async def get_financial_summary(
        self,
        property_id: Optional[str] = None,
        since: Optional[str] = None,
        until: Optional[str] = None,
    ) -> FinancialSummary:
        transactions = await self.get_transactions(property_id, since, until)
        return financial_summary(transactions)

    # --- connection ---

    def connection_status(self) -> ConnectionStatus:
        remote = self._use_remote()
        return ConnectionStatus(
            is_remote_connected=remote,
            connection_type="remote" if remote else "local",
            fallback_count=self._fallbacks,
            last_fallback=self._last_fallback,
        )

    async def test_connection(self) -> ConnectionTest:
        if not self.cfg.remote_configured:
            return ConnectionTest(success=False, message="Remote store not configured - using local data")
        try:
            total = await self.remote.count(PROPERTIES)
        except RemoteStoreError as e:
            message = f"Remote store connection failed: {e}"
            if e.code == TABLE_NOT_FOUND:
                message += " (create the tables with the schema script, then reload the API schema cache)"
            return ConnectionTest(success=False, message=message)
        return ConnectionTest(success=True, message=f"Remote store reachable ({total} properties)")

    async def refresh_connection(self) -> bool:
        logger.info("Refreshing remote store connection...")
        available = await asyncio.to_thread(self.probe.refresh)
        logger.info("Remote store %s", "available" if available else "unavailable")
        return available

    async def aclose(self) -> None:
        await self.remote.aclose()


def get_data_service(cfg: AppConfig, **kwargs: Any) -> DataService:
    return DataService(cfg, **kwargs)

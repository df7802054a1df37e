"""
In-memory stand-in for the remote store.

Holds the five collections, seeds itself lazily from a dataset factory, and mirrors the
remote schema's referential actions (cascades, SET NULL) so a fallback answer looks like a
remote one. It never raises for a missing id: lookups return None, deletes return False.
"""

from __future__ import annotations

import copy
import itertools
import logging
from typing import Callable, Optional

from immogest.data import integrity
from immogest.data.mock_data import demo_dataset
from immogest.data.models import (
    AVAILABLE,
    COLLECTIONS,
    MAINTENANCE_REQUESTS,
    PROPERTIES,
    TENANTS,
    TRANSACTIONS,
    UNITS,
    utc_now,
    without_system_fields,
)
from immogest.data.summaries import PropertyStats, compute_property_stats

logger = logging.getLogger(__name__)

SeedFactory = Callable[[], dict[str, list[dict]]]

ID_PREFIXES = {
    PROPERTIES: "property",
    UNITS: "unit",
    TENANTS: "tenant",
    MAINTENANCE_REQUESTS: "maintenance",
    TRANSACTIONS: "transaction",
}

# Per-collection list order, matching the remote queries: (field, newest/largest first)
SORT_ORDER = {
    PROPERTIES: ("created_at", True),
    UNITS: ("unit_number", False),
    TENANTS: ("name", False),
    TRANSACTIONS: ("date", True),
    MAINTENANCE_REQUESTS: ("reported_date", True),
}


def _matches(record: dict, filters: Optional[dict]) -> bool:
    if not filters:
        return True
    for key, expected in filters.items():
        value = record.get(key)
        if isinstance(expected, (list, tuple, set, frozenset)):
            if value not in expected:
                return False
        elif value != expected:
            return False
    return True


class LocalStore:
    def __init__(self, seed: Optional[SeedFactory] = demo_dataset):
        self._seed = seed
        self._data: dict[str, dict[str, dict]] = {c: {} for c in COLLECTIONS}
        self._ids = itertools.count(1)
        self._initialized = False

    @property
    def initialized(self) -> bool:
        return self._initialized

    def _initialize(self) -> None:
        if self._initialized:
            return
        if self._seed is not None:
            dataset = self._seed()
            for collection in COLLECTIONS:
                self._data[collection] = {r["id"]: dict(r) for r in dataset.get(collection, [])}
        self._initialized = True
        logger.info(
            "Local store seeded: %s",
            ", ".join(f"{c}={len(self._data[c])}" for c in COLLECTIONS),
        )

    def _rows(self, collection: str) -> dict[str, dict]:
        self._initialize()
        return self._data[collection]

    def _new_id(self, collection: str) -> str:
        rows = self._data[collection]
        while True:
            candidate = f"{ID_PREFIXES[collection]}-{next(self._ids)}"
            if candidate not in rows:
                return candidate

    def reset(self) -> None:
        """Drop everything; the next access seeds again."""
        self._data = {c: {} for c in COLLECTIONS}
        self._ids = itertools.count(1)
        self._initialized = False

    # --- generic CRUD ---

    def list(self, collection: str, filters: Optional[dict] = None) -> list[dict]:
        rows = [copy.deepcopy(r) for r in self._rows(collection).values() if _matches(r, filters)]
        key, descending = SORT_ORDER[collection]
        rows.sort(key=lambda r: "" if r.get(key) is None else str(r.get(key)), reverse=descending)
        return rows

    def get(self, collection: str, entity_id: str) -> Optional[dict]:
        record = self._rows(collection).get(entity_id)
        return copy.deepcopy(record) if record is not None else None

    def create(self, collection: str, fields: dict) -> dict:
        rows = self._rows(collection)
        now = utc_now()
        record = dict(copy.deepcopy(without_system_fields(fields)))
        record.update(id=self._new_id(collection), created_at=now, updated_at=now)
        if collection == UNITS:
            # nobody can reference a unit that does not exist yet
            record["status"] = integrity.settle_status(record["id"], record.get("status") or AVAILABLE, False)
        if collection == TENANTS:
            record.setdefault("unit_id", None)
        rows[record["id"]] = record

        if collection == TENANTS:
            integrity.apply_local(self, integrity.unit_transitions(None, record["unit_id"]), record["id"])
        return copy.deepcopy(record)

    def update(self, collection: str, entity_id: str, changes: dict) -> Optional[dict]:
        rows = self._rows(collection)
        current = rows.get(entity_id)
        if current is None:
            return None
        changes = copy.deepcopy(without_system_fields(changes))

        if collection == TENANTS and "unit_id" in changes:
            moves = integrity.unit_transitions(current.get("unit_id"), changes["unit_id"])
            integrity.apply_local(self, moves, entity_id)
        if collection == UNITS and "status" in changes:
            changes["status"] = integrity.settle_status(entity_id, changes["status"], self._has_tenant(entity_id))

        current.update(changes)
        current["updated_at"] = utc_now()
        return copy.deepcopy(current)

    def set_unit_status(self, unit_id: str, status: str) -> None:
        """Raw status write for the occupancy rule, which has already decided the value."""
        unit = self._rows(UNITS).get(unit_id)
        if unit is not None:
            unit["status"] = status
            unit["updated_at"] = utc_now()

    def _has_tenant(self, unit_id: str) -> bool:
        return any(t.get("unit_id") == unit_id for t in self._rows(TENANTS).values())

    def delete(self, collection: str, entity_id: str) -> bool:
        rows = self._rows(collection)
        record = rows.get(entity_id)
        if record is None:
            return False

        if collection == TENANTS:
            integrity.apply_local(self, integrity.unit_transitions(record.get("unit_id"), None), entity_id)
            self._set_null(TRANSACTIONS, "tenant_id", entity_id)
        elif collection == UNITS:
            self._cascade(MAINTENANCE_REQUESTS, "unit_id", entity_id)
            self._set_null(TENANTS, "unit_id", entity_id)
        elif collection == PROPERTIES:
            for unit_id in [u["id"] for u in self._data[UNITS].values() if u.get("property_id") == entity_id]:
                self.delete(UNITS, unit_id)
            self._cascade(TRANSACTIONS, "property_id", entity_id)

        del rows[entity_id]
        return True

    def _cascade(self, collection: str, column: str, value: str) -> None:
        rows = self._data[collection]
        for rid in [rid for rid, r in rows.items() if r.get(column) == value]:
            del rows[rid]

    def _set_null(self, collection: str, column: str, value: str) -> None:
        now = utc_now()
        for r in self._data[collection].values():
            if r.get(column) == value:
                r[column] = None
                r["updated_at"] = now

    # --- entity-shaped reads ---

    def list_units(self, property_id: Optional[str] = None, status: Optional[str] = None) -> list[dict]:
        filters = {}
        if property_id:
            filters["property_id"] = property_id
        if status:
            filters["status"] = status
        return self.list(UNITS, filters)

    def _unit_ids(self, property_id: str) -> list[str]:
        return [u["id"] for u in self._rows(UNITS).values() if u.get("property_id") == property_id]

    def list_tenants(self, property_id: Optional[str] = None) -> list[dict]:
        if not property_id:
            return self.list(TENANTS)
        return self.list(TENANTS, {"unit_id": self._unit_ids(property_id)})

    def get_tenant_by_unit(self, unit_id: str) -> Optional[dict]:
        matches = self.list(TENANTS, {"unit_id": unit_id})
        return matches[0] if matches else None

    def list_maintenance_requests(
        self,
        property_id: Optional[str] = None,
        unit_id: Optional[str] = None,
        status: Optional[str] = None,
    ) -> list[dict]:
        filters: dict = {}
        if property_id:
            filters["unit_id"] = self._unit_ids(property_id)
        if unit_id:
            filters["unit_id"] = unit_id
        if status:
            filters["status"] = status
        return self.list(MAINTENANCE_REQUESTS, filters)

    def list_transactions(
        self,
        property_id: Optional[str] = None,
        since: Optional[str] = None,
        until: Optional[str] = None,
    ) -> list[dict]:
        rows = self.list(TRANSACTIONS, {"property_id": property_id} if property_id else None)
        if since:
            rows = [t for t in rows if (t.get("date") or "") >= since]
        if until:
            rows = [t for t in rows if (t.get("date") or "") <= until]
        return rows

    def get_unit_with_details(self, unit_id: str) -> Optional[dict]:
        unit = self.get(UNITS, unit_id)
        if unit is None:
            return None
        return {
            **unit,
            "tenant": self.get_tenant_by_unit(unit_id),
            "maintenance_requests": self.list(MAINTENANCE_REQUESTS, {"unit_id": unit_id}),
        }

    def get_tenant_with_unit(self, tenant_id: str) -> Optional[dict]:
        tenant = self.get(TENANTS, tenant_id)
        if tenant is None:
            return None
        unit = self.get(UNITS, tenant["unit_id"]) if tenant.get("unit_id") else None
        return {**tenant, "unit_number": unit.get("unit_number") if unit else None}

    def get_maintenance_request_with_unit(self, request_id: str) -> Optional[dict]:
        request = self.get(MAINTENANCE_REQUESTS, request_id)
        if request is None:
            return None
        unit = self.get(UNITS, request["unit_id"])
        return {**request, "unit_number": unit.get("unit_number") if unit else None}

    def property_stats(self, property_id: str) -> PropertyStats:
        return compute_property_stats(
            property_id,
            self._rows(UNITS).values(),
            self._rows(TENANTS).values(),
            self._rows(MAINTENANCE_REQUESTS).values(),
        )

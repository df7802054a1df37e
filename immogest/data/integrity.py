"""
Unit occupancy rule.

A unit is `occupied` exactly when a tenant points at it. Tenant mutations on either
backend compute their unit side effects with `unit_transitions` and apply them with
`apply_local` or `apply_remote`, so the rule lives in one place.

A unit in `maintenance` is a manual override: tenant side effects skip it, and only a
direct unit update moves it out of that state. Direct updates go through
`settle_status`, which can set `maintenance` but otherwise defers to the tenants.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Iterable, Optional

from immogest.data import queries
from immogest.data.models import AVAILABLE, MAINTENANCE, OCCUPIED, TENANTS, UNITS, utc_now

if TYPE_CHECKING:
    from immogest.data.connection import RemoteStoreClient
    from immogest.data.local_store import LocalStore

logger = logging.getLogger(__name__)

Transition = tuple[str, str]  # (unit_id, new status)


def unit_transitions(previous_unit_id: Optional[str], new_unit_id: Optional[str]) -> list[Transition]:
    """Release the previous unit, then occupy the new one. Empty when the unit does not change."""
    if previous_unit_id == new_unit_id:
        return []
    out: list[Transition] = []
    if previous_unit_id:
        out.append((previous_unit_id, AVAILABLE))
    if new_unit_id:
        out.append((new_unit_id, OCCUPIED))
    return out


def settle_status(unit_id: str, requested: str, assigned: bool) -> str:
    """
    Status a direct unit write actually stores.

    `maintenance` is taken as asked. Anything else follows tenant assignment, so a unit
    leaving maintenance with a tenant on file comes back `occupied`.
    """
    if requested == MAINTENANCE:
        return MAINTENANCE
    settled = OCCUPIED if assigned else AVAILABLE
    if settled != requested:
        logger.info("Unit %s: requested status %s, stored %s to match tenant assignment", unit_id, requested, settled)
    return settled


def apply_local(store: "LocalStore", transitions: Iterable[Transition], tenant_id: Optional[str] = None) -> None:
    for unit_id, status in transitions:
        unit = store.get(UNITS, unit_id)
        if unit is None:
            continue
        if unit.get("status") == MAINTENANCE:
            logger.info("Unit %s is under maintenance; leaving status unchanged", unit_id)
            continue
        if status == AVAILABLE and _others_in_unit(store.list(TENANTS, {"unit_id": unit_id}), tenant_id):
            continue
        store.set_unit_status(unit_id, status)


async def apply_remote(client: "RemoteStoreClient", transitions: Iterable[Transition], tenant_id: Optional[str] = None) -> None:
    # Errors propagate: a failed side effect fails the whole remote operation
    for unit_id, status in transitions:
        if status == AVAILABLE:
            others = await client.select(TENANTS, queries.q_other_tenants_in_unit(unit_id, tenant_id))
            if others:
                continue
        await client.update(UNITS, queries.q_unit_status_change(unit_id), {"status": status, "updated_at": utc_now()})


def _others_in_unit(tenants: Iterable[dict], tenant_id: Optional[str]) -> bool:
    return any(t.get("id") != tenant_id for t in tenants)


def check_occupancy(units: Iterable[dict], tenants: Iterable[dict]) -> list[str]:
    """Ids of units whose status disagrees with tenant assignments (maintenance units never do)."""
    assigned = {t.get("unit_id") for t in tenants if t.get("unit_id")}
    bad = []
    for u in units:
        status = u.get("status")
        if status == MAINTENANCE:
            continue
        if (status == OCCUPIED) != (u.get("id") in assigned):
            bad.append(u.get("id"))
    return bad

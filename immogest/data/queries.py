"""
PostgREST query parameters, one function per logical query.

Each function returns a list of (key, value) pairs ready to pass as `params`
to the remote client.
"""

from __future__ import annotations

from typing import Iterable, Optional

from immogest.data.models import MAINTENANCE

Params = list[tuple[str, str]]


def select(columns: str = "*") -> tuple[str, str]:
    return ("select", columns)


def eq(column: str, value) -> tuple[str, str]:
    return (column, f"eq.{value}")


def neq(column: str, value) -> tuple[str, str]:
    return (column, f"neq.{value}")


def gte(column: str, value) -> tuple[str, str]:
    return (column, f"gte.{value}")


def lte(column: str, value) -> tuple[str, str]:
    return (column, f"lte.{value}")


def in_(column: str, values: Iterable) -> tuple[str, str]:
    quoted = ",".join(f'"{v}"' for v in values)
    return (column, f"in.({quoted})")


def order(column: str, desc: bool = False) -> tuple[str, str]:
    return ("order", f"{column}.{'desc' if desc else 'asc'}")


def limit(n: int) -> tuple[str, str]:
    return ("limit", str(n))


def q_by_id(entity_id: str) -> Params:
    return [select(), eq("id", entity_id)]


def q_match_id(entity_id: str) -> Params:
    # Filter-only form for update/delete
    return [eq("id", entity_id)]


def q_probe() -> Params:
    return [select("id"), limit(1)]


def q_properties() -> Params:
    return [select(), order("created_at", desc=True)]


def q_properties_by_owner(owner_id: str) -> Params:
    return [select(), eq("owner_id", owner_id), order("created_at", desc=True)]


def q_units(property_id: Optional[str] = None) -> Params:
    params = [select()]
    if property_id:
        params.append(eq("property_id", property_id))
    params.append(order("unit_number"))
    return params


def q_units_by_status(property_id: str, status: str) -> Params:
    return [select(), eq("property_id", property_id), eq("status", status), order("unit_number")]


def q_unit_status_change(unit_id: str) -> Params:
    # Tenant side effects never touch a unit held in maintenance
    return [eq("id", unit_id), neq("status", MAINTENANCE)]


def q_tenants() -> Params:
    return [select(), order("name")]


def q_tenants_in_units(unit_ids: Iterable[str]) -> Params:
    return [select(), in_("unit_id", unit_ids), order("name")]


def q_tenant_by_unit(unit_id: str) -> Params:
    return [select(), eq("unit_id", unit_id), limit(1)]


def q_tenant_ids_in_unit(unit_id: str) -> Params:
    return [select("id"), eq("unit_id", unit_id)]


def q_other_tenants_in_unit(unit_id: str, tenant_id: Optional[str]) -> Params:
    params = q_tenant_ids_in_unit(unit_id)
    if tenant_id:
        params.append(neq("id", tenant_id))
    return params


def q_maintenance_requests(unit_ids: Optional[Iterable[str]] = None) -> Params:
    params = [select()]
    if unit_ids is not None:
        params.append(in_("unit_id", unit_ids))
    params.append(order("reported_date", desc=True))
    return params


def q_maintenance_by_unit(unit_id: str) -> Params:
    return [select(), eq("unit_id", unit_id), order("reported_date", desc=True)]


def q_maintenance_by_status(unit_ids: Iterable[str], status: str) -> Params:
    return [select(), in_("unit_id", unit_ids), eq("status", status), order("reported_date", desc=True)]


def q_transactions(property_id: Optional[str] = None, since: Optional[str] = None, until: Optional[str] = None) -> Params:
    params = [select()]
    if property_id:
        params.append(eq("property_id", property_id))
    if since:
        params.append(gte("date", since))
    if until:
        params.append(lte("date", until))
    params.append(order("date", desc=True))
    return params

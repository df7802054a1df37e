"""
Entity vocabulary shared by the remote store and the local store.

Records travel as plain dicts (JSON rows); the TypedDicts below document their shape.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import List, Optional, TypedDict


# Remote collection names (also the local store's collection keys)
PROPERTIES = "properties"
UNITS = "units"
TENANTS = "tenants"
MAINTENANCE_REQUESTS = "maintenance_requests"
TRANSACTIONS = "transactions"

COLLECTIONS = (PROPERTIES, UNITS, TENANTS, MAINTENANCE_REQUESTS, TRANSACTIONS)

# Fields the system assigns; never taken from a create payload
SYSTEM_FIELDS = ("id", "created_at", "updated_at")

# Unit status
AVAILABLE = "available"
OCCUPIED = "occupied"
MAINTENANCE = "maintenance"

# Maintenance request status
PENDING = "pending"
SCHEDULED = "scheduled"
IN_PROGRESS = "in-progress"
COMPLETED = "completed"

MAINTENANCE_CATEGORIES = ("plumbing", "electrical", "hvac", "appliance", "general")
MAINTENANCE_PRIORITIES = ("low", "medium", "high", "urgent")

INCOME = "income"
EXPENSE = "expense"


class Property(TypedDict, total=False):
    id: str
    name: str
    address: str
    description: Optional[str]
    total_units: int
    year_built: Optional[int]
    square_footage: Optional[float]
    owner_id: Optional[str]
    created_at: str
    updated_at: str


class Unit(TypedDict, total=False):
    id: str
    property_id: str
    unit_number: str
    floor: str
    type: str
    surface: float
    bedrooms: int
    bathrooms: int
    rent: float
    deposit: float
    description: Optional[str]
    amenities: List[str]
    furnished: bool
    status: str
    created_at: str
    updated_at: str


class Tenant(TypedDict, total=False):
    id: str
    unit_id: Optional[str]
    name: str
    email: str
    phone: str
    lease_start: str
    lease_end: str
    rent_amount: float
    deposit_amount: float
    emergency_contact: Optional[str]
    occupation: Optional[str]
    created_at: str
    updated_at: str


class MaintenanceRequest(TypedDict, total=False):
    id: str
    unit_id: str
    title: str
    description: str
    category: str
    priority: str
    status: str
    reported_date: str
    scheduled_date: Optional[str]
    completed_date: Optional[str]
    reported_by: str
    assigned_to: Optional[str]
    estimated_cost: Optional[float]
    actual_cost: Optional[float]
    created_at: str
    updated_at: str


class Transaction(TypedDict, total=False):
    id: str
    property_id: str
    type: str
    description: str
    amount: float
    category: str
    tenant_id: Optional[str]
    date: str
    created_at: str
    updated_at: str


def without_system_fields(fields: dict) -> dict:
    return {k: v for k, v in fields.items() if k not in SYSTEM_FIELDS}


def utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


def utc_today() -> str:
    return datetime.now(timezone.utc).date().isoformat()

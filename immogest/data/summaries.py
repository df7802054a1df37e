"""
Aggregates computed from entity lists.

Both backends feed the same functions, so a stats or summary result has the same
shape whichever store answered.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable

import pandas as pd

from immogest.data.models import (
    AVAILABLE,
    COMPLETED,
    EXPENSE,
    IN_PROGRESS,
    INCOME,
    MAINTENANCE,
    OCCUPIED,
    PENDING,
    SCHEDULED,
)


@dataclass(frozen=True)
class PropertyStats:
    total_units: int
    occupied_units: int
    available_units: int
    maintenance_units: int
    total_tenants: int
    pending_maintenance: int
    in_progress_maintenance: int
    scheduled_maintenance: int
    completed_maintenance: int
    monthly_revenue: float

    @property
    def occupancy_rate(self) -> float:
        if not self.total_units:
            return 0.0
        return round(self.occupied_units / self.total_units * 100, 1)


@dataclass(frozen=True)
class FinancialSummary:
    total_income: float
    total_expenses: float
    net_income: float
    monthly: list[dict] = field(default_factory=list)  # month, income, expenses, net
    expense_breakdown: list[dict] = field(default_factory=list)  # category, amount, share


@dataclass(frozen=True)
class MaintenanceStats:
    total: int
    pending: int
    in_progress: int
    scheduled: int
    completed: int


def maintenance_stats(requests: Iterable[dict]) -> MaintenanceStats:
    statuses = [r.get("status") for r in requests]
    return MaintenanceStats(
        total=len(statuses),
        pending=statuses.count(PENDING),
        in_progress=statuses.count(IN_PROGRESS),
        scheduled=statuses.count(SCHEDULED),
        completed=statuses.count(COMPLETED),
    )


def compute_property_stats(
    property_id: str,
    units: Iterable[dict],
    tenants: Iterable[dict],
    requests: Iterable[dict],
) -> PropertyStats:
    units = [u for u in units if u.get("property_id") == property_id]
    by_id = {u["id"]: u for u in units}

    linked = [t for t in tenants if t.get("unit_id") in by_id]
    requests = [r for r in requests if r.get("unit_id") in by_id]

    def _units(status: str) -> int:
        return sum(1 for u in units if u.get("status") == status)

    def _requests(status: str) -> int:
        return sum(1 for r in requests if r.get("status") == status)

    revenue = sum(
        float(t.get("rent_amount") or 0)
        for t in linked
        if by_id[t["unit_id"]].get("status") == OCCUPIED
    )

    return PropertyStats(
        total_units=len(units),
        occupied_units=_units(OCCUPIED),
        available_units=_units(AVAILABLE),
        maintenance_units=_units(MAINTENANCE),
        total_tenants=len(linked),
        pending_maintenance=_requests(PENDING),
        in_progress_maintenance=_requests(IN_PROGRESS),
        scheduled_maintenance=_requests(SCHEDULED),
        completed_maintenance=_requests(COMPLETED),
        monthly_revenue=revenue,
    )


def financial_summary(transactions: Iterable[dict]) -> FinancialSummary:
    df = pd.DataFrame(list(transactions), columns=["type", "amount", "category", "date"])
    if df.empty:
        return FinancialSummary(total_income=0.0, total_expenses=0.0, net_income=0.0)

    # amount is a magnitude; the type carries the sign
    df["amount"] = pd.to_numeric(df["amount"], errors="coerce").fillna(0.0).abs()
    df["date"] = pd.to_datetime(df["date"], errors="coerce")

    income = float(df.loc[df["type"] == INCOME, "amount"].sum())
    expenses = float(df.loc[df["type"] == EXPENSE, "amount"].sum())

    dated = df.dropna(subset=["date"]).copy()
    monthly: list[dict] = []
    if not dated.empty:
        dated["month"] = dated["date"].dt.to_period("M").astype(str)
        pivot = dated.pivot_table(index="month", columns="type", values="amount", aggfunc="sum", fill_value=0.0)
        for col in (INCOME, EXPENSE):
            if col not in pivot.columns:
                pivot[col] = 0.0
        out = pd.DataFrame(
            {
                "month": pivot.index,
                "income": pivot[INCOME].astype(float).values,
                "expenses": pivot[EXPENSE].astype(float).values,
            }
        )
        out["net"] = out["income"] - out["expenses"]
        monthly = out.sort_values("month").to_dict("records")

    breakdown: list[dict] = []
    spent = df[df["type"] == EXPENSE]
    if not spent.empty and expenses > 0:
        by_cat = spent.groupby("category", dropna=False)["amount"].sum().sort_values(ascending=False)
        breakdown = [
            {"category": cat, "amount": float(amount), "share": round(float(amount) / expenses, 4)}
            for cat, amount in by_cat.items()
        ]

    return FinancialSummary(
        total_income=income,
        total_expenses=expenses,
        net_income=income - expenses,
        monthly=monthly,
        expense_breakdown=breakdown,
    )

"""
reports.py
Dashboard statistics and revenue reports.

All monthly figures are bounded by the calendar month [first day, last day],
inclusive. Walk-in payments count towards revenue but never towards client
figures, since they are not attached to a client.
"""

from __future__ import annotations

import logging
from collections import Counter
from datetime import date
from typing import Iterable

import pandas as pd

import crud
import db
import utils
from errors import MissingPlanError
from membership import classify_status, is_active
from models import (
    Client,
    DashboardStats,
    DisplayStatus,
    Payment,
    Plan,
    YearMonth,
)

logger = logging.getLogger(__name__)

AVAILABLE_MONTHS_LIMIT = 24


def monthly_equivalent(price: float, duration_days: int) -> float:
    """
    Normalize a plan price to one month of revenue.
    Day passes are not recurring and project to 0.
    """
    if duration_days <= 0 or duration_days == 1:
        return 0.0
    if duration_days == 7:
        return price * 4
    if duration_days == 30:
        return float(price)
    if duration_days == 365:
        return price / 12
    return price / duration_days * 30


def growth_percentage(current: float, previous: float) -> float:
    """
    Percentage change vs. the previous period. Growth from zero is reported
    as 100 (first period with data), and zero to zero as 0.
    """
    if previous > 0:
        return (current - previous) / previous * 100
    if current > 0:
        return 100.0
    return 0.0


def _as_month(month) -> YearMonth:
    if month is None:
        return YearMonth.of(utils.business_today())
    if isinstance(month, YearMonth):
        return month
    return YearMonth.parse(month)


def _revenue(payments: Iterable[Payment], month: YearMonth) -> float:
    return float(sum(p.amount for p in payments if month.contains(p.payment_date)))


def build_dashboard_stats(
    month: YearMonth,
    payments: list[Payment],
    clients: list[Client],
    plans: dict[int, Plan],
    today: date,
) -> DashboardStats:
    """
    Compute the dashboard from already-loaded rows.

    payments must cover at least `month` and the month before it; rows
    outside those months are ignored. clients may include soft-deleted rows.

    Client status is classified as of the last day of the month, or `today`
    while the month is still running.

    Churn counts frozen/inactive clients whose expiration falls on or before
    the month's last day and who did not pay within the month. Clients who
    lapsed inside the month itself are included, not only those whose
    membership had already ended before the month started.
    """
    prev = month.previous()
    as_of = min(today, month.end)
    total_revenue = _revenue(payments, month)
    previous_revenue = _revenue(payments, prev)

    tracked = [c for c in clients if not c.is_deleted]
    status = {c.id: classify_status(c, as_of) for c in tracked}

    active = [c for c in tracked if is_active(status[c.id])]
    projected = 0.0
    for client in active:
        if client.current_plan_id is None:
            continue
        plan = plans.get(client.current_plan_id)
        if plan is None:
            raise MissingPlanError(
                f"Plan {client.current_plan_id} of client {client.id} not found."
            )
        projected += monthly_equivalent(plan.price, plan.duration_days)

    new_clients = sum(1 for c in tracked if month.contains(c.registration_date))
    prev_new_clients = sum(1 for c in tracked if prev.contains(c.registration_date))

    paid_this_month = {
        p.client_id for p in payments if p.client_id is not None and month.contains(p.payment_date)
    }
    # lapsed no later than this month and did not come back within it
    churned = sum(
        1
        for c in tracked
        if status[c.id] in (DisplayStatus.FROZEN, DisplayStatus.INACTIVE)
        and c.expiration_date is not None
        and c.expiration_date <= month.end
        and c.id not in paid_this_month
    )

    return DashboardStats(
        month=str(month),
        total_revenue=total_revenue,
        projected_revenue=projected,
        active_clients=len(active),
        new_clients_this_month=new_clients,
        churned_clients=churned,
        revenue_growth_percentage=growth_percentage(total_revenue, previous_revenue),
        client_growth_percentage=growth_percentage(new_clients, prev_new_clients),
    )


def dashboard_stats(month=None, today: date | None = None) -> DashboardStats:
    """
    Dashboard for `month` (YearMonth or 'YYYY-MM'; defaults to the current month).
    """
    today = today or utils.business_today()
    month = YearMonth.of(today) if month is None else _as_month(month)
    payments = crud.payments_between(month.previous().start, month.end)
    stats = build_dashboard_stats(month, payments, crud.fetch_clients(), crud.plans_by_id(), today)
    logger.debug("Dashboard stats for %s: %s", month, stats)
    return stats


def _payments_frame(payments: list[Payment], plans: dict[int, Plan]) -> pd.DataFrame:
    return pd.DataFrame(
        [
            {
                "payment_date": p.payment_date,
                "amount": p.amount,
                "payment_method": p.payment_method,
                "plan_name": plans[p.plan_id].name if p.plan_id in plans else "Unknown",
            }
            for p in payments
        ],
        columns=["payment_date", "amount", "payment_method", "plan_name"],
    )


def revenue_breakdown(month=None) -> dict:
    """
    Revenue for one month split by payment method, by plan and by day.
    """
    month = _as_month(month)
    df = _payments_frame(crud.payments_between(month.start, month.end), crud.plans_by_id())

    by_method = df.groupby("payment_method")["amount"].sum()

    by_plan = (
        df.groupby("plan_name")["amount"]
        .agg(["sum", "count"])
        .sort_values("sum", ascending=False, kind="mergesort")
    )

    by_day = df.groupby("payment_date")["amount"].agg(["sum", "count"]).sort_index()

    return {
        "month": str(month),
        "total_revenue": float(df["amount"].sum()),
        "total_payments": int(len(df)),
        "revenue_by_method": {
            "cash": float(by_method.get("cash", 0.0)),
            "transfer": float(by_method.get("transfer", 0.0)),
        },
        "revenue_by_plan": [
            {"plan_name": name, "total_revenue": float(row["sum"]), "payment_count": int(row["count"])}
            for name, row in by_plan.iterrows()
        ],
        "daily_revenue": [
            {"date": day.isoformat(), "revenue": float(row["sum"]), "payment_count": int(row["count"])}
            for day, row in by_day.iterrows()
        ],
    }


def daily_revenue(month=None) -> list[dict]:
    """One entry per calendar day of the month, days without payments at 0."""
    month = _as_month(month)
    df = _payments_frame(crud.payments_between(month.start, month.end), {})
    per_day = df.groupby("payment_date")["amount"].sum().reindex(month.days(), fill_value=0.0)
    return [{"date": day.isoformat(), "revenue": float(value)} for day, value in per_day.items()]


def today_stats(today: date | None = None) -> dict:
    today = today or utils.business_today()
    payments = crud.payments_between(today, today)
    registrations = db.fetch_value(
        "SELECT COUNT(*) FROM clients WHERE registration_date = ? AND is_deleted = 0",
        (today.isoformat(),),
    )
    return {
        "date": today.isoformat(),
        "todays_revenue": float(sum(p.amount for p in payments)),
        "todays_payments": len(payments),
        "todays_registrations": int(registrations or 0),
    }


def client_stats(today: date | None = None) -> dict:
    """
    Client counts by display status; expiring_soon clients also count as active.
    """
    today = today or utils.business_today()
    clients = crud.fetch_clients()
    counts = Counter(classify_status(c, today) for c in clients)
    month = YearMonth.of(today)
    return {
        "total": len(clients),
        "active": counts[DisplayStatus.ACTIVE] + counts[DisplayStatus.EXPIRING_SOON],
        "frozen": counts[DisplayStatus.FROZEN],
        "inactive": counts[DisplayStatus.INACTIVE],
        "new_this_month": sum(1 for c in clients if month.contains(c.registration_date)),
        "expiring_soon": counts[DisplayStatus.EXPIRING_SOON],
    }


def available_months(limit: int = AVAILABLE_MONTHS_LIMIT) -> list[dict]:
    """Months that have payments or registrations, newest first."""
    rows = db.fetch_all(
        """
        SELECT substr(payment_date, 1, 7) AS month FROM payments
        UNION
        SELECT substr(registration_date, 1, 7) AS month FROM clients WHERE is_deleted = 0
        ORDER BY month DESC
        LIMIT ?
        """,
        (limit,),
    )
    months = [YearMonth.parse(r["month"]) for r in rows]
    return [{"value": str(m), "label": m.label} for m in months]


def revenue_summary_by_month() -> pd.DataFrame:
    rows = db.fetch_all(
        """
        SELECT strftime('%Y-%m', payment_date) AS month, SUM(amount) AS revenue, COUNT(*) AS payments
        FROM payments
        GROUP BY strftime('%Y-%m', payment_date)
        ORDER BY month DESC
        """
    )
    df = pd.DataFrame([dict(r) for r in rows])
    if df.empty:
        return pd.DataFrame(columns=["month", "revenue", "payments"])
    return df

"""
models.py
Lightweight domain types (plans, clients, payments, report records) and constants.
"""

from __future__ import annotations

import calendar
from dataclasses import asdict, dataclass
from datetime import date, datetime, timedelta
from enum import Enum

from errors import InvalidDateError

CLIENT_STATUSES = ("active", "frozen", "inactive")

# "frozen" is the stored name for an expired membership
CLIENT_STATUS_LABELS = {
    "active": "Active",
    "frozen": "Expired",
    "inactive": "Inactive",
}

PAYMENT_METHODS = ("cash", "transfer")

# Quick-pick durations for the plan form
COMMON_PLAN_DURATIONS = {
    "Daily": 1,
    "Weekly": 7,
    "Bi-weekly": 14,
    "Monthly": 30,
    "Quarterly": 90,
    "Semi-annual": 180,
    "Annual": 365,
}

EXPIRATION_WARNING_DAYS = 3

MAX_PLAN_DURATION_DAYS = 1825
MAX_AMOUNT = 999999.99


def as_date(value) -> date | None:
    """
    Coerce a date, an ISO string (YYYY-MM-DD) or None into a date.
    Raises InvalidDateError for anything else.
    """
    if value is None or value == "":
        return None
    # datetime is a date subclass; drop the time of day
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        try:
            return date.fromisoformat(value.strip())
        except ValueError as exc:
            raise InvalidDateError(f"Invalid date: {value!r}") from exc
    raise InvalidDateError(f"Invalid date: {value!r}")


def _iso(d: date | None) -> str | None:
    return d.isoformat() if d else None


class DisplayStatus(str, Enum):
    ACTIVE = "active"
    EXPIRING_SOON = "expiring_soon"
    FROZEN = "frozen"
    INACTIVE = "inactive"

    @property
    def label(self) -> str:
        if self is DisplayStatus.EXPIRING_SOON:
            return "Expiring soon"
        return CLIENT_STATUS_LABELS[self.value]


@dataclass(frozen=True)
class Plan:
    id: int | None
    name: str
    duration_days: int
    price: float
    description: str | None = None
    is_active: bool = True

    @classmethod
    def from_row(cls, row) -> "Plan":
        return cls(
            id=row["id"],
            name=row["name"],
            duration_days=int(row["duration_days"]),
            price=float(row["price"]),
            description=row["description"],
            is_active=bool(row["is_active"]),
        )


@dataclass(frozen=True)
class Client:
    id: int | None
    full_name: str
    phone: str
    status: str  # one of CLIENT_STATUSES
    registration_date: date
    current_plan_id: int | None = None
    expiration_date: date | None = None
    last_payment_date: date | None = None
    email: str | None = None
    notes: str | None = None
    is_deleted: bool = False

    @classmethod
    def from_row(cls, row) -> "Client":
        return cls(
            id=row["id"],
            full_name=row["full_name"],
            phone=row["phone"],
            status=row["status"],
            registration_date=as_date(row["registration_date"]),
            current_plan_id=row["current_plan_id"],
            expiration_date=as_date(row["expiration_date"]),
            last_payment_date=as_date(row["last_payment_date"]),
            email=row["email"],
            notes=row["notes"],
            is_deleted=bool(row["is_deleted"]),
        )

    def to_dict(self) -> dict:
        d = asdict(self)
        for key in ("registration_date", "expiration_date", "last_payment_date"):
            d[key] = _iso(d[key])
        return d


@dataclass(frozen=True)
class Payment:
    id: int | None
    client_id: int | None  # None = walk-in payer, not tied to a tracked client
    plan_id: int
    amount: float
    payment_method: str  # cash/transfer
    payment_date: date
    period_start: date
    period_end: date
    notes: str | None = None

    @property
    def is_walk_in(self) -> bool:
        return self.client_id is None

    @classmethod
    def from_row(cls, row) -> "Payment":
        return cls(
            id=row["id"],
            client_id=row["client_id"],
            plan_id=row["plan_id"],
            amount=float(row["amount"]),
            payment_method=row["payment_method"],
            payment_date=as_date(row["payment_date"]),
            period_start=as_date(row["period_start"]),
            period_end=as_date(row["period_end"]),
            notes=row["notes"],
        )

    def to_dict(self) -> dict:
        d = asdict(self)
        for key in ("payment_date", "period_start", "period_end"):
            d[key] = _iso(d[key])
        return d


@dataclass(frozen=True)
class Period:
    """Inclusive coverage interval bought by one payment."""

    start: date
    end: date

    @property
    def days(self) -> int:
        return (self.end - self.start).days + 1

    def to_dict(self) -> dict:
        return {"period_start": self.start.isoformat(), "period_end": self.end.isoformat()}


@dataclass(frozen=True, order=True)
class YearMonth:
    year: int
    month: int

    def __post_init__(self):
        if not date.min.year <= self.year <= date.max.year or not 1 <= self.month <= 12:
            raise InvalidDateError(f"Invalid month: {self.year}-{self.month}")

    @classmethod
    def parse(cls, value: str) -> "YearMonth":
        """Parse 'YYYY-MM'."""
        try:
            year, month = (int(part) for part in value.strip().split("-"))
        except (AttributeError, ValueError) as exc:
            raise InvalidDateError(f"Invalid month: {value!r} (expected YYYY-MM)") from exc
        return cls(year, month)

    @classmethod
    def of(cls, d: date) -> "YearMonth":
        return cls(d.year, d.month)

    @property
    def start(self) -> date:
        return date(self.year, self.month, 1)

    @property
    def end(self) -> date:
        return date(self.year, self.month, calendar.monthrange(self.year, self.month)[1])

    def previous(self) -> "YearMonth":
        if self.month == 1:
            return YearMonth(self.year - 1, 12)
        return YearMonth(self.year, self.month - 1)

    def contains(self, d: date | None) -> bool:
        return d is not None and self.start <= d <= self.end

    def days(self) -> list[date]:
        return [self.start + timedelta(days=i) for i in range(self.end.day)]

    @property
    def label(self) -> str:
        return f"{calendar.month_name[self.month]} {self.year}"

    def __str__(self) -> str:
        return f"{self.year:04d}-{self.month:02d}"


@dataclass(frozen=True)
class DashboardStats:
    month: str
    total_revenue: float
    projected_revenue: float
    active_clients: int
    new_clients_this_month: int
    churned_clients: int
    revenue_growth_percentage: float
    client_growth_percentage: float

    def to_dict(self) -> dict:
        return asdict(self)

"""
utils.py
Validation, dates, formatting, exports, sample data.
"""

from __future__ import annotations

import logging
import re
from datetime import date, datetime, timedelta, timezone

import pandas as pd

import crud
from config import get_settings
from errors import InvalidDateError
from models import MAX_AMOUNT, MAX_PLAN_DURATION_DAYS, PAYMENT_METHODS, as_date

logger = logging.getLogger(__name__)

_PHONE_DIGITS = 10
_EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


def business_today(now: datetime | None = None) -> date:
    """
    Calendar day at the gym, using the configured UTC offset.
    """
    now = now or datetime.now(timezone.utc)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    offset = timedelta(hours=get_settings().business_timezone_offset)
    return (now.astimezone(timezone.utc) + offset).date()


def parse_iso(d) -> date:
    parsed = as_date(d)
    if parsed is None:
        raise InvalidDateError("Date is required.")
    return parsed


def normalize_phone(phone: str) -> str:
    return re.sub(r"\D", "", phone or "")


def _as_float(value) -> float | None:
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def validate_plan_inputs(name: str, duration_days, price, description: str | None = None) -> list[str]:
    errors: list[str] = []
    name = (name or "").strip()
    if len(name) < 2:
        errors.append("Plan name must be at least 2 characters.")
    elif len(name) > 100:
        errors.append("Plan name must not exceed 100 characters.")

    try:
        days = int(duration_days)
        if days != float(duration_days):
            raise ValueError
        if not 1 <= days <= MAX_PLAN_DURATION_DAYS:
            errors.append(f"Duration must be between 1 and {MAX_PLAN_DURATION_DAYS} days.")
    except (TypeError, ValueError):
        errors.append("Duration must be a whole number of days.")

    p = _as_float(price)
    if p is None:
        errors.append("Price must be numeric.")
    elif not 0.01 <= p <= MAX_AMOUNT:
        errors.append(f"Price must be between 0.01 and {MAX_AMOUNT:,.2f}.")

    if description and len(description) > 500:
        errors.append("Description must not exceed 500 characters.")
    return errors


def validate_client_inputs(full_name: str, phone: str, email: str | None = None, notes: str | None = None) -> list[str]:
    errors: list[str] = []
    name = (full_name or "").strip()
    if len(name) < 2:
        errors.append("Name must be at least 2 characters.")
    elif len(name) > 200:
        errors.append("Name must not exceed 200 characters.")
    if len(normalize_phone(phone)) != _PHONE_DIGITS:
        errors.append(f"Phone must be exactly {_PHONE_DIGITS} digits.")
    if email and not _EMAIL_RE.match(email.strip()):
        errors.append("Invalid email format.")
    if notes and len(notes) > 1000:
        errors.append("Notes must not exceed 1000 characters.")
    return errors


def validate_payment_inputs(amount, payment_method: str, payment_date, notes: str | None = None) -> list[str]:
    errors: list[str] = []
    amt = _as_float(amount)
    if amt is None:
        errors.append("Amount must be numeric.")
    elif not 0.01 <= amt <= MAX_AMOUNT:
        errors.append(f"Amount must be between 0.01 and {MAX_AMOUNT:,.2f}.")
    if payment_method not in PAYMENT_METHODS:
        errors.append("Payment method must be cash or transfer.")
    try:
        parse_iso(payment_date)
    except InvalidDateError:
        errors.append("Payment date must be a valid ISO date (YYYY-MM-DD).")
    if notes and len(notes) > 500:
        errors.append("Notes must not exceed 500 characters.")
    return errors


def format_currency(amount: float, symbol: str | None = None) -> str:
    symbol = get_settings().currency_symbol if symbol is None else symbol
    sign = "-" if amount < 0 else ""
    return f"{sign}{symbol}{abs(amount):,.2f}"


def format_percentage(value: float) -> str:
    return f"{'+' if value >= 0 else ''}{value:.1f}%"


def clients_to_csv_bytes(rows) -> bytes:
    df = pd.DataFrame([dict(r) for r in rows])
    return df.to_csv(index=False).encode("utf-8")


def payments_to_csv_bytes(rows) -> bytes:
    df = pd.DataFrame([dict(r) for r in rows])
    if not df.empty and "client_id" in df.columns:
        df["client_id"] = df["client_id"].astype("Int64")
    return df.to_csv(index=False).encode("utf-8")


def insert_sample_data(today: date | None = None) -> None:
    """
    Insert sample plans, 4 clients and their payments
    (safe to run multiple times: adds new rows each time).
    """
    today = today or business_today()

    monthly = crud.create_plan("Monthly", 30, 500.0, "Unlimited access")
    weekly = crud.create_plan("Weekly", 7, 150.0)
    annual = crud.create_plan("Annual", 365, 4800.0, "Best value")
    daily = crud.create_plan("Day pass", 1, 50.0)

    ahmed = crud.create_client("Ahmed Hassan", "5500000001", registration_date=today - timedelta(days=40))
    mona = crud.create_client("Mona Ali", "5500000002", email="mona@example.com", registration_date=today - timedelta(days=10))
    omar = crud.create_client("Omar Samy", "5500000003", registration_date=today - timedelta(days=70))
    crud.create_client("Laila Nabil", "5500000004", registration_date=today)

    # Ahmed: monthly, expiring in 2 days
    crud.record_payment(ahmed.id, monthly.id, 500.0, "cash", today - timedelta(days=27))
    # Mona: annual
    crud.record_payment(mona.id, annual.id, 4800.0, "transfer", today - timedelta(days=10))
    # Omar: weekly, lapsed long ago
    crud.record_payment(omar.id, weekly.id, 150.0, "cash", today - timedelta(days=70))
    # Walk-in day pass
    crud.record_payment(None, daily.id, 50.0, "cash", today, notes="Walk-in")
    logger.info("Inserted sample data")

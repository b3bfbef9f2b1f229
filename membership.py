"""
membership.py
Coverage periods and client status.

A payment buys `duration_days` of coverage. Renewing while still covered
stacks the new period after the current expiration date; paying after the
membership lapsed starts the period on the payment date. All dates are
calendar dates, inclusive on both ends.

Display status is derived from the stored status and the expiration date
every time it is needed. The stored `status` column is only written when a
client is created or pays, so it may lag behind the calendar; readers must
go through `classify_status` rather than trusting it.
"""

from __future__ import annotations

from datetime import date, timedelta

from errors import InvalidDateError
from models import (
    EXPIRATION_WARNING_DAYS,
    Client,
    DisplayStatus,
    Period,
    as_date,
)


def compute_period(payment_date, duration_days: int, prior_expiration=None) -> Period:
    """
    Coverage interval for a payment made on `payment_date`.

    Accepts dates or ISO strings; raises InvalidDateError on unparseable input.
    """
    paid_on = as_date(payment_date)
    if paid_on is None:
        raise InvalidDateError("Payment date is required.")
    expires = as_date(prior_expiration)

    if expires is not None and expires >= paid_on:
        start = expires + timedelta(days=1)
    else:
        start = paid_on
    return Period(start=start, end=start + timedelta(days=duration_days - 1))


def classify_status(client: Client, today: date) -> DisplayStatus:
    if client.status == "inactive" or client.is_deleted:
        return DisplayStatus.INACTIVE
    if client.status == "frozen":
        return DisplayStatus.FROZEN
    if client.expiration_date is None:
        return DisplayStatus.ACTIVE if client.last_payment_date else DisplayStatus.INACTIVE

    remaining = (client.expiration_date - today).days
    if remaining < 0:
        return DisplayStatus.FROZEN
    if remaining <= EXPIRATION_WARNING_DAYS:
        return DisplayStatus.EXPIRING_SOON
    return DisplayStatus.ACTIVE


def is_active(status: DisplayStatus) -> bool:
    return status in (DisplayStatus.ACTIVE, DisplayStatus.EXPIRING_SOON)


def days_until_expiration(client: Client, today: date) -> int | None:
    """Negative once expired; None when the client never had coverage."""
    if client.expiration_date is None:
        return None
    return (client.expiration_date - today).days


def days_since_expiration(client: Client, today: date) -> int | None:
    if client.expiration_date is None:
        return None
    return max((today - client.expiration_date).days, 0)


def _plural(n: int, word: str) -> str:
    return f"{n} {word}" if n == 1 else f"{n} {word}s"


def status_message(client: Client, today: date) -> str:
    status = classify_status(client, today)
    if status is DisplayStatus.EXPIRING_SOON:
        days = days_until_expiration(client, today)
        if days == 0:
            return "Expires today"
        return f"Expires in {_plural(days, 'day')}"
    if status is DisplayStatus.ACTIVE:
        return "Active membership"
    if status is DisplayStatus.FROZEN:
        since = days_since_expiration(client, today)
        if since:
            return f"Expired {_plural(since, 'day')} ago"
        return "Membership expired"
    return "No active membership"


# expiring first (needs attention), then expired, active, inactive
_SORT_ORDER = {
    DisplayStatus.EXPIRING_SOON: 0,
    DisplayStatus.FROZEN: 1,
    DisplayStatus.ACTIVE: 2,
    DisplayStatus.INACTIVE: 3,
}


def sort_clients_by_status(clients: list[Client], today: date) -> list[Client]:
    return sorted(
        clients,
        key=lambda c: (_SORT_ORDER[classify_status(c, today)], c.full_name.casefold()),
    )


def filter_clients_by_status(clients: list[Client], status: str, today: date) -> list[Client]:
    """
    status: 'all', 'active', 'frozen', 'inactive' or 'expiring_soon'.
    'active' includes clients that are expiring soon.
    """
    if status == "all":
        return list(clients)
    if status == "active":
        return [c for c in clients if is_active(classify_status(c, today))]
    wanted = DisplayStatus(status)
    return [c for c in clients if classify_status(c, today) is wanted]

"""
crud.py
Reads and writes for plans, clients and payments.
"""

from __future__ import annotations

import logging
import math
from datetime import date

import db
import utils
from errors import (
    MissingClientError,
    MissingPlanError,
    NotFoundError,
    OperationNotAllowedError,
    ValidationError,
)
from membership import compute_period, filter_clients_by_status, sort_clients_by_status
from models import Client, Payment, Plan

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 100

_CLIENT_SORT_COLUMNS = ("full_name", "registration_date", "expiration_date", "last_payment_date", "id")
_PAYMENT_SORT_COLUMNS = ("payment_date", "amount", "period_end", "id")


def _check_pagination(page: int, limit: int) -> None:
    errors = []
    if page < 1:
        errors.append("Page must be at least 1.")
    if not 1 <= limit <= MAX_PAGE_SIZE:
        errors.append(f"Limit must be between 1 and {MAX_PAGE_SIZE}.")
    if errors:
        raise ValidationError(errors)


def _pagination(total: int, page: int, limit: int) -> dict:
    total_pages = math.ceil(total / limit)
    return {
        "page": page,
        "limit": limit,
        "total": total,
        "total_pages": total_pages,
        "has_next": page < total_pages,
        "has_prev": page > 1,
    }


def _order(sort_by: str, sort_order: str, allowed: tuple[str, ...], alias: str = "") -> str:
    # sort_by is interpolated into SQL, so only whitelisted column names pass
    if sort_by not in allowed:
        raise ValidationError([f"Cannot sort by {sort_by!r}."])
    direction = "ASC" if sort_order == "asc" else "DESC"
    prefix = f"{alias}." if alias else ""
    return f" ORDER BY {prefix}{sort_by} {direction}, {prefix}id {direction}"


# ---------- Plans ----------

def list_plans(include_inactive: bool = False) -> list[Plan]:
    sql = "SELECT * FROM plans"
    if not include_inactive:
        sql += " WHERE is_active = 1"
    sql += " ORDER BY name ASC"
    return [Plan.from_row(r) for r in db.fetch_all(sql)]


def plans_by_id() -> dict[int, Plan]:
    return {p.id: p for p in list_plans(include_inactive=True)}


def get_plan(plan_id: int) -> Plan:
    row = db.fetch_one("SELECT * FROM plans WHERE id = ?", (plan_id,))
    if not row:
        raise MissingPlanError(f"Plan {plan_id} not found.")
    return Plan.from_row(row)


def create_plan(name: str, duration_days: int, price: float, description: str | None = None, is_active: bool = True) -> Plan:
    errors = utils.validate_plan_inputs(name, duration_days, price, description)
    if errors:
        raise ValidationError(errors)
    plan_id = db.execute(
        "INSERT INTO plans(name, duration_days, price, description, is_active) VALUES(?,?,?,?,?)",
        (name.strip(), int(duration_days), float(price), description or None, int(is_active)),
    )
    logger.info("Created plan %s (%r, %s days)", plan_id, name.strip(), duration_days)
    return get_plan(plan_id)


def update_plan(plan_id: int, name: str, duration_days: int, price: float, description: str | None = None, is_active: bool = True) -> Plan:
    errors = utils.validate_plan_inputs(name, duration_days, price, description)
    if errors:
        raise ValidationError(errors)
    updated = db.execute_rowcount(
        "UPDATE plans SET name=?, duration_days=?, price=?, description=?, is_active=? WHERE id=?",
        (name.strip(), int(duration_days), float(price), description or None, int(is_active), plan_id),
    )
    if not updated:
        raise MissingPlanError(f"Plan {plan_id} not found.")
    logger.info("Updated plan %s", plan_id)
    return get_plan(plan_id)


def deactivate_plan(plan_id: int) -> Plan:
    """
    Plans are never deleted (payments reference them); they are hidden instead.
    Refused while any non-deleted client still has it as current plan.
    """
    get_plan(plan_id)
    in_use = db.fetch_value(
        "SELECT COUNT(*) FROM clients WHERE current_plan_id = ? AND is_deleted = 0",
        (plan_id,),
    )
    if in_use:
        raise OperationNotAllowedError(
            f"Cannot delete plan. It is currently used by {in_use} client(s). Deactivate instead."
        )
    db.execute("UPDATE plans SET is_active = 0 WHERE id = ?", (plan_id,))
    logger.info("Deactivated plan %s", plan_id)
    return get_plan(plan_id)


# ---------- Clients ----------

def get_client(client_id: int, include_deleted: bool = False) -> Client:
    sql = "SELECT * FROM clients WHERE id = ?"
    if not include_deleted:
        sql += " AND is_deleted = 0"
    row = db.fetch_one(sql, (client_id,))
    if not row:
        raise MissingClientError(f"Client {client_id} not found.")
    return Client.from_row(row)


def fetch_clients(include_deleted: bool = False) -> list[Client]:
    sql = "SELECT * FROM clients"
    if not include_deleted:
        sql += " WHERE is_deleted = 0"
    return [Client.from_row(r) for r in db.fetch_all(sql + " ORDER BY id ASC")]


def create_client(
    full_name: str,
    phone: str,
    email: str | None = None,
    current_plan_id: int | None = None,
    notes: str | None = None,
    registration_date: date | None = None,
) -> Client:
    """New clients start inactive until their first payment."""
    errors = utils.validate_client_inputs(full_name, phone, email, notes)
    if errors:
        raise ValidationError(errors)
    if current_plan_id is not None:
        get_plan(current_plan_id)
    registered = registration_date or utils.business_today()
    client_id = db.execute(
        """
        INSERT INTO clients(full_name, phone, email, status, current_plan_id, registration_date, notes)
        VALUES(?,?,?,'inactive',?,?,?)
        """,
        (
            full_name.strip(),
            utils.normalize_phone(phone),
            (email or "").strip() or None,
            current_plan_id,
            registered.isoformat(),
            (notes or "").strip() or None,
        ),
    )
    logger.info("Created client %s", client_id)
    return get_client(client_id)


def update_client(
    client_id: int,
    full_name: str,
    phone: str,
    email: str | None = None,
    current_plan_id: int | None = None,
    notes: str | None = None,
) -> Client:
    """Edits profile fields only; status and coverage change through payments."""
    errors = utils.validate_client_inputs(full_name, phone, email, notes)
    if errors:
        raise ValidationError(errors)
    if current_plan_id is not None:
        get_plan(current_plan_id)
    updated = db.execute_rowcount(
        """
        UPDATE clients SET full_name=?, phone=?, email=?, current_plan_id=?, notes=?
        WHERE id=? AND is_deleted = 0
        """,
        (
            full_name.strip(),
            utils.normalize_phone(phone),
            (email or "").strip() or None,
            current_plan_id,
            (notes or "").strip() or None,
            client_id,
        ),
    )
    if not updated:
        raise MissingClientError(f"Client {client_id} not found.")
    logger.info("Updated client %s", client_id)
    return get_client(client_id)


def has_payments(client_id: int) -> bool:
    return db.fetch_one("SELECT id FROM payments WHERE client_id = ? LIMIT 1", (client_id,)) is not None


def delete_client(client_id: int) -> bool:
    """
    Remove a client. Clients with payment history are only flagged as deleted
    so their payments keep pointing at a row. Returns True for a soft delete.
    """
    get_client(client_id)
    if has_payments(client_id):
        db.execute("UPDATE clients SET is_deleted = 1 WHERE id = ?", (client_id,))
        logger.info("Soft-deleted client %s", client_id)
        return True
    db.execute("DELETE FROM clients WHERE id = ?", (client_id,))
    logger.info("Deleted client %s", client_id)
    return False


def list_clients(
    today: date,
    search: str = "",
    status: str = "all",
    plan_id: int | None = None,
    page: int = 1,
    limit: int = DEFAULT_PAGE_SIZE,
    sort_by: str = "full_name",
    sort_order: str = "asc",
) -> tuple[list[Client], dict]:
    """
    status filters on the display status ('all', 'active', 'frozen',
    'inactive', 'expiring_soon'); sort_by='status' orders by urgency.
    """
    _check_pagination(page, limit)
    sql = "SELECT * FROM clients WHERE is_deleted = 0"
    params: list = []

    if search.strip():
        sql += " AND (full_name LIKE ? OR phone LIKE ?)"
        like = f"%{search.strip()}%"
        params.extend([like, like])

    if plan_id is not None:
        sql += " AND current_plan_id = ?"
        params.append(plan_id)

    if sort_by != "status":
        sql += _order(sort_by, sort_order, _CLIENT_SORT_COLUMNS)

    clients = [Client.from_row(r) for r in db.fetch_all(sql, tuple(params))]
    clients = filter_clients_by_status(clients, status, today)
    if sort_by == "status":
        clients = sort_clients_by_status(clients, today)

    offset = (page - 1) * limit
    return clients[offset:offset + limit], _pagination(len(clients), page, limit)


# ---------- Payments ----------

def record_payment(
    client_id: int | None,
    plan_id: int,
    amount: float,
    payment_method: str,
    payment_date,
    notes: str | None = None,
) -> Payment:
    """
    Register a payment and extend the client's coverage.

    client_id=None records a walk-in payment: the period starts on the
    payment date and no client row is touched.
    """
    errors = utils.validate_payment_inputs(amount, payment_method, payment_date, notes)
    if errors:
        raise ValidationError(errors)
    paid_on = utils.parse_iso(payment_date)

    client = get_client(client_id) if client_id is not None else None
    plan = get_plan(plan_id)
    period = compute_period(paid_on, plan.duration_days, client.expiration_date if client else None)

    payment_id = db.execute(
        """
        INSERT INTO payments(client_id, plan_id, amount, payment_method, payment_date, period_start, period_end, notes)
        VALUES(?,?,?,?,?,?,?,?)
        """,
        (
            client_id,
            plan_id,
            float(amount),
            payment_method,
            paid_on.isoformat(),
            period.start.isoformat(),
            period.end.isoformat(),
            (notes or "").strip() or None,
        ),
    )

    if client is not None:
        db.execute(
            """
            UPDATE clients
            SET last_payment_date=?, expiration_date=?, current_plan_id=?, status='active'
            WHERE id=?
            """,
            (paid_on.isoformat(), period.end.isoformat(), plan_id, client_id),
        )

    logger.info(
        "Recorded payment %s: client=%s plan=%s amount=%.2f period=%s..%s",
        payment_id,
        client_id if client_id is not None else "walk-in",
        plan_id,
        float(amount),
        period.start,
        period.end,
    )
    return get_payment(payment_id)


def get_payment(payment_id: int) -> Payment:
    row = db.fetch_one("SELECT * FROM payments WHERE id = ?", (payment_id,))
    if not row:
        raise NotFoundError(f"Payment {payment_id} not found.")
    return Payment.from_row(row)


def payments_between(start: date, end: date) -> list[Payment]:
    rows = db.fetch_all(
        "SELECT * FROM payments WHERE payment_date >= ? AND payment_date <= ? ORDER BY payment_date ASC, id ASC",
        (start.isoformat(), end.isoformat()),
    )
    return [Payment.from_row(r) for r in rows]


def list_payments(
    client_id: int | None = None,
    plan_id: int | None = None,
    payment_method: str | None = None,
    date_from: date | str | None = None,
    date_to: date | str | None = None,
    amount_min: float | None = None,
    amount_max: float | None = None,
    walk_in_only: bool = False,
    page: int = 1,
    limit: int = DEFAULT_PAGE_SIZE,
    sort_by: str = "payment_date",
    sort_order: str = "desc",
) -> tuple[list[dict], dict]:
    """
    Payments joined with client and plan names, filtered and paginated.
    """
    _check_pagination(page, limit)
    where = " WHERE 1=1"
    params: list = []

    if client_id is not None:
        where += " AND p.client_id = ?"
        params.append(client_id)
    elif walk_in_only:
        where += " AND p.client_id IS NULL"

    if plan_id is not None:
        where += " AND p.plan_id = ?"
        params.append(plan_id)

    if payment_method:
        where += " AND p.payment_method = ?"
        params.append(payment_method)

    if date_from:
        where += " AND p.payment_date >= ?"
        params.append(utils.parse_iso(date_from).isoformat())

    if date_to:
        where += " AND p.payment_date <= ?"
        params.append(utils.parse_iso(date_to).isoformat())

    if amount_min is not None:
        where += " AND p.amount >= ?"
        params.append(amount_min)

    if amount_max is not None:
        where += " AND p.amount <= ?"
        params.append(amount_max)

    total = db.fetch_value(f"SELECT COUNT(*) FROM payments p{where}", tuple(params))
    order = _order(sort_by, sort_order, _PAYMENT_SORT_COLUMNS, alias="p")
    rows = db.fetch_all(
        f"""
        SELECT p.*, c.full_name AS client_name, pl.name AS plan_name
        FROM payments p
        LEFT JOIN clients c ON c.id = p.client_id
        LEFT JOIN plans pl ON pl.id = p.plan_id
        {where}{order}
        LIMIT ? OFFSET ?
        """,
        tuple(params) + (limit, (page - 1) * limit),
    )
    return [dict(r) for r in rows], _pagination(total, page, limit)


def export_clients_rows():
    return db.fetch_all(
        """
        SELECT c.id, c.full_name, c.phone, c.email, c.status, pl.name AS plan_name,
               c.expiration_date, c.last_payment_date, c.registration_date
        FROM clients c
        LEFT JOIN plans pl ON pl.id = c.current_plan_id
        WHERE c.is_deleted = 0
        ORDER BY c.id DESC
        """
    )


def export_payments_rows():
    return db.fetch_all(
        """
        SELECT p.id, p.client_id, COALESCE(c.full_name, 'Walk-in') AS client_name, pl.name AS plan_name,
               p.amount, p.payment_method, p.payment_date, p.period_start, p.period_end, p.notes
        FROM payments p
        LEFT JOIN clients c ON c.id = p.client_id
        LEFT JOIN plans pl ON pl.id = p.plan_id
        ORDER BY p.payment_date DESC, p.id DESC
        """
    )

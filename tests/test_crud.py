from datetime import date

import pytest

import crud
import db
from errors import (
    MissingClientError,
    MissingPlanError,
    OperationNotAllowedError,
    ValidationError,
)


@pytest.fixture
def monthly(database):
    return crud.create_plan("Monthly", 30, 500.0)


@pytest.fixture
def weekly(database):
    return crud.create_plan("Weekly", 7, 150.0)


def _client(name="Ana Lopez", phone="5512345678", **kwargs):
    kwargs.setdefault("registration_date", date(2024, 11, 1))
    return crud.create_client(name, phone, **kwargs)


# ---------- plans ----------

def test_create_and_list_plans(monthly, weekly):
    assert [p.name for p in crud.list_plans()] == ["Monthly", "Weekly"]
    assert crud.get_plan(monthly.id).duration_days == 30


def test_create_plan_validates(database):
    with pytest.raises(ValidationError) as excinfo:
        crud.create_plan("X", 0, 0)
    assert len(excinfo.value.errors) == 3


def test_get_missing_plan(database):
    with pytest.raises(MissingPlanError):
        crud.get_plan(999)


def test_update_plan(monthly):
    updated = crud.update_plan(monthly.id, "Monthly Plus", 30, 650.0, "with classes")
    assert updated.price == 650.0
    assert updated.description == "with classes"
    with pytest.raises(MissingPlanError):
        crud.update_plan(999, "Ghost", 30, 1.0)


def test_deactivate_plan_in_use_is_refused(monthly):
    _client(current_plan_id=monthly.id)
    with pytest.raises(OperationNotAllowedError, match="used by 1 client"):
        crud.deactivate_plan(monthly.id)


def test_deactivate_unused_plan_hides_it(monthly, weekly):
    plan = crud.deactivate_plan(weekly.id)
    assert not plan.is_active
    assert [p.name for p in crud.list_plans()] == ["Monthly"]
    assert len(crud.list_plans(include_inactive=True)) == 2


# ---------- clients ----------

def test_new_client_starts_inactive(database):
    client = _client(phone="(55) 1234-5678", email=" ana@example.com ")
    assert client.status == "inactive"
    assert client.phone == "5512345678"
    assert client.email == "ana@example.com"
    assert client.expiration_date is None
    assert client.registration_date == date(2024, 11, 1)


def test_create_client_with_unknown_plan(database):
    with pytest.raises(MissingPlanError):
        _client(current_plan_id=42)


def test_create_client_validates(database):
    with pytest.raises(ValidationError, match="Phone must be exactly 10 digits."):
        _client(phone="123")


def test_update_client_keeps_coverage(monthly):
    client = _client()
    crud.record_payment(client.id, monthly.id, 500, "cash", "2025-01-01")
    updated = crud.update_client(client.id, "Ana L.", "5599999999", notes="prefers mornings")
    assert updated.full_name == "Ana L."
    assert updated.notes == "prefers mornings"
    assert updated.status == "active"
    assert updated.expiration_date == date(2025, 1, 30)


def test_delete_client_without_payments_removes_row(database):
    client = _client()
    assert crud.delete_client(client.id) is False
    assert db.fetch_one("SELECT id FROM clients WHERE id = ?", (client.id,)) is None


def test_delete_client_with_payments_is_soft(monthly):
    client = _client()
    crud.record_payment(client.id, monthly.id, 500, "cash", "2025-01-01")
    assert crud.delete_client(client.id) is True
    with pytest.raises(MissingClientError):
        crud.get_client(client.id)
    assert crud.get_client(client.id, include_deleted=True).is_deleted
    assert crud.fetch_clients() == []


def test_list_clients_filters_by_display_status(monthly):
    today = date(2025, 1, 20)
    ana = _client("Ana Lopez", "5500000001")
    ben = _client("Ben Ruiz", "5500000002")
    _client("Caro Diaz", "5500000003")
    crud.record_payment(ana.id, monthly.id, 500, "cash", "2024-12-23")  # ends 2025-01-21
    crud.record_payment(ben.id, monthly.id, 500, "cash", "2024-11-01")  # ends 2024-11-30

    def names(**kwargs):
        clients, _ = crud.list_clients(today, **kwargs)
        return [c.full_name for c in clients]

    assert names() == ["Ana Lopez", "Ben Ruiz", "Caro Diaz"]
    assert names(status="expiring_soon") == ["Ana Lopez"]
    assert names(status="active") == ["Ana Lopez"]
    assert names(status="frozen") == ["Ben Ruiz"]
    assert names(status="inactive") == ["Caro Diaz"]
    assert names(search="ruiz") == ["Ben Ruiz"]
    assert names(search="0003") == ["Caro Diaz"]
    assert names(plan_id=monthly.id) == ["Ana Lopez", "Ben Ruiz"]
    assert names(sort_by="full_name", sort_order="desc") == ["Caro Diaz", "Ben Ruiz", "Ana Lopez"]


def test_list_clients_pagination(database):
    for i in range(5):
        _client(f"Client {i}", f"55000000{i:02d}")
    clients, pagination = crud.list_clients(date(2025, 1, 1), page=2, limit=2)
    assert [c.full_name for c in clients] == ["Client 2", "Client 3"]
    assert pagination == {
        "page": 2,
        "limit": 2,
        "total": 5,
        "total_pages": 3,
        "has_next": True,
        "has_prev": True,
    }


def test_list_clients_rejects_bad_arguments(database):
    with pytest.raises(ValidationError):
        crud.list_clients(date(2025, 1, 1), page=0)
    with pytest.raises(ValidationError):
        crud.list_clients(date(2025, 1, 1), limit=101)
    with pytest.raises(ValidationError):
        crud.list_clients(date(2025, 1, 1), sort_by="phone; DROP TABLE clients")


# ---------- payments ----------

def test_first_payment_activates_client(monthly):
    client = _client()
    payment = crud.record_payment(client.id, monthly.id, 500, "cash", "2025-01-10")
    assert (payment.period_start, payment.period_end) == (date(2025, 1, 10), date(2025, 2, 8))

    client = crud.get_client(client.id)
    assert client.status == "active"
    assert client.current_plan_id == monthly.id
    assert client.last_payment_date == date(2025, 1, 10)
    assert client.expiration_date == date(2025, 2, 8)


def test_renewal_before_expiry_stacks(monthly):
    client = _client()
    db.execute(
        "UPDATE clients SET status='active', expiration_date='2025-01-31', current_plan_id=? WHERE id=?",
        (monthly.id, client.id),
    )
    payment = crud.record_payment(client.id, monthly.id, 500, "transfer", "2025-01-15")
    assert payment.period_start == date(2025, 2, 1)
    assert payment.period_end == date(2025, 3, 2)
    assert crud.get_client(client.id).expiration_date == date(2025, 3, 2)


def test_payment_after_lapse_restarts(weekly):
    client = _client()
    db.execute(
        "UPDATE clients SET status='frozen', expiration_date='2024-12-01' WHERE id=?",
        (client.id,),
    )
    payment = crud.record_payment(client.id, weekly.id, 150, "cash", "2025-01-10")
    assert (payment.period_start, payment.period_end) == (date(2025, 1, 10), date(2025, 1, 16))
    client = crud.get_client(client.id)
    assert client.status == "active"
    assert client.current_plan_id == weekly.id
    assert client.expiration_date == date(2025, 1, 16)


def test_walk_in_payment_touches_no_client(database):
    day_pass = crud.create_plan("Day pass", 1, 50.0)
    client = _client()
    payment = crud.record_payment(None, day_pass.id, 50, "cash", "2025-01-10")
    assert payment.is_walk_in
    assert payment.period_start == payment.period_end == date(2025, 1, 10)
    assert crud.get_client(client.id).status == "inactive"


def test_record_payment_errors(monthly):
    client = _client()
    with pytest.raises(MissingPlanError):
        crud.record_payment(client.id, 999, 500, "cash", "2025-01-10")
    with pytest.raises(MissingClientError):
        crud.record_payment(999, monthly.id, 500, "cash", "2025-01-10")
    with pytest.raises(ValidationError):
        crud.record_payment(client.id, monthly.id, 500, "cash", "10/01/2025")
    assert db.fetch_value("SELECT COUNT(*) FROM payments") == 0


def test_list_payments_filters(monthly, weekly):
    ana = _client("Ana Lopez", "5500000001")
    ben = _client("Ben Ruiz", "5500000002")
    crud.record_payment(ana.id, monthly.id, 500, "cash", "2025-01-05")
    crud.record_payment(ben.id, weekly.id, 150, "transfer", "2025-01-12")
    crud.record_payment(None, weekly.id, 150, "cash", "2025-02-01")

    rows, pagination = crud.list_payments()
    assert [r["payment_date"] for r in rows] == ["2025-02-01", "2025-01-12", "2025-01-05"]
    assert pagination["total"] == 3
    assert rows[0]["client_name"] is None
    assert rows[1]["plan_name"] == "Weekly"

    def ids(**kwargs):
        return [r["client_id"] for r in crud.list_payments(**kwargs)[0]]

    assert ids(client_id=ana.id) == [ana.id]
    assert ids(payment_method="transfer") == [ben.id]
    assert ids(walk_in_only=True) == [None]
    assert ids(plan_id=weekly.id, sort_order="asc") == [ben.id, None]
    assert ids(date_from="2025-01-06", date_to="2025-01-31") == [ben.id]
    assert ids(amount_min=200) == [ana.id]
    assert ids(amount_max=200, sort_by="amount", sort_order="asc") == [ben.id, None]


def test_payments_between_is_inclusive(monthly):
    client = _client()
    crud.record_payment(client.id, monthly.id, 500, "cash", "2025-01-01")
    crud.record_payment(client.id, monthly.id, 500, "cash", "2025-01-31")
    crud.record_payment(client.id, monthly.id, 500, "cash", "2025-02-01")
    assert len(crud.payments_between(date(2025, 1, 1), date(2025, 1, 31))) == 2


def test_export_rows(monthly):
    client = _client()
    crud.record_payment(client.id, monthly.id, 500, "cash", "2025-01-01")
    crud.record_payment(None, monthly.id, 500, "cash", "2025-01-02")
    clients = crud.export_clients_rows()
    assert clients[0]["plan_name"] == "Monthly"
    payments = crud.export_payments_rows()
    assert [p["client_name"] for p in payments] == ["Walk-in", "Ana Lopez"]

from datetime import date

import pytest

import db
from models import Client, Payment, Plan


@pytest.fixture
def database(tmp_path, monkeypatch):
    """
    Fresh SQLite file per test, with tables created and a default admin.
    """
    monkeypatch.setattr(db, "DB_FILE", tmp_path / "gym.db")
    db.init_db("not-a-real-hash")
    yield tmp_path / "gym.db"


def make_client(**overrides) -> Client:
    fields = dict(
        id=1,
        full_name="Test Client",
        phone="5512345678",
        status="active",
        registration_date=date(2024, 6, 1),
        current_plan_id=None,
        expiration_date=None,
        last_payment_date=None,
    )
    fields.update(overrides)
    return Client(**fields)


def make_payment(**overrides) -> Payment:
    fields = dict(
        id=1,
        client_id=1,
        plan_id=1,
        amount=500.0,
        payment_method="cash",
        payment_date=date(2025, 1, 1),
        period_start=date(2025, 1, 1),
        period_end=date(2025, 1, 30),
    )
    fields.update(overrides)
    return Payment(**fields)


def make_plan(**overrides) -> Plan:
    fields = dict(id=1, name="Monthly", duration_days=30, price=500.0)
    fields.update(overrides)
    return Plan(**fields)

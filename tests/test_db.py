import pytest

import db
from errors import DataAccessError


def test_init_db_creates_tables_and_admin(database):
    tables = {r["name"] for r in db.fetch_all("SELECT name FROM sqlite_master WHERE type='table'")}
    assert {"admin_users", "plans", "clients", "payments", "app_settings"} <= tables
    assert db.fetch_value("SELECT COUNT(*) FROM admin_users") == 1
    assert db.is_force_password_change()


def test_init_db_is_idempotent(database):
    db.clear_force_password_change()
    db.init_db("another-hash")
    assert db.fetch_value("SELECT COUNT(*) FROM admin_users") == 1
    assert not db.is_force_password_change()


def test_sqlite_errors_surface_as_data_access_error(database):
    with pytest.raises(DataAccessError, match="no such table"):
        db.fetch_all("SELECT * FROM members")


def test_constraint_violation_is_rolled_back(database):
    with pytest.raises(DataAccessError):
        db.execute(
            "INSERT INTO payments(client_id, plan_id, amount, payment_method, payment_date, period_start, period_end)"
            " VALUES(NULL, 1, 10, 'card', '2025-01-01', '2025-01-01', '2025-01-01')"
        )
    assert db.fetch_value("SELECT COUNT(*) FROM payments") == 0


def test_unreachable_database_file(tmp_path, monkeypatch):
    monkeypatch.setattr(db, "DB_FILE", tmp_path / "missing" / "gym.db")
    with pytest.raises(DataAccessError):
        db.fetch_one("SELECT 1")

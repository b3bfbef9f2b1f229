"""
auth.py
Owner authentication (bcrypt hashing, login, password change).
"""

from __future__ import annotations

import logging

import bcrypt

import db

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 6


def _to_bcrypt_secret(password: str) -> bytes:
    """
    bcrypt only uses the first 72 BYTES of the password.
    We truncate to 72 bytes to avoid ValueError and to make behavior explicit.
    """
    return password.encode("utf-8")[:72]


def hash_password(password: str, rounds: int = 12) -> str:
    """
    Returns a bcrypt hash as a UTF-8 string (stored in SQLite).
    """
    salt = bcrypt.gensalt(rounds=rounds)
    return bcrypt.hashpw(_to_bcrypt_secret(password), salt).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    return bcrypt.checkpw(_to_bcrypt_secret(password), password_hash.encode("utf-8"))


def get_admin_by_username(username: str):
    return db.fetch_one("SELECT * FROM admin_users WHERE username = ?", (username,))


def login(username: str, password: str) -> bool:
    admin = get_admin_by_username(username)
    if not admin:
        logger.info("Login rejected for unknown user %r", username)
        return False
    ok = verify_password(password, admin["password_hash"])
    if not ok:
        logger.info("Login rejected for %r (bad password)", username)
    return ok


def validate_new_password(new_password: str, confirm: str) -> list[str]:
    errors: list[str] = []
    if len(new_password) < MIN_PASSWORD_LENGTH:
        errors.append(f"Password must be at least {MIN_PASSWORD_LENGTH} characters.")
    if new_password != confirm:
        errors.append("Passwords do not match.")
    return errors


def change_password(username: str, new_password: str) -> None:
    db.execute(
        "UPDATE admin_users SET password_hash = ? WHERE username = ?",
        (hash_password(new_password), username),
    )
    db.clear_force_password_change()
    logger.info("Password changed for %r", username)

import auth
import db


def test_hash_and_verify():
    hashed = auth.hash_password("s3cret!", rounds=4)
    assert hashed.startswith("$2")
    assert auth.verify_password("s3cret!", hashed)
    assert not auth.verify_password("wrong", hashed)


def test_passwords_longer_than_72_bytes_are_truncated():
    long_pw = "x" * 100
    hashed = auth.hash_password(long_pw, rounds=4)
    assert auth.verify_password("x" * 72, hashed)


def test_login_and_change_password(database):
    db.execute(
        "UPDATE admin_users SET password_hash = ? WHERE username = 'admin'",
        (auth.hash_password("admin123", rounds=4),),
    )
    assert db.is_force_password_change()
    assert auth.login("admin", "admin123")
    assert not auth.login("admin", "nope")
    assert not auth.login("ghost", "admin123")

    auth.change_password("admin", "brand-new")
    assert auth.login("admin", "brand-new")
    assert not auth.login("admin", "admin123")
    assert not db.is_force_password_change()


def test_validate_new_password():
    assert auth.validate_new_password("abcdef", "abcdef") == []
    assert auth.validate_new_password("abc", "abd") == [
        "Password must be at least 6 characters.",
        "Passwords do not match.",
    ]

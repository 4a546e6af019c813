# tests/test_security.py
from threadline.core import security


def test_password_hash_round_trip() -> None:
    hashed = security.hash_password("correct-horse")
    assert hashed.startswith("$2b$")
    assert hashed != security.hash_password("correct-horse")
    assert security.verify_password("correct-horse", hashed)
    assert not security.verify_password("battery-staple", hashed)


def test_verify_rejects_missing_or_malformed_hash() -> None:
    assert not security.verify_password("correct-horse", None)
    assert not security.verify_password("correct-horse", "")
    assert not security.verify_password("correct-horse", "not-a-bcrypt-hash")


def test_long_passwords_cut_on_a_character_boundary() -> None:
    # 1 + 2 * 40 bytes; byte 72 falls inside the 36th "é", which is dropped.
    password = "a" + "é" * 40
    hashed = security.hash_password(password)
    assert security.verify_password(password, hashed)
    assert security.verify_password("a" + "é" * 35, hashed)
    assert security.verify_password("a" + "é" * 35 + "ü", hashed)
    assert not security.verify_password("a" + "é" * 34, hashed)


def test_access_token_carries_user_id() -> None:
    token = security.create_access_token(42)
    assert security.decode_access_token(token) == "42"

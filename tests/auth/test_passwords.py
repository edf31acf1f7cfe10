from werkzeug.security import generate_password_hash

from src.epms.epms.auth.passwords import (
    fits_bcrypt,
    generate_secure_password,
    hash_password,
    is_bcrypt_hash,
    is_werkzeug_hash,
    validate_password,
    verify_password,
    verify_stored_password,
)
from src.epms.epms.auth.settings import PasswordPolicy


def test_hash_and_verify_roundtrip():
    hashed = hash_password("Sup3r$ecret", rounds=4)
    assert is_bcrypt_hash(hashed)
    assert verify_password("Sup3r$ecret", hashed)
    assert not verify_password("wrong", hashed)


def test_verify_password_rejects_malformed_hash():
    assert verify_password("anything", "not-a-hash") is False


def test_policy_reports_every_missing_class():
    check = validate_password("abc")
    assert not check.valid
    assert len(check.errors) == 4
    assert "Password must be at least 8 characters long" in check.errors


def test_policy_accepts_strong_password():
    assert validate_password("Str0ng!Pass").valid


def test_policy_caps_length_in_utf8_bytes():
    check = validate_password("Aa1!" + "\u00e9" * 35)
    assert not check.valid
    assert check.errors == ["Password must be at most 72 bytes long"]
    assert validate_password("Aa1!" + "x" * 68).valid
    assert fits_bcrypt("x" * 72)
    assert not fits_bcrypt("\u00e9" * 37)


def test_relaxed_policy():
    policy = PasswordPolicy(require_special_char=False, require_uppercase=False)
    assert validate_password("lowercase1", policy).valid


def test_stored_bcrypt_needs_no_rehash():
    hashed = hash_password("Pa55word!", rounds=4)
    match = verify_stored_password("Pa55word!", hashed)
    assert match.ok and not match.needs_rehash


def test_stored_werkzeug_hash_is_migrated():
    legacy = generate_password_hash("Pa55word!")
    assert is_werkzeug_hash(legacy)
    match = verify_stored_password("Pa55word!", legacy)
    assert match.ok and match.needs_rehash
    assert not verify_stored_password("nope", legacy).ok


def test_stored_plaintext_is_migrated():
    match = verify_stored_password("plain", "plain")
    assert match.ok and match.needs_rehash
    assert not verify_stored_password("other", "plain").ok


def test_empty_stored_password_never_matches():
    assert not verify_stored_password("", "").ok


def test_generated_password_covers_every_class():
    for _ in range(20):
        pw = generate_secure_password(12)
        assert len(pw) == 12
        assert validate_password(pw).valid

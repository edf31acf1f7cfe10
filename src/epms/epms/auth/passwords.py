"""Password hashing and policy checks.

Passwords are stored as bcrypt hashes. Older rows may still hold plaintext or
Werkzeug ``pbkdf2:``/``scrypt:`` hashes; ``verify_stored_password`` accepts
those and tells the caller to re-hash.
"""

from __future__ import annotations

import hmac
import re
import secrets
import string
from dataclasses import dataclass, field
from typing import List

import bcrypt
from werkzeug.security import check_password_hash

from .settings import PasswordPolicy

_BCRYPT_RE = re.compile(r"^\$2[aby]?\$\d{1,2}\$[./A-Za-z0-9]{53}$")
_WERKZEUG_PREFIXES = ("pbkdf2:", "scrypt:")
_SPECIAL_CHARS = "!@#$%^&*()_+-=[]{};':\"\\|,.<>/?"
_SPECIAL_RE = re.compile(r"[!@#$%^&*()_+\-=\[\]{};':\"\\|,.<>/?]")
BCRYPT_MAX_BYTES = 72


@dataclass(frozen=True)
class PasswordCheck:
    valid: bool
    errors: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class StoredPasswordMatch:
    ok: bool
    needs_rehash: bool = False


def validate_password(password: str, policy: PasswordPolicy = PasswordPolicy()) -> PasswordCheck:
    errors: List[str] = []
    password = password or ""

    if len(password) < policy.min_length:
        errors.append(f"Password must be at least {policy.min_length} characters long")
    if len(password.encode("utf-8")) > policy.max_bytes:
        errors.append(f"Password must be at most {policy.max_bytes} bytes long")
    if policy.require_uppercase and not re.search(r"[A-Z]", password):
        errors.append("Password must contain at least one uppercase letter")
    if policy.require_lowercase and not re.search(r"[a-z]", password):
        errors.append("Password must contain at least one lowercase letter")
    if policy.require_number and not re.search(r"\d", password):
        errors.append("Password must contain at least one number")
    if policy.require_special_char and not _SPECIAL_RE.search(password):
        errors.append("Password must contain at least one special character")

    return PasswordCheck(valid=not errors, errors=errors)


def fits_bcrypt(password: str) -> bool:
    return len(password.encode("utf-8")) <= BCRYPT_MAX_BYTES


def hash_password(password: str, *, rounds: int = 12) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds=rounds)).decode("utf-8")


def verify_password(password: str, hashed: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode("utf-8"), hashed.encode("utf-8"))
    except ValueError:
        # malformed hash
        return False


def is_bcrypt_hash(value: str) -> bool:
    return bool(value) and _BCRYPT_RE.match(value) is not None


def is_werkzeug_hash(value: str) -> bool:
    return bool(value) and value.startswith(_WERKZEUG_PREFIXES)


def verify_stored_password(password: str, stored: str) -> StoredPasswordMatch:
    if not stored:
        return StoredPasswordMatch(ok=False)

    if is_bcrypt_hash(stored):
        return StoredPasswordMatch(ok=verify_password(password, stored))

    if is_werkzeug_hash(stored):
        try:
            ok = check_password_hash(stored, password)
        except ValueError:
            ok = False
        return StoredPasswordMatch(ok=ok, needs_rehash=ok)

    # Legacy plaintext
    ok = hmac.compare_digest(password.encode("utf-8"), stored.encode("utf-8"))
    return StoredPasswordMatch(ok=ok, needs_rehash=ok)


def generate_secure_password(length: int = 16) -> str:
    if length < 4:
        raise ValueError("length must be at least 4")

    pools = [string.ascii_uppercase, string.ascii_lowercase, string.digits, _SPECIAL_CHARS]
    alphabet = "".join(pools)
    chars = [secrets.choice(pool) for pool in pools]
    chars += [secrets.choice(alphabet) for _ in range(length - len(chars))]
    secrets.SystemRandom().shuffle(chars)
    return "".join(chars)

"""
hrms_api.auth.passwords

Password hashing helpers (bcrypt).

Responsibilities:
- Hash and verify passwords.
- Recognise legacy plain-text values so they can be upgraded on login.
"""

from __future__ import annotations

import re
import secrets

import bcrypt

DEFAULT_ROUNDS = 12

_BCRYPT_HASH = re.compile(r"^\$2[aby]\$\d{2}\$.{53}$")


def _normalize(password: str) -> bytes:
    # bcrypt only looks at the first 72 bytes and newer releases reject longer input.
    return password.encode("utf-8")[:72]


def hash_password(password: str, *, rounds: int = DEFAULT_ROUNDS) -> str:
    if not password:
        raise ValueError("password must not be empty")
    return bcrypt.hashpw(_normalize(password), bcrypt.gensalt(rounds=rounds)).decode("ascii")


def verify_password(password: str, hashed: str) -> bool:
    if not password or not hashed:
        return False
    try:
        return bcrypt.checkpw(_normalize(password), hashed.encode("ascii"))
    except ValueError:
        return False


def is_password_hashed(stored: str | None) -> bool:
    return bool(stored) and _BCRYPT_HASH.match(stored) is not None


def verify_legacy_plaintext(password: str, stored: str) -> bool:
    return secrets.compare_digest(password.encode("utf-8"), stored.encode("utf-8"))

"""
accounts/passwords.py -- bcrypt salt generation, hashing and verification.

bcrypt used directly, no passlib wrapper: passlib's wrap-bug detection feeds
bcrypt 4.x a password longer than 72 bytes, which it now rejects outright.

Verification uses bcrypt.checkpw, which re-derives the hash from the salt
embedded in the stored hash and compares in constant time. It never compares
two hash strings with ==.

Timing equalization: dummy_hash() gives check_credentials() something to run
bcrypt against when no account matched, so "no such account" costs the same
as "wrong password".

Layer rule: stdlib + bcrypt only.
"""

from __future__ import annotations

from functools import lru_cache

import bcrypt

# bcrypt only reads the first 72 bytes of the password.
MAX_PASSWORD_BYTES = 72


def generate_salt(rounds: int = 12) -> str:
    """Return a fresh random bcrypt salt string ("$2b$<rounds>$<22 chars>")."""
    return bcrypt.gensalt(rounds=rounds).decode("ascii")


def hash_password(plain: str, salt: str) -> str:
    """Hash plain with the given bcrypt salt.

    Input past 72 bytes is cut before hashing instead of letting bcrypt 4.x
    raise; the API layer caps password length well below that anyway.
    """
    return bcrypt.hashpw(_encode(plain), salt.encode("ascii")).decode("ascii")


def verify_password(plain: str, hashed: str) -> bool:
    """Return True if plain matches the bcrypt hash. A malformed hash never matches."""
    try:
        return bcrypt.checkpw(_encode(plain), hashed.encode("ascii"))
    except ValueError:
        return False


@lru_cache(maxsize=8)
def dummy_hash(rounds: int = 12) -> str:
    """A throwaway hash at the same cost as real ones, computed once per cost."""
    return hash_password("timing-equalization-dummy", generate_salt(rounds))


def _encode(plain: str) -> bytes:
    return plain.encode("utf-8")[:MAX_PASSWORD_BYTES]

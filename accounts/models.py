"""
accounts/models.py -- Domain dataclasses and result types for the account flows.

Pattern: Data class (pure data container, zero logic). The repositories and
AccountService do the work; these only own the shape.

Result types: every expected outcome of a flow (not found, credentials do not
match, already signed up) is a returned value the caller must branch on.
Nothing here is raised.

Layer rule: no imports from api/ or mail/.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Literal

from store.entity import SimpleEntity, SoftDeletableEntity


class Role(str, Enum):
    END_USER = "end-user"
    ADMIN = "admin"


@dataclass(kw_only=True)
class Account(SoftDeletableEntity):
    """A registered identity, keyed for login by email.

    is_verified starts False (server default) and flips to True exactly once,
    when a verification token for this account is consumed. There is no
    transition back.

    password_salt is the bcrypt salt the hash was produced with. bcrypt also
    embeds it in password_hash; it is kept as its own column so the hash
    parameters are inspectable without parsing the hash string.
    """

    email: str
    password_hash: str
    password_salt: str
    role: Role
    is_verified: bool = False


@dataclass(kw_only=True)
class VerificationToken(SimpleEntity):
    """Proof-of-inbox credential. The id is the secret embedded in the link.

    One live token per account is kept by deleting before creating, not by a
    uniqueness constraint. A token past expires_at is treated as absent.

    account is None when the owning account has been soft-deleted; such a
    token is treated as absent too.
    """

    account: Account | None
    expires_at: datetime


@dataclass(frozen=True)
class SignupData:
    """What a caller supplies to sign up. The password never reaches the store."""

    email: str
    password: str


class SignupResult(str, Enum):
    CREATED = "created"
    ALREADY_CREATED = "already-created"
    AWAITING_VERIFICATION = "awaiting-verification"


@dataclass(frozen=True)
class CredentialsMatch:
    account: Account
    result: Literal["match"] = "match"


CredentialsDontMatch = Literal["dont-match"]
CREDENTIALS_DONT_MATCH: CredentialsDontMatch = "dont-match"

VerifyResult = Literal["ok", "not-found"]
ResendResult = Literal["ok", "not-found"]

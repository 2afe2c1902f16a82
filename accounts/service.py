"""
accounts/service.py -- Signup, email verification, resend and login matching.

Every multi-step flow runs inside one Database.transaction(): the lookups and
writes of verify_account, resend_verification and signup commit or roll back
together. Repositories receive that transaction as `unit=`.

Email is sent after the transaction commits. A delivery failure is logged with
its traceback and does not change the returned result: the account/token rows
are already committed and the user can ask for a resend. No retry, no outbox.

Token regeneration policy:
  signup              -- always creates a fresh token (there was no account).
  resend_verification -- reuses the live token if one exists and resends its
                         link; only creates a new one when none is live.

Security:
  check_credentials() runs bcrypt in every branch (against a dummy hash when
  no verified account matches), so unknown email, unverified account and
  wrong password take the same time and return the same value.
"""

from __future__ import annotations

import asyncio
import dataclasses
import logging
from datetime import timedelta

from accounts.models import (
    CREDENTIALS_DONT_MATCH,
    Account,
    CredentialsDontMatch,
    CredentialsMatch,
    ResendResult,
    Role,
    SignupData,
    SignupResult,
    VerifyResult,
)
from accounts.passwords import dummy_hash, generate_salt, hash_password, verify_password
from accounts.repositories import AccountRepository, VerificationTokenRepository
from core.audit import AuditContext
from mail.errors import EmailDeliveryError
from mail.service import EmailMessage, EmailService
from store.database import Database
from store.errors import EntityConflictError

logger = logging.getLogger("accounts.service")

DEFAULT_VERIFICATION_TTL = timedelta(hours=24)
VERIFY_PATH = "verify"
VERIFICATION_SUBJECT = "Verify your account"


def build_verification_link(link_base: str, token_id: str) -> str:
    return f"{link_base.rstrip('/')}/{VERIFY_PATH}/{token_id}"


def verification_email_body(link: str) -> str:
    return (
        "<p>Click or copy this link to verify your newly created account: "
        f'<a href="{link}" target="_blank">{link}</a></p>'
    )


class AccountService:
    """Account lifecycle orchestration over the entity store."""

    def __init__(
        self,
        database: Database,
        email_service: EmailService,
        *,
        verification_ttl: timedelta = DEFAULT_VERIFICATION_TTL,
        bcrypt_rounds: int = 12,
    ) -> None:
        self.database = database
        self.email_service = email_service
        self.verification_ttl = verification_ttl
        self.bcrypt_rounds = bcrypt_rounds
        self.accounts = AccountRepository(database)
        self.tokens = VerificationTokenRepository(database)

    async def warm_up(self) -> None:
        """Compute the dummy hash off the event loop before the first login needs it."""
        await asyncio.to_thread(dummy_hash, self.bcrypt_rounds)

    # ------------------------------------------------------------------
    # Login
    # ------------------------------------------------------------------

    async def check_credentials(self, email: str, password: str) -> CredentialsMatch | CredentialsDontMatch:
        """Match email + password against a verified account.

        Unknown email, unverified account and wrong password all return
        "dont-match"; callers cannot tell them apart.
        """
        account = await self.accounts.find_by_email(email, verified_only=True)
        if account is not None:
            stored_hash = account.password_hash
        else:
            stored_hash = await asyncio.to_thread(dummy_hash, self.bcrypt_rounds)
        # Always run bcrypt -- do NOT return early for a missing account.
        matches = await asyncio.to_thread(verify_password, password, stored_hash)
        if account is None or not matches:
            return CREDENTIALS_DONT_MATCH
        return CredentialsMatch(account=account)

    # ------------------------------------------------------------------
    # Verification
    # ------------------------------------------------------------------

    async def verify_account(self, audit: AuditContext, token_id: str) -> VerifyResult:
        """Consume a verification token and mark its account verified.

        Deletes every token of the account, not only the consumed one, so no
        stale duplicate survives verification.
        """
        async with self.database.transaction() as unit:
            token = await self.tokens.find_live_by_id(token_id, unit=unit)
            if token is None or token.account is None:
                return "not-found"
            account = token.account
            account.is_verified = True
            await self.accounts.save(account, audit, unit=unit)
            await self.tokens.delete_for_account(account, audit, unit=unit)
        logger.info("Account verified id=%s", account.id)
        return "ok"

    async def resend_verification(self, audit: AuditContext, email: str, link_base: str) -> ResendResult:
        """Resend the verification link for email, whatever its verification state.

        A live token is reused as-is; only when none is live are stale tokens
        cleared and a fresh one created.
        """
        async with self.database.transaction() as unit:
            account = await self.accounts.find_by_email(email, unit=unit)
            if account is None:
                return "not-found"
            token = await self.tokens.find_live_by_account(account, unit=unit)
            if token is None:
                await self.tokens.delete_for_account(account, audit, unit=unit)
                token = await self.tokens.create_token(account, self.verification_ttl, audit, unit=unit)
        await self._send_verification_link(account.email, build_verification_link(link_base, token.id))
        return "ok"

    # ------------------------------------------------------------------
    # Signup
    # ------------------------------------------------------------------

    async def signup(self, audit: AuditContext, data: SignupData, link_base: str) -> SignupResult:
        """Create an unverified account plus its first verification token.

        An existing account short-circuits with no token and no email:
        ALREADY_CREATED if verified or soft-deleted, AWAITING_VERIFICATION
        otherwise (the caller should offer resend_verification instead). A
        soft-deleted account still owns its email, and resend cannot reach it.
        """
        try:
            async with self.database.transaction() as unit:
                existing = await self.accounts.find_by_email(data.email, with_deleted=True, unit=unit)
                if existing is not None:
                    return _existing_signup_result(existing)

                payload = dataclasses.asdict(data)
                password = payload.pop("password")
                salt = await asyncio.to_thread(generate_salt, self.bcrypt_rounds)
                password_hash = await asyncio.to_thread(hash_password, password, salt)

                account: Account = await self.accounts.create(
                    {**payload, "password_hash": password_hash, "password_salt": salt, "role": Role.END_USER},
                    audit,
                    unit=unit,
                )
                token = await self.tokens.create_token(account, self.verification_ttl, audit, unit=unit)
        except EntityConflictError:
            # Lost a race with a concurrent signup for the same email.
            logger.warning("Concurrent signup collided on email; reporting the existing account state")
            existing = await self.accounts.find_by_email(data.email, with_deleted=True)
            if existing is None:
                raise
            return _existing_signup_result(existing)

        logger.info("Account created id=%s", account.id)
        await self._send_verification_link(account.email, build_verification_link(link_base, token.id))
        return SignupResult.CREATED

    # ------------------------------------------------------------------
    # Email
    # ------------------------------------------------------------------

    async def _send_verification_link(self, to: str, link: str) -> None:
        message = EmailMessage(to=to, subject=VERIFICATION_SUBJECT, body=verification_email_body(link))
        try:
            await self.email_service.send_email(message)
        except EmailDeliveryError:
            logger.exception("Verification email to %s failed; committed state kept", to)


def _existing_signup_result(account: Account) -> SignupResult:
    if account.is_verified or account.is_deleted:
        return SignupResult.ALREADY_CREATED
    return SignupResult.AWAITING_VERIFICATION

"""
accounts/repositories.py -- Entity-specific repositories for the account flows.

Both are thin: SimpleEntityRepository does the SQL; these add the named
lookups AccountService needs so the service reads as the flow it implements.

A token is *live* while expires_at is in the future. Every token lookup here
filters on that, so an expired token is indistinguishable from a missing one.
"""

from __future__ import annotations

from datetime import timedelta

from sqlalchemy.ext.asyncio import AsyncConnection

from accounts.models import Account, VerificationToken
from accounts.tables import ACCOUNTS, VERIFICATION_TOKENS
from core.audit import AuditContext
from store.entity import utcnow
from store.operators import MoreThan
from store.repository import SimpleEntityRepository


class AccountRepository(SimpleEntityRepository[Account]):
    schema = ACCOUNTS

    async def find_by_email(
        self,
        email: str,
        *,
        verified_only: bool = False,
        with_deleted: bool = False,
        unit: AsyncConnection | None = None,
    ) -> Account | None:
        """with_deleted=True sees the rows the UNIQUE(email) constraint sees."""
        where: dict = {"email": email}
        if verified_only:
            where["is_verified"] = True
        return await self.find_one(where, with_deleted=with_deleted, unit=unit)


class VerificationTokenRepository(SimpleEntityRepository[VerificationToken]):
    schema = VERIFICATION_TOKENS

    async def find_live_by_id(self, token_id: str, *, unit: AsyncConnection | None = None) -> VerificationToken | None:
        """Look up a live token with its owning account joined in."""
        token = await self.find_one({"id": token_id, "expires_at": MoreThan(utcnow())}, unit=unit)
        return _with_account(token)

    async def find_live_by_account(
        self, account: Account | str, *, unit: AsyncConnection | None = None
    ) -> VerificationToken | None:
        """Newest live token for the account, if any."""
        token = await self.find_one(
            {"account": account, "expires_at": MoreThan(utcnow())},
            order={"expires_at": "DESC"},
            unit=unit,
        )
        return _with_account(token)

    async def create_token(
        self,
        account: Account,
        ttl: timedelta,
        audit: AuditContext,
        *,
        unit: AsyncConnection | None = None,
    ) -> VerificationToken:
        return await self.create({"account": account, "expires_at": utcnow() + ttl}, audit, unit=unit)

    async def delete_for_account(
        self, account: Account | str, audit: AuditContext, *, unit: AsyncConnection | None = None
    ) -> int:
        """Delete every token of the account, live or expired."""
        return await self.delete_where({"account": account}, audit, unit=unit)


def _with_account(token: VerificationToken | None) -> VerificationToken | None:
    # A token whose account was soft-deleted joins with account=None.
    if token is None or token.account is None:
        return None
    return token

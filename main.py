#!/usr/bin/env python3
"""
Account service -- operator command line.

Drives the same AccountService the HTTP API uses, against the database named
by DATABASE_URL. Useful for first setup and for support work (re-sending a
link, verifying by hand, checking a password).

Usage:
  python main.py init-db
  python main.py signup alice@example.com --link-base https://app.example.com
  python main.py resend alice@example.com --link-base https://app.example.com
  python main.py verify 0b6f2c9e-...
  python main.py check alice@example.com

Environment variables:
  DATABASE_URL   SQLAlchemy async URL (default: sqlite+aiosqlite:///accounts.db)
  MAIL_BACKEND   "log" (default) or "smtp"; see core/config.py for SMTP_*.
"""

from __future__ import annotations

import argparse
import asyncio
import getpass
from datetime import timedelta

from accounts.models import CredentialsMatch, SignupData
from accounts.service import AccountService
from core.audit import AuditContext
from core.config import Settings, get_settings
from core.logging import configure_logging
from mail.service import build_email_service
from store.database import Database


def _read_password(prompt: str = "Password: ") -> str:
    return getpass.getpass(prompt)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="account-service",
        description="Operator commands for the account service.",
    )
    sub = parser.add_subparsers(dest="command", metavar="COMMAND")

    sub.add_parser("init-db", help="Create any missing tables")

    signup = sub.add_parser("signup", help="Create an account and send its verification link")
    signup.add_argument("email")
    signup.add_argument("--link-base", required=True, metavar="URL", help="Base address for the verification link")

    resend = sub.add_parser("resend", help="Resend the verification link for an account")
    resend.add_argument("email")
    resend.add_argument("--link-base", required=True, metavar="URL", help="Base address for the verification link")

    verify = sub.add_parser("verify", help="Consume a verification token")
    verify.add_argument("token_id", metavar="TOKEN-ID")

    check = sub.add_parser("check", help="Check a password against a verified account")
    check.add_argument("email")
    return parser


async def run(args: argparse.Namespace, settings: Settings) -> int:
    """Execute one parsed command. Returns the process exit code."""
    database = Database(settings.database_url)
    try:
        await database.create_all()
        if args.command == "init-db":
            print(f"  Schema ready at {settings.database_url}")
            return 0

        service = AccountService(
            database,
            build_email_service(settings),
            verification_ttl=timedelta(seconds=settings.verification_ttl_seconds),
            bcrypt_rounds=settings.bcrypt_rounds,
        )
        audit = AuditContext(actor="cli", reason=args.command)

        if args.command == "signup":
            password = _read_password()
            result = await service.signup(audit, SignupData(email=args.email, password=password), args.link_base)
            print(f"  {args.email}: {result.value}")
            return 0

        if args.command == "resend":
            outcome = await service.resend_verification(audit, args.email, args.link_base)
            print(f"  {args.email}: {outcome}")
            return 0 if outcome == "ok" else 1

        if args.command == "verify":
            outcome = await service.verify_account(audit, args.token_id)
            print(f"  {args.token_id}: {outcome}")
            return 0 if outcome == "ok" else 1

        if args.command == "check":
            outcome = await service.check_credentials(args.email, _read_password())
            if isinstance(outcome, CredentialsMatch):
                print(f"  match: account {outcome.account.id} ({outcome.account.role.value})")
                return 0
            print("  [!] credentials do not match")
            return 1
    finally:
        await database.dispose()
    return 2


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    if not args.command:
        parser.print_help()
        return 2
    settings = get_settings()
    configure_logging(settings.debug)
    return asyncio.run(run(args, settings))


if __name__ == "__main__":
    raise SystemExit(main())

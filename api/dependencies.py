"""
api/dependencies.py -- FastAPI Depends() helpers for the account routes.

The service lives on app.state (built in the lifespan); routes never construct
their own. Each request gets an AuditContext tagged with its X-Request-ID (or
a fresh one) so store log lines can be tied back to the request.
"""

from __future__ import annotations

from fastapi import Request

from accounts.service import AccountService
from core.audit import AuditContext
from store.ids import generate_unique_id


def get_account_service(request: Request) -> AccountService:
    return request.app.state.account_service


def get_audit_context(request: Request) -> AuditContext:
    """Anonymous actor: every account route is public (there is no session)."""
    request_id = request.headers.get("X-Request-ID") or generate_unique_id()
    return AuditContext(actor="anonymous", reason=request.url.path, request_id=request_id)


def get_link_base(request: Request) -> str:
    """Base address verification links are built on.

    VERIFICATION_LINK_BASE wins when set (the public URL behind a proxy);
    otherwise the link points back at this API's own verify route.
    """
    configured = request.app.state.settings.verification_link_base
    if configured:
        return configured.rstrip("/")
    return f"{str(request.base_url).rstrip('/')}/api/v1/accounts"

"""
api/routes/v1/accounts.py -- Signup, verification and credential-check endpoints.

Routes:
  POST /api/v1/accounts/signup               -- create account, email verification link
  GET  /api/v1/accounts/verify/{token_id}    -- consume token, mark account verified
  POST /api/v1/accounts/resend-verification  -- resend (or re-issue) the link
  POST /api/v1/accounts/login                -- check credentials; no session is issued

Every route is public. Expected outcomes of the service (not found, already
signed up, credentials do not match) map to 4xx codes with the standard
error envelope; the service itself never raises for them.

Security:
  POST /login returns the same "bad_credentials" error for unknown email,
  unverified account and wrong password. Cache-Control: no-store on its
  responses.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import JSONResponse

from accounts.models import CredentialsMatch, SignupData, SignupResult
from accounts.service import AccountService
from api.dependencies import get_account_service, get_audit_context, get_link_base
from api.models import (
    AccountResponse,
    ErrorDetail,
    ErrorResponse,
    LoginRequest,
    ResendVerificationRequest,
    SignupRequest,
    SignupResponse,
    StatusResponse,
)
from core.audit import AuditContext

router = APIRouter()

_SIGNUP_OUTCOMES: dict[SignupResult, tuple[int, str]] = {
    SignupResult.CREATED: (201, "Account created. Check your inbox for the verification link."),
    SignupResult.ALREADY_CREATED: (409, "An account with this email already exists."),
    SignupResult.AWAITING_VERIFICATION: (409, "This account is awaiting verification. Request a new link instead."),
}


@router.post("/accounts/signup", response_model=SignupResponse, status_code=201)
async def signup(
    body: SignupRequest,
    service: AccountService = Depends(get_account_service),
    audit: AuditContext = Depends(get_audit_context),
    link_base: str = Depends(get_link_base),
) -> JSONResponse:
    """Create an unverified account and send its verification link."""
    result = await service.signup(audit, SignupData(email=body.email, password=body.password), link_base)
    status_code, message = _SIGNUP_OUTCOMES[result]
    if status_code != 201:
        # Codes use underscores, matching the rest of the error envelope.
        code = result.value.replace("-", "_")
        return JSONResponse(
            status_code=status_code,
            content=ErrorResponse(error=ErrorDetail(code=code, message=message)).model_dump(),
        )
    return JSONResponse(status_code=201, content=SignupResponse(result=result.value, message=message).model_dump())


@router.get("/accounts/verify/{token_id}", response_model=StatusResponse)
async def verify(
    token_id: str,
    service: AccountService = Depends(get_account_service),
    audit: AuditContext = Depends(get_audit_context),
) -> StatusResponse:
    """Consume a verification token. Unknown, used and expired tokens are all 404."""
    if await service.verify_account(audit, token_id) == "not-found":
        raise HTTPException(
            status_code=404,
            detail=ErrorDetail(code="token_not_found", message="Verification link is invalid or expired.").model_dump(),
        )
    return StatusResponse(message="Account verified.")


@router.post("/accounts/resend-verification", response_model=StatusResponse)
async def resend_verification(
    body: ResendVerificationRequest,
    service: AccountService = Depends(get_account_service),
    audit: AuditContext = Depends(get_audit_context),
    link_base: str = Depends(get_link_base),
) -> StatusResponse:
    if await service.resend_verification(audit, body.email, link_base) == "not-found":
        raise HTTPException(
            status_code=404,
            detail=ErrorDetail(code="account_not_found", message="No account with this email.").model_dump(),
        )
    return StatusResponse(message="Verification link sent.")


@router.post("/accounts/login", response_model=AccountResponse)
async def login(body: LoginRequest, service: AccountService = Depends(get_account_service)) -> JSONResponse:
    """Check email and password against a verified account.

    Returns the account on a match. Issuing a session or token is left to
    whatever sits in front of this API.
    """
    outcome = await service.check_credentials(body.email, body.password)
    if not isinstance(outcome, CredentialsMatch):
        resp = JSONResponse(
            status_code=401,
            content=ErrorResponse(
                error=ErrorDetail(code="bad_credentials", message="Invalid email or password.")
            ).model_dump(),
        )
        resp.headers["Cache-Control"] = "no-store"
        return resp

    account = outcome.account
    resp = JSONResponse(
        status_code=200,
        content=AccountResponse(
            id=account.id,
            email=account.email,
            role=account.role.value,
            is_verified=account.is_verified,
        ).model_dump(),
    )
    resp.headers["Cache-Control"] = "no-store"
    return resp

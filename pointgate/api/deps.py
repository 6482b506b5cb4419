"""FastAPI dependencies for tenant resolution, authentication and services."""

import uuid
from functools import lru_cache
from typing import Annotated

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError
from sqlalchemy.ext.asyncio import AsyncSession

from pointgate.core.config import get_settings
from pointgate.core.database import async_session_factory, get_session
from pointgate.core.security import check_admin_key, decode_jwt
from pointgate.models.tenant import Tenant
from pointgate.services import accounts
from pointgate.services.engine import TransactionEngine
from pointgate.services.storage import AListResolver, DownloadUrlResolver
from pointgate.services.tenants import resolve_tenant

TOKEN_COOKIE = "pointgate_token"
API_KEY_HEADER = "X-API-Key"

bearer_scheme = HTTPBearer(auto_error=False)

Session = Annotated[AsyncSession, Depends(get_session)]
Credentials = Annotated[HTTPAuthorizationCredentials | None, Depends(bearer_scheme)]


class AuthContext:
    """Resolved account identity carried through a request."""

    __slots__ = ("tenant", "account_id", "is_admin")

    def __init__(self, tenant: Tenant, account_id: uuid.UUID, is_admin: bool = False) -> None:
        self.tenant = tenant
        self.account_id = account_id
        self.is_admin = is_admin


# ── Services ──────────────────────────────────────────────────

@lru_cache
def get_engine() -> TransactionEngine:
    return TransactionEngine(async_session_factory, get_settings())


def get_download_resolver() -> DownloadUrlResolver:
    return AListResolver.from_settings()


Engine = Annotated[TransactionEngine, Depends(get_engine)]
Resolver = Annotated[DownloadUrlResolver, Depends(get_download_resolver)]


# ── Tenant ────────────────────────────────────────────────────

async def get_tenant(request: Request, session: Session) -> Tenant:
    """Resolve the site from the request's Host header."""
    host = request.headers.get("host", "")
    return await resolve_tenant(session, host, auto_provision=get_settings().is_development)


CurrentTenant = Annotated[Tenant, Depends(get_tenant)]


# ── Accounts ──────────────────────────────────────────────────

def _raw_token(request: Request, credentials: HTTPAuthorizationCredentials | None) -> str | None:
    if credentials is not None:
        return credentials.credentials
    return request.cookies.get(TOKEN_COOKIE)


async def _resolve_account(
    raw: str, tenant: Tenant, session: AsyncSession
) -> AuthContext:
    try:
        payload = decode_jwt(raw)
    except JWTError as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
        ) from exc

    try:
        account_id = uuid.UUID(payload["sub"])
        token_tenant = uuid.UUID(payload["tid"])
    except (KeyError, ValueError) as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Malformed token payload",
        ) from exc

    if token_tenant != tenant.id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token was issued for another site",
        )

    account = await accounts.get_account(session, tenant.id, account_id)
    if account is None or not account.is_active:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Account not found or disabled",
        )
    return AuthContext(tenant=tenant, account_id=account.id, is_admin=account.is_admin)


async def get_auth_context(
    request: Request,
    tenant: CurrentTenant,
    credentials: Credentials,
    session: Session,
) -> AuthContext:
    """Resolve a bearer token (or the login cookie) to an account of this site."""
    raw = _raw_token(request, credentials)
    if not raw:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not logged in",
        )
    return await _resolve_account(raw, tenant, session)


async def require_admin_key(request: Request) -> None:
    """Operator-level access: the configured admin API key only."""
    if not check_admin_key(request.headers.get(API_KEY_HEADER)):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid API key",
        )


async def require_admin(
    request: Request,
    tenant: CurrentTenant,
    credentials: Credentials,
    session: Session,
) -> Tenant:
    """Site administration: the admin API key, or a token of an admin account."""
    if check_admin_key(request.headers.get(API_KEY_HEADER)):
        return tenant

    raw = _raw_token(request, credentials)
    if not raw:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Admin credentials required",
        )
    auth = await _resolve_account(raw, tenant, session)
    if not auth.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Only administrators can manage points",
        )
    return tenant


# Typed shorthand for use in route signatures
Auth = Annotated[AuthContext, Depends(get_auth_context)]
AdminTenant = Annotated[Tenant, Depends(require_admin)]
AdminKey = Depends(require_admin_key)

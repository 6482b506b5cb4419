"""Local authentication — register, login, current account."""

from fastapi import APIRouter, HTTPException, Response, status
from pydantic import BaseModel, EmailStr, Field
from sqlalchemy.exc import IntegrityError

from pointgate.api.deps import TOKEN_COOKIE, Auth, CurrentTenant, Engine, Session
from pointgate.core.config import get_settings
from pointgate.core.security import create_jwt, hash_password, verify_password
from pointgate.models.account import Account, AccountRead, Provider
from pointgate.models.base import utcnow
from pointgate.services import accounts

router = APIRouter(prefix="/auth", tags=["auth"])


# ── Schemas ──────────────────────────────────────────────────

class CredentialsRequest(BaseModel):
    email: EmailStr
    password: str = Field(min_length=8, max_length=128)


class LoginResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    account: AccountRead


# ── Helpers ──────────────────────────────────────────────────

def _issue_token(response: Response, account: Account) -> LoginResponse:
    token = create_jwt(subject=str(account.id), tenant_id=str(account.tenant_id))
    response.set_cookie(
        TOKEN_COOKIE,
        token,
        max_age=get_settings().jwt_expire_minutes * 60,
        httponly=True,
        samesite="lax",
    )
    return LoginResponse(access_token=token, account=AccountRead.model_validate(account))


# ── Routes ───────────────────────────────────────────────────

@router.post("/register", response_model=LoginResponse, status_code=status.HTTP_201_CREATED)
async def register(
    body: CredentialsRequest,
    tenant: CurrentTenant,
    session: Session,
    response: Response,
) -> LoginResponse:
    """Create a local account on this site and log it in.

    An account created earlier by an admin grant (no password yet) is
    claimed by the first registration with the same email.
    """
    email = body.email.lower()
    account = await accounts.find_account(session, tenant.id, email, Provider.LOCAL)
    if account is not None and account.password_hash:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="This email is already registered",
        )

    password_hash = hash_password(body.password)
    if account is None:
        try:
            account = await accounts.create_account(
                session, tenant.id, email, Provider.LOCAL, password_hash
            )
            await session.commit()
        except IntegrityError as exc:
            await session.rollback()
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="This email is already registered",
            ) from exc
    else:
        account.password_hash = password_hash
        account.updated_at = utcnow()
        session.add(account)
        await session.commit()

    await session.refresh(account)
    return _issue_token(response, account)


@router.post("/login", response_model=LoginResponse)
async def login(
    body: CredentialsRequest,
    tenant: CurrentTenant,
    session: Session,
    response: Response,
) -> LoginResponse:
    account = await accounts.find_account(session, tenant.id, body.email.lower(), Provider.LOCAL)
    if account is None or not verify_password(body.password, account.password_hash):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid email or password",
        )
    if not account.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Account is disabled",
        )
    return _issue_token(response, account)


@router.post("/logout", status_code=status.HTTP_204_NO_CONTENT)
async def logout(response: Response) -> None:
    response.delete_cookie(TOKEN_COOKIE)


@router.get("/me", response_model=AccountRead)
async def get_me(auth: Auth, engine: Engine) -> AccountRead:
    account = await engine.get_account(auth.tenant, auth.account_id)
    return AccountRead.model_validate(account)

"""Site administration — grants, accounts, tenant-wide ledger."""

import uuid

from fastapi import APIRouter, Query
from pydantic import BaseModel, Field

from pointgate.api.deps import AdminTenant, Engine
from pointgate.models.account import MAX_POINTS, AccountRead, Provider
from pointgate.models.ledger import LedgerEntryRead

router = APIRouter(prefix="/admin", tags=["admin"])


# ── Schemas ──────────────────────────────────────────────────

class GrantRequest(BaseModel):
    username: str = Field(min_length=1, max_length=320)
    provider: Provider = Provider.LOCAL
    points: int = Field(
        ge=-MAX_POINTS,
        le=MAX_POINTS,
        description="Positive to credit, negative to claw back",
    )
    description: str = Field(default="", max_length=255)
    clamp: bool = Field(
        default=False,
        description="Cap a clawback at the current balance instead of rejecting it",
    )


class GrantResponse(BaseModel):
    account: AccountRead
    applied_points: int
    ledger_entry_id: int


class ReconcileResponse(BaseModel):
    account_id: uuid.UUID
    balance: int
    ledger_sum: int
    entry_count: int
    consistent: bool


# ── Routes ───────────────────────────────────────────────────

@router.post("/grants", response_model=GrantResponse)
async def grant_points(body: GrantRequest, tenant: AdminTenant, engine: Engine) -> GrantResponse:
    username = body.username.strip()
    if body.provider == Provider.LOCAL:
        username = username.lower()
    result = await engine.grant(
        tenant,
        username,
        body.points,
        description=body.description,
        provider=body.provider,
        clamp=body.clamp,
    )
    return GrantResponse(
        account=AccountRead.model_validate(result.account),
        applied_points=result.applied_delta,
        ledger_entry_id=result.ledger_entry_id,
    )


@router.get("/accounts", response_model=list[AccountRead])
async def list_accounts(tenant: AdminTenant, engine: Engine) -> list[AccountRead]:
    return [AccountRead.model_validate(a) for a in await engine.list_accounts(tenant)]


@router.get("/accounts/lookup", response_model=AccountRead)
async def lookup_account(
    tenant: AdminTenant,
    engine: Engine,
    username: str = Query(min_length=1),
    provider: Provider = Provider.LOCAL,
) -> AccountRead:
    if provider == Provider.LOCAL:
        username = username.lower()
    account = await engine.find_account(tenant, username, provider)
    return AccountRead.model_validate(account)


@router.get("/accounts/{account_id}/reconcile", response_model=ReconcileResponse)
async def reconcile_account(
    account_id: uuid.UUID, tenant: AdminTenant, engine: Engine
) -> ReconcileResponse:
    report = await engine.reconcile(tenant, account_id)
    return ReconcileResponse(
        account_id=report.account_id,
        balance=report.balance,
        ledger_sum=report.ledger_sum,
        entry_count=report.entry_count,
        consistent=report.consistent,
    )


@router.get("/ledger", response_model=list[LedgerEntryRead])
async def tenant_ledger(
    tenant: AdminTenant,
    engine: Engine,
    account_id: uuid.UUID | None = None,
    limit: int | None = Query(default=None),
) -> list[LedgerEntryRead]:
    entries = await engine.get_ledger(tenant, account_id, limit)
    return [LedgerEntryRead.model_validate(e) for e in entries]

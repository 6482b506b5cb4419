"""Balance and ledger of the logged-in account."""

from fastapi import APIRouter, Query
from pydantic import BaseModel

from pointgate.api.deps import Auth, Engine
from pointgate.models.ledger import LedgerEntryRead

router = APIRouter(prefix="/points", tags=["points"])


class BalanceResponse(BaseModel):
    account_id: str
    balance: int


@router.get("/balance", response_model=BalanceResponse)
async def get_balance(auth: Auth, engine: Engine) -> BalanceResponse:
    balance = await engine.get_balance(auth.tenant, auth.account_id)
    return BalanceResponse(account_id=str(auth.account_id), balance=balance)


@router.get("/ledger", response_model=list[LedgerEntryRead])
async def get_ledger(
    auth: Auth,
    engine: Engine,
    limit: int | None = Query(default=None),
) -> list[LedgerEntryRead]:
    entries = await engine.get_ledger(auth.tenant, auth.account_id, limit)
    return [LedgerEntryRead.model_validate(e) for e in entries]

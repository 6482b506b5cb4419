"""Download endpoint — pay with points, receive a retrieval URL."""

from fastapi import APIRouter
from pydantic import BaseModel, Field

from pointgate.api.deps import Auth, Engine, Resolver
from pointgate.services.downloads import unlock_download

router = APIRouter(prefix="/downloads", tags=["downloads"])


class DownloadRequest(BaseModel):
    resource: str = Field(min_length=1, max_length=1024, description="Path of the file")


class DownloadResponse(BaseModel):
    resource: str
    download_url: str
    cost: int
    balance: int
    ledger_entry_id: int


@router.post("", response_model=DownloadResponse)
async def download(
    body: DownloadRequest,
    auth: Auth,
    engine: Engine,
    resolver: Resolver,
) -> DownloadResponse:
    """Charge the file's price, then return its download URL.

    Responds 402 when the balance is too low (nothing is charged) and 502
    when the storage backend fails after the charge went through.
    """
    result = await unlock_download(engine, resolver, auth.tenant, auth.account_id, body.resource)
    return DownloadResponse(
        resource=result.spend.resource,
        download_url=result.download_url,
        cost=result.spend.cost,
        balance=result.spend.new_balance,
        ledger_entry_id=result.spend.ledger_entry_id,
    )

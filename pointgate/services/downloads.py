"""Download redemption — spend points, then resolve the retrieval URL."""

import asyncio
import logging
import uuid
from dataclasses import dataclass

from pointgate.core.errors import DownstreamResolutionFailure
from pointgate.models.tenant import Tenant
from pointgate.services.engine import SpendResult, TransactionEngine
from pointgate.services.storage import DownloadUrlResolver

logger = logging.getLogger(__name__)


@dataclass
class DownloadGrant:
    spend: SpendResult
    download_url: str


async def unlock_download(
    engine: TransactionEngine,
    resolver: DownloadUrlResolver,
    tenant: Tenant,
    account_id: uuid.UUID,
    resource: str,
) -> DownloadGrant:
    """Charge the account for ``resource`` and return its download URL.

    The URL is only requested after the debit has committed. If the resolver
    fails at that point, whatever it raises, the debit stands: no automatic
    refund is issued, the failure is logged for manual reconciliation and
    surfaced as DownstreamResolutionFailure.
    """
    spend = await engine.spend(tenant, account_id, resource)

    try:
        url = await resolver.get_download_url(spend.resource)
    except asyncio.CancelledError:
        logger.error(
            "Download URL resolution cancelled after committed spend; reconcile manually",
            extra={
                "tenant_id": tenant.id,
                "account_id": account_id,
                "resource": spend.resource,
                "ledger_entry_id": spend.ledger_entry_id,
                "reconcile_required": True,
            },
        )
        raise
    except Exception as exc:
        logger.error(
            "Download URL resolution failed after committed spend; reconcile manually: %s",
            exc,
            extra={
                "tenant_id": tenant.id,
                "account_id": account_id,
                "resource": spend.resource,
                "cost": spend.cost,
                "ledger_entry_id": spend.ledger_entry_id,
                "reconcile_required": True,
            },
        )
        raise DownstreamResolutionFailure(
            "Points were charged but the download link could not be generated",
            tenant_id=tenant.id,
            resource=spend.resource,
            cost=spend.cost,
            new_balance=spend.new_balance,
            ledger_entry_id=spend.ledger_entry_id,
        ) from exc

    return DownloadGrant(spend=spend, download_url=url)

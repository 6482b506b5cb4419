"""Append-only point ledger."""

import uuid

from sqlalchemy import func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from pointgate.models.ledger import LedgerAction, LedgerEntry


async def append_entry(
    session: AsyncSession,
    *,
    tenant_id: uuid.UUID,
    account_id: uuid.UUID,
    delta: int,
    balance_after: int,
    action: LedgerAction,
    detail: str = "",
    resource: str | None = None,
) -> LedgerEntry:
    entry = LedgerEntry(
        tenant_id=tenant_id,
        account_id=account_id,
        delta=delta,
        balance_after=balance_after,
        action=action,
        detail=detail[:255],
        resource=resource,
    )
    session.add(entry)
    await session.flush()  # populate entry.id
    return entry


async def list_entries(
    session: AsyncSession,
    tenant_id: uuid.UUID,
    account_id: uuid.UUID | None = None,
    limit: int = 50,
) -> list[LedgerEntry]:
    """Newest first by id. Tenant-wide when ``account_id`` is None."""
    stmt = select(LedgerEntry).where(LedgerEntry.tenant_id == tenant_id)
    if account_id is not None:
        stmt = stmt.where(LedgerEntry.account_id == account_id)
    stmt = stmt.order_by(LedgerEntry.id.desc()).limit(limit)  # type: ignore[union-attr]
    result = await session.execute(stmt)
    return list(result.scalars().all())


async def summarize(
    session: AsyncSession, tenant_id: uuid.UUID, account_id: uuid.UUID
) -> tuple[int, int]:
    """Return (sum of deltas, entry count) for one account."""
    stmt = select(
        func.coalesce(func.sum(LedgerEntry.delta), 0),
        func.count(LedgerEntry.id),
    ).where(
        LedgerEntry.tenant_id == tenant_id,
        LedgerEntry.account_id == account_id,
    )
    row = (await session.execute(stmt)).one()
    return int(row[0]), int(row[1])

"""Account store — tenant-scoped access to user records and balances.

Balances are only ever changed through ``apply_delta``, a single
conditional UPDATE, so a check-then-write race cannot slip in between
reading a balance and writing it back.
"""

import uuid

from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from pointgate.models.account import Account, Provider
from pointgate.models.base import utcnow


async def get_account(
    session: AsyncSession, tenant_id: uuid.UUID, account_id: uuid.UUID
) -> Account | None:
    stmt = select(Account).where(
        Account.id == account_id,
        Account.tenant_id == tenant_id,
    )
    result = await session.execute(stmt)
    return result.scalar_one_or_none()


async def find_account(
    session: AsyncSession,
    tenant_id: uuid.UUID,
    username: str,
    provider: Provider = Provider.LOCAL,
) -> Account | None:
    stmt = select(Account).where(
        Account.tenant_id == tenant_id,
        Account.username == username,
        Account.provider == provider,
    )
    result = await session.execute(stmt)
    return result.scalar_one_or_none()


async def list_accounts(session: AsyncSession, tenant_id: uuid.UUID) -> list[Account]:
    stmt = (
        select(Account)
        .where(Account.tenant_id == tenant_id)
        .order_by(Account.created_at.asc(), Account.username.asc())  # type: ignore[union-attr]
    )
    result = await session.execute(stmt)
    return list(result.scalars().all())


async def create_account(
    session: AsyncSession,
    tenant_id: uuid.UUID,
    username: str,
    provider: Provider = Provider.LOCAL,
    password_hash: str | None = None,
) -> Account:
    """Insert a zero-balance account. Raises IntegrityError on a duplicate identity."""
    account = Account(
        tenant_id=tenant_id,
        username=username,
        provider=provider,
        password_hash=password_hash,
    )
    session.add(account)
    await session.flush()
    return account


async def get_balance(
    session: AsyncSession, tenant_id: uuid.UUID, account_id: uuid.UUID
) -> int | None:
    stmt = select(Account.balance).where(
        Account.id == account_id,
        Account.tenant_id == tenant_id,
    )
    result = await session.execute(stmt)
    return result.scalar_one_or_none()


async def apply_delta(
    session: AsyncSession,
    tenant_id: uuid.UUID,
    account_id: uuid.UUID,
    delta: int,
) -> int | None:
    """Atomically add ``delta`` to the balance unless it would go negative.

    Returns the new balance, or None when no row matched (unknown account
    or insufficient balance). The row stays write-locked until the
    surrounding transaction ends, so the value read back is the committed
    result of this update.
    """
    stmt = (
        update(Account)
        .where(
            Account.id == account_id,
            Account.tenant_id == tenant_id,
            Account.balance + delta >= 0,
        )
        .values(balance=Account.balance + delta, updated_at=utcnow())
        .execution_options(synchronize_session=False)
    )
    result = await session.execute(stmt)
    if result.rowcount != 1:  # type: ignore[attr-defined]
        return None
    return await get_balance(session, tenant_id, account_id)

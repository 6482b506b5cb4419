"""Pricing table: (tenant, resource) to point cost."""

import uuid

from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from pointgate.core.errors import InvalidRequest
from pointgate.models.base import utcnow
from pointgate.models.pricing import PricingEntry


def normalize_resource(resource: str) -> str:
    """Strip surrounding whitespace and leading slashes from a resource path."""
    normalized = (resource or "").strip().lstrip("/")
    if not normalized:
        raise InvalidRequest("Resource identifier must not be empty")
    return normalized


def file_name(resource: str) -> str:
    return resource.rsplit("/", 1)[-1]


async def get_entry(
    session: AsyncSession, tenant_id: uuid.UUID, resource: str
) -> PricingEntry | None:
    stmt = select(PricingEntry).where(
        PricingEntry.tenant_id == tenant_id,
        PricingEntry.resource == resource,
    )
    result = await session.execute(stmt)
    return result.scalar_one_or_none()


async def list_entries(session: AsyncSession, tenant_id: uuid.UUID) -> list[PricingEntry]:
    stmt = (
        select(PricingEntry)
        .where(PricingEntry.tenant_id == tenant_id)
        .order_by(PricingEntry.resource.asc())  # type: ignore[union-attr]
    )
    result = await session.execute(stmt)
    return list(result.scalars().all())


async def upsert_entry(
    session: AsyncSession,
    tenant_id: uuid.UUID,
    resource: str,
    cost: int,
    description: str = "",
) -> PricingEntry:
    """Update the entry in place (keeping its id) or insert a new one."""
    entry = await get_entry(session, tenant_id, resource)
    if entry is None:
        entry = PricingEntry(
            tenant_id=tenant_id,
            resource=resource,
            cost=cost,
            description=description,
        )
        session.add(entry)
        await session.flush()
        return entry

    if entry.cost != cost or entry.description != description:
        entry.cost = cost
        entry.description = description
        entry.updated_at = utcnow()
        session.add(entry)
        await session.flush()
    return entry

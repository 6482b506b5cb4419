"""Map a request host onto its site."""

import logging

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from pointgate.core.errors import TenantNotFound
from pointgate.models.tenant import Tenant

logger = logging.getLogger(__name__)

DEFAULT_SITE_NAME = "Default Site"


def normalize_host(host: str) -> str:
    """Lower-case a Host header value and drop any port."""
    host = (host or "").strip().lower()
    if host.startswith("["):  # IPv6 literal, e.g. [::1]:8000
        return host.split("]", 1)[0] + "]"
    return host.split(":", 1)[0]


async def get_by_domain(session: AsyncSession, domain: str) -> Tenant | None:
    stmt = select(Tenant).where(Tenant.domain == domain)
    result = await session.execute(stmt)
    return result.scalar_one_or_none()


async def resolve_tenant(
    session: AsyncSession,
    host: str,
    auto_provision: bool = False,
) -> Tenant:
    """Return the active tenant served on ``host``.

    With ``auto_provision`` (development mode) an unknown host gets a
    default site created on the fly; otherwise TenantNotFound is raised.
    """
    domain = normalize_host(host)
    if not domain:
        raise TenantNotFound("Site not configured", host=host)

    tenant = await get_by_domain(session, domain)
    if tenant is not None:
        if not tenant.is_active:
            raise TenantNotFound("Site is disabled", host=domain)
        return tenant

    if not auto_provision:
        raise TenantNotFound("Site not configured", host=domain)

    tenant = Tenant(name=DEFAULT_SITE_NAME, domain=domain)
    session.add(tenant)
    try:
        await session.commit()
    except IntegrityError:
        # Another request provisioned the same host first
        await session.rollback()
        tenant = await get_by_domain(session, domain)
        if tenant is None:
            raise
        return tenant

    await session.refresh(tenant)
    logger.info("Auto-provisioned site %s for host %s", tenant.id, domain)
    return tenant

"""Site (tenant) management — operator bootstrap via the admin API key."""

import uuid

from fastapi import APIRouter, HTTPException, status
from sqlmodel import select

from pointgate.api.deps import AdminKey, CurrentTenant, Session
from pointgate.models.base import utcnow
from pointgate.models.tenant import Tenant, TenantCreate, TenantRead, TenantUpdate
from pointgate.services.tenants import get_by_domain, normalize_host

router = APIRouter(prefix="/sites", tags=["sites"])


@router.post(
    "",
    response_model=TenantRead,
    status_code=status.HTTP_201_CREATED,
    dependencies=[AdminKey],
    summary="Register a new site",
)
async def create_site(body: TenantCreate, session: Session) -> TenantRead:
    domain = normalize_host(body.domain)
    if await get_by_domain(session, domain):
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Domain '{domain}' is already taken",
        )

    tenant = Tenant(name=body.name, domain=domain)
    session.add(tenant)
    await session.commit()
    await session.refresh(tenant)
    return TenantRead.model_validate(tenant)


@router.get("", response_model=list[TenantRead], dependencies=[AdminKey])
async def list_sites(session: Session) -> list[TenantRead]:
    stmt = select(Tenant).order_by(Tenant.domain.asc())  # type: ignore[union-attr]
    result = await session.execute(stmt)
    return [TenantRead.model_validate(t) for t in result.scalars().all()]


@router.get("/current", response_model=TenantRead, summary="Site serving this host")
async def get_current_site(tenant: CurrentTenant) -> TenantRead:
    return TenantRead.model_validate(tenant)


@router.patch("/{site_id}", response_model=TenantRead, dependencies=[AdminKey])
async def update_site(
    site_id: uuid.UUID,
    body: TenantUpdate,
    session: Session,
) -> TenantRead:
    """Rename, move to another domain, or (de)activate a site.

    Sites are never deleted: accounts and ledger entries reference them.
    """
    tenant = await session.get(Tenant, site_id)
    if tenant is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Site not found")

    update_data = body.model_dump(exclude_unset=True)
    if "domain" in update_data:
        domain = normalize_host(update_data["domain"])
        existing = await get_by_domain(session, domain)
        if existing is not None and existing.id != tenant.id:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail=f"Domain '{domain}' is already taken",
            )
        update_data["domain"] = domain
    for field, value in update_data.items():
        setattr(tenant, field, value)

    tenant.updated_at = utcnow()
    session.add(tenant)
    await session.commit()
    await session.refresh(tenant)
    return TenantRead.model_validate(tenant)

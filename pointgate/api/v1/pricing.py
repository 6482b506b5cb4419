"""Per-file pricing endpoints."""

from fastapi import APIRouter, Query

from pointgate.api.deps import AdminTenant, CurrentTenant, Engine
from pointgate.models.pricing import PriceQuote, PricingConfigure, PricingRead

router = APIRouter(prefix="/pricing", tags=["pricing"])


@router.get("", response_model=list[PricingRead])
async def list_pricing(tenant: CurrentTenant, engine: Engine) -> list[PricingRead]:
    entries = await engine.list_pricing(tenant)
    return [PricingRead.model_validate(e) for e in entries]


@router.get("/lookup", response_model=PriceQuote)
async def lookup_price(
    tenant: CurrentTenant,
    engine: Engine,
    resource: str = Query(min_length=1),
) -> PriceQuote:
    """What downloading ``resource`` would cost, including the default price."""
    return await engine.quote(tenant, resource)


@router.put("", response_model=PricingRead)
async def configure_price(
    body: PricingConfigure,
    tenant: AdminTenant,
    engine: Engine,
) -> PricingRead:
    entry = await engine.configure(tenant, body.resource, body.cost, body.description)
    return PricingRead.model_validate(entry)

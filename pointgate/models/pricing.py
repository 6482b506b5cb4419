"""PricingEntry model — the point cost of unlocking one resource."""

import uuid
from datetime import datetime

from sqlalchemy import CheckConstraint, UniqueConstraint
from sqlmodel import Field, SQLModel

from pointgate.models.account import MAX_POINTS
from pointgate.models.base import TimestampMixin, new_uuid


class PricingEntry(TimestampMixin, SQLModel, table=True):
    __tablename__ = "pricing_entries"
    __table_args__ = (
        UniqueConstraint("tenant_id", "resource", name="uq_pricing_entries_resource"),
        CheckConstraint("cost >= 0", name="ck_pricing_entries_cost_non_negative"),
    )

    id: uuid.UUID = Field(default_factory=new_uuid, primary_key=True)
    tenant_id: uuid.UUID = Field(foreign_key="tenants.id", nullable=False, index=True)
    resource: str = Field(max_length=1024, nullable=False)
    cost: int = Field(nullable=False)
    description: str = Field(default="", max_length=255)


# ── Pydantic schemas ─────────────────────────────────────────

class PricingConfigure(SQLModel):
    resource: str = Field(min_length=1, max_length=1024)
    cost: int = Field(ge=0, le=MAX_POINTS)
    description: str = Field(default="", max_length=255)


class PricingRead(SQLModel):
    id: uuid.UUID
    tenant_id: uuid.UUID
    resource: str
    cost: int
    description: str
    updated_at: datetime


class PriceQuote(SQLModel):
    """Effective price of a resource, including the tenant-wide fallback."""
    resource: str
    file_name: str
    cost: int
    description: str
    is_default: bool

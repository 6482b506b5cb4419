"""Tenant model — a site, the top-level isolation boundary."""

import uuid
from datetime import datetime

from sqlmodel import Field, SQLModel

from pointgate.models.base import TimestampMixin, new_uuid


class Tenant(TimestampMixin, SQLModel, table=True):
    __tablename__ = "tenants"

    id: uuid.UUID = Field(default_factory=new_uuid, primary_key=True)
    name: str = Field(max_length=255, nullable=False)
    # Routing key: the request host this site is served on
    domain: str = Field(max_length=255, unique=True, nullable=False, index=True)
    is_active: bool = Field(default=True)


# ── Pydantic schemas (read / create / update) ────────────────

class TenantCreate(SQLModel):
    name: str = Field(max_length=255)
    domain: str = Field(min_length=1, max_length=255)


class TenantUpdate(SQLModel):
    name: str | None = Field(default=None, max_length=255)
    domain: str | None = Field(default=None, min_length=1, max_length=255)
    is_active: bool | None = None


class TenantRead(SQLModel):
    id: uuid.UUID
    name: str
    domain: str
    is_active: bool
    created_at: datetime

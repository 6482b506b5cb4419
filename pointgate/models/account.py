"""Account model — a user's point-bearing identity within one tenant."""

import uuid
from datetime import datetime
from enum import StrEnum

from sqlalchemy import CheckConstraint, UniqueConstraint
from sqlmodel import Field, SQLModel

from pointgate.models.base import TimestampMixin, new_uuid


# Balances, costs and grant amounts live in 32-bit INTEGER columns
MAX_POINTS = 2**31 - 1


class Provider(StrEnum):
    LOCAL = "local"
    GOOGLE = "google"
    GITHUB = "github"
    WECHAT = "wechat"


class Account(TimestampMixin, SQLModel, table=True):
    __tablename__ = "accounts"
    __table_args__ = (
        UniqueConstraint("tenant_id", "username", "provider", name="uq_accounts_identity"),
        CheckConstraint("balance >= 0", name="ck_accounts_balance_non_negative"),
    )

    id: uuid.UUID = Field(default_factory=new_uuid, primary_key=True)
    tenant_id: uuid.UUID = Field(foreign_key="tenants.id", nullable=False, index=True)
    username: str = Field(max_length=320, nullable=False, index=True)
    provider: Provider = Field(default=Provider.LOCAL)
    # Only local accounts carry credential material
    password_hash: str | None = Field(default=None)
    # Mutated exclusively by the transaction engine
    balance: int = Field(default=0, nullable=False)
    is_admin: bool = Field(default=False)
    is_active: bool = Field(default=True)


# ── Pydantic schemas ─────────────────────────────────────────

class AccountRead(SQLModel):
    id: uuid.UUID
    tenant_id: uuid.UUID
    username: str
    provider: Provider
    balance: int
    is_admin: bool
    is_active: bool
    created_at: datetime

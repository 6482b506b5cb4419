"""LedgerEntry model — immutable record of one balance change."""

import uuid
from datetime import datetime
from enum import StrEnum

from sqlalchemy import DateTime, event
from sqlmodel import Field, SQLModel

from pointgate.models.base import utcnow


class LedgerAction(StrEnum):
    RESOURCE_ACCESS = "resource_access"
    ADMIN_GRANT = "admin_grant"


class LedgerEntry(SQLModel, table=True):
    __tablename__ = "ledger_entries"

    # Authoritative order. Per account it is commit order, since the balance
    # row lock serializes writers; created_at is only the writer's clock
    id: int | None = Field(default=None, primary_key=True)
    tenant_id: uuid.UUID = Field(foreign_key="tenants.id", nullable=False, index=True)
    account_id: uuid.UUID = Field(foreign_key="accounts.id", nullable=False, index=True)

    delta: int = Field(nullable=False)
    balance_after: int = Field(nullable=False)
    action: LedgerAction = Field(nullable=False)
    detail: str = Field(default="", max_length=255)
    resource: str | None = Field(default=None, max_length=1024)

    created_at: datetime = Field(
        default_factory=utcnow,
        nullable=False,
        index=True,
        sa_type=DateTime(timezone=True),
    )


class ImmutableLedgerError(RuntimeError):
    pass


@event.listens_for(LedgerEntry, "before_update")
def _reject_update(mapper, connection, target) -> None:
    raise ImmutableLedgerError(f"ledger entry {target.id} is immutable")


@event.listens_for(LedgerEntry, "before_delete")
def _reject_delete(mapper, connection, target) -> None:
    raise ImmutableLedgerError(f"ledger entry {target.id} cannot be deleted")


# ── Pydantic schemas ─────────────────────────────────────────

class LedgerEntryRead(SQLModel):
    id: int
    tenant_id: uuid.UUID
    account_id: uuid.UUID
    delta: int
    balance_after: int
    action: LedgerAction
    detail: str
    resource: str | None
    created_at: datetime

"""Import all models so SQLModel.metadata picks them up."""

from pointgate.models.account import Account, AccountRead, Provider
from pointgate.models.ledger import LedgerAction, LedgerEntry, LedgerEntryRead
from pointgate.models.pricing import PriceQuote, PricingConfigure, PricingEntry, PricingRead
from pointgate.models.tenant import Tenant, TenantCreate, TenantRead, TenantUpdate

__all__ = [
    "Account",
    "AccountRead",
    "LedgerAction",
    "LedgerEntry",
    "LedgerEntryRead",
    "PriceQuote",
    "PricingConfigure",
    "PricingEntry",
    "PricingRead",
    "Provider",
    "Tenant",
    "TenantCreate",
    "TenantRead",
    "TenantUpdate",
]

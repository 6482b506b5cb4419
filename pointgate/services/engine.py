"""Transaction engine — atomic spend / grant against the point ledger.

Every mutating operation runs as one database transaction:

  1. Resolve the cost (pricing entry, or the tenant-wide default)
  2. Conditionally update the balance (``balance + delta >= 0``)
  3. Append a ledger entry carrying the resulting balance
  4. Commit, or roll back everything on any failure

The conditional UPDATE takes the row lock, so two concurrent spends on the
same account serialize in the database instead of racing in memory.
Storage errors are translated into ``pointgate.core.errors`` before they
leave this module.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass

from sqlalchemy.exc import DBAPIError, IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import sessionmaker

from pointgate.core.config import Settings, get_settings
from pointgate.core.errors import (
    AccountNotFound,
    InsufficientPoints,
    InvalidRequest,
    PersistenceFailure,
    PointsError,
    TransactionConflict,
    TransactionTimeout,
)
from pointgate.models.account import MAX_POINTS, Account, Provider
from pointgate.models.ledger import LedgerAction, LedgerEntry
from pointgate.models.pricing import PriceQuote, PricingEntry
from pointgate.models.tenant import Tenant
from pointgate.services import accounts, ledger, pricing

logger = logging.getLogger(__name__)

# SQLSTATEs that mean "lost a race, retry is safe"
_CONTENTION_SQLSTATES = {"40001", "40P01", "55P03"}
# numeric_value_out_of_range: a balance left the INTEGER column range
_OUT_OF_RANGE_SQLSTATE = "22003"


@dataclass
class SpendResult:
    """Outcome of a committed spend."""
    account_id: uuid.UUID
    resource: str
    cost: int
    new_balance: int
    ledger_entry_id: int


@dataclass
class GrantResult:
    """Outcome of a committed grant."""
    account: Account
    applied_delta: int
    ledger_entry_id: int


@dataclass
class ReconcileReport:
    account_id: uuid.UUID
    balance: int
    ledger_sum: int
    entry_count: int

    @property
    def consistent(self) -> bool:
        return self.balance == self.ledger_sum


def _sqlstate(exc: DBAPIError) -> str | None:
    return getattr(exc.orig, "sqlstate", None) or getattr(exc.orig, "pgcode", None)


def _is_contention(exc: DBAPIError) -> bool:
    if _sqlstate(exc) in _CONTENTION_SQLSTATES:
        return True
    message = str(exc.orig).lower()
    return "database is locked" in message or "deadlock" in message


def _clean_username(username: str) -> str:
    username = (username or "").strip()
    if not username:
        raise InvalidRequest("Username must not be empty")
    return username


def _check_points(value: int, name: str) -> None:
    if not -MAX_POINTS <= value <= MAX_POINTS:
        raise InvalidRequest(f"{name} is out of range", **{name: value})


class TransactionEngine:
    """Point-ledger operations bound to an injected session factory."""

    def __init__(
        self,
        session_factory: sessionmaker,
        settings: Settings | None = None,
    ) -> None:
        self._session_factory = session_factory
        self._settings = settings or get_settings()

    # ── Transaction scope ────────────────────────────────────

    @asynccontextmanager
    async def _transaction(self, operation: str, tenant: Tenant) -> AsyncIterator[AsyncSession]:
        """One session, one transaction; statements bounded by the configured timeout.

        The COMMIT itself is not bounded: a commit cut short by the timeout
        has an unknown outcome and cannot be reported as rolled back.
        """
        try:
            async with self._session_factory() as session:
                async with session.begin():
                    async with asyncio.timeout(self._settings.transaction_timeout_seconds):
                        yield session
        except PointsError:
            raise
        except TimeoutError as exc:
            logger.warning("%s timed out for tenant %s", operation, tenant.id)
            raise TransactionTimeout(
                f"{operation} did not complete in time and was rolled back",
                tenant_id=tenant.id,
            ) from exc
        except OverflowError as exc:
            raise InvalidRequest(
                f"{operation} value out of range", tenant_id=tenant.id
            ) from exc
        except IntegrityError as exc:
            logger.info("%s conflicted for tenant %s: %s", operation, tenant.id, exc.orig)
            raise TransactionConflict(
                f"{operation} conflicted with a concurrent change", tenant_id=tenant.id
            ) from exc
        except DBAPIError as exc:
            if _sqlstate(exc) == _OUT_OF_RANGE_SQLSTATE:
                raise InvalidRequest(
                    f"{operation} value out of range", tenant_id=tenant.id
                ) from exc
            if _is_contention(exc):
                logger.info("%s hit lock contention for tenant %s", operation, tenant.id)
                raise TransactionConflict(
                    f"{operation} conflicted with a concurrent change", tenant_id=tenant.id
                ) from exc
            logger.exception("%s failed for tenant %s", operation, tenant.id)
            raise PersistenceFailure(f"{operation} failed", tenant_id=tenant.id) from exc
        except SQLAlchemyError as exc:
            logger.exception("%s failed for tenant %s", operation, tenant.id)
            raise PersistenceFailure(f"{operation} failed", tenant_id=tenant.id) from exc

    # ── Spend ────────────────────────────────────────────────

    async def spend(
        self, tenant: Tenant, account_id: uuid.UUID, resource: str
    ) -> SpendResult:
        """Debit the price of ``resource`` from the account."""
        resource = pricing.normalize_resource(resource)

        async with self._transaction("spend", tenant) as session:
            entry = await pricing.get_entry(session, tenant.id, resource)
            cost = entry.cost if entry is not None else self._settings.default_cost

            account = await accounts.get_account(session, tenant.id, account_id)
            if account is None:
                raise AccountNotFound("Account not found", tenant_id=tenant.id)

            new_balance = await accounts.apply_delta(session, tenant.id, account_id, -cost)
            if new_balance is None:
                balance = await accounts.get_balance(session, tenant.id, account_id)
                logger.info(
                    "Spend rejected: account %s has %s points, %s costs %s",
                    account_id, balance, resource, cost,
                )
                raise InsufficientPoints(
                    "Insufficient points",
                    tenant_id=tenant.id,
                    resource=resource,
                    cost=cost,
                    balance=balance,
                )

            log_entry = await ledger.append_entry(
                session,
                tenant_id=tenant.id,
                account_id=account_id,
                delta=-cost,
                balance_after=new_balance,
                action=LedgerAction.RESOURCE_ACCESS,
                detail=f"download {resource}",
                resource=resource,
            )
            entry_id = log_entry.id

        logger.info(
            "Spend committed",
            extra={
                "tenant_id": tenant.id,
                "account_id": account_id,
                "resource": resource,
                "cost": cost,
                "ledger_entry_id": entry_id,
            },
        )
        return SpendResult(
            account_id=account_id,
            resource=resource,
            cost=cost,
            new_balance=new_balance,
            ledger_entry_id=entry_id,
        )

    # ── Grant ────────────────────────────────────────────────

    async def grant(
        self,
        tenant: Tenant,
        username: str,
        delta: int,
        description: str = "",
        provider: Provider = Provider.LOCAL,
        clamp: bool = False,
    ) -> GrantResult:
        """Credit (or debit) an account, creating it if it never logged in.

        Account creation, the balance change and the ledger entry commit
        together; a failed grant leaves no account behind.

        A negative ``delta`` larger than the balance raises
        InsufficientPoints, unless ``clamp`` is set: then the clawback is
        capped at the current balance and the ledger records what was
        actually taken.
        """
        username = _clean_username(username)
        _check_points(delta, "delta")
        try:
            return await self._grant(tenant, username, delta, description, provider, clamp)
        except TransactionConflict:
            # A concurrent grant inserted the same identity; it exists now
            logger.info("Retrying grant to %s in tenant %s after a conflict", username, tenant.id)
            return await self._grant(tenant, username, delta, description, provider, clamp)

    async def _grant(
        self,
        tenant: Tenant,
        username: str,
        delta: int,
        description: str,
        provider: Provider,
        clamp: bool,
    ) -> GrantResult:
        async with self._transaction("grant", tenant) as session:
            account = await self._find_or_create(session, tenant, username, provider)
            applied = delta
            new_balance = await accounts.apply_delta(session, tenant.id, account.id, delta)
            if new_balance is None:
                balance = await accounts.get_balance(session, tenant.id, account.id)
                if balance is None:
                    raise AccountNotFound("Account not found", tenant_id=tenant.id)
                if not clamp:
                    raise InsufficientPoints(
                        "Grant would make the balance negative",
                        tenant_id=tenant.id,
                        cost=-delta,
                        balance=balance,
                    )
                applied = -balance
                new_balance = await accounts.apply_delta(session, tenant.id, account.id, applied)
                if new_balance is None:
                    raise TransactionConflict(
                        "Balance changed during clawback", tenant_id=tenant.id
                    )

            log_entry = await ledger.append_entry(
                session,
                tenant_id=tenant.id,
                account_id=account.id,
                delta=applied,
                balance_after=new_balance,
                action=LedgerAction.ADMIN_GRANT,
                detail=description or "admin grant",
            )
            entry_id = log_entry.id
            await session.refresh(account)

        logger.info(
            "Grant committed",
            extra={
                "tenant_id": tenant.id,
                "account_id": account.id,
                "delta": applied,
                "ledger_entry_id": entry_id,
            },
        )
        return GrantResult(account=account, applied_delta=applied, ledger_entry_id=entry_id)

    async def _find_or_create(
        self,
        session: AsyncSession,
        tenant: Tenant,
        username: str,
        provider: Provider,
    ) -> Account:
        account = await accounts.find_account(session, tenant.id, username, provider)
        if account is None:
            account = await accounts.create_account(session, tenant.id, username, provider)
            logger.info("Creating account %s in tenant %s", account.id, tenant.id)
        return account

    # ── Pricing ──────────────────────────────────────────────

    async def configure(
        self,
        tenant: Tenant,
        resource: str,
        cost: int,
        description: str = "",
    ) -> PricingEntry:
        """Upsert the price of a resource. Idempotent."""
        if cost < 0:
            raise InvalidRequest("Cost must not be negative", cost=cost)
        _check_points(cost, "cost")
        resource = pricing.normalize_resource(resource)

        async with self._transaction("configure", tenant) as session:
            entry = await pricing.upsert_entry(
                session, tenant.id, resource, cost, description
            )
        logger.info("Priced %s at %s points in tenant %s", resource, cost, tenant.id)
        return entry

    async def list_pricing(self, tenant: Tenant) -> list[PricingEntry]:
        async with self._transaction("list_pricing", tenant) as session:
            return await pricing.list_entries(session, tenant.id)

    async def quote(self, tenant: Tenant, resource: str) -> PriceQuote:
        """Effective price of a resource, falling back to the default cost."""
        resource = pricing.normalize_resource(resource)
        async with self._transaction("quote", tenant) as session:
            entry = await pricing.get_entry(session, tenant.id, resource)

        if entry is None:
            return PriceQuote(
                resource=resource,
                file_name=pricing.file_name(resource),
                cost=self._settings.default_cost,
                description="",
                is_default=True,
            )
        return PriceQuote(
            resource=resource,
            file_name=pricing.file_name(resource),
            cost=entry.cost,
            description=entry.description,
            is_default=False,
        )

    # ── Reads ────────────────────────────────────────────────

    async def get_balance(self, tenant: Tenant, account_id: uuid.UUID) -> int:
        async with self._transaction("get_balance", tenant) as session:
            balance = await accounts.get_balance(session, tenant.id, account_id)
        if balance is None:
            raise AccountNotFound("Account not found", tenant_id=tenant.id)
        return balance

    async def get_account(self, tenant: Tenant, account_id: uuid.UUID) -> Account:
        async with self._transaction("get_account", tenant) as session:
            account = await accounts.get_account(session, tenant.id, account_id)
        if account is None:
            raise AccountNotFound("Account not found", tenant_id=tenant.id)
        return account

    async def find_account(
        self, tenant: Tenant, username: str, provider: Provider = Provider.LOCAL
    ) -> Account:
        async with self._transaction("find_account", tenant) as session:
            account = await accounts.find_account(session, tenant.id, username.strip(), provider)
        if account is None:
            raise AccountNotFound("Account not found", tenant_id=tenant.id, username=username)
        return account

    async def list_accounts(self, tenant: Tenant) -> list[Account]:
        async with self._transaction("list_accounts", tenant) as session:
            return await accounts.list_accounts(session, tenant.id)

    def _clamp_limit(self, limit: int | None) -> int:
        if limit is None:
            return self._settings.ledger_default_limit
        if limit <= 0:
            raise InvalidRequest("Limit must be positive", limit=limit)
        return min(limit, self._settings.ledger_max_limit)

    async def get_ledger(
        self,
        tenant: Tenant,
        account_id: uuid.UUID | None = None,
        limit: int | None = None,
    ) -> list[LedgerEntry]:
        """Ledger entries, newest first; the whole tenant when no account is given."""
        limit = self._clamp_limit(limit)
        async with self._transaction("get_ledger", tenant) as session:
            if account_id is not None:
                if await accounts.get_account(session, tenant.id, account_id) is None:
                    raise AccountNotFound("Account not found", tenant_id=tenant.id)
            return await ledger.list_entries(session, tenant.id, account_id, limit)

    async def reconcile(self, tenant: Tenant, account_id: uuid.UUID) -> ReconcileReport:
        """Compare an account's balance with the sum of its ledger deltas."""
        async with self._transaction("reconcile", tenant) as session:
            balance = await accounts.get_balance(session, tenant.id, account_id)
            if balance is None:
                raise AccountNotFound("Account not found", tenant_id=tenant.id)
            ledger_sum, entry_count = await ledger.summarize(session, tenant.id, account_id)

        report = ReconcileReport(
            account_id=account_id,
            balance=balance,
            ledger_sum=ledger_sum,
            entry_count=entry_count,
        )
        if not report.consistent:
            logger.error(
                "Ledger mismatch for account %s: balance %s, ledger sum %s",
                account_id, balance, ledger_sum,
                extra={"tenant_id": tenant.id, "account_id": account_id, "reconcile_required": True},
            )
        return report

"""Error taxonomy for the point-ledger core.

Every failure that leaves the transaction engine is one of these. Storage
driver errors are translated before they reach a caller, so HTTP handlers
(or any other front end) only ever need to know about ``PointsError``.
"""

from typing import Any


class PointsError(Exception):
    """Base class for all ledger-core failures."""

    code = "points_error"
    status_code = 500

    def __init__(self, message: str, **context: Any) -> None:
        super().__init__(message)
        self.message = message
        self.context = {k: v for k, v in context.items() if v is not None}

    def to_dict(self) -> dict[str, Any]:
        return {
            "detail": self.message,
            "code": self.code,
            "context": {k: str(v) if not isinstance(v, (int, float, bool)) else v
                        for k, v in self.context.items()},
        }


class InvalidRequest(PointsError):
    code = "invalid_request"
    status_code = 400


class TenantNotFound(PointsError):
    code = "tenant_not_found"
    status_code = 404


class AccountNotFound(PointsError):
    code = "account_not_found"
    status_code = 404


class InsufficientPoints(PointsError):
    """Balance below the attempted cost. Never retry automatically."""

    code = "insufficient_points"
    status_code = 402


class TransactionTimeout(PointsError):
    """Safe to retry: the transaction was rolled back."""

    code = "transaction_timeout"
    status_code = 503


class TransactionConflict(PointsError):
    """Safe to retry: lost a race against a concurrent writer."""

    code = "transaction_conflict"
    status_code = 409


class PersistenceFailure(PointsError):
    code = "persistence_failure"
    status_code = 500


class DownstreamResolutionFailure(PointsError):
    """The debit committed but no download URL could be produced.

    The user has been charged. Operators reconcile these by hand.
    """

    code = "downstream_resolution_failure"
    status_code = 502

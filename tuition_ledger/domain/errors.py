"""Exception classes for ledger operations.

Every error here is recoverable by the caller: it is raised for the
triggering operation only, before anything is written.
"""

from decimal import Decimal


class LedgerError(Exception):
    """Base exception for ledger errors."""

    pass


class InvalidEntry(LedgerError):
    """Malformed ledger entry rejected at ingestion."""

    pass


class InvalidAmount(LedgerError):
    """Amount is non-positive or outside the allowed bounds."""

    def __init__(
        self,
        message: str,
        amount: Decimal | None = None,
        floor: Decimal | None = None,
        ceiling: Decimal | None = None,
    ):
        super().__init__(message)
        self.amount = amount
        self.floor = floor
        self.ceiling = ceiling


class InvalidAdjustment(LedgerError):
    """Adjustment would erase funds already collected."""

    pass


class InsufficientForMandatory(LedgerError):
    """Batch amount cannot cover every non-splittable debt."""

    def __init__(self, message: str, amount: Decimal, floor: Decimal):
        super().__init__(message)
        self.amount = amount
        self.floor = floor


class InvalidScheduleOrder(LedgerError):
    """Billing configuration violates billing_day < late_fee_day."""

    pass


class StaleRecord(LedgerError):
    """Record state no longer matches what the operation expects."""

    pass


__all__ = [
    "LedgerError",
    "InvalidEntry",
    "InvalidAmount",
    "InvalidAdjustment",
    "InsufficientForMandatory",
    "InvalidScheduleOrder",
    "StaleRecord",
]

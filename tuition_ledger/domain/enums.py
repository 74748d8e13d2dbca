"""Closed value sets used across the ledger core."""

from enum import Enum


class EntryKind(str, Enum):
    """Kind of ledger entry."""

    CHARGE = "charge"
    PAYMENT = "payment"


class SettlementState(str, Enum):
    """Settlement state of a ledger entry.

    Charges are either OPEN or WRITTEN_OFF. Payments move from
    PENDING_REVIEW to APPROVED or REJECTED.
    """

    OPEN = "open"
    WRITTEN_OFF = "written_off"
    PENDING_REVIEW = "pending_review"
    APPROVED = "approved"
    REJECTED = "rejected"


CHARGE_STATES = frozenset({SettlementState.OPEN, SettlementState.WRITTEN_OFF})
PAYMENT_STATES = frozenset(
    {SettlementState.PENDING_REVIEW, SettlementState.APPROVED, SettlementState.REJECTED}
)


class ChargeCategory(str, Enum):
    """Category tag of a charge."""

    TUITION = "tuition"
    LATE_FEE = "late_fee"
    TOURNAMENT = "tournament"
    EXAM = "exam"
    EQUIPMENT = "equipment"
    OTHER = "other"


class PaymentMethod(str, Enum):
    """How a payment was made."""

    CASH = "cash"
    TRANSFER = "transfer"
    CARD = "card"
    SYSTEM = "system"


class AccountStatus(str, Enum):
    """Derived member account status."""

    ACTIVE = "active"
    DEBTOR = "debtor"
    INACTIVE = "inactive"
    EXAM_READY = "exam_ready"


class DebtState(str, Enum):
    """Lifecycle state of a debt record."""

    OPEN = "open"
    PARTIALLY_SETTLED = "partially_settled"
    IN_REVIEW = "in_review"
    SETTLED = "settled"
    OVERDUE = "overdue"


# States from which a debt record accepts a payment or a review submission
PAYABLE_STATES = frozenset({DebtState.OPEN, DebtState.PARTIALLY_SETTLED, DebtState.OVERDUE})


class BatchStatus(str, Enum):
    """Review status of a batch payment submission."""

    PENDING_REVIEW = "pending_review"
    APPROVED = "approved"
    REJECTED = "rejected"


__all__ = [
    "EntryKind",
    "SettlementState",
    "CHARGE_STATES",
    "PAYMENT_STATES",
    "ChargeCategory",
    "PaymentMethod",
    "AccountStatus",
    "DebtState",
    "PAYABLE_STATES",
    "BatchStatus",
]

"""Ledger entries: immutable charge and payment facts.

Entries are validated on construction, so malformed facts (non-positive
amounts, missing member, a settlement state that does not belong to the
entry kind) never reach balance derivation.
"""

from dataclasses import dataclass, replace
from datetime import date
from decimal import Decimal

from tuition_ledger.domain.enums import (
    CHARGE_STATES,
    PAYMENT_STATES,
    ChargeCategory,
    EntryKind,
    SettlementState,
)
from tuition_ledger.domain.errors import InvalidEntry, StaleRecord
from tuition_ledger.domain.money import to_money


@dataclass(frozen=True)
class LedgerEntry:
    """One charge or one payment against a member's account."""

    organization_id: int
    member_id: int
    amount: Decimal
    occurred_on: date
    kind: EntryKind
    settlement_state: SettlementState
    category: ChargeCategory | None = None
    description: str = ""
    id: int | None = None
    debt_record_id: int | None = None
    batch_id: int | None = None

    def __post_init__(self):
        if self.member_id is None:
            raise InvalidEntry("Ledger entry requires a member_id")
        if self.organization_id is None:
            raise InvalidEntry("Ledger entry requires an organization_id")
        amount = to_money(self.amount)
        if amount <= 0:
            raise InvalidEntry(f"Ledger entry amount must be positive, got {self.amount}")
        object.__setattr__(self, "amount", amount)

        allowed = CHARGE_STATES if self.kind == EntryKind.CHARGE else PAYMENT_STATES
        if self.settlement_state not in allowed:
            raise InvalidEntry(
                f"Settlement state '{self.settlement_state.value}' "
                f"is not valid for a {self.kind.value} entry"
            )
        if self.kind == EntryKind.CHARGE and self.category is None:
            raise InvalidEntry("Charge entries require a category")

    @property
    def is_charge(self) -> bool:
        return self.kind == EntryKind.CHARGE

    @property
    def is_payment(self) -> bool:
        return self.kind == EntryKind.PAYMENT


def new_charge(
    organization_id: int,
    member_id: int,
    amount: Decimal,
    occurred_on: date,
    category: ChargeCategory,
    description: str = "",
    debt_record_id: int | None = None,
) -> LedgerEntry:
    """Build an Open charge entry."""
    return LedgerEntry(
        organization_id=organization_id,
        member_id=member_id,
        amount=amount,
        occurred_on=occurred_on,
        kind=EntryKind.CHARGE,
        settlement_state=SettlementState.OPEN,
        category=category,
        description=description,
        debt_record_id=debt_record_id,
    )


def new_payment(
    organization_id: int,
    member_id: int,
    amount: Decimal,
    occurred_on: date,
    description: str = "",
    approved: bool = False,
    debt_record_id: int | None = None,
    batch_id: int | None = None,
) -> LedgerEntry:
    """Build a payment entry, pending review unless already approved."""
    return LedgerEntry(
        organization_id=organization_id,
        member_id=member_id,
        amount=amount,
        occurred_on=occurred_on,
        kind=EntryKind.PAYMENT,
        settlement_state=(
            SettlementState.APPROVED if approved else SettlementState.PENDING_REVIEW
        ),
        description=description,
        debt_record_id=debt_record_id,
        batch_id=batch_id,
    )


def approve_entry(entry: LedgerEntry) -> LedgerEntry:
    """PendingReview payment -> Approved."""
    _require_pending(entry)
    return replace(entry, settlement_state=SettlementState.APPROVED)


def reject_entry(entry: LedgerEntry) -> LedgerEntry:
    """PendingReview payment -> Rejected. The entry is kept for audit."""
    _require_pending(entry)
    return replace(entry, settlement_state=SettlementState.REJECTED)


def write_off_entry(entry: LedgerEntry) -> LedgerEntry:
    """Open charge -> WrittenOff."""
    if not entry.is_charge or entry.settlement_state != SettlementState.OPEN:
        raise StaleRecord(
            f"Entry {entry.id} is a {entry.kind.value} in state "
            f"'{entry.settlement_state.value}', expected an open charge"
        )
    return replace(entry, settlement_state=SettlementState.WRITTEN_OFF)


def _require_pending(entry: LedgerEntry) -> None:
    if not entry.is_payment or entry.settlement_state != SettlementState.PENDING_REVIEW:
        raise StaleRecord(
            f"Entry {entry.id} is a {entry.kind.value} in state "
            f"'{entry.settlement_state.value}', expected a payment pending review"
        )


__all__ = [
    "LedgerEntry",
    "new_charge",
    "new_payment",
    "approve_entry",
    "reject_entry",
    "write_off_entry",
]

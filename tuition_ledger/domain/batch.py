"""Multi-debt, partial-amount payment validation and allocation.

Given a payer-selected set of debt records and a proposed amount A:

    total_due       = sum(current_due) over the set
    mandatory_floor = sum(current_due) over non-splittable records
    legal iff mandatory_floor - EPSILON <= A <= total_due + EPSILON

Allocation order once A is accepted:
1. Non-splittable records in full, ascending due date
2. Remainder across splittable records, ascending due date, each up to
   its current due, until the remainder is exhausted

Ties on due date keep the payer's selection order.
"""

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import NamedTuple, Sequence

from tuition_ledger.domain.debt import DebtRecord, ProofOfPayment, submit_for_review
from tuition_ledger.domain.enums import PAYABLE_STATES, PaymentMethod
from tuition_ledger.domain.errors import InsufficientForMandatory, InvalidAmount, StaleRecord
from tuition_ledger.domain.money import EPSILON, ZERO, to_money


class BatchQuote(NamedTuple):
    """Bounds of a batch payment for the selected records."""

    total_due: Decimal
    mandatory_floor: Decimal

    @property
    def allows_custom_amount(self) -> bool:
        """False when every selected record is non-splittable."""
        return self.mandatory_floor < self.total_due

    def is_exact(self, amount: Decimal) -> bool:
        """True when amount pays the whole selection (no partial toggle)."""
        return abs(to_money(amount) - self.total_due) <= EPSILON


@dataclass(frozen=True)
class Allocation:
    """Share of a batch amount assigned to one record."""

    record: DebtRecord
    amount: Decimal


def quote_batch(records: Sequence[DebtRecord]) -> BatchQuote:
    """Compute total due and mandatory floor of a selection.

    Raises:
        InvalidAmount: If the selection is empty
        StaleRecord: If a selected record owes nothing or is not payable
    """
    if not records:
        raise InvalidAmount("No debts selected for payment")

    total_due = ZERO
    mandatory_floor = ZERO
    for record in records:
        if record.state not in PAYABLE_STATES or record.current_due <= 0:
            raise StaleRecord(
                f"Record {record.id} is '{record.state.value}' with "
                f"{record.current_due} due, it cannot be paid"
            )
        total_due += record.current_due
        if not record.allows_partial_settlement:
            mandatory_floor += record.current_due

    return BatchQuote(total_due=total_due, mandatory_floor=mandatory_floor)


def validate_batch_amount(records: Sequence[DebtRecord], amount: Decimal) -> BatchQuote:
    """Check a proposed amount against the selection's floor and ceiling.

    Returns:
        BatchQuote of the selection

    Raises:
        InvalidAmount: With the unmet bound in the message
    """
    quote = quote_batch(records)
    amount = to_money(amount)

    if amount <= 0:
        raise InvalidAmount(f"Payment amount must be positive, got {amount}", amount=amount)
    if amount < quote.mandatory_floor - EPSILON:
        raise InvalidAmount(
            f"Amount {amount} is below the mandatory floor {quote.mandatory_floor} "
            f"(non-splittable items must be paid in full)",
            amount=amount,
            floor=quote.mandatory_floor,
            ceiling=quote.total_due,
        )
    if amount > quote.total_due + EPSILON:
        raise InvalidAmount(
            f"Amount {amount} exceeds the total due {quote.total_due}",
            amount=amount,
            floor=quote.mandatory_floor,
            ceiling=quote.total_due,
        )
    return quote


def allocate_batch_payment(records: Sequence[DebtRecord], amount: Decimal) -> list[Allocation]:
    """Split an accepted amount across records, mandatory first.

    Records that receive nothing are left out of the result.

    Raises:
        InvalidAmount: If the amount fails validate_batch_amount
        InsufficientForMandatory: If the amount cannot cover non-splittable records
    """
    validate_batch_amount(records, amount)
    remaining = to_money(amount)

    mandatory = sorted(
        (r for r in records if not r.allows_partial_settlement), key=lambda r: r.due_date
    )
    splittable = sorted(
        (r for r in records if r.allows_partial_settlement), key=lambda r: r.due_date
    )

    allocations: list[Allocation] = []
    for record in mandatory:
        due = record.current_due
        if remaining < due - EPSILON:
            floor = sum((r.current_due for r in mandatory), ZERO)
            raise InsufficientForMandatory(
                f"Amount {to_money(amount)} cannot cover the non-splittable "
                f"items totalling {floor}",
                amount=to_money(amount),
                floor=floor,
            )
        paid = min(due, remaining)
        allocations.append(Allocation(record=record, amount=paid))
        remaining -= paid

    for record in splittable:
        if remaining <= 0:
            break
        paid = min(record.current_due, remaining)
        allocations.append(Allocation(record=record, amount=paid))
        remaining -= paid

    return allocations


def submit_batch(
    records: Sequence[DebtRecord],
    amount: Decimal,
    proof: ProofOfPayment | None,
    submitted_on: date,
    method: PaymentMethod = PaymentMethod.TRANSFER,
    batch_id: int | None = None,
    entry_id: int | None = None,
) -> list[DebtRecord]:
    """Allocate and move every touched record into review.

    Returns:
        The touched records, in allocation order, now IN_REVIEW
    """
    return [
        submit_for_review(
            allocation.record,
            allocation.amount,
            proof,
            submitted_on,
            method=method,
            batch_id=batch_id,
            entry_id=entry_id,
        )
        for allocation in allocate_batch_payment(records, amount)
    ]


__all__ = [
    "BatchQuote",
    "Allocation",
    "quote_batch",
    "validate_batch_amount",
    "allocate_batch_payment",
    "submit_batch",
]

"""Debt record lifecycle and amount reconstruction.

A debt record is the user-facing line item built from one or more charge
entries plus its payment history. Transitions:

    OPEN -> PARTIALLY_SETTLED | IN_REVIEW | SETTLED | OVERDUE
    PARTIALLY_SETTLED -> IN_REVIEW | SETTLED | OVERDUE
    OVERDUE -> (same as OPEN)
    IN_REVIEW -> SETTLED | PARTIALLY_SETTLED (approve) | prior state (reject)

Every operation returns a new record; inputs are never mutated.
"""

from dataclasses import dataclass, field, replace
from datetime import date
from decimal import Decimal
from typing import NamedTuple

from tuition_ledger.domain.enums import (
    PAYABLE_STATES,
    ChargeCategory,
    DebtState,
    PaymentMethod,
)
from tuition_ledger.domain.errors import InvalidAdjustment, InvalidAmount, StaleRecord
from tuition_ledger.domain.money import EPSILON, ZERO, to_money


@dataclass(frozen=True)
class PaymentHistoryItem:
    """One settled payment applied to a debt record."""

    paid_on: date
    amount: Decimal
    method: PaymentMethod = PaymentMethod.SYSTEM


@dataclass(frozen=True)
class ProofOfPayment:
    """Opaque reference to an uploaded proof, stored elsewhere."""

    reference: str
    mime_type: str = ""

    @classmethod
    def cash(cls) -> "ProofOfPayment":
        """Placeholder proof for cash handed to a master."""
        return cls(reference="cash", mime_type="")


@dataclass(frozen=True)
class PendingReview:
    """Payment attempt awaiting master review."""

    amount: Decimal
    prior_state: DebtState
    submitted_on: date
    method: PaymentMethod
    proof: ProofOfPayment | None = None
    batch_id: int | None = None
    entry_id: int | None = None


@dataclass(frozen=True)
class DebtRecord:
    """Line item owed by a member.

    open_amount is the unpaid part of the obligation excluding penalty.
    principal is the original amount before any penalty; legacy records
    may not have it.
    """

    organization_id: int
    member_id: int
    concept: str
    category: ChargeCategory
    due_date: date
    open_amount: Decimal
    penalty: Decimal = ZERO
    principal: Decimal | None = None
    allows_partial_settlement: bool = False
    state: DebtState = DebtState.OPEN
    payment_history: tuple[PaymentHistoryItem, ...] = field(default_factory=tuple)
    pending: PendingReview | None = None
    month_key: str | None = None
    id: int | None = None

    def __post_init__(self):
        open_amount = to_money(self.open_amount)
        penalty = to_money(self.penalty)
        if open_amount < 0 or penalty < 0:
            raise InvalidAmount(
                f"Debt record amounts cannot be negative "
                f"(open_amount={open_amount}, penalty={penalty})"
            )
        object.__setattr__(self, "open_amount", open_amount)
        object.__setattr__(self, "penalty", penalty)
        if self.principal is not None:
            object.__setattr__(self, "principal", to_money(self.principal))
        object.__setattr__(self, "payment_history", tuple(self.payment_history))

    @property
    def current_due(self) -> Decimal:
        """Live amount still owed, penalty included."""
        return self.open_amount + self.penalty

    @property
    def total_paid(self) -> Decimal:
        return sum((item.amount for item in self.payment_history), ZERO)

    @property
    def is_settled(self) -> bool:
        return self.state == DebtState.SETTLED


class AmountBreakdown(NamedTuple):
    """Reconstructed amounts of a debt record."""

    principal: Decimal
    penalty: Decimal
    grand_total: Decimal
    total_paid: Decimal
    current_due: Decimal


def new_debt_record(
    organization_id: int,
    member_id: int,
    concept: str,
    category: ChargeCategory,
    amount: Decimal,
    due_date: date,
    allows_partial_settlement: bool = False,
    month_key: str | None = None,
) -> DebtRecord:
    """Create an Open record for a freshly generated charge."""
    amount = to_money(amount)
    if amount <= 0:
        raise InvalidAmount(f"Charge amount must be positive, got {amount}", amount=amount)
    return DebtRecord(
        organization_id=organization_id,
        member_id=member_id,
        concept=concept,
        category=category,
        due_date=due_date,
        open_amount=amount,
        principal=amount,
        allows_partial_settlement=allows_partial_settlement,
        month_key=month_key,
    )


def reconstruct_amounts(record: DebtRecord) -> AmountBreakdown:
    """Infer principal, penalty and grand total of a record.

    grand_total = total paid + current due, always. When principal was
    recorded it is returned unchanged; otherwise the whole grand total is
    treated as principal and the implied penalty is zero.
    """
    total_paid = record.total_paid
    current_due = record.current_due
    grand_total = total_paid + current_due
    principal = record.principal if record.principal is not None else grand_total

    implied_penalty = grand_total - principal
    if implied_penalty < EPSILON:
        implied_penalty = ZERO

    return AmountBreakdown(
        principal=principal,
        penalty=implied_penalty,
        grand_total=grand_total,
        total_paid=total_paid,
        current_due=current_due,
    )


def _check_payment_amount(record: DebtRecord, amount: Decimal) -> None:
    if amount <= 0:
        raise InvalidAmount(f"Payment amount must be positive, got {amount}", amount=amount)
    if amount > record.current_due + EPSILON:
        raise InvalidAmount(
            f"Payment amount {amount} exceeds current due {record.current_due} "
            f"of record {record.id}",
            amount=amount,
            ceiling=record.current_due,
        )


def _settle(
    record: DebtRecord,
    amount: Decimal,
    method: PaymentMethod,
    paid_on: date,
) -> DebtRecord:
    """Apply an already validated amount, penalty first.

    A residue within EPSILON left by a settling payment is forgiven and
    recorded as a SYSTEM history item, so total_paid matches the obligation.
    """
    applied = min(amount, record.current_due)
    penalty_paid = min(applied, record.penalty)
    open_amount = record.open_amount - (applied - penalty_paid)
    penalty = record.penalty - penalty_paid

    history = record.payment_history + (
        PaymentHistoryItem(paid_on=paid_on, amount=applied, method=method),
    )

    residue = open_amount + penalty
    if residue <= EPSILON:
        if residue > 0:
            history += (
                PaymentHistoryItem(paid_on=paid_on, amount=residue, method=PaymentMethod.SYSTEM),
            )
        return replace(
            record,
            open_amount=ZERO,
            penalty=ZERO,
            state=DebtState.SETTLED,
            payment_history=history,
            pending=None,
        )
    return replace(
        record,
        open_amount=open_amount,
        penalty=penalty,
        state=DebtState.PARTIALLY_SETTLED,
        payment_history=history,
        pending=None,
    )


def settlement_residue(record: DebtRecord, amount: Decimal) -> Decimal:
    """Part of the current due a settling payment leaves unpaid (at most EPSILON)."""
    residue = record.current_due - to_money(amount)
    if ZERO < residue <= EPSILON:
        return residue
    return ZERO


def apply_payment(
    record: DebtRecord,
    amount: Decimal,
    method: PaymentMethod,
    paid_on: date,
) -> DebtRecord:
    """Apply a payment directly (no review step).

    Raises:
        StaleRecord: If the record is settled or in review
        InvalidAmount: If amount <= 0 or exceeds current due beyond epsilon
    """
    if record.state not in PAYABLE_STATES:
        raise StaleRecord(f"Record {record.id} is '{record.state.value}', cannot accept payment")
    amount = to_money(amount)
    _check_payment_amount(record, amount)
    return _settle(record, amount, method, paid_on)


def adjust_total(record: DebtRecord, new_total: Decimal) -> DebtRecord:
    """Override the total obligation (scholarship, discount).

    The penalty is folded into the new total, and principal is recorded
    as the new total.

    Raises:
        StaleRecord: If the record is in review
        InvalidAdjustment: If new_total < 0 or below what was already paid
    """
    if record.state == DebtState.IN_REVIEW:
        raise StaleRecord(f"Record {record.id} is in review, resolve the payment first")

    new_total = to_money(new_total)
    total_paid = record.total_paid
    if new_total < 0:
        raise InvalidAdjustment(f"New total cannot be negative, got {new_total}")
    if new_total < total_paid:
        raise InvalidAdjustment(
            f"New total {new_total} is below the {total_paid} already collected "
            f"for record {record.id}"
        )

    open_amount = new_total - total_paid
    if open_amount <= EPSILON:
        state = DebtState.SETTLED
        open_amount = ZERO
    elif total_paid > 0:
        state = DebtState.PARTIALLY_SETTLED
    else:
        state = DebtState.OPEN

    return replace(
        record,
        open_amount=open_amount,
        penalty=ZERO,
        principal=new_total,
        state=state,
    )


def submit_for_review(
    record: DebtRecord,
    amount: Decimal,
    proof: ProofOfPayment | None,
    submitted_on: date,
    method: PaymentMethod = PaymentMethod.TRANSFER,
    batch_id: int | None = None,
    entry_id: int | None = None,
) -> DebtRecord:
    """Lock the record in review with a pending payment.

    open_amount is untouched until the payment is approved.

    Raises:
        StaleRecord: If the record is not Open, PartiallySettled or Overdue
        InvalidAmount: If amount <= 0 or exceeds current due beyond epsilon
    """
    if record.state not in PAYABLE_STATES:
        raise StaleRecord(
            f"Record {record.id} is '{record.state.value}', cannot be submitted for review"
        )
    amount = to_money(amount)
    _check_payment_amount(record, amount)

    return replace(
        record,
        state=DebtState.IN_REVIEW,
        pending=PendingReview(
            amount=amount,
            prior_state=record.state,
            submitted_on=submitted_on,
            method=method,
            proof=proof,
            batch_id=batch_id,
            entry_id=entry_id,
        ),
    )


def _require_review(record: DebtRecord) -> PendingReview:
    if record.state != DebtState.IN_REVIEW or record.pending is None:
        raise StaleRecord(f"Record {record.id} is '{record.state.value}', not in review")
    return record.pending


def approve(record: DebtRecord) -> DebtRecord:
    """Finalize the pending payment as in apply_payment."""
    pending = _require_review(record)
    unlocked = replace(record, state=pending.prior_state, pending=None)
    _check_payment_amount(unlocked, pending.amount)
    return _settle(unlocked, pending.amount, pending.method, pending.submitted_on)


def reject(record: DebtRecord) -> DebtRecord:
    """Discard the pending payment and restore the pre-submission state."""
    pending = _require_review(record)
    return replace(record, state=pending.prior_state, pending=None)


def mark_overdue(record: DebtRecord, penalty: Decimal) -> DebtRecord:
    """Add a late penalty and move the record to Overdue."""
    if record.state not in PAYABLE_STATES:
        raise StaleRecord(f"Record {record.id} is '{record.state.value}', cannot become overdue")
    penalty = to_money(penalty)
    if penalty <= 0:
        raise InvalidAmount(f"Penalty must be positive, got {penalty}", amount=penalty)
    return replace(record, penalty=record.penalty + penalty, state=DebtState.OVERDUE)


def ensure_deletable(record: DebtRecord) -> None:
    """Only records without payment history or pending review may be deleted."""
    if record.payment_history:
        raise StaleRecord(f"Record {record.id} has payment history and cannot be deleted")
    if record.state == DebtState.IN_REVIEW:
        raise StaleRecord(f"Record {record.id} is in review and cannot be deleted")


def receipt_history(record: DebtRecord) -> list[PaymentHistoryItem]:
    """Payment history sorted by date, for receipts."""
    return sorted(record.payment_history, key=lambda item: item.paid_on)


__all__ = [
    "PaymentHistoryItem",
    "ProofOfPayment",
    "PendingReview",
    "DebtRecord",
    "AmountBreakdown",
    "new_debt_record",
    "reconstruct_amounts",
    "settlement_residue",
    "apply_payment",
    "adjust_total",
    "submit_for_review",
    "approve",
    "reject",
    "mark_overdue",
    "ensure_deletable",
    "receipt_history",
]

"""Balance derivation for member accounts.

Balance Formula: Open Charges - Approved Payments, floored at 0
- WrittenOff charges and PendingReview/Rejected payments do not count
- Sums are order independent, so the fold is safe to re-run after any
  ledger write, including out-of-order payment approval or rejection

Status is derived from the balance, the explicit inactive flag and the
attendance readiness flag. It is never remembered between derivations.
"""

from decimal import Decimal
from typing import Dict, Iterable, NamedTuple

from tuition_ledger.domain.entries import LedgerEntry
from tuition_ledger.domain.enums import AccountStatus, EntryKind, SettlementState
from tuition_ledger.domain.money import ZERO, to_money


class MemberAccount(NamedTuple):
    """Derived account snapshot."""

    balance: Decimal
    account_status: AccountStatus


def compute_balance(entries: Iterable[LedgerEntry]) -> Decimal:
    """Sum open charges minus approved payments, clamped at zero."""
    charges = ZERO
    payments = ZERO
    for entry in entries:
        if entry.kind == EntryKind.CHARGE and entry.settlement_state == SettlementState.OPEN:
            charges += entry.amount
        elif entry.kind == EntryKind.PAYMENT and entry.settlement_state == SettlementState.APPROVED:
            payments += entry.amount

    return max(ZERO, to_money(charges - payments))


def resolve_status(
    balance: Decimal,
    attendance_ready: bool = False,
    explicit_inactive: bool = False,
) -> AccountStatus:
    """Resolve account status, first match wins.

    1. explicit inactive -> INACTIVE
    2. balance > 0 -> DEBTOR
    3. attendance threshold reached -> EXAM_READY
    4. otherwise -> ACTIVE
    """
    if explicit_inactive:
        return AccountStatus.INACTIVE
    if balance > 0:
        return AccountStatus.DEBTOR
    if attendance_ready:
        return AccountStatus.EXAM_READY
    return AccountStatus.ACTIVE


def compute_account(
    entries: Iterable[LedgerEntry],
    attendance_ready: bool = False,
    explicit_inactive: bool = False,
) -> MemberAccount:
    """Fold a member's ledger entries into balance and status.

    Args:
        entries: Ledger entries of a single member
        attendance_ready: Attendance tally reached the rank threshold
        explicit_inactive: Member was explicitly marked inactive

    Returns:
        MemberAccount with balance (never negative) and account status
    """
    balance = compute_balance(entries)
    return MemberAccount(
        balance=balance,
        account_status=resolve_status(balance, attendance_ready, explicit_inactive),
    )


def compute_accounts(
    entries: Iterable[LedgerEntry],
    attendance_ready: Dict[int, bool] | None = None,
    explicit_inactive: Dict[int, bool] | None = None,
) -> Dict[int, MemberAccount]:
    """Derive accounts for every member present in the entries.

    Args:
        entries: Ledger entries of an organization
        attendance_ready: Dict mapping member_id to readiness flag
        explicit_inactive: Dict mapping member_id to inactive flag

    Returns:
        Dict mapping member_id to MemberAccount
    """
    attendance_ready = attendance_ready or {}
    explicit_inactive = explicit_inactive or {}

    by_member: Dict[int, list[LedgerEntry]] = {}
    for entry in entries:
        by_member.setdefault(entry.member_id, []).append(entry)

    member_ids = set(by_member) | set(attendance_ready) | set(explicit_inactive)
    return {
        member_id: compute_account(
            by_member.get(member_id, []),
            attendance_ready=attendance_ready.get(member_id, False),
            explicit_inactive=explicit_inactive.get(member_id, False),
        )
        for member_id in member_ids
    }


__all__ = [
    "MemberAccount",
    "compute_balance",
    "resolve_status",
    "compute_account",
    "compute_accounts",
]

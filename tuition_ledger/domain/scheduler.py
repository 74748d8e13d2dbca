"""Idempotent billing automation: monthly tuition and late fees.

Each job runs at most once per organization per calendar day. The guard is
a persisted marker (AutomationState) that is checked before the job body
and advanced only after every member was processed without error.
Today's date is injected; nothing here reads the clock.

Double runs (two sessions evaluating the guard at the same instant) are
absorbed by per-member checks: a member already charged for the month
is skipped.
"""

import logging
from dataclasses import dataclass, field, replace
from datetime import date
from decimal import Decimal
from typing import Callable, Iterable, Sequence

from tuition_ledger.domain.entries import LedgerEntry, new_charge
from tuition_ledger.domain.enums import AccountStatus, ChargeCategory, EntryKind
from tuition_ledger.domain.errors import InvalidAmount, InvalidScheduleOrder
from tuition_ledger.domain.money import ZERO, month_key, to_money

logger = logging.getLogger(__name__)

# Days past 28 do not exist in every month
MAX_SCHEDULE_DAY = 28


@dataclass(frozen=True)
class BillingConfig:
    """Organization billing configuration."""

    billing_day: int
    late_fee_day: int
    monthly_tuition: Decimal
    late_fee_amount: Decimal
    auto_approve_cash: bool = False

    def __post_init__(self):
        object.__setattr__(self, "monthly_tuition", to_money(self.monthly_tuition))
        object.__setattr__(self, "late_fee_amount", to_money(self.late_fee_amount))

    def validate(self) -> "BillingConfig":
        """Check the configuration before it is written.

        Raises:
            InvalidScheduleOrder: If a day is out of range or
                late_fee_day is not strictly after billing_day
            InvalidAmount: If tuition or late fee is not positive
        """
        for name, day in (("billing_day", self.billing_day), ("late_fee_day", self.late_fee_day)):
            if not 1 <= day <= MAX_SCHEDULE_DAY:
                raise InvalidScheduleOrder(f"{name} must be between 1 and {MAX_SCHEDULE_DAY}, got {day}")
        if self.late_fee_day <= self.billing_day:
            raise InvalidScheduleOrder(
                f"late_fee_day ({self.late_fee_day}) must be after "
                f"billing_day ({self.billing_day})"
            )
        if self.monthly_tuition <= 0:
            raise InvalidAmount(
                f"monthly_tuition must be positive, got {self.monthly_tuition}",
                amount=self.monthly_tuition,
            )
        if self.late_fee_amount <= 0:
            raise InvalidAmount(
                f"late_fee_amount must be positive, got {self.late_fee_amount}",
                amount=self.late_fee_amount,
            )
        return self


@dataclass(frozen=True)
class AutomationState:
    """Last successful run date of each job."""

    last_monthly_billing_run: date | None = None
    last_late_fee_run: date | None = None


@dataclass(frozen=True)
class MemberSnapshot:
    """What the jobs need to know about a member."""

    member_id: int
    account_status: AccountStatus
    balance: Decimal = ZERO


@dataclass(frozen=True)
class JobResult:
    """Outcome of one job evaluation."""

    state: AutomationState
    ran: bool
    created: tuple[LedgerEntry, ...] = field(default_factory=tuple)
    skipped: tuple[int, ...] = field(default_factory=tuple)
    failures: tuple[tuple[int, str], ...] = field(default_factory=tuple)

    @property
    def completed(self) -> bool:
        """Job ran and every member was processed."""
        return self.ran and not self.failures


# Persists one charge for one member and returns the stored entry
ChargeWriter = Callable[[MemberSnapshot, LedgerEntry], LedgerEntry]


def _charged_this_month(
    entries: Iterable[LedgerEntry], category: ChargeCategory, today: date
) -> set[int]:
    """Member ids that already have a charge of this category dated this month."""
    key = month_key(today)
    return {
        entry.member_id
        for entry in entries
        if entry.kind == EntryKind.CHARGE
        and entry.category == category
        and month_key(entry.occurred_on) == key
    }


def _run_job(
    job_name: str,
    today: date,
    organization_id: int,
    candidates: Sequence[MemberSnapshot],
    already_charged: set[int],
    build_entry: Callable[[MemberSnapshot], LedgerEntry],
    write_charge: ChargeWriter,
) -> tuple[list[LedgerEntry], list[int], list[tuple[int, str]]]:
    created: list[LedgerEntry] = []
    skipped: list[int] = []
    failures: list[tuple[int, str]] = []

    for member in candidates:
        if member.member_id in already_charged:
            logger.warning(
                f"{job_name}: member {member.member_id} already charged in "
                f"{month_key(today)}, skipping"
            )
            skipped.append(member.member_id)
            continue
        try:
            created.append(write_charge(member, build_entry(member)))
        except Exception as e:
            # One member must not stop the others; the marker stays put
            logger.error(
                f"{job_name}: failed to charge member {member.member_id} "
                f"of organization {organization_id}: {e}"
            )
            failures.append((member.member_id, str(e)))

    return created, skipped, failures


def run_monthly_billing(
    today: date,
    organization_id: int,
    config: BillingConfig,
    state: AutomationState,
    members: Sequence[MemberSnapshot],
    entries: Sequence[LedgerEntry],
    write_charge: ChargeWriter,
) -> JobResult:
    """Charge monthly tuition to every non-inactive member on billing day.

    Args:
        today: Local calendar date of the evaluation
        organization_id: Organization being billed
        config: Billing configuration
        state: Current automation markers
        members: Roster snapshot with derived statuses
        entries: Organization ledger entries (for the month check)
        write_charge: Persists one charge, may raise

    Returns:
        JobResult with the new state; the marker only advances when no
        member failed
    """
    if today.day != config.billing_day or state.last_monthly_billing_run == today:
        return JobResult(state=state, ran=False)

    label = today.strftime("%m/%Y")
    candidates = [m for m in members if m.account_status != AccountStatus.INACTIVE]
    created, skipped, failures = _run_job(
        "monthly billing",
        today,
        organization_id,
        candidates,
        _charged_this_month(entries, ChargeCategory.TUITION, today),
        lambda member: new_charge(
            organization_id=organization_id,
            member_id=member.member_id,
            amount=config.monthly_tuition,
            occurred_on=today,
            category=ChargeCategory.TUITION,
            description=f"Tuition {label}",
        ),
        write_charge,
    )

    new_state = state if failures else replace(state, last_monthly_billing_run=today)
    logger.info(
        f"Monthly billing for organization {organization_id} on {today}: "
        f"{len(created)} charged, {len(skipped)} skipped, {len(failures)} failed"
    )
    return JobResult(
        state=new_state,
        ran=True,
        created=tuple(created),
        skipped=tuple(skipped),
        failures=tuple(failures),
    )


def run_late_fees(
    today: date,
    organization_id: int,
    config: BillingConfig,
    state: AutomationState,
    members: Sequence[MemberSnapshot],
    entries: Sequence[LedgerEntry],
    write_charge: ChargeWriter,
) -> JobResult:
    """Charge the late fee to every non-inactive member still owing on late fee day.

    Same contract as run_monthly_billing.
    """
    if today.day != config.late_fee_day or state.last_late_fee_run == today:
        return JobResult(state=state, ran=False)

    candidates = [
        m for m in members if m.account_status != AccountStatus.INACTIVE and m.balance > 0
    ]
    created, skipped, failures = _run_job(
        "late fees",
        today,
        organization_id,
        candidates,
        _charged_this_month(entries, ChargeCategory.LATE_FEE, today),
        lambda member: new_charge(
            organization_id=organization_id,
            member_id=member.member_id,
            amount=config.late_fee_amount,
            occurred_on=today,
            category=ChargeCategory.LATE_FEE,
            description=f"Late fee {today.strftime('%m/%Y')}",
        ),
        write_charge,
    )

    new_state = state if failures else replace(state, last_late_fee_run=today)
    logger.info(
        f"Late fees for organization {organization_id} on {today}: "
        f"{len(created)} charged, {len(skipped)} skipped, {len(failures)} failed"
    )
    return JobResult(
        state=new_state,
        ran=True,
        created=tuple(created),
        skipped=tuple(skipped),
        failures=tuple(failures),
    )


__all__ = [
    "MAX_SCHEDULE_DAY",
    "BillingConfig",
    "AutomationState",
    "MemberSnapshot",
    "JobResult",
    "ChargeWriter",
    "run_monthly_billing",
    "run_late_fees",
]

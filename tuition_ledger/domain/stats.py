"""Finance dashboard figures derived from debt records."""

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Dict, Iterable

from tuition_ledger.domain.debt import DebtRecord
from tuition_ledger.domain.enums import DebtState
from tuition_ledger.domain.money import ZERO, month_key


@dataclass(frozen=True)
class FinanceStats:
    """Organization-wide collection figures."""

    total_collected: Decimal = ZERO
    pending_collection: Decimal = ZERO
    overdue_amount: Decimal = ZERO
    in_review_count: int = 0
    active_members: int = 0
    collected_by_month: Dict[str, Decimal] = field(default_factory=dict)


def summarize(records: Iterable[DebtRecord], since: date | None = None) -> FinanceStats:
    """Aggregate collected, pending and overdue amounts.

    Args:
        records: Debt records of an organization
        since: Only count payments on or after this date in the monthly series

    Returns:
        FinanceStats, collected_by_month keyed 'YYYY-MM' in ascending order
    """
    total_collected = ZERO
    pending = ZERO
    overdue = ZERO
    in_review = 0
    by_month: Dict[str, Decimal] = {}

    for record in records:
        for item in record.payment_history:
            total_collected += item.amount
            if since is None or item.paid_on >= since:
                key = month_key(item.paid_on)
                by_month[key] = by_month.get(key, ZERO) + item.amount

        if record.state != DebtState.SETTLED:
            pending += record.current_due
        if record.state == DebtState.OVERDUE:
            overdue += record.current_due
        if record.state == DebtState.IN_REVIEW:
            in_review += 1

    return FinanceStats(
        total_collected=total_collected,
        pending_collection=pending,
        overdue_amount=overdue,
        in_review_count=in_review,
        collected_by_month=dict(sorted(by_month.items())),
    )


__all__ = ["FinanceStats", "summarize"]

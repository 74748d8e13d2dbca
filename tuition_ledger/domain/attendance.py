"""Rank and attendance coupling with account status.

Attendance flips ACTIVE -> EXAM_READY once the tally reaches the
threshold of the member's rank. A promotion resets the tally and flips
the member back to ACTIVE. Both write the same status field as balance
derivation, and the debtor check always wins: a member who owes money
is never exam ready.
"""

from dataclasses import dataclass
from typing import NamedTuple, Sequence

from tuition_ledger.domain.enums import AccountStatus


@dataclass(frozen=True)
class RankStep:
    """Rank with the attendance needed before the next exam."""

    id: int
    name: str
    order: int
    required_attendance: int = 0


class Promotion(NamedTuple):
    """Result of promoting a member."""

    rank: RankStep
    attendance_count: int
    account_status: AccountStatus


def is_attendance_ready(tally: int, threshold: int | None) -> bool:
    """Tally reached a positive threshold. No threshold means never ready."""
    return bool(threshold) and threshold > 0 and tally >= threshold


def next_rank(ranks: Sequence[RankStep], current_rank_id: int | None) -> RankStep | None:
    """Rank following the current one by order, or the first rank if unranked."""
    ordered = sorted(ranks, key=lambda r: r.order)
    if not ordered:
        return None
    if current_rank_id is None:
        return ordered[0]
    for index, rank in enumerate(ordered):
        if rank.id == current_rank_id:
            return ordered[index + 1] if index + 1 < len(ordered) else None
    return None


def promote(ranks: Sequence[RankStep], current_rank_id: int | None) -> Promotion | None:
    """Move to the next rank with a fresh tally.

    Returns:
        Promotion, or None when the member already holds the highest rank
    """
    rank = next_rank(ranks, current_rank_id)
    if rank is None:
        return None
    return Promotion(rank=rank, attendance_count=0, account_status=AccountStatus.ACTIVE)


__all__ = [
    "RankStep",
    "Promotion",
    "is_attendance_ready",
    "next_rank",
    "promote",
]

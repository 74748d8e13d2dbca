"""Unit tests for attendance and rank coupling with account status."""

from decimal import Decimal

import pytest

from tuition_ledger.domain.attendance import (
    RankStep,
    is_attendance_ready,
    next_rank,
    promote,
)
from tuition_ledger.domain.balance import resolve_status
from tuition_ledger.domain.enums import AccountStatus

RANKS = [
    RankStep(id=12, name="Yellow", order=2, required_attendance=20),
    RankStep(id=11, name="White", order=1, required_attendance=10),
    RankStep(id=13, name="Black", order=3),
]


class TestAttendanceReadiness:
    @pytest.mark.parametrize(
        "tally,threshold,expected",
        [
            (10, 10, True),
            (11, 10, True),
            (9, 10, False),
            (100, 0, False),
            (100, None, False),
        ],
    )
    def test_is_attendance_ready(self, tally, threshold, expected):
        assert is_attendance_ready(tally, threshold) is expected

    def test_debtor_wins_over_attendance(self):
        ready = is_attendance_ready(15, 10)
        assert resolve_status(Decimal("50"), attendance_ready=ready) == AccountStatus.DEBTOR

    def test_exam_ready_after_paying(self):
        ready = is_attendance_ready(15, 10)
        assert resolve_status(Decimal("0"), attendance_ready=ready) == AccountStatus.EXAM_READY

    def test_inactive_wins(self):
        ready = is_attendance_ready(15, 10)
        status = resolve_status(Decimal("0"), attendance_ready=ready, explicit_inactive=True)
        assert status == AccountStatus.INACTIVE


class TestRankProgression:
    def test_unranked_gets_first_rank(self):
        assert next_rank(RANKS, None).name == "White"

    def test_next_by_order(self):
        assert next_rank(RANKS, 11).name == "Yellow"
        assert next_rank(RANKS, 12).name == "Black"

    def test_highest_rank(self):
        assert next_rank(RANKS, 13) is None
        assert promote(RANKS, 13) is None

    def test_no_ranks(self):
        assert next_rank([], None) is None

    def test_promotion_resets_tally(self):
        promotion = promote(RANKS, 11)

        assert promotion.rank.id == 12
        assert promotion.attendance_count == 0
        assert promotion.account_status == AccountStatus.ACTIVE

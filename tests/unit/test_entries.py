"""Unit tests for ledger entry validation and transitions."""

from datetime import date
from decimal import Decimal

import pytest

from tuition_ledger.domain.entries import (
    LedgerEntry,
    approve_entry,
    new_charge,
    new_payment,
    reject_entry,
    write_off_entry,
)
from tuition_ledger.domain.enums import ChargeCategory, EntryKind, SettlementState
from tuition_ledger.domain.errors import InvalidEntry, StaleRecord

DAY = date(2024, 3, 1)


class TestLedgerEntryValidation:
    """Malformed entries are rejected at construction."""

    def test_amount_is_quantized(self):
        entry = new_charge(1, 1, Decimal("10.005"), DAY, ChargeCategory.EQUIPMENT)
        assert entry.amount == Decimal("10.01")

    @pytest.mark.parametrize("amount", ["0", "-5", "0.001"])
    def test_non_positive_amount(self, amount):
        with pytest.raises(InvalidEntry, match="must be positive"):
            new_charge(1, 1, Decimal(amount), DAY, ChargeCategory.TUITION)

    def test_missing_member(self):
        with pytest.raises(InvalidEntry, match="member_id"):
            new_payment(1, None, Decimal("10"), DAY)

    def test_charge_requires_category(self):
        with pytest.raises(InvalidEntry, match="category"):
            LedgerEntry(
                organization_id=1,
                member_id=1,
                amount=Decimal("10"),
                occurred_on=DAY,
                kind=EntryKind.CHARGE,
                settlement_state=SettlementState.OPEN,
            )

    def test_state_must_match_kind(self):
        with pytest.raises(InvalidEntry, match="not valid for a payment"):
            LedgerEntry(
                organization_id=1,
                member_id=1,
                amount=Decimal("10"),
                occurred_on=DAY,
                kind=EntryKind.PAYMENT,
                settlement_state=SettlementState.OPEN,
            )


class TestEntryTransitions:
    def test_payment_defaults_to_pending(self):
        entry = new_payment(1, 1, Decimal("50"), DAY)
        assert entry.settlement_state == SettlementState.PENDING_REVIEW
        assert entry.is_payment

    def test_approve_and_reject(self):
        entry = new_payment(1, 1, Decimal("50"), DAY)

        assert approve_entry(entry).settlement_state == SettlementState.APPROVED
        assert reject_entry(entry).settlement_state == SettlementState.REJECTED
        # Original is untouched
        assert entry.settlement_state == SettlementState.PENDING_REVIEW

    def test_approving_twice_is_stale(self):
        approved = approve_entry(new_payment(1, 1, Decimal("50"), DAY))
        with pytest.raises(StaleRecord):
            approve_entry(approved)

    def test_write_off_charge(self):
        entry = new_charge(1, 1, Decimal("500"), DAY, ChargeCategory.TUITION)
        assert write_off_entry(entry).settlement_state == SettlementState.WRITTEN_OFF

    def test_write_off_payment_is_stale(self):
        with pytest.raises(StaleRecord, match="expected an open charge"):
            write_off_entry(new_payment(1, 1, Decimal("50"), DAY, approved=True))

"""Unit tests for LedgerService."""

from datetime import date
from decimal import Decimal

import pytest

from tuition_ledger.domain.enums import (
    AccountStatus,
    ChargeCategory,
    DebtState,
    EntryKind,
    PaymentMethod,
    SettlementState,
)
from tuition_ledger.domain.errors import InvalidAdjustment, InvalidAmount, StaleRecord
from tuition_ledger.models.audit_log import AuditLog
from tuition_ledger.models.debt import Debt
from tuition_ledger.models.entry import Entry
from tuition_ledger.services.billing_service import BillingService
from tuition_ledger.services.ledger_service import LedgerService


@pytest.fixture
def service(db_session):
    return LedgerService(db_session)


@pytest.fixture
def tuition(service, member):
    """Non-splittable March tuition of 500."""
    return service.record_charge(
        member.id,
        ChargeCategory.TUITION,
        "Tuition 03/2024",
        Decimal("500.00"),
        occurred_on=date(2024, 3, 1),
        due_date=date(2024, 3, 10),
        month_key="2024-03",
    )


@pytest.fixture
def uniform(service, member):
    """Splittable equipment charge of 300."""
    return service.record_charge(
        member.id,
        ChargeCategory.EQUIPMENT,
        "Uniform",
        Decimal("300.00"),
        occurred_on=date(2024, 2, 15),
        allows_partial_settlement=True,
    )


def charges_of(db_session, member_id):
    return (
        db_session.query(Entry)
        .filter(Entry.member_id == member_id, Entry.kind == EntryKind.CHARGE)
        .order_by(Entry.id)
        .all()
    )


class TestRecordCharge:
    def test_creates_record_and_open_charge(self, db_session, member, tuition):
        assert tuition.state == DebtState.OPEN
        assert tuition.open_amount == Decimal("500.00")
        assert tuition.principal == Decimal("500.00")
        assert tuition.due_date == date(2024, 3, 10)

        charges = charges_of(db_session, member.id)
        assert len(charges) == 1
        assert charges[0].settlement_state == SettlementState.OPEN
        assert charges[0].debt_record_id == tuition.id

    def test_member_becomes_debtor(self, member, tuition):
        assert member.balance == Decimal("500.00")
        assert member.account_status == AccountStatus.DEBTOR

    def test_due_date_defaults_to_charge_date(self, uniform):
        assert uniform.due_date == date(2024, 2, 15)

    def test_audited(self, db_session, tuition):
        audit = db_session.query(AuditLog).filter(AuditLog.entity_type == "debt_record").one()
        assert audit.action == "create"
        assert audit.entity_id == tuition.id

    def test_non_positive_amount(self, db_session, service, member):
        with pytest.raises(InvalidAmount):
            service.record_charge(
                member.id, ChargeCategory.OTHER, "Nothing", Decimal("0"), date(2024, 3, 1)
            )
        assert db_session.query(Debt).count() == 0

    def test_unknown_member(self, service):
        with pytest.raises(ValueError, match="Member 999 not found"):
            service.record_charge(
                999, ChargeCategory.OTHER, "Ghost", Decimal("10"), date(2024, 3, 1)
            )


class TestDirectPayment:
    def test_partial_payment(self, db_session, service, member, uniform):
        record = service.record_direct_payment(
            uniform.id, Decimal("100"), PaymentMethod.CASH, date(2024, 3, 2), actor="sensei"
        )

        assert record.state == DebtState.PARTIALLY_SETTLED
        assert record.open_amount == Decimal("200.00")
        assert [p.amount for p in record.payments] == [Decimal("100.00")]
        assert member.balance == Decimal("200.00")

        payment = db_session.query(Entry).filter(Entry.kind == EntryKind.PAYMENT).one()
        assert payment.settlement_state == SettlementState.APPROVED
        assert payment.debt_record_id == uniform.id

    def test_full_payment_clears_debtor(self, service, member, tuition):
        service.record_direct_payment(tuition.id, Decimal("500"), PaymentMethod.CARD, date(2024, 3, 2))

        assert tuition.state == DebtState.SETTLED
        assert member.balance == Decimal("0.00")
        assert member.account_status == AccountStatus.ACTIVE

    def test_overpayment_rejected(self, db_session, service, tuition):
        with pytest.raises(InvalidAmount, match="exceeds current due"):
            service.record_direct_payment(
                tuition.id, Decimal("600"), PaymentMethod.CASH, date(2024, 3, 2)
            )
        assert db_session.query(Entry).filter(Entry.kind == EntryKind.PAYMENT).count() == 0

    def test_cent_short_settles_the_account(
        self, db_session, organization, service, member, tuition
    ):
        service.record_direct_payment(
            tuition.id, Decimal("499.99"), PaymentMethod.CASH, date(2024, 3, 2)
        )

        assert tuition.state == DebtState.SETTLED
        assert member.balance == Decimal("0.00")
        assert member.account_status == AccountStatus.ACTIVE
        payments = (
            db_session.query(Entry)
            .filter(Entry.kind == EntryKind.PAYMENT)
            .order_by(Entry.id)
            .all()
        )
        assert [p.amount for p in payments] == [Decimal("499.99"), Decimal("0.01")]
        assert all(p.settlement_state == SettlementState.APPROVED for p in payments)

        result = BillingService(db_session).run_due_jobs(organization.id, date(2024, 3, 10))

        assert result.late_fees.created == ()
        assert member.balance == Decimal("0.00")


class TestAdjustTotal:
    """Scholarship adjustments keep the ledger append-only."""

    def test_replaces_charge(self, db_session, service, member, tuition):
        service.adjust_total(tuition.id, Decimal("300"), date(2024, 3, 3), actor="sensei")

        charges = charges_of(db_session, member.id)
        assert [(c.amount, c.settlement_state) for c in charges] == [
            (Decimal("500.00"), SettlementState.WRITTEN_OFF),
            (Decimal("300.00"), SettlementState.OPEN),
        ]
        assert tuition.principal == Decimal("300.00")
        assert tuition.open_amount == Decimal("300.00")
        assert member.balance == Decimal("300.00")

    def test_full_scholarship(self, db_session, service, member, tuition):
        service.adjust_total(tuition.id, Decimal("0"), date(2024, 3, 3))

        assert tuition.state == DebtState.SETTLED
        assert member.balance == Decimal("0.00")
        assert member.account_status == AccountStatus.ACTIVE
        assert [c.settlement_state for c in charges_of(db_session, member.id)] == [
            SettlementState.WRITTEN_OFF
        ]

    def test_after_partial_payment(self, service, member, uniform):
        service.record_direct_payment(uniform.id, Decimal("200"), PaymentMethod.CASH, date(2024, 3, 1))

        service.adjust_total(uniform.id, Decimal("250"), date(2024, 3, 3))

        assert uniform.state == DebtState.PARTIALLY_SETTLED
        assert uniform.open_amount == Decimal("50.00")
        assert member.balance == Decimal("50.00")

    def test_below_collected(self, service, uniform):
        service.record_direct_payment(uniform.id, Decimal("200"), PaymentMethod.CASH, date(2024, 3, 1))

        with pytest.raises(InvalidAdjustment):
            service.adjust_total(uniform.id, Decimal("100"), date(2024, 3, 3))

    def test_audit_keeps_previous_total(self, db_session, service, tuition):
        service.adjust_total(tuition.id, Decimal("300"), date(2024, 3, 3), actor="sensei")

        audit = db_session.query(AuditLog).filter(AuditLog.action == "adjust").one()
        assert audit.actor == "sensei"
        assert audit.changes["previous_total"] == "500.00"
        assert audit.changes["new_total"] == "300.00"


class TestDeleteRecord:
    def test_delete_fresh_record(self, db_session, service, member, tuition):
        record_id = tuition.id

        service.delete_record(record_id, actor="sensei")

        assert db_session.get(Debt, record_id) is None
        charge = charges_of(db_session, member.id)[0]
        assert charge.settlement_state == SettlementState.WRITTEN_OFF
        assert charge.debt_record_id is None
        assert member.balance == Decimal("0.00")

    def test_record_with_history_cannot_be_deleted(self, service, uniform):
        service.record_direct_payment(uniform.id, Decimal("10"), PaymentMethod.CASH, date(2024, 3, 1))

        with pytest.raises(StaleRecord, match="payment history"):
            service.delete_record(uniform.id)

    def test_purge_keeps_records_with_history(self, db_session, service, member, tuition, uniform):
        service.record_charge(
            member.id, ChargeCategory.EXAM, "Yellow belt exam", Decimal("150"), date(2024, 3, 5)
        )
        service.record_direct_payment(uniform.id, Decimal("100"), PaymentMethod.CASH, date(2024, 3, 1))

        deleted = service.purge_member_debts(member.id, actor="sensei")

        assert deleted == 2
        remaining = service.member_records(member.id)
        assert [r.concept for r in remaining] == ["Uniform"]
        assert member.balance == Decimal("200.00")


class TestQueries:
    def test_pending_debts_oldest_first(self, service, member, tuition, uniform):
        assert [r.concept for r in service.pending_debts(member.id)] == ["Uniform", "Tuition 03/2024"]

    def test_pending_debts_skip_settled(self, service, member, tuition, uniform):
        service.record_direct_payment(uniform.id, Decimal("300"), PaymentMethod.CASH, date(2024, 3, 1))

        assert [r.id for r in service.pending_debts(member.id)] == [tuition.id]

    def test_receipt(self, service, uniform):
        service.record_direct_payment(uniform.id, Decimal("100"), PaymentMethod.CASH, date(2024, 3, 9))
        service.record_direct_payment(uniform.id, Decimal("50"), PaymentMethod.CARD, date(2024, 3, 2))

        amounts, history = service.receipt(uniform.id)

        assert amounts.grand_total == Decimal("300.00")
        assert amounts.total_paid == Decimal("150.00")
        assert [item.paid_on for item in history] == [date(2024, 3, 2), date(2024, 3, 9)]

    def test_unknown_record(self, service):
        with pytest.raises(ValueError, match="Debt record 404 not found"):
            service.reconstruct(404)

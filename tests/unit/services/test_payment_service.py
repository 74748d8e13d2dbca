"""Unit tests for PaymentService batch submission and review."""

from datetime import date
from decimal import Decimal

import pytest

from tuition_ledger.domain.debt import ProofOfPayment
from tuition_ledger.domain.enums import (
    AccountStatus,
    BatchStatus,
    ChargeCategory,
    DebtState,
    EntryKind,
    PaymentMethod,
    SettlementState,
)
from tuition_ledger.domain.errors import InvalidAmount, InvalidEntry, StaleRecord
from tuition_ledger.models.entry import Entry
from tuition_ledger.models.payment_batch import PaymentBatch
from tuition_ledger.services.billing_service import BillingService
from tuition_ledger.services.ledger_service import LedgerService
from tuition_ledger.services.payment_service import PaymentService

PROOF = ProofOfPayment(reference="uploads/transfer-0305.jpg", mime_type="image/jpeg")
SUBMITTED = date(2024, 3, 5)


@pytest.fixture
def service(db_session):
    return PaymentService(db_session)


@pytest.fixture
def tuition(db_session, member):
    return LedgerService(db_session).record_charge(
        member.id,
        ChargeCategory.TUITION,
        "Tuition 03/2024",
        Decimal("500"),
        occurred_on=date(2024, 3, 1),
        due_date=date(2024, 3, 10),
    )


@pytest.fixture
def uniform(db_session, member):
    return LedgerService(db_session).record_charge(
        member.id,
        ChargeCategory.EQUIPMENT,
        "Uniform",
        Decimal("300"),
        occurred_on=date(2024, 2, 15),
        allows_partial_settlement=True,
    )


def payment_entries(db_session):
    return (
        db_session.query(Entry)
        .filter(Entry.kind == EntryKind.PAYMENT)
        .order_by(Entry.id)
        .all()
    )


class TestQuote:
    def test_quote_batch(self, service, tuition, uniform):
        quote = service.quote_batch([tuition.id, uniform.id])

        assert quote.total_due == Decimal("800.00")
        assert quote.mandatory_floor == Decimal("500.00")

    def test_unknown_record(self, service, tuition):
        with pytest.raises(ValueError, match="not found"):
            service.quote_batch([tuition.id, 999])


class TestSubmitBatchPayment:
    def test_submission_locks_records(self, db_session, service, member, tuition, uniform):
        batch = service.submit_batch_payment(
            [tuition.id, uniform.id], Decimal("650"), PaymentMethod.TRANSFER, PROOF, SUBMITTED
        )

        assert batch.status == BatchStatus.PENDING_REVIEW
        assert batch.amount == Decimal("650.00")
        assert batch.proof() == PROOF
        assert [(a.debt_record_id, a.amount) for a in batch.allocations] == [
            (tuition.id, Decimal("500.00")),
            (uniform.id, Decimal("150.00")),
        ]
        assert tuition.state == DebtState.IN_REVIEW
        assert uniform.state == DebtState.IN_REVIEW
        assert uniform.pending_batch_id == batch.id

        # One aggregate entry, pending, not counted in the balance
        (entry,) = payment_entries(db_session)
        assert entry.id == batch.entry_id
        assert entry.batch_id == batch.id
        assert entry.amount == Decimal("650.00")
        assert entry.settlement_state == SettlementState.PENDING_REVIEW
        assert member.balance == Decimal("800.00")

    def test_below_floor_writes_nothing(self, db_session, service, tuition, uniform):
        with pytest.raises(InvalidAmount, match="mandatory floor 500.00"):
            service.submit_batch_payment(
                [tuition.id, uniform.id], Decimal("400"), PaymentMethod.TRANSFER, PROOF, SUBMITTED
            )

        assert db_session.query(PaymentBatch).count() == 0
        assert payment_entries(db_session) == []
        assert tuition.state == DebtState.OPEN
        assert uniform.state == DebtState.OPEN

    def test_transfer_requires_proof(self, service, tuition):
        with pytest.raises(InvalidEntry, match="Proof of payment is required"):
            service.submit_batch_payment(
                [tuition.id], Decimal("500"), PaymentMethod.TRANSFER, None, SUBMITTED
            )

    def test_cash_without_proof(self, service, tuition):
        batch = service.submit_batch_payment(
            [tuition.id], Decimal("500"), PaymentMethod.CASH, None, SUBMITTED
        )

        assert batch.proof_reference == "cash"
        assert batch.status == BatchStatus.PENDING_REVIEW

    def test_record_in_review_is_stale(self, service, tuition, uniform):
        service.submit_batch_payment([tuition.id], Decimal("500"), PaymentMethod.TRANSFER, PROOF, SUBMITTED)

        with pytest.raises(StaleRecord):
            service.submit_batch_payment(
                [tuition.id, uniform.id], Decimal("800"), PaymentMethod.TRANSFER, PROOF, SUBMITTED
            )

    def test_selection_across_members(self, db_session, service, tuition, other_member):
        other = LedgerService(db_session).record_charge(
            other_member.id, ChargeCategory.EXAM, "Exam", Decimal("100"), date(2024, 3, 1)
        )

        with pytest.raises(ValueError, match="more than one member"):
            service.submit_batch_payment(
                [tuition.id, other.id], Decimal("600"), PaymentMethod.TRANSFER, PROOF, SUBMITTED
            )

    def test_single_payment_defaults_to_current_due(self, service, uniform):
        batch = service.submit_single_payment(uniform.id, PaymentMethod.TRANSFER, PROOF, SUBMITTED)

        assert batch.amount == Decimal("300.00")
        assert len(batch.allocations) == 1

    def test_single_partial_payment(self, service, uniform):
        batch = service.submit_single_payment(
            uniform.id, PaymentMethod.TRANSFER, PROOF, SUBMITTED, amount=Decimal("120")
        )

        assert batch.allocations[0].amount == Decimal("120.00")

    def test_auto_approve_cash(self, db_session, service, organization, member, tuition):
        BillingService(db_session).configure(organization.id, auto_approve_cash=True)

        batch = service.submit_batch_payment(
            [tuition.id], Decimal("500"), PaymentMethod.CASH, None, SUBMITTED
        )

        assert batch.status == BatchStatus.APPROVED
        assert tuition.state == DebtState.SETTLED
        assert member.balance == Decimal("0.00")

    def test_auto_approve_only_for_cash(self, db_session, service, organization, tuition):
        BillingService(db_session).configure(organization.id, auto_approve_cash=True)

        batch = service.submit_batch_payment(
            [tuition.id], Decimal("500"), PaymentMethod.TRANSFER, PROOF, SUBMITTED
        )

        assert batch.status == BatchStatus.PENDING_REVIEW


class TestReview:
    @pytest.fixture
    def batch(self, service, tuition, uniform):
        return service.submit_batch_payment(
            [tuition.id, uniform.id], Decimal("650"), PaymentMethod.TRANSFER, PROOF, SUBMITTED
        )

    def test_approve(self, db_session, service, member, tuition, uniform, batch):
        service.approve_batch(batch.id, date(2024, 3, 6), actor="sensei")

        assert batch.status == BatchStatus.APPROVED
        assert batch.reviewed_on == date(2024, 3, 6)
        assert tuition.state == DebtState.SETTLED
        assert uniform.state == DebtState.PARTIALLY_SETTLED
        assert uniform.open_amount == Decimal("150.00")
        assert uniform.payments[0].paid_on == SUBMITTED
        assert payment_entries(db_session)[0].settlement_state == SettlementState.APPROVED
        assert member.balance == Decimal("150.00")
        assert member.account_status == AccountStatus.DEBTOR

    def test_approve_cent_short_settles_the_account(self, db_session, service, member, tuition):
        short = service.submit_batch_payment(
            [tuition.id], Decimal("499.99"), PaymentMethod.TRANSFER, PROOF, SUBMITTED
        )

        service.approve_batch(short.id, date(2024, 3, 6))

        assert tuition.state == DebtState.SETTLED
        assert member.balance == Decimal("0.00")
        assert member.account_status == AccountStatus.ACTIVE
        assert [e.amount for e in payment_entries(db_session)] == [
            Decimal("499.99"),
            Decimal("0.01"),
        ]
        assert all(e.batch_id == short.id for e in payment_entries(db_session))

    def test_approve_twice_is_stale(self, service, batch):
        service.approve_batch(batch.id, date(2024, 3, 6))

        with pytest.raises(StaleRecord, match="not pending review"):
            service.approve_batch(batch.id, date(2024, 3, 7))

    def test_reject(self, db_session, service, member, tuition, uniform, batch):
        service.reject_batch(batch.id, date(2024, 3, 6), actor="sensei", reason="Blurry image")

        assert batch.status == BatchStatus.REJECTED
        assert tuition.state == DebtState.OPEN
        assert uniform.state == DebtState.OPEN
        assert uniform.pending_amount is None
        assert uniform.payments == []
        assert payment_entries(db_session)[0].settlement_state == SettlementState.REJECTED
        assert member.balance == Decimal("800.00")

    def test_rejected_records_can_be_paid_again(self, service, tuition, uniform, batch):
        service.reject_batch(batch.id, date(2024, 3, 6))

        retry = service.submit_batch_payment(
            [tuition.id, uniform.id], Decimal("800"), PaymentMethod.TRANSFER, PROOF, date(2024, 3, 7)
        )

        assert retry.status == BatchStatus.PENDING_REVIEW

    def test_review_queue(self, service, organization, batch):
        assert [b.id for b in service.review_queue(organization.id)] == [batch.id]

        service.approve_batch(batch.id, date(2024, 3, 6))

        assert service.review_queue(organization.id) == []

    def test_unknown_batch(self, service):
        with pytest.raises(ValueError, match="Payment batch 77 not found"):
            service.reject_batch(77, date(2024, 3, 6))

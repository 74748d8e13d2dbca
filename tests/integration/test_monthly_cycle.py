"""End-to-end billing month: tuition, batch payments, review, late fees, receipts."""

from datetime import date
from decimal import Decimal

from tuition_ledger.domain.debt import ProofOfPayment
from tuition_ledger.domain.enums import (
    AccountStatus,
    ChargeCategory,
    DebtState,
    PaymentMethod,
)
from tuition_ledger.models.debt import Debt
from tuition_ledger.services.billing_service import BillingService
from tuition_ledger.services.ledger_service import LedgerService
from tuition_ledger.services.payment_service import PaymentService
from tuition_ledger.services.stats_service import StatsService


def only_record(db_session, member_id, category=ChargeCategory.TUITION):
    return (
        db_session.query(Debt)
        .filter(Debt.member_id == member_id, Debt.category == category)
        .one()
    )


def test_full_month(db_session, organization, member, other_member):
    billing = BillingService(db_session)
    payments = PaymentService(db_session)
    ledger = LedgerService(db_session)
    proof = ProofOfPayment("uploads/ana-0305.jpg", "image/jpeg")

    # March 1st: everybody is billed
    billing.run_due_jobs(organization.id, date(2024, 3, 1))
    ana_tuition = only_record(db_session, member.id)
    luis_tuition = only_record(db_session, other_member.id)
    assert member.account_status == AccountStatus.DEBTOR
    assert other_member.account_status == AccountStatus.DEBTOR

    # Ana also owes a uniform she can pay in parts
    uniform = ledger.record_charge(
        member.id,
        ChargeCategory.EQUIPMENT,
        "Uniform",
        Decimal("300"),
        occurred_on=date(2024, 3, 2),
        allows_partial_settlement=True,
    )

    # March 5th: Ana pays tuition plus part of the uniform in one transfer
    batch = payments.submit_batch_payment(
        [uniform.id, ana_tuition.id], Decimal("650"), PaymentMethod.TRANSFER, proof, date(2024, 3, 5)
    )
    payments.approve_batch(batch.id, date(2024, 3, 6), actor="sensei")

    assert ana_tuition.state == DebtState.SETTLED
    assert uniform.state == DebtState.PARTIALLY_SETTLED
    assert member.balance == Decimal("150.00")

    # March 10th: Luis still owes tuition, Ana only owes the uniform
    result = billing.run_due_jobs(organization.id, date(2024, 3, 10))

    assert sorted(e.member_id for e in result.late_fees.created) == sorted(
        [member.id, other_member.id]
    )
    assert luis_tuition.state == DebtState.OVERDUE
    assert other_member.balance == Decimal("550.00")
    # Ana's late fee lands on her only payable record
    assert uniform.state == DebtState.OVERDUE
    assert uniform.penalty == Decimal("50.00")
    assert member.balance == Decimal("200.00")

    # Luis sends an unreadable proof; the record goes back to Overdue
    rejected = payments.submit_single_payment(
        luis_tuition.id, PaymentMethod.TRANSFER, ProofOfPayment("uploads/blurry.jpg"), date(2024, 3, 11)
    )
    assert luis_tuition.state == DebtState.IN_REVIEW
    payments.reject_batch(rejected.id, date(2024, 3, 12), actor="sensei", reason="Unreadable")

    assert luis_tuition.state == DebtState.OVERDUE
    assert luis_tuition.penalty == Decimal("50.00")
    assert other_member.balance == Decimal("550.00")

    # Then pays in cash at the front desk
    ledger.record_direct_payment(
        luis_tuition.id, Decimal("550"), PaymentMethod.CASH, date(2024, 3, 13), actor="sensei"
    )
    assert luis_tuition.state == DebtState.SETTLED
    assert other_member.balance == Decimal("0.00")
    assert other_member.account_status == AccountStatus.ACTIVE

    amounts, history = ledger.receipt(luis_tuition.id)
    assert amounts.principal == Decimal("500.00")
    assert amounts.penalty == Decimal("50.00")
    assert amounts.grand_total == Decimal("550.00")
    assert [(h.paid_on, h.amount) for h in history] == [(date(2024, 3, 13), Decimal("550.00"))]

    stats = StatsService(db_session).organization_stats(organization.id)
    assert stats.total_collected == Decimal("1200.00")
    assert stats.pending_collection == Decimal("200.00")
    assert stats.overdue_amount == Decimal("200.00")
    assert stats.active_members == 2

    # April 1st: a new month bills again
    billing.run_due_jobs(organization.id, date(2024, 4, 1))
    april = (
        db_session.query(Debt)
        .filter(Debt.member_id == other_member.id, Debt.month_key == "2024-04")
        .one()
    )
    assert april.concept == "Tuition 04/2024"
    assert april.due_date == date(2024, 4, 10)


def test_scholarship_on_overdue_tuition(db_session, organization, member):
    billing = BillingService(db_session)
    billing.run_due_jobs(organization.id, date(2024, 3, 1))
    billing.run_due_jobs(organization.id, date(2024, 3, 10))
    tuition = only_record(db_session, member.id)
    assert member.balance == Decimal("550.00")

    LedgerService(db_session).adjust_total(tuition.id, Decimal("250"), date(2024, 3, 11))

    # Penalty is folded into the new total, the ledger agrees with the record
    assert tuition.penalty == Decimal("0.00")
    assert tuition.open_amount == Decimal("250.00")
    assert tuition.state == DebtState.OPEN
    assert member.balance == Decimal("250.00")

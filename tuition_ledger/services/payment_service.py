"""Payment service for batch submissions and master review.

Every submission is a PaymentBatch: one proof of payment, one aggregate
PendingReview payment entry and an allocation plan over the selected
debt records. Records stay IN_REVIEW until a master approves or rejects
the whole batch.
"""

import logging
from datetime import date
from decimal import Decimal
from typing import Sequence

from sqlalchemy.orm import Session

from tuition_ledger.domain.batch import BatchQuote, allocate_batch_payment, quote_batch, submit_batch
from tuition_ledger.domain.debt import ProofOfPayment, approve, reject, settlement_residue
from tuition_ledger.domain.entries import approve_entry, new_payment, reject_entry
from tuition_ledger.domain.enums import BatchStatus, PaymentMethod
from tuition_ledger.domain.errors import InvalidAmount, InvalidEntry, LedgerError, StaleRecord
from tuition_ledger.domain.money import ZERO
from tuition_ledger.models.debt import Debt
from tuition_ledger.models.entry import Entry
from tuition_ledger.models.organization import Organization
from tuition_ledger.models.payment_batch import BatchAllocation, PaymentBatch
from tuition_ledger.services.account_service import AccountService
from tuition_ledger.services.audit_service import AuditService
from tuition_ledger.services.ledger_service import LedgerService

logger = logging.getLogger(__name__)


class PaymentService:
    """Submit payments for review and resolve them."""

    def __init__(self, db: Session):
        """Initialize payment service.

        Args:
            db: SQLAlchemy database session
        """
        self.db = db
        self.accounts = AccountService(db)
        self.ledger = LedgerService(db)

    def get_batch(self, batch_id: int) -> PaymentBatch:
        """Get payment batch by ID.

        Raises:
            ValueError: If batch not found
        """
        batch = self.db.query(PaymentBatch).filter(PaymentBatch.id == batch_id).first()
        if not batch:
            raise ValueError(f"Payment batch {batch_id} not found")
        return batch

    def review_queue(self, organization_id: int) -> list[PaymentBatch]:
        """Batches awaiting review, oldest submission first."""
        return (
            self.db.query(PaymentBatch)
            .filter(
                PaymentBatch.organization_id == organization_id,
                PaymentBatch.status == BatchStatus.PENDING_REVIEW,
            )
            .order_by(PaymentBatch.submitted_on, PaymentBatch.id)
            .all()
        )

    def _load_selection(self, record_ids: Sequence[int]) -> list[Debt]:
        """Load the selected records in selection order.

        Raises:
            InvalidAmount: If nothing is selected
            ValueError: If a record is unknown or the selection spans members
        """
        if not record_ids:
            raise InvalidAmount("No debts selected for payment")

        unique_ids = list(dict.fromkeys(record_ids))
        rows = self.db.query(Debt).filter(Debt.id.in_(unique_ids)).all()
        by_id = {row.id: row for row in rows}

        missing = [record_id for record_id in unique_ids if record_id not in by_id]
        if missing:
            raise ValueError(f"Debt records not found: {missing}")
        if len({row.member_id for row in rows}) > 1:
            raise ValueError("Selected debts belong to more than one member")

        return [by_id[record_id] for record_id in unique_ids]

    def quote_batch(self, record_ids: Sequence[int]) -> BatchQuote:
        """Total due and mandatory floor of a selection (bounds for the payer UI)."""
        return quote_batch([row.to_domain() for row in self._load_selection(record_ids)])

    def submit_batch_payment(
        self,
        record_ids: Sequence[int],
        amount: Decimal,
        method: PaymentMethod,
        proof: ProofOfPayment | None,
        submitted_on: date,
        actor: str | None = None,
    ) -> PaymentBatch:
        """Submit one payment covering several debt records.

        Args:
            record_ids: Selected debt records, in the payer's order
            amount: Declared amount (mandatory floor <= amount <= total due)
            method: Payment method
            proof: Uploaded proof reference (optional for cash)
            submitted_on: Local date of the submission
            actor: Who submitted (payer or master)

        Returns:
            Created PaymentBatch (already approved when the organization
            auto-approves cash)

        Raises:
            InvalidAmount: If the amount is outside the selection's bounds
            InvalidEntry: If a non-cash payment has no proof
            StaleRecord: If a selected record is not payable
            ValueError: If a record is unknown or the selection spans members
        """
        try:
            rows = self._load_selection(record_ids)
            if proof is None:
                if method != PaymentMethod.CASH:
                    raise InvalidEntry(f"Proof of payment is required for {method.value} payments")
                proof = ProofOfPayment.cash()

            records = [row.to_domain() for row in rows]
            allocated = sum(
                (allocation.amount for allocation in allocate_batch_payment(records, amount)),
                ZERO,
            )

            first = rows[0]
            batch = PaymentBatch(
                organization_id=first.organization_id,
                member_id=first.member_id,
                amount=allocated,
                method=method,
                proof_reference=proof.reference,
                proof_mime_type=proof.mime_type,
                status=BatchStatus.PENDING_REVIEW,
                submitted_on=submitted_on,
            )
            self.db.add(batch)
            self.db.flush()

            entry = Entry.from_domain(
                new_payment(
                    organization_id=first.organization_id,
                    member_id=first.member_id,
                    amount=allocated,
                    occurred_on=submitted_on,
                    description=f"{method.value} payment, batch {batch.id}",
                    batch_id=batch.id,
                )
            )
            self.db.add(entry)
            self.db.flush()
            batch.entry_id = entry.id

            by_id = {row.id: row for row in rows}
            for updated in submit_batch(
                records,
                allocated,
                proof,
                submitted_on,
                method=method,
                batch_id=batch.id,
                entry_id=entry.id,
            ):
                row = by_id[updated.id]
                row.apply_domain(updated)
                batch.allocations.append(
                    BatchAllocation(debt_record=row, amount=updated.pending.amount)
                )
        except LedgerError as e:
            self.db.rollback()
            logger.warning(f"Batch payment for records {list(record_ids)} rejected: {e}")
            raise

        AuditService.log(
            self.db,
            entity_type="batch",
            entity_id=batch.id,
            action="submit",
            actor=actor,
            changes={"amount": str(allocated), "records": [row.id for row in rows]},
        )
        logger.info(
            f"Batch {batch.id} submitted: {allocated} over {len(batch.allocations)} records "
            f"for member {batch.member_id}"
        )

        organization = self.db.get(Organization, batch.organization_id)
        if method == PaymentMethod.CASH and organization.auto_approve_cash:
            self._approve(batch, submitted_on, actor="auto-approve")

        self.accounts.recompute(batch.member_id)
        self.db.commit()
        return batch

    def submit_single_payment(
        self,
        record_id: int,
        method: PaymentMethod,
        proof: ProofOfPayment | None,
        submitted_on: date,
        amount: Decimal | None = None,
        actor: str | None = None,
    ) -> PaymentBatch:
        """Submit a payment for one record (a batch of one).

        amount defaults to the record's current due.
        """
        if amount is None:
            rows = self._load_selection([record_id])
            amount = rows[0].to_domain().current_due
        return self.submit_batch_payment([record_id], amount, method, proof, submitted_on, actor)

    def _pending_batch(self, batch_id: int) -> PaymentBatch:
        batch = self.get_batch(batch_id)
        if batch.status != BatchStatus.PENDING_REVIEW:
            raise StaleRecord(f"Batch {batch_id} is '{batch.status.value}', not pending review")
        return batch

    def _approve(self, batch: PaymentBatch, approved_on: date, actor: str | None) -> None:
        entry = self.db.get(Entry, batch.entry_id)
        entry.settlement_state = approve_entry(entry.to_domain()).settlement_state

        for allocation in batch.allocations:
            row = allocation.debt_record
            record = row.to_domain()
            if record.pending is None or record.pending.batch_id != batch.id:
                raise StaleRecord(f"Record {row.id} is not in review for batch {batch.id}")
            row.apply_domain(approve(record))
            self.ledger.forgive_residue(
                row, settlement_residue(record, record.pending.amount), approved_on, batch.id
            )

        batch.status = BatchStatus.APPROVED
        batch.reviewed_on = approved_on
        AuditService.log(
            self.db,
            entity_type="batch",
            entity_id=batch.id,
            action="approve",
            actor=actor,
            changes={"amount": str(batch.amount)},
        )
        logger.info(f"Batch {batch.id} approved by {actor or 'unknown'}")

    def approve_batch(
        self, batch_id: int, approved_on: date, actor: str | None = None
    ) -> PaymentBatch:
        """Approve a pending batch: the aggregate entry counts and every
        allocated record receives its share.

        Raises:
            ValueError: If batch not found
            StaleRecord: If the batch was already reviewed
        """
        try:
            batch = self._pending_batch(batch_id)
            self._approve(batch, approved_on, actor)
        except LedgerError:
            self.db.rollback()
            raise

        self.accounts.recompute(batch.member_id)
        self.db.commit()
        return batch

    def reject_batch(
        self,
        batch_id: int,
        rejected_on: date,
        actor: str | None = None,
        reason: str | None = None,
    ) -> PaymentBatch:
        """Reject a pending batch: every record returns to its prior state.

        Raises:
            ValueError: If batch not found
            StaleRecord: If the batch was already reviewed
        """
        try:
            batch = self._pending_batch(batch_id)
            entry = self.db.get(Entry, batch.entry_id)
            entry.settlement_state = reject_entry(entry.to_domain()).settlement_state

            for allocation in batch.allocations:
                row = allocation.debt_record
                record = row.to_domain()
                if record.pending is None or record.pending.batch_id != batch.id:
                    raise StaleRecord(f"Record {row.id} is not in review for batch {batch.id}")
                row.apply_domain(reject(record))
        except LedgerError:
            self.db.rollback()
            raise

        batch.status = BatchStatus.REJECTED
        batch.reviewed_on = rejected_on
        AuditService.log(
            self.db,
            entity_type="batch",
            entity_id=batch.id,
            action="reject",
            actor=actor,
            changes={"reason": reason} if reason else None,
        )
        self.accounts.recompute(batch.member_id)
        self.db.commit()
        logger.info(f"Batch {batch_id} rejected by {actor or 'unknown'}")
        return batch


__all__ = ["PaymentService"]

"""Ledger service for recording charges and managing debt records.

Provides methods for:
- Recording manual charges (each creates an Open charge entry and its debt record)
- Recording payments entered directly by a master
- Scholarship adjustments (write off the old charges, issue a replacement)
- Deleting records without payment history (charges are written off, never deleted)
- Querying a member's records and reconstructed amounts
"""

import logging
from datetime import date
from decimal import Decimal

from sqlalchemy.orm import Session

from tuition_ledger.domain import debt as debt_rules
from tuition_ledger.domain.debt import AmountBreakdown, DebtRecord, PaymentHistoryItem
from tuition_ledger.domain.entries import new_charge, new_payment, write_off_entry
from tuition_ledger.domain.enums import (
    PAYABLE_STATES,
    ChargeCategory,
    DebtState,
    PaymentMethod,
    SettlementState,
)
from tuition_ledger.domain.errors import LedgerError
from tuition_ledger.models.debt import Debt
from tuition_ledger.models.entry import Entry
from tuition_ledger.models.member import Member
from tuition_ledger.models.payment_batch import BatchAllocation
from tuition_ledger.services.account_service import AccountService
from tuition_ledger.services.audit_service import AuditService

logger = logging.getLogger(__name__)


class LedgerService:
    """Core ledger write operations."""

    def __init__(self, db: Session):
        """Initialize ledger service.

        Args:
            db: SQLAlchemy database session
        """
        self.db = db
        self.accounts = AccountService(db)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_record(self, record_id: int) -> Debt:
        """Get debt record by ID.

        Raises:
            ValueError: If record not found
        """
        record = self.db.query(Debt).filter(Debt.id == record_id).first()
        if not record:
            raise ValueError(f"Debt record {record_id} not found")
        return record

    def member_records(self, member_id: int) -> list[Debt]:
        """All debt records of a member, oldest due date first."""
        return (
            self.db.query(Debt)
            .filter(Debt.member_id == member_id)
            .order_by(Debt.due_date, Debt.id)
            .all()
        )

    def pending_debts(self, member_id: int) -> list[DebtRecord]:
        """Records the member still owes on, including those in review."""
        return [
            row.to_domain()
            for row in self.member_records(member_id)
            if row.state in PAYABLE_STATES or row.state == DebtState.IN_REVIEW
        ]

    def reconstruct(self, record_id: int) -> AmountBreakdown:
        """Principal, penalty and grand total of a record, for receipts."""
        return debt_rules.reconstruct_amounts(self.get_record(record_id).to_domain())

    def receipt(self, record_id: int) -> tuple[AmountBreakdown, list[PaymentHistoryItem]]:
        """Amounts and date-sorted payment history for receipt rendering."""
        record = self.get_record(record_id).to_domain()
        return debt_rules.reconstruct_amounts(record), debt_rules.receipt_history(record)

    # ------------------------------------------------------------------
    # Building blocks (flush only, callers commit)
    # ------------------------------------------------------------------

    def add_charge(
        self,
        member: Member,
        record: DebtRecord,
        occurred_on: date,
        description: str,
    ) -> tuple[Debt, Entry]:
        """Persist a new debt record and its Open charge entry."""
        row = Debt.from_domain(record)
        self.db.add(row)
        self.db.flush()

        entry = Entry.from_domain(
            new_charge(
                organization_id=member.organization_id,
                member_id=member.id,
                amount=record.open_amount,
                occurred_on=occurred_on,
                category=record.category,
                description=description,
                debt_record_id=row.id,
            )
        )
        self.db.add(entry)
        self.db.flush()
        return row, entry

    def forgive_residue(
        self,
        row: Debt,
        residue: Decimal,
        paid_on: date,
        batch_id: int | None = None,
    ) -> Entry | None:
        """Offset the cent a settling payment left unpaid with an Approved entry.

        Keeps the member balance equal to the sum of the records' current due.
        """
        if residue <= 0:
            return None
        entry = Entry.from_domain(
            new_payment(
                organization_id=row.organization_id,
                member_id=row.member_id,
                amount=residue,
                occurred_on=paid_on,
                description=f"{PaymentMethod.SYSTEM.value} rounding residue for {row.concept}",
                approved=True,
                debt_record_id=row.id,
                batch_id=batch_id,
            )
        )
        self.db.add(entry)
        self.db.flush()
        logger.info(f"Forgave rounding residue {residue} on record {row.id}")
        return entry

    def _write_off_open_charges(self, row: Debt) -> list[Entry]:
        written_off = []
        for entry in row.charges:
            if entry.settlement_state == SettlementState.OPEN:
                entry.settlement_state = write_off_entry(entry.to_domain()).settlement_state
                written_off.append(entry)
        return written_off

    # ------------------------------------------------------------------
    # Master operations
    # ------------------------------------------------------------------

    def record_charge(
        self,
        member_id: int,
        category: ChargeCategory,
        concept: str,
        amount: Decimal,
        occurred_on: date,
        due_date: date | None = None,
        allows_partial_settlement: bool = False,
        month_key: str | None = None,
        actor: str | None = None,
    ) -> Debt:
        """Record a manual charge (equipment, tournament, exam, ...).

        Args:
            member_id: Member being charged
            category: Charge category
            concept: Line item label
            amount: Charge amount (positive)
            occurred_on: Local date of the charge
            due_date: Due date (default: occurred_on)
            allows_partial_settlement: Whether the item can be paid in parts
            month_key: Optional 'YYYY-MM' billing month
            actor: Master recording the charge

        Returns:
            Created Debt row

        Raises:
            ValueError: If member not found
            InvalidAmount: If amount is not positive
        """
        member = self.accounts.get_member(member_id)
        record = debt_rules.new_debt_record(
            organization_id=member.organization_id,
            member_id=member.id,
            concept=concept,
            category=category,
            amount=amount,
            due_date=due_date or occurred_on,
            allows_partial_settlement=allows_partial_settlement,
            month_key=month_key,
        )

        row, _ = self.add_charge(member, record, occurred_on, concept)
        AuditService.log(
            self.db,
            entity_type="debt_record",
            entity_id=row.id,
            action="create",
            actor=actor,
            changes={"amount": str(record.open_amount), "category": category.value},
        )
        self.accounts.recompute(member_id)
        self.db.commit()
        logger.info(
            f"Recorded {category.value} charge {record.open_amount} for member {member_id} "
            f"(record ID={row.id})"
        )
        return row

    def record_direct_payment(
        self,
        record_id: int,
        amount: Decimal,
        method: PaymentMethod,
        paid_on: date,
        actor: str | None = None,
    ) -> Debt:
        """Apply a payment received by a master, without the review step.

        Creates an Approved payment entry and appends to the record's history.

        Raises:
            ValueError: If record not found
            StaleRecord: If the record is settled or in review
            InvalidAmount: If amount is not positive or exceeds current due
        """
        row = self.get_record(record_id)
        record = row.to_domain()
        try:
            updated = debt_rules.apply_payment(record, amount, method, paid_on)
        except LedgerError as e:
            logger.error(f"Direct payment on record {record_id} rejected: {e}")
            raise

        residue = debt_rules.settlement_residue(record, amount)
        applied = updated.total_paid - record.total_paid - residue
        row.apply_domain(updated)
        self.forgive_residue(row, residue, paid_on)
        self.db.add(
            Entry.from_domain(
                new_payment(
                    organization_id=row.organization_id,
                    member_id=row.member_id,
                    amount=applied,
                    occurred_on=paid_on,
                    description=f"{method.value} payment for {row.concept}",
                    approved=True,
                    debt_record_id=row.id,
                )
            )
        )
        AuditService.log(
            self.db,
            entity_type="debt_record",
            entity_id=row.id,
            action="direct_payment",
            actor=actor,
            changes={"amount": str(applied), "method": method.value, "state": updated.state.value},
        )
        self.accounts.recompute(row.member_id)
        self.db.commit()
        logger.info(f"Applied {applied} to record {record_id}, now {updated.state.value}")
        return row

    def adjust_total(
        self,
        record_id: int,
        new_total: Decimal,
        adjusted_on: date,
        actor: str | None = None,
    ) -> Debt:
        """Override a record's total obligation (scholarship).

        The record's open charges are written off and a replacement charge
        for the new total is issued, so the ledger stays append-only.

        Raises:
            ValueError: If record not found
            StaleRecord: If the record is in review
            InvalidAdjustment: If new_total < 0 or below what was already paid
        """
        row = self.get_record(record_id)
        before = debt_rules.reconstruct_amounts(row.to_domain())
        try:
            updated = debt_rules.adjust_total(row.to_domain(), new_total)
        except LedgerError as e:
            logger.error(f"Adjustment of record {record_id} rejected: {e}")
            raise

        self._write_off_open_charges(row)
        if updated.principal > 0:
            self.db.add(
                Entry.from_domain(
                    new_charge(
                        organization_id=row.organization_id,
                        member_id=row.member_id,
                        amount=updated.principal,
                        occurred_on=adjusted_on,
                        category=row.category,
                        description=f"{row.concept} (adjusted)",
                        debt_record_id=row.id,
                    )
                )
            )
        row.apply_domain(updated)
        AuditService.log(
            self.db,
            entity_type="debt_record",
            entity_id=row.id,
            action="adjust",
            actor=actor,
            changes={
                "previous_total": str(before.grand_total),
                "new_total": str(updated.principal),
                "state": updated.state.value,
            },
        )
        self.accounts.recompute(row.member_id)
        self.db.commit()
        logger.info(
            f"Adjusted record {record_id} total {before.grand_total} -> {updated.principal}"
        )
        return row

    def delete_record(self, record_id: int, actor: str | None = None) -> None:
        """Delete a record that has no payment history.

        Its charges are written off and detached; the entries themselves stay.

        Raises:
            ValueError: If record not found
            StaleRecord: If the record has payment history or is in review
        """
        row = self.get_record(record_id)
        debt_rules.ensure_deletable(row.to_domain())
        member_id = row.member_id

        self._delete_row(row)
        AuditService.log(
            self.db,
            entity_type="debt_record",
            entity_id=record_id,
            action="delete",
            actor=actor,
        )
        self.accounts.recompute(member_id)
        self.db.commit()
        logger.info(f"Deleted record {record_id} of member {member_id}")

    def _delete_row(self, row: Debt) -> None:
        for entry in self._write_off_open_charges(row):
            entry.description = f"{entry.description} (record {row.id} deleted)".strip()
        for entry in list(row.charges):
            entry.debt_record_id = None
        self.db.query(BatchAllocation).filter(BatchAllocation.debt_record_id == row.id).delete()
        self.db.delete(row)
        self.db.flush()

    def purge_member_debts(self, member_id: int, actor: str | None = None) -> int:
        """Delete every unsettled record of a member that can be deleted.

        Records with payment history or in review are kept.

        Returns:
            Number of deleted records
        """
        self.accounts.get_member(member_id)
        deleted = 0
        for row in self.member_records(member_id):
            if row.state == DebtState.SETTLED or row.payments or row.state == DebtState.IN_REVIEW:
                continue
            AuditService.log(
                self.db,
                entity_type="debt_record",
                entity_id=row.id,
                action="delete",
                actor=actor,
                changes={"reason": "purge"},
            )
            self._delete_row(row)
            deleted += 1

        self.accounts.recompute(member_id)
        self.db.commit()
        logger.info(f"Purged {deleted} records of member {member_id}")
        return deleted


__all__ = ["LedgerService"]

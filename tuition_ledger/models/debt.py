"""Debt record ORM models: the line item and its append-only payment history."""

from datetime import date
from decimal import Decimal

from sqlalchemy import Boolean, Date, ForeignKey, Index, Integer, Numeric, String
from sqlalchemy import Enum as SQLEnum
from sqlalchemy.orm import Mapped, mapped_column, relationship

from tuition_ledger.domain.debt import DebtRecord, PaymentHistoryItem, PendingReview
from tuition_ledger.domain.enums import ChargeCategory, DebtState, PaymentMethod
from tuition_ledger.models import Base, BaseModel


class Debt(Base, BaseModel):
    """Model representing a debt record (invoice line item).

    The pending_* columns hold the payment awaiting master review while
    the record is IN_REVIEW; they are cleared on approval or rejection.
    """

    __tablename__ = "debt_records"

    organization_id: Mapped[int] = mapped_column(
        ForeignKey("organizations.id"),
        nullable=False,
        index=True,
    )
    member_id: Mapped[int] = mapped_column(
        ForeignKey("members.id"),
        nullable=False,
        index=True,
    )
    concept: Mapped[str] = mapped_column(String(200), nullable=False)
    category: Mapped[ChargeCategory] = mapped_column(SQLEnum(ChargeCategory), nullable=False)
    month_key: Mapped[str | None] = mapped_column(
        String(7),
        nullable=True,
        comment="Billing month 'YYYY-MM' for recurring charges",
    )
    due_date: Mapped[date] = mapped_column(Date, nullable=False)

    principal: Mapped[Decimal | None] = mapped_column(
        Numeric(10, 2),
        nullable=True,
        comment="Original amount before penalties (unknown for legacy records)",
    )
    open_amount: Mapped[Decimal] = mapped_column(
        Numeric(10, 2),
        nullable=False,
        comment="Unpaid amount excluding penalty",
    )
    penalty: Mapped[Decimal] = mapped_column(
        Numeric(10, 2),
        nullable=False,
        default=Decimal("0.00"),
        comment="Accrued late fee",
    )
    allows_partial_settlement: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
    )
    state: Mapped[DebtState] = mapped_column(
        SQLEnum(DebtState),
        nullable=False,
        default=DebtState.OPEN,
    )

    # Pending review
    pending_amount: Mapped[Decimal | None] = mapped_column(Numeric(10, 2), nullable=True)
    pending_prior_state: Mapped[DebtState | None] = mapped_column(
        SQLEnum(DebtState),
        nullable=True,
    )
    pending_submitted_on: Mapped[date | None] = mapped_column(Date, nullable=True)
    pending_method: Mapped[PaymentMethod | None] = mapped_column(
        SQLEnum(PaymentMethod),
        nullable=True,
    )
    pending_batch_id: Mapped[int | None] = mapped_column(
        ForeignKey("payment_batches.id"),
        nullable=True,
        index=True,
    )
    pending_entry_id: Mapped[int | None] = mapped_column(
        Integer,
        nullable=True,
        comment="Aggregate payment ledger entry of the pending batch",
    )

    # Relationships
    payments: Mapped[list["DebtPayment"]] = relationship(
        "DebtPayment",
        back_populates="debt_record",
        cascade="all, delete-orphan",
        order_by="DebtPayment.id",
    )
    charges: Mapped[list["Entry"]] = relationship(  # noqa: F821
        "Entry",
        back_populates="debt_record",
        foreign_keys="Entry.debt_record_id",
    )
    pending_batch: Mapped["PaymentBatch | None"] = relationship(  # noqa: F821
        "PaymentBatch",
        foreign_keys=[pending_batch_id],
    )

    __table_args__ = (
        Index("idx_debt_org_member", "organization_id", "member_id"),
        Index("idx_debt_member_state", "member_id", "state"),
    )

    def to_domain(self) -> DebtRecord:
        pending = None
        if self.state == DebtState.IN_REVIEW and self.pending_amount is not None:
            pending = PendingReview(
                amount=self.pending_amount,
                prior_state=self.pending_prior_state,
                submitted_on=self.pending_submitted_on,
                method=self.pending_method,
                proof=self.pending_batch.proof() if self.pending_batch else None,
                batch_id=self.pending_batch_id,
                entry_id=self.pending_entry_id,
            )

        return DebtRecord(
            id=self.id,
            organization_id=self.organization_id,
            member_id=self.member_id,
            concept=self.concept,
            category=self.category,
            due_date=self.due_date,
            open_amount=self.open_amount,
            penalty=self.penalty,
            principal=self.principal,
            allows_partial_settlement=self.allows_partial_settlement,
            state=self.state,
            payment_history=tuple(
                PaymentHistoryItem(paid_on=p.paid_on, amount=p.amount, method=p.method)
                for p in self.payments
            ),
            pending=pending,
            month_key=self.month_key,
        )

    @classmethod
    def from_domain(cls, record: DebtRecord) -> "Debt":
        """Build a new row from a freshly created domain record."""
        row = cls(
            organization_id=record.organization_id,
            member_id=record.member_id,
            concept=record.concept,
            category=record.category,
            month_key=record.month_key,
            due_date=record.due_date,
            allows_partial_settlement=record.allows_partial_settlement,
            payments=[],
        )
        row.apply_domain(record)
        return row

    def apply_domain(self, record: DebtRecord) -> None:
        """Write a domain snapshot back, appending any new history items."""
        self.open_amount = record.open_amount
        self.penalty = record.penalty
        self.principal = record.principal
        self.state = record.state

        pending = record.pending
        self.pending_amount = pending.amount if pending else None
        self.pending_prior_state = pending.prior_state if pending else None
        self.pending_submitted_on = pending.submitted_on if pending else None
        self.pending_method = pending.method if pending else None
        self.pending_batch_id = pending.batch_id if pending else None
        self.pending_entry_id = pending.entry_id if pending else None

        for item in record.payment_history[len(self.payments):]:
            self.payments.append(
                DebtPayment(paid_on=item.paid_on, amount=item.amount, method=item.method)
            )

    def __repr__(self) -> str:
        return (
            f"<Debt(id={self.id}, member_id={self.member_id}, concept={self.concept!r}, "
            f"state={self.state}, open={self.open_amount}, penalty={self.penalty})>"
        )


class DebtPayment(Base, BaseModel):
    """Model representing one applied payment in a debt record's history."""

    __tablename__ = "debt_payments"

    debt_record_id: Mapped[int] = mapped_column(
        ForeignKey("debt_records.id"),
        nullable=False,
        index=True,
    )
    paid_on: Mapped[date] = mapped_column(Date, nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    method: Mapped[PaymentMethod] = mapped_column(SQLEnum(PaymentMethod), nullable=False)

    debt_record: Mapped["Debt"] = relationship("Debt", back_populates="payments")

    def __repr__(self) -> str:
        return f"<DebtPayment(id={self.id}, debt_record_id={self.debt_record_id}, amount={self.amount})>"


__all__ = ["Debt", "DebtPayment"]

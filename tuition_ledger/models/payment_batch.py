"""Batch payment ORM models: one submission covering several debt records."""

from datetime import date
from decimal import Decimal

from sqlalchemy import Date, ForeignKey, Integer, Numeric, String
from sqlalchemy import Enum as SQLEnum
from sqlalchemy.orm import Mapped, mapped_column, relationship

from tuition_ledger.domain.debt import ProofOfPayment
from tuition_ledger.domain.enums import BatchStatus, PaymentMethod
from tuition_ledger.models import Base, BaseModel


class PaymentBatch(Base, BaseModel):
    """Model representing a payment submission.

    One proof of payment and one aggregate payment ledger entry per batch.
    The allocation plan records how the amount is fanned out to the
    selected debt records once a master approves it.
    """

    __tablename__ = "payment_batches"

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
    amount: Mapped[Decimal] = mapped_column(
        Numeric(10, 2),
        nullable=False,
        comment="Amount declared by the payer",
    )
    method: Mapped[PaymentMethod] = mapped_column(SQLEnum(PaymentMethod), nullable=False)
    proof_reference: Mapped[str | None] = mapped_column(
        String(500),
        nullable=True,
        comment="Opaque reference to the stored proof file",
    )
    proof_mime_type: Mapped[str | None] = mapped_column(String(100), nullable=True)
    status: Mapped[BatchStatus] = mapped_column(
        SQLEnum(BatchStatus),
        nullable=False,
        default=BatchStatus.PENDING_REVIEW,
    )
    submitted_on: Mapped[date] = mapped_column(Date, nullable=False)
    reviewed_on: Mapped[date | None] = mapped_column(Date, nullable=True)
    entry_id: Mapped[int | None] = mapped_column(
        Integer,
        nullable=True,
        comment="Aggregate payment ledger entry",
    )

    allocations: Mapped[list["BatchAllocation"]] = relationship(
        "BatchAllocation",
        back_populates="batch",
        cascade="all, delete-orphan",
        order_by="BatchAllocation.id",
    )

    def proof(self) -> ProofOfPayment | None:
        if self.proof_reference is None:
            return None
        return ProofOfPayment(reference=self.proof_reference, mime_type=self.proof_mime_type or "")

    def __repr__(self) -> str:
        return (
            f"<PaymentBatch(id={self.id}, member_id={self.member_id}, amount={self.amount}, "
            f"status={self.status})>"
        )


class BatchAllocation(Base, BaseModel):
    """Model representing the share of a batch assigned to one debt record."""

    __tablename__ = "batch_allocations"

    batch_id: Mapped[int] = mapped_column(
        ForeignKey("payment_batches.id"),
        nullable=False,
        index=True,
    )
    debt_record_id: Mapped[int] = mapped_column(
        ForeignKey("debt_records.id"),
        nullable=False,
        index=True,
    )
    amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)

    batch: Mapped["PaymentBatch"] = relationship("PaymentBatch", back_populates="allocations")
    debt_record: Mapped["Debt"] = relationship("Debt")  # noqa: F821

    def __repr__(self) -> str:
        return (
            f"<BatchAllocation(batch_id={self.batch_id}, debt_record_id={self.debt_record_id}, "
            f"amount={self.amount})>"
        )


__all__ = ["PaymentBatch", "BatchAllocation"]

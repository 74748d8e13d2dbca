"""Ledger entry ORM model for charges and payments."""

from datetime import date
from decimal import Decimal

from sqlalchemy import Date, ForeignKey, Index, Numeric, String
from sqlalchemy import Enum as SQLEnum
from sqlalchemy.orm import Mapped, mapped_column, relationship

from tuition_ledger.domain.entries import LedgerEntry
from tuition_ledger.domain.enums import ChargeCategory, EntryKind, SettlementState
from tuition_ledger.models import Base, BaseModel


class Entry(Base, BaseModel):
    """Model representing one ledger fact (charge or payment).

    Rows are never deleted. Only settlement_state changes, and only along
    the transitions allowed by the domain (charge Open -> WrittenOff,
    payment PendingReview -> Approved | Rejected).
    """

    __tablename__ = "ledger_entries"

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
        comment="Positive amount",
    )
    occurred_on: Mapped[date] = mapped_column(
        Date,
        nullable=False,
        comment="Local calendar date of the fact",
    )
    kind: Mapped[EntryKind] = mapped_column(SQLEnum(EntryKind), nullable=False)
    settlement_state: Mapped[SettlementState] = mapped_column(
        SQLEnum(SettlementState),
        nullable=False,
    )
    category: Mapped[ChargeCategory | None] = mapped_column(
        SQLEnum(ChargeCategory),
        nullable=True,
        comment="Charge category (null for payments)",
    )
    description: Mapped[str] = mapped_column(String(500), nullable=False, default="")
    debt_record_id: Mapped[int | None] = mapped_column(
        ForeignKey("debt_records.id"),
        nullable=True,
        index=True,
        comment="Debt record a charge belongs to",
    )
    batch_id: Mapped[int | None] = mapped_column(
        ForeignKey("payment_batches.id"),
        nullable=True,
        index=True,
        comment="Batch submission an aggregate payment belongs to",
    )

    debt_record: Mapped["Debt | None"] = relationship(  # noqa: F821
        "Debt",
        back_populates="charges",
        foreign_keys=[debt_record_id],
    )

    __table_args__ = (
        Index("idx_entry_org_member", "organization_id", "member_id"),
        Index("idx_entry_member_kind_date", "member_id", "kind", "occurred_on"),
    )

    def to_domain(self) -> LedgerEntry:
        return LedgerEntry(
            id=self.id,
            organization_id=self.organization_id,
            member_id=self.member_id,
            amount=self.amount,
            occurred_on=self.occurred_on,
            kind=self.kind,
            settlement_state=self.settlement_state,
            category=self.category,
            description=self.description or "",
            debt_record_id=self.debt_record_id,
            batch_id=self.batch_id,
        )

    @classmethod
    def from_domain(cls, entry: LedgerEntry) -> "Entry":
        """Build a new row from a validated domain entry."""
        return cls(
            organization_id=entry.organization_id,
            member_id=entry.member_id,
            amount=entry.amount,
            occurred_on=entry.occurred_on,
            kind=entry.kind,
            settlement_state=entry.settlement_state,
            category=entry.category,
            description=entry.description,
            debt_record_id=entry.debt_record_id,
            batch_id=entry.batch_id,
        )

    def __repr__(self) -> str:
        return (
            f"<Entry(id={self.id}, member_id={self.member_id}, kind={self.kind}, "
            f"state={self.settlement_state}, amount={self.amount}, date={self.occurred_on})>"
        )


__all__ = ["Entry"]

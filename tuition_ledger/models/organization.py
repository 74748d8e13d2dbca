"""Organization and rank ORM models."""

from decimal import Decimal

from sqlalchemy import Boolean, ForeignKey, Index, Integer, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from tuition_ledger.domain.attendance import RankStep
from tuition_ledger.domain.scheduler import BillingConfig
from tuition_ledger.models import Base, BaseModel


class Organization(Base, BaseModel):
    """Model representing an organization (academy) and its billing configuration.

    Billing days are validated through BillingConfig.validate() before
    they are written (see BillingService.configure).
    """

    __tablename__ = "organizations"

    name: Mapped[str] = mapped_column(
        String(200),
        nullable=False,
        comment="Organization display name",
    )
    billing_day: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=1,
        comment="Day of month when monthly tuition is charged",
    )
    late_fee_day: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=10,
        comment="Day of month when late fees are charged (after billing_day)",
    )
    monthly_tuition: Mapped[Decimal] = mapped_column(
        Numeric(10, 2),
        nullable=False,
        comment="Monthly tuition amount",
    )
    late_fee_amount: Mapped[Decimal] = mapped_column(
        Numeric(10, 2),
        nullable=False,
        comment="Late fee amount",
    )
    auto_approve_cash: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
        comment="Approve cash batch payments immediately on submission",
    )

    # Relationships
    ranks: Mapped[list["Rank"]] = relationship(
        "Rank",
        back_populates="organization",
        cascade="all, delete-orphan",
        order_by="Rank.rank_order",
    )
    members: Mapped[list["Member"]] = relationship(  # noqa: F821
        "Member",
        back_populates="organization",
    )

    def to_config(self) -> BillingConfig:
        """Billing configuration as a domain value."""
        return BillingConfig(
            billing_day=self.billing_day,
            late_fee_day=self.late_fee_day,
            monthly_tuition=self.monthly_tuition,
            late_fee_amount=self.late_fee_amount,
            auto_approve_cash=self.auto_approve_cash,
        )

    def __repr__(self) -> str:
        return f"<Organization(id={self.id}, name={self.name!r})>"


class Rank(Base, BaseModel):
    """Model representing a rank and the attendance required to test for the next one."""

    __tablename__ = "ranks"

    organization_id: Mapped[int] = mapped_column(
        ForeignKey("organizations.id"),
        nullable=False,
        index=True,
    )
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    rank_order: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        comment="Position in the progression (ascending)",
    )
    required_attendance: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
        comment="Attendance tally that makes a member exam ready (0 = never)",
    )

    organization: Mapped["Organization"] = relationship(
        "Organization",
        back_populates="ranks",
    )

    __table_args__ = (
        Index("idx_rank_org_order", "organization_id", "rank_order", unique=True),
    )

    def to_domain(self) -> RankStep:
        return RankStep(
            id=self.id,
            name=self.name,
            order=self.rank_order,
            required_attendance=self.required_attendance,
        )

    def __repr__(self) -> str:
        return f"<Rank(id={self.id}, name={self.name!r}, order={self.rank_order})>"


__all__ = ["Organization", "Rank"]

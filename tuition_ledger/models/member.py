"""Member ORM model."""

from datetime import date
from decimal import Decimal

from sqlalchemy import Boolean, Date, ForeignKey, Index, Integer, Numeric, String
from sqlalchemy import Enum as SQLEnum
from sqlalchemy.orm import Mapped, mapped_column, relationship

from tuition_ledger.domain.enums import AccountStatus
from tuition_ledger.domain.scheduler import MemberSnapshot
from tuition_ledger.models import Base, BaseModel


class Member(Base, BaseModel):
    """Model representing a member of an organization.

    balance and account_status are a derived snapshot. They are written
    only by AccountService.recompute after a ledger or attendance change;
    is_inactive is the only status input edited by hand.
    """

    __tablename__ = "members"

    organization_id: Mapped[int] = mapped_column(
        ForeignKey("organizations.id"),
        nullable=False,
        index=True,
    )
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    rank_id: Mapped[int | None] = mapped_column(
        ForeignKey("ranks.id"),
        nullable=True,
        comment="Current rank",
    )
    attendance_count: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
        comment="Attendance tally since the last promotion",
    )
    is_inactive: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
        comment="Explicit inactive flag set by a master",
    )
    last_promoted_on: Mapped[date | None] = mapped_column(Date, nullable=True)

    # Derived snapshot
    balance: Mapped[Decimal] = mapped_column(
        Numeric(10, 2),
        nullable=False,
        default=Decimal("0.00"),
        comment="Derived balance (never negative)",
    )
    account_status: Mapped[AccountStatus] = mapped_column(
        SQLEnum(AccountStatus),
        nullable=False,
        default=AccountStatus.ACTIVE,
        comment="Derived account status",
    )

    # Relationships
    organization: Mapped["Organization"] = relationship(  # noqa: F821
        "Organization",
        back_populates="members",
    )
    rank: Mapped["Rank | None"] = relationship("Rank")  # noqa: F821

    __table_args__ = (Index("idx_member_org_status", "organization_id", "account_status"),)

    def to_snapshot(self) -> MemberSnapshot:
        return MemberSnapshot(
            member_id=self.id,
            account_status=self.account_status,
            balance=self.balance,
        )

    def __repr__(self) -> str:
        return (
            f"<Member(id={self.id}, name={self.name!r}, status={self.account_status}, "
            f"balance={self.balance})>"
        )


__all__ = ["Member"]

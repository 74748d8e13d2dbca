"""Billing automation marker ORM model (one row per organization)."""

from datetime import date

from sqlalchemy import Date, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column

from tuition_ledger.domain.scheduler import AutomationState
from tuition_ledger.models import Base, BaseModel


class AutomationMarker(Base, BaseModel):
    """Last run dates of the billing jobs of an organization.

    Read and conditionally written once per calendar day by
    BillingService.run_due_jobs; nothing else reads it.
    """

    __tablename__ = "billing_automation_state"

    organization_id: Mapped[int] = mapped_column(
        ForeignKey("organizations.id"),
        nullable=False,
        unique=True,
    )
    last_monthly_billing_run: Mapped[date | None] = mapped_column(Date, nullable=True)
    last_late_fee_run: Mapped[date | None] = mapped_column(Date, nullable=True)

    def to_domain(self) -> AutomationState:
        return AutomationState(
            last_monthly_billing_run=self.last_monthly_billing_run,
            last_late_fee_run=self.last_late_fee_run,
        )

    def apply_domain(self, state: AutomationState) -> None:
        self.last_monthly_billing_run = state.last_monthly_billing_run
        self.last_late_fee_run = state.last_late_fee_run

    def __repr__(self) -> str:
        return (
            f"<AutomationMarker(organization_id={self.organization_id}, "
            f"monthly={self.last_monthly_billing_run}, late_fee={self.last_late_fee_run})>"
        )


__all__ = ["AutomationMarker"]

"""Finance dashboard statistics."""

from dataclasses import replace
from datetime import date

from sqlalchemy import func
from sqlalchemy.orm import Session

from tuition_ledger.domain.enums import AccountStatus
from tuition_ledger.domain.stats import FinanceStats, summarize
from tuition_ledger.models.debt import Debt
from tuition_ledger.models.member import Member


class StatsService:
    """Read-only aggregation over an organization's debt records."""

    def __init__(self, db: Session):
        """Initialize with database session."""
        self.db = db

    def organization_stats(self, organization_id: int, since: date | None = None) -> FinanceStats:
        """Collected, pending and overdue totals plus the active member count.

        Args:
            organization_id: Organization to summarize
            since: First payment date of the collected-per-month series

        Returns:
            FinanceStats
        """
        records = [
            row.to_domain()
            for row in self.db.query(Debt).filter(Debt.organization_id == organization_id)
        ]
        active_members = (
            self.db.query(func.count(Member.id))
            .filter(
                Member.organization_id == organization_id,
                Member.account_status != AccountStatus.INACTIVE,
            )
            .scalar()
        )
        return replace(summarize(records, since), active_members=active_members or 0)


__all__ = ["StatsService"]

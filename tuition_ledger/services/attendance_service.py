"""Attendance tally and rank promotion."""

import logging
from datetime import date

from sqlalchemy.orm import Session

from tuition_ledger.domain.attendance import promote
from tuition_ledger.domain.balance import MemberAccount
from tuition_ledger.models.member import Member
from tuition_ledger.models.organization import Rank
from tuition_ledger.services.account_service import AccountService
from tuition_ledger.services.audit_service import AuditService

logger = logging.getLogger(__name__)


class AttendanceService:
    """Attendance writes. Status always goes through AccountService.recompute."""

    def __init__(self, db: Session):
        """Initialize with database session."""
        self.db = db
        self.accounts = AccountService(db)

    def record_tally(self, member_id: int, tally: int) -> MemberAccount:
        """Replace the member's attendance tally.

        Raises:
            ValueError: If member not found or tally is negative
        """
        if tally < 0:
            raise ValueError(f"Attendance tally cannot be negative, got {tally}")
        member = self.accounts.get_member(member_id)
        member.attendance_count = tally
        account = self.accounts.recompute(member_id)
        self.db.commit()
        return account

    def add_attendance(self, member_id: int, sessions: int = 1) -> MemberAccount:
        """Count attended sessions on top of the current tally."""
        member = self.accounts.get_member(member_id)
        return self.record_tally(member_id, member.attendance_count + sessions)

    def promote(self, member_id: int, promoted_on: date, actor: str | None = None) -> Member:
        """Move the member to the next rank and reset the tally.

        A debtor stays a debtor: status is re-derived from the balance
        right after the promotion resets it to Active.

        Raises:
            ValueError: If member not found or already at the highest rank
        """
        member = self.accounts.get_member(member_id)
        ranks = [rank.to_domain() for rank in member.organization.ranks]
        promotion = promote(ranks, member.rank_id)
        if promotion is None:
            raise ValueError(f"Member {member_id} already holds the highest rank")

        previous_rank_id = member.rank_id
        member.rank = self.db.get(Rank, promotion.rank.id)
        member.attendance_count = promotion.attendance_count
        member.account_status = promotion.account_status
        member.last_promoted_on = promoted_on

        AuditService.log(
            self.db,
            entity_type="member",
            entity_id=member_id,
            action="promote",
            actor=actor,
            changes={"from_rank": previous_rank_id, "to_rank": promotion.rank.id},
        )
        self.accounts.recompute(member_id)
        self.db.commit()
        logger.info(f"Member {member_id} promoted to {promotion.rank.name}")
        return member


__all__ = ["AttendanceService"]

"""Account service: re-derives member balance and status from the ledger.

There is no incremental update path. Every mutating ledger operation
calls recompute() for the affected member before committing, because
payment approval or rejection can change which entries count.
"""

import logging
from typing import Dict

from sqlalchemy.orm import Session

from tuition_ledger.domain.attendance import is_attendance_ready
from tuition_ledger.domain.balance import MemberAccount, compute_account, compute_accounts
from tuition_ledger.domain.entries import LedgerEntry
from tuition_ledger.models.entry import Entry
from tuition_ledger.models.member import Member
from tuition_ledger.services.audit_service import AuditService

logger = logging.getLogger(__name__)


class AccountService:
    """Derive and persist member account snapshots."""

    def __init__(self, db: Session):
        """Initialize with database session."""
        self.db = db

    def get_member(self, member_id: int) -> Member:
        """Get member by ID.

        Raises:
            ValueError: If member not found
        """
        member = self.db.query(Member).filter(Member.id == member_id).first()
        if not member:
            raise ValueError(f"Member {member_id} not found")
        return member

    def add_member(self, organization_id: int, name: str, rank_id: int | None = None) -> Member:
        """Register a member with an empty ledger."""
        member = Member(organization_id=organization_id, name=name, rank_id=rank_id)
        self.db.add(member)
        self.db.flush()
        self.recompute(member.id)
        self.db.commit()
        logger.info(f"Added member {member.id} ({name}) to organization {organization_id}")
        return member

    def member_entries(self, member_id: int) -> list[LedgerEntry]:
        """All ledger entries of a member as domain values."""
        rows = (
            self.db.query(Entry)
            .filter(Entry.member_id == member_id)
            .order_by(Entry.occurred_on, Entry.id)
            .all()
        )
        return [row.to_domain() for row in rows]

    def recompute(self, member_id: int) -> MemberAccount:
        """Fold the member's ledger into balance and status and store the snapshot.

        Flushes but does not commit; the caller commits with its own write.

        Args:
            member_id: Member to re-derive

        Returns:
            MemberAccount snapshot just written
        """
        self.db.flush()
        member = self.get_member(member_id)
        threshold = member.rank.required_attendance if member.rank else None

        account = compute_account(
            self.member_entries(member_id),
            attendance_ready=is_attendance_ready(member.attendance_count, threshold),
            explicit_inactive=member.is_inactive,
        )

        self._store(member, account)
        self.db.flush()
        return account

    @staticmethod
    def _store(member: Member, account: MemberAccount) -> None:
        if member.account_status != account.account_status:
            logger.info(
                f"Member {member.id} status {member.account_status.value} -> "
                f"{account.account_status.value} (balance={account.balance})"
            )
        member.balance = account.balance
        member.account_status = account.account_status

    def recompute_organization(self, organization_id: int) -> Dict[int, MemberAccount]:
        """Re-derive every member of an organization.

        Returns:
            Dict mapping member_id to MemberAccount
        """
        self.db.flush()
        members = (
            self.db.query(Member).filter(Member.organization_id == organization_id).all()
        )
        entries = [
            row.to_domain()
            for row in self.db.query(Entry).filter(Entry.organization_id == organization_id)
        ]
        accounts = compute_accounts(
            entries,
            attendance_ready={
                m.id: is_attendance_ready(
                    m.attendance_count, m.rank.required_attendance if m.rank else None
                )
                for m in members
            },
            explicit_inactive={m.id: m.is_inactive for m in members},
        )
        for member in members:
            self._store(member, accounts[member.id])
        self.db.flush()
        return {member.id: accounts[member.id] for member in members}

    def set_inactive(self, member_id: int, inactive: bool, actor: str | None = None) -> MemberAccount:
        """Set or clear the explicit inactive flag and re-derive status."""
        member = self.get_member(member_id)
        member.is_inactive = inactive
        AuditService.log(
            self.db,
            entity_type="member",
            entity_id=member_id,
            action="deactivate" if inactive else "reactivate",
            actor=actor,
        )
        account = self.recompute(member_id)
        self.db.commit()
        return account


__all__ = ["AccountService"]

"""Billing service: organization configuration and the daily automation tick.

run_due_jobs() is safe to call any number of times per day. Each member
is charged inside its own SAVEPOINT so a failure rolls back only that
member; the job marker is then left where it was and the next call
retries, skipping members already charged this month.
"""

import logging
from dataclasses import replace
from datetime import date
from decimal import Decimal
from typing import NamedTuple, Sequence

from sqlalchemy.orm import Session

from tuition_ledger.domain.debt import mark_overdue, new_debt_record
from tuition_ledger.domain.entries import LedgerEntry
from tuition_ledger.domain.enums import PAYABLE_STATES, ChargeCategory
from tuition_ledger.domain.errors import LedgerError
from tuition_ledger.domain.money import month_key
from tuition_ledger.domain.scheduler import (
    BillingConfig,
    JobResult,
    MemberSnapshot,
    run_late_fees,
    run_monthly_billing,
)
from tuition_ledger.models.automation_marker import AutomationMarker
from tuition_ledger.models.debt import Debt
from tuition_ledger.models.entry import Entry
from tuition_ledger.models.member import Member
from tuition_ledger.models.organization import Organization, Rank
from tuition_ledger.services.account_service import AccountService
from tuition_ledger.services.audit_service import AuditService
from tuition_ledger.services.config import LedgerSettings
from tuition_ledger.services.ledger_service import LedgerService

logger = logging.getLogger(__name__)


class BillingRun(NamedTuple):
    """Outcome of one automation tick."""

    monthly: JobResult
    late_fees: JobResult

    @property
    def failed(self) -> bool:
        """Any member failed in a job that ran."""
        return bool(self.monthly.failures or self.late_fees.failures)


class BillingService:
    """Organization billing configuration and scheduled charges."""

    def __init__(self, db: Session, settings: LedgerSettings | None = None):
        """Initialize billing service.

        Args:
            db: SQLAlchemy database session
            settings: Process settings (defaults for new organizations)
        """
        self.db = db
        self.settings = settings or LedgerSettings()
        self.accounts = AccountService(db)
        self.ledger = LedgerService(db)

    # ------------------------------------------------------------------
    # Configuration
    # ------------------------------------------------------------------

    def get_organization(self, organization_id: int) -> Organization:
        """Get organization by ID.

        Raises:
            ValueError: If organization not found
        """
        organization = (
            self.db.query(Organization).filter(Organization.id == organization_id).first()
        )
        if not organization:
            raise ValueError(f"Organization {organization_id} not found")
        return organization

    def create_organization(
        self,
        name: str,
        billing_day: int,
        late_fee_day: int,
        monthly_tuition: Decimal,
        late_fee_amount: Decimal,
        auto_approve_cash: bool | None = None,
        ranks: Sequence[tuple[str, int]] = (),
        actor: str | None = None,
    ) -> Organization:
        """Create an organization with a validated billing configuration.

        Args:
            auto_approve_cash: Approve cash payments on submission
                (default: AUTO_APPROVE_CASH setting)
            ranks: (name, required_attendance) pairs in progression order

        Raises:
            InvalidScheduleOrder: If the billing days are invalid
            InvalidAmount: If tuition or late fee is not positive
        """
        config = BillingConfig(
            billing_day=billing_day,
            late_fee_day=late_fee_day,
            monthly_tuition=monthly_tuition,
            late_fee_amount=late_fee_amount,
            auto_approve_cash=(
                self.settings.auto_approve_cash if auto_approve_cash is None else auto_approve_cash
            ),
        ).validate()

        organization = Organization(name=name)
        self._write_config(organization, config)
        for order, (rank_name, required_attendance) in enumerate(ranks, start=1):
            organization.ranks.append(
                Rank(name=rank_name, rank_order=order, required_attendance=required_attendance)
            )
        self.db.add(organization)
        self.db.flush()

        AuditService.log(
            self.db,
            entity_type="organization",
            entity_id=organization.id,
            action="create",
            actor=actor,
        )
        self.db.commit()
        logger.info(f"Created organization {organization.id} ({name})")
        return organization

    @staticmethod
    def _write_config(organization: Organization, config: BillingConfig) -> None:
        organization.billing_day = config.billing_day
        organization.late_fee_day = config.late_fee_day
        organization.monthly_tuition = config.monthly_tuition
        organization.late_fee_amount = config.late_fee_amount
        organization.auto_approve_cash = config.auto_approve_cash

    def configure(self, organization_id: int, actor: str | None = None, **changes) -> BillingConfig:
        """Change billing configuration fields.

        Args:
            organization_id: Organization to configure
            actor: Master making the change
            **changes: BillingConfig fields to override

        Returns:
            The validated configuration now stored

        Raises:
            ValueError: If organization not found
            TypeError: If an unknown field is given
            InvalidScheduleOrder: If the billing days are invalid
            InvalidAmount: If tuition or late fee is not positive
        """
        organization = self.get_organization(organization_id)
        previous = organization.to_config()
        config = replace(previous, **changes).validate()

        self._write_config(organization, config)
        AuditService.log(
            self.db,
            entity_type="organization",
            entity_id=organization_id,
            action="configure",
            actor=actor,
            changes={key: str(value) for key, value in changes.items()},
        )
        self.db.commit()
        logger.info(f"Organization {organization_id} billing config updated: {changes}")
        return config

    def set_rank_threshold(
        self, rank_id: int, required_attendance: int, actor: str | None = None
    ) -> Rank:
        """Change the attendance a rank requires and re-derive its members.

        Raises:
            ValueError: If rank not found or the threshold is negative
        """
        rank = self.db.get(Rank, rank_id)
        if not rank:
            raise ValueError(f"Rank {rank_id} not found")
        if required_attendance < 0:
            raise ValueError(f"required_attendance cannot be negative, got {required_attendance}")

        rank.required_attendance = required_attendance
        AuditService.log(
            self.db,
            entity_type="rank",
            entity_id=rank_id,
            action="configure",
            actor=actor,
            changes={"required_attendance": required_attendance},
        )
        for (member_id,) in self.db.query(Member.id).filter(Member.rank_id == rank_id):
            self.accounts.recompute(member_id)
        self.db.commit()
        return rank

    # ------------------------------------------------------------------
    # Automation
    # ------------------------------------------------------------------

    def get_marker(self, organization_id: int) -> AutomationMarker:
        """Load the automation marker, creating an empty one on first use."""
        marker = (
            self.db.query(AutomationMarker)
            .filter(AutomationMarker.organization_id == organization_id)
            .first()
        )
        if not marker:
            marker = AutomationMarker(organization_id=organization_id)
            self.db.add(marker)
            self.db.flush()
        return marker

    def _snapshots(self, organization_id: int) -> tuple[dict[int, Member], list[MemberSnapshot]]:
        members = (
            self.db.query(Member)
            .filter(Member.organization_id == organization_id)
            .order_by(Member.id)
            .all()
        )
        return {m.id: m for m in members}, [m.to_snapshot() for m in members]

    def _entries(self, organization_id: int) -> list[LedgerEntry]:
        return [
            row.to_domain()
            for row in self.db.query(Entry).filter(Entry.organization_id == organization_id)
        ]

    def _write_tuition(
        self, member: Member, entry: LedgerEntry, config: BillingConfig
    ) -> LedgerEntry:
        """Persist one monthly tuition charge and its non-splittable record."""
        with self.db.begin_nested():
            record = new_debt_record(
                organization_id=member.organization_id,
                member_id=member.id,
                concept=entry.description,
                category=ChargeCategory.TUITION,
                amount=entry.amount,
                due_date=entry.occurred_on.replace(day=config.late_fee_day),
                allows_partial_settlement=False,
                month_key=month_key(entry.occurred_on),
            )
            _, stored = self.ledger.add_charge(member, record, entry.occurred_on, entry.description)
            self.accounts.recompute(member.id)
        return stored.to_domain()

    def _write_late_fee(self, member: Member, entry: LedgerEntry) -> LedgerEntry:
        """Persist one late fee, as penalty on the oldest payable record already due."""
        with self.db.begin_nested():
            target = (
                self.db.query(Debt)
                .filter(
                    Debt.member_id == member.id,
                    Debt.state.in_(list(PAYABLE_STATES)),
                    Debt.due_date <= entry.occurred_on,
                )
                .order_by(Debt.due_date, Debt.id)
                .first()
            )
            if target:
                target.apply_domain(mark_overdue(target.to_domain(), entry.amount))
                stored = Entry.from_domain(replace(entry, debt_record_id=target.id))
                self.db.add(stored)
                self.db.flush()
                logger.info(f"Late fee {entry.amount} added to record {target.id} (now overdue)")
            else:
                record = new_debt_record(
                    organization_id=member.organization_id,
                    member_id=member.id,
                    concept=entry.description,
                    category=ChargeCategory.LATE_FEE,
                    amount=entry.amount,
                    due_date=entry.occurred_on,
                    allows_partial_settlement=True,
                    month_key=month_key(entry.occurred_on),
                )
                _, stored = self.ledger.add_charge(
                    member, record, entry.occurred_on, entry.description
                )
            self.accounts.recompute(member.id)
        return stored.to_domain()

    def run_due_jobs(self, organization_id: int, today: date) -> BillingRun:
        """Run monthly billing, then late fees, if due today.

        Args:
            organization_id: Organization to evaluate
            today: Local calendar date (see config.local_today)

        Returns:
            BillingRun with the result of each job

        Raises:
            ValueError: If organization not found
            LedgerError: If the stored billing configuration is invalid
        """
        organization = self.get_organization(organization_id)
        try:
            config = organization.to_config().validate()
        except LedgerError as e:
            logger.error(f"Organization {organization_id} has an invalid billing config: {e}")
            raise

        marker = self.get_marker(organization_id)
        self.accounts.recompute_organization(organization_id)

        members, snapshots = self._snapshots(organization_id)
        monthly = run_monthly_billing(
            today,
            organization_id,
            config,
            marker.to_domain(),
            snapshots,
            self._entries(organization_id) if today.day == config.billing_day else [],
            lambda member, entry: self._write_tuition(members[member.member_id], entry, config),
        )
        marker.apply_domain(monthly.state)

        members, snapshots = self._snapshots(organization_id)
        late_fees = run_late_fees(
            today,
            organization_id,
            config,
            monthly.state,
            snapshots,
            self._entries(organization_id) if today.day == config.late_fee_day else [],
            lambda member, entry: self._write_late_fee(members[member.member_id], entry),
        )
        marker.apply_domain(late_fees.state)

        self.db.commit()
        if not (monthly.ran or late_fees.ran):
            logger.debug(f"No billing job due for organization {organization_id} on {today}")
        return BillingRun(monthly=monthly, late_fees=late_fees)


__all__ = ["BillingRun", "BillingService"]

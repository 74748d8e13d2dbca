"""Session-bound services over the ledger core."""

from tuition_ledger.services.account_service import AccountService
from tuition_ledger.services.attendance_service import AttendanceService
from tuition_ledger.services.audit_service import AuditService
from tuition_ledger.services.billing_service import BillingRun, BillingService
from tuition_ledger.services.ledger_service import LedgerService
from tuition_ledger.services.payment_service import PaymentService
from tuition_ledger.services.stats_service import StatsService

__all__ = [
    "AccountService",
    "AttendanceService",
    "AuditService",
    "BillingRun",
    "BillingService",
    "LedgerService",
    "PaymentService",
    "StatsService",
]

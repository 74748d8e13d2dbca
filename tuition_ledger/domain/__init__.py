"""Pure ledger core: balance derivation, debt lifecycle, batch payments,
billing automation and attendance coupling. No I/O."""

from tuition_ledger.domain.balance import MemberAccount, compute_account, compute_accounts
from tuition_ledger.domain.batch import (
    Allocation,
    BatchQuote,
    allocate_batch_payment,
    submit_batch,
    validate_batch_amount,
)
from tuition_ledger.domain.debt import (
    AmountBreakdown,
    DebtRecord,
    PaymentHistoryItem,
    ProofOfPayment,
    adjust_total,
    apply_payment,
    approve,
    reconstruct_amounts,
    reject,
    submit_for_review,
)
from tuition_ledger.domain.entries import LedgerEntry
from tuition_ledger.domain.enums import (
    AccountStatus,
    ChargeCategory,
    DebtState,
    EntryKind,
    PaymentMethod,
    SettlementState,
)
from tuition_ledger.domain.errors import (
    InsufficientForMandatory,
    InvalidAdjustment,
    InvalidAmount,
    InvalidEntry,
    InvalidScheduleOrder,
    LedgerError,
    StaleRecord,
)
from tuition_ledger.domain.scheduler import (
    AutomationState,
    BillingConfig,
    run_late_fees,
    run_monthly_billing,
)

__all__ = [
    "MemberAccount",
    "compute_account",
    "compute_accounts",
    "Allocation",
    "BatchQuote",
    "allocate_batch_payment",
    "submit_batch",
    "validate_batch_amount",
    "AmountBreakdown",
    "DebtRecord",
    "PaymentHistoryItem",
    "ProofOfPayment",
    "adjust_total",
    "apply_payment",
    "approve",
    "reconstruct_amounts",
    "reject",
    "submit_for_review",
    "LedgerEntry",
    "AccountStatus",
    "ChargeCategory",
    "DebtState",
    "EntryKind",
    "PaymentMethod",
    "SettlementState",
    "InsufficientForMandatory",
    "InvalidAdjustment",
    "InvalidAmount",
    "InvalidEntry",
    "InvalidScheduleOrder",
    "LedgerError",
    "StaleRecord",
    "AutomationState",
    "BillingConfig",
    "run_late_fees",
    "run_monthly_billing",
]

"""Declarative role allow-lists for every tenant-scoped operation."""

from dataclasses import dataclass

from src.core.auth.models import UserRole

_ADMIN = (UserRole.APP_ADMIN, UserRole.SCHOOL_ADMIN)
BILLING = frozenset({*_ADMIN, UserRole.BURSAR})
PAYERS = frozenset({*BILLING, UserRole.PARENT})
ACADEMIC_STAFF = frozenset({*_ADMIN, UserRole.TEACHER})
RESULT_READERS = frozenset({*ACADEMIC_STAFF, UserRole.PARENT})
ADMINS = frozenset(_ADMIN)


@dataclass(frozen=True)
class OperationPolicy:
    """roles=None admits any caller, anonymous ones included."""

    roles: frozenset[UserRole] | None
    mutation: bool


OPERATION_POLICIES: dict[str, OperationPolicy] = {
    # Invoices
    "createInvoice": OperationPolicy(BILLING, mutation=True),
    "generateClassInvoices": OperationPolicy(BILLING, mutation=True),
    "selectInvoiceOptionalItems": OperationPolicy(PAYERS, mutation=True),
    "createFeeAdjustment": OperationPolicy(BILLING, mutation=True),
    "getInvoice": OperationPolicy(PAYERS, mutation=False),
    "invoicesByStudent": OperationPolicy(PAYERS, mutation=False),
    "invoiceByNumber": OperationPolicy(None, mutation=False),
    "defaultersByClass": OperationPolicy(BILLING, mutation=False),
    "listInstallments": OperationPolicy(PAYERS, mutation=False),
    # Payments
    "createPaymentIntent": OperationPolicy(PAYERS, mutation=True),
    "submitManualPaymentProof": OperationPolicy(PAYERS, mutation=True),
    "reviewManualPaymentProof": OperationPolicy(BILLING, mutation=True),
    "paymentsByInvoice": OperationPolicy(PAYERS, mutation=False),
    # Receipts
    "receiptByNumber": OperationPolicy(PAYERS, mutation=False),
    "attachReceiptUrl": OperationPolicy(BILLING, mutation=True),
    # Fee schedule store
    "manageFees": OperationPolicy(BILLING, mutation=True),
    "readFees": OperationPolicy(BILLING, mutation=False),
    # Academic reference data
    "manageAcademics": OperationPolicy(ADMINS, mutation=True),
    "readAcademics": OperationPolicy(frozenset({*BILLING, UserRole.TEACHER}), mutation=False),
    # Results
    "manageResultPolicy": OperationPolicy(ADMINS, mutation=True),
    "readResultPolicy": OperationPolicy(BILLING, mutation=False),
    "upsertReportCard": OperationPolicy(ACADEMIC_STAFF, mutation=True),
    "publishResultReady": OperationPolicy(ACADEMIC_STAFF, mutation=True),
    "reportCardsByStudentTerm": OperationPolicy(RESULT_READERS, mutation=False),
    # Operations
    "auditLog": OperationPolicy(BILLING, mutation=False),
    "queueStats": OperationPolicy(ADMINS, mutation=False),
    "redriveDeadLetters": OperationPolicy(ADMINS, mutation=True),
    "overdueScan": OperationPolicy(BILLING, mutation=True),
}

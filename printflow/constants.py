"""Status values, party roles, and document number formats.

Stored as plain strings in the database; the classes below are namespaces.
"""


class CompanyRole:
    BROKER = "BROKER"
    INTERMEDIARY = "INTERMEDIARY"
    PRODUCER = "PRODUCER"
    CUSTOMER = "CUSTOMER"
    ALL = (BROKER, INTERMEDIARY, PRODUCER, CUSTOMER)


class RoutingType:
    STANDARD = "STANDARD"
    THIRD_PARTY_VENDOR = "THIRD_PARTY_VENDOR"
    ALL = (STANDARD, THIRD_PARTY_VENDOR)


class HopKey:
    BROKER_TO_INTERMEDIARY = "BROKER_TO_INTERMEDIARY"
    INTERMEDIARY_TO_PRODUCER = "INTERMEDIARY_TO_PRODUCER"
    BROKER_TO_VENDOR = "BROKER_TO_VENDOR"


class JobStatus:
    PENDING = "PENDING"
    READY_FOR_PROOF = "READY_FOR_PROOF"
    PROOF_APPROVED = "PROOF_APPROVED"
    IN_PRODUCTION = "IN_PRODUCTION"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"
    TERMINAL = (COMPLETED, CANCELLED)
    ALL = (PENDING, READY_FOR_PROOF, PROOF_APPROVED, IN_PRODUCTION, COMPLETED, CANCELLED)


# Allowed job transitions; CANCELLED is added for every non-terminal state.
JOB_TRANSITIONS = {
    JobStatus.PENDING: {JobStatus.READY_FOR_PROOF, JobStatus.COMPLETED},
    JobStatus.READY_FOR_PROOF: {
        JobStatus.READY_FOR_PROOF,
        JobStatus.PROOF_APPROVED,
        JobStatus.IN_PRODUCTION,
        JobStatus.COMPLETED,
    },
    JobStatus.PROOF_APPROVED: {
        JobStatus.READY_FOR_PROOF,
        JobStatus.IN_PRODUCTION,
        JobStatus.COMPLETED,
    },
    JobStatus.IN_PRODUCTION: {JobStatus.READY_FOR_PROOF, JobStatus.COMPLETED},
    JobStatus.COMPLETED: set(),
    JobStatus.CANCELLED: set(),
}


class ProofStatus:
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    CHANGES_REQUESTED = "CHANGES_REQUESTED"


class POStatus:
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    RECEIVED = "RECEIVED"
    CANCELLED = "CANCELLED"
    ALL = (PENDING, CONFIRMED, RECEIVED, CANCELLED)


class FileKind:
    ARTWORK = "ARTWORK"
    DATA_FILE = "DATA_FILE"
    PROOF = "PROOF"
    INVOICE = "INVOICE"
    PO_PDF = "PO_PDF"
    ALL = (ARTWORK, DATA_FILE, PROOF, INVOICE, PO_PDF)


class NotificationType:
    PROOF_READY = "PROOF_READY"
    PROOF_APPROVED = "PROOF_APPROVED"
    CHANGES_REQUESTED = "CHANGES_REQUESTED"
    INVOICE_SENT = "INVOICE_SENT"
    PO_CREATED = "PO_CREATED"
    JOB_READY_FOR_PRODUCTION = "JOB_READY_FOR_PRODUCTION"
    JOB_SUBMITTED_CONFIRMATION = "JOB_SUBMITTED_CONFIRMATION"
    VENDOR_JOB_READY = "VENDOR_JOB_READY"
    JOB_COMPLETED = "JOB_COMPLETED"
    JOB_UPDATED = "JOB_UPDATED"
    JOB_DELETED = "JOB_DELETED"
    JOB_CANCELLED = "JOB_CANCELLED"
    PO_UPDATED = "PO_UPDATED"
    INVOICE_UPDATED = "INVOICE_UPDATED"
    INVOICE_PAID = "INVOICE_PAID"


class NotificationStatus:
    PENDING = "PENDING"
    SENT = "SENT"
    FAILED = "FAILED"


class AttachmentKind:
    INVOICE = "INVOICE"
    PURCHASE_ORDER = "PURCHASE_ORDER"


class WebhookSource:
    INTERMEDIARY = "INTERMEDIARY"


# ── Document numbers ─────────────────────────────────────────────────

JOB_NUMBER_PREFIX = "J"
INVOICE_NUMBER_PREFIX = "INV"
NUMBER_WIDTH = 6

# Fallback PO number prefixes, by origin of the hop
BROKER_PO_PREFIX = "IMP"
INTERMEDIARY_PO_PREFIX = "BRA"

"""
exceptions.py — Settlement error taxonomy

Business Rules:
- ValidationError and its subclasses surface to the caller as 4xx
- NotFoundError surfaces as 404
- ConflictError never reaches a client; ensure_* operations convert it
  into "already exists"
- DeliveryError is logged and recorded on the notification, never
  propagated into a ledger transaction
- ExtractionError falls back to a generated PO number

Called by: services/*, main.py (exception handlers)
Depends on: nothing
"""


class SettlementError(Exception):
    """Base class for all settlement engine errors."""

    status_code = 500

    def __init__(self, message: str = "", **context):
        super().__init__(message)
        self.message = message
        self.context = context


class ValidationError(SettlementError):
    status_code = 422


class InvalidRoutingError(ValidationError):
    pass


class MissingAmountError(ValidationError):
    pass


class InvalidTransitionError(ValidationError):
    status_code = 409


class InvalidPONumberError(ValidationError):
    pass


class NotFoundError(SettlementError):
    status_code = 404


class ConflictError(SettlementError):
    status_code = 409


class InvariantViolationError(SettlementError):
    status_code = 500


class DeliveryError(SettlementError):
    status_code = 502


class ExtractionError(SettlementError):
    status_code = 422

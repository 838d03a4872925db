"""
Typed errors for the sales process services.

Callers catch by type, not by message:

    SalesFlowError
    +-- NotFoundError
    |   +-- ProcessNotFoundError, ContactNotFoundError, QuotationNotFoundError,
    |       SalesOrderNotFoundError, PurchaseOrderNotFoundError,
    |       DeliveryNotFoundError, InvoiceNotFoundError, PaymentNotFoundError
    +-- InvalidDataError
    |   +-- InvalidTransitionError
    |   +-- InvalidPaginationError
    |   +-- InvalidStageError
    +-- RelatedRecordsExistError
    +-- StoreFailure
        +-- ConcurrencyConflictError
"""

from __future__ import annotations


class SalesFlowError(Exception):
    """Base error. Carries a machine-readable code and structured details."""
    code = "SALES_FLOW_ERROR"

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict:
        return {"code": self.code, "message": self.message, "details": self.details}


class NotFoundError(SalesFlowError):
    code = "NOT_FOUND"
    entity = "record"

    def __init__(self, entity_id: int | None = None, message: str | None = None):
        self.entity_id = entity_id
        if message is None:
            message = f"{self.entity} not found"
            if entity_id is not None:
                message = f"{self.entity} {entity_id} not found"
        super().__init__(message, details={"entity": self.entity, "id": entity_id})


class ProcessNotFoundError(NotFoundError):
    code = "PROCESS_NOT_FOUND"
    entity = "Sales process"


class ContactNotFoundError(NotFoundError):
    code = "CONTACT_NOT_FOUND"
    entity = "Contact"


class QuotationNotFoundError(NotFoundError):
    code = "QUOTATION_NOT_FOUND"
    entity = "Quotation"


class SalesOrderNotFoundError(NotFoundError):
    code = "SALES_ORDER_NOT_FOUND"
    entity = "Sales order"


class PurchaseOrderNotFoundError(NotFoundError):
    code = "PURCHASE_ORDER_NOT_FOUND"
    entity = "Purchase order"


class DeliveryNotFoundError(NotFoundError):
    code = "DELIVERY_NOT_FOUND"
    entity = "Delivery"


class InvoiceNotFoundError(NotFoundError):
    code = "INVOICE_NOT_FOUND"
    entity = "Invoice"


class PaymentNotFoundError(NotFoundError):
    code = "PAYMENT_NOT_FOUND"
    entity = "Payment"


class InvalidDataError(SalesFlowError, ValueError):
    """Input or business-rule violation (400-level)."""
    code = "INVALID_DATA"


class InvalidTransitionError(InvalidDataError):
    """A status change the process state machine does not define."""
    code = "INVALID_TRANSITION"

    def __init__(self, current_status: str, event: str, message: str | None = None):
        self.current_status = current_status
        self.event = event
        super().__init__(
            message or f"Cannot apply '{event}' to a process in status '{current_status}'",
            details={"current_status": current_status, "event": event},
        )


class InvalidPaginationError(InvalidDataError):
    code = "INVALID_PAGINATION"


class InvalidStageError(InvalidDataError):
    code = "INVALID_STAGE"


class RelatedRecordsExistError(SalesFlowError):
    """Delete refused because other records still reference the row."""
    code = "RELATED_RECORDS_EXIST"


class StoreFailure(SalesFlowError):
    """Underlying persistence error, wrapped with the operation that failed."""
    code = "STORE_FAILURE"

    def __init__(self, operation: str, cause: BaseException | None = None):
        self.operation = operation
        self.cause = cause
        message = f"Failed to {operation}"
        if cause is not None:
            message = f"{message}: {cause}"
        super().__init__(message, details={"operation": operation})


class ConcurrencyConflictError(StoreFailure):
    """The process row changed underneath this operation (optimistic version check)."""
    code = "CONCURRENCY_CONFLICT"

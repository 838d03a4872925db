# Overview: Per-entity data access for contacts and commercial documents.

"""
Document stores.

WHY: The orchestration services never query document tables directly; they
go through one DocumentStore per entity. A store is constructed with the
session it uses, so tests (or another process boundary) can hand in any
session instead of a process-wide singleton.

Each store offers the conventional contract: get_by_id, create, update,
delete, count and a paginated list, plus the lookups flow assembly needs
(find_by_contact, find_by_sales_order, find_by_invoice).
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from sqlalchemy.orm import Session

from ..errors import (
    ContactNotFoundError,
    DeliveryNotFoundError,
    InvalidDataError,
    InvoiceNotFoundError,
    NotFoundError,
    PaymentNotFoundError,
    PurchaseOrderNotFoundError,
    QuotationNotFoundError,
    RelatedRecordsExistError,
    SalesOrderNotFoundError,
)
from ..extensions import db
from ..models import (
    Contact,
    Delivery,
    Invoice,
    Payment,
    ProcessDelivery,
    ProcessInvoice,
    ProcessPurchaseOrder,
    ProcessQuotation,
    ProcessSalesOrder,
    PurchaseOrder,
    Quotation,
    SalesOrder,
    SalesProcess,
)
from ..models.contacts import CONTACT_TYPES, PERSON_TYPES
from ..models.documents import (
    DELIVERY_STATUSES,
    INVOICE_STATUSES,
    PURCHASE_ORDER_STATUSES,
    QUOTATION_STATUSES,
    SALES_ORDER_STATUSES,
)
from ..pagination import PaginatedResult, PaginationParams, paginate
from .concurrency import atomic, store_errors


class DocumentStore:
    """Data access for one document model."""

    def __init__(
        self,
        session: Session,
        model,
        not_found_error: type[NotFoundError],
        dependents: tuple = (),
        choices: dict | None = None,
    ):
        self.session = session
        self.model = model
        self.not_found_error = not_found_error
        # (model, column) pairs that reference this model's id
        self.dependents = dependents
        # column name -> allowed values
        self.choices = choices or {}
        self._name = model.__tablename__

    # -- reads ---------------------------------------------------------------

    def get_by_id(self, doc_id: int):
        """Load one row or raise the store's typed not-found error."""
        if not doc_id or doc_id < 1:
            raise self.not_found_error(doc_id)
        with store_errors(f"load {self._name} {doc_id}"):
            doc = self.session.get(self.model, doc_id)
        if doc is None:
            raise self.not_found_error(doc_id)
        return doc

    def find_by_ids(self, doc_ids) -> list:
        """Rows for the given ids, oldest first. Missing ids are skipped."""
        doc_ids = list(doc_ids)
        if not doc_ids:
            return []
        with store_errors(f"load {self._name}"):
            return (
                self.session.query(self.model)
                .filter(self.model.id.in_(doc_ids))
                .order_by(self.model.created_at.asc(), self.model.id.asc())
                .all()
            )

    def find_by_contact(self, contact_id: int):
        """Most recent document of this contact, or None."""
        self._require_column("contact_id")
        with store_errors(f"find {self._name} by contact {contact_id}"):
            return (
                self.session.query(self.model)
                .filter(self.model.contact_id == contact_id)
                .order_by(self.model.created_at.desc(), self.model.id.desc())
                .first()
            )

    def find_by_sales_order(self, sales_order_id: int) -> list:
        self._require_column("sales_order_id")
        with store_errors(f"find {self._name} by sales order {sales_order_id}"):
            return (
                self.session.query(self.model)
                .filter(self.model.sales_order_id == sales_order_id)
                .order_by(self.model.created_at.asc(), self.model.id.asc())
                .all()
            )

    def find_by_invoice(self, invoice_id: int) -> list:
        self._require_column("invoice_id")
        order_col = getattr(self.model, "payment_date", self.model.id)
        with store_errors(f"find {self._name} by invoice {invoice_id}"):
            return (
                self.session.query(self.model)
                .filter(self.model.invoice_id == invoice_id)
                .order_by(order_col.asc(), self.model.id.asc())
                .all()
            )

    def count(self, **filters: Any) -> int:
        with store_errors(f"count {self._name}"):
            return self.session.query(self.model).filter_by(**filters).count()

    def list(self, params: PaginationParams | None = None, **filters: Any) -> PaginatedResult:
        query = (
            self.session.query(self.model)
            .filter_by(**filters)
            .order_by(self.model.created_at.desc(), self.model.id.desc())
        )
        with store_errors(f"list {self._name}"):
            return paginate(query, params)

    # -- writes --------------------------------------------------------------

    def create(self, **fields: Any):
        self._reject_unknown(fields)
        self._check_choices(fields)
        with atomic(self.session, f"create {self._name}"):
            doc = self.model(**fields)
            self.session.add(doc)
        return doc

    def update(self, doc_id: int, **fields: Any):
        self._reject_unknown(fields)
        self._check_choices(fields)
        fields.pop("id", None)
        with atomic(self.session, f"update {self._name} {doc_id}"):
            doc = self.get_by_id(doc_id)
            for key, value in fields.items():
                setattr(doc, key, value)
        return doc

    def delete(self, doc_id: int) -> None:
        with atomic(self.session, f"delete {self._name} {doc_id}"):
            doc = self.get_by_id(doc_id)
            blocking = [
                dep_model.__tablename__
                for dep_model, column in self.dependents
                if self.session.query(dep_model).filter(column == doc_id).first() is not None
            ]
            if blocking:
                raise RelatedRecordsExistError(
                    f"Cannot delete {self._name} {doc_id}: referenced by {', '.join(blocking)}",
                    details={"id": doc_id, "referenced_by": blocking},
                )
            self.session.delete(doc)

    # -- helpers -------------------------------------------------------------

    def _require_column(self, name: str) -> None:
        if not hasattr(self.model, name):
            raise InvalidDataError(f"{self._name} has no {name} column")

    def _reject_unknown(self, fields: dict) -> None:
        columns = {c.key for c in self.model.__mapper__.columns}
        relationships = {r.key for r in self.model.__mapper__.relationships}
        unknown = set(fields) - columns - relationships
        if unknown:
            raise InvalidDataError(
                f"Unknown fields for {self._name}: {', '.join(sorted(unknown))}",
                details={"fields": sorted(unknown)},
            )

    def _check_choices(self, fields: dict) -> None:
        for column, allowed in self.choices.items():
            if column in fields and fields[column] not in allowed:
                raise InvalidDataError(
                    f"Invalid {column} '{fields[column]}' for {self._name}. Must be one of: {', '.join(allowed)}",
                    details={"field": column, "value": fields[column]},
                )


@dataclass
class DocumentStores:
    """One store per entity, bound to the same session."""
    contacts: DocumentStore
    quotations: DocumentStore
    sales_orders: DocumentStore
    purchase_orders: DocumentStore
    deliveries: DocumentStore
    invoices: DocumentStore
    payments: DocumentStore

    @classmethod
    def from_session(cls, session: Session | None = None) -> "DocumentStores":
        session = session or db.session
        return cls(
            contacts=DocumentStore(
                session, Contact, ContactNotFoundError,
                choices={"type": CONTACT_TYPES, "person_type": PERSON_TYPES},
                dependents=(
                    (SalesProcess, SalesProcess.contact_id),
                    (Quotation, Quotation.contact_id),
                    (SalesOrder, SalesOrder.contact_id),
                    (PurchaseOrder, PurchaseOrder.contact_id),
                    (Invoice, Invoice.contact_id),
                ),
            ),
            quotations=DocumentStore(
                session, Quotation, QuotationNotFoundError,
                choices={"status": QUOTATION_STATUSES},
                dependents=(
                    (SalesOrder, SalesOrder.quotation_id),
                    (ProcessQuotation, ProcessQuotation.quotation_id),
                ),
            ),
            sales_orders=DocumentStore(
                session, SalesOrder, SalesOrderNotFoundError,
                choices={"status": SALES_ORDER_STATUSES},
                dependents=(
                    (PurchaseOrder, PurchaseOrder.sales_order_id),
                    (Delivery, Delivery.sales_order_id),
                    (Invoice, Invoice.sales_order_id),
                    (ProcessSalesOrder, ProcessSalesOrder.sales_order_id),
                ),
            ),
            purchase_orders=DocumentStore(
                session, PurchaseOrder, PurchaseOrderNotFoundError,
                choices={"status": PURCHASE_ORDER_STATUSES},
                dependents=(
                    (Delivery, Delivery.purchase_order_id),
                    (ProcessPurchaseOrder, ProcessPurchaseOrder.purchase_order_id),
                ),
            ),
            deliveries=DocumentStore(
                session, Delivery, DeliveryNotFoundError,
                choices={"status": DELIVERY_STATUSES},
                dependents=((ProcessDelivery, ProcessDelivery.delivery_id),),
            ),
            invoices=DocumentStore(
                session, Invoice, InvoiceNotFoundError,
                choices={"status": INVOICE_STATUSES},
                dependents=(
                    (Payment, Payment.invoice_id),
                    (ProcessInvoice, ProcessInvoice.invoice_id),
                ),
            ),
            payments=DocumentStore(session, Payment, PaymentNotFoundError),
        )

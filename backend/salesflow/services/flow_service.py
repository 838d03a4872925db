# Overview: Assembles the complete document flow and timeline of one sales process.

"""
Complete Process Flow

WHY: Callers want one view of an engagement: the process, every document
linked to it, the payments received against its invoices and a timeline.

RESOLUTION:
- Link tables are authoritative. Quotation and sales order are the most
  recently linked ones; purchase orders, deliveries and invoices are all
  linked ones (oldest first); payments come through each invoice.
- With SALES_PROCESS_CONTACT_FALLBACK on, a kind with no links falls back to
  the legacy lookup (latest quotation/sales order of the contact, the rest by
  the resolved sales order).

FAILURE POLICY:
- The process itself is essential: not-found and store failures propagate.
- Every other sub-query that fails with StoreFailure is logged at WARNING
  and left empty.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable

from sqlalchemy.orm import Session

from ..config import config_value
from ..errors import StoreFailure
from ..extensions import db
from ..logging_config import LogContext, get_logger
from ..models import Delivery, Invoice, Payment, PurchaseOrder, Quotation, SalesOrder, SalesProcess
from .document_store import DocumentStores
from .process_store import SalesProcessStore
from .timeline import (
    ProcessEvent,
    ProcessTimeline,
    build_milestones,
    build_timeline,
    timeline_duration_days,
)

logger = get_logger("services.flow")


@dataclass
class CompleteProcessFlow:
    process: SalesProcess
    quotation: Quotation | None = None
    sales_order: SalesOrder | None = None
    purchase_orders: list[PurchaseOrder] = field(default_factory=list)
    deliveries: list[Delivery] = field(default_factory=list)
    invoices: list[Invoice] = field(default_factory=list)
    payments: list[Payment] = field(default_factory=list)
    timeline: list[ProcessEvent] = field(default_factory=list)
    relationships: list[dict] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "process": self.process.to_dict(),
            "quotation": self.quotation.to_dict() if self.quotation else None,
            "sales_order": self.sales_order.to_dict() if self.sales_order else None,
            "purchase_orders": [po.to_dict() for po in self.purchase_orders],
            "deliveries": [d.to_dict() for d in self.deliveries],
            "invoices": [i.to_dict() for i in self.invoices],
            "payments": [p.to_dict() for p in self.payments],
            "timeline": [e.to_dict() for e in self.timeline],
            "relationships": self.relationships,
        }


def _relationship(from_kind: str, from_id: int, to_kind: str, to_id: int) -> dict:
    return {"from_type": from_kind, "from_id": from_id, "to_type": to_kind, "to_id": to_id}


def build_relationships(flow: CompleteProcessFlow) -> list[dict]:
    """Document-to-document links of the flow, derived from foreign keys."""
    rels: list[dict] = []
    q, so = flow.quotation, flow.sales_order
    so_ids = {so.id} if so is not None else set()
    po_ids = {po.id for po in flow.purchase_orders}

    if q is not None and so is not None and so.quotation_id == q.id:
        rels.append(_relationship("quotation", q.id, "sales_order", so.id))
    for po in flow.purchase_orders:
        if po.sales_order_id in so_ids:
            rels.append(_relationship("sales_order", po.sales_order_id, "purchase_order", po.id))
    for delivery in flow.deliveries:
        if delivery.sales_order_id in so_ids:
            rels.append(_relationship("sales_order", delivery.sales_order_id, "delivery", delivery.id))
        if delivery.purchase_order_id in po_ids:
            rels.append(_relationship("purchase_order", delivery.purchase_order_id, "delivery", delivery.id))
    for invoice in flow.invoices:
        if invoice.sales_order_id in so_ids:
            rels.append(_relationship("sales_order", invoice.sales_order_id, "invoice", invoice.id))
    for payment in flow.payments:
        rels.append(_relationship("invoice", payment.invoice_id, "payment", payment.id))
    return rels


class ProcessFlowService:

    def __init__(
        self,
        session: Session | None = None,
        stores: DocumentStores | None = None,
        processes: SalesProcessStore | None = None,
        contact_fallback: bool | None = None,
    ):
        self.session = session or db.session
        self.stores = stores or DocumentStores.from_session(self.session)
        self.processes = processes or SalesProcessStore(self.session)
        self._contact_fallback = contact_fallback

    @property
    def contact_fallback(self) -> bool:
        if self._contact_fallback is not None:
            return self._contact_fallback
        return bool(config_value("SALES_PROCESS_CONTACT_FALLBACK", False))

    def get_complete_process_flow(self, process_id: int) -> CompleteProcessFlow:
        with LogContext.bind(process_id=process_id, operation="get_complete_process_flow"):
            process = self.processes.get(process_id)
            flow = CompleteProcessFlow(process=process)

            flow.quotation = self._optional(
                "quotation", lambda: self._latest_linked(process, "quotation", self.stores.quotations)
            )
            flow.sales_order = self._optional(
                "sales order", lambda: self._latest_linked(process, "sales_order", self.stores.sales_orders)
            )
            flow.purchase_orders = self._optional(
                "purchase orders",
                lambda: self._all_linked(process, "purchase_order", self.stores.purchase_orders, flow.sales_order),
                default=[],
            )
            flow.deliveries = self._optional(
                "deliveries",
                lambda: self._all_linked(process, "delivery", self.stores.deliveries, flow.sales_order),
                default=[],
            )
            flow.invoices = self._optional(
                "invoices",
                lambda: self._all_linked(process, "invoice", self.stores.invoices, flow.sales_order),
                default=[],
            )
            for invoice in flow.invoices:
                flow.payments.extend(
                    self._optional(
                        f"payments of invoice {invoice.id}",
                        lambda: self.stores.payments.find_by_invoice(invoice.id),
                        default=[],
                    )
                )

            flow.timeline = build_timeline(flow)
            flow.relationships = build_relationships(flow)
        return flow

    def get_process_timeline(self, process_id: int) -> ProcessTimeline:
        flow = self.get_complete_process_flow(process_id)
        return ProcessTimeline(
            process_id=flow.process.id,
            current_status=flow.process.status,
            events=flow.timeline,
            duration_days=timeline_duration_days(flow.timeline),
            milestones=build_milestones(flow.timeline, flow.process),
        )

    # -- resolution ----------------------------------------------------------

    def _latest_linked(self, process: SalesProcess, kind: str, store):
        ids = self.processes.linked_ids(process.id, kind)
        if ids:
            # linked_ids is in link order; the last one wins
            docs = store.find_by_ids(ids[-1:])
            return docs[0] if docs else None
        if self.contact_fallback:
            return store.find_by_contact(process.contact_id)
        return None

    def _all_linked(self, process: SalesProcess, kind: str, store, sales_order) -> list:
        ids = self.processes.linked_ids(process.id, kind)
        if ids:
            return store.find_by_ids(ids)
        if self.contact_fallback and sales_order is not None:
            return store.find_by_sales_order(sales_order.id)
        return []

    def _optional(self, label: str, load: Callable[[], Any], default: Any = None) -> Any:
        try:
            return load()
        except StoreFailure as exc:
            logger.warning(
                "could not load %s for process flow", label,
                extra={"error": str(exc)},
            )
            return default

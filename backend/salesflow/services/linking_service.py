# Overview: Service-layer operations for sales process lifecycle and document linking.

"""
Process Linking Engine

WHY: A sales process advances as the business attaches documents to it.
Each link call validates both ends, records the link row once, and lets the
state machine in process_states.py decide the new status.

All mutations run inside concurrency.atomic(): the process row is read
FOR UPDATE, checks and writes share one transaction, and the SalesProcess
version column rejects a concurrent overwrite of value/profit.
"""

from __future__ import annotations

from sqlalchemy.orm import Session

from ..errors import InvalidDataError
from ..extensions import db
from ..logging_config import LogContext, get_logger
from ..models import SalesProcess
from ..time_utils import utcnow
from . import process_states as states
from .concurrency import atomic
from .document_store import DocumentStore, DocumentStores
from .process_store import SalesProcessStore

logger = get_logger("services.linking")


class ProcessLinkingService:

    def __init__(
        self,
        session: Session | None = None,
        stores: DocumentStores | None = None,
        processes: SalesProcessStore | None = None,
    ):
        self.session = session or db.session
        self.stores = stores or DocumentStores.from_session(self.session)
        self.processes = processes or SalesProcessStore(self.session)

    # =========================================================================
    # Process lifecycle
    # =========================================================================

    def create_process(self, contact_id: int, notes: str | None = None) -> SalesProcess:
        """Create an empty draft process for a contact."""
        with atomic(self.session, f"create sales process for contact {contact_id}"):
            contact = self.stores.contacts.get_by_id(contact_id)
            process = self.processes.add(
                SalesProcess(
                    contact_id=contact.id,
                    status=states.DRAFT,
                    total_value_cents=0,
                    profit_cents=0,
                    notes=notes,
                )
            )
        logger.info("sales process created", extra={"process_id": process.id, "contact_id": contact_id})
        return process

    def initiate_from_quotation(self, quotation_id: int) -> SalesProcess:
        """
        Start a process from an existing quotation.

        The quotation link is written in the same transaction, so flow
        assembly finds it through the link table like any other document.
        """
        with atomic(self.session, f"initiate sales process from quotation {quotation_id}"):
            quotation = self.stores.quotations.get_by_id(quotation_id)
            process = self.processes.add(
                SalesProcess(
                    contact_id=quotation.contact_id,
                    status=states.next_status(states.DRAFT, states.QUOTATION_LINKED),
                    total_value_cents=quotation.grand_total_cents,
                    profit_cents=0,
                    notes=f"Process initiated from quotation {quotation.document_number}",
                )
            )
            self.processes.add_link(process.id, "quotation", quotation.id)
        logger.info(
            "sales process initiated from quotation",
            extra={"process_id": process.id, "quotation_id": quotation_id},
        )
        return process

    def update_process(
        self,
        process_id: int,
        *,
        notes: str | None = None,
        contact_id: int | None = None,
    ) -> SalesProcess:
        """
        Edit client-owned fields.

        Status, total value and profit are derived and cannot be set here.
        The contact can only change while the process is still a draft.
        """
        with atomic(self.session, f"update sales process {process_id}"):
            process = self.processes.get_for_update(process_id)
            if contact_id is not None and contact_id != process.contact_id:
                if process.status != states.DRAFT:
                    raise InvalidDataError(
                        "Contact can only be changed on draft processes",
                        details={"process_id": process_id, "status": process.status},
                    )
                process.contact_id = self.stores.contacts.get_by_id(contact_id).id
            if notes is not None:
                process.notes = notes
        return process

    def update_process_status(self, process_id: int, status: str) -> SalesProcess:
        """
        Explicit status change (cancel, or a manual forward move such as payment).

        Raises:
            InvalidDataError: unknown status
            InvalidTransitionError: backward move or move out of a terminal state
        """
        states.validate_status(status)
        with LogContext.bind(process_id=process_id, operation="update_status"):
            with atomic(self.session, f"update status of sales process {process_id}"):
                process = self.processes.get_for_update(process_id)
                previous = process.status
                states.require_transition(previous, status)
                process.status = status
            logger.info("sales process status updated", extra={"from_status": previous, "to_status": status})
        return process

    def delete_process(self, process_id: int) -> None:
        """Delete a process that never progressed past draft."""
        with atomic(self.session, f"delete sales process {process_id}"):
            process = self.processes.get_for_update(process_id)
            if process.status != states.DRAFT:
                raise InvalidDataError(
                    "Cannot delete a sales process with linked documents",
                    details={"process_id": process_id, "status": process.status},
                )
            if self.processes.count_links(process.id):
                raise InvalidDataError(
                    "Cannot delete a sales process with linked documents",
                    details={"process_id": process_id},
                )
            self.processes.delete(process)
        logger.info("sales process deleted", extra={"process_id": process_id})

    # =========================================================================
    # Linking
    # =========================================================================

    def link_quotation(self, process_id: int, quotation_id: int) -> SalesProcess:
        """Quotation stage: status becomes quotation and value the quotation total."""
        def _apply(process, quotation, new_status):
            if new_status == states.QUOTATION:
                process.total_value_cents = quotation.grand_total_cents

        return self._link(
            process_id, "quotation", quotation_id, self.stores.quotations,
            lambda doc: states.QUOTATION_LINKED, _apply,
        )

    def link_sales_order(self, process_id: int, sales_order_id: int) -> SalesProcess:
        """Sales order stage: status becomes sales_order and value the order total."""
        def _apply(process, sales_order, new_status):
            if new_status == states.SALES_ORDER:
                process.total_value_cents = sales_order.grand_total_cents

        return self._link(
            process_id, "sales_order", sales_order_id, self.stores.sales_orders,
            lambda doc: states.SALES_ORDER_LINKED, _apply,
        )

    def link_purchase_order(self, process_id: int, purchase_order_id: int) -> SalesProcess:
        """
        Purchase stage: sales_order advances to purchase.

        Profit is refreshed as total value minus the cost of every purchase
        order linked so far, so a second purchase order adds to the cost
        instead of replacing it.
        """
        def _apply(process, purchase_order, new_status):
            linked = self.stores.purchase_orders.find_by_ids(
                self.processes.linked_ids(process.id, "purchase_order")
            )
            cost = sum(po.grand_total_cents or 0 for po in linked)
            process.profit_cents = (process.total_value_cents or 0) - cost

        return self._link(
            process_id, "purchase_order", purchase_order_id, self.stores.purchase_orders,
            lambda doc: states.PURCHASE_ORDER_LINKED, _apply,
        )

    def link_delivery(self, process_id: int, delivery_id: int) -> SalesProcess:
        return self._link(
            process_id, "delivery", delivery_id, self.stores.deliveries,
            lambda doc: states.DELIVERY_LINKED, None,
        )

    def link_invoice(self, process_id: int, invoice_id: int) -> SalesProcess:
        """Invoicing stage; a fully paid invoice completes the process."""
        def _event(invoice):
            if invoice.is_fully_paid:
                return states.PAID_INVOICE_LINKED
            return states.INVOICE_LINKED

        return self._link(
            process_id, "invoice", invoice_id, self.stores.invoices, _event, None,
        )

    def _link(
        self,
        process_id: int,
        kind: str,
        document_id: int,
        store: DocumentStore,
        event_for,
        apply,
    ) -> SalesProcess:
        with LogContext.bind(process_id=process_id, operation=f"link_{kind}"):
            with atomic(self.session, f"link {kind} {document_id} to sales process {process_id}"):
                process = self.processes.get_for_update(process_id)
                document = store.get_by_id(document_id)

                if self.processes.has_link(process.id, kind, document.id):
                    logger.info("document already linked", extra={"document_kind": kind, "document_id": document_id})
                    return process

                previous = process.status
                new_status = states.next_status(previous, event_for(document))

                self.processes.add_link(process.id, kind, document.id)
                if apply is not None:
                    apply(process, document, new_status)
                process.status = new_status
                process.updated_at = utcnow()

            logger.info(
                "document linked to sales process",
                extra={
                    "document_kind": kind,
                    "document_id": document_id,
                    "from_status": previous,
                    "to_status": new_status,
                },
            )
        return process

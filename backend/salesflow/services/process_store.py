# Overview: Persistence for the SalesProcess aggregate and its document link tables.

from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy import func
from sqlalchemy.orm import Session, joinedload

from ..errors import InvalidDataError, ProcessNotFoundError
from ..extensions import db
from ..models import (
    ProcessDelivery,
    ProcessInvoice,
    ProcessPurchaseOrder,
    ProcessQuotation,
    ProcessSalesOrder,
    SalesProcess,
)
from .concurrency import lock_for_update, store_errors


@dataclass(frozen=True)
class LinkKind:
    name: str
    model: type
    document_column: str

    @property
    def document_attr(self):
        return getattr(self.model, self.document_column)


LINK_KINDS: dict[str, LinkKind] = {
    "quotation": LinkKind("quotation", ProcessQuotation, "quotation_id"),
    "sales_order": LinkKind("sales_order", ProcessSalesOrder, "sales_order_id"),
    "purchase_order": LinkKind("purchase_order", ProcessPurchaseOrder, "purchase_order_id"),
    "delivery": LinkKind("delivery", ProcessDelivery, "delivery_id"),
    "invoice": LinkKind("invoice", ProcessInvoice, "invoice_id"),
}


def get_link_kind(kind: str) -> LinkKind:
    try:
        return LINK_KINDS[kind]
    except KeyError:
        raise InvalidDataError(
            f"Unknown document kind '{kind}'. Must be one of: {', '.join(LINK_KINDS)}"
        ) from None


class SalesProcessStore:
    """
    Reads and writes SalesProcess rows and their link rows.

    Writes only add/flush; transaction boundaries belong to the calling
    service (see concurrency.atomic).
    """

    def __init__(self, session: Session | None = None):
        self.session = session or db.session

    def query(self):
        return self.session.query(SalesProcess)

    def add(self, process: SalesProcess) -> SalesProcess:
        self.session.add(process)
        self.session.flush()
        return process

    def get(self, process_id: int) -> SalesProcess:
        if not process_id or process_id < 1:
            raise ProcessNotFoundError(process_id)
        with store_errors(f"load sales process {process_id}"):
            process = (
                self.session.query(SalesProcess)
                .options(joinedload(SalesProcess.contact))
                .filter(SalesProcess.id == process_id)
                .first()
            )
        if process is None:
            raise ProcessNotFoundError(process_id)
        return process

    def get_for_update(self, process_id: int) -> SalesProcess:
        if not process_id or process_id < 1:
            raise ProcessNotFoundError(process_id)
        process = lock_for_update(
            self.session.query(SalesProcess).filter(SalesProcess.id == process_id)
        ).first()
        if process is None:
            raise ProcessNotFoundError(process_id)
        return process

    def delete(self, process: SalesProcess) -> None:
        for kind in LINK_KINDS.values():
            self.session.query(kind.model).filter(kind.model.process_id == process.id).delete(
                synchronize_session=False
            )
        self.session.delete(process)
        self.session.flush()

    # -- links ---------------------------------------------------------------

    def has_link(self, process_id: int, kind: str, document_id: int) -> bool:
        link = get_link_kind(kind)
        return (
            self.session.query(link.model)
            .filter(link.model.process_id == process_id, link.document_attr == document_id)
            .first()
            is not None
        )

    def add_link(self, process_id: int, kind: str, document_id: int):
        link = get_link_kind(kind)
        row = link.model(process_id=process_id, **{link.document_column: document_id})
        self.session.add(row)
        self.session.flush()
        return row

    def linked_ids(self, process_id: int, kind: str) -> list[int]:
        """Linked document ids, in link order."""
        link = get_link_kind(kind)
        with store_errors(f"load {kind} links of sales process {process_id}"):
            rows = (
                self.session.query(link.document_attr)
                .filter(link.model.process_id == process_id)
                .order_by(link.model.linked_at.asc(), link.document_attr.asc())
                .all()
            )
        return [row[0] for row in rows]

    def count_links(self, process_id: int) -> int:
        total = 0
        for link in LINK_KINDS.values():
            total += (
                self.session.query(func.count())
                .select_from(link.model)
                .filter(link.model.process_id == process_id)
                .scalar()
                or 0
            )
        return total

    def link_kinds_present(self, process_ids) -> dict[int, set[str]]:
        """Which link kinds each process has, for many processes at once."""
        process_ids = list(process_ids)
        present: dict[int, set[str]] = {pid: set() for pid in process_ids}
        if not process_ids:
            return present
        with store_errors("load link kinds"):
            for link in LINK_KINDS.values():
                rows = (
                    self.session.query(link.model.process_id)
                    .filter(link.model.process_id.in_(process_ids))
                    .distinct()
                    .all()
                )
                for (pid,) in rows:
                    present[pid].add(link.name)
        return present

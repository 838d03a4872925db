from __future__ import annotations

from ..extensions import db
from salesflow.time_utils import to_utc_z, utcnow


class SalesProcess(db.Model):
    """
    One end-to-end customer engagement (quotation -> ... -> payment).

    WHY: Quotations, orders, deliveries and invoices live in their own
    tables; the process threads them together through the link tables below
    and carries the derived status, total value and profit.

    INVARIANTS:
    - status is one of the stages in services/process_states.py
    - total_value_cents/profit_cents are recomputed by the services once a
      document is linked; clients never set them directly
    - only a draft process without links may be deleted

    version_id drives SQLAlchemy optimistic locking so two concurrent link
    operations cannot silently overwrite each other's value/profit.
    """
    __tablename__ = "sales_processes"
    __table_args__ = (
        db.Index("ix_sales_processes_status_created", "status", "created_at"),
        db.Index("ix_sales_processes_contact_created", "contact_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    contact_id = db.Column(db.Integer, db.ForeignKey("contacts.id"), nullable=False, index=True)
    status = db.Column(db.String(32), nullable=False, default="draft", index=True)

    # Amounts in cents; profit may be negative
    total_value_cents = db.Column(db.Integer, nullable=False, default=0)
    profit_cents = db.Column(db.Integer, nullable=False, default=0)
    notes = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, index=True)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)
    version_id = db.Column(db.Integer, nullable=False, default=1)

    contact = db.relationship("Contact", backref=db.backref("sales_processes", lazy=True))
    __mapper_args__ = {"version_id_col": version_id}

    @property
    def margin_pct(self) -> float:
        if not self.total_value_cents:
            return 0.0
        return round(self.profit_cents / self.total_value_cents * 100.0, 2)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "contact_id": self.contact_id,
            "contact_name": self.contact.display_name if self.contact else None,
            "status": self.status,
            "total_value_cents": self.total_value_cents,
            "profit_cents": self.profit_cents,
            "margin_pct": self.margin_pct,
            "notes": self.notes,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
            "version_id": self.version_id,
        }


# Link tables: one row per (process, document). Composite primary keys make
# a duplicate link impossible; the services treat re-linking as a no-op.

class ProcessQuotation(db.Model):
    __tablename__ = "process_quotations"

    process_id = db.Column(db.Integer, db.ForeignKey("sales_processes.id", ondelete="CASCADE"), primary_key=True)
    quotation_id = db.Column(db.Integer, db.ForeignKey("quotations.id", ondelete="CASCADE"), primary_key=True)
    linked_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)


class ProcessSalesOrder(db.Model):
    __tablename__ = "process_sales_orders"

    process_id = db.Column(db.Integer, db.ForeignKey("sales_processes.id", ondelete="CASCADE"), primary_key=True)
    sales_order_id = db.Column(db.Integer, db.ForeignKey("sales_orders.id", ondelete="CASCADE"), primary_key=True)
    linked_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)


class ProcessPurchaseOrder(db.Model):
    __tablename__ = "process_purchase_orders"

    process_id = db.Column(db.Integer, db.ForeignKey("sales_processes.id", ondelete="CASCADE"), primary_key=True)
    purchase_order_id = db.Column(db.Integer, db.ForeignKey("purchase_orders.id", ondelete="CASCADE"), primary_key=True)
    linked_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)


class ProcessDelivery(db.Model):
    __tablename__ = "process_deliveries"

    process_id = db.Column(db.Integer, db.ForeignKey("sales_processes.id", ondelete="CASCADE"), primary_key=True)
    delivery_id = db.Column(db.Integer, db.ForeignKey("deliveries.id", ondelete="CASCADE"), primary_key=True)
    linked_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)


class ProcessInvoice(db.Model):
    __tablename__ = "process_invoices"

    process_id = db.Column(db.Integer, db.ForeignKey("sales_processes.id", ondelete="CASCADE"), primary_key=True)
    invoice_id = db.Column(db.Integer, db.ForeignKey("invoices.id", ondelete="CASCADE"), primary_key=True)
    linked_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

from __future__ import annotations

from ..extensions import db
from salesflow.time_utils import to_utc_z, utcnow


# Allowed document statuses, enforced by the document stores
QUOTATION_STATUSES = ("draft", "sent", "accepted", "rejected", "expired", "cancelled")
SALES_ORDER_STATUSES = ("draft", "confirmed", "processing", "completed", "cancelled")
PURCHASE_ORDER_STATUSES = ("draft", "sent", "confirmed", "received", "cancelled")
DELIVERY_STATUSES = ("pending", "shipped", "delivered", "returned")
INVOICE_STATUSES = ("draft", "sent", "partial", "paid", "overdue", "cancelled")


class Quotation(db.Model):
    """
    Priced offer sent to a contact. First document of a sales process.

    All amounts are in cents; grand_total_cents is tax- and discount-inclusive.
    """
    __tablename__ = "quotations"
    __table_args__ = (
        db.UniqueConstraint("document_number", name="uq_quotations_docnum"),
        db.Index("ix_quotations_contact_created", "contact_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    document_number = db.Column(db.String(64), nullable=False)
    contact_id = db.Column(db.Integer, db.ForeignKey("contacts.id"), nullable=False, index=True)
    status = db.Column(db.String(16), nullable=False, default="draft", index=True)

    expiry_date = db.Column(db.DateTime(timezone=True), nullable=True)
    subtotal_cents = db.Column(db.Integer, nullable=False, default=0)
    tax_total_cents = db.Column(db.Integer, nullable=False, default=0)
    discount_total_cents = db.Column(db.Integer, nullable=False, default=0)
    grand_total_cents = db.Column(db.Integer, nullable=False, default=0)
    notes = db.Column(db.Text, nullable=True)
    terms = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    contact = db.relationship("Contact")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "document_number": self.document_number,
            "contact_id": self.contact_id,
            "status": self.status,
            "expiry_date": to_utc_z(self.expiry_date) if self.expiry_date else None,
            "subtotal_cents": self.subtotal_cents,
            "tax_total_cents": self.tax_total_cents,
            "discount_total_cents": self.discount_total_cents,
            "grand_total_cents": self.grand_total_cents,
            "notes": self.notes,
            "terms": self.terms,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class SalesOrder(db.Model):
    """Customer order confirmed from a quotation."""
    __tablename__ = "sales_orders"
    __table_args__ = (
        db.UniqueConstraint("document_number", name="uq_sales_orders_docnum"),
        db.Index("ix_sales_orders_contact_created", "contact_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    document_number = db.Column(db.String(64), nullable=False)
    quotation_id = db.Column(db.Integer, db.ForeignKey("quotations.id"), nullable=True, index=True)
    contact_id = db.Column(db.Integer, db.ForeignKey("contacts.id"), nullable=False, index=True)
    status = db.Column(db.String(16), nullable=False, default="draft", index=True)

    expected_date = db.Column(db.DateTime(timezone=True), nullable=True)
    subtotal_cents = db.Column(db.Integer, nullable=False, default=0)
    tax_total_cents = db.Column(db.Integer, nullable=False, default=0)
    discount_total_cents = db.Column(db.Integer, nullable=False, default=0)
    grand_total_cents = db.Column(db.Integer, nullable=False, default=0)
    notes = db.Column(db.Text, nullable=True)
    payment_terms = db.Column(db.Text, nullable=True)
    shipping_address = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    contact = db.relationship("Contact")
    quotation = db.relationship("Quotation")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "document_number": self.document_number,
            "quotation_id": self.quotation_id,
            "contact_id": self.contact_id,
            "status": self.status,
            "expected_date": to_utc_z(self.expected_date) if self.expected_date else None,
            "subtotal_cents": self.subtotal_cents,
            "tax_total_cents": self.tax_total_cents,
            "discount_total_cents": self.discount_total_cents,
            "grand_total_cents": self.grand_total_cents,
            "notes": self.notes,
            "payment_terms": self.payment_terms,
            "shipping_address": self.shipping_address,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class PurchaseOrder(db.Model):
    """
    Order placed with a supplier to fulfil a sales order.

    WHY: Purchase orders are the cost side of a sales process; their grand
    totals are subtracted from revenue to derive profit.
    """
    __tablename__ = "purchase_orders"
    __table_args__ = (
        db.UniqueConstraint("document_number", name="uq_purchase_orders_docnum"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    document_number = db.Column(db.String(64), nullable=False)
    sales_order_id = db.Column(db.Integer, db.ForeignKey("sales_orders.id"), nullable=True, index=True)
    contact_id = db.Column(db.Integer, db.ForeignKey("contacts.id"), nullable=False, index=True)  # supplier
    status = db.Column(db.String(16), nullable=False, default="draft", index=True)

    expected_date = db.Column(db.DateTime(timezone=True), nullable=True)
    subtotal_cents = db.Column(db.Integer, nullable=False, default=0)
    tax_total_cents = db.Column(db.Integer, nullable=False, default=0)
    discount_total_cents = db.Column(db.Integer, nullable=False, default=0)
    grand_total_cents = db.Column(db.Integer, nullable=False, default=0)
    notes = db.Column(db.Text, nullable=True)
    payment_terms = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    contact = db.relationship("Contact")
    sales_order = db.relationship("SalesOrder")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "document_number": self.document_number,
            "sales_order_id": self.sales_order_id,
            "contact_id": self.contact_id,
            "status": self.status,
            "expected_date": to_utc_z(self.expected_date) if self.expected_date else None,
            "subtotal_cents": self.subtotal_cents,
            "tax_total_cents": self.tax_total_cents,
            "discount_total_cents": self.discount_total_cents,
            "grand_total_cents": self.grand_total_cents,
            "notes": self.notes,
            "payment_terms": self.payment_terms,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class PurchaseOrderItem(db.Model):
    """Line items on a purchase order (cost per product)."""
    __tablename__ = "purchase_order_items"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    purchase_order_id = db.Column(db.Integer, db.ForeignKey("purchase_orders.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, nullable=False, index=True)
    product_name = db.Column(db.String(255), nullable=False)
    product_code = db.Column(db.String(64), nullable=True)
    quantity = db.Column(db.Integer, nullable=False)
    unit_price_cents = db.Column(db.Integer, nullable=False)
    line_total_cents = db.Column(db.Integer, nullable=False)

    purchase_order = db.relationship("PurchaseOrder", backref=db.backref("items", lazy=True, cascade="all, delete-orphan"))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "purchase_order_id": self.purchase_order_id,
            "product_id": self.product_id,
            "product_name": self.product_name,
            "product_code": self.product_code,
            "quantity": self.quantity,
            "unit_price_cents": self.unit_price_cents,
            "line_total_cents": self.line_total_cents,
        }


class Delivery(db.Model):
    """Shipment of goods for a sales order (optionally sourced from a purchase order)."""
    __tablename__ = "deliveries"
    __table_args__ = (
        db.UniqueConstraint("document_number", name="uq_deliveries_docnum"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    document_number = db.Column(db.String(64), nullable=False)
    purchase_order_id = db.Column(db.Integer, db.ForeignKey("purchase_orders.id"), nullable=True, index=True)
    sales_order_id = db.Column(db.Integer, db.ForeignKey("sales_orders.id"), nullable=True, index=True)
    status = db.Column(db.String(16), nullable=False, default="pending", index=True)

    delivery_date = db.Column(db.DateTime(timezone=True), nullable=True)
    received_date = db.Column(db.DateTime(timezone=True), nullable=True)
    shipping_method = db.Column(db.String(100), nullable=True)
    tracking_number = db.Column(db.String(100), nullable=True)
    shipping_address = db.Column(db.Text, nullable=True)
    notes = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    purchase_order = db.relationship("PurchaseOrder")
    sales_order = db.relationship("SalesOrder")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "document_number": self.document_number,
            "purchase_order_id": self.purchase_order_id,
            "sales_order_id": self.sales_order_id,
            "status": self.status,
            "delivery_date": to_utc_z(self.delivery_date) if self.delivery_date else None,
            "received_date": to_utc_z(self.received_date) if self.received_date else None,
            "shipping_method": self.shipping_method,
            "tracking_number": self.tracking_number,
            "shipping_address": self.shipping_address,
            "notes": self.notes,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class Invoice(db.Model):
    """
    Bill issued to the customer. Revenue side of a sales process.

    amount_paid_cents is maintained by the payments module; an invoice whose
    amount paid covers its grand total is fully paid.
    """
    __tablename__ = "invoices"
    __table_args__ = (
        db.UniqueConstraint("document_number", name="uq_invoices_docnum"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    document_number = db.Column(db.String(64), nullable=False)
    sales_order_id = db.Column(db.Integer, db.ForeignKey("sales_orders.id"), nullable=True, index=True)
    contact_id = db.Column(db.Integer, db.ForeignKey("contacts.id"), nullable=False, index=True)
    status = db.Column(db.String(16), nullable=False, default="draft", index=True)

    issue_date = db.Column(db.DateTime(timezone=True), nullable=True, default=utcnow)
    due_date = db.Column(db.DateTime(timezone=True), nullable=True)
    subtotal_cents = db.Column(db.Integer, nullable=False, default=0)
    tax_total_cents = db.Column(db.Integer, nullable=False, default=0)
    discount_total_cents = db.Column(db.Integer, nullable=False, default=0)
    grand_total_cents = db.Column(db.Integer, nullable=False, default=0)
    amount_paid_cents = db.Column(db.Integer, nullable=False, default=0)
    payment_terms = db.Column(db.Text, nullable=True)
    notes = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    contact = db.relationship("Contact")
    sales_order = db.relationship("SalesOrder")

    @property
    def is_fully_paid(self) -> bool:
        return (self.amount_paid_cents or 0) >= (self.grand_total_cents or 0)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "document_number": self.document_number,
            "sales_order_id": self.sales_order_id,
            "contact_id": self.contact_id,
            "status": self.status,
            "issue_date": to_utc_z(self.issue_date) if self.issue_date else None,
            "due_date": to_utc_z(self.due_date) if self.due_date else None,
            "subtotal_cents": self.subtotal_cents,
            "tax_total_cents": self.tax_total_cents,
            "discount_total_cents": self.discount_total_cents,
            "grand_total_cents": self.grand_total_cents,
            "amount_paid_cents": self.amount_paid_cents,
            "payment_terms": self.payment_terms,
            "notes": self.notes,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class InvoiceItem(db.Model):
    """Line items on an invoice (revenue per product)."""
    __tablename__ = "invoice_items"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    invoice_id = db.Column(db.Integer, db.ForeignKey("invoices.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, nullable=False, index=True)
    product_name = db.Column(db.String(255), nullable=False)
    product_code = db.Column(db.String(64), nullable=True)
    quantity = db.Column(db.Integer, nullable=False)
    unit_price_cents = db.Column(db.Integer, nullable=False)
    line_total_cents = db.Column(db.Integer, nullable=False)

    invoice = db.relationship("Invoice", backref=db.backref("items", lazy=True, cascade="all, delete-orphan"))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "invoice_id": self.invoice_id,
            "product_id": self.product_id,
            "product_name": self.product_name,
            "product_code": self.product_code,
            "quantity": self.quantity,
            "unit_price_cents": self.unit_price_cents,
            "line_total_cents": self.line_total_cents,
        }


class Payment(db.Model):
    """
    Payment received against an invoice.

    DESIGN: Several payments may settle one invoice (partial payments);
    the timeline places each at its payment_date, not its creation time.
    """
    __tablename__ = "payments"
    __table_args__ = (
        db.Index("ix_payments_invoice_date", "invoice_id", "payment_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    invoice_id = db.Column(db.Integer, db.ForeignKey("invoices.id"), nullable=False, index=True)
    amount_cents = db.Column(db.Integer, nullable=False)
    payment_date = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    payment_method = db.Column(db.String(50), nullable=True)
    reference = db.Column(db.String(100), nullable=True)
    notes = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    invoice = db.relationship("Invoice", backref=db.backref("payments", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "invoice_id": self.invoice_id,
            "amount_cents": self.amount_cents,
            "payment_date": to_utc_z(self.payment_date),
            "payment_method": self.payment_method,
            "reference": self.reference,
            "notes": self.notes,
            "created_at": to_utc_z(self.created_at),
        }

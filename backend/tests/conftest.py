"""
Pytest fixtures for salesflow backend tests.

Provides the in-memory database, a fresh session per test, and factory
helpers for contacts and commercial documents.
"""

import itertools

import pytest

from salesflow import create_app
from salesflow.extensions import db
from salesflow.models import (
    Contact,
    Delivery,
    Invoice,
    InvoiceItem,
    Payment,
    PurchaseOrder,
    PurchaseOrderItem,
    Quotation,
    SalesOrder,
    SalesProcess,
)
from salesflow.services.sales_process_service import SalesProcessService


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'LOG_JSON': False,
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    with app.app_context():
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        # Cleanup after test
        db.session.rollback()


@pytest.fixture(scope='function')
def service(db_session):
    """SalesProcessService bound to the test session."""
    return SalesProcessService(db_session)


_numbers = itertools.count(1)


def _next_number(prefix: str) -> str:
    return f"{prefix}-{next(_numbers):05d}"


class Factory:
    """Builds committed rows with sensible defaults; keyword args override."""

    def __init__(self, session):
        self.session = session

    def _save(self, obj):
        self.session.add(obj)
        self.session.commit()
        return obj

    def contact(self, **kw):
        kw.setdefault("name", "Maria Silva")
        kw.setdefault("type", "client")
        return self._save(Contact(**kw))

    def quotation(self, contact, grand_total_cents=110000, **kw):
        kw.setdefault("document_number", _next_number("QT"))
        return self._save(Quotation(contact_id=contact.id, grand_total_cents=grand_total_cents, **kw))

    def sales_order(self, contact, grand_total_cents=200000, quotation=None, **kw):
        kw.setdefault("document_number", _next_number("SO"))
        return self._save(SalesOrder(
            contact_id=contact.id,
            quotation_id=quotation.id if quotation else None,
            grand_total_cents=grand_total_cents,
            **kw,
        ))

    def purchase_order(self, supplier, grand_total_cents=80000, sales_order=None, items=(), **kw):
        kw.setdefault("document_number", _next_number("PO"))
        po = PurchaseOrder(
            contact_id=supplier.id,
            sales_order_id=sales_order.id if sales_order else None,
            grand_total_cents=grand_total_cents,
            **kw,
        )
        for item in items:
            po.items.append(PurchaseOrderItem(**item))
        return self._save(po)

    def delivery(self, sales_order=None, purchase_order=None, **kw):
        kw.setdefault("document_number", _next_number("DL"))
        return self._save(Delivery(
            sales_order_id=sales_order.id if sales_order else None,
            purchase_order_id=purchase_order.id if purchase_order else None,
            **kw,
        ))

    def invoice(self, contact, grand_total_cents=80000, amount_paid_cents=0, sales_order=None, items=(), **kw):
        kw.setdefault("document_number", _next_number("INV"))
        invoice = Invoice(
            contact_id=contact.id,
            sales_order_id=sales_order.id if sales_order else None,
            grand_total_cents=grand_total_cents,
            amount_paid_cents=amount_paid_cents,
            **kw,
        )
        for item in items:
            invoice.items.append(InvoiceItem(**item))
        return self._save(invoice)

    def payment(self, invoice, amount_cents, **kw):
        return self._save(Payment(invoice_id=invoice.id, amount_cents=amount_cents, **kw))

    def process(self, contact, status="draft", total_value_cents=0, profit_cents=0, **kw):
        """Insert a process row directly, bypassing the state machine."""
        return self._save(SalesProcess(
            contact_id=contact.id,
            status=status,
            total_value_cents=total_value_cents,
            profit_cents=profit_cents,
            **kw,
        ))


@pytest.fixture(scope='function')
def factory(db_session):
    return Factory(db_session)


@pytest.fixture(scope='function')
def client_contact(factory):
    """A client contact."""
    return factory.contact(name="Maria Silva", company_name="Acme Ltda", type="client")


@pytest.fixture(scope='function')
def supplier(factory):
    """A supplier contact."""
    return factory.contact(name="Joao Souza", company_name="Fornecedora SA", type="supplier")

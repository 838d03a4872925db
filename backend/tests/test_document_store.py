# Overview: Pytest coverage for the per-entity document stores.

from datetime import datetime

import pytest

from salesflow.errors import (
    InvalidDataError,
    QuotationNotFoundError,
    RelatedRecordsExistError,
)
from salesflow.models import InvoiceItem, PurchaseOrderItem, Quotation
from salesflow.pagination import PaginationParams
from salesflow.services.document_store import DocumentStores


ITEM = {
    "product_id": 1,
    "product_name": "Widget",
    "product_code": "W-1",
    "quantity": 1,
    "unit_price_cents": 100,
    "line_total_cents": 100,
}


@pytest.fixture
def stores(db_session):
    return DocumentStores.from_session(db_session)


class TestReads:

    def test_get_by_id_not_found(self, stores):
        with pytest.raises(QuotationNotFoundError) as exc_info:
            stores.quotations.get_by_id(9)
        assert exc_info.value.entity_id == 9

    @pytest.mark.parametrize("bad_id", [0, -1, None])
    def test_get_by_id_rejects_non_positive_ids(self, stores, bad_id):
        with pytest.raises(QuotationNotFoundError):
            stores.quotations.get_by_id(bad_id)

    def test_find_by_contact_returns_most_recent(self, stores, factory, client_contact):
        factory.quotation(client_contact, created_at=datetime(2024, 1, 1))
        latest = factory.quotation(client_contact, created_at=datetime(2024, 2, 1))

        assert stores.quotations.find_by_contact(client_contact.id).id == latest.id

    def test_find_by_sales_order(self, stores, factory, client_contact, supplier):
        order = factory.sales_order(client_contact)
        first = factory.purchase_order(supplier, sales_order=order, created_at=datetime(2024, 1, 1))
        second = factory.purchase_order(supplier, sales_order=order, created_at=datetime(2024, 1, 2))
        factory.purchase_order(supplier)

        assert [po.id for po in stores.purchase_orders.find_by_sales_order(order.id)] == [first.id, second.id]

    def test_find_by_invoice_orders_by_payment_date(self, stores, factory, client_contact):
        invoice = factory.invoice(client_contact)
        late = factory.payment(invoice, 100, payment_date=datetime(2024, 3, 2))
        early = factory.payment(invoice, 100, payment_date=datetime(2024, 3, 1))

        assert [p.id for p in stores.payments.find_by_invoice(invoice.id)] == [early.id, late.id]

    def test_find_by_contact_on_model_without_contact(self, stores):
        with pytest.raises(InvalidDataError):
            stores.deliveries.find_by_contact(1)

    def test_count_and_list(self, stores, factory, client_contact):
        for _ in range(3):
            factory.quotation(client_contact, status="sent")
        factory.quotation(client_contact, status="draft")

        assert stores.quotations.count(status="sent") == 3
        page = stores.quotations.list(PaginationParams(page=1, page_size=2), status="sent")
        assert page.total_items == 3
        assert len(page.items) == 2


class TestWrites:

    def test_create_update_delete(self, stores, client_contact, db_session):
        quotation = stores.quotations.create(
            document_number="QT-NEW", contact_id=client_contact.id, grand_total_cents=500,
        )
        stores.quotations.update(quotation.id, grand_total_cents=750)
        assert db_session.get(Quotation, quotation.id).grand_total_cents == 750

        stores.quotations.delete(quotation.id)
        assert db_session.get(Quotation, quotation.id) is None

    def test_unknown_fields_rejected(self, stores, client_contact):
        with pytest.raises(InvalidDataError):
            stores.quotations.create(document_number="QT-X", contact_id=client_contact.id, colour="red")

    def test_delete_with_dependents(self, stores, factory, client_contact):
        invoice = factory.invoice(client_contact)
        factory.payment(invoice, 100)

        with pytest.raises(RelatedRecordsExistError):
            stores.invoices.delete(invoice.id)

    def test_delete_linked_document(self, service, stores, factory, client_contact):
        process = service.create_process(client_contact.id)
        quotation = factory.quotation(client_contact)
        service.link_quotation(process.id, quotation.id)

        with pytest.raises(RelatedRecordsExistError):
            stores.quotations.delete(quotation.id)

    def test_delete_invoice_removes_its_items(self, stores, factory, client_contact, db_session):
        invoice = factory.invoice(client_contact, items=[ITEM, dict(ITEM, product_id=2, product_code="W-2")])

        stores.invoices.delete(invoice.id)

        assert db_session.query(InvoiceItem).count() == 0

    def test_delete_purchase_order_removes_its_items(self, stores, factory, supplier, db_session):
        po = factory.purchase_order(supplier, items=[ITEM])

        stores.purchase_orders.delete(po.id)

        assert db_session.query(PurchaseOrderItem).count() == 0

    def test_invoice_with_items_and_payment_is_kept(self, stores, factory, client_contact, db_session):
        invoice = factory.invoice(client_contact, items=[ITEM])
        factory.payment(invoice, 100)

        with pytest.raises(RelatedRecordsExistError):
            stores.invoices.delete(invoice.id)
        assert db_session.query(InvoiceItem).count() == 1

    @pytest.mark.parametrize("store_name, fields", [
        ("contacts", {"name": "X", "type": "partner"}),
        ("contacts", {"name": "X", "person_type": "robot"}),
        ("quotations", {"document_number": "QT-BAD", "status": "approved"}),
        ("invoices", {"document_number": "INV-BAD", "status": "settled"}),
        ("deliveries", {"document_number": "DL-BAD", "status": "lost"}),
    ])
    def test_create_rejects_unknown_vocabulary(self, stores, store_name, fields):
        with pytest.raises(InvalidDataError) as exc_info:
            getattr(stores, store_name).create(**fields)
        assert exc_info.value.details["field"] in fields

    def test_update_rejects_unknown_status(self, stores, factory, client_contact, db_session):
        order = factory.sales_order(client_contact)

        with pytest.raises(InvalidDataError):
            stores.sales_orders.update(order.id, status="shipped")
        stores.sales_orders.update(order.id, status="confirmed")

        db_session.expire_all()
        assert stores.sales_orders.get_by_id(order.id).status == "confirmed"

# Overview: Pytest coverage for process flow assembly and the event timeline.

from datetime import datetime, timedelta
from types import SimpleNamespace

import pytest

from salesflow.errors import ProcessNotFoundError, StoreFailure
from salesflow.services.flow_service import ProcessFlowService
from salesflow.services.timeline import build_timeline, timeline_duration_days

T0 = datetime(2024, 3, 1, 9, 0, 0)


def _full_process(service, factory, client_contact, supplier):
    """A completed process whose documents were created out of link order."""
    process = factory.process(client_contact, created_at=T0)
    quotation = factory.quotation(client_contact, grand_total_cents=100000, created_at=T0 + timedelta(days=1))
    order = factory.sales_order(client_contact, grand_total_cents=100000, quotation=quotation,
                                created_at=T0 + timedelta(days=3))
    po = factory.purchase_order(supplier, grand_total_cents=40000, sales_order=order,
                                created_at=T0 + timedelta(days=4))
    delivery = factory.delivery(sales_order=order, purchase_order=po, created_at=T0 + timedelta(days=6))
    invoice = factory.invoice(client_contact, grand_total_cents=100000, amount_paid_cents=100000,
                              sales_order=order, created_at=T0 + timedelta(days=2))
    payment = factory.payment(invoice, 100000, payment_date=T0 + timedelta(days=10))

    service.link_quotation(process.id, quotation.id)
    service.link_sales_order(process.id, order.id)
    service.link_purchase_order(process.id, po.id)
    service.link_delivery(process.id, delivery.id)
    service.link_invoice(process.id, invoice.id)
    return SimpleNamespace(
        process=process, quotation=quotation, order=order, po=po,
        delivery=delivery, invoice=invoice, payment=payment,
    )


class TestCompleteProcessFlow:

    def test_resolves_linked_documents(self, service, factory, client_contact, supplier):
        docs = _full_process(service, factory, client_contact, supplier)

        flow = service.get_complete_process_flow(docs.process.id)

        assert flow.process.status == "completed"
        assert flow.quotation.id == docs.quotation.id
        assert flow.sales_order.id == docs.order.id
        assert [po.id for po in flow.purchase_orders] == [docs.po.id]
        assert [d.id for d in flow.deliveries] == [docs.delivery.id]
        assert [i.id for i in flow.invoices] == [docs.invoice.id]
        assert [p.id for p in flow.payments] == [docs.payment.id]

    def test_relationships(self, service, factory, client_contact, supplier):
        docs = _full_process(service, factory, client_contact, supplier)

        rels = service.get_complete_process_flow(docs.process.id).relationships
        pairs = {(r["from_type"], r["to_type"]) for r in rels}

        assert pairs == {
            ("quotation", "sales_order"),
            ("sales_order", "purchase_order"),
            ("sales_order", "delivery"),
            ("purchase_order", "delivery"),
            ("sales_order", "invoice"),
            ("invoice", "payment"),
        }

    def test_unlinked_contact_documents_ignored_by_default(self, service, factory, client_contact):
        process = service.create_process(client_contact.id)
        factory.quotation(client_contact)

        flow = service.get_complete_process_flow(process.id)

        assert flow.quotation is None
        assert len(flow.timeline) == 1

    def test_contact_fallback_when_enabled(self, db_session, factory, client_contact, supplier):
        flows = ProcessFlowService(db_session, contact_fallback=True)
        process = factory.process(client_contact)
        factory.quotation(client_contact, created_at=T0)
        latest = factory.quotation(client_contact, created_at=T0 + timedelta(days=1))
        order = factory.sales_order(client_contact)
        po = factory.purchase_order(supplier, sales_order=order)

        flow = flows.get_complete_process_flow(process.id)

        assert flow.quotation.id == latest.id
        assert flow.sales_order.id == order.id
        assert [p.id for p in flow.purchase_orders] == [po.id]

    def test_missing_process(self, service, db_session):
        with pytest.raises(ProcessNotFoundError):
            service.get_complete_process_flow(4242)

    def test_failed_sub_query_is_logged_and_skipped(self, service, factory, client_contact, supplier, monkeypatch, caplog):
        docs = _full_process(service, factory, client_contact, supplier)

        def broken(_invoice_id):
            raise StoreFailure("find payments by invoice")

        monkeypatch.setattr(service.stores.payments, "find_by_invoice", broken)

        flow = service.get_complete_process_flow(docs.process.id)

        assert flow.payments == []
        assert [i.id for i in flow.invoices] == [docs.invoice.id]
        assert any(r.levelname == "WARNING" for r in caplog.records)


class TestTimeline:

    def test_events_sorted_by_timestamp(self, service, factory, client_contact, supplier):
        docs = _full_process(service, factory, client_contact, supplier)

        events = service.get_complete_process_flow(docs.process.id).timeline

        assert [e.event_type for e in events] == [
            "process_created",
            "quotation_created",
            "invoice_created",
            "sales_order_created",
            "purchase_order_created",
            "delivery_created",
            "payment_received",
        ]
        stamps = [e.timestamp for e in events]
        assert stamps == sorted(stamps)

    def test_event_count_matches_documents(self):
        process = SimpleNamespace(id=1, created_at=T0)
        flow = SimpleNamespace(
            process=process,
            quotation=None,
            sales_order=None,
            purchase_orders=[
                SimpleNamespace(id=i, document_number=f"PO-{i}", grand_total_cents=10, created_at=T0)
                for i in range(3)
            ],
            deliveries=[],
            invoices=[SimpleNamespace(id=9, document_number="INV-9", grand_total_cents=50, created_at=T0)],
            payments=[
                SimpleNamespace(id=1, amount_cents=25, payment_date=T0 + timedelta(hours=1)),
                SimpleNamespace(id=2, amount_cents=25, payment_date=T0 - timedelta(hours=1)),
            ],
        )

        events = build_timeline(flow)

        assert len(events) == 1 + 3 + 1 + 2
        assert events[0].event_type == "payment_received"

    def test_process_timeline_summary(self, service, factory, client_contact, supplier):
        docs = _full_process(service, factory, client_contact, supplier)

        timeline = service.get_process_timeline(docs.process.id)

        assert timeline.current_status == "completed"
        assert timeline.duration_days == 10
        milestones = {m.name: m for m in timeline.milestones}
        assert milestones["quotation"].status == "achieved"
        assert milestones["quotation"].achieved_at == docs.quotation.created_at
        assert milestones["completed"].status == "achieved"
        assert [m.order for m in timeline.milestones] == list(range(1, 8))

    def test_pending_milestones(self, service, client_contact):
        process = service.create_process(client_contact.id)

        timeline = service.get_process_timeline(process.id)

        assert timeline.duration_days == 0
        assert all(m.status == "pending" for m in timeline.milestones)

    def test_duration_of_single_event(self):
        events = [SimpleNamespace(timestamp=T0)]
        assert timeline_duration_days(events) == 0

# Overview: Pytest coverage for process search, listings and statistics.

from datetime import datetime, timedelta

import pytest

from salesflow.errors import ContactNotFoundError, InvalidDataError, InvalidPaginationError, InvalidStageError
from salesflow.pagination import PaginationParams
from salesflow.services.filters import SalesProcessFilter
from salesflow.time_utils import utcnow


class TestSearch:

    def test_newest_first_with_total_before_paging(self, service, factory, client_contact):
        base = datetime(2024, 1, 1)
        for day in range(5):
            factory.process(client_contact, created_at=base + timedelta(days=day))

        page = service.search_sales_processes(SalesProcessFilter(), PaginationParams(page=2, page_size=2))

        assert page.total_items == 5
        assert page.total_pages == 3
        assert [p.created_at.day for p in page.items] == [3, 2]

    def test_status_and_value_filters(self, service, factory, client_contact):
        factory.process(client_contact, status="quotation", total_value_cents=5000)
        wanted = factory.process(client_contact, status="sales_order", total_value_cents=20000, profit_cents=5000)
        factory.process(client_contact, status="sales_order", total_value_cents=90000)

        page = service.search_sales_processes(SalesProcessFilter(
            statuses=["quotation", "sales_order"],
            min_value_cents=10000,
            max_value_cents=50000,
            min_profit_cents=1000,
        ))

        assert [p.id for p in page.items] == [wanted.id]

    def test_contact_type_filter(self, service, factory, client_contact):
        lead = factory.contact(name="Prospect", type="lead")
        factory.process(client_contact)
        expected = factory.process(lead)

        page = service.search_sales_processes(SalesProcessFilter(contact_type="lead"))

        assert [p.id for p in page.items] == [expected.id]

    def test_date_range_with_one_bound(self, service, factory, client_contact):
        factory.process(client_contact, created_at=datetime(2024, 1, 1))
        recent = factory.process(client_contact, created_at=datetime(2024, 6, 1))

        page = service.search_sales_processes(SalesProcessFilter(date_from=datetime(2024, 3, 1)))

        assert [p.id for p in page.items] == [recent.id]

    def test_link_flags(self, service, factory, client_contact):
        with_quote = service.create_process(client_contact.id)
        service.link_quotation(with_quote.id, factory.quotation(client_contact).id)
        without = service.create_process(client_contact.id)

        has = service.search_sales_processes(SalesProcessFilter(has_quotation=True))
        has_not = service.search_sales_processes(SalesProcessFilter(has_quotation=False))

        assert [p.id for p in has.items] == [with_quote.id]
        assert [p.id for p in has_not.items] == [without.id]

    def test_completion_flag(self, service, factory, client_contact):
        done = factory.process(client_contact, status="completed")
        factory.process(client_contact, status="invoicing")

        page = service.search_sales_processes(SalesProcessFilter(is_complete=True))

        assert [p.id for p in page.items] == [done.id]

    def test_search_text_is_case_insensitive(self, service, factory):
        acme = factory.contact(name="Carla", company_name="ACME Industrial")
        other = factory.contact(name="Diego")
        by_company = factory.process(acme)
        by_notes = factory.process(other, notes="Follow up on acme referral")
        factory.process(other, notes="Nothing here")

        page = service.search_sales_processes(SalesProcessFilter(search="acme"))

        assert {p.id for p in page.items} == {by_company.id, by_notes.id}

    @pytest.mark.parametrize("params", [
        PaginationParams(page=0, page_size=10),
        PaginationParams(page=1, page_size=0),
        PaginationParams(page=1, page_size=101),
    ])
    def test_invalid_pagination(self, service, db_session, params):
        with pytest.raises(InvalidPaginationError):
            service.search_sales_processes(SalesProcessFilter(), params)


class TestListings:

    def test_by_stage_rejects_unknown_stage(self, service, db_session):
        with pytest.raises(InvalidStageError):
            service.get_processes_by_stage("shipping")

    def test_by_stage(self, service, factory, client_contact):
        target = factory.process(client_contact, status="delivery")
        factory.process(client_contact, status="purchase")

        page = service.get_processes_by_stage("delivery")

        assert [p.id for p in page.items] == [target.id]

    def test_by_contact_requires_contact(self, service, db_session):
        with pytest.raises(ContactNotFoundError):
            service.get_processes_by_contact(55)

    def test_by_period(self, service, factory, client_contact):
        inside = factory.process(client_contact, created_at=datetime(2024, 2, 15))
        factory.process(client_contact, created_at=datetime(2024, 4, 15))

        page = service.get_processes_by_period(datetime(2024, 2, 1), datetime(2024, 2, 28))

        assert [p.id for p in page.items] == [inside.id]

    def test_by_period_accepts_iso_strings(self, service, factory, client_contact):
        inside = factory.process(client_contact, created_at=datetime(2024, 2, 15, 12, 0))
        factory.process(client_contact, created_at=datetime(2024, 2, 20, 12, 0))

        page = service.get_processes_by_period("2024-02-15T00:00:00Z", "2024-02-16T00:00:00Z")

        assert [p.id for p in page.items] == [inside.id]

    def test_abandoned_processes(self, service, factory, client_contact):
        now = utcnow()
        stale = factory.process(client_contact, status="quotation", updated_at=now - timedelta(days=40))
        staler = factory.process(client_contact, status="delivery", updated_at=now - timedelta(days=90))
        factory.process(client_contact, status="completed", updated_at=now - timedelta(days=90))
        factory.process(client_contact, status="quotation", updated_at=now)

        abandoned = service.get_abandoned_processes(30)

        assert abandoned.total_items == 2
        assert [p.id for p in abandoned.items] == [staler.id, stale.id]

    def test_abandoned_processes_are_paged_stalest_first(self, service, factory, client_contact):
        now = utcnow()
        ids = [
            factory.process(client_contact, status="purchase", updated_at=now - timedelta(days=age)).id
            for age in (35, 60, 45)
        ]

        second = service.get_abandoned_processes(30, PaginationParams(page=2, page_size=1))

        assert second.total_items == 3
        assert second.total_pages == 3
        assert [p.id for p in second.items] == [ids[2]]

    def test_abandoned_rejects_negative_days(self, service, db_session):
        with pytest.raises(InvalidDataError):
            service.get_abandoned_processes(-1)


class TestStats:

    def test_sales_process_stats(self, service, factory, client_contact):
        created = datetime(2024, 1, 1)
        factory.process(client_contact, status="completed", total_value_cents=10000, profit_cents=2000,
                        created_at=created, updated_at=created + timedelta(days=10))
        factory.process(client_contact, status="quotation", total_value_cents=30000, profit_cents=0)

        stats = service.get_sales_process_stats()

        assert stats["total_processes"] == 2
        assert stats["total_value_cents"] == 40000
        assert stats["count_by_status"] == {"completed": 1, "quotation": 1}
        assert stats["value_by_status_cents"]["quotation"] == 30000
        assert stats["completion_rate"] == 50.0
        assert stats["profit_margin_pct"] == 5.0
        assert stats["average_cycle_time_days"] == 10.0

    def test_contact_summary(self, service, factory, client_contact):
        factory.process(client_contact, status="completed", total_value_cents=10000, created_at=datetime(2024, 1, 1))
        factory.process(client_contact, status="purchase", total_value_cents=20000, created_at=datetime(2024, 3, 1))
        factory.process(client_contact, status="cancelled", created_at=datetime(2024, 2, 1))

        summary = service.get_contact_sales_process_summary(client_contact.id)

        assert summary["contact_name"] == "Acme Ltda"
        assert summary["total_processes"] == 3
        assert summary["active_processes"] == 1
        assert summary["completed_processes"] == 1
        assert summary["average_value_cents"] == 10000
        assert summary["last_process_date"] == "2024-03-01T00:00:00Z"

# Overview: Single entry point for the sales process operations.

"""
Sales process service.

Wires the linking, flow, profitability, funnel and query services to one
session and one set of document stores, and exposes their operations under
one object. Callers (an HTTP layer, a job, a test) construct it once per
request or unit of work.
"""

from __future__ import annotations

from sqlalchemy.orm import Session

from ..extensions import db
from .document_store import DocumentStores
from .flow_service import ProcessFlowService
from .funnel_service import FunnelService
from .linking_service import ProcessLinkingService
from .process_store import SalesProcessStore
from .profitability_service import ProfitabilityService
from .query_service import SalesProcessQueryService


class SalesProcessService:

    def __init__(
        self,
        session: Session | None = None,
        stores: DocumentStores | None = None,
        contact_fallback: bool | None = None,
    ):
        self.session = session or db.session
        self.stores = stores or DocumentStores.from_session(self.session)
        self.processes = SalesProcessStore(self.session)

        self.linking = ProcessLinkingService(self.session, self.stores, self.processes)
        self.flows = ProcessFlowService(self.session, self.stores, self.processes, contact_fallback)
        self.profitability = ProfitabilityService(self.session, self.stores, self.processes, self.flows)
        self.funnel = FunnelService(self.session, self.processes)
        self.queries = SalesProcessQueryService(self.session, self.stores, self.processes)

        # Lifecycle and linking
        self.create_process = self.linking.create_process
        self.initiate_from_quotation = self.linking.initiate_from_quotation
        self.update_process = self.linking.update_process
        self.update_process_status = self.linking.update_process_status
        self.delete_process = self.linking.delete_process
        self.link_quotation = self.linking.link_quotation
        self.link_sales_order = self.linking.link_sales_order
        self.link_purchase_order = self.linking.link_purchase_order
        self.link_delivery = self.linking.link_delivery
        self.link_invoice = self.linking.link_invoice

        # Derived views
        self.get_complete_process_flow = self.flows.get_complete_process_flow
        self.get_process_timeline = self.flows.get_process_timeline
        self.calculate_profitability = self.profitability.calculate_profitability
        self.get_profitability_analysis = self.profitability.get_profitability_analysis
        self.get_sales_conversion_metrics = self.funnel.get_sales_conversion_metrics

        # Reads
        self.get_process = self.queries.get_process
        self.list_processes = self.queries.list_processes
        self.search_sales_processes = self.queries.search_sales_processes
        self.get_processes_by_status = self.queries.get_processes_by_status
        self.get_processes_by_contact = self.queries.get_processes_by_contact
        self.get_processes_by_period = self.queries.get_processes_by_period
        self.get_processes_by_stage = self.queries.get_processes_by_stage
        self.get_abandoned_processes = self.queries.get_abandoned_processes
        self.get_sales_process_stats = self.queries.get_sales_process_stats
        self.get_contact_sales_process_summary = self.queries.get_contact_sales_process_summary

# Overview: Service-layer operations for process profitability; recalculation and reporting.

"""
Profitability

WHY: A process's profit is what its invoices bring in minus what its
purchase orders cost. calculate_profitability() is the authoritative
recompute; the per-link profit refresh in the linking service is a cache of
the same rule.

All amounts are integer cents. Margins and ROI are percentages rounded to
two decimals, like the rest of the reporting output.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from typing import Iterable

from sqlalchemy import func
from sqlalchemy.orm import Session, joinedload

from ..config import config_value
from ..extensions import db
from ..logging_config import LogContext, get_logger
from ..models import (
    Contact,
    InvoiceItem,
    ProcessInvoice,
    ProcessPurchaseOrder,
    PurchaseOrderItem,
    SalesProcess,
)
from ..time_utils import month_key, to_utc_z, utcnow
from .concurrency import atomic, store_errors
from .document_store import DocumentStores
from .filters import SalesProcessFilter, apply_filter
from .flow_service import ProcessFlowService
from .process_store import SalesProcessStore

logger = get_logger("services.profitability")


def _pct(numerator: float, denominator: float) -> float:
    if not denominator:
        return 0.0
    return round(numerator / denominator * 100.0, 2)


@dataclass(frozen=True)
class Profitability:
    revenue_cents: int
    cost_cents: int
    profit_cents: int
    margin_pct: float

    def to_dict(self) -> dict:
        return {
            "revenue_cents": self.revenue_cents,
            "cost_cents": self.cost_cents,
            "profit_cents": self.profit_cents,
            "margin_pct": self.margin_pct,
        }


def compute_profitability(invoices: Iterable, purchase_orders: Iterable) -> Profitability:
    """Revenue from invoice grand totals, cost from purchase order grand totals."""
    revenue = sum(inv.grand_total_cents or 0 for inv in invoices)
    cost = sum(po.grand_total_cents or 0 for po in purchase_orders)
    profit = revenue - cost
    return Profitability(
        revenue_cents=revenue,
        cost_cents=cost,
        profit_cents=profit,
        margin_pct=_pct(profit, revenue),
    )


class ProfitabilityService:

    def __init__(
        self,
        session: Session | None = None,
        stores: DocumentStores | None = None,
        processes: SalesProcessStore | None = None,
        flows: ProcessFlowService | None = None,
    ):
        self.session = session or db.session
        self.stores = stores or DocumentStores.from_session(self.session)
        self.processes = processes or SalesProcessStore(self.session)
        self.flows = flows or ProcessFlowService(self.session, self.stores, self.processes)

    def calculate_profitability(self, process_id: int) -> SalesProcess:
        """
        Recompute and persist total value (= revenue) and profit for a process.

        Documents that cannot be resolved contribute zero. Running it twice
        without intervening links gives the same result.
        """
        with LogContext.bind(process_id=process_id, operation="calculate_profitability"):
            with atomic(self.session, f"calculate profitability of sales process {process_id}"):
                process = self.processes.get_for_update(process_id)
                flow = self.flows.get_complete_process_flow(process.id)
                result = compute_profitability(flow.invoices, flow.purchase_orders)

                process.total_value_cents = result.revenue_cents
                process.profit_cents = result.profit_cents
                process.updated_at = utcnow()

            logger.info("profitability recalculated", extra=result.to_dict())
        return process

    def get_profitability_analysis(self, criteria: SalesProcessFilter | None = None) -> dict:
        """
        Aggregate revenue, cost and profit over the filtered processes.

        Revenue is the processes' total value and cost is total value minus
        profit, so the figures reflect the last recorded state of each
        process.
        """
        with store_errors("load processes for profitability analysis"):
            processes = (
                apply_filter(self.processes.query(), criteria)
                .options(joinedload(SalesProcess.contact))
                .order_by(SalesProcess.created_at.asc(), SalesProcess.id.asc())
                .all()
            )

        revenue = sum(p.total_value_cents or 0 for p in processes)
        profit = sum(p.profit_cents or 0 for p in processes)
        cost = revenue - profit

        limit = int(config_value("TOP_PROCESSES_LIMIT", 5))
        ranked = sorted(processes, key=lambda p: (-(p.profit_cents or 0), p.id))

        return {
            "total_revenue_cents": revenue,
            "total_cost_cents": cost,
            "total_profit_cents": profit,
            "profit_margin_pct": _pct(profit, revenue),
            "roi_pct": _pct(profit, cost),
            "by_customer": self._by_customer(processes),
            "by_period": self._by_period(processes),
            "by_product": self._by_product([p.id for p in processes]),
            "top_profitable": [self._summary(p) for p in ranked[:limit]],
            "least_profitable": [self._summary(p) for p in list(reversed(ranked))[:limit]],
        }

    # -- breakdowns ----------------------------------------------------------

    @staticmethod
    def _summary(process: SalesProcess) -> dict:
        return {
            "process_id": process.id,
            "contact_name": process.contact.display_name if process.contact else None,
            "status": process.status,
            "total_value_cents": process.total_value_cents,
            "profit_cents": process.profit_cents,
            "margin_pct": process.margin_pct,
            "created_at": to_utc_z(process.created_at),
        }

    @staticmethod
    def _by_customer(processes: list[SalesProcess]) -> list[dict]:
        groups: dict[int, list[SalesProcess]] = defaultdict(list)
        for p in processes:
            groups[p.contact_id].append(p)

        rows = []
        for contact_id, items in groups.items():
            contact: Contact | None = items[0].contact
            revenue = sum(p.total_value_cents or 0 for p in items)
            profit = sum(p.profit_cents or 0 for p in items)
            rows.append({
                "contact_id": contact_id,
                "contact_name": contact.display_name if contact else None,
                "contact_type": contact.type if contact else None,
                "process_count": len(items),
                "revenue_cents": revenue,
                "cost_cents": revenue - profit,
                "profit_cents": profit,
                "margin_pct": _pct(profit, revenue),
                "average_value_cents": revenue // len(items),
            })
        rows.sort(key=lambda r: (-r["profit_cents"], r["contact_id"]))
        return rows

    @staticmethod
    def _by_period(processes: list[SalesProcess]) -> list[dict]:
        groups: dict[str, list[SalesProcess]] = defaultdict(list)
        for p in processes:
            groups[month_key(p.created_at)].append(p)

        rows = []
        previous_profit = None
        for period in sorted(groups):
            items = groups[period]
            revenue = sum(p.total_value_cents or 0 for p in items)
            profit = sum(p.profit_cents or 0 for p in items)
            growth = 0.0
            if previous_profit:
                growth = round((profit - previous_profit) / abs(previous_profit) * 100.0, 2)
            rows.append({
                "period": period,
                "process_count": len(items),
                "revenue_cents": revenue,
                "cost_cents": revenue - profit,
                "profit_cents": profit,
                "margin_pct": _pct(profit, revenue),
                "growth_pct": growth,
            })
            previous_profit = profit
        return rows

    def _by_product(self, process_ids: list[int]) -> list[dict]:
        """Per product: revenue from linked invoice lines, cost from linked purchase order lines."""
        if not process_ids:
            return []

        with store_errors("aggregate invoice lines by product"):
            sold = (
                self.session.query(
                    InvoiceItem.product_id,
                    func.max(InvoiceItem.product_name).label("product_name"),
                    func.max(InvoiceItem.product_code).label("product_code"),
                    func.coalesce(func.sum(InvoiceItem.quantity), 0).label("quantity"),
                    func.coalesce(func.sum(InvoiceItem.line_total_cents), 0).label("revenue"),
                    func.count(func.distinct(InvoiceItem.invoice_id)).label("order_count"),
                )
                .join(ProcessInvoice, ProcessInvoice.invoice_id == InvoiceItem.invoice_id)
                .filter(ProcessInvoice.process_id.in_(process_ids))
                .group_by(InvoiceItem.product_id)
                .all()
            )
        with store_errors("aggregate purchase order lines by product"):
            bought = (
                self.session.query(
                    PurchaseOrderItem.product_id,
                    func.max(PurchaseOrderItem.product_name).label("product_name"),
                    func.max(PurchaseOrderItem.product_code).label("product_code"),
                    func.coalesce(func.sum(PurchaseOrderItem.line_total_cents), 0).label("cost"),
                )
                .join(ProcessPurchaseOrder, ProcessPurchaseOrder.purchase_order_id == PurchaseOrderItem.purchase_order_id)
                .filter(ProcessPurchaseOrder.process_id.in_(process_ids))
                .group_by(PurchaseOrderItem.product_id)
                .all()
            )

        products: dict[int, dict] = {}
        for row in sold:
            products[row.product_id] = {
                "product_id": row.product_id,
                "product_name": row.product_name,
                "product_code": row.product_code,
                "quantity_sold": int(row.quantity or 0),
                "order_count": int(row.order_count or 0),
                "revenue_cents": int(row.revenue or 0),
                "cost_cents": 0,
            }
        for row in bought:
            entry = products.setdefault(row.product_id, {
                "product_id": row.product_id,
                "product_name": row.product_name,
                "product_code": row.product_code,
                "quantity_sold": 0,
                "order_count": 0,
                "revenue_cents": 0,
                "cost_cents": 0,
            })
            entry["cost_cents"] = int(row.cost or 0)

        rows = []
        for entry in products.values():
            entry["profit_cents"] = entry["revenue_cents"] - entry["cost_cents"]
            entry["margin_pct"] = _pct(entry["profit_cents"], entry["revenue_cents"])
            rows.append(entry)
        rows.sort(key=lambda r: (-r["profit_cents"], r["product_id"]))
        return rows

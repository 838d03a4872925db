# Overview: Read-side operations for sales processes; search, listings and statistics.

from __future__ import annotations

from collections import Counter
from datetime import datetime, timedelta

from sqlalchemy.orm import Session, joinedload

from ..config import config_value
from ..errors import InvalidDataError
from ..extensions import db
from ..models import SalesProcess
from ..pagination import PaginatedResult, PaginationParams, paginate
from ..time_utils import days_between, parse_iso_datetime, to_utc_z, utcnow
from . import process_states as states
from .concurrency import store_errors
from .document_store import DocumentStores
from .filters import SalesProcessFilter, apply_filter
from .process_store import SalesProcessStore


def _pct(numerator: float, denominator: float) -> float:
    if not denominator:
        return 0.0
    return round(numerator / denominator * 100.0, 2)


def _average_cycle_days(processes) -> float:
    """Mean days from creation to last update over completed processes."""
    days = [
        days_between(p.created_at, p.updated_at)
        for p in processes
        if p.status == states.COMPLETED
    ]
    if not days:
        return 0.0
    return round(sum(days) / len(days), 2)


class SalesProcessQueryService:

    def __init__(
        self,
        session: Session | None = None,
        stores: DocumentStores | None = None,
        processes: SalesProcessStore | None = None,
    ):
        self.session = session or db.session
        self.stores = stores or DocumentStores.from_session(self.session)
        self.processes = processes or SalesProcessStore(self.session)

    def _base_query(self, criteria: SalesProcessFilter | None = None):
        return (
            apply_filter(self.processes.query(), criteria)
            .options(joinedload(SalesProcess.contact))
        )

    def _page(self, query, params: PaginationParams | None, operation: str, order_by=None) -> PaginatedResult:
        query = query.order_by(*(order_by or (SalesProcess.created_at.desc(), SalesProcess.id.desc())))
        max_size = int(config_value("MAX_PAGE_SIZE", 100))
        if params is None:
            params = PaginationParams(page_size=int(config_value("DEFAULT_PAGE_SIZE", 10)))
        params.validate(max_size)
        with store_errors(operation):
            return paginate(query, params, max_size)

    # -- single / lists ------------------------------------------------------

    def get_process(self, process_id: int) -> SalesProcess:
        return self.processes.get(process_id)

    def list_processes(self, params: PaginationParams | None = None) -> PaginatedResult:
        return self._page(self._base_query(), params, "list sales processes")

    def search_sales_processes(
        self,
        criteria: SalesProcessFilter | None = None,
        params: PaginationParams | None = None,
    ) -> PaginatedResult:
        """Filtered page of processes, newest first; total counted before paging."""
        return self._page(self._base_query(criteria), params, "search sales processes")

    def get_processes_by_status(self, status: str, params: PaginationParams | None = None) -> PaginatedResult:
        states.validate_status(status)
        return self._page(
            self._base_query(SalesProcessFilter(statuses=[status])),
            params,
            f"list sales processes with status {status}",
        )

    def get_processes_by_contact(self, contact_id: int, params: PaginationParams | None = None) -> PaginatedResult:
        self.stores.contacts.get_by_id(contact_id)
        return self._page(
            self._base_query(SalesProcessFilter(contact_id=contact_id)),
            params,
            f"list sales processes of contact {contact_id}",
        )

    def get_processes_by_period(
        self,
        start: datetime | str | None,
        end: datetime | str | None,
        params: PaginationParams | None = None,
    ) -> PaginatedResult:
        """Processes created in [start, end]; ISO-8601 strings are accepted."""
        if isinstance(start, str):
            start = parse_iso_datetime(start)
        if isinstance(end, str):
            end = parse_iso_datetime(end)
        return self._page(
            self._base_query(SalesProcessFilter(date_from=start, date_to=end)),
            params,
            "list sales processes by period",
        )

    def get_processes_by_stage(self, stage: str, params: PaginationParams | None = None) -> PaginatedResult:
        states.validate_stage(stage)
        return self._page(
            self._base_query(SalesProcessFilter(statuses=[stage])),
            params,
            f"list sales processes at stage {stage}",
        )

    def get_abandoned_processes(self, days: int, params: PaginationParams | None = None) -> PaginatedResult:
        """Non-terminal processes with no update for `days` days, stalest first."""
        if days < 0:
            raise InvalidDataError("days must be >= 0", details={"days": days})
        cutoff = utcnow() - timedelta(days=days)
        query = (
            self._base_query(SalesProcessFilter(statuses=sorted(states.ACTIVE_STATUSES)))
            .filter(SalesProcess.updated_at < cutoff)
        )
        return self._page(
            query,
            params,
            "list abandoned sales processes",
            order_by=(SalesProcess.updated_at.asc(), SalesProcess.id.asc()),
        )

    # -- statistics ----------------------------------------------------------

    def get_sales_process_stats(self, criteria: SalesProcessFilter | None = None) -> dict:
        with store_errors("load sales process stats"):
            processes = apply_filter(self.processes.query(), criteria).all()

        total = len(processes)
        total_value = sum(p.total_value_cents or 0 for p in processes)
        total_profit = sum(p.profit_cents or 0 for p in processes)
        count_by_status = Counter(p.status for p in processes)
        value_by_status: Counter = Counter()
        for p in processes:
            value_by_status[p.status] += p.total_value_cents or 0

        return {
            "total_processes": total,
            "total_value_cents": total_value,
            "total_profit_cents": total_profit,
            "average_value_cents": total_value // total if total else 0,
            "average_profit_cents": total_profit // total if total else 0,
            "profit_margin_pct": _pct(total_profit, total_value),
            "count_by_status": dict(count_by_status),
            "value_by_status_cents": dict(value_by_status),
            "completion_rate": _pct(count_by_status.get(states.COMPLETED, 0), total),
            "average_cycle_time_days": _average_cycle_days(processes),
        }

    def get_contact_sales_process_summary(self, contact_id: int) -> dict:
        contact = self.stores.contacts.get_by_id(contact_id)
        with store_errors(f"load sales processes of contact {contact_id}"):
            processes = (
                self.processes.query()
                .filter(SalesProcess.contact_id == contact_id)
                .order_by(SalesProcess.created_at.desc(), SalesProcess.id.desc())
                .all()
            )

        total = len(processes)
        completed = sum(1 for p in processes if p.status == states.COMPLETED)
        active = sum(1 for p in processes if p.status in states.ACTIVE_STATUSES)
        total_value = sum(p.total_value_cents or 0 for p in processes)

        return {
            "contact_id": contact.id,
            "contact_name": contact.display_name,
            "contact_type": contact.type,
            "total_processes": total,
            "active_processes": active,
            "completed_processes": completed,
            "total_value_cents": total_value,
            "total_profit_cents": sum(p.profit_cents or 0 for p in processes),
            "average_value_cents": total_value // total if total else 0,
            "conversion_rate": _pct(completed, total),
            "average_cycle_time_days": _average_cycle_days(processes),
            "last_process_date": to_utc_z(processes[0].created_at) if processes else None,
        }

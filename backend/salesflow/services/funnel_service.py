# Overview: Conversion funnel across a population of sales processes.

"""
Conversion Funnel

Counts how many processes reached each stage of
quotation -> sales_order -> purchase -> delivery -> invoicing -> payment
-> completed and how many dropped out between stages.

COUNTING:
- count: processes that have reached the stage (status at or beyond it; a
  cancelled process counts up to the furthest document it had linked).
- current_count: processes whose status is exactly the stage.
- conversion_rate: count / previous stage's count (first stage: / total).
- abandonment_rate: 100 - conversion_rate.
- Any ratio whose denominator is 0 is 0 (both rates).

Every process in the population is treated as having started from a
quotation, so the population size is reported as total_quotations.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from sqlalchemy.orm import Session

from ..extensions import db
from ..logging_config import get_logger
from ..models import SalesProcess
from ..time_utils import days_between
from . import process_states as states
from .concurrency import store_errors
from .filters import SalesProcessFilter, apply_filter
from .process_store import SalesProcessStore

logger = get_logger("services.funnel")


def _rate(numerator: int, denominator: int) -> float:
    if not denominator:
        return 0.0
    return numerator / denominator * 100.0


@dataclass
class StageMetrics:
    stage: str
    count: int
    current_count: int
    conversion_rate: float
    abandonment_rate: float

    def to_dict(self) -> dict:
        return {
            "stage": self.stage,
            "count": self.count,
            "current_count": self.current_count,
            "conversion_rate": self.conversion_rate,
            "abandonment_rate": self.abandonment_rate,
        }


@dataclass
class SalesConversionMetrics:
    total_quotations: int = 0
    quotation_to_so_rate: float = 0.0
    so_to_invoice_rate: float = 0.0
    invoice_to_payment_rate: float = 0.0
    overall_conversion_rate: float = 0.0
    average_conversion_time_days: float = 0.0
    by_stage: list[StageMetrics] = field(default_factory=list)

    def stage(self, name: str) -> StageMetrics:
        for metrics in self.by_stage:
            if metrics.stage == name:
                return metrics
        raise KeyError(name)

    def to_dict(self) -> dict:
        return {
            "total_quotations": self.total_quotations,
            "quotation_to_so_rate": self.quotation_to_so_rate,
            "so_to_invoice_rate": self.so_to_invoice_rate,
            "invoice_to_payment_rate": self.invoice_to_payment_rate,
            "overall_conversion_rate": self.overall_conversion_rate,
            "average_conversion_time_days": self.average_conversion_time_days,
            "by_stage": {m.stage: m.to_dict() for m in self.by_stage},
        }


def build_funnel(reached_ranks: list[int], statuses: list[str]) -> list[StageMetrics]:
    """Stage metrics from each process's reached rank and current status."""
    total = len(reached_ranks)
    metrics = []
    previous = total
    for stage in states.FUNNEL_STAGES:
        rank = states.STAGE_ORDER.index(stage)
        count = sum(1 for r in reached_ranks if r >= rank)
        conversion = _rate(count, previous)
        metrics.append(StageMetrics(
            stage=stage,
            count=count,
            current_count=sum(1 for s in statuses if s == stage),
            conversion_rate=conversion,
            abandonment_rate=100.0 - conversion if previous else 0.0,
        ))
        previous = count
    return metrics


class FunnelService:

    def __init__(self, session: Session | None = None, processes: SalesProcessStore | None = None):
        self.session = session or db.session
        self.processes = processes or SalesProcessStore(self.session)

    def get_sales_conversion_metrics(self, criteria: SalesProcessFilter | None = None) -> SalesConversionMetrics:
        with store_errors("load processes for conversion metrics"):
            rows = (
                apply_filter(self.processes.query(), criteria)
                .with_entities(
                    SalesProcess.id,
                    SalesProcess.status,
                    SalesProcess.created_at,
                    SalesProcess.updated_at,
                )
                .all()
            )

        cancelled_ids = [row.id for row in rows if row.status == states.CANCELLED]
        linked = self.processes.link_kinds_present(cancelled_ids)
        ranks = [states.reached_rank(row.status, linked.get(row.id, set())) for row in rows]
        statuses = [row.status for row in rows]

        by_stage = build_funnel(ranks, statuses)
        total = len(rows)
        reached = {m.stage: m.count for m in by_stage}

        cycle_days = [
            days_between(row.created_at, row.updated_at)
            for row in rows
            if row.status == states.COMPLETED
        ]

        metrics = SalesConversionMetrics(
            total_quotations=total,
            quotation_to_so_rate=_rate(reached[states.SALES_ORDER], total),
            so_to_invoice_rate=_rate(reached[states.INVOICING], reached[states.SALES_ORDER]),
            invoice_to_payment_rate=_rate(reached[states.COMPLETED], reached[states.INVOICING]),
            overall_conversion_rate=_rate(reached[states.COMPLETED], total),
            average_conversion_time_days=sum(cycle_days) / len(cycle_days) if cycle_days else 0.0,
            by_stage=by_stage,
        )
        logger.info(
            "conversion metrics computed",
            extra={"total_processes": total, "completed": reached[states.COMPLETED]},
        )
        return metrics

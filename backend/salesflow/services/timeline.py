# Overview: Derived event timeline for one sales process.

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime

from salesflow.time_utils import to_utc_z, whole_days_between
from . import process_states as states


PROCESS_CREATED = "process_created"
QUOTATION_CREATED = "quotation_created"
SALES_ORDER_CREATED = "sales_order_created"
PURCHASE_ORDER_CREATED = "purchase_order_created"
DELIVERY_CREATED = "delivery_created"
INVOICE_CREATED = "invoice_created"
PAYMENT_RECEIVED = "payment_received"

# Event that marks each funnel stage as achieved
_STAGE_EVENTS = {
    states.QUOTATION: QUOTATION_CREATED,
    states.SALES_ORDER: SALES_ORDER_CREATED,
    states.PURCHASE: PURCHASE_ORDER_CREATED,
    states.DELIVERY: DELIVERY_CREATED,
    states.INVOICING: INVOICE_CREATED,
    states.PAYMENT: PAYMENT_RECEIVED,
}


@dataclass
class ProcessEvent:
    """One point in a process's history. Built on demand, never stored."""
    timestamp: datetime
    event_type: str
    description: str
    document_id: int | None = None
    document_number: str | None = None
    value_cents: int | None = None

    def to_dict(self) -> dict:
        return {
            "timestamp": to_utc_z(self.timestamp),
            "event_type": self.event_type,
            "description": self.description,
            "document_id": self.document_id,
            "document_number": self.document_number,
            "value_cents": self.value_cents,
        }


@dataclass
class Milestone:
    name: str
    order: int
    status: str  # achieved, pending
    achieved_at: datetime | None = None

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "order": self.order,
            "status": self.status,
            "achieved_at": to_utc_z(self.achieved_at) if self.achieved_at else None,
        }


@dataclass
class ProcessTimeline:
    process_id: int
    current_status: str
    events: list[ProcessEvent] = field(default_factory=list)
    duration_days: int = 0
    milestones: list[Milestone] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "process_id": self.process_id,
            "current_status": self.current_status,
            "events": [e.to_dict() for e in self.events],
            "duration_days": self.duration_days,
            "milestones": [m.to_dict() for m in self.milestones],
        }


def build_timeline(flow) -> list[ProcessEvent]:
    """
    Collect one event per document of the flow, ordered by timestamp.

    Payments are placed at their payment date. The sort is stable, so events
    sharing a timestamp keep document order (process, quotation, sales order,
    purchase orders, deliveries, invoices, payments).
    """
    process = flow.process
    events = [
        ProcessEvent(
            timestamp=process.created_at,
            event_type=PROCESS_CREATED,
            description="Sales process started",
            document_id=process.id,
        )
    ]

    if flow.quotation is not None:
        q = flow.quotation
        events.append(ProcessEvent(
            timestamp=q.created_at,
            event_type=QUOTATION_CREATED,
            description=f"Quotation {q.document_number} created",
            document_id=q.id,
            document_number=q.document_number,
            value_cents=q.grand_total_cents,
        ))

    if flow.sales_order is not None:
        so = flow.sales_order
        events.append(ProcessEvent(
            timestamp=so.created_at,
            event_type=SALES_ORDER_CREATED,
            description=f"Sales order {so.document_number} created",
            document_id=so.id,
            document_number=so.document_number,
            value_cents=so.grand_total_cents,
        ))

    for po in flow.purchase_orders:
        events.append(ProcessEvent(
            timestamp=po.created_at,
            event_type=PURCHASE_ORDER_CREATED,
            description=f"Purchase order {po.document_number} created",
            document_id=po.id,
            document_number=po.document_number,
            value_cents=po.grand_total_cents,
        ))

    for delivery in flow.deliveries:
        events.append(ProcessEvent(
            timestamp=delivery.created_at,
            event_type=DELIVERY_CREATED,
            description=f"Delivery {delivery.document_number} created",
            document_id=delivery.id,
            document_number=delivery.document_number,
        ))

    for invoice in flow.invoices:
        events.append(ProcessEvent(
            timestamp=invoice.created_at,
            event_type=INVOICE_CREATED,
            description=f"Invoice {invoice.document_number} created",
            document_id=invoice.id,
            document_number=invoice.document_number,
            value_cents=invoice.grand_total_cents,
        ))

    for payment in flow.payments:
        events.append(ProcessEvent(
            timestamp=payment.payment_date,
            event_type=PAYMENT_RECEIVED,
            description=f"Payment of {payment.amount_cents / 100:.2f} received",
            document_id=payment.id,
            value_cents=payment.amount_cents,
        ))

    events.sort(key=lambda e: e.timestamp)
    return events


def timeline_duration_days(events: list[ProcessEvent]) -> int:
    """Whole days between the first and last event (0 for fewer than two)."""
    if len(events) < 2:
        return 0
    return whole_days_between(events[0].timestamp, events[-1].timestamp)


def build_milestones(events: list[ProcessEvent], process) -> list[Milestone]:
    """
    One milestone per funnel stage.

    A stage is achieved when its first document event exists or when the
    process status is already at or beyond it; completion is stamped with the
    process's last update.
    """
    first_seen: dict[str, datetime] = {}
    for event in events:
        first_seen.setdefault(event.event_type, event.timestamp)

    reached = states.stage_rank(process.status) if process.status != states.CANCELLED else -1
    milestones = []
    for order, stage in enumerate(states.FUNNEL_STAGES, start=1):
        if stage == states.COMPLETED:
            achieved_at = process.updated_at if process.status == states.COMPLETED else None
        else:
            achieved_at = first_seen.get(_STAGE_EVENTS[stage])
        achieved = achieved_at is not None or (
            reached >= 0 and states.STAGE_ORDER.index(stage) <= reached
        )
        milestones.append(Milestone(
            name=stage,
            order=order,
            status="achieved" if achieved else "pending",
            achieved_at=achieved_at,
        ))
    return milestones

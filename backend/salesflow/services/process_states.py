# Overview: Sales process status state machine; transition table for link events and explicit updates.

"""
Sales Process Status Lifecycle

================================================================================
PURPOSE: Derive a process's status from the documents linked to it
================================================================================

STATE MACHINE:
    draft -> quotation -> sales_order -> purchase -> delivery
          -> invoicing -> payment -> completed

    cancelled is a parallel terminal state, reachable from any non-terminal
    state through an explicit status update.

RULES:
1. Status only moves forward. A link event that belongs to an earlier stage
   keeps the current status (an invoicing process that gets another purchase
   order stays at invoicing).
2. A (status, event) pair missing from TRANSITIONS is rejected with
   InvalidTransitionError and the link is not recorded. Examples: a purchase
   order on a draft process, any link on a cancelled process.
3. completed and cancelled are terminal for explicit updates.
================================================================================
"""

from __future__ import annotations

from ..errors import InvalidDataError, InvalidStageError, InvalidTransitionError


DRAFT = "draft"
QUOTATION = "quotation"
SALES_ORDER = "sales_order"
PURCHASE = "purchase"
DELIVERY = "delivery"
INVOICING = "invoicing"
PAYMENT = "payment"
COMPLETED = "completed"
CANCELLED = "cancelled"

# Forward order; cancelled sits outside it
STAGE_ORDER = (DRAFT, QUOTATION, SALES_ORDER, PURCHASE, DELIVERY, INVOICING, PAYMENT, COMPLETED)
VALID_STATUSES = frozenset(STAGE_ORDER) | {CANCELLED}
TERMINAL_STATUSES = frozenset({COMPLETED, CANCELLED})
ACTIVE_STATUSES = frozenset(VALID_STATUSES - TERMINAL_STATUSES)

# Stages reported by the conversion funnel, in order
FUNNEL_STAGES = (QUOTATION, SALES_ORDER, PURCHASE, DELIVERY, INVOICING, PAYMENT, COMPLETED)

# Link events
QUOTATION_LINKED = "quotation_linked"
SALES_ORDER_LINKED = "sales_order_linked"
PURCHASE_ORDER_LINKED = "purchase_order_linked"
DELIVERY_LINKED = "delivery_linked"
INVOICE_LINKED = "invoice_linked"
PAID_INVOICE_LINKED = "paid_invoice_linked"

LINK_EVENTS = (
    QUOTATION_LINKED,
    SALES_ORDER_LINKED,
    PURCHASE_ORDER_LINKED,
    DELIVERY_LINKED,
    INVOICE_LINKED,
    PAID_INVOICE_LINKED,
)


def _advance(event: str, sources: tuple[str, ...], target: str) -> dict[tuple[str, str], str]:
    """Every source moves to target; every stage after target keeps its status."""
    table = {(source, event): target for source in sources}
    for stage in STAGE_ORDER[STAGE_ORDER.index(target):]:
        table.setdefault((stage, event), stage)
    return table


TRANSITIONS: dict[tuple[str, str], str] = {
    **_advance(QUOTATION_LINKED, (DRAFT, QUOTATION), QUOTATION),
    **_advance(SALES_ORDER_LINKED, (DRAFT, QUOTATION, SALES_ORDER), SALES_ORDER),
    **_advance(PURCHASE_ORDER_LINKED, (SALES_ORDER,), PURCHASE),
    **_advance(DELIVERY_LINKED, (SALES_ORDER, PURCHASE), DELIVERY),
    **_advance(INVOICE_LINKED, (SALES_ORDER, PURCHASE, DELIVERY, INVOICING), INVOICING),
    **_advance(PAID_INVOICE_LINKED, (SALES_ORDER, PURCHASE, DELIVERY, INVOICING, PAYMENT), COMPLETED),
}


def validate_status(status: str) -> None:
    """Raise InvalidDataError unless status is a known process status."""
    if status not in VALID_STATUSES:
        raise InvalidDataError(
            f"Invalid status '{status}'. Must be one of: {', '.join(sorted(VALID_STATUSES))}",
            details={"status": status},
        )


def validate_stage(stage: str) -> str:
    if stage not in VALID_STATUSES:
        raise InvalidStageError(
            f"Invalid stage '{stage}'. Must be one of: {', '.join(sorted(VALID_STATUSES))}",
            details={"stage": stage},
        )
    return stage


def stage_rank(status: str) -> int:
    """Position in the forward order; cancelled has no rank (-1)."""
    if status == CANCELLED:
        return -1
    validate_status(status)
    return STAGE_ORDER.index(status)


def next_status(current: str, event: str) -> str:
    """
    Resolve the status a link event leads to.

    Raises:
        InvalidTransitionError: the table has no entry for (current, event)
    """
    validate_status(current)
    if event not in LINK_EVENTS:
        raise InvalidDataError(f"Unknown process event '{event}'", details={"event": event})
    try:
        return TRANSITIONS[(current, event)]
    except KeyError:
        raise InvalidTransitionError(current, event) from None


def can_transition(from_status: str, to_status: str) -> bool:
    """
    Check an explicit status update.

    Allowed:
    - same status (no-op)
    - any non-terminal status -> cancelled
    - forward moves between stages of STAGE_ORDER, from a non-terminal status
    """
    validate_status(from_status)
    validate_status(to_status)

    if from_status == to_status:
        return True
    if from_status in TERMINAL_STATUSES:
        return False
    if to_status == CANCELLED:
        return True
    return STAGE_ORDER.index(to_status) > STAGE_ORDER.index(from_status)


def require_transition(from_status: str, to_status: str) -> None:
    if not can_transition(from_status, to_status):
        raise InvalidTransitionError(
            from_status,
            f"set_status:{to_status}",
            message=f"Cannot change process status from '{from_status}' to '{to_status}'",
        )


def reached_rank(status: str, linked_kinds: set[str] | frozenset[str] = frozenset()) -> int:
    """
    Furthest forward stage a process has reached.

    Active and completed processes are ranked by their status. A cancelled
    process has no stage of its own, so it is ranked by the furthest kind of
    document it had linked before it was cancelled.
    """
    if status != CANCELLED:
        return stage_rank(status)
    rank = 0
    for kind, stage in _KIND_STAGE:
        if kind in linked_kinds:
            rank = max(rank, STAGE_ORDER.index(stage))
    return rank


_KIND_STAGE = (
    ("quotation", QUOTATION),
    ("sales_order", SALES_ORDER),
    ("purchase_order", PURCHASE),
    ("delivery", DELIVERY),
    ("invoice", INVOICING),
)

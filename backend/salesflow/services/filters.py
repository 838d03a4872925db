# Overview: Filter predicates shared by search, stats, funnel and profitability analysis.

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime

from sqlalchemy import exists, or_, select

from ..models import Contact, SalesProcess
from . import process_states as states
from .process_store import LINK_KINDS


@dataclass
class SalesProcessFilter:
    """
    Criteria for selecting sales processes. Unset fields do not filter.

    has_* flags: True requires at least one link of that kind, False requires
    none. Amounts are in cents. date_from/date_to bound created_at inclusively
    and either may be given alone.
    """
    statuses: list[str] = field(default_factory=list)
    contact_id: int | None = None
    contact_type: str | None = None
    date_from: datetime | None = None
    date_to: datetime | None = None
    min_value_cents: int | None = None
    max_value_cents: int | None = None
    min_profit_cents: int | None = None
    max_profit_cents: int | None = None
    has_quotation: bool | None = None
    has_sales_order: bool | None = None
    has_purchase_order: bool | None = None
    has_delivery: bool | None = None
    has_invoice: bool | None = None
    is_complete: bool | None = None
    search: str | None = None

    def validate(self) -> "SalesProcessFilter":
        for status in self.statuses:
            states.validate_status(status)
        return self

    def link_flags(self) -> dict[str, bool]:
        flags = {
            "quotation": self.has_quotation,
            "sales_order": self.has_sales_order,
            "purchase_order": self.has_purchase_order,
            "delivery": self.has_delivery,
            "invoice": self.has_invoice,
        }
        return {kind: flag for kind, flag in flags.items() if flag is not None}


def _has_link(kind: str):
    link = LINK_KINDS[kind]
    return exists().where(link.model.process_id == SalesProcess.id)


def apply_filter(query, criteria: SalesProcessFilter | None):
    """Add the filter's predicates to a query over SalesProcess."""
    if criteria is None:
        return query
    criteria.validate()

    if criteria.statuses:
        query = query.filter(SalesProcess.status.in_(criteria.statuses))
    if criteria.contact_id is not None:
        query = query.filter(SalesProcess.contact_id == criteria.contact_id)
    if criteria.contact_type:
        query = query.filter(
            SalesProcess.contact_id.in_(select(Contact.id).where(Contact.type == criteria.contact_type))
        )

    if criteria.date_from is not None:
        query = query.filter(SalesProcess.created_at >= criteria.date_from)
    if criteria.date_to is not None:
        query = query.filter(SalesProcess.created_at <= criteria.date_to)

    if criteria.min_value_cents is not None:
        query = query.filter(SalesProcess.total_value_cents >= criteria.min_value_cents)
    if criteria.max_value_cents is not None:
        query = query.filter(SalesProcess.total_value_cents <= criteria.max_value_cents)
    if criteria.min_profit_cents is not None:
        query = query.filter(SalesProcess.profit_cents >= criteria.min_profit_cents)
    if criteria.max_profit_cents is not None:
        query = query.filter(SalesProcess.profit_cents <= criteria.max_profit_cents)

    for kind, wanted in criteria.link_flags().items():
        clause = _has_link(kind)
        query = query.filter(clause if wanted else ~clause)

    if criteria.is_complete is True:
        query = query.filter(SalesProcess.status == states.COMPLETED)
    elif criteria.is_complete is False:
        query = query.filter(SalesProcess.status != states.COMPLETED)

    if criteria.search and criteria.search.strip():
        pattern = f"%{criteria.search.strip()}%"
        matching_contacts = select(Contact.id).where(
            or_(Contact.name.ilike(pattern), Contact.company_name.ilike(pattern))
        )
        query = query.filter(
            or_(
                SalesProcess.notes.ilike(pattern),
                SalesProcess.contact_id.in_(matching_contacts),
            )
        )

    return query

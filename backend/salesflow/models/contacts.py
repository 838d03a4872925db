from __future__ import annotations

from ..extensions import db
from salesflow.time_utils import to_utc_z, utcnow


CONTACT_TYPES = ("client", "supplier", "lead")
PERSON_TYPES = ("individual", "company")


class Contact(db.Model):
    """
    Customer/supplier master data referenced by every commercial document.

    WHY: A sales process belongs to one contact; search and profitability
    reports join on it for names and contact type.
    """
    __tablename__ = "contacts"
    __table_args__ = (
        db.Index("ix_contacts_type", "type"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    person_type = db.Column(db.String(16), nullable=False, default="company")
    type = db.Column(db.String(16), nullable=False, default="client")

    name = db.Column(db.String(255), nullable=False)
    company_name = db.Column(db.String(255), nullable=True)
    trade_name = db.Column(db.String(255), nullable=True)
    document = db.Column(db.String(32), nullable=True)
    email = db.Column(db.String(255), nullable=True)
    phone = db.Column(db.String(32), nullable=True)
    city = db.Column(db.String(128), nullable=True)
    state = db.Column(db.String(64), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    @property
    def display_name(self) -> str:
        """Company name when present, personal name otherwise."""
        return self.company_name or self.name

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "person_type": self.person_type,
            "type": self.type,
            "name": self.name,
            "company_name": self.company_name,
            "trade_name": self.trade_name,
            "document": self.document,
            "email": self.email,
            "phone": self.phone,
            "city": self.city,
            "state": self.state,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }

from __future__ import annotations

from ..extensions import db
from resaledesk.time_utils import to_utc_z, to_iso_date


PAYMENT_TYPE_CLIENT = "CLIENT"
PAYMENT_TYPE_VENDOR = "VENDOR"

PAYMENT_TYPES = {PAYMENT_TYPE_CLIENT, PAYMENT_TYPE_VENDOR}

PAYMENT_METHODS = {"UPI", "CARD", "BANK", "CASH", "OTHER"}


class Payment(db.Model):
    """
    Single money movement tied to exactly one purchase.

    TYPES:
    - CLIENT: money received from the client
    - VENDOR: money paid out to the vendor

    Every insert, update, or delete must be followed by
    settlement_service.reconcile_settlement for the owning purchase in the
    same transaction (see payment_service).
    """
    __tablename__ = "purchase_payments"
    __table_args__ = (
        db.Index("ix_purchase_payments_purchase_type", "purchase_id", "type"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    purchase_id = db.Column(db.Integer, db.ForeignKey("purchases.id"), nullable=False, index=True)

    type = db.Column(db.String(16), nullable=False, index=True)

    # Amount (minor units, > 0)
    amount_minor = db.Column(db.BigInteger, nullable=False)

    paid_on = db.Column(db.Date, nullable=False, index=True)
    method = db.Column(db.String(16), nullable=True)

    # Bank/UPI reference, cheque number, etc.
    reference = db.Column(db.String(255), nullable=True)
    screenshot_url = db.Column(db.String(1024), nullable=True)
    notes = db.Column(db.Text, nullable=True)

    created_by = db.Column(db.String(64), nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    purchase = db.relationship(
        "Purchase",
        backref=db.backref("payments", lazy=True, cascade="all, delete-orphan"),
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "purchase_id": self.purchase_id,
            "order_id": self.purchase.order_id if self.purchase else None,
            "type": self.type,
            "amount_minor": self.amount_minor,
            "paid_on": to_iso_date(self.paid_on),
            "method": self.method,
            "reference": self.reference,
            "screenshot_url": self.screenshot_url,
            "notes": self.notes,
            "created_by": self.created_by,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }

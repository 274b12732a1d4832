from __future__ import annotations

from ..activation import read_activation
from ..extensions import db
from resaledesk.time_utils import to_utc_z, to_iso_date


STATUS_OPEN = "OPEN"
STATUS_COMPLETED = "COMPLETED"
STATUS_CANCELLED = "CANCELLED"

PURCHASE_STATUSES = {STATUS_OPEN, STATUS_COMPLETED, STATUS_CANCELLED}

SOURCE_PLATFORMS = {"WHATSAPP", "INSTAGRAM", "WEBSITE", "OTHER"}


class Purchase(db.Model):
    """
    Resale transaction brokered between a client and a vendor.

    WHY: One document carries what the client owes, what the vendor is owed,
    and the derived state (expiry dates, settlement) kept consistent with
    the payment history.

    DERIVED COLUMNS:
    - validity_end_date / warranty_end_date: written only by
      services.derived_fields.calculate_derived_fields
    - client/vendor paid/due and status OPEN<->COMPLETED: written only by
      services.settlement_service

    ACTIVATION: exactly one variant's columns are populated, see
    resaledesk.activation. The sealed secret is never part of to_dict().
    """
    __tablename__ = "purchases"
    __table_args__ = (
        db.UniqueConstraint("order_id", name="uq_purchases_order_id"),
        db.Index("ix_purchases_date_status", "purchase_date", "status"),
        db.Index("ix_purchases_client_date", "client_id", "purchase_date"),
        db.Index("ix_purchases_vendor_date", "vendor_id", "purchase_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    # Human-readable order number (e.g., "PH-2025-00008")
    order_id = db.Column(db.String(64), nullable=False)

    source_platform = db.Column(db.String(16), nullable=False, default="WHATSAPP")
    source_ref = db.Column(db.String(255), nullable=True)

    # Opaque references into collaborator collections (not enforced here)
    client_id = db.Column(db.String(64), nullable=False, index=True)
    product_id = db.Column(db.String(64), nullable=False, index=True)
    vendor_id = db.Column(db.String(64), nullable=True, index=True)

    purchase_date = db.Column(db.Date, nullable=False, index=True)

    # Validity window
    validity_duration_months = db.Column(db.Integer, nullable=True)
    validity_start_date = db.Column(db.Date, nullable=True)
    validity_end_date = db.Column(db.Date, nullable=True, index=True)

    # Warranty
    has_warranty = db.Column(db.Boolean, nullable=False, default=False)
    warranty_months = db.Column(db.Integer, nullable=True)
    warranty_end_date = db.Column(db.Date, nullable=True, index=True)

    # Activation (tagged union; see resaledesk.activation)
    activation_method = db.Column(db.String(32), nullable=False)
    activation_username = db.Column(db.String(255), nullable=True)
    activation_secret_sealed = db.Column(db.Text, nullable=True)
    activation_coupon_code = db.Column(db.String(255), nullable=True)
    invited_email = db.Column(db.String(255), nullable=True)
    invited_at = db.Column(db.DateTime(timezone=True), nullable=True)
    invite_status = db.Column(db.String(16), nullable=True)

    # Amounts (minor units)
    client_pay_total_minor = db.Column(db.BigInteger, nullable=False)
    vendor_pay_total_minor = db.Column(db.BigInteger, nullable=False)
    discount_minor = db.Column(db.BigInteger, nullable=False, default=0)
    taxes_minor = db.Column(db.BigInteger, nullable=False, default=0)
    fees_minor = db.Column(db.BigInteger, nullable=False, default=0)
    currency = db.Column(db.String(3), nullable=False, default="INR")

    # Settlement (derived; never authored directly)
    client_paid_minor = db.Column(db.BigInteger, nullable=False, default=0)
    vendor_paid_minor = db.Column(db.BigInteger, nullable=False, default=0)
    client_due_minor = db.Column(db.BigInteger, nullable=False, default=0)
    vendor_due_minor = db.Column(db.BigInteger, nullable=False, default=0)

    status = db.Column(db.String(16), nullable=False, default=STATUS_OPEN, index=True)

    # Payment proof links (URLs on the external asset host)
    client_proof_urls = db.Column(db.JSON, nullable=False, default=list)
    vendor_proof_urls = db.Column(db.JSON, nullable=False, default=list)

    vendor_contact_name = db.Column(db.String(255), nullable=True)
    vendor_contact_phone = db.Column(db.String(64), nullable=True)

    # Actor attribution (ids supplied by the upstream gateway)
    created_by = db.Column(db.String(64), nullable=False)
    updated_by = db.Column(db.String(64), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    version_id = db.Column(db.Integer, nullable=False, default=1)
    __mapper_args__ = {"version_id_col": version_id}

    @property
    def profit_minor(self) -> int:
        return self.client_pay_total_minor - self.vendor_pay_total_minor - (self.fees_minor or 0)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "order_id": self.order_id,
            "source_platform": self.source_platform,
            "source_ref": self.source_ref,
            "client_id": self.client_id,
            "product_id": self.product_id,
            "vendor_id": self.vendor_id,
            "purchase_date": to_iso_date(self.purchase_date),
            "validity": {
                "duration_months": self.validity_duration_months,
                "start_date": to_iso_date(self.validity_start_date),
                "end_date": to_iso_date(self.validity_end_date),
            },
            "warranty": {
                "has_warranty": bool(self.has_warranty),
                "months": self.warranty_months,
                "end_date": to_iso_date(self.warranty_end_date),
            },
            "activation": read_activation(self).to_public_dict(),
            "amounts": {
                "client_pay_total_minor": self.client_pay_total_minor,
                "vendor_pay_total_minor": self.vendor_pay_total_minor,
                "discount_minor": self.discount_minor,
                "taxes_minor": self.taxes_minor,
                "fees_minor": self.fees_minor,
                "currency": self.currency,
            },
            "settlement": {
                "client_paid_minor": self.client_paid_minor,
                "vendor_paid_minor": self.vendor_paid_minor,
                "client_due_minor": self.client_due_minor,
                "vendor_due_minor": self.vendor_due_minor,
            },
            "profit_minor": self.profit_minor,
            "status": self.status,
            "files": {
                "client_proof_urls": list(self.client_proof_urls or []),
                "vendor_proof_urls": list(self.vendor_proof_urls or []),
            },
            "people": {
                "vendor_contact_name": self.vendor_contact_name,
                "vendor_contact_phone": self.vendor_contact_phone,
            },
            "created_by": self.created_by,
            "updated_by": self.updated_by,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
            "version_id": self.version_id,
        }

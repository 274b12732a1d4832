from __future__ import annotations

from ..extensions import db
from resaledesk.time_utils import to_utc_z


DISCOUNT_PERCENT = "PERCENT"
DISCOUNT_FLAT = "FLAT"

DISCOUNT_TYPES = {DISCOUNT_PERCENT, DISCOUNT_FLAT}


class Coupon(db.Model):
    """
    Discount rule, optionally scoped to one product.

    discount_value is basis points for PERCENT (1500 = 15.00%) and minor
    units for FLAT. The entity only reports validity; redemption enforces
    used_count <= max_uses (coupon_service.redeem_coupon).
    """
    __tablename__ = "coupons"
    __table_args__ = (
        db.UniqueConstraint("code", name="uq_coupons_code"),
        db.Index("ix_coupons_window", "valid_from", "valid_to"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    # Stored upper-case
    code = db.Column(db.String(64), nullable=False)
    product_id = db.Column(db.String(64), nullable=True, index=True)

    discount_type = db.Column(db.String(16), nullable=True)  # PERCENT, FLAT
    discount_value = db.Column(db.BigInteger, nullable=True)

    max_uses = db.Column(db.Integer, nullable=True)
    used_count = db.Column(db.Integer, nullable=False, default=0)

    valid_from = db.Column(db.DateTime(timezone=True), nullable=True)
    valid_to = db.Column(db.DateTime(timezone=True), nullable=True)

    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "code": self.code,
            "product_id": self.product_id,
            "discount_type": self.discount_type,
            "discount_value": self.discount_value,
            "max_uses": self.max_uses,
            "used_count": self.used_count,
            "valid_from": to_utc_z(self.valid_from),
            "valid_to": to_utc_z(self.valid_to),
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }

# Overview: Activation variants for a purchase (login credentials, coupon code, email invite).

"""
Activation methods as a tagged union.

A purchase is activated in exactly one way. Each variant is its own frozen
dataclass, so a LOGIN_CREDENTIALS activation cannot also carry a coupon code.
The Purchase row stores the active variant's columns only; read_activation()
and write_activation() convert between the two.

The login secret only ever exists here in sealed form (secret_sealed).
Plaintext arrives in the request payload and is sealed by the caller's
CredentialVault before a LoginCredentials value is built.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import ClassVar, Optional, Union

from .time_utils import to_utc_z, utcnow
from .validation import ValidationError


METHOD_LOGIN_CREDENTIALS = "LOGIN_CREDENTIALS"
METHOD_COUPON_CODE = "COUPON_CODE"
METHOD_EMAIL_INVITE = "EMAIL_INVITE"

ACTIVATION_METHODS = {METHOD_LOGIN_CREDENTIALS, METHOD_COUPON_CODE, METHOD_EMAIL_INVITE}

INVITE_SENT = "SENT"
INVITE_STATUSES = {"SENT", "DELIVERED", "ACCEPTED", "FAILED"}

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


@dataclass(frozen=True)
class LoginCredentials:
    method: ClassVar[str] = METHOD_LOGIN_CREDENTIALS

    username: Optional[str] = None
    secret_sealed: Optional[str] = field(default=None, repr=False)

    @property
    def has_secret(self) -> bool:
        return bool(self.secret_sealed)

    def to_public_dict(self) -> dict:
        return {
            "method": self.method,
            "username": self.username,
            "has_secret": self.has_secret,
        }


@dataclass(frozen=True)
class CouponCodeActivation:
    method: ClassVar[str] = METHOD_COUPON_CODE

    code: Optional[str] = None

    def to_public_dict(self) -> dict:
        return {"method": self.method, "coupon_code": self.code}


@dataclass(frozen=True)
class EmailInvite:
    method: ClassVar[str] = METHOD_EMAIL_INVITE

    invited_email: Optional[str] = None
    invited_at: Optional[datetime] = None
    status: Optional[str] = None

    def to_public_dict(self) -> dict:
        return {
            "method": self.method,
            "invited_email": self.invited_email,
            "invited_at": to_utc_z(self.invited_at),
            "status": self.status,
        }


Activation = Union[LoginCredentials, CouponCodeActivation, EmailInvite]


def _optional_str(data: dict, key: str) -> Optional[str]:
    value = data.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValidationError(f"activation.{key} must be a string")
    value = value.strip()
    return value or None


def activation_from_payload(data, *, vault=None, existing: Optional[Activation] = None) -> Activation:
    """
    Build an activation variant from request JSON.

    Payload shape: {"method": ..., plus the fields of that method}
    - LOGIN_CREDENTIALS: username, secret (plaintext; sealed with `vault`)
    - COUPON_CODE: coupon_code
    - EMAIL_INVITE: invited_email, status (default SENT)

    When a LOGIN_CREDENTIALS update omits `secret`, the previously sealed
    secret of `existing` is kept.
    """
    if not isinstance(data, dict):
        raise ValidationError("activation must be an object")

    method = data.get("method")
    if method not in ACTIVATION_METHODS:
        raise ValidationError(f"activation.method must be one of {sorted(ACTIVATION_METHODS)}")

    allowed = {
        METHOD_LOGIN_CREDENTIALS: {"method", "username", "secret"},
        METHOD_COUPON_CODE: {"method", "coupon_code"},
        METHOD_EMAIL_INVITE: {"method", "invited_email", "status"},
    }[method]
    extra = sorted(set(data) - allowed)
    if extra:
        raise ValidationError(f"Fields not allowed for {method}: {', '.join(extra)}")

    if method == METHOD_LOGIN_CREDENTIALS:
        secret = data.get("secret")
        if secret is not None and not isinstance(secret, str):
            raise ValidationError("activation.secret must be a string")
        if secret:
            if vault is None:
                raise ValidationError("activation.secret cannot be stored without a credential vault")
            sealed = vault.seal(secret)
        elif isinstance(existing, LoginCredentials):
            sealed = existing.secret_sealed
        else:
            sealed = None
        return LoginCredentials(username=_optional_str(data, "username"), secret_sealed=sealed)

    if method == METHOD_COUPON_CODE:
        return CouponCodeActivation(code=_optional_str(data, "coupon_code"))

    email = _optional_str(data, "invited_email")
    if email is not None:
        email = email.lower()
        if not _EMAIL_RE.match(email):
            raise ValidationError("activation.invited_email must be a valid email address")

    status = data.get("status") or INVITE_SENT
    if status not in INVITE_STATUSES:
        raise ValidationError(f"activation.status must be one of {sorted(INVITE_STATUSES)}")

    invited_at = None
    if email is not None:
        keep_timestamp = isinstance(existing, EmailInvite) and existing.invited_email == email
        invited_at = existing.invited_at if keep_timestamp else utcnow()

    return EmailInvite(invited_email=email, invited_at=invited_at, status=status)


def read_activation(purchase) -> Activation:
    """Rebuild the activation variant stored on a purchase row."""
    method = purchase.activation_method
    if method == METHOD_LOGIN_CREDENTIALS:
        return LoginCredentials(
            username=purchase.activation_username,
            secret_sealed=purchase.activation_secret_sealed,
        )
    if method == METHOD_COUPON_CODE:
        return CouponCodeActivation(code=purchase.activation_coupon_code)
    if method == METHOD_EMAIL_INVITE:
        return EmailInvite(
            invited_email=purchase.invited_email,
            invited_at=purchase.invited_at,
            status=purchase.invite_status,
        )
    raise ValueError(f"Unknown activation method on purchase {purchase.id}: {method}")


def write_activation(purchase, activation: Activation) -> None:
    """Store `activation` on the row, clearing every other variant's columns."""
    purchase.activation_method = activation.method
    purchase.activation_username = None
    purchase.activation_secret_sealed = None
    purchase.activation_coupon_code = None
    purchase.invited_email = None
    purchase.invited_at = None
    purchase.invite_status = None

    if isinstance(activation, LoginCredentials):
        purchase.activation_username = activation.username
        purchase.activation_secret_sealed = activation.secret_sealed
    elif isinstance(activation, CouponCodeActivation):
        purchase.activation_coupon_code = activation.code
    elif isinstance(activation, EmailInvite):
        purchase.invited_email = activation.invited_email
        purchase.invited_at = activation.invited_at
        purchase.invite_status = activation.status

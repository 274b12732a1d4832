# Overview: Service-layer operations for settlement; encapsulates business logic and database work.

"""
Settlement Reconciler

WHY: A purchase's paid/due figures must always agree with its payment
history. Rather than adjusting running totals on each payment (which drifts
when payments are edited or deleted), settlement is recomputed from the
complete payment set every time.

DESIGN PRINCIPLES:
- Only writer of client/vendor paid/due columns
- Dues are unclamped: negative means overpaid
- Status machine (CANCELLED is manual and never changed here):
    both dues <= 0                 -> COMPLETED
    COMPLETED and any due > 0      -> OPEN
- Idempotent: a second call with no payment change writes the same values
- The reconciler flushes but does not commit unless asked, so the payment
  write that triggered it and the new settlement commit together
"""

from __future__ import annotations

from dataclasses import dataclass

from flask import current_app

from ..extensions import db
from ..models import Purchase, Payment
from ..models.payments import PAYMENT_TYPE_CLIENT, PAYMENT_TYPE_VENDOR
from ..models.purchases import STATUS_OPEN, STATUS_COMPLETED, STATUS_CANCELLED
from ..money import checked_sum
from ..validation import NotFoundError
from .concurrency import run_with_retry


@dataclass(frozen=True)
class Settlement:
    client_paid_minor: int
    vendor_paid_minor: int
    client_due_minor: int
    vendor_due_minor: int


def summarize_payments(client_total: int, vendor_total: int, payments) -> Settlement:
    """
    Aggregate payments into a Settlement for the given pay totals.

    Raises AmountOverflowError if a per-type sum exceeds MAX_SAFE_MINOR_UNITS.
    """
    payments = list(payments)
    client_paid = checked_sum(
        (p.amount_minor for p in payments if p.type == PAYMENT_TYPE_CLIENT),
        "client_paid_minor",
    )
    vendor_paid = checked_sum(
        (p.amount_minor for p in payments if p.type == PAYMENT_TYPE_VENDOR),
        "vendor_paid_minor",
    )
    return Settlement(
        client_paid_minor=client_paid,
        vendor_paid_minor=vendor_paid,
        client_due_minor=client_total - client_paid,
        vendor_due_minor=vendor_total - vendor_paid,
    )


def next_status(current: str, settlement: Settlement) -> str:
    """Apply the OPEN/COMPLETED transition; CANCELLED is returned unchanged."""
    if current == STATUS_CANCELLED:
        return current

    if settlement.client_due_minor <= 0 and settlement.vendor_due_minor <= 0:
        return STATUS_COMPLETED

    if current == STATUS_COMPLETED:
        return STATUS_OPEN

    return current


def apply_settlement(purchase: Purchase) -> Purchase:
    """
    Recompute settlement and status for an already-loaded purchase.

    Reads payments through the current session, so payments added or
    deleted earlier in the same transaction are visible (autoflush).
    """
    payments = db.session.query(Payment).filter_by(purchase_id=purchase.id).all()
    settlement = summarize_payments(
        purchase.client_pay_total_minor,
        purchase.vendor_pay_total_minor,
        payments,
    )

    purchase.client_paid_minor = settlement.client_paid_minor
    purchase.vendor_paid_minor = settlement.vendor_paid_minor
    purchase.client_due_minor = settlement.client_due_minor
    purchase.vendor_due_minor = settlement.vendor_due_minor

    previous = purchase.status
    purchase.status = next_status(previous, settlement)
    if purchase.status != previous:
        current_app.logger.info(
            "Purchase %s status %s -> %s (client due %d, vendor due %d)",
            purchase.order_id, previous, purchase.status,
            settlement.client_due_minor, settlement.vendor_due_minor,
        )

    db.session.flush()
    return purchase


def reconcile_settlement(purchase_id: int, *, commit: bool = False) -> Purchase:
    """
    Reconcile one purchase from its full payment history.

    Args:
        purchase_id: Purchase to reconcile
        commit: Commit the session (standalone callers such as the CLI).
            Payment handlers leave this False and commit their own
            transaction so the payment write and settlement land together.

    Returns:
        The updated purchase

    Raises:
        NotFoundError: purchase does not exist (an orphaned payment; the
            caller must abandon its transaction)
        AmountOverflowError: payment totals exceed the safe integer range
    """
    purchase = db.session.get(Purchase, purchase_id)
    if purchase is None:
        raise NotFoundError(f"Purchase {purchase_id} not found")

    apply_settlement(purchase)

    if commit:
        db.session.commit()
    return purchase


def reconcile_all(*, batch_size: int = 200) -> int:
    """Reconcile every purchase, committing per batch. Returns the count."""
    count = 0
    last_id = 0
    while True:
        ids = [
            row[0]
            for row in db.session.query(Purchase.id)
            .filter(Purchase.id > last_id)
            .order_by(Purchase.id)
            .limit(batch_size)
            .all()
        ]
        if not ids:
            return count

        def _op(batch=ids):
            for purchase_id in batch:
                reconcile_settlement(purchase_id)
            db.session.commit()

        run_with_retry(_op)
        count += len(ids)
        last_id = ids[-1]

# Overview: Service-layer operations for order ids; encapsulates business logic and database work.

"""
Order ID Sequencer

WHY: Staff quote order ids to clients ("PH-2025-00008"), so they must be
short, sequential per prefix and year, and never reused.

FORMAT: {PREFIX}-{YYYY}-{NNNNN}  (5-digit zero padded; grows past 99999)

CANONICAL SUFFIX: exactly 5 ASCII digits, or 6+ ASCII digits without a
leading zero. Stored ids with any other suffix (Unicode digits, extra zero
padding) are malformed: never parsed, never counted.

CONCURRENCY: "find max, then insert max+1" is not atomic. Two creators can
compute the same number. The purchases table carries a unique constraint on
order_id, and allocate_order_id() retries with a freshly computed number when
the insert hits it, up to a bounded number of attempts, then raises
ConflictError.
"""

from __future__ import annotations

import re
from typing import Callable, TypeVar

from flask import current_app
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import Purchase
from ..time_utils import utcnow
from ..validation import ValidationError, ConflictError


T = TypeVar("T")

PREFIX_RE = re.compile(r"[A-Z0-9]{1,10}")
SEQUENCE_RE = re.compile(r"[0-9]{5}|[1-9][0-9]{5,}")
ORDER_ID_RE = re.compile(r"[A-Z0-9]{1,10}-[0-9]{4}-(?:[0-9]{5}|[1-9][0-9]{5,})")
SEQUENCE_PAD = 5
DEFAULT_ATTEMPTS = 3


def normalize_prefix(prefix: str | None) -> str:
    """Upper-case and validate an order id prefix."""
    if prefix is None:
        prefix = current_app.config.get("ORDER_ID_PREFIX", "PH")
    normalized = str(prefix).strip().upper()
    if not PREFIX_RE.fullmatch(normalized):
        raise ValidationError("Order id prefix must be 1-10 letters or digits")
    return normalized


def validate_order_id(order_id: str) -> str:
    """
    Check a caller-supplied order id against the canonical format.

    Raises ValidationError for anything the sequencer could not count
    (e.g. "PH-2025-000001", Unicode digits).
    """
    if not isinstance(order_id, str) or not ORDER_ID_RE.fullmatch(order_id):
        raise ValidationError(
            "order_id must look like PREFIX-YYYY-NNNNN (5+ digits, no extra zero padding)"
        )
    return order_id


def format_order_id(prefix: str, year: int, number: int) -> str:
    return f"{prefix}-{year:04d}-{number:0{SEQUENCE_PAD}d}"


def parse_sequence(order_id: str, stem: str) -> int | None:
    """Numeric suffix of `order_id` after `stem`, or None if not canonical."""
    if not order_id.startswith(stem):
        return None
    suffix = order_id[len(stem):]
    if not SEQUENCE_RE.fullmatch(suffix):
        return None
    number = int(suffix)
    return number if number > 0 else None


def next_order_id(prefix: str | None = None, *, now=None) -> str:
    """
    Compute the next order id for `prefix` in the current (UTC) year.

    One greater than the highest canonical sequence number stored for the
    prefix+year. Malformed historical ids are skipped (logged), never
    counted. With no usable predecessor the sequence starts at 00001.

    This is a read only; it reserves nothing. Use allocate_order_id() to
    persist.
    """
    prefix = normalize_prefix(prefix)
    year = (now or utcnow()).year
    stem = f"{prefix}-{year:04d}-"

    # LIKE wildcards cannot appear: prefix is [A-Z0-9] only
    candidates = (
        db.session.query(Purchase.order_id)
        .filter(Purchase.order_id.like(f"{stem}%"))
    )

    highest = 0
    for (order_id,) in candidates.yield_per(100):
        number = parse_sequence(order_id, stem)
        if number is None:
            current_app.logger.warning("Skipping malformed order id %r", order_id)
            continue
        highest = max(highest, number)

    return format_order_id(prefix, year, highest + 1)


def allocate_order_id(
    persist: Callable[[str], T],
    prefix: str | None = None,
    *,
    attempts: int | None = None,
    now=None,
) -> T:
    """
    Persist a record under a freshly generated order id, retrying on collision.

    Args:
        persist: Called with the candidate order id. Must add and flush the
            record (so the unique constraint fires) and return it. Called
            again with a new id after a rollback on collision, so it must
            build a fresh record each time.
        prefix: Order id prefix (default: ORDER_ID_PREFIX config)
        attempts: Bounded retry count (default: ORDER_ID_MAX_ATTEMPTS config)

    Raises:
        ConflictError: every attempt collided with a concurrent creator
    """
    if attempts is None:
        attempts = current_app.config.get("ORDER_ID_MAX_ATTEMPTS", DEFAULT_ATTEMPTS)

    for attempt in range(1, attempts + 1):
        order_id = next_order_id(prefix, now=now)
        try:
            result = persist(order_id)
            db.session.flush()
        except IntegrityError:
            db.session.rollback()
            current_app.logger.warning(
                "Order id %s already taken (attempt %d/%d)", order_id, attempt, attempts
            )
            continue
        current_app.logger.info("Allocated order id %s", order_id)
        return result

    raise ConflictError(f"Could not allocate a unique order id after {attempts} attempts")

# Overview: Service-layer operations for orders; encapsulates business logic and database work.

"""
Order Service

WHY: Orders aggregate items and carry derived money fields. Every mutation
follows the same sequence inside one database transaction, with the order
row locked (SELECT ... FOR UPDATE) and its version checked on write:

    gate -> apply changes -> recompute totals -> sync payment status
         -> settlement side effect (SAVEPOINT, best-effort) -> commit

Concurrent writers on the same order surface as StaleDataError and are
retried by run_with_retry with fresh data; different orders never contend.
"""

from __future__ import annotations

import random
from datetime import datetime

from flask import current_app
from sqlalchemy import or_

from ..extensions import db
from ..models import Order, User
from ..money import clamp_non_negative, normalize_currency, round2
from ..validation import ConflictError, NotFoundError, ValidationError
from ..time_utils import utcnow
from .access_service import Caller, ensure, can_read_order, can_write_order, order_has_delivered_items
from .concurrency import lock_for_update, run_with_retry
from .status_sync import (
    ORDER_STATUSES,
    PAYMENT_STATUSES,
    ORDER_STATUS_CREATED,
    PAYMENT_STATUS_UNPAID,
    sync_payment_status,
)
from .totals_service import recompute_order_totals
from .transaction_service import apply_settlement_side_effect

ORDER_CODE_PREFIX = "CMD"
MAX_CODE_ATTEMPTS = 5


# =============================================================================
# ORDER CODE
# =============================================================================

def generate_order_code(now: datetime | None = None) -> str:
    """CMD-<YYYYMMDD>-<4 random digits>."""
    now = now or utcnow()
    return f"{ORDER_CODE_PREFIX}-{now:%Y%m%d}-{random.randint(0, 9999):04d}"


def _unique_order_code() -> str:
    for _ in range(MAX_CODE_ATTEMPTS):
        code = generate_order_code()
        if not db.session.query(Order.id).filter_by(code=code).first():
            return code
    raise ConflictError("Could not allocate a unique order code, try again")


# =============================================================================
# PIPELINE
# =============================================================================

def finalize_order(order: Order) -> Order:
    """
    Common tail of every order/item mutation (no commit):
    recompute totals, force the implied payment status, flush, then ensure
    the settlement transaction.
    """
    recompute_order_totals(order)
    sync_payment_status(order)
    db.session.flush()
    apply_settlement_side_effect(order)
    return order


def _apply_order_changes(order: Order, changes: dict) -> None:
    if changes.get("status") is not None:
        if changes["status"] not in ORDER_STATUSES:
            raise ValidationError(f"Invalid order status: {changes['status']}")
        order.status = changes["status"]

    # Caller-controlled only; finalize_order overrides it for implying statuses
    if changes.get("payment_status") is not None:
        if changes["payment_status"] not in PAYMENT_STATUSES:
            raise ValidationError(f"Invalid payment status: {changes['payment_status']}")
        order.payment_status = changes["payment_status"]

    for field in ("payment_method", "payment_ref", "notes", "shipping_address", "billing_address"):
        if field in changes:
            setattr(order, field, changes[field])

    if changes.get("currency") is not None:
        order.currency = normalize_currency(changes["currency"], fallback=order.currency or "XOF")

    if "tax" in changes:
        order.tax = round2(clamp_non_negative(changes["tax"]))
    if "shipping" in changes:
        order.shipping = round2(clamp_non_negative(changes["shipping"]))


# =============================================================================
# CRUD
# =============================================================================

def create_order(caller: Caller, data: dict) -> Order:
    """
    Create an order, optionally with items.

    Admins may pick the owner (user_id) and the initial status/payment
    status. Clients always create their own order in created/unpaid.

    Raises:
        AccessDeniedError: agents (and unknown roles)
        NotFoundError: admin-selected owner does not exist
        ValidationError: invalid enum value or item without product/name
    """
    from .order_item_service import build_order_item

    ensure(can_write_order(caller, None), "Not allowed to create orders")

    owner_id = caller.id
    if caller.is_admin and data.get("user_id"):
        owner = db.session.get(User, data["user_id"])
        if owner is None:
            raise NotFoundError("Customer not found")
        owner_id = owner.id

    default_currency = current_app.config.get("DEFAULT_CURRENCY", "XOF")

    changes = {k: v for k, v in data.items() if k not in ("items", "user_id", "currency")}
    if not caller.is_admin:
        changes.pop("status", None)
        changes.pop("payment_status", None)

    def _op():
        order = Order(
            user_id=owner_id,
            code=_unique_order_code(),
            currency=normalize_currency(data.get("currency"), fallback=default_currency),
            status=ORDER_STATUS_CREATED,
            payment_status=PAYMENT_STATUS_UNPAID,
            subtotal=0,
            tax=0,
            shipping=0,
            total=0,
        )
        _apply_order_changes(order, changes)

        db.session.add(order)
        db.session.flush()

        for item_data in data.get("items") or []:
            build_order_item(order, item_data)
        db.session.flush()

        finalize_order(order)
        db.session.commit()
        return order

    return run_with_retry(_op)


def get_order(order_id: int, caller: Caller) -> Order:
    order = db.session.get(Order, order_id)
    if order is None:
        raise NotFoundError("Order not found")
    ensure(can_read_order(caller, order))
    return order


def list_orders(
    caller: Caller,
    filters: dict | None = None,
    limit: int = 50,
    offset: int = 0,
) -> tuple[list[Order], int]:
    """
    Orders visible to caller, newest first.

    Filters: q (code/notes substring), status, payment_status, user_id
    (ignored for clients, who only ever see their own orders).
    """
    filters = filters or {}
    query = db.session.query(Order)

    if caller.role == "client":
        query = query.filter(Order.user_id == caller.id)
    elif filters.get("user_id"):
        query = query.filter(Order.user_id == filters["user_id"])

    if filters.get("status"):
        query = query.filter(Order.status == filters["status"])
    if filters.get("payment_status"):
        query = query.filter(Order.payment_status == filters["payment_status"])
    if filters.get("q"):
        needle = f"%{filters['q']}%"
        query = query.filter(or_(Order.code.ilike(needle), Order.notes.ilike(needle)))

    count = query.count()
    rows = query.order_by(Order.created_at.desc(), Order.id.desc()).limit(limit).offset(offset).all()
    return rows, count


def update_order(order_id: int, caller: Caller, changes: dict) -> Order:
    """
    Update order fields, then recompute, sync payment status and apply the
    settlement side effect.

    Raises:
        NotFoundError: order does not exist
        AccessDeniedError: write rule rejects caller
        ValidationError: invalid status or payment status
    """
    def _op():
        order = lock_for_update(db.session.query(Order).filter_by(id=order_id)).first()
        if order is None:
            raise NotFoundError("Order not found")
        ensure(can_write_order(caller, order), "Not allowed to modify this order")

        _apply_order_changes(order, changes)
        finalize_order(order)

        db.session.commit()
        return order

    return run_with_retry(_op)


def delete_order(order_id: int, caller: Caller) -> None:
    """
    Delete an order and its items; linked transactions are kept unlinked.

    Raises:
        NotFoundError: order does not exist
        AccessDeniedError: write rule rejects caller
        ConflictError: an item is delivered/fulfilled/done (every role)
    """
    def _op():
        order = lock_for_update(db.session.query(Order).filter_by(id=order_id)).first()
        if order is None:
            raise NotFoundError("Order not found")
        ensure(can_write_order(caller, order), "Not allowed to delete this order")

        if order_has_delivered_items(order):
            raise ConflictError("Cannot delete an order with delivered items")

        for trx in list(order.transactions):
            trx.order = None
        db.session.delete(order)
        db.session.commit()

    run_with_retry(_op)

# Overview: Service-layer operations for transactions; settlement side effect plus direct CRUD.

"""
Transaction Service

WHY: Money movements are recorded as Transaction rows. Two entry points:

1. Automatic: when an order reaches a settled status, exactly one
   (order_id, owner, 'expense') transaction must exist and be completed,
   and every other transaction linked to the order is completed with it.
   This side effect is best-effort: a database failure while writing it is
   rolled back to a SAVEPOINT and logged, and the order mutation that
   triggered it still commits.

2. Direct: users create/update/delete transactions through the API, with
   the access rules from access_service.
"""

from __future__ import annotations

from datetime import datetime, timedelta

from flask import current_app
from sqlalchemy import func, or_
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from ..extensions import db
from ..labels import TRANSACTION_TYPE_LABELS, get_label
from ..models import Order, Transaction
from ..money import ZERO, normalize_currency, round2
from ..validation import ConflictError, NotFoundError, ValidationError
from ..time_utils import utcnow
from .access_service import (
    Caller,
    AccessDeniedError,
    ensure,
    can_read_order,
    can_read_transaction,
    can_write_transaction,
    can_delete_transaction,
)
from .status_sync import is_settled


class SideEffectError(Exception):
    """Raised when the automatic settlement transaction cannot be written."""
    pass


# =============================================================================
# TYPES AND STATUSES (CONSTANTS)
# =============================================================================

TYPE_REVENUE = "revenue"
TYPE_EXPENSE = "expense"
TYPE_COMMISSION = "commission"
TYPE_ADJUSTMENT = "adjustment"

TRANSACTION_TYPES = (TYPE_REVENUE, TYPE_EXPENSE, TYPE_COMMISSION, TYPE_ADJUSTMENT)

STATUS_PENDING = "pending"
STATUS_COMPLETED = "completed"
STATUS_CANCELLED = "cancelled"

TRANSACTION_STATUSES = (STATUS_PENDING, STATUS_COMPLETED, STATUS_CANCELLED)

UNKNOWN_PAYMENT_METHOD = "unknown"

# Fields only an admin may change on an existing transaction
ADMIN_ONLY_FIELDS = ("status", "currency", "type", "amount")

SORTABLE_FIELDS = ("created_at", "amount", "type", "status")


# =============================================================================
# SETTLEMENT SIDE EFFECT
# =============================================================================

def apply_settlement_side_effect(order: Order) -> Transaction | None:
    """
    Ensure the automatic expense transaction of a settled order.

    No-op (returns None) when the order is not settled. Every linked row
    that is not completed yet (any type) is completed; the expense row is
    created when missing. Runs inside a
    SAVEPOINT: on database failure only the side effect is rolled back, the
    failure is logged, and None is returned. Does not commit.
    """
    if not is_settled(order.status):
        return None

    try:
        with db.session.begin_nested():
            return _upsert_settlement_transaction(order)
    except (SideEffectError, SQLAlchemyError):
        current_app.logger.exception("Automatic transaction failed for order %s", order.id)
        return None


def _complete_linked_transactions(order: Order) -> int:
    """Mark every non-completed transaction linked to order as completed."""
    rows = (
        db.session.query(Transaction)
        .filter(Transaction.order_id == order.id, Transaction.status != STATUS_COMPLETED)
        .all()
    )
    for trx in rows:
        trx.status = STATUS_COMPLETED
    if rows:
        _flush_side_effect(order)
        current_app.logger.info(
            "%d transaction(s) of order %s marked completed", len(rows), order.id
        )
    return len(rows)


def _upsert_settlement_transaction(order: Order) -> Transaction:
    _complete_linked_transactions(order)

    existing = (
        db.session.query(Transaction)
        .filter_by(order_id=order.id, user_id=order.user_id, type=TYPE_EXPENSE)
        .first()
    )

    if existing is not None:
        return existing

    trx = Transaction(
        user_id=order.user_id,
        order_id=order.id,
        type=TYPE_EXPENSE,
        amount=round2(order.total),
        currency=order.currency or current_app.config.get("DEFAULT_CURRENCY", "XOF"),
        payment_method=order.payment_method or UNKNOWN_PAYMENT_METHOD,
        description=f"Payment for order {order.code or f'#{order.id}'}",
        status=STATUS_COMPLETED,
    )
    db.session.add(trx)
    _flush_side_effect(order)
    current_app.logger.info("Automatic transaction %s created for order %s", trx.id, order.id)
    return trx


def _flush_side_effect(order: Order) -> None:
    try:
        db.session.flush()
    except SQLAlchemyError as exc:
        raise SideEffectError(f"Could not write the automatic transaction of order {order.id}") from exc


# =============================================================================
# DIRECT OPERATIONS
# =============================================================================

def create_transaction(caller: Caller, data: dict, proof_file: dict | None = None) -> tuple[Transaction, bool]:
    """
    Create a transaction, or update the existing one for the same
    (order, owner, type). Updating an existing row follows the write rule
    (owner only while pending), and only an admin may change its amount.

    Args:
        caller: authenticated identity
        data: normalized payload (see payloads.normalize_transaction_payload)
        proof_file: stored upload descriptor (optional)

    Returns:
        (transaction, created) where created is False when an existing
        order-linked row was updated instead.

    Raises:
        ValidationError: missing/invalid type or amount, invalid status
        NotFoundError: linked order does not exist
        AccessDeniedError: non-admin linking an order it cannot read, or
            rewriting an existing row it may not modify
    """
    tx_type = data.get("type")
    if not tx_type:
        raise ValidationError("Transaction type is required")
    if tx_type not in TRANSACTION_TYPES:
        raise ValidationError(f"Invalid transaction type: {tx_type}")

    amount = data.get("amount")
    if amount is None:
        raise ValidationError("Invalid amount")

    order = None
    order_id = data.get("order_id")
    if order_id:
        order = db.session.get(Order, order_id)
        if order is None:
            raise NotFoundError("Order not found")
        ensure(can_read_order(caller, order), "Not allowed to record a transaction on this order")

    default_currency = order.currency if order else current_app.config.get("DEFAULT_CURRENCY", "XOF")
    currency = normalize_currency(data.get("currency"), fallback=default_currency)

    owner_id = order.user_id if order else caller.id

    # Unlinked transactions have no confirmation step; linked ones wait for settlement
    status = STATUS_COMPLETED if order is None else STATUS_PENDING

    if data.get("status") and caller.is_admin:
        if data["status"] not in TRANSACTION_STATUSES:
            raise ValidationError(f"Invalid transaction status: {data['status']}")
        status = data["status"]

    # A settled order only ever carries completed transactions
    if order is not None and is_settled(order.status):
        status = STATUS_COMPLETED

    if order is not None:
        existing = (
            db.session.query(Transaction)
            .filter_by(order_id=order.id, user_id=owner_id, type=tx_type)
            .first()
        )
        if existing is not None:
            ensure(can_write_transaction(caller, existing), "Not allowed to modify this transaction")
            if not caller.is_admin and round2(amount) != round2(existing.amount):
                raise AccessDeniedError("Only an admin can change the amount")

            existing.amount = round2(amount)
            if existing.status != STATUS_COMPLETED and status == STATUS_COMPLETED:
                existing.status = STATUS_COMPLETED
            if proof_file:
                existing.proof_file = proof_file
            db.session.commit()
            return existing, False

    trx = Transaction(
        user_id=owner_id,
        order_id=order.id if order else None,
        service_id=data.get("service_id"),
        task_id=data.get("task_id"),
        type=tx_type,
        amount=round2(amount),
        currency=currency,
        payment_method=data.get("payment_method"),
        description=data.get("description"),
        proof_file=proof_file,
        status=status,
    )
    db.session.add(trx)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ConflictError("A transaction of this type already exists for this order")
    return trx, True


def get_transaction(trx_id: int, caller: Caller) -> Transaction:
    trx = db.session.get(Transaction, trx_id)
    if trx is None:
        raise NotFoundError("Transaction not found")
    ensure(can_read_transaction(caller, trx))
    return trx


def list_transactions(
    caller: Caller,
    filters: dict | None = None,
    limit: int = 25,
    offset: int = 0,
    sort: str | None = None,
) -> tuple[list[Transaction], int]:
    """
    List transactions visible to caller.

    Filters (all optional): type, status, currency, payment_method (substring),
    order_id, service_id, task_id, min_amount, max_amount, start, end
    (datetimes), q (free text on description/payment method).
    Sort: one of SORTABLE_FIELDS, "-" prefix for descending. Default newest first.
    """
    filters = filters or {}
    query = db.session.query(Transaction)

    if not caller.is_admin:
        query = query.filter(Transaction.user_id == caller.id)

    for field in ("type", "status", "currency", "order_id", "service_id", "task_id"):
        if filters.get(field) is not None:
            query = query.filter(getattr(Transaction, field) == filters[field])

    if filters.get("payment_method"):
        query = query.filter(Transaction.payment_method.ilike(f"%{filters['payment_method']}%"))

    if filters.get("min_amount") is not None:
        query = query.filter(Transaction.amount >= filters["min_amount"])
    if filters.get("max_amount") is not None:
        query = query.filter(Transaction.amount <= filters["max_amount"])

    if filters.get("start") is not None:
        query = query.filter(Transaction.created_at >= filters["start"])
    if filters.get("end") is not None:
        query = query.filter(Transaction.created_at <= filters["end"])

    if filters.get("q"):
        needle = f"%{filters['q']}%"
        query = query.filter(or_(
            Transaction.description.ilike(needle),
            Transaction.payment_method.ilike(needle),
        ))

    count = query.count()

    ordering = [Transaction.created_at.desc(), Transaction.id.desc()]
    if sort:
        key = sort.lstrip("-")
        if key in SORTABLE_FIELDS:
            column = getattr(Transaction, key)
            ordering = [column.desc() if sort.startswith("-") else column.asc(), Transaction.id.asc()]

    rows = query.order_by(*ordering).limit(limit).offset(offset).all()
    return rows, count


def update_transaction(
    trx_id: int,
    caller: Caller,
    changes: dict,
    proof_file: dict | None = None,
) -> Transaction:
    """
    Update a transaction.

    Admin: every field. Owner (while pending): description, payment method,
    proof file and the service/task/order links. Re-linking an order copies
    its owner into user_id. When the linked order is settled the status is
    forced to completed.
    """
    trx = db.session.get(Transaction, trx_id)
    if trx is None:
        raise NotFoundError("Transaction not found")
    ensure(can_write_transaction(caller, trx), "Not allowed to modify this transaction")

    if not caller.is_admin:
        for field in ADMIN_ONLY_FIELDS:
            if changes.get(field) is not None:
                raise AccessDeniedError(f"Only an admin can change the {field}")

    # Validate everything before touching the row
    if changes.get("status") is not None and changes["status"] not in TRANSACTION_STATUSES:
        raise ValidationError(f"Invalid transaction status: {changes['status']}")
    if changes.get("type") is not None and changes["type"] not in TRANSACTION_TYPES:
        raise ValidationError(f"Invalid transaction type: {changes['type']}")
    if "amount" in changes and changes["amount"] is None:
        raise ValidationError("Invalid amount")

    new_order = None
    if changes.get("order_id"):
        new_order = db.session.get(Order, changes["order_id"])
        if new_order is None:
            raise NotFoundError("Target order not found")
        ensure(can_read_order(caller, new_order), "Not allowed to link this order")

    for field in ("description", "payment_method", "service_id", "task_id"):
        if field in changes:
            setattr(trx, field, changes[field])

    if proof_file:
        trx.proof_file = proof_file

    if "order_id" in changes:
        trx.order = new_order
        if new_order is not None:
            trx.user_id = new_order.user_id

    if changes.get("status") is not None:
        trx.status = changes["status"]
    if changes.get("currency") is not None:
        trx.currency = normalize_currency(changes["currency"], fallback=trx.currency or "XOF")
    if changes.get("type") is not None:
        trx.type = changes["type"]
    if "amount" in changes:
        trx.amount = round2(changes["amount"])

    # One-directional consistency with settled orders
    if trx.order is not None and is_settled(trx.order.status):
        trx.status = STATUS_COMPLETED

    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ConflictError("A transaction of this type already exists for this order")
    return trx


def delete_transaction(trx_id: int, caller: Caller) -> None:
    trx = db.session.get(Transaction, trx_id)
    if trx is None:
        raise NotFoundError("Transaction not found")
    ensure(can_delete_transaction(caller, trx), "Not allowed to delete this transaction")

    db.session.delete(trx)
    db.session.commit()


# =============================================================================
# AGGREGATES (ADMIN)
# =============================================================================

def _sum_by_type(start: datetime | None = None, end: datetime | None = None) -> dict[str, object]:
    query = db.session.query(Transaction.type, func.coalesce(func.sum(Transaction.amount), 0))
    if start is not None:
        query = query.filter(Transaction.created_at >= start)
    if end is not None:
        query = query.filter(Transaction.created_at <= end)

    totals = {tx_type: round2(ZERO) for tx_type in TRANSACTION_TYPES}
    for tx_type, amount in query.group_by(Transaction.type).all():
        totals[tx_type] = round2(amount)
    return totals


def financial_summary() -> dict:
    """Totals per type and balance = revenue - expense - commission + adjustment."""
    totals = _sum_by_type()
    balance = (
        totals[TYPE_REVENUE]
        - totals[TYPE_EXPENSE]
        - totals[TYPE_COMMISSION]
        + totals[TYPE_ADJUSTMENT]
    )
    return {
        "revenues": totals[TYPE_REVENUE],
        "expenses": totals[TYPE_EXPENSE],
        "commissions": totals[TYPE_COMMISSION],
        "adjustments": totals[TYPE_ADJUSTMENT],
        "balance": round2(balance),
    }


def period_report(start: datetime | None = None, end: datetime | None = None) -> dict:
    """Count and per-type totals over [start, end] (default: last 30 days)."""
    end = end or utcnow()
    start = start or end - timedelta(days=30)
    if start > end:
        raise ValidationError("start must be before end")

    count = (
        db.session.query(func.count(Transaction.id))
        .filter(Transaction.created_at >= start, Transaction.created_at <= end)
        .scalar()
    )
    totals = _sum_by_type(start, end)

    return {
        "period": {"start": start, "end": end},
        "count": count or 0,
        "totals": totals,
        "totals_with_labels": [
            {"type": tx_type, "type_label": get_label(tx_type, TRANSACTION_TYPE_LABELS), "amount": amount}
            for tx_type, amount in totals.items()
        ],
    }

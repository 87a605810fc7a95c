# Overview: Derivation of order subtotal/total from live item data.

"""
Order Total Recomputation

1. Load the items currently attached to the order
2. Re-derive each item's line_total; persist it when stale (self-healing)
3. subtotal = sum(line_total)
4. total = round2(subtotal + max(tax, 0) + max(shipping, 0))
5. Store subtotal/tax/shipping/total on the order

Idempotent: with no item change in between, a second run assigns the same
values and the ORM emits no UPDATE.
"""

from __future__ import annotations

from ..extensions import db
from ..models import Order, OrderItem
from ..money import ZERO, clamp_non_negative, compute_line_total, round2


def recompute_order_totals(order: Order) -> Order:
    """Recompute and assign totals on order (flushes pending item changes first). Does not commit."""
    items = (
        db.session.query(OrderItem)
        .filter_by(order_id=order.id)
        .order_by(OrderItem.id)
        .all()
    )

    subtotal = ZERO
    for item in items:
        expected = compute_line_total(item.quantity, item.unit_price)
        if item.line_total is None or round2(item.line_total) != expected:
            item.line_total = expected
        subtotal += expected

    subtotal = round2(subtotal)
    tax = round2(clamp_non_negative(order.tax))
    shipping = round2(clamp_non_negative(order.shipping))

    _assign_if_changed(order, "subtotal", subtotal)
    _assign_if_changed(order, "tax", tax)
    _assign_if_changed(order, "shipping", shipping)
    _assign_if_changed(order, "total", round2(subtotal + tax + shipping))
    return order


def recompute_all(order_id: int | None = None) -> int:
    """
    Recompute totals for one order or every order and commit.

    Returns the number of orders processed.
    """
    query = db.session.query(Order)
    if order_id is not None:
        query = query.filter_by(id=order_id)

    count = 0
    for order in query.order_by(Order.id).all():
        recompute_order_totals(order)
        count += 1

    db.session.commit()
    return count


def _assign_if_changed(order: Order, field: str, value) -> None:
    current = getattr(order, field)
    if current is None or round2(current) != value:
        setattr(order, field, value)

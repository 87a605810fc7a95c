# Overview: Service-layer operations for order items; every mutation recomputes the parent order.

"""
Order Item Ledger

WHY: Items are the only source of an order's subtotal. Every add, update and
remove goes through the parent order's write rule and ends with the common
order pipeline (recompute totals, sync payment status, settlement side
effect) in the same database transaction.

Tolerant numeric policy: negative or non-numeric quantities/prices are
floored to 0 (quantity to 1 on creation), never rejected.

Item status is a free-form string (default "pending"); no transition rules.
"""

from __future__ import annotations

from ..extensions import db
from ..models import Order, OrderItem
from ..money import ZERO, clamp_non_negative, compute_line_total, round2
from ..validation import NotFoundError, ValidationError
from .access_service import Caller, ensure, can_read_order_item, can_write_order_item
from .catalog_service import get_product_snapshot
from .concurrency import lock_for_update, run_with_retry
from .order_service import finalize_order

DEFAULT_ITEM_STATUS = "pending"
PLACEHOLDER_ITEM_NAME = "—"


def build_order_item(order: Order, data: dict) -> OrderItem:
    """
    Build (and add to the session) a new item for order.

    Product snapshot values are defaults; explicit name/sku/unit_price win.
    Does not commit and does not recompute the order.

    Raises:
        ValidationError: neither a product reference nor a name was given
    """
    product_id = data.get("product_id")
    name = data.get("name")
    if not product_id and not name:
        raise ValidationError("product_id or name is required")

    snapshot = get_product_snapshot(product_id)

    unit_price = data.get("unit_price")
    if unit_price is None:
        unit_price = snapshot.price if snapshot else ZERO
    unit_price = round2(clamp_non_negative(unit_price))

    quantity = data.get("quantity")
    quantity = max(int(quantity), 1) if quantity is not None else 1

    item = OrderItem(
        order_id=order.id,
        product_id=snapshot.id if snapshot else None,
        name=name or (snapshot.name if snapshot else PLACEHOLDER_ITEM_NAME),
        sku=data.get("sku") or (snapshot.sku if snapshot else None),
        unit_price=unit_price,
        quantity=quantity,
        line_total=compute_line_total(quantity, unit_price),
        status=data.get("status") or DEFAULT_ITEM_STATUS,
        meta=data.get("meta"),
    )
    db.session.add(item)
    return item


def _load_order_locked(order_id: int) -> Order:
    order = lock_for_update(db.session.query(Order).filter_by(id=order_id)).first()
    if order is None:
        raise NotFoundError("Order not found")
    return order


def _load_item_and_order(item_id: int, order_id: int | None) -> tuple[OrderItem, Order]:
    item = db.session.get(OrderItem, item_id)
    if item is None or (order_id is not None and item.order_id != order_id):
        raise NotFoundError("Order item not found")
    order = _load_order_locked(item.order_id)
    return item, order


def list_items(order_id: int, caller: Caller, limit: int = 100, offset: int = 0) -> tuple[list[OrderItem], int]:
    order = db.session.get(Order, order_id)
    if order is None:
        raise NotFoundError("Order not found")
    ensure(can_read_order_item(caller, order))

    query = db.session.query(OrderItem).filter_by(order_id=order_id)
    count = query.count()
    items = query.order_by(OrderItem.id).limit(limit).offset(offset).all()
    return items, count


def add_item(order_id: int, caller: Caller, data: dict) -> tuple[OrderItem, Order]:
    """Add an item to an order. Returns (item, updated order)."""
    def _op():
        order = _load_order_locked(order_id)
        ensure(can_write_order_item(caller, order), "Not allowed to modify this order")

        item = build_order_item(order, data)
        db.session.flush()

        finalize_order(order)
        db.session.commit()
        return item, order

    return run_with_retry(_op)


def update_item(item_id: int, caller: Caller, changes: dict, order_id: int | None = None) -> tuple[OrderItem, Order]:
    """
    Partially update an item. Returns (item, updated order).

    changes may hold name, sku, unit_price, quantity, status, meta. A None
    unit_price/quantity (unparseable input) keeps the current value.
    """
    def _op():
        item, order = _load_item_and_order(item_id, order_id)
        ensure(can_write_order_item(caller, order), "Not allowed to modify this order")

        if changes.get("name"):
            item.name = changes["name"]
        if "sku" in changes:
            item.sku = changes["sku"]
        if changes.get("unit_price") is not None:
            item.unit_price = round2(clamp_non_negative(changes["unit_price"]))
        if changes.get("quantity") is not None:
            item.quantity = max(int(changes["quantity"]), 0)
        if changes.get("status"):
            item.status = changes["status"]
        if "meta" in changes:
            item.meta = changes["meta"]

        item.line_total = compute_line_total(item.quantity, item.unit_price)

        finalize_order(order)
        db.session.commit()
        return item, order

    return run_with_retry(_op)


def remove_item(item_id: int, caller: Caller, order_id: int | None = None) -> Order:
    """Delete an item and return the recomputed parent order."""
    def _op():
        item, order = _load_item_and_order(item_id, order_id)
        ensure(can_write_order_item(caller, order), "Not allowed to modify this order")

        order.items.remove(item)
        db.session.flush()

        finalize_order(order)
        db.session.commit()
        return order

    return run_with_retry(_op)

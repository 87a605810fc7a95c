# Overview: Order lifecycle statuses and the status -> payment status rule.

"""
Order Status/Payment Synchronizer

Some lifecycle statuses imply a payment status. When they do, the implied
value overrides whatever the caller sent, silently:

    paid, fulfilled, delivered  -> paid
    cancelled, refunded         -> refunded
    created, processing, shipped -> caller-controlled

SETTLED_ORDER_STATUSES is the single settled set used by every rule that
cares about settlement (payment status, automatic transaction, transaction
status forcing).
"""

from __future__ import annotations

from types import MappingProxyType

ORDER_STATUS_CREATED = "created"
ORDER_STATUS_PROCESSING = "processing"
ORDER_STATUS_PAID = "paid"
ORDER_STATUS_SHIPPED = "shipped"
ORDER_STATUS_FULFILLED = "fulfilled"
ORDER_STATUS_DELIVERED = "delivered"
ORDER_STATUS_CANCELLED = "cancelled"
ORDER_STATUS_REFUNDED = "refunded"

ORDER_STATUSES = (
    ORDER_STATUS_CREATED,
    ORDER_STATUS_PROCESSING,
    ORDER_STATUS_PAID,
    ORDER_STATUS_SHIPPED,
    ORDER_STATUS_FULFILLED,
    ORDER_STATUS_DELIVERED,
    ORDER_STATUS_CANCELLED,
    ORDER_STATUS_REFUNDED,
)

PAYMENT_STATUS_UNPAID = "unpaid"
PAYMENT_STATUS_PARTIAL = "partial"
PAYMENT_STATUS_PAID = "paid"
PAYMENT_STATUS_REFUNDED = "refunded"

PAYMENT_STATUSES = (
    PAYMENT_STATUS_UNPAID,
    PAYMENT_STATUS_PARTIAL,
    PAYMENT_STATUS_PAID,
    PAYMENT_STATUS_REFUNDED,
)

FORCED_PAYMENT_STATUS = MappingProxyType({
    ORDER_STATUS_PAID: PAYMENT_STATUS_PAID,
    ORDER_STATUS_FULFILLED: PAYMENT_STATUS_PAID,
    ORDER_STATUS_DELIVERED: PAYMENT_STATUS_PAID,
    ORDER_STATUS_CANCELLED: PAYMENT_STATUS_REFUNDED,
    ORDER_STATUS_REFUNDED: PAYMENT_STATUS_REFUNDED,
})

SETTLED_ORDER_STATUSES = frozenset({
    ORDER_STATUS_PAID,
    ORDER_STATUS_FULFILLED,
    ORDER_STATUS_DELIVERED,
})


def forced_payment_status(status: str | None) -> str | None:
    """Payment status implied by an order status, or None if caller-controlled."""
    return FORCED_PAYMENT_STATUS.get(status)


def is_settled(status: str | None) -> bool:
    return status in SETTLED_ORDER_STATUSES


def sync_payment_status(order):
    """Apply the implied payment status to order (in place). Returns order."""
    forced = forced_payment_status(order.status)
    if forced is not None:
        order.payment_status = forced
    return order

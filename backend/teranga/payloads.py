# Overview: Request payload normalization; maps legacy and camelCase aliases to canonical keys.

"""
Boundary Normalization

Clients send the same field under several names (orderStatus/status,
customerNote/note/notes, unitPrice/price, userId/user_id, ...). Routes pass
the raw JSON body or form through these helpers and hand the services a
dict with canonical snake_case keys.

Rules:
- Only keys present in the payload appear in the result (partial updates).
- Enumerations are validated (ValidationError); numbers are coerced and
  the services clamp them. Only magnitudes no column can store (beyond
  Numeric(12, 2) or a 32-bit integer) are rejected here.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Any, Mapping

from .money import coerce_amount, to_safe_int, to_trim_or_null
from .services.status_sync import ORDER_STATUSES, PAYMENT_STATUSES
from .time_utils import parse_iso_datetime
from .validation import ValidationError, require_choice

_MISSING = object()

# Largest magnitudes the Numeric(12, 2) and Integer columns can hold
MAX_AMOUNT = Decimal("9999999999.99")
MAX_INTEGER = 2_147_483_647

ORDER_ALIASES = {
    "status": ("status", "orderStatus", "order_status"),
    "payment_status": ("payment_status", "paymentStatus"),
    "payment_method": ("payment_method", "paymentMethod"),
    "payment_ref": ("payment_ref", "paymentRef"),
    "currency": ("currency",),
    "tax": ("tax",),
    "shipping": ("shipping",),
    "notes": ("notes", "note", "customerNote", "customer_note"),
    "user_id": ("user_id", "userId"),
    "shipping_address": ("shipping_address", "shippingAddress"),
    "billing_address": ("billing_address", "billingAddress"),
}

ITEM_ALIASES = {
    "order_id": ("order_id", "orderId"),
    "product_id": ("product_id", "productId"),
    "name": ("name",),
    "sku": ("sku",),
    "unit_price": ("unit_price", "unitPrice", "price"),
    "quantity": ("quantity", "qty"),
    "status": ("status", "itemStatus", "item_status"),
    "meta": ("meta",),
}

TRANSACTION_ALIASES = {
    "order_id": ("order_id", "orderId"),
    "service_id": ("service_id", "serviceId"),
    "task_id": ("task_id", "taskId"),
    "type": ("type",),
    "amount": ("amount",),
    "currency": ("currency",),
    "payment_method": ("payment_method", "paymentMethod"),
    "description": ("description",),
    "status": ("status",),
}


def _pick(body: Mapping[str, Any], aliases: tuple[str, ...]) -> Any:
    for key in aliases:
        if key in body:
            return body[key]
    return _MISSING


def _bounded_amount(field: str, raw: Any) -> Decimal | None:
    """coerce_amount, rejecting values no money column can store."""
    amount = coerce_amount(raw)
    if amount is not None and abs(amount) > MAX_AMOUNT:
        raise ValidationError(f"{field} is out of range")
    return amount


def _bounded_int(field: str, raw: Any) -> int | None:
    value = to_safe_int(raw)
    if value is not None and abs(value) > MAX_INTEGER:
        raise ValidationError(f"{field} is out of range")
    return value


def _require_mapping(body: Any) -> Mapping[str, Any]:
    if body is None:
        return {}
    if not isinstance(body, Mapping):
        raise ValidationError("Request body must be an object")
    return body


def _address(field: str, value: Any) -> dict | None:
    if value is None or value == "":
        return None
    if not isinstance(value, dict):
        raise ValidationError(f"{field} must be an object")
    return value


def normalize_order_payload(body: Any, partial: bool = False) -> dict:
    """
    Canonical order fields. On creation (partial=False) "items" is always
    present (possibly empty); on update items are managed by the item
    endpoints and ignored here.
    """
    body = _require_mapping(body)
    out: dict[str, Any] = {}

    for field, aliases in ORDER_ALIASES.items():
        raw = _pick(body, aliases)
        if raw is _MISSING:
            continue

        if field == "status":
            if raw not in (None, ""):
                out[field] = require_choice("order status", raw, ORDER_STATUSES)
        elif field == "payment_status":
            if raw not in (None, ""):
                out[field] = require_choice("payment status", raw, PAYMENT_STATUSES)
        elif field in ("tax", "shipping"):
            out[field] = _bounded_amount(field, raw)
        elif field == "user_id":
            out[field] = _bounded_int(field, raw)
        elif field in ("shipping_address", "billing_address"):
            out[field] = _address(field, raw)
        else:
            out[field] = to_trim_or_null(raw)

    if not partial:
        raw_items = body.get("items") or []
        if not isinstance(raw_items, list):
            raise ValidationError("items must be a list")
        out["items"] = [normalize_item_payload(item) for item in raw_items]

    return out


def normalize_item_payload(body: Any) -> dict:
    body = _require_mapping(body)
    out: dict[str, Any] = {}

    for field, aliases in ITEM_ALIASES.items():
        raw = _pick(body, aliases)
        if raw is _MISSING:
            continue

        if field in ("order_id", "product_id", "quantity"):
            out[field] = _bounded_int(field, raw)
        elif field == "unit_price":
            out[field] = _bounded_amount(field, raw)
        elif field == "meta":
            if raw is not None and not isinstance(raw, dict):
                raise ValidationError("meta must be an object")
            out[field] = raw
        elif field == "status":
            status = to_trim_or_null(raw)
            if status is not None and len(status) > 32:
                raise ValidationError("Item status must be at most 32 characters")
            out[field] = status
        else:
            out[field] = to_trim_or_null(raw)

    return out


def normalize_transaction_payload(body: Any) -> dict:
    """
    Canonical transaction fields. Works on JSON bodies and on multipart
    forms (every value a string). An unparseable amount becomes None.
    """
    body = _require_mapping(body)
    out: dict[str, Any] = {}

    for field, aliases in TRANSACTION_ALIASES.items():
        raw = _pick(body, aliases)
        if raw is _MISSING:
            continue

        if field in ("order_id", "service_id", "task_id"):
            out[field] = _bounded_int(field, raw)
        elif field == "amount":
            out[field] = _bounded_amount(field, raw)
        else:
            out[field] = to_trim_or_null(raw)

    return out


# =============================================================================
# QUERY STRING FILTERS
# =============================================================================

def order_filters(args: Mapping[str, Any]) -> dict:
    return {
        "q": to_trim_or_null(args.get("q")),
        "status": to_trim_or_null(args.get("status")),
        "payment_status": to_trim_or_null(args.get("payment_status") or args.get("paymentStatus")),
        "user_id": _bounded_int("user_id", args.get("user_id") or args.get("userId")),
    }


def _datetime_arg(args: Mapping[str, Any], *names: str):
    for name in names:
        raw = to_trim_or_null(args.get(name))
        if raw:
            try:
                return parse_iso_datetime(raw)
            except ValueError:
                raise ValidationError(f"Invalid date for {name}: {raw}")
    return None


def transaction_filters(args: Mapping[str, Any]) -> dict:
    currency = to_trim_or_null(args.get("currency"))
    return {
        "type": to_trim_or_null(args.get("type")),
        "status": to_trim_or_null(args.get("status")),
        "currency": currency.upper() if currency else None,
        "payment_method": to_trim_or_null(args.get("payment_method") or args.get("paymentMethod")),
        "order_id": _bounded_int("order_id", args.get("order_id") or args.get("orderId")),
        "service_id": _bounded_int("service_id", args.get("service_id") or args.get("serviceId")),
        "task_id": _bounded_int("task_id", args.get("task_id") or args.get("taskId")),
        "min_amount": _bounded_amount("min_amount", args.get("min_amount") or args.get("minAmount")),
        "max_amount": _bounded_amount("max_amount", args.get("max_amount") or args.get("maxAmount")),
        "start": _datetime_arg(args, "start", "start_date", "startDate"),
        "end": _datetime_arg(args, "end", "end_date", "endDate"),
        "q": to_trim_or_null(args.get("q")),
    }

# Overview: Flask API routes for order items; nested under an order and as a flat resource.

"""
Order item API routes

Two URL shapes reach the same services:
- /api/orders/<order_id>/items[/<item_id>]
- /api/order-items[/<item_id>] (order_id in the body or query string)

Every write answers with the item and the recomputed parent order so the
client can refresh totals without a second call.
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..decorators import require_auth, require_roles
from ..money import to_safe_int
from ..payloads import normalize_item_payload
from ..services import order_item_service
from ..services.access_service import AccessDeniedError
from ..validation import ConflictError, NotFoundError, ValidationError, get_pagination


order_items_bp = Blueprint("order_items", __name__, url_prefix="/api/orders/<int:order_id>/items")
flat_order_items_bp = Blueprint("flat_order_items", __name__, url_prefix="/api/order-items")


# =============================================================================
# SHARED HANDLERS
# =============================================================================

def _list(order_id):
    try:
        if not order_id:
            return jsonify({"error": "order_id required"}), 400

        limit, offset, page = get_pagination(request.args, default_limit=100)
        items, count = order_item_service.list_items(order_id, g.caller, limit=limit, offset=offset)
        return jsonify({
            "items": [item.to_dict() for item in items],
            "pagination": {"page": page, "limit": limit, "count": count},
        }), 200

    except AccessDeniedError as e:
        return jsonify({"error": str(e)}), 403
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except Exception:
        current_app.logger.exception("Failed to list order items")
        return jsonify({"error": "Internal server error"}), 500


def _add(order_id, data):
    try:
        if not order_id:
            return jsonify({"error": "order_id required"}), 400

        item, order = order_item_service.add_item(order_id, g.caller, data)
        return jsonify({"item": item.to_dict(), "order": order.to_dict()}), 201

    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except AccessDeniedError as e:
        return jsonify({"error": str(e)}), 403
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    except Exception:
        current_app.logger.exception("Failed to add order item")
        return jsonify({"error": "Internal server error"}), 500


def _update(item_id, order_id, changes):
    try:
        item, order = order_item_service.update_item(item_id, g.caller, changes, order_id=order_id)
        return jsonify({"item": item.to_dict(), "order": order.to_dict()}), 200

    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except AccessDeniedError as e:
        return jsonify({"error": str(e)}), 403
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    except Exception:
        current_app.logger.exception("Failed to update order item")
        return jsonify({"error": "Internal server error"}), 500


def _remove(item_id, order_id):
    try:
        order = order_item_service.remove_item(item_id, g.caller, order_id=order_id)
        return jsonify({"message": "Order item deleted", "order": order.to_dict()}), 200

    except AccessDeniedError as e:
        return jsonify({"error": str(e)}), 403
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    except Exception:
        current_app.logger.exception("Failed to delete order item")
        return jsonify({"error": "Internal server error"}), 500


def _item_payload():
    try:
        return normalize_item_payload(request.get_json(silent=True)), None
    except ValidationError as e:
        return None, (jsonify({"error": str(e)}), 400)


# =============================================================================
# NESTED: /api/orders/<order_id>/items
# =============================================================================

@order_items_bp.get("")
@require_auth
def list_items_route(order_id: int):
    return _list(order_id)


@order_items_bp.post("")
@require_auth
@require_roles("admin", "client")
def add_item_route(order_id: int):
    """
    Add an item. Body: product_id and/or name, unit_price, quantity,
    status, sku, meta. Product values prefill what the body omits.
    """
    data, error = _item_payload()
    if error:
        return error
    return _add(order_id, data)


@order_items_bp.route("/<int:item_id>", methods=["PUT", "PATCH"])
@require_auth
@require_roles("admin", "client")
def update_item_route(order_id: int, item_id: int):
    changes, error = _item_payload()
    if error:
        return error
    return _update(item_id, order_id, changes)


@order_items_bp.delete("/<int:item_id>")
@require_auth
@require_roles("admin", "client")
def delete_item_route(order_id: int, item_id: int):
    return _remove(item_id, order_id)


# =============================================================================
# FLAT: /api/order-items
# =============================================================================

@flat_order_items_bp.get("")
@require_auth
def flat_list_items_route():
    order_id = to_safe_int(request.args.get("order_id") or request.args.get("orderId"))
    return _list(order_id)


@flat_order_items_bp.post("")
@require_auth
@require_roles("admin", "client")
def flat_add_item_route():
    data, error = _item_payload()
    if error:
        return error
    return _add(data.pop("order_id", None), data)


@flat_order_items_bp.route("/<int:item_id>", methods=["PUT", "PATCH"])
@require_auth
@require_roles("admin", "client")
def flat_update_item_route(item_id: int):
    changes, error = _item_payload()
    if error:
        return error
    changes.pop("order_id", None)
    return _update(item_id, None, changes)


@flat_order_items_bp.delete("/<int:item_id>")
@require_auth
@require_roles("admin", "client")
def flat_delete_item_route(item_id: int):
    return _remove(item_id, None)

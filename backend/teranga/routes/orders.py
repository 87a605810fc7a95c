# Overview: Flask API routes for orders; parses input and returns JSON responses.

"""
Order API routes

Role pre-gates: writes are open to admin and client, reads to every role.
Ownership and status rules are enforced by the access gate in the services.
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..decorators import require_auth, require_roles
from ..payloads import normalize_order_payload, order_filters
from ..services import order_service
from ..services.access_service import AccessDeniedError
from ..validation import ConflictError, NotFoundError, ValidationError, get_pagination


orders_bp = Blueprint("orders", __name__, url_prefix="/api/orders")


@orders_bp.post("")
@require_auth
@require_roles("admin", "client")
def create_order_route():
    """
    Create an order, optionally with items.

    Request body (aliases accepted, see payloads.py):
    {
        "items": [{"product_id": 1, "quantity": 2}, {"name": "Custom", "unit_price": 500}],
        "tax": 500,
        "shipping": 1000,
        "currency": "XOF",
        "notes": "...",
        "user_id": 7,            (admin only)
        "status": "processing"   (admin only)
    }
    """
    try:
        data = normalize_order_payload(request.get_json(silent=True), partial=False)
        order = order_service.create_order(g.caller, data)
        return jsonify({"order": order.to_dict(include_items=True)}), 201

    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except AccessDeniedError as e:
        return jsonify({"error": str(e)}), 403
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    except Exception:
        current_app.logger.exception("Failed to create order")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.get("")
@require_auth
def list_orders_route():
    """
    List orders visible to the caller (clients see only their own).

    Query: q, status, payment_status, user_id, page, limit, offset
    """
    try:
        limit, offset, page = get_pagination(request.args)
        rows, count = order_service.list_orders(
            g.caller,
            filters=order_filters(request.args),
            limit=limit,
            offset=offset,
        )
        return jsonify({
            "orders": [order.to_dict() for order in rows],
            "pagination": {"page": page, "limit": limit, "count": count},
        }), 200

    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to list orders")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.get("/<int:order_id>")
@require_auth
def get_order_route(order_id: int):
    try:
        order = order_service.get_order(order_id, g.caller)
        return jsonify({"order": order.to_dict(include_items=True)}), 200

    except AccessDeniedError as e:
        return jsonify({"error": str(e)}), 403
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except Exception:
        current_app.logger.exception("Failed to get order")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.route("/<int:order_id>", methods=["PUT", "PATCH"])
@require_auth
@require_roles("admin", "client")
def update_order_route(order_id: int):
    """
    Update an order.

    Totals are always recomputed from items; paid/fulfilled/delivered force
    payment_status=paid and record the settlement transaction,
    cancelled/refunded force payment_status=refunded.
    """
    try:
        changes = normalize_order_payload(request.get_json(silent=True), partial=True)
        order = order_service.update_order(order_id, g.caller, changes)
        return jsonify({"order": order.to_dict(include_items=True)}), 200

    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except AccessDeniedError as e:
        return jsonify({"error": str(e)}), 403
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    except Exception:
        current_app.logger.exception("Failed to update order")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.delete("/<int:order_id>")
@require_auth
@require_roles("admin", "client")
def delete_order_route(order_id: int):
    """Delete an order. Refused (409) once any item is delivered."""
    try:
        order_service.delete_order(order_id, g.caller)
        return jsonify({"message": "Order deleted"}), 200

    except AccessDeniedError as e:
        return jsonify({"error": str(e)}), 403
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    except Exception:
        current_app.logger.exception("Failed to delete order")
        return jsonify({"error": "Internal server error"}), 500

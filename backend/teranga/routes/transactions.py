# Overview: Flask API routes for transactions; parses input and returns JSON responses.

"""
Transaction API routes

Create and update accept either a JSON body or a multipart form carrying a
proof of payment (any of the field names in storage_service.UPLOAD_FIELDS).

Aliases:
- GET  /api/transactions/order/<id>  == GET /api/transactions?order_id=<id>
- POST /api/transactions/order/<id>  == POST /api/transactions with order_id=<id>

Aggregates (/summary, /report) are admin only.
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..decorators import require_auth, require_roles
from ..money import to_json_amount
from ..payloads import normalize_transaction_payload, transaction_filters
from ..services import storage_service, transaction_service
from ..services.access_service import AccessDeniedError
from ..time_utils import parse_iso_datetime, to_utc_z
from ..validation import ConflictError, NotFoundError, ValidationError, get_pagination


transactions_bp = Blueprint("transactions", __name__, url_prefix="/api/transactions")


def _request_payload() -> dict:
    if request.is_json:
        body = request.get_json(silent=True) or {}
    else:
        body = request.form.to_dict()
    return normalize_transaction_payload(body)


def _request_proof() -> dict | None:
    upload = storage_service.extract_upload(request.files)
    if upload is None:
        return None
    return storage_service.save_proof_file(upload)


# =============================================================================
# AGGREGATES (ADMIN)
# =============================================================================

@transactions_bp.get("/summary")
@require_auth
@require_roles("admin")
def summary_route():
    """Totals per type and balance over all transactions."""
    try:
        summary = transaction_service.financial_summary()
        return jsonify({key: to_json_amount(value) for key, value in summary.items()}), 200

    except Exception:
        current_app.logger.exception("Failed to compute transaction summary")
        return jsonify({"error": "Internal server error"}), 500


@transactions_bp.get("/report")
@require_auth
@require_roles("admin")
def report_route():
    """
    Count and per-type totals over a period.

    Query: start, end (ISO-8601, default: the last 30 days)
    """
    try:
        start = parse_iso_datetime(request.args.get("start") or request.args.get("startDate"))
        end = parse_iso_datetime(request.args.get("end") or request.args.get("endDate"))
    except ValueError:
        return jsonify({"error": "Invalid date"}), 400

    try:
        report = transaction_service.period_report(start, end)
        return jsonify({
            "period": {
                "start": to_utc_z(report["period"]["start"]),
                "end": to_utc_z(report["period"]["end"]),
            },
            "count": report["count"],
            "totals": {key: to_json_amount(value) for key, value in report["totals"].items()},
            "totals_with_labels": [
                {**row, "amount": to_json_amount(row["amount"])}
                for row in report["totals_with_labels"]
            ],
        }), 200

    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to build transaction report")
        return jsonify({"error": "Internal server error"}), 500


# =============================================================================
# CRUD
# =============================================================================

def _create(forced_order_id=None):
    try:
        data = _request_payload()
        if forced_order_id is not None:
            data["order_id"] = forced_order_id

        proof_file = _request_proof()
        try:
            trx, created = transaction_service.create_transaction(g.caller, data, proof_file=proof_file)
        except Exception:
            storage_service.discard_proof_file(proof_file)
            raise
        return jsonify({"transaction": trx.to_dict(), "created": created}), 201 if created else 200

    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except AccessDeniedError as e:
        return jsonify({"error": str(e)}), 403
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    except Exception:
        current_app.logger.exception("Failed to create transaction")
        return jsonify({"error": "Internal server error"}), 500


def _list(forced_order_id=None):
    try:
        limit, offset, page = get_pagination(request.args, default_limit=25)
        filters = transaction_filters(request.args)
        if forced_order_id is not None:
            filters["order_id"] = forced_order_id

        rows, count = transaction_service.list_transactions(
            g.caller,
            filters=filters,
            limit=limit,
            offset=offset,
            sort=request.args.get("sort"),
        )
        return jsonify({
            "transactions": [trx.to_dict() for trx in rows],
            "pagination": {"page": page, "limit": limit, "count": count},
        }), 200

    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to list transactions")
        return jsonify({"error": "Internal server error"}), 500


@transactions_bp.post("")
@require_auth
def create_transaction_route():
    """
    Record a transaction.

    Body (JSON or multipart): type, amount, currency, payment_method,
    description, order_id, service_id, task_id, status (admin only),
    plus an optional proof file.

    Returns 201 when created, 200 when the existing transaction of the same
    (order, owner, type) was updated instead.
    """
    return _create()


@transactions_bp.get("")
@require_auth
def list_transactions_route():
    """
    Query: type, status, currency, payment_method, order_id, service_id,
    task_id, min_amount, max_amount, start, end, q, sort, page, limit
    """
    return _list()


@transactions_bp.get("/order/<int:order_id>")
@require_auth
def list_order_transactions_route(order_id: int):
    return _list(forced_order_id=order_id)


@transactions_bp.post("/order/<int:order_id>")
@require_auth
def create_order_transaction_route(order_id: int):
    return _create(forced_order_id=order_id)


@transactions_bp.get("/<int:trx_id>")
@require_auth
def get_transaction_route(trx_id: int):
    try:
        trx = transaction_service.get_transaction(trx_id, g.caller)
        return jsonify({"transaction": trx.to_dict()}), 200

    except AccessDeniedError as e:
        return jsonify({"error": str(e)}), 403
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except Exception:
        current_app.logger.exception("Failed to get transaction")
        return jsonify({"error": "Internal server error"}), 500


@transactions_bp.route("/<int:trx_id>", methods=["PUT", "PATCH"])
@require_auth
def update_transaction_route(trx_id: int):
    """
    Update a transaction. Owners may edit only pending transactions and
    never status, currency, type or amount.
    """
    try:
        changes = _request_payload()
        proof_file = _request_proof()
        try:
            trx = transaction_service.update_transaction(trx_id, g.caller, changes, proof_file=proof_file)
        except Exception:
            storage_service.discard_proof_file(proof_file)
            raise
        return jsonify({"transaction": trx.to_dict()}), 200

    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except AccessDeniedError as e:
        return jsonify({"error": str(e)}), 403
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    except Exception:
        current_app.logger.exception("Failed to update transaction")
        return jsonify({"error": "Internal server error"}), 500


@transactions_bp.delete("/<int:trx_id>")
@require_auth
def delete_transaction_route(trx_id: int):
    try:
        transaction_service.delete_transaction(trx_id, g.caller)
        return jsonify({"message": "Transaction deleted"}), 200

    except AccessDeniedError as e:
        return jsonify({"error": str(e)}), 403
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except Exception:
        current_app.logger.exception("Failed to delete transaction")
        return jsonify({"error": "Internal server error"}), 500

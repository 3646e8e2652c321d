# Overview: Flask API routes for sales; parses input and returns JSON responses.

"""Sales API routes"""

from flask import Blueprint, current_app, jsonify, request

from ..errors import CoreError, ValidationError
from ..services import sales_service
from ..validation import coerce_ids, coerce_int, parse_calculation_payload, parse_sale_payload, pick


sales_bp = Blueprint("sales", __name__, url_prefix="/api/sales")


def _client_info() -> dict:
    return {
        "ip_address": request.headers.get("X-Forwarded-For", request.remote_addr),
        "user_agent": request.headers.get("User-Agent"),
    }


@sales_bp.post("")
def create_sale_route():
    """
    Record a submitted cart as a sale.

    Body: storeId, cashierId, attendantId, memberId?, items[{productId, quantity}],
    payment, paymentMethod, referenceNumber?, additionalDiscount, status?
    An Idempotency-Key header (or idempotencyKey field) deduplicates retries.
    """
    try:
        kwargs = parse_sale_payload(request.get_json(silent=True) or {})
        kwargs["idempotency_key"] = request.headers.get("Idempotency-Key") or kwargs["idempotency_key"]
        sale = sales_service.record_sale(**kwargs, **_client_info())
        return jsonify({"sale": sale.to_dict()}), 201

    except CoreError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to record sale")
        return jsonify({"error": "Internal server error"}), 500


@sales_bp.post("/calculate")
def calculate_sale_route():
    """Price a cart without saving it."""
    try:
        calculation = sales_service.calculate_sale(**parse_calculation_payload(request.get_json(silent=True) or {}))
        return jsonify({"calculation": calculation.to_dict()}), 200

    except CoreError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to calculate sale")
        return jsonify({"error": "Internal server error"}), 500


@sales_bp.get("/<int:sale_id>")
def get_sale_route(sale_id: int):
    try:
        sale = sales_service.get_sale(sale_id)
        return jsonify({"sale": sale.to_dict()}), 200
    except CoreError as e:
        return jsonify(e.to_dict()), e.status_code


@sales_bp.get("")
def list_sales_route():
    """
    Paginated sale history.

    Query params: storeId, status, paymentMethod, search, startDate, endDate,
    minAmount, maxAmount, page, limit
    """
    try:
        args = request.args
        result = sales_service.list_sales(
            store_id=coerce_int("storeId", pick(args, "storeId", "store_id")),
            status=pick(args, "status"),
            payment_method=pick(args, "paymentMethod", "payment_method"),
            search=pick(args, "search"),
            start_date=pick(args, "startDate", "start_date"),
            end_date=pick(args, "endDate", "end_date"),
            min_amount=coerce_int("minAmount", pick(args, "minAmount", "min_amount"), minimum=0),
            max_amount=coerce_int("maxAmount", pick(args, "maxAmount", "max_amount"), minimum=0),
            page=coerce_int("page", pick(args, "page", default=1), minimum=1),
            per_page=coerce_int("limit", pick(args, "limit", "per_page", default=20), minimum=1),
        )
        return jsonify(result), 200

    except CoreError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to list sales")
        return jsonify({"error": "Internal server error"}), 500


@sales_bp.delete("")
def delete_sales_route():
    """
    Delete one sale (?id=) or several (?ids=1,2 or JSON {"ids": [...]}).

    Stock is not restored.
    """
    try:
        body = request.get_json(silent=True) or {}
        single = request.args.get("id")
        if single is not None:
            ids = coerce_ids(single)
        else:
            ids = coerce_ids(request.args.get("ids") or body.get("ids"))
        if not ids:
            raise ValidationError("id atau ids wajib diisi")

        actor_id = coerce_int("userId", pick(body, "userId", "user_id"))
        deleted = sales_service.delete_sales(ids, actor_id=actor_id)
        return jsonify({"deleted": deleted}), 200

    except CoreError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to delete sales")
        return jsonify({"error": "Internal server error"}), 500

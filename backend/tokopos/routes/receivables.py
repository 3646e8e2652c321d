# Overview: Flask API routes for receivables; parses input and returns JSON responses.

"""Receivable (customer debt) API routes"""

from flask import Blueprint, current_app, jsonify, request

from ..errors import CoreError
from ..services import receivable_service
from ..validation import coerce_int, parse_payment_payload, pick


receivables_bp = Blueprint("receivables", __name__, url_prefix="/api/receivables")


@receivables_bp.get("")
def list_receivables_route():
    """Outstanding debts by default; ?status= shows a single status."""
    try:
        args = request.args
        result = receivable_service.list_receivables(
            store_id=coerce_int("storeId", pick(args, "storeId", "store_id")),
            status=pick(args, "status"),
            member_id=coerce_int("memberId", pick(args, "memberId", "member_id")),
            search=pick(args, "search"),
            page=coerce_int("page", pick(args, "page", default=1), minimum=1),
            per_page=coerce_int("limit", pick(args, "limit", "per_page", default=10), minimum=1),
        )
        return jsonify(result), 200

    except CoreError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to list receivables")
        return jsonify({"error": "Internal server error"}), 500


@receivables_bp.get("/<int:receivable_id>")
def get_receivable_route(receivable_id: int):
    try:
        receivable = receivable_service.get_receivable(receivable_id)
        return jsonify({"receivable": receivable.to_dict(include_payments=True)}), 200
    except CoreError as e:
        return jsonify(e.to_dict()), e.status_code


@receivables_bp.put("/<int:receivable_id>")
def apply_payment_route(receivable_id: int):
    """
    Apply a payment.

    Body: amountPaid, paymentMethod, referenceNumber?
    Overpayment returns 400 with details.max_allowed.
    """
    try:
        kwargs = parse_payment_payload(request.get_json(silent=True) or {})
        kwargs["idempotency_key"] = request.headers.get("Idempotency-Key") or kwargs["idempotency_key"]
        receivable = receivable_service.apply_payment(
            receivable_id,
            kwargs.pop("amount"),
            ip_address=request.headers.get("X-Forwarded-For", request.remote_addr),
            user_agent=request.headers.get("User-Agent"),
            **kwargs,
        )
        return jsonify({"receivable": receivable.to_dict(include_payments=True)}), 200

    except CoreError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to apply receivable payment")
        return jsonify({"error": "Internal server error"}), 500

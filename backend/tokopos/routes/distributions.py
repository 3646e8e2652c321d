# Overview: Flask API routes for warehouse distributions; parses input and returns JSON responses.

"""Warehouse distribution API routes"""

from flask import Blueprint, current_app, jsonify, request

from ..errors import CoreError
from ..services import distribution_service
from ..validation import coerce_int, coerce_str, parse_distribution_payload, parse_line_status_payload, pick


distributions_bp = Blueprint("distributions", __name__, url_prefix="/api/warehouse/distribution")


def _client_info() -> dict:
    return {
        "ip_address": request.headers.get("X-Forwarded-For", request.remote_addr),
        "user_agent": request.headers.get("User-Agent"),
    }


@distributions_bp.post("")
def create_distribution_route():
    """
    Distribute warehouse stock to a store.

    Body: storeId, distributionDate, items[{productId, quantity, purchasePrice?}],
    distributedBy, status?, notes?
    """
    try:
        kwargs = parse_distribution_payload(request.get_json(silent=True) or {})
        batch = distribution_service.create_distribution(**kwargs, **_client_info())
        return jsonify({"distribution": batch.to_dict()}), 201

    except CoreError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create distribution")
        return jsonify({"error": "Internal server error"}), 500


@distributions_bp.get("")
def get_distributions_route():
    """
    ?id=<line id> returns the whole batch; otherwise a paginated listing
    filtered by storeId, status, search, startDate, endDate, page, limit.
    """
    try:
        args = request.args
        line_id = coerce_int("id", pick(args, "id"), minimum=1)
        if line_id is not None:
            return jsonify({"distribution": distribution_service.get_distribution_batch(line_id)}), 200

        result = distribution_service.list_distributions(
            store_id=coerce_int("storeId", pick(args, "storeId", "store_id")),
            status=pick(args, "status"),
            search=pick(args, "search"),
            start_date=pick(args, "startDate", "start_date"),
            end_date=pick(args, "endDate", "end_date"),
            page=coerce_int("page", pick(args, "page", default=1), minimum=1),
            per_page=coerce_int("limit", pick(args, "limit", "per_page", default=10), minimum=1),
        )
        return jsonify(result), 200

    except CoreError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to fetch distributions")
        return jsonify({"error": "Internal server error"}), 500


@distributions_bp.put("/<int:line_id>/accept")
def accept_distribution_route(line_id: int):
    """Accept the batch containing distribution line `line_id`."""
    try:
        data = request.get_json(silent=True) or {}
        user_id = coerce_int("userId", pick(data, "userId", "user_id"), required=True)
        batch = distribution_service.accept_distribution_batch(line_id, user_id, **_client_info())
        return jsonify({"distribution": batch.to_dict()}), 200

    except CoreError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to accept distribution")
        return jsonify({"error": "Internal server error"}), 500


@distributions_bp.put("/<int:line_id>/reject")
def reject_distribution_route(line_id: int):
    """Reject the batch containing `line_id`; stock returns to the warehouse."""
    try:
        data = request.get_json(silent=True) or {}
        user_id = coerce_int("userId", pick(data, "userId", "user_id"), required=True)
        batch = distribution_service.reject_distribution_batch(
            line_id,
            user_id,
            coerce_str("reason", pick(data, "reason")),
            **_client_info(),
        )
        return jsonify({"distribution": batch.to_dict()}), 200

    except CoreError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to reject distribution")
        return jsonify({"error": "Internal server error"}), 500


@distributions_bp.put("/<int:line_id>")
def update_distribution_line_route(line_id: int):
    """
    Accept or reject one distribution line; the rest of its batch is untouched.

    Body: status (ACCEPTED | REJECTED), userId, notes?
    """
    try:
        payload = parse_line_status_payload(request.get_json(silent=True) or {})
        if payload["status"] == "ACCEPTED":
            line = distribution_service.accept_distribution_line(line_id, payload["user_id"], **_client_info())
            message = "Distribusi diterima dan stok toko telah diperbarui"
        else:
            line = distribution_service.reject_distribution_line(
                line_id,
                payload["user_id"],
                payload["reason"],
                **_client_info(),
            )
            message = "Distribusi ditolak"
        return jsonify({"distribution": line.to_dict(), "batch_status": line.batch.status, "message": message}), 200

    except CoreError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to update distribution line")
        return jsonify({"error": "Internal server error"}), 500


@distributions_bp.delete("/<int:line_id>")
def cancel_distribution_line_route(line_id: int):
    """Cancel a pending line; its quantity returns to the warehouse."""
    try:
        data = request.get_json(silent=True) or {}
        user_id = coerce_int("userId", pick(data, "userId", "user_id") or request.args.get("userId"))
        record = distribution_service.cancel_distribution_line(line_id, user_id, **_client_info())
        return jsonify({
            "distribution": record,
            "message": "Distribusi berhasil dibatalkan dan stok gudang dikembalikan",
        }), 200

    except CoreError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to cancel distribution line")
        return jsonify({"error": "Internal server error"}), 500

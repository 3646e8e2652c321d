from __future__ import annotations

from typing import Any

from .errors import ValidationError


# Largest Rupiah amount accepted from clients
MAX_AMOUNT = 999_999_999_999


def pick(data: dict, *keys: str, default: Any = None) -> Any:
    """First present key wins; lets requests use camelCase or snake_case."""
    for key in keys:
        if key in data and data[key] is not None:
            return data[key]
    return default


def coerce_int(name: str, value: Any, *, required: bool = False, minimum: int | None = None) -> int | None:
    """
    Strict integer coercion for request fields.

    Accepts ints and plain digit strings; rejects bools, floats with a
    fractional part, and scientific notation.
    """
    if value is None or (isinstance(value, str) and not value.strip()):
        if required:
            raise ValidationError(f"{name} is required")
        return None

    if isinstance(value, bool):
        raise ValidationError(f"{name} must be an integer")
    if isinstance(value, int):
        result = value
    elif isinstance(value, float):
        if not value.is_integer():
            raise ValidationError(f"{name} must be an integer, not a decimal")
        result = int(value)
    elif isinstance(value, str):
        stripped = value.strip()
        if "e" in stripped.lower():
            raise ValidationError(f"{name} must be a plain integer (scientific notation not allowed)")
        if "." in stripped:
            raise ValidationError(f"{name} must be an integer (no decimals)")
        try:
            result = int(stripped)
        except ValueError:
            raise ValidationError(f"{name} must be an integer") from None
    else:
        raise ValidationError(f"{name} must be an integer")

    if minimum is not None and result < minimum:
        raise ValidationError(f"{name} must be >= {minimum}")
    if abs(result) > MAX_AMOUNT:
        raise ValidationError(f"{name} is out of range")
    return result


def coerce_str(name: str, value: Any, *, default: str | None = None, max_length: int | None = None) -> str | None:
    """Text fields must arrive as strings; blank means absent."""
    if value is None:
        return default
    if not isinstance(value, str):
        raise ValidationError(f"{name} must be a string", details={name: value})
    value = value.strip()
    if not value:
        return default
    if max_length is not None and len(value) > max_length:
        raise ValidationError(f"{name} is too long (max {max_length} characters)")
    return value


def coerce_ids(value: Any) -> list[int]:
    """Parse "1,2,3", [1, 2, 3] or a single id into a list of ids."""
    if value is None:
        return []
    if isinstance(value, str):
        parts = [p for p in value.replace("[", "").replace("]", "").split(",") if p.strip()]
    elif isinstance(value, (list, tuple)):
        parts = list(value)
    else:
        parts = [value]
    return [coerce_int("id", p, required=True, minimum=1) for p in parts]


def _items(data: dict) -> list:
    items = pick(data, "items", default=[])
    if not isinstance(items, list):
        raise ValidationError("items must be a list")
    for item in items:
        if not isinstance(item, dict):
            raise ValidationError("every item must be an object")
    return items


def parse_sale_payload(data: dict) -> dict:
    """Normalize a POST /api/sales body into record_sale keyword arguments."""
    items = [
        {
            "product_id": coerce_int("productId", pick(item, "productId", "product_id"), required=True),
            "quantity": coerce_int("quantity", pick(item, "quantity"), required=True, minimum=1),
        }
        for item in _items(data)
    ]
    return {
        "store_id": coerce_int("storeId", pick(data, "storeId", "store_id"), required=True),
        "cashier_id": coerce_int("cashierId", pick(data, "cashierId", "cashier_id"), required=True),
        "attendant_id": coerce_int("attendantId", pick(data, "attendantId", "attendant_id")),
        "member_id": coerce_int("memberId", pick(data, "memberId", "member_id")),
        "items": items,
        "payment": coerce_int("payment", pick(data, "payment", default=0), minimum=0),
        "payment_method": coerce_str("paymentMethod", pick(data, "paymentMethod", "payment_method"), default="CASH"),
        "reference_number": coerce_str("referenceNumber", pick(data, "referenceNumber", "reference_number"), max_length=128),
        "additional_discount": coerce_int(
            "additionalDiscount", pick(data, "additionalDiscount", "additional_discount", default=0), minimum=0,
        ),
        "status": coerce_str("status", pick(data, "status")),
        "idempotency_key": coerce_str("idempotencyKey", pick(data, "idempotencyKey", "idempotency_key"), max_length=64),
    }


def parse_calculation_payload(data: dict) -> dict:
    return {
        "store_id": coerce_int("storeId", pick(data, "storeId", "store_id"), required=True),
        "member_id": coerce_int("memberId", pick(data, "memberId", "member_id")),
        "items": [
            {
                "product_id": coerce_int("productId", pick(item, "productId", "product_id"), required=True),
                "quantity": coerce_int("quantity", pick(item, "quantity"), required=True, minimum=1),
            }
            for item in _items(data)
        ],
        "additional_discount": coerce_int(
            "additionalDiscount", pick(data, "additionalDiscount", "additional_discount", default=0), minimum=0,
        ),
    }


def parse_distribution_payload(data: dict) -> dict:
    """Normalize a POST /api/warehouse/distribution body."""
    store_id = coerce_int("storeId", pick(data, "storeId", "store_id"))
    distributed_by = coerce_int("distributedBy", pick(data, "distributedBy", "distributed_by"))
    distribution_date = pick(data, "distributionDate", "distribution_date")
    items = _items(data)
    if not store_id or not distribution_date or not items or not distributed_by:
        raise ValidationError("Data distribusi tidak lengkap")

    return {
        "store_id": store_id,
        "distribution_date": distribution_date,
        "distributed_by": distributed_by,
        "initial_status": coerce_str("status", pick(data, "status")),
        "notes": coerce_str("notes", pick(data, "notes")),
        "items": [
            {
                "product_id": coerce_int("productId", pick(item, "productId", "product_id"), required=True),
                "quantity": coerce_int("quantity", pick(item, "quantity"), required=True, minimum=1),
                "unit_price": coerce_int(
                    "purchasePrice",
                    pick(item, "unitPrice", "unit_price", "purchasePrice", "purchase_price"),
                    minimum=0,
                ),
            }
            for item in items
        ],
    }


def parse_payment_payload(data: dict) -> dict:
    """Normalize a PUT /api/receivables/<id> body."""
    return {
        "amount": coerce_int("amountPaid", pick(data, "amountPaid", "amount_paid", "amount"), required=True),
        "payment_method": coerce_str("paymentMethod", pick(data, "paymentMethod", "payment_method"), default="CASH"),
        "reference_number": coerce_str("referenceNumber", pick(data, "referenceNumber", "reference_number"), max_length=128),
        "idempotency_key": coerce_str("idempotencyKey", pick(data, "idempotencyKey", "idempotency_key"), max_length=64),
        "actor_id": coerce_int("userId", pick(data, "userId", "user_id")),
    }


LINE_STATUSES = {"ACCEPTED", "REJECTED"}


def parse_line_status_payload(data: dict) -> dict:
    """Normalize a PUT /api/warehouse/distribution/<id> body."""
    status = coerce_str("status", pick(data, "status"))
    if status is None:
        raise ValidationError("ID distribusi dan status wajib disediakan")
    status = status.upper()
    if status not in LINE_STATUSES:
        raise ValidationError("Status tidak valid", details={"status": status, "allowed": sorted(LINE_STATUSES)})
    return {
        "status": status,
        "user_id": coerce_int("userId", pick(data, "userId", "user_id"), required=True),
        "reason": coerce_str("notes", pick(data, "notes", "reason")),
    }

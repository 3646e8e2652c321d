# Overview: Domain error taxonomy shared by services and routes.

from __future__ import annotations


class CoreError(Exception):
    """
    Base class for failures the transactional core reports to callers.

    Every subclass maps to one HTTP status so routes can translate errors
    without knowing which service raised them.
    """
    status_code = 400
    code = "error"

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict:
        return {
            "error": self.message,
            "code": self.code,
            "details": self.details,
        }


class ValidationError(CoreError):
    """400-level input problem. No side effects happened."""
    code = "validation_error"


class NotFoundError(CoreError):
    status_code = 404
    code = "not_found"


class InsufficientStock(CoreError):
    """
    One or more products have less stock than requested.

    `shortages` lists every under-stocked product, not only the first one.
    """
    status_code = 409
    code = "insufficient_stock"

    def __init__(self, shortages: list[dict], location: str = "store"):
        self.shortages = shortages
        parts = [
            f"{s['product_name']} (tersedia: {s['available']}, diminta: {s['requested']})"
            for s in shortages
        ]
        super().__init__(
            f"Stok tidak mencukupi di {'gudang' if location == 'warehouse' else 'toko'}: " + ", ".join(parts),
            details={"location": location, "items": shortages},
        )


class ProductNotInWarehouse(CoreError):
    status_code = 409
    code = "product_not_in_warehouse"

    def __init__(self, product_ids: list[int]):
        self.product_ids = product_ids
        super().__init__(
            "Produk tidak ditemukan di gudang: " + ", ".join(str(p) for p in product_ids),
            details={"product_ids": product_ids},
        )


class OverpaymentError(ValidationError):
    code = "overpayment"

    def __init__(self, max_allowed: int):
        self.max_allowed = max_allowed
        super().__init__(
            f"Jumlah pembayaran melebihi jumlah hutang yang tersisa. Maksimal: {max_allowed}",
            details={"max_allowed": max_allowed},
        )


class InvalidTransition(CoreError):
    status_code = 409
    code = "invalid_transition"

    def __init__(self, current: str, event: str):
        self.current = current
        self.event = event
        super().__init__(
            f"Cannot apply {event} to status {current}",
            details={"current": current, "event": event},
        )


class PersistenceError(CoreError):
    """The atomic unit could not commit. Retry the whole operation."""
    status_code = 503
    code = "persistence_error"


class TransactionTimeout(PersistenceError):
    code = "transaction_timeout"

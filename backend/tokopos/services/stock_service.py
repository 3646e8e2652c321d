# Overview: Service-layer operations for stock; all-or-nothing stock checks and mutations.

"""
tokopos Stock Ledger Invariants (authoritative)

- Product.stock and WarehouseProduct.quantity never go negative.
- A batch of lines is checked completely before anything is mutated:
  lock every affected row, verify every line, then apply every line.
  Checking and decrementing line by line would let a concurrent sale slip
  between two lines.
- Duplicate product lines in one batch are summed before checking.
- Rows are locked in ascending id order so two batches sharing products
  cannot deadlock each other.
- Every mutation appends a StockMovement row in the same unit of work.
- These functions never commit; callers run them inside run_atomic().
"""

from __future__ import annotations

from collections.abc import Iterable

from ..extensions import db
from ..errors import InsufficientStock, NotFoundError, ProductNotInWarehouse, ValidationError
from ..models import Product, StockMovement, WarehouseProduct
from .concurrency import lock_for_update

MOVEMENT_SALE = "SALE"
MOVEMENT_DISTRIBUTION_OUT = "DISTRIBUTION_OUT"
MOVEMENT_DISTRIBUTION_IN = "DISTRIBUTION_IN"
MOVEMENT_DISTRIBUTION_RETURN = "DISTRIBUTION_RETURN"
MOVEMENT_RESTOCK = "RESTOCK"


def _line_values(line) -> tuple[int, int]:
    if isinstance(line, dict):
        product_id = line.get("product_id", line.get("productId"))
        quantity = line.get("quantity")
    else:
        product_id, quantity = line.product_id, line.quantity
    return product_id, quantity


def aggregate_lines(lines: Iterable) -> dict[int, int]:
    """Sum quantities per product id, preserving first-seen order."""
    totals: dict[int, int] = {}
    for line in lines:
        product_id, quantity = _line_values(line)
        if product_id is None:
            raise ValidationError("product_id required for every line")
        if not isinstance(quantity, int) or isinstance(quantity, bool) or quantity <= 0:
            raise ValidationError(
                "Quantity must be a positive integer",
                details={"product_id": product_id, "quantity": quantity},
            )
        totals[product_id] = totals.get(product_id, 0) + quantity
    if not totals:
        raise ValidationError("At least one line is required")
    return totals


def _lock_store_products(store_id: int, product_ids: Iterable[int]) -> dict[int, Product]:
    ids = sorted(set(product_ids))
    rows = lock_for_update(
        db.session.query(Product)
        .filter(Product.store_id == store_id, Product.id.in_(ids))
        .order_by(Product.id)
    ).all()
    found = {p.id: p for p in rows}
    missing = [pid for pid in ids if pid not in found]
    if missing:
        raise NotFoundError(
            "Produk tidak ditemukan di toko ini",
            details={"store_id": store_id, "product_ids": missing},
        )
    return found


def _lock_warehouse_rows(warehouse_id: int, product_ids: Iterable[int]) -> dict[int, WarehouseProduct]:
    ids = sorted(set(product_ids))
    rows = lock_for_update(
        db.session.query(WarehouseProduct)
        .filter(WarehouseProduct.warehouse_id == warehouse_id, WarehouseProduct.product_id.in_(ids))
        .order_by(WarehouseProduct.id)
    ).all()
    found = {row.product_id: row for row in rows}
    missing = [pid for pid in ids if pid not in found]
    if missing:
        raise ProductNotInWarehouse(missing)
    return found


def _shortage(product_id: int, name: str, available: int, requested: int) -> dict:
    return {
        "product_id": product_id,
        "product_name": name,
        "available": available,
        "requested": requested,
        "shortfall": requested - available,
    }


def decrement_store_stock(store_id: int, lines: Iterable, *, reference: str | None = None) -> dict[int, Product]:
    """
    Remove sold quantities from a store's products.

    Returns the locked products keyed by id so callers can price from the
    same rows they decremented.

    Raises:
        NotFoundError: a product does not exist in the store
        InsufficientStock: one or more products are short (nothing is changed)
    """
    totals = aggregate_lines(lines)
    products = _lock_store_products(store_id, totals.keys())

    shortages = [
        _shortage(pid, products[pid].name, products[pid].stock, qty)
        for pid, qty in totals.items()
        if products[pid].stock < qty
    ]
    if shortages:
        raise InsufficientStock(shortages, location="store")

    for pid, qty in totals.items():
        products[pid].stock -= qty
        db.session.add(StockMovement(
            store_id=store_id,
            product_id=pid,
            movement_type=MOVEMENT_SALE,
            quantity_delta=-qty,
            reference=reference,
        ))

    db.session.flush()
    return products


def decrement_warehouse_stock(warehouse_id: int, lines: Iterable, *, reference: str | None = None) -> dict[int, WarehouseProduct]:
    """
    Remove distributed quantities from the warehouse.

    Raises:
        ProductNotInWarehouse: a product has no warehouse stock row at all
        InsufficientStock: one or more products are short (nothing is changed)
    """
    totals = aggregate_lines(lines)
    rows = _lock_warehouse_rows(warehouse_id, totals.keys())

    shortages = [
        _shortage(pid, rows[pid].product.name, rows[pid].quantity, qty)
        for pid, qty in totals.items()
        if rows[pid].quantity < qty
    ]
    if shortages:
        raise InsufficientStock(shortages, location="warehouse")

    for pid, qty in totals.items():
        rows[pid].quantity -= qty
        db.session.add(StockMovement(
            warehouse_id=warehouse_id,
            product_id=pid,
            movement_type=MOVEMENT_DISTRIBUTION_OUT,
            quantity_delta=-qty,
            reference=reference,
        ))

    db.session.flush()
    return rows


def increment_store_stock(product: Product, quantity: int, *, reference: str | None = None) -> Product:
    """Add received quantity to an already-locked store product."""
    if quantity <= 0:
        raise ValidationError("Quantity must be positive")
    product.stock += quantity
    db.session.add(StockMovement(
        store_id=product.store_id,
        product_id=product.id,
        movement_type=MOVEMENT_DISTRIBUTION_IN,
        quantity_delta=quantity,
        reference=reference,
    ))
    db.session.flush()
    return product


def increment_warehouse_stock(warehouse_id: int, product_id: int, quantity: int, *, reference: str | None = None,
                              movement_type: str = MOVEMENT_DISTRIBUTION_RETURN) -> WarehouseProduct:
    """Return or restock quantity into the warehouse, creating the row if needed."""
    if quantity <= 0:
        raise ValidationError("Quantity must be positive")
    row = lock_for_update(
        db.session.query(WarehouseProduct).filter_by(warehouse_id=warehouse_id, product_id=product_id)
    ).first()
    if row is None:
        row = WarehouseProduct(warehouse_id=warehouse_id, product_id=product_id, quantity=0)
        db.session.add(row)
    row.quantity += quantity
    db.session.add(StockMovement(
        warehouse_id=warehouse_id,
        product_id=product_id,
        movement_type=movement_type,
        quantity_delta=quantity,
        reference=reference,
    ))
    db.session.flush()
    return row


def get_store_stock(store_id: int, product_id: int) -> int:
    product = db.session.query(Product).filter_by(id=product_id, store_id=store_id).first()
    if product is None:
        raise NotFoundError("Produk tidak ditemukan", details={"product_id": product_id})
    return product.stock


def get_warehouse_stock(warehouse_id: int, product_id: int) -> int:
    row = db.session.query(WarehouseProduct).filter_by(warehouse_id=warehouse_id, product_id=product_id).first()
    return row.quantity if row else 0

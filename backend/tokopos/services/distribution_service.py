# Overview: Service-layer operations for warehouse distributions; batch creation, retrieval and acceptance workflow.

"""
tokopos Distribution Engine

A distribution moves stock from the central warehouse to one store. It is
stored as one DistributionBatch owning one WarehouseDistribution line per
product.

Invoice numbers have the form D-<YYYYMMDD>-<STORECODE>-<NNNN>, where NNNN
is the last four digits of distributed_at in epoch milliseconds.
distributed_at is stored at millisecond precision, so the number can be
re-derived from the stored batch at any time. If the derived number is
already taken, distributed_at moves forward one millisecond until it is
free.

Lifecycle: PENDING_ACCEPTANCE -> ACCEPTED (stock lands in the store) or
REJECTED (stock goes back to the warehouse), for the whole batch or one
line at a time. A pending line can also be cancelled: it is deleted and
its stock goes back to the warehouse.
"""

from __future__ import annotations

from datetime import date, datetime, timedelta

from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..errors import InvalidTransition, NotFoundError, ValidationError
from ..models import (
    DistributionBatch,
    PriceTier,
    Product,
    Store,
    User,
    WarehouseDistribution,
)
from ..pagination import paginate
from ..time_utils import day_bounds, epoch_millis, parse_business_datetime
from ..validation import coerce_str
from . import audit_service, lifecycle_service, notification_service, stock_service
from .concurrency import lock_for_update, run_atomic
from .provisioning_service import get_or_create_central_warehouse

INITIAL_STATUSES = {lifecycle_service.PENDING_ACCEPTANCE, lifecycle_service.ACCEPTED}

_MAX_INVOICE_ATTEMPTS = 1000


def derive_invoice_number(distributed_at: datetime, store_code: str) -> str:
    suffix = epoch_millis(distributed_at) % 10000
    return f"D-{distributed_at:%Y%m%d}-{store_code.upper()}-{suffix:04d}"


def _normalize_items(items: list) -> list[dict]:
    """Validate request items; duplicate products are merged, keeping the first explicit price."""
    if not items:
        raise ValidationError("Data distribusi tidak lengkap: items kosong")

    merged: dict[int, dict] = {}
    for raw in items:
        product_id = raw.get("product_id")
        quantity = raw.get("quantity")
        unit_price = raw.get("unit_price")
        if product_id is None:
            raise ValidationError("product_id required for every item")
        if not isinstance(quantity, int) or isinstance(quantity, bool) or quantity <= 0:
            raise ValidationError(
                "Quantity must be a positive integer",
                details={"product_id": product_id, "quantity": quantity},
            )
        if unit_price is not None and (not isinstance(unit_price, int) or unit_price < 0):
            raise ValidationError(
                "unit_price must be a non-negative integer",
                details={"product_id": product_id, "unit_price": unit_price},
            )
        entry = merged.setdefault(product_id, {"product_id": product_id, "quantity": 0, "unit_price": None})
        entry["quantity"] += quantity
        if entry["unit_price"] is None:
            entry["unit_price"] = unit_price
    return list(merged.values())


def _invoice_taken(invoice_number: str) -> bool:
    return db.session.query(DistributionBatch.id).filter_by(invoice_number=invoice_number).first() is not None


def _insert_batch(requested_at: datetime, store: Store, **fields) -> DistributionBatch:
    """
    Insert a PENDING batch under the first free invoice number at or after
    `requested_at`.

    A number claimed by a concurrent unit after the lookup surfaces as a
    unique violation inside the savepoint; distributed_at then moves
    forward one millisecond and the insert is tried again.
    """
    distributed_at = requested_at
    for _ in range(_MAX_INVOICE_ATTEMPTS):
        invoice_number = derive_invoice_number(distributed_at, store.code)
        if not _invoice_taken(invoice_number):
            batch = DistributionBatch(
                invoice_number=invoice_number,
                store_id=store.id,
                distributed_at=distributed_at,
                status=lifecycle_service.PENDING_ACCEPTANCE,
                **fields,
            )
            try:
                with db.session.begin_nested():
                    db.session.add(batch)
                return batch
            except IntegrityError as exc:
                if "invoice_number" not in str(exc.orig):
                    raise
        distributed_at += timedelta(milliseconds=1)
    raise ValidationError("Tidak dapat membuat nomor faktur distribusi yang unik")


def _find_or_create_store_product(store_id: int, source: Product, unit_price: int) -> Product:
    """Store-side copy of a warehouse product, matched by product code."""
    product = lock_for_update(
        db.session.query(Product).filter_by(store_id=store_id, code=source.code)
    ).first()
    if product is not None:
        return product

    product = Product(
        store_id=store_id,
        code=source.code,
        name=source.name,
        description=source.description,
        stock=0,
        purchase_price=unit_price,
    )
    for tier in source.price_tiers:
        product.price_tiers.append(PriceTier(min_qty=tier.min_qty, price=tier.price))
    db.session.add(product)
    db.session.flush()
    return product


def _credit_store(batch: DistributionBatch, lines: list[WarehouseDistribution]) -> None:
    for line in sorted(lines, key=lambda ln: ln.product_id):
        target = _find_or_create_store_product(batch.store_id, line.product, line.unit_price)
        stock_service.increment_store_stock(target, line.quantity, reference=batch.invoice_number)


def create_distribution(
    *,
    store_id: int,
    distribution_date,
    items: list,
    distributed_by: int,
    initial_status: str | None = None,
    notes: str | None = None,
    ip_address: str | None = None,
    user_agent: str | None = None,
) -> DistributionBatch:
    """
    Move stock from the central warehouse to a store as one batch.

    Every item is checked against warehouse stock before anything changes.
    Unit price is the item's explicit unit_price, else the product's
    purchase price. A batch created as ACCEPTED credits the store at once.

    Raises:
        ValidationError: missing items, bad quantity, bad status or date
        NotFoundError: unknown store or distributing user
        ProductNotInWarehouse: a product has no warehouse stock row
        InsufficientStock: a line exceeds warehouse stock (nothing is changed)
    """
    status = coerce_str("status", initial_status, default=lifecycle_service.PENDING_ACCEPTANCE).upper()
    if status not in INITIAL_STATUSES:
        raise ValidationError(
            "Status distribusi awal tidak valid",
            details={"status": status, "allowed": sorted(INITIAL_STATUSES)},
        )
    if not distributed_by:
        raise ValidationError("distributed_by required")
    normalized = _normalize_items(items)
    try:
        requested_at = parse_business_datetime(distribution_date)
    except ValueError:
        raise ValidationError("Tanggal distribusi tidak valid", details={"distribution_date": distribution_date}) from None

    def _op() -> int:
        store = db.session.get(Store, store_id)
        if store is None:
            raise NotFoundError("Toko tujuan tidak ditemukan", details={"store_id": store_id})
        if db.session.get(User, distributed_by) is None:
            raise NotFoundError("User tidak ditemukan", details={"distributed_by": distributed_by})

        warehouse = get_or_create_central_warehouse()
        batch = _insert_batch(
            requested_at,
            store,
            warehouse_id=warehouse.id,
            distributed_by=distributed_by,
            notes=notes,
        )
        invoice_number = batch.invoice_number
        distributed_at = batch.distributed_at
        rows = stock_service.decrement_warehouse_stock(warehouse.id, normalized, reference=invoice_number)

        total_amount = 0
        lines = []
        for item in normalized:
            product = rows[item["product_id"]].product
            unit_price = item["unit_price"] if item["unit_price"] is not None else product.purchase_price
            line_total = unit_price * item["quantity"]
            total_amount += line_total
            line = WarehouseDistribution(
                warehouse_id=warehouse.id,
                store_id=store.id,
                product_id=product.id,
                quantity=item["quantity"],
                unit_price=unit_price,
                total_amount=line_total,
                status=lifecycle_service.PENDING_ACCEPTANCE,
                invoice_number=invoice_number,
                notes=notes,
                distributed_at=distributed_at,
                distributed_by=distributed_by,
            )
            batch.lines.append(line)
            lines.append(line)
        batch.total_amount = total_amount
        db.session.flush()

        if status == lifecycle_service.ACCEPTED:
            _apply_status(batch, lines, lifecycle_service.ACCEPT)
            _credit_store(batch, lines)

        return batch.id

    batch_id = run_atomic(_op)
    batch = db.session.get(DistributionBatch, batch_id)
    record = batch.to_dict()

    audit_service.log_warehouse_distribution(
        distributed_by,
        record,
        ip_address=ip_address,
        user_agent=user_agent,
        target_store_id=batch.store_id,
    )
    if batch.status == lifecycle_service.PENDING_ACCEPTANCE:
        summary = ", ".join(f"{item['product_name']} ({item['quantity']})" for item in record["items"])
        notification_service.create_notification(
            type=notification_service.TYPE_DISTRIBUTION_PENDING,
            title="Distribusi gudang menunggu penerimaan",
            message=f"Distribusi {batch.invoice_number} ke {record['store_name']}: {summary}",
            store_id=batch.store_id,
            severity="MEDIUM",
            data={
                "batch_id": batch.id,
                "invoice_number": batch.invoice_number,
                "store_name": record["store_name"],
                "items": [
                    {"product_name": item["product_name"], "quantity": item["quantity"]}
                    for item in record["items"]
                ],
            },
        )
    return batch


def _load_line(line_id: int) -> WarehouseDistribution:
    line = db.session.get(WarehouseDistribution, line_id)
    if line is None:
        raise NotFoundError("Distribusi tidak ditemukan", details={"id": line_id})
    return line


def get_distribution_batch(line_id: int) -> dict:
    """
    Full batch for any of its line ids.

    The invoice number is re-derived from distributed_at and the store code
    rather than read back, so every line id yields the same answer.
    """
    batch = _load_line(line_id).batch
    data = batch.to_dict()
    data["invoice_number"] = derive_invoice_number(batch.distributed_at, batch.store.code)
    for item in data["items"]:
        item["invoice_number"] = data["invoice_number"]
    return data


def list_distributions(
    *,
    store_id: int | None = None,
    status: str | None = None,
    search: str | None = None,
    start_date=None,
    end_date=None,
    page: int | None = 1,
    per_page: int | None = 10,
) -> dict:
    """Newest-first batch listing; search matches product name or store name/code."""
    query = db.session.query(DistributionBatch)
    if store_id is not None:
        query = query.filter(DistributionBatch.store_id == store_id)
    if status:
        query = query.filter(DistributionBatch.status == status.upper())
    if search:
        like = f"%{search.strip()}%"
        matching = (
            db.session.query(WarehouseDistribution.batch_id)
            .join(Product, WarehouseDistribution.product_id == Product.id)
            .join(Store, WarehouseDistribution.store_id == Store.id)
            .filter(or_(Product.name.ilike(like), Store.name.ilike(like), Store.code.ilike(like)))
        )
        query = query.filter(
            or_(DistributionBatch.id.in_(matching), DistributionBatch.invoice_number.ilike(like))
        )
    try:
        if start_date:
            day = start_date if isinstance(start_date, date) else date.fromisoformat(str(start_date)[:10])
            query = query.filter(DistributionBatch.distributed_at >= day_bounds(day)[0])
        if end_date:
            day = end_date if isinstance(end_date, date) else date.fromisoformat(str(end_date)[:10])
            query = query.filter(DistributionBatch.distributed_at <= day_bounds(day)[1])
    except ValueError:
        raise ValidationError("Tanggal harus berformat YYYY-MM-DD") from None

    query = query.order_by(DistributionBatch.distributed_at.desc(), DistributionBatch.id.desc())
    return paginate(query, page=page, per_page=per_page, serialize=lambda batch: batch.to_dict())


def _settle_batch(batch: DistributionBatch) -> None:
    """Close the batch once none of its lines is pending."""
    statuses = {
        status for (status,) in
        db.session.query(WarehouseDistribution.status).filter_by(batch_id=batch.id)
    }
    if not statuses or lifecycle_service.PENDING_ACCEPTANCE in statuses:
        return
    event = lifecycle_service.ACCEPT if lifecycle_service.ACCEPTED in statuses else lifecycle_service.REJECT
    batch.status = lifecycle_service.transition(batch.status, event)


def _apply_status(batch: DistributionBatch, lines: list[WarehouseDistribution], event: str) -> None:
    if not lifecycle_service.can_transition(batch.status, event):
        raise InvalidTransition(batch.status, event)
    for line in lines:
        line.status = lifecycle_service.transition(line.status, event)
    _settle_batch(batch)


def _append_note(existing: str | None, note: str) -> str:
    return f"{existing} | {note}" if existing else note


def _lock_batch(batch_id: int) -> DistributionBatch:
    return lock_for_update(db.session.query(DistributionBatch).filter_by(id=batch_id)).one()


def _lock_pending_batch(line_id: int) -> tuple[DistributionBatch, list[WarehouseDistribution]]:
    batch = _lock_batch(_load_line(line_id).batch_id)
    lines = lock_for_update(
        db.session.query(WarehouseDistribution)
        .filter_by(batch_id=batch.id, status=lifecycle_service.PENDING_ACCEPTANCE)
        .order_by(WarehouseDistribution.id)
    ).all()
    return batch, lines


def _lock_line(line_id: int) -> tuple[DistributionBatch, WarehouseDistribution]:
    batch = _lock_batch(_load_line(line_id).batch_id)
    line = lock_for_update(db.session.query(WarehouseDistribution).filter_by(id=line_id)).one()
    return batch, line


def _return_to_warehouse(batch: DistributionBatch, line: WarehouseDistribution) -> None:
    stock_service.increment_warehouse_stock(
        batch.warehouse_id,
        line.product_id,
        line.quantity,
        reference=batch.invoice_number,
    )


def _notify_rejected(batch: DistributionBatch, reason: str | None, product_names: list[str]) -> None:
    notification_service.create_notification(
        type=notification_service.TYPE_DISTRIBUTION_REJECTED,
        title="Distribusi ditolak",
        message=f"Distribusi {batch.invoice_number} ditolak oleh toko: {', '.join(product_names)}",
        store_id=None,
        severity="HIGH",
        data={"batch_id": batch.id, "invoice_number": batch.invoice_number, "reason": reason},
    )


def accept_distribution_batch(line_id: int, user_id: int, *, ip_address=None, user_agent=None) -> DistributionBatch:
    """
    Accept every pending line of the batch that `line_id` belongs to.

    Quantities are added to the store's product with the same code; a
    missing store product is created with the source product's price tiers.

    Raises:
        NotFoundError: unknown line id
        InvalidTransition: the batch is no longer pending
    """
    def _op() -> int:
        batch, lines = _lock_pending_batch(line_id)
        _apply_status(batch, lines, lifecycle_service.ACCEPT)
        for line in lines:
            line.notes = _append_note(line.notes, "Accepted via batch accept")
        _credit_store(batch, lines)
        db.session.flush()
        return batch.id

    batch = db.session.get(DistributionBatch, run_atomic(_op))
    audit_service.log_audit(
        user_id=user_id,
        action=audit_service.ACTION_DISTRIBUTION_ACCEPT,
        table_name="distribution_batches",
        record_id=batch.id,
        new_value={"invoice_number": batch.invoice_number, "status": batch.status},
        ip_address=ip_address,
        user_agent=user_agent,
        store_id=batch.store_id,
    )
    return batch


def reject_distribution_batch(line_id: int, user_id: int, reason: str | None = None, *,
                              ip_address=None, user_agent=None) -> DistributionBatch:
    """
    Reject every pending line of the batch and return the quantities to the
    warehouse they came from.

    Raises:
        NotFoundError: unknown line id
        InvalidTransition: the batch is no longer pending
    """
    note = f"Rejected: {reason}" if reason else "Rejected"

    def _op() -> int:
        batch, lines = _lock_pending_batch(line_id)
        _apply_status(batch, lines, lifecycle_service.REJECT)
        for line in sorted(lines, key=lambda ln: ln.product_id):
            line.notes = _append_note(line.notes, note)
            _return_to_warehouse(batch, line)
        batch.notes = _append_note(batch.notes, note)
        db.session.flush()
        return batch.id

    batch = db.session.get(DistributionBatch, run_atomic(_op))
    audit_service.log_audit(
        user_id=user_id,
        action=audit_service.ACTION_DISTRIBUTION_REJECT,
        table_name="distribution_batches",
        record_id=batch.id,
        new_value={"invoice_number": batch.invoice_number, "status": batch.status, "reason": reason},
        ip_address=ip_address,
        user_agent=user_agent,
        store_id=batch.store_id,
    )
    _notify_rejected(batch, reason, [line.product.name for line in batch.lines])
    return batch


def accept_distribution_line(line_id: int, user_id: int, *, ip_address=None,
                             user_agent=None) -> WarehouseDistribution:
    """
    Accept one line; the other lines of its batch stay as they are.

    Raises:
        NotFoundError: unknown line id
        InvalidTransition: the line is no longer pending
    """
    def _op() -> None:
        batch, line = _lock_line(line_id)
        line.status = lifecycle_service.transition(line.status, lifecycle_service.ACCEPT)
        line.notes = _append_note(line.notes, "Accepted individually")
        _credit_store(batch, [line])
        _settle_batch(batch)
        db.session.flush()

    run_atomic(_op)
    line = _load_line(line_id)
    audit_service.log_audit(
        user_id=user_id,
        action=audit_service.ACTION_DISTRIBUTION_ACCEPT,
        table_name="warehouse_distributions",
        record_id=line.id,
        new_value={"invoice_number": line.invoice_number, "status": line.status, "batch_status": line.batch.status},
        ip_address=ip_address,
        user_agent=user_agent,
        store_id=line.store_id,
    )
    return line


def reject_distribution_line(line_id: int, user_id: int, reason: str | None = None, *,
                             ip_address=None, user_agent=None) -> WarehouseDistribution:
    """
    Reject one line and return its quantity to the warehouse.

    Raises:
        NotFoundError: unknown line id
        InvalidTransition: the line is no longer pending
    """
    note = f"Rejected: {reason}" if reason else "Rejected"

    def _op() -> None:
        batch, line = _lock_line(line_id)
        line.status = lifecycle_service.transition(line.status, lifecycle_service.REJECT)
        line.notes = _append_note(line.notes, note)
        _return_to_warehouse(batch, line)
        _settle_batch(batch)
        db.session.flush()

    run_atomic(_op)
    line = _load_line(line_id)
    audit_service.log_audit(
        user_id=user_id,
        action=audit_service.ACTION_DISTRIBUTION_REJECT,
        table_name="warehouse_distributions",
        record_id=line.id,
        new_value={"invoice_number": line.invoice_number, "status": line.status, "reason": reason},
        ip_address=ip_address,
        user_agent=user_agent,
        store_id=line.store_id,
    )
    _notify_rejected(line.batch, reason, [line.product.name])
    return line


def cancel_distribution_line(line_id: int, user_id: int | None = None, *, ip_address=None,
                             user_agent=None) -> dict:
    """
    Withdraw a pending line: its quantity goes back to the warehouse and the
    line is deleted. A batch left without lines is deleted too.

    Returns the deleted line as a dict.

    Raises:
        NotFoundError: unknown line id
        InvalidTransition: the line was already accepted or rejected
    """
    def _op() -> dict:
        batch, line = _lock_line(line_id)
        lifecycle_service.transition(line.status, lifecycle_service.CANCEL)
        record = line.to_dict()
        _return_to_warehouse(batch, line)
        batch.total_amount -= line.total_amount
        db.session.delete(line)
        db.session.flush()
        db.session.expire(batch, ["lines"])
        if not batch.lines:
            db.session.delete(batch)
            record["batch_deleted"] = True
        else:
            _settle_batch(batch)
            record["batch_deleted"] = False
        db.session.flush()
        return record

    record = run_atomic(_op)
    audit_service.log_audit(
        user_id=user_id,
        action=audit_service.ACTION_DISTRIBUTION_CANCEL,
        table_name="warehouse_distributions",
        record_id=record["id"],
        new_value={
            "invoice_number": record["invoice_number"],
            "product_id": record["product_id"],
            "quantity": record["quantity"],
        },
        ip_address=ip_address,
        user_agent=user_agent,
        store_id=record["store_id"],
    )
    return record

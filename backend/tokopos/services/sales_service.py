# Overview: Service-layer operations for sales; records a sale, its stock decrements and its receivable atomically.

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal

from flask import current_app
from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..errors import NotFoundError, PersistenceError, ValidationError
from ..models import Member, Product, Receivable, ReceivablePayment, Sale, SaleDetail, Store, User
from ..pagination import paginate
from ..time_utils import day_bounds, utcnow
from ..validation import coerce_str
from . import audit_service, lifecycle_service, stock_service
from .calculation_service import CartLine, Calculation, compute_totals
from .concurrency import run_atomic
from .document_service import next_sale_invoice_number

PAYMENT_METHODS = {"CASH", "TRANSFER", "QRIS"}
NON_CASH_METHODS = {"TRANSFER", "QRIS"}
CENTS = Decimal("0.01")

# Requested statuses that mark a submission as a debt sale
DEBT_REQUEST_STATUSES = {"UNPAID", "PARTIALLY_PAID", "DEBT"}


def _tax_rate() -> float:
    return current_app.config.get("TAX_RATE_PERCENT", 0) or 0


def _load_member(member_id: int | None) -> Member | None:
    if member_id is None:
        return None
    member = db.session.get(Member, member_id)
    if member is None:
        raise NotFoundError("Member tidak ditemukan", details={"member_id": member_id})
    return member


def _load_store_products(store_id: int, product_ids) -> dict[int, Product]:
    ids = sorted(set(product_ids))
    rows = db.session.query(Product).filter(Product.store_id == store_id, Product.id.in_(ids)).all()
    found = {p.id: p for p in rows}
    missing = [pid for pid in ids if pid not in found]
    if missing:
        raise NotFoundError(
            "Produk tidak ditemukan di toko ini",
            details={"store_id": store_id, "product_ids": missing},
        )
    unpriced = [pid for pid in ids if not found[pid].price_tiers]
    if unpriced:
        raise ValidationError("Produk belum memiliki harga jual", details={"product_ids": unpriced})
    return found


def _cart_lines(quantities: dict[int, int], products: dict[int, Product]) -> list[CartLine]:
    return [
        CartLine(
            product_id=pid,
            quantity=qty,
            price_tiers=products[pid].price_tiers,
            product_name=products[pid].name,
        )
        for pid, qty in quantities.items()
    ]


def calculate_sale(
    *,
    store_id: int,
    items: list,
    member_id: int | None = None,
    additional_discount: int = 0,
) -> Calculation:
    """Price a cart from stored tiers without persisting anything."""
    if db.session.get(Store, store_id) is None:
        raise NotFoundError("Toko tidak ditemukan", details={"store_id": store_id})
    quantities = stock_service.aggregate_lines(items)
    products = _load_store_products(store_id, quantities.keys())
    member = _load_member(member_id)
    return compute_totals(
        _cart_lines(quantities, products),
        member=member,
        additional_discount=additional_discount,
        tax_rate_percent=_tax_rate(),
    )


def _validate_payment(
    *,
    payment: int,
    grand_total: int,
    payment_method: str,
    reference_number: str | None,
    is_debt: bool,
    member: Member | None,
) -> None:
    if payment > grand_total:
        if is_debt:
            raise ValidationError(
                "Jumlah pembayaran melebihi total untuk transaksi hutang",
                details={"payment": payment, "grand_total": grand_total},
            )
        if payment_method in NON_CASH_METHODS:
            raise ValidationError(
                "Pembayaran non-tunai tidak boleh melebihi total",
                details={"payment": payment, "grand_total": grand_total},
            )

    if payment_method in NON_CASH_METHODS and not (reference_number or "").strip():
        raise ValidationError("referenceNumber wajib untuk pembayaran non-tunai")

    if payment < grand_total:
        if not is_debt:
            raise ValidationError(
                "Jumlah pembayaran kurang dari total",
                details={"payment": payment, "grand_total": grand_total},
            )
        if member is None or not member.is_real_member:
            raise ValidationError("Transaksi hutang memerlukan member terdaftar")


def _find_by_idempotency_key(key: str | None) -> Sale | None:
    if not key:
        return None
    return db.session.query(Sale).filter_by(idempotency_key=key).first()


def record_sale(
    *,
    store_id: int,
    cashier_id: int,
    attendant_id: int | None,
    items: list,
    payment: int,
    payment_method: str = "CASH",
    member_id: int | None = None,
    additional_discount: int = 0,
    reference_number: str | None = None,
    status: str | None = None,
    idempotency_key: str | None = None,
    ip_address: str | None = None,
    user_agent: str | None = None,
) -> Sale:
    """
    Persist a submitted cart as a sale.

    One unit of work: price the cart from stored tiers, allocate the
    invoice number, decrement store stock for every line, insert the sale
    with its details and, when the sale is not fully paid, its receivable.

    Client-side prices are not trusted; totals are recomputed here.
    A retried submission carrying the same idempotency_key returns the
    sale that was already recorded.

    Raises:
        ValidationError: empty cart, missing attendant, bad payment
        NotFoundError: unknown store, user, member or product
        InsufficientStock: any line exceeds store stock (nothing is changed)
        PersistenceError / TransactionTimeout: the unit could not commit
    """
    if not items:
        raise ValidationError("Keranjang belanja kosong")
    if not attendant_id:
        raise ValidationError("Pelayan (attendant) wajib dipilih")
    if not cashier_id:
        raise ValidationError("cashier_id required")

    payment_method = coerce_str("payment_method", payment_method, default="CASH").upper()
    reference_number = coerce_str("reference_number", reference_number)
    if payment_method not in PAYMENT_METHODS:
        raise ValidationError(
            "Metode pembayaran tidak valid",
            details={"payment_method": payment_method, "allowed": sorted(PAYMENT_METHODS)},
        )
    if payment is None or payment < 0:
        raise ValidationError("Jumlah pembayaran tidak boleh negatif")
    if additional_discount is None:
        additional_discount = 0
    if additional_discount < 0:
        raise ValidationError("Diskon tambahan tidak boleh negatif")

    is_debt = (coerce_str("status", status) or "").upper() in DEBT_REQUEST_STATUSES
    quantities = stock_service.aggregate_lines(items)

    existing = _find_by_idempotency_key(idempotency_key)
    if existing is not None:
        return existing

    def _op() -> int:
        store = db.session.get(Store, store_id)
        if store is None:
            raise NotFoundError("Toko tidak ditemukan", details={"store_id": store_id})
        for role, user_id in (("cashier", cashier_id), ("attendant", attendant_id)):
            if db.session.get(User, user_id) is None:
                raise NotFoundError(f"User ({role}) tidak ditemukan", details={f"{role}_id": user_id})

        member = _load_member(member_id)
        products = _load_store_products(store_id, quantities.keys())
        calculation = compute_totals(
            _cart_lines(quantities, products),
            member=member,
            additional_discount=additional_discount,
            tax_rate_percent=_tax_rate(),
        )
        grand_total = calculation.grand_total

        _validate_payment(
            payment=payment,
            grand_total=grand_total,
            payment_method=payment_method,
            reference_number=reference_number,
            is_debt=is_debt,
            member=member,
        )

        new_status = lifecycle_service.transition(
            lifecycle_service.DRAFT,
            lifecycle_service.submission_event(payment, grand_total),
        )

        occurred_at = utcnow()
        invoice_number = next_sale_invoice_number(store, occurred_at)

        stock_service.decrement_store_stock(
            store_id,
            [{"product_id": pid, "quantity": qty} for pid, qty in quantities.items()],
            reference=invoice_number,
        )

        sale = Sale(
            invoice_number=invoice_number,
            store_id=store_id,
            cashier_id=cashier_id,
            attendant_id=attendant_id,
            member_id=member.id if member else None,
            subtotal=calculation.subtotal,
            item_discount=calculation.item_discount,
            discount=calculation.member_discount.quantize(CENTS),
            additional_discount=calculation.additional_discount,
            tax=calculation.tax.quantize(CENTS),
            total=grand_total,
            payment=payment,
            change=payment - grand_total if new_status == lifecycle_service.PAID else 0,
            payment_method=payment_method,
            reference_number=reference_number,
            status=new_status,
            idempotency_key=idempotency_key,
            created_at=occurred_at,
            updated_at=occurred_at,
        )
        for line in calculation.lines:
            sale.details.append(SaleDetail(
                product_id=line.product_id,
                quantity=line.quantity,
                price=line.unit_price,
                discount=line.item_discount,
                subtotal=line.subtotal,
            ))
        db.session.add(sale)
        db.session.flush()

        if new_status != lifecycle_service.PAID:
            receivable = Receivable(
                sale_id=sale.id,
                store_id=store_id,
                member_id=member.id,
                amount_due=grand_total,
                amount_paid=payment,
                status=new_status,
            )
            db.session.add(receivable)
            db.session.flush()
            if payment > 0:
                db.session.add(ReceivablePayment(
                    receivable_id=receivable.id,
                    amount=payment,
                    payment_method=payment_method,
                    reference_number=reference_number,
                ))
                db.session.flush()

        return sale.id

    try:
        sale_id = run_atomic(_op)
    except PersistenceError as exc:
        # A concurrent retry with the same key won the insert
        if idempotency_key and isinstance(exc.__cause__, IntegrityError):
            existing = _find_by_idempotency_key(idempotency_key)
            if existing is not None:
                return existing
        raise

    sale = db.session.get(Sale, sale_id)
    audit_service.log_sale_creation(
        cashier_id,
        sale.to_dict(include_details=False),
        ip_address=ip_address,
        user_agent=user_agent,
    )
    return sale


def get_sale(sale_id: int) -> Sale:
    sale = db.session.get(Sale, sale_id)
    if sale is None:
        raise NotFoundError("Transaksi tidak ditemukan", details={"sale_id": sale_id})
    return sale


def _as_bounds(start_date, end_date) -> tuple[datetime | None, datetime | None]:
    start = end = None
    if start_date:
        day = start_date if isinstance(start_date, date) else date.fromisoformat(str(start_date)[:10])
        start = day_bounds(day)[0]
    if end_date:
        day = end_date if isinstance(end_date, date) else date.fromisoformat(str(end_date)[:10])
        end = day_bounds(day)[1]
    return start, end


def list_sales(
    *,
    store_id: int | None = None,
    status: str | None = None,
    payment_method: str | None = None,
    search: str | None = None,
    start_date=None,
    end_date=None,
    min_amount: int | None = None,
    max_amount: int | None = None,
    page: int | None = 1,
    per_page: int | None = 20,
) -> dict:
    """Newest-first sale listing with the filters of the transaction history screen."""
    query = db.session.query(Sale)
    if store_id is not None:
        query = query.filter(Sale.store_id == store_id)
    if status:
        query = query.filter(Sale.status == status.upper())
    if payment_method:
        query = query.filter(Sale.payment_method == payment_method.upper())
    if search:
        like = f"%{search.strip()}%"
        query = query.outerjoin(Member, Sale.member_id == Member.id).filter(
            or_(Sale.invoice_number.ilike(like), Member.name.ilike(like))
        )
    try:
        start, end = _as_bounds(start_date, end_date)
    except ValueError:
        raise ValidationError("Tanggal harus berformat YYYY-MM-DD") from None
    if start is not None:
        query = query.filter(Sale.created_at >= start)
    if end is not None:
        query = query.filter(Sale.created_at <= end)
    if min_amount is not None:
        query = query.filter(Sale.total >= min_amount)
    if max_amount is not None:
        query = query.filter(Sale.total <= max_amount)

    query = query.order_by(Sale.created_at.desc(), Sale.id.desc())
    return paginate(
        query,
        page=page,
        per_page=per_page,
        serialize=lambda sale: sale.to_dict(include_details=False),
    )


def delete_sales(sale_ids: list[int], *, actor_id: int | None = None) -> int:
    """
    Hard-delete sales with their details and receivables.

    Stock is not restored. Unknown ids are ignored; returns the number of
    sales deleted.
    """
    ids = sorted({int(i) for i in sale_ids})
    if not ids:
        raise ValidationError("id atau ids wajib diisi")

    def _op() -> list[dict]:
        sales = db.session.query(Sale).filter(Sale.id.in_(ids)).all()
        snapshots = [
            {"id": s.id, "invoice_number": s.invoice_number, "store_id": s.store_id, "total": s.total}
            for s in sales
        ]
        for sale in sales:
            db.session.delete(sale)
        db.session.flush()
        return snapshots

    deleted = run_atomic(_op)

    for snapshot in deleted:
        audit_service.log_audit(
            user_id=actor_id,
            action=audit_service.ACTION_SALE_DELETE,
            table_name="sales",
            record_id=snapshot["id"],
            new_value=snapshot,
            store_id=snapshot["store_id"],
        )
    return len(deleted)

# Overview: Service-layer operations for receivables; applies customer debt payments atomically.

from __future__ import annotations

from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..errors import NotFoundError, OverpaymentError, PersistenceError, ValidationError
from ..models import Member, Receivable, ReceivablePayment, Sale
from ..pagination import paginate
from ..validation import coerce_str
from . import audit_service, lifecycle_service
from .concurrency import lock_for_update, run_atomic
from .sales_service import NON_CASH_METHODS, PAYMENT_METHODS

OUTSTANDING_STATUSES = (lifecycle_service.UNPAID, lifecycle_service.PARTIALLY_PAID)


def get_receivable(receivable_id: int) -> Receivable:
    receivable = db.session.get(Receivable, receivable_id)
    if receivable is None:
        raise NotFoundError("Data hutang tidak ditemukan", details={"receivable_id": receivable_id})
    return receivable


def _payment_by_key(key: str | None) -> ReceivablePayment | None:
    if not key:
        return None
    return db.session.query(ReceivablePayment).filter_by(idempotency_key=key).first()


def apply_payment(
    receivable_id: int,
    amount: int,
    payment_method: str = "CASH",
    reference_number: str | None = None,
    idempotency_key: str | None = None,
    *,
    actor_id: int | None = None,
    ip_address: str | None = None,
    user_agent: str | None = None,
) -> Receivable:
    """
    Apply one payment to a receivable.

    amount_paid grows by `amount`; the status follows the payment lifecycle
    and reaches PAID exactly when amount_paid == amount_due, at which point
    the owning sale becomes PAID too. A repeat call with an idempotency_key
    that was already applied returns the receivable unchanged.

    Raises:
        ValidationError: amount <= 0, bad payment method
        OverpaymentError: amount exceeds the remaining balance (max_allowed)
        NotFoundError: unknown receivable
        InvalidTransition: the receivable is already settled
    """
    if not isinstance(amount, int) or isinstance(amount, bool) or amount <= 0:
        raise ValidationError("Jumlah pembayaran harus lebih dari 0", details={"amount": amount})
    payment_method = coerce_str("payment_method", payment_method, default="CASH").upper()
    reference_number = coerce_str("reference_number", reference_number)
    if payment_method not in PAYMENT_METHODS:
        raise ValidationError(
            "Metode pembayaran tidak valid",
            details={"payment_method": payment_method, "allowed": sorted(PAYMENT_METHODS)},
        )
    if payment_method in NON_CASH_METHODS and not (reference_number or "").strip():
        raise ValidationError("referenceNumber wajib untuk pembayaran non-tunai")

    previous = _payment_by_key(idempotency_key)
    if previous is not None:
        return get_receivable(previous.receivable_id)

    def _op() -> None:
        receivable = lock_for_update(
            db.session.query(Receivable).filter_by(id=receivable_id)
        ).first()
        if receivable is None:
            raise NotFoundError("Data hutang tidak ditemukan", details={"receivable_id": receivable_id})

        remaining = receivable.remaining
        if amount > remaining:
            raise OverpaymentError(max_allowed=remaining)

        new_paid = receivable.amount_paid + amount
        event = lifecycle_service.payment_event(new_paid, receivable.amount_due)
        receivable.status = lifecycle_service.transition(receivable.status, event)
        receivable.amount_paid = new_paid

        db.session.add(ReceivablePayment(
            receivable_id=receivable.id,
            amount=amount,
            payment_method=payment_method,
            reference_number=reference_number,
            idempotency_key=idempotency_key,
        ))

        if receivable.status == lifecycle_service.PAID:
            sale = lock_for_update(db.session.query(Sale).filter_by(id=receivable.sale_id)).one()
            sale.status = lifecycle_service.transition(sale.status, lifecycle_service.SETTLE)

        db.session.flush()

    try:
        run_atomic(_op)
    except PersistenceError as exc:
        if idempotency_key and isinstance(exc.__cause__, IntegrityError):
            previous = _payment_by_key(idempotency_key)
            if previous is not None:
                return get_receivable(previous.receivable_id)
        raise

    receivable = get_receivable(receivable_id)
    audit_service.log_audit(
        user_id=actor_id,
        action=audit_service.ACTION_RECEIVABLE_PAYMENT,
        table_name="receivables",
        record_id=receivable.id,
        new_value={
            "amount": amount,
            "payment_method": payment_method,
            "amount_paid": receivable.amount_paid,
            "status": receivable.status,
        },
        ip_address=ip_address,
        user_agent=user_agent,
        store_id=receivable.store_id,
    )
    return receivable


def list_receivables(
    *,
    store_id: int | None = None,
    status: str | None = None,
    member_id: int | None = None,
    search: str | None = None,
    page: int | None = 1,
    per_page: int | None = 10,
) -> dict:
    """Receivable listing; without a status filter only outstanding debts are returned."""
    query = db.session.query(Receivable)
    if store_id is not None:
        query = query.filter(Receivable.store_id == store_id)
    if status:
        query = query.filter(Receivable.status == status.upper())
    else:
        query = query.filter(Receivable.status.in_(OUTSTANDING_STATUSES))
    if member_id is not None:
        query = query.filter(Receivable.member_id == member_id)
    if search:
        like = f"%{search.strip()}%"
        query = (
            query.join(Sale, Receivable.sale_id == Sale.id)
            .join(Member, Receivable.member_id == Member.id)
            .filter(or_(Sale.invoice_number.ilike(like), Member.name.ilike(like)))
        )

    query = query.order_by(Receivable.created_at.desc(), Receivable.id.desc())
    return paginate(query, page=page, per_page=per_page, serialize=lambda r: r.to_dict())

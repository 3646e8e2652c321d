# Overview: Service-layer operations for document numbers; atomic per-store sequences.

from __future__ import annotations

from datetime import datetime

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..errors import NotFoundError, ValidationError
from ..models import DocumentSequence, Store

SALE_DOCUMENT_TYPE = "SALE"


def next_document_number(*, store_id: int, document_type: str) -> int:
    """
    Atomically allocate the next number of a store/type sequence.

    Runs inside the caller's unit of work. The first allocation for a pair
    inserts the sequence row inside a savepoint so a concurrent creator's
    IntegrityError only discards the savepoint, not the caller's work.
    """
    if not store_id:
        raise ValidationError("store_id is required")
    if not document_type:
        raise ValidationError("document_type is required")

    stmt = (
        update(DocumentSequence)
        .where(
            DocumentSequence.store_id == store_id,
            DocumentSequence.document_type == document_type,
        )
        .values(next_number=DocumentSequence.next_number + 1)
        .execution_options(synchronize_session=False)
    )

    result = db.session.execute(stmt)
    if not result.rowcount:
        try:
            with db.session.begin_nested():
                db.session.add(DocumentSequence(store_id=store_id, document_type=document_type, next_number=2))
            return 1
        except IntegrityError:
            result = db.session.execute(stmt)
            if not result.rowcount:
                raise

    current = (
        db.session.query(DocumentSequence.next_number)
        .filter_by(store_id=store_id, document_type=document_type)
        .scalar()
    )
    return current - 1


def format_sale_invoice(store_code: str, occurred_at: datetime, number: int) -> str:
    return f"INV-{store_code.upper()}-{occurred_at:%Y%m%d}-{number:04d}"


def next_sale_invoice_number(store: Store | int, occurred_at: datetime) -> str:
    """INV-<STORECODE>-<YYYYMMDD>-<NNNN>; the counter runs per store, not per day."""
    if not isinstance(store, Store):
        store_id = store
        store = db.session.get(Store, store_id)
        if store is None:
            raise NotFoundError("Toko tidak ditemukan", details={"store_id": store_id})
    number = next_document_number(store_id=store.id, document_type=SALE_DOCUMENT_TYPE)
    return format_sale_invoice(store.code, occurred_at, number)

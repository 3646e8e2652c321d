# Overview: Provisioning of fixed resources (central warehouse, general customer).

"""
The central warehouse and the general walk-in customer are created once at
setup time by `flask system init`. The get-or-create helpers below remain
safe to call from request paths: the warehouse name is UNIQUE, so of two
concurrent first-time creators one inserts and the other catches the
IntegrityError and falls back to a lookup.
"""

from __future__ import annotations

from flask import current_app
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import Member, Warehouse


def _central_warehouse_name() -> str:
    return current_app.config.get("CENTRAL_WAREHOUSE_NAME", "Gudang Pusat")


def get_or_create_central_warehouse(name: str | None = None) -> Warehouse:
    """Return the central warehouse, inserting it inside a savepoint if it is missing."""
    name = name or _central_warehouse_name()

    warehouse = db.session.query(Warehouse).filter_by(name=name).first()
    if warehouse is not None:
        return warehouse

    try:
        with db.session.begin_nested():
            warehouse = Warehouse(name=name, description="Central warehouse", status="ACTIVE")
            db.session.add(warehouse)
        return warehouse
    except IntegrityError:
        warehouse = db.session.query(Warehouse).filter_by(name=name).first()
        if warehouse is None:
            raise
        return warehouse


def ensure_default_customer(store_id: int | None = None) -> Member:
    """Return the general customer row (is_default_customer=True), creating it if needed."""
    query = db.session.query(Member).filter(Member.is_default_customer.is_(True))
    if store_id is None:
        query = query.filter(Member.store_id.is_(None))
    else:
        query = query.filter(Member.store_id == store_id)
    member = query.order_by(Member.id).first()
    if member is not None:
        return member

    member = Member(
        store_id=store_id,
        name=current_app.config.get("DEFAULT_CUSTOMER_NAME", "Pelanggan Umum"),
        discount_percent=0,
        membership_type="GENERAL",
        is_default_customer=True,
    )
    db.session.add(member)
    db.session.flush()
    return member


def provision_defaults() -> dict:
    """Create the central warehouse and general customer; safe to run repeatedly."""
    warehouse = get_or_create_central_warehouse()
    customer = ensure_default_customer()
    db.session.commit()
    return {"warehouse": warehouse, "default_customer": customer}

from __future__ import annotations

from ..extensions import db
from tokopos.time_utils import to_utc_z


class Store(db.Model):
    """
    A retail outlet (toko). Store.code feeds distribution invoice numbers,
    so it is unique and treated as immutable once distributions exist.
    """
    __tablename__ = "stores"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), nullable=False)
    code = db.Column(db.String(32), nullable=False, unique=True, index=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def __repr__(self) -> str:
        return f"<Store id={self.id} code={self.code!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "code": self.code,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
        }


class User(db.Model):
    """
    Staff member referenced by sales and distributions.

    Credentials live in the outer auth layer; the core only needs identity,
    role and home store to attribute its records.
    """
    __tablename__ = "users"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), nullable=False)
    username = db.Column(db.String(64), nullable=False, unique=True)
    # CASHIER, ATTENDANT, ADMIN, WAREHOUSE, MANAGER
    role = db.Column(db.String(16), nullable=False, default="CASHIER")
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=True, index=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    store = db.relationship("Store", backref=db.backref("users", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "username": self.username,
            "role": self.role,
            "store_id": self.store_id,
            "is_active": self.is_active,
        }

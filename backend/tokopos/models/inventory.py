from __future__ import annotations

from ..extensions import db
from tokopos.time_utils import to_utc_z


class Product(db.Model):
    """
    Store-scoped product.

    Product.code is unique within a store; the same code in two stores means
    "the same article", which is how accepted distributions find the store's
    copy of a warehouse product.

    Product.stock is only changed through services/stock_service.py.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.UniqueConstraint("store_id", "code", name="uq_products_store_code"),
        db.CheckConstraint("stock >= 0", name="ck_products_stock_non_negative"),
        db.Index("ix_products_store_name", "store_id", "name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=False, index=True)

    code = db.Column(db.String(64), nullable=False)
    name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)

    stock = db.Column(db.Integer, nullable=False, default=0)
    purchase_price = db.Column(db.Integer, nullable=False, default=0)

    version_id = db.Column(db.Integer, nullable=False, default=1)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    store = db.relationship("Store", backref=db.backref("products", lazy=True))
    price_tiers = db.relationship(
        "PriceTier",
        backref="product",
        lazy=True,
        order_by="PriceTier.min_qty",
        cascade="all, delete-orphan",
    )
    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Product id={self.id} code={self.code!r} name={self.name!r} store_id={self.store_id}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "store_id": self.store_id,
            "code": self.code,
            "name": self.name,
            "description": self.description,
            "stock": self.stock,
            "purchase_price": self.purchase_price,
            "price_tiers": [tier.to_dict() for tier in self.price_tiers],
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class PriceTier(db.Model):
    """One step of a product's quantity-based price function."""
    __tablename__ = "price_tiers"
    __table_args__ = (
        db.UniqueConstraint("product_id", "min_qty", name="uq_price_tiers_product_min_qty"),
        db.CheckConstraint("min_qty >= 1", name="ck_price_tiers_min_qty_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    min_qty = db.Column(db.Integer, nullable=False)
    price = db.Column(db.Integer, nullable=False)

    def to_dict(self) -> dict:
        return {"id": self.id, "min_qty": self.min_qty, "price": self.price}


class Warehouse(db.Model):
    """
    Central warehouse. There is exactly one ("Gudang Pusat"), enforced by the
    unique name and provisioned by `flask system init`.
    """
    __tablename__ = "warehouses"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), nullable=False, unique=True)
    description = db.Column(db.String(255), nullable=True)
    status = db.Column(db.String(16), nullable=False, default="ACTIVE")
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "status": self.status,
        }


class WarehouseProduct(db.Model):
    """Warehouse-held quantity of a product, independent of store stock."""
    __tablename__ = "warehouse_products"
    __table_args__ = (
        db.UniqueConstraint("warehouse_id", "product_id", name="uq_warehouse_products_wh_product"),
        db.CheckConstraint("quantity >= 0", name="ck_warehouse_products_quantity_non_negative"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    warehouse_id = db.Column(db.Integer, db.ForeignKey("warehouses.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    quantity = db.Column(db.Integer, nullable=False, default=0)
    version_id = db.Column(db.Integer, nullable=False, default=1)
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    warehouse = db.relationship("Warehouse", backref=db.backref("stock_rows", lazy=True))
    product = db.relationship("Product")
    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "warehouse_id": self.warehouse_id,
            "product_id": self.product_id,
            "product_name": self.product.name if self.product else None,
            "quantity": self.quantity,
        }


class StockMovement(db.Model):
    """
    Append-only record of every stock change made by the stock ledger.

    Exactly one of store_id / warehouse_id is set. quantity_delta is negative
    for stock leaving the location.
    """
    __tablename__ = "stock_movements"
    __table_args__ = (
        db.CheckConstraint(
            "(store_id IS NULL) <> (warehouse_id IS NULL)",
            name="ck_stock_movements_one_location",
        ),
        db.Index("ix_stock_movements_product_occurred", "product_id", "occurred_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=True, index=True)
    warehouse_id = db.Column(db.Integer, db.ForeignKey("warehouses.id"), nullable=True, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False)

    # SALE, DISTRIBUTION_OUT, DISTRIBUTION_IN, DISTRIBUTION_RETURN, RESTOCK
    movement_type = db.Column(db.String(32), nullable=False, index=True)
    quantity_delta = db.Column(db.Integer, nullable=False)
    reference = db.Column(db.String(64), nullable=True, index=True)
    occurred_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "store_id": self.store_id,
            "warehouse_id": self.warehouse_id,
            "product_id": self.product_id,
            "movement_type": self.movement_type,
            "quantity_delta": self.quantity_delta,
            "reference": self.reference,
            "occurred_at": to_utc_z(self.occurred_at),
        }

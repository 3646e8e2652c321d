from __future__ import annotations

from ..extensions import db
from tokopos.time_utils import epoch_millis, to_utc_z


class DocumentSequence(db.Model):
    """
    Atomic per-store document sequences.

    One row per (store, document_type); next_number is bumped with a single
    UPDATE inside the caller's unit of work.
    """
    __tablename__ = "document_sequences"
    __table_args__ = (
        db.UniqueConstraint("store_id", "document_type", name="uq_doc_sequences_store_type"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=False, index=True)
    document_type = db.Column(db.String(32), nullable=False, index=True)
    next_number = db.Column(db.Integer, nullable=False, default=1)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())


class DistributionBatch(db.Model):
    """
    One warehouse-to-store distribution, owning one line per product.

    invoice_number is stored for lookups but is always derivable from
    (distributed_at, store.code); see distribution_service.derive_invoice_number.
    """
    __tablename__ = "distribution_batches"
    __table_args__ = (
        db.Index("ix_distribution_batches_store_status", "store_id", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    invoice_number = db.Column(db.String(64), nullable=False, unique=True)
    warehouse_id = db.Column(db.Integer, db.ForeignKey("warehouses.id"), nullable=False, index=True)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=False, index=True)
    distributed_by = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    distributed_at = db.Column(db.DateTime, nullable=False, index=True)

    # PENDING_ACCEPTANCE, ACCEPTED, REJECTED
    status = db.Column(db.String(24), nullable=False, default="PENDING_ACCEPTANCE")
    total_amount = db.Column(db.Integer, nullable=False, default=0)
    notes = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    warehouse = db.relationship("Warehouse")
    store = db.relationship("Store", backref=db.backref("distribution_batches", lazy=True))
    distributed_by_user = db.relationship("User")
    lines = db.relationship(
        "WarehouseDistribution",
        backref="batch",
        lazy=True,
        order_by="WarehouseDistribution.id",
    )

    def to_dict(self, include_lines: bool = True) -> dict:
        data = {
            "id": self.id,
            "invoice_number": self.invoice_number,
            "warehouse_id": self.warehouse_id,
            "store_id": self.store_id,
            "store_name": self.store.name if self.store else None,
            "store_code": self.store.code if self.store else None,
            "distributed_by": self.distributed_by,
            "distributed_by_name": self.distributed_by_user.name if self.distributed_by_user else None,
            "distributed_at": to_utc_z(self.distributed_at),
            "distributed_at_ms": epoch_millis(self.distributed_at) if self.distributed_at else None,
            "status": self.status,
            "total_amount": self.total_amount,
            "notes": self.notes,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
        if include_lines:
            data["items"] = [line.to_dict() for line in self.lines]
        return data


class WarehouseDistribution(db.Model):
    """
    One product line of a distribution batch.

    The grouping columns (warehouse_id, store_id, distributed_by,
    distributed_at) and invoice_number are copied from the batch so a line
    is self-describing.
    """
    __tablename__ = "warehouse_distributions"
    __table_args__ = (
        db.CheckConstraint("quantity > 0", name="ck_warehouse_distributions_quantity_positive"),
        db.Index(
            "ix_warehouse_distributions_group",
            "distributed_at", "store_id", "warehouse_id", "distributed_by",
        ),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    batch_id = db.Column(db.Integer, db.ForeignKey("distribution_batches.id"), nullable=False, index=True)
    warehouse_id = db.Column(db.Integer, db.ForeignKey("warehouses.id"), nullable=False)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    quantity = db.Column(db.Integer, nullable=False)
    unit_price = db.Column(db.Integer, nullable=False)
    total_amount = db.Column(db.Integer, nullable=False)

    status = db.Column(db.String(24), nullable=False, default="PENDING_ACCEPTANCE", index=True)
    invoice_number = db.Column(db.String(64), nullable=False, index=True)
    notes = db.Column(db.Text, nullable=True)
    distributed_at = db.Column(db.DateTime, nullable=False)
    distributed_by = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    product = db.relationship("Product")
    store = db.relationship("Store")
    warehouse = db.relationship("Warehouse")
    distributed_by_user = db.relationship("User")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "batch_id": self.batch_id,
            "warehouse_id": self.warehouse_id,
            "store_id": self.store_id,
            "store_name": self.store.name if self.store else None,
            "product_id": self.product_id,
            "product_name": self.product.name if self.product else None,
            "product_code": self.product.code if self.product else None,
            "quantity": self.quantity,
            "unit_price": self.unit_price,
            "total_amount": self.total_amount,
            "status": self.status,
            "invoice_number": self.invoice_number,
            "notes": self.notes,
            "distributed_at": to_utc_z(self.distributed_at),
            "distributed_by": self.distributed_by,
            "updated_at": to_utc_z(self.updated_at),
        }

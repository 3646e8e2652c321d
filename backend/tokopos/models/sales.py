from __future__ import annotations

from ..extensions import db
from tokopos.time_utils import to_utc_z


def _money(value):
    return float(value) if value is not None else 0.0


class Sale(db.Model):
    """
    Point-of-sale transaction.

    Created in one unit of work together with its details, the stock
    decrements and (when underpaid) its receivable. After creation only
    `status` changes, and only through the lifecycle transition table.
    """
    __tablename__ = "sales"
    __table_args__ = (
        db.Index("ix_sales_store_status_created", "store_id", "status", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    invoice_number = db.Column(db.String(64), nullable=False, unique=True)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=False, index=True)
    cashier_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    attendant_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    member_id = db.Column(db.Integer, db.ForeignKey("members.id"), nullable=True, index=True)

    # Whole Rupiah, except discounts which may carry fractions from percentages
    subtotal = db.Column(db.Integer, nullable=False, default=0)
    item_discount = db.Column(db.Integer, nullable=False, default=0)
    discount = db.Column(db.Numeric(14, 2), nullable=False, default=0)  # member discount
    additional_discount = db.Column(db.Integer, nullable=False, default=0)
    tax = db.Column(db.Numeric(14, 2), nullable=False, default=0)
    total = db.Column(db.Integer, nullable=False)
    payment = db.Column(db.Integer, nullable=False, default=0)
    change = db.Column(db.Integer, nullable=False, default=0)

    payment_method = db.Column(db.String(16), nullable=False, default="CASH")  # CASH, TRANSFER, QRIS
    reference_number = db.Column(db.String(128), nullable=True)

    status = db.Column(db.String(16), nullable=False, index=True)  # PAID, PARTIALLY_PAID, UNPAID
    idempotency_key = db.Column(db.String(64), nullable=True, unique=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    store = db.relationship("Store", backref=db.backref("sales", lazy=True))
    cashier = db.relationship("User", foreign_keys=[cashier_id])
    attendant = db.relationship("User", foreign_keys=[attendant_id])
    member = db.relationship("Member", backref=db.backref("sales", lazy=True))
    details = db.relationship(
        "SaleDetail",
        backref="sale",
        lazy=True,
        order_by="SaleDetail.id",
        cascade="all, delete-orphan",
    )
    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self, include_details: bool = True) -> dict:
        data = {
            "id": self.id,
            "invoice_number": self.invoice_number,
            "store_id": self.store_id,
            "cashier_id": self.cashier_id,
            "attendant_id": self.attendant_id,
            "member_id": self.member_id,
            "subtotal": self.subtotal,
            "item_discount": self.item_discount,
            "discount": _money(self.discount),
            "additional_discount": self.additional_discount,
            "tax": _money(self.tax),
            "total": self.total,
            "payment": self.payment,
            "change": self.change,
            "payment_method": self.payment_method,
            "reference_number": self.reference_number,
            "status": self.status,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
        if include_details:
            data["items"] = [detail.to_dict() for detail in self.details]
            data["receivable"] = self.receivable.to_dict() if self.receivable else None
        return data


class SaleDetail(db.Model):
    """Immutable line of a sale. subtotal = price * quantity."""
    __tablename__ = "sale_details"
    __table_args__ = (
        db.CheckConstraint("quantity > 0", name="ck_sale_details_quantity_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    quantity = db.Column(db.Integer, nullable=False)
    price = db.Column(db.Integer, nullable=False)
    discount = db.Column(db.Integer, nullable=False, default=0)
    subtotal = db.Column(db.Integer, nullable=False)

    product = db.relationship("Product")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sale_id": self.sale_id,
            "product_id": self.product_id,
            "product_name": self.product.name if self.product else None,
            "quantity": self.quantity,
            "price": self.price,
            "discount": self.discount,
            "subtotal": self.subtotal,
        }


class Receivable(db.Model):
    """
    Customer debt created by an underpaid sale.

    amount_paid only grows and never passes amount_due. Receivables are
    never deleted by the payment path.
    """
    __tablename__ = "receivables"
    __table_args__ = (
        db.CheckConstraint("amount_paid >= 0", name="ck_receivables_paid_non_negative"),
        db.CheckConstraint("amount_paid <= amount_due", name="ck_receivables_paid_within_due"),
        db.Index("ix_receivables_store_status", "store_id", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=False, unique=True)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=False, index=True)
    member_id = db.Column(db.Integer, db.ForeignKey("members.id"), nullable=False, index=True)

    amount_due = db.Column(db.Integer, nullable=False)
    amount_paid = db.Column(db.Integer, nullable=False, default=0)
    status = db.Column(db.String(16), nullable=False, index=True)  # UNPAID, PARTIALLY_PAID, PAID

    version_id = db.Column(db.Integer, nullable=False, default=1)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    sale = db.relationship(
        "Sale",
        backref=db.backref("receivable", uselist=False, cascade="all, delete-orphan"),
    )
    member = db.relationship("Member", backref=db.backref("receivables", lazy=True))
    payments = db.relationship(
        "ReceivablePayment",
        backref="receivable",
        lazy=True,
        order_by="ReceivablePayment.id",
        cascade="all, delete-orphan",
    )
    __mapper_args__ = {"version_id_col": version_id}

    @property
    def remaining(self) -> int:
        return self.amount_due - self.amount_paid

    def to_dict(self, include_payments: bool = False) -> dict:
        data = {
            "id": self.id,
            "sale_id": self.sale_id,
            "invoice_number": self.sale.invoice_number if self.sale else None,
            "store_id": self.store_id,
            "member_id": self.member_id,
            "member_name": self.member.name if self.member else None,
            "amount_due": self.amount_due,
            "amount_paid": self.amount_paid,
            "remaining_amount": self.remaining,
            "status": self.status,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
        if include_payments:
            data["payments"] = [p.to_dict() for p in self.payments]
        return data


class ReceivablePayment(db.Model):
    """
    Append-only ledger of payments applied to a receivable.

    The down payment taken at sale time is recorded here too, so the sum of
    rows always equals Receivable.amount_paid.
    """
    __tablename__ = "receivable_payments"
    __table_args__ = (
        db.CheckConstraint("amount > 0", name="ck_receivable_payments_amount_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    receivable_id = db.Column(db.Integer, db.ForeignKey("receivables.id"), nullable=False, index=True)
    amount = db.Column(db.Integer, nullable=False)
    payment_method = db.Column(db.String(16), nullable=False, default="CASH")
    reference_number = db.Column(db.String(128), nullable=True)
    idempotency_key = db.Column(db.String(64), nullable=True, unique=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "receivable_id": self.receivable_id,
            "amount": self.amount,
            "payment_method": self.payment_method,
            "reference_number": self.reference_number,
            "created_at": to_utc_z(self.created_at),
        }

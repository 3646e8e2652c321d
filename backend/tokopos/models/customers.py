from __future__ import annotations

from ..extensions import db
from tokopos.time_utils import to_utc_z


class Member(db.Model):
    """
    Customer membership with a percentage discount.

    The walk-in "Pelanggan Umum" customer is an ordinary row flagged with
    is_default_customer=True. It never earns a member discount and can never
    carry debt.
    """
    __tablename__ = "members"
    __table_args__ = (
        db.CheckConstraint("discount_percent >= 0 AND discount_percent <= 100", name="ck_members_discount_range"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=True, index=True)
    name = db.Column(db.String(120), nullable=False)
    phone = db.Column(db.String(32), nullable=True)
    discount_percent = db.Column(db.Numeric(5, 2), nullable=False, default=0)
    membership_type = db.Column(db.String(32), nullable=False, default="RETAIL")
    is_default_customer = db.Column(db.Boolean, nullable=False, default=False, index=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    store = db.relationship("Store", backref=db.backref("members", lazy=True))

    @property
    def is_real_member(self) -> bool:
        return not self.is_default_customer

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "store_id": self.store_id,
            "name": self.name,
            "phone": self.phone,
            "discount_percent": float(self.discount_percent or 0),
            "membership_type": self.membership_type,
            "is_default_customer": self.is_default_customer,
            "created_at": to_utc_z(self.created_at),
        }

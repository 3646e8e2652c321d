# Overview: Authoritative cart totals (tier pricing, member discount, additional discount, tax).

"""
Sale totals, computed server-side from stored price tiers.

Order of operations:
1. per line: actual price from tiers, tier discount vs. the one-unit price
2. subtotal = sum of (actual price * qty)
3. member discount = subtotal * member% (tier-discounted subtotal, not list
   price; the default walk-in customer gets nothing)
4. minus the cashier's additional discount, plus tax if configured
5. round once, half-up, on the final amount and clamp at zero
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from decimal import Decimal, ROUND_HALF_UP

from ..errors import ValidationError
from .pricing_service import base_unit_price, resolve_unit_price

HUNDRED = Decimal("100")
ZERO = Decimal("0")


def round_rupiah(amount: Decimal) -> int:
    return int(amount.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


@dataclass(frozen=True)
class CartLine:
    product_id: int
    quantity: int
    price_tiers: Sequence
    product_name: str | None = None


@dataclass(frozen=True)
class LineCalculation:
    product_id: int
    product_name: str | None
    quantity: int
    base_price: int
    unit_price: int
    discount_per_item: int
    item_discount: int
    subtotal: int

    def to_dict(self) -> dict:
        return {
            "product_id": self.product_id,
            "product_name": self.product_name,
            "quantity": self.quantity,
            "original_price": self.base_price,
            "price": self.unit_price,
            "discount_per_item": self.discount_per_item,
            "item_discount": self.item_discount,
            "subtotal": self.subtotal,
        }


@dataclass(frozen=True)
class Calculation:
    lines: list[LineCalculation] = field(default_factory=list)
    subtotal: int = 0
    item_discount: int = 0
    member_discount: Decimal = ZERO
    additional_discount: int = 0
    tax: Decimal = ZERO
    grand_total_before_additional: Decimal = ZERO
    grand_total: int = 0

    @property
    def total_discount(self) -> Decimal:
        return Decimal(self.item_discount) + self.member_discount + Decimal(self.additional_discount)

    def to_dict(self) -> dict:
        return {
            "items": [line.to_dict() for line in self.lines],
            "subtotal": self.subtotal,
            "item_discount": self.item_discount,
            "member_discount": float(self.member_discount),
            "additional_discount": self.additional_discount,
            "tax": float(self.tax),
            "total_discount": float(self.total_discount),
            "grand_total_before_additional": float(self.grand_total_before_additional),
            "grand_total": self.grand_total,
        }


def member_discount_percent(member) -> Decimal:
    """Discount percentage a member earns; 0 for no member or the default customer."""
    if member is None or getattr(member, "is_default_customer", False):
        return ZERO
    percent = Decimal(str(getattr(member, "discount_percent", 0) or 0))
    if percent < ZERO or percent > HUNDRED:
        raise ValidationError("Member discount must be between 0 and 100 percent")
    return percent


def price_line(line: CartLine) -> LineCalculation:
    if line.quantity <= 0:
        raise ValidationError(
            "Quantity must be positive",
            details={"product_id": line.product_id, "quantity": line.quantity},
        )
    base_price = base_unit_price(line.price_tiers)
    unit_price = resolve_unit_price(line.price_tiers, line.quantity)
    discount_per_item = base_price - unit_price
    return LineCalculation(
        product_id=line.product_id,
        product_name=line.product_name,
        quantity=line.quantity,
        base_price=base_price,
        unit_price=unit_price,
        discount_per_item=discount_per_item,
        item_discount=discount_per_item * line.quantity,
        subtotal=unit_price * line.quantity,
    )


def compute_totals(
    cart_lines: Sequence[CartLine],
    member=None,
    additional_discount: int = 0,
    tax_rate_percent=0,
) -> Calculation:
    """Aggregate cart lines into the authoritative totals of one sale."""
    if additional_discount is None:
        additional_discount = 0
    if additional_discount < 0:
        raise ValidationError("Additional discount cannot be negative")

    lines = [price_line(line) for line in cart_lines]
    subtotal = sum(line.subtotal for line in lines)
    item_discount_total = sum(line.item_discount for line in lines)

    member_discount = Decimal(subtotal) * member_discount_percent(member) / HUNDRED
    before_additional = Decimal(subtotal) - member_discount

    taxable = max(ZERO, before_additional - Decimal(additional_discount))
    tax = taxable * Decimal(str(tax_rate_percent or 0)) / HUNDRED

    grand_total = max(0, round_rupiah(before_additional - Decimal(additional_discount) + tax))

    return Calculation(
        lines=lines,
        subtotal=subtotal,
        item_discount=item_discount_total,
        member_discount=member_discount,
        additional_discount=int(additional_discount),
        tax=tax,
        grand_total_before_additional=before_additional,
        grand_total=grand_total,
    )

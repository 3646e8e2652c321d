# Overview: Quantity-tier price resolution and per-line tier discounts.

"""
Tier pricing is a step function: each tier says "from min_qty units
upward, one unit costs price". Tiers arrive in any order (client payloads,
imported rows), so they are always sorted here before evaluation.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence


def _tier_values(tier) -> tuple[int, int]:
    if isinstance(tier, Mapping):
        min_qty = tier.get("min_qty", tier.get("minQty"))
        price = tier.get("price")
    elif isinstance(tier, tuple):
        min_qty, price = tier
    else:
        min_qty = tier.min_qty
        price = tier.price
    if min_qty is None or price is None:
        raise ValueError("price tier requires min_qty and price")
    return int(min_qty), int(price)


def sort_tiers(tiers: Sequence) -> list[tuple[int, int]]:
    """Return (min_qty, price) pairs ascending by min_qty."""
    return sorted((_tier_values(t) for t in tiers), key=lambda pair: pair[0])


def resolve_unit_price(tiers: Sequence, quantity: int) -> int:
    """
    Unit price for `quantity` units.

    Picks the tier with the greatest min_qty <= quantity; when the quantity
    is below every threshold the lowest tier's price applies. A product
    without tiers prices at 0, which upstream treats as a data error.
    """
    if quantity <= 0:
        raise ValueError("quantity must be positive")

    ordered = sort_tiers(tiers)
    if not ordered:
        return 0

    price = ordered[0][1]
    for min_qty, tier_price in reversed(ordered):
        if quantity >= min_qty:
            price = tier_price
            break
    return price


def base_unit_price(tiers: Sequence) -> int:
    """List price: what one unit costs."""
    return resolve_unit_price(tiers, 1)


def item_discount(tiers: Sequence, quantity: int) -> int:
    """Savings from tier pricing: (price at 1 - price at quantity) * quantity."""
    return (base_unit_price(tiers) - resolve_unit_price(tiers, quantity)) * quantity

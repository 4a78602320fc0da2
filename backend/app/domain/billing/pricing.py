"""
Pricing Engine (Domain Logic).

Turns catalog line items or flat order amounts into a chargeable total.
Pure: no database access, no side effects.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable, List, Optional, Tuple

from backend.app.core.config import settings
from backend.app.core.exceptions import InvalidPricingInput
from backend.app.core.money import D, round_money
from backend.app.models.order_enums import FulfillmentMode

HUNDRED = Decimal("100")


@dataclass(frozen=True)
class PricingLine:
    """One priced line: catalog attributes captured at add time."""
    sku: str
    unit_price: Decimal
    unit_shipping: Decimal
    tax_rate_percent: Decimal
    quantity: int = 1


def parse_sku_list(raw: str) -> List[Tuple[str, int]]:
    """
    Parse a comma separated SKU string into (sku, quantity) pairs.

    Blank entries are dropped; a repeated SKU adds to its quantity.
    First-seen order is kept.
    """
    counts: dict = {}
    for part in (raw or "").split(","):
        sku = part.strip()
        if sku:
            counts[sku] = counts.get(sku, 0) + 1
    if not counts:
        raise InvalidPricingInput("At least one SKU is required", details={"sku": raw})
    return list(counts.items())


def _validate_line(line: PricingLine) -> None:
    if not isinstance(line.quantity, int) or isinstance(line.quantity, bool) or line.quantity <= 0:
        raise InvalidPricingInput(f"Quantity for {line.sku} must be a positive integer", details={"sku": line.sku})
    if D(line.unit_price) <= 0:
        raise InvalidPricingInput(f"Unit price for {line.sku} must be positive", details={"sku": line.sku})
    if D(line.unit_shipping) < 0:
        raise InvalidPricingInput(f"Shipping for {line.sku} cannot be negative", details={"sku": line.sku})
    if D(line.tax_rate_percent) < 0:
        raise InvalidPricingInput(f"Tax rate for {line.sku} cannot be negative", details={"sku": line.sku})


class PricingEngine:

    @staticmethod
    def price_per_sku(lines: Iterable[PricingLine]) -> Decimal:
        """
        Per-SKU pricing.

        For each unit: subtotal = price + shipping,
        item total = subtotal + subtotal * tax% / 100.
        Summed over quantity-expanded lines, rounded once at the end.
        """
        lines = list(lines)
        if not lines:
            raise InvalidPricingInput("No line items to price")

        total = Decimal("0")
        for line in lines:
            _validate_line(line)
            subtotal = D(line.unit_price) + D(line.unit_shipping)
            item_total = subtotal + subtotal * D(line.tax_rate_percent) / HUNDRED
            total += item_total * line.quantity

        return round_money(total)

    @staticmethod
    def price_flat(order_amount, shipping_amount, surcharge_rate: Optional[Decimal] = None) -> Decimal:
        """
        Flat pricing: (order + shipping) plus a fixed platform surcharge.
        """
        if order_amount is None or shipping_amount is None:
            raise InvalidPricingInput("Order amount and shipping amount are required for flat pricing")

        order_amount = D(order_amount)
        shipping_amount = D(shipping_amount)
        if order_amount <= 0:
            raise InvalidPricingInput("Order amount must be positive")
        if shipping_amount < 0:
            raise InvalidPricingInput("Shipping amount cannot be negative")

        rate = D(settings.flat_surcharge_rate if surcharge_rate is None else surcharge_rate)
        subtotal = order_amount + shipping_amount
        return round_money(subtotal + subtotal * rate)

    @staticmethod
    def price(
        mode: FulfillmentMode,
        lines: Iterable[PricingLine] = (),
        order_amount=None,
        shipping_amount=None,
    ) -> Decimal:
        """Select the strategy for the order's fulfillment mode."""
        if mode == FulfillmentMode.EASY_SHIP:
            return PricingEngine.price_flat(order_amount, shipping_amount)
        return PricingEngine.price_per_sku(lines)

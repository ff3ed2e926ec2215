"""
Pricing service - promotional price resolution.

All functions here are pure: they read only their arguments, never touch
the database and never raise for numeric edge cases. Quantity is applied by
the caller (see cart_service).
"""
from collections.abc import Mapping
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Dict, Optional

from storefront.utils.number_format import to_price, to_positive_price, quantize_money

ZERO = Decimal('0')
HUNDRED = Decimal('100')


@dataclass(frozen=True)
class PriceResolution:
    """Payable unit price and the discount badge to show (None = no sale)."""

    final_price: Decimal
    discount_percent: Optional[int] = None

    @property
    def on_sale(self) -> bool:
        return self.discount_percent is not None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'final_price': str(self.final_price),
            'discount_percent': self.discount_percent,
        }


@dataclass(frozen=True)
class ItemPrice:
    """Resolved price of a catalog selection (product + optional variation/color)."""

    base_price: Decimal
    resolution: PriceResolution
    apply_sale: bool = True

    @property
    def final_price(self) -> Decimal:
        return self.resolution.final_price

    @property
    def discount_percent(self) -> Optional[int]:
        return self.resolution.discount_percent

    @property
    def savings(self) -> Decimal:
        return self.base_price - self.final_price

    def to_dict(self) -> Dict[str, Any]:
        return {
            'base_price': str(self.base_price),
            'final_price': str(self.final_price),
            'discount_percent': self.discount_percent,
            'savings': str(self.savings),
            'apply_sale': self.apply_sale,
        }


def _discount_of(sale) -> Decimal:
    """Read discount_percentage from a SaleRecord, Sale row or plain dict."""
    if isinstance(sale, Mapping):
        raw = sale.get('discount_percentage')
    else:
        raw = getattr(sale, 'discount_percentage', None)
    return to_price(raw, default=ZERO)


def resolve_price(
    base_price: Any,
    product_sale=None,
    global_sale=None,
    apply_sale: bool = True,
    clamp_to_zero: bool = False
) -> PriceResolution:
    """
    Resolve the payable unit price for one item.

    Rules:
    - apply_sale=False ignores every sale.
    - A product-specific sale, when present, wins over the global sale
      (even a 0% one).
    - A discount of 0 or less is "no sale": base price, discount_percent None.
    - Otherwise final = base * (1 - pct / 100), rounded half-up to 0.01;
      discount_percent is pct rounded to the nearest integer.
    - Discounts above 100% give a negative price unless clamp_to_zero is set.
    """
    base = to_price(base_price, default=ZERO)

    if not apply_sale:
        return PriceResolution(final_price=base)

    active_sale = next((sale for sale in (product_sale, global_sale) if sale is not None), None)
    if active_sale is None:
        return PriceResolution(final_price=base)

    percentage = _discount_of(active_sale)
    if percentage <= ZERO:
        return PriceResolution(final_price=base)

    final_price = quantize_money(base * (Decimal('1') - percentage / HUNDRED))
    if clamp_to_zero and final_price < ZERO:
        final_price = quantize_money(ZERO)

    discount_percent = int(percentage.quantize(Decimal('1'), rounding=ROUND_HALF_UP))
    return PriceResolution(final_price=final_price, discount_percent=discount_percent)


def select_base_price(product_price: Any, variation_price: Any = None, color_price: Any = None) -> Decimal:
    """Color price if set and > 0, else variation price if set and > 0, else product price."""
    color = to_positive_price(color_price)
    if color is not None:
        return color

    variation = to_positive_price(variation_price)
    if variation is not None:
        return variation

    return to_price(product_price, default=ZERO)


def item_applies_sale(variation=None, color=None) -> bool:
    """An item opts out of sales when any selected variation/color has apply_sale off."""
    for selection in (variation, color):
        if selection is not None and not getattr(selection, 'apply_sale', True):
            return False
    return True


def price_item(
    product_price: Any,
    sale_lookup,
    variation_price: Any = None,
    color_price: Any = None,
    apply_sale: bool = True,
    clamp_to_zero: bool = False
) -> ItemPrice:
    """Pick the base price for a selection and resolve it against a SaleLookup."""
    base_price = select_base_price(product_price, variation_price, color_price)
    resolution = resolve_price(
        base_price,
        product_sale=sale_lookup.product_sale if sale_lookup else None,
        global_sale=sale_lookup.global_sale if sale_lookup else None,
        apply_sale=apply_sale,
        clamp_to_zero=clamp_to_zero
    )
    return ItemPrice(base_price=base_price, resolution=resolution, apply_sale=apply_sale)


def price_product(product, sale_lookup, variation=None, color=None, clamp_to_zero: bool = False) -> ItemPrice:
    """price_item for catalog rows."""
    return price_item(
        product.price,
        sale_lookup,
        variation_price=variation.price if variation is not None else None,
        color_price=color.price if color is not None else None,
        apply_sale=item_applies_sale(variation, color),
        clamp_to_zero=clamp_to_zero
    )

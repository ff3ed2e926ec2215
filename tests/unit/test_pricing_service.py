"""
Unit tests for promotional price resolution.
"""

from decimal import Decimal
from types import SimpleNamespace

from storefront.services.pricing_service import (
    resolve_price, select_base_price, item_applies_sale, price_item, price_product, PriceResolution
)
from storefront.services.sale_lookup_service import SaleLookup


def sale(pct):
    return {'discount_percentage': pct}


class TestResolvePrice:
    """Tests for resolve_price."""

    def test_no_sale(self):
        result = resolve_price(100, None, None, True)

        assert result.final_price == Decimal('100')
        assert result.discount_percent is None
        assert result.on_sale is False

    def test_global_sale_only(self):
        result = resolve_price(100, None, sale(20), True)

        assert result.final_price == Decimal('80.00')
        assert result.discount_percent == 20

    def test_product_sale_beats_global(self):
        result = resolve_price(100, sale(10), sale(50), True)

        assert result.final_price == Decimal('90.00')
        assert result.discount_percent == 10

    def test_opt_out_ignores_every_sale(self):
        result = resolve_price(100, sale(50), sale(50), False)

        assert result.final_price == Decimal('100')
        assert result.discount_percent is None

    def test_same_inputs_same_output(self):
        first = resolve_price('1999.99', sale(15), None, True)
        second = resolve_price('1999.99', sale(15), None, True)

        assert first == second

    def test_zero_discount_is_no_sale(self):
        """A 0% sale shows no badge and leaves the price untouched."""
        result = resolve_price(100, None, sale(0), True)

        assert result.final_price == Decimal('100')
        assert result.discount_percent is None

    def test_zero_product_sale_still_shadows_global(self):
        result = resolve_price(100, sale(0), sale(50), True)

        assert result.final_price == Decimal('100')
        assert result.discount_percent is None

    def test_full_discount_is_free(self):
        result = resolve_price(100, sale(100), None, True)

        assert result.final_price == Decimal('0.00')
        assert result.discount_percent == 100

    def test_discount_above_hundred_goes_negative(self):
        result = resolve_price(100, sale(150), None, True)

        assert result.final_price == Decimal('-50.00')
        assert result.discount_percent == 150

    def test_discount_above_hundred_clamped(self):
        result = resolve_price(100, sale(150), None, True, clamp_to_zero=True)

        assert result.final_price == Decimal('0.00')
        assert result.discount_percent == 150

    def test_non_positive_base_passes_through(self):
        assert resolve_price(0, None, sale(20)).final_price == Decimal('0.00')
        assert resolve_price(-10, None, sale(20)).final_price == Decimal('-8.00')

    def test_rounds_half_up_to_cents(self):
        # 999 * 0.85 = 849.15; 33.33 * 0.5 = 16.665 -> 16.67
        assert resolve_price(999, None, sale(15)).final_price == Decimal('849.15')
        assert resolve_price('33.33', None, sale(50)).final_price == Decimal('16.67')

    def test_fractional_percentage_badge_rounds(self):
        result = resolve_price(200, None, sale('12.5'))

        assert result.final_price == Decimal('175.00')
        assert result.discount_percent == 13

    def test_accepts_string_percentages_and_objects(self):
        record = SimpleNamespace(discount_percentage='25.00')

        assert resolve_price('Rs 1,000', record, None).final_price == Decimal('750.00')

    def test_to_dict(self):
        assert PriceResolution(Decimal('80.00'), 20).to_dict() == {
            'final_price': '80.00',
            'discount_percent': 20,
        }


class TestSelectBasePrice:
    """Tests for the color > variation > product price rule."""

    def test_product_price_when_no_selection(self):
        assert select_base_price('2000') == Decimal('2000')

    def test_variation_overrides_product(self):
        assert select_base_price(2000, variation_price=2500) == Decimal('2500')

    def test_color_overrides_variation(self):
        assert select_base_price(2000, variation_price=2500, color_price='2700.00') == Decimal('2700.00')

    def test_zero_color_price_falls_back(self):
        assert select_base_price(2000, variation_price=2500, color_price=0) == Decimal('2500')
        assert select_base_price(2000, variation_price=None, color_price='0') == Decimal('2000')


class TestItemAppliesSale:
    """Tests for item_applies_sale."""

    def test_defaults_to_true(self):
        assert item_applies_sale() is True

    def test_variation_opt_out(self):
        assert item_applies_sale(SimpleNamespace(apply_sale=False), SimpleNamespace(apply_sale=True)) is False

    def test_color_opt_out(self):
        assert item_applies_sale(None, SimpleNamespace(apply_sale=False)) is False


class TestPriceItem:
    """Tests for price_item / price_product."""

    def test_price_item_uses_lookup_precedence(self):
        lookup = SaleLookup(product_sale=sale(10), global_sale=sale(50))
        result = price_item(1000, lookup, variation_price=1200)

        assert result.base_price == Decimal('1200')
        assert result.final_price == Decimal('1080.00')
        assert result.discount_percent == 10
        assert result.savings == Decimal('120.00')

    def test_price_item_without_lookup(self):
        result = price_item(1000, None)

        assert result.final_price == Decimal('1000')
        assert result.discount_percent is None

    def test_price_product_honours_opt_out(self):
        product = SimpleNamespace(price=Decimal('1000'))
        variation = SimpleNamespace(price=Decimal('1500'), apply_sale=False)
        result = price_product(product, SaleLookup(global_sale=sale(20)), variation=variation)

        assert result.apply_sale is False
        assert result.final_price == Decimal('1500')
        assert result.to_dict()['discount_percent'] is None

"""
Unit tests for sale lookup (applicability window, precedence, caching).
"""

import pytest
from datetime import datetime, timedelta, timezone
from decimal import Decimal

from storefront.services.sale_lookup_service import (
    SaleRecord, SaleLookup, parse_timestamp, is_sale_applicable, find_applicable_sales,
    get_active_sales, get_active_sales_cached
)

NOW = datetime(2026, 5, 1, 12, 0, tzinfo=timezone.utc)


def record(id, pct=20, is_global=False, product_id=None, start=None, end=None, is_active=True):
    return SaleRecord(
        id=id,
        discount_percentage=Decimal(pct),
        start_date=start or NOW - timedelta(days=1),
        end_date=end or NOW + timedelta(days=1),
        is_active=is_active,
        is_global=is_global,
        product_id=product_id
    )


class TestParseTimestamp:
    """Tests for parse_timestamp."""

    def test_zulu_suffix(self):
        assert parse_timestamp('2026-05-01T12:00:00Z') == NOW

    def test_naive_is_utc(self):
        assert parse_timestamp('2026-05-01T12:00:00') == NOW

    def test_offset_converted(self):
        assert parse_timestamp('2026-05-01T17:00:00+05:00') == NOW

    def test_blank(self):
        assert parse_timestamp('') is None
        assert parse_timestamp(None) is None

    def test_invalid(self):
        with pytest.raises(ValueError):
            parse_timestamp('next tuesday')


class TestIsSaleApplicable:
    """Tests for the [start, end) window."""

    def test_inside_window(self):
        assert is_sale_applicable(record('a'), NOW) is True

    def test_inactive(self):
        assert is_sale_applicable(record('a', is_active=False), NOW) is False

    def test_not_started(self):
        assert is_sale_applicable(record('a', start=NOW + timedelta(seconds=1)), NOW) is False

    def test_starts_now(self):
        assert is_sale_applicable(record('a', start=NOW), NOW) is True

    def test_ends_now_is_over(self):
        assert is_sale_applicable(record('a', end=NOW), NOW) is False


class TestFindApplicableSales:
    """Tests for find_applicable_sales."""

    def test_picks_product_and_global(self):
        sales = [
            record('g1', 10, is_global=True),
            record('p-other', 30, product_id='other'),
            record('p1', 20, product_id='p'),
        ]
        lookup = find_applicable_sales(sales, 'p')

        assert lookup.product_sale.id == 'p1'
        assert lookup.global_sale.id == 'g1'
        assert lookup.effective_sale.id == 'p1'
        assert [s.id for s in lookup.precedence()] == ['p1', 'g1']

    def test_first_match_wins(self):
        sales = [
            record('newer', 40, product_id='p'),
            record('older', 10, product_id='p'),
            record('g-new', 15, is_global=True),
            record('g-old', 5, is_global=True),
        ]
        lookup = find_applicable_sales(sales, 'p')

        assert lookup.product_sale.id == 'newer'
        assert lookup.global_sale.id == 'g-new'

    def test_no_product_id_only_global(self):
        lookup = find_applicable_sales([record('p1', product_id='p'), record('g', is_global=True)], None)

        assert lookup.product_sale is None
        assert lookup.global_sale.id == 'g'

    def test_empty(self):
        lookup = find_applicable_sales([], 'p')

        assert lookup == SaleLookup()
        assert lookup.effective_sale is None

    def test_now_filters_expired_records(self):
        sales = [
            record('expired', product_id='p', end=NOW - timedelta(minutes=1)),
            record('running', product_id='p'),
        ]

        assert find_applicable_sales(sales, 'p', now=NOW).product_sale.id == 'running'


class TestSaleRecord:
    """Tests for SaleRecord conversions."""

    def test_from_dict(self):
        sale = SaleRecord.from_dict({
            'id': 's1',
            'discount_percentage': '25.00',
            'start_date': '2026-04-30T12:00:00Z',
            'end_date': '2026-05-02T12:00:00+00:00',
            'is_active': True,
            'is_global': True,
            'product_id': 'ignored-for-global',
        })

        assert sale.discount_percentage == Decimal('25.00')
        assert sale.product_id is None
        assert sale.is_applicable(NOW) is True

    def test_from_model(self, product, make_sale):
        sale = make_sale(product=product, discount=Decimal('12.50'))
        data = SaleRecord.from_model(sale)

        assert data.product_id == product.id
        assert data.discount_percentage == Decimal('12.50')
        assert data.end_date.tzinfo is not None
        assert SaleRecord.from_dict(data.to_dict()) == data


class TestGetActiveSales:
    """Tests for get_active_sales against the database."""

    def test_filters_window_and_flag(self, session, product, now, make_sale):
        running = make_sale(product=product)
        make_sale(product=product, is_active=False)
        make_sale(product=product, starts=now + timedelta(days=1), ends=now + timedelta(days=2))
        make_sale(product=product, starts=now - timedelta(days=3), ends=now - timedelta(days=1))

        sales = get_active_sales(session, now)

        assert [sale.id for sale in sales] == [running.id]

    def test_newest_first(self, session, now, make_product, make_sale):
        product = make_product()
        older = make_sale(product=product, discount=Decimal('10'), created_at=now - timedelta(hours=2))
        newer = make_sale(product=product, discount=Decimal('30'), created_at=now - timedelta(hours=1))

        sales = get_active_sales(session, now)

        assert [sale.id for sale in sales] == [newer.id, older.id]
        assert find_applicable_sales(sales, product.id).product_sale.id == newer.id

    def test_cached_variant_without_redis(self, session, product_sale, global_sale):
        """With the cache disabled the loader result is returned unchanged."""
        ids = {sale.id for sale in get_active_sales_cached(session)}

        assert ids == {product_sale.id, global_sale.id}

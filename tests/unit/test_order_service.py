"""
Unit tests for order placement and back office order edits.
"""

import pytest
from decimal import Decimal

from storefront.exceptions import BusinessLogicError, NotFoundError
from storefront.models import Order, OrderItem, OrderStatus
from storefront.services import order_service
from storefront.services.cart_service import CartLine, calculate_cart_totals


def cart_totals(product, shipping='0'):
    lines = [
        CartLine(
            line_key=f'{product.id}::',
            product_id=product.id,
            product_name=product.name,
            quantity=2,
            base_price=Decimal('2000.00'),
            unit_price=Decimal('1600.00'),
            discount_percent=20
        ),
        CartLine(
            line_key=f'{product.id}:v1:',
            product_id=product.id,
            product_name=product.name,
            quantity=1,
            base_price=Decimal('2500.00'),
            unit_price=Decimal('2500.00'),
            variation_id='v1',
            variation_name='3 Piece',
            variation_price=Decimal('2500.00')
        ),
    ]
    return calculate_cart_totals(lines, shipping)


@pytest.fixture
def order(session, product, contact):
    return order_service.place_order(session, contact, cart_totals(product, '200'), user_id='u1')


class TestPlaceOrder:
    """Tests for place_order."""

    def test_creates_order_with_frozen_lines(self, session, order):
        assert order.order_number == order_service.FIRST_ORDER_NUMBER
        assert order.status == OrderStatus.PENDING.value
        assert order.total_amount == Decimal('5900.00')
        assert order.shipping_cost == Decimal('200.00')
        assert sorted(item.price for item in order.items) == [Decimal('1600.00'), Decimal('2500.00')]

    def test_order_numbers_increase(self, session, order, product, contact):
        second = order_service.place_order(session, contact, cart_totals(product))

        assert second.order_number == order.order_number + 1
        assert second.user_id is None

    def test_missing_contact_fields(self, session, product, contact):
        contact['phone'] = '   '
        del contact['shipping_city']

        with pytest.raises(BusinessLogicError) as exc:
            order_service.place_order(session, contact, cart_totals(product))

        assert exc.value.payload['missing'] == ['phone', 'shipping_city']
        assert session.query(Order).count() == 0

    def test_empty_cart(self, session, contact):
        with pytest.raises(BusinessLogicError, match='empty'):
            order_service.place_order(session, contact, calculate_cart_totals([]))


class TestOrderQueries:
    """Tests for order listing."""

    def test_user_orders(self, session, order, product, contact):
        order_service.place_order(session, contact, cart_totals(product), user_id='someone-else')

        assert [o.id for o in order_service.get_user_orders(session, 'u1')] == [order.id]

    def test_list_orders_filters(self, session, order, product, contact):
        contact['first_name'] = 'Bilal'
        contact['shipping_city'] = 'Karachi'
        second = order_service.place_order(session, contact, cart_totals(product))
        order_service.update_order_status(session, second.id, 'shipped')

        orders, total = order_service.list_orders(session, status='shipped')
        assert total == 1 and orders[0].id == second.id

        orders, total = order_service.list_orders(session, search='karachi')
        assert [o.id for o in orders] == [second.id]

        orders, total = order_service.list_orders(session, search=f'#{order.order_number}')
        assert [o.id for o in orders] == [order.id]

        orders, total = order_service.list_orders(session, page=2, per_page=1)
        assert total == 2 and [o.id for o in orders] == [order.id]

    def test_get_order_missing(self, session):
        with pytest.raises(NotFoundError):
            order_service.get_order(session, 'nope')

    def test_order_number_collision_is_retried(self, session, order, product, contact, monkeypatch):
        real_next = order_service._next_order_number
        numbers = iter([order.order_number])

        # first allocation repeats an existing number, as a concurrent checkout would
        monkeypatch.setattr(order_service, '_next_order_number',
                            lambda s: next(numbers, None) or real_next(s))

        second = order_service.place_order(session, contact, cart_totals(product))

        assert second.order_number == order.order_number + 1
        assert session.query(Order).count() == 2
        assert session.query(OrderItem).count() == 4

    def test_order_number_collision_gives_up(self, session, order, product, contact, monkeypatch):
        taken = order.order_number
        monkeypatch.setattr(order_service, '_next_order_number', lambda s: taken)

        with pytest.raises(BusinessLogicError) as exc:
            order_service.place_order(session, contact, cart_totals(product))

        assert exc.value.status_code == 409
        assert session.query(Order).count() == 1


class TestOrderEdits:
    """Tests for back office order edits."""

    def test_any_status_transition(self, session, order):
        order_service.update_order_status(session, order.id, 'DELIVERED')
        updated = order_service.update_order_status(session, order.id, 'pending')

        assert updated.status == 'pending'

    def test_invalid_status(self, session, order):
        with pytest.raises(BusinessLogicError):
            order_service.update_order_status(session, order.id, 'lost')

    def test_update_fields(self, session, order):
        updated = order_service.update_order_fields(session, order.id, {
            'courier_company': 'TCS',
            'admin_notes': 'Call before delivery',
        })

        assert updated.courier_company == 'TCS'

        with pytest.raises(BusinessLogicError):
            order_service.update_order_fields(session, order.id, {'total_amount': '1'})
        with pytest.raises(BusinessLogicError):
            order_service.update_order_fields(session, order.id, {'phone': ''})

    def test_update_item_recalculates_total(self, session, order):
        item = next(i for i in order.items if i.variation_name is None)

        updated = order_service.update_order_item(session, order.id, item.id, quantity=1, price='1500')

        # 1500 + 2500 + 200 shipping
        assert updated.total_amount == Decimal('4200.00')

    def test_update_item_rejects_bad_values(self, session, order):
        item = order.items[0]

        with pytest.raises(BusinessLogicError):
            order_service.update_order_item(session, order.id, item.id, quantity=0)
        with pytest.raises(BusinessLogicError):
            order_service.update_order_item(session, order.id, item.id, price='-1')
        with pytest.raises(BusinessLogicError):
            order_service.update_order_item(session, order.id, item.id, quantity='two')
        with pytest.raises(BusinessLogicError, match='Price is required'):
            order_service.update_order_item(session, order.id, item.id, price='')

    def test_rejected_item_edit_leaves_order_untouched(self, session, order):
        item = next(i for i in order.items if i.variation_name is None)
        item_id = item.id

        with pytest.raises(BusinessLogicError):
            order_service.update_order_item(session, order.id, item_id, quantity=5, price='-1')
        session.commit()
        session.expire_all()

        reloaded = order_service.get_order(session, order.id)
        stored = next(i for i in reloaded.items if i.id == item_id)
        assert stored.quantity == 2
        assert reloaded.total_amount == sum(i.price * i.quantity for i in reloaded.items) + reloaded.shipping_cost

    def test_rejected_field_edit_leaves_order_untouched(self, session, order):
        with pytest.raises(BusinessLogicError):
            order_service.update_order_fields(session, order.id, {
                'courier_company': 'TCS',
                'phone': '',
            })
        session.commit()
        session.expire_all()

        assert order_service.get_order(session, order.id).courier_company is None

    def test_delete_item_recalculates_total(self, session, order):
        item = next(i for i in order.items if i.variation_name == '3 Piece')

        updated = order_service.delete_order_item(session, order.id, item.id)

        assert len(updated.items) == 1
        assert updated.total_amount == Decimal('3400.00')
        assert session.query(OrderItem).count() == 1


class TestOrderMessaging:
    """Tests for confirmation text helpers."""

    def test_normalize_whatsapp_phone(self):
        assert order_service.normalize_whatsapp_phone('0300-1234567') == '923001234567'
        assert order_service.normalize_whatsapp_phone('+92 300 1234567') == '923001234567'
        assert order_service.normalize_whatsapp_phone('3001234567') == '923001234567'

    def test_summary_text(self, order):
        text = order_service.format_order_summary(order)

        assert f'Order #: {order.order_number}' in text
        assert 'Customer: Ayesha Khan' in text
        assert 'Variation: 3 Piece' in text
        assert 'Qty: 2 × Rs 1,600 = Rs 3,200' in text
        assert '*Order Total: Rs 5,900*' in text
        assert 'Lahore, Punjab 54000' in text

    def test_order_to_dict(self, order):
        data = order_service.order_to_dict(order)

        assert data['total_amount'] == '5900.00'
        assert len(data['items']) == 2

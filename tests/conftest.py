import pytest
from datetime import datetime, timedelta, timezone
from decimal import Decimal
import uuid

from storefront import create_app
from storefront.database import create_all, drop_all, get_session
from storefront.models import Product, ProductVariation, ProductColor, Sale


@pytest.fixture(scope='function')
def app():
    """Application with a fresh in-memory database per test."""
    app = create_app('config.TestConfig')
    with app.app_context():
        create_all()
        yield app
        get_session().remove()
        drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def session(app):
    """Database session for testing."""
    session = get_session()
    yield session
    session.rollback()


@pytest.fixture(scope='function')
def now():
    return datetime.now(timezone.utc)


def persist(session, obj):
    """Commit and load attributes so the object stays readable after request teardown."""
    session.add(obj)
    session.commit()
    session.refresh(obj)
    return obj


def _make_product(session, name='Lawn Suit', price=Decimal('2000.00'), stock_quantity=None):
    suffix = str(uuid.uuid4())[:8]
    product = Product(
        name=name,
        slug=f'{name.lower().replace(" ", "-")}-{suffix}',
        sku=f'SKU-{suffix}',
        price=price,
        stock_quantity=stock_quantity
    )
    return persist(session, product)


def _make_sale(session, product=None, discount=Decimal('20'), starts=None, ends=None,
              is_active=True, is_global=False, created_at=None):
    current = datetime.now(timezone.utc)
    sale = Sale(
        product_id=product.id if product is not None and not is_global else None,
        discount_percentage=discount,
        start_date=starts or current - timedelta(days=1),
        end_date=ends or current + timedelta(days=1),
        is_active=is_active,
        is_global=is_global
    )
    if created_at is not None:
        sale.created_at = created_at
    return persist(session, sale)


@pytest.fixture(scope='function')
def product(session):
    """Untracked-stock product priced at 2000."""
    return _make_product(session)


@pytest.fixture(scope='function')
def variation(session, product):
    """Variation with its own price (2500) and stock."""
    variation = ProductVariation(
        product_id=product.id,
        name='3 Piece',
        price=Decimal('2500.00'),
        apply_sale=True,
        quantity=5
    )
    return persist(session, variation)


@pytest.fixture(scope='function')
def color(session, product):
    """Color without its own price."""
    color = ProductColor(
        product_id=product.id,
        name='Emerald',
        color_code='#50C878',
        price=Decimal('0'),
        apply_sale=True,
        quantity=3
    )
    return persist(session, color)


@pytest.fixture(scope='function')
def product_sale(session, product):
    """20% sale on `product`, running now."""
    return _make_sale(session, product=product, discount=Decimal('20'))


@pytest.fixture(scope='function')
def global_sale(session):
    """10% sitewide sale, running now."""
    return _make_sale(session, discount=Decimal('10'), is_global=True)


@pytest.fixture(scope='function')
def user_client(client):
    """Client signed in as a customer."""
    with client.session_transaction() as sess:
        sess['user_id'] = 'customer-1'
        sess['is_admin'] = False
    return client


@pytest.fixture(scope='function')
def admin_client(client):
    """Client signed in as a back office admin."""
    with client.session_transaction() as sess:
        sess['user_id'] = 'admin-1'
        sess['is_admin'] = True
    return client


CONTACT = {
    'first_name': 'Ayesha',
    'last_name': 'Khan',
    'email': 'ayesha@example.com',
    'phone': '0300 1234567',
    'shipping_address': '12 Mall Road',
    'shipping_city': 'Lahore',
    'shipping_state': 'Punjab',
    'shipping_zip': '54000',
}


@pytest.fixture(scope='function')
def contact():
    return dict(CONTACT)


@pytest.fixture(scope='function')
def make_product(session):
    """Factory: make_product(name=..., price=..., stock_quantity=...)."""
    return lambda **kwargs: _make_product(session, **kwargs)


@pytest.fixture(scope='function')
def make_sale(session):
    """Factory: make_sale(product=..., discount=..., starts=..., ends=..., ...)."""
    return lambda **kwargs: _make_sale(session, **kwargs)

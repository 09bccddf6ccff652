import pytest
from decimal import Decimal
import uuid

import jwt

from salesdesk import create_app
from salesdesk.database import get_session, init_schema, drop_schema
from salesdesk.models import Customer, Product
from salesdesk.services import sale_service

JWT_SECRET = 'test-jwt-secret'


@pytest.fixture(scope='session')
def app():
    """Create application instance for testing."""
    app = create_app('config.TestConfig')
    return app


@pytest.fixture(scope='function', autouse=True)
def app_context(app):
    """Fresh schema in an application context for every test."""
    with app.app_context():
        init_schema()
        yield
        get_session().remove()
        drop_schema()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def session():
    """Create database session for testing."""
    session = get_session()
    yield session
    session.rollback()


def make_token(role='staff', operator_id=None, secret=JWT_SECRET, **extra):
    """Bearer token as issued by the auth service."""
    payload = {
        '_id': operator_id or f'op-{uuid.uuid4().hex[:8]}',
        'email': f'{role}@shop.test',
        'role': role,
    }
    payload.update(extra)
    return jwt.encode(payload, secret, algorithm='HS256')


@pytest.fixture(scope='function')
def staff_headers():
    return {'Authorization': f"Bearer {make_token('staff', operator_id='staff-1')}"}


@pytest.fixture(scope='function')
def admin_headers():
    return {'Authorization': f"Bearer {make_token('admin', operator_id='admin-1')}"}


@pytest.fixture(scope='function')
def customer(session):
    """Create a test customer with zeroed totals."""
    customer = Customer(
        name='Ana Torres',
        phone='555-0001',
        email='ana@test.com',
        total_purchases=0,
        total_spent=Decimal('0'),
    )
    session.add(customer)
    session.commit()
    return customer


@pytest.fixture(scope='function')
def product(session):
    """Create a stocked test product."""
    product = Product(
        name='Galaxy S23',
        serial_number='SN-S23-0001',
        sku='SKU-S23',
        brand='Samsung',
        price=Decimal('100.00'),
        stock=3,
    )
    session.add(product)
    session.commit()
    return product


@pytest.fixture(scope='function')
def sale_items():
    """Two lines: 100 x 2 + 50 x 1 = 250."""
    return [
        {'serial_number': 'SN-A', 'product_name': 'Phone A', 'price': '100', 'quantity': 2},
        {'serial_number': 'SN-B', 'product_name': 'Phone B', 'price': '50', 'quantity': 1},
    ]


@pytest.fixture(scope='function')
def sale(session, customer, sale_items):
    """Create an unpaid sale of 250 for the test customer."""
    return sale_service.create_sale(
        session,
        customer_id=customer.id,
        customer_name=customer.name,
        items=sale_items,
        created_by='staff-1',
    )


@pytest.fixture(scope='function')
def auth_token():
    """Factory for operator tokens: auth_token(role, secret=..., **claims)."""
    return make_token

"""
Pytest fixtures for the ledger service.

Every test gets a fresh app on an in-memory SQLite database with foreign
keys enforced, an active app context and a test client.
"""
import pytest

import inventory
from app import create_app
from config import TestingConfig
from models import db

USER = 'user-1'
OTHER_USER = 'user-2'


def make_app(**overrides):
    return create_app(TestingConfig, **overrides)


@pytest.fixture
def app():
    app = make_app()
    with app.app_context():
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def login(client):
    """Sign the test client in as ``user_id`` through the Flask session."""
    def _login(user_id=USER):
        with client.session_transaction() as sess:
            sess['user_id'] = user_id
        return client
    return _login


@pytest.fixture
def make_product(app):
    def _make(user_id=USER, **fields):
        data = {'name': 'Rice 5kg', 'sku': 'RICE5', 'stock': 10, 'min_stock_level': 5}
        data.update(fields)
        return inventory.create_product(user_id, data)
    return _make


@pytest.fixture
def make_worker(app):
    def _make(user_id=USER, **fields):
        data = {'name': 'Ravi', 'role': 'Helper', 'phone': '9000000000', 'salary': '12000'}
        data.update(fields)
        return inventory.create_worker(user_id, data)
    return _make


def stock_of(product_id):
    from models import Product
    db.session.expire_all()
    return db.session.get(Product, product_id).stock

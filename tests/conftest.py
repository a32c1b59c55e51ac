"""Pytest fixtures for the store API tests."""

import pytest
from fastapi.testclient import TestClient

from config import Settings
from main import create_app
from schemas import Product, User
from store import RecordStore


@pytest.fixture
def store():
    """A fresh store holding the demo rows."""
    return RecordStore.with_sample_data()


@pytest.fixture
def empty_store():
    return RecordStore()


@pytest.fixture
def small_store():
    """One user and two products, no orders."""
    return RecordStore(
        users=[User(id=1, name="Test User", email="test@test.com", age=30, city="Lisbon")],
        products=[
            Product(id=1, name="Widget", price=10.00, category="Tools", stock=5),
            Product(id=2, name="Gadget", price=2.50, category="Tools", stock=1),
        ],
    )


def build_client(store, **settings):
    app = create_app(store=store, settings=Settings(**settings))
    return TestClient(app)


@pytest.fixture
def client(store):
    return build_client(store)


@pytest.fixture
def small_client(small_store):
    return build_client(small_store)

import os

# settings are read at import time
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["CELERY_TASK_ALWAYS_EAGER"] = "1"
os.environ["CSRF_ENABLED"] = "1"
os.environ["LOG_LEVEL"] = "WARNING"

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from storefront.api.deps import get_session_store
from storefront.data import models  # noqa: F401
from storefront.data.database import Base, get_db, make_engine
from storefront.data.models import ProductImageModel, ProductModel, UserModel
from storefront.domain.enums import ProductStatus, UserType
from storefront.main import create_app
from storefront.services.session_service import SessionStore
from storefront.utils.settings import CSRF_HEADER_NAME


class FakeRedis:
    """In-memory stand-in for the few Redis commands the session store uses."""

    def __init__(self):
        self.data = {}

    def set(self, name, value, nx=False, ex=None):
        if nx and name in self.data:
            return None
        self.data[name] = value
        return True

    def get(self, name):
        return self.data.get(name)

    def delete(self, name):
        return 1 if self.data.pop(name, None) is not None else 0


@pytest.fixture()
def engine():
    engine = make_engine("sqlite://", poolclass=StaticPool)
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture()
def db(engine):
    session = sessionmaker(bind=engine)()
    yield session
    session.close()


@pytest.fixture()
def make_product(db):
    def _make(
        name="Linen shirt",
        price=1000,
        stock=10,
        track_stock=True,
        status=ProductStatus.ACTIVE,
        sku=None,
        image=None,
    ):
        product = ProductModel(
            name=name,
            sku=sku,
            price=price,
            stock=stock,
            track_stock=track_stock,
            status=status.value,
        )
        if image:
            product.images = [ProductImageModel(url=image, position=0)]
        db.add(product)
        db.commit()
        return product

    return _make


@pytest.fixture()
def make_user(db):
    def _make(user_id="user-1", user_type=UserType.CUSTOMER):
        user = UserModel(id=user_id, name=f"User {user_id}", email=f"{user_id}@example.com", type=user_type.value)
        db.add(user)
        db.commit()
        return user

    return _make


@pytest.fixture()
def session_store():
    return SessionStore(client=FakeRedis())


@pytest.fixture()
def app(db, session_store):
    app = create_app()

    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_session_store] = lambda: session_store
    return app


@pytest.fixture()
def anonymous_client(app):
    """Client without a CSRF header; mutating requests are rejected."""
    return TestClient(app)


@pytest.fixture()
def client(app):
    client = TestClient(app)
    token = client.get("/csrf").json()["token"]
    client.headers[CSRF_HEADER_NAME] = token
    return client


def build_order_payload(*lines, discount=0, shipping=3000, tax=None, **extra):
    """
    Build an order body from (product, quantity) pairs, with totals that add up.
    """
    items = [
        {
            "product_id": product.id,
            "name": product.name,
            "sku": product.sku,
            "price": product.price,
            "quantity": quantity,
        }
        for product, quantity in lines
    ]
    subtotal = sum(i["price"] * i["quantity"] for i in items)
    tax = round(subtotal * 0.1) if tax is None else tax

    payload = {
        "items": items,
        "shipping_address": {
            "name": "Jane Doe",
            "phone": "01012345678",
            "postal_code": "06236",
            "address": "12 Market Street",
        },
        "subtotal": subtotal,
        "tax": tax,
        "shipping": shipping,
        "discount": discount,
        "total": subtotal - discount + tax + shipping,
    }
    payload.update(extra)
    return payload


@pytest.fixture()
def order_payload():
    return build_order_payload

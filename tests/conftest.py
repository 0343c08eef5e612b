import os

# Must be set before card_gateway.database is imported
os.environ.setdefault("DATABASE_URL", "sqlite:///./test_card_gateway.db")
os.environ.setdefault("JWT_SECRET", "test-secret")

from decimal import Decimal

import pytest
from jose import jwt
from card_gateway.config import GatewaySettings
from card_gateway.database import Base, init_db, make_engine, make_session_factory
from card_gateway.models import Order

SQLALCHEMY_DATABASE_URL = "sqlite:///./test_temp.db"
engine = make_engine(SQLALCHEMY_DATABASE_URL)
TestingSessionLocal = make_session_factory(engine)


@pytest.fixture(autouse=True)
def setup_db():
    init_db(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def db():
    session = TestingSessionLocal()
    yield session
    session.close()


@pytest.fixture
def settings():
    return GatewaySettings(
        testmode=True,
        test_secret_key="sk_test_123",
        test_publishable_key="pk_test_123",
        site_url="https://shop.example",
        site_name="Example Shop",
    )


@pytest.fixture
def make_order():
    def _make(order_id=1001, total="25.00", currency="USD", **fields):
        db = TestingSessionLocal()
        order = Order(
            id=order_id,
            order_key=f"wc_order_{order_id}",
            billing_first_name="Ada",
            billing_last_name="Lovelace",
            billing_address_1="12 Analytical Row",
            billing_city="London",
            billing_postcode="N1 7AA",
            billing_country="GB",
            billing_email="ada@example.com",
            total=Decimal(total),
            currency=currency,
            **fields,
        )
        db.add(order)
        db.commit()
        db.close()
        return order_id
    return _make


@pytest.fixture
def load_order():
    def _load(order_id):
        db = TestingSessionLocal()
        order = db.get(Order, order_id)
        notes = [n.note for n in order.notes]
        db.expunge_all()
        db.close()
        return order, notes
    return _load


@pytest.fixture
def auth_headers():
    def _headers(user_id):
        token = jwt.encode({"sub": str(user_id)}, os.environ["JWT_SECRET"], algorithm="HS256")
        return {"Authorization": f"Bearer {token}"}
    return _headers


@pytest.fixture
def session_factory():
    return TestingSessionLocal

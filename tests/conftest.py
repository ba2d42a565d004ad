import os
import tempfile

# must be set before storefront is imported, the engine is built at import time
_DB_DIR = tempfile.mkdtemp(prefix="storefront-tests-")
os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(_DB_DIR, 'storefront.db')}"
os.environ.setdefault("LOG_JSON", "0")
os.environ.setdefault("LOG_LEVEL", "WARNING")

from decimal import Decimal

import pytest

from storefront.data.database import Base, SessionLocal, engine, init_db
from storefront.data.models import ProductModel, UserModel
from storefront.services.notification_service import NotificationService
from storefront.services.payment_service import build_payment_service


class RecordingObserver:
    def __init__(self):
        self.messages = []

    def notify(self, order, message):
        self.messages.append((order.id, message))


@pytest.fixture(autouse=True)
def schema():
    init_db(engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db(schema):
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def make_product(db):
    def _make(name="Keyboard", price="10.00", stock=10, active=True):
        product = ProductModel(
            name=name,
            price=Decimal(price),
            stock_quantity=stock,
            active=active,
            version=1,
        )
        db.add(product)
        db.commit()
        return product

    return _make


@pytest.fixture
def user(db):
    u = UserModel(id=1, name="Ann", email="ann@example.com")
    db.add(u)
    db.commit()
    return u


@pytest.fixture
def observer():
    return RecordingObserver()


@pytest.fixture
def notifications(observer):
    return NotificationService([observer])


@pytest.fixture
def payments():
    return build_payment_service()

import os

# must be set before shopcore is imported: settings are read at import time
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ["CELERY_TASK_ALWAYS_EAGER"] = "true"
os.environ.setdefault("CELERY_BROKER_URL", "memory://")
os.environ.setdefault("CELERY_RESULT_BACKEND", "cache+memory://")

from decimal import Decimal

import pytest
from sqlalchemy.orm import sessionmaker

from shopcore.data.database import build_engine, init_db
from shopcore.services.cart_service import CartService
from shopcore.services.order_service import OrderService
from shopcore.services.product_client import InMemoryProductCatalog, ProductSnapshot

TOKYO_ADDRESS = {
    "full_name": "Taro Yamada",
    "address1": "1-2-3 Jingumae",
    "city": "Shibuya-ku",
    "state": "Tokyo",
    "postal_code": "150-0001",
    "country": "Japan",
}


class RecordingNotifier:
    def __init__(self):
        self.sent = []

    def send_order_notification(self, user_id, order_id):
        self.sent.append((user_id, order_id))


@pytest.fixture
def engine(tmp_path):
    # file database: every session gets its own connection, like in production
    eng = build_engine(f"sqlite:///{tmp_path / 'shop.db'}")
    init_db(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def catalog():
    return InMemoryProductCatalog(
        {
            1: ProductSnapshot(id=1, name="Keyboard", price=Decimal("1000.00"), sku="KB-001",
                               brand="Keychron", model="K2", primary_image_url="https://img/kb.png",
                               specifications={"layout": "JIS"}),
            2: ProductSnapshot(id=2, name="Mouse", price=Decimal("19.99"), sku="MS-002", brand="Logicool"),
            3: ProductSnapshot(id=3, name="Monitor", price=Decimal("2500.00"), sku="MN-003", brand="EIZO"),
            4: ProductSnapshot(id=4, name="Old Webcam", price=Decimal("800.00"), status="inactive"),
        }
    )


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def cart_service(db, catalog):
    return CartService(db, catalog)


@pytest.fixture
def order_service(db, catalog, notifier):
    return OrderService(db, catalog, notification_service=notifier)

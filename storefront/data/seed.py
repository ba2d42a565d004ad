# storefront/data/seed.py
from decimal import Decimal

from storefront.data.database import SessionLocal, init_db
from storefront.data.models import ProductModel, UserModel
from storefront.domain.enums import UserRole
from storefront.utils.logging import get_logger

logger = get_logger(__name__)

PRODUCTS = [
    ("Mechanical keyboard", "Hot-swappable, brown switches", Decimal("89.90"), 25),
    ("Wireless mouse", "2.4 GHz, 6 buttons", Decimal("24.50"), 40),
    ("USB-C hub", "7-in-1, HDMI 4K", Decimal("39.00"), 8),
    ("27\" monitor", "IPS, 1440p, 144 Hz", Decimal("279.00"), 5),
]


def seed():
    init_db()
    db = SessionLocal()
    try:
        # not forcing: only seed if empty
        if db.query(ProductModel).first():
            logger.info("Catalog already seeded")
            return

        db.add(UserModel(id=1, name="Admin", email="admin@example.com", role=UserRole.ADMIN.value))
        db.add(UserModel(id=2, name="Customer", email="customer@example.com"))
        for name, description, price, stock in PRODUCTS:
            db.add(ProductModel(name=name, description=description, price=price, stock_quantity=stock))
        db.commit()
        logger.info(f"Seeded {len(PRODUCTS)} products and 2 users")
    finally:
        db.close()


if __name__ == "__main__":
    seed()

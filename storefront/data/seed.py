# storefront/data/seed.py
from storefront.data import models  # noqa: F401
from storefront.data.database import Base, SessionLocal, engine
from storefront.data.models import CategoryModel, ProductImageModel, ProductModel, UserModel
from storefront.domain.enums import ProductStatus, UserType
from storefront.utils.logging import get_logger

logger = get_logger(__name__)

PRODUCTS = [
    ("Linen shirt", "SHIRT-001", 39000, 25),
    ("Wool coat", "COAT-001", 189000, 5),
    ("Canvas tote", "BAG-001", 15000, 100),
]


def seed():
    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        # not forcing: only seed if empty
        if db.query(ProductModel).first():
            return

        category = CategoryModel(name="Apparel", slug="apparel")
        db.add(category)

        for name, sku, price, stock in PRODUCTS:
            db.add(
                ProductModel(
                    name=name,
                    sku=sku,
                    price=price,
                    stock=stock,
                    status=ProductStatus.ACTIVE.value,
                    category=category,
                    images=[ProductImageModel(url=f"/static/products/{sku.lower()}.jpg", position=0)],
                )
            )

        db.add(UserModel(id="admin", name="Store admin", email="admin@example.com", type=UserType.ADMIN.value))
        db.commit()
        logger.info(f"Seeded {len(PRODUCTS)} products and an admin user")
    finally:
        db.close()


if __name__ == "__main__":
    seed()

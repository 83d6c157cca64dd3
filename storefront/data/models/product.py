# storefront/data/models/product.py
from datetime import datetime, timezone

from sqlalchemy import Boolean, CheckConstraint, Column, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship

from storefront.data.database import Base
from storefront.domain.enums import ProductStatus


def _now():
    return datetime.now(timezone.utc)


class CategoryModel(Base):
    __tablename__ = "categories"

    id = Column(Integer, primary_key=True)
    name = Column(String(100), nullable=False)
    slug = Column(String(120), nullable=False, unique=True)

    products = relationship("ProductModel", back_populates="category")


class ProductModel(Base):
    __tablename__ = "products"
    __table_args__ = (CheckConstraint("stock >= 0", name="ck_product_stock_non_negative"),)

    id = Column(Integer, primary_key=True)
    name = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    sku = Column(String(50), unique=True, nullable=True)

    price = Column(Integer, nullable=False)
    stock = Column(Integer, nullable=False, default=0)
    track_stock = Column(Boolean, nullable=False, default=True)
    status = Column(String(20), nullable=False, default=ProductStatus.DRAFT.value)

    category_id = Column(Integer, ForeignKey("categories.id"), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_now)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_now, onupdate=_now)

    category = relationship("CategoryModel", back_populates="products")
    images = relationship(
        "ProductImageModel",
        back_populates="product",
        order_by="ProductImageModel.position",
        cascade="all, delete-orphan",
    )

    @property
    def primary_image(self):
        return self.images[0] if self.images else None


class ProductImageModel(Base):
    __tablename__ = "product_images"

    id = Column(Integer, primary_key=True)
    product_id = Column(Integer, ForeignKey("products.id", ondelete="CASCADE"), nullable=False)
    url = Column(String(500), nullable=False)
    alt = Column(String(200), nullable=True)
    position = Column(Integer, nullable=False, default=0)

    product = relationship("ProductModel", back_populates="images")

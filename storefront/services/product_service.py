# storefront/services/product_service.py
import math
from typing import Any, Dict

from sqlalchemy.orm import Session

from storefront.data.models.product import ProductModel
from storefront.domain.enums import ProductStatus
from storefront.repos.product_repo import ProductRepo


def product_to_dict(product: ProductModel) -> Dict[str, Any]:
    return {
        "id": product.id,
        "name": product.name,
        "description": product.description,
        "sku": product.sku,
        "price": product.price,
        "stock": product.stock,
        "track_stock": product.track_stock,
        "status": product.status,
        "category": product.category.name if product.category else None,
        "images": [img.url for img in product.images],
    }


class ProductService:
    """Read side of the catalog; stock is changed only by the order service."""

    def __init__(self, db: Session):
        self.repo = ProductRepo(db)

    def list_products(
        self,
        status: ProductStatus | None = ProductStatus.ACTIVE,
        category_id: int | None = None,
        page: int = 1,
        limit: int = 20,
    ) -> Dict[str, Any]:
        products, total = self.repo.list_products(
            status=status.value if status else None,
            category_id=category_id,
            offset=(page - 1) * limit,
            limit=limit,
        )
        return {
            "products": [product_to_dict(p) for p in products],
            "pagination": {
                "page": page,
                "limit": limit,
                "total": total,
                "total_pages": math.ceil(total / limit),
            },
        }

    def get_product(self, product_id: int) -> Dict[str, Any] | None:
        product = self.repo.get_product(product_id)
        return product_to_dict(product) if product else None

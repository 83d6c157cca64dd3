# storefront/api/routers/products.py
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from storefront.data.database import get_db
from storefront.domain.enums import ProductStatus
from storefront.domain.errors import NotFoundError
from storefront.domain.schemas import ProductListOut, ProductOut
from storefront.services.product_service import ProductService

router = APIRouter(prefix="/commerce/products", tags=["products"])


@router.get("", response_model=ProductListOut)
def list_products(
    status: ProductStatus = Query(ProductStatus.ACTIVE),
    category_id: int | None = Query(None, gt=0),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db),
):
    return ProductService(db).list_products(status=status, category_id=category_id, page=page, limit=limit)


@router.get("/{product_id}", response_model=ProductOut)
def get_product(product_id: int, db: Session = Depends(get_db)):
    product = ProductService(db).get_product(product_id)
    if not product:
        raise NotFoundError("Product not found")
    return product

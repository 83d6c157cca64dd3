# storefront/repos/product_repo.py
from typing import List, Tuple

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session, selectinload

from storefront.data.models.product import ProductModel


class ProductRepo:
    """
    Catalog store access. Stock adjustments are single conditional UPDATE
    statements that join the caller's transaction; callers check the returned
    rowcount instead of trusting an earlier read.
    """

    def __init__(self, db: Session):
        self.db = db

    def get_product(self, product_id: int) -> ProductModel | None:
        return self.db.get(ProductModel, product_id)

    def list_products(
        self,
        status: str | None,
        category_id: int | None,
        offset: int,
        limit: int,
    ) -> Tuple[List[ProductModel], int]:
        stmt = select(ProductModel)
        if status:
            stmt = stmt.where(ProductModel.status == status)
        if category_id:
            stmt = stmt.where(ProductModel.category_id == category_id)

        total = self.db.execute(select(func.count()).select_from(stmt.subquery())).scalar_one()
        products = (
            self.db.execute(
                stmt.options(selectinload(ProductModel.images), selectinload(ProductModel.category))
                .order_by(ProductModel.created_at.desc(), ProductModel.id.desc())
                .offset(offset)
                .limit(limit)
            )
            .scalars()
            .all()
        )
        return list(products), total

    def decrement_stock(self, product_id: int, quantity: int) -> int:
        # UPDATE products SET stock = stock - n WHERE id = :id AND track_stock AND stock >= n
        result = self.db.execute(
            update(ProductModel)
            .where(
                ProductModel.id == product_id,
                ProductModel.track_stock.is_(True),
                ProductModel.stock >= quantity,
            )
            .values(stock=ProductModel.stock - quantity)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    def increment_stock(self, product_id: int, quantity: int) -> int:
        result = self.db.execute(
            update(ProductModel)
            .where(ProductModel.id == product_id, ProductModel.track_stock.is_(True))
            .values(stock=ProductModel.stock + quantity)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

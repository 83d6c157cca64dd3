# storefront/repos/cart_repo.py
from datetime import datetime, timezone
from typing import List

from sqlalchemy import delete, select, update
from sqlalchemy.orm import Session, selectinload

from storefront.data.models.cart import CartModel
from storefront.data.models.cart_item import CartItemModel
from storefront.data.models.product import ProductModel
from storefront.domain.identity import CartIdentity


class CartRepo:
    def __init__(self, db: Session):
        self.db = db

    def _owner_clause(self, identity: CartIdentity):
        if identity.is_user:
            return CartModel.user_id == identity.user_id
        return CartModel.session_id == identity.session_id

    def find_cart(self, identity: CartIdentity, with_items: bool = False) -> CartModel | None:
        stmt = select(CartModel).where(self._owner_clause(identity))
        if with_items:
            stmt = stmt.options(
                selectinload(CartModel.items)
                .selectinload(CartItemModel.product)
                .selectinload(ProductModel.images)
            )
        return self.db.execute(stmt).scalar_one_or_none()

    def find_session_cart(self, session_id: str) -> CartModel | None:
        return self.find_cart(CartIdentity.for_session(session_id), with_items=True)

    def create_cart(self, identity: CartIdentity) -> CartModel:
        if identity.is_user:
            cart = CartModel(user_id=identity.user_id)
        else:
            cart = CartModel(session_id=identity.session_id)
        self.db.add(cart)
        # IntegrityError here means a concurrent request created the same cart
        self.db.flush()
        return cart

    def touch(self, cart: CartModel) -> None:
        cart.updated_at = datetime.now(timezone.utc)

    def get_cart_item(self, cart_id: int, product_id: int) -> CartItemModel | None:
        return self.db.execute(
            select(CartItemModel).where(
                CartItemModel.cart_id == cart_id,
                CartItemModel.product_id == product_id,
            )
        ).scalar_one_or_none()

    def get_cart_item_by_id(self, item_id: int) -> CartItemModel | None:
        return self.db.execute(
            select(CartItemModel)
            .where(CartItemModel.id == item_id)
            .options(selectinload(CartItemModel.cart), selectinload(CartItemModel.product))
        ).scalar_one_or_none()

    def add_cart_item(self, item: CartItemModel) -> CartItemModel:
        self.db.add(item)
        self.db.flush()
        return item

    def increment_item_quantity(
        self,
        item_id: int,
        amount: int,
        max_quantity: int | None = None,
        variant: dict | None = None,
    ) -> int:
        """
        quantity = quantity + amount, optionally only while the new total stays
        within `max_quantity`. Returns the number of rows changed (0 or 1).
        """
        stmt = update(CartItemModel).where(CartItemModel.id == item_id)
        if max_quantity is not None:
            stmt = stmt.where(CartItemModel.quantity + amount <= max_quantity)

        values = {"quantity": CartItemModel.quantity + amount}
        if variant:
            values["variant"] = variant

        result = self.db.execute(stmt.values(**values).execution_options(synchronize_session=False))
        return result.rowcount

    def delete_cart_item(self, cart_id: int, product_id: int) -> int:
        result = self.db.execute(
            delete(CartItemModel)
            .where(CartItemModel.cart_id == cart_id, CartItemModel.product_id == product_id)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    def delete_all_items(self, cart_id: int) -> int:
        result = self.db.execute(
            delete(CartItemModel)
            .where(CartItemModel.cart_id == cart_id)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    def delete_cart(self, cart: CartModel) -> None:
        self.db.delete(cart)
        self.db.flush()

    def reassign_session(self, old_session_id: str, new_session_id: str) -> int:
        result = self.db.execute(
            update(CartModel)
            .where(CartModel.session_id == old_session_id, CartModel.user_id.is_(None))
            .values(session_id=new_session_id, updated_at=datetime.now(timezone.utc))
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    def stale_guest_carts(self, older_than: datetime) -> List[CartModel]:
        return list(
            self.db.execute(
                select(CartModel).where(
                    CartModel.session_id.is_not(None),
                    CartModel.updated_at < older_than,
                )
            )
            .scalars()
            .all()
        )

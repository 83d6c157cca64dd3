from datetime import datetime
from typing import Any, Dict

from sqlalchemy.orm import Session

from storefront.data.database import atomic
from storefront.data.models.cart import CartModel
from storefront.data.models.cart_item import CartItemModel
from storefront.data.models.product import ProductModel
from storefront.domain import pricing
from storefront.domain.enums import ProductStatus
from storefront.domain.errors import ConflictError, InputValidationError, NotFoundError
from storefront.domain.identity import CartIdentity
from storefront.repos.cart_repo import CartRepo
from storefront.repos.product_repo import ProductRepo
from storefront.utils.retry import integrity_retry


def product_snapshot(product: ProductModel) -> Dict[str, Any]:
    image = product.primary_image
    return {
        "id": product.id,
        "name": product.name,
        "sku": product.sku,
        "price": product.price,
        "stock": product.stock,
        "status": product.status,
        "image": image.url if image else None,
    }


def cart_to_dict(cart: CartModel) -> Dict[str, Any]:
    items = [
        {
            "id": i.id,
            "product_id": i.product_id,
            "quantity": i.quantity,
            "variant": i.variant or {},
            "product": product_snapshot(i.product),
        }
        for i in cart.items
    ]
    return {
        "id": cart.id,
        "user_id": cart.user_id,
        "session_id": cart.session_id,
        "items": items,
        "item_count": sum(i["quantity"] for i in items),
        "total_amount": sum(i["product"]["price"] * i["quantity"] for i in items),
    }


def _identity_of(cart: CartModel) -> CartIdentity:
    return CartIdentity(user_id=cart.user_id, session_id=cart.session_id)


class CartService:
    """
    Cart use cases.

    Commands (add, update, remove, clear, merge) each run in one transaction
    and re-check stock against the catalog at the moment of the change.
    Queries (get, count, summarize) only read; totals are derived on every
    call and never stored.
    """

    summarize = staticmethod(pricing.summarize)

    def __init__(self, db: Session):
        self.db = db
        self.repo = CartRepo(db)
        self.products = ProductRepo(db)

    # query
    def get_cart(self, identity: CartIdentity) -> Dict[str, Any] | None:
        cart = self.repo.find_cart(identity, with_items=True)
        if not cart:
            return None
        return cart_to_dict(cart)

    def get_item(self, cart_item_id: int) -> Dict[str, Any] | None:
        item = self.repo.get_cart_item_by_id(cart_item_id)
        if not item:
            return None
        return {
            "id": item.id,
            "product_id": item.product_id,
            "quantity": item.quantity,
            "user_id": item.cart.user_id,
            "session_id": item.cart.session_id,
        }

    def count_items(self, identity: CartIdentity) -> int:
        cart = self.repo.find_cart(identity, with_items=True)
        if not cart:
            return 0
        return sum(i.quantity for i in cart.items)

    # commands
    @integrity_retry()
    def add_item(
        self,
        identity: CartIdentity,
        product_id: int,
        quantity: int,
        variant: Dict[str, str] | None = None,
    ) -> Dict[str, Any]:
        if quantity <= 0:
            raise InputValidationError("Quantity must be greater than 0")

        with atomic(self.db):
            product = self.products.get_product(product_id)
            if not product:
                raise NotFoundError("Product not found")
            if product.status != ProductStatus.ACTIVE.value:
                raise NotFoundError("Product is not available for sale")
            if product.track_stock and product.stock < quantity:
                raise ConflictError("Insufficient stock")

            cart = self.repo.find_cart(identity) or self.repo.create_cart(identity)
            existing = self.repo.get_cart_item(cart.id, product_id)

            if existing:
                # check the new line total, not only the added amount
                new_quantity = existing.quantity + quantity
                if product.track_stock and product.stock < new_quantity:
                    raise ConflictError("Insufficient stock for the requested quantity")

                rowcount = self.repo.increment_item_quantity(
                    existing.id,
                    quantity,
                    max_quantity=product.stock if product.track_stock else None,
                    variant=variant,
                )
                if rowcount == 0:
                    raise ConflictError("Insufficient stock for the requested quantity")
            else:
                self.repo.add_cart_item(
                    CartItemModel(
                        cart_id=cart.id,
                        product_id=product_id,
                        quantity=quantity,
                        variant=variant or {},
                    )
                )

            self.repo.touch(cart)

        return self.get_cart(identity)

    def update_item_quantity(
        self,
        cart_item_id: int,
        quantity: int,
        variant: Dict[str, str] | None = None,
    ) -> Dict[str, Any]:
        if quantity <= 0:
            raise InputValidationError("Quantity must be greater than 0")

        with atomic(self.db):
            item = self.repo.get_cart_item_by_id(cart_item_id)
            if not item:
                raise NotFoundError("Cart item not found")

            product = item.product
            if product.track_stock and product.stock < quantity:
                raise ConflictError("Insufficient stock")

            item.quantity = quantity
            if variant:
                item.variant = variant
            self.repo.touch(item.cart)
            identity = _identity_of(item.cart)

        return self.get_cart(identity)

    def remove_item(self, identity: CartIdentity, product_id: int) -> Dict[str, Any] | None:
        with atomic(self.db):
            cart = self.repo.find_cart(identity)
            if not cart:
                raise NotFoundError("Cart not found")

            if self.repo.delete_cart_item(cart.id, product_id) == 0:
                raise NotFoundError("Cart item not found")
            self.repo.touch(cart)

        return self.get_cart(identity)

    def clear_cart(self, identity: CartIdentity) -> None:
        with atomic(self.db):
            cart = self.repo.find_cart(identity)
            if not cart:
                return
            self.repo.delete_all_items(cart.id)
            self.repo.touch(cart)

    @integrity_retry()
    def merge_session_into_user(self, session_id: str, user_id: str) -> Dict[str, Any] | None:
        """
        Fold an anonymous cart into the user's cart after login.

        Overlapping products have their quantities summed, the rest are moved
        over, and the session cart is deleted. Either all of it commits or
        none of it does.
        """
        user_identity = CartIdentity.for_user(user_id)

        with atomic(self.db):
            session_cart = self.repo.find_session_cart(session_id)
            if not session_cart or not session_cart.items:
                return None

            user_cart = self.repo.find_cart(user_identity) or self.repo.create_cart(user_identity)

            for item in session_cart.items:
                existing = self.repo.get_cart_item(user_cart.id, item.product_id)
                if existing:
                    existing.quantity += item.quantity
                else:
                    self.repo.add_cart_item(
                        CartItemModel(
                            cart_id=user_cart.id,
                            product_id=item.product_id,
                            quantity=item.quantity,
                            variant=item.variant or {},
                        )
                    )

            self.repo.touch(user_cart)
            self.repo.delete_cart(session_cart)

        return self.get_cart(user_identity)

    def reassign_session(self, old_session_id: str, new_session_id: str) -> bool:
        with atomic(self.db):
            moved = self.repo.reassign_session(old_session_id, new_session_id)
        return moved > 0

    def purge_stale_guest_carts(self, older_than: datetime) -> int:
        with atomic(self.db):
            carts = self.repo.stale_guest_carts(older_than)
            for cart in carts:
                self.repo.delete_cart(cart)
        return len(carts)

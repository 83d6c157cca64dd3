# storefront/api/routers/carts.py
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from storefront.api.deps import RequestIdentity, get_identity, verify_csrf
from storefront.data.database import get_db
from storefront.domain.errors import NotFoundError
from storefront.domain.schemas import (
    AddToCartIn,
    CartCountOut,
    CartResponse,
    MergeCartResponse,
    RemoveFromCartIn,
    UpdateCartItemIn,
)
from storefront.services.cart_service import CartService
from storefront.utils.logging import get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/commerce/cart", tags=["cart"], dependencies=[Depends(verify_csrf)])


def get_service(db: Session):
    return CartService(db)


def cart_response(cart: dict | None, message: str | None = None) -> dict:
    return {"cart": cart, "summary": CartService.summarize(cart), "message": message}


def owned_item(svc: CartService, cart_item_id: int, identity: RequestIdentity) -> dict:
    """Load a cart line and make sure it belongs to the caller's cart."""
    item = svc.get_item(cart_item_id)
    if not item:
        raise NotFoundError("Cart item not found")

    if identity.user_id:
        owner = item["user_id"] == identity.user_id
    else:
        owner = item["session_id"] is not None and item["session_id"] == identity.session_id
    if not owner:
        raise HTTPException(status_code=403, detail="Not allowed to modify this cart item")
    return item


@router.get("", response_model=CartResponse)
def get_cart(identity: RequestIdentity = Depends(get_identity), db: Session = Depends(get_db)):
    cart = get_service(db).get_cart(identity.cart_identity())
    return cart_response(cart)


@router.get("/count", response_model=CartCountOut)
def count_items(identity: RequestIdentity = Depends(get_identity), db: Session = Depends(get_db)):
    return {"count": get_service(db).count_items(identity.cart_identity())}


@router.delete("", response_model=CartResponse)
def clear_cart(identity: RequestIdentity = Depends(get_identity), db: Session = Depends(get_db)):
    svc = get_service(db)
    cart_identity = identity.cart_identity()
    svc.clear_cart(cart_identity)
    logger.info(f"Cleared cart for {cart_identity}")
    return cart_response(svc.get_cart(cart_identity), "Cart cleared")


@router.post("/items", response_model=CartResponse, status_code=201)
def add_item(
    payload: AddToCartIn,
    identity: RequestIdentity = Depends(get_identity),
    db: Session = Depends(get_db),
):
    cart = get_service(db).add_item(
        identity.cart_identity(),
        product_id=payload.product_id,
        quantity=payload.quantity,
        variant=payload.variant,
    )
    return cart_response(cart, "Added to cart")


@router.delete("/items", response_model=CartResponse)
def remove_item(
    payload: RemoveFromCartIn,
    identity: RequestIdentity = Depends(get_identity),
    db: Session = Depends(get_db),
):
    cart = get_service(db).remove_item(identity.cart_identity(), payload.product_id)
    return cart_response(cart, "Removed from cart")


@router.patch("/items/{cart_item_id}", response_model=CartResponse)
def update_item(
    cart_item_id: int,
    payload: UpdateCartItemIn,
    identity: RequestIdentity = Depends(get_identity),
    db: Session = Depends(get_db),
):
    svc = get_service(db)
    owned_item(svc, cart_item_id, identity)
    cart = svc.update_item_quantity(cart_item_id, payload.quantity, payload.variant)
    return cart_response(cart, "Quantity updated")


@router.delete("/items/{cart_item_id}", response_model=CartResponse)
def delete_item(
    cart_item_id: int,
    identity: RequestIdentity = Depends(get_identity),
    db: Session = Depends(get_db),
):
    svc = get_service(db)
    item = owned_item(svc, cart_item_id, identity)
    cart = svc.remove_item(identity.cart_identity(), item["product_id"])
    return cart_response(cart, "Removed from cart")


@router.post("/merge", response_model=MergeCartResponse)
def merge_cart(identity: RequestIdentity = Depends(get_identity), db: Session = Depends(get_db)):
    if not identity.user_id:
        raise HTTPException(status_code=401, detail="Authentication required")
    if not identity.session_id:
        raise HTTPException(status_code=400, detail="Session information is required")

    svc = get_service(db)
    merged = svc.merge_session_into_user(identity.session_id, identity.user_id)
    if merged is None:
        cart = svc.get_cart(identity.cart_identity())
        return {**cart_response(cart, "Nothing to merge"), "merged": False}

    logger.info(f"Merged session cart {identity.session_id} into user {identity.user_id}")
    return {**cart_response(merged, "Cart merged"), "merged": True}

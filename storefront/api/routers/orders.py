# storefront/api/routers/orders.py
from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from storefront.api.deps import (
    RequestIdentity,
    get_identity,
    require_admin,
    require_user,
    verify_csrf,
)
from storefront.data.database import get_db
from storefront.domain.enums import OrderStatus
from storefront.domain.errors import NotFoundError
from storefront.domain.identity import CartIdentity
from storefront.domain.schemas import (
    CancelOrderIn,
    OrderCreate,
    OrderFilter,
    OrderListOut,
    OrderQuery,
    OrderResponse,
    OrderStatsOut,
    OrderStatusUpdate,
)
from storefront.services.cart_service import CartService
from storefront.services.notification_service import NotificationService
from storefront.services.order_service import OrderService
from storefront.utils.logging import get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/commerce/orders", tags=["orders"], dependencies=[Depends(verify_csrf)])

STATUS_EVENTS = {
    OrderStatus.SHIPPED: "shipped",
    OrderStatus.DELIVERED: "delivered",
    OrderStatus.CANCELLED: "cancelled",
}


def get_service(db: Session):
    return OrderService(db)


def ensure_access(order: dict | None, identity: RequestIdentity) -> dict:
    if not order:
        raise NotFoundError("Order not found")
    if not identity.is_admin and order["user_id"] != identity.user_id:
        raise HTTPException(status_code=403, detail="Not allowed to access this order")
    return order


@router.get("", response_model=OrderListOut)
def list_orders(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    status: OrderStatus | None = Query(None),
    sort: str = Query("created_at", pattern="^(created_at|total|status)$"),
    order: str = Query("desc", pattern="^(asc|desc)$"),
    start_date: datetime | None = Query(None),
    end_date: datetime | None = Query(None),
    min_amount: int | None = Query(None, ge=0),
    max_amount: int | None = Query(None, ge=0),
    user_id: str | None = Query(None),
    identity: RequestIdentity = Depends(require_user),
    db: Session = Depends(get_db),
):
    """
    Lists orders. Customers only ever see their own; admins may filter by user.
    """
    filters = OrderFilter(
        user_id=user_id if identity.is_admin else identity.user_id,
        start_date=start_date,
        end_date=end_date,
        min_amount=min_amount,
        max_amount=max_amount,
    )
    query = OrderQuery(page=page, limit=limit, status=status, sort=sort, order=order)
    return get_service(db).get_orders(filters, query)


@router.post("", response_model=OrderResponse, status_code=201)
def create_order(
    payload: OrderCreate,
    identity: RequestIdentity = Depends(get_identity),
    db: Session = Depends(get_db),
):
    """
    Places an order for the caller (guests allowed) and clears their cart.
    Sends the notification asynchronously.
    """
    order = get_service(db).create_order(payload, user_id=identity.user_id)
    logger.info(f"Created order {order['order_number']} for {identity.user_id or 'guest'}")

    if identity.user_id or identity.session_id:
        CartService(db).clear_cart(CartIdentity(user_id=identity.user_id, session_id=identity.session_id))

    NotificationService.send_order_notification("created", order)
    return {"order": order, "message": "Order placed"}


@router.get("/stats", response_model=OrderStatsOut)
def order_stats(
    identity: RequestIdentity = Depends(require_admin),
    db: Session = Depends(get_db),
):
    return get_service(db).get_order_stats()


@router.get("/number/{order_number}", response_model=OrderResponse)
def get_order_by_number(
    order_number: str,
    identity: RequestIdentity = Depends(require_user),
    db: Session = Depends(get_db),
):
    order = ensure_access(get_service(db).get_order_by_number(order_number), identity)
    return {"order": order}


@router.get("/{order_id}", response_model=OrderResponse)
def get_order(
    order_id: int,
    identity: RequestIdentity = Depends(require_user),
    db: Session = Depends(get_db),
):
    order = ensure_access(get_service(db).get_order_by_id(order_id), identity)
    return {"order": order}


@router.post("/{order_id}/cancel", response_model=OrderResponse)
def cancel_order(
    order_id: int,
    payload: CancelOrderIn | None = None,
    identity: RequestIdentity = Depends(require_user),
    db: Session = Depends(get_db),
):
    svc = get_service(db)
    ensure_access(svc.get_order_by_id(order_id), identity)

    order = svc.cancel_order(
        order_id,
        reason=payload.reason if payload else None,
        by_admin=identity.is_admin,
    )
    logger.info(f"Order {order['order_number']} cancelled by {identity.user_id}")

    NotificationService.send_order_notification("cancelled", order)
    return {"order": order, "message": "Order cancelled"}


@router.patch("/{order_id}/status", response_model=OrderResponse)
def update_status(
    order_id: int,
    payload: OrderStatusUpdate,
    identity: RequestIdentity = Depends(require_admin),
    db: Session = Depends(get_db),
):
    svc = get_service(db)

    if payload.status == OrderStatus.SHIPPED:
        order = svc.update_shipping(order_id, payload.tracking_number, payload.carrier)
    elif payload.status == OrderStatus.DELIVERED:
        order = svc.complete_order(order_id)
    elif payload.status == OrderStatus.CANCELLED:
        # goes through cancellation so that stock is restored
        order = svc.cancel_order(order_id, reason=payload.reason, by_admin=True)
    else:
        order = svc.update_order(order_id, payload.model_dump(exclude={"reason"}, exclude_unset=True))

    if order is None:
        raise NotFoundError("Order not found")

    logger.info(f"Order {order['order_number']} moved to {payload.status.value} by {identity.user_id}")

    event = STATUS_EVENTS.get(payload.status)
    if event:
        NotificationService.send_order_notification(event, order)
    return {"order": order, "message": "Order status updated"}

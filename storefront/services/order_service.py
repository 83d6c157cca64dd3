# storefront/services/order_service.py
import math
from datetime import datetime, time, timedelta, timezone
from typing import Any, Dict

from sqlalchemy.orm import Session

from storefront.data.database import atomic
from storefront.data.models.order import OrderItemModel, OrderModel
from storefront.domain import pricing
from storefront.domain.enums import (
    ADMIN_CANCELLABLE,
    CLOSED_STATUSES,
    COMPLETED_STATUSES,
    CUSTOMER_CANCELLABLE,
    OPEN_STATUSES,
    OrderStatus,
    ProductStatus,
)
from storefront.domain.errors import (
    ConflictError,
    InputValidationError,
    InvalidTransitionError,
    NotFoundError,
)
from storefront.domain.schemas import OrderCreate, OrderFilter, OrderQuery, OrderUpdate
from storefront.repos.order_repo import OrderRepo
from storefront.repos.product_repo import ProductRepo
from storefront.utils.retry import integrity_retry

UPDATABLE_FIELDS = ("status", "tracking_number", "carrier", "notes")


def order_to_dict(order: OrderModel) -> Dict[str, Any]:
    return {
        "id": order.id,
        "order_number": order.order_number,
        "user_id": order.user_id,
        "status": order.status,
        "items": [
            {
                "id": i.id,
                "product_id": i.product_id,
                "name": i.name,
                "sku": i.sku,
                "price": i.price,
                "quantity": i.quantity,
                "variant": i.variant or {},
            }
            for i in order.items
        ],
        "subtotal": order.subtotal,
        "tax": order.tax,
        "shipping": order.shipping,
        "discount": order.discount,
        "total": order.total,
        "shipping_address": order.shipping_address,
        "billing_address": order.billing_address,
        "tracking_number": order.tracking_number,
        "carrier": order.carrier,
        "notes": order.notes,
        "created_at": order.created_at,
        "updated_at": order.updated_at,
    }


def _append_note(notes: str | None, line: str) -> str:
    return f"{notes}\n{line}" if notes else line


class OrderService:
    """
    Order use cases.

    An order keeps its own copy of every purchased line, so it does not
    depend on the cart or on later product edits. Creating an order takes
    stock, cancelling it gives the stock back; both happen in the same
    transaction as the order row itself.
    """

    def __init__(self, db: Session):
        self.db = db
        self.repo = OrderRepo(db)
        self.products = ProductRepo(db)

    # commands
    @integrity_retry()
    def create_order(self, payload: OrderCreate, user_id: str | None = None) -> Dict[str, Any]:
        """
        1. Re-reads every product and checks it is on sale and in stock
        2. Draws the next order number for today
        3. Stores the order with a snapshot of its lines, status PENDING
        4. Takes the ordered quantities off stock

        Any failure rolls back all four steps.
        """
        with atomic(self.db):
            snapshots = []
            for line in payload.items:
                product = self.products.get_product(line.product_id)

                if not product:
                    raise NotFoundError(f"Product not found: {line.name}")
                if product.status != ProductStatus.ACTIVE.value:
                    raise NotFoundError(f"Product is not available for sale: {product.name}")
                if product.track_stock and product.stock < line.quantity:
                    raise ConflictError(
                        f"Insufficient stock: {product.name} (in stock: {product.stock})"
                    )

                snapshots.append(
                    OrderItemModel(
                        product_id=product.id,
                        name=product.name,
                        sku=product.sku or line.sku,
                        price=line.price,
                        quantity=line.quantity,
                        variant=line.variant or {},
                    )
                )

            today = datetime.now(timezone.utc).date()
            sequence = self.repo.next_sequence(pricing.order_day(today))

            order = self.repo.add_order(
                OrderModel(
                    order_number=pricing.format_order_number(today, sequence),
                    user_id=user_id,
                    status=OrderStatus.PENDING.value,
                    subtotal=payload.subtotal,
                    tax=payload.tax,
                    shipping=payload.shipping,
                    discount=payload.discount,
                    total=payload.total,
                    shipping_address=payload.shipping_address.model_dump(),
                    billing_address=payload.billing_address.model_dump() if payload.billing_address else None,
                    notes=payload.notes,
                    items=snapshots,
                )
            )

            for line in payload.items:
                product = self.products.get_product(line.product_id)
                if not product.track_stock:
                    continue
                # the read above may be stale; only the conditional decrement is authoritative
                if self.products.decrement_stock(line.product_id, line.quantity) == 0:
                    raise ConflictError(f"Insufficient stock: {product.name}")

            order_id = order.id

        return self.get_order_by_id(order_id)

    def cancel_order(
        self,
        order_id: int,
        reason: str | None = None,
        by_admin: bool = False,
    ) -> Dict[str, Any]:
        with atomic(self.db):
            order = self.repo.get_order(order_id)
            if not order:
                raise NotFoundError("Order not found")

            allowed = ADMIN_CANCELLABLE if by_admin else CUSTOMER_CANCELLABLE
            current = OrderStatus(order.status)

            if current not in allowed:
                if current == OrderStatus.PROCESSING:
                    raise InvalidTransitionError(
                        "Orders in processing can only be cancelled through customer support"
                    )
                raise InvalidTransitionError("Order cannot be cancelled in its current state")

            note = f"Cancellation reason: {reason}" if reason else "Order cancelled"
            rowcount = self.repo.transition_status(
                order.id,
                from_statuses=[s.value for s in allowed],
                to_status=OrderStatus.CANCELLED.value,
                notes=_append_note(order.notes, note),
            )
            if rowcount == 0:
                # another request changed the status since it was read
                raise InvalidTransitionError("Order cannot be cancelled in its current state")

            for item in order.items:
                self.products.increment_stock(item.product_id, item.quantity)

        return self.get_order_by_id(order_id)

    def update_order(self, order_id: int, changes: OrderUpdate | Dict[str, Any]) -> Dict[str, Any]:
        """Plain field update. Callers are responsible for allowed transitions."""
        if isinstance(changes, OrderUpdate):
            changes = changes.model_dump(exclude_unset=True)

        with atomic(self.db):
            order = self.repo.get_order(order_id)
            if not order:
                raise NotFoundError("Order not found")

            for field in UPDATABLE_FIELDS:
                if field in changes and changes[field] is not None:
                    value = changes[field]
                    setattr(order, field, value.value if isinstance(value, OrderStatus) else value)

        return self.get_order_by_id(order_id)

    def update_shipping(self, order_id: int, tracking_number: str | None, carrier: str | None) -> Dict[str, Any]:
        if not tracking_number or not carrier:
            raise InputValidationError("Shipping requires a tracking number and a carrier")

        return self.update_order(
            order_id,
            {
                "status": OrderStatus.SHIPPED,
                "tracking_number": tracking_number,
                "carrier": carrier,
            },
        )

    def complete_order(self, order_id: int) -> Dict[str, Any]:
        return self.update_order(order_id, {"status": OrderStatus.DELIVERED})

    # queries
    def get_order_by_id(self, order_id: int) -> Dict[str, Any] | None:
        order = self.repo.get_order(order_id)
        return order_to_dict(order) if order else None

    def get_order_by_number(self, order_number: str) -> Dict[str, Any] | None:
        order = self.repo.get_order_by_number(order_number)
        return order_to_dict(order) if order else None

    def get_orders(self, filters: OrderFilter | None = None, query: OrderQuery | None = None) -> Dict[str, Any]:
        filters = filters or OrderFilter()
        query = query or OrderQuery()

        if query.status and not filters.status:
            filters = filters.model_copy(update={"status": query.status})

        orders, total = self.repo.find_orders(
            filters,
            sort=query.sort,
            descending=query.order == "desc",
            offset=(query.page - 1) * query.limit,
            limit=query.limit,
        )
        return {
            "orders": [order_to_dict(o) for o in orders],
            "pagination": {
                "page": query.page,
                "limit": query.limit,
                "total": total,
                "total_pages": math.ceil(total / query.limit),
            },
        }

    def get_order_stats(self) -> Dict[str, int]:
        closed = [s.value for s in CLOSED_STATUSES]
        today_start = datetime.combine(datetime.now(timezone.utc).date(), time.min, tzinfo=timezone.utc)

        _, revenue, average = self.repo.revenue(exclude=closed)
        today_count, today_revenue, _ = self.repo.revenue(
            exclude=closed,
            since=today_start,
            until=today_start + timedelta(days=1),
        )

        return {
            "total_orders": self.repo.count_by_status(),
            "pending_orders": self.repo.count_by_status([s.value for s in OPEN_STATUSES]),
            "completed_orders": self.repo.count_by_status([s.value for s in COMPLETED_STATUSES]),
            "cancelled_orders": self.repo.count_by_status(closed),
            "total_revenue": int(revenue or 0),
            "average_order_value": round(average or 0),
            "today_orders": today_count,
            "today_revenue": int(today_revenue or 0),
        }

# storefront/domain/enums.py
from enum import Enum


class ProductStatus(str, Enum):
    DRAFT = "DRAFT"
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"
    ARCHIVED = "ARCHIVED"


class OrderStatus(str, Enum):
    PENDING = "PENDING"
    PAYMENT_PENDING = "PAYMENT_PENDING"
    PAYMENT_FAILED = "PAYMENT_FAILED"
    PROCESSING = "PROCESSING"
    SHIPPED = "SHIPPED"
    DELIVERED = "DELIVERED"
    CANCELLED = "CANCELLED"
    REFUNDED = "REFUNDED"


class UserType(str, Enum):
    CUSTOMER = "CUSTOMER"
    ADMIN = "ADMIN"


# customers may cancel only before processing starts, administrators also during it
CUSTOMER_CANCELLABLE = (
    OrderStatus.PENDING,
    OrderStatus.PAYMENT_PENDING,
    OrderStatus.PAYMENT_FAILED,
)
ADMIN_CANCELLABLE = CUSTOMER_CANCELLABLE + (OrderStatus.PROCESSING,)

OPEN_STATUSES = (OrderStatus.PENDING, OrderStatus.PAYMENT_PENDING, OrderStatus.PROCESSING)
COMPLETED_STATUSES = (OrderStatus.DELIVERED,)
CLOSED_STATUSES = (OrderStatus.CANCELLED, OrderStatus.REFUNDED)

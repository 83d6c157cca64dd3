# storefront/domain/pricing.py
from datetime import date
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Dict

from storefront.utils.settings import FREE_SHIPPING_THRESHOLD, SHIPPING_FEE, TAX_RATE

EMPTY_SUMMARY = {"item_count": 0, "subtotal": 0, "tax": 0, "shipping": 0, "total": 0}


def calculate_tax(subtotal: int) -> int:
    return int((Decimal(subtotal) * TAX_RATE).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def calculate_shipping(subtotal: int) -> int:
    return 0 if subtotal >= FREE_SHIPPING_THRESHOLD else SHIPPING_FEE


def summarize(cart: Dict[str, Any] | None) -> Dict[str, int]:
    """
    Totals for a cart view as returned by CartService.get_cart.

    Prices are read from the product snapshot of each line, so the result is
    always computed from current catalog prices and never stored.
    """
    if not cart or not cart.get("items"):
        return dict(EMPTY_SUMMARY)

    item_count = sum(i["quantity"] for i in cart["items"])
    subtotal = sum(i["product"]["price"] * i["quantity"] for i in cart["items"])
    tax = calculate_tax(subtotal)
    shipping = calculate_shipping(subtotal)

    return {
        "item_count": item_count,
        "subtotal": subtotal,
        "tax": tax,
        "shipping": shipping,
        "total": subtotal + tax + shipping,
    }


def order_day(today: date) -> str:
    return today.strftime("%Y%m%d")


def format_order_number(today: date, sequence: int) -> str:
    # ORD + YYYYMMDD + 4 digit daily sequence, e.g. ORD202610170001
    return f"ORD{order_day(today)}{sequence:04d}"

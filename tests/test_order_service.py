import re
from datetime import datetime, timezone
from types import SimpleNamespace

import pytest
from pydantic import ValidationError
from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError

from storefront.data.models import OrderModel
from storefront.domain.enums import OrderStatus, ProductStatus
from storefront.domain.errors import (
    ConflictError,
    InputValidationError,
    InvalidTransitionError,
    NotFoundError,
)
from storefront.domain.schemas import OrderCreate, OrderFilter, OrderQuery
from storefront.repos.order_repo import OrderRepo
from storefront.repos.product_repo import ProductRepo
from storefront.services.order_service import OrderService


@pytest.fixture()
def place_order(db, order_payload):
    def _place(*lines, user_id="user-1", **extra):
        return OrderService(db).create_order(OrderCreate(**order_payload(*lines, **extra)), user_id=user_id)

    return _place


def _stock(db, product):
    db.refresh(product)
    return product.stock


def _order_count(db):
    return db.execute(select(func.count(OrderModel.id))).scalar_one()


def _set_status(db, order_id, status):
    db.query(OrderModel).filter(OrderModel.id == order_id).update({"status": status.value})
    db.commit()


class TestCreateOrder:
    def test_creates_pending_order_and_takes_stock(self, db, make_product, place_order):
        product = make_product(stock=10, price=1000)

        order = place_order((product, 2))

        assert order["status"] == OrderStatus.PENDING.value
        today = datetime.now(timezone.utc).strftime("%Y%m%d")
        assert re.fullmatch(rf"ORD{today}\d{{4}}", order["order_number"])
        assert order["user_id"] == "user-1"
        assert order["subtotal"] == 2000
        assert order["total"] == 2000 + 200 + 3000
        assert _stock(db, product) == 8

    def test_order_numbers_are_sequential_per_day(self, db, make_product, place_order):
        product = make_product(stock=10)

        first = place_order((product, 1))
        with pytest.raises(ConflictError):
            place_order((product, 50))
        second = place_order((product, 1))

        assert first["order_number"].endswith("0001")
        assert second["order_number"].endswith("0002")

    def test_snapshot_is_independent_of_product_changes(self, db, make_product, place_order):
        product = make_product(name="Linen shirt", sku="SHIRT-1", price=1000)
        order = place_order((product, 1))

        product.name = "Renamed shirt"
        product.sku = "SHIRT-2"
        product.price = 9999
        db.commit()

        item = OrderService(db).get_order_by_id(order["id"])["items"][0]
        assert item["name"] == "Linen shirt"
        assert item["sku"] == "SHIRT-1"
        assert item["price"] == 1000

    def test_insufficient_stock_persists_nothing(self, db, make_product, place_order):
        product = make_product(stock=3)

        with pytest.raises(ConflictError, match=r"Insufficient stock: Linen shirt \(in stock: 3\)"):
            place_order((product, 5))

        assert _order_count(db) == 0
        assert _stock(db, product) == 3

    def test_one_bad_line_rejects_the_whole_order(self, db, make_product, place_order):
        plenty = make_product(name="Plenty", stock=10)
        scarce = make_product(name="Scarce", stock=1)

        with pytest.raises(ConflictError, match="Scarce"):
            place_order((plenty, 2), (scarce, 2))

        assert _order_count(db) == 0
        assert _stock(db, plenty) == 10

    def test_stale_stock_read_cannot_oversell(self, db, make_product, place_order, monkeypatch):
        product = make_product(stock=3)
        stale = SimpleNamespace(
            id=product.id,
            name=product.name,
            sku=product.sku,
            status=ProductStatus.ACTIVE.value,
            track_stock=True,
            stock=100,
        )
        monkeypatch.setattr(ProductRepo, "get_product", lambda self, product_id: stale)

        with pytest.raises(ConflictError, match="Insufficient stock"):
            place_order((product, 5))

        monkeypatch.undo()
        assert _order_count(db) == 0
        assert _stock(db, product) == 3

    def test_missing_product(self, db, place_order):
        ghost = SimpleNamespace(id=999, name="Linen shirt", sku=None, price=1000)

        with pytest.raises(NotFoundError, match="Product not found: Linen shirt"):
            place_order((ghost, 1))

    def test_inactive_product(self, db, make_product, place_order):
        product = make_product(name="Retired", status=ProductStatus.INACTIVE)
        with pytest.raises(NotFoundError, match="Retired"):
            place_order((product, 1))

    def test_untracked_product_stock_untouched(self, db, make_product, place_order):
        product = make_product(stock=0, track_stock=False)
        place_order((product, 4))
        assert _stock(db, product) == 0

    def test_guest_order(self, db, make_product, place_order):
        product = make_product()
        assert place_order((product, 1), user_id=None)["user_id"] is None


class TestOrderCreateValidation:
    def test_totals_must_add_up(self, make_product, order_payload):
        product = make_product()
        payload = order_payload((product, 1))
        payload["total"] += 1
        with pytest.raises(ValidationError):
            OrderCreate(**payload)

    def test_requires_items(self, order_payload):
        payload = order_payload()
        with pytest.raises(ValidationError):
            OrderCreate(**payload)

    def test_quantity_range(self, make_product, order_payload):
        product = make_product()
        with pytest.raises(ValidationError):
            OrderCreate(**order_payload((product, 100)))


class TestCancelOrder:
    def test_cancel_restores_stock(self, db, make_product, place_order):
        a = make_product(name="A", stock=10)
        b = make_product(name="B", stock=4)
        order = place_order((a, 2), (b, 4))
        assert _stock(db, a) == 8 and _stock(db, b) == 0

        cancelled = OrderService(db).cancel_order(order["id"], "customer request")

        assert cancelled["status"] == OrderStatus.CANCELLED.value
        assert "Cancellation reason: customer request" in cancelled["notes"]
        assert _stock(db, a) == 10
        assert _stock(db, b) == 4

    def test_cancel_appends_to_existing_notes(self, db, make_product, place_order):
        product = make_product()
        order = place_order((product, 1), notes="Leave at the door")

        cancelled = OrderService(db).cancel_order(order["id"])
        assert cancelled["notes"] == "Leave at the door\nOrder cancelled"

    def test_second_cancel_is_rejected(self, db, make_product, place_order):
        product = make_product(stock=10)
        order = place_order((product, 2))
        svc = OrderService(db)
        svc.cancel_order(order["id"])

        with pytest.raises(InvalidTransitionError):
            svc.cancel_order(order["id"])
        assert _stock(db, product) == 10

    def test_missing_order(self, db):
        with pytest.raises(NotFoundError, match="Order not found"):
            OrderService(db).cancel_order(999)

    @pytest.mark.parametrize(
        "status, by_admin, allowed",
        [
            (OrderStatus.PENDING, False, True),
            (OrderStatus.PAYMENT_PENDING, False, True),
            (OrderStatus.PAYMENT_FAILED, False, True),
            (OrderStatus.PROCESSING, False, False),
            (OrderStatus.PROCESSING, True, True),
            (OrderStatus.SHIPPED, True, False),
            (OrderStatus.DELIVERED, True, False),
            (OrderStatus.REFUNDED, True, False),
            (OrderStatus.CANCELLED, True, False),
        ],
    )
    def test_cancellation_gating(self, db, make_product, place_order, status, by_admin, allowed):
        product = make_product(stock=10)
        order = place_order((product, 3))
        _set_status(db, order["id"], status)
        svc = OrderService(db)

        if allowed:
            assert svc.cancel_order(order["id"], by_admin=by_admin)["status"] == OrderStatus.CANCELLED.value
            assert _stock(db, product) == 10
        else:
            with pytest.raises(InvalidTransitionError):
                svc.cancel_order(order["id"], by_admin=by_admin)
            assert svc.get_order_by_id(order["id"])["status"] == status.value
            assert _stock(db, product) == 7

    def test_processing_points_customer_to_support(self, db, make_product, place_order):
        product = make_product()
        order = place_order((product, 1))
        _set_status(db, order["id"], OrderStatus.PROCESSING)

        with pytest.raises(InvalidTransitionError, match="customer support"):
            OrderService(db).cancel_order(order["id"])


class TestStatusUpdates:
    def test_ship_requires_tracking_number(self, db, make_product, place_order):
        product = make_product()
        order = place_order((product, 1))
        svc = OrderService(db)

        with pytest.raises(InputValidationError):
            svc.update_shipping(order["id"], None, "UPS")

        shipped = svc.update_shipping(order["id"], "1Z999", "UPS")
        assert shipped["status"] == OrderStatus.SHIPPED.value
        assert shipped["tracking_number"] == "1Z999"
        assert shipped["carrier"] == "UPS"

    def test_complete_order(self, db, make_product, place_order):
        product = make_product()
        order = place_order((product, 1))
        assert OrderService(db).complete_order(order["id"])["status"] == OrderStatus.DELIVERED.value

    def test_update_order_patches_given_fields(self, db, make_product, place_order):
        product = make_product()
        order = place_order((product, 1), notes="original")

        updated = OrderService(db).update_order(order["id"], {"status": OrderStatus.PROCESSING})
        assert updated["status"] == OrderStatus.PROCESSING.value
        assert updated["notes"] == "original"

    def test_update_missing_order(self, db):
        with pytest.raises(NotFoundError):
            OrderService(db).update_order(999, {"notes": "x"})


class TestOrderQueries:
    def test_lookup_by_number(self, db, make_product, place_order):
        product = make_product()
        order = place_order((product, 1))
        svc = OrderService(db)

        assert svc.get_order_by_number(order["order_number"])["id"] == order["id"]
        assert svc.get_order_by_number("ORD000000000000") is None
        assert svc.get_order_by_id(999) is None

    def test_filter_sort_and_paginate(self, db, make_product, place_order):
        product = make_product(stock=50, price=1000)
        for quantity in (1, 3, 2):
            place_order((product, quantity), user_id="user-1")
        place_order((product, 5), user_id="user-2")
        svc = OrderService(db)

        result = svc.get_orders(OrderFilter(user_id="user-1"), OrderQuery(sort="total", order="asc", limit=2))
        assert [o["subtotal"] for o in result["orders"]] == [1000, 2000]
        assert result["pagination"] == {"page": 1, "limit": 2, "total": 3, "total_pages": 2}

        second_page = svc.get_orders(
            OrderFilter(user_id="user-1"), OrderQuery(sort="total", order="asc", limit=2, page=2)
        )
        assert [o["subtotal"] for o in second_page["orders"]] == [3000]

    def test_filter_by_status_and_amount(self, db, make_product, place_order):
        product = make_product(stock=50, price=1000)
        small = place_order((product, 1))
        place_order((product, 10))
        svc = OrderService(db)
        svc.cancel_order(small["id"])

        cancelled = svc.get_orders(query=OrderQuery(status=OrderStatus.CANCELLED))
        assert [o["id"] for o in cancelled["orders"]] == [small["id"]]

        large = svc.get_orders(OrderFilter(min_amount=10000))
        assert len(large["orders"]) == 1

    def test_stats(self, db, make_product, place_order):
        product = make_product(stock=50, price=10000)
        kept = place_order((product, 1))
        dropped = place_order((product, 2))
        delivered = place_order((product, 3))
        svc = OrderService(db)
        svc.cancel_order(dropped["id"])
        svc.complete_order(delivered["id"])

        stats = svc.get_order_stats()

        assert stats["total_orders"] == 3
        assert stats["pending_orders"] == 1
        assert stats["completed_orders"] == 1
        assert stats["cancelled_orders"] == 1
        assert stats["total_revenue"] == kept["total"] + delivered["total"]
        assert stats["average_order_value"] == round((kept["total"] + delivered["total"]) / 2)
        assert stats["today_orders"] == 2
        assert stats["today_revenue"] == kept["total"] + delivered["total"]

    def test_stats_without_orders(self, db):
        stats = OrderService(db).get_order_stats()
        assert stats["total_orders"] == 0
        assert stats["total_revenue"] == 0
        assert stats["average_order_value"] == 0


class TestConcurrentChanges:
    def test_cancel_losing_status_race_keeps_stock(self, db, make_product, place_order, monkeypatch):
        product = make_product(stock=10)
        order = place_order((product, 2))

        original = OrderRepo.transition_status

        def shipped_first(self, order_id, from_statuses, to_status, notes):
            # an admin ships the order between our status read and our update
            self.db.execute(
                update(OrderModel)
                .where(OrderModel.id == order_id)
                .values(status=OrderStatus.SHIPPED.value)
                .execution_options(synchronize_session=False)
            )
            return original(self, order_id, from_statuses, to_status, notes)

        monkeypatch.setattr(OrderRepo, "transition_status", shipped_first)

        with pytest.raises(InvalidTransitionError, match="cannot be cancelled"):
            OrderService(db).cancel_order(order["id"])

        monkeypatch.undo()
        assert _stock(db, product) == 8
        assert OrderService(db).get_order_by_id(order["id"])["status"] != OrderStatus.CANCELLED.value

    def test_order_number_collision_is_retried(self, db, make_product, place_order, monkeypatch):
        product = make_product(stock=10)

        original = OrderRepo.next_sequence
        calls = {"count": 0}

        def collide_once(self, day):
            calls["count"] += 1
            if calls["count"] == 1:
                raise IntegrityError("INSERT INTO order_sequences", {}, Exception("duplicate day"))
            return original(self, day)

        monkeypatch.setattr(OrderRepo, "next_sequence", collide_once)

        order = place_order((product, 2))

        assert calls["count"] == 2
        assert order["order_number"].endswith("0001")
        assert _order_count(db) == 1
        assert _stock(db, product) == 8

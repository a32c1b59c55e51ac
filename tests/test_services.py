"""Tests for the domain operations."""

import threading

import pytest

import services
from errors import InsufficientStockError, NotFoundError, ValidationError
from schemas import OrderPayload, ProductPayload, UserPayload
from store import find_by_id


def order(user_id, *lines):
    return OrderPayload(
        user_id=user_id,
        line_items=[{"product_id": pid, "quantity": qty} for pid, qty in lines],
    )


class TestUsers:
    def test_filter_city_case_insensitive(self, store):
        users = services.list_users(store, city="rio")
        assert [u.name for u in users] == ["Maria Santos"]

    def test_filter_min_age(self, store):
        users = services.list_users(store, min_age=29)
        assert [u.id for u in users] == [2, 4]

    def test_filter_skips_missing_city(self, store):
        services.create_user(store, UserPayload(name="No City", email="n@c.com"))
        assert len(services.list_users(store, city="o")) == 4

    def test_create_requires_name_and_email(self, store):
        with pytest.raises(ValidationError):
            services.create_user(store, UserPayload(name="Only Name"))
        with pytest.raises(ValidationError):
            services.create_user(store, UserPayload(name="", email="a@b.c"))

    def test_create_assigns_id_and_timestamp(self, store):
        user = services.create_user(store, UserPayload(name="New", email="new@x.com", age=40))
        assert user.id == 5
        assert user.city is None
        assert user.created_at.tzinfo is not None
        assert store.users[-1] is user

    def test_partial_update_keeps_absent_fields(self, store):
        user = services.update_user(store, 1, UserPayload(city="Recife"))
        assert user.city == "Recife"
        assert user.name == "João Silva"
        assert user.age == 28

    def test_update_age_zero_is_applied(self, store):
        user = services.update_user(store, "2", UserPayload(age=0))
        assert user.age == 0

    def test_update_can_clear_optional_field(self, store):
        user = services.update_user(store, 1, UserPayload(city=None))
        assert user.city is None

    def test_update_rejects_null_name(self, store):
        with pytest.raises(ValidationError):
            services.update_user(store, 1, UserPayload(name=None))

    def test_update_missing(self, store):
        with pytest.raises(NotFoundError):
            services.update_user(store, 42, UserPayload(name="x"))

    def test_delete(self, store):
        removed = services.delete_user(store, 3)
        assert removed.name == "Pedro Oliveira"
        assert find_by_id(store.users, 3) is None
        with pytest.raises(NotFoundError):
            services.delete_user(store, 3)


class TestProducts:
    def test_filters(self, store):
        assert [p.id for p in services.list_products(store, category="ELEC")] == [1, 2, 4]
        assert [p.id for p in services.list_products(store, available=False)] == [4]
        assert [p.id for p in services.list_products(store, min_price=1000, max_price=2000)] == [1, 4]

    def test_create_without_stock_is_unavailable(self, empty_store):
        product = services.create_product(
            empty_store, ProductPayload(name="Lamp", price=20, category="Home", stock=0)
        )
        assert product.id == 1
        assert product.available is False
        assert product.description == ""

    def test_stock_update_flips_available(self, empty_store):
        product = services.create_product(
            empty_store, ProductPayload(name="Lamp", price=20, category="Home", stock=0)
        )
        services.update_product(empty_store, product.id, ProductPayload(stock=5))
        assert product.available is True
        services.update_product(empty_store, product.id, ProductPayload(stock=0))
        assert product.available is False

    def test_create_price_zero_allowed(self, empty_store):
        product = services.create_product(
            empty_store, ProductPayload(name="Sample", price=0, category="Free")
        )
        assert product.price == 0

    def test_create_requires_fields(self, empty_store):
        with pytest.raises(ValidationError):
            services.create_product(empty_store, ProductPayload(name="x", category="y"))

    def test_update_empty_description_persists(self, store):
        product = services.update_product(store, 1, ProductPayload(description=""))
        assert product.description == ""
        assert product.name == "Galaxy Smartphone"

    def test_update_price_zero_persists(self, store):
        product = services.update_product(store, 3, ProductPayload(price=0))
        assert product.price == 0

    def test_update_rejects_null_price(self, store):
        with pytest.raises(ValidationError):
            services.update_product(store, 3, ProductPayload(price=None))
        assert find_by_id(store.products, 3).price == 199.99

    def test_get_missing(self, store):
        with pytest.raises(NotFoundError):
            services.get_product(store, "nope")


class TestPlaceOrder:
    def test_decrements_stock_and_totals(self, small_store):
        placed = services.place_order(small_store, order(1, (1, 2)))
        widget = find_by_id(small_store.products, 1)
        assert widget.stock == 3
        assert placed.total == 20.00
        assert placed.line_items[0].unit_price == 10.00
        assert placed.status.value == "processing"
        assert placed.delivered_at is None
        assert placed.id == 1

    def test_total_rounded(self, small_store):
        find_by_id(small_store.products, 1).price = 0.1
        placed = services.place_order(small_store, order(1, (1, 3)))
        assert placed.total == 0.3

    def test_unit_price_is_a_snapshot(self, small_store):
        placed = services.place_order(small_store, order(1, (1, 1)))
        services.update_product(small_store, 1, ProductPayload(price=99))
        assert placed.line_items[0].unit_price == 10.00

    def test_last_unit_makes_product_unavailable(self, small_store):
        services.place_order(small_store, order(1, (2, 1)))
        assert find_by_id(small_store.products, 2).available is False

    def test_requires_user_and_items(self, small_store):
        with pytest.raises(ValidationError):
            services.place_order(small_store, OrderPayload(user_id=1, line_items=[]))
        with pytest.raises(ValidationError):
            services.place_order(small_store, OrderPayload(line_items=[{"product_id": 1, "quantity": 1}]))

    def test_unknown_user(self, small_store):
        with pytest.raises(NotFoundError):
            services.place_order(small_store, order(7, (1, 1)))
        assert find_by_id(small_store.products, 1).stock == 5

    def test_unknown_product_keeps_earlier_decrements(self, small_store):
        with pytest.raises(NotFoundError) as excinfo:
            services.place_order(small_store, order(1, (1, 2), (99, 1)))
        assert "99" in str(excinfo.value)
        # Earlier line items are not rolled back.
        assert find_by_id(small_store.products, 1).stock == 3
        assert small_store.orders == []

    def test_insufficient_stock(self, small_store):
        with pytest.raises(InsufficientStockError) as excinfo:
            services.place_order(small_store, order(1, (1, 1), (2, 2)))
        assert "Gadget" in str(excinfo.value)
        assert find_by_id(small_store.products, 1).stock == 4
        assert find_by_id(small_store.products, 2).stock == 1

    def test_atomic_failure_changes_nothing(self, small_store):
        with pytest.raises(NotFoundError):
            services.place_order(small_store, order(1, (1, 2), (99, 1)), atomic=True)
        assert find_by_id(small_store.products, 1).stock == 5

    def test_atomic_sums_repeated_products(self, small_store):
        with pytest.raises(InsufficientStockError):
            services.place_order(small_store, order(1, (1, 3), (1, 3)), atomic=True)
        assert find_by_id(small_store.products, 1).stock == 5

    def test_atomic_success(self, small_store):
        placed = services.place_order(small_store, order(1, (1, 2), (2, 1)), atomic=True)
        assert placed.total == 22.50
        assert find_by_id(small_store.products, 1).stock == 3
        assert find_by_id(small_store.products, 2).stock == 0

    def test_concurrent_orders_do_not_oversell(self, small_store):
        errors = []
        placed = []

        def buy():
            try:
                placed.append(services.place_order(small_store, order(1, (2, 1))))
            except InsufficientStockError as exc:
                errors.append(exc)

        threads = [threading.Thread(target=buy) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(placed) == 1
        assert len(errors) == 7
        assert find_by_id(small_store.products, 2).stock == 0


class TestOrderStatus:
    def test_delivered_sets_timestamp(self, store):
        updated = services.update_order_status(store, 2, "delivered")
        assert updated.status.value == "delivered"
        assert updated.delivered_at is not None

    def test_cancel_after_delivery_keeps_timestamp(self, store):
        delivered = services.update_order_status(store, 2, "delivered")
        stamp = delivered.delivered_at
        cancelled = services.update_order_status(store, 2, "cancelled")
        assert cancelled.status.value == "cancelled"
        assert cancelled.delivered_at == stamp

    def test_any_order_of_transitions(self, store):
        assert services.update_order_status(store, 1, "processing").status.value == "processing"

    def test_invalid_status_lists_allowed(self, store):
        with pytest.raises(ValidationError) as excinfo:
            services.update_order_status(store, 1, "lost")
        message = str(excinfo.value)
        for status in ("processing", "shipped", "delivered", "cancelled"):
            assert status in message

    def test_missing_order(self, store):
        with pytest.raises(NotFoundError):
            services.update_order_status(store, 10, "shipped")

    def test_list_filters(self, store):
        assert [o.id for o in services.list_orders(store, user_id=1)] == [1]
        assert [o.id for o in services.list_orders(store, status="SHIPPED")] == [3]
        assert [o.id for o in services.list_orders(store, user_id="2")] == [2]
        assert services.list_orders(store, user_id="abc") == []
        assert len(services.list_orders(store, user_id="")) == 3


class TestStats:
    def test_no_orders(self, empty_store):
        stats = services.compute_stats(empty_store)
        assert stats.total_orders == 0
        assert stats.total_revenue == 0
        assert stats.average_order_value == 0
        assert stats.orders_by_status == {
            "processing": 0,
            "shipped": 0,
            "delivered": 0,
            "cancelled": 0,
        }

    def test_sample_data(self, store):
        stats = services.compute_stats(store)
        assert stats.total_users == 4
        assert stats.total_products == 5
        assert stats.total_orders == 3
        assert stats.total_revenue == 5099.94
        assert stats.average_order_value == 1699.98
        assert stats.orders_by_status["delivered"] == 1
        assert stats.orders_by_status["cancelled"] == 0

"""Application tests for stock movement across the order lifecycle."""

import pytest
from commerce.catalogue.product import Product
from commerce.order.order import Order
from commerce.order.state_machine import OrderStatus
from protean import current_domain


def _red_stock(product_id):
    product = current_domain.repository_for(Product).get(product_id)
    return product.find_variant(color_code="#FF0000", size="38").stock, product.stock_total


@pytest.fixture()
def red_order(place_order, red_sneaker):
    result = place_order(
        [{"product_id": str(red_sneaker.id), "quantity": 2, "size": "38", "color_code": "#FF0000"}]
    )
    return result["order_id"]


class TestVariantStockLifecycle:
    def test_approval_takes_stock_and_cancellation_gives_it_back(
        self, red_order, red_sneaker, approve_payment, advance_order
    ):
        assert _red_stock(red_sneaker.id) == (5, 7)

        approve_payment(red_order)
        assert _red_stock(red_sneaker.id) == (3, 5)

        advance_order(red_order, "CANCELLED", cancellation_reason="Cliente canceló")
        assert _red_stock(red_sneaker.id) == (5, 7)

        order = current_domain.repository_for(Order).get(red_order)
        assert order.status == OrderStatus.CANCELLED.value

    def test_cancelling_a_pending_order_leaves_stock_alone(self, red_order, red_sneaker, advance_order):
        advance_order(red_order, "CANCELLED", cancellation_reason="Cambió de idea")
        assert _red_stock(red_sneaker.id) == (5, 7)

    def test_stock_stays_taken_through_fulfilment(self, red_order, red_sneaker, approve_payment, advance_order):
        approve_payment(red_order)
        advance_order(red_order, "PREPARING", "READY_FOR_SHIPPING", "IN_TRANSIT", "DELIVERED")
        assert _red_stock(red_sneaker.id) == (3, 5)

    def test_cancelling_after_failed_delivery_restores_stock(
        self, red_order, red_sneaker, approve_payment, advance_order
    ):
        approve_payment(red_order)
        advance_order(red_order, "PREPARING", "READY_FOR_SHIPPING", "IN_TRANSIT")
        advance_order(red_order, "NOT_DELIVERED", delivery_reason="Nadie en casa")
        advance_order(red_order, "CANCELLED", cancellation_reason="Devuelto al depósito")
        assert _red_stock(red_sneaker.id) == (5, 7)

    def test_stock_never_goes_negative(self, red_order, red_sneaker, approve_payment):
        repo = current_domain.repository_for(Product)
        product = repo.get(red_sneaker.id)
        product.adjust_variant_stock(product.find_variant(color_code="#FF0000", size="38"), -4)
        repo.add(product)

        approve_payment(red_order)

        assert _red_stock(red_sneaker.id) == (0, 2)


class TestFlatStockLifecycle:
    def test_flat_product_round_trip(self, place_order, flat_product, approve_payment, advance_order):
        result = place_order([{"product_id": str(flat_product.id), "quantity": 3}])

        approve_payment(result["order_id"])
        assert current_domain.repository_for(Product).get(flat_product.id).stock == 7

        advance_order(result["order_id"], "CANCELLED", cancellation_reason="Sin retiro")
        product = current_domain.repository_for(Product).get(flat_product.id)
        assert product.stock == 10
        assert product.stock_total == 10

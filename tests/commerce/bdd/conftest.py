"""Shared BDD fixtures and step definitions for order fulfilment."""

import json

import pytest
from commerce.catalogue.product import Product
from commerce.order.checkout import CreateOrderAndPreference
from commerce.order.order import Order
from commerce.order.orchestration import UpdateOrderStatus
from commerce.payment.gateway import set_gateway
from commerce.payment.gateway.fake_adapter import FakeGateway
from commerce.payment.webhook import ReconcilePayment
from protean import current_domain
from protean.exceptions import ValidationError
from pytest_bdd import given, parsers, then, when


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------
@pytest.fixture()
def error():
    """Container for captured validation errors."""
    return {"exc": None}


@pytest.fixture()
def checkout_gateway():
    fake = FakeGateway()
    set_gateway(fake)
    return fake


def _change_status(order_id, status, error=None, **evidence):
    command = UpdateOrderStatus(order_id=order_id, new_status=status, changed_by="operator", **evidence)
    try:
        current_domain.process(command, asynchronous=False)
    except ValidationError as exc:
        if error is None:
            raise
        error["exc"] = exc


# ---------------------------------------------------------------------------
# Given steps
# ---------------------------------------------------------------------------
@given(
    parsers.cfparse('a product with {stock:d} units of colour "{color}" in size "{size}"'),
    target_fixture="product",
)
def product_with_variant(stock, color, size):
    product = Product.create(
        name="Zapatilla",
        price=25000,
        variants=[{"color_code": color, "size": size, "stock": stock}],
    )
    current_domain.repository_for(Product).add(product)
    return product


@given(
    parsers.cfparse('a customer ordered {quantity:d} units of colour "{color}" in size "{size}"'),
    target_fixture="order_id",
)
def customer_order(product, checkout_gateway, quantity, color, size):
    items = [{"product_id": str(product.id), "quantity": quantity, "color_code": color, "size": size}]
    result = current_domain.process(
        CreateOrderAndPreference(user_id="user-bdd", items=json.dumps(items)),
        asynchronous=False,
    )
    return result["order_id"]


# ---------------------------------------------------------------------------
# When steps
# ---------------------------------------------------------------------------
@when(parsers.cfparse('the gateway reports the payment as "{status}"'))
def gateway_reports(order_id, checkout_gateway, status):
    checkout_gateway.register_payment("mp-bdd", status, order_id)
    current_domain.process(ReconcilePayment(payment_external_id="mp-bdd", topic="payment"), asynchronous=False)


@when(parsers.cfparse('the operator cancels the order because "{reason}"'))
def operator_cancels(order_id, reason):
    _change_status(order_id, "CANCELLED", cancellation_reason=reason)


@when("the operator cancels the order without a reason")
def operator_cancels_without_reason(order_id, error):
    _change_status(order_id, "CANCELLED", error=error)


@when(parsers.cfparse('the operator moves the order through "{statuses}"'))
def operator_moves(order_id, statuses):
    for status in statuses.split(","):
        _change_status(order_id, status.strip())


@when("the courier fails to deliver twice")
def courier_fails_twice(order_id):
    for _ in range(2):
        _change_status(order_id, "NOT_DELIVERED", delivery_reason="Nadie en casa")
        _change_status(order_id, "IN_TRANSIT")


@when("the courier fails to deliver again")
def courier_fails_again(order_id):
    _change_status(order_id, "NOT_DELIVERED", delivery_reason="Nadie en casa")


# ---------------------------------------------------------------------------
# Then steps
# ---------------------------------------------------------------------------
@then(parsers.cfparse("the variant has {units:d} units left"))
def variant_units_left(product, units):
    stored = current_domain.repository_for(Product).get(product.id)
    assert stored.variants[0].stock == units
    assert stored.stock_total == units


@then(parsers.cfparse('the order status is "{status}"'))
def order_status_is(order_id, status):
    assert current_domain.repository_for(Order).get(order_id).status == status


@then(parsers.cfparse("the order version is {version:d}"))
def order_version_is(order_id, version):
    assert current_domain.repository_for(Order).get(order_id).version == version


@then("the order is now for pickup")
def order_is_for_pickup(order_id):
    assert current_domain.repository_for(Order).get(order_id).fulfillment_type == "pickup"


@then("the status change fails with a validation error")
def status_change_fails(error):
    assert error["exc"] is not None, "Expected a validation error but none was raised"
    assert isinstance(error["exc"], ValidationError)

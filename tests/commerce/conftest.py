import json

import pytest
from commerce.catalogue.product import Product
from commerce.catalogue.promotion import Coupon, Promotion
from commerce.notifications.broadcast import set_broadcaster
from commerce.notifications.broadcast.fake_broadcaster import FakeBroadcaster
from commerce.order.checkout import CreateOrderAndPreference
from commerce.order.orchestration import UpdateOrderStatus
from commerce.payment.adapters import register_adapter
from commerce.payment.adapters.fake import FakeAdapter
from commerce.payment.gateway import set_gateway
from commerce.payment.gateway.fake_adapter import FakeGateway
from commerce.payment.gateway_config import Gateway
from commerce.payment.webhook import ReconcilePayment
from protean import current_domain


@pytest.fixture()
def broadcaster():
    fake = FakeBroadcaster()
    set_broadcaster(fake)
    return fake


@pytest.fixture()
def gateway():
    fake = FakeGateway()
    set_gateway(fake)
    return fake


@pytest.fixture()
def fake_adapter():
    adapter = FakeAdapter()
    register_adapter("fake", adapter)
    return adapter


@pytest.fixture()
def add_product():
    """Persist a product built with ``Product.create`` and return it."""

    def _add(name="Zapatilla Urbana", price=10000, **kwargs):
        product = Product.create(name=name, price=price, **kwargs)
        current_domain.repository_for(Product).add(product)
        return current_domain.repository_for(Product).get(product.id)

    return _add


@pytest.fixture()
def red_sneaker(add_product):
    """Product with a red size-38 variant holding 5 units and a black one holding 2."""
    return add_product(
        name="Zapatilla Roja",
        price=25000,
        variants=[
            {"color_code": "#FF0000", "color_name": "Rojo", "size": "38", "stock": 5},
            {"color_code": "#000000", "color_name": "Negro", "size": "40", "stock": 2},
        ],
    )


@pytest.fixture()
def flat_product(add_product):
    return add_product(name="Medias", price=3000, stock=10)


@pytest.fixture()
def add_coupon():
    def _add(code="BIENVENIDA10", **kwargs):
        coupon = Coupon(code=code, **kwargs)
        current_domain.repository_for(Coupon).add(coupon)
        return coupon

    return _add


@pytest.fixture()
def add_promotion():
    def _add(name="Promo Invierno", **kwargs):
        promotion = Promotion(name=name, **kwargs)
        current_domain.repository_for(Promotion).add(promotion)
        return promotion

    return _add


@pytest.fixture()
def add_gateway():
    def _add(name="Fake", rules=(), **kwargs):
        gateway = Gateway(name=name, adapter=kwargs.pop("adapter", "fake"), **kwargs)
        for rule in rules:
            gateway.add_rule(**rule)
        current_domain.repository_for(Gateway).add(gateway)
        return current_domain.repository_for(Gateway).get(gateway.id)

    return _add


@pytest.fixture()
def place_order(gateway):
    """Check out ``items`` and return the handler's result dict."""

    def _place(items, user_id="user-001", **kwargs):
        command = CreateOrderAndPreference(user_id=user_id, items=json.dumps(items), **kwargs)
        return current_domain.process(command, asynchronous=False)

    return _place


@pytest.fixture()
def approve_payment(gateway):
    """Have the gateway report a payment for ``order_id`` and reconcile it."""

    def _approve(order_id, external_id="mp-0001", status="approved", amount=0):
        gateway.register_payment(external_id, status, order_id, amount)
        command = ReconcilePayment(payment_external_id=external_id, topic="payment")
        return current_domain.process(command, asynchronous=False)

    return _approve


@pytest.fixture()
def advance_order():
    """Drive an order through ``statuses`` as an operator."""

    def _advance(order_id, *statuses, changed_by="admin@example.com", **evidence):
        result = None
        for status in statuses:
            command = UpdateOrderStatus(order_id=order_id, new_status=status, changed_by=changed_by, **evidence)
            result = current_domain.process(command, asynchronous=False)
        return result

    return _advance

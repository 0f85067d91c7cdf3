"""Application tests for payment webhook reconciliation."""

import json

import pytest
from commerce.catalogue.product import Product
from commerce.errors import GatewayError
from commerce.order.audit import get_order_audit
from commerce.order.order import Order
from commerce.order.state_machine import OrderStatus
from commerce.payment.payment import PaymentStatus, payment_for_order
from commerce.payment.webhook import ReconcilePayment
from protean import current_domain
from protean.exceptions import ObjectNotFoundError


@pytest.fixture()
def order_id(place_order, red_sneaker):
    result = place_order(
        [{"product_id": str(red_sneaker.id), "quantity": 2, "size": "38", "color_code": "#FF0000"}]
    )
    return result["order_id"]


def _red_stock(product_id):
    product = current_domain.repository_for(Product).get(product_id)
    return product.find_variant(color_code="#FF0000", size="38").stock


class TestApprovedPayment:
    def test_approval_confirms_order(self, order_id, approve_payment):
        outcome = approve_payment(order_id, external_id="mp-42", amount=50000)

        assert outcome == {"status": "APPROVED", "processed": True, "order_approved": True}

        order = current_domain.repository_for(Order).get(order_id)
        assert order.status == OrderStatus.PAYMENT_APPROVED.value
        assert order.version == 2
        assert order.payment_approved_at is not None

        payment = payment_for_order(order_id)
        assert payment.status == PaymentStatus.APPROVED.value
        assert payment.external_payment_id == "mp-42"
        assert json.loads(payment.raw)["status"] == "approved"

    def test_approval_is_audited_as_webhook(self, order_id, approve_payment):
        approve_payment(order_id)

        [entry] = get_order_audit(order_id)
        assert entry["changed_by"] == "webhook"
        assert entry["action"] == "STATUS_CHANGE_PENDING_TO_PAYMENT_APPROVED"
        assert entry["metadata"]["stock_reduced"] is True
        assert entry["metadata"]["source"] == "webhook"

    def test_redelivery_is_a_no_op(self, order_id, red_sneaker, approve_payment):
        approve_payment(order_id, external_id="mp-42")
        again = approve_payment(order_id, external_id="mp-42")

        assert again["processed"] is False
        assert _red_stock(red_sneaker.id) == 3
        assert current_domain.repository_for(Order).get(order_id).version == 2
        assert len(get_order_audit(order_id)) == 1


class TestOtherPaymentStatuses:
    @pytest.mark.parametrize("provider_status", ["pending", "in_process"])
    def test_pending_payment_changes_nothing_on_the_order(self, order_id, red_sneaker, approve_payment, provider_status):
        outcome = approve_payment(order_id, status=provider_status)

        assert outcome["status"] == "PENDING"
        assert outcome["order_approved"] is False
        assert current_domain.repository_for(Order).get(order_id).status == OrderStatus.PENDING.value
        assert _red_stock(red_sneaker.id) == 5

    @pytest.mark.parametrize("provider_status", ["rejected", "cancelled"])
    def test_rejected_payment_is_recorded_only(self, order_id, approve_payment, provider_status):
        approve_payment(order_id, status=provider_status)

        assert payment_for_order(order_id).status == PaymentStatus.REJECTED.value
        assert current_domain.repository_for(Order).get(order_id).status == OrderStatus.PENDING.value

    def test_rejection_then_approval_still_confirms(self, order_id, approve_payment):
        approve_payment(order_id, external_id="mp-1", status="rejected")
        outcome = approve_payment(order_id, external_id="mp-2", status="approved")

        assert outcome["order_approved"] is True
        assert payment_for_order(order_id).external_payment_id == "mp-2"


class TestLateApproval:
    def test_payment_for_cancelled_order_is_kept_but_order_stays_cancelled(
        self, order_id, red_sneaker, approve_payment, advance_order
    ):
        advance_order(order_id, "CANCELLED", cancellation_reason="Cliente canceló")

        outcome = approve_payment(order_id)

        assert outcome["processed"] is True
        assert outcome["order_approved"] is False
        assert payment_for_order(order_id).status == PaymentStatus.APPROVED.value
        assert current_domain.repository_for(Order).get(order_id).status == OrderStatus.CANCELLED.value
        assert _red_stock(red_sneaker.id) == 5


class TestReconciliationFailures:
    def test_gateway_lookup_failure(self, order_id, gateway):
        gateway.register_payment("mp-9", "approved", order_id)
        gateway.configure(should_succeed=False)

        with pytest.raises(GatewayError):
            current_domain.process(ReconcilePayment(payment_external_id="mp-9"), asynchronous=False)

        assert current_domain.repository_for(Order).get(order_id).status == OrderStatus.PENDING.value

    def test_unknown_payment_id(self, gateway):
        with pytest.raises(GatewayError):
            current_domain.process(ReconcilePayment(payment_external_id="nope"), asynchronous=False)

    def test_payment_for_unknown_order(self, gateway):
        gateway.register_payment("mp-7", "approved", "not-an-order")
        with pytest.raises(ObjectNotFoundError):
            current_domain.process(ReconcilePayment(payment_external_id="mp-7"), asynchronous=False)

"""MercadoPago checkout gateway adapter.

Talks to the MercadoPago REST API with an access token:

- ``POST /checkout/preferences`` creates the hosted checkout, carrying the
  order id as ``external_reference`` and the webhook ``notification_url``
- ``GET /v1/payments/{id}`` returns the canonical payment status used by
  webhook reconciliation
"""

import httpx
import structlog

from commerce.payment.gateway.port import CheckoutGateway, PaymentLookup, PreferenceResult

logger = structlog.get_logger(__name__)

API_URL = "https://api.mercadopago.com"


class MercadoPagoGateway(CheckoutGateway):
    """Production MercadoPago gateway adapter."""

    def __init__(
        self,
        access_token: str,
        notification_url: str | None = None,
        back_url: str | None = None,
        currency: str = "ARS",
        client: httpx.Client | None = None,
    ) -> None:
        self.access_token = access_token
        self.notification_url = notification_url
        self.back_url = back_url
        self.currency = currency
        self._client = client or httpx.Client(base_url=API_URL, timeout=10.0)

    @property
    def _headers(self) -> dict:
        return {"Authorization": f"Bearer {self.access_token}"}

    def _preference_items(self, order_number, items, total) -> list[dict]:
        # Amounts are kept in cents; MercadoPago takes major units.
        lines = [
            {
                "id": str(item["product_id"]),
                "title": " ".join(part for part in (order_number, item.get("color_name"), item.get("size")) if part),
                "quantity": item["quantity"],
                "unit_price": item["unit_price"] / 100,
                "currency_id": self.currency,
            }
            for item in items
        ]
        if sum(item["unit_price"] * item["quantity"] for item in items) == total:
            return lines
        # Coupons and gateway rules change the charge; one line carries the exact total.
        return [
            {
                "id": order_number,
                "title": f"Order {order_number}",
                "quantity": 1,
                "unit_price": total / 100,
                "currency_id": self.currency,
            }
        ]

    def _preference_body(self, order_id, order_number, items, total, payer) -> dict:
        body = {
            "items": self._preference_items(order_number, items, total),
            "external_reference": order_id,
            "statement_descriptor": order_number,
        }
        if payer:
            body["payer"] = payer
        if self.notification_url:
            body["notification_url"] = self.notification_url
        if self.back_url:
            body["back_urls"] = {
                "success": f"{self.back_url}/checkout/success",
                "failure": f"{self.back_url}/checkout/failure",
                "pending": f"{self.back_url}/checkout/pending",
            }
            body["auto_return"] = "approved"
        return body

    def create_preference(
        self,
        order_id: str,
        order_number: str,
        items: list[dict],
        total: int,
        payer: dict | None = None,
    ) -> PreferenceResult:
        try:
            response = self._client.post(
                "/checkout/preferences",
                json=self._preference_body(order_id, order_number, items, total, payer),
                headers=self._headers,
            )
            response.raise_for_status()
        except httpx.HTTPError as e:
            logger.error("MercadoPago preference request failed", order_id=order_id, error=str(e))
            return PreferenceResult(success=False, failure_reason=str(e))

        data = response.json()
        return PreferenceResult(success=True, preference_id=str(data["id"]), init_point=data.get("init_point"))

    def get_payment(self, external_id: str) -> PaymentLookup:
        try:
            response = self._client.get(f"/v1/payments/{external_id}", headers=self._headers)
            response.raise_for_status()
        except httpx.HTTPError as e:
            logger.error("MercadoPago payment lookup failed", external_id=external_id, error=str(e))
            return PaymentLookup(success=False, external_id=external_id, failure_reason=str(e))

        data = response.json()
        amount = data.get("transaction_amount")
        return PaymentLookup(
            success=True,
            external_id=str(data.get("id", external_id)),
            status=data.get("status"),
            external_reference=data.get("external_reference"),
            amount=round(amount * 100) if amount is not None else None,
            raw=data,
        )

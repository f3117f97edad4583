"""PaymentGatewayClient — outbound HTTP to the hosted-checkout payment gateway.

Three calls: create a checkout intent, fetch a payment (to resolve a bare
webhook envelope), and refund a payment. With no PAYMENT_GATEWAY_TOKEN the
client runs in simulated mode: intents get fake ids and redirect to the
client's simulated checkout page; nothing leaves the process.

Money crosses this boundary in major units (the gateway's convention);
everything inside the engine stays in minor units.
"""

import logging
import secrets
import time
from typing import Any

import httpx

from config.settings import settings
from src.fd_common.errors import PaymentGatewayError
from src.fd_common.id_generator import to_base36
from src.fd_order.domain.models import Order
from src.fd_payment.domain.models import GatewayPayment, PaymentIntent

logger = logging.getLogger(__name__)


def _fake_id(prefix: str) -> str:
    return f"{prefix}_simulated_{int(time.time() * 1000)}_{to_base36(secrets.randbits(40)).lower()}"


def _major_units(minor: int) -> float:
    return minor / 100


class PaymentGatewayClient:
    def __init__(
        self,
        base_url: str = settings.PAYMENT_GATEWAY_URL,
        token: str = settings.PAYMENT_GATEWAY_TOKEN,
        timeout: float = settings.PAYMENT_GATEWAY_TIMEOUT_SECONDS,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._token = token
        self._client = httpx.AsyncClient(
            base_url=base_url,
            timeout=timeout,
            transport=transport,
            headers={"Authorization": f"Bearer {token}"} if token else None,
        )

    @property
    def simulated(self) -> bool:
        return not self._token

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _request(self, method: str, path: str, **kwargs: Any) -> dict[str, Any]:
        try:
            resp = await self._client.request(method, path, **kwargs)
        except httpx.HTTPError as exc:
            raise PaymentGatewayError(f"{method} {path}: {exc}") from exc
        if resp.status_code >= 400:
            raise PaymentGatewayError(f"{method} {path} -> {resp.status_code}: {resp.text[:200]}")
        return resp.json()

    async def create_intent(self, order: Order, payer_email: str | None = None) -> PaymentIntent:
        if self.simulated:
            intent_id = _fake_id("pref")
            logger.info("[simulated] checkout intent %s for order %s", intent_id, order.tracking_number)
            return PaymentIntent(
                intent_id=intent_id,
                redirect_url=(
                    f"{settings.CLIENT_URL}/checkout/simulated"
                    f"?preference={intent_id}&order={order.tracking_number}"
                ),
                simulated=True,
            )

        back_url = f"{settings.CLIENT_URL}/pedido/{order.tracking_number}"
        body = {
            "items": [
                {
                    "id": line.product_id,
                    "title": line.name,
                    "quantity": line.quantity,
                    "unit_price": _major_units(line.unit_price),
                    "currency_id": settings.CURRENCY,
                }
                for line in order.items
            ],
            "payer": {
                "name": order.customer_name,
                "email": payer_email or order.customer_email or "",
                "phone": {"number": order.customer_phone},
            },
            "back_urls": {
                "success": f"{back_url}?status=success",
                "failure": f"{back_url}?status=failure",
                "pending": f"{back_url}?status=pending",
            },
            "auto_return": "approved",
            "external_reference": order.id,
            "notification_url": settings.PAYMENT_NOTIFICATION_URL,
            "metadata": {"order_id": order.id, "tracking_number": order.tracking_number},
        }
        if order.delivery_fee:
            body["shipments"] = {"cost": _major_units(order.delivery_fee)}
        data = await self._request("POST", "/checkout/preferences", json=body)
        return PaymentIntent(intent_id=str(data["id"]), redirect_url=data["init_point"])

    async def get_payment(self, external_payment_id: str) -> GatewayPayment:
        if self.simulated:
            raise PaymentGatewayError("payment lookup is unavailable in simulated mode")
        data = await self._request("GET", f"/v1/payments/{external_payment_id}")
        amount = data.get("transaction_amount")
        return GatewayPayment(
            id=str(data["id"]),
            status=str(data["status"]),
            external_reference=str(data.get("external_reference") or ""),
            amount=round(amount * 100) if amount is not None else None,
        )

    async def refund(self, external_payment_id: str) -> None:
        if self.simulated:
            logger.info("[simulated] refund of payment %s", external_payment_id)
            return
        await self._request("POST", f"/v1/payments/{external_payment_id}/refunds", json={})


_client: PaymentGatewayClient | None = None


def get_gateway_client() -> PaymentGatewayClient:
    global _client  # noqa: PLW0603
    if _client is None:
        _client = PaymentGatewayClient()
    return _client


async def close_gateway_client() -> None:
    global _client  # noqa: PLW0603
    if _client is not None:
        await _client.aclose()
        _client = None

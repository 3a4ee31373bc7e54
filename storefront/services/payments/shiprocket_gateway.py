import base64
import hashlib
import hmac
import json
import logging
from dataclasses import asdict
from typing import List, Mapping, Optional

import requests

from storefront.services.errors import GatewaySessionError, InvalidSignatureError
from storefront.services.payments.base import (
    CallbackStatus,
    Customer,
    PaymentCallback,
    PaymentGateway,
    PaymentSession,
    SessionItem,
)

logger = logging.getLogger(__name__)

SIGNATURE_HEADER = "x-api-hmac-sha256"

STATUS_MAP = {
    "SUCCESS": CallbackStatus.SUCCESS,
    "FAILED": CallbackStatus.FAILED,
    "PENDING": CallbackStatus.PENDING,
}


class ShiprocketCheckoutGateway(PaymentGateway):
    """Shiprocket Checkout payment sessions, signed webhooks"""

    name = "shiprocket"

    def __init__(
        self,
        api_key: str,
        api_secret: str,
        callback_url: str,
        base_url: str = "https://apiv2.shiprocket.in",
        currency: str = "INR",
        http: Optional[requests.Session] = None,
        timeout: float = 10.0,
    ):
        self.api_key = api_key
        self.api_secret = api_secret
        self.callback_url = callback_url
        self.base_url = base_url.rstrip("/")
        self.currency = currency
        self.http = http or requests.Session()
        self.timeout = timeout

    def create_session(
        self,
        order,
        amount: float,
        customer: Customer,
        items: List[SessionItem],
    ) -> PaymentSession:
        if not self.api_key:
            raise GatewaySessionError("Shiprocket credentials not configured")

        try:
            response = self.http.post(
                f"{self.base_url}/v1/external/payment/session",
                json={
                    "order_id": str(order.id),
                    "amount": amount,
                    "currency": self.currency,
                    "customer": asdict(customer),
                    "items": [asdict(item) for item in items],
                    "callback_url": self.callback_url,
                },
                headers={"Authorization": f"Bearer {self.api_key}"},
                timeout=self.timeout,
            )
            response.raise_for_status()
            data = response.json()
        except (requests.RequestException, ValueError) as e:
            logger.exception(f"Shiprocket session creation failed for order {order.id}")
            raise GatewaySessionError(f"Shiprocket API error: {e}", order_id=order.id) from e

        session_id = data.get("session_id")
        if not session_id:
            raise GatewaySessionError("Shiprocket returned no session id", order_id=order.id)

        logger.info(f"Shiprocket session {session_id} created for order {order.id}")
        return PaymentSession(session_ref=session_id, redirect_url=data.get("payment_url"))

    def verify_callback(self, payload: bytes, signature: Optional[str]) -> bool:
        """base64(HMAC-SHA256(api_secret, raw body)) must equal the header"""
        if not signature or not self.api_secret:
            return False

        digest = hmac.new(self.api_secret.encode("utf-8"), payload, hashlib.sha256).digest()
        expected = base64.b64encode(digest).decode("ascii")
        return hmac.compare_digest(expected, signature)

    def parse_callback(
        self,
        body: bytes,
        headers: Mapping[str, str],
        query: Mapping[str, str],
    ) -> PaymentCallback:
        signature = {k.lower(): v for k, v in headers.items()}.get(SIGNATURE_HEADER)

        if not self.verify_callback(body, signature):
            raise InvalidSignatureError("Invalid Shiprocket webhook signature", provider=self.name)

        payload = json.loads(body)
        if not isinstance(payload, dict):
            raise ValueError("Shiprocket webhook body is not an object")

        status = STATUS_MAP.get(str(payload.get("status", "")).upper(), CallbackStatus.PENDING)

        return PaymentCallback(
            provider=self.name,
            correlation_key=str(payload.get("session_id") or ""),
            status=status,
            gateway_txn_id=payload.get("payment_id"),
            event=payload.get("status"),
            raw=payload,
        )

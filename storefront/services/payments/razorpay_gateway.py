import json
import logging
from typing import List, Mapping, Optional

import razorpay
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
from storefront.services.pricing import to_minor_units

logger = logging.getLogger(__name__)

SIGNATURE_HEADER = "x-razorpay-signature"

SUCCESS_EVENTS = {"payment.captured", "order.paid"}
FAILED_EVENTS = {"payment.failed"}
REFUND_EVENTS = {"refund.created", "refund.processed"}


class RazorpayGateway(PaymentGateway):
    name = "razorpay"

    def __init__(
        self,
        key_id: str,
        key_secret: str,
        webhook_secret: str,
        currency: str = "INR",
        client=None,
    ):
        self.key_id = key_id
        self.key_secret = key_secret
        self.webhook_secret = webhook_secret
        self.currency = currency
        self.client = client or razorpay.Client(auth=(key_id, key_secret))

    # -------------------------
    # SESSION
    # -------------------------
    def create_session(
        self,
        order,
        amount: float,
        customer: Customer,
        items: List[SessionItem],
    ) -> PaymentSession:
        if not self.key_id or not self.key_secret:
            raise GatewaySessionError("Razorpay credentials not configured")

        amount_paise = to_minor_units(amount)

        try:
            razorpay_order = self.client.order.create(
                {
                    "amount": amount_paise,
                    "currency": self.currency,
                    "receipt": f"order_{order.id}",
                    "notes": {
                        "order_id": str(order.id),
                        "user_id": str(order.user_id),
                        "customer_email": customer.email or "",
                    },
                }
            )
        except (
            razorpay.errors.BadRequestError,
            razorpay.errors.ServerError,
            razorpay.errors.GatewayError,
            requests.RequestException,
        ) as e:
            logger.exception(f"Razorpay order creation failed for order {order.id}")
            raise GatewaySessionError(f"Razorpay API error: {e}", order_id=order.id) from e

        razorpay_order_id = razorpay_order.get("id")
        if not razorpay_order_id:
            raise GatewaySessionError("Razorpay returned no order id", order_id=order.id)

        logger.info(f"Razorpay order {razorpay_order_id} created for order {order.id}")

        return PaymentSession(
            session_ref=razorpay_order_id,
            redirect_url=None,
            client_options={
                "key": self.key_id,
                "amount": amount_paise,
                "currency": razorpay_order.get("currency", self.currency),
                "order_id": razorpay_order_id,
                "prefill": {
                    "name": customer.name,
                    "email": customer.email,
                    "contact": customer.phone,
                },
                "notes": {"order_id": str(order.id)},
            },
        )

    # -------------------------
    # SIGNATURES
    # -------------------------
    def verify_callback(self, payload: bytes, signature: Optional[str]) -> bool:
        """HMAC-SHA256 of the raw webhook body with the webhook secret"""
        if not signature or not self.webhook_secret:
            return False

        try:
            self.client.utility.verify_webhook_signature(
                payload.decode("utf-8"), signature, self.webhook_secret
            )
        except (razorpay.errors.SignatureVerificationError, UnicodeDecodeError):
            return False
        return True

    def verify_payment(self, razorpay_order_id: str, razorpay_payment_id: str, signature: str) -> bool:
        """Checkout handler signature: HMAC over '<order_id>|<payment_id>' with the key secret"""
        if not signature:
            return False

        try:
            self.client.utility.verify_payment_signature(
                {
                    "razorpay_order_id": razorpay_order_id,
                    "razorpay_payment_id": razorpay_payment_id,
                    "razorpay_signature": signature,
                }
            )
        except razorpay.errors.SignatureVerificationError:
            return False
        return True

    # -------------------------
    # WEBHOOK
    # -------------------------
    def parse_callback(
        self,
        body: bytes,
        headers: Mapping[str, str],
        query: Mapping[str, str],
    ) -> PaymentCallback:
        signature = {k.lower(): v for k, v in headers.items()}.get(SIGNATURE_HEADER)

        if not self.verify_callback(body, signature):
            raise InvalidSignatureError("Invalid Razorpay webhook signature", provider=self.name)

        event = json.loads(body)
        if not isinstance(event, dict):
            raise ValueError("Razorpay webhook body is not an object")

        event_name = event.get("event", "")
        payload = event.get("payload") or {}

        payment = (payload.get("payment") or {}).get("entity") or {}
        razorpay_order = (payload.get("order") or {}).get("entity") or {}

        correlation_key = payment.get("order_id") or razorpay_order.get("id")

        if event_name in SUCCESS_EVENTS:
            status = CallbackStatus.SUCCESS
        elif event_name in FAILED_EVENTS:
            status = CallbackStatus.FAILED
        elif event_name in REFUND_EVENTS:
            status = CallbackStatus.REFUNDED
        else:
            logger.info(f"Unhandled Razorpay event: {event_name}")
            status = CallbackStatus.PENDING

        return PaymentCallback(
            provider=self.name,
            correlation_key=correlation_key or "",
            status=status,
            gateway_txn_id=payment.get("id"),
            event=event_name,
            raw=event,
        )

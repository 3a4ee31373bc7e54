import logging
from typing import List, Mapping, Optional
from urllib.parse import urlencode
from uuid import uuid4

from storefront.services.payments.base import (
    CallbackStatus,
    Customer,
    PaymentCallback,
    PaymentGateway,
    PaymentSession,
    SessionItem,
)

logger = logging.getLogger(__name__)


class SandboxGateway(PaymentGateway):
    """
    Test-mode provider. Sessions point at the locally served mock payment
    page; its buttons come back through /webhooks/sandbox with
    order_id, session_id and status query parameters and go through the
    same reconcile() as a real webhook.
    """

    name = "sandbox"

    def __init__(self, base_url: str):
        self.base_url = base_url.rstrip("/")

    def create_session(
        self,
        order,
        amount: float,
        customer: Customer,
        items: List[SessionItem],
    ) -> PaymentSession:
        session_ref = f"sandbox_{uuid4().hex}"
        query = urlencode(
            {"session_id": session_ref, "order_id": order.id, "amount": f"{amount:.2f}"}
        )

        logger.info(f"TEST MODE: sandbox session {session_ref} for order {order.id}")
        return PaymentSession(
            session_ref=session_ref,
            redirect_url=f"{self.base_url}/sandbox/pay?{query}",
            client_options={"test_mode": True},
        )

    def callback_url(self, session_ref: str, order_id: int, status: str) -> str:
        query = urlencode({"order_id": order_id, "session_id": session_ref, "status": status})
        return f"{self.base_url}/webhooks/sandbox?{query}"

    def verify_callback(self, payload: bytes, signature: Optional[str]) -> bool:
        # unsigned channel, only mounted while PAYMENT_PROVIDER=sandbox
        return True

    def parse_callback(
        self,
        body: bytes,
        headers: Mapping[str, str],
        query: Mapping[str, str],
    ) -> PaymentCallback:
        session_ref = query.get("session_id")
        if not session_ref:
            raise ValueError("session_id is required")

        order_id = query.get("order_id")
        try:
            expected_order_id = int(order_id) if order_id else None
        except ValueError:
            raise ValueError("order_id must be an integer")

        raw_status = (query.get("status") or "").lower()
        if raw_status == "success":
            status = CallbackStatus.SUCCESS
        elif raw_status == "failed":
            status = CallbackStatus.FAILED
        else:
            status = CallbackStatus.PENDING

        return PaymentCallback(
            provider=self.name,
            correlation_key=session_ref,
            status=status,
            gateway_txn_id=f"sandbox_txn_{session_ref[-12:]}" if status == CallbackStatus.SUCCESS else None,
            event=raw_status,
            expected_order_id=expected_order_id,
            raw=dict(query),
        )

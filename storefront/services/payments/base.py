from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional


class CallbackStatus(str, Enum):
    SUCCESS = "success"
    FAILED = "failed"
    PENDING = "pending"
    REFUNDED = "refunded"


@dataclass
class PaymentCallback:
    """
    Provider-neutral view of a verified gateway notification.
    reconcile() only ever sees this shape, never provider field names.
    """
    provider: str
    correlation_key: str
    status: CallbackStatus
    gateway_txn_id: Optional[str] = None
    event: Optional[str] = None
    # sandbox only: the order id echoed back on the redirect
    expected_order_id: Optional[int] = None
    raw: Dict[str, Any] = field(default_factory=dict)


@dataclass
class PaymentSession:
    session_ref: str
    redirect_url: Optional[str] = None
    client_options: Dict[str, Any] = field(default_factory=dict)


@dataclass
class Customer:
    name: str
    email: Optional[str]
    phone: str


@dataclass
class SessionItem:
    sku: str
    name: str
    qty: int
    price: float


class PaymentGateway(ABC):
    """Capability every payment provider variant implements"""

    name: str = "base"

    @abstractmethod
    def create_session(
        self,
        order,
        amount: float,
        customer: Customer,
        items: List[SessionItem],
    ) -> PaymentSession:
        ...

    @abstractmethod
    def verify_callback(self, payload: bytes, signature: Optional[str]) -> bool:
        ...

    @abstractmethod
    def parse_callback(
        self,
        body: bytes,
        headers: Mapping[str, str],
        query: Mapping[str, str],
    ) -> PaymentCallback:
        """Verify then normalize. Raises InvalidSignatureError first"""
        ...

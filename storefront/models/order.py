from sqlmodel import SQLModel, Field, Relationship
from typing import List, Optional
from datetime import datetime

from storefront.constants.order_status import OrderStatus, PaymentStatus
from storefront.models.order_item import OrderItem


class Order(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(foreign_key="user.id", index=True)

    subtotal: float
    tax: float
    shipping_cost: float = 0.0
    total_amount: float
    currency: str = "INR"

    status: str = Field(default=OrderStatus.pending.value, index=True)
    payment_status: str = Field(default=PaymentStatus.pending.value, index=True)

    # correlation key: gateway-issued session/order id
    payment_provider: Optional[str] = None
    payment_id: Optional[str] = Field(default=None, index=True, unique=True)
    gateway_txn_id: Optional[str] = None

    courier_id: Optional[str] = None
    courier_name: Optional[str] = None
    estimated_days: Optional[int] = None

    # set once the paid order is booked with the courier
    shipment_id: Optional[str] = None
    shipment_status: Optional[str] = None
    awb_code: Optional[str] = None
    tracking_url: Optional[str] = None

    delivery_name: str
    delivery_phone: str
    delivery_email: Optional[str] = None
    delivery_address: str
    delivery_city: str
    delivery_state: str
    delivery_pincode: str

    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    items: List["OrderItem"] = Relationship(back_populates="order")

    @property
    def is_paid(self) -> bool:
        return self.payment_status == PaymentStatus.paid.value

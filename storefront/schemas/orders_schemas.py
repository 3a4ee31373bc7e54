from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel

from storefront.constants.order_status import OrderStatus


class OrderItemOut(BaseModel):
    product_id: int
    product_name: str
    product_price: float
    quantity: int
    line_total: float


class OrderEventOut(BaseModel):
    event_type: str
    label: str
    created_by: str
    created_at: datetime


class OrderOut(BaseModel):
    id: int
    status: str
    payment_status: str
    payment_provider: Optional[str] = None
    subtotal: float
    tax: float
    shipping_cost: float
    total_amount: float
    currency: str
    courier_name: Optional[str] = None
    shipment_id: Optional[str] = None
    shipment_status: Optional[str] = None
    awb_code: Optional[str] = None
    tracking_url: Optional[str] = None
    delivery_city: str
    delivery_pincode: str
    created_at: datetime
    items: List[OrderItemOut] = []
    timeline: List[OrderEventOut] = []


class OrderStatusUpdate(BaseModel):
    status: OrderStatus
    note: Optional[str] = None


class AdminLoginRequest(BaseModel):
    admin_key: str

# storefront/schemas/checkout_schemas.py
from pydantic import BaseModel, EmailStr, Field, field_validator
from typing import Any, Dict, List, Optional


class DeliveryInfo(BaseModel):
    name: str = Field(min_length=1)
    phone: str = Field(pattern=r"^\+?\d{10,13}$")
    email: Optional[EmailStr] = None
    address: str = Field(min_length=1)
    city: str = Field(min_length=1)
    state: str = Field(min_length=1)
    pincode: str = Field(pattern=r"^\d{6}$")

    @field_validator("name", "address", "city", "state")
    @classmethod
    def strip_text(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("must not be blank")
        return value


class ShippingSelection(BaseModel):
    courier_id: str
    courier_name: Optional[str] = None


class CheckoutRequest(BaseModel):
    delivery: DeliveryInfo
    shipping: Optional[ShippingSelection] = None   # None -> flat shipping


class ServiceabilityRequest(BaseModel):
    delivery_pincode: str = Field(pattern=r"^\d{6}$")
    cod: bool = False


class CourierOptionOut(BaseModel):
    courier_id: str
    name: str
    cost: float
    eta_days: int
    cod_available: bool
    rating: float


class ServiceabilityResponse(BaseModel):
    serviceable: bool
    weight: float
    couriers: List[CourierOptionOut]


class SummaryItem(BaseModel):
    product_id: int
    product_name: str
    quantity: int
    price: float          # unit price from the live catalog
    line_total: float     # quantity * price


class CartSummary(BaseModel):
    items: List[SummaryItem]
    subtotal: float
    tax: float
    shipping: float
    total: float


class CheckoutResponse(BaseModel):
    order_id: int
    status: str
    payment_status: str
    provider: str
    session_ref: str
    redirect_url: Optional[str] = None
    client_options: Dict[str, Any] = {}
    total_amount: float
    currency: str


class RazorpayPaymentVerifySchema(BaseModel):
    razorpay_order_id: str
    razorpay_payment_id: str
    razorpay_signature: str

from functools import lru_cache

from storefront.config import settings
from storefront.services.payments.base import (
    CallbackStatus,
    Customer,
    PaymentCallback,
    PaymentGateway,
    PaymentSession,
    SessionItem,
)
from storefront.services.payments.razorpay_gateway import RazorpayGateway
from storefront.services.payments.sandbox_gateway import SandboxGateway
from storefront.services.payments.shiprocket_gateway import ShiprocketCheckoutGateway


def build_gateway(provider: str) -> PaymentGateway:
    provider = provider.lower()

    if provider == "razorpay":
        return RazorpayGateway(
            key_id=settings.RAZORPAY_KEY_ID,
            key_secret=settings.RAZORPAY_KEY_SECRET,
            webhook_secret=settings.RAZORPAY_WEBHOOK_SECRET,
            currency=settings.CURRENCY,
        )
    if provider == "shiprocket":
        return ShiprocketCheckoutGateway(
            api_key=settings.SHIPROCKET_API_KEY,
            api_secret=settings.SHIPROCKET_API_SECRET,
            callback_url=f"{settings.base_url}/webhooks/shiprocket",
            base_url=settings.SHIPROCKET_BASE_URL,
            currency=settings.CURRENCY,
        )
    if provider == "sandbox":
        return SandboxGateway(base_url=settings.base_url)

    raise ValueError(f"Unknown payment provider: {provider}")


@lru_cache(maxsize=None)
def get_gateway(provider: str) -> PaymentGateway:
    """One instance per provider per process"""
    return build_gateway(provider)


def get_payment_gateway() -> PaymentGateway:
    """Gateway selected by PAYMENT_PROVIDER"""
    return get_gateway(settings.PAYMENT_PROVIDER.lower())


__all__ = [
    "CallbackStatus",
    "Customer",
    "PaymentCallback",
    "PaymentGateway",
    "PaymentSession",
    "SessionItem",
    "RazorpayGateway",
    "SandboxGateway",
    "ShiprocketCheckoutGateway",
    "build_gateway",
    "get_gateway",
    "get_payment_gateway",
]

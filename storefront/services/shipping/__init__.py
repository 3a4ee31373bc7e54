from functools import lru_cache

from storefront.config import settings
from storefront.services.shipping.base import CourierOption, RateProvider, Shipment
from storefront.services.shipping.mock_rates import MockRateProvider
from storefront.services.shipping.shiprocket_rates import ShiprocketRateProvider, TokenCache


@lru_cache(maxsize=None)
def get_rate_provider() -> RateProvider:
    """Shiprocket when credentials exist, otherwise the fixed test couriers"""
    if settings.SHIPROCKET_EMAIL and settings.SHIPROCKET_PASSWORD:
        return ShiprocketRateProvider(
            email=settings.SHIPROCKET_EMAIL,
            password=settings.SHIPROCKET_PASSWORD,
            base_url=settings.SHIPROCKET_BASE_URL,
            pickup_location=settings.SHIPROCKET_PICKUP_LOCATION,
        )
    return MockRateProvider()


__all__ = [
    "CourierOption",
    "RateProvider",
    "Shipment",
    "MockRateProvider",
    "ShiprocketRateProvider",
    "TokenCache",
    "get_rate_provider",
]

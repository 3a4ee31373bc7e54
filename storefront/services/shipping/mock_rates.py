import logging
import re
from typing import List, Optional
from uuid import uuid4

from storefront.services.errors import ServiceabilityError
from storefront.services.shipping.base import CourierOption, RateProvider, Shipment

logger = logging.getLogger(__name__)

PINCODE_RE = re.compile(r"^\d{6}$")

MOCK_COURIERS = [
    CourierOption("mock_standard", "Standard Delivery", 50.0, 5, True, 4.2),
    CourierOption("mock_express", "Express Delivery", 100.0, 2, True, 4.5),
    CourierOption("mock_overnight", "Overnight Delivery", 200.0, 1, False, 4.8),
]


class MockRateProvider(RateProvider):
    """Fixed courier list used when no Shiprocket credentials are configured"""

    name = "mock"

    def get_rates(self, origin_postal: str, dest_postal: str, weight: float, cod: bool = False) -> List[CourierOption]:
        if not PINCODE_RE.match(dest_postal or ""):
            raise ServiceabilityError(f"Invalid delivery pincode: {dest_postal}", pincode=dest_postal)

        logger.info(f"TEST MODE: mock courier options for {dest_postal}")
        options = [c for c in MOCK_COURIERS if c.cod_available or not cod]
        return sorted(options, key=lambda c: c.cost)

    def create_shipment(self, order, courier_id: Optional[str], weight: float) -> Shipment:
        token = uuid4().hex
        logger.info(f"TEST MODE: mock shipment for order {order.id}")
        return Shipment(
            shipment_id=f"test_ship_{token[:12]}",
            status="created",
            awb_code=f"TEST{token[12:20].upper()}",
            courier_name=order.courier_name or "Test Courier",
        )

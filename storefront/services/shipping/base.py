from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import List, Optional


@dataclass(frozen=True)
class CourierOption:
    courier_id: str
    name: str
    cost: float
    eta_days: int
    cod_available: bool
    rating: float = 4.0


@dataclass(frozen=True)
class Shipment:
    shipment_id: str
    # created | pending_awb
    status: str
    awb_code: Optional[str] = None
    courier_name: Optional[str] = None
    tracking_url: Optional[str] = None


class RateProvider(ABC):
    name: str = "base"

    @abstractmethod
    def get_rates(
        self,
        origin_postal: str,
        dest_postal: str,
        weight: float,
        cod: bool = False,
    ) -> List[CourierOption]:
        """Courier options, cheapest first. Raises ServiceabilityError"""
        ...

    @abstractmethod
    def create_shipment(self, order, courier_id: Optional[str], weight: float) -> Shipment:
        """Book a paid order with the courier. Raises ShipmentError"""
        ...

    def quote(self, origin_postal: str, dest_postal: str, weight: float, courier_id: str) -> CourierOption:
        from storefront.services.errors import ServiceabilityError

        for option in self.get_rates(origin_postal, dest_postal, weight):
            if option.courier_id == str(courier_id):
                return option

        raise ServiceabilityError(
            f"Courier {courier_id} does not serve {dest_postal}",
            courier_id=courier_id,
            pincode=dest_postal,
        )

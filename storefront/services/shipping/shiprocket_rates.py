import logging
import time
from typing import Callable, List, Optional

import requests

from storefront.services.errors import ServiceabilityError, ShipmentError
from storefront.services.shipping.base import CourierOption, RateProvider, Shipment
from storefront.utils.retry import http_retry

logger = logging.getLogger(__name__)

TOKEN_TTL_SECONDS = 24 * 60 * 60  # Shiprocket tokens live 10 days, refresh daily
MAX_OPTIONS = 5
PACKAGE_SIDE_CM = 10


class TokenCache:
    """
    Process-wide holder for the Shiprocket bearer token.

    Built once at process start, refreshed lazily when expired. It is not
    shared between instances; each instance logs in on its own.
    """

    def __init__(self, ttl_seconds: int = TOKEN_TTL_SECONDS, clock: Callable[[], float] = time.time):
        self.ttl_seconds = ttl_seconds
        self.clock = clock
        self._token: Optional[str] = None
        self._expires_at: float = 0.0

    def get(self) -> Optional[str]:
        if self._token and self.clock() < self._expires_at:
            return self._token
        return None

    def set(self, token: str) -> None:
        self._token = token
        self._expires_at = self.clock() + self.ttl_seconds

    def invalidate(self) -> None:
        self._token = None
        self._expires_at = 0.0


class ShiprocketRateProvider(RateProvider):
    name = "shiprocket"

    def __init__(
        self,
        email: str,
        password: str,
        base_url: str = "https://apiv2.shiprocket.in",
        token_cache: Optional[TokenCache] = None,
        http: Optional[requests.Session] = None,
        pickup_location: str = "Primary",
        timeout: float = 10.0,
    ):
        self.email = email
        self.password = password
        self.base_url = base_url.rstrip("/")
        self.token_cache = token_cache or TokenCache()
        self.http = http or requests.Session()
        self.pickup_location = pickup_location
        self.timeout = timeout

    @http_retry()
    def _login(self) -> str:
        response = self.http.post(
            f"{self.base_url}/v1/external/auth/login",
            json={"email": self.email, "password": self.password},
            timeout=self.timeout,
        )
        response.raise_for_status()
        return response.json()["token"]

    def _token(self) -> str:
        token = self.token_cache.get()
        if token:
            return token

        token = self._login()
        self.token_cache.set(token)
        logger.info("Shiprocket token refreshed")
        return token

    @http_retry()
    def _serviceability(self, params: dict, token: str) -> requests.Response:
        response = self.http.get(
            f"{self.base_url}/v1/external/courier/serviceability/",
            params=params,
            headers={"Authorization": f"Bearer {token}"},
            timeout=self.timeout,
        )
        if response.status_code >= 500:
            response.raise_for_status()
        return response

    def get_rates(self, origin_postal: str, dest_postal: str, weight: float, cod: bool = False) -> List[CourierOption]:
        params = {
            "pickup_postcode": origin_postal,
            "delivery_postcode": dest_postal,
            "weight": weight,
            "cod": 1 if cod else 0,
        }

        try:
            response = self._serviceability(params, self._token())
            if response.status_code == 401:
                # token revoked early, log in again once
                self.token_cache.invalidate()
                response = self._serviceability(params, self._token())
            response.raise_for_status()
            data = response.json()
            companies = (data.get("data") or {}).get("available_courier_companies") or []
            options = [self._to_option(c) for c in companies]
        except (requests.RequestException, KeyError, ValueError) as e:
            logger.error(f"Shiprocket serviceability error for {dest_postal}: {e}")
            raise ServiceabilityError("Unable to check serviceability", pincode=dest_postal) from e

        if not options:
            raise ServiceabilityError(f"No courier serves {dest_postal}", pincode=dest_postal)

        options.sort(key=lambda c: c.cost)
        return options[:MAX_OPTIONS]

    @staticmethod
    def _to_option(company: dict) -> CourierOption:
        return CourierOption(
            courier_id=str(company.get("courier_company_id")),
            name=company.get("courier_name", ""),
            cost=float(company.get("rate") or company.get("freight_charge") or 0),
            eta_days=int(company.get("estimated_delivery_days") or company.get("etd_days") or 5),
            cod_available=company.get("cod") == 1,
            rating=float(company.get("rating") or 4.0),
        )

    # -------------------------
    # SHIPMENTS
    # -------------------------
    @http_retry()
    def _post(self, path: str, payload: dict, token: str) -> requests.Response:
        response = self.http.post(
            f"{self.base_url}{path}",
            json=payload,
            headers={"Authorization": f"Bearer {token}"},
            timeout=self.timeout,
        )
        if response.status_code >= 500:
            response.raise_for_status()
        return response

    def _authorized_post(self, path: str, payload: dict) -> dict:
        response = self._post(path, payload, self._token())
        if response.status_code == 401:
            self.token_cache.invalidate()
            response = self._post(path, payload, self._token())
        response.raise_for_status()
        return response.json()

    def _adhoc_order(self, order, weight: float) -> dict:
        first_name, _, last_name = order.delivery_name.partition(" ")
        return {
            "order_id": str(order.id),
            "order_date": order.created_at.strftime("%Y-%m-%d"),
            "pickup_location": self.pickup_location,
            "billing_customer_name": first_name,
            "billing_last_name": last_name,
            "billing_address": order.delivery_address,
            "billing_city": order.delivery_city,
            "billing_pincode": order.delivery_pincode,
            "billing_state": order.delivery_state,
            "billing_country": "India",
            "billing_email": order.delivery_email or "",
            "billing_phone": order.delivery_phone,
            "shipping_is_billing": True,
            "order_items": [
                {
                    "name": item.product_name,
                    "sku": str(item.product_id),
                    "units": item.quantity,
                    "selling_price": item.product_price,
                }
                for item in order.items
            ],
            "payment_method": "Prepaid",
            "sub_total": order.subtotal,
            "length": PACKAGE_SIDE_CM,
            "breadth": PACKAGE_SIDE_CM,
            "height": PACKAGE_SIDE_CM,
            "weight": weight,
        }

    def create_shipment(self, order, courier_id: Optional[str], weight: float) -> Shipment:
        """
        Create the Shiprocket order, then ask for an AWB on the chosen
        courier. Once the order exists upstream a failed AWB request is
        not an error: the shipment comes back as pending_awb.
        """
        try:
            created = self._authorized_post("/v1/external/orders/create/adhoc", self._adhoc_order(order, weight))
        except (requests.RequestException, ValueError) as e:
            logger.error(f"Shiprocket order creation failed for order {order.id}: {e}")
            raise ShipmentError("Unable to create shipment", order_id=order.id) from e

        shipment_id = created.get("shipment_id")
        if not shipment_id:
            raise ShipmentError("Shiprocket returned no shipment id", order_id=order.id)

        if not courier_id:
            return Shipment(shipment_id=str(shipment_id), status="pending_awb")

        try:
            assigned = self._authorized_post(
                "/v1/external/courier/assign/awb",
                {"shipment_id": shipment_id, "courier_id": courier_id},
            )
        except (requests.RequestException, ValueError) as e:
            logger.warning(f"AWB assignment failed for shipment {shipment_id}: {e}")
            return Shipment(shipment_id=str(shipment_id), status="pending_awb")

        awb = (assigned.get("response") or {}).get("data") or {}
        logger.info(f"Shipment {shipment_id} created for order {order.id}, AWB {awb.get('awb_code')}")
        return Shipment(
            shipment_id=str(shipment_id),
            status="created" if awb.get("awb_code") else "pending_awb",
            awb_code=awb.get("awb_code"),
            courier_name=awb.get("courier_name"),
            tracking_url=awb.get("tracking_url"),
        )

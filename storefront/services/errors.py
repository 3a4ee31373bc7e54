"""
Checkout error taxonomy.

Errors raised before an order exists (empty cart, unserviceable address)
leave no durable trace. Errors raised after the order row exists leave it
pending so a late gateway callback can still resolve it.
"""


class CheckoutError(Exception):
    """Base class for checkout / reconciliation failures"""

    def __init__(self, message: str = "", **context):
        super().__init__(message or self.__class__.__name__)
        self.message = message or self.__class__.__name__
        self.context = context


class EmptyCartError(CheckoutError):
    pass


class ServiceabilityError(CheckoutError):
    """No courier can serve the destination, or the rate provider is down"""


class GatewaySessionError(CheckoutError):
    """Payment provider unreachable or rejected the session request"""


class InvalidSignatureError(CheckoutError):
    """Callback authentication failed; nothing may be mutated"""


class OrderNotFoundError(CheckoutError):
    pass


class ShipmentError(CheckoutError):
    """Courier booking rejected or the shipping API is down"""


class PersistenceError(CheckoutError):
    pass

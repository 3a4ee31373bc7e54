import logging
from dataclasses import dataclass
from datetime import datetime
from typing import List, Mapping, Optional, Tuple

from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, select

from storefront.config import settings
from storefront.constants.order_status import OrderStatus, PaymentStatus
from storefront.models.order import Order
from storefront.models.order_item import OrderItem
from storefront.models.user import User
from storefront.schemas.checkout_schemas import (
    DeliveryInfo,
    RazorpayPaymentVerifySchema,
    ShippingSelection,
)
from storefront.services.cart_service import cart_snapshot, clear_cart
from storefront.services.errors import (
    EmptyCartError,
    GatewaySessionError,
    InvalidSignatureError,
    OrderNotFoundError,
    PersistenceError,
)
from storefront.services.order_event_service import log_order_event
from storefront.services.payments import (
    CallbackStatus,
    Customer,
    PaymentCallback,
    PaymentGateway,
    PaymentSession,
    SessionItem,
    get_payment_gateway,
)
from storefront.services.pricing import CartLine, Totals, compute_totals, total_weight
from storefront.services.shipping import CourierOption, RateProvider, get_rate_provider

logger = logging.getLogger(__name__)


@dataclass
class CheckoutResult:
    order: Order
    session: PaymentSession
    provider: str


@dataclass
class ReconcileResult:
    order: Order
    outcome: str      # paid | failed | refunded | pending | ignored
    applied: bool     # False when the callback changed nothing


class CheckoutService:
    """
    Drives a cart to a paid order.

    begin_checkout() creates the order and the payment session;
    reconcile() applies verified gateway callbacks. Every transition is
    idempotent so duplicated or reordered webhooks are harmless.
    """

    def __init__(
        self,
        gateway: PaymentGateway,
        rate_provider: RateProvider,
        tax_rate: float,
        flat_shipping_cost: float = 0.0,
        pickup_pincode: str = "110001",
        currency: str = "INR",
    ):
        self.gateway = gateway
        self.rate_provider = rate_provider
        self.tax_rate = tax_rate
        self.flat_shipping_cost = flat_shipping_cost
        self.pickup_pincode = pickup_pincode
        self.currency = currency

    # -------------------------
    # PRE-ORDER
    # -------------------------
    def summarize(self, session: Session, user_id: int, shipping_cost: Optional[float] = None) -> Tuple[List[CartLine], Totals]:
        lines = cart_snapshot(session, user_id)
        if not lines:
            raise EmptyCartError("Your cart is empty.", user_id=user_id)

        if shipping_cost is None:
            shipping_cost = self.flat_shipping_cost
        return lines, compute_totals(lines, self.tax_rate, shipping_cost)

    def serviceability(self, session: Session, user_id: int, pincode: str, cod: bool = False) -> Tuple[float, List[CourierOption]]:
        lines = cart_snapshot(session, user_id)
        if not lines:
            raise EmptyCartError("Your cart is empty.", user_id=user_id)

        weight = total_weight(lines)
        return weight, self.rate_provider.get_rates(self.pickup_pincode, pincode, weight, cod)

    # -------------------------
    # BEGIN CHECKOUT
    # -------------------------
    def begin_checkout(
        self,
        session: Session,
        user: User,
        delivery: DeliveryInfo,
        shipping_selection: Optional[ShippingSelection] = None,
    ) -> CheckoutResult:
        lines = cart_snapshot(session, user.id)
        if not lines:
            raise EmptyCartError("Your cart is empty.", user_id=user.id)

        # serviceability is settled before any order row exists
        courier = None
        if shipping_selection:
            courier = self.rate_provider.quote(
                self.pickup_pincode,
                delivery.pincode,
                total_weight(lines),
                shipping_selection.courier_id,
            )
            shipping_cost = courier.cost
        else:
            shipping_cost = self.flat_shipping_cost

        totals = compute_totals(lines, self.tax_rate, shipping_cost)
        order = self._create_order(session, user, delivery, lines, totals, courier)

        customer = Customer(
            name=delivery.name,
            email=delivery.email or user.email,
            phone=delivery.phone,
        )
        items = [
            SessionItem(sku=str(line.product_id), name=line.product_name, qty=line.quantity, price=line.unit_price)
            for line in lines
        ]

        try:
            payment_session = self.gateway.create_session(order, totals.total, customer, items)
        except GatewaySessionError as e:
            # order stays pending without payment_id; the expiry sweep closes it
            logger.error(f"Payment session failed for order {order.id}: {e.message}")
            log_order_event(
                session, order.id, "payment_session_failed", "Payment session could not be created",
                meta={"provider": self.gateway.name, "error": e.message},
            )
            self._commit(session, order.id)
            raise

        # persisted at once: a webhook may land on another instance
        order.payment_id = payment_session.session_ref
        order.updated_at = datetime.utcnow()
        session.add(order)
        log_order_event(
            session, order.id, "payment_session_created", "Payment session created",
            meta={"provider": self.gateway.name, "session_ref": payment_session.session_ref},
        )
        self._commit(session, order.id)
        session.refresh(order)

        logger.info(
            f"Checkout started: order {order.id}, {self.gateway.name} session {order.payment_id}, total {order.total_amount}"
        )
        return CheckoutResult(order=order, session=payment_session, provider=self.gateway.name)

    def _create_order(
        self,
        session: Session,
        user: User,
        delivery: DeliveryInfo,
        lines: List[CartLine],
        totals: Totals,
        courier: Optional[CourierOption],
    ) -> Order:
        order = Order(
            user_id=user.id,
            subtotal=totals.subtotal,
            tax=totals.tax,
            shipping_cost=totals.shipping,
            total_amount=totals.total,
            currency=self.currency,
            status=OrderStatus.pending.value,
            payment_status=PaymentStatus.pending.value,
            payment_provider=self.gateway.name,
            courier_id=courier.courier_id if courier else None,
            courier_name=courier.name if courier else None,
            estimated_days=courier.eta_days if courier else None,
            delivery_name=delivery.name,
            delivery_phone=delivery.phone,
            delivery_email=delivery.email or user.email,
            delivery_address=delivery.address,
            delivery_city=delivery.city,
            delivery_state=delivery.state,
            delivery_pincode=delivery.pincode,
        )

        try:
            session.add(order)
            session.flush()

            for line in lines:
                session.add(
                    OrderItem(
                        order_id=order.id,
                        product_id=line.product_id,
                        product_name=line.product_name,
                        product_price=line.unit_price,
                        quantity=line.quantity,
                    )
                )

            log_order_event(
                session, order.id, "order_placed", "Order placed",
                meta={"total": totals.total, "items": len(lines)},
            )
            session.commit()
        except SQLAlchemyError as e:
            session.rollback()
            logger.exception(f"Could not persist order for user {user.id}")
            raise PersistenceError("Failed to create order", user_id=user.id) from e

        session.refresh(order)
        return order

    # -------------------------
    # CALLBACKS
    # -------------------------
    def handle_callback(
        self,
        session: Session,
        gateway: PaymentGateway,
        body: bytes,
        headers: Mapping[str, str],
        query: Mapping[str, str],
    ) -> ReconcileResult:
        """Authenticate + normalize at the adapter, then reconcile"""
        try:
            callback = gateway.parse_callback(body, headers, query)
        except InvalidSignatureError:
            logger.warning(f"SECURITY: rejected {gateway.name} callback with invalid signature")
            raise

        return self.reconcile(session, callback)

    def verify_client_payment(self, session: Session, user: User, payload: RazorpayPaymentVerifySchema) -> ReconcileResult:
        """Razorpay checkout handler posts a signed result; same path as the webhook"""
        verify_payment = getattr(self.gateway, "verify_payment", None)
        if verify_payment is None:
            raise GatewaySessionError(f"{self.gateway.name} has no client-side verification")

        if not verify_payment(payload.razorpay_order_id, payload.razorpay_payment_id, payload.razorpay_signature):
            logger.warning(f"SECURITY: invalid checkout signature for {payload.razorpay_order_id}")
            raise InvalidSignatureError("Payment verification failed", provider=self.gateway.name)

        order = self._find_order(session, self.gateway.name, payload.razorpay_order_id)
        if order.user_id != user.id:
            raise OrderNotFoundError("Order not found", correlation_key=payload.razorpay_order_id)

        return self.reconcile(
            session,
            PaymentCallback(
                provider=self.gateway.name,
                correlation_key=payload.razorpay_order_id,
                status=CallbackStatus.SUCCESS,
                gateway_txn_id=payload.razorpay_payment_id,
                event="checkout.handler",
            ),
        )

    def reconcile(self, session: Session, callback: PaymentCallback) -> ReconcileResult:
        """
        Apply a verified, normalized callback to its order.

        success  -> paid / confirmed, cart cleared
        failed   -> failed / payment_failed, cart kept for retry
        refunded -> refunded / refunded (only from paid)
        pending  -> logged, nothing changes

        Re-applying a transition already in effect is a no-op.
        """
        order = self._find_order(session, callback.provider, callback.correlation_key)

        if callback.expected_order_id is not None and callback.expected_order_id != order.id:
            logger.warning(
                f"Callback order {callback.expected_order_id} does not match session {callback.correlation_key}"
            )
            raise OrderNotFoundError("Order not found", correlation_key=callback.correlation_key)

        if callback.status == CallbackStatus.SUCCESS:
            return self._mark_paid(session, order, callback)
        if callback.status == CallbackStatus.FAILED:
            return self._mark_failed(session, order, callback)
        if callback.status == CallbackStatus.REFUNDED:
            return self._mark_refunded(session, order, callback)

        logger.info(f"Ignoring {callback.provider} callback '{callback.event}' for order {order.id}")
        return ReconcileResult(order=order, outcome="pending", applied=False)

    def _find_order(self, session: Session, provider: str, correlation_key: str) -> Order:
        if not correlation_key:
            logger.warning(f"{provider} callback without correlation key")
            raise OrderNotFoundError("Callback carries no correlation key")

        order = session.exec(
            select(Order).where(Order.payment_id == correlation_key)
        ).first()

        if order is None or (order.payment_provider and order.payment_provider != provider):
            logger.warning(f"No order for {provider} correlation key {correlation_key}")
            raise OrderNotFoundError("Order not found", correlation_key=correlation_key)

        return order

    def _mark_paid(self, session: Session, order: Order, callback: PaymentCallback) -> ReconcileResult:
        if order.payment_status == PaymentStatus.paid.value:
            logger.info(f"Order {order.id} already paid, duplicate callback ignored")
            return ReconcileResult(order=order, outcome="paid", applied=False)

        if order.payment_status == PaymentStatus.refunded.value:
            logger.warning(f"Success callback for refunded order {order.id} ignored")
            return ReconcileResult(order=order, outcome="ignored", applied=False)

        previous = order.payment_status
        order.payment_status = PaymentStatus.paid.value
        order.status = OrderStatus.confirmed.value
        order.gateway_txn_id = callback.gateway_txn_id or order.gateway_txn_id
        order.updated_at = datetime.utcnow()
        session.add(order)

        log_order_event(
            session, order.id, "payment_success", "Payment received",
            created_by=callback.provider,
            meta={"txn_id": callback.gateway_txn_id, "event": callback.event, "previous": previous},
        )
        clear_cart(session, order.user_id, commit=False)
        self._commit(session, order.id)
        session.refresh(order)

        logger.info(f"✅ Order {order.id} paid via {callback.provider} ({callback.gateway_txn_id})")
        return ReconcileResult(order=order, outcome="paid", applied=True)

    def _mark_failed(self, session: Session, order: Order, callback: PaymentCallback) -> ReconcileResult:
        if order.payment_status == PaymentStatus.failed.value:
            return ReconcileResult(order=order, outcome="failed", applied=False)

        if order.payment_status != PaymentStatus.pending.value:
            # a late failure never downgrades a paid / refunded / cancelled order
            logger.info(f"Failure callback for order {order.id} in {order.payment_status} ignored")
            return ReconcileResult(order=order, outcome="ignored", applied=False)

        order.payment_status = PaymentStatus.failed.value
        order.status = OrderStatus.payment_failed.value
        order.updated_at = datetime.utcnow()
        session.add(order)

        log_order_event(
            session, order.id, "payment_failed", "Payment failed",
            created_by=callback.provider,
            meta={"txn_id": callback.gateway_txn_id, "event": callback.event},
        )
        self._commit(session, order.id)
        session.refresh(order)

        logger.info(f"Order {order.id} payment failed via {callback.provider}")
        return ReconcileResult(order=order, outcome="failed", applied=True)

    def _mark_refunded(self, session: Session, order: Order, callback: PaymentCallback) -> ReconcileResult:
        if order.payment_status == PaymentStatus.refunded.value:
            return ReconcileResult(order=order, outcome="refunded", applied=False)

        if order.payment_status != PaymentStatus.paid.value:
            logger.warning(f"Refund callback for unpaid order {order.id} ignored")
            return ReconcileResult(order=order, outcome="ignored", applied=False)

        order.payment_status = PaymentStatus.refunded.value
        order.status = OrderStatus.refunded.value
        order.updated_at = datetime.utcnow()
        session.add(order)

        log_order_event(
            session, order.id, "refund_processed", "Payment refunded",
            created_by=callback.provider,
            meta={"txn_id": callback.gateway_txn_id, "event": callback.event},
        )
        self._commit(session, order.id)
        session.refresh(order)

        logger.info(f"Order {order.id} refunded via {callback.provider}")
        return ReconcileResult(order=order, outcome="refunded", applied=True)

    @staticmethod
    def _commit(session: Session, order_id: Optional[int]) -> None:
        try:
            session.commit()
        except SQLAlchemyError as e:
            session.rollback()
            logger.exception(f"Could not persist changes for order {order_id}")
            raise PersistenceError("Failed to update order", order_id=order_id) from e


def get_checkout_service() -> CheckoutService:
    return CheckoutService(
        gateway=get_payment_gateway(),
        rate_provider=get_rate_provider(),
        tax_rate=settings.TAX_RATE,
        flat_shipping_cost=settings.FLAT_SHIPPING_COST,
        pickup_pincode=settings.PICKUP_PINCODE,
        currency=settings.CURRENCY,
    )

import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlmodel import Session

from storefront.database import get_session
from storefront.models.user import User
from storefront.schemas.checkout_schemas import (
    CartSummary,
    CheckoutRequest,
    CheckoutResponse,
    CourierOptionOut,
    RazorpayPaymentVerifySchema,
    ServiceabilityRequest,
    ServiceabilityResponse,
    SummaryItem,
)
from storefront.services.checkout_service import CheckoutService, get_checkout_service
from storefront.services.errors import (
    EmptyCartError,
    GatewaySessionError,
    InvalidSignatureError,
    OrderNotFoundError,
    PersistenceError,
    ServiceabilityError,
)
from storefront.utils.token import get_current_user

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/serviceability", response_model=ServiceabilityResponse)
def check_serviceability(
    data: ServiceabilityRequest,
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
    checkout: CheckoutService = Depends(get_checkout_service),
):
    """Courier options for the cart, shown before any order exists"""
    try:
        weight, options = checkout.serviceability(session, current_user.id, data.delivery_pincode, data.cod)
    except EmptyCartError as e:
        raise HTTPException(400, e.message)
    except ServiceabilityError as e:
        raise HTTPException(422, e.message)

    return ServiceabilityResponse(
        serviceable=bool(options),
        weight=weight,
        couriers=[
            CourierOptionOut(
                courier_id=o.courier_id,
                name=o.name,
                cost=o.cost,
                eta_days=o.eta_days,
                cod_available=o.cod_available,
                rating=o.rating,
            )
            for o in options
        ],
    )


@router.post("/summary", response_model=CartSummary)
def checkout_summary(
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
    checkout: CheckoutService = Depends(get_checkout_service),
):
    try:
        lines, totals = checkout.summarize(session, current_user.id)
    except EmptyCartError as e:
        raise HTTPException(400, e.message)

    return CartSummary(
        items=[
            SummaryItem(
                product_id=line.product_id,
                product_name=line.product_name,
                quantity=line.quantity,
                price=line.unit_price,
                line_total=line.line_total,
            )
            for line in lines
        ],
        subtotal=totals.subtotal,
        tax=totals.tax,
        shipping=totals.shipping,
        total=totals.total,
    )


@router.post("/begin", response_model=CheckoutResponse)
def begin_checkout(
    data: CheckoutRequest,
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
    checkout: CheckoutService = Depends(get_checkout_service),
):
    """Create the pending order and its payment session. Cart stays intact"""
    try:
        result = checkout.begin_checkout(session, current_user, data.delivery, data.shipping)
    except EmptyCartError as e:
        raise HTTPException(400, e.message)
    except ServiceabilityError as e:
        raise HTTPException(422, e.message)
    except GatewaySessionError:
        raise HTTPException(502,"Payment provider unavailable, please retry")
    except PersistenceError as e:
        raise HTTPException(500, e.message)

    order = result.order
    return CheckoutResponse(
        order_id=order.id,
        status=order.status,
        payment_status=order.payment_status,
        provider=result.provider,
        session_ref=result.session.session_ref,
        redirect_url=result.session.redirect_url,
        client_options=result.session.client_options,
        total_amount=order.total_amount,
        currency=order.currency,
    )


@router.post("/razorpay/verify")
def verify_razorpay_payment(
    payload: RazorpayPaymentVerifySchema,
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
    checkout: CheckoutService = Depends(get_checkout_service),
):
    """checkout.js success handler; the webhook may still arrive later"""
    try:
        result = checkout.verify_client_payment(session, current_user, payload)
    except InvalidSignatureError:
        raise HTTPException(400, "Payment verification failed")
    except OrderNotFoundError:
        raise HTTPException(404, "Order not found")
    except GatewaySessionError as e:
        raise HTTPException(400, e.message)
    except PersistenceError as e:
        raise HTTPException(500, e.message)

    order = result.order
    return {
        "message": "Payment verified successfully" if result.applied else "Payment already processed",
        "order_id": order.id,
        "status": order.status,
        "payment_status": order.payment_status,
        "txn_id": order.gateway_txn_id,
    }

"""
Gateway callbacks. Reached service-to-service without a user session;
authenticity comes from the provider signature alone.

Every authenticated callback is acknowledged with 200, including ones for
unknown orders, so the provider stops retrying. Only a bad signature (401),
an unreadable body (400) or a failed write (500, the provider retries)
answer otherwise.
"""
import logging

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse, RedirectResponse
from sqlmodel import Session

from storefront.config import settings
from storefront.constants.order_status import PaymentStatus
from storefront.database import get_session
from storefront.services.checkout_service import CheckoutService, get_checkout_service
from storefront.services.errors import (
    InvalidSignatureError,
    OrderNotFoundError,
    PersistenceError,
)
from storefront.services.payments import PaymentGateway, get_gateway

logger = logging.getLogger(__name__)

router = APIRouter()


def get_razorpay_gateway() -> PaymentGateway:
    return get_gateway("razorpay")


def get_shiprocket_gateway() -> PaymentGateway:
    return get_gateway("shiprocket")


def get_sandbox_gateway() -> PaymentGateway:
    return get_gateway("sandbox")


async def _process(
    request: Request,
    session: Session,
    checkout: CheckoutService,
    gateway: PaymentGateway,
) -> JSONResponse:
    body = await request.body()

    try:
        result = await run_in_threadpool(
            checkout.handle_callback,
            session,
            gateway,
            body,
            request.headers,
            request.query_params,
        )
    except InvalidSignatureError:
        return JSONResponse({"error": "Invalid signature"}, status_code=401)
    except OrderNotFoundError as e:
        logger.warning(f"{gateway.name} webhook for unknown order: {e.context}")
        return JSONResponse({"status": "ignored", "reason": "order not found"})
    except ValueError as e:
        logger.warning(f"Malformed {gateway.name} webhook: {e}")
        return JSONResponse({"error": "Malformed payload"}, status_code=400)
    except PersistenceError as e:
        return JSONResponse({"error": e.message}, status_code=500)

    return JSONResponse(
        {
            "status": "ok",
            "order_id": result.order.id,
            "payment_status": result.order.payment_status,
            "outcome": result.outcome,
            "applied": result.applied,
        }
    )


@router.post("/razorpay")
async def razorpay_webhook(
    request: Request,
    session: Session = Depends(get_session),
    checkout: CheckoutService = Depends(get_checkout_service),
    gateway: PaymentGateway = Depends(get_razorpay_gateway),
):
    return await _process(request, session, checkout, gateway)


@router.post("/shiprocket")
async def shiprocket_webhook(
    request: Request,
    session: Session = Depends(get_session),
    checkout: CheckoutService = Depends(get_checkout_service),
    gateway: PaymentGateway = Depends(get_shiprocket_gateway),
):
    return await _process(request, session, checkout, gateway)


@router.get("/sandbox")
def sandbox_callback(
    request: Request,
    session: Session = Depends(get_session),
    checkout: CheckoutService = Depends(get_checkout_service),
    gateway: PaymentGateway = Depends(get_sandbox_gateway),
):
    """
    Test-mode stand-in for a signed webhook: order_id, session_id and status
    arrive as query parameters and run through the same reconcile().
    """
    if settings.PAYMENT_PROVIDER.lower() != "sandbox":
        raise HTTPException(404, "Not found")

    frontend = settings.frontend_url.rstrip("/")

    try:
        result = checkout.handle_callback(session, gateway, b"", request.headers, request.query_params)
    except ValueError as e:
        raise HTTPException(400, str(e))
    except OrderNotFoundError:
        return RedirectResponse(f"{frontend}/checkout?payment=unknown", status_code=302)

    if result.order.payment_status == PaymentStatus.paid.value:
        return RedirectResponse(f"{frontend}/order-history?payment=success", status_code=302)
    if result.order.payment_status == PaymentStatus.failed.value:
        return RedirectResponse(f"{frontend}/checkout?payment=failed", status_code=302)
    return RedirectResponse(f"{frontend}/checkout?payment=pending", status_code=302)

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import HTMLResponse
from sqlmodel import Session, select

from storefront.config import settings
from storefront.database import get_session
from storefront.models.order import Order
from storefront.routes.webhooks import get_sandbox_gateway
from storefront.services.payments import PaymentGateway
from storefront.utils.template import render_template

router = APIRouter()


# Mock payment page served in test mode

@router.get("/pay", response_class=HTMLResponse)
def sandbox_payment_page(
    session_id: str,
    order_id: int,
    session: Session = Depends(get_session),
    gateway: PaymentGateway = Depends(get_sandbox_gateway),
):
    if settings.PAYMENT_PROVIDER.lower() != "sandbox":
        raise HTTPException(404, "Not found")

    order = session.exec(
        select(Order).where(Order.payment_id == session_id)
    ).first()

    if not order or order.id != order_id:
        raise HTTPException(404, "Payment session not found")

    html = render_template(
        "sandbox/pay.html",
        order_id=order.id,
        session_id=session_id,
        amount=f"{order.total_amount:.2f}",
        currency=order.currency,
        success_url=gateway.callback_url(session_id, order.id, "success"),
        failure_url=gateway.callback_url(session_id, order.id, "failed"),
    )
    return HTMLResponse(html)

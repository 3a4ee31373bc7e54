# -------- ADMIN ORDERS --------
from datetime import date, datetime, timedelta
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, select

from storefront.constants.order_status import OrderStatus, PaymentStatus, can_transition
from storefront.database import get_session
from storefront.models.order import Order
from storefront.routes.user_orders import serialize_order
from storefront.schemas.orders_schemas import OrderOut, OrderStatusUpdate
from storefront.services.errors import PersistenceError, ShipmentError
from storefront.services.order_event_service import log_order_event
from storefront.services.shipment_service import book_shipment
from storefront.services.shipping import RateProvider, get_rate_provider
from storefront.utils.pagination import paginate
from storefront.utils.token import get_current_admin


router = APIRouter()


@router.get("")
def list_orders(
    page: int = 1,
    limit: int = 10,
    status: OrderStatus | None = None,
    payment_status: PaymentStatus | None = None,
    start_date: date | None = Query(None),
    end_date: date | None = Query(None),
    session: Session = Depends(get_session),
    _: dict = Depends(get_current_admin)
):
    query = select(Order)

    if status:
        query = query.where(Order.status == status.value)

    if payment_status:
        query = query.where(Order.payment_status == payment_status.value)

    if start_date:
        query = query.where(Order.created_at >= start_date)

    if end_date:
        # end_date is inclusive
        query = query.where(Order.created_at < end_date + timedelta(days=1))

    query = query.order_by(Order.created_at.desc(), Order.id.desc())

    return paginate(
        session=session,
        query=query,
        page=page,
        limit=limit,
        serialize=lambda o: serialize_order(session, o),
    )


@router.get("/{order_id}", response_model=OrderOut)
def get_order(
    order_id: int,
    session: Session = Depends(get_session),
    _: dict = Depends(get_current_admin)
):
    order = session.get(Order, order_id)
    if not order:
        raise HTTPException(404, "Order not found")
    return serialize_order(session, order, with_timeline=True)


@router.patch("/{order_id}/status", response_model=OrderOut)
def update_order_status(
    order_id: int,
    data: OrderStatusUpdate,
    session: Session = Depends(get_session),
    _: dict = Depends(get_current_admin)
):
    """Fulfilment moves only; payment state is owned by the gateway callbacks"""
    order = session.get(Order, order_id)
    if not order:
        raise HTTPException(404, "Order not found")

    if not can_transition(order.status, data.status.value):
        raise HTTPException(
            400,
            f"Cannot change status from {order.status} to {data.status.value}"
        )

    previous = order.status
    order.status = data.status.value
    if data.status == OrderStatus.cancelled and order.payment_status == PaymentStatus.pending.value:
        order.payment_status = PaymentStatus.cancelled.value
    order.updated_at = datetime.utcnow()
    session.add(order)

    log_order_event(
        session, order.id, f"status_{data.status.value}",
        data.note or f"Status changed to {data.status.value}",
        created_by="admin",
        meta={"previous": previous},
    )

    try:
        session.commit()
    except SQLAlchemyError:
        session.rollback()
        raise HTTPException(500, "Failed to update order")

    session.refresh(order)
    return serialize_order(session, order, with_timeline=True)


@router.post("/{order_id}/shipment", response_model=OrderOut)
def create_shipment(
    order_id: int,
    session: Session = Depends(get_session),
    rate_provider: RateProvider = Depends(get_rate_provider),
    _: dict = Depends(get_current_admin)
):
    """Book a paid, confirmed order with the courier"""
    order = session.get(Order, order_id)
    if not order:
        raise HTTPException(404, "Order not found")

    if order.status != OrderStatus.confirmed.value or not order.is_paid:
        raise HTTPException(400, "Only paid, confirmed orders can be shipped")

    if order.shipment_id:
        raise HTTPException(409, f"Shipment {order.shipment_id} already exists")

    try:
        order = book_shipment(session, order, rate_provider)
    except ShipmentError as e:
        raise HTTPException(502, e.message)
    except PersistenceError as e:
        raise HTTPException(500, e.message)

    return serialize_order(session, order, with_timeline=True)

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlmodel import Session, select

from storefront.database import get_session
from storefront.models.order import Order
from storefront.models.order_item import OrderItem
from storefront.models.user import User
from storefront.schemas.orders_schemas import OrderEventOut, OrderItemOut, OrderOut
from storefront.services.order_event_service import list_order_events
from storefront.utils.pagination import paginate
from storefront.utils.token import get_current_user

router = APIRouter()


def serialize_order(session: Session, order: Order, with_timeline: bool = False) -> OrderOut:
    items = session.exec(
        select(OrderItem).where(OrderItem.order_id == order.id).order_by(OrderItem.id)
    ).all()

    timeline = []
    if with_timeline:
        timeline = [
            OrderEventOut(
                event_type=e.event_type,
                label=e.label,
                created_by=e.created_by,
                created_at=e.created_at,
            )
            for e in list_order_events(session, order.id)
        ]

    return OrderOut(
        id=order.id,
        status=order.status,
        payment_status=order.payment_status,
        payment_provider=order.payment_provider,
        subtotal=order.subtotal,
        tax=order.tax,
        shipping_cost=order.shipping_cost,
        total_amount=order.total_amount,
        currency=order.currency,
        courier_name=order.courier_name,
        shipment_id=order.shipment_id,
        shipment_status=order.shipment_status,
        awb_code=order.awb_code,
        tracking_url=order.tracking_url,
        delivery_city=order.delivery_city,
        delivery_pincode=order.delivery_pincode,
        created_at=order.created_at,
        items=[
            OrderItemOut(
                product_id=i.product_id,
                product_name=i.product_name,
                product_price=i.product_price,
                quantity=i.quantity,
                line_total=i.line_total,
            )
            for i in items
        ],
        timeline=timeline,
    )


# Order History

@router.get("")
def list_my_orders(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=50),
    status: str | None = None,
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    query = select(Order).where(Order.user_id == current_user.id)

    if status:
        query = query.where(Order.status == status)

    query = query.order_by(Order.created_at.desc(), Order.id.desc())

    return paginate(
        session=session,
        query=query,
        page=page,
        limit=limit,
        serialize=lambda o: serialize_order(session, o),
    )


@router.get("/{order_id}", response_model=OrderOut)
def get_my_order(
    order_id: int,
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    order = session.get(Order, order_id)

    if not order or order.user_id != current_user.id:
        raise HTTPException(404, "Order not found")

    return serialize_order(session, order, with_timeline=True)

import logging
from datetime import datetime

from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session

from storefront.models.order import Order
from storefront.models.product import Product
from storefront.services.errors import PersistenceError
from storefront.services.order_event_service import log_order_event
from storefront.services.pricing import CartLine, total_weight
from storefront.services.shipping import RateProvider

logger = logging.getLogger(__name__)


def order_weight(session: Session, order: Order) -> float:
    """Package weight from the ordered quantities and current product weights"""
    lines = []
    for item in order.items:
        product = session.get(Product, item.product_id)
        lines.append(
            CartLine(
                product_id=item.product_id,
                product_name=item.product_name,
                unit_price=item.product_price,
                quantity=item.quantity,
                weight_kg=product.weight_kg if product else None,
            )
        )
    return total_weight(lines)


def book_shipment(session: Session, order: Order, rate_provider: RateProvider, created_by: str = "admin") -> Order:
    """
    Hand a confirmed order to the courier and store the shipment on it.
    The caller checks the order is paid and not yet booked.
    """
    shipment = rate_provider.create_shipment(order, order.courier_id, order_weight(session, order))

    order.shipment_id = shipment.shipment_id
    order.shipment_status = shipment.status
    order.awb_code = shipment.awb_code
    order.tracking_url = shipment.tracking_url
    if shipment.courier_name:
        order.courier_name = shipment.courier_name
    order.updated_at = datetime.utcnow()
    session.add(order)

    log_order_event(
        session, order.id, "shipment_created",
        f"Shipment {shipment.shipment_id} created",
        created_by=created_by,
        meta={"provider": rate_provider.name, "status": shipment.status, "awb_code": shipment.awb_code},
    )

    try:
        session.commit()
    except SQLAlchemyError as e:
        session.rollback()
        logger.exception(f"Could not store shipment {shipment.shipment_id} for order {order.id}")
        raise PersistenceError("Failed to store shipment", order_id=order.id) from e

    session.refresh(order)
    logger.info(f"Order {order.id} booked with {rate_provider.name}: shipment {order.shipment_id}")
    return order

import logging
from datetime import datetime, timedelta
from typing import Optional

from sqlmodel import Session, select

from storefront.config import settings
from storefront.constants.order_status import OrderStatus, PaymentStatus
from storefront.database import engine
from storefront.models.order import Order
from storefront.services.order_event_service import log_order_event

logger = logging.getLogger(__name__)


def expire_stale_orders(
    session: Optional[Session] = None,
    now: Optional[datetime] = None,
    expiry_hours: Optional[int] = None,
) -> int:
    """
    Cancel orders whose payment never resolved. A success callback that
    still arrives afterwards wins and marks the order paid.
    """
    if session is None:
        with Session(engine) as own_session:
            return expire_stale_orders(own_session, now, expiry_hours)

    now = now or datetime.utcnow()
    cutoff = now - timedelta(hours=expiry_hours or settings.PAYMENT_EXPIRY_HOURS)

    orders = session.exec(
        select(Order)
        .where(Order.payment_status == PaymentStatus.pending.value)
        .where(Order.status == OrderStatus.pending.value)
        .where(Order.created_at < cutoff)
    ).all()

    for order in orders:
        order.status = OrderStatus.cancelled.value
        order.payment_status = PaymentStatus.cancelled.value
        order.updated_at = now
        session.add(order)
        log_order_event(
            session, order.id, "payment_expired", "Payment window expired",
            meta={"cutoff": cutoff.isoformat()},
        )

    session.commit()

    logger.info(f"Expired {len(orders)} unpaid orders")
    return len(orders)


if __name__ == "__main__":
    logging.basicConfig(level=settings.LOG_LEVEL)
    expire_stale_orders()

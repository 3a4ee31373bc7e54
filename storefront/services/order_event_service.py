import logging
from typing import List, Optional

from sqlmodel import Session, select

from storefront.models.order_event import OrderEvent

logger = logging.getLogger(__name__)


def log_order_event(
    session: Session,
    order_id: int,
    event_type: str,
    label: str,
    created_by: str = "system",
    meta: Optional[dict] = None,
) -> OrderEvent:
    """
    Append an entry to the order timeline. Nothing is committed here;
    the caller commits it together with the state change it records.
    """
    event = OrderEvent(
        order_id=order_id,
        event_type=event_type,
        label=label,
        created_by=created_by,
        meta=meta,
    )
    session.add(event)

    logger.debug(f"Order {order_id} event {event_type} by {created_by}")
    return event


def list_order_events(session: Session, order_id: int) -> List[OrderEvent]:
    return session.exec(
        select(OrderEvent)
        .where(OrderEvent.order_id == order_id)
        .order_by(OrderEvent.created_at)
    ).all()

from datetime import datetime
from typing import Optional
from uuid import uuid4

from sqlalchemy import JSON, Column, Index
from sqlmodel import Field, SQLModel


class OrderEvent(SQLModel, table=True):
    """One line of an order's timeline. Rows are only ever inserted"""

    __tablename__ = "order_event"
    __table_args__ = (Index("ix_order_event_timeline", "order_id", "created_at"),)

    id: str = Field(default_factory=lambda: uuid4().hex, primary_key=True)
    order_id: int = Field(foreign_key="order.id")

    # order_placed, payment_success, refund_processed, status_shipped ...
    event_type: str = Field(index=True)
    label: str
    # system | admin | the gateway name
    created_by: str = Field(default="system")
    meta: Optional[dict] = Field(default=None, sa_column=Column(JSON))

    created_at: datetime = Field(default_factory=datetime.utcnow)

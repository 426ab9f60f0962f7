from sqlalchemy import Column, String, Boolean, ForeignKey, Text, DateTime, Index, UniqueConstraint
from deliverydesk.models.base import Base
from datetime import datetime
import uuid


class DeliveryFailure(Base):
    """Failed delivery report. `photos` holds a JSON-encoded array of URLs."""
    __tablename__ = "delivery_failures"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    order_id = Column(String, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False)
    driver_id = Column(String, ForeignKey("users.id"), nullable=False)
    failure_reason = Column(String, nullable=False)
    notes = Column(Text, nullable=True)
    attempted_delivery = Column(Boolean, default=False, nullable=False)
    contacted_customer = Column(Boolean, default=False, nullable=False)
    left_at_location = Column(Boolean, default=False, nullable=False)
    reschedule_requested = Column(Boolean, default=False, nullable=False)
    reschedule_date = Column(DateTime, nullable=True)
    location = Column(String, nullable=True)
    photos = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    __table_args__ = (
        UniqueConstraint("order_id", name="uq_delivery_failures_order"),
        Index("idx_delivery_failures_driver", "driver_id"),
    )

from sqlalchemy import Column, String, ForeignKey, Text, DateTime, Float, Index
from deliverydesk.models.base import Base
from datetime import datetime
import uuid


class OrderUpdate(Base):
    """Append-only audit trail of status-changing actions"""
    __tablename__ = "order_updates"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    order_id = Column(String, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False)
    driver_id = Column(String, ForeignKey("users.id"), nullable=True)
    status = Column(String, nullable=False)
    notes = Column(Text, nullable=True)
    photo_url = Column(Text, nullable=True)  # JSON array of URLs
    latitude = Column(Float, nullable=True)
    longitude = Column(Float, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    __table_args__ = (
        Index("idx_order_updates_order", "order_id", "created_at"),
    )

from sqlalchemy import Column, String, Boolean, ForeignKey, Text, DateTime, Index
from sqlalchemy.orm import relationship
from deliverydesk.models.base import Base
from datetime import datetime
import uuid


class Notification(Base):
    __tablename__ = "notifications"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    title = Column(String, nullable=False)
    message = Column(Text, nullable=False)
    type = Column(String, default="info", nullable=False)  # info, success, warning, error
    read = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)

    user = relationship("User", back_populates="notifications")

    __table_args__ = (
        Index("idx_notifications_user", "user_id", "read"),
    )

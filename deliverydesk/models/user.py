from sqlalchemy import Column, String, Boolean, DateTime
from sqlalchemy.orm import relationship
from deliverydesk.models.base import Base
from datetime import datetime
import uuid


class User(Base):
    __tablename__ = "users"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    name = Column(String, nullable=False)
    email = Column(String, nullable=True)
    role = Column(String, nullable=False)  # "admin", "driver"
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    assigned_orders = relationship("Order", back_populates="driver", foreign_keys="Order.driver_id")
    notifications = relationship("Notification", back_populates="user", cascade="all, delete-orphan")

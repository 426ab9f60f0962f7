from sqlalchemy import Column, String, ForeignKey, Text, DateTime, Index
from sqlalchemy.orm import relationship
from deliverydesk.models.base import Base
from datetime import datetime
import enum
import uuid


class OrderStatus(str, enum.Enum):
    pending = "pending"
    assigned = "assigned"
    in_transit = "in_transit"
    out_for_delivery = "out_for_delivery"
    delivered = "delivered"
    failed = "failed"
    cancelled = "cancelled"


# Statuses a driver may complete (or fail) an order from
COMPLETABLE_STATUSES = (OrderStatus.in_transit.value, OrderStatus.out_for_delivery.value)
TERMINAL_STATUSES = (OrderStatus.delivered.value, OrderStatus.failed.value)


class Order(Base):
    __tablename__ = "orders"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    order_number = Column(String, nullable=False)
    status = Column(String, default=OrderStatus.pending.value, nullable=False)
    driver_id = Column(String, ForeignKey("users.id"), nullable=True)
    created_by = Column(String, ForeignKey("users.id"), nullable=True)
    customer_name = Column(String, nullable=True)
    delivery_address = Column(Text, nullable=True)

    shopify_connection_id = Column(String, ForeignKey("shopify_connections.id"), nullable=True)
    shopify_order_id = Column(String, nullable=True)
    shopify_fulfillment_id = Column(String, nullable=True)
    shopify_fulfilled_at = Column(DateTime, nullable=True)

    # Legacy photo storage: a URL, a JSON array of URLs, or a JSON string
    photo_url = Column(Text, nullable=True)

    completed_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow)

    driver = relationship("User", back_populates="assigned_orders", foreign_keys=[driver_id])
    creator = relationship("User", foreign_keys=[created_by])
    shopify_connection = relationship("ShopifyConnection", back_populates="orders")

    __table_args__ = (
        Index("idx_orders_driver", "driver_id"),
        Index("idx_orders_status", "status"),
        Index("idx_orders_created_by", "created_by"),
    )

from sqlalchemy import Column, String, Boolean, DateTime, ForeignKey, Index
from sqlalchemy.orm import relationship
from deliverydesk.models.base import Base
from datetime import datetime
import uuid


class ShopifyConnection(Base):
    """A connected Shopify store. Tokens are stored Fernet-encrypted."""
    __tablename__ = "shopify_connections"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    admin_id = Column(String, ForeignKey("users.id"), nullable=True)
    shop_domain = Column(String, nullable=False)
    access_token_encrypted = Column(String, nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)

    orders = relationship("Order", back_populates="shopify_connection")

    __table_args__ = (
        Index("idx_shopify_connections_admin", "admin_id"),
    )

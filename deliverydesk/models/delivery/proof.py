from sqlalchemy import Column, String, ForeignKey, Text, DateTime, Float, Index, UniqueConstraint
from sqlalchemy.orm import relationship
from deliverydesk.models.base import Base
from datetime import datetime
import uuid


class ProofOfDelivery(Base):
    """One record per successful completion. Never updated after insert."""
    __tablename__ = "proof_of_delivery"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    order_id = Column(String, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False)
    driver_id = Column(String, ForeignKey("users.id"), nullable=False)
    delivery_timestamp = Column(DateTime, default=datetime.utcnow, nullable=False)
    recipient_name = Column(String, nullable=False)
    recipient_signature = Column(Text, nullable=True)
    delivery_notes = Column(Text, nullable=True)
    location_latitude = Column(Float, nullable=True)
    location_longitude = Column(Float, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    photos = relationship(
        "PodPhoto",
        back_populates="pod",
        cascade="all, delete-orphan",
        order_by="[PodPhoto.created_at, PodPhoto.position]",
    )

    __table_args__ = (
        UniqueConstraint("order_id", name="uq_proof_of_delivery_order"),
        Index("idx_pod_driver", "driver_id"),
    )

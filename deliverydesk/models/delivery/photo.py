from sqlalchemy import Column, String, Integer, ForeignKey, Text, DateTime, Index
from sqlalchemy.orm import relationship
from deliverydesk.models.base import Base
from datetime import datetime
import uuid


class PodPhoto(Base):
    """Normalized POD photo. created_at (then position) is the display order."""
    __tablename__ = "pod_photos"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    pod_id = Column(String, ForeignKey("proof_of_delivery.id", ondelete="CASCADE"), nullable=False)
    photo_url = Column(Text, nullable=False)  # remote URL or inline data: URL
    photo_type = Column(String, default="delivery", nullable=False)
    description = Column(Text, nullable=True)
    file_size = Column(Integer, nullable=True)
    mime_type = Column(String, nullable=True)
    position = Column(Integer, default=0, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)

    pod = relationship("ProofOfDelivery", back_populates="photos")

    __table_args__ = (
        Index("idx_pod_photos_pod", "pod_id", "created_at"),
    )

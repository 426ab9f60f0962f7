from pydantic import BaseModel, Field
from typing import List, Optional
from enum import Enum
from datetime import datetime


# ---------- Enums ----------
class PhotoSource(str, Enum):
    pod_photos = "pod_photos"
    failure = "failure"
    legacy = "legacy"


# ---------- Completion payload (driver -> reconciler) ----------
class GeoPoint(BaseModel):
    lat: float
    lng: float


class PhotoFile(BaseModel):
    size: Optional[int] = None
    type: Optional[str] = None
    name: Optional[str] = None


class PhotoEntry(BaseModel):
    id: Optional[str] = None
    url: Optional[str] = None  # remote URL or inline data: URL
    type: Optional[str] = "delivery"
    description: Optional[str] = None
    file: Optional[PhotoFile] = None


class CompletionData(BaseModel):
    customer_name: Optional[str] = Field(None, alias="customerName")
    notes: Optional[str] = None
    signature: Optional[str] = None
    location: Optional[GeoPoint] = None
    photos: List[PhotoEntry] = []

    class Config:
        populate_by_name = True


class CompleteOrderRequest(BaseModel):
    order_id: str = Field(..., alias="orderId")
    driver_id: Optional[str] = Field(None, alias="driverId")
    completion_data: CompletionData = Field(..., alias="completionData")

    class Config:
        populate_by_name = True


class FailureData(BaseModel):
    failure_reason: Optional[str] = Field(None, alias="failureReason")
    notes: Optional[str] = None
    attempted_delivery: bool = Field(False, alias="attemptedDelivery")
    contacted_customer: bool = Field(False, alias="contactedCustomer")
    left_at_location: bool = Field(False, alias="leftAtLocation")
    reschedule_requested: bool = Field(False, alias="rescheduleRequested")
    reschedule_date: Optional[datetime] = Field(None, alias="rescheduleDate")
    location: Optional[str] = None
    photos: List[PhotoEntry] = []

    class Config:
        populate_by_name = True


# ---------- Completion response ----------
class OrderSummary(BaseModel):
    id: str
    order_number: str
    status: str
    completed_at: Optional[datetime] = None


class PodSummary(BaseModel):
    id: Optional[str] = None
    photos_processed: int = 0
    photos_total: int = 0


class PhotoFailureRead(BaseModel):
    index: int
    reason: str


class FulfillmentResult(BaseModel):
    fulfillment_id: Optional[str] = None
    error: Optional[str] = None


class CompletionResponse(BaseModel):
    success: bool
    message: str
    order: OrderSummary
    pod: PodSummary
    fulfillment_updated: bool = False
    fulfillment_result: Optional[FulfillmentResult] = None
    photo_failures: List[PhotoFailureRead] = []
    notifications_sent: int = 0
    duplicate: bool = False


class FailureResponse(BaseModel):
    success: bool
    message: str
    order: OrderSummary
    failure_id: Optional[str] = None
    photos_total: int = 0
    notifications_sent: int = 0
    duplicate: bool = False


# ---------- Read side ----------
class EvidencePhoto(BaseModel):
    id: str
    url: str
    type: str
    description: Optional[str] = None
    source: PhotoSource


class PodOrderRead(BaseModel):
    id: str
    order_number: str
    status: str
    customer_name: Optional[str] = None
    delivery_address: Optional[str] = None
    completed_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class ProofOfDeliveryRead(BaseModel):
    id: str
    order_id: str
    driver_id: str
    delivery_timestamp: datetime
    recipient_name: str
    recipient_signature: Optional[str] = None
    delivery_notes: Optional[str] = None
    location_latitude: Optional[float] = None
    location_longitude: Optional[float] = None

    class Config:
        from_attributes = True


class DeliveryFailureRead(BaseModel):
    id: str
    order_id: str
    driver_id: str
    failure_reason: str
    notes: Optional[str] = None
    attempted_delivery: bool
    contacted_customer: bool
    left_at_location: bool
    reschedule_requested: bool
    reschedule_date: Optional[datetime] = None
    location: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class PodView(BaseModel):
    order: PodOrderRead
    photos: List[EvidencePhoto] = []
    has_photos: bool = False
    pod: Optional[ProofOfDeliveryRead] = None
    failure: Optional[DeliveryFailureRead] = None


# ---------- Capture helpers ----------
class PhotoCheckRequest(BaseModel):
    photos: List[PhotoEntry] = []

"""
Evidence Capture

Assembles what the driver collected at the door (recipient, notes, signature,
location, photos) into a single completion or failure payload. Nothing here
persists; the only I/O is the optional upload helper, which turns an image
file into a photo entry.
"""
from fastapi import UploadFile
from typing import List, Optional
import logging
import os
import uuid

from deliverydesk.core.config import settings
from deliverydesk.schemas.pod import CompletionData, FailureData, GeoPoint, PhotoEntry, PhotoFile
from deliverydesk.services.pod.errors import ValidationError
from deliverydesk.utils import spaces
from deliverydesk.utils.security import ImageRejected, to_data_url, validate_and_read_image

log = logging.getLogger(__name__)

LOCATION_ADVISORY = "Could not get current location. Delivery will proceed without location data."


def check_completion(
    data: CompletionData,
    fallback_name: Optional[str] = None,
    require_photo: Optional[bool] = None,
) -> str:
    """Validate a completion payload and return the recipient name to record."""
    if require_photo is None:
        require_photo = settings.require_delivery_photo

    recipient = (data.customer_name or "").strip() or (fallback_name or "").strip()
    if not recipient:
        raise ValidationError("Please enter the name of the person who received the delivery.")

    if require_photo and not any(p.url for p in data.photos):
        raise ValidationError("Please take at least one photo as proof of delivery.")

    return recipient


def check_failure(data: FailureData) -> str:
    reason = (data.failure_reason or "").strip()
    if not reason:
        raise ValidationError("A failure reason is required.")
    return reason


class EvidenceCapture:
    """In-memory POD form state for one order"""

    def __init__(self, customer_name: str = "", require_photo: Optional[bool] = None):
        self.customer_name = customer_name
        self.notes = ""
        self.signature: Optional[str] = None
        self.location: Optional[GeoPoint] = None
        self.photos: List[PhotoEntry] = []
        self.advisories: List[str] = []
        self.require_photo = settings.require_delivery_photo if require_photo is None else require_photo

    def add_photo(
        self,
        url: str,
        type: str = "delivery",
        description: Optional[str] = None,
        file: Optional[PhotoFile] = None,
    ) -> PhotoEntry:
        photo_id = uuid.uuid4().hex
        photo = PhotoEntry(
            id=photo_id,
            url=url,
            type=type,
            description=description or f"Delivery photo {len(self.photos) + 1}",
            file=file or PhotoFile(
                size=len(url) if url else 0,
                type="image/jpeg",
                name=f"photo-{photo_id}.jpg",
            ),
        )
        self.photos.append(photo)
        return photo

    def remove_photo(self, photo_id: str) -> None:
        self.photos = [p for p in self.photos if p.id != photo_id]

    def set_signature(self, signature: Optional[str]) -> None:
        self.signature = signature or None

    def set_location(self, lat: float, lng: float) -> None:
        self.location = GeoPoint(lat=lat, lng=lng)

    def location_unavailable(self, reason: Optional[str] = None) -> None:
        """Geolocation failed or timed out. Never blocks submission."""
        log.info("location unavailable: %s", reason or "unknown")
        self.location = None
        if LOCATION_ADVISORY not in self.advisories:
            self.advisories.append(LOCATION_ADVISORY)

    def build_completion(self) -> CompletionData:
        data = CompletionData(
            customer_name=(self.customer_name or "").strip(),
            notes=(self.notes or "").strip() or None,
            signature=self.signature,
            location=self.location,
            photos=list(self.photos),
        )
        check_completion(data, require_photo=self.require_photo)
        return data

    def build_failure(
        self,
        failure_reason: str,
        attempted_delivery: bool = False,
        contacted_customer: bool = False,
        left_at_location: bool = False,
        reschedule_requested: bool = False,
        reschedule_date=None,
        location_text: Optional[str] = None,
    ) -> FailureData:
        data = FailureData(
            failure_reason=(failure_reason or "").strip(),
            notes=(self.notes or "").strip() or None,
            attempted_delivery=attempted_delivery,
            contacted_customer=contacted_customer,
            left_at_location=left_at_location,
            reschedule_requested=reschedule_requested,
            reschedule_date=reschedule_date,
            location=location_text or self._location_text(),
            photos=list(self.photos),
        )
        check_failure(data)
        return data

    def _location_text(self) -> Optional[str]:
        if not self.location:
            return None
        return f"{self.location.lat},{self.location.lng}"


async def photo_from_upload(file: UploadFile, order_id: str, photo_type: str = "delivery") -> PhotoEntry:
    """
    Turn an uploaded image into a photo entry.

    Uploads to Spaces when configured, otherwise inlines the image as a
    base64 data: URL.
    """
    try:
        contents = await validate_and_read_image(file)
    except ImageRejected as e:
        raise ValidationError(str(e)) from e

    photo_id = uuid.uuid4().hex
    content_type = file.content_type or "image/jpeg"

    if settings.spaces_configured:
        ext = os.path.splitext(file.filename or "")[1].lower() or ".jpg"
        key = spaces.object_key("pod", order_id, f"{photo_id}{ext}")
        url = await spaces.upload_public(key, contents, content_type)
    else:
        url = to_data_url(contents, content_type)

    return PhotoEntry(
        id=photo_id,
        url=url,
        type=photo_type,
        file=PhotoFile(
            size=len(contents),
            type=content_type,
            name=file.filename or f"photo-{photo_id}.jpg",
        ),
    )

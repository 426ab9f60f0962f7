"""
Read-Side Reconstructor

Rebuilds "what happened" for a delivered or failed order, whichever storage
generation wrote it:

- delivered: proof_of_delivery + pod_photos (ordered by created_at)
- failed:    delivery_failures.photos (JSON array)
- both:      orders.photo_url legacy field, appended after the above

Same URL present in pod_photos and the legacy field shows up twice; no
de-duplication happens here.
"""
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List, Optional
import logging

from deliverydesk.crud import order as order_crud
from deliverydesk.crud import pod as pod_crud
from deliverydesk.models.order import TERMINAL_STATUSES, OrderStatus
from deliverydesk.schemas.pod import (
    DeliveryFailureRead,
    EvidencePhoto,
    PhotoSource,
    PodOrderRead,
    PodView,
    ProofOfDeliveryRead,
)
from deliverydesk.services.pod.errors import InvalidOrderStateError, OrderNotFoundError
from deliverydesk.services.pod.legacy_photos import (
    Empty,
    Unparseable,
    legacy_photo_urls,
    normalize_legacy_photos,
    parse_legacy_photo_field,
    parse_photo_list,
)

log = logging.getLogger(__name__)

FAILURE_PHOTO_DESCRIPTION = "Delivery attempt evidence"


def _preview(value: Optional[str], n: int) -> Optional[str]:
    if not value:
        return None
    return value[:n] + "..."


def _url_kind(url: str) -> str:
    return "base64" if url.startswith("data:") else "url"


class PodReconstructor:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def reconstruct(self, order_id: str, driver_id: Optional[str] = None) -> PodView:
        """
        Build the merged evidence view for a completed order.

        Args:
            order_id: Order to read
            driver_id: When given, the order must be assigned to this driver

        Raises:
            OrderNotFoundError: no such order (for this driver)
            InvalidOrderStateError: order is not delivered or failed
        """
        order = await order_crud.get_order(self.db, order_id, driver_id)
        if not order:
            raise OrderNotFoundError("Order not found")

        if order.status not in TERMINAL_STATUSES:
            raise InvalidOrderStateError("This order has not been completed yet.")

        view = PodView(order=PodOrderRead.model_validate(order))
        primary: List[EvidencePhoto] = []
        legacy_prefix = "legacy"

        if order.status == OrderStatus.delivered.value:
            pod = await pod_crud.get_pod_by_order(self.db, order_id)
            if pod:
                view.pod = ProofOfDeliveryRead.model_validate(pod)
                for photo in await pod_crud.get_pod_photos(self.db, pod.id):
                    primary.append(EvidencePhoto(
                        id=photo.id,
                        url=photo.photo_url,
                        type=photo.photo_type,
                        description=photo.description,
                        source=PhotoSource.pod_photos,
                    ))
            else:
                log.info("delivered order has no POD record: order=%s", order_id)
        else:
            legacy_prefix = "legacy-failure"
            failure = await pod_crud.get_failure_by_order(self.db, order_id)
            if failure:
                view.failure = DeliveryFailureRead.model_validate(failure)
                for i, url in enumerate(parse_photo_list(failure.photos)):
                    primary.append(EvidencePhoto(
                        id=f"failure-{i}",
                        url=url,
                        type="evidence",
                        description=FAILURE_PHOTO_DESCRIPTION,
                        source=PhotoSource.failure,
                    ))
            else:
                log.info("failed order has no failure record: order=%s", order_id)

        legacy = [
            EvidencePhoto(
                id=f"{legacy_prefix}-{i}",
                url=url,
                type="legacy",
                description=None,
                source=PhotoSource.legacy,
            )
            for i, url in enumerate(legacy_photo_urls(order.photo_url))
        ]

        view.photos = primary + legacy
        view.has_photos = len(view.photos) > 0
        return view

    async def diagnose(self, order_id: str) -> dict:
        """Storage-level snapshot of every place POD evidence can live for an order"""
        order = await order_crud.get_order(self.db, order_id)
        if not order:
            raise OrderNotFoundError("Order not found")

        info = {
            "order_id": order_id,
            "order": {
                "id": order.id,
                "order_number": order.order_number,
                "status": order.status,
                "driver_id": order.driver_id,
                "customer_name": order.customer_name,
                "has_photo_url": bool(order.photo_url),
                "photo_url_length": len(order.photo_url) if order.photo_url else 0,
                "photo_url_preview": _preview(order.photo_url, 100),
                "completed_at": order.completed_at,
            },
        }

        pod = await pod_crud.get_pod_by_order(self.db, order_id)
        info["pod"] = {"found": pod is not None, "data": None}
        if pod:
            info["pod"]["data"] = {
                "id": pod.id,
                "recipient_name": pod.recipient_name,
                "delivery_timestamp": pod.delivery_timestamp,
                "has_signature": bool(pod.recipient_signature),
                "has_notes": bool(pod.delivery_notes),
                "has_location": pod.location_latitude is not None and pod.location_longitude is not None,
            }
            photos = await pod_crud.get_pod_photos(self.db, pod.id)
            info["pod_photos"] = {
                "count": len(photos),
                "data": [
                    {
                        "id": p.id,
                        "photo_type": p.photo_type,
                        "description": p.description,
                        "file_size": p.file_size,
                        "mime_type": p.mime_type,
                        "photo_url_length": len(p.photo_url),
                        "photo_url_preview": _preview(p.photo_url, 50),
                        "created_at": p.created_at,
                    }
                    for p in photos
                ],
            }

        failure = await pod_crud.get_failure_by_order(self.db, order_id)
        info["delivery_failure"] = {"found": failure is not None, "data": None}
        if failure:
            info["delivery_failure"]["data"] = {
                "id": failure.id,
                "failure_reason": failure.failure_reason,
                "has_photos": bool(failure.photos),
                "photos_count": len(parse_photo_list(failure.photos)),
                "photos_preview": _preview(failure.photos, 100),
                "created_at": failure.created_at,
            }

        updates = await order_crud.get_recent_order_updates(self.db, order_id)
        info["order_updates"] = {
            "count": len(updates),
            "data": [
                {
                    "id": u.id,
                    "status": u.status,
                    "notes": _preview(u.notes, 100),
                    "has_photo_url": bool(u.photo_url),
                    "created_at": u.created_at,
                }
                for u in updates
            ],
        }

        parsed = parse_legacy_photo_field(order.photo_url)
        if not isinstance(parsed, Empty):
            urls = normalize_legacy_photos(parsed)
            info["legacy_photos"] = {
                "shape": type(parsed).__name__,
                "parse_error": isinstance(parsed, Unparseable),
                "count": len(urls),
                "photos": [
                    {"index": i, "length": len(url), "type": _url_kind(url), "preview": _preview(url, 50)}
                    for i, url in enumerate(urls)
                ],
            }

        return info

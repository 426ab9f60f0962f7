"""
Persistence Reconciler

Turns a driver's completion (or failure) payload into committed state:

1. proof_of_delivery row            (critical, aborts on failure)
2. pod_photos rows, one per photo    (per-photo, failures are counted)
3. order status + legacy photo_url  (critical, may orphan step 1-2 rows)
4. order_updates audit entry         (best effort)
5. Shopify fulfillment               (best effort, reported in the response)
6. driver + creator notifications    (best effort)

Each step commits on its own; there is no transaction spanning them. Steps 5
and 6 run concurrently and are joined before returning.

A retry against an order that is still open but already has its record from
step 1 picks up at step 3 using what was stored. Only an order that reached
its terminal status is answered with a replay of the original result.
"""
from dataclasses import dataclass
from datetime import datetime
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional
import asyncio
import json
import logging

import httpx

from deliverydesk.crud import order as order_crud
from deliverydesk.crud import pod as pod_crud
from deliverydesk.models.order import COMPLETABLE_STATUSES, Order, OrderStatus
from deliverydesk.schemas.pod import (
    CompletionData,
    CompletionResponse,
    FailureData,
    FailureResponse,
    FulfillmentResult,
    GeoPoint,
    OrderSummary,
    PhotoEntry,
    PhotoFailureRead,
    PodSummary,
)
from deliverydesk.services.pod.capture import check_completion, check_failure
from deliverydesk.services.pod.errors import (
    AuthorizationError,
    CriticalPersistenceError,
    InvalidOrderStateError,
)
from deliverydesk.services.pod.evidence_writer import EvidenceWriter, PhotoWriteResult, StoredPhoto
from deliverydesk.services.pod.legacy_photos import parse_photo_list
from deliverydesk.services.pod.notifications import DatabaseNotificationSink
from deliverydesk.utils import shopify_client
from deliverydesk.utils.security import decrypt_access_token

log = logging.getLogger(__name__)


@dataclass
class OrderRef:
    """Plain copy of the order columns the reconciler needs after commits/rollbacks"""
    id: str
    order_number: str
    status: str
    customer_name: Optional[str]
    created_by: Optional[str]
    completed_at: Optional[datetime]
    shopify_order_id: Optional[str]
    shopify_fulfillment_id: Optional[str]
    shop_domain: Optional[str] = None
    access_token: str = ""

    @classmethod
    def from_order(cls, order: Order) -> "OrderRef":
        ref = cls(
            id=order.id,
            order_number=order.order_number,
            status=order.status,
            customer_name=order.customer_name,
            created_by=order.created_by,
            completed_at=order.completed_at,
            shopify_order_id=order.shopify_order_id,
            shopify_fulfillment_id=order.shopify_fulfillment_id,
        )
        connection = order.shopify_connection
        if connection is not None and connection.is_active:
            ref.shop_domain = connection.shop_domain
            ref.access_token = decrypt_access_token(connection.access_token_encrypted)
        return ref

    @property
    def can_fulfill(self) -> bool:
        return bool(self.shopify_order_id and self.shop_domain and self.access_token)

    @property
    def completable(self) -> bool:
        return self.status in COMPLETABLE_STATUSES


class PodReconciler:
    """Writes driver completions. One instance per request."""

    def __init__(
        self,
        db: AsyncSession,
        session_factory,
        http_client: Optional[httpx.AsyncClient] = None,
        notifications: Optional[DatabaseNotificationSink] = None,
    ):
        self.db = db
        self.session_factory = session_factory
        self.http_client = http_client
        self.notifications = notifications or DatabaseNotificationSink(session_factory)

    # ==================== DELIVERED ====================

    async def complete_order(self, order_id: str, driver_id: str, data: CompletionData) -> CompletionResponse:
        ref = await self._load_order(order_id, driver_id)

        existing = await pod_crud.get_pod_by_order(self.db, order_id)
        if existing:
            return await self._settle_existing_pod(ref, driver_id, existing)

        self._check_completable(ref)
        recipient = check_completion(data, fallback_name=ref.customer_name)
        now = datetime.utcnow()

        # 1. POD record
        try:
            pod = await pod_crud.create_pod(
                self.db,
                order_id=order_id,
                driver_id=driver_id,
                delivery_timestamp=now,
                recipient_name=recipient,
                recipient_signature=data.signature or None,
                delivery_notes=data.notes or None,
                location_latitude=data.location.lat if data.location else None,
                location_longitude=data.location.lng if data.location else None,
            )
        except IntegrityError as e:
            await self.db.rollback()
            existing = await pod_crud.get_pod_by_order(self.db, order_id)
            if not existing:
                raise CriticalPersistenceError(f"Failed to create POD record: {e}") from e
            log.warning("concurrent completion: order=%s pod=%s", order_id, existing.id)
            ref = await self._load_order(order_id, driver_id)
            return await self._settle_existing_pod(ref, driver_id, existing)
        except SQLAlchemyError as e:
            await self.db.rollback()
            log.error("POD create failed: order=%s error=%s", order_id, e)
            raise CriticalPersistenceError(f"Failed to create POD record: {e}") from e

        pod_id = pod.id
        log.info("POD created: order=%s pod=%s", ref.order_number, pod_id)

        # 2. Photos
        photos = await EvidenceWriter(self.db).write_photos(pod_id, data.photos)

        return await self._finish_completion(
            ref,
            driver_id,
            pod_id=pod_id,
            recipient=recipient,
            notes=data.notes,
            location=data.location,
            photos=photos,
            now=now,
        )

    async def _settle_existing_pod(self, ref: OrderRef, driver_id: str, pod) -> CompletionResponse:
        """A POD already exists: replay it, or finish the steps a failed attempt left undone."""
        if ref.status == OrderStatus.delivered.value:
            return await self._replay_completion(ref, pod.id)

        if not ref.completable:
            log.error("POD exists for order in status %s: order=%s pod=%s", ref.status, ref.id, pod.id)
            raise CriticalPersistenceError(
                f"Order {ref.order_number} has a delivery record but is {ref.status}",
                pod_id=pod.id,
            )

        stored = await pod_crud.get_pod_photos(self.db, pod.id)
        photos = PhotoWriteResult(
            total=len(stored),
            successes=[StoredPhoto(id=p.id, url=p.photo_url) for p in stored],
        )
        location = None
        if pod.location_latitude is not None and pod.location_longitude is not None:
            location = GeoPoint(lat=pod.location_latitude, lng=pod.location_longitude)

        log.warning("resuming completion at order update: order=%s pod=%s", ref.order_number, pod.id)
        return await self._finish_completion(
            ref,
            driver_id,
            pod_id=pod.id,
            recipient=pod.recipient_name,
            notes=pod.delivery_notes,
            location=location,
            photos=photos,
            now=datetime.utcnow(),
        )

    async def _finish_completion(
        self,
        ref: OrderRef,
        driver_id: str,
        pod_id: str,
        recipient: str,
        notes: Optional[str],
        location: Optional[GeoPoint],
        photos: PhotoWriteResult,
        now: datetime,
    ) -> CompletionResponse:
        writer = EvidenceWriter(self.db)

        # 3. Order status (+ legacy photo mirror)
        updates = {
            "status": OrderStatus.delivered.value,
            "completed_at": now,
            "updated_at": now,
            **writer.order_photo_updates(photos),
        }
        try:
            await order_crud.update_order(self.db, ref.id, updates)
        except SQLAlchemyError as e:
            await self.db.rollback()
            log.error(
                "order status update failed, POD left orphaned: order=%s pod=%s error=%s",
                ref.id, pod_id, e,
            )
            raise CriticalPersistenceError("Failed to update order status", pod_id=pod_id) from e

        log.info("order delivered: order=%s photos=%s/%s", ref.order_number, photos.processed, photos.total)

        # 4. Audit trail
        notes_lines = [
            "PROOF OF DELIVERY COMPLETED",
            f"Delivered to: {recipient}",
            f"Photos captured: {photos.processed}",
            f"POD ID: {pod_id}",
        ]
        if notes:
            notes_lines.append(f"Notes: {notes}")
        await self._audit(
            order_id=ref.id,
            driver_id=driver_id,
            status=OrderStatus.delivered.value,
            notes="\n".join(notes_lines),
            photo_url=json.dumps(photos.urls) if photos.urls else None,
            latitude=location.lat if location else None,
            longitude=location.lng if location else None,
        )

        # 5 + 6. Fulfillment and notifications, concurrently
        driver_msg = f"You have successfully completed delivery for order {ref.order_number}"
        shopify_note = " and Shopify has been updated" if ref.shopify_order_id else ""
        fulfillment_result, sent = await self._side_effects(
            ref,
            driver_id,
            driver_notice=("Delivery Completed", driver_msg, "success"),
            creator_notice=(
                "Order Delivered",
                lambda name: f"Order {ref.order_number} has been successfully delivered by {name}{shopify_note}",
                "success",
            ),
            fulfill=True,
        )

        return CompletionResponse(
            success=True,
            message="Order completed successfully",
            order=OrderSummary(
                id=ref.id,
                order_number=ref.order_number,
                status=OrderStatus.delivered.value,
                completed_at=now,
            ),
            pod=PodSummary(id=pod_id, photos_processed=photos.processed, photos_total=photos.total),
            fulfillment_updated=bool(fulfillment_result and not fulfillment_result.error),
            fulfillment_result=fulfillment_result,
            photo_failures=[PhotoFailureRead(index=f.index, reason=f.reason) for f in photos.failures],
            notifications_sent=sent,
        )

    # ==================== FAILED ====================

    async def submit_failure(self, order_id: str, driver_id: str, data: FailureData) -> FailureResponse:
        ref = await self._load_order(order_id, driver_id)

        existing = await pod_crud.get_failure_by_order(self.db, order_id)
        if existing:
            return await self._settle_existing_failure(ref, driver_id, existing)

        self._check_completable(ref)
        reason = check_failure(data)
        photo_urls = [p.url for p in data.photos if p.url]

        try:
            failure = await pod_crud.create_failure(
                self.db,
                order_id=order_id,
                driver_id=driver_id,
                failure_reason=reason,
                notes=data.notes or None,
                attempted_delivery=data.attempted_delivery,
                contacted_customer=data.contacted_customer,
                left_at_location=data.left_at_location,
                reschedule_requested=data.reschedule_requested,
                reschedule_date=data.reschedule_date,
                location=data.location,
                photos=json.dumps(photo_urls),
            )
        except IntegrityError as e:
            await self.db.rollback()
            existing = await pod_crud.get_failure_by_order(self.db, order_id)
            if not existing:
                raise CriticalPersistenceError(f"Failed to create failure record: {e}") from e
            log.warning("concurrent failure report: order=%s failure=%s", order_id, existing.id)
            ref = await self._load_order(order_id, driver_id)
            return await self._settle_existing_failure(ref, driver_id, existing)
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise CriticalPersistenceError(f"Failed to create failure record: {e}") from e

        return await self._finish_failure(ref, driver_id, failure.id, reason, data, photo_urls)

    async def _settle_existing_failure(self, ref: OrderRef, driver_id: str, failure) -> FailureResponse:
        if ref.status == OrderStatus.failed.value:
            return self._replay_failure(ref, failure)

        if not ref.completable:
            log.error("failure record exists for order in status %s: order=%s failure=%s", ref.status, ref.id, failure.id)
            raise CriticalPersistenceError(f"Order {ref.order_number} has a failure record but is {ref.status}")

        photo_urls = parse_photo_list(failure.photos)
        data = FailureData(
            failure_reason=failure.failure_reason,
            notes=failure.notes,
            attempted_delivery=failure.attempted_delivery,
            contacted_customer=failure.contacted_customer,
            left_at_location=failure.left_at_location,
            reschedule_requested=failure.reschedule_requested,
            reschedule_date=failure.reschedule_date,
            location=failure.location,
            photos=[PhotoEntry(url=url) for url in photo_urls],
        )
        log.warning("resuming failure report at order update: order=%s failure=%s", ref.order_number, failure.id)
        return await self._finish_failure(ref, driver_id, failure.id, failure.failure_reason, data, photo_urls)

    async def _finish_failure(self, ref: OrderRef, driver_id: str, failure_id: str, reason: str, data: FailureData, photo_urls) -> FailureResponse:
        now = datetime.utcnow()
        try:
            await order_crud.update_order(self.db, ref.id, {
                "status": OrderStatus.failed.value,
                "completed_at": now,
                "updated_at": now,
            })
        except SQLAlchemyError as e:
            await self.db.rollback()
            log.error("order status update failed after failure report: order=%s failure=%s", ref.id, failure_id)
            raise CriticalPersistenceError("Failed to update order status") from e

        log.info("order failed: order=%s reason=%s", ref.order_number, reason)

        notes_lines = [
            "DELIVERY FAILED",
            f"Reason: {reason}",
            f"Attempted delivery: {'yes' if data.attempted_delivery else 'no'}",
            f"Contacted customer: {'yes' if data.contacted_customer else 'no'}",
            f"Left at location: {'yes' if data.left_at_location else 'no'}",
        ]
        if data.reschedule_requested:
            when = data.reschedule_date.isoformat() if data.reschedule_date else "date not set"
            notes_lines.append(f"Reschedule requested: {when}")
        if data.notes:
            notes_lines.append(f"Notes: {data.notes}")
        await self._audit(
            order_id=ref.id,
            driver_id=driver_id,
            status=OrderStatus.failed.value,
            notes="\n".join(notes_lines),
            photo_url=json.dumps(photo_urls) if photo_urls else None,
        )

        _, sent = await self._side_effects(
            ref,
            driver_id,
            driver_notice=("Delivery Failed", f"Delivery for order {ref.order_number} was reported as failed", "warning"),
            creator_notice=(
                "Delivery Failed",
                lambda name: f"Order {ref.order_number} could not be delivered by {name}: {reason}",
                "warning",
            ),
            fulfill=False,
        )

        return FailureResponse(
            success=True,
            message="Delivery failure recorded",
            order=OrderSummary(
                id=ref.id,
                order_number=ref.order_number,
                status=OrderStatus.failed.value,
                completed_at=now,
            ),
            failure_id=failure_id,
            photos_total=len(photo_urls),
            notifications_sent=sent,
        )

    # ==================== HELPERS ====================

    async def _load_order(self, order_id: str, driver_id: str) -> OrderRef:
        order = await order_crud.get_order_for_driver(self.db, order_id, driver_id)
        if not order:
            log.warning("order not found for driver: order=%s driver=%s", order_id, driver_id)
            raise AuthorizationError("Order not found or not assigned to you")
        return OrderRef.from_order(order)

    def _check_completable(self, ref: OrderRef) -> None:
        if not ref.completable:
            raise InvalidOrderStateError(
                f"Order {ref.order_number} is {ref.status} and is not ready for proof of delivery"
            )

    async def _audit(self, **fields) -> None:
        try:
            await order_crud.add_order_update(self.db, **fields)
        except SQLAlchemyError as e:
            await self.db.rollback()
            log.error("audit entry failed: order=%s error=%s", fields.get("order_id"), e)

    async def _fulfill(self, ref: OrderRef, driver_id: str) -> str:
        return await shopify_client.create_fulfillment(
            ref.shop_domain,
            ref.access_token,
            ref.shopify_order_id,
            ref.order_number,
            driver_id,
            client=self.http_client,
        )

    async def _notify_creator(self, ref: OrderRef, driver_id: str, title: str, message_fn, kind: str):
        driver_name = await self.notifications.user_name(driver_id)
        return await self.notifications.send(ref.created_by, title, message_fn(driver_name), kind)

    async def _side_effects(self, ref: OrderRef, driver_id: str, driver_notice, creator_notice, fulfill: bool):
        """
        Run fulfillment and both notifications concurrently. Returns the
        fulfillment outcome (None when not applicable) and how many
        notifications were written.
        """
        labels = []
        tasks = []

        if fulfill and ref.can_fulfill:
            labels.append("fulfillment")
            tasks.append(self._fulfill(ref, driver_id))
        elif fulfill and ref.shopify_order_id:
            log.info("skipping fulfillment, no active store connection: order=%s", ref.order_number)

        title, message, kind = driver_notice
        labels.append("driver")
        tasks.append(self.notifications.send(driver_id, title, message, kind))

        if ref.created_by:
            title, message_fn, kind = creator_notice
            labels.append("creator")
            tasks.append(self._notify_creator(ref, driver_id, title, message_fn, kind))

        outcomes = await asyncio.gather(*tasks, return_exceptions=True)

        fulfillment_result = None
        sent = 0
        for label, outcome in zip(labels, outcomes):
            if label == "fulfillment":
                if isinstance(outcome, BaseException):
                    log.error("shopify fulfillment failed: order=%s error=%s", ref.order_number, outcome)
                    fulfillment_result = FulfillmentResult(error=str(outcome))
                else:
                    fulfillment_result = FulfillmentResult(fulfillment_id=outcome)
            elif isinstance(outcome, BaseException):
                log.error("%s notification failed: order=%s error=%s", label, ref.order_number, outcome)
            else:
                sent += 1

        if fulfillment_result and fulfillment_result.fulfillment_id:
            try:
                await order_crud.update_order(self.db, ref.id, {
                    "shopify_fulfillment_id": fulfillment_result.fulfillment_id,
                    "shopify_fulfilled_at": datetime.utcnow(),
                })
            except SQLAlchemyError as e:
                await self.db.rollback()
                log.error("could not store fulfillment id: order=%s error=%s", ref.order_number, e)

        return fulfillment_result, sent

    async def _replay_completion(self, ref: OrderRef, pod_id: str) -> CompletionResponse:
        photos = await pod_crud.get_pod_photos(self.db, pod_id)
        log.info("replaying completion: order=%s pod=%s", ref.order_number, pod_id)
        return CompletionResponse(
            success=True,
            message="Order already completed",
            order=OrderSummary(
                id=ref.id,
                order_number=ref.order_number,
                status=ref.status,
                completed_at=ref.completed_at,
            ),
            pod=PodSummary(id=pod_id, photos_processed=len(photos), photos_total=len(photos)),
            fulfillment_updated=bool(ref.shopify_fulfillment_id),
            fulfillment_result=(
                FulfillmentResult(fulfillment_id=ref.shopify_fulfillment_id)
                if ref.shopify_fulfillment_id else None
            ),
            duplicate=True,
        )

    def _replay_failure(self, ref: OrderRef, failure) -> FailureResponse:
        log.info("replaying failure report: order=%s failure=%s", ref.order_number, failure.id)
        return FailureResponse(
            success=True,
            message="Delivery failure already recorded",
            order=OrderSummary(
                id=ref.id,
                order_number=ref.order_number,
                status=ref.status,
                completed_at=ref.completed_at,
            ),
            failure_id=failure.id,
            photos_total=len(parse_photo_list(failure.photos)),
            duplicate=True,
        )

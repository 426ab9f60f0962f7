"""
Delivery Driver Routes

Driver-facing endpoints for submitting and viewing proof of delivery
"""
from fastapi import APIRouter, Depends, UploadFile, File, Form, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession
import logging

from deliverydesk.api.deps import get_http_client, pod_http_error
from deliverydesk.auth.dependencies import get_current_driver
from deliverydesk.crud import order as order_crud
from deliverydesk.db import get_db, get_session_factory
from deliverydesk.models.user import User
from deliverydesk.schemas.pod import (
    CompleteOrderRequest,
    CompletionResponse,
    FailureData,
    FailureResponse,
    PhotoCheckRequest,
    PhotoEntry,
    PodView,
)
from deliverydesk.services.pod import PodError, PodReconciler, PodReconstructor, photo_from_upload

log = logging.getLogger(__name__)

router = APIRouter()


# ==================== COMPLETION ====================

@router.post("/orders/complete", response_model=CompletionResponse)
async def complete_order(
    body: CompleteOrderRequest,
    db: AsyncSession = Depends(get_db),
    session_factory=Depends(get_session_factory),
    http_client=Depends(get_http_client),
    user: User = Depends(get_current_driver),
):
    """Submit proof of delivery and mark the order delivered"""
    if body.driver_id and body.driver_id != user.id:
        raise HTTPException(status_code=403, detail="Not authorized")

    data = body.completion_data
    log.info(
        "completion received: order=%s driver=%s photos=%s signature=%s location=%s",
        body.order_id, user.id, len(data.photos), bool(data.signature), bool(data.location),
    )

    reconciler = PodReconciler(db, session_factory, http_client=http_client)
    try:
        return await reconciler.complete_order(body.order_id, user.id, data)
    except PodError as e:
        log.warning("completion rejected: order=%s driver=%s error=%s", body.order_id, user.id, e)
        raise pod_http_error(e)


@router.post("/orders/{order_id}/fail", response_model=FailureResponse)
async def fail_order(
    order_id: str,
    body: FailureData,
    db: AsyncSession = Depends(get_db),
    session_factory=Depends(get_session_factory),
    user: User = Depends(get_current_driver),
):
    """Report a failed delivery attempt"""
    reconciler = PodReconciler(db, session_factory)
    try:
        return await reconciler.submit_failure(order_id, user.id, body)
    except PodError as e:
        log.warning("failure report rejected: order=%s driver=%s error=%s", order_id, user.id, e)
        raise pod_http_error(e)


# ==================== CAPTURE HELPERS ====================

@router.post("/orders/{order_id}/photos", response_model=PhotoEntry)
async def upload_photo(
    order_id: str,
    photo: UploadFile = File(...),
    photo_type: str = Form("delivery"),
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_driver),
):
    """Turn an image file into a photo entry for the completion payload"""
    order = await order_crud.get_order(db, order_id, user.id)
    if not order:
        raise HTTPException(status_code=404, detail="Order not found or not assigned to you")

    try:
        return await photo_from_upload(photo, order_id, photo_type=photo_type)
    except PodError as e:
        raise pod_http_error(e)


@router.post("/orders/photo-check")
async def photo_check(body: PhotoCheckRequest, user: User = Depends(get_current_driver)):
    """Describe a photo payload without storing anything"""
    return {
        "success": True,
        "photos_received": len(body.photos),
        "photos": [
            {
                "index": i,
                "has_url": bool(p.url),
                "url_length": len(p.url) if p.url else 0,
                "is_base64": bool(p.url and p.url.startswith("data:")),
                "type": p.type,
                "has_file": p.file is not None,
                "file_size": p.file.size if p.file else None,
            }
            for i, p in enumerate(body.photos)
        ],
    }


# ==================== POD VIEW ====================

@router.get("/orders/{order_id}/pod", response_model=PodView)
async def view_pod(
    order_id: str,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_driver),
):
    """Proof of delivery (or failure report) for one of my orders"""
    try:
        return await PodReconstructor(db).reconstruct(order_id, driver_id=user.id)
    except PodError as e:
        raise pod_http_error(e)

"""
Delivery Admin Routes

Admin views of proof of delivery, including a storage-level debug snapshot
"""
from fastapi import APIRouter, Depends
from fastapi.encoders import jsonable_encoder
from sqlalchemy.ext.asyncio import AsyncSession

from deliverydesk.api.deps import pod_http_error
from deliverydesk.auth.dependencies import get_current_admin_user
from deliverydesk.db import get_db
from deliverydesk.models.user import User
from deliverydesk.schemas.pod import PodView
from deliverydesk.services.pod import PodError, PodReconstructor

router = APIRouter()


@router.get("/orders/{order_id}/pod", response_model=PodView)
async def admin_view_pod(
    order_id: str,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_admin_user),
):
    """Proof of delivery for any order"""
    try:
        return await PodReconstructor(db).reconstruct(order_id)
    except PodError as e:
        raise pod_http_error(e)


@router.get("/orders/{order_id}/pod/debug")
async def admin_pod_debug(
    order_id: str,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_admin_user),
):
    """Every place POD evidence can live for an order"""
    try:
        info = await PodReconstructor(db).diagnose(order_id)
    except PodError as e:
        raise pod_http_error(e)
    return jsonable_encoder(info)

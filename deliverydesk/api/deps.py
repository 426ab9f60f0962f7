from fastapi import HTTPException
import httpx

from deliverydesk.core.config import settings
from deliverydesk.services.pod.errors import CriticalPersistenceError, PodError


async def get_http_client():
    async with httpx.AsyncClient(timeout=settings.shopify_timeout_seconds) as client:
        yield client


def pod_http_error(e: PodError) -> HTTPException:
    if isinstance(e, CriticalPersistenceError) and e.pod_id:
        return HTTPException(status_code=e.status_code, detail={"error": str(e), "pod_id": e.pod_id})
    return HTTPException(status_code=e.status_code, detail=str(e))

"""
Shopify fulfillment client

Creates a fulfillment for a delivered order. Callers treat every failure as
non-fatal: the local delivery is already complete when this runs.
"""
from typing import Optional
import logging

import httpx

from deliverydesk.core.config import settings
from deliverydesk.services.pod.errors import ExternalServiceError

log = logging.getLogger(__name__)


def fulfillment_url(shop_domain: str, shopify_order_id: str) -> str:
    return (
        f"https://{shop_domain}/admin/api/{settings.shopify_api_version}"
        f"/orders/{shopify_order_id}/fulfillments.json"
    )


def tracking_number(order_number: str) -> str:
    return f"DEL-{order_number}"


def build_fulfillment_payload(order_number: str) -> dict:
    return {
        "fulfillment": {
            "location_id": None,
            "tracking_number": tracking_number(order_number),
            "tracking_company": settings.shopify_tracking_company,
            "tracking_url": None,
            "notify_customer": True,
            "line_items": [],
        }
    }


async def create_fulfillment(
    shop_domain: str,
    access_token: str,
    shopify_order_id: str,
    order_number: str,
    driver_id: str,
    client: Optional[httpx.AsyncClient] = None,
) -> str:
    """
    POST a fulfillment to the store and return the Shopify fulfillment id.

    Raises:
        ExternalServiceError: non-2xx response, transport failure or an
            unexpected response body.
    """
    url = fulfillment_url(shop_domain, shopify_order_id)
    headers = {
        "X-Shopify-Access-Token": access_token,
        "Content-Type": "application/json",
    }
    log.info(
        "shopify fulfillment: shop=%s shopify_order=%s order=%s driver=%s",
        shop_domain, shopify_order_id, order_number, driver_id,
    )

    owns_client = client is None
    if owns_client:
        client = httpx.AsyncClient(timeout=settings.shopify_timeout_seconds)

    try:
        r = await client.post(url, json=build_fulfillment_payload(order_number), headers=headers)
    except httpx.HTTPError as e:
        raise ExternalServiceError(f"Shopify fulfillment request failed: {e}") from e
    finally:
        if owns_client:
            await client.aclose()

    if not r.is_success:
        log.error("shopify fulfillment error: status=%s body=%s", r.status_code, r.text[:500])
        raise ExternalServiceError(
            f"Shopify fulfillment failed: {r.status_code} {r.text}",
            status_code=r.status_code,
            body=r.text,
        )

    try:
        fulfillment_id = str(r.json()["fulfillment"]["id"])
    except (ValueError, KeyError, TypeError) as e:
        raise ExternalServiceError(
            "Shopify fulfillment response missing fulfillment id",
            status_code=r.status_code,
            body=r.text,
        ) from e

    log.info("shopify fulfillment created: shopify_order=%s fulfillment=%s", shopify_order_id, fulfillment_id)
    return fulfillment_id

"""DigitalOcean Spaces (S3 API) storage for POD photo uploads"""
import logging

import aioboto3

from deliverydesk.core.config import settings

log = logging.getLogger(__name__)

_session = aioboto3.Session()


def object_key(*parts: str) -> str:
    prefix = settings.do_spaces_prefix.strip("/")
    return "/".join([prefix, *[p.strip("/") for p in parts if p]])


def public_url(key: str) -> str:
    return f"{settings.do_spaces_cdn_base.rstrip('/')}/{key.lstrip('/')}"


def _client():
    return _session.client(
        "s3",
        region_name=settings.do_spaces_region,
        endpoint_url=settings.do_spaces_endpoint,
        aws_access_key_id=settings.do_spaces_key,
        aws_secret_access_key=settings.do_spaces_secret,
    )


async def upload_public(key: str, body: bytes, content_type: str) -> str:
    """Store `body` as a public-read object and return its CDN URL."""
    if not settings.spaces_configured:
        raise RuntimeError("Spaces env vars not fully configured")

    key = key.lstrip("/")
    async with _client() as s3:
        await s3.put_object(
            Bucket=settings.do_spaces_bucket,
            Key=key,
            Body=body,
            ContentType=content_type or "application/octet-stream",
            ACL="public-read",
        )
    log.info("uploaded %s (%s bytes)", key, len(body))
    return public_url(key)

from dataclasses import dataclass, field
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List
import json
import logging

from deliverydesk.crud import pod as pod_crud
from deliverydesk.schemas.pod import PhotoEntry

log = logging.getLogger(__name__)


@dataclass
class PhotoFailure:
    index: int
    reason: str


@dataclass
class StoredPhoto:
    id: str
    url: str


@dataclass
class PhotoWriteResult:
    total: int = 0
    successes: List[StoredPhoto] = field(default_factory=list)
    failures: List[PhotoFailure] = field(default_factory=list)
    skipped: List[int] = field(default_factory=list)

    @property
    def processed(self) -> int:
        return len(self.successes)

    @property
    def urls(self) -> List[str]:
        return [p.url for p in self.successes]


class EvidenceWriter:
    """
    Writes POD photos to the normalized pod_photos table and mirrors the
    successful URLs into the order's legacy photo_url column.

    The mirror keeps pre-migration readers working. Dropping it means
    deleting `order_photo_updates` and nothing else.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    async def write_photos(self, pod_id: str, photos: List[PhotoEntry]) -> PhotoWriteResult:
        result = PhotoWriteResult(total=len(photos))

        for i, photo in enumerate(photos):
            if not photo.url:
                log.warning("pod=%s photo %s has no URL, skipping", pod_id, i + 1)
                result.skipped.append(i)
                continue

            file = photo.file
            try:
                record = await pod_crud.create_pod_photo(
                    self.db,
                    pod_id=pod_id,
                    photo_url=photo.url,
                    photo_type=photo.type or "delivery",
                    description=photo.description or f"Delivery photo {i + 1}",
                    file_size=file.size if file else None,
                    mime_type=(file.type if file else None) or "image/jpeg",
                    position=i,
                )
            except SQLAlchemyError as e:
                await self.db.rollback()
                log.error("pod=%s photo %s failed to store: %s", pod_id, i + 1, e)
                result.failures.append(PhotoFailure(index=i, reason=str(e)))
                continue

            # read now: a rollback on a later photo expires the instance
            result.successes.append(StoredPhoto(id=record.id, url=photo.url))

        log.info("pod=%s photos stored: %s/%s", pod_id, result.processed, result.total)
        return result

    def order_photo_updates(self, result: PhotoWriteResult) -> dict:
        if not result.successes:
            return {}
        return {"photo_url": json.dumps(result.urls)}

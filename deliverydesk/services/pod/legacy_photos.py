"""
Legacy photo field parsing

Orders carry a single `photo_url` column from before POD photos were
normalized. Depending on which write path produced it, the value is:

- absent or empty
- a bare URL (or inline data: URL)
- a JSON array of URLs
- a JSON-encoded string

Anything else that fails to parse is kept as one literal URL. Parsing never
raises.
"""
from dataclasses import dataclass, field
from typing import List, Optional, Union
import json
import logging

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class Empty:
    pass


@dataclass(frozen=True)
class SingleUrl:
    url: str


@dataclass(frozen=True)
class UrlList:
    urls: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class Unparseable:
    raw: str


LegacyPhotoField = Union[Empty, SingleUrl, UrlList, Unparseable]


def parse_legacy_photo_field(raw: Optional[str]) -> LegacyPhotoField:
    if not raw:
        return Empty()

    if not raw.startswith(("[", "{", '"')):
        return SingleUrl(raw)

    try:
        parsed = json.loads(raw)
    except ValueError:
        log.warning("legacy photo field is not valid JSON, using raw value (length=%s)", len(raw))
        return Unparseable(raw)

    if isinstance(parsed, list):
        return UrlList([url for url in parsed if isinstance(url, str) and len(url) > 0])
    if isinstance(parsed, str):
        return SingleUrl(parsed) if parsed else Empty()

    # JSON objects and scalars carry no usable URL
    return UrlList([])


def normalize_legacy_photos(value: LegacyPhotoField) -> List[str]:
    if isinstance(value, SingleUrl):
        return [value.url]
    if isinstance(value, UrlList):
        return list(value.urls)
    if isinstance(value, Unparseable):
        return [value.raw]
    return []


def legacy_photo_urls(raw: Optional[str]) -> List[str]:
    return normalize_legacy_photos(parse_legacy_photo_field(raw))


def parse_photo_list(raw: Optional[str]) -> List[str]:
    """Failure-report photo field: JSON array of URLs, anything else is empty."""
    if not raw:
        return []
    try:
        parsed = json.loads(raw)
    except ValueError:
        log.warning("failure photos field is not valid JSON, ignoring (length=%s)", len(raw))
        return []
    if not isinstance(parsed, list):
        return []
    return [url for url in parsed if isinstance(url, str) and len(url) > 0]

"""
Pagination envelope for Basecamp list endpoints.

Basecamp advertises further pages through an RFC 5988 ``Link`` header. Each
call fetches exactly one page and caps it both by item count and by
serialized size, so a single tool response stays bounded.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from typing import Any, Callable, Mapping, Optional, Protocol, Sequence, TypeVar
from urllib.parse import parse_qs, urlsplit

from pydantic import BaseModel

from basecamp_mcp.core.errors import BasecampAPIError
from basecamp_mcp.schemas.content import PaginatedResult

logger = logging.getLogger(__name__)

MAX_ITEMS = 100
MAX_PAYLOAD_BYTES = 51_200

_NEXT_LINK_RE = re.compile(r"<([^>]+)>\s*;\s*rel=\"?next\"?")

T = TypeVar("T")


@dataclass(frozen=True)
class RawResponse:
    """Decoded body plus headers of one list request."""

    body: Any
    headers: Mapping[str, str]
    status_code: int = 200


class RawPageSource(Protocol):
    async def get_raw(
        self, path: str, params: Optional[Mapping[str, Any]] = None
    ) -> RawResponse: ...


def parse_next_link(header: Optional[str]) -> Optional[str]:
    """Return the URL tagged ``rel="next"`` in a Link header, if any."""
    if not header:
        return None
    match = _NEXT_LINK_RE.search(header)
    return match.group(1) if match else None


def extract_page_number(url: str) -> Optional[int]:
    values = parse_qs(urlsplit(url).query).get("page")
    if not values:
        return None
    try:
        page = int(values[0])
    except ValueError:
        return None
    return page if page > 0 else None


def serialized_size(items: Sequence[Any]) -> int:
    """Byte length of ``items`` as compact UTF-8 JSON."""
    payload = [
        item.model_dump(mode="json") if isinstance(item, BaseModel) else item
        for item in items
    ]
    return len(json.dumps(payload, separators=(",", ":"), ensure_ascii=False).encode("utf-8"))


async def paginate(
    client: RawPageSource,
    path: str,
    page: int = 1,
    transform: Callable[[Any], T] = lambda raw: raw,
    *,
    params: Optional[Mapping[str, Any]] = None,
) -> PaginatedResult:
    """Fetch one page of ``path`` and wrap it in a :class:`PaginatedResult`.

    ``has_more`` is set when Basecamp links a next page or when either cap
    dropped items from this page.
    """
    query = dict(params or {})
    query["page"] = page
    response = await client.get_raw(path, query)

    if not isinstance(response.body, list):
        raise BasecampAPIError(
            response.status_code, f"Expected a JSON array from {path}"
        )
    raw_items = response.body
    count_dropped = len(raw_items) > MAX_ITEMS
    items = [transform(raw) for raw in raw_items[:MAX_ITEMS]]

    size_dropped = False
    while items and serialized_size(items) > MAX_PAYLOAD_BYTES:
        items.pop()
        size_dropped = True

    if count_dropped or size_dropped:
        logger.info(
            "Capped %s page %d: %d of %d items kept",
            path,
            page,
            len(items),
            len(raw_items),
        )

    next_url = parse_next_link(response.headers.get("link"))
    next_page = extract_page_number(next_url) if next_url else None
    has_more = next_url is not None or count_dropped or size_dropped

    return PaginatedResult(items=items, has_more=has_more, next_page=next_page)


__all__ = [
    "MAX_ITEMS",
    "MAX_PAYLOAD_BYTES",
    "RawResponse",
    "extract_page_number",
    "paginate",
    "parse_next_link",
    "serialized_size",
]

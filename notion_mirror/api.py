"""Upstream API surface: endpoints, headers and response classification."""
from __future__ import annotations

import re
from typing import Any, Dict

from .errors import InvalidRequest, InvalidResponse, Throttled
from .records import ObjectType

NOTION_API_VERSION = "2022-06-28"
BASE_URL = "https://api.notion.com/v1"

# whole seconds, ASCII digits only
_RETRY_AFTER = re.compile(r"[0-9]+")

_OBJECT_PATHS = {
    ObjectType.BLOCK: "blocks",
    ObjectType.PAGE: "pages",
    ObjectType.DATABASE: "databases",
    ObjectType.USER: "users",
}


def object_url(kind: ObjectType, object_id: str, base_url: str = BASE_URL) -> str:
    if not object_id:
        raise InvalidRequest(f"empty {kind.value} id")
    try:
        path = _OBJECT_PATHS[kind]
    except KeyError:
        raise InvalidRequest(f"{kind.value} objects cannot be fetched by id") from None
    return f"{base_url}/{path}/{object_id}"


def build_headers(token: str) -> Dict[str, str]:
    """Default headers for every request. The token must be printable ASCII."""
    if not token or not token.strip():
        raise InvalidRequest("empty integration token")
    if any(not 32 <= ord(ch) < 127 for ch in token):
        raise InvalidRequest("token: only visible ASCII characters (32-127) are permitted")
    return {
        "Authorization": f"Bearer {token}",
        "Notion-Version": NOTION_API_VERSION,
        "Content-Type": "application/json",
    }


def check_retry_after(response: Any) -> None:
    """Raise Throttled for a 429 with a usable Retry-After, InvalidResponse without one."""
    if getattr(response, "status_code", None) != 429:
        return
    raw = response.headers.get("Retry-After")
    if raw is None:
        raise InvalidResponse("encounter rate limited error without Retry-After")
    text = str(raw).strip()
    if not _RETRY_AFTER.fullmatch(text):
        raise InvalidResponse(f"invalid Retry-After header: {raw!r}")
    raise Throttled(int(text))


def check_status(response: Any) -> None:
    status_code = getattr(response, "status_code", None)
    if status_code is None or not 200 <= int(status_code) < 300:
        body = getattr(response, "text", "") or ""
        raise InvalidResponse(
            f"status: {status_code}, body: {body[:1000]}, url: {getattr(response, 'url', '')}"
        )


def decode_json(response: Any) -> Any:
    try:
        return response.json()
    except ValueError as exc:
        raise InvalidResponse(f"invalid json from {getattr(response, 'url', '')}: {exc}") from exc

from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Callable, Dict, Optional, Tuple

from .api import BASE_URL
from .errors import InvalidRequest, InvalidResponse
from .records import Block, Comment, Record, decode_database_item


class ListingKind(str, Enum):
    BLOCK_CHILDREN = "block_children"
    DATABASE_QUERY = "database_query"
    COMMENTS = "comments"


_ITEM_DECODERS: Dict[ListingKind, Callable[[Any], Record]] = {
    ListingKind.BLOCK_CHILDREN: Block.from_json,
    ListingKind.DATABASE_QUERY: decode_database_item,
    ListingKind.COMMENTS: Comment.from_json,
}


@dataclass(frozen=True)
class ListPage:
    """One decoded page of a listing."""

    listing: "ListingKind"
    parent_id: str
    items: Tuple[Record, ...]
    start_index: int
    next_cursor: Optional["PaginationCursor"] = None


@dataclass(frozen=True)
class PaginationCursor:
    """One paginated request target and the bookkeeping for its next page.

    start_index is the number of items already yielded by earlier pages of
    the same listing; items of the current page are positioned from there.
    A cursor without start_cursor addresses the first page.
    """

    listing: ListingKind
    parent_id: str
    url: str
    method: str = "GET"
    params: Tuple[Tuple[str, str], ...] = ()
    start_cursor: Optional[str] = None
    start_index: int = 0

    @classmethod
    def block_children(cls, block_id: str, base_url: str = BASE_URL) -> "PaginationCursor":
        _require_id(block_id)
        return cls(ListingKind.BLOCK_CHILDREN, block_id, f"{base_url}/blocks/{block_id}/children")

    @classmethod
    def database_query(cls, database_id: str, base_url: str = BASE_URL) -> "PaginationCursor":
        _require_id(database_id)
        return cls(
            ListingKind.DATABASE_QUERY,
            database_id,
            f"{base_url}/databases/{database_id}/query",
            method="POST",
        )

    @classmethod
    def comments(cls, block_id: str, base_url: str = BASE_URL) -> "PaginationCursor":
        _require_id(block_id)
        return cls(
            ListingKind.COMMENTS,
            block_id,
            f"{base_url}/comments",
            params=(("block_id", block_id),),
        )

    def request_kwargs(self) -> Dict[str, Any]:
        """Query params for GET listings, a JSON body for the POST query."""
        if self.method == "POST":
            body: Dict[str, Any] = {}
            if self.start_cursor:
                body["start_cursor"] = self.start_cursor
            return {"json": body}
        params = dict(self.params)
        if self.start_cursor:
            params["start_cursor"] = self.start_cursor
        return {"params": params}

    def fetch_current_page(self, send: Callable[..., Any]) -> ListPage:
        """Request this cursor's page through send(method, url, **kwargs) and decode it."""
        payload = send(self.method, self.url, **self.request_kwargs())
        return self.decode_page(payload)

    def decode_page(self, payload: Any) -> ListPage:
        if not isinstance(payload, dict):
            raise InvalidResponse(f"{self.listing.value}: expected a list object")
        results = payload.get("results")
        if not isinstance(results, list):
            raise InvalidResponse(f"{self.listing.value}: missing results")
        has_more = payload.get("has_more")
        if not isinstance(has_more, bool):
            raise InvalidResponse(f"{self.listing.value}: missing has_more")

        next_cursor = None
        if has_more:
            token = payload.get("next_cursor")
            if not isinstance(token, str) or not token:
                raise InvalidResponse(f"{self.listing.value}: has_more without next_cursor")
            next_cursor = self.advance(token, len(results))

        decode = _ITEM_DECODERS[self.listing]
        try:
            items = tuple(decode(raw) for raw in results)
        except (KeyError, TypeError, ValueError) as exc:
            raise InvalidResponse(f"{self.listing.value}: decode failed: {exc}, {self.url}") from exc

        if self.listing is ListingKind.BLOCK_CHILDREN:
            items = tuple(
                replace(block, child_index=self.start_index + idx) for idx, block in enumerate(items)
            )
        return ListPage(
            listing=self.listing,
            parent_id=self.parent_id,
            items=items,
            start_index=self.start_index,
            next_cursor=next_cursor,
        )

    def advance(self, token: str, count: int) -> "PaginationCursor":
        return replace(self, start_cursor=token, start_index=self.start_index + count)


def _require_id(value: str) -> None:
    if not value:
        raise InvalidRequest("empty parent id for listing")

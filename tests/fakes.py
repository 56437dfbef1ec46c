"""Fake Notion API objects and an in-memory HTTP session for tests."""

import threading
import time

from requests.structures import CaseInsensitiveDict

BASE = "https://api.notion.com/v1"
TS = "2024-01-15T10:30:00.000Z"

_INVALID_JSON = object()


def user_json(uid="u1"):
    return {"object": "user", "id": uid}


def _common(oid, obj, parent):
    ptype, pid = parent
    parent_obj = {"type": ptype, ptype: True if ptype == "workspace" else pid}
    return {
        "object": obj,
        "id": oid,
        "parent": parent_obj,
        "created_time": TS,
        "created_by": user_json(),
        "last_edited_time": TS,
        "last_edited_by": user_json(),
        "archived": False,
        "in_trash": False,
    }


def block_json(bid, block_type="paragraph", has_children=False, parent=("page_id", "P1")):
    data = _common(bid, "block", parent)
    data["type"] = block_type
    data["has_children"] = has_children
    if block_type in ("child_page", "child_database"):
        data[block_type] = {"title": f"title of {bid}"}
    else:
        data[block_type] = {"rich_text": [], "color": "default"}
    return data


def page_json(pid, parent=("workspace", "workspace")):
    data = _common(pid, "page", parent)
    data.update({"properties": {"title": {"id": "title", "type": "title", "title": []}},
                 "url": f"https://www.notion.so/{pid}", "public_url": None,
                 "icon": {"type": "emoji", "emoji": "x"}, "cover": None})
    return data


def database_json(did, parent=("page_id", "P1")):
    data = _common(did, "database", parent)
    data.update({"properties": {}, "url": f"https://www.notion.so/{did}", "public_url": None,
                 "icon": None, "cover": None, "is_inline": True, "title": [], "description": []})
    return data


def comment_json(cid, block_id="P1"):
    return {
        "object": "comment",
        "id": cid,
        "parent": {"type": "page_id", "page_id": block_id},
        "discussion_id": f"d-{cid}",
        "created_time": TS,
        "last_edited_time": TS,
        "created_by": user_json(),
        "rich_text": [{"type": "text", "plain_text": "hi"}],
    }


def list_json(results, next_cursor=None, has_more=None):
    if has_more is None:
        has_more = next_cursor is not None
    return {"object": "list", "results": list(results), "next_cursor": next_cursor,
            "has_more": has_more, "type": "block"}


class FakeResponse:
    def __init__(self, status_code=200, payload=None, headers=None, url=""):
        self.status_code = status_code
        self._payload = payload
        self.headers = CaseInsensitiveDict(headers or {})
        self.url = url
        self.text = "" if payload is _INVALID_JSON else str(payload)

    def json(self):
        if self._payload is _INVALID_JSON:
            raise ValueError("Expecting value: line 1 column 1 (char 0)")
        return self._payload


def ok(payload):
    return FakeResponse(200, payload)


def throttled(retry_after="2"):
    headers = {} if retry_after is None else {"Retry-After": retry_after}
    return FakeResponse(429, {"object": "error", "code": "rate_limited"}, headers)


def not_json():
    return FakeResponse(200, _INVALID_JSON)


class FakeSession:
    """Routes (method, url) to queued responses or handlers.

    A queued route answers with its responses in order and repeats the last
    one. A handler route is called with (params, json). Unknown routes get a
    404. Every call is recorded in ``calls``."""

    def __init__(self, delay=0.0):
        self._lock = threading.Lock()
        self._routes = {}
        self.calls = []
        self.headers_seen = []
        self.delay = delay

    def add(self, method, url, *responses):
        self._routes[(method, url)] = list(responses)
        return self

    def add_handler(self, method, url, handler):
        self._routes[(method, url)] = handler
        return self

    def add_pages(self, method, url, pages):
        """Serve item lists as consecutive pages, chained by cursors "c1", "c2", ..."""

        def handler(params, json):
            cursor = (params or {}).get("start_cursor") or (json or {}).get("start_cursor")
            index = int(cursor[1:]) if cursor else 0
            nxt = f"c{index + 1}" if index + 1 < len(pages) else None
            return ok(list_json(pages[index], next_cursor=nxt))

        return self.add_handler(method, url, handler)

    def request(self, method, url, params=None, json=None, headers=None, timeout=None):
        with self._lock:
            self.calls.append((method, url, dict(params or {}), json))
            self.headers_seen.append(dict(headers or {}))
            route = self._routes.get((method, url))
            if isinstance(route, list) and len(route) > 1:
                response = route.pop(0)
            elif isinstance(route, list) and route:
                response = route[0]
            else:
                response = None
        if self.delay:
            time.sleep(self.delay)
        if callable(route):
            response = route(params, json)
        if isinstance(response, Exception):
            raise response
        if response is None:
            response = FakeResponse(404, {"object": "error", "code": "object_not_found"})
        response.url = url
        return response

    def urls(self, method=None):
        with self._lock:
            return [u for m, u, _, _ in self.calls if method is None or m == method]

from __future__ import annotations

import datetime as _dt
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, ClassVar, Dict, List, Optional, Tuple, Union


class ObjectType(str, Enum):
    BLOCK = "block"
    PAGE = "page"
    DATABASE = "database"
    USER = "user"
    COMMENT = "comment"


CHILD_PAGE = "child_page"
CHILD_DATABASE = "child_database"

_PARENT_KEYS = ("block_id", "page_id", "database_id")


def _expect_object(data: Any, expected: ObjectType) -> Dict[str, Any]:
    if not isinstance(data, dict):
        raise TypeError(f"expected a JSON object for {expected.value}, got {type(data).__name__}")
    if data.get("object") != expected.value:
        raise ValueError(f"expected object={expected.value!r}, got {data.get('object')!r}")
    if not isinstance(data.get("id"), str) or not data["id"]:
        raise ValueError(f"{expected.value} without id")
    return data


def parse_time(value: Any) -> _dt.datetime:
    """Parse a Notion ISO-8601 timestamp ("2024-01-15T10:30:00.000Z") as aware UTC."""
    if not isinstance(value, str):
        raise ValueError(f"invalid timestamp: {value!r}")
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    parsed = _dt.datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=_dt.timezone.utc)
    return parsed


def parse_parent(value: Any) -> Tuple[str, str]:
    """Return (parent_type, parent_id). Workspace parents map to ("workspace", "workspace")."""
    if not isinstance(value, dict):
        raise ValueError(f"invalid parent: {value!r}")
    ptype = value.get("type")
    if ptype == "workspace" or value.get("workspace") is True:
        return "workspace", "workspace"
    keys = (ptype,) if ptype in _PARENT_KEYS else _PARENT_KEYS
    for key in keys:
        pid = value.get(key)
        if isinstance(pid, str) and pid:
            return key, pid
    raise ValueError(f"invalid parent: {value!r}")


def _user_ref(value: Any) -> str:
    if not isinstance(value, dict) or not isinstance(value.get("id"), str):
        raise ValueError(f"invalid user reference: {value!r}")
    return value["id"]


def _common(data: Dict[str, Any]) -> Dict[str, Any]:
    parent_type, parent_id = parse_parent(data.get("parent"))
    return {
        "id": data["id"],
        "parent_type": parent_type,
        "parent_id": parent_id,
        "created_time": parse_time(data.get("created_time")),
        "created_by": _user_ref(data.get("created_by")),
        "last_edited_time": parse_time(data.get("last_edited_time")),
        "last_edited_by": _user_ref(data.get("last_edited_by")),
        "archived": bool(data.get("archived", False)),
        "in_trash": bool(data.get("in_trash", False)),
    }


@dataclass(frozen=True)
class Block:
    id: str
    parent_type: str
    parent_id: str
    created_time: _dt.datetime
    created_by: str
    last_edited_time: _dt.datetime
    last_edited_by: str
    archived: bool
    in_trash: bool
    has_children: bool
    block_type: str
    type_data: Dict[str, Any] = field(default_factory=dict)
    # position among the parent's children; None unless a listing yielded the block
    child_index: Optional[int] = None

    kind: ClassVar[ObjectType] = ObjectType.BLOCK

    @classmethod
    def from_json(cls, data: Any) -> "Block":
        data = _expect_object(data, ObjectType.BLOCK)
        block_type = data.get("type")
        if not isinstance(block_type, str) or not block_type:
            raise ValueError(f"block {data['id']} without type")
        has_children = data.get("has_children")
        if not isinstance(has_children, bool):
            raise ValueError(f"block {data['id']} without has_children")
        type_data = data.get(block_type) or {}
        return cls(
            **_common(data),
            has_children=has_children,
            block_type=block_type,
            type_data=dict(type_data) if isinstance(type_data, dict) else {"value": type_data},
        )

    @property
    def is_child_page(self) -> bool:
        return self.block_type == CHILD_PAGE

    @property
    def is_child_database(self) -> bool:
        return self.block_type == CHILD_DATABASE


@dataclass(frozen=True)
class Page:
    id: str
    parent_type: str
    parent_id: str
    created_time: _dt.datetime
    created_by: str
    last_edited_time: _dt.datetime
    last_edited_by: str
    archived: bool
    in_trash: bool
    properties: Dict[str, Any]
    url: str
    public_url: Optional[str] = None
    icon: Optional[Dict[str, Any]] = None
    cover: Optional[Dict[str, Any]] = None

    kind: ClassVar[ObjectType] = ObjectType.PAGE

    @classmethod
    def from_json(cls, data: Any) -> "Page":
        data = _expect_object(data, ObjectType.PAGE)
        return cls(**_common(data), **_page_fields(data))


def _page_fields(data: Dict[str, Any]) -> Dict[str, Any]:
    properties = data.get("properties")
    if not isinstance(properties, dict):
        raise ValueError(f"{data['object']} {data['id']} without properties")
    url = data.get("url")
    if not isinstance(url, str):
        raise ValueError(f"{data['object']} {data['id']} without url")
    return {
        "properties": properties,
        "url": url,
        "public_url": data.get("public_url"),
        "icon": data.get("icon"),
        "cover": data.get("cover"),
    }


@dataclass(frozen=True)
class Database:
    id: str
    parent_type: str
    parent_id: str
    created_time: _dt.datetime
    created_by: str
    last_edited_time: _dt.datetime
    last_edited_by: str
    archived: bool
    in_trash: bool
    properties: Dict[str, Any]
    url: str
    public_url: Optional[str] = None
    icon: Optional[Dict[str, Any]] = None
    cover: Optional[Dict[str, Any]] = None
    is_inline: bool = False
    title: List[Dict[str, Any]] = field(default_factory=list)
    description: List[Dict[str, Any]] = field(default_factory=list)

    kind: ClassVar[ObjectType] = ObjectType.DATABASE

    @classmethod
    def from_json(cls, data: Any) -> "Database":
        data = _expect_object(data, ObjectType.DATABASE)
        return cls(
            **_common(data),
            **_page_fields(data),
            is_inline=bool(data.get("is_inline", False)),
            title=list(data.get("title") or []),
            description=list(data.get("description") or []),
        )


@dataclass(frozen=True)
class User:
    id: str
    user_type: Optional[str] = None
    name: Optional[str] = None
    avatar_url: Optional[str] = None
    email: Optional[str] = None

    kind: ClassVar[ObjectType] = ObjectType.USER

    @classmethod
    def from_json(cls, data: Any) -> "User":
        data = _expect_object(data, ObjectType.USER)
        person = data.get("person") or {}
        return cls(
            id=data["id"],
            user_type=data.get("type"),
            name=data.get("name"),
            avatar_url=data.get("avatar_url"),
            email=person.get("email") if isinstance(person, dict) else None,
        )


@dataclass(frozen=True)
class Comment:
    id: str
    parent_type: str
    parent_id: str
    created_time: _dt.datetime
    created_by: str
    last_edited_time: _dt.datetime
    discussion_id: str
    rich_text: List[Dict[str, Any]] = field(default_factory=list)

    kind: ClassVar[ObjectType] = ObjectType.COMMENT

    @classmethod
    def from_json(cls, data: Any) -> "Comment":
        data = _expect_object(data, ObjectType.COMMENT)
        parent_type, parent_id = parse_parent(data.get("parent"))
        discussion_id = data.get("discussion_id")
        if not isinstance(discussion_id, str):
            raise ValueError(f"comment {data['id']} without discussion_id")
        return cls(
            id=data["id"],
            parent_type=parent_type,
            parent_id=parent_id,
            created_time=parse_time(data.get("created_time")),
            created_by=_user_ref(data.get("created_by")),
            last_edited_time=parse_time(data.get("last_edited_time")),
            discussion_id=discussion_id,
            rich_text=list(data.get("rich_text") or []),
        )


Record = Union[Block, Page, Database, User, Comment]

RECORD_TYPES: Dict[ObjectType, type] = {
    ObjectType.BLOCK: Block,
    ObjectType.PAGE: Page,
    ObjectType.DATABASE: Database,
    ObjectType.USER: User,
    ObjectType.COMMENT: Comment,
}


def decode_record(data: Any) -> Record:
    """Decode any supported object, dispatching on its "object" field."""
    if not isinstance(data, dict):
        raise TypeError(f"expected a JSON object, got {type(data).__name__}")
    try:
        kind = ObjectType(data.get("object"))
    except ValueError:
        raise ValueError(f"unsupported object: {data.get('object')!r}") from None
    return RECORD_TYPES[kind].from_json(data)


def decode_database_item(data: Any) -> Union[Page, Database]:
    """Database query results hold pages, and databases for nested sources."""
    record = decode_record(data)
    if not isinstance(record, (Page, Database)):
        raise ValueError(f"unexpected {record.kind.value} in database query results")
    return record

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Mapping, Optional
from urllib.parse import urlsplit

from dotenv import load_dotenv

from .controller import DEFAULT_WORKERS
from .errors import InvalidRequest

NOTION_TOKEN = "NOTION_TOKEN"
NOTION_ROOT_PAGE = "NOTION_ROOT_PAGE"

DEFAULT_DB_PATH = "notion.db"
DEFAULT_QPS = 3.0
DEFAULT_BURST = 5
DEFAULT_TIMEOUT = 30.0


@dataclass(frozen=True)
class CrawlConfig:
    token: str
    root_id: str
    db_path: str = DEFAULT_DB_PATH
    jsonl_path: Optional[str] = None
    metrics_path: Optional[str] = None
    qps: float = DEFAULT_QPS
    burst: int = DEFAULT_BURST
    timeout: float = DEFAULT_TIMEOUT
    queue_size: int = 10
    workers: int = DEFAULT_WORKERS


def extract_root_id(page: str) -> str:
    """Accept a bare id or a share link such as https://www.notion.so/ws/Title-<id>."""
    page = (page or "").strip()
    if not page:
        raise InvalidRequest("empty root page")
    if not page.startswith("https://"):
        return page
    path = urlsplit(page).path.rstrip("/")
    last = path.rsplit("/", 1)[-1]
    if not last:
        raise InvalidRequest(f"Can't extract ID from root page link, which value is {page}")
    if "-" in last:
        return last.rsplit("-", 1)[1]
    return last


def load_config(
    token: Optional[str] = None,
    page: Optional[str] = None,
    env: Optional[Mapping[str, str]] = None,
    dotenv_path: Optional[str] = None,
    **overrides,
) -> CrawlConfig:
    """Resolve settings: explicit arguments first, then the environment (after .env)."""
    if env is None:
        load_dotenv(dotenv_path)
        env = os.environ

    token = token or env.get(NOTION_TOKEN)
    if not token:
        raise InvalidRequest(f"Neither --token nor env {NOTION_TOKEN} is set.")
    page = page or env.get(NOTION_ROOT_PAGE)
    if not page:
        raise InvalidRequest(f"Neither PAGE nor env {NOTION_ROOT_PAGE} is set.")

    settings = {k: v for k, v in overrides.items() if v is not None}
    return CrawlConfig(token=token, root_id=extract_root_id(page), **settings)

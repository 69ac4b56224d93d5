"""
In-flight plan text.

While a plan is being generated its partial text is kept in Redis under
plan_stream:{stream_id} so the client can show progress. The key expires
on its own; a missing key after completion is normal.
"""
from typing import Any, Dict, Optional

from core.cache import get_json, set_json
from core.config import settings


def _key(stream_id: str) -> str:
    return f"plan_stream:{stream_id}"


def write_stream(stream_id: str, text: str, done: bool = False) -> bool:
    return set_json(_key(stream_id), {"text": text, "done": done}, settings.PLAN_STREAM_TTL_S)


def read_stream(stream_id: str) -> Optional[Dict[str, Any]]:
    return get_json(_key(stream_id))

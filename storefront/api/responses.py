import math
from typing import Any, List, Optional

from pydantic import BaseModel


def _dump(value: Any) -> Any:
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json", by_alias=True)
    if isinstance(value, (list, tuple)):
        return [_dump(v) for v in value]
    if isinstance(value, dict):
        return {k: _dump(v) for k, v in value.items()}
    return value


def success(data: Any = None, message: Optional[str] = None, meta: Optional[dict] = None) -> dict:
    body = {"success": True}
    if message:
        body["message"] = message
    if data is not None:
        body["data"] = _dump(data)
    if meta is not None:
        body["meta"] = meta
    return body


def failure(message: str, errors: Optional[List[Any]] = None) -> dict:
    body = {"success": False, "message": message}
    if errors:
        body["errors"] = _dump(errors)
    return body


def page_meta(page: int, limit: int, total: int) -> dict:
    return {
        "page": page,
        "limit": limit,
        "total": total,
        "totalPages": math.ceil(total / limit) if limit else 0,
    }

from pydantic import BaseModel
from typing import TypeVar, Generic, Any

T = TypeVar("T")


# ─── Page Envelope ─────────────────────────────────────────────────────────────
class Page(BaseModel, Generic[T]):
    """Offset/limit page. limit == 0 means the page holds every row."""
    total: int = 0
    limit: int = 0
    offset: int = 0
    pages: int = 0
    data: list[T] = []


# ─── Helper Functions ─────────────────────────────────────────────────────────
def count_pages(total: int, limit: int) -> int:
    if limit <= 0:
        return 1 if total > 0 else 0
    return (total + limit - 1) // limit


def slice_page(items: list, limit: int, offset: int) -> list:
    """Apply offset/limit to an already ordered list (limit 0 = everything from offset)."""
    if limit <= 0:
        return items[offset:]
    return items[offset:offset + limit]


def page_payload(data: list, total: int, limit: int, offset: int) -> dict:
    return {
        "total":  total,
        "limit":  limit,
        "offset": offset,
        "pages":  count_pages(total, limit),
        "data":   data,
    }


def success_response(message: str, data: Any = None) -> dict:
    """Return a standardized success dict (used in route handlers)."""
    return {"success": True, "message": message, "data": data}


def page_response(message: str, data: list, total: int, limit: int, offset: int) -> dict:
    """Return a standardized success dict wrapping one page."""
    return success_response(message, page_payload(data, total, limit, offset))


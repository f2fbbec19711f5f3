from __future__ import annotations

from typing import Any, Dict, List, Optional, Tuple

from .normalize import lenient_limit
from .settings import S


def page_params(limit: Optional[str], offset: Optional[str], default_limit: int) -> Tuple[int, int]:
    try:
        start = max(int(offset), 0) if offset is not None else 0
    except (TypeError, ValueError):
        start = 0
    return lenient_limit(limit, default_limit, S.max_page_size), start


def paginated(data: List[Dict[str, Any]], limit: int, offset: int, has_more: Optional[bool] = None) -> Dict[str, Any]:
    return {
        "success": True,
        "data": data,
        "pagination": {
            "limit": limit,
            "offset": offset,
            "has_more": len(data) == limit if has_more is None else has_more,
        },
    }

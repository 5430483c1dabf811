"""Page/limit normalization and the pagination meta block."""
from __future__ import annotations

import math
from typing import Dict, Optional, Tuple

DEFAULT_PAGE = 1
DEFAULT_LIMIT = 10
# Upper bound for the plain listings (orders, catalog, ledger); search is uncapped
MAX_LIMIT = 100


def normalize_page(page, limit, default_limit: int = DEFAULT_LIMIT,
                   max_limit: Optional[int] = None) -> Tuple[int, int]:
    """Non-positive page falls back to 1, non-positive limit to the default; limit is capped only when max_limit is given."""
    page = int(page) if page is not None else DEFAULT_PAGE
    limit = int(limit) if limit is not None else default_limit
    if page < 1:
        page = DEFAULT_PAGE
    if limit < 1:
        limit = default_limit
    if max_limit is not None and limit > max_limit:
        limit = max_limit
    return page, limit


def offset_for(page: int, limit: int) -> int:
    return (page - 1) * limit


def build_meta(page: int, limit: int, total: int) -> Dict[str, int]:
    return {
        "page": page,
        "limit": limit,
        "total": total,
        "total_pages": math.ceil(total / limit) if limit else 0,
    }

from __future__ import annotations

from typing import Any

import config


def clamp_page(page: int, limit: int) -> tuple[int, int]:
    page = max(1, int(page or 1))
    limit = max(1, min(int(limit or 20), config.MAX_PAGE_SIZE))
    return page, limit


def build_pagination(page: int, limit: int, total: int) -> dict[str, Any]:
    return {
        "page": page,
        "limit": limit,
        "total": total,
        "totalPages": (total + limit - 1) // limit if limit else 0,
        "hasMore": page * limit < total,
    }

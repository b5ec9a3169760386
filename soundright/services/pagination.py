import math
from dataclasses import dataclass
from typing import Iterable, List, Optional, Tuple

from fastapi import Query
from sqlalchemy import or_
from sqlalchemy.orm import Query as SAQuery

from ..config import settings


@dataclass(frozen=True)
class PageParams:
    page: int
    limit: int

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit


def page_params(
    page: int = Query(1, ge=1),
    limit: Optional[int] = Query(None, ge=1),
) -> PageParams:
    """Shared ``page``/``limit`` query parameters, clamped to the configured maximum."""
    limit = min(limit or settings.default_page_size, settings.max_page_size)
    return PageParams(page=page, limit=limit)


def apply_search(query: SAQuery, term: Optional[str], columns: Iterable) -> SAQuery:
    """Case-insensitive substring match of ``term`` across ``columns``."""
    if not term:
        return query
    like = f"%{term}%"
    return query.filter(or_(*[col.ilike(like) for col in columns]))


def paginate(query: SAQuery, params: PageParams) -> Tuple[List, int]:
    total_count = query.order_by(None).count()
    rows = query.offset(params.offset).limit(params.limit).all()
    return rows, total_count


def list_payload(items: List, total_count: int, params: PageParams) -> dict:
    return {
        "success": True,
        "count": len(items),
        "total_count": total_count,
        "pagination": {
            "page": params.page,
            "limit": params.limit,
            "total_pages": math.ceil(total_count / params.limit) if params.limit else 0,
        },
        "data": items,
    }

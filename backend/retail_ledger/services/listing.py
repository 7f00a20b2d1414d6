# Overview: Shared page/sort handling for list endpoints.

from __future__ import annotations

from typing import Callable

# Public sort keys (as clients send them) -> model attribute names
SORT_FIELDS = {
    "id": "id",
    "createdAt": "created_at",
    "updatedAt": "updated_at",
}

DEFAULT_PER_PAGE = 10
MAX_PER_PAGE = 100


def normalize_listing(
    page: int | None = None,
    per_page: int | None = None,
    sort: str | None = None,
    sort_field: str | None = None,
) -> tuple[int, int, str, str]:
    """Invalid or missing values fall back to defaults rather than erroring."""
    page = page if isinstance(page, int) and page >= 1 else 1
    if not isinstance(per_page, int) or per_page < 1:
        per_page = DEFAULT_PER_PAGE
    per_page = min(per_page, MAX_PER_PAGE)
    sort = sort.lower() if isinstance(sort, str) and sort.lower() in ("asc", "desc") else "asc"
    sort_field = sort_field if sort_field in SORT_FIELDS else "createdAt"
    return page, per_page, sort, sort_field


def paginate(
    query,
    model,
    *,
    page: int | None = None,
    per_page: int | None = None,
    sort: str | None = None,
    sort_field: str | None = None,
    serializer: Callable | None = None,
) -> dict:
    """
    Apply ordering and offset pagination to query.

    Ties on the sort column are broken by id in the same direction so pages
    are stable (created_at has one-second resolution on SQLite).
    """
    page, per_page, sort, sort_field = normalize_listing(page, per_page, sort, sort_field)

    column = getattr(model, SORT_FIELDS[sort_field], None)
    if column is None:
        column = model.created_at
    if sort == "desc":
        query = query.order_by(column.desc(), model.id.desc())
    else:
        query = query.order_by(column.asc(), model.id.asc())

    total = query.order_by(None).count()
    total_pages = (total + per_page - 1) // per_page if total > 0 else 1
    rows = query.offset((page - 1) * per_page).limit(per_page).all()

    serialize = serializer or (lambda row: row.to_dict())
    return {
        "data": [serialize(row) for row in rows],
        "meta": {
            "totalItems": total,
            "page": page,
            "perPage": per_page,
            "totalPages": total_pages,
            "sort": sort,
            "sortField": sort_field,
        },
    }

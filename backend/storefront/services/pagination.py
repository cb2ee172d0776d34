from __future__ import annotations


def paginate(query, *, page: int | None, limit: int | None, serialize, default_limit: int = 10, max_limit: int = 100) -> dict:
    """
    Offset pagination over a SQLAlchemy query.

    Returns {'items', 'count', 'pagination'}; page is 1-indexed and clamped,
    limit defaults to `default_limit` and is capped at `max_limit`.
    """
    limit = min(limit or default_limit, max_limit)
    limit = max(limit, 1)
    page = max(page or 1, 1)

    total = query.order_by(None).count()
    total_pages = (total + limit - 1) // limit if total > 0 else 1

    rows = query.offset((page - 1) * limit).limit(limit).all()

    return {
        "items": [serialize(row) for row in rows],
        "count": len(rows),
        "pagination": {
            "page": page,
            "limit": limit,
            "total": total,
            "total_pages": total_pages,
            "has_next": page < total_pages,
            "has_prev": page > 1,
        },
    }

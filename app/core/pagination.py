"""Pagination helpers."""


def paginate(limit: int | None, offset: int, max_limit: int) -> tuple[int, int]:
    """Clamp limit/offset; a missing limit means max_limit. Returns (limit, offset)."""
    if limit is None:
        limit = max_limit
    limit = max(1, min(limit, max_limit))
    offset = max(0, offset)
    return limit, offset

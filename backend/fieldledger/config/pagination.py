DEFAULT_LIMIT = 50
MAX_LIMIT = 200


def normalize_pagination(limit_raw, offset_raw, page_raw=None):
    """Return (limit, offset).

    Admin listings send ``limit``/``offset``; the mobile app sends ``page``
    (1-based) with ``limit``. When ``page`` is given it wins over ``offset``.
    """
    try:
        limit = int(limit_raw) if limit_raw is not None else DEFAULT_LIMIT
        offset = int(offset_raw) if offset_raw is not None else 0
        page = int(page_raw) if page_raw is not None else None
    except ValueError:
        raise ValueError('limit/offset/page must be int')
    limit = max(1, min(limit, MAX_LIMIT))
    if page is not None:
        offset = (max(page, 1) - 1) * limit
    offset = max(0, offset)
    return limit, offset

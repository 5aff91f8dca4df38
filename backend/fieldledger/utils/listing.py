from __future__ import annotations
from typing import Callable, Optional, Tuple
from flask import request
from sqlalchemy.orm import Query
from fieldledger.config.pagination import normalize_pagination
from fieldledger.errors import ValidationError


def apply_pagination(q: Query) -> Tuple[Query, int, int, int]:
    try:
        limit, offset = normalize_pagination(
            request.args.get('limit'), request.args.get('offset'), request.args.get('page')
        )
    except ValueError as e:
        raise ValidationError(str(e))
    total = q.count()
    return q.offset(offset).limit(limit), total, limit, offset


def build_list_payload(rows: list, total: int, limit: int, offset: int):
    return {
        'data': rows,
        'pagination': {
            'total': total,
            'limit': limit,
            'offset': offset,
            'page': offset // limit + 1,
            'pages': (total + limit - 1) // limit,
            'returned': len(rows)
        }
    }


def paginated_response(q: Query, serialize: Callable, extra: Optional[dict] = None):
    """Paginate ``q`` from the request args and serialize each row."""
    paged_q, total, limit, offset = apply_pagination(q)
    payload = build_list_payload([serialize(r) for r in paged_q.all()], total, limit, offset)
    if extra:
        payload.update(extra)
    return payload

"""Domain error taxonomy.

Each error is a werkzeug ``HTTPException`` so services can raise them outside a
request context while the application error handler renders them with a stable
status. ``extra`` is merged into the JSON error body.
"""
from __future__ import annotations
from typing import Any, Dict, Optional
from werkzeug.exceptions import HTTPException


class DomainError(HTTPException):
    code = 500
    name = 'Internal Server Error'
    default_detail = 'Unexpected error'

    def __init__(self, description: Optional[str] = None, **extra: Any):
        super().__init__(description or self.default_detail)
        self.extra: Dict[str, Any] = extra


class Unauthorized(DomainError):
    code = 401
    name = 'Unauthorized'
    default_detail = 'Authentication required'


class Forbidden(DomainError):
    code = 403
    name = 'Forbidden'
    default_detail = 'Forbidden'


class NotFound(DomainError):
    code = 404
    name = 'Not Found'
    default_detail = 'Not found'


class ValidationError(DomainError):
    code = 400
    name = 'Validation Error'
    default_detail = 'Invalid input'


class InsufficientHoldings(DomainError):
    code = 409
    name = 'Insufficient Holdings'
    default_detail = 'Insufficient holdings'

    def __init__(self, method: str, available: int, requested: int):
        super().__init__(
            f"Insufficient {method.lower()} holdings. Available: {available}",
            method=method,
            available=available,
            requested=requested,
            shortfall=requested - available,
        )


class InsufficientStock(DomainError):
    code = 409
    name = 'Insufficient Stock'
    default_detail = 'Insufficient stock'

    def __init__(self, available: int, requested: int, description: Optional[str] = None, **extra: Any):
        super().__init__(
            description or f"Insufficient stock. Only {available} available.",
            available=available,
            requested=requested,
            shortfall=requested - available,
            **extra,
        )


class AlreadyProcessed(DomainError):
    code = 409
    name = 'Already Processed'
    default_detail = 'Request has already been processed'


class Conflict(DomainError):
    code = 409
    name = 'Conflict'
    default_detail = 'Resource already exists'


class Internal(DomainError):
    code = 500
    name = 'Internal Server Error'
    default_detail = 'Unexpected error'


def error_payload(e: HTTPException) -> Dict[str, Any]:
    body: Dict[str, Any] = {
        'status': e.code,
        'title': e.name,
        'detail': e.description,
    }
    extra = getattr(e, 'extra', None)
    if extra:
        body.update(extra)
    return {'error': body}

__all__ = [
    'DomainError', 'Unauthorized', 'Forbidden', 'NotFound', 'ValidationError',
    'InsufficientHoldings', 'InsufficientStock', 'AlreadyProcessed', 'Conflict', 'Internal', 'error_payload',
]

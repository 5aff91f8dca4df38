from __future__ import annotations
"""Audit logging decorator for mutating admin routes.

Usage examples:

@audit_log('PRODUCT.CREATE', entity='Product', entity_id_key='id', meta_keys=['title'])
def create_product():
    ... return {'id': p.id, 'title': p.title}, 201

@audit_log('REQUEST.PROCESS', entity='StockRequest', entity_id_arg='request_id',
           meta_builder=lambda data, rv, args, kwargs: {'status': data.get('status')})
def process_stock_request(request_id): ...

Parameters:
  action: required audit action code (e.g. PRODUCT.CREATE)
  entity: optional entity label
  entity_id_key: key in the returned JSON object whose value becomes entity_id.
  entity_id_arg: route kwarg used for entity_id when the key is absent.
  meta_keys: keys projected from the returned JSON into meta.
  meta_builder: callable returning meta; receives (data, original_return_value, args, kwargs).
  diff_keys / pre_fetch: snapshot before the handler runs and record before/after changes.

Only successful responses are audited; an exception from the handler propagates
untouched to the error handler. The actor is the principal the auth decorators
stored on ``flask.g``.
"""

from functools import wraps
from typing import Any, Callable, Iterable, Optional, Dict
import logging

from flask import g

from fieldledger.services.audit import add_audit
from fieldledger import get_db

logger = logging.getLogger(__name__)


def _extract_payload(rv: Any):
    """Return (data, status) where data is the JSON-able dict for inspection."""
    if isinstance(rv, tuple) and rv:
        status = rv[1] if len(rv) > 1 and isinstance(rv[1], int) else 200
        return rv[0], status
    return rv, 200


def audit_log(
    action: str,
    *,
    entity: Optional[str] = None,
    entity_id_key: Optional[str] = None,
    entity_id_arg: Optional[str] = None,
    meta_keys: Optional[Iterable[str]] = None,
    meta_builder: Optional[Callable[[dict, Any, tuple, dict], dict]] = None,
    diff_keys: Optional[Iterable[str]] = None,
    pre_fetch: Optional[Callable[[tuple, dict], Dict[str, Any]]] = None,
):
    def outer(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            before_snapshot = None
            if diff_keys and pre_fetch:
                try:
                    before_snapshot = pre_fetch(args, kwargs)
                except Exception:
                    logger.warning('Audit pre-fetch failed for %s', action, exc_info=True)
            rv = fn(*args, **kwargs)
            data, status = _extract_payload(rv)
            if status >= 400:
                return rv
            session = get_db()
            try:
                entity_id = None
                if isinstance(data, dict) and entity_id_key and entity_id_key in data:
                    entity_id = data.get(entity_id_key)
                elif entity_id_arg and entity_id_arg in kwargs:
                    entity_id = kwargs.get(entity_id_arg)
                meta = None
                if meta_builder:
                    meta = meta_builder(data if isinstance(data, dict) else {}, rv, args, kwargs)
                elif meta_keys and isinstance(data, dict):
                    meta = {k: data.get(k) for k in meta_keys if k in data}
                if diff_keys and isinstance(before_snapshot, dict) and isinstance(data, dict):
                    changes = {
                        k: {'before': before_snapshot.get(k), 'after': data.get(k)}
                        for k in diff_keys
                        if k in before_snapshot and k in data and before_snapshot.get(k) != data.get(k)
                    }
                    if changes:
                        meta = dict(meta or {})
                        meta['changes'] = changes
                add_audit(session, action, entity, entity_id, meta, principal=g.get('principal'))
                session.commit()
            except Exception:
                # audit must not interfere with the main response
                session.rollback()
                logger.exception('Audit write failed for %s', action)
            return rv
        return wrapper
    return outer

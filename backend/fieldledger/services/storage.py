"""File store client.

Photos live in an external store addressed by URL; this service only ever
needs to delete the old file when a photo is replaced or removed. Deletion is
fire-and-forget: failures are logged and never roll back the caller.
"""
from __future__ import annotations
from typing import Optional
import logging

import requests
from flask import current_app

logger = logging.getLogger(__name__)


def delete_file(url: Optional[str]) -> bool:
    if not url:
        return False
    endpoint = current_app.config.get('FILE_STORE_DELETE_URL')
    if not endpoint:
        logger.debug('No file store configured; skipping delete of %s', url)
        return False
    try:
        response = requests.post(endpoint, json={'url': url}, timeout=5)
        response.raise_for_status()
    except requests.RequestException:
        logger.warning('File store delete failed for %s', url, exc_info=True)
        return False
    return True


def replace_file(old_url: Optional[str], new_url: Optional[str]) -> None:
    """Delete ``old_url`` when it differs from the incoming value."""
    if old_url and old_url != new_url:
        delete_file(old_url)


__all__ = ['delete_file', 'replace_file']

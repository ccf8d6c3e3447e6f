"""Per-user cache of dashboard/billing summaries.

Reconciliation paths call :func:`revalidate_dashboard` whenever a payment
changes state so the next billing request recomputes its stats.
"""
import logging
import time
from typing import Dict, Optional, Tuple

from algomakers.core.config import settings

logger = logging.getLogger(__name__)

# TODO: move to Redis once the API runs with more than one worker
dashboard_cache: Dict[str, Tuple[dict, float]] = {}
dashboard_versions: Dict[str, int] = {}


def dashboard_version(user_id: str) -> int:
    return dashboard_versions.get(user_id, 0)


def get_cached_dashboard(user_id: str) -> Optional[dict]:
    entry = dashboard_cache.get(user_id)
    if not entry:
        return None
    data, stored_at = entry
    if time.time() - stored_at > settings.DASHBOARD_CACHE_TTL_SECONDS:
        dashboard_cache.pop(user_id, None)
        return None
    return data


def set_cached_dashboard(user_id: str, data: dict, version: Optional[int] = None) -> bool:
    """Store stats computed at ``version``; stale computations are dropped."""
    if version is not None and version != dashboard_version(user_id):
        logger.info(f"Dashboard for user {user_id} changed while computing stats, not caching")
        return False
    dashboard_cache[user_id] = (data, time.time())
    return True


def revalidate_dashboard(user_id: str) -> None:
    dashboard_versions[user_id] = dashboard_version(user_id) + 1
    if dashboard_cache.pop(user_id, None) is not None:
        logger.info(f"Dashboard cache revalidated for user {user_id}")

"""
Shared utility functions for routers and services
"""
import json
import logging
from datetime import datetime, timezone
from typing import Optional

logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    """Naive UTC timestamp, the form every DateTime column stores."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_iso(value: Optional[datetime]) -> Optional[str]:
    """Render a stored timestamp as ISO-8601 (None stays None)."""
    if value is None:
        return None
    return value.isoformat()


def log_endpoint_event(endpoint: str, user_id: Optional[int] = None, result: str = "success", details: Optional[dict] = None):
    """Log endpoint execution to app.log"""
    logger.info(f"{endpoint} | user={user_id if user_id is not None else 'none'} | {result} | {json.dumps(details or {}, default=str)}")

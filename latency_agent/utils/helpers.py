"""Utility helper functions"""

import socket
import platform
from datetime import datetime, timezone
from typing import Dict, Any
from zoneinfo import ZoneInfo


def get_hostname():
    """Get system hostname"""
    try:
        return socket.gethostname()
    except OSError:
        return platform.node() or "unknown"


def utc_now() -> datetime:
    """Current time as a timezone-aware UTC datetime"""
    return datetime.now(timezone.utc)


def is_within_monitoring_window(now: datetime, window_config: Dict[str, Any]) -> bool:
    """
    Check whether now falls inside the business-hours window.

    The window is [start_hour, end_hour) in the configured timezone. end_hour
    may be 24 (midnight). start_hour > end_hour wraps past midnight, and
    start_hour == end_hour covers the whole day.

    Args:
        now: Instant to check. Naive datetimes are treated as UTC.
        window_config: Dict with start_hour, end_hour and timezone

    Returns:
        True if monitoring should run at now
    """
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)

    local_now = now.astimezone(ZoneInfo(window_config['timezone']))
    hour = local_now.hour
    start_hour = window_config['start_hour']
    end_hour = window_config['end_hour']

    if start_hour == end_hour:
        return True
    if start_hour < end_hour:
        return start_hour <= hour < end_hour
    return hour >= start_hour or hour < end_hour

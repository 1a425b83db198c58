from __future__ import annotations

import logging
from datetime import datetime, tzinfo
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from tzlocal import get_localzone_name


logger = logging.getLogger(__name__)


def resolve_timezone(name: str | None = None) -> ZoneInfo:
    """Return the named zone, or the system zone when none (or an unknown one) is set."""
    if name:
        try:
            return ZoneInfo(name)
        except (ZoneInfoNotFoundError, ValueError):
            logger.warning("Unknown timezone %r; using the system timezone", name)
    return ZoneInfo(get_localzone_name())


def localize(moment: datetime | None, timezone: tzinfo) -> datetime:
    if moment is None:
        return datetime.now(timezone)
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone)
    return moment.astimezone(timezone)

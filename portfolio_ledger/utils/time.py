"""Time utilities."""

from datetime import datetime, tzinfo
from zoneinfo import ZoneInfo

from portfolio_ledger.config import settings


def app_timezone() -> tzinfo:
    return ZoneInfo(settings.TIMEZONE)


def now_naive() -> datetime:
    """
    Current time in the application timezone, returned as naive datetime for DB storage.
    """
    return datetime.now(app_timezone()).replace(tzinfo=None)


def to_iso_db(dt: datetime) -> str:
    """
    Convert a stored timestamp to an ISO string with offset.

    DB timestamps are stored naive in the application timezone, so naive
    values are interpreted in that zone (not UTC) here.
    """
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=app_timezone())
    return dt.isoformat()

"""Datetime helpers."""

from __future__ import annotations

import calendar
from datetime import date, datetime, timedelta, timezone
from typing import Iterator

import pendulum

from app.core.config import settings


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """Attach UTC to naive datetimes read back from SQLite."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def merchant_timezone() -> pendulum.Timezone:
    return pendulum.timezone(settings.MERCHANT_TIMEZONE)


def today_in_tz() -> date:
    return pendulum.now(merchant_timezone()).date()


def parse_iso_date(value: str) -> date:
    return pendulum.parse(value).date()


def format_date(value: date) -> str:
    return value.strftime("%Y-%m-%d")


def local_date(timestamp: str, tz_name: str | None = None) -> date:
    """Calendar date of an ISO timestamp in the merchant timezone (not the UTC date)."""
    tz = pendulum.timezone(tz_name) if tz_name else merchant_timezone()
    return pendulum.parse(timestamp).in_timezone(tz).date()


def day_range(start: date, end: date) -> Iterator[date]:
    current = start
    while current <= end:
        yield current
        current += timedelta(days=1)


def add_months(value: date, months: int, day: int | None = None) -> date:
    """Shift by whole months, clamping the day to the target month's length."""
    month_index = value.month - 1 + months
    year = value.year + month_index // 12
    month = month_index % 12 + 1
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, min(day or value.day, last_day))

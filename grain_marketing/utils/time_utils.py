"""
Time and date utilities for crop-calendar aware decisions.

Key concepts:
  - Harvest windows: each commodity has a calendar window (start month,
    end month) in which its crop comes out of the field.
  - Trading days: weekdays; exchange holidays are not modelled.
  - Expiration timestamps: signals expire a whole number of days after
    they are generated.
"""

from __future__ import annotations

from datetime import date, datetime, timedelta, timezone

from grain_marketing.taxonomy.marketing_taxonomy import Commodity

# (first month, last month) of harvest, 1-based calendar months.
HARVEST_WINDOWS: dict[Commodity, tuple[int, int]] = {
    Commodity.CORN:     (9, 11),
    Commodity.SOYBEANS: (9, 11),
    Commodity.WHEAT:    (6, 7),
}


def harvest_start_month(commodity: Commodity) -> int:
    return HARVEST_WINDOWS[commodity][0]


def is_trading_day(check_date: date) -> bool:
    """Return ``True`` for Monday through Friday."""
    return check_date.weekday() < 5


def expires_after(created_at: datetime, days: int) -> datetime:
    return created_at + timedelta(days=days)


def to_utc(value: datetime) -> datetime:
    """Attach UTC to naive datetimes; convert aware ones to UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def utcnow() -> datetime:
    """Return the current UTC datetime with timezone info.

    Prefer this over ``datetime.utcnow()`` (which returns naive datetimes).
    """
    return datetime.now(tz=timezone.utc)

# utils/dates.py
from datetime import date, datetime, time, timezone
from typing import Optional

from dateutil import parser
from sqlalchemy import DateTime
from sqlalchemy.types import TypeDecorator


def utcnow() -> datetime:
    """Aware UTC timestamp, the form every stored datetime uses."""
    return datetime.now(timezone.utc)


def parse_date(x) -> Optional[datetime]:
    """Coerce a date, datetime or string to an aware UTC datetime.

    Naive values are taken to be UTC already. Anything unparseable comes back
    as None so that callers comparing dates never have to guard against mixed
    or missing values.
    """
    if x is None or x == "":
        return None
    if isinstance(x, datetime):
        if x.tzinfo is None:
            return x.replace(tzinfo=timezone.utc)
        return x.astimezone(timezone.utc)
    if isinstance(x, date):
        return datetime.combine(x, time.min, tzinfo=timezone.utc)
    try:
        return parse_date(parser.parse(str(x)))
    except (ValueError, OverflowError, TypeError):
        return None


class UTCDateTime(TypeDecorator):
    """Timestamp column that always hands back aware UTC datetimes.

    SQLite drops the offset on write, so values are normalised to UTC on the
    way in and re-stamped with UTC on the way out.
    """

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        return parse_date(value)

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        return parse_date(value)

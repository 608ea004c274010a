from datetime import date, datetime, time, timezone
from zoneinfo import ZoneInfo
from khata.config import Config


def utc_now():
    return datetime.now(timezone.utc)


def ledger_timezone() -> ZoneInfo:
    return ZoneInfo(Config.LEDGER_TIMEZONE)


def to_utc(value: datetime) -> datetime:
    # naive datetimes are wall-clock time in the ledger's zone
    if value.tzinfo is None:
        value = value.replace(tzinfo=ledger_timezone())
    return value.astimezone(timezone.utc)


def local_day_bounds(day: date):
    """Return the UTC instants of the first and last microsecond of a local day."""
    tz = ledger_timezone()
    start = datetime.combine(day, time.min, tzinfo=tz)
    end = datetime.combine(day, time.max, tzinfo=tz)
    return start.astimezone(timezone.utc), end.astimezone(timezone.utc)


def today() -> date:
    return datetime.now(ledger_timezone()).date()


def from_db(value: datetime) -> datetime:
    # SQLite hands back naive values, everything is stored in UTC
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def local_date(value: datetime) -> date:
    return from_db(value).astimezone(ledger_timezone()).date()

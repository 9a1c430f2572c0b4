import re
from datetime import date, datetime, timedelta, timezone
from numbers import Number
from re import Pattern
from typing import Any, Optional

import pyrfc3339
from semver import VersionInfo

_RELATIVE_DATE = re.compile(r'^-?(?P<number>[0-9]+)(?P<interval>[a-z])$')

# relative dates further back than this are rejected rather than risking an overflow
_MAX_RELATIVE_AMOUNT = 10000


def is_number(input: Any) -> bool:
    # bool is a subtype of int, and we don't want to try and treat it as a number.
    return isinstance(input, Number) and not isinstance(input, bool)


def parse_number(input: Any) -> Optional[float]:
    if is_number(input):
        return float(input)
    if isinstance(input, str):
        try:
            return float(input)
        except ValueError:
            return None
    return None


def parse_regex(input: Any) -> Optional[Pattern]:
    try:
        return re.compile(str(input))
    except re.error:
        return None


def parse_relative_date(input: str, now: Optional[datetime] = None) -> Optional[datetime]:
    """
    Parses a relative date such as ``-7d`` (seven days ago). Supported units are hours, days,
    weeks, months and years.
    """
    m = _RELATIVE_DATE.match(input)
    if m is None:
        return None
    number = int(m.group('number'))
    if number >= _MAX_RELATIVE_AMOUNT:
        return None
    now = now or datetime.now(timezone.utc)
    interval = m.group('interval')
    if interval == 'h':
        return now - timedelta(hours=number)
    if interval == 'd':
        return now - timedelta(days=number)
    if interval == 'w':
        return now - timedelta(weeks=number)
    if interval == 'm':
        return _months_before(now, number)
    if interval == 'y':
        return _months_before(now, number * 12)
    return None


def _months_before(dt: datetime, months: int) -> datetime:
    total = dt.year * 12 + (dt.month - 1) - months
    year, month = divmod(total, 12)
    day = dt.day
    while True:
        try:
            return dt.replace(year=year, month=month + 1, day=day)
        except ValueError:
            # e.g. 31st of a 30-day month
            day -= 1


def parse_datetime(input: Any) -> Optional[datetime]:
    """
    :param input: a datetime or date, a number of milliseconds since the Unix epoch, or a string in
        RFC3339 or ISO 8601 format
    :return: a timezone-aware datetime, or None if input was invalid. Naive values are taken as UTC.
    """
    if isinstance(input, datetime):
        return input if input.tzinfo is not None else input.replace(tzinfo=timezone.utc)
    if isinstance(input, date):
        return datetime(input.year, input.month, input.day, tzinfo=timezone.utc)
    if is_number(input):
        try:
            return datetime.fromtimestamp(float(input) / 1000.0, timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None
    if isinstance(input, str):
        # depending on the pyRFC3339 version, date-only strings are either rejected or parsed as
        # naive datetimes; both paths end up as midnight UTC
        try:
            return parse_datetime(pyrfc3339.parse(input))
        except ValueError:
            pass
        try:
            return parse_datetime(datetime.fromisoformat(input.replace('Z', '+00:00')))
        except ValueError:
            return None
    return None


def parse_semver(input: Any) -> Optional[VersionInfo]:
    if not isinstance(input, str):
        return None
    input = input.strip()
    if input.startswith('v') or input.startswith('V'):
        input = input[1:]
    try:
        return VersionInfo.parse(input)
    except ValueError:
        try:
            input = _add_zero_version_component(input)
            return VersionInfo.parse(input)
        except ValueError:
            try:
                input = _add_zero_version_component(input)
                return VersionInfo.parse(input)
            except ValueError:
                return None


def _add_zero_version_component(input):
    m = re.search("^([0-9.]*)(.*)", input)
    if m is None:
        return input + ".0"
    return m.group(1).rstrip('.') + ".0" + m.group(2)

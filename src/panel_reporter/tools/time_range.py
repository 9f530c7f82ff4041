"""
Time range resolution for render requests.

Relative expressions (``now-6h``, ``now/d``, ``now-1d/d``) are resolved to
epoch milliseconds once per run against a single anchor, so every panel of
a report is rendered over the same absolute window. The ``to`` bound rounds
up to the end of its unit (``now/d`` -> 23:59:59.999), ``from`` rounds
down. Rounding happens in the report's timezone.
"""

from __future__ import annotations

import calendar
import logging
import re
from datetime import datetime, timedelta, timezone, tzinfo
from typing import Any, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from panel_reporter.config.constants import DEFAULT_TIME_FROM, DEFAULT_TIME_TO
from panel_reporter.schemas.dashboard import RawTimeRange

logger = logging.getLogger(__name__)

TimeValue = int
"""Epoch milliseconds"""

_OPERATION = re.compile(r"([+-])(\d*)([smhdwMy])|/([smhdwMy])")

_FIXED_UNITS = {
    "s": timedelta(seconds=1),
    "m": timedelta(minutes=1),
    "h": timedelta(hours=1),
    "d": timedelta(days=1),
    "w": timedelta(weeks=1),
}


# ---------------------------------------------------------------------------
# Timezone & anchor
# ---------------------------------------------------------------------------

def resolve_timezone(name: Optional[str]) -> tzinfo:
    """
    Map a render timezone name to a tzinfo.

    ``browser`` (or nothing) means the machine's local zone; ``utc`` is UTC;
    anything else is looked up as an IANA name, falling back to UTC.
    """
    if not name or name == "browser":
        return datetime.now().astimezone().tzinfo or timezone.utc
    if name.lower() == "utc":
        return timezone.utc
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning(f"[Time] Unknown timezone '{name}', using UTC for date math")
        return timezone.utc


_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def _to_millis(moment: datetime) -> int:
    return (moment - _EPOCH) // timedelta(milliseconds=1)


# ---------------------------------------------------------------------------
# Date math
# ---------------------------------------------------------------------------

def _shift_months(moment: datetime, months: int) -> datetime:
    total = moment.year * 12 + (moment.month - 1) + months
    year, month = divmod(total, 12)
    day = min(moment.day, calendar.monthrange(year, month + 1)[1])
    return moment.replace(year=year, month=month + 1, day=day)


def _shift(moment: datetime, sign: str, amount: int, unit: str) -> datetime:
    if sign == "-":
        amount = -amount
    if unit == "M":
        return _shift_months(moment, amount)
    if unit == "y":
        return _shift_months(moment, amount * 12)
    return moment + amount * _FIXED_UNITS[unit]


def _start_of(moment: datetime, unit: str) -> datetime:
    if unit == "s":
        return moment.replace(microsecond=0)
    if unit == "m":
        return moment.replace(second=0, microsecond=0)
    if unit == "h":
        return moment.replace(minute=0, second=0, microsecond=0)
    day = moment.replace(hour=0, minute=0, second=0, microsecond=0)
    if unit == "d":
        return day
    if unit == "w":
        # ISO weeks start on Monday
        return day - timedelta(days=day.weekday())
    if unit == "M":
        return day.replace(day=1)
    return day.replace(month=1, day=1)


def _end_of(moment: datetime, unit: str) -> datetime:
    start = _start_of(moment, unit)
    next_start = _shift(start, "+", 1, unit)
    return next_start - timedelta(milliseconds=1)


def parse_date_math(
    text: str,
    now: datetime,
    round_up: bool = False,
) -> Optional[datetime]:
    """
    Evaluate a Grafana-style relative time expression.

    Args:
        text: ``now`` followed by any number of ``+N<unit>``, ``-N<unit>``
            or ``/<unit>`` operations (units ``s m h d w M y``). An ISO-8601
            timestamp is also accepted.
        now: Anchor for ``now`` (timezone-aware).
        round_up: Round ``/<unit>`` to the end of the unit instead of the start.

    Returns:
        The resulting aware datetime, or None when ``text`` is not a valid
        expression.
    """
    text = text.strip()
    if not text.startswith("now"):
        try:
            moment = datetime.fromisoformat(text)
        except ValueError:
            return None
        return moment if moment.tzinfo else moment.replace(tzinfo=now.tzinfo)

    moment = now
    rest = text[3:]
    position = 0
    while position < len(rest):
        match = _OPERATION.match(rest, position)
        if match is None:
            return None
        sign, amount, unit, round_unit = match.groups()
        if round_unit:
            moment = _end_of(moment, round_unit) if round_up else _start_of(moment, round_unit)
        else:
            moment = _shift(moment, sign, int(amount or 1), unit)
        position = match.end()
    return moment


# ---------------------------------------------------------------------------
# Range resolution
# ---------------------------------------------------------------------------

def convert_time_value(
    value: Any,
    round_up: bool = False,
    now: Optional[datetime] = None,
    tz: Optional[tzinfo] = None,
) -> Optional[TimeValue]:
    """
    Normalize one bound of a time range to epoch millis.

    - int/float -> epoch millis (int)
    - numeric string -> int
    - datetime -> epoch millis (naive datetimes are treated as UTC)
    - other non-empty string -> evaluated as date math against ``now``
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return int(value)
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return _to_millis(value)
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            return None
        try:
            return int(float(stripped))
        except ValueError:
            pass
        anchor = _anchor(now, tz or timezone.utc)
        moment = parse_date_math(stripped, anchor, round_up)
        if moment is None:
            logger.warning(f"[Time] Cannot parse time expression '{stripped}'")
            return None
        return _to_millis(moment)
    return None


def _anchor(now: Optional[datetime], tz: tzinfo) -> datetime:
    if now is None:
        return datetime.now(tz)
    if now.tzinfo is None:
        return now.replace(tzinfo=tz)
    return now.astimezone(tz)


def resolve_time_range(
    *candidates: Optional[RawTimeRange],
    now: Optional[datetime] = None,
    tz_name: Optional[str] = None,
) -> tuple[TimeValue, TimeValue]:
    """
    First usable range among ``candidates`` (caller's, then dashboard's),
    falling back to ``now-6h`` .. ``now``, as absolute epoch millis.

    Args:
        candidates: Ranges in precedence order; a range counts only when
            both bounds resolve.
        now: Anchor for relative expressions; a naive value is read in the
            report timezone. Defaults to the current time.
        tz_name: Report timezone (``browser``, ``utc`` or an IANA name).
    """
    tz = resolve_timezone(tz_name)
    anchor = _anchor(now, tz)
    for candidate in candidates:
        if candidate is None:
            continue
        time_from = convert_time_value(candidate.time_from, False, anchor, tz)
        time_to = convert_time_value(candidate.time_to, True, anchor, tz)
        if time_from is not None and time_to is not None:
            logger.debug(f"[Time] {candidate.time_from}..{candidate.time_to} -> {time_from}..{time_to}")
            return time_from, time_to

    return (
        convert_time_value(DEFAULT_TIME_FROM, False, anchor, tz),
        convert_time_value(DEFAULT_TIME_TO, True, anchor, tz),
    )

"""
Date/time parsing the way the remote CRM reads date field input.

The remote side interprets free-form date strings with a strtotime()-like
parser in its own timezone. Only the formats it is known to accept are
recognised here; anything else is a parse failure. Results are plain
(year, month, day, hour, minute, second) tuples because the remote side
happily produces years that datetime cannot hold (year 0, negative years).

Recognised input:
  - ISO-like dates: 2020-01-02, 2020-1, 2020/01/02, 20200102
  - month first: 01/02/2020, 1/2/20, 1/2
  - day first: 02-01-2020, 02.01.2020, 02.01.20
  - month names: 2 January 2020, 2-jan-2020, January 2nd, 2020, Jan 2020
  - any of the above followed by a time (10:00, 10:00:05.123) and a zone
    (z, utc, gmt, +02:00); a time on its own is for today
  - now, today, midnight, yesterday, tomorrow, @<unix timestamp>
  - relative offsets: +1 day, -2 weeks, 3 months, next week, tomorrow +2 hours
  - weekdays: monday, next friday, last sun
"""
import re
from datetime import datetime, timedelta, timezone
from typing import Optional, Tuple
from zoneinfo import ZoneInfo

DateParts = Tuple[int, int, int, int, int, int]

# Python's datetime starts at year 1; the Gregorian calendar repeats every 400 years.
_CYCLE_YEARS = 400

_TIME = (r"(?P<hour>[01]?\d|2[0-4]):(?P<minute>[0-5]?\d)"
         r"(?::(?P<second>[0-5]?\d|60)(?:[.,]\d+)?)?")
_TZ = r"(?:\s*(?P<tz>z|utc|gmt|[+-]\d{1,2}(?::?\d{2})?))?"

_DAY = r"(?P<day>[0-2]?\d|3[01])"
_DAY_SUFFIX = r"(?:st|nd|rd|th)?"
_MONTH_NAME = (r"(?P<month_name>jan(?:uary)?|feb(?:ruary)?|mar(?:ch)?|apr(?:il)?|may|june?|july?"
               r"|aug(?:ust)?|sep(?:t(?:ember)?)?|oct(?:ober)?|nov(?:ember)?|dec(?:ember)?)")
_MONTHS = {"jan": 1, "feb": 2, "mar": 3, "apr": 4, "may": 5, "jun": 6,
           "jul": 7, "aug": 8, "sep": 9, "oct": 10, "nov": 11, "dec": 12}

_DATE_FORMS = [
    r"(?P<year>\d{4})-(?P<month>0?\d|1[0-2])(?:-" + _DAY + r")?",
    r"(?P<year>\d{4})/(?P<month>0?[1-9]|1[0-2])/" + _DAY,
    r"(?P<year>\d{4})(?P<month>0[1-9]|1[0-2])(?P<day>[0-2]\d|3[01])",
    r"(?P<month>0?[1-9]|1[0-2])/" + _DAY + r"(?:/(?P<year>\d{4}|\d{2}))?",
    _DAY + r"[-.](?P<month>0?[1-9]|1[0-2])[-.](?P<year>\d{4})",
    _DAY + r"\.(?P<month>0?[1-9]|1[0-2])\.(?P<year>\d{2})",
    _DAY + _DAY_SUFFIX + r"[ .-]*" + _MONTH_NAME + r"(?:[ .-]*(?P<year>\d{4}))?",
    _MONTH_NAME + r"[ .-]*" + _DAY + _DAY_SUFFIX + r"(?:[ ,.-]+(?P<year>\d{4}))?",
    _MONTH_NAME + r"[ .-]*(?P<year>\d{4})",
]
_DATE_RES = [
    re.compile(r"^" + form + r"(?:(?:\s+|t)" + _TIME + r")?" + _TZ + r"$")
    for form in _DATE_FORMS
]
_TIME_RE = re.compile(r"^" + _TIME + _TZ + r"$")
_FOUR_DIGITS_RE = re.compile(r"^(?P<a>\d\d)(?P<b>\d\d)$")
_TIMESTAMP_RE = re.compile(r"^@(?P<ts>[+-]?\d+)$")

_DAY_OFFSETS = {"today": 0, "midnight": 0, "yesterday": -1, "tomorrow": 1}

_OFFSET = (r"(?P<amount>[+-]?\d+|next|last|previous)\s*"
           r"(?P<unit>sec(?:ond)?|min(?:ute)?|hour|day|week|fortnight|month|year)s?")
_OFFSET_RE = re.compile(_OFFSET)
_RELATIVE_RE = re.compile(r"^(?:(?P<base>now|today|midnight|yesterday|tomorrow)\s*)?"
                          r"(?P<offsets>(?:" + _OFFSET + r"\s*)+)$")
# Unit name -> (index into DateParts, multiplier).
_UNITS = {
    "sec": (5, 1), "second": (5, 1), "min": (4, 1), "minute": (4, 1), "hour": (3, 1),
    "day": (2, 1), "week": (2, 7), "fortnight": (2, 14), "month": (1, 1), "year": (0, 1),
}

_WEEKDAY_RE = re.compile(r"^(?:(?P<direction>this|next|last|previous)\s+)?(?P<weekday>[a-z]+)$")
_WEEKDAYS = {
    "monday": 0, "mon": 0, "tuesday": 1, "tue": 1, "tues": 1, "wednesday": 2, "wed": 2,
    "thursday": 3, "thu": 3, "thur": 3, "thurs": 3, "friday": 4, "fri": 4,
    "saturday": 5, "sat": 5, "sunday": 6, "sun": 6,
}


class DateParseError(ValueError):
    pass


def _tz_offset(tz: str) -> timezone:
    tz = tz.lower()
    if tz in ("z", "utc", "gmt"):
        return timezone.utc
    sign = -1 if tz[0] == "-" else 1
    digits = tz[1:].replace(":", "")
    if len(digits) <= 2:
        hours, minutes = int(digits), 0
    else:
        hours, minutes = int(digits[:-2]), int(digits[-2:])
    if hours > 14 or minutes > 59:
        raise DateParseError(f"Invalid timezone offset '{tz}'.")
    return timezone(sign * timedelta(hours=hours, minutes=minutes))


def _assemble(year: int, month: int, day: int, hour: int, minute: int, second: int,
              tz: Optional[str], zone: ZoneInfo) -> DateParts:
    """
    Build date parts, letting out-of-range components overflow into the
    neighbouring unit (month 0 is December of the previous year, day 0 is
    the last day of the previous month, hour 24 is midnight of the next day).

    Without ``tz`` the parts are a wall-clock time in ``zone``; a time that
    falls in a daylight saving gap moves forward by the size of the gap.
    """
    year += (month - 1) // 12
    month = (month - 1) % 12 + 1
    shift = 0
    if year < 2:
        shift = _CYCLE_YEARS * ((2 - year) // _CYCLE_YEARS + 1)
    try:
        moment = datetime(year + shift, month, 1) + timedelta(
            days=day - 1, hours=hour, minutes=minute, seconds=second)
        if tz:
            moment = moment.replace(tzinfo=_tz_offset(tz)).astimezone(zone)
        else:
            moment = moment.replace(tzinfo=zone).astimezone(timezone.utc).astimezone(zone)
    except (OverflowError, ValueError) as e:
        raise DateParseError(str(e)) from e
    return (moment.year - shift, moment.month, moment.day,
            moment.hour, moment.minute, moment.second)


def _full_year(text: str) -> int:
    year = int(text)
    if len(text) == 2:
        year += 2000 if year < 70 else 1900
    return year


def _from_date_form(m: "re.Match", now: datetime, zone: ZoneInfo) -> DateParts:
    groups = m.groupdict()
    if groups.get("month_name"):
        month = _MONTHS[groups["month_name"][:3]]
    else:
        month = int(groups["month"])
    year = _full_year(groups["year"]) if groups.get("year") else now.year
    return _assemble(
        year, month, int(groups.get("day") or 1),
        int(groups["hour"] or 0), int(groups["minute"] or 0), int(groups["second"] or 0),
        groups["tz"], zone)


def _relative(m: "re.Match", now: datetime, zone: ZoneInfo) -> DateParts:
    base = m.group("base")
    if base in _DAY_OFFSETS:
        day = now + timedelta(days=_DAY_OFFSETS[base])
        parts = [day.year, day.month, day.day, 0, 0, 0]
    else:
        parts = [now.year, now.month, now.day, now.hour, now.minute, now.second]

    for offset in _OFFSET_RE.finditer(m.group("offsets")):
        amount = offset.group("amount")
        if amount == "next":
            amount = 1
        elif amount in ("last", "previous"):
            amount = -1
        else:
            amount = int(amount)
        index, multiplier = _UNITS[offset.group("unit")]
        parts[index] += amount * multiplier
    return _assemble(*parts, None, zone)


def _weekday(m: "re.Match", now: datetime) -> Optional[DateParts]:
    weekday = _WEEKDAYS.get(m.group("weekday"))
    if weekday is None:
        return None
    direction = m.group("direction")
    if direction == "next":
        days = (weekday - now.weekday()) % 7 or 7
    elif direction in ("last", "previous"):
        days = -((now.weekday() - weekday) % 7 or 7)
    else:
        days = (weekday - now.weekday()) % 7
    day = now + timedelta(days=days)
    return (day.year, day.month, day.day, 0, 0, 0)


def parse_datetime(value: str, tz_name: str, now: Optional[datetime] = None) -> DateParts:
    """
    Parse a date/time expression in timezone ``tz_name``.

    Raises DateParseError for anything the remote side would not accept.
    """
    zone = ZoneInfo(tz_name)
    now = (now or datetime.now(zone)).astimezone(zone)
    text = re.sub(r"\s+", " ", value.strip().lower())

    if text == "now":
        return (now.year, now.month, now.day, now.hour, now.minute, now.second)
    if text in _DAY_OFFSETS:
        day = now + timedelta(days=_DAY_OFFSETS[text])
        return (day.year, day.month, day.day, 0, 0, 0)

    m = _TIMESTAMP_RE.match(text)
    if m:
        try:
            moment = datetime.fromtimestamp(int(m.group("ts")), tz=zone)
        except (OverflowError, OSError, ValueError) as e:
            raise DateParseError(str(e)) from e
        return (moment.year, moment.month, moment.day, moment.hour, moment.minute, moment.second)

    m = _FOUR_DIGITS_RE.match(text)
    if m:
        # "hhmm" wins over a four digit year when it is a valid time of day.
        hour, minute = int(m.group("a")), int(m.group("b"))
        if hour < 24 and minute < 60:
            return _assemble(now.year, now.month, now.day, hour, minute, 0, None, zone)
        return _assemble(int(text), now.month, now.day, now.hour, now.minute, now.second, None, zone)

    for date_re in _DATE_RES:
        m = date_re.match(text)
        if m:
            return _from_date_form(m, now, zone)

    m = _TIME_RE.match(text)
    if m:
        return _assemble(
            now.year, now.month, now.day,
            int(m.group("hour")), int(m.group("minute")), int(m.group("second") or 0),
            m.group("tz"), zone)

    m = _RELATIVE_RE.match(text)
    if m:
        return _relative(m, now, zone)

    m = _WEEKDAY_RE.match(text)
    if m:
        parts = _weekday(m, now)
        if parts is not None:
            return parts

    raise DateParseError(f"Unrecognised date/time expression '{value}'.")


def format_date(parts: DateParts) -> str:
    return f"{parts[0]:04d}-{parts[1]:02d}-{parts[2]:02d}"


def format_datetime(parts: DateParts) -> str:
    return f"{format_date(parts)} {parts[3]:02d}:{parts[4]:02d}:{parts[5]:02d}"

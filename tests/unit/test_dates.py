from datetime import datetime
from zoneinfo import ZoneInfo

import pytest

from copernica_client.core.dates import DateParseError, format_date, format_datetime, parse_datetime

TZ = "Europe/Amsterdam"
NOW = datetime(2021, 6, 15, 10, 20, 30, tzinfo=ZoneInfo(TZ))


@pytest.mark.parametrize("text,expected", [
    ("now", (2021, 6, 15, 10, 20, 30)),
    ("NOW", (2021, 6, 15, 10, 20, 30)),
    ("today", (2021, 6, 15, 0, 0, 0)),
    ("midnight", (2021, 6, 15, 0, 0, 0)),
    ("yesterday", (2021, 6, 14, 0, 0, 0)),
    ("tomorrow", (2021, 6, 16, 0, 0, 0)),
    ("1959", (2021, 6, 15, 19, 59, 0)),
    ("0030", (2021, 6, 15, 0, 30, 0)),
    ("1960", (1960, 6, 15, 10, 20, 30)),
    ("12:30", (2021, 6, 15, 12, 30, 0)),
    ("12:30:15 z", (2021, 6, 15, 14, 30, 15)),
    ("@86400", (1970, 1, 2, 1, 0, 0)),
    ("2021-10-31 02:30", (2021, 10, 31, 2, 30, 0)),
    ("2020-12-31 23:30 -01:00", (2021, 1, 1, 1, 30, 0)),
    ("2020-06-01 00:00 +0530", (2020, 5, 31, 20, 30, 0)),
])
def test_parse(text, expected):
    assert parse_datetime(text, TZ, now=NOW) == expected


@pytest.mark.parametrize("text,expected", [
    ("2020/01/02", (2020, 1, 2, 0, 0, 0)),
    ("2020/1/2 10:00", (2020, 1, 2, 10, 0, 0)),
    ("20200102", (2020, 1, 2, 0, 0, 0)),
    ("20200102T10:30:05", (2020, 1, 2, 10, 30, 5)),
    ("01/02/2020", (2020, 1, 2, 0, 0, 0)),
    ("1/2/20", (2020, 1, 2, 0, 0, 0)),
    ("12/31/99", (1999, 12, 31, 0, 0, 0)),
    ("3/4", (2021, 3, 4, 0, 0, 0)),
    ("02-01-2020", (2020, 1, 2, 0, 0, 0)),
    ("02.01.2020 08:15", (2020, 1, 2, 8, 15, 0)),
    ("31.12.20", (2020, 12, 31, 0, 0, 0)),
    ("2 January 2020", (2020, 1, 2, 0, 0, 0)),
    ("2-jan-2020", (2020, 1, 2, 0, 0, 0)),
    ("2nd  Feb 2020 10:00", (2020, 2, 2, 10, 0, 0)),
    ("January 2, 2020", (2020, 1, 2, 0, 0, 0)),
    ("Sept 30th", (2021, 9, 30, 0, 0, 0)),
    ("March 2020", (2020, 3, 1, 0, 0, 0)),
])
def test_parse_calendar_forms(text, expected):
    assert parse_datetime(text, TZ, now=NOW) == expected


@pytest.mark.parametrize("text,expected", [
    ("+1 day", (2021, 6, 16, 10, 20, 30)),
    ("-2 weeks", (2021, 6, 1, 10, 20, 30)),
    ("3 months", (2021, 9, 15, 10, 20, 30)),
    ("next week", (2021, 6, 22, 10, 20, 30)),
    ("last year", (2020, 6, 15, 10, 20, 30)),
    ("+1 day -30 minutes", (2021, 6, 16, 9, 50, 30)),
    ("tomorrow +2 hours", (2021, 6, 16, 2, 0, 0)),
    # NOW is a Tuesday.
    ("monday", (2021, 6, 21, 0, 0, 0)),
    ("tuesday", (2021, 6, 15, 0, 0, 0)),
    ("next tuesday", (2021, 6, 22, 0, 0, 0)),
    ("last fri", (2021, 6, 11, 0, 0, 0)),
    ("wed", (2021, 6, 16, 0, 0, 0)),
])
def test_parse_relative(text, expected):
    assert parse_datetime(text, TZ, now=NOW) == expected


def test_month_offsets_overflow_short_months():
    end_of_january = datetime(2021, 1, 31, 12, 0, tzinfo=ZoneInfo(TZ))
    assert parse_datetime("+1 month", TZ, now=end_of_january) == (2021, 3, 3, 12, 0, 0)


def test_wall_clock_time_in_dst_gap_moves_forward():
    assert parse_datetime("2021-03-28 02:30", TZ, now=NOW) == (2021, 3, 28, 3, 30, 0)
    assert parse_datetime("2020-03-29 02:30:00", TZ, now=NOW) == (2020, 3, 29, 3, 30, 0)
    # Explicit offsets are converted, not shifted.
    assert parse_datetime("2021-03-28 01:30 z", TZ, now=NOW) == (2021, 3, 28, 3, 30, 0)


def test_now_is_taken_in_reference_timezone():
    utc_now = datetime(2021, 6, 15, 23, 30, tzinfo=ZoneInfo("UTC"))
    assert parse_datetime("today", TZ, now=utc_now) == (2021, 6, 16, 0, 0, 0)


def test_years_outside_datetime_range():
    assert parse_datetime("0000-00-01", TZ, now=NOW) == (-1, 12, 1, 0, 0, 0)
    assert parse_datetime("0001-01-00", TZ, now=NOW) == (0, 12, 31, 0, 0, 0)
    assert parse_datetime("0000-02-29", TZ, now=NOW) == (0, 2, 29, 0, 0, 0)


@pytest.mark.parametrize("text", [
    "",
    "2020-13-01",
    "2020-01-32",
    "2020-01-02 03:60",
    "2020-01-02 +25:00",
    "99",
    "next moonday",
    "+1 parsec",
    "2020/13/01",
    "13/01/2020",
    "32-01-2020",
    "@1.5",
])
def test_parse_failures(text):
    with pytest.raises(DateParseError):
        parse_datetime(text, TZ, now=NOW)


def test_overflow_beyond_year_9999_is_a_parse_failure():
    with pytest.raises(DateParseError):
        parse_datetime("9999-12-31 24:00", TZ, now=NOW)


def test_formatting():
    assert format_date((2020, 1, 2, 3, 4, 5)) == "2020-01-02"
    assert format_datetime((2020, 1, 2, 3, 4, 5)) == "2020-01-02 03:04:05"
    assert format_date((0, 1, 1, 0, 0, 0)) == "0000-01-01"

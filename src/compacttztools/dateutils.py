# Copyright 2018 Brian T. Park
#
# MIT License.

"""
Calendar arithmetic on the proleptic Gregorian calendar needed to expand the
RULE and UNTIL fields of the TZ database files. Days are counted from the Unix
epoch (1970-01-01 is day 0) so that day numbers convert directly to epoch
seconds. Days of the week follow the TZ database column order, Sunday=1 to
Saturday=7.
"""

from typing import Tuple

from compacttztools.data_types.ct_types import SECONDS_PER_DAY

# Day of week names, Sunday=1.
WEEK_TO_WEEK_INDEX = {
    'Sun': 1,
    'Mon': 2,
    'Tue': 3,
    'Wed': 4,
    'Thu': 5,
    'Fri': 6,
    'Sat': 7,
}

# (year, month, day, hour, minute, second)
DateTimeTuple = Tuple[int, int, int, int, int, int]

# Days from 0000-03-01 to 1970-01-01.
_DAYS_0000_03_01_TO_EPOCH = 719468
_DAYS_PER_400_YEARS = 146097


def is_leap_year(year: int) -> bool:
    return (year % 4 == 0) and ((year % 100 != 0) or (year % 400 == 0))


def days_in_month(year: int, month: int) -> int:
    """Return the number of days in the given (year, month). The month is
    usually 1-12, but 0 is December of the previous year, and 13 is January of
    the following year.
    """
    DAYS_IN_MONTH = [31, 28, 31, 30, 31, 30, 31, 31, 30, 31, 30, 31]
    days = DAYS_IN_MONTH[(month - 1) % 12]
    if month == 2 and is_leap_year(year):
        days += 1
    return days


def get_day_number(year: int, month: int, day: int) -> int:
    """Return the number of days since 1970-01-01 of the given date. Months
    outside of 1-12 roll over into the adjacent years, and days outside the
    month roll over into the adjacent months.
    """
    year += (month - 1) // 12
    month = (month - 1) % 12 + 1

    # Count from March 1 so that the leap day is the last day of the year.
    y = year - 1 if month <= 2 else year
    era = y // 400
    year_of_era = y - era * 400
    shifted_month = (month + 9) % 12  # March=0
    day_of_year = (153 * shifted_month + 2) // 5 + day - 1
    day_of_era = (
        year_of_era * 365 + year_of_era // 4 - year_of_era // 100
        + day_of_year
    )
    return era * _DAYS_PER_400_YEARS + day_of_era - _DAYS_0000_03_01_TO_EPOCH


def get_date_from_day_number(day_number: int) -> Tuple[int, int, int]:
    """Inverse of get_day_number(). Returns (year, month, day)."""
    z = day_number + _DAYS_0000_03_01_TO_EPOCH
    era = z // _DAYS_PER_400_YEARS
    day_of_era = z - era * _DAYS_PER_400_YEARS
    year_of_era = (
        day_of_era - day_of_era // 1460 + day_of_era // 36524
        - day_of_era // 146096
    ) // 365
    day_of_year = day_of_era - (
        365 * year_of_era + year_of_era // 4 - year_of_era // 100
    )
    shifted_month = (5 * day_of_year + 2) // 153
    day = day_of_year - (153 * shifted_month + 2) // 5 + 1
    month = shifted_month + 3 if shifted_month < 10 else shifted_month - 9
    year = year_of_era + era * 400 + (1 if month <= 2 else 0)
    return (year, month, day)


def get_day_of_week(day_number: int) -> int:
    """Return 1 for Sunday through 7 for Saturday. 1970-01-01 was a
    Thursday.
    """
    return (day_number + 4) % 7 + 1


def get_day_on_or_after(
    year: int, month: int, day_of_week: int, min_day: int,
) -> int:
    """Return the day of month of the first 'day_of_week' on or after
    'min_day'. The result can be larger than the number of days in the month,
    in which case it refers to a day in the following month.
    """
    dow = get_day_of_week(get_day_number(year, month, min_day))
    return min_day + (day_of_week - dow) % 7


def get_day_on_or_before(
    year: int, month: int, day_of_week: int, max_day: int,
) -> int:
    """Return the day of month of the last 'day_of_week' on or before
    'max_day'. The result can be less than 1, in which case it refers to a
    day in the previous month.
    """
    dow = get_day_of_week(get_day_number(year, month, max_day))
    return max_day - (dow - day_of_week) % 7


def get_last_day_of_week_in_month(
    year: int, month: int, day_of_week: int,
) -> int:
    """Return the day of month of the last 'day_of_week' in the month, e.g.
    'lastSun'. Always within the month.
    """
    return get_day_on_or_before(
        year, month, day_of_week, days_in_month(year, month))


def resolve_day_spec(
    year: int,
    month: int,
    on_day_of_week: int,
    on_day_of_month: int,
) -> Tuple[int, int, int]:
    """Return the actual (year, month, day) of the ON field encoded as
    (on_day_of_week, on_day_of_month):

        (0, dayOfMonth) = exact match on dayOfMonth
        (dayOfWeek, dayOfMonth) = dayOfWeek>=dayOfMonth
        (dayOfWeek, -dayOfMonth) = dayOfWeek<=dayOfMonth
        (dayOfWeek, 0) = lastDayOfWeek

    Shifts into the previous or next month (or year) can occur, for example
    'Sun>=29' in February, or 'Fri<=1'.
    """
    if on_day_of_week == 0:
        day = on_day_of_month
    elif on_day_of_month > 0:
        day = get_day_on_or_after(
            year, month, on_day_of_week, on_day_of_month)
    elif on_day_of_month < 0:
        day = get_day_on_or_before(
            year, month, on_day_of_week, -on_day_of_month)
    else:
        day = get_last_day_of_week_in_month(year, month, on_day_of_week)

    if 1 <= day <= days_in_month(year, month):
        return (year, month, day)
    return get_date_from_day_number(get_day_number(year, month, day))


def datetime_to_epoch_seconds(
    year: int,
    month: int,
    day: int,
    seconds_of_day: int = 0,
) -> int:
    """Convert a date and a time of day (which may exceed 24:00) to seconds
    since the epoch, without any offset applied.
    """
    return get_day_number(year, month, day) * SECONDS_PER_DAY + seconds_of_day


def epoch_seconds_to_datetime(
    epoch_seconds: int,
    utc_offset: int = 0,
) -> DateTimeTuple:
    """Convert UTC epoch seconds to the local (y, m, d, hh, mm, ss) at the
    given UTC offset.
    """
    days, seconds = divmod(epoch_seconds + utc_offset, SECONDS_PER_DAY)
    year, month, day = get_date_from_day_number(days)
    minutes, second = divmod(seconds, 60)
    hour, minute = divmod(minutes, 60)
    return (year, month, day, hour, minute, second)


def local_year(epoch_seconds: int, utc_offset: int = 0) -> int:
    return epoch_seconds_to_datetime(epoch_seconds, utc_offset)[0]


def local_date(epoch_seconds: int, utc_offset: int = 0) -> Tuple[int, int, int]:
    days = (epoch_seconds + utc_offset) // SECONDS_PER_DAY
    return get_date_from_day_number(days)


def format_datetime(epoch_seconds: int, utc_offset: int = 0) -> str:
    """Format as 'YYYY-MM-DD HH:MM:SS' in local time."""
    y, m, d, hh, mm, ss = epoch_seconds_to_datetime(epoch_seconds, utc_offset)
    return f'{y:04}-{m:02}-{d:02} {hh:02}:{mm:02}:{ss:02}'


def format_offset_notation(offset: int) -> str:
    """Format an offset in seconds as '+HHMM', or '+HHMMSS' if there are
    leftover seconds.
    """
    sign = '-' if offset < 0 else '+'
    offset = abs(offset)
    hours, remainder = divmod(offset, 3600)
    minutes, seconds = divmod(remainder, 60)
    s = f'{sign}{hours:02}{minutes:02}'
    if seconds != 0:
        s += f'{seconds:02}'
    return s


def parse_offset_notation(offset: str) -> int:
    """Inverse of format_offset_notation(). The shorthand forms '0' and '1'
    (one hour) are also accepted.
    """
    sign = 1
    if offset.startswith('-'):
        sign = -1
        offset = offset[1:]
    elif offset.startswith('+'):
        offset = offset[1:]

    if offset == '0':
        return 0
    if offset == '1':
        return sign * 3600
    if len(offset) not in (4, 6) or not offset.isdigit():
        raise ValueError(f"Invalid offset notation '{offset}'")

    seconds = 3600 * int(offset[0:2]) + 60 * int(offset[2:4])
    if len(offset) == 6:
        seconds += int(offset[4:6])
    return sign * seconds

from datetime import datetime, timezone
import calendar


def julian_day_time_to_utctimestamp(j_year, j_day, h, m, s):
    """
    Convert Julian day and hours-min-sec to UTC timestamp.

    Parameters
    ----------
    j_year: int, julian year, ex: 2019
    j_day: int, julian day, ex: 123
    h: int, hours
    m: int, minutes
    s: float, seconds

    Returns
    -------
    float, utc timestamp in seconds
    """
    return calendar.timegm((int(j_year), 1, 1, 0, 0, 0)) + (int(j_day) - 1) * 86400.0 + h * 3600.0 + m * 60.0 + s


def julian_day_minute_to_utctimestamp(j_year, j_day, day_minute, s):
    """
    Convert Julian day, minute of the day and seconds to UTC timestamp.

    Parameters
    ----------
    j_year: int, julian year, ex: 2019
    j_day: int, julian day, ex: 123
    day_minute: int, minutes since the start of the day
    s: float, seconds

    Returns
    -------
    float, utc timestamp in seconds
    """
    return julian_day_time_to_utctimestamp(j_year, j_day, 0, day_minute, s)


def calendar_day_time_to_utctimestamp(c_year, c_mon, c_day, h, m, s):
    """
    Convert calendar year-month-day and hours-min-sec to UTC timestamp.

    Parameters
    ----------
    c_year: int, year, ex: 2019
    c_mon: int, month, ex: 5
    c_day: int, day, ex: 12
    h: int, hours
    m: int, minutes
    s: float, seconds

    Returns
    -------
    float, utc timestamp in seconds
    """
    return calendar.timegm((int(c_year), int(c_mon), int(c_day), int(h), int(m), 0)) + float(s)


def utctimestamp_to_calendar(tstmp: float):
    """
    Break a UTC timestamp into calendar fields, seconds kept as a float with microsecond precision

    Parameters
    ----------
    tstmp
        utc timestamp in seconds

    Returns
    -------
    list
        [year, month, day, hour, minute, seconds as float]
    """

    whole = int(tstmp // 1)
    frac = tstmp - whole
    dt = datetime.fromtimestamp(whole, tz=timezone.utc)
    secs = round(dt.second + frac, 6)
    if secs >= 60.0:  # rounding up to the next minute would print as 60.000000
        secs = 59.999999
    return [dt.year, dt.month, dt.day, dt.hour, dt.minute, secs]

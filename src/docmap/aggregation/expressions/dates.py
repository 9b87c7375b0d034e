"""
Date expressions.

Component extractors (``year``, ``month``, ...) take a date expression and an
optional timezone; with a timezone they use the document form:

    year("$date")                      ->  {"$year": "$date"}
    year("$date", "America/Chicago")   ->  {"$year": {"date": "$date", "timezone": "America/Chicago"}}
"""

from typing import Any, Optional

from docmap.aggregation.expressions.base import Expression, named_args


def _component(operation: str, date: Any, timezone: Any) -> Expression:
    if timezone is None:
        return Expression(operation, date)
    return Expression(operation, {"date": date, "timezone": timezone})


def date_add(start_date: Any, amount: Any, unit: str, timezone: Any = None) -> Expression:
    """Increments a date by ``amount`` units (year, month, day, hour, ...)."""
    return Expression(
        "$dateAdd",
        named_args(startDate=start_date, unit=unit, amount=amount, timezone=timezone),
    )


def date_subtract(start_date: Any, amount: Any, unit: str, timezone: Any = None) -> Expression:
    return Expression(
        "$dateSubtract",
        named_args(startDate=start_date, unit=unit, amount=amount, timezone=timezone),
    )


def date_diff(
    start_date: Any,
    end_date: Any,
    unit: str,
    timezone: Any = None,
    start_of_week: Optional[str] = None,
) -> Expression:
    return Expression(
        "$dateDiff",
        named_args(
            startDate=start_date,
            endDate=end_date,
            unit=unit,
            timezone=timezone,
            startOfWeek=start_of_week,
        ),
    )


def date_from_parts(
    year: Any = None,
    month: Any = None,
    day: Any = None,
    hour: Any = None,
    minute: Any = None,
    second: Any = None,
    millisecond: Any = None,
    timezone: Any = None,
    *,
    iso_week_year: Any = None,
    iso_week: Any = None,
    iso_day_of_week: Any = None,
) -> Expression:
    """
    Builds a date from its parts, either calendar (``year``...) or ISO week
    (``iso_week_year``...); the two forms cannot be mixed.
    """
    iso = named_args(isoWeekYear=iso_week_year, isoWeek=iso_week, isoDayOfWeek=iso_day_of_week)
    if iso and year is not None:
        raise ValueError("calendar and ISO week date parts cannot be combined")
    if iso:
        parts = iso
    else:
        if year is None:
            raise ValueError("year (or iso_week_year) is required")
        parts = named_args(year=year, month=month, day=day)
    parts.update(
        named_args(
            hour=hour,
            minute=minute,
            second=second,
            millisecond=millisecond,
            timezone=timezone,
        )
    )
    return Expression("$dateFromParts", parts)


def date_from_string(
    date_string: Any,
    format_: Optional[str] = None,
    timezone: Any = None,
    on_error: Any = None,
    on_null: Any = None,
) -> Expression:
    return Expression(
        "$dateFromString",
        named_args(
            dateString=date_string,
            format=format_,
            timezone=timezone,
            onError=on_error,
            onNull=on_null,
        ),
    )


def date_to_parts(date: Any, timezone: Any = None, iso8601: Optional[bool] = None) -> Expression:
    return Expression("$dateToParts", named_args(date=date, timezone=timezone, iso8601=iso8601))


def date_to_string(format_: str, date: Any, timezone: Any = None, on_null: Any = None) -> Expression:
    """Formats a date with a strftime-like ``%Y-%m-%d`` format."""
    return Expression(
        "$dateToString",
        named_args(date=date, format=format_, timezone=timezone, onNull=on_null),
    )


def date_trunc(
    date: Any,
    unit: str,
    bin_size: Any = None,
    timezone: Any = None,
    start_of_week: Optional[str] = None,
) -> Expression:
    return Expression(
        "$dateTrunc",
        named_args(
            date=date,
            unit=unit,
            binSize=bin_size,
            timezone=timezone,
            startOfWeek=start_of_week,
        ),
    )


def day_of_month(date: Any, timezone: Any = None) -> Expression:
    return _component("$dayOfMonth", date, timezone)


def day_of_week(date: Any, timezone: Any = None) -> Expression:
    """1 (Sunday) to 7 (Saturday)."""
    return _component("$dayOfWeek", date, timezone)


def day_of_year(date: Any, timezone: Any = None) -> Expression:
    return _component("$dayOfYear", date, timezone)


def hour(date: Any, timezone: Any = None) -> Expression:
    return _component("$hour", date, timezone)


def iso_day_of_week(date: Any, timezone: Any = None) -> Expression:
    return _component("$isoDayOfWeek", date, timezone)


def iso_week(date: Any, timezone: Any = None) -> Expression:
    return _component("$isoWeek", date, timezone)


def iso_week_year(date: Any, timezone: Any = None) -> Expression:
    return _component("$isoWeekYear", date, timezone)


def millisecond(date: Any, timezone: Any = None) -> Expression:
    return _component("$millisecond", date, timezone)


def minute(date: Any, timezone: Any = None) -> Expression:
    return _component("$minute", date, timezone)


def month(date: Any, timezone: Any = None) -> Expression:
    return _component("$month", date, timezone)


def second(date: Any, timezone: Any = None) -> Expression:
    return _component("$second", date, timezone)


def to_date(value: Any) -> Expression:
    return Expression("$toDate", value)


def week(date: Any, timezone: Any = None) -> Expression:
    """Week of the year, 0 to 53; weeks begin on Sundays."""
    return _component("$week", date, timezone)


def year(date: Any, timezone: Any = None) -> Expression:
    return _component("$year", date, timezone)

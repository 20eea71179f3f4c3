"""
Cron Expressions

Five-field cron parsing (minute, hour, day-of-month, month, day-of-week) and
next-match computation. CronExpression is an immutable value object and
next_after() is a pure function of its input instant.

Supported field syntax:
    *        every value
    n        single value
    a-b      inclusive range
    */s      every s-th value of the whole field
    a-b/s    every s-th value of the range
    a/s      every s-th value from a to the field maximum
    x,y,z    any combination of the above

Month and day-of-week fields also accept three-letter names (JAN, MON).
Day-of-week runs 0-6 starting on Sunday; 7 is accepted as Sunday.
"""
from __future__ import annotations

import calendar
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import FrozenSet, Tuple

from cadence.domain.errors import CronExpressionError

MACROS = {
    "@yearly": "0 0 1 1 *",
    "@annually": "0 0 1 1 *",
    "@monthly": "0 0 1 * *",
    "@weekly": "0 0 * * 0",
    "@daily": "0 0 * * *",
    "@midnight": "0 0 * * *",
    "@hourly": "0 * * * *",
}

MONTH_NAMES = ("JAN", "FEB", "MAR", "APR", "MAY", "JUN", "JUL", "AUG", "SEP", "OCT", "NOV", "DEC")
DAY_NAMES = ("SUN", "MON", "TUE", "WED", "THU", "FRI", "SAT")

# Feb 29 only recurs every 4 years, and 2100 is not a leap year
_SEARCH_HORIZON_YEARS = 9


@dataclass(frozen=True)
class _FieldSpec:
    name: str
    minimum: int
    maximum: int
    names: Tuple[str, ...] = ()
    name_offset: int = 0


_MINUTE = _FieldSpec("minute", 0, 59)
_HOUR = _FieldSpec("hour", 0, 23)
_DAY_OF_MONTH = _FieldSpec("day-of-month", 1, 31)
_MONTH = _FieldSpec("month", 1, 12, MONTH_NAMES, 1)
_DAY_OF_WEEK = _FieldSpec("day-of-week", 0, 7, DAY_NAMES, 0)


def _parse_value(token: str, spec: _FieldSpec, expression: str) -> int:
    if token.isascii() and token.isdigit():
        value = int(token)
    elif token.upper() in spec.names:
        value = spec.names.index(token.upper()) + spec.name_offset
    else:
        raise CronExpressionError(
            f"Invalid {spec.name} value {token!r} in {expression!r}",
            expression=expression,
            field=spec.name,
        )

    if not spec.minimum <= value <= spec.maximum:
        raise CronExpressionError(
            f"{spec.name} value {value} out of range "
            f"{spec.minimum}-{spec.maximum} in {expression!r}",
            expression=expression,
            field=spec.name,
        )
    return value


def _parse_field(text: str, spec: _FieldSpec, expression: str) -> FrozenSet[int]:
    values = set()

    for part in text.split(","):
        if not part:
            raise CronExpressionError(
                f"Empty list item in {spec.name} field of {expression!r}",
                expression=expression,
                field=spec.name,
            )

        step = None
        range_part = part
        if "/" in part:
            range_part, step_text = part.split("/", 1)
            if not (step_text.isascii() and step_text.isdigit()) or int(step_text) == 0:
                raise CronExpressionError(
                    f"Invalid step {step_text!r} in {spec.name} field of {expression!r}",
                    expression=expression,
                    field=spec.name,
                )
            step = int(step_text)

        if range_part == "*":
            low, high = spec.minimum, spec.maximum
        elif "-" in range_part:
            low_text, high_text = range_part.split("-", 1)
            low = _parse_value(low_text, spec, expression)
            high = _parse_value(high_text, spec, expression)
            if low > high:
                raise CronExpressionError(
                    f"Descending range {range_part!r} in {spec.name} field of {expression!r}",
                    expression=expression,
                    field=spec.name,
                )
        else:
            low = _parse_value(range_part, spec, expression)
            high = spec.maximum if step else low

        values.update(range(low, high + 1, step or 1))

    return frozenset(values)


@dataclass(frozen=True)
class CronExpression:
    """
    Parsed five-field cron expression.

    When both day-of-month and day-of-week are restricted, a day matches if
    either one matches (classic cron behavior).
    """
    expression: str
    minutes: FrozenSet[int]
    hours: FrozenSet[int]
    days_of_month: FrozenSet[int]
    months: FrozenSet[int]
    days_of_week: FrozenSet[int]
    day_of_month_restricted: bool
    day_of_week_restricted: bool

    @classmethod
    def parse(cls, text: str) -> CronExpression:
        """
        Parse a cron expression.

        Raises:
            CronExpressionError: If the expression is malformed or can never match
        """
        if not isinstance(text, str) or not text.strip():
            raise CronExpressionError("Cron expression must be a non-empty string", expression=str(text))

        expression = text.strip()
        source = MACROS.get(expression.lower(), expression)
        fields = source.split()
        if len(fields) != 5:
            raise CronExpressionError(
                f"Cron expression must have 5 fields, got {len(fields)}: {expression!r}",
                expression=expression,
            )

        minute, hour, day_of_month, month, day_of_week = fields
        weekdays = _parse_field(day_of_week, _DAY_OF_WEEK, expression)
        if 7 in weekdays:
            weekdays = (weekdays - {7}) | {0}

        parsed = cls(
            expression=expression,
            minutes=_parse_field(minute, _MINUTE, expression),
            hours=_parse_field(hour, _HOUR, expression),
            days_of_month=_parse_field(day_of_month, _DAY_OF_MONTH, expression),
            months=_parse_field(month, _MONTH, expression),
            days_of_week=weekdays,
            day_of_month_restricted=not day_of_month.startswith("*"),
            day_of_week_restricted=not day_of_week.startswith("*"),
        )
        parsed._check_satisfiable()
        return parsed

    def _check_satisfiable(self) -> None:
        if self.day_of_week_restricted:
            return
        # Leap-year February has 29 days
        for month in self.months:
            longest = 29 if month == 2 else calendar.monthrange(2001, month)[1]
            if min(self.days_of_month) <= longest:
                return
        raise CronExpressionError(
            f"Cron expression {self.expression!r} never matches a calendar date",
            expression=self.expression,
            field="day-of-month",
        )

    def _day_matches(self, moment: datetime) -> bool:
        day_of_month_match = moment.day in self.days_of_month
        # isoweekday: Monday=1 .. Sunday=7
        day_of_week_match = moment.isoweekday() % 7 in self.days_of_week

        if self.day_of_month_restricted and self.day_of_week_restricted:
            return day_of_month_match or day_of_week_match
        if self.day_of_month_restricted:
            return day_of_month_match
        if self.day_of_week_restricted:
            return day_of_week_match
        return True

    def matches(self, moment: datetime) -> bool:
        """Return True if the minute containing `moment` matches every field."""
        return (
            moment.minute in self.minutes
            and moment.hour in self.hours
            and moment.month in self.months
            and self._day_matches(moment)
        )

    def next_after(self, instant: datetime) -> datetime:
        """
        Earliest minute-aligned instant strictly after `instant` that matches.

        Calendar fields are read from `instant` as given; its tzinfo, if any,
        is preserved on the result.
        """
        candidate = instant.replace(second=0, microsecond=0) + timedelta(minutes=1)
        horizon = candidate.year + _SEARCH_HORIZON_YEARS

        while candidate.year <= horizon:
            if candidate.month not in self.months:
                if candidate.month == 12:
                    candidate = candidate.replace(year=candidate.year + 1, month=1, day=1, hour=0, minute=0)
                else:
                    candidate = candidate.replace(month=candidate.month + 1, day=1, hour=0, minute=0)
                continue

            if not self._day_matches(candidate):
                candidate = candidate.replace(hour=0, minute=0) + timedelta(days=1)
                continue

            if candidate.hour not in self.hours:
                candidate = candidate.replace(minute=0) + timedelta(hours=1)
                continue

            if candidate.minute not in self.minutes:
                candidate += timedelta(minutes=1)
                continue

            return candidate

        raise CronExpressionError(
            f"No match for {self.expression!r} within {_SEARCH_HORIZON_YEARS} years of {instant.isoformat()}",
            expression=self.expression,
        )

    def __str__(self) -> str:
        return self.expression

"""Elapsed-age computation and pt-BR date rendering."""
import calendar
from datetime import date, datetime
from typing import Union

from .models import ElapsedAge, MemoryValidationError

DateLike = Union[date, datetime, str]

MONTH_NAMES = [
    "janeiro", "fevereiro", "março", "abril", "maio", "junho",
    "julho", "agosto", "setembro", "outubro", "novembro", "dezembro",
]

EVENT_BEFORE_BIRTH_MESSAGE = "A data do evento não pode ser anterior à data de nascimento."


def parse_date(value: DateLike) -> date:
    """Return the calendar date of a date, datetime or ISO 'YYYY-MM-DD' string."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        try:
            # Only the date part matters; '2023-01-11T00:00:00' is accepted too
            return date.fromisoformat(value.strip()[:10])
        except ValueError as e:
            raise ValueError(f"Invalid date: {value!r} (expected YYYY-MM-DD)") from e
    raise TypeError(f"Unsupported date value: {value!r}")


def add_months(start: date, months: int) -> date:
    """Advance `start` by whole months, clamping to the end of the target month."""
    month_index = start.month - 1 + months
    year = start.year + month_index // 12
    month = month_index % 12 + 1
    day = min(start.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def compute_elapsed_age(reference_date: DateLike, event_date: DateLike) -> ElapsedAge:
    """Whole years, remainder months and remaining days from reference to event.

    `days` counts from the last whole-month anniversary, so
    add_months(reference, 12 * years + months) + days == event.

    Raises:
        MemoryValidationError: if the event precedes the reference date
    """
    reference = parse_date(reference_date)
    event = parse_date(event_date)
    if event < reference:
        raise MemoryValidationError(EVENT_BEFORE_BIRTH_MESSAGE)

    total_months = (event.year - reference.year) * 12 + (event.month - reference.month)
    anniversary = add_months(reference, total_months)
    if anniversary > event:
        total_months -= 1
        anniversary = add_months(reference, total_months)

    years, months = divmod(total_months, 12)
    return ElapsedAge(years=years, months=months, days=(event - anniversary).days)


def _plural(count: int, singular: str, plural: str) -> str:
    return f"{count} {singular if count == 1 else plural}"


def format_elapsed_age(age: ElapsedAge) -> str:
    """Render an age as pt-BR text, e.g. '1 ano e 3 meses'.

    Days are only shown while less than a year has elapsed.
    """
    segments = []
    if age.years > 0:
        segments.append(_plural(age.years, "ano", "anos"))
    if age.months > 0:
        segments.append(_plural(age.months, "mês", "meses"))
    if age.days > 0 and age.years == 0:
        segments.append(_plural(age.days, "dia", "dias"))

    if not segments:
        return "0 dias"
    if len(segments) == 1:
        return segments[0]
    return ", ".join(segments[:-1]) + " e " + segments[-1]


def format_long_date(value: DateLike) -> str:
    """Render a date as '11 de novembro de 2022'."""
    day = parse_date(value)
    return f"{day.day:02d} de {MONTH_NAMES[day.month - 1]} de {day.year}"

"""
Business-day calendar for the Argentine market.

Weekends and official holidays are non-business days. Holidays are kept in
a table keyed by year; a year missing from the table is treated as having
no holidays at all.
"""

from datetime import date, datetime, timedelta
from typing import Union

DateLike = Union[date, datetime]

ARGENTINA_HOLIDAYS: dict[int, frozenset[date]] = {
    2025: frozenset(
        date.fromisoformat(day)
        for day in (
            "2025-01-01",  # Año Nuevo
            "2025-02-24",  # Carnaval
            "2025-02-25",  # Carnaval
            "2025-03-24",  # Día de la Memoria
            "2025-04-02",  # Malvinas
            "2025-04-17",  # Jueves Santo
            "2025-04-18",  # Viernes Santo
            "2025-05-01",  # Día del Trabajador
            "2025-05-25",  # Revolución de Mayo
            "2025-06-16",  # Güemes
            "2025-06-20",  # Belgrano
            "2025-07-09",  # Independencia
            "2025-08-17",  # San Martín
            "2025-10-12",  # Diversidad Cultural
            "2025-11-20",  # Soberanía Nacional
            "2025-12-08",  # Inmaculada Concepción
            "2025-12-25",  # Navidad
        )
    ),
}


def _as_date(value: DateLike) -> date:
    if isinstance(value, datetime):
        return value.date()
    return value


def is_weekend(value: DateLike) -> bool:
    return _as_date(value).weekday() >= 5


def is_holiday(value: DateLike) -> bool:
    day = _as_date(value)
    return day in ARGENTINA_HOLIDAYS.get(day.year, frozenset())


def is_business_day(value: DateLike) -> bool:
    """True when the date is neither a weekend nor a holiday."""
    return not is_weekend(value) and not is_holiday(value)


def add_business_days(start: DateLike, business_days: int) -> DateLike:
    """
    Advance one calendar day at a time until n business days are counted.

    Args:
        start: Starting date or datetime
        business_days: Number of business days to add (n <= 0 returns start)

    Returns:
        Resulting date, with the time of day of ``start`` preserved
    """
    current = start
    added = 0
    while added < business_days:
        current = current + timedelta(days=1)
        if is_business_day(current):
            added += 1
    return current


def calculate_calendar_days(from_date: DateLike, to_date: DateLike) -> int:
    """Whole calendar days between two dates, both taken at midnight. May be negative."""
    return (_as_date(to_date) - _as_date(from_date)).days


def get_ci_settlement_date(operation_date: DateLike) -> DateLike:
    """CI settles on the trade date."""
    return operation_date


def get_24hs_settlement_date(operation_date: DateLike) -> DateLike:
    """24hs settles on the next business day."""
    return add_business_days(operation_date, 1)


def calculate_ci_to_24hs_plazo(ci_date: DateLike) -> int:
    """
    Calendar days between a CI trade and its 24hs settlement.

    A Friday trade settles on Monday (3 days), a Thursday trade on
    Friday (1 day).
    """
    return calculate_calendar_days(ci_date, get_24hs_settlement_date(ci_date))


def calculate_arbitrage_plazo(ci_date: DateLike, h24_date: DateLike) -> int:
    """Calendar days between the CI settlement and the 24hs leg's settlement."""
    return calculate_calendar_days(
        get_ci_settlement_date(ci_date),
        get_24hs_settlement_date(h24_date),
    )

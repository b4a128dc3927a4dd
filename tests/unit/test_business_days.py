"""Unit tests for the business-day calendar."""

from datetime import date, datetime

from byma_app.utils.business_days import (
    add_business_days,
    calculate_arbitrage_plazo,
    calculate_calendar_days,
    calculate_ci_to_24hs_plazo,
    get_24hs_settlement_date,
    get_ci_settlement_date,
    is_business_day,
    is_holiday,
    is_weekend,
)

FRIDAY = date(2025, 10, 17)
THURSDAY = date(2025, 10, 16)


class TestCalendar:
    """Test suite for weekend and holiday checks."""

    def test_weekend(self) -> None:
        assert is_weekend(date(2025, 10, 18))
        assert is_weekend(date(2025, 10, 19))
        assert not is_weekend(FRIDAY)

    def test_holiday_table(self) -> None:
        """Test holidays of the configured year."""
        assert is_holiday(date(2025, 12, 25))
        assert is_holiday(datetime(2025, 5, 1, 10, 30))
        assert not is_business_day(date(2025, 11, 20))

    def test_year_without_holidays(self) -> None:
        """Test that a year missing from the table has no holidays."""
        assert not is_holiday(date(2026, 12, 25))
        assert is_business_day(date(2026, 12, 25))


class TestAddBusinessDays:
    """Test suite for add_business_days."""

    def test_friday_plus_one_is_monday(self) -> None:
        assert add_business_days(FRIDAY, 1) == date(2025, 10, 20)

    def test_zero_returns_start(self) -> None:
        assert add_business_days(FRIDAY, 0) == FRIDAY

    def test_skips_holiday(self) -> None:
        """Test that Wednesday before a Thursday holiday settles on Friday."""
        assert add_business_days(date(2025, 11, 19), 1) == date(2025, 11, 21)

    def test_time_of_day_preserved(self) -> None:
        start = datetime(2025, 10, 17, 13, 36, 13)

        assert add_business_days(start, 1) == datetime(2025, 10, 20, 13, 36, 13)


class TestPlazo:
    """Test suite for settlement dates and plazo."""

    def test_friday_plazo(self) -> None:
        assert calculate_ci_to_24hs_plazo(FRIDAY) == 3

    def test_thursday_plazo(self) -> None:
        assert calculate_ci_to_24hs_plazo(THURSDAY) == 1

    def test_holiday_plazo(self) -> None:
        assert calculate_ci_to_24hs_plazo(date(2025, 11, 19)) == 2

    def test_settlement_dates(self) -> None:
        assert get_ci_settlement_date(FRIDAY) == FRIDAY
        assert get_24hs_settlement_date(FRIDAY) == date(2025, 10, 20)

    def test_arbitrage_plazo(self) -> None:
        assert calculate_arbitrage_plazo(FRIDAY, FRIDAY) == 3

    def test_calendar_days_ignore_time(self) -> None:
        """Test that both ends are taken at midnight."""
        start = datetime(2025, 10, 17, 23, 59)
        end = datetime(2025, 10, 18, 0, 1)

        assert calculate_calendar_days(start, end) == 1
        assert calculate_calendar_days(end, start) == -1

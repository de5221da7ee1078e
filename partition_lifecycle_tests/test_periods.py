"""Tests for lead interval parsing and boundary advancement."""

from datetime import date, datetime

import pytest

from partition_lifecycle.lifecycle.periods import Period, advance


def test_parse_year():
    """Test parsing a one year period."""
    period = Period.parse("1 year")
    assert period.years == 1
    assert not period.is_numeric


def test_parse_short_units():
    """Test parsing abbreviated units without a space."""
    assert Period.parse("7d").days == 7
    assert Period.parse("3mo").months == 3
    assert Period.parse("12 h").hours == 12


def test_parse_steps():
    """Test parsing a numeric step period for integer boundaries."""
    period = Period.parse("1000 steps")
    assert period.step == 1000
    assert period.is_numeric


def test_parse_passes_period_through():
    """Test that an existing Period is returned unchanged."""
    period = Period(months=2)
    assert Period.parse(period) is period


@pytest.mark.parametrize("text", ["", "year", "1 fortnight", "-1 day", "0 days"])
def test_parse_invalid(text):
    """Test that malformed, unknown or non-positive periods are rejected."""
    with pytest.raises(ValueError):
        Period.parse(text)


def test_period_cannot_mix_calendar_and_step():
    """Test that calendar fields and numeric steps cannot be combined."""
    with pytest.raises(ValueError):
        Period(days=1, step=10)


def test_str():
    """Test the human readable rendering used in log messages."""
    assert str(Period.parse("2 months")) == "2 months"


def test_advance_year_end():
    """Test that a year-end boundary advances to the next year end."""
    assert advance(date(2021, 12, 31), Period.parse("1 year")) == date(2022, 12, 31)


def test_advance_month_end_stays_anchored():
    """Test that month-end boundaries stay on month ends across short months."""
    period = Period.parse("1 month")
    assert advance(date(2022, 1, 31), period) == date(2022, 2, 28)
    assert advance(date(2022, 2, 28), period) == date(2022, 3, 31)
    assert advance(date(2022, 4, 30), period) == date(2022, 5, 31)


def test_advance_mid_month_date():
    """Test that a mid-month boundary keeps its day of month."""
    assert advance(date(2022, 1, 15), Period.parse("1 month")) == date(2022, 2, 15)


def test_advance_leap_day():
    """Test that a leap-day boundary advances to the next February end."""
    assert advance(date(2020, 2, 29), Period.parse("1 year")) == date(2021, 2, 28)


def test_advance_days_ignores_month_end():
    """Test that day periods are plain additions even on month ends."""
    assert advance(date(2022, 1, 31), Period.parse("7 days")) == date(2022, 2, 7)


def test_advance_timestamp():
    """Test advancing timestamp boundaries by months and hours."""
    assert advance(datetime(2022, 1, 1), Period.parse("1 month")) == datetime(2022, 2, 1)
    assert advance(datetime(2022, 1, 31), Period.parse("1 month")) == datetime(2022, 2, 28)
    assert advance(datetime(2022, 1, 1, 6), Period.parse("6 hours")) == datetime(2022, 1, 1, 12)


def test_advance_integer():
    """Test that integer boundaries advance by the numeric step."""
    assert advance(1000, Period.parse("500 steps")) == 1500


def test_advance_kind_mismatch():
    """Test that a period kind which does not fit the boundary type is rejected."""
    with pytest.raises(TypeError):
        advance(1000, Period.parse("1 month"))
    with pytest.raises(TypeError):
        advance(date(2022, 1, 1), Period.parse("10 steps"))
    with pytest.raises(TypeError):
        advance(date(2022, 1, 1), Period.parse("3 hours"))

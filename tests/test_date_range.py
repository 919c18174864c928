"""Window resolution against an injected clock."""

from __future__ import annotations

import calendar
from datetime import date, datetime

import pytest

from dairy_dashboard.services.date_range import DateRangeResolver
from dairy_dashboard.services.models import TimeWindow, WindowMode


def _resolver(now: datetime, **kwargs) -> DateRangeResolver:
    return DateRangeResolver(lambda: now, **kwargs)


def test_today_and_yesterday(fixed_now):
    resolver = _resolver(fixed_now)

    today = resolver.resolve("today")
    assert (today.start_date, today.end_date, today.label) == (date(2024, 5, 10), date(2024, 5, 10), "Today")

    yesterday = resolver.resolve(WindowMode.YESTERDAY)
    assert (yesterday.start_date, yesterday.end_date) == (date(2024, 5, 9), date(2024, 5, 9))
    assert yesterday.label == "Yesterday"


def test_yesterday_crosses_year_boundary():
    window = _resolver(datetime(2024, 1, 1, 0, 5)).resolve("yesterday")
    assert window.start_date == window.end_date == date(2023, 12, 31)


@pytest.mark.parametrize(
    "first_weekday, expected_start",
    [(calendar.SUNDAY, date(2024, 5, 5)), (calendar.MONDAY, date(2024, 5, 6))],
)
def test_this_week_starts_on_configured_weekday(fixed_now, first_weekday, expected_start):
    window = _resolver(fixed_now, first_weekday=first_weekday).resolve("thisWeek")
    assert window.start_date == expected_start
    assert window.end_date == date(2024, 5, 10)


def test_this_week_on_week_start_is_single_day():
    sunday = datetime(2024, 5, 5, 12, 0)
    window = _resolver(sunday).resolve("thisWeek")
    assert window.start_date == window.end_date == date(2024, 5, 5)


@pytest.mark.parametrize(
    "now",
    [datetime(2024, 5, 10), datetime(2024, 2, 29), datetime(2024, 1, 1), datetime(2023, 12, 31, 23, 59)],
)
def test_this_month_starts_on_first_and_ends_today(now):
    window = _resolver(now).resolve("thisMonth")
    assert window.start_date.day == 1
    assert window.start_date.month == now.month
    assert window.end_date == now.date()


@pytest.mark.parametrize(
    "now, expected",
    [
        (datetime(2024, 5, 10), (date(2024, 4, 1), date(2024, 4, 30))),
        (datetime(2024, 3, 31), (date(2024, 2, 1), date(2024, 2, 29))),
        (datetime(2023, 3, 15), (date(2023, 2, 1), date(2023, 2, 28))),
        (datetime(2024, 1, 15), (date(2023, 12, 1), date(2023, 12, 31))),
    ],
)
def test_last_month_is_the_full_previous_calendar_month(now, expected):
    window = _resolver(now).resolve("lastMonth")
    assert (window.start_date, window.end_date) == expected
    assert window.start_date.month == window.end_date.month
    assert window.label == "Last Month"


@pytest.mark.parametrize("mode", ["today", "yesterday", "thisWeek", "thisMonth", "lastMonth"])
def test_resolution_is_a_pure_function_of_now(fixed_now, mode):
    resolver = _resolver(fixed_now)
    first = resolver.resolve(mode)
    second = resolver.resolve(mode)
    assert first == second
    assert first.start_date <= first.end_date


def test_unknown_mode_falls_back_to_today(fixed_now):
    window = _resolver(fixed_now).resolve("fortnight")
    assert window.mode is WindowMode.TODAY
    assert window.start_date == window.end_date == date(2024, 5, 10)


def test_custom_uses_explicit_bounds(fixed_now):
    window = _resolver(fixed_now).resolve(
        "custom", (datetime(2024, 3, 2, 18, 0), date(2024, 3, 9))
    )
    assert window.mode is WindowMode.CUSTOM
    assert (window.start_date, window.end_date) == (date(2024, 3, 2), date(2024, 3, 9))
    assert window.label == "Custom Range"


@pytest.mark.parametrize(
    "explicit_range",
    [None, (), (date(2024, 3, 2),), (date(2024, 3, 2), None), (None, date(2024, 3, 2))],
)
def test_custom_requires_two_bounds(fixed_now, explicit_range):
    with pytest.raises(ValueError):
        _resolver(fixed_now).resolve("custom", explicit_range)


def test_custom_rejects_inverted_range(fixed_now):
    with pytest.raises(ValueError):
        _resolver(fixed_now).custom((date(2024, 3, 9), date(2024, 3, 2)))


def test_month_pick_covers_whole_month(fixed_now):
    window = _resolver(fixed_now).month(date(2024, 2, 14))
    assert window.mode is WindowMode.CUSTOM
    assert (window.start_date, window.end_date) == (date(2024, 2, 1), date(2024, 2, 29))
    assert window.label == "February 2024"


def test_window_params_and_display_text():
    single = TimeWindow(WindowMode.TODAY, date(2024, 5, 10), date(2024, 5, 10), "Today")
    assert single.as_params() == {"startDate": "2024-05-10", "endDate": "2024-05-10"}
    assert single.display_range() == "10 May, 2024"

    spanning = TimeWindow(WindowMode.THIS_MONTH, date(2024, 5, 1), date(2024, 5, 10), "This Month")
    assert spanning.display_range() == "01 May - 10 May, 2024"


def test_invalid_first_weekday():
    with pytest.raises(ValueError):
        DateRangeResolver(first_weekday=7)

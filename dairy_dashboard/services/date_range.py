from __future__ import annotations

import calendar
from datetime import date, datetime, timedelta
from typing import Callable, Optional, Sequence, Union

from dairy_dashboard.services.models import TimeWindow, WindowMode

DateLike = Union[date, datetime]

MODE_LABELS = {
    WindowMode.TODAY: "Today",
    WindowMode.YESTERDAY: "Yesterday",
    WindowMode.THIS_WEEK: "This Week",
    WindowMode.THIS_MONTH: "This Month",
    WindowMode.LAST_MONTH: "Last Month",
    WindowMode.CUSTOM: "Custom Range",
}


def _as_day(value: DateLike) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    raise TypeError(f"Unsupported date value: {type(value)!r}")


def _month_bounds(day: date) -> tuple:
    last_day = calendar.monthrange(day.year, day.month)[1]
    return day.replace(day=1), day.replace(day=last_day)


class DateRangeResolver:
    """Turns a time-window selection into concrete calendar bounds.

    ``clock`` supplies the current instant, so every window other than
    ``custom`` is a pure function of what it returns.
    """

    def __init__(
        self,
        clock: Optional[Callable[[], datetime]] = None,
        *,
        first_weekday: int = calendar.SUNDAY,
    ) -> None:
        if not 0 <= first_weekday <= 6:
            raise ValueError("first_weekday must be between 0 (Monday) and 6 (Sunday).")
        self._clock = clock or datetime.now
        self._first_weekday = first_weekday

    def today(self) -> date:
        return _as_day(self._clock())

    def resolve(
        self,
        mode: Union[WindowMode, str],
        explicit_range: Optional[Sequence[Optional[DateLike]]] = None,
    ) -> TimeWindow:
        try:
            mode = WindowMode(mode)
        except ValueError:
            mode = WindowMode.TODAY

        if mode is WindowMode.CUSTOM:
            return self.custom(explicit_range)

        today = self.today()
        if mode is WindowMode.YESTERDAY:
            start = end = today - timedelta(days=1)
        elif mode is WindowMode.THIS_WEEK:
            offset = (today.weekday() - self._first_weekday) % 7
            start, end = today - timedelta(days=offset), today
        elif mode is WindowMode.THIS_MONTH:
            start, end = today.replace(day=1), today
        elif mode is WindowMode.LAST_MONTH:
            start, end = _month_bounds(today.replace(day=1) - timedelta(days=1))
        else:
            start = end = today
        return TimeWindow(mode=mode, start_date=start, end_date=end, label=MODE_LABELS[mode])

    def custom(self, explicit_range: Optional[Sequence[Optional[DateLike]]]) -> TimeWindow:
        if not explicit_range or len(explicit_range) != 2:
            raise ValueError("A custom window needs both a start and an end date.")
        raw_start, raw_end = explicit_range
        if raw_start is None or raw_end is None:
            raise ValueError("A custom window needs both a start and an end date.")
        return TimeWindow(
            mode=WindowMode.CUSTOM,
            start_date=_as_day(raw_start),
            end_date=_as_day(raw_end),
            label=MODE_LABELS[WindowMode.CUSTOM],
        )

    def month(self, any_day: DateLike) -> TimeWindow:
        """Custom window spanning the whole calendar month of ``any_day``."""
        day = _as_day(any_day)
        start, end = _month_bounds(day)
        return TimeWindow(
            mode=WindowMode.CUSTOM,
            start_date=start,
            end_date=end,
            label=day.strftime("%B %Y"),
        )

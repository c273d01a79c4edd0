"""Operating-window rules deciding when polling is meaningful."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone, tzinfo
from typing import Optional
from zoneinfo import ZoneInfo


@dataclass(frozen=True)
class OperatingWindow:
    """Daily facility hours with a later opening on one weekday.

    Both ends of the window are inclusive. Aware datetimes are converted into
    ``tz`` before the wall-clock comparison; naive datetimes are taken to be
    wall-clock times in ``tz`` already.
    """

    opens_at: time = time(8, 30)
    closes_at: time = time(20, 30)
    late_opens_at: time = time(11, 0)
    late_opening_weekday: Optional[int] = 0
    tz: tzinfo = timezone.utc

    def __post_init__(self) -> None:
        if self.opens_at > self.closes_at or self.late_opens_at > self.closes_at:
            raise ValueError("Opening time must not be later than closing time.")
        if self.late_opening_weekday is not None and not 0 <= self.late_opening_weekday <= 6:
            raise ValueError("late_opening_weekday must be between 0 (Monday) and 6 (Sunday).")

    def opening_time(self, day: date) -> time:
        if self.late_opening_weekday is not None and day.weekday() == self.late_opening_weekday:
            return self.late_opens_at
        return self.opens_at

    def is_within_operating_hours(self, moment: datetime) -> bool:
        local = self._localize(moment)
        wall_clock = local.time()
        return self.opening_time(local.date()) <= wall_clock <= self.closes_at

    def next_open_instant(self, moment: datetime) -> datetime:
        """Return today's opening if it is still ahead, otherwise tomorrow's."""
        local = self._localize(moment)
        today_start = self._opening_on(local.date())
        if today_start > local:
            return today_start
        return self._opening_on(local.date() + timedelta(days=1))

    def _opening_on(self, day: date) -> datetime:
        return datetime.combine(day, self.opening_time(day), tzinfo=self.tz)

    def _localize(self, moment: datetime) -> datetime:
        if moment.tzinfo is None:
            return moment.replace(tzinfo=self.tz)
        return moment.astimezone(self.tz)


def resolve_timezone(name: str) -> tzinfo:
    candidate = name.strip()
    if not candidate or candidate.upper() in {"UTC", "Z"}:
        return timezone.utc
    return ZoneInfo(candidate)


def build_window(
    opens_at: time,
    closes_at: time,
    late_opens_at: time,
    late_opening_weekday: Optional[int],
    timezone_name: str = "UTC",
) -> OperatingWindow:
    return OperatingWindow(
        opens_at=opens_at,
        closes_at=closes_at,
        late_opens_at=late_opens_at,
        late_opening_weekday=late_opening_weekday,
        tz=resolve_timezone(timezone_name),
    )

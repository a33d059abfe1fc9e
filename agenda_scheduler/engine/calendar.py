"""
Working Calendar

Answers calendar questions for one project's working-hour configuration:
whether an instant falls on a working day, where the next working instant
is, and how many working minutes are left in the current day.

All arithmetic is done on wall-clock time in the configured timezone.
Naive datetimes are read as wall-clock times in that zone; aware datetimes
are converted to it first. Adding a timedelta to an aware datetime keeps the
wall clock, so "09:00 + 480 minutes" is 17:00 even across a DST change.
"""

import re
from datetime import date, datetime, time, timedelta
from typing import Optional, Tuple
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from agenda_scheduler.config.settings import get_settings
from agenda_scheduler.models.entities import (
    WEEKDAY_NAMES,
    Project,
    ProjectSettings,
    WorkingHoursConfig,
)
from agenda_scheduler.models.errors import ConfigurationError


ONE_DAY = timedelta(days=1)
MINUTES_PER_DAY = 24 * 60

_CLOCK_RE = re.compile(r"^(\d{1,2}):(\d{2})$")
_WINDOW_RE = re.compile(r"^\s*(\d{1,2}):(\d{2})\s*-\s*(\d{1,2}):(\d{2})\s*$")


def parse_clock(value: str) -> int:
    """Parse ``"HH:MM"`` into minutes from midnight."""
    match = _CLOCK_RE.match(value.strip()) if value else None
    if not match:
        raise ConfigurationError(f"Invalid time of day: {value!r} (expected HH:MM)")
    hours, minutes = int(match.group(1)), int(match.group(2))
    total = hours * 60 + minutes
    if minutes > 59 or total > MINUTES_PER_DAY:
        raise ConfigurationError(f"Invalid time of day: {value!r}")
    return total


def parse_time_window(value: Optional[str]) -> Optional[Tuple[int, int]]:
    """Parse ``"HH:MM-HH:MM"`` into a (start, end) pair of minutes.

    Returns None for a missing or malformed window.
    """
    if not value:
        return None
    match = _WINDOW_RE.match(value)
    if not match:
        return None
    start = int(match.group(1)) * 60 + int(match.group(2))
    end = int(match.group(3)) * 60 + int(match.group(4))
    if start >= end or end > MINUTES_PER_DAY:
        return None
    return start, end


def default_project_settings(project: Project) -> ProjectSettings:
    """Settings used for a project that has none stored."""
    settings = get_settings()
    start = project.start_date or date.today()
    end = project.end_date or start + timedelta(days=settings.default_project_length_days)
    return ProjectSettings(
        start_date=start,
        end_date=end,
        start_of_day_time=settings.default_start_of_day,
        end_of_day_time=settings.default_end_of_day,
        lunch_time=settings.default_lunch_time,
        timezone=settings.default_timezone,
        working_days=frozenset(settings.default_working_days),
    )


def resolve_project_settings(project: Project) -> ProjectSettings:
    return project.settings if project.settings is not None else default_project_settings(project)


def working_hours_from_settings(
    project_settings: ProjectSettings,
    follow_project_hours: bool = True,
) -> WorkingHoursConfig:
    """Build the working-hours config for a run.

    When the project's own hours are not followed, start and end of day come
    from the application defaults; working days and timezone stay the
    project's.
    """
    if follow_project_hours:
        start_text, end_text = project_settings.start_of_day_time, project_settings.end_of_day_time
    else:
        settings = get_settings()
        start_text, end_text = settings.default_start_of_day, settings.default_end_of_day
    return WorkingHoursConfig(
        start_of_day=parse_clock(start_text),
        end_of_day=parse_clock(end_text),
        working_days=frozenset(d.lower() for d in project_settings.working_days),
        timezone=project_settings.timezone or "UTC",
    )


class WorkingCalendar:
    """Working-day / working-hour queries over one WorkingHoursConfig."""

    def __init__(self, config: WorkingHoursConfig):
        self.config = config
        self._validate(config)
        try:
            self.tz = ZoneInfo(config.timezone)
        except (ZoneInfoNotFoundError, ValueError):
            raise ConfigurationError(f"Invalid timezone: {config.timezone}")

    @staticmethod
    def _validate(config: WorkingHoursConfig) -> None:
        # Empty working days would make every "next working day" search loop forever
        if not config.working_days:
            raise ConfigurationError("Working days must not be empty")
        unknown = set(config.working_days) - set(WEEKDAY_NAMES)
        if unknown:
            raise ConfigurationError(f"Unknown working days: {', '.join(sorted(unknown))}")
        if not 0 <= config.start_of_day < config.end_of_day <= MINUTES_PER_DAY:
            raise ConfigurationError(
                f"Working hours must satisfy 0 <= start < end <= {MINUTES_PER_DAY} "
                f"(got {config.start_of_day}-{config.end_of_day})"
            )

    @property
    def start_of_day(self) -> int:
        return self.config.start_of_day

    @property
    def end_of_day(self) -> int:
        return self.config.end_of_day

    def localize(self, instant: datetime) -> datetime:
        if instant.tzinfo is None:
            return instant.replace(tzinfo=self.tz)
        return instant.astimezone(self.tz)

    def at_date(self, day: date, minutes: int = 0) -> datetime:
        """Instant ``minutes`` past midnight of ``day`` in the calendar's zone."""
        return datetime.combine(day, time(0, 0), tzinfo=self.tz) + timedelta(minutes=minutes)

    def at_minute(self, instant: datetime, minutes: int) -> datetime:
        """Same calendar day as ``instant``, ``minutes`` past midnight."""
        return self.at_date(self.localize(instant).date(), minutes)

    def time_of_day(self, instant: datetime) -> int:
        local = self.localize(instant)
        return local.hour * 60 + local.minute

    def is_working_day(self, instant: datetime) -> bool:
        return WEEKDAY_NAMES[self.localize(instant).weekday()] in self.config.working_days

    def is_working_instant(self, instant: datetime) -> bool:
        return (
            self.is_working_day(instant)
            and self.start_of_day <= self.time_of_day(instant) < self.end_of_day
        )

    def ensure_working_day(self, instant: datetime) -> datetime:
        """Return ``instant`` if it is on a working day, else the next working day at the same time."""
        current = self.localize(instant)
        while not self.is_working_day(current):
            current = current + ONE_DAY
        return current

    def advance_to_next_working_day(self, instant: datetime) -> datetime:
        """Step at least one calendar day forward, until a working day is reached.

        Time of day is kept; callers normalize it afterwards.
        """
        current = self.localize(instant) + ONE_DAY
        while not self.is_working_day(current):
            current = current + ONE_DAY
        return current

    def start_of_next_working_day(self, instant: datetime) -> datetime:
        return self.at_minute(self.advance_to_next_working_day(instant), self.start_of_day)

    def clamp_to_working_hours(self, instant: datetime) -> datetime:
        """
        Move ``instant`` forward to the nearest working instant.

        - before start of day: snap to start of day, same day
        - at or after end of day: start of day on the next working day
        - on a non-working day: same time of day on the next working day,
          then re-checked against the hours

        Iterates until the result is a working instant, so clamping across a
        weekend never lands on a non-working day.
        """
        current = self.localize(instant)
        while True:
            if not self.is_working_day(current):
                current = self.ensure_working_day(current)
                continue
            minutes = self.time_of_day(current)
            if minutes < self.start_of_day:
                return self.at_minute(current, self.start_of_day)
            if minutes >= self.end_of_day:
                current = self.at_minute(current + ONE_DAY, self.start_of_day)
                continue
            return current

    def minutes_remaining_today(self, instant: datetime) -> int:
        """Whole working minutes between ``instant`` and end of day, floored at 0."""
        local = self.localize(instant)
        day_end = self.at_minute(local, self.end_of_day)
        return max(0, int((day_end - local) // timedelta(minutes=1)))

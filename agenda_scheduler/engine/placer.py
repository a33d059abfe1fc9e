"""
Event Placer

Splits a duration into one or more [start, end) segments that stay inside
working hours, optionally stepping past booked intervals.

Algorithm (per call):
1. Clamp the cursor to a working instant.
2. If a ConflictIndex is attached, move the cursor to the first start whose
   window of ``remaining`` minutes is free.
3. If a lunch window is set and the cursor falls inside it, continue from
   the end of lunch.
4. Take min(remaining, minutes left today) as the next segment, stopping
   early at the start of lunch.
5. If minutes remain, continue after lunch, or at start of day on the next
   working day.

Guarantees:
- sum of segment lengths == requested duration
- no segment crosses end of day or starts on a non-working day
- no segment overlaps the lunch window
- segments are emitted in increasing start order

Example: 09:00-17:00, an 8-hour item starting at 15:00 yields 15:00-17:00
today and 09:00-15:00 on the next working day.
"""

import logging
from datetime import datetime, timedelta
from typing import List, Optional, Tuple

from agenda_scheduler.engine.calendar import WorkingCalendar
from agenda_scheduler.engine.conflicts import ConflictIndex
from agenda_scheduler.models.entities import Interval


logger = logging.getLogger(__name__)


class EventPlacer:
    def __init__(
        self,
        calendar: WorkingCalendar,
        conflicts: Optional[ConflictIndex] = None,
        lunch_window: Optional[Tuple[int, int]] = None,
    ):
        self.calendar = calendar
        self.conflicts = conflicts
        self.lunch_window = lunch_window

    def lunch_on(self, instant: datetime) -> Optional[Interval]:
        """The lunch interval on ``instant``'s calendar day, if a window is set."""
        if self.lunch_window is None:
            return None
        start, end = self.lunch_window
        return Interval(self.calendar.at_minute(instant, start), self.calendar.at_minute(instant, end))

    def place(self, start: datetime, duration_minutes: int) -> List[Interval]:
        """
        Place ``duration_minutes`` of work starting no earlier than ``start``.

        Args:
            start: Earliest allowed start (usually the scheduler's cursor)
            duration_minutes: Total working minutes to place, must be > 0

        Returns:
            Ordered list of segments covering exactly ``duration_minutes``

        Raises:
            ValueError: If the duration is not positive
        """
        if duration_minutes <= 0:
            raise ValueError(f"duration must be a positive number of minutes (got {duration_minutes})")

        segments: List[Interval] = []
        remaining = duration_minutes
        cursor = self.calendar.localize(start)

        while remaining > 0:
            if not self.calendar.is_working_day(cursor):
                cursor = self.calendar.advance_to_next_working_day(cursor)
            cursor = self.calendar.clamp_to_working_hours(cursor)

            if self.conflicts is not None:
                cursor = self.conflicts.next_available_start(cursor, remaining)

            lunch = self.lunch_on(cursor)
            if lunch is not None and lunch.start <= cursor < lunch.end:
                cursor = lunch.end
                continue

            available = self.calendar.minutes_remaining_today(cursor)
            resume_at = None
            if lunch is not None and cursor < lunch.start:
                until_lunch = int((lunch.start - cursor) // timedelta(minutes=1))
                if until_lunch < available:
                    available, resume_at = until_lunch, lunch.start
            segment_minutes = min(remaining, available)

            # available == 0 (cursor within the last minute of the day) emits
            # nothing; the cursor still moves to the next working day below
            if segment_minutes > 0:
                end = cursor + timedelta(minutes=segment_minutes)
                segments.append(Interval(cursor, end))
                remaining -= segment_minutes
                cursor = end

            if remaining > 0:
                if resume_at is not None:
                    cursor = resume_at
                else:
                    cursor = self.calendar.start_of_next_working_day(cursor)

        logger.debug(
            "Placed %d minutes from %s in %d segment(s)",
            duration_minutes, start.isoformat(), len(segments),
        )
        return segments

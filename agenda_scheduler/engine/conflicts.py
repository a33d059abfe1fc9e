"""
Conflict Index

Tracks the [start, end) intervals already booked during a scheduling run and
finds the first later start that avoids all of them.

Intervals are kept in insertion order and rescanned linearly on every
lookup: O(n) per placement, which is fine for the number of events a
project holds. Nothing is ever removed during a run.
"""

from datetime import datetime, timedelta
from typing import Iterable, Iterator, List, Optional

from agenda_scheduler.engine.calendar import WorkingCalendar
from agenda_scheduler.models.entities import Interval


class ConflictIndex:
    def __init__(self, calendar: WorkingCalendar, intervals: Iterable[Interval] = ()):
        self.calendar = calendar
        self._intervals: List[Interval] = []
        for interval in intervals:
            self.add(interval)

    def __len__(self) -> int:
        return len(self._intervals)

    def __iter__(self) -> Iterator[Interval]:
        return iter(self._intervals)

    def add(self, interval: Interval) -> None:
        self._intervals.append(
            Interval(self.calendar.localize(interval.start), self.calendar.localize(interval.end))
        )

    def first_overlap(self, start: datetime, end: datetime) -> Optional[Interval]:
        for interval in self._intervals:
            if interval.overlaps(start, end):
                return interval
        return None

    def next_available_start(self, candidate_start: datetime, duration_minutes: int) -> datetime:
        """
        First start at or after ``candidate_start`` whose
        [start, start + duration) window overlaps no booked interval.

        Each overlap pushes the candidate to that interval's end, re-clamped
        to working hours, and the scan starts over: moving the candidate can
        create an overlap with an interval that was already checked. The
        candidate only moves forward and there are finitely many intervals,
        so the loop reaches a fixpoint.

        Not a minimal-gap packer: it returns the first later slot found by
        scanning forward.
        """
        span = timedelta(minutes=duration_minutes)
        candidate = self.calendar.clamp_to_working_hours(candidate_start)
        while True:
            blocking = self.first_overlap(candidate, candidate + span)
            if blocking is None:
                return candidate
            candidate = self.calendar.clamp_to_working_hours(blocking.end)

"""
Curriculum Schedule Import

Single-pass scheduler driven by group curricula instead of a training plan.

1. Collect every course reachable through a group's active curricula; groups
   sharing a course are merged onto one entry (discovery order).
2. For each course, place one session per assigned group back-to-back.
3. The first session touching a calendar date also creates that date's
   "Lunch" event at the project's lunch window.

Sessions are not split across days: a session starts at the cursor and runs
for the course's full length. Once the cursor reaches end of day, or a session
runs past midnight, the cursor moves to the next working instant.

When the next session of a course would end after the start of the project's
end date, the remaining sessions of that course are not created. By default this is
only logged; ``warn_on_truncation`` turns it into a warning.
"""

import logging
from collections import OrderedDict
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Dict, List, Optional, Set

from agenda_scheduler.config.settings import get_settings
from agenda_scheduler.engine.calendar import (
    WorkingCalendar,
    parse_time_window,
    resolve_project_settings,
    working_hours_from_settings,
)
from agenda_scheduler.models.entities import Course, EventDescriptor, Project, TargetGroup
from agenda_scheduler.models.errors import ConfigurationError, NoEligibleTargetsError
from agenda_scheduler.storage.interfaces import EventSink, NullEventSink
from agenda_scheduler.utils.durations import course_minutes


logger = logging.getLogger(__name__)

DEFAULT_GROUP_COLOR = "#2196F3"
LUNCH_COLOR = "#FFA726"


@dataclass
class CourseAssignment:
    course: Course
    curriculum_title: str
    groups: List[TargetGroup] = field(default_factory=list)


@dataclass
class CurriculumScheduleResult:
    events: List[EventDescriptor] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    total_courses: int = 0
    groups_processed: int = 0
    truncated_course_ids: List[int] = field(default_factory=list)


def collect_course_assignments(groups: List[TargetGroup]) -> Dict[int, CourseAssignment]:
    """Map course id -> course and the groups whose active curricula include it."""
    assignments: Dict[int, CourseAssignment] = OrderedDict()
    for group in groups:
        for membership in group.curricula:
            if not membership.is_active:
                continue
            for course in membership.curriculum.courses:
                entry = assignments.get(course.id)
                if entry is None:
                    entry = CourseAssignment(course=course, curriculum_title=membership.curriculum.title)
                    assignments[course.id] = entry
                if all(g.id != group.id for g in entry.groups):
                    entry.groups.append(group)
    return assignments


def count_curriculum_courses(groups: List[TargetGroup]) -> int:
    return sum(
        len(m.curriculum.courses)
        for g in groups
        for m in g.curricula
        if m.is_active
    )


class CurriculumScheduler:
    def __init__(self, event_sink: Optional[EventSink] = None, warn_on_truncation: Optional[bool] = None):
        self.event_sink = event_sink or NullEventSink()
        if warn_on_truncation is None:
            warn_on_truncation = get_settings().warn_on_curriculum_truncation
        self.warn_on_truncation = warn_on_truncation

    def run(self, project: Project) -> CurriculumScheduleResult:
        settings = resolve_project_settings(project)
        calendar = WorkingCalendar(working_hours_from_settings(settings))
        lunch_window = parse_time_window(settings.lunch_time)
        if lunch_window is None:
            raise ConfigurationError(f"Invalid lunch time: {settings.lunch_time!r} (expected HH:MM-HH:MM)")

        if not project.groups:
            raise NoEligibleTargetsError("No groups found in this project")

        cursor = calendar.at_date(settings.start_date, calendar.start_of_day)
        if not calendar.is_working_day(cursor):
            cursor = calendar.start_of_next_working_day(cursor)

        end_date = settings.end_date or settings.start_date
        # Sessions must end by the start (midnight) of the end date
        project_end = calendar.at_date(end_date)
        if cursor >= project_end:
            raise ConfigurationError(
                f"Cannot schedule courses: Project end date ({end_date.isoformat()}) is before "
                f"the project start date ({settings.start_date.isoformat()}). Please extend the project end date."
            )

        result = CurriculumScheduleResult(
            total_courses=count_curriculum_courses(project.groups),
            groups_processed=len(project.groups),
        )
        lunch_dates: Set[date] = set()
        assignments = collect_course_assignments(project.groups)
        logger.info("Project %s: %d unique course(s) to schedule", project.id, len(assignments))

        for entry in assignments.values():
            course = entry.course
            duration = timedelta(minutes=course_minutes(course))
            logger.debug(
                "Scheduling course %r (%s) for %d group(s)",
                course.title, duration, len(entry.groups),
            )
            for group in entry.groups:
                if cursor + duration > project_end:
                    logger.info(
                        "Stopping course %r at group %r: session would end after project end date",
                        course.title, group.name,
                    )
                    result.truncated_course_ids.append(course.id)
                    if self.warn_on_truncation:
                        result.warnings.append(
                            f'Course "{course.title}" was not scheduled for group "{group.name}" '
                            f"and later groups: it would end after the project end date"
                        )
                    break

                start, end = cursor, cursor + duration
                self._emit(project, result, self._session(entry, group, start, end, duration))

                if start.date() not in lunch_dates:
                    lunch_dates.add(start.date())
                    self._emit(project, result, self._lunch(calendar, start.date(), lunch_window, settings.lunch_time))

                # Past end of day, or past midnight: next working instant
                cursor = calendar.clamp_to_working_hours(end)

        logger.info(
            "Project %s: imported %d events (courses + lunch breaks) for %d groups",
            project.id, len(result.events), result.groups_processed,
        )
        return result

    def _emit(self, project: Project, result: CurriculumScheduleResult, event: EventDescriptor) -> None:
        self.event_sink.create_event(project.id, event)
        result.events.append(event)

    @staticmethod
    def _session(
        entry: CourseAssignment,
        group: TargetGroup,
        start: datetime,
        end: datetime,
        duration: timedelta,
    ) -> EventDescriptor:
        minutes = int(duration.total_seconds() // 60)
        return EventDescriptor(
            title=f"{entry.course.title} - {group.name}",
            start=start,
            end=end,
            event_type="course",
            course_id=entry.course.id,
            group_id=group.id,
            metadata={
                "notes": (
                    f'Auto-imported from curriculum "{entry.curriculum_title}" for group '
                    f'"{group.name}". Duration: {minutes} minutes'
                ),
                "groupId": group.id,
                "groupName": group.name,
                "curriculumTitle": entry.curriculum_title,
                "durationMinutes": minutes,
                "color": group.color_tag or DEFAULT_GROUP_COLOR,
                "source": "curriculum_import",
            },
        )

    @staticmethod
    def _lunch(calendar: WorkingCalendar, on: date, window, lunch_time: str) -> EventDescriptor:
        return EventDescriptor(
            title="Lunch",
            start=calendar.at_date(on, window[0]),
            end=calendar.at_date(on, window[1]),
            event_type="other",
            metadata={
                "notes": f"Daily lunch break from {lunch_time}",
                "lunchEvent": True,
                "color": LUNCH_COLOR,
                "source": "curriculum_import",
            },
        )

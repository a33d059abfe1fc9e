"""
Agenda Scheduler

Turns a training plan into calendar events for a project's target groups.

Per plan day, items are split into three buckets processed in this order:
1. courses (plan entries pointing at the same course collapse into one item)
2. support activities
3. custom activities

Each course is scheduled for every target group back-to-back before the
next course starts (course A for group 1, A for group 2, then B ...).
Support and custom activities are placed once, with no group or attendees.

A single cursor tracks where the next placement may start. It only moves
forward: to the end of the last segment placed, or past an inserted lunch
break.

With lunch breaks enabled, placement steps over the lunch window on every
day, and each plan day gets one "Lunch Break" event on the date of its first
segment. The break is emitted in start order among the day's events. It is
skipped when its window starts before the day's first possible start or
overlaps an event already booked.

Failure policy:
- anything raised while handling one item becomes a warning
  (``Failed to process "<title>": <message>``) and the run continues
- invalid configuration and an empty group selection are fatal and raised
  before any item is placed
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from agenda_scheduler.engine.calendar import (
    WorkingCalendar,
    parse_time_window,
    resolve_project_settings,
    working_hours_from_settings,
)
from agenda_scheduler.engine.conflicts import ConflictIndex
from agenda_scheduler.engine.placer import EventPlacer
from agenda_scheduler.models.entities import (
    Course,
    EventDescriptor,
    ImportOptions,
    Interval,
    ItemKind,
    JobProgress,
    JobStatus,
    Module,
    Participant,
    PlanDay,
    PlanModule,
    Project,
    ProjectSettings,
    SchedulableItem,
    TargetGroup,
    TrainingPlan,
)
from agenda_scheduler.models.errors import ItemSchedulingWarning, NoEligibleTargetsError
from agenda_scheduler.storage.interfaces import EventSink, NullEventSink
from agenda_scheduler.storage.job_store import JobStore
from agenda_scheduler.utils.durations import modules_minutes, resolve_duration


logger = logging.getLogger(__name__)

DEFAULT_GROUP_COLOR = "#2196F3"
SUPPORT_ACTIVITY_COLOR = "#FFA726"
LUNCH_BREAK_COLOR = "#9E9E9E"


@dataclass
class CourseBundle:
    course_id: int
    course: Optional[Course] = None
    modules: List[Module] = field(default_factory=list)
    custom_title: Optional[str] = None
    custom_duration: Optional[int] = None


@dataclass
class DayBundle:
    courses: Dict[int, CourseBundle] = field(default_factory=dict)
    support_activities: List[PlanModule] = field(default_factory=list)
    custom_activities: List[PlanModule] = field(default_factory=list)
    skipped: List[ItemSchedulingWarning] = field(default_factory=list)


def partition_day(day: PlanDay) -> DayBundle:
    """Sort one plan day's entries into course bundles, support and custom activities."""
    bundle = DayBundle()
    for entry in sorted(day.modules, key=lambda m: m.order):
        if entry.support_activity is not None or entry.support_activity_id is not None:
            bundle.support_activities.append(entry)
        elif entry.custom_title and entry.course_id is None and entry.module_id is None:
            bundle.custom_activities.append(entry)
        elif _parent_course_id(entry) is not None:
            # Module references are scheduled as part of their parent course
            _merge_course(bundle, CourseBundle(
                course_id=_parent_course_id(entry),
                course=entry.course,
                modules=[entry.module] if entry.module is not None else [],
                custom_title=entry.custom_title,
                custom_duration=entry.custom_duration,
            ), entry.module)
        else:
            title = entry.custom_title or f"Item {entry.order}"
            bundle.skipped.append(ItemSchedulingWarning(
                title,
                f"plan entry {entry.order} on day {day.day_number} references no course, module or activity",
            ))
    return bundle


def _parent_course_id(entry: PlanModule) -> Optional[int]:
    if entry.module is not None and entry.module.course_id is not None:
        return entry.module.course_id
    if entry.course_id is not None:
        return entry.course_id
    if entry.course is not None:
        return entry.course.id
    return None


def _merge_course(bundle: DayBundle, candidate: CourseBundle, module: Optional[Module]) -> None:
    existing = bundle.courses.get(candidate.course_id)
    if existing is None:
        bundle.courses[candidate.course_id] = candidate
        return
    if module is not None and all(m.id != module.id for m in existing.modules):
        existing.modules.append(module)
    if existing.course is None and candidate.course is not None:
        existing.course = candidate.course


def required_roles(course: Optional[Course], options: ImportOptions) -> frozenset:
    """Role ids a course requires, restricted to the roles selected for this import."""
    if not options.assign_by_role or not options.selected_roles or course is None:
        return frozenset()
    selected = set(options.selected_roles)
    return frozenset(role.id for role in course.roles if role.id in selected)


def eligible_participants(group: TargetGroup, roles: frozenset) -> List[Participant]:
    if not roles:
        return list(group.participants)
    return [p for p in group.participants if p.role_id is not None and p.role_id in roles]


def course_item(bundle: CourseBundle, options: ImportOptions) -> SchedulableItem:
    course = bundle.course
    computed = (course.duration if course is not None else None) or modules_minutes(bundle.modules)
    return SchedulableItem(
        kind=ItemKind.COURSE,
        id=bundle.course_id,
        title=course_title(bundle),
        duration_minutes=resolve_duration(bundle.custom_duration, computed),
        required_roles=required_roles(course, options),
        modules=list(bundle.modules),
    )


def course_title(bundle: CourseBundle) -> str:
    return bundle.custom_title or (bundle.course.title if bundle.course is not None else None) or "Course"


def activity_title(entry: PlanModule) -> str:
    if entry.custom_title:
        return entry.custom_title
    if entry.support_activity is not None:
        return entry.support_activity.title
    return "Support Activity" if entry.support_activity_id is not None else "Activity"


def activity_item(entry: PlanModule) -> SchedulableItem:
    if entry.support_activity is not None or entry.support_activity_id is not None:
        kind = ItemKind.SUPPORT_ACTIVITY
        item_id = entry.support_activity_id
        if item_id is None:
            item_id = entry.support_activity.id
        computed = entry.support_activity.duration if entry.support_activity is not None else None
    else:
        kind, item_id, computed = ItemKind.CUSTOM_ACTIVITY, None, None
    return SchedulableItem(
        kind=kind,
        id=item_id,
        title=activity_title(entry),
        duration_minutes=resolve_duration(entry.custom_duration, computed),
    )


def select_target_groups(groups: Sequence[TargetGroup], options: ImportOptions) -> List[TargetGroup]:
    if not options.include_all_participants and options.selected_groups:
        selected = set(options.selected_groups)
        return [g for g in groups if g.id in selected]
    return list(groups)


def count_pairings(plan: TrainingPlan, group_count: int) -> int:
    """Number of (item, group) placements a run will attempt."""
    total = 0
    for day in plan.days:
        bundle = partition_day(day)
        total += len(bundle.courses) * group_count
        total += len(bundle.support_activities) + len(bundle.custom_activities)
    return total


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class _Run:
    project: Project
    plan: TrainingPlan
    options: ImportOptions
    settings: ProjectSettings
    calendar: WorkingCalendar
    placer: EventPlacer
    conflicts: Optional[ConflictIndex]
    groups: List[TargetGroup]
    cursor: datetime
    booked: List[Interval]
    total: int
    processed: int = 0
    events: List[EventDescriptor] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    # Lunch-break bookkeeping for the plan day in progress
    day_start: Optional[datetime] = None
    lunch_day_number: Optional[int] = None
    pending_lunch: Optional[Tuple[int, Interval]] = None


class AgendaScheduler:
    """Schedules one training plan for one project, reporting into a job record."""

    def __init__(self, job_store: JobStore, job_id: str, event_sink: Optional[EventSink] = None):
        self.job_store = job_store
        self.job_id = job_id
        self.event_sink = event_sink or NullEventSink()

    def run(
        self,
        project: Project,
        plan: TrainingPlan,
        options: ImportOptions,
        existing_events: Iterable[Interval] = (),
    ) -> JobProgress:
        """
        Schedule every day of ``plan`` and mark the job completed.

        Raises ConfigurationError or NoEligibleTargetsError before anything is
        placed; the caller owns turning those into a failed job.
        """
        run = self._prepare(project, plan, options, existing_events)
        self._update(
            status=JobStatus.IN_PROGRESS,
            total=run.total,
            message=f"Processing {run.total} training items...",
        )

        for day in sorted(plan.days, key=lambda d: d.day_number):
            self._update(message=f"Processing day {day.day_number} of {plan.total_days}...")
            self._schedule_day(run, day)

        message = f"Import completed. Created {len(run.events)} events with {len(run.warnings)} warnings."
        logger.info("Job %s: %s", self.job_id, message)
        return self._update(
            status=JobStatus.COMPLETED,
            processed=run.processed,
            events=list(run.events),
            warnings=list(run.warnings),
            message=message,
            completed_at=_utcnow(),
        )

    def _prepare(
        self,
        project: Project,
        plan: TrainingPlan,
        options: ImportOptions,
        existing_events: Iterable[Interval],
    ) -> _Run:
        settings = resolve_project_settings(project)
        calendar = WorkingCalendar(working_hours_from_settings(settings, options.follow_project_hours))

        groups = select_target_groups(project.groups, options)
        if not groups:
            raise NoEligibleTargetsError("No valid groups found for assignment")

        booked = [Interval(calendar.localize(i.start), calendar.localize(i.end)) for i in existing_events]
        conflicts = ConflictIndex(calendar, booked) if options.preserve_existing_events else None

        lunch_window = None
        if options.insert_lunch_breaks:
            lunch_window = parse_time_window(settings.lunch_time)
            if lunch_window is None:
                logger.info("Job %s: no usable lunch window (%r), lunch breaks disabled", self.job_id, settings.lunch_time)

        cursor = calendar.ensure_working_day(calendar.at_date(settings.start_date, calendar.start_of_day))
        logger.info(
            "Job %s: scheduling plan %s for project %s from %s (%d group(s), %d existing event(s))",
            self.job_id, plan.id, project.id, cursor.isoformat(), len(groups), len(booked),
        )
        return _Run(
            project=project,
            plan=plan,
            options=options,
            settings=settings,
            calendar=calendar,
            placer=EventPlacer(calendar, conflicts, lunch_window),
            conflicts=conflicts,
            groups=groups,
            cursor=cursor,
            booked=booked,
            total=count_pairings(plan, len(groups)),
        )

    def _schedule_day(self, run: _Run, day: PlanDay) -> None:
        bundle = partition_day(day)
        run.day_start = run.cursor
        run.lunch_day_number = day.day_number if run.placer.lunch_window is not None else None
        logger.debug(
            "Day %s: %d course(s), %d support activity(ies), %d custom activity(ies)",
            day.day_number, len(bundle.courses), len(bundle.support_activities), len(bundle.custom_activities),
        )

        for skipped in bundle.skipped:
            run.warnings.append(f'Skipped "{skipped.title}": {skipped.reason}')

        for course_bundle in bundle.courses.values():
            self._schedule_course(run, course_bundle)
        for entry in bundle.support_activities:
            self._schedule_activity(run, entry)
        for entry in bundle.custom_activities:
            self._schedule_activity(run, entry)

        if run.pending_lunch is not None:
            self._emit_lunch(run)
        run.lunch_day_number = None

    def _schedule_course(self, run: _Run, bundle: CourseBundle) -> None:
        title = course_title(bundle)
        done = 0
        try:
            item = course_item(bundle, run.options)
            for group in run.groups:
                participants = eligible_participants(group, item.required_roles)
                if not participants and item.required_roles:
                    run.warnings.append(
                        f'No participants in group "{group.name}" match required roles for "{item.title}"'
                    )
                self._place(run, item, group, participants)
                done += 1
                self._record_progress(run)
        except Exception as exc:
            logger.warning("Job %s: failed to process course %r: %s", self.job_id, title, exc)
            run.warnings.append(f'Failed to process "{title}": {exc}')
            run.processed += len(run.groups) - done
            self._record_progress(run, advance=False)

    def _schedule_activity(self, run: _Run, entry: PlanModule) -> None:
        title = activity_title(entry)
        try:
            self._place(run, activity_item(entry), None, [])
            self._record_progress(run)
        except Exception as exc:
            logger.warning("Job %s: failed to process activity %r: %s", self.job_id, title, exc)
            run.warnings.append(f'Failed to process "{title}": {exc}')
            self._record_progress(run)

    def _place(
        self,
        run: _Run,
        item: SchedulableItem,
        group: Optional[TargetGroup],
        participants: List[Participant],
    ) -> None:
        segments = run.placer.place(run.cursor, item.duration_minutes)
        for segment in segments:
            if run.lunch_day_number is not None:
                self._plan_lunch(run, segment)
            # Keep emission in start order: lunch goes out before the first segment after it
            if run.pending_lunch is not None and segment.start >= run.pending_lunch[1].end:
                self._emit_lunch(run)
            event = self._describe(run, item, group, participants, segment)
            self.event_sink.create_event(run.project.id, event)
            run.events.append(event)
            run.booked.append(segment)
            if run.conflicts is not None:
                run.conflicts.add(segment)
            logger.debug("Placed %r %s - %s", event.title, segment.start.isoformat(), segment.end.isoformat())
        if segments:
            run.cursor = segments[-1].end

    def _describe(
        self,
        run: _Run,
        item: SchedulableItem,
        group: Optional[TargetGroup],
        participants: List[Participant],
        segment: Interval,
    ) -> EventDescriptor:
        is_course = item.kind is ItemKind.COURSE
        if is_course and group is not None:
            title = f"{item.title} - {group.name}"
            color = group.color_tag or DEFAULT_GROUP_COLOR
        else:
            title = item.title
            color = SUPPORT_ACTIVITY_COLOR
        return EventDescriptor(
            title=title,
            start=segment.start,
            end=segment.end,
            event_type="course" if is_course else "other",
            course_id=item.id if is_course else None,
            group_id=group.id if group is not None else None,
            participant_ids=[p.id for p in participants],
            metadata={
                "notes": f'Auto-imported from training plan "{run.plan.title}"',
                "trainingPlanId": run.plan.id,
                "itemType": item.kind.value,
                "itemId": item.id,
                "groupId": group.id if group is not None else None,
                "groupName": group.name if group is not None else None,
                "isSupportActivity": item.kind is ItemKind.SUPPORT_ACTIVITY,
                "color": color,
                "source": "training_plan_import",
            },
        )

    def _plan_lunch(self, run: _Run, first_segment: Interval) -> None:
        """Decide the current plan day's lunch break from its first placed segment."""
        day_number, run.lunch_day_number = run.lunch_day_number, None
        lunch = run.placer.lunch_on(first_segment.start)
        if lunch.start < run.day_start:
            logger.info("Day %s: lunch window %s has already passed, skipping lunch break", day_number, run.settings.lunch_time)
            return
        if any(lunch.overlaps(b.start, b.end) for b in run.booked):
            logger.info("Day %s: lunch window %s is already booked, skipping lunch break", day_number, run.settings.lunch_time)
            return
        run.pending_lunch = (day_number, lunch)

    def _emit_lunch(self, run: _Run) -> None:
        (day_number, lunch), run.pending_lunch = run.pending_lunch, None
        event = EventDescriptor(
            title="Lunch Break",
            start=lunch.start,
            end=lunch.end,
            event_type="other",
            metadata={
                "notes": f"Auto-created lunch break for training day {day_number}",
                "trainingPlanId": run.plan.id,
                "itemType": "lunchBreak",
                "dayNumber": day_number,
                "isLunchBreak": True,
                "color": LUNCH_BREAK_COLOR,
                "source": "training_plan_import_lunch",
            },
        )
        try:
            self.event_sink.create_event(run.project.id, event)
        except Exception as exc:
            logger.warning("Job %s: failed to create lunch break for day %s: %s", self.job_id, day_number, exc)
            run.warnings.append(f"Failed to create lunch break for day {day_number}: {exc}")
            return
        run.events.append(event)
        run.booked.append(event.interval)
        if run.conflicts is not None:
            run.conflicts.add(event.interval)
        run.cursor = max(run.cursor, lunch.end)

    def _record_progress(self, run: _Run, advance: bool = True) -> None:
        # One store write per (item, group) pairing so pollers see live progress
        if advance:
            run.processed += 1
        self._update(processed=run.processed, events=list(run.events), warnings=list(run.warnings))

    def _update(self, **changes) -> JobProgress:
        return self.job_store.update(self.job_id, **changes)

import pytest
from datetime import date, datetime
from zoneinfo import ZoneInfo

from agenda_scheduler.engine.curriculum import (
    CurriculumScheduler,
    collect_course_assignments,
    count_curriculum_courses,
)
from agenda_scheduler.models.entities import (
    Course,
    Curriculum,
    GroupCurriculum,
    Module,
    ProjectSettings,
    TargetGroup,
)
from agenda_scheduler.models.errors import ConfigurationError, NoEligibleTargetsError

from conftest import RecordingEventSink


UTC = ZoneInfo("UTC")


def at(day, hour, minute=0):
    return datetime(2024, 1, day, hour, minute, tzinfo=UTC)


COURSE_A = Course(id=1, title="Hydraulics", modules=[Module(id=11, duration=60), Module(id=12, duration=60)])
COURSE_B = Course(id=2, title="Pneumatics", duration=90)
CORE = Curriculum(id=100, title="Core", courses=[COURSE_A, COURSE_B])


def group(group_id, name, *curricula, active=True):
    return TargetGroup(
        id=group_id,
        name=name,
        curricula=[GroupCurriculum(curriculum=c, is_active=active) for c in curricula],
    )


def settings(start=date(2024, 1, 1), end=date(2024, 1, 31), **kwargs):
    return ProjectSettings(start_date=start, end_date=end, **kwargs)


class TestCourseAssignments:
    def test_groups_merged_per_course(self):
        extra = Curriculum(id=101, title="Extra", courses=[COURSE_A])
        groups = [group(1, "G1", CORE), group(2, "G2", CORE, extra)]
        assignments = collect_course_assignments(groups)

        assert list(assignments) == [1, 2]
        assert [g.id for g in assignments[1].groups] == [1, 2]
        assert assignments[1].curriculum_title == "Core"
        assert count_curriculum_courses(groups) == 5

    def test_inactive_curricula_ignored(self):
        groups = [group(1, "G1", CORE, active=False)]
        assert collect_course_assignments(groups) == {}
        assert count_curriculum_courses(groups) == 0


class TestCurriculumScheduler:
    """Course-by-course sessions with one lunch per scheduled date."""

    def test_sessions_and_daily_lunch(self, make_project):
        sink = RecordingEventSink()
        project = make_project([group(1, "G1", CORE), group(2, "G2", CORE)], settings=settings())
        result = CurriculumScheduler(event_sink=sink).run(project)

        assert [e.title for e in result.events] == [
            "Hydraulics - G1", "Lunch", "Hydraulics - G2", "Pneumatics - G1", "Pneumatics - G2",
        ]
        hydraulics_g1, lunch, hydraulics_g2, pneumatics_g1, pneumatics_g2 = result.events
        assert (hydraulics_g1.start, hydraulics_g1.end) == (at(1, 9), at(1, 11))
        assert (lunch.start, lunch.end) == (at(1, 12), at(1, 13))
        assert lunch.metadata["lunchEvent"] is True
        assert (hydraulics_g2.start, hydraulics_g2.end) == (at(1, 11), at(1, 13))
        assert (pneumatics_g1.start, pneumatics_g1.end) == (at(1, 13), at(1, 14, 30))
        assert (pneumatics_g2.start, pneumatics_g2.end) == (at(1, 14, 30), at(1, 16))
        assert hydraulics_g1.group_id == 1
        assert hydraulics_g1.metadata["durationMinutes"] == 120
        assert hydraulics_g1.metadata["color"] == "#2196F3"

        assert [e for _, e in sink.created] == result.events
        assert result.total_courses == 4
        assert result.groups_processed == 2
        assert result.warnings == []

    def test_cursor_rolls_to_next_working_day(self, make_project):
        full_day = Curriculum(id=1, title="Full", courses=[Course(id=3, title="Assembly", duration=480)])
        project = make_project([group(1, "G1", full_day), group(2, "G2", full_day)], settings=settings())
        result = CurriculumScheduler().run(project)

        sessions = [e for e in result.events if e.event_type == "course"]
        lunches = [e for e in result.events if e.title == "Lunch"]
        assert [(s.start, s.end) for s in sessions] == [(at(1, 9), at(1, 17)), (at(2, 9), at(2, 17))]
        assert [l.start for l in lunches] == [at(1, 12), at(2, 12)]

    def test_sessions_are_not_split(self, make_project):
        long_course = Curriculum(id=1, title="Long", courses=[Course(id=3, title="Marathon", duration=600)])
        project = make_project([group(1, "G1", long_course)], settings=settings())
        session = CurriculumScheduler().run(project).events[0]

        assert (session.start, session.end) == (at(1, 9), at(1, 19))

    def test_session_ending_at_midnight_resumes_next_morning(self, make_project):
        overnight = Curriculum(id=1, title="Night", courses=[Course(id=3, title="Shutdown Drill", duration=900)])
        project = make_project([group(1, "G1", overnight), group(2, "G2", overnight)], settings=settings())
        result = CurriculumScheduler().run(project)

        assert [e.title for e in result.events] == [
            "Shutdown Drill - G1", "Lunch", "Shutdown Drill - G2", "Lunch",
        ]
        first, _, second, tuesday_lunch = result.events
        assert (first.start, first.end) == (at(1, 9), at(2, 0))
        assert (second.start, second.end) == (at(2, 9), at(3, 0))
        assert tuesday_lunch.start == at(2, 12)

    def test_weekend_start_moves_to_monday(self, make_project):
        project = make_project([group(1, "G1", CORE)], settings=settings(start=date(2024, 1, 6)))
        result = CurriculumScheduler().run(project)
        assert result.events[0].start == at(8, 9)

    def test_truncation_is_silent_by_default(self, make_project):
        full_day = Curriculum(id=1, title="Full", courses=[Course(id=3, title="Assembly", duration=480)])
        groups = [group(i, f"G{i}", full_day) for i in (1, 2, 3)]
        project = make_project(groups, settings=settings(end=date(2024, 1, 2)))
        result = CurriculumScheduler(warn_on_truncation=False).run(project)

        assert [e.title for e in result.events] == ["Assembly - G1", "Lunch"]
        assert result.truncated_course_ids == [3]
        assert result.warnings == []

    def test_truncation_warning_when_enabled(self, make_project):
        full_day = Curriculum(id=1, title="Full", courses=[
            Course(id=3, title="Assembly", duration=480),
            Course(id=4, title="Testing", duration=60),
        ])
        groups = [group(1, "G1", full_day), group(2, "G2", full_day)]
        project = make_project(groups, settings=settings(end=date(2024, 1, 2)))
        result = CurriculumScheduler(warn_on_truncation=True).run(project)

        assert result.truncated_course_ids == [3, 4]
        assert len(result.warnings) == 2
        assert 'Course "Assembly" was not scheduled for group "G2"' in result.warnings[0]


class TestCurriculumErrors:
    def test_no_groups(self, make_project):
        with pytest.raises(NoEligibleTargetsError):
            CurriculumScheduler().run(make_project([], settings=settings()))

    def test_end_date_before_first_working_day(self, make_project):
        project = make_project([group(1, "G1", CORE)], settings=settings(start=date(2024, 1, 6), end=date(2024, 1, 7)))
        with pytest.raises(ConfigurationError, match="Cannot schedule courses"):
            CurriculumScheduler().run(project)

    def test_end_date_equal_to_start_date(self, make_project):
        """Sessions must end by the start of the end date, so a one-day range has no room."""
        project = make_project([group(1, "G1", CORE)], settings=settings(end=date(2024, 1, 1)))
        with pytest.raises(ConfigurationError, match="Cannot schedule courses"):
            CurriculumScheduler().run(project)

    def test_invalid_lunch_window(self, make_project):
        project = make_project([group(1, "G1", CORE)], settings=settings(lunch_time="lunch"))
        with pytest.raises(ConfigurationError):
            CurriculumScheduler().run(project)

import os
import tempfile

# Point the app at a throwaway database before any app module reads settings
_TEST_DB_DIR = tempfile.mkdtemp(prefix="agenda-scheduler-tests-")
os.environ["DATABASE_URL"] = "sqlite:///" + os.path.join(_TEST_DB_DIR, "test.db")
os.environ["JOB_STORE_BACKEND"] = "memory"

from datetime import date
from typing import Dict, List, Optional, Set, Tuple

import pytest
import redis

from agenda_scheduler.engine.calendar import WorkingCalendar
from agenda_scheduler.models.entities import (
    Course,
    EventDescriptor,
    Interval,
    JobProgress,
    Participant,
    PlanDay,
    PlanModule,
    Project,
    ProjectSettings,
    SupportActivity,
    TargetGroup,
    TrainingPlan,
    WorkingHoursConfig,
)
from agenda_scheduler.storage.interfaces import EventSink, ProjectSource
from agenda_scheduler.storage.job_store import InMemoryJobStore


class RecordingEventSink(EventSink):
    """Collects created events; raises for titles listed in ``fail_titles``."""

    def __init__(self, fail_titles: Optional[Set[str]] = None, existing: Optional[List[Interval]] = None):
        self.created: List[Tuple[int, EventDescriptor]] = []
        self.fail_titles = fail_titles or set()
        self.existing = existing or []

    def create_event(self, project_id: int, event: EventDescriptor) -> Optional[int]:
        if event.title in self.fail_titles:
            raise RuntimeError(f"could not store {event.title}")
        self.created.append((project_id, event))
        return len(self.created)

    def list_intervals(self, project_id: int) -> List[Interval]:
        return list(self.existing)


class FakeRedis:
    """Just enough of the redis client API for the job store."""

    def __init__(self, reachable=True):
        self.data = {}
        self.ttls = {}
        self.reachable = reachable

    def get(self, key):
        return self.data.get(key)

    def setex(self, key, ttl, value):
        self.data[key] = value
        self.ttls[key] = ttl

    def ping(self):
        if not self.reachable:
            raise redis.ConnectionError("connection refused")
        return True


class InMemoryProjectSource(ProjectSource):
    def __init__(self, projects: Dict[int, Project], plans: Dict[int, TrainingPlan]):
        self.projects = projects
        self.plans = plans

    def get_project(self, project_id: int) -> Optional[Project]:
        return self.projects.get(project_id)

    def get_training_plan(self, training_plan_id: int) -> Optional[TrainingPlan]:
        return self.plans.get(training_plan_id)


@pytest.fixture
def working_hours():
    """09:00-17:00, Monday to Friday, UTC."""
    return WorkingHoursConfig()


@pytest.fixture
def calendar(working_hours):
    return WorkingCalendar(working_hours)


@pytest.fixture
def project_settings():
    """Project starting Monday 2024-01-01."""
    return ProjectSettings(start_date=date(2024, 1, 1), end_date=date(2024, 3, 29))


@pytest.fixture
def group_a():
    """Three participants: two with roles, one without."""
    return TargetGroup(
        id=1,
        name="Group A",
        color_tag="#4CAF50",
        participants=[
            Participant(id=11, name="Ana", role_id=10),
            Participant(id=12, name="Ben", role_id=20),
            Participant(id=13, name="Cy"),
        ],
    )


@pytest.fixture
def group_b():
    return TargetGroup(
        id=2,
        name="Group B",
        participants=[Participant(id=21, name="Dee", role_id=10)],
    )


@pytest.fixture
def make_project(project_settings):
    def _make(groups, settings=project_settings, project_id=1):
        return Project(id=project_id, title="Plant Rollout", settings=settings, groups=list(groups))
    return _make


@pytest.fixture
def simple_plan():
    """Day 1: one 120-minute course and one 60-minute support activity."""
    return TrainingPlan(
        id=7,
        title="Onboarding",
        days=[
            PlanDay(
                day_number=1,
                modules=[
                    PlanModule(order=1, course_id=100, course=Course(id=100, title="Safety Basics", duration=120)),
                    PlanModule(
                        order=2,
                        support_activity_id=500,
                        support_activity=SupportActivity(id=500, title="Site Walk", duration=60),
                    ),
                ],
            )
        ],
    )


@pytest.fixture
def job_store():
    return InMemoryJobStore()


@pytest.fixture
def job_id(job_store):
    job_store.create(JobProgress(job_id="job-1"))
    return "job-1"

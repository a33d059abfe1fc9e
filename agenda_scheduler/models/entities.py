from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from enum import Enum
from typing import Any, Dict, FrozenSet, List, Optional


WEEKDAY_NAMES = ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")
DEFAULT_WORKING_DAYS = frozenset(WEEKDAY_NAMES[:5])


class ItemKind(str, Enum):
    COURSE = "course"
    SUPPORT_ACTIVITY = "supportActivity"
    CUSTOM_ACTIVITY = "custom"


class JobStatus(str, Enum):
    STARTING = "starting"
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass(frozen=True)
class WorkingHoursConfig:
    start_of_day: int = 9 * 60  # minutes from midnight
    end_of_day: int = 17 * 60
    working_days: FrozenSet[str] = DEFAULT_WORKING_DAYS
    timezone: str = "UTC"


@dataclass(frozen=True)
class Interval:
    """Half-open [start, end) span of wall-clock time."""

    start: datetime
    end: datetime

    def overlaps(self, start: datetime, end: datetime) -> bool:
        return start < self.end and end > self.start

    @property
    def duration_minutes(self) -> int:
        return int((self.end - self.start) / timedelta(minutes=1))


@dataclass(frozen=True)
class Role:
    id: int
    name: str = ""


@dataclass(frozen=True)
class Participant:
    id: int
    name: str = ""
    role_id: Optional[int] = None


@dataclass(frozen=True)
class Activity:
    duration: Optional[int] = None


@dataclass(frozen=True)
class Module:
    id: int
    title: str = ""
    course_id: Optional[int] = None
    duration: Optional[int] = None
    activities: List[Activity] = field(default_factory=list)


@dataclass(frozen=True)
class Course:
    id: int
    title: str
    duration: Optional[int] = None
    roles: List[Role] = field(default_factory=list)
    modules: List[Module] = field(default_factory=list)


@dataclass(frozen=True)
class SupportActivity:
    id: int
    title: str
    duration: Optional[int] = None


@dataclass(frozen=True)
class Curriculum:
    id: int
    title: str
    courses: List[Course] = field(default_factory=list)


@dataclass(frozen=True)
class GroupCurriculum:
    curriculum: Curriculum
    is_active: bool = True


@dataclass(frozen=True)
class TargetGroup:
    id: int
    name: str
    color_tag: Optional[str] = None
    participants: List[Participant] = field(default_factory=list)
    curricula: List[GroupCurriculum] = field(default_factory=list)


@dataclass(frozen=True)
class ProjectSettings:
    start_date: date
    end_date: Optional[date] = None
    start_of_day_time: str = "09:00"
    end_of_day_time: str = "17:00"
    lunch_time: Optional[str] = "12:00-13:00"
    timezone: str = "UTC"
    working_days: FrozenSet[str] = DEFAULT_WORKING_DAYS


@dataclass(frozen=True)
class Project:
    id: int
    title: str = ""
    settings: Optional[ProjectSettings] = None
    groups: List[TargetGroup] = field(default_factory=list)
    start_date: Optional[date] = None
    end_date: Optional[date] = None


@dataclass(frozen=True)
class PlanModule:
    """One entry of a training-plan day.

    Exactly one of the references is expected to be set: a course, a course
    module (whose parent course may be supplied in ``course``), a support
    activity, or a bare custom title.
    """

    order: int = 0
    course_id: Optional[int] = None
    course: Optional[Course] = None
    module_id: Optional[int] = None
    module: Optional[Module] = None
    support_activity_id: Optional[int] = None
    support_activity: Optional[SupportActivity] = None
    custom_title: Optional[str] = None
    custom_duration: Optional[int] = None


@dataclass(frozen=True)
class PlanDay:
    day_number: int
    modules: List[PlanModule] = field(default_factory=list)


@dataclass(frozen=True)
class TrainingPlan:
    id: int
    title: str = ""
    days: List[PlanDay] = field(default_factory=list)

    @property
    def total_days(self) -> int:
        return len(self.days)


@dataclass(frozen=True)
class SchedulableItem:
    kind: ItemKind
    id: Optional[int]
    title: str
    duration_minutes: int
    required_roles: FrozenSet[int] = frozenset()
    modules: List[Module] = field(default_factory=list)


@dataclass(frozen=True)
class ImportOptions:
    selected_groups: List[int] = field(default_factory=list)
    include_all_participants: bool = False
    follow_project_hours: bool = True
    assign_by_role: bool = False
    selected_roles: List[int] = field(default_factory=list)
    preserve_existing_events: bool = True
    insert_lunch_breaks: bool = False


@dataclass(frozen=True)
class EventDescriptor:
    title: str
    start: datetime
    end: datetime
    event_type: str
    course_id: Optional[int] = None
    group_id: Optional[int] = None
    participant_ids: List[int] = field(default_factory=list)
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def interval(self) -> Interval:
        return Interval(self.start, self.end)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "title": self.title,
            "start": self.start.isoformat(),
            "end": self.end.isoformat(),
            "event_type": self.event_type,
            "course_id": self.course_id,
            "group_id": self.group_id,
            "participant_ids": list(self.participant_ids),
            "metadata": dict(self.metadata),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "EventDescriptor":
        return cls(
            title=data["title"],
            start=datetime.fromisoformat(data["start"]),
            end=datetime.fromisoformat(data["end"]),
            event_type=data["event_type"],
            course_id=data.get("course_id"),
            group_id=data.get("group_id"),
            participant_ids=list(data.get("participant_ids") or []),
            metadata=dict(data.get("metadata") or {}),
        )


@dataclass(frozen=True)
class JobProgress:
    job_id: str
    status: JobStatus = JobStatus.STARTING
    processed: int = 0
    total: int = 0
    message: str = ""
    warnings: List[str] = field(default_factory=list)
    events: List[EventDescriptor] = field(default_factory=list)
    error: Optional[str] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "job_id": self.job_id,
            "status": self.status.value,
            "processed": self.processed,
            "total": self.total,
            "message": self.message,
            "warnings": list(self.warnings),
            "events": [e.to_dict() for e in self.events],
            "error": self.error,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "JobProgress":
        started = data.get("started_at")
        completed = data.get("completed_at")
        return cls(
            job_id=data["job_id"],
            status=JobStatus(data["status"]),
            processed=data.get("processed", 0),
            total=data.get("total", 0),
            message=data.get("message", ""),
            warnings=list(data.get("warnings") or []),
            events=[EventDescriptor.from_dict(e) for e in data.get("events") or []],
            error=data.get("error"),
            started_at=datetime.fromisoformat(started) if started else None,
            completed_at=datetime.fromisoformat(completed) if completed else None,
        )

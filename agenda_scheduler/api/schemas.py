from datetime import date, datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from agenda_scheduler.engine.curriculum import CurriculumScheduleResult
from agenda_scheduler.models.entities import (
    WEEKDAY_NAMES,
    Activity,
    Course,
    Curriculum,
    EventDescriptor,
    GroupCurriculum,
    ImportOptions,
    JobProgress,
    Module,
    Participant,
    PlanDay,
    PlanModule,
    Project,
    ProjectSettings,
    Role,
    SupportActivity,
    TargetGroup,
    TrainingPlan,
)


class CamelModel(BaseModel):
    """Accepts and emits camelCase keys; snake_case input is accepted too."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class RoleDTO(CamelModel):
    id: int
    name: str = ""

    def to_domain(self) -> Role:
        return Role(id=self.id, name=self.name)


class ActivityDTO(CamelModel):
    duration: Optional[int] = Field(None, ge=0)

    def to_domain(self) -> Activity:
        return Activity(duration=self.duration)


class ModuleDTO(CamelModel):
    id: int
    title: str = ""
    course_id: Optional[int] = None
    duration: Optional[int] = Field(None, ge=0)
    activities: List[ActivityDTO] = []

    def to_domain(self) -> Module:
        return Module(
            id=self.id,
            title=self.title,
            course_id=self.course_id,
            duration=self.duration,
            activities=[a.to_domain() for a in self.activities],
        )


class CourseDTO(CamelModel):
    id: int
    title: str
    duration: Optional[int] = Field(None, ge=0)
    roles: List[RoleDTO] = []
    modules: List[ModuleDTO] = []

    def to_domain(self) -> Course:
        return Course(
            id=self.id,
            title=self.title,
            duration=self.duration,
            roles=[r.to_domain() for r in self.roles],
            modules=[m.to_domain() for m in self.modules],
        )


class SupportActivityDTO(CamelModel):
    id: int
    title: str
    duration: Optional[int] = Field(None, ge=0)

    def to_domain(self) -> SupportActivity:
        return SupportActivity(id=self.id, title=self.title, duration=self.duration)


class ParticipantDTO(CamelModel):
    id: int
    name: str = ""
    role_id: Optional[int] = None

    def to_domain(self) -> Participant:
        return Participant(id=self.id, name=self.name, role_id=self.role_id)


class CurriculumDTO(CamelModel):
    id: int
    title: str
    courses: List[CourseDTO] = []

    def to_domain(self) -> Curriculum:
        return Curriculum(id=self.id, title=self.title, courses=[c.to_domain() for c in self.courses])


class GroupCurriculumDTO(CamelModel):
    curriculum: CurriculumDTO
    is_active: bool = True

    def to_domain(self) -> GroupCurriculum:
        return GroupCurriculum(curriculum=self.curriculum.to_domain(), is_active=self.is_active)


class GroupDTO(CamelModel):
    id: int
    name: str
    color_tag: Optional[str] = None
    participants: List[ParticipantDTO] = []
    curricula: List[GroupCurriculumDTO] = []

    def to_domain(self) -> TargetGroup:
        return TargetGroup(
            id=self.id,
            name=self.name,
            color_tag=self.color_tag,
            participants=[p.to_domain() for p in self.participants],
            curricula=[c.to_domain() for c in self.curricula],
        )


class ProjectSettingsDTO(CamelModel):
    start_date: date
    end_date: Optional[date] = None
    start_of_day_time: str = "09:00"
    end_of_day_time: str = "17:00"
    lunch_time: Optional[str] = "12:00-13:00"
    timezone: str = "UTC"
    working_days: List[str] = list(WEEKDAY_NAMES[:5])

    @field_validator("start_of_day_time", "end_of_day_time")
    @classmethod
    def validate_clock(cls, v: str):
        """Times of day are HH:MM."""
        parts = v.split(":")
        if len(parts) != 2 or not all(p.isdigit() for p in parts) or int(parts[1]) > 59:
            raise ValueError("time of day must be HH:MM")
        return v

    @field_validator("working_days")
    @classmethod
    def validate_working_days(cls, v: List[str]):
        """Working days are weekday names; emptiness is left to the scheduler to reject."""
        lowered = [d.lower() for d in v]
        for day in lowered:
            if day not in WEEKDAY_NAMES:
                raise ValueError(f"unknown weekday: {day}")
        return lowered

    def to_domain(self) -> ProjectSettings:
        return ProjectSettings(
            start_date=self.start_date,
            end_date=self.end_date,
            start_of_day_time=self.start_of_day_time,
            end_of_day_time=self.end_of_day_time,
            lunch_time=self.lunch_time,
            timezone=self.timezone,
            working_days=frozenset(self.working_days),
        )


class ProjectDTO(CamelModel):
    id: int
    title: str = ""
    settings: Optional[ProjectSettingsDTO] = None
    groups: List[GroupDTO] = []
    start_date: Optional[date] = None
    end_date: Optional[date] = None

    def to_domain(self) -> Project:
        return Project(
            id=self.id,
            title=self.title,
            settings=self.settings.to_domain() if self.settings else None,
            groups=[g.to_domain() for g in self.groups],
            start_date=self.start_date,
            end_date=self.end_date,
        )


class PlanModuleDTO(CamelModel):
    order: int = 0
    course_id: Optional[int] = None
    course: Optional[CourseDTO] = None
    module_id: Optional[int] = None
    module: Optional[ModuleDTO] = None
    support_activity_id: Optional[int] = None
    support_activity: Optional[SupportActivityDTO] = None
    custom_title: Optional[str] = None
    custom_duration: Optional[int] = None

    def to_domain(self) -> PlanModule:
        return PlanModule(
            order=self.order,
            course_id=self.course_id,
            course=self.course.to_domain() if self.course else None,
            module_id=self.module_id,
            module=self.module.to_domain() if self.module else None,
            support_activity_id=self.support_activity_id,
            support_activity=self.support_activity.to_domain() if self.support_activity else None,
            custom_title=self.custom_title,
            custom_duration=self.custom_duration,
        )


class PlanDayDTO(CamelModel):
    day_number: int = Field(..., ge=1)
    modules: List[PlanModuleDTO] = []

    def to_domain(self) -> PlanDay:
        return PlanDay(day_number=self.day_number, modules=[m.to_domain() for m in self.modules])


class TrainingPlanDTO(CamelModel):
    id: int
    title: str = ""
    days: List[PlanDayDTO] = []

    def to_domain(self) -> TrainingPlan:
        return TrainingPlan(id=self.id, title=self.title, days=[d.to_domain() for d in self.days])


class ImportAgendaRequest(CamelModel):
    project_id: int
    training_plan_id: int
    selected_groups: List[int] = []
    include_all_participants: bool = False
    follow_project_hours: bool = True
    assign_by_role: bool = False
    selected_roles: List[int] = []
    preserve_existing_events: bool = True
    insert_lunch_breaks: bool = False

    def to_options(self) -> ImportOptions:
        return ImportOptions(
            selected_groups=list(self.selected_groups),
            include_all_participants=self.include_all_participants,
            follow_project_hours=self.follow_project_hours,
            assign_by_role=self.assign_by_role,
            selected_roles=list(self.selected_roles),
            preserve_existing_events=self.preserve_existing_events,
            insert_lunch_breaks=self.insert_lunch_breaks,
        )


class ImportAcceptedResponse(CamelModel):
    success: bool = True
    job_id: str
    message: str


class EventDTO(CamelModel):
    id: Optional[int] = None
    title: str
    start: datetime
    end: datetime
    event_type: str
    course_id: Optional[int] = None
    group_id: Optional[int] = None
    participant_ids: List[int] = []
    metadata: Dict[str, Any] = {}

    @classmethod
    def from_domain(cls, e: EventDescriptor, event_id: Optional[int] = None) -> "EventDTO":
        return cls(
            id=event_id,
            title=e.title,
            start=e.start,
            end=e.end,
            event_type=e.event_type,
            course_id=e.course_id,
            group_id=e.group_id,
            participant_ids=list(e.participant_ids),
            metadata=dict(e.metadata),
        )


class JobStatusResponse(CamelModel):
    job_id: str
    status: str
    processed: int
    total: int
    message: str
    warnings: List[str]
    warning_count: int
    events: List[EventDTO]
    error: Optional[str] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    @classmethod
    def from_domain(cls, job: JobProgress) -> "JobStatusResponse":
        return cls(
            job_id=job.job_id,
            status=job.status.value,
            processed=job.processed,
            total=job.total,
            message=job.message,
            warnings=list(job.warnings),
            warning_count=len(job.warnings),
            events=[EventDTO.from_domain(e) for e in job.events],
            error=job.error,
            started_at=job.started_at,
            completed_at=job.completed_at,
        )


class CurriculumImportRequest(CamelModel):
    project_id: int


class CurriculumImportResponse(CamelModel):
    success: bool = True
    message: str
    events: List[EventDTO]
    warnings: List[str] = []
    total_courses: int
    imported_count: int
    groups_processed: int

    @classmethod
    def from_domain(cls, result: CurriculumScheduleResult) -> "CurriculumImportResponse":
        return cls(
            message=(
                f"Successfully imported {len(result.events)} events (courses + lunch breaks) "
                f"from curriculum for {result.groups_processed} groups"
            ),
            events=[EventDTO.from_domain(e) for e in result.events],
            warnings=list(result.warnings),
            total_courses=result.total_courses,
            imported_count=len(result.events),
            groups_processed=result.groups_processed,
        )

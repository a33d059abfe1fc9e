from datetime import datetime, timezone
from typing import List, Optional, Tuple

from sqlalchemy.orm import Session

from agenda_scheduler.api.schemas import ProjectDTO, TrainingPlanDTO
from agenda_scheduler.models.entities import EventDescriptor, Interval, Project, TrainingPlan
from agenda_scheduler.storage.database import (
    EventAttendeeModel,
    EventGroupModel,
    EventModel,
    ProjectModel,
    TrainingPlanModel,
)
from agenda_scheduler.storage.interfaces import EventSink, ProjectSource


def _to_utc_naive(instant: datetime) -> datetime:
    if instant.tzinfo is None:
        return instant
    return instant.astimezone(timezone.utc).replace(tzinfo=None)


def _from_utc_naive(instant: datetime) -> datetime:
    return instant.replace(tzinfo=timezone.utc)


class ProjectRepository(ProjectSource):
    def __init__(self, db: Session):
        self.db = db

    def get_project(self, project_id: int) -> Optional[Project]:
        model = self.db.query(ProjectModel).filter(ProjectModel.id == project_id).first()
        if not model:
            return None
        return ProjectDTO.model_validate(model.payload).to_domain()

    def save_project(self, project: ProjectDTO) -> None:
        payload = project.model_dump(mode="json", by_alias=True)
        existing = self.db.query(ProjectModel).filter(ProjectModel.id == project.id).first()
        if existing:
            existing.title = project.title
            existing.payload = payload
        else:
            self.db.add(ProjectModel(id=project.id, title=project.title, payload=payload))
        self.db.commit()

    def get_training_plan(self, training_plan_id: int) -> Optional[TrainingPlan]:
        model = self.db.query(TrainingPlanModel).filter(TrainingPlanModel.id == training_plan_id).first()
        if not model:
            return None
        return TrainingPlanDTO.model_validate(model.payload).to_domain()

    def save_training_plan(self, plan: TrainingPlanDTO) -> None:
        payload = plan.model_dump(mode="json", by_alias=True)
        existing = self.db.query(TrainingPlanModel).filter(TrainingPlanModel.id == plan.id).first()
        if existing:
            existing.title = plan.title
            existing.payload = payload
        else:
            self.db.add(TrainingPlanModel(id=plan.id, title=plan.title, payload=payload))
        self.db.commit()


class EventRepository(EventSink):
    """Writes events one by one; each is committed before the next is created."""

    def __init__(self, db: Session):
        self.db = db

    def create_event(self, project_id: int, event: EventDescriptor) -> Optional[int]:
        model = EventModel(
            project_id=project_id,
            title=event.title,
            start=_to_utc_naive(event.start),
            end=_to_utc_naive(event.end),
            event_type=event.event_type,
            course_id=event.course_id,
            color=event.metadata.get("color"),
            extended_props=dict(event.metadata),
        )
        self.db.add(model)
        self.db.flush()

        # Group and attendee links only exist for group-bound events
        if event.group_id is not None:
            self.db.add(EventGroupModel(event_id=model.id, group_id=event.group_id))
            for participant_id in event.participant_ids:
                self.db.add(EventAttendeeModel(event_id=model.id, enrollee_id=participant_id))
        self.db.commit()
        return model.id

    def list_intervals(self, project_id: int) -> List[Interval]:
        rows = (
            self.db.query(EventModel.start, EventModel.end)
            .filter(EventModel.project_id == project_id)
            .all()
        )
        return [Interval(_from_utc_naive(start), _from_utc_naive(end)) for start, end in rows]

    def list_events(self, project_id: int) -> List[Tuple[int, EventDescriptor]]:
        models = (
            self.db.query(EventModel)
            .filter(EventModel.project_id == project_id)
            .order_by(EventModel.start, EventModel.id)
            .all()
        )
        return [(m.id, self._model_to_event(m)) for m in models]

    def _model_to_event(self, model: EventModel) -> EventDescriptor:
        group_ids = [
            g.group_id for g in self.db.query(EventGroupModel).filter(EventGroupModel.event_id == model.id)
        ]
        attendee_ids = [
            a.enrollee_id for a in self.db.query(EventAttendeeModel).filter(EventAttendeeModel.event_id == model.id)
        ]
        return EventDescriptor(
            title=model.title,
            start=_from_utc_naive(model.start),
            end=_from_utc_naive(model.end),
            event_type=model.event_type,
            course_id=model.course_id,
            group_id=group_ids[0] if group_ids else None,
            participant_ids=attendee_ids,
            metadata=dict(model.extended_props or {}),
        )

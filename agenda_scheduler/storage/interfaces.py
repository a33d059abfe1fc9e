from abc import ABC, abstractmethod
from typing import List, Optional

from agenda_scheduler.models.entities import EventDescriptor, Interval, Project, TrainingPlan


class ProjectSource(ABC):
    """Read side of the persistence layer: projects and training plans, fully resolved."""

    @abstractmethod
    def get_project(self, project_id: int) -> Optional[Project]:
        pass

    @abstractmethod
    def get_training_plan(self, training_plan_id: int) -> Optional[TrainingPlan]:
        pass


class EventSink(ABC):
    """Write side: receives each created event, one at a time, in processing order."""

    @abstractmethod
    def create_event(self, project_id: int, event: EventDescriptor) -> Optional[int]:
        """Persist one event (plus its group and attendee links) and return its id."""
        pass

    def list_intervals(self, project_id: int) -> List[Interval]:
        """Intervals of events the project already holds."""
        return []


class NullEventSink(EventSink):
    """Sink used when nothing should be persisted."""

    def create_event(self, project_id: int, event: EventDescriptor) -> Optional[int]:
        return None

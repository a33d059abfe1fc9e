from typing import Iterable, Optional

from agenda_scheduler.config.settings import get_settings
from agenda_scheduler.models.entities import Course, Module


def module_minutes(module: Module) -> int:
    if module.duration:
        return module.duration
    return sum(a.duration or 0 for a in module.activities)


def modules_minutes(modules: Iterable[Module]) -> int:
    return sum(module_minutes(m) for m in modules)


def resolve_duration(override: Optional[int], computed: Optional[int]) -> int:
    """Explicit override, else computed duration, else the configured default.

    Zero and missing values both fall through to the next source.
    """
    return override or computed or get_settings().default_item_duration_minutes


def course_minutes(course: Course) -> int:
    """Course length for the curriculum import: its modules, else its own duration."""
    return resolve_duration(None, modules_minutes(course.modules) or course.duration)

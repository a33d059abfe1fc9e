class SchedulingError(Exception):
    """Base class for errors raised by the scheduling engine."""


class ConfigurationError(SchedulingError):
    """Working-hours or project settings cannot drive a scheduling run."""


class NotFoundError(SchedulingError):
    """A referenced project or training plan does not exist."""


class NoEligibleTargetsError(SchedulingError):
    """No target group is left to schedule after filtering."""


class ItemSchedulingWarning(SchedulingError):
    """A single plan item could not be scheduled.

    Never propagates past the per-item boundary: the scheduler turns it into
    a warning string on the job and moves on to the next item.
    """

    def __init__(self, title: str, reason: str):
        super().__init__(reason)
        self.title = title
        self.reason = reason

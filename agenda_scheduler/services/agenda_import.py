"""
Background execution of training-plan imports.

The kickoff request only creates the job record and enqueues the work; the
import itself runs later and reports through the job store. A run cannot be
cancelled once started. Events written before a failure stay written.
"""

import logging
import uuid
from datetime import datetime, timezone

from agenda_scheduler.engine.agenda import AgendaScheduler
from agenda_scheduler.models.entities import ImportOptions, JobProgress, JobStatus
from agenda_scheduler.models.errors import NotFoundError
from agenda_scheduler.storage.database import SessionLocal
from agenda_scheduler.storage.interfaces import EventSink, ProjectSource
from agenda_scheduler.storage.job_store import JobStore
from agenda_scheduler.storage.repositories import EventRepository, ProjectRepository


logger = logging.getLogger(__name__)


def start_agenda_import(job_store: JobStore) -> str:
    """Create a job record in ``starting`` state and return its id."""
    job_id = str(uuid.uuid4())
    job_store.create(JobProgress(
        job_id=job_id,
        status=JobStatus.STARTING,
        message="Initializing import process...",
        started_at=datetime.now(timezone.utc),
    ))
    logger.info("Created import job %s", job_id)
    return job_id


def run_agenda_import(
    job_id: str,
    project_id: int,
    training_plan_id: int,
    options: ImportOptions,
    job_store: JobStore,
    projects: ProjectSource,
    events: EventSink,
) -> JobProgress:
    """
    Fetch inputs and run the scheduler for one job.

    Any error escaping the scheduler's per-item handling is fatal for the run:
    it is logged and recorded on the job as ``failed``, never re-raised, since
    the only observer of a background run is the job record.
    """
    job_store.update(
        job_id,
        status=JobStatus.IN_PROGRESS,
        message="Fetching project and training plan data...",
    )
    try:
        project = projects.get_project(project_id)
        if project is None:
            raise NotFoundError("Project not found")
        plan = projects.get_training_plan(training_plan_id)
        if plan is None:
            raise NotFoundError("Training plan not found")

        existing = events.list_intervals(project_id) if options.preserve_existing_events else []
        scheduler = AgendaScheduler(job_store, job_id, event_sink=events)
        return scheduler.run(project, plan, options, existing_events=existing)
    except Exception as exc:
        logger.exception("Import agenda processing error for job %s", job_id)
        return job_store.update(
            job_id,
            status=JobStatus.FAILED,
            error=str(exc),
            message=f"Import failed: {exc}",
            completed_at=datetime.now(timezone.utc),
        )


def run_agenda_import_job(
    job_id: str,
    project_id: int,
    training_plan_id: int,
    options: ImportOptions,
    job_store: JobStore,
) -> None:
    """Background-task entry point: owns its own database session."""
    db = SessionLocal()
    try:
        run_agenda_import(
            job_id,
            project_id,
            training_plan_id,
            options,
            job_store,
            projects=ProjectRepository(db),
            events=EventRepository(db),
        )
    finally:
        db.close()

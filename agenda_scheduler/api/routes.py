from typing import List
import logging

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException
from sqlalchemy.orm import Session

from agenda_scheduler.api.schemas import (
    CurriculumImportRequest,
    CurriculumImportResponse,
    EventDTO,
    ImportAcceptedResponse,
    ImportAgendaRequest,
    JobStatusResponse,
    ProjectDTO,
    TrainingPlanDTO,
)
from agenda_scheduler.engine.curriculum import CurriculumScheduler
from agenda_scheduler.models.errors import ConfigurationError, NoEligibleTargetsError
from agenda_scheduler.services.agenda_import import run_agenda_import_job, start_agenda_import
from agenda_scheduler.storage.database import get_db
from agenda_scheduler.storage.job_store import JobStore, get_job_store
from agenda_scheduler.storage.repositories import EventRepository, ProjectRepository

router = APIRouter()
logger = logging.getLogger(__name__)


@router.put("/projects/{project_id}", response_model=ProjectDTO, summary="Register or replace a project")
def upsert_project(project_id: int, project: ProjectDTO, db: Session = Depends(get_db)):
    """Store a project document: settings, groups with participants and curricula."""
    if project.id != project_id:
        raise HTTPException(status_code=400, detail="Project id in body does not match URL")
    ProjectRepository(db).save_project(project)
    logger.info(f"Saved project {project_id} with {len(project.groups)} groups")
    return project


@router.put("/training-plans/{plan_id}", response_model=TrainingPlanDTO, summary="Register or replace a training plan")
def upsert_training_plan(plan_id: int, plan: TrainingPlanDTO, db: Session = Depends(get_db)):
    if plan.id != plan_id:
        raise HTTPException(status_code=400, detail="Training plan id in body does not match URL")
    ProjectRepository(db).save_training_plan(plan)
    logger.info(f"Saved training plan {plan_id} with {len(plan.days)} days")
    return plan


@router.get("/projects/{project_id}/events", response_model=List[EventDTO], summary="List a project's events")
def list_project_events(project_id: int, db: Session = Depends(get_db)):
    return [EventDTO.from_domain(event, event_id) for event_id, event in EventRepository(db).list_events(project_id)]


@router.post(
    "/agenda/imports",
    response_model=ImportAcceptedResponse,
    status_code=202,
    summary="Start a training-plan import",
)
def import_agenda(
    req: ImportAgendaRequest,
    background_tasks: BackgroundTasks,
    job_store: JobStore = Depends(get_job_store),
):
    """
    Schedule a training plan into a project's calendar.

    Returns immediately with a job id; the import runs in the background.
    Poll `GET /agenda/imports/{jobId}` for progress, warnings and the
    created events. Failures (unknown project or plan, invalid working
    hours, no groups left after filtering) only show up there, as
    `status == "failed"`.
    """
    logger.info(f"Import request: project={req.project_id} training_plan={req.training_plan_id}")
    job_id = start_agenda_import(job_store)
    background_tasks.add_task(
        run_agenda_import_job,
        job_id,
        req.project_id,
        req.training_plan_id,
        req.to_options(),
        job_store,
    )
    return ImportAcceptedResponse(
        job_id=job_id,
        message="Import process started. Use jobId to track progress.",
    )


@router.get("/agenda/imports/{job_id}", response_model=JobStatusResponse, summary="Poll an import job")
def import_agenda_status(job_id: str, job_store: JobStore = Depends(get_job_store)):
    job = job_store.get(job_id)
    if job is None:
        raise HTTPException(status_code=404, detail="Job not found")
    return JobStatusResponse.from_domain(job)


@router.post(
    "/curriculum/imports",
    response_model=CurriculumImportResponse,
    status_code=201,
    summary="Import group curricula as a schedule",
)
def import_curriculum_schedule(req: CurriculumImportRequest, db: Session = Depends(get_db)):
    """
    Schedule every course of every group's active curricula, course by
    course, one session per group, with one lunch event per scheduled date.

    **Error Handling:**
    - 404: Unknown project
    - 400: No groups, invalid working hours or lunch window, or a project
      end date before its first working day
    """
    project = ProjectRepository(db).get_project(req.project_id)
    if project is None:
        raise HTTPException(status_code=404, detail="Project not found")

    try:
        result = CurriculumScheduler(event_sink=EventRepository(db)).run(project)
    except (ConfigurationError, NoEligibleTargetsError) as exc:
        logger.warning(f"Curriculum import rejected for project {req.project_id}: {exc}")
        raise HTTPException(status_code=400, detail=str(exc))

    logger.info(f"Curriculum import for project {req.project_id}: {len(result.events)} events")
    return CurriculumImportResponse.from_domain(result)

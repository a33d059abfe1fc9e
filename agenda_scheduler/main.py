from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from agenda_scheduler.api.routes import router as api_router
from agenda_scheduler.config.settings import get_settings
from agenda_scheduler.storage.database import init_db
from agenda_scheduler.storage.job_store import RedisJobStore, get_job_store
from agenda_scheduler.utils.logging_config import setup_logging


# Setup logging
logger = setup_logging()
settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(f"Starting {settings.app_name}...")
    init_db()
    logger.info("Database initialized")
    logger.info(f"Job store backend: {settings.job_store_backend}")
    yield
    logger.info(f"Shutting down {settings.app_name}...")


app = FastAPI(
    title=settings.app_name,
    debug=settings.debug,
    description="Training-plan and curriculum scheduling into working-hours-aware project calendars",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(api_router, prefix="/api/v1", tags=["scheduling"])


@app.get("/health", tags=["health"])
def health_check():
    """Health check endpoint for monitoring and load balancers."""
    job_store = get_job_store()
    if isinstance(job_store, RedisJobStore):
        job_store_status = "ok" if job_store.health_check() else "unavailable"
    else:
        job_store_status = "ok"
    return {
        "status": "ok" if job_store_status == "ok" else "degraded",
        "app": settings.app_name,
        "version": "1.0.0",
        "jobStore": {"backend": settings.job_store_backend, "status": job_store_status},
    }

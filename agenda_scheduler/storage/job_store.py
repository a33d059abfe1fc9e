"""
Job Store

Key-addressed store for import job progress. A job id is written by exactly
one background task; any number of pollers read snapshots of it. Updates
are read-modify-write and give pollers no transactional view: a snapshot may
be taken between two updates of the same run.
"""

import json
import threading
from abc import ABC, abstractmethod
from dataclasses import replace
from functools import lru_cache
from typing import Dict, Optional

import redis

from agenda_scheduler.config.settings import get_settings
from agenda_scheduler.models.entities import JobProgress
from agenda_scheduler.models.errors import NotFoundError


class JobStore(ABC):
    @abstractmethod
    def create(self, progress: JobProgress) -> JobProgress:
        pass

    @abstractmethod
    def get(self, job_id: str) -> Optional[JobProgress]:
        pass

    @abstractmethod
    def _put(self, progress: JobProgress) -> None:
        pass

    def update(self, job_id: str, **changes) -> JobProgress:
        """Apply ``changes`` to the stored record and return the new snapshot."""
        current = self.get(job_id)
        if current is None:
            raise NotFoundError(f"Job {job_id} not found")
        updated = replace(current, **changes)
        self._put(updated)
        return updated


class InMemoryJobStore(JobStore):
    """Process-local store; records live until the process exits."""

    def __init__(self):
        self._jobs: Dict[str, JobProgress] = {}
        self._lock = threading.Lock()

    def create(self, progress: JobProgress) -> JobProgress:
        self._put(progress)
        return progress

    def get(self, job_id: str) -> Optional[JobProgress]:
        with self._lock:
            return self._jobs.get(job_id)

    def _put(self, progress: JobProgress) -> None:
        with self._lock:
            self._jobs[progress.job_id] = progress


class RedisJobStore(JobStore):
    """Redis-backed store: one JSON document per job, expiring after ``ttl_seconds``."""

    def __init__(self, redis_url: Optional[str] = None, ttl_seconds: Optional[int] = None, client=None):
        settings = get_settings()
        self.redis_client = client or redis.from_url(redis_url or settings.redis_url, decode_responses=True)
        self.ttl_seconds = ttl_seconds or settings.job_ttl_seconds

    @staticmethod
    def _key(job_id: str) -> str:
        return f"agenda-import:{job_id}"

    def create(self, progress: JobProgress) -> JobProgress:
        self._put(progress)
        return progress

    def get(self, job_id: str) -> Optional[JobProgress]:
        cached = self.redis_client.get(self._key(job_id))
        if cached:
            return JobProgress.from_dict(json.loads(cached))
        return None

    def _put(self, progress: JobProgress) -> None:
        self.redis_client.setex(
            self._key(progress.job_id),
            self.ttl_seconds,
            json.dumps(progress.to_dict()),
        )

    def health_check(self) -> bool:
        """Check Redis connection."""
        try:
            self.redis_client.ping()
            return True
        except redis.RedisError:
            return False


@lru_cache(maxsize=1)
def get_job_store() -> JobStore:
    settings = get_settings()
    if settings.job_store_backend == "redis":
        return RedisJobStore(settings.redis_url, settings.job_ttl_seconds)
    return InMemoryJobStore()

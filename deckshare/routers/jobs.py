from __future__ import annotations

from typing import Optional
from uuid import uuid4

from fastapi import APIRouter, status
from arq.connections import ArqRedis, create_pool, RedisSettings
from arq.jobs import Job, JobStatus

from deckshare.config import settings
from deckshare.schemas.common import JobEnqueueResponse, JobStatusResponse


router = APIRouter(prefix="/jobs", tags=["Jobs"])

# Module-level connection pool (lazy init)
_arq_pool: Optional[ArqRedis] = None


async def _get_arq() -> ArqRedis:
    """Get or create shared ArqRedis connection pool."""
    global _arq_pool
    if _arq_pool is None:
        _arq_pool = await create_pool(RedisSettings.from_dsn(settings.REDIS_URL))
    return _arq_pool


async def close_arq() -> None:
    global _arq_pool
    if _arq_pool is not None:
        await _arq_pool.aclose()
        _arq_pool = None


# A deck has at most one pending or running render job; finished ones do not block
ACTIVE_STATUSES = {JobStatus.deferred, JobStatus.queued, JobStatus.in_progress}
LATEST_JOB_TTL_SECONDS = 24 * 3600


def _latest_job_key(deckcode: str) -> str:
    return f"jobs:render:latest:{deckcode}"


@router.post("/render/{deckcode}", response_model=JobEnqueueResponse, status_code=status.HTTP_202_ACCEPTED)
async def enqueue_render(deckcode: str) -> JobEnqueueResponse:
    """Queue a background render, or point at the one already waiting or running."""
    arq = await _get_arq()
    latest = await arq.get(_latest_job_key(deckcode))
    if latest is not None:
        latest_id = latest.decode() if isinstance(latest, bytes) else latest
        if await Job(latest_id, arq).status() in ACTIVE_STATUSES:
            return JobEnqueueResponse(task_id=latest_id, queued=False)

    job_id = f"render:{deckcode}:{uuid4().hex[:12]}"
    job = await arq.enqueue_job("render_deck_image", deckcode, _job_id=job_id)
    if job is None:
        return JobEnqueueResponse(task_id=job_id, queued=False)
    await arq.set(_latest_job_key(deckcode), job_id, ex=LATEST_JOB_TTL_SECONDS)
    return JobEnqueueResponse(task_id=job_id, queued=True)


@router.get("/metrics")
async def jobs_metrics():
    """Return counters of render jobs activity in Redis."""
    arq = await _get_arq()

    async def _get_int(key: str) -> int:
        v = await arq.get(key)
        return int(v) if v is not None else 0

    return {
        "queued": await arq.zcard("arq:queue") or 0,
        "started": await _get_int("jobs:render:started"),
        "finished": await _get_int("jobs:render:finished"),
        "failed": await _get_int("jobs:render:failed"),
    }


@router.get("/{task_id}", response_model=JobStatusResponse)
async def get_job_status(task_id: str) -> JobStatusResponse:
    arq = await _get_arq()
    job = Job(task_id, arq)
    job_status = await job.status()
    result = None
    if job_status == JobStatus.complete:
        info = await job.result_info()
        result = info.result if info and info.success else None
    return JobStatusResponse(task_id=task_id, status=job_status.value, result=result)

from uuid import UUID

import structlog
from fastapi import APIRouter, Query, status

from imgforge.api.dependencies import Bus, Queue, Repository, Storage
from imgforge.api.schemas import (
    JobListResponse,
    JobResponse,
    RestartRequest,
    StatsResponse,
    VersionResponse,
)
from imgforge.domain.value_objects import JobId, ProcessingStatus
from imgforge.services.factory import build_lifecycle
from imgforge.use_cases.transitions import load_job

logger = structlog.get_logger()
router = APIRouter(prefix="/jobs", tags=["Jobs"])


@router.get(
    "",
    response_model=JobListResponse,
    summary="List jobs",
    description="Lists jobs, newest first, optionally filtered by status. Includes overall stats.",
)
async def list_jobs(
    repository: Repository,
    status_filter: ProcessingStatus | None = Query(None, alias="status"),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    include_stats: bool = Query(True),
):
    offset = (page - 1) * limit
    if status_filter is None:
        jobs = repository.find_all(limit=limit, offset=offset)
    else:
        jobs = repository.find_by_status(status_filter, limit=limit, offset=offset)
    total = repository.count(status_filter)
    stats = StatsResponse.from_stats(repository.get_stats()) if include_stats else None

    return JobListResponse(
        jobs=[JobResponse.from_job(job) for job in jobs],
        total=total,
        page=page,
        limit=limit,
        stats=stats,
    )


@router.get("/stats", response_model=StatsResponse, summary="Processing statistics")
async def get_stats(repository: Repository):
    return StatsResponse.from_stats(repository.get_stats())


@router.get(
    "/{job_id}",
    response_model=JobResponse,
    summary="Job details",
    description="""
Returns a job with its generated versions and their public URLs.

**Statuses:**
- `PENDING` - Uploaded, not yet queued
- `QUEUED` - Waiting for a worker
- `PROCESSING` - Generating versions
- `COMPLETED` - All four versions available
- `FAILED` - Generation failed; may be restarted
- `CANCELLED` - Cancelled; may be restarted
    """,
)
async def get_job(job_id: UUID, repository: Repository, storage: Storage):
    job = load_job(repository, JobId(str(job_id)))
    versions = [
        VersionResponse.from_version(version, storage.get_public_url(version.storage_path))
        for version in job.versions
    ]
    return JobResponse.from_job(job, versions)


@router.delete(
    "/{job_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Cancel job",
    description="Cancels a job that is PENDING, QUEUED or PROCESSING.",
)
async def cancel_job(job_id: UUID, repository: Repository, queue: Queue, bus: Bus):
    _, cancel, _ = build_lifecycle(repository, queue, bus)
    cancel.execute(JobId(str(job_id)))


@router.post(
    "/{job_id}/restart",
    response_model=JobResponse,
    summary="Restart job",
    description="Moves a FAILED or CANCELLED job back to PENDING and queues it again.",
)
async def restart_job(
    job_id: UUID,
    repository: Repository,
    queue: Queue,
    bus: Bus,
    payload: RestartRequest | None = None,
):
    _, _, restart = build_lifecycle(repository, queue, bus)
    run_ai = payload.run_ai_analysis if payload else False
    job = restart.execute(JobId(str(job_id)), requeue=True, run_ai_analysis=run_ai)
    logger.info("job_restart_requested", job_id=str(job.id))
    return JobResponse.from_job(job)

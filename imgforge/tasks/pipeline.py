import redis
import structlog

from imgforge.core.config import settings
from imgforge.domain.errors import RECOVERABLE_CODES, DomainError
from imgforge.domain.value_objects import JobId, ProcessingStatus
from imgforge.services.factory import build_pipeline, get_event_bus
from imgforge.services.repository import SqlAlchemyJobRepository
from imgforge.use_cases import RestartImageJob
from imgforge.use_cases.transitions import persist_transition

logger = structlog.get_logger()
redis_client = redis.from_url(settings.redis_url)


def is_duplicate(job_id: str) -> bool:
    """Check if job was already processed."""
    key = f"processed:{job_id}"
    return not redis_client.set(key, "1", nx=True, ex=3600)


def clear_processed(job_id: str) -> None:
    """Allow a failed job to be picked up again."""
    redis_client.delete(f"processed:{job_id}")


def acquire_lock(job_id: str, timeout: int = 1800) -> redis.lock.Lock | None:
    """Acquire distributed lock."""
    lock = redis_client.lock(f"lock:job:{job_id}", timeout=timeout)
    if lock.acquire(blocking=False):
        return lock
    return None


def process_image(job_id: str, run_ai_analysis: bool = False, retry_count: int = 0) -> dict:
    """Run the variant pipeline for one queued job."""
    logger.info("processing_started", job_id=job_id, attempt=retry_count + 1)

    if is_duplicate(job_id):
        logger.info("duplicate_skipped", job_id=job_id)
        return {"status": "skipped", "reason": "duplicate"}

    lock = acquire_lock(job_id, timeout=settings.job_lock_timeout_seconds)
    if not lock:
        logger.info("locked_skipped", job_id=job_id)
        return {"status": "skipped", "reason": "locked"}

    repository = SqlAlchemyJobRepository()
    event_bus = get_event_bus()

    try:
        job = repository.find_by_id(JobId(job_id))

        if job is None:
            return {"status": "error", "reason": "job_not_found"}

        if job.status in (ProcessingStatus.COMPLETED, ProcessingStatus.CANCELLED):
            return {"status": "skipped", "reason": job.status.value}

        if job.status == ProcessingStatus.FAILED:
            # Only a scheduled retry of a recoverable failure may reopen the job
            if retry_count == 0 or job.error_code not in RECOVERABLE_CODES:
                logger.info("failed_job_skipped", job_id=job_id, code=job.error_code, retry=retry_count)
                return {"status": "skipped", "reason": job.status.value}

            job = RestartImageJob(repository, event_bus).execute(job.id, requeue=False)
            persist_transition(job, ProcessingStatus.QUEUED, repository, event_bus)

        pipeline = build_pipeline(repository=repository, event_bus=event_bus)
        result = pipeline.execute(job.id, run_ai_analysis=run_ai_analysis)

        return {
            "status": "success",
            "job_id": job_id,
            "versions": len(result.versions),
            "elapsed_ms": round(result.elapsed_ms, 1),
        }

    except DomainError as e:
        logger.error("processing_failed", job_id=job_id, code=e.code, error=str(e), context=dict(e.context))
        clear_processed(job_id)
        retry = e.recoverable and retry_count < settings.max_retries - 1
        return {"status": "failed", "code": e.code, "error": str(e), "retry": retry}

    except Exception as e:
        logger.error("processing_failed", job_id=job_id, error=str(e))
        clear_processed(job_id)
        return {"status": "failed", "error": str(e), "retry": retry_count < settings.max_retries - 1}

    finally:
        try:
            lock.release()
        except redis.exceptions.LockError:
            logger.warning("lock_release_failed", job_id=job_id)

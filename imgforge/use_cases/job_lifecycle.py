import structlog

from imgforge.domain.errors import InvalidJobStateError
from imgforge.domain.image_job import ImageJob
from imgforge.domain.ports import EventBus, JobQueue, JobRepository
from imgforge.domain.value_objects import JobId, ProcessingStatus

from .transitions import ensure_can_transition, load_job, persist_transition, publish_event

logger = structlog.get_logger()


class EnqueueImageJob:
    """PENDING -> QUEUED, then hand the job to the workers."""

    def __init__(
        self, repository: JobRepository, queue: JobQueue, event_bus: EventBus | None = None
    ) -> None:
        self.repository = repository
        self.queue = queue
        self.event_bus = event_bus

    def execute(self, job_id: JobId | str, run_ai_analysis: bool = False) -> ImageJob:
        job = load_job(self.repository, job_id)
        ensure_can_transition(job, ProcessingStatus.QUEUED)
        if not job.has_source:
            raise InvalidJobStateError(str(job.id), job.status, ProcessingStatus.QUEUED)

        persist_transition(job, ProcessingStatus.QUEUED, self.repository, self.event_bus)
        self.queue.enqueue(str(job.id), run_ai_analysis=run_ai_analysis)

        logger.info("job_queued", job_id=str(job.id), run_ai=run_ai_analysis)
        return job


class CancelImageJob:
    def __init__(self, repository: JobRepository, event_bus: EventBus | None = None) -> None:
        self.repository = repository
        self.event_bus = event_bus

    def execute(self, job_id: JobId | str) -> ImageJob:
        job = load_job(self.repository, job_id)
        ensure_can_transition(job, ProcessingStatus.CANCELLED)
        previous = job.status
        persist_transition(job, ProcessingStatus.CANCELLED, self.repository, self.event_bus)
        logger.info("job_cancelled", job_id=str(job.id), previous=previous.value)
        return job


class RestartImageJob:
    """Explicitly bring a FAILED or CANCELLED job back to PENDING.

    Versions from the previous run are discarded. When an enqueuer is given
    and ``requeue`` is set, the job is queued again straight away.
    """

    def __init__(
        self,
        repository: JobRepository,
        event_bus: EventBus | None = None,
        enqueuer: EnqueueImageJob | None = None,
    ) -> None:
        self.repository = repository
        self.event_bus = event_bus
        self.enqueuer = enqueuer

    def execute(
        self, job_id: JobId | str, requeue: bool = True, run_ai_analysis: bool = False
    ) -> ImageJob:
        job = load_job(self.repository, job_id)
        if not job.status.is_restartable:
            raise InvalidJobStateError(str(job.id), job.status, ProcessingStatus.PENDING)

        previous = job.status
        event = job.restart()
        self.repository.save(job)
        publish_event(event, self.event_bus)
        logger.info("job_restarted", job_id=str(job.id), previous=previous.value)

        if requeue and self.enqueuer is not None:
            return self.enqueuer.execute(job.id, run_ai_analysis=run_ai_analysis)
        return job

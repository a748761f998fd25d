import structlog

from imgforge.domain.errors import InvalidJobStateError, JobNotFoundError
from imgforge.domain.events import JobStatusChanged
from imgforge.domain.image_job import ImageJob
from imgforge.domain.ports import EventBus, JobRepository
from imgforge.domain.value_objects import JobId, ProcessingStatus

logger = structlog.get_logger()


def load_job(repository: JobRepository, job_id: JobId | str) -> ImageJob:
    if not isinstance(job_id, JobId):
        job_id = JobId(str(job_id))
    job = repository.find_by_id(job_id)
    if job is None:
        raise JobNotFoundError(str(job_id))
    return job


def ensure_can_transition(job: ImageJob, target: ProcessingStatus) -> None:
    if not job.status.can_transition_to(target):
        raise InvalidJobStateError(str(job.id), job.status, target)


def persist_transition(
    job: ImageJob,
    target: ProcessingStatus,
    repository: JobRepository,
    event_bus: EventBus | None,
) -> JobStatusChanged | None:
    """Apply a status change, save the job, then publish the event."""
    event = job.update_status(target)
    repository.save(job)
    publish_event(event, event_bus)
    return event


def publish_event(event: JobStatusChanged | None, event_bus: EventBus | None) -> None:
    if event is None or event_bus is None:
        return
    event_bus.publish(event)
    logger.debug(
        "status_event_published",
        job_id=str(event.job_id),
        previous=event.previous_status.value,
        new=event.new_status.value,
    )

import copy
import threading
import uuid
from datetime import datetime
from typing import Any, Callable, Iterable

from sqlalchemy import func, select
from sqlalchemy.orm import Session, selectinload

from imgforge.domain.errors import JobNotFoundError
from imgforge.domain.image_job import ImageJob
from imgforge.domain.image_version import VariantKind
from imgforge.domain.ports import JobRepository, ProcessingStats
from imgforge.domain.value_objects import JobId, ProcessingStatus
from imgforge.models import ImageJobRecord, ImageVersionRecord, SessionLocal

_JOB_COLUMNS = (
    "file_name",
    "original_size",
    "original_path",
    "mime_type",
    "brand_context",
    "product_context",
    "created_at",
    "updated_at",
    "processing_started_at",
    "processing_ended_at",
    "error_code",
    "error_message",
)
_VERSION_COLUMNS = (
    "width",
    "height",
    "file_size",
    "file_path",
    "file_name",
    "format",
    "quality",
    "content_hash",
    "created_at",
)


def _duration_ms(started: datetime | None, ended: datetime | None) -> float | None:
    if started is None or ended is None:
        return None
    if (started.tzinfo is None) != (ended.tzinfo is None):
        started, ended = started.replace(tzinfo=None), ended.replace(tzinfo=None)
    return (ended - started).total_seconds() * 1000


def build_stats(
    counts: dict[ProcessingStatus, int], durations: Iterable[float | None]
) -> ProcessingStats:
    measured = [d for d in durations if d is not None]
    return ProcessingStats(
        total=sum(counts.values()),
        pending=counts.get(ProcessingStatus.PENDING, 0),
        queued=counts.get(ProcessingStatus.QUEUED, 0),
        processing=counts.get(ProcessingStatus.PROCESSING, 0),
        completed=counts.get(ProcessingStatus.COMPLETED, 0),
        failed=counts.get(ProcessingStatus.FAILED, 0),
        cancelled=counts.get(ProcessingStatus.CANCELLED, 0),
        average_processing_time_ms=sum(measured) / len(measured) if measured else None,
    )


class SqlAlchemyJobRepository(JobRepository):
    """Job repository over the ``image_jobs`` and ``image_versions`` tables."""

    def __init__(self, session_factory: Callable[[], Session] = SessionLocal) -> None:
        self.session_factory = session_factory

    def save(self, job: ImageJob) -> ImageJob:
        data = job.to_record()
        job_uuid = uuid.UUID(data["id"])

        with self.session_factory() as db:
            record = db.get(ImageJobRecord, job_uuid)
            if record is None:
                record = ImageJobRecord(id=job_uuid)
                db.add(record)

            for column in _JOB_COLUMNS:
                setattr(record, column, data[column])
            record.status = ProcessingStatus(data["status"])
            record.job_metadata = data["metadata"]

            existing = {v.version_type: v for v in record.versions}
            wanted = {VariantKind(v["version_type"]): v for v in data["versions"]}

            for kind, version_record in existing.items():
                if kind not in wanted:
                    record.versions.remove(version_record)

            for kind, version_data in wanted.items():
                version_record = existing.get(kind)
                if version_record is None:
                    version_record = ImageVersionRecord(version_type=kind)
                    record.versions.append(version_record)
                for column in _VERSION_COLUMNS:
                    setattr(version_record, column, version_data[column])

            db.commit()
        return job

    def find_by_id(self, job_id: JobId) -> ImageJob | None:
        with self.session_factory() as db:
            record = db.scalar(self._select().where(ImageJobRecord.id == uuid.UUID(str(job_id))))
            return _to_domain(record) if record else None

    def find_all(self, limit: int | None = None, offset: int = 0) -> list[ImageJob]:
        return self._find(None, limit, offset)

    def find_by_status(
        self, status: ProcessingStatus, limit: int | None = None, offset: int = 0
    ) -> list[ImageJob]:
        return self._find(status, limit, offset)

    def find_by_file_name(self, file_name: str) -> list[ImageJob]:
        with self.session_factory() as db:
            records = db.scalars(
                self._select()
                .where(ImageJobRecord.file_name == file_name)
                .order_by(ImageJobRecord.created_at.desc())
            ).all()
            return [_to_domain(r) for r in records]

    def count(self, status: ProcessingStatus | None = None) -> int:
        query = select(func.count()).select_from(ImageJobRecord)
        if status is not None:
            query = query.where(ImageJobRecord.status == status)
        with self.session_factory() as db:
            return db.scalar(query) or 0

    def delete(self, job_id: JobId) -> bool:
        with self.session_factory() as db:
            record = db.get(ImageJobRecord, uuid.UUID(str(job_id)))
            if record is None:
                return False
            db.delete(record)
            db.commit()
            return True

    def exists(self, job_id: JobId) -> bool:
        with self.session_factory() as db:
            return db.get(ImageJobRecord, uuid.UUID(str(job_id))) is not None

    def update_status(self, job_id: JobId, status: ProcessingStatus) -> ImageJob:
        job = self.find_by_id(job_id)
        if job is None:
            raise JobNotFoundError(str(job_id))
        job.update_status(status)
        return self.save(job)

    def get_stats(self) -> ProcessingStats:
        with self.session_factory() as db:
            rows = db.execute(
                select(ImageJobRecord.status, func.count()).group_by(ImageJobRecord.status)
            ).all()
            timings = db.execute(
                select(
                    ImageJobRecord.processing_started_at, ImageJobRecord.processing_ended_at
                ).where(ImageJobRecord.status == ProcessingStatus.COMPLETED)
            ).all()
        counts = {status: count for status, count in rows}
        return build_stats(counts, (_duration_ms(s, e) for s, e in timings))

    @staticmethod
    def _select():
        return select(ImageJobRecord).options(selectinload(ImageJobRecord.versions))

    def _find(self, status: ProcessingStatus | None, limit: int | None, offset: int) -> list[ImageJob]:
        query = self._select()
        if status is not None:
            query = query.where(ImageJobRecord.status == status)
        query = query.order_by(ImageJobRecord.created_at.desc()).offset(offset)
        if limit is not None:
            query = query.limit(limit)
        with self.session_factory() as db:
            return [_to_domain(r) for r in db.scalars(query).all()]


def _to_domain(record: ImageJobRecord) -> ImageJob:
    data: dict[str, Any] = {column: getattr(record, column) for column in _JOB_COLUMNS}
    data["id"] = str(record.id)
    data["status"] = record.status.value
    data["metadata"] = record.job_metadata or {}
    data["versions"] = [
        {
            "job_id": str(record.id),
            "version_type": v.version_type.value,
            **{column: getattr(v, column) for column in _VERSION_COLUMNS},
        }
        for v in record.versions
    ]
    return ImageJob.from_record(data)


class InMemoryJobRepository(JobRepository):
    """Keeps job snapshots in a dict. For tests and single-process runs."""

    def __init__(self) -> None:
        self._records: dict[str, dict[str, Any]] = {}
        self._lock = threading.Lock()

    def save(self, job: ImageJob) -> ImageJob:
        with self._lock:
            self._records[str(job.id)] = copy.deepcopy(job.to_record())
        return job

    def find_by_id(self, job_id: JobId) -> ImageJob | None:
        with self._lock:
            record = self._records.get(str(job_id))
            return ImageJob.from_record(copy.deepcopy(record)) if record else None

    def find_all(self, limit: int | None = None, offset: int = 0) -> list[ImageJob]:
        return self._find(None, limit, offset)

    def find_by_status(
        self, status: ProcessingStatus, limit: int | None = None, offset: int = 0
    ) -> list[ImageJob]:
        return self._find(status, limit, offset)

    def find_by_file_name(self, file_name: str) -> list[ImageJob]:
        return [job for job in self._find(None, None, 0) if str(job.file_name) == file_name]

    def count(self, status: ProcessingStatus | None = None) -> int:
        with self._lock:
            return sum(
                1 for r in self._records.values() if status is None or r["status"] == status.value
            )

    def delete(self, job_id: JobId) -> bool:
        with self._lock:
            return self._records.pop(str(job_id), None) is not None

    def exists(self, job_id: JobId) -> bool:
        with self._lock:
            return str(job_id) in self._records

    def update_status(self, job_id: JobId, status: ProcessingStatus) -> ImageJob:
        job = self.find_by_id(job_id)
        if job is None:
            raise JobNotFoundError(str(job_id))
        job.update_status(status)
        return self.save(job)

    def get_stats(self) -> ProcessingStats:
        with self._lock:
            records = list(self._records.values())
        counts: dict[ProcessingStatus, int] = {}
        for record in records:
            status = ProcessingStatus(record["status"])
            counts[status] = counts.get(status, 0) + 1
        durations = (
            _duration_ms(r["processing_started_at"], r["processing_ended_at"])
            for r in records
            if r["status"] == ProcessingStatus.COMPLETED.value
        )
        return build_stats(counts, durations)

    def _find(self, status: ProcessingStatus | None, limit: int | None, offset: int) -> list[ImageJob]:
        with self._lock:
            records = [
                copy.deepcopy(r)
                for r in self._records.values()
                if status is None or r["status"] == status.value
            ]
        records.sort(key=lambda r: r["created_at"], reverse=True)
        end = None if limit is None else offset + limit
        return [ImageJob.from_record(r) for r in records[offset:end]]

"""
ImageJob aggregate root.

Tracks one source image through upload and variant generation. State only
changes through the mutator methods below; each status change returns the
JobStatusChanged event for the caller to publish.
"""

from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any, Mapping

from .errors import (
    DuplicateVersionError,
    InvalidImageJobError,
    InvalidJobStateError,
    InvalidValueError,
    SourceAlreadyAttachedError,
)
from .events import JobStatusChanged
from .image_version import ImageVersion, VariantKind, VersionSet
from .value_objects import FileName, FileSize, JobId, ProcessingStatus

ALLOWED_MIME_TYPES = frozenset(
    {
        "image/jpeg",
        "image/png",
        "image/webp",
        "image/tiff",
        "image/svg+xml",
        "image/gif",
    }
)
MAX_SOURCE_SIZE = FileSize(50 * 1024 * 1024)


@dataclass(frozen=True)
class BrandContext:
    name: str
    vertical: str | None = None
    tone: str | None = None
    background: str | None = None


@dataclass(frozen=True)
class ProductContext:
    id: str | None = None
    category: str | None = None
    attributes: Mapping[str, Any] = field(default_factory=dict)


def _now() -> datetime:
    return datetime.now(timezone.utc)


class ImageJob:
    def __init__(
        self,
        job_id: JobId,
        file_name: FileName,
        original_size: FileSize,
        original_path: str,
        mime_type: str,
        status: ProcessingStatus = ProcessingStatus.PENDING,
        metadata: Mapping[str, Any] | None = None,
        brand_context: BrandContext | None = None,
        product_context: ProductContext | None = None,
        created_at: datetime | None = None,
        updated_at: datetime | None = None,
    ) -> None:
        self._id = job_id
        self._file_name = file_name
        self._original_size = original_size
        self._original_path = original_path
        self._mime_type = mime_type
        self._status = status
        self._versions = VersionSet()
        self._metadata = dict(metadata or {})
        self._brand_context = brand_context
        self._product_context = product_context
        self._created_at = created_at or _now()
        self._updated_at = updated_at or self._created_at
        self._processing_started_at: datetime | None = None
        self._processing_ended_at: datetime | None = None
        self._error_code: str | None = None
        self._error_message: str | None = None

    @classmethod
    def create(
        cls,
        file_name: str,
        original_path: str | None,
        mime_type: str,
        original_size: int = 0,
        metadata: Mapping[str, Any] | None = None,
        brand_context: BrandContext | None = None,
        product_context: ProductContext | None = None,
    ) -> "ImageJob":
        """Validate input and build a PENDING job with no versions.

        ``original_path`` may be None when the source has not been stored yet;
        an empty string is rejected. All violations are reported together.
        """
        violations: list[str] = []

        name: FileName | None = None
        if not file_name or not str(file_name).strip():
            violations.append("file name is required")
        else:
            try:
                name = FileName(file_name)
            except InvalidValueError as e:
                violations.append(f"file name {e.reason}")

        if original_path is not None and not original_path.strip():
            violations.append("original path must not be empty")

        if mime_type not in ALLOWED_MIME_TYPES:
            violations.append(
                f"MIME type '{mime_type}' is not allowed; expected one of "
                + ", ".join(sorted(ALLOWED_MIME_TYPES))
            )

        size: FileSize | None = None
        try:
            size = FileSize(original_size)
        except InvalidValueError as e:
            violations.append(f"file size {e.reason}")
        if size is not None and size.exceeds(MAX_SOURCE_SIZE):
            violations.append(
                f"file size {size.bytes} exceeds maximum of {MAX_SOURCE_SIZE.bytes} bytes"
            )

        if violations:
            raise InvalidImageJobError(violations)

        return cls(
            job_id=JobId.generate(),
            file_name=name,
            original_size=size,
            original_path=original_path or "",
            mime_type=mime_type,
            metadata=metadata,
            brand_context=brand_context,
            product_context=product_context,
        )

    # ------------------------------------------------------------------
    # Read access

    @property
    def id(self) -> JobId:
        return self._id

    @property
    def file_name(self) -> FileName:
        return self._file_name

    @property
    def original_size(self) -> FileSize:
        return self._original_size

    @property
    def original_path(self) -> str:
        return self._original_path

    @property
    def mime_type(self) -> str:
        return self._mime_type

    @property
    def status(self) -> ProcessingStatus:
        return self._status

    @property
    def versions(self) -> VersionSet:
        return self._versions

    @property
    def metadata(self) -> dict[str, Any]:
        return dict(self._metadata)

    @property
    def brand_context(self) -> BrandContext | None:
        return self._brand_context

    @property
    def product_context(self) -> ProductContext | None:
        return self._product_context

    @property
    def created_at(self) -> datetime:
        return self._created_at

    @property
    def updated_at(self) -> datetime:
        return self._updated_at

    @property
    def processing_started_at(self) -> datetime | None:
        return self._processing_started_at

    @property
    def processing_ended_at(self) -> datetime | None:
        return self._processing_ended_at

    @property
    def error_code(self) -> str | None:
        return self._error_code

    @property
    def error_message(self) -> str | None:
        return self._error_message

    @property
    def has_source(self) -> bool:
        return bool(self._original_path)

    @property
    def storage_base(self) -> str:
        """Product id when known, otherwise the job id."""
        if self._product_context and self._product_context.id:
            return self._product_context.id
        return str(self._id)

    # ------------------------------------------------------------------
    # Mutators

    def update_status(self, new_status: ProcessingStatus) -> JobStatusChanged | None:
        """Set the status; returns None when unchanged.

        The transition table is not checked here; callers check
        ``status.can_transition_to`` first.
        """
        if new_status == self._status:
            return None

        previous = self._status
        now = _now()
        self._status = new_status
        self._updated_at = now

        if new_status == ProcessingStatus.PROCESSING:
            self._processing_started_at = now
            self._processing_ended_at = None
        elif new_status in (ProcessingStatus.COMPLETED, ProcessingStatus.FAILED):
            self._processing_ended_at = now

        return JobStatusChanged(
            job_id=self._id, previous_status=previous, new_status=new_status, occurred_at=now
        )

    def add_version(self, version: ImageVersion) -> None:
        if self._versions.get(version.kind) is not None:
            raise DuplicateVersionError(str(self._id), version.kind)
        self._versions = self._versions.with_version(version)
        self._updated_at = _now()

    def get_version(self, kind: VariantKind) -> ImageVersion | None:
        return self._versions.get(kind)

    def attach_source(self, path: str) -> None:
        """Record where the source bytes were stored. Allowed once."""
        if self._original_path:
            raise SourceAlreadyAttachedError(str(self._id), self._original_path)
        if not path or not path.strip():
            raise InvalidValueError("original path", path, "must not be empty")
        self._original_path = path
        self._updated_at = _now()

    def record_error(self, code: str, message: str) -> None:
        self._error_code = code
        self._error_message = message[:500]
        self._updated_at = _now()

    def restart(self) -> JobStatusChanged | None:
        """Back to PENDING, discarding versions and error details of the last run.

        Only FAILED and CANCELLED jobs can be restarted.
        """
        if not self._status.is_restartable:
            raise InvalidJobStateError(str(self._id), self._status, ProcessingStatus.PENDING)
        self._versions = VersionSet()
        self._error_code = None
        self._error_message = None
        self._processing_started_at = None
        self._processing_ended_at = None
        return self.update_status(ProcessingStatus.PENDING)

    # ------------------------------------------------------------------
    # Persistence

    def to_record(self) -> dict[str, Any]:
        return {
            "id": str(self._id),
            "file_name": str(self._file_name),
            "original_size": self._original_size.bytes,
            "original_path": self._original_path,
            "mime_type": self._mime_type,
            "status": self._status.value,
            "versions": [version.to_record() for version in self._versions],
            "metadata": dict(self._metadata),
            "brand_context": asdict(self._brand_context) if self._brand_context else None,
            "product_context": (
                {
                    "id": self._product_context.id,
                    "category": self._product_context.category,
                    "attributes": dict(self._product_context.attributes),
                }
                if self._product_context
                else None
            ),
            "created_at": self._created_at,
            "updated_at": self._updated_at,
            "processing_started_at": self._processing_started_at,
            "processing_ended_at": self._processing_ended_at,
            "error_code": self._error_code,
            "error_message": self._error_message,
        }

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> "ImageJob":
        brand = record.get("brand_context")
        product = record.get("product_context")
        job = cls(
            job_id=JobId(str(record["id"])),
            file_name=FileName(record["file_name"]),
            original_size=FileSize(record["original_size"]),
            original_path=record.get("original_path") or "",
            mime_type=record["mime_type"],
            status=ProcessingStatus(record["status"]),
            metadata=record.get("metadata"),
            brand_context=BrandContext(**brand) if brand else None,
            product_context=ProductContext(**product) if product else None,
            created_at=record.get("created_at"),
            updated_at=record.get("updated_at"),
        )
        for version_record in record.get("versions") or []:
            version = ImageVersion.from_record(version_record)
            job._versions = job._versions.with_version(version)
        job._processing_started_at = record.get("processing_started_at")
        job._processing_ended_at = record.get("processing_ended_at")
        job._error_code = record.get("error_code")
        job._error_message = record.get("error_message")
        return job

    def __repr__(self) -> str:
        return f"ImageJob(id={self._id}, status={self._status.value}, versions={len(self._versions)})"

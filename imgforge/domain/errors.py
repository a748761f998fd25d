"""
Domain errors.

Every failure raised by the domain and the use cases is a DomainError carrying
a short code, a UTC timestamp and a recoverability flag. Subclasses keep their
details as typed attributes; ``context`` exposes them as a read-only mapping
for logs and API payloads.
"""

from datetime import datetime, timezone
from enum import Enum
from types import MappingProxyType
from typing import Any, Iterable, Mapping


class DomainError(Exception):
    """Base class for domain failures."""

    code: str = "DOMAIN_ERROR"
    recoverable: bool = False
    context_fields: tuple[str, ...] = ()

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message
        self.timestamp = datetime.now(timezone.utc)

    @property
    def context(self) -> Mapping[str, Any]:
        values = {}
        for name in self.context_fields:
            value = getattr(self, name)
            if isinstance(value, BaseException):
                value = str(value)
            elif isinstance(value, Enum):
                value = value.value
            values[name] = value
        return MappingProxyType(values)

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": type(self).__name__,
            "code": self.code,
            "message": self.message,
            "context": dict(self.context),
            "timestamp": self.timestamp.isoformat(),
            "recoverable": self.recoverable,
        }


# ============= VALIDATION =============


class InvalidValueError(DomainError, ValueError):
    """A value object rejected its input."""

    code = "INVALID_VALUE"
    recoverable = True
    context_fields = ("field", "value", "reason")

    def __init__(self, field: str, value: Any, reason: str):
        self.field = field
        self.value = value
        self.reason = reason
        super().__init__(f"Invalid {field} {value!r}: {reason}")


class InvalidImageJobError(DomainError):
    """Job creation input failed validation; lists every violated rule."""

    code = "INVALID_IMAGE_JOB"
    recoverable = True
    context_fields = ("violations",)

    def __init__(self, violations: Iterable[str]):
        self.violations = tuple(violations)
        super().__init__("Invalid image job: " + "; ".join(self.violations))


class FileTooLargeError(DomainError):
    code = "FILE_TOO_LARGE"
    recoverable = True
    context_fields = ("file_size", "max_size")

    def __init__(self, file_size: int, max_size: int):
        self.file_size = file_size
        self.max_size = max_size
        super().__init__(f"File size {file_size} bytes exceeds maximum of {max_size} bytes")


class UnsupportedMediaTypeError(DomainError):
    code = "INVALID_FILE_TYPE"
    recoverable = True
    context_fields = ("mime_type", "allowed")

    def __init__(self, mime_type: str, allowed: Iterable[str]):
        self.mime_type = mime_type
        self.allowed = tuple(sorted(allowed))
        super().__init__(
            f"Unsupported MIME type '{mime_type}'. Allowed: {', '.join(self.allowed)}"
        )


class MissingSourceError(DomainError):
    code = "MISSING_SOURCE"
    recoverable = True

    def __init__(self) -> None:
        super().__init__("Either file bytes or a source URL must be provided")


class DownloadFailedError(DomainError):
    code = "DOWNLOAD_FAILED"
    recoverable = True
    context_fields = ("url", "status_code", "reason")

    def __init__(self, url: str, status_code: int | None = None, reason: str = ""):
        self.url = url
        self.status_code = status_code
        self.reason = reason
        detail = f"HTTP {status_code}" if status_code is not None else reason
        super().__init__(f"Failed to download '{url}': {detail}")


# ============= STATE =============


class JobNotFoundError(DomainError):
    code = "JOB_NOT_FOUND"
    recoverable = False
    context_fields = ("job_id",)

    def __init__(self, job_id: str):
        self.job_id = str(job_id)
        super().__init__(f"Job {self.job_id} not found")


class InvalidJobStateError(DomainError):
    code = "INVALID_JOB_STATE"
    recoverable = False
    context_fields = ("job_id", "current", "target")

    def __init__(self, job_id: str, current: Any, target: Any):
        self.job_id = str(job_id)
        self.current = current
        self.target = target
        super().__init__(
            f"Job {self.job_id} cannot transition from "
            f"{getattr(current, 'value', current)} to {getattr(target, 'value', target)}"
        )


class DuplicateVersionError(DomainError):
    code = "DUPLICATE_VERSION"
    recoverable = False
    context_fields = ("job_id", "kind")

    def __init__(self, job_id: str, kind: Any):
        self.job_id = str(job_id)
        self.kind = kind
        super().__init__(
            f"Job {self.job_id} already has a {getattr(kind, 'value', kind)} version"
        )


class SourceAlreadyAttachedError(DomainError):
    code = "SOURCE_ALREADY_ATTACHED"
    recoverable = False
    context_fields = ("job_id", "path")

    def __init__(self, job_id: str, path: str):
        self.job_id = str(job_id)
        self.path = path
        super().__init__(f"Job {self.job_id} already has its source stored at '{path}'")


class JobInterruptedError(DomainError):
    """The stored job left PROCESSING while a run was still working on it."""

    code = "JOB_INTERRUPTED"
    recoverable = False
    context_fields = ("job_id", "status")

    def __init__(self, job_id: str, status: Any):
        self.job_id = str(job_id)
        self.status = status
        super().__init__(
            f"Job {self.job_id} was moved to {getattr(status, 'value', status)} during processing"
        )


# ============= PIPELINE =============


class VersionGenerationError(DomainError):
    """A single variant failed to transform or store."""

    code = "VERSION_GENERATION_FAILED"
    recoverable = False
    context_fields = ("job_id", "kind", "cause")

    def __init__(self, job_id: str, kind: Any, cause: BaseException):
        self.job_id = str(job_id)
        self.kind = kind
        self.cause = cause
        super().__init__(
            f"Failed to generate {getattr(kind, 'value', kind)} for job {self.job_id}: {cause}"
        )


class PipelineTimeoutError(DomainError):
    code = "PIPELINE_TIMEOUT"
    recoverable = True
    context_fields = ("job_id", "timeout_seconds", "next_kind")

    def __init__(self, job_id: str, timeout_seconds: float, next_kind: Any):
        self.job_id = str(job_id)
        self.timeout_seconds = timeout_seconds
        self.next_kind = next_kind
        super().__init__(
            f"Job {self.job_id} exceeded {timeout_seconds}s before "
            f"{getattr(next_kind, 'value', next_kind)}"
        )


class PipelineError(DomainError):
    """Unexpected failure during a pipeline run; the job may be resubmitted."""

    code = "PIPELINE_ERROR"
    recoverable = True
    context_fields = ("job_id", "cause")

    def __init__(self, job_id: str, cause: BaseException):
        self.job_id = str(job_id)
        self.cause = cause
        super().__init__(f"Pipeline failed for job {self.job_id}: {cause}")


# ============= ADAPTERS =============


class ImageProcessingError(DomainError):
    code = "IMAGE_PROCESSING_ERROR"
    recoverable = True
    context_fields = ("operation", "reason")

    def __init__(self, operation: str, reason: str):
        self.operation = operation
        self.reason = reason
        super().__init__(f"Image operation '{operation}' failed: {reason}")


class StorageError(DomainError):
    code = "STORAGE_ERROR"
    recoverable = True
    context_fields = ("operation", "path", "reason")

    def __init__(self, operation: str, path: str, reason: str):
        self.operation = operation
        self.path = path
        self.reason = reason
        super().__init__(f"Storage operation '{operation}' on '{path}' failed: {reason}")


class AIAnalysisError(DomainError):
    code = "AI_ANALYSIS_ERROR"
    recoverable = True
    context_fields = ("reason",)

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"AI analysis failed: {reason}")


def _error_classes(base: type[DomainError] = DomainError):
    for cls in base.__subclasses__():
        yield cls
        yield from _error_classes(cls)


RECOVERABLE_CODES = frozenset(cls.code for cls in _error_classes() if cls.recoverable)

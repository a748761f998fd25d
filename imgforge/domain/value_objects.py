"""
Self-validating value objects for the image pipeline.

All value objects are immutable and raise InvalidValueError on bad input.
"""

import enum
import math
import re
import uuid
from dataclasses import dataclass

from .errors import InvalidValueError

_UUID_V4 = re.compile(
    r"^[0-9a-f]{8}-[0-9a-f]{4}-4[0-9a-f]{3}-[89ab][0-9a-f]{3}-[0-9a-f]{12}$",
    re.IGNORECASE,
)
_FILE_NAME_CHARS = re.compile(r"^[a-zA-Z0-9_.-]+$")

MAX_FILE_NAME_LENGTH = 255
MAX_DIMENSION = 16384


@dataclass(frozen=True)
class JobId:
    """UUID v4 job identifier."""

    value: str

    def __post_init__(self) -> None:
        if not isinstance(self.value, str) or not _UUID_V4.match(self.value):
            raise InvalidValueError("job id", self.value, "must be a UUID v4")
        object.__setattr__(self, "value", self.value.lower())

    @classmethod
    def generate(cls) -> "JobId":
        return cls(str(uuid.uuid4()))

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class FileName:
    value: str

    def __post_init__(self) -> None:
        value = self.value
        if not isinstance(value, str) or not value.strip():
            raise InvalidValueError("file name", value, "must not be empty")
        if len(value) > MAX_FILE_NAME_LENGTH:
            raise InvalidValueError(
                "file name", value, f"must be at most {MAX_FILE_NAME_LENGTH} characters"
            )
        if "/" in value or "\\" in value:
            raise InvalidValueError("file name", value, "must not contain path separators")
        if ".." in value:
            raise InvalidValueError("file name", value, "must not contain '..'")
        if not _FILE_NAME_CHARS.match(value):
            raise InvalidValueError(
                "file name", value, "may only contain letters, digits, '_', '-' and '.'"
            )
        stem, dot, extension = value.rpartition(".")
        if not dot or not extension:
            raise InvalidValueError("file name", value, "must have an extension")

    @property
    def extension(self) -> str:
        """Lowercased extension without the dot."""
        return self.value.rpartition(".")[2].lower()

    @property
    def stem(self) -> str:
        """Name without extension; a leading-dot name is its own stem."""
        index = self.value.rfind(".")
        return self.value if index <= 0 else self.value[:index]

    def with_prefix(self, prefix: str) -> "FileName":
        return FileName(f"{prefix}{self.value}")

    def __str__(self) -> str:
        return self.value


_SIZE_UNITS = {"B": 1, "KB": 1024, "MB": 1024**2, "GB": 1024**3, "TB": 1024**4}
_FORMATTED_SIZE = re.compile(r"^\s*(\d+(?:\.\d+)?)\s*(B|KB|MB|GB|TB)\s*$", re.IGNORECASE)


@dataclass(frozen=True, order=True)
class FileSize:
    """Non-negative integer byte count."""

    bytes: int

    def __post_init__(self) -> None:
        value = self.bytes
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise InvalidValueError("file size", value, "must be a number")
        if isinstance(value, float):
            if not math.isfinite(value):
                raise InvalidValueError("file size", value, "must be finite")
            if not value.is_integer():
                raise InvalidValueError("file size", value, "must be a whole number of bytes")
            object.__setattr__(self, "bytes", int(value))
        if self.bytes < 0:
            raise InvalidValueError("file size", value, "must not be negative")

    @classmethod
    def from_kilobytes(cls, kb: float) -> "FileSize":
        return cls(round(kb * 1024))

    @classmethod
    def from_megabytes(cls, mb: float) -> "FileSize":
        return cls(round(mb * 1024**2))

    @classmethod
    def from_formatted_string(cls, text: str) -> "FileSize":
        """Parse strings such as ``"512 KB"`` or ``"1.5MB"``."""
        match = _FORMATTED_SIZE.match(text or "")
        if not match:
            raise InvalidValueError("file size", text, "unrecognised size format")
        amount, unit = match.groups()
        return cls(round(float(amount) * _SIZE_UNITS[unit.upper()]))

    @property
    def kilobytes(self) -> float:
        return self.bytes / 1024

    @property
    def megabytes(self) -> float:
        return self.bytes / 1024**2

    @property
    def gigabytes(self) -> float:
        return self.bytes / 1024**3

    def exceeds(self, limit: "FileSize | int") -> bool:
        limit_bytes = limit.bytes if isinstance(limit, FileSize) else limit
        return self.bytes > limit_bytes

    def formatted(self) -> str:
        if self.bytes < 1024:
            return f"{self.bytes} B"
        for unit in ("KB", "MB", "GB"):
            amount = self.bytes / _SIZE_UNITS[unit]
            if amount < 1024 or unit == "GB":
                return f"{amount:.2f} {unit}"
        return f"{self.bytes} B"

    def __int__(self) -> int:
        return self.bytes

    def __str__(self) -> str:
        return self.formatted()


def _even_floor(value: int) -> int:
    return max(2, value - value % 2)


@dataclass(frozen=True)
class Resolution:
    width: int
    height: int

    def __post_init__(self) -> None:
        for name in ("width", "height"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int):
                raise InvalidValueError(name, value, "must be an integer")
            if value <= 0:
                raise InvalidValueError(name, value, "must be positive")
            if value > MAX_DIMENSION:
                raise InvalidValueError(name, value, f"must not exceed {MAX_DIMENSION}")

    @classmethod
    def square(cls, size: int) -> "Resolution":
        return cls(size, size)

    @property
    def aspect_ratio(self) -> float:
        return self.width / self.height

    @property
    def megapixels(self) -> float:
        return self.width * self.height / 1_000_000

    @property
    def is_square(self) -> bool:
        return self.width == self.height

    @property
    def is_landscape(self) -> bool:
        return self.width > self.height

    @property
    def is_portrait(self) -> bool:
        return self.height > self.width

    def fits_within(self, other: "Resolution") -> bool:
        return self.width <= other.width and self.height <= other.height

    def fit_within(self, max_width: int, max_height: int) -> "Resolution":
        """Largest aspect-preserving size inside the bounds, with even dimensions."""
        ratio = min(max_width / self.width, max_height / self.height)
        width = _even_floor(round(self.width * ratio))
        height = _even_floor(round(self.height * ratio))
        return Resolution(min(width, MAX_DIMENSION), min(height, MAX_DIMENSION))

    def cover(self, target_width: int, target_height: int) -> "Resolution":
        """Smallest aspect-preserving size covering the target, with even dimensions."""
        if self.aspect_ratio > target_width / target_height:
            height = target_height
            width = round(target_height * self.aspect_ratio)
        else:
            width = target_width
            height = round(target_width / self.aspect_ratio)
        width = _even_floor(width)
        height = _even_floor(height)
        return Resolution(min(width, MAX_DIMENSION), min(height, MAX_DIMENSION))

    def __str__(self) -> str:
        return f"{self.width}x{self.height}"


class ProcessingStatus(str, enum.Enum):
    PENDING = "PENDING"
    QUEUED = "QUEUED"
    PROCESSING = "PROCESSING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    CANCELLED = "CANCELLED"

    @classmethod
    def from_string(cls, value: str) -> "ProcessingStatus":
        try:
            return cls(value.strip().upper())
        except (AttributeError, ValueError):
            raise InvalidValueError("processing status", value, "unknown status") from None

    @property
    def allowed_transitions(self) -> frozenset["ProcessingStatus"]:
        return _TRANSITIONS[self]

    def can_transition_to(self, target: "ProcessingStatus") -> bool:
        return target in _TRANSITIONS[self]

    @property
    def is_terminal(self) -> bool:
        """No automatic re-processing happens from this status."""
        return self in (ProcessingStatus.COMPLETED, ProcessingStatus.FAILED, ProcessingStatus.CANCELLED)

    @property
    def is_restartable(self) -> bool:
        """Terminal, but an explicit restart may move it back to PENDING."""
        return ProcessingStatus.PENDING in _TRANSITIONS[self]

    @property
    def is_active(self) -> bool:
        return self in (ProcessingStatus.QUEUED, ProcessingStatus.PROCESSING)

    @property
    def description(self) -> str:
        return _DESCRIPTIONS[self]


_TRANSITIONS: dict[ProcessingStatus, frozenset[ProcessingStatus]] = {
    ProcessingStatus.PENDING: frozenset({ProcessingStatus.QUEUED, ProcessingStatus.CANCELLED}),
    ProcessingStatus.QUEUED: frozenset({ProcessingStatus.PROCESSING, ProcessingStatus.CANCELLED}),
    ProcessingStatus.PROCESSING: frozenset(
        {ProcessingStatus.COMPLETED, ProcessingStatus.FAILED, ProcessingStatus.CANCELLED}
    ),
    ProcessingStatus.COMPLETED: frozenset(),
    ProcessingStatus.FAILED: frozenset({ProcessingStatus.PENDING}),
    ProcessingStatus.CANCELLED: frozenset({ProcessingStatus.PENDING}),
}

_DESCRIPTIONS = {
    ProcessingStatus.PENDING: "Waiting to be queued",
    ProcessingStatus.QUEUED: "Waiting in queue",
    ProcessingStatus.PROCESSING: "Generating image versions",
    ProcessingStatus.COMPLETED: "All versions generated",
    ProcessingStatus.FAILED: "Processing failed",
    ProcessingStatus.CANCELLED: "Cancelled",
}


@dataclass(frozen=True)
class CropRegion:
    """Rectangle in normalised 0..1 coordinates of the source image."""

    x: float
    y: float
    width: float
    height: float

    def __post_init__(self) -> None:
        for name in ("x", "y", "width", "height"):
            value = getattr(self, name)
            if not isinstance(value, (int, float)) or not math.isfinite(value):
                raise InvalidValueError(f"crop {name}", value, "must be a finite number")
            if not 0 <= value <= 1:
                raise InvalidValueError(f"crop {name}", value, "must be between 0 and 1")
        if self.width == 0 or self.height == 0:
            raise InvalidValueError("crop region", (self.width, self.height), "must have an area")
        if self.x + self.width > 1.000001 or self.y + self.height > 1.000001:
            raise InvalidValueError("crop region", (self.x, self.y), "must lie inside the image")

    def to_pixels(self, width: int, height: int) -> tuple[int, int, int, int]:
        """Pixel box ``(left, top, right, bottom)`` clamped to the image, even-sized."""
        left = min(max(0, round(self.x * width)), width - 1)
        top = min(max(0, round(self.y * height)), height - 1)
        box_width = min(round(self.width * width), width - left)
        box_height = min(round(self.height * height), height - top)
        if box_width > 1:
            box_width -= box_width % 2
        if box_height > 1:
            box_height -= box_height % 2
        return left, top, left + max(1, box_width), top + max(1, box_height)

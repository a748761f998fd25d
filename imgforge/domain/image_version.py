import enum
from dataclasses import dataclass, field, fields, replace
from datetime import datetime, timezone
from typing import Iterator

from .value_objects import FileName, FileSize, JobId, Resolution


class VariantKind(str, enum.Enum):
    V1_MASTER = "V1_MASTER"
    V2_GRID = "V2_GRID"
    V3_PDP = "V3_PDP"
    V4_THUMBNAIL = "V4_THUMBNAIL"

    @property
    def config(self) -> "VariantConfig":
        return VARIANT_CONFIG[self]

    @property
    def field_name(self) -> str:
        return self.value.split("_", 1)[1].lower()


class ImageFormat(str, enum.Enum):
    WEBP = "webp"
    JPG = "jpg"
    PNG = "png"


class FitMode(str, enum.Enum):
    CONTAIN = "contain"
    COVER = "cover"
    FILL = "fill"


@dataclass(frozen=True)
class VariantConfig:
    resolution: Resolution
    max_size: FileSize
    format: ImageFormat
    quality: int
    short_name: str
    fit: FitMode


VARIANT_CONFIG: dict[VariantKind, VariantConfig] = {
    VariantKind.V1_MASTER: VariantConfig(
        Resolution.square(4096), FileSize(1536 * 1024), ImageFormat.WEBP, 95, "master", FitMode.CONTAIN
    ),
    VariantKind.V2_GRID: VariantConfig(
        Resolution.square(2048), FileSize(500 * 1024), ImageFormat.WEBP, 85, "grid", FitMode.COVER
    ),
    VariantKind.V3_PDP: VariantConfig(
        Resolution.square(1200), FileSize(300 * 1024), ImageFormat.WEBP, 85, "pdp", FitMode.COVER
    ),
    VariantKind.V4_THUMBNAIL: VariantConfig(
        Resolution.square(600), FileSize(150 * 1024), ImageFormat.WEBP, 80, "thumb", FitMode.COVER
    ),
}

# Processing order is the declaration order of VariantKind.
VARIANT_ORDER: tuple[VariantKind, ...] = tuple(VariantKind)

FALLBACK_QUALITY = 70


@dataclass(frozen=True)
class ImageVersion:
    """One generated variant of a job's source image. Immutable."""

    job_id: JobId
    kind: VariantKind
    resolution: Resolution
    file_size: FileSize
    storage_path: str
    file_name: FileName
    format: ImageFormat
    quality: int
    content_hash: str = ""
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @classmethod
    def create(
        cls,
        job_id: JobId,
        kind: VariantKind,
        storage_path: str,
        file_name: FileName,
        byte_length: int = 0,
        content_hash: str = "",
    ) -> "ImageVersion":
        config = VARIANT_CONFIG[kind]
        return cls(
            job_id=job_id,
            kind=kind,
            resolution=config.resolution,
            file_size=FileSize(byte_length),
            storage_path=storage_path,
            file_name=file_name,
            format=config.format,
            quality=config.quality,
            content_hash=content_hash,
        )

    @property
    def config(self) -> VariantConfig:
        return VARIANT_CONFIG[self.kind]

    def is_within_size_limit(self) -> bool:
        return not self.file_size.exceeds(self.config.max_size)

    def with_recompressed(
        self, storage_path: str, byte_length: int, quality: int, content_hash: str = ""
    ) -> "ImageVersion":
        """Copy recording a recompressed artefact in place of the original one."""
        return replace(
            self,
            storage_path=storage_path,
            file_size=FileSize(byte_length),
            quality=quality,
            content_hash=content_hash or self.content_hash,
        )

    def to_record(self) -> dict:
        return {
            "job_id": str(self.job_id),
            "version_type": self.kind.value,
            "width": self.resolution.width,
            "height": self.resolution.height,
            "file_size": self.file_size.bytes,
            "file_path": self.storage_path,
            "file_name": str(self.file_name),
            "format": self.format.value,
            "quality": self.quality,
            "content_hash": self.content_hash,
            "created_at": self.created_at,
        }

    @classmethod
    def from_record(cls, record: dict) -> "ImageVersion":
        return cls(
            job_id=JobId(str(record["job_id"])),
            kind=VariantKind(record["version_type"]),
            resolution=Resolution(record["width"], record["height"]),
            file_size=FileSize(record["file_size"]),
            storage_path=record["file_path"],
            file_name=FileName(record["file_name"]),
            format=ImageFormat(record["format"]),
            quality=record["quality"],
            content_hash=record.get("content_hash") or "",
            created_at=record.get("created_at") or datetime.now(timezone.utc),
        )


@dataclass(frozen=True)
class VersionSet:
    """At most one ImageVersion per variant kind."""

    master: ImageVersion | None = None
    grid: ImageVersion | None = None
    pdp: ImageVersion | None = None
    thumbnail: ImageVersion | None = None

    def get(self, kind: VariantKind) -> ImageVersion | None:
        return getattr(self, kind.field_name)

    def with_version(self, version: ImageVersion) -> "VersionSet":
        return replace(self, **{version.kind.field_name: version})

    def __iter__(self) -> Iterator[ImageVersion]:
        for kind in VARIANT_ORDER:
            version = self.get(kind)
            if version is not None:
                yield version

    def __len__(self) -> int:
        return sum(1 for _ in self)

    def as_dict(self) -> dict[VariantKind, ImageVersion]:
        return {version.kind: version for version in self}


if {kind.field_name for kind in VariantKind} != {f.name for f in fields(VersionSet)}:
    raise RuntimeError("VersionSet fields must match VariantKind members")

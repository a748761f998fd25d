import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    JSON,
    BigInteger,
    DateTime,
    Enum,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column, relationship

from imgforge.domain.image_version import VariantKind
from imgforge.domain.value_objects import ProcessingStatus

from .base import Base

# JSONB on PostgreSQL, plain JSON elsewhere
JSONDocument = JSON().with_variant(JSONB(), "postgresql")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ImageJobRecord(Base):
    __tablename__ = "image_jobs"

    id: Mapped[uuid.UUID] = mapped_column(Uuid(), primary_key=True)
    status: Mapped[ProcessingStatus] = mapped_column(
        Enum(ProcessingStatus), default=ProcessingStatus.PENDING, nullable=False, index=True
    )

    file_name: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    original_size: Mapped[int] = mapped_column(BigInteger, nullable=False)
    original_path: Mapped[str] = mapped_column(String(512), nullable=False, default="")
    mime_type: Mapped[str] = mapped_column(String(50), nullable=False)

    job_metadata: Mapped[dict | None] = mapped_column("metadata", JSONDocument, nullable=True)
    brand_context: Mapped[dict | None] = mapped_column(JSONDocument, nullable=True)
    product_context: Mapped[dict | None] = mapped_column(JSONDocument, nullable=True)

    error_code: Mapped[str | None] = mapped_column(String(50), nullable=True)
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, nullable=False
    )
    processing_started_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    processing_ended_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    versions: Mapped[list["ImageVersionRecord"]] = relationship(
        "ImageVersionRecord",
        back_populates="job",
        cascade="all, delete-orphan",
        order_by="ImageVersionRecord.version_type",
    )


class ImageVersionRecord(Base):
    __tablename__ = "image_versions"
    __table_args__ = (UniqueConstraint("job_id", "version_type", name="uq_image_version_kind"),)

    id: Mapped[uuid.UUID] = mapped_column(Uuid(), primary_key=True, default=uuid.uuid4)
    job_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(), ForeignKey("image_jobs.id", ondelete="CASCADE"), nullable=False, index=True
    )
    version_type: Mapped[VariantKind] = mapped_column(Enum(VariantKind), nullable=False)

    width: Mapped[int] = mapped_column(Integer, nullable=False)
    height: Mapped[int] = mapped_column(Integer, nullable=False)
    file_size: Mapped[int] = mapped_column(BigInteger, nullable=False)
    file_path: Mapped[str] = mapped_column(String(512), nullable=False)
    file_name: Mapped[str] = mapped_column(String(255), nullable=False)
    format: Mapped[str] = mapped_column(String(10), nullable=False)
    quality: Mapped[int] = mapped_column(Integer, nullable=False)
    content_hash: Mapped[str] = mapped_column(String(64), nullable=False, default="")

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, nullable=False
    )

    job: Mapped["ImageJobRecord"] = relationship("ImageJobRecord", back_populates="versions")

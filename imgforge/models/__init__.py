from .base import Base, SessionLocal, engine, get_db, init_db
from .job import ImageJobRecord, ImageVersionRecord

__all__ = [
    "Base",
    "get_db",
    "init_db",
    "engine",
    "SessionLocal",
    "ImageJobRecord",
    "ImageVersionRecord",
]

from .ai_analysis import HttpAIAnalyzer
from .event_bus import InMemoryEventBus, StatusEventForwarder
from .image_processor import PillowImageProcessor
from .repository import InMemoryJobRepository, SqlAlchemyJobRepository
from .storage import LocalStorageService, S3StorageService

__all__ = [
    "HttpAIAnalyzer",
    "InMemoryEventBus",
    "StatusEventForwarder",
    "PillowImageProcessor",
    "InMemoryJobRepository",
    "SqlAlchemyJobRepository",
    "LocalStorageService",
    "S3StorageService",
]

from functools import lru_cache
from typing import Annotated

from fastapi import Depends

from imgforge.core.messaging import get_publisher
from imgforge.domain.ports import AIAnalyzer, EventBus, JobQueue, JobRepository, StoragePort
from imgforge.services.factory import build_ai_analyzer, build_storage, get_event_bus
from imgforge.services.repository import SqlAlchemyJobRepository


def get_repository() -> JobRepository:
    return SqlAlchemyJobRepository()


@lru_cache
def get_storage() -> StoragePort:
    return build_storage()


def get_bus() -> EventBus:
    return get_event_bus()


def get_job_queue() -> JobQueue:
    return get_publisher()


@lru_cache
def get_ai_analyzer() -> AIAnalyzer | None:
    return build_ai_analyzer()


Repository = Annotated[JobRepository, Depends(get_repository)]
Storage = Annotated[StoragePort, Depends(get_storage)]
Bus = Annotated[EventBus, Depends(get_bus)]
Queue = Annotated[JobQueue, Depends(get_job_queue)]
Analyzer = Annotated[AIAnalyzer | None, Depends(get_ai_analyzer)]

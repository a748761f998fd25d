import threading
from collections import defaultdict

import structlog

from imgforge.domain.events import EVENT_TYPES, DomainEvent, JobStatusChanged
from imgforge.domain.ports import EventBus, EventHandler

logger = structlog.get_logger()


def _check_event_type(event_type: type) -> None:
    if event_type not in EVENT_TYPES:
        raise TypeError(f"Unknown event type: {event_type!r}")


class InMemoryEventBus(EventBus):
    """Synchronous in-process dispatch by event class.

    A failing handler is logged and does not stop the remaining handlers or
    reach the publisher.
    """

    def __init__(self) -> None:
        self._handlers: dict[type, list[EventHandler]] = defaultdict(list)
        self._lock = threading.Lock()

    def publish(self, event: DomainEvent) -> None:
        _check_event_type(type(event))
        with self._lock:
            handlers = list(self._handlers.get(type(event), ()))

        for handler in handlers:
            try:
                handler(event)
            except Exception as e:
                logger.error(
                    "event_handler_failed",
                    event_type=type(event).__name__,
                    handler=getattr(handler, "__name__", repr(handler)),
                    error=str(e),
                )

    def subscribe(self, event_type: type, handler: EventHandler) -> None:
        _check_event_type(event_type)
        with self._lock:
            if handler not in self._handlers[event_type]:
                self._handlers[event_type].append(handler)

    def unsubscribe(self, event_type: type, handler: EventHandler) -> None:
        _check_event_type(event_type)
        with self._lock:
            handlers = self._handlers.get(event_type, [])
            if handler in handlers:
                handlers.remove(handler)

    def handler_count(self, event_type: type) -> int:
        with self._lock:
            return len(self._handlers.get(event_type, ()))


class StatusEventForwarder:
    """Handler that forwards status changes to the message broker."""

    def __init__(self, publisher) -> None:
        self.publisher = publisher

    def __call__(self, event: JobStatusChanged) -> None:
        self.publisher.publish_status_event(event.to_dict())
        logger.debug("event_forwarded", job_id=str(event.job_id), status=event.new_status.value)

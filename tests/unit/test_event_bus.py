"""
Unit tests for the in-memory event bus and the broker forwarder.
"""

from unittest.mock import MagicMock

import pytest

from imgforge.domain.events import JobStatusChanged
from imgforge.domain.value_objects import JobId, ProcessingStatus
from imgforge.services.event_bus import InMemoryEventBus, StatusEventForwarder


def _event(new_status=ProcessingStatus.QUEUED) -> JobStatusChanged:
    return JobStatusChanged(JobId.generate(), ProcessingStatus.PENDING, new_status)


class TestInMemoryEventBus:
    """Tests for InMemoryEventBus."""

    @pytest.mark.unit
    def test_handlers_called_in_subscription_order(self, event_bus):
        calls = []
        event_bus.subscribe(JobStatusChanged, lambda e: calls.append(("first", e)))
        event_bus.subscribe(JobStatusChanged, lambda e: calls.append(("second", e)))
        event = _event()

        event_bus.publish(event)

        assert calls == [("first", event), ("second", event)]

    @pytest.mark.unit
    def test_subscribe_is_idempotent(self, event_bus):
        handler = MagicMock()
        event_bus.subscribe(JobStatusChanged, handler)
        event_bus.subscribe(JobStatusChanged, handler)

        event_bus.publish(_event())

        assert event_bus.handler_count(JobStatusChanged) == 1
        handler.assert_called_once()

    @pytest.mark.unit
    def test_unsubscribe(self, event_bus):
        handler = MagicMock()
        event_bus.subscribe(JobStatusChanged, handler)

        event_bus.unsubscribe(JobStatusChanged, handler)
        event_bus.unsubscribe(JobStatusChanged, handler)
        event_bus.publish(_event())

        handler.assert_not_called()

    @pytest.mark.unit
    def test_failing_handler_does_not_stop_others(self, event_bus):
        failing = MagicMock(side_effect=RuntimeError("boom"))
        healthy = MagicMock()
        event_bus.subscribe(JobStatusChanged, failing)
        event_bus.subscribe(JobStatusChanged, healthy)

        event_bus.publish(_event())

        healthy.assert_called_once()

    @pytest.mark.unit
    def test_publish_without_handlers(self):
        InMemoryEventBus().publish(_event())

    @pytest.mark.unit
    def test_unknown_event_type_rejected(self, event_bus):
        class Other:
            pass

        with pytest.raises(TypeError):
            event_bus.subscribe(Other, MagicMock())
        with pytest.raises(TypeError):
            event_bus.publish(Other())


class TestStatusEventForwarder:
    """Tests for StatusEventForwarder."""

    @pytest.mark.unit
    def test_forwards_event_payload(self, event_bus):
        publisher = MagicMock()
        event_bus.subscribe(JobStatusChanged, StatusEventForwarder(publisher))
        event = _event(ProcessingStatus.CANCELLED)

        event_bus.publish(event)

        publisher.publish_status_event.assert_called_once_with(event.to_dict())

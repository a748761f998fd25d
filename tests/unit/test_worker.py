"""
Unit tests for the RabbitMQ message handler.
"""

import json
import uuid
from unittest.mock import MagicMock, patch

import pytest

from imgforge.core.messaging import JOB_QUEUE
from imgforge.worker import on_message, retry_delay


def _properties(retry_count: int | None = None):
    properties = MagicMock()
    properties.headers = {"x-retry-count": retry_count} if retry_count is not None else None
    return properties


def _body(job_id: str, run_ai_analysis: bool = False) -> bytes:
    return json.dumps({"job_id": job_id, "run_ai_analysis": run_ai_analysis}).encode()


@pytest.fixture
def channel():
    return MagicMock()


@pytest.fixture
def method():
    return MagicMock(delivery_tag=7)


class TestRetryDelay:
    """Tests for the backoff schedule."""

    @pytest.mark.unit
    def test_exponential_and_capped(self):
        assert retry_delay(1) == 30
        assert retry_delay(2) == 60
        assert retry_delay(3) == 120
        assert retry_delay(10) == 300


class TestOnMessage:
    """Tests for on_message."""

    @pytest.mark.unit
    def test_success_acks(self, channel, method):
        job_id = str(uuid.uuid4())

        with patch("imgforge.worker.process_image", return_value={"status": "success"}) as task:
            on_message(channel, method, _properties(), _body(job_id, True))

        task.assert_called_once_with(job_id, True, 0)
        channel.basic_ack.assert_called_once_with(delivery_tag=7)
        channel.basic_publish.assert_not_called()

    @pytest.mark.unit
    def test_retry_republishes_with_header(self, channel, method):
        job_id = str(uuid.uuid4())
        body = _body(job_id)

        with patch(
            "imgforge.worker.process_image", return_value={"status": "failed", "retry": True}
        ) as task, patch("imgforge.worker.time.sleep") as sleep:
            on_message(channel, method, _properties(retry_count=1), body)

        task.assert_called_once_with(job_id, False, 1)
        sleep.assert_called_once_with(60)
        kwargs = channel.basic_publish.call_args.kwargs
        assert kwargs["routing_key"] == JOB_QUEUE
        assert kwargs["body"] == body
        assert kwargs["properties"].headers == {"x-retry-count": 2}
        channel.basic_ack.assert_called_once_with(delivery_tag=7)

    @pytest.mark.unit
    def test_permanent_failure_acks_without_retry(self, channel, method):
        with patch(
            "imgforge.worker.process_image", return_value={"status": "failed", "retry": False}
        ):
            on_message(channel, method, _properties(), _body(str(uuid.uuid4())))

        channel.basic_publish.assert_not_called()
        channel.basic_ack.assert_called_once()

    @pytest.mark.unit
    @pytest.mark.parametrize("body", [b"not json", json.dumps({"other": 1}).encode()])
    def test_invalid_message_dropped(self, channel, method, body):
        with patch("imgforge.worker.process_image") as task:
            on_message(channel, method, _properties(), body)

        task.assert_not_called()
        channel.basic_nack.assert_called_once_with(delivery_tag=7, requeue=False)

    @pytest.mark.unit
    def test_unexpected_error_requeues(self, channel, method):
        with patch("imgforge.worker.process_image", side_effect=RuntimeError("boom")):
            on_message(channel, method, _properties(), _body(str(uuid.uuid4())))

        channel.basic_nack.assert_called_once_with(delivery_tag=7, requeue=True)
        channel.basic_ack.assert_not_called()

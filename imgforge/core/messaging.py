import json
from typing import Any

import pika
import structlog

from imgforge.domain.ports import JobQueue

from .config import settings

logger = structlog.get_logger()

JOB_QUEUE = "image.process"
EVENT_QUEUE = "image.events"


class MessagePublisher(JobQueue):
    """RabbitMQ message publisher."""

    def __init__(self, url: str | None = None) -> None:
        self.url = url or settings.rabbitmq_url
        self._connection: pika.BlockingConnection | None = None
        self._channel: pika.channel.Channel | None = None

    def _connect(self) -> None:
        if self._connection is None or self._connection.is_closed:
            params = pika.URLParameters(self.url)
            self._connection = pika.BlockingConnection(params)
            self._channel = self._connection.channel()

            self._channel.exchange_declare(exchange="image", exchange_type="direct", durable=True)
            self._channel.exchange_declare(
                exchange="image.status", exchange_type="fanout", durable=True
            )

            self._channel.queue_declare(queue=JOB_QUEUE, durable=True)
            self._channel.queue_declare(queue=EVENT_QUEUE, durable=True)

            self._channel.queue_bind(queue=JOB_QUEUE, exchange="image", routing_key="process")
            self._channel.queue_bind(queue=EVENT_QUEUE, exchange="image.status")

    def _publish(self, exchange: str, routing_key: str, message: dict[str, Any], headers=None) -> None:
        self._connect()
        self._channel.basic_publish(
            exchange=exchange,
            routing_key=routing_key,
            body=json.dumps(message),
            properties=pika.BasicProperties(
                delivery_mode=2,  # persistent
                content_type="application/json",
                headers=headers,
            ),
        )

    def enqueue(self, job_id: str, run_ai_analysis: bool = False) -> None:
        """Publish an image processing job to the queue."""
        self.publish_image_job(job_id, run_ai_analysis)

    def publish_image_job(self, job_id: str, run_ai_analysis: bool = False, retry_count: int = 0) -> None:
        message = {"job_id": job_id, "run_ai_analysis": run_ai_analysis}
        headers = {"x-retry-count": retry_count} if retry_count else None
        self._publish("image", "process", message, headers)
        logger.info("job_published", job_id=job_id, queue=JOB_QUEUE, retry=retry_count)

    def publish_status_event(self, event: dict[str, Any]) -> None:
        self._publish("image.status", "", event)

    def close(self) -> None:
        if self._connection and not self._connection.is_closed:
            self._connection.close()


_publisher: MessagePublisher | None = None


def get_publisher() -> MessagePublisher:
    global _publisher
    if _publisher is None:
        _publisher = MessagePublisher()
    return _publisher

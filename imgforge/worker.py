"""
imgforge worker.

Pulls job messages off ``image.process``, runs :func:`process_image` and
decides per message whether to ack, republish for a retry, or drop it.
"""

import json
import signal
import time
from dataclasses import dataclass

import pika
import structlog

from imgforge.core.config import settings
from imgforge.core.messaging import JOB_QUEUE
from imgforge.models import init_db
from imgforge.tasks.pipeline import process_image

logger = structlog.get_logger()

MAX_RETRY_DELAY = 300
RECONNECT_DELAY = 5
RETRY_HEADER = "x-retry-count"


class InvalidMessage(ValueError):
    """Message body cannot be turned into a job."""


@dataclass(frozen=True)
class JobMessage:
    job_id: str
    run_ai_analysis: bool
    retry_count: int

    @classmethod
    def parse(cls, properties, body: bytes) -> "JobMessage":
        try:
            payload = json.loads(body)
            job_id = str(payload["job_id"])
        except (json.JSONDecodeError, KeyError, TypeError) as e:
            raise InvalidMessage(str(e)) from e

        headers = properties.headers or {}
        return cls(
            job_id=job_id,
            run_ai_analysis=bool(payload.get("run_ai_analysis", False)),
            retry_count=int(headers.get(RETRY_HEADER, 0)),
        )


def retry_delay(retry_count: int) -> int:
    """Seconds to wait before attempt ``retry_count``; doubles each time up to five minutes."""
    return min(settings.retry_delay * (2 ** (retry_count - 1)), MAX_RETRY_DELAY)


def schedule_retry(channel, message: JobMessage, body: bytes) -> None:
    attempt = message.retry_count + 1
    delay = retry_delay(attempt)
    logger.info("job_retry_scheduled", job_id=message.job_id, retry=attempt, delay=delay)

    time.sleep(delay)
    channel.basic_publish(
        exchange="",
        routing_key=JOB_QUEUE,
        body=body,
        properties=pika.BasicProperties(
            delivery_mode=2,
            content_type="application/json",
            headers={RETRY_HEADER: attempt},
        ),
    )


def on_message(channel, method, properties, body):
    """Process one delivery; malformed bodies are dropped, crashes are requeued."""
    tag = method.delivery_tag
    try:
        message = JobMessage.parse(properties, body)
    except InvalidMessage as e:
        logger.error("invalid_message", error=str(e))
        channel.basic_nack(delivery_tag=tag, requeue=False)
        return

    logger.info("job_received", job_id=message.job_id, retry=message.retry_count)
    try:
        result = process_image(message.job_id, message.run_ai_analysis, message.retry_count)
        if result.get("status") == "failed" and result.get("retry"):
            schedule_retry(channel, message, body)
    except Exception as e:
        logger.error("processing_error", job_id=message.job_id, error=str(e))
        channel.basic_nack(delivery_tag=tag, requeue=True)
        return

    channel.basic_ack(delivery_tag=tag)


class Consumer:
    """Blocking RabbitMQ consumer that reconnects until asked to stop."""

    def __init__(self, url: str | None = None) -> None:
        self.url = url or settings.rabbitmq_url
        self.stopping = False

    def stop(self, signum=None, frame=None) -> None:
        logger.info("shutdown_requested", signal=signum)
        self.stopping = True

    def _consume_once(self) -> None:
        connection = pika.BlockingConnection(pika.URLParameters(self.url))
        try:
            channel = connection.channel()
            channel.queue_declare(queue=JOB_QUEUE, durable=True)
            channel.basic_qos(prefetch_count=1)
            channel.basic_consume(queue=JOB_QUEUE, on_message_callback=on_message)
            logger.info("worker_ready", queue=JOB_QUEUE)

            while not self.stopping:
                connection.process_data_events(time_limit=1)
        finally:
            if connection.is_open:
                connection.close()

    def run(self) -> None:
        while not self.stopping:
            try:
                self._consume_once()
            except pika.exceptions.AMQPConnectionError as e:
                logger.error("rabbitmq_connection_error", error=str(e))
            except Exception as e:
                logger.error("worker_error", error=str(e))
            else:
                continue
            if not self.stopping:
                time.sleep(RECONNECT_DELAY)


def main():
    consumer = Consumer()
    signal.signal(signal.SIGTERM, consumer.stop)
    signal.signal(signal.SIGINT, consumer.stop)

    logger.info("worker_starting", concurrency=settings.worker_concurrency)
    init_db()
    consumer.run()
    logger.info("worker_stopped")


if __name__ == "__main__":
    main()

"""Kafka transport for metric intake and action delivery."""

from __future__ import annotations

from typing import Callable, Dict, List, Optional
import logging
import socket
import threading
import time

from kafka import KafkaConsumer, KafkaProducer
from kafka.errors import KafkaError as KafkaClientError

from cluster_doctor.errors import KafkaError
from cluster_doctor.health import ComponentState, HealthEvent, HealthReporter
from cluster_doctor.models import HealingAction
from cluster_doctor.schema import SchemaManager

logger = logging.getLogger(__name__)


class KafkaManager:
    """
    Owns the connection settings for the Kafka cluster.

    - Checks that at least one bootstrap broker is reachable
    - Builds consumers and producers for the doctor topics
    """

    def __init__(self, brokers: List[str], client_id: str = "doctor-service") -> None:
        """Initialize with the bootstrap broker list."""
        if not brokers:
            raise KafkaError("At least one Kafka broker is required")
        self._brokers = list(brokers)
        self._client_id = client_id
        self._addresses = [self._parse_bootstrap(broker) for broker in self._brokers]

    @property
    def brokers(self) -> List[str]:
        return list(self._brokers)

    def start(self, timeout_s: int = 60) -> None:
        """Wait until a bootstrap broker accepts connections."""
        if not self._wait_for_port(timeout_s=timeout_s):
            raise KafkaError(f"Kafka not reachable at {','.join(self._brokers)}")

    def health(self) -> Dict[str, object]:
        """Return Kafka health status."""
        reachable = self._wait_for_port(timeout_s=1)
        return {
            "status": "healthy" if reachable else "failed",
            "bootstrap": self._brokers,
            "reachable": reachable,
        }

    def consumer(self, topic: str, group_id: str) -> KafkaConsumer:
        """Create a consumer subscribed to ``topic``, reading new messages only."""
        try:
            return KafkaConsumer(
                topic,
                bootstrap_servers=self._brokers,
                client_id=self._client_id,
                group_id=group_id,
                auto_offset_reset="latest",
                enable_auto_commit=True,
            )
        except KafkaClientError as exc:
            raise KafkaError(f"Unable to subscribe to {topic}: {exc}") from exc

    def producer(self) -> KafkaProducer:
        """Create a producer for the doctor topics."""
        try:
            return KafkaProducer(bootstrap_servers=self._brokers, client_id=self._client_id)
        except KafkaClientError as exc:
            raise KafkaError(f"Unable to create Kafka producer: {exc}") from exc

    def _parse_bootstrap(self, bootstrap: str) -> tuple[str, int]:
        """Parse host and port from bootstrap string (host:port)."""
        if ":" not in bootstrap:
            raise KafkaError(f"Invalid bootstrap format: {bootstrap}")

        host, port_str = bootstrap.rsplit(":", 1)
        try:
            port = int(port_str)
        except ValueError as exc:
            raise KafkaError(f"Invalid port in bootstrap: {bootstrap}") from exc

        return host, port

    def _wait_for_port(self, timeout_s: int) -> bool:
        """Check if any broker port is reachable within timeout."""
        end_time = time.time() + timeout_s
        while time.time() < end_time:
            if any(self._can_connect(host, port) for host, port in self._addresses):
                return True
            time.sleep(0.2)
        return False

    @staticmethod
    def _can_connect(host: str, port: int) -> bool:
        """Attempt a TCP connection to a broker host:port."""
        try:
            with socket.create_connection((host, port), timeout=1):
                return True
        except OSError:
            return False


class KafkaActionPublisher:
    """Publishes healing actions to the actions topic, keyed by node id."""

    def __init__(
        self,
        producer: KafkaProducer,
        topic: str,
        schema: SchemaManager,
        send_timeout_s: float = 10.0,
    ) -> None:
        self._producer = producer
        self._topic = topic
        self._schema = schema
        self._send_timeout_s = send_timeout_s

    def publish(self, action: HealingAction) -> None:
        """Send one action and wait for the broker acknowledgement."""
        future = self._producer.send(
            self._topic,
            key=action.node_id.encode("utf-8"),
            value=self._schema.encode_action(action),
        )
        future.get(timeout=self._send_timeout_s)

    def close(self) -> None:
        self._producer.close()


class MetricsConsumer:
    """
    Polls the metrics topic on a background thread.

    Every message value is handed to ``handler``. A handler error skips that
    one message. Poll errors after startup are logged and retried. Neither
    stops the thread.
    """

    def __init__(
        self,
        consumer: KafkaConsumer,
        handler: Callable[[Optional[bytes]], object],
        health: HealthReporter,
        poll_timeout_ms: int = 1000,
        retry_backoff_s: float = 1.0,
    ) -> None:
        self._consumer = consumer
        self._handler = handler
        self._health = health
        self._poll_timeout_ms = poll_timeout_ms
        self._retry_backoff_s = retry_backoff_s
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._failures = 0
        self._degraded = False

    def start(self) -> None:
        """Start consuming on a background thread."""
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._run, name="metrics-consumer", daemon=True)
        self._thread.start()
        self._health.emit(HealthEvent("consumer", ComponentState.HEALTHY))
        logger.info("consumer started")

    def stop(self, timeout: float | None = 5.0) -> None:
        """Stop polling and close the consumer."""
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None
        self._consumer.close()
        logger.info("consumer stopped")

    def poll_once(self) -> int:
        """Poll one batch and apply it; return the number of messages seen."""
        batches = self._consumer.poll(timeout_ms=self._poll_timeout_ms)
        seen = 0
        for records in batches.values():
            for record in records:
                seen += 1
                try:
                    self._handler(record.value)
                except Exception as exc:
                    logger.exception("consumer handler failed, skipping message")
                    self._report_failure("handler_failures", exc)
        return seen

    def _run(self) -> None:
        while not self._stop_event.is_set():
            failures_before = self._failures
            try:
                self.poll_once()
            except KafkaClientError as exc:
                logger.error("consumer poll failed: %s", exc)
                self._report_failure("consume_failures", exc)
                self._stop_event.wait(self._retry_backoff_s)
                continue

            if self._degraded and self._failures == failures_before:
                self._degraded = False
                self._health.emit(HealthEvent("consumer", ComponentState.HEALTHY))

    def _report_failure(self, counter: str, exc: Exception) -> None:
        self._failures += 1
        self._degraded = True
        self._health.emit(
            HealthEvent(
                component="consumer",
                status=ComponentState.DEGRADED,
                details={"last_error": f"{type(exc).__name__}: {exc}"},
                counter=counter,
            )
        )

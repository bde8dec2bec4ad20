"""Tests for the Kafka transport wrappers, without a broker."""

from __future__ import annotations

import json
import socket
import time
from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import pytest
from kafka.errors import KafkaTimeoutError, NoBrokersAvailable

from cluster_doctor.errors import KafkaError
from cluster_doctor.health import HealthReporter
from cluster_doctor.ingestion import IngestionHandler
from cluster_doctor.kafka_manager import KafkaActionPublisher, KafkaManager, MetricsConsumer
from cluster_doctor.models import ActionType, HealingAction
from cluster_doctor.schema import SchemaManager
from cluster_doctor.state_store import ClusterStateStore
from tests.helpers import START_MS, metric_message, wait_for


class TestKafkaManager:
    @pytest.mark.parametrize("brokers", [[], ["no-port"], ["host:abc"]])
    def test_rejects_bad_bootstrap(self, brokers: list) -> None:
        with pytest.raises(KafkaError):
            KafkaManager(brokers)

    def test_start_succeeds_when_port_open(self) -> None:
        listener = socket.socket()
        listener.bind(("127.0.0.1", 0))
        listener.listen()
        try:
            manager = KafkaManager([f"127.0.0.1:{listener.getsockname()[1]}"])
            manager.start(timeout_s=2)
            assert manager.health()["reachable"] is True
        finally:
            listener.close()

    def test_start_fails_when_unreachable(self) -> None:
        manager = KafkaManager(["127.0.0.1:9"])
        with patch.object(KafkaManager, "_can_connect", return_value=False):
            with pytest.raises(KafkaError, match="not reachable"):
                manager.start(timeout_s=0.3)
            assert manager.health()["status"] == "failed"

    def test_consumer_failure_is_fatal_kafka_error(self) -> None:
        manager = KafkaManager(["127.0.0.1:9092"])
        with patch("cluster_doctor.kafka_manager.KafkaConsumer", side_effect=NoBrokersAvailable()):
            with pytest.raises(KafkaError, match="_doctor_metrics"):
                manager.consumer("_doctor_metrics", "doctor-group")

    def test_consumer_settings(self) -> None:
        manager = KafkaManager(["k1:9092", "k2:9092"])
        with patch("cluster_doctor.kafka_manager.KafkaConsumer") as consumer_cls:
            manager.consumer("_doctor_metrics", "doctor-group")
        args, kwargs = consumer_cls.call_args
        assert args == ("_doctor_metrics",)
        assert kwargs["bootstrap_servers"] == ["k1:9092", "k2:9092"]
        assert kwargs["group_id"] == "doctor-group"
        assert kwargs["auto_offset_reset"] == "latest"


class TestKafkaActionPublisher:
    def test_publishes_keyed_json(self) -> None:
        producer = MagicMock()
        publisher = KafkaActionPublisher(producer, "_doctor_actions_log", SchemaManager())
        action = HealingAction("1-000001", START_MS, "b1", ActionType.MARK_UNHEALTHY, "silent")

        publisher.publish(action)

        args, kwargs = producer.send.call_args
        assert args == ("_doctor_actions_log",)
        assert kwargs["key"] == b"b1"
        assert json.loads(kwargs["value"]) == action.to_message()
        producer.send.return_value.get.assert_called_once()

    def test_send_failure_propagates_to_emitter(self) -> None:
        producer = MagicMock()
        producer.send.return_value.get.side_effect = KafkaTimeoutError()
        publisher = KafkaActionPublisher(producer, "actions", SchemaManager())
        with pytest.raises(KafkaTimeoutError):
            publisher.publish(HealingAction("1", START_MS, "b1", ActionType.MARK_HEALTHY, "ok"))


class TestMetricsConsumer:
    def test_poll_once_feeds_handler(self) -> None:
        consumer = MagicMock()
        consumer.poll.return_value = {
            "tp-0": [SimpleNamespace(value=b"one"), SimpleNamespace(value=b"two")],
            "tp-1": [SimpleNamespace(value=None)],
        }
        seen = []
        metrics = MetricsConsumer(consumer, seen.append, HealthReporter())

        assert metrics.poll_once() == 3
        assert seen == [b"one", b"two", None]

    def test_poll_errors_are_reported_and_retried(self) -> None:
        consumer = MagicMock()
        health = HealthReporter()
        metrics = MetricsConsumer(consumer, lambda value: None, health, retry_backoff_s=0.01)
        consumer.poll.side_effect = _then_empty(KafkaTimeoutError())

        metrics.start()
        try:
            assert wait_for(lambda: consumer.poll.call_count >= 3)
        finally:
            metrics.stop()

        assert health.count("consume_failures") == 1
        assert health.snapshot()["components"]["consumer"]["status"] == "healthy"
        consumer.close.assert_called_once()

    def test_handler_error_skips_only_that_message(self) -> None:
        consumer = MagicMock()
        good = json.dumps(metric_message("good")).encode()
        consumer.poll.return_value = {"tp-0": [SimpleNamespace(value=b"bad"), SimpleNamespace(value=good)]}
        health = HealthReporter()
        store = ClusterStateStore()
        ingestion = IngestionHandler(store, SchemaManager(), health)

        def handler(value: bytes) -> object:
            if value == b"bad":
                raise RuntimeError("handler blew up")
            return ingestion.handle(value)

        metrics = MetricsConsumer(consumer, handler, health)

        assert metrics.poll_once() == 2
        assert "good" in store
        assert health.count("handler_failures") == 1
        component = health.snapshot()["components"]["consumer"]
        assert component["status"] == "degraded"
        assert component["details"] == {"last_error": "RuntimeError: handler blew up"}

    def test_thread_survives_handler_error(self) -> None:
        consumer = MagicMock()
        batches = iter(
            [
                {"tp-0": [SimpleNamespace(value=b"bad")]},
                {"tp-0": [SimpleNamespace(value=b"later")]},
            ]
        )

        def poll(timeout_ms: int = 0) -> dict:
            time.sleep(0.001)
            return next(batches, {})

        consumer.poll.side_effect = poll
        seen = []

        def handler(value: bytes) -> None:
            if value == b"bad":
                raise KeyError(value)
            seen.append(value)

        health = HealthReporter()
        metrics = MetricsConsumer(consumer, handler, health)
        metrics.start()
        try:
            assert wait_for(lambda: seen == [b"later"])
            assert wait_for(lambda: health.snapshot()["components"]["consumer"]["status"] == "healthy")
        finally:
            metrics.stop()

        assert health.count("handler_failures") == 1


def _then_empty(first: Exception):
    calls = iter([first])

    def poll(timeout_ms: int = 0) -> dict:
        error = next(calls, None)
        if error is not None:
            raise error
        time.sleep(0.001)
        return {}

    return poll

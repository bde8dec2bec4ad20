"""Tests for IngestionHandler."""

from __future__ import annotations

import json

from cluster_doctor.health import HealthReporter
from cluster_doctor.ingestion import IngestionHandler
from cluster_doctor.state_store import ClusterStateStore
from tests.helpers import START_MS, FakeClock, metric_message


def test_liveness_uses_arrival_time(ingestion: IngestionHandler, clock: FakeClock) -> None:
    clock.advance(7_000)
    record = ingestion.handle(json.dumps(metric_message("b1", timestamp=START_MS - 60_000)).encode())

    assert record is not None
    assert record.last_seen_at == START_MS + 7_000
    assert record.last_metric.observed_at == START_MS - 60_000


def test_out_of_order_delivery_is_last_write_wins(
    ingestion: IngestionHandler, store: ClusterStateStore, clock: FakeClock
) -> None:
    ingestion.handle(metric_message("b1", cpu=30.0, timestamp=START_MS + 10))
    clock.advance(100)
    ingestion.handle(metric_message("b1", cpu=90.0, timestamp=START_MS))

    record = store.get("b1")
    assert record.last_metric.cpu_usage_percent == 90.0
    assert record.last_seen_at == START_MS + 100


def test_malformed_message_is_dropped_and_reported(
    ingestion: IngestionHandler, store: ClusterStateStore, health: HealthReporter
) -> None:
    assert ingestion.handle(b"{broken") is None
    assert ingestion.handle(metric_message(cpuUsage="n/a")) is None

    assert len(store) == 0
    assert health.count("malformed_metrics") == 2
    assert health.snapshot()["components"]["ingestion"]["status"] == "degraded"


def test_stream_continues_after_bad_message(
    ingestion: IngestionHandler, store: ClusterStateStore, health: HealthReporter
) -> None:
    ingestion.handle(b"garbage")
    record = ingestion.handle(metric_message("b2"))

    assert record is not None
    assert "b2" in store
    assert health.snapshot()["components"]["ingestion"]["status"] == "healthy"


def test_empty_message_is_ignored(ingestion: IngestionHandler, health: HealthReporter) -> None:
    assert ingestion.handle(None) is None
    assert health.count("malformed_metrics") == 0


def test_oversized_byte_rate_is_dropped_as_malformed(
    ingestion: IngestionHandler, store: ClusterStateStore, health: HealthReporter
) -> None:
    assert ingestion.handle(json.dumps(metric_message("b1", bytesInPerSec=10**400)).encode()) is None

    assert "b1" not in store
    assert health.count("malformed_metrics") == 1


def test_integer_past_digit_limit_is_dropped_as_malformed(
    ingestion: IngestionHandler, store: ClusterStateStore, health: HealthReporter
) -> None:
    payload = (
        '{"brokerId": "b1", "timestamp": 1, "cpuUsage": 1, "memoryUsage": 1, '
        '"bytesInPerSec": ' + "9" * 5000 + ', "bytesOutPerSec": 1}'
    )
    assert ingestion.handle(payload.encode()) is None
    assert ingestion.handle(metric_message("b2")) is not None

    assert "b1" not in store
    assert "b2" in store
    assert health.count("malformed_metrics") == 1

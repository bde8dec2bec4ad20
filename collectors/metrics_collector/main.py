"""Metrics collector entrypoint."""

from __future__ import annotations

import logging
import os

from cluster_doctor.config import DEFAULT_KAFKA_BROKERS, DEFAULT_METRICS_TOPIC, split_brokers
from collectors.metrics_collector.metrics_collector import MetricsCollector


def collector_config(environ=None) -> dict:
    """Build collector config from environment variables."""
    env = os.environ if environ is None else environ
    return {
        "broker_id": env.get("BROKER_ID") or "broker-1",
        "kafka_brokers": split_brokers(env.get("KAFKA_BROKERS") or DEFAULT_KAFKA_BROKERS),
        "topic": env.get("METRICS_TOPIC") or DEFAULT_METRICS_TOPIC,
        "interval_ms": int(env.get("COLLECT_INTERVAL_MS") or 5000),
        "mode": env.get("COLLECTOR_MODE") or "synthetic",
    }


def main() -> None:
    """Application entrypoint for the metrics collector."""
    logging.basicConfig(
        level=os.getenv("LOG_LEVEL", "INFO").upper(),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )
    collector = MetricsCollector(collector_config())
    try:
        collector.run()
    except KeyboardInterrupt:
        collector.stop()


if __name__ == "__main__":
    main()

"""Metrics collector implementation."""

from __future__ import annotations

from typing import Callable, Dict, Optional
import logging
import random
import time

import psutil
from kafka import KafkaProducer

from cluster_doctor.models import MetricRecord
from cluster_doctor.schema import SchemaManager
from collectors.base_collector import BaseCollector

logger = logging.getLogger(__name__)

MODES = ("synthetic", "host")


class MetricsCollector(BaseCollector):
    """
    Samples load for one node and publishes it to the metrics topic.

    Modes:
    - synthetic: uniform random CPU/memory and byte rates
    - host: real CPU, memory and network rates read with psutil
    """

    def __init__(
        self,
        config: dict,
        producer_factory: Optional[Callable[..., KafkaProducer]] = None,
        rng: Optional[random.Random] = None,
    ) -> None:
        """Initialize collector with validated config."""
        super().__init__(config)
        mode = config.get("mode", "synthetic")
        if mode not in MODES:
            raise ValueError(f"Unsupported collector mode: {mode}")

        self._config = config
        self._mode = mode
        self._broker_id = config["broker_id"]
        self._topic = config["topic"]
        self._producer_factory = producer_factory or KafkaProducer
        self._producer: Optional[KafkaProducer] = None
        self._rng = rng or random.Random()
        self._schema = SchemaManager()
        self._last_net: Optional[tuple[float, int, int]] = None

    def connect(self) -> None:
        """Connect to Kafka and prime host counters."""
        self._producer = self._producer_factory(
            bootstrap_servers=self._config["kafka_brokers"],
            client_id=f"metrics-collector-{self._broker_id}",
        )
        if self._mode == "host":
            psutil.cpu_percent(interval=None)
            counters = psutil.net_io_counters()
            self._last_net = (time.monotonic(), counters.bytes_recv, counters.bytes_sent)
        logger.info("collector %s connected mode=%s", self._broker_id, self._mode)

    def poll(self) -> Dict[str, float]:
        """Read one load sample."""
        if self._mode == "host":
            return self._poll_host()

        return {
            "cpu": round(self._rng.random() * 100, 2),
            "memory": round(self._rng.random() * 100, 2),
            "bytes_in": self._rng.randrange(10_000),
            "bytes_out": self._rng.randrange(10_000),
        }

    def transform(self, raw: Dict[str, float]) -> Dict[str, object]:
        """Map a sample to the metrics topic message."""
        metric = MetricRecord(
            node_id=self._broker_id,
            observed_at=int(time.time() * 1000),
            cpu_usage_percent=raw["cpu"],
            memory_usage_percent=raw["memory"],
            bytes_in_per_second=int(raw["bytes_in"]),
            bytes_out_per_second=int(raw["bytes_out"]),
        )
        return metric.to_message()

    def publish(self, message: Dict[str, object]) -> None:
        """Publish a metric message keyed by broker id."""
        if self._producer is None:
            raise RuntimeError("Collector not connected")

        try:
            self._producer.send(
                self._topic,
                key=self._broker_id.encode("utf-8"),
                value=self._schema.encode(message),
            )
            self._producer.flush()
        except Exception as exc:
            logger.error("collector %s failed to send metrics: %s", self._broker_id, exc)
            return
        logger.debug("collector %s sent %s", self._broker_id, message)

    def close(self) -> None:
        """Close the Kafka producer."""
        if self._producer is not None:
            self._producer.close()
            self._producer = None

    def _poll_host(self) -> Dict[str, float]:
        now = time.monotonic()
        counters = psutil.net_io_counters()
        bytes_in = bytes_out = 0
        if self._last_net is not None:
            last_at, last_recv, last_sent = self._last_net
            elapsed = max(now - last_at, 1e-6)
            bytes_in = int((counters.bytes_recv - last_recv) / elapsed)
            bytes_out = int((counters.bytes_sent - last_sent) / elapsed)
        self._last_net = (now, counters.bytes_recv, counters.bytes_sent)

        return {
            "cpu": psutil.cpu_percent(interval=None),
            "memory": psutil.virtual_memory().percent,
            "bytes_in": max(0, bytes_in),
            "bytes_out": max(0, bytes_out),
        }

"""Test doubles and builders shared across test modules."""

from __future__ import annotations

import threading
import time
from typing import List

from cluster_doctor.models import HealingAction, MetricRecord

START_MS = 1_700_000_000_000


class FakeClock:
    """Manually advanced epoch-millis clock."""

    def __init__(self, now_ms: int = START_MS) -> None:
        self.now_ms = now_ms
        self._lock = threading.Lock()

    def __call__(self) -> int:
        with self._lock:
            return self.now_ms

    def advance(self, ms: int) -> int:
        with self._lock:
            self.now_ms += ms
            return self.now_ms


class RecordingEmitter:
    """Emitter double that keeps every action it is given."""

    def __init__(self) -> None:
        self.actions: List[HealingAction] = []
        self._lock = threading.Lock()

    def emit(self, action: HealingAction) -> bool:
        with self._lock:
            self.actions.append(action)
        return True

    def types(self) -> List[str]:
        with self._lock:
            return [action.action_type.value for action in self.actions]


def make_metric(node_id: str = "broker-1", cpu: float = 10.0, memory: float = 10.0, observed_at: int = START_MS) -> MetricRecord:
    return MetricRecord(
        node_id=node_id,
        observed_at=observed_at,
        cpu_usage_percent=cpu,
        memory_usage_percent=memory,
        bytes_in_per_second=100,
        bytes_out_per_second=200,
    )


def metric_message(node_id: str = "broker-1", cpu: float = 10.0, **overrides: object) -> dict:
    message = {
        "brokerId": node_id,
        "timestamp": START_MS,
        "cpuUsage": cpu,
        "memoryUsage": 10.0,
        "bytesInPerSec": 100,
        "bytesOutPerSec": 200,
    }
    message.update(overrides)
    return message


def wait_for(predicate, timeout: float = 2.0, interval: float = 0.01) -> bool:
    """Poll ``predicate`` until it is truthy or the timeout expires."""
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(interval)
    return bool(predicate())

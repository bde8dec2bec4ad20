"""Health reporting and status types."""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict
import threading
import time


class ComponentState(str, Enum):
    """Health state for runtime components."""

    HEALTHY = "healthy"
    DEGRADED = "degraded"
    FAILED = "failed"


@dataclass(frozen=True)
class HealthEvent:
    """Health event emitted by a component."""

    component: str
    status: ComponentState
    details: Dict[str, object] = field(default_factory=dict)
    counter: str | None = None


class HealthReporter:
    """
    Aggregates component health and exposes it to the status server.

    Follows Observer pattern: components emit events, reporter aggregates.
    Events that name a counter also bump it, which is how dropped metrics,
    failed publishes and slow evaluation ticks are tracked.
    """

    def __init__(self) -> None:
        """Initialize reporter with empty state."""
        self._lock = threading.Lock()
        self._components: Dict[str, Dict[str, object]] = {}
        self._counters: Counter = Counter()

    def emit(self, event: HealthEvent) -> None:
        """Record a new health event."""
        with self._lock:
            self._components[event.component] = {
                "status": event.status.value,
                "details": dict(event.details),
                "updated_at": int(time.time() * 1000),
            }
            if event.counter:
                self._counters[event.counter] += 1

    def increment(self, counter: str, amount: int = 1) -> None:
        """Bump a counter without changing component state."""
        with self._lock:
            self._counters[counter] += amount

    def count(self, counter: str) -> int:
        """Return the current value of a counter."""
        with self._lock:
            return self._counters[counter]

    def snapshot(self) -> Dict[str, object]:
        """Return current health snapshot."""
        with self._lock:
            components = {name: dict(state) for name, state in self._components.items()}
            counters = dict(self._counters)

        statuses = [state["status"] for state in components.values()]
        if ComponentState.FAILED.value in statuses:
            overall = ComponentState.FAILED.value
        elif ComponentState.DEGRADED.value in statuses:
            overall = ComponentState.DEGRADED.value
        else:
            overall = ComponentState.HEALTHY.value

        return {
            "status": overall,
            "components": components,
            "counters": counters,
        }

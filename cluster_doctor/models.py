"""Value types shared by the store, evaluator and emitter."""

from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum
from typing import Dict, Optional


class NodeStatus(str, Enum):
    """Health state for a monitored node."""

    HEALTHY = "HEALTHY"
    UNHEALTHY = "UNHEALTHY"
    OVERLOADED = "OVERLOADED"


class ActionType(str, Enum):
    """Healing actions announced on a status transition."""

    MARK_UNHEALTHY = "MARK_UNHEALTHY"
    MARK_HEALTHY = "MARK_HEALTHY"
    ALERT_OVERLOAD = "ALERT_OVERLOAD"
    REASSIGN_PARTITIONS = "REASSIGN_PARTITIONS"


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


@dataclass(frozen=True)
class MetricRecord:
    """
    Single load sample reported for a node.

    Percentages outside 0-100 are clamped and negative byte rates become 0;
    out-of-range samples are never rejected.
    """

    node_id: str
    observed_at: int
    cpu_usage_percent: float
    memory_usage_percent: float
    bytes_in_per_second: int
    bytes_out_per_second: int

    def __post_init__(self) -> None:
        object.__setattr__(self, "cpu_usage_percent", _clamp(float(self.cpu_usage_percent), 0.0, 100.0))
        object.__setattr__(self, "memory_usage_percent", _clamp(float(self.memory_usage_percent), 0.0, 100.0))
        object.__setattr__(self, "bytes_in_per_second", max(0, int(self.bytes_in_per_second)))
        object.__setattr__(self, "bytes_out_per_second", max(0, int(self.bytes_out_per_second)))

    def to_message(self) -> Dict[str, object]:
        """Return the wire representation used on the metrics topic."""
        return {
            "brokerId": self.node_id,
            "timestamp": self.observed_at,
            "cpuUsage": self.cpu_usage_percent,
            "memoryUsage": self.memory_usage_percent,
            "bytesInPerSec": self.bytes_in_per_second,
            "bytesOutPerSec": self.bytes_out_per_second,
        }


@dataclass(frozen=True)
class NodeHealthRecord:
    """
    Health record for one node, owned by the cluster state store.

    Instances are immutable; the store commits a change by swapping in a new
    value, so a reader always sees one consistent version of every field.
    """

    node_id: str
    last_seen_at: int
    last_metric: Optional[MetricRecord] = None
    status: NodeStatus = NodeStatus.HEALTHY

    def with_metric(self, metric: MetricRecord, arrived_at: int) -> "NodeHealthRecord":
        """Return a copy carrying a newly arrived metric."""
        return replace(self, last_metric=metric, last_seen_at=arrived_at)

    def with_status(self, status: NodeStatus) -> "NodeHealthRecord":
        """Return a copy with a new status."""
        return replace(self, status=status)

    def to_json(self) -> Dict[str, object]:
        """Return the `{lastSeen, metrics, status}` shape served to clients."""
        return {
            "lastSeen": self.last_seen_at,
            "metrics": self.last_metric.to_message() if self.last_metric else None,
            "status": self.status.value,
        }


@dataclass(frozen=True)
class HealingAction:
    """Healing action announced for a node transition."""

    id: str
    timestamp: int
    node_id: str
    action_type: ActionType
    description: str

    def to_message(self) -> Dict[str, object]:
        """Return the wire representation used on the actions topic."""
        return {
            "id": self.id,
            "timestamp": self.timestamp,
            "brokerId": self.node_id,
            "actionType": self.action_type.value,
            "description": self.description,
        }

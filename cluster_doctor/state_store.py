"""Concurrency-safe store of per-node health records."""

from __future__ import annotations

from typing import Callable, Dict, Iterator, List, Optional
import threading

from cluster_doctor.models import MetricRecord, NodeHealthRecord


class _NodeSlot:
    """Lock plus the current record value for one node."""

    __slots__ = ("lock", "record")

    def __init__(self, record: NodeHealthRecord) -> None:
        self.lock = threading.Lock()
        self.record = record


class ClusterStateStore:
    """
    Single source of truth for node health.

    Concurrency contract:
    - every node has its own lock; writers to one node never wait on another
    - the registry lock only guards slot creation and slot-list copies
    - records are immutable values replaced with one reference assignment,
      so readers that skip the node lock still never see a torn record
    - no caller-supplied I/O should run under a node lock
    """

    def __init__(self) -> None:
        """Initialize an empty store."""
        self._registry_lock = threading.Lock()
        self._slots: Dict[str, _NodeSlot] = {}

    def upsert_metric(self, metric: MetricRecord, arrived_at: int) -> NodeHealthRecord:
        """
        Create or update the record for ``metric.node_id``.

        The metric replaces the stored one unconditionally and ``arrived_at``
        becomes the liveness timestamp. Status is left untouched; only the
        evaluator moves it.
        """
        slot = self._slots.get(metric.node_id)
        if slot is None:
            with self._registry_lock:
                slot = self._slots.get(metric.node_id)
                if slot is None:
                    record = NodeHealthRecord(
                        node_id=metric.node_id,
                        last_seen_at=arrived_at,
                        last_metric=metric,
                    )
                    self._slots[metric.node_id] = _NodeSlot(record)
                    return record

        with slot.lock:
            slot.record = slot.record.with_metric(metric, arrived_at)
            return slot.record

    def for_each_node(self, fn: Callable[[NodeHealthRecord], Optional[NodeHealthRecord]]) -> int:
        """
        Visit every node with its lock held and return how many were visited.

        ``fn`` receives the current record and may return a replacement,
        which is committed before the lock is released. Nodes created during
        the iteration are picked up by the next call.
        """
        visited = 0
        for slot in self._slot_list():
            with slot.lock:
                replacement = fn(slot.record)
                if replacement is not None:
                    if replacement.node_id != slot.record.node_id:
                        raise ValueError(
                            f"Cannot replace {slot.record.node_id} with record for {replacement.node_id}"
                        )
                    slot.record = replacement
            visited += 1
        return visited

    def snapshot(self) -> Dict[str, NodeHealthRecord]:
        """Return an immutable point-in-time copy of every record."""
        return {slot.record.node_id: slot.record for slot in self._slot_list()}

    def get(self, node_id: str) -> Optional[NodeHealthRecord]:
        """Return the current record for a node, if one exists."""
        slot = self._slots.get(node_id)
        return slot.record if slot is not None else None

    def node_ids(self) -> List[str]:
        """Return the identifiers of all known nodes."""
        with self._registry_lock:
            return list(self._slots)

    def _slot_list(self) -> List[_NodeSlot]:
        with self._registry_lock:
            return list(self._slots.values())

    def __contains__(self, node_id: object) -> bool:
        return node_id in self._slots

    def __len__(self) -> int:
        return len(self._slots)

    def __iter__(self) -> Iterator[str]:
        return iter(self.node_ids())

"""Read-only view of cluster state for the status surface."""

from typing import Dict

from cluster_doctor.models import NodeHealthRecord
from cluster_doctor.state_store import ClusterStateStore


class SnapshotExporter:
    """Exports store state without blocking ingestion or evaluation."""

    def __init__(self, store: ClusterStateStore) -> None:
        self._store = store

    def get_snapshot(self) -> Dict[str, NodeHealthRecord]:
        """Return node id -> record as of a recent instant."""
        return self._store.snapshot()

    def as_json(self) -> Dict[str, Dict[str, object]]:
        """Return the snapshot in the `{lastSeen, metrics, status}` client shape."""
        return {node_id: record.to_json() for node_id, record in sorted(self.get_snapshot().items())}

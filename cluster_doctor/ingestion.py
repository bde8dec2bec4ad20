"""Applies inbound metric messages to the cluster state store."""

from __future__ import annotations

from typing import Callable, Dict, Optional, Union
import logging
import time

from cluster_doctor.errors import MalformedMetricError
from cluster_doctor.health import ComponentState, HealthEvent, HealthReporter
from cluster_doctor.models import NodeHealthRecord
from cluster_doctor.schema import SchemaManager
from cluster_doctor.state_store import ClusterStateStore

logger = logging.getLogger(__name__)

Payload = Union[bytes, str, Dict[str, object]]


def epoch_millis() -> int:
    """Return the wall clock in epoch milliseconds."""
    return int(time.time() * 1000)


class IngestionHandler:
    """
    Decodes one metric message at a time and upserts it.

    Liveness uses the local arrival time, not the payload timestamp, so a
    stalled source replaying old samples cannot look alive. Bad messages are
    dropped and reported; the stream never halts on them.
    """

    def __init__(
        self,
        store: ClusterStateStore,
        schema: SchemaManager,
        health: HealthReporter,
        clock: Callable[[], int] = epoch_millis,
    ) -> None:
        """Initialize handler with its store, codec and reporter."""
        self._store = store
        self._schema = schema
        self._health = health
        self._clock = clock
        self._degraded = False

    def handle(self, payload: Optional[Payload]) -> Optional[NodeHealthRecord]:
        """Apply one message; return the updated record or None if dropped."""
        if payload is None:
            return None

        try:
            metric = self._schema.decode_metric(payload)
        except MalformedMetricError as exc:
            self._report_malformed(str(exc))
            return None

        record = self._store.upsert_metric(metric, self._clock())
        if self._degraded:
            self._degraded = False
            self._health.emit(HealthEvent("ingestion", ComponentState.HEALTHY))
        return record

    def _report_malformed(self, reason: str) -> None:
        logger.warning("ingestion dropped malformed metric: %s", reason)
        self._degraded = True
        self._health.emit(
            HealthEvent(
                component="ingestion",
                status=ComponentState.DEGRADED,
                details={"last_error": reason},
                counter="malformed_metrics",
            )
        )

"""Health evaluation: pure transition logic plus the periodic sweep loop."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, List, NamedTuple, Optional
import itertools
import logging
import threading
import time

from cluster_doctor.errors import StateInvariantError
from cluster_doctor.health import ComponentState, HealthEvent, HealthReporter
from cluster_doctor.ingestion import epoch_millis
from cluster_doctor.models import ActionType, HealingAction, NodeHealthRecord, NodeStatus
from cluster_doctor.state_store import ClusterStateStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class HealthPolicy:
    """Thresholds for the three-state heuristic. Comparisons are strict."""

    heartbeat_timeout_ms: int = 10_000
    cpu_threshold: float = 80.0


class Transition(NamedTuple):
    """Result of evaluating one node: the record to keep and actions to announce."""

    record: NodeHealthRecord
    actions: List[HealingAction]

    @property
    def changed(self) -> bool:
        return bool(self.actions)


class ActionIdGenerator:
    """Issues unique action ids ``<millis>-<seq>``; seq is padded to 12 digits so ids sort as strings."""

    def __init__(self) -> None:
        self._seq = itertools.count(1)
        self._lock = threading.Lock()

    def __call__(self, timestamp: int) -> str:
        with self._lock:
            return f"{timestamp}-{next(self._seq):012d}"


def desired_status(record: NodeHealthRecord, now_ms: int, policy: HealthPolicy) -> NodeStatus:
    """
    Compute the status a node should have at ``now_ms``.

    Heartbeat loss wins over load, so a silent node is UNHEALTHY whatever its
    last CPU reading was.
    """
    if record.last_metric is None:
        raise StateInvariantError(f"Node {record.node_id} has a record but no metric")

    if now_ms - record.last_seen_at > policy.heartbeat_timeout_ms:
        return NodeStatus.UNHEALTHY
    if record.last_metric.cpu_usage_percent > policy.cpu_threshold:
        return NodeStatus.OVERLOADED
    return NodeStatus.HEALTHY


def evaluate_node(
    record: NodeHealthRecord,
    now_ms: int,
    policy: HealthPolicy,
    new_id: Callable[[int], str],
) -> Transition:
    """Decide the node's transition without touching any store or transport."""
    status = desired_status(record, now_ms, policy)
    if status == record.status:
        return Transition(record, [])

    def action(action_type: ActionType, description: str) -> HealingAction:
        return HealingAction(
            id=new_id(now_ms),
            timestamp=now_ms,
            node_id=record.node_id,
            action_type=action_type,
            description=description,
        )

    if status == NodeStatus.UNHEALTHY:
        silent_for = now_ms - record.last_seen_at
        actions = [
            action(ActionType.MARK_UNHEALTHY, f"Node heartbeat timed out ({silent_for} ms since last metric)"),
            action(ActionType.REASSIGN_PARTITIONS, "Moving leadership to healthy nodes (MOCK)"),
        ]
    elif status == NodeStatus.OVERLOADED:
        cpu = record.last_metric.cpu_usage_percent
        actions = [action(ActionType.ALERT_OVERLOAD, f"CPU usage {cpu}% > {policy.cpu_threshold:g}%")]
    else:
        actions = [
            action(ActionType.MARK_HEALTHY, f"Node recovered from {record.status.value}, metrics returned to normal")
        ]

    return Transition(record.with_status(status), actions)


class HealthEvaluator:
    """
    Sweeps every node on a fixed period and announces transitions.

    Sweeps are single-flight. Each node's decision and status update happen
    inside the store's per-node lock; actions go to the emitter only after
    the sweep, with no lock held. A sweep that outlasts the period delays the
    next one instead of overlapping it.
    """

    def __init__(
        self,
        store: ClusterStateStore,
        emitter,
        health: HealthReporter,
        policy: HealthPolicy | None = None,
        period_ms: int = 5_000,
        clock: Callable[[], int] = epoch_millis,
    ) -> None:
        """Initialize evaluator with its store, emitter and reporter."""
        self._store = store
        self._emitter = emitter
        self._health = health
        self._policy = policy or HealthPolicy()
        self._period_ms = period_ms
        self._clock = clock
        self._new_id = ActionIdGenerator()
        self._sweep_lock = threading.Lock()
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def policy(self) -> HealthPolicy:
        return self._policy

    def tick(self, now_ms: int | None = None) -> List[HealingAction]:
        """Run one full sweep and return the actions it announced."""
        with self._sweep_lock:
            now = self._clock() if now_ms is None else now_ms
            announced: List[HealingAction] = []

            def visit(record: NodeHealthRecord) -> Optional[NodeHealthRecord]:
                transition = evaluate_node(record, now, self._policy, self._new_id)
                if not transition.changed:
                    return None
                logger.info(
                    "evaluator %s %s -> %s",
                    record.node_id,
                    record.status.value,
                    transition.record.status.value,
                )
                announced.extend(transition.actions)
                return transition.record

            self._store.for_each_node(visit)
            self._health.increment("ticks")

        for action in announced:
            self._emitter.emit(action)
        return announced

    def start(self) -> None:
        """Start the periodic sweep thread."""
        if self._thread is not None and self._thread.is_alive():
            return
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._run, name="health-evaluator", daemon=True)
        self._thread.start()
        logger.info("evaluator started period_ms=%s", self._period_ms)

    def stop(self, timeout: float | None = None) -> None:
        """Finish the running sweep and do not start another."""
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None
        logger.info("evaluator stopped")

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def _run(self) -> None:
        period_s = self._period_ms / 1000
        overran = False
        self._health.emit(HealthEvent("evaluator", ComponentState.HEALTHY))
        while not self._stop_event.is_set():
            started = time.monotonic()
            try:
                self.tick()
            except StateInvariantError as exc:
                logger.critical("evaluator invariant violated: %s", exc)
                self._health.emit(HealthEvent("evaluator", ComponentState.FAILED, {"error": str(exc)}))
                raise

            elapsed = time.monotonic() - started
            if elapsed > period_s:
                logger.warning(
                    "evaluator sweep took %.0f ms, longer than period %s ms; next sweep deferred",
                    elapsed * 1000,
                    self._period_ms,
                )
                self._health.emit(
                    HealthEvent(
                        component="evaluator",
                        status=ComponentState.DEGRADED,
                        details={"last_sweep_ms": round(elapsed * 1000)},
                        counter="tick_overruns",
                    )
                )
                overran = True
                continue

            if overran:
                overran = False
                self._health.emit(HealthEvent("evaluator", ComponentState.HEALTHY))
            self._stop_event.wait(period_s - elapsed)

"""Best-effort delivery of healing actions."""

from __future__ import annotations

from collections import deque
from typing import Deque, Dict, List, Optional, Protocol
import logging
import queue
import threading

from cluster_doctor.health import ComponentState, HealthEvent, HealthReporter
from cluster_doctor.models import HealingAction

logger = logging.getLogger(__name__)

_STOP = object()


class ActionPublisher(Protocol):
    """Transport that delivers one action; raises on failure."""

    def publish(self, action: HealingAction) -> None:
        ...


class ActionLog:
    """Bounded in-memory log of recently announced actions."""

    def __init__(self, max_size: int = 100) -> None:
        """Initialize with the number of actions to retain."""
        self._actions: Deque[HealingAction] = deque(maxlen=max_size)
        self._lock = threading.Lock()

    def record(self, action: HealingAction) -> None:
        """Append an action, evicting the oldest when full."""
        with self._lock:
            self._actions.append(action)

    def recent(self, limit: int | None = None) -> List[Dict[str, object]]:
        """Return recent actions as wire messages, oldest first."""
        with self._lock:
            actions = list(self._actions)
        if limit is not None:
            actions = actions[-limit:] if limit > 0 else []
        return [action.to_message() for action in actions]

    def __len__(self) -> int:
        with self._lock:
            return len(self._actions)


class ActionEmitter:
    """
    Hands actions to a publisher on a background worker.

    ``emit`` never blocks: a full queue drops the action. Publish failures
    are logged, reported and dropped; they never reach the evaluator.
    """

    def __init__(
        self,
        publisher: ActionPublisher,
        health: HealthReporter,
        action_log: Optional[ActionLog] = None,
        max_pending: int = 1000,
    ) -> None:
        """Initialize emitter with a publisher and optional action log."""
        self._publisher = publisher
        self._health = health
        self._log = action_log
        self._queue: "queue.Queue[object]" = queue.Queue(maxsize=max_pending)
        self._thread: Optional[threading.Thread] = None
        self._degraded = False

    @property
    def action_log(self) -> Optional[ActionLog]:
        return self._log

    def emit(self, action: HealingAction) -> bool:
        """Queue an action for delivery; return False if it was dropped."""
        if self._log is not None:
            self._log.record(action)
        try:
            self._queue.put_nowait(action)
        except queue.Full:
            logger.error("emitter queue full, dropping %s for %s", action.action_type.value, action.node_id)
            self._report_failure("dropped_actions", "pending queue full")
            return False
        return True

    def start(self) -> None:
        """Start the delivery worker."""
        if self._thread is not None and self._thread.is_alive():
            return
        self._thread = threading.Thread(target=self._run, name="action-emitter", daemon=True)
        self._thread.start()
        self._health.emit(HealthEvent("emitter", ComponentState.HEALTHY))
        logger.info("emitter started")

    def stop(self, timeout: float | None = 5.0) -> None:
        """Deliver what is already queued, then stop the worker."""
        if self._thread is None:
            return
        try:
            self._queue.put(_STOP, timeout=timeout)
        except queue.Full:
            logger.warning("emitter stop timed out with %s actions pending", self._queue.qsize())
        self._thread.join(timeout)
        self._thread = None
        logger.info("emitter stopped")

    def pending(self) -> int:
        """Return the number of actions waiting for delivery."""
        return self._queue.qsize()

    def _run(self) -> None:
        while True:
            item = self._queue.get()
            try:
                if item is _STOP:
                    return
                self._deliver(item)  # type: ignore[arg-type]
            finally:
                self._queue.task_done()

    def _deliver(self, action: HealingAction) -> None:
        try:
            self._publisher.publish(action)
        except Exception as exc:
            logger.error("emitter failed to publish %s %s: %s", action.id, action.action_type.value, exc)
            self._report_failure("publish_failures", str(exc))
            return

        logger.info("action logged %s %s %s", action.id, action.node_id, action.action_type.value)
        if self._degraded:
            self._degraded = False
            self._health.emit(HealthEvent("emitter", ComponentState.HEALTHY))

    def _report_failure(self, counter: str, reason: str) -> None:
        self._degraded = True
        self._health.emit(
            HealthEvent(
                component="emitter",
                status=ComponentState.DEGRADED,
                details={"last_error": reason},
                counter=counter,
            )
        )

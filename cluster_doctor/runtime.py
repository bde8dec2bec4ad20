"""Doctor runtime facade."""

from __future__ import annotations

from typing import Callable, Dict, List, Optional
import logging

from cluster_doctor.config import DoctorConfig
from cluster_doctor.emitter import ActionEmitter, ActionLog
from cluster_doctor.evaluator import HealthEvaluator, HealthPolicy
from cluster_doctor.health import HealthReporter
from cluster_doctor.ingestion import IngestionHandler, epoch_millis
from cluster_doctor.kafka_manager import KafkaActionPublisher, KafkaManager, MetricsConsumer
from cluster_doctor.schema import SchemaManager
from cluster_doctor.snapshot import SnapshotExporter
from cluster_doctor.state_store import ClusterStateStore

logger = logging.getLogger(__name__)


class DoctorRuntime:
    """
    Facade for the doctor service.

    Responsibilities:
    - Own the state store, ingestion, evaluation and emission components
    - Bind them to Kafka on start, in dependency order
    - Stop them in reverse order, finishing the running sweep
    """

    def __init__(
        self,
        config: DoctorConfig,
        kafka: KafkaManager,
        health: HealthReporter,
        schema: SchemaManager | None = None,
        clock: Callable[[], int] = epoch_millis,
    ) -> None:
        """Initialize runtime with config and required managers."""
        self._config = config
        self._kafka = kafka
        self._health = health
        self._schema = schema or SchemaManager()
        self._clock = clock

        self.store = ClusterStateStore()
        self.action_log = ActionLog(config.action_history_size) if config.action_history_size > 0 else None
        self.ingestion = IngestionHandler(self.store, self._schema, health, clock=clock)
        self.exporter = SnapshotExporter(self.store)
        self.policy = HealthPolicy(
            heartbeat_timeout_ms=config.heartbeat_timeout_ms,
            cpu_threshold=config.cpu_threshold,
        )

        self.emitter: Optional[ActionEmitter] = None
        self.evaluator: Optional[HealthEvaluator] = None
        self._publisher: Optional[KafkaActionPublisher] = None
        self._consumer: Optional[MetricsConsumer] = None
        self._started = False

    def start(self) -> None:
        """Start all runtime components in correct order."""
        logger.info("cluster_doctor starting")
        self._kafka.start()
        logger.info("cluster_doctor kafka ready")

        consumer = self._kafka.consumer(self._config.metrics_topic, self._config.consumer_group)
        self._publisher = KafkaActionPublisher(
            self._kafka.producer(),
            self._config.actions_topic,
            self._schema,
        )

        self.emitter = ActionEmitter(self._publisher, self._health, action_log=self.action_log)
        self.evaluator = HealthEvaluator(
            self.store,
            self.emitter,
            self._health,
            policy=self.policy,
            period_ms=self._config.evaluation_period_ms,
            clock=self._clock,
        )
        self._consumer = MetricsConsumer(consumer, self.ingestion.handle, self._health)

        self.emitter.start()
        self.evaluator.start()
        self._consumer.start()
        self._started = True
        logger.info("cluster_doctor listening on %s", self._config.metrics_topic)

    def failed(self) -> bool:
        """Return True when the runtime was started but its evaluator thread has died."""
        return self._started and self.evaluator is not None and not self.evaluator.running

    def stop(self) -> None:
        """Stop all runtime components gracefully."""
        logger.info("cluster_doctor stopping")
        self._started = False
        if self._consumer is not None:
            self._consumer.stop()
        if self.evaluator is not None:
            self.evaluator.stop()
        if self.emitter is not None:
            self.emitter.stop()
        if self._publisher is not None:
            self._publisher.close()
        logger.info("cluster_doctor stopped")

    def status_snapshot(self) -> Dict[str, Dict[str, object]]:
        """Return node id -> `{lastSeen, metrics, status}`."""
        return self.exporter.as_json()

    def recent_actions(self, limit: int | None = None) -> List[Dict[str, object]]:
        """Return recently announced actions, oldest first."""
        if self.action_log is None:
            return []
        return self.action_log.recent(limit)

    def health_snapshot(self) -> Dict[str, object]:
        """Return aggregated health snapshot for the doctor."""
        return {
            "kafka": self._kafka.health(),
            "doctor": self._health.snapshot(),
            "nodes": len(self.store),
        }

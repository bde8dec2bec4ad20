"""Cluster doctor package."""

__all__ = [
    "DoctorRuntime",
    "KafkaManager",
    "KafkaActionPublisher",
    "MetricsConsumer",
    "ClusterStateStore",
    "IngestionHandler",
    "HealthEvaluator",
    "HealthPolicy",
    "Transition",
    "desired_status",
    "evaluate_node",
    "ActionEmitter",
    "ActionLog",
    "SnapshotExporter",
    "HealthReporter",
    "HealthEvent",
    "ComponentState",
    "SchemaManager",
    "DoctorConfig",
    "load_config",
    "MetricRecord",
    "NodeHealthRecord",
    "HealingAction",
    "NodeStatus",
    "ActionType",
    "ConfigError",
    "KafkaError",
    "MalformedMetricError",
    "StateInvariantError",
]

from cluster_doctor.runtime import DoctorRuntime
from cluster_doctor.kafka_manager import KafkaManager, KafkaActionPublisher, MetricsConsumer
from cluster_doctor.state_store import ClusterStateStore
from cluster_doctor.ingestion import IngestionHandler
from cluster_doctor.evaluator import HealthEvaluator, HealthPolicy, Transition, desired_status, evaluate_node
from cluster_doctor.emitter import ActionEmitter, ActionLog
from cluster_doctor.snapshot import SnapshotExporter
from cluster_doctor.health import HealthReporter, HealthEvent, ComponentState
from cluster_doctor.schema import SchemaManager
from cluster_doctor.config import DoctorConfig, load_config
from cluster_doctor.models import MetricRecord, NodeHealthRecord, HealingAction, NodeStatus, ActionType
from cluster_doctor.errors import ConfigError, KafkaError, MalformedMetricError, StateInvariantError

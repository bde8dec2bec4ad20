"""Doctor configuration model and loader."""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import List, Mapping
import os

import jsonschema

from cluster_doctor.errors import ConfigError
from cluster_doctor.schema import load_schema

DEFAULT_KAFKA_BROKERS = "localhost:9092"
DEFAULT_METRICS_TOPIC = "_doctor_metrics"
DEFAULT_ACTIONS_TOPIC = "_doctor_actions_log"


@dataclass(frozen=True)
class DoctorConfig:
    """Top-level configuration for the doctor service."""

    kafka_brokers: List[str]
    metrics_topic: str = DEFAULT_METRICS_TOPIC
    actions_topic: str = DEFAULT_ACTIONS_TOPIC
    consumer_group: str = "doctor-group"
    heartbeat_timeout_ms: int = 10_000
    cpu_threshold: float = 80.0
    evaluation_period_ms: int = 5_000
    action_history_size: int = 100
    host: str = "0.0.0.0"
    port: int = 3001


def split_brokers(value: str) -> List[str]:
    """Split a comma-separated bootstrap list, ignoring blanks."""
    return [item.strip() for item in value.split(",") if item.strip()]


def _int(environ: Mapping[str, str], name: str, default: int) -> int:
    raw = environ.get(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ConfigError(f"{name} must be an integer, got {raw!r}") from exc


def _float(environ: Mapping[str, str], name: str, default: float) -> float:
    raw = environ.get(name)
    if raw is None or raw == "":
        return default
    try:
        return float(raw)
    except ValueError as exc:
        raise ConfigError(f"{name} must be a number, got {raw!r}") from exc


def load_config(environ: Mapping[str, str] | None = None) -> DoctorConfig:
    """Build and validate configuration from environment variables."""
    env = os.environ if environ is None else environ

    config = DoctorConfig(
        kafka_brokers=split_brokers(env.get("KAFKA_BROKERS") or DEFAULT_KAFKA_BROKERS),
        metrics_topic=env.get("METRICS_TOPIC") or DEFAULT_METRICS_TOPIC,
        actions_topic=env.get("ACTIONS_TOPIC") or DEFAULT_ACTIONS_TOPIC,
        consumer_group=env.get("CONSUMER_GROUP") or "doctor-group",
        heartbeat_timeout_ms=_int(env, "HEARTBEAT_TIMEOUT_MS", 10_000),
        cpu_threshold=_float(env, "CPU_THRESHOLD", 80.0),
        evaluation_period_ms=_int(env, "EVALUATION_PERIOD_MS", 5_000),
        action_history_size=_int(env, "ACTION_HISTORY_SIZE", 100),
        host=env.get("HOST") or "0.0.0.0",
        port=_int(env, "PORT", 3001),
    )
    validate_config(config)
    return config


def validate_config(config: DoctorConfig) -> None:
    """Validate resolved settings against the bundled JSON Schema."""
    schema = load_schema("doctor_config.schema.json")
    try:
        jsonschema.validate(instance=asdict(config), schema=schema)
    except jsonschema.ValidationError as exc:
        field = ".".join(str(part) for part in exc.absolute_path) or "config"
        raise ConfigError(f"Config schema validation failed at {field}: {exc.message}") from exc

"""Serialization strategy for metric and action messages."""

from __future__ import annotations

from pathlib import Path
from typing import Dict, Union
import json
import math

import jsonschema

from cluster_doctor.errors import MalformedMetricError
from cluster_doctor.models import HealingAction, MetricRecord

SCHEMA_DIR = Path(__file__).resolve().parent / "schemas"


def load_schema(name: str) -> dict:
    """Load a bundled JSON Schema by file name."""
    return json.loads((SCHEMA_DIR / name).read_text(encoding="utf-8"))


class SchemaManager:
    """
    Handles the JSON wire format of both topics.

    Inbound metric payloads are validated against the bundled JSON Schema
    before they become MetricRecord values.
    """

    def __init__(self, schema_path: str | None = None) -> None:
        """Initialize with an optional metric schema override."""
        if schema_path is None:
            schema = load_schema("metric_record.schema.json")
        else:
            schema = json.loads(Path(schema_path).read_text(encoding="utf-8"))
        self._validator = jsonschema.Draft202012Validator(schema)

    def encode(self, message: dict) -> bytes:
        """Serialize message into bytes."""
        return json.dumps(message).encode("utf-8")

    def encode_action(self, action: HealingAction) -> bytes:
        """Serialize a healing action for the actions topic."""
        return self.encode(action.to_message())

    def decode_metric(self, payload: Union[bytes, str, Dict[str, object]]) -> MetricRecord:
        """Parse and validate an inbound metric payload."""
        if isinstance(payload, (bytes, bytearray)):
            try:
                payload = payload.decode("utf-8")
            except UnicodeDecodeError as exc:
                raise MalformedMetricError(f"Metric payload is not UTF-8: {exc}") from exc

        if isinstance(payload, str):
            try:
                raw = json.loads(payload)
            except (ValueError, RecursionError) as exc:
                raise MalformedMetricError(f"Invalid JSON in metric payload: {exc}") from exc
        else:
            raw = payload

        if not isinstance(raw, dict):
            raise MalformedMetricError("Metric payload must be a JSON object")

        try:
            return self._to_metric(raw)
        except MalformedMetricError:
            raise
        except (ValueError, OverflowError, TypeError, RecursionError) as exc:
            raise MalformedMetricError(f"Metric payload has unusable values: {exc}") from exc

    def _to_metric(self, raw: Dict[str, object]) -> MetricRecord:
        errors = sorted(self._validator.iter_errors(raw), key=lambda err: list(err.path))
        if errors:
            raise MalformedMetricError(f"Metric schema validation failed: {errors[0].message}")

        node_id = raw.get("brokerId") or raw.get("nodeId")
        if not isinstance(node_id, str) or not node_id.strip():
            raise MalformedMetricError("Metric payload is missing a node id")

        numbers = [raw[key] for key in ("cpuUsage", "memoryUsage", "bytesInPerSec", "bytesOutPerSec")]
        if not all(math.isfinite(value) for value in numbers):
            raise MalformedMetricError(f"Metric payload for {node_id} has non-finite values")

        return MetricRecord(
            node_id=node_id,
            observed_at=int(raw["timestamp"]),
            cpu_usage_percent=float(raw["cpuUsage"]),
            memory_usage_percent=float(raw["memoryUsage"]),
            bytes_in_per_second=int(raw["bytesInPerSec"]),
            bytes_out_per_second=int(raw["bytesOutPerSec"]),
        )

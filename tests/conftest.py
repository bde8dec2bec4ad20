"""Shared fixtures for cluster doctor tests."""

from __future__ import annotations

import pytest

from cluster_doctor.health import HealthReporter
from cluster_doctor.ingestion import IngestionHandler
from cluster_doctor.schema import SchemaManager
from cluster_doctor.state_store import ClusterStateStore
from tests.helpers import FakeClock, RecordingEmitter


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store() -> ClusterStateStore:
    return ClusterStateStore()


@pytest.fixture
def health() -> HealthReporter:
    return HealthReporter()


@pytest.fixture
def schema() -> SchemaManager:
    return SchemaManager()


@pytest.fixture
def emitter() -> RecordingEmitter:
    return RecordingEmitter()


@pytest.fixture
def ingestion(store: ClusterStateStore, schema: SchemaManager, health: HealthReporter, clock: FakeClock) -> IngestionHandler:
    return IngestionHandler(store, schema, health, clock=clock)

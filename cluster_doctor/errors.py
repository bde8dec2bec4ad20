"""Custom exceptions for the cluster doctor."""


class ConfigError(Exception):
    """Raised when config is invalid or missing."""


class KafkaError(Exception):
    """Raised when the Kafka transport cannot be used."""


class MalformedMetricError(ValueError):
    """Raised when an inbound metric payload cannot be decoded."""


class StateInvariantError(RuntimeError):
    """Raised when a node record breaks the store's ownership rules."""

"""Abstract base collector class."""

from typing import Dict
import time


class BaseCollector:
    """
    Abstract base class for metric sources.

    Template Method pattern:
    run() defines lifecycle and calls overridable steps.
    """

    def __init__(self, config: dict) -> None:
        """Initialize collector with validated config."""
        self._interval_s = int(config.get("interval_ms", 5000)) / 1000
        self._running = False

    def run(self, iterations: int | None = None) -> None:
        """Run collector lifecycle: connect -> poll -> transform -> publish."""
        self.connect()
        self._running = True
        done = 0
        try:
            while self._running and (iterations is None or done < iterations):
                self.publish(self.transform(self.poll()))
                done += 1
                if iterations is None or done < iterations:
                    time.sleep(self._interval_s)
        finally:
            self.close()

    def stop(self) -> None:
        """Ask run() to return after the current sample."""
        self._running = False

    def connect(self) -> None:
        """Connect to the metric source and the transport."""
        raise NotImplementedError

    def poll(self) -> Dict[str, float]:
        """Read one raw sample."""
        raise NotImplementedError

    def transform(self, raw: Dict[str, float]) -> Dict[str, object]:
        """Normalize a raw sample into the metric message format."""
        raise NotImplementedError

    def publish(self, message: Dict[str, object]) -> None:
        """Publish a normalized message."""
        raise NotImplementedError

    def close(self) -> None:
        """Release transport resources."""

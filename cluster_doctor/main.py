"""Cluster doctor entrypoint."""

from __future__ import annotations

import asyncio
import logging
import os
import signal
import sys
import threading

from cluster_doctor.config import load_config
from cluster_doctor.errors import ConfigError, KafkaError
from cluster_doctor.health import HealthReporter
from cluster_doctor.kafka_manager import KafkaManager
from cluster_doctor.runtime import DoctorRuntime
from cluster_doctor.status_server import StatusServer

logger = logging.getLogger("cluster_doctor")


async def _run(runtime: DoctorRuntime, watch_interval_s: float = 1.0) -> int:
    """
    Run the doctor runtime until SIGINT or SIGTERM.

    Returns the process exit status: 0 after a signal, 1 when the evaluator
    thread died and the doctor can no longer judge node health.
    """
    stopping = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, stopping.set)

    runtime.start()
    try:
        while not stopping.is_set():
            if runtime.failed():
                logger.critical("cluster_doctor evaluator died, shutting down")
                return 1
            try:
                await asyncio.wait_for(stopping.wait(), timeout=watch_interval_s)
            except asyncio.TimeoutError:
                pass
        return 0
    finally:
        runtime.stop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.remove_signal_handler(sig)


def main() -> None:
    """Application entrypoint for the doctor service."""
    logging.basicConfig(
        level=os.getenv("LOG_LEVEL", "INFO").upper(),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )

    try:
        config = load_config()
        kafka = KafkaManager(config.kafka_brokers)
    except (ConfigError, KafkaError) as exc:
        logger.critical("cluster_doctor configuration invalid: %s", exc)
        sys.exit(2)

    health = HealthReporter()
    runtime = DoctorRuntime(config=config, kafka=kafka, health=health)

    server = StatusServer(
        config.host,
        config.port,
        runtime.status_snapshot,
        runtime.recent_actions,
        runtime.health_snapshot,
    )
    thread = threading.Thread(target=server.serve_forever, name="status-server", daemon=True)
    thread.start()
    logger.info("cluster_doctor status API listening on %s:%s", config.host, config.port)

    try:
        code = asyncio.run(_run(runtime))
    except KafkaError as exc:
        logger.critical("cluster_doctor cannot consume metrics: %s", exc)
        sys.exit(1)
    finally:
        server.shutdown()
    if code:
        sys.exit(code)


if __name__ == "__main__":
    main()

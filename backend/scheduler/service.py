"""
Standalone poll worker.

Runs the reconciliation cycle on a fixed interval, independent of the API
service. With --once it runs a single cycle and exits, for cron-style
external schedulers. Several workers may run side by side: the engine's
conditional writes keep overlapping cycles from double-posting.
"""
from __future__ import annotations

import argparse
import asyncio
import json
import signal
import sys
from typing import Optional

from shared.config import get_settings
from shared.utils.logging import get_logger, setup_logging
from shared.utils.metrics import start_metrics_server

from scheduler.runtime import build_runtime
from scheduler.trigger import PollTrigger

logger = get_logger(__name__)


async def main(once: bool = False) -> None:
    """Poll worker entrypoint."""
    settings = get_settings()
    # --once reserves stdout for the JSON report
    setup_logging("scheduler", stream=sys.stderr if once else None)

    runtime = await build_runtime(settings)
    try:
        if once:
            report = await runtime.engine.run_cycle(trigger="cron")
            print(json.dumps(report.to_dict()))
            return

        start_metrics_server(settings=settings)
        shutdown = asyncio.Event()
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, shutdown.set)

        runtime.trigger = PollTrigger(runtime.engine, settings.poll_interval_s, label="worker", settings=settings)
        runtime.trigger.start()
        logger.info("poll_worker_started", interval_s=settings.poll_interval_s)
        await shutdown.wait()
    finally:
        await runtime.close()
        logger.info("poll_worker_stopped")


def _parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Scorecast poll worker")
    parser.add_argument("--once", action="store_true", help="run a single reconciliation cycle and exit")
    return parser.parse_args(argv)


def run(argv: Optional[list[str]] = None) -> None:
    """Console script: scorecast-worker [--once]."""
    args = _parse_args(argv)
    asyncio.run(main(once=args.once))


if __name__ == "__main__":
    run()

"""Run the batch analysis worker: ``python -m worker.run``."""

import asyncio
import logging
import signal
from concurrent.futures import Executor, ThreadPoolExecutor
from typing import Callable, Sequence

from temporalio.client import Client
from temporalio.worker import Worker

from app.core.config import settings
from app.core.logging import setup_logging
from worker.activities import (
    analyze_contract_text,
    extract_contract_text,
    mark_contract_failed,
    store_analysis,
)
from worker.workflows import BatchAnalysisWorkflow

logger = logging.getLogger("worker")

ACTIVITIES = (extract_contract_text, analyze_contract_text, store_analysis, mark_contract_failed)


def build_worker(
    client: Client,
    *,
    task_queue: str,
    activities: Sequence[Callable] = ACTIVITIES,
    executor: Executor | None = None,
) -> Worker:
    """Worker for BatchAnalysisWorkflow. ``executor`` runs the sync activities."""
    return Worker(
        client,
        task_queue=task_queue,
        workflows=[BatchAnalysisWorkflow],
        activities=list(activities),
        activity_executor=executor,
    )


async def run_worker() -> None:
    setup_logging(settings.LOG_LEVEL)
    logger.info(
        "Worker starting: temporal=%s namespace=%s queue=%s threads=%d",
        settings.TEMPORAL_ADDRESS,
        settings.TEMPORAL_NAMESPACE,
        settings.WORKER_TASK_QUEUE,
        settings.WORKER_ACTIVITY_THREADS,
    )

    client = await Client.connect(settings.TEMPORAL_ADDRESS, namespace=settings.TEMPORAL_NAMESPACE)

    stopping = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, stopping.set)

    with ThreadPoolExecutor(max_workers=settings.WORKER_ACTIVITY_THREADS) as executor:
        worker = build_worker(client, task_queue=settings.WORKER_TASK_QUEUE, executor=executor)
        async with worker:
            logger.info("Polling %s", settings.WORKER_TASK_QUEUE)
            await stopping.wait()
            logger.info("Shutdown signal received, draining in-flight activities")
    logger.info("Worker stopped")


def main() -> None:
    asyncio.run(run_worker())


if __name__ == "__main__":
    main()

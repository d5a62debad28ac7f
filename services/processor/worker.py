# services/processor/worker.py
import asyncio
import time
from typing import Optional

from services.processor.crud import ArticleStore
from services.processor.dispatcher import JobDispatcher
from services.processor.job_queue import JobQueue
from services.processor.llm import create_llm_client
from services.processor.orchestrator import TranslationOrchestrator
from shared.app_logging.logger import get_logger
from shared.config.settings import Settings, get_settings

logger = get_logger("processor.worker")

RECLAIM_INTERVAL_SEC = 60.0
ERROR_BACKOFF_SEC = 5.0


def build_pipeline(settings: Optional[Settings] = None, queue: Optional[JobQueue] = None):
    """Wire store, model client, queue and dispatcher from configuration."""
    settings = settings or get_settings()
    queue = queue or JobQueue.from_settings(settings)
    orchestrator = TranslationOrchestrator(
        store=ArticleStore(),
        llm=create_llm_client(settings),
        queue=queue,
        summary_length=settings.service.summary_length,
        max_rank=settings.service.max_rank,
        skip_disabled_languages=settings.service.skip_disabled_languages,
    )
    dispatcher = JobDispatcher(orchestrator, handler_timeout=settings.service.handler_timeout)
    return queue, orchestrator, dispatcher


async def consume_jobs(
    queue: JobQueue,
    dispatcher: JobDispatcher,
    stop_event: Optional[asyncio.Event] = None,
    batch_size: int = 10,
    block_ms: int = 5000,
) -> None:
    """Read job batches from the stream and dispatch them until stopped."""
    stop_event = stop_event or asyncio.Event()

    await queue.ensure_group()
    logger.info(f"Consuming {queue.stream} as {queue.consumer} in group {queue.group}")

    last_reclaim: Optional[float] = None
    while not stop_event.is_set():
        try:
            if last_reclaim is None or time.monotonic() - last_reclaim >= RECLAIM_INTERVAL_SEC:
                last_reclaim = time.monotonic()
                stale = await queue.reclaim(count=batch_size)
                if stale:
                    await dispatcher.dispatch_batch(stale)

            messages = await queue.receive(count=batch_size, block_ms=block_ms)
            if not messages:
                continue

            logger.info(f"Received batch of {len(messages)} jobs")
            await dispatcher.dispatch_batch(messages)

        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"Error in job processing loop: {e}")
            await asyncio.sleep(ERROR_BACKOFF_SEC)

    logger.info("Job consumer stopped")

import asyncio
import time
from enum import Enum
from typing import List, Union

from prometheus_client import Counter, Histogram
from pydantic import ValidationError

from services.processor.job_queue import JobMessage
from services.processor.orchestrator import TranslationOrchestrator
from shared.app_logging.logger import CorrelationContext, get_logger
from shared.schemas.messages import (InitArticleJob, TranslateArticleJob,
                                     parse_job)

logger = get_logger("processor.dispatcher")

JOBS_ACKED = Counter("processor_jobs_acked_total", "Jobs handled and acknowledged", ["action"])
JOBS_RETRIED = Counter("processor_jobs_retried_total", "Jobs that failed and were sent back for retry", ["action"])
JOBS_UNHANDLED = Counter("processor_jobs_unhandled_total", "Messages that could not be decoded into a known job")
JOB_DURATION = Histogram("processor_job_duration_seconds", "Handler run time per job", ["action"])


class JobOutcome(str, Enum):
    ACKED = "acked"
    RETRY = "retry"
    UNHANDLED = "unhandled"


class JobDispatcher:
    """Routes queue messages to the orchestrator and settles them.

    A handler that returns normally gets its message acknowledged; one that
    raises or overruns handler_timeout gets it sent back for retry. Messages
    that do not decode into a known job are left alone, so the queue
    reclaims them once they go stale.
    """

    def __init__(self, orchestrator: TranslationOrchestrator, handler_timeout: float = 600.0):
        self.orchestrator = orchestrator
        self.handler_timeout = handler_timeout

    async def dispatch_batch(self, messages: List[JobMessage]) -> List[JobOutcome]:
        results = await asyncio.gather(
            *(self.dispatch(message) for message in messages), return_exceptions=True
        )
        outcomes = []
        for message, result in zip(messages, results):
            if isinstance(result, BaseException):
                # settling itself failed; the entry stays pending for reclaim
                logger.error(f"Could not settle message {message.message_id}: {result}")
                outcomes.append(JobOutcome.UNHANDLED)
            else:
                outcomes.append(result)
        return outcomes

    async def dispatch(self, message: JobMessage) -> JobOutcome:
        with CorrelationContext(message.message_id):
            try:
                job = parse_job(message.body)
            except ValidationError as e:
                logger.error(f"Unknown or malformed job in message {message.message_id}: {e.errors()}")
                JOBS_UNHANDLED.inc()
                return JobOutcome.UNHANDLED

            logger.info(f"Dispatching {job.action} job for article {job.id} (attempt {message.attempt})")
            t0 = time.perf_counter()
            try:
                await asyncio.wait_for(self._run(job), timeout=self.handler_timeout)
            except asyncio.TimeoutError:
                logger.error(f"{job.action} job for article {job.id} timed out after {self.handler_timeout}s")
                return await self._retry(message, job.action)
            except Exception as e:
                logger.error(f"❌ {job.action} job for article {job.id} failed: {e}", exc_info=True)
                return await self._retry(message, job.action)
            finally:
                JOB_DURATION.labels(action=job.action).observe(time.perf_counter() - t0)

            await message.ack()
            JOBS_ACKED.labels(action=job.action).inc()
            logger.info(f"✅ {job.action} job for article {job.id} acknowledged")
            return JobOutcome.ACKED

    async def _run(self, job: Union[InitArticleJob, TranslateArticleJob]) -> None:
        if isinstance(job, InitArticleJob):
            await self.orchestrator.init_article(job.id)
        elif isinstance(job, TranslateArticleJob):
            await self.orchestrator.translate_article(job.id, job.language)
        else:
            raise TypeError(f"unroutable job type {type(job).__name__}")

    async def _retry(self, message: JobMessage, action: str) -> JobOutcome:
        await message.retry()
        JOBS_RETRIED.labels(action=action).inc()
        return JobOutcome.RETRY

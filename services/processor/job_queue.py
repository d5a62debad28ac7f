"""Article job queue on a Redis stream with one consumer group.

Delivery is at-least-once: an entry stays pending in the group until it is
acknowledged, and entries idle past the visibility timeout are claimed again.
Retry bookkeeping lives here, not in the dispatcher: a retried entry is
re-added with its attempt counter bumped, and moved to the dead-letter
stream once it has used up MAX_RETRIES attempts.
"""

import asyncio
import time
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Union

from shared.app_logging.logger import get_logger
from shared.config.settings import Settings, get_settings
from shared.schemas.messages import (InitArticleJob, TranslateArticleJob,
                                     TranslateParams, serialize_job)
from shared.utils.redis_client import RedisClient, get_redis_client

logger = get_logger("processor.queue")

Job = Union[InitArticleJob, TranslateArticleJob]


@dataclass
class JobMessage:
    """One delivered stream entry and the handle to settle it."""

    message_id: str
    body: str
    attempt: int
    queue: "JobQueue" = field(repr=False)
    settled: bool = False

    async def ack(self) -> None:
        await self.queue.ack(self)

    async def retry(self) -> None:
        await self.queue.retry(self)


class JobQueue:
    def __init__(
        self,
        redis_client: RedisClient,
        stream: str,
        group: str,
        consumer: str,
        dead_letter_stream: str,
        max_retries: int = 3,
        visibility_timeout_ms: int = 30 * 60 * 1000,
        max_length: Optional[int] = None,
    ):
        self.redis = redis_client
        self.stream = stream
        self.group = group
        self.consumer = consumer
        self.dead_letter_stream = dead_letter_stream
        self.max_retries = max_retries
        self.visibility_timeout_ms = visibility_timeout_ms
        self.max_length = max_length

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None, redis_client: Optional[RedisClient] = None) -> "JobQueue":
        settings = settings or get_settings()
        svc = settings.service
        return cls(
            redis_client or get_redis_client("processor"),
            stream=svc.job_stream,
            group=svc.consumer_group,
            consumer=svc.consumer_name,
            dead_letter_stream=svc.dead_letter_stream,
            max_retries=svc.max_retries,
            visibility_timeout_ms=svc.visibility_timeout_ms,
            max_length=svc.stream_max_length,
        )

    # producer side

    async def send(self, job: Job, attempt: int = 1) -> str:
        return await self._add(serialize_job(job), attempt)

    async def enqueue_init(self, article_id: int) -> str:
        message_id = await self.send(InitArticleJob(id=article_id))
        logger.info(f"Queued init job for article {article_id} as {message_id}")
        return message_id

    async def enqueue_translate(self, article_id: int, language: str) -> str:
        job = TranslateArticleJob(id=article_id, params=TranslateParams(language=language))
        message_id = await self.send(job)
        logger.info(f"Queued translate job for article {article_id} ({language}) as {message_id}")
        return message_id

    async def _add(self, body: str, attempt: int) -> str:
        return await asyncio.to_thread(
            self.redis.xadd,
            self.stream,
            {"body": body, "attempt": attempt},
            maxlen=self.max_length,
        )

    # consumer side

    async def ensure_group(self) -> None:
        await asyncio.to_thread(self.redis.xgroup_create, self.stream, self.group, "0", True)

    async def receive(self, count: int = 10, block_ms: Optional[int] = 5000) -> List[JobMessage]:
        entries = await asyncio.to_thread(
            self.redis.xreadgroup,
            self.group,
            self.consumer,
            {self.stream: ">"},
            count,
            block_ms,
        )
        messages = []
        for _, stream_entries in entries:
            for message_id, fields in stream_entries:
                messages.append(self._to_message(message_id, fields))
        return messages

    async def reclaim(self, count: int = 10) -> List[JobMessage]:
        """Claim entries left unacknowledged past the visibility timeout.

        Entries already delivered more than max_retries times are
        dead-lettered instead of being handed out again.
        """
        entries = await asyncio.to_thread(
            self.redis.xautoclaim,
            self.stream,
            self.group,
            self.consumer,
            self.visibility_timeout_ms,
            "0-0",
            count,
        )
        if not entries:
            return []

        deliveries = await self._delivery_counts([msg_id for msg_id, _ in entries])
        messages = []
        for message_id, fields in entries:
            message = self._to_message(message_id, fields)
            if deliveries.get(message_id, 1) > self.max_retries:
                logger.warning(
                    f"Message {message_id} delivered {deliveries[message_id]} times without settling; dead-lettering"
                )
                await self._dead_letter(message, reason="unsettled")
                continue
            logger.warning(f"Reclaimed stale message {message_id}")
            messages.append(message)
        return messages

    async def _delivery_counts(self, message_ids: List[str]) -> Dict[str, int]:
        counts = {}
        for message_id in message_ids:
            pending = await asyncio.to_thread(
                self.redis.xpending_range, self.stream, self.group, message_id, message_id, 1
            )
            for entry in pending:
                counts[entry["message_id"]] = int(entry["times_delivered"])
        return counts

    async def ack(self, message: JobMessage) -> None:
        await asyncio.to_thread(self.redis.xack, self.stream, self.group, message.message_id)
        message.settled = True

    async def retry(self, message: JobMessage) -> None:
        if message.attempt >= self.max_retries:
            logger.error(f"Message {message.message_id} failed {message.attempt} attempts; dead-lettering")
            await self._dead_letter(message, reason="max_retries")
            return
        new_id = await self._add(message.body, message.attempt + 1)
        await asyncio.to_thread(self.redis.xack, self.stream, self.group, message.message_id)
        message.settled = True
        logger.info(f"Message {message.message_id} requeued as {new_id} (attempt {message.attempt + 1})")

    async def _dead_letter(self, message: JobMessage, reason: str) -> None:
        await asyncio.to_thread(
            self.redis.xadd,
            self.dead_letter_stream,
            {
                "body": message.body,
                "attempt": message.attempt,
                "reason": reason,
                "original_id": message.message_id,
                "failed_at": int(time.time()),
            },
        )
        await asyncio.to_thread(self.redis.xack, self.stream, self.group, message.message_id)
        message.settled = True

    def _to_message(self, message_id: str, fields: Dict[str, str]) -> JobMessage:
        try:
            attempt = int(fields.get("attempt", 1))
        except (TypeError, ValueError):
            attempt = 1
        return JobMessage(message_id=message_id, body=fields.get("body", ""), attempt=attempt, queue=self)

import asyncio

import pytest

from services.processor import worker
from services.processor.worker import consume_jobs


class RecordingDispatcher:
    def __init__(self, stop_event, stop_after=1, fail_first=False):
        self.batches = []
        self.stop_event = stop_event
        self.stop_after = stop_after
        self.fail_first = fail_first

    async def dispatch_batch(self, messages):
        if self.fail_first:
            self.fail_first = False
            raise RuntimeError("dispatch blew up")
        self.batches.append(messages)
        for message in messages:
            await message.ack()
        if len(self.batches) >= self.stop_after:
            self.stop_event.set()
        return []


class ScriptedQueue:
    """Queue double that replays receive() results in order."""

    stream = "article_jobs"
    group = "test-processor"
    consumer = "test-consumer"

    def __init__(self, script, stale=None):
        self.script = list(script)
        self.stale = stale or []
        self.group_created = False
        self.reclaims = 0

    async def ensure_group(self):
        self.group_created = True

    async def reclaim(self, count=10):
        self.reclaims += 1
        stale, self.stale = self.stale, []
        return stale

    async def receive(self, count=10, block_ms=5000):
        await asyncio.sleep(0)
        if not self.script:
            return []
        step = self.script.pop(0)
        if isinstance(step, Exception):
            raise step
        return step


class Msg:
    def __init__(self, message_id):
        self.message_id = message_id
        self.acked = False

    async def ack(self):
        self.acked = True


@pytest.mark.asyncio
async def test_consumes_seeded_jobs_until_stopped(job_queue, fake_redis):
    await job_queue.enqueue_init(1)
    await job_queue.enqueue_translate(1, "English")
    stop_event = asyncio.Event()
    dispatcher = RecordingDispatcher(stop_event)

    await asyncio.wait_for(consume_jobs(job_queue, dispatcher, stop_event, block_ms=None), timeout=5)

    [batch] = dispatcher.batches
    assert [m.attempt for m in batch] == [1, 1]
    assert fake_redis.xpending("article_jobs", "test-processor")["pending"] == 0


@pytest.mark.asyncio
async def test_stale_messages_dispatched_before_new_ones():
    stale = Msg("1-0")
    fresh = Msg("2-0")
    queue = ScriptedQueue([[fresh]], stale=[stale])
    stop_event = asyncio.Event()
    dispatcher = RecordingDispatcher(stop_event, stop_after=2)

    await asyncio.wait_for(consume_jobs(queue, dispatcher, stop_event), timeout=5)

    assert queue.group_created
    assert queue.reclaims == 1
    assert dispatcher.batches == [[stale], [fresh]]


@pytest.mark.asyncio
async def test_loop_survives_errors(monkeypatch):
    monkeypatch.setattr(worker, "ERROR_BACKOFF_SEC", 0)
    message = Msg("3-0")
    queue = ScriptedQueue([ConnectionError("redis went away"), [Msg("2-0")], [message]])
    stop_event = asyncio.Event()
    dispatcher = RecordingDispatcher(stop_event, fail_first=True)

    await asyncio.wait_for(consume_jobs(queue, dispatcher, stop_event), timeout=5)

    assert dispatcher.batches == [[message]]
    assert message.acked


@pytest.mark.asyncio
async def test_returns_immediately_when_already_stopped():
    queue = ScriptedQueue([[Msg("1-0")]])
    stop_event = asyncio.Event()
    stop_event.set()
    dispatcher = RecordingDispatcher(stop_event)

    await asyncio.wait_for(consume_jobs(queue, dispatcher, stop_event), timeout=5)

    assert queue.group_created
    assert dispatcher.batches == []
    assert len(queue.script) == 1

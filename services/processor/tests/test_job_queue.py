import json

import pytest

from services.processor.dispatcher import JobDispatcher, JobOutcome


@pytest.mark.asyncio
async def test_enqueue_translate_wire_format(job_queue, fake_redis):
    await job_queue.enqueue_translate(7, "English")

    [(_, fields)] = fake_redis.xrange("article_jobs")
    assert json.loads(fields["body"]) == {
        "id": 7,
        "category": "article",
        "action": "translate",
        "params": {"language": "English"},
    }
    assert fields["attempt"] == "1"


@pytest.mark.asyncio
async def test_receive_and_ack(job_queue, fake_redis):
    await job_queue.ensure_group()
    await job_queue.enqueue_init(3)

    [message] = await job_queue.receive(count=10, block_ms=None)
    assert json.loads(message.body)["action"] == "init"
    assert message.attempt == 1

    await message.ack()

    assert message.settled
    assert fake_redis.xpending("article_jobs", "test-processor")["pending"] == 0
    assert await job_queue.receive(count=10, block_ms=None) == []


@pytest.mark.asyncio
async def test_ensure_group_is_idempotent(job_queue):
    await job_queue.ensure_group()
    await job_queue.ensure_group()


@pytest.mark.asyncio
async def test_retry_requeues_with_next_attempt(job_queue, fake_redis):
    await job_queue.ensure_group()
    await job_queue.enqueue_init(3)
    [message] = await job_queue.receive(block_ms=None)

    await message.retry()

    assert fake_redis.xpending("article_jobs", "test-processor")["pending"] == 0
    [redelivered] = await job_queue.receive(block_ms=None)
    assert redelivered.message_id != message.message_id
    assert redelivered.body == message.body
    assert redelivered.attempt == 2


@pytest.mark.asyncio
async def test_retry_dead_letters_after_max_retries(job_queue, fake_redis):
    await job_queue.ensure_group()
    await job_queue.enqueue_init(3)

    for _ in range(job_queue.max_retries):
        [message] = await job_queue.receive(block_ms=None)
        await message.retry()

    assert await job_queue.receive(block_ms=None) == []
    [(_, dead)] = fake_redis.xrange("article_jobs_dlq")
    assert json.loads(dead["body"]) == {"id": 3, "category": "article", "action": "init", "params": {}}
    assert dead["reason"] == "max_retries"
    assert dead["attempt"] == "3"


@pytest.mark.asyncio
async def test_reclaim_returns_unsettled_messages(job_queue):
    await job_queue.ensure_group()
    await job_queue.enqueue_translate(1, "French")
    [message] = await job_queue.receive(block_ms=None)

    [reclaimed] = await job_queue.reclaim()

    assert reclaimed.message_id == message.message_id
    assert reclaimed.body == message.body


@pytest.mark.asyncio
async def test_undecodable_message_is_dead_lettered_by_reclaim(job_queue, fake_redis):
    await job_queue.ensure_group()
    original_id = fake_redis.xadd("article_jobs", {"body": "not a job", "attempt": "1"})

    [message] = await job_queue.receive(block_ms=None)
    assert await JobDispatcher(orchestrator=None).dispatch(message) == JobOutcome.UNHANDLED

    # each reclaim is one more delivery; past max_retries it goes to the DLQ
    for _ in range(job_queue.max_retries + 2):
        if not await job_queue.reclaim():
            break

    [(_, dead)] = fake_redis.xrange("article_jobs_dlq")
    assert dead["body"] == "not a job"
    assert dead["reason"] == "unsettled"
    assert dead["original_id"] == original_id
    assert fake_redis.xpending("article_jobs", "test-processor")["pending"] == 0
    assert await job_queue.reclaim() == []

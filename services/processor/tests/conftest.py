import os

# Settings are read lazily; pin a test environment before anything loads them.
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("REDIS_URL", "redis://localhost:6379/15")
os.environ.setdefault("DEEPSEEK_TOKEN", "test-token")
os.environ.setdefault("LOG_LEVEL", "WARNING")

import fakeredis
import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from services.processor.crud import ArticleStore
from services.processor.job_queue import JobQueue
from services.processor.llm import ModelResponseError
from shared.database.base import Base
from shared.database.models.article import Article
from shared.database.models.language import Language
from shared.schemas.messages import TranslateArticleJob, TranslateParams
from shared.utils.redis_client import RedisClient


@pytest.fixture
def session_factory():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    factory = sessionmaker(autocommit=False, autoflush=False, bind=engine, expire_on_commit=False)
    yield factory
    engine.dispose()


@pytest.fixture
def store(session_factory):
    return ArticleStore(session_factory)


@pytest.fixture
def seed(session_factory):
    """Insert rows directly and return them detached."""

    def _seed(*rows):
        with session_factory() as session:
            session.add_all(rows)
            session.commit()
            for row in rows:
                session.refresh(row)
        return rows

    return _seed


@pytest.fixture
def chinese_article(seed):
    article, *_ = seed(
        Article(
            title="标题",
            content="测试内容",
            summary="摘要",
            language="Chinese",
            category="news",
            image="cover.png",
            rank=5,
        ),
        Language(name="Chinese"),
        Language(name="English"),
        Language(name="French"),
    )
    return article


class FakeLLM:
    """Deterministic stand-in for LanguageModelClient."""

    def __init__(self, fail_on_translate_call=None):
        self.calls = []
        self.fail_on_translate_call = fail_on_translate_call
        self._translate_calls = 0

    async def summarize(self, text, max_length=100):
        self.calls.append(("summarize", text, max_length))
        return f"summary<{text}>"

    async def translate(self, text, from_language, to_language):
        self.calls.append(("translate", text, from_language, to_language))
        self._translate_calls += 1
        if self._translate_calls == self.fail_on_translate_call:
            raise ModelResponseError("model returned empty response")
        return f"[{to_language}] {text}"

    async def close(self):
        pass


class RecordingQueue:
    def __init__(self):
        self.sent = []

    async def enqueue_translate(self, article_id, language):
        self.sent.append(TranslateArticleJob(id=article_id, params=TranslateParams(language=language)))
        return f"{len(self.sent)}-0"


@pytest.fixture
def fake_llm():
    return FakeLLM()


@pytest.fixture
def recording_queue():
    return RecordingQueue()


@pytest.fixture
def fake_redis():
    return fakeredis.FakeRedis(decode_responses=True)


@pytest.fixture
def job_queue(fake_redis):
    queue = JobQueue(
        RedisClient("test", client=fake_redis),
        stream="article_jobs",
        group="test-processor",
        consumer="test-consumer",
        dead_letter_stream="article_jobs_dlq",
        max_retries=3,
        visibility_timeout_ms=0,
    )
    return queue


@pytest.fixture
def llm_factory():
    return FakeLLM

#services/processor/main.py
import asyncio
from contextlib import asynccontextmanager, suppress
from typing import Optional

import redis
from fastapi import Depends, FastAPI, HTTPException, Query, Request, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from services.processor.crud import ArticleStore, DuplicateLanguageError
from services.processor.job_queue import JobQueue
from services.processor.llm import LanguageModelClient, ModelResponseError
from services.processor.worker import build_pipeline, consume_jobs
from shared.app_logging.logger import setup_logging
from shared.config.settings import get_settings
from shared.database.session import init_db
from shared.schemas.messages import (ArticleCreate, ArticleOut, ArticleUpdate,
                                     LanguageCreate, LanguageOut,
                                     LanguageStatusUpdate, SummarizeTextRequest,
                                     TranslateRequest, TranslateTextRequest)
from shared.utils.health import create_processor_health_checker
from shared.utils.redis_client import close_all_redis_clients

logger = setup_logging("processor")

settings = get_settings()

health_checker = create_processor_health_checker()


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("🚀 Starting article processor...")
    init_db()
    queue, orchestrator, dispatcher = build_pipeline(settings)
    app.state.queue = queue
    app.state.store = orchestrator.store
    app.state.llm = orchestrator.llm

    stop_event = asyncio.Event()
    task = asyncio.create_task(
        consume_jobs(
            queue,
            dispatcher,
            stop_event,
            batch_size=settings.service.job_batch_size,
            block_ms=settings.service.job_block_ms,
        )
    )
    logger.info("Launched background job consumer")
    yield
    stop_event.set()
    task.cancel()
    with suppress(asyncio.CancelledError):
        await task
    await orchestrator.llm.close()
    close_all_redis_clients()
    logger.info("Article processor stopped")


app = FastAPI(
    title="Linguapress Article Processor",
    description="Summarizes articles and keeps their translations in sync.",
    lifespan=lifespan,
)


def get_queue(request: Request) -> JobQueue:
    return request.app.state.queue


def get_store(request: Request) -> ArticleStore:
    return request.app.state.store


def get_llm(request: Request) -> LanguageModelClient:
    return request.app.state.llm


@app.get("/processor/health")
def health():
    """Comprehensive health check endpoint."""
    return health_checker.run_all_checks()


@app.get("/processor/health/live")
def liveness_check():
    return {"status": "alive", "service": "processor"}


@app.get("/processor/health/ready")
def readiness_check():
    return health_checker.readiness(["database", "redis", "llm"])


@app.get("/processor/metrics")
def metrics():
    """Prometheus metrics endpoint."""
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)


@app.get("/processor/status")
def get_processor_status(queue: JobQueue = Depends(get_queue)):
    """Report whether every queued job has been delivered and settled."""
    try:
        stream_info = queue.redis.xinfo_stream(queue.stream)
        groups = queue.redis.xinfo_groups(queue.stream)
    except redis.exceptions.ResponseError as e:
        if "no such key" in str(e).lower():
            return {"is_idle": True, "status": "Stream not found, assuming idle."}
        logger.error(f"Redis error checking processor status: {e}")
        raise HTTPException(status_code=500, detail="Error checking processor status.")

    group_info = next((g for g in groups if g["name"] == queue.group), None)
    if not group_info:
        raise HTTPException(status_code=404, detail=f"Consumer group {queue.group} not found.")

    last_generated_id = stream_info.get("last-generated-id")
    last_delivered_id = group_info.get("last-delivered-id")
    pending_messages = group_info.get("pending")

    return {
        "is_idle": last_generated_id == last_delivered_id and pending_messages == 0,
        "last_generated_id": last_generated_id,
        "last_delivered_id": last_delivered_id,
        "pending_messages": pending_messages,
    }


@app.post("/processor/articles", status_code=201)
async def create_article(
    payload: ArticleCreate,
    store: ArticleStore = Depends(get_store),
    queue: JobQueue = Depends(get_queue),
):
    """Create a canonical article and queue its summary and translations."""
    article = await store.create_article(**payload.model_dump())
    message_id = await queue.enqueue_init(article.id)
    return {"status": 0, "msg": "ok", "data": {"article": ArticleOut.model_validate(article), "message_id": message_id}}


@app.get("/processor/articles")
async def list_articles(
    offset: int = Query(0, ge=0),
    limit: int = Query(10, ge=1, le=100),
    category: Optional[str] = None,
    language: Optional[str] = None,
    store: ArticleStore = Depends(get_store),
):
    """List articles and translations, ordered by rank."""
    items, total = await store.list_articles(offset, limit, category=category, language=language)
    return {
        "status": 0,
        "msg": "ok",
        "data": {"items": [ArticleOut.model_validate(a) for a in items], "total": total},
    }


@app.put("/processor/articles/{article_id}")
async def update_article(
    article_id: int,
    payload: ArticleUpdate,
    store: ArticleStore = Depends(get_store),
    queue: JobQueue = Depends(get_queue),
):
    """Update a canonical article and re-sync its translations when its text changed."""
    article = await store.get_by_id(article_id)
    if article is None:
        raise HTTPException(status_code=404, detail="Article not found")
    if not article.is_canonical:
        raise HTTPException(status_code=409, detail="Translated copies are written by the processor")

    changes = payload.model_dump(exclude_unset=True, exclude_none=True)
    text_changed = any(changes[name] != getattr(article, name) for name in ("title", "content") if name in changes)
    for name, value in changes.items():
        setattr(article, name, value)
    await store.update(article)

    message_id = None
    if text_changed:
        message_id = await queue.enqueue_init(article_id)
    return {
        "status": 0,
        "msg": "ok",
        "data": {"article": ArticleOut.model_validate(article), "message_id": message_id},
    }


@app.get("/processor/articles/{article_id}")
async def get_article(article_id: int, store: ArticleStore = Depends(get_store)):
    """Return an article with every translation produced so far."""
    article = await store.get_by_id(article_id)
    if article is None:
        raise HTTPException(status_code=404, detail="Article not found")
    translations = await store.list_translations(article_id)
    return {
        "status": 0,
        "msg": "ok",
        "data": {
            "article": ArticleOut.model_validate(article),
            "translations": [ArticleOut.model_validate(t) for t in translations],
        },
    }


@app.post("/processor/articles/{article_id}/init", status_code=202)
async def enqueue_init(
    article_id: int,
    store: ArticleStore = Depends(get_store),
    queue: JobQueue = Depends(get_queue),
):
    if await store.get_by_id(article_id) is None:
        raise HTTPException(status_code=404, detail="Article not found")
    message_id = await queue.enqueue_init(article_id)
    return {"status": 0, "msg": "ok", "data": {"message_id": message_id}}


@app.post("/processor/articles/{article_id}/translate", status_code=202)
async def enqueue_translate(
    article_id: int,
    payload: TranslateRequest,
    store: ArticleStore = Depends(get_store),
    queue: JobQueue = Depends(get_queue),
):
    if await store.get_by_id(article_id) is None:
        raise HTTPException(status_code=404, detail="Article not found")
    message_id = await queue.enqueue_translate(article_id, payload.language)
    return {"status": 0, "msg": "ok", "data": {"message_id": message_id}}


@app.get("/processor/languages")
async def list_languages(
    offset: int = Query(0, ge=0),
    limit: int = Query(10, ge=1, le=100),
    store: ArticleStore = Depends(get_store),
):
    items, total = await store.list_languages_page(offset, limit)
    return {
        "status": 0,
        "msg": "ok",
        "data": {"items": [LanguageOut.model_validate(lang) for lang in items], "total": total},
    }


@app.get("/processor/languages/{language_id}")
async def get_language(language_id: int, store: ArticleStore = Depends(get_store)):
    language = await store.get_language(language_id)
    if language is None:
        raise HTTPException(status_code=404, detail="Language not found")
    return {"status": 0, "msg": "ok", "data": LanguageOut.model_validate(language)}


@app.post("/processor/languages", status_code=201)
async def create_language(payload: LanguageCreate, store: ArticleStore = Depends(get_store)):
    """Register a target language; enabled languages receive translations from then on."""
    try:
        language = await store.create_language(payload.name, payload.status)
    except DuplicateLanguageError as e:
        raise HTTPException(status_code=409, detail=str(e))
    return {"status": 0, "msg": "ok", "data": LanguageOut.model_validate(language)}


@app.put("/processor/languages/{language_id}")
async def set_language_status(
    language_id: int,
    payload: LanguageStatusUpdate,
    store: ArticleStore = Depends(get_store),
):
    language = await store.set_language_status(language_id, payload.status)
    if language is None:
        raise HTTPException(status_code=404, detail="Language not found")
    return {"status": 0, "msg": "ok", "data": LanguageOut.model_validate(language)}


@app.post("/processor/ai/summarize")
async def summarize_text(payload: SummarizeTextRequest, llm: LanguageModelClient = Depends(get_llm)):
    try:
        summary = await llm.summarize(payload.text, payload.length)
    except ModelResponseError as e:
        raise HTTPException(status_code=502, detail=str(e))
    return {"status": 0, "msg": "ok", "data": summary}


@app.post("/processor/ai/translate")
async def translate_text(payload: TranslateTextRequest, llm: LanguageModelClient = Depends(get_llm)):
    try:
        translated = await llm.translate(payload.text, payload.from_language, payload.to_language)
    except ModelResponseError as e:
        raise HTTPException(status_code=502, detail=str(e))
    return {"status": 0, "msg": "ok", "data": translated}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8002)

import asyncio
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import AsyncIterator, Dict, List, Optional, Protocol, Tuple

from services.processor.crud import ArticleStore, DuplicateTranslationError
from services.processor.llm import LanguageModelClient
from shared.app_logging.logger import get_logger
from shared.database.models.article import Article

logger = get_logger("processor.orchestrator")

# column limits of translated fields; Postgres rejects longer values
FIELD_LIMITS = {
    "title": Article.__table__.c.title.type.length,
    "summary": Article.__table__.c.summary.type.length,
}


def oversized_fields(**values: str) -> Dict[str, int]:
    """Return the length of each value longer than its column allows."""
    return {
        name: len(value)
        for name, value in values.items()
        if FIELD_LIMITS.get(name) is not None and len(value) > FIELD_LIMITS[name]
    }


@dataclass
class _KeyedLock:
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    users: int = 0


class TranslateJobSender(Protocol):
    async def enqueue_translate(self, article_id: int, language: str) -> str: ...


class TranslationOrchestrator:
    """Runs the two article jobs: summarize-and-fan-out, and translate-one-language.

    Holds no state of its own besides the in-process locks that serialize
    upserts of the same (origin article, language) pair.
    """

    def __init__(
        self,
        store: ArticleStore,
        llm: LanguageModelClient,
        queue: TranslateJobSender,
        summary_length: int = 100,
        max_rank: Optional[int] = None,
        skip_disabled_languages: bool = True,
    ):
        self.store = store
        self.llm = llm
        self.queue = queue
        self.summary_length = summary_length
        self.max_rank = max_rank
        self.skip_disabled_languages = skip_disabled_languages
        self._upsert_locks: Dict[Tuple[int, str], _KeyedLock] = {}

    @asynccontextmanager
    async def _upsert_lock(self, article_id: int, language: str) -> AsyncIterator[None]:
        """Hold the lock for one (article, language) pair.

        The entry is dropped once its last user leaves, so the map only
        holds pairs that are being written right now.
        """
        key = (article_id, language)
        entry = self._upsert_locks.get(key)
        if entry is None:
            entry = self._upsert_locks[key] = _KeyedLock()
        entry.users += 1
        try:
            async with entry.lock:
                yield
        finally:
            entry.users -= 1
            if entry.users == 0:
                del self._upsert_locks[key]

    async def init_article(self, article_id: int) -> List[str]:
        """Summarize the article, then queue a translate job per other language.

        Returns the languages that were queued. The summary is saved before
        fan-out starts and stays saved if fan-out fails.
        """
        article = await self.store.get_by_id(article_id)
        if article is None:
            logger.warning(f"init skipped: article {article_id} not found")
            return []

        article.summary = await self.llm.summarize(article.content, self.summary_length)
        await self.store.update(article)
        logger.info(f"Saved summary for article {article_id}")

        languages = await self.store.list_languages()
        targets = []
        for language in languages:
            if language.name == article.language:
                continue
            if self.skip_disabled_languages and not language.enabled:
                logger.debug(f"Skipping disabled language {language.name}")
                continue
            targets.append(language.name)

        for name in targets:
            await self.queue.enqueue_translate(article_id, name)

        logger.info(f"Article {article_id} fanned out to {len(targets)} languages: {targets}")
        return targets

    async def translate_article(self, article_id: int, target_language: str) -> Optional[Article]:
        """Create or refresh the translated copy of an article in target_language."""
        source = await self.store.get_by_id(article_id)
        if source is None:
            logger.warning(f"translate skipped: article {article_id} not found")
            return None

        # every model call completes before anything is written
        title = await self._translate_field(source.title, source.language, target_language)
        summary = await self._translate_field(source.summary, source.language, target_language)
        content = await self._translate_field(source.content, source.language, target_language)

        oversized = oversized_fields(title=title, summary=summary)
        if oversized:
            logger.warning(
                f"Translation of {article_id} into {target_language} exceeds column limits "
                f"{FIELD_LIMITS}: field lengths {oversized}",
                extra={"article_id": article_id, "language": target_language, "oversized": oversized},
            )

        async with self._upsert_lock(article_id, target_language):
            existing = await self.store.get_by_origin_and_language(article_id, target_language)
            if existing is None:
                try:
                    return await self._insert_translation(source, target_language, title, summary, content)
                except DuplicateTranslationError:
                    logger.warning(
                        f"Translation of {article_id} into {target_language} was inserted concurrently; updating it"
                    )
                    existing = await self.store.get_by_origin_and_language(article_id, target_language)
                    if existing is None:
                        raise

            existing.title = title
            existing.summary = summary
            existing.content = content
            await self.store.update(existing)
            logger.info(f"Refreshed translation {existing.id} of article {article_id} ({target_language})")
            return existing

    async def _translate_field(self, text: Optional[str], from_language: str, to_language: str) -> str:
        if not text:
            return ""
        return await self.llm.translate(text, from_language, to_language)

    async def _insert_translation(
        self, source: Article, language: str, title: str, summary: str, content: str
    ) -> Article:
        rank = source.rank
        if self.max_rank is not None:
            rank = self.max_rank - rank
        translated = Article(
            origin_id=source.id,
            language=language,
            title=title,
            summary=summary,
            content=content,
            category=source.category,
            image=source.image,
            rank=rank,
            published_at=source.published_at,
        )
        translated = await self.store.insert(translated)
        logger.info(f"Created translation {translated.id} of article {source.id} ({language})")
        return translated

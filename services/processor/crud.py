import asyncio
from typing import Callable, List, Optional, Tuple, TypeVar

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from shared.app_logging.logger import get_logger
from shared.database.models.article import Article
from shared.database.models.language import LANGUAGE_ENABLED, Language
from shared.database.session import get_session_factory

logger = get_logger("processor.crud")

T = TypeVar("T")


class StoreError(Exception):
    """Raised when a read or write against the article store fails."""


class DuplicateTranslationError(StoreError):
    """Raised when a translated row for (origin_id, language) already exists."""


class DuplicateLanguageError(StoreError):
    """Raised when a language with the same name already exists."""


class ArticleStore:
    """Async accessor for articles and languages.

    Sessions are blocking, so every call runs in a worker thread and the
    event loop is free while the database works.
    """

    def __init__(self, session_factory: Optional[sessionmaker] = None):
        self._session_factory = session_factory

    def _session(self) -> Session:
        factory = self._session_factory or get_session_factory()
        return factory()

    async def _run(self, fn: Callable[[Session], T]) -> T:
        return await asyncio.to_thread(self._run_sync, fn)

    def _run_sync(self, fn: Callable[[Session], T]) -> T:
        session = self._session()
        try:
            return fn(session)
        except StoreError:
            session.rollback()
            raise
        except SQLAlchemyError as e:
            session.rollback()
            logger.error(f"Article store operation failed: {e}")
            raise StoreError(str(e)) from e
        finally:
            session.close()

    async def get_by_id(self, article_id: int) -> Optional[Article]:
        article = await self._run(lambda s: s.get(Article, article_id))
        if article is None:
            logger.info(f"Article {article_id} not found")
        return article

    async def get_by_origin_and_language(self, origin_id: int, language: str) -> Optional[Article]:
        def query(session: Session) -> Optional[Article]:
            stmt = select(Article).where(Article.origin_id == origin_id, Article.language == language)
            return session.scalars(stmt).first()

        return await self._run(query)

    async def list_translations(self, origin_id: int) -> List[Article]:
        def query(session: Session) -> List[Article]:
            stmt = select(Article).where(Article.origin_id == origin_id).order_by(Article.language)
            return list(session.scalars(stmt))

        return await self._run(query)

    async def insert(self, article: Article) -> Article:
        def write(session: Session) -> Article:
            session.add(article)
            try:
                session.commit()
            except IntegrityError as e:
                session.rollback()
                if article.origin_id is not None:
                    raise DuplicateTranslationError(
                        f"translation of article {article.origin_id} into {article.language} already exists"
                    ) from e
                raise StoreError(str(e)) from e
            session.refresh(article)
            logger.info(f"Inserted Article {article.id} (origin={article.origin_id}, language={article.language})")
            return article

        return await self._run(write)

    async def update(self, article: Article) -> None:
        def write(session: Session) -> None:
            session.merge(article)
            session.commit()
            logger.info(f"Updated Article {article.id}")

        await self._run(write)

    async def create_article(
        self,
        title: str,
        content: str,
        language: str,
        category: str,
        image: Optional[str] = None,
        rank: int = 1,
        published_at=None,
    ) -> Article:
        """Insert a canonical article; its summary is filled in later by the init job."""
        article = Article(
            origin_id=None,
            title=title,
            content=content,
            summary="",
            language=language,
            category=category,
            image=image,
            rank=rank,
        )
        if published_at is not None:
            article.published_at = published_at
        return await self.insert(article)

    async def list_languages(self) -> List[Language]:
        return await self._run(lambda s: list(s.scalars(select(Language).order_by(Language.id))))

    async def list_articles(
        self,
        offset: int = 0,
        limit: int = 10,
        category: Optional[str] = None,
        language: Optional[str] = None,
    ) -> Tuple[List[Article], int]:
        """Return one page of articles ordered by rank, and the total match count."""

        def query(session: Session) -> Tuple[List[Article], int]:
            filters = []
            if category is not None:
                filters.append(Article.category == category)
            if language is not None:
                filters.append(Article.language == language)
            total = session.scalar(select(func.count()).select_from(Article).where(*filters))
            stmt = select(Article).where(*filters).order_by(Article.rank, Article.id).offset(offset).limit(limit)
            return list(session.scalars(stmt)), total

        return await self._run(query)

    async def get_language(self, language_id: int) -> Optional[Language]:
        return await self._run(lambda s: s.get(Language, language_id))

    async def list_languages_page(self, offset: int = 0, limit: int = 10) -> Tuple[List[Language], int]:
        def query(session: Session) -> Tuple[List[Language], int]:
            total = session.scalar(select(func.count()).select_from(Language))
            stmt = select(Language).order_by(Language.id).offset(offset).limit(limit)
            return list(session.scalars(stmt)), total

        return await self._run(query)

    async def create_language(self, name: str, status: int = LANGUAGE_ENABLED) -> Language:
        def write(session: Session) -> Language:
            language = Language(name=name, status=status)
            session.add(language)
            try:
                session.commit()
            except IntegrityError as e:
                session.rollback()
                raise DuplicateLanguageError(f"language {name} already exists") from e
            session.refresh(language)
            logger.info(f"Created Language {language.id} ({name})")
            return language

        return await self._run(write)

    async def set_language_status(self, language_id: int, status: int) -> Optional[Language]:
        """Enable or disable a language; returns None when it does not exist."""

        def write(session: Session) -> Optional[Language]:
            language = session.get(Language, language_id)
            if language is None:
                return None
            language.status = status
            session.commit()
            session.refresh(language)
            logger.info(f"Language {language.name} status set to {status}")
            return language

        return await self._run(write)

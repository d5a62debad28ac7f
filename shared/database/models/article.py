from sqlalchemy import (Column, DateTime, ForeignKey, Index, Integer, String,
                        Text, UniqueConstraint, func)

from ..base import Base


class Article(Base):
    """One article in one language.

    Rows with ``origin_id`` NULL are canonical originals; every other row is
    a translated copy of the article ``origin_id`` points to.
    """

    __tablename__ = "articles"
    __table_args__ = (
        UniqueConstraint("origin_id", "language", name="uq_articles_origin_language"),
        Index("list_idx", "category", "language", "rank"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    origin_id = Column(Integer, ForeignKey("articles.id", ondelete="CASCADE"), nullable=True, index=True)
    language = Column(String, nullable=False)
    title = Column(String(256), nullable=False)
    content = Column(Text, nullable=False)
    summary = Column(String(1024), nullable=False, default="")
    image = Column(Text, nullable=True)
    rank = Column(Integer, nullable=False, default=1)
    published_at = Column(DateTime, server_default=func.now(), nullable=False)
    category = Column(String, nullable=False)

    @property
    def is_canonical(self) -> bool:
        return self.origin_id is None

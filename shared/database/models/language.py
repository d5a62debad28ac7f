from sqlalchemy import Column, Integer, String

from ..base import Base

LANGUAGE_ENABLED = 1
LANGUAGE_DISABLED = 0


class Language(Base):
    """A target language articles are translated into."""

    __tablename__ = "languages"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String, unique=True, nullable=False)
    status = Column(Integer, nullable=False, default=LANGUAGE_ENABLED)

    @property
    def enabled(self) -> bool:
        return self.status == LANGUAGE_ENABLED

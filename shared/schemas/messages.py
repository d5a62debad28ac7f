from datetime import datetime
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter


class InitArticleJob(BaseModel):
    """Summarize a canonical article, then fan out one translate job per language."""

    id: int = Field(..., description="Canonical article id")
    category: Literal["article"] = "article"
    action: Literal["init"] = "init"
    params: dict = Field(default_factory=dict, description="Unused for init")


class TranslateParams(BaseModel):
    language: str = Field(..., min_length=1, description="Target language name")


class TranslateArticleJob(BaseModel):
    """Produce or refresh the translated copy of an article in one language."""

    id: int = Field(..., description="Source article id")
    category: Literal["article"] = "article"
    action: Literal["translate"] = "translate"
    params: TranslateParams

    @property
    def language(self) -> str:
        return self.params.language


ArticleJob = Annotated[Union[InitArticleJob, TranslateArticleJob], Field(discriminator="action")]

_article_job_adapter: TypeAdapter = TypeAdapter(ArticleJob)


def parse_job(body: Union[str, bytes]) -> Union[InitArticleJob, TranslateArticleJob]:
    """Decode a queue message body; raises pydantic.ValidationError on unknown kinds."""
    return _article_job_adapter.validate_json(body)


def serialize_job(job: Union[InitArticleJob, TranslateArticleJob]) -> str:
    return job.model_dump_json()


class ArticleCreate(BaseModel):
    """Payload for creating a canonical article."""

    title: str = Field(..., min_length=1, max_length=256)
    content: str = Field(..., min_length=1)
    language: str = Field(..., min_length=1)
    category: str = Field(..., min_length=1)
    image: Optional[str] = None
    rank: int = 1
    published_at: Optional[datetime] = None


class ArticleOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    origin_id: Optional[int] = None
    language: str
    title: str
    content: str
    summary: str
    image: Optional[str] = None
    rank: int
    published_at: Optional[datetime] = None
    category: str


class TranslateRequest(BaseModel):
    language: str = Field(..., min_length=1)


class SummarizeTextRequest(BaseModel):
    text: str = Field(..., min_length=1)
    length: int = Field(100, ge=1)


class TranslateTextRequest(BaseModel):
    text: str = Field(..., min_length=1)
    from_language: str = Field(..., alias="from", min_length=1)
    to_language: str = Field(..., alias="to", min_length=1)


class ArticleUpdate(BaseModel):
    """Partial update of a canonical article; omitted fields keep their value."""

    title: Optional[str] = Field(None, min_length=1, max_length=256)
    content: Optional[str] = Field(None, min_length=1)
    category: Optional[str] = Field(None, min_length=1)
    image: Optional[str] = None
    rank: Optional[int] = None
    published_at: Optional[datetime] = None


class LanguageCreate(BaseModel):
    name: str = Field(..., min_length=1)
    status: Literal[0, 1] = 1


class LanguageStatusUpdate(BaseModel):
    status: Literal[0, 1] = Field(..., description="1 enables the language, 0 disables it")


class LanguageOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    status: int

"""
Centralized configuration management for Linguapress services.
Uses Pydantic Settings for validation and type safety.
"""

from dataclasses import dataclass
from functools import lru_cache
from typing import Literal, Optional

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class AppBaseSettings(BaseSettings):
    """Base settings with shared configuration."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )


class DatabaseSettings(AppBaseSettings):
    """Database configuration settings."""

    database_url: Optional[str] = Field(
        default=None,
        validation_alias="DATABASE_URL",
    )
    postgres_user: str = Field(
        default="postgres",
        validation_alias="POSTGRES_USER",
    )
    postgres_password: str = Field(
        default="",
        validation_alias="POSTGRES_PASSWORD",
    )
    postgres_db: str = Field(
        default="linguapress",
        validation_alias="POSTGRES_DB",
    )
    postgres_host: str = Field(
        default="postgres",
        validation_alias="POSTGRES_HOST",
    )
    postgres_port: int = Field(
        default=5432,
        validation_alias="POSTGRES_PORT",
    )
    echo_sql: bool = Field(
        default=False,
        validation_alias="DATABASE_ECHO",
    )

    @model_validator(mode="after")
    def assemble_database_url(self):
        """Build DATABASE_URL from its parts when it is not given directly."""
        if not self.database_url:
            self.database_url = (
                f"postgresql://{self.postgres_user}:{self.postgres_password}"
                f"@{self.postgres_host}:{self.postgres_port}/{self.postgres_db}"
            )
        return self


class RedisSettings(AppBaseSettings):
    """Redis configuration settings."""

    redis_url: Optional[str] = Field(
        default=None,
        validation_alias="REDIS_URL",
    )
    redis_host: str = Field(
        default="redis",
        validation_alias="REDIS_HOST",
    )
    redis_port: int = Field(
        default=6379,
        validation_alias="REDIS_PORT",
    )
    redis_db: int = Field(
        default=0,
        validation_alias="REDIS_DB",
    )
    redis_password: Optional[str] = Field(
        default=None,
        validation_alias="REDIS_PASSWORD",
    )

    @model_validator(mode="after")
    def assemble_redis_url(self):
        """Ensure Redis URL is properly formatted."""
        if not self.redis_url:
            auth = f":{self.redis_password}@" if self.redis_password else ""
            self.redis_url = f"redis://{auth}{self.redis_host}:{self.redis_port}/{self.redis_db}"
        return self


@dataclass(frozen=True)
class LLMProviderConfig:
    """Connection details for one chat-completion provider."""

    name: str
    base_url: str
    api_key: str
    model: str


class LLMSettings(AppBaseSettings):
    """Chat-completion provider settings.

    Two OpenAI-compatible providers can be configured side by side;
    AI_PROVIDER picks the one the processor talks to.
    """

    provider: Literal["deepseek", "siliconflow"] = Field(
        default="deepseek",
        validation_alias="AI_PROVIDER",
    )
    deepseek_url: str = Field(
        default="https://api.deepseek.com/v1",
        validation_alias="DEEPSEEK_URL",
    )
    deepseek_token: str = Field(
        default="",
        validation_alias="DEEPSEEK_TOKEN",
    )
    deepseek_model: str = Field(
        default="deepseek-chat",
        validation_alias="DEEPSEEK_MODEL",
    )
    siliconflow_url: str = Field(
        default="https://api.siliconflow.cn/v1",
        validation_alias="SILICONFLOW_URL",
    )
    siliconflow_token: str = Field(
        default="",
        validation_alias="SILICONFLOW_TOKEN",
    )
    siliconflow_model: str = Field(
        default="deepseek-ai/DeepSeek-V3",
        validation_alias="SILICONFLOW_MODEL",
    )
    temperature: float = Field(
        default=0.5,
        validation_alias="LLM_TEMPERATURE",
    )
    timeout: float = Field(
        default=1500.0,
        validation_alias="LLM_TIMEOUT",
    )

    @field_validator("provider", mode="before")
    @classmethod
    def normalize_provider(cls, v):
        """Accept DEEPSEEK / SiliconFlow spellings."""
        if isinstance(v, str):
            return v.strip().lower()
        return v

    @field_validator("temperature")
    @classmethod
    def validate_temperature(cls, v: float) -> float:
        if v < 0 or v > 2:
            raise ValueError(f"LLM_TEMPERATURE must be 0-2, got {v}")
        return v

    def resolve(self) -> LLMProviderConfig:
        """Return the connection details of the selected provider."""
        if self.provider == "siliconflow":
            return LLMProviderConfig(
                name="siliconflow",
                base_url=self.siliconflow_url,
                api_key=self.siliconflow_token,
                model=self.siliconflow_model,
            )
        return LLMProviderConfig(
            name="deepseek",
            base_url=self.deepseek_url,
            api_key=self.deepseek_token,
            model=self.deepseek_model,
        )


class ServiceSettings(AppBaseSettings):
    """Service-specific configuration settings."""

    job_stream: str = Field(
        default="article_jobs",
        validation_alias="JOB_STREAM",
    )
    dead_letter_stream: str = Field(
        default="article_jobs_dlq",
        validation_alias="DEAD_LETTER_STREAM",
    )
    consumer_group_prefix: str = Field(
        default="linguapress",
        validation_alias="CONSUMER_GROUP_PREFIX",
    )
    consumer_name: str = Field(
        default="processor-1",
        validation_alias="CONSUMER_NAME",
    )
    job_batch_size: int = Field(
        default=10,
        validation_alias="JOB_BATCH_SIZE",
    )
    job_block_ms: int = Field(
        default=5000,
        validation_alias="JOB_BLOCK_MS",
    )
    handler_timeout: float = Field(
        default=600.0,
        validation_alias="HANDLER_TIMEOUT",
    )
    visibility_timeout_ms: int = Field(
        default=30 * 60 * 1000,
        validation_alias="VISIBILITY_TIMEOUT_MS",
    )
    max_retries: int = Field(
        default=3,
        validation_alias="MAX_RETRIES",
    )
    summary_length: int = Field(
        default=100,
        validation_alias="SUMMARY_LENGTH",
    )
    max_rank: Optional[int] = Field(
        default=None,
        validation_alias="MAX_RANK",
    )
    skip_disabled_languages: bool = Field(
        default=True,
        validation_alias="SKIP_DISABLED_LANGUAGES",
    )
    stream_max_length: int = Field(
        default=10000,
        validation_alias="STREAM_MAX_LENGTH",
    )
    redis_timeout: float = Field(
        default=10.0,
        validation_alias="REDIS_TIMEOUT",
    )

    @field_validator("max_retries", "job_batch_size")
    @classmethod
    def validate_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError(f"must be >= 1, got {v}")
        return v

    @field_validator("max_rank", mode="before")
    @classmethod
    def empty_max_rank(cls, v):
        """An empty MAX_RANK disables rank normalization."""
        if v == "":
            return None
        return v

    @property
    def consumer_group(self) -> str:
        return f"{self.consumer_group_prefix}-processor"


class LoggingSettings(AppBaseSettings):
    """Logging configuration settings."""

    level: str = Field(
        default="INFO",
        validation_alias="LOG_LEVEL",
    )
    include_correlation_id: bool = Field(
        default=True,
        validation_alias="LOG_INCLUDE_CORRELATION_ID",
    )
    json_logs: bool = Field(
        default=False,
        validation_alias="JSON_LOGS",
    )


class Settings(AppBaseSettings):
    """Main settings class that combines all configuration sections."""

    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    redis: RedisSettings = Field(default_factory=RedisSettings)
    llm: LLMSettings = Field(default_factory=LLMSettings)
    service: ServiceSettings = Field(default_factory=ServiceSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    service_name: str = Field(
        default="linguapress",
        validation_alias="SERVICE_NAME",
    )
    environment: Literal["dev", "stage", "prod"] = Field(
        default="dev",
        validation_alias="ENV_TYPE",
    )
    version: str = Field(
        default="1.0.0",
        validation_alias="SERVICE_VERSION",
    )


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


def get_database_url() -> str:
    """Get the database URL."""
    return get_settings().database.database_url


def get_redis_url() -> str:
    """Get the Redis URL."""
    return get_settings().redis.redis_url

import pytest
from pydantic import ValidationError

from shared.config.settings import (DatabaseSettings, LLMSettings,
                                    RedisSettings, ServiceSettings,
                                    get_database_url, get_redis_url,
                                    get_settings)


def test_database_url_assembled_from_parts(monkeypatch):
    monkeypatch.delenv("DATABASE_URL", raising=False)

    settings = DatabaseSettings(
        POSTGRES_USER="lp",
        POSTGRES_PASSWORD="secret",
        POSTGRES_HOST="db",
        POSTGRES_PORT=5433,
        POSTGRES_DB="articles",
    )

    assert settings.database_url == "postgresql://lp:secret@db:5433/articles"


def test_database_url_wins_over_parts():
    settings = DatabaseSettings(DATABASE_URL="sqlite://", POSTGRES_HOST="db")

    assert settings.database_url == "sqlite://"


def test_redis_url_assembled_with_password(monkeypatch):
    monkeypatch.delenv("REDIS_URL", raising=False)

    settings = RedisSettings(REDIS_HOST="cache", REDIS_PASSWORD="pw", REDIS_DB=2)

    assert settings.redis_url == "redis://:pw@cache:6379/2"


def test_deepseek_is_the_default_provider(monkeypatch):
    monkeypatch.delenv("AI_PROVIDER", raising=False)

    provider = LLMSettings(DEEPSEEK_TOKEN="ds-token").resolve()

    assert provider.name == "deepseek"
    assert provider.base_url == "https://api.deepseek.com/v1"
    assert provider.api_key == "ds-token"
    assert provider.model == "deepseek-chat"


def test_provider_name_is_case_insensitive():
    provider = LLMSettings(AI_PROVIDER="SiliconFlow", SILICONFLOW_TOKEN="sf").resolve()

    assert provider.name == "siliconflow"
    assert provider.api_key == "sf"


def test_unknown_provider_rejected():
    with pytest.raises(ValidationError):
        LLMSettings(AI_PROVIDER="openai")


def test_temperature_range_checked():
    with pytest.raises(ValidationError):
        LLMSettings(LLM_TEMPERATURE=3)


def test_empty_max_rank_disables_normalization():
    assert ServiceSettings(MAX_RANK="").max_rank is None
    assert ServiceSettings(MAX_RANK="10000").max_rank == 10000


def test_consumer_group_uses_prefix():
    settings = ServiceSettings(CONSUMER_GROUP_PREFIX="lp-stage")

    assert settings.consumer_group == "lp-stage-processor"


def test_max_retries_must_be_positive():
    with pytest.raises(ValidationError):
        ServiceSettings(MAX_RETRIES=0)


def test_url_helpers_read_cached_settings(monkeypatch):
    monkeypatch.setenv("DATABASE_URL", "sqlite:///articles.db")
    monkeypatch.setenv("REDIS_URL", "redis://cache:6379/4")
    get_settings.cache_clear()
    try:
        assert get_database_url() == "sqlite:///articles.db"
        assert get_redis_url() == "redis://cache:6379/4"
    finally:
        get_settings.cache_clear()

import pytest

from services.processor.llm import (LanguageModelClient, ModelResponseError,
                                    create_llm_client)
from shared.config.settings import LLMSettings, Settings


class DummyResponse:
    def __init__(self, content):
        # mirrors completion.choices[0].message.content
        msg = type("M", (), {"content": content})
        self.choices = [type("C", (), {"message": msg})]


class DummyCompletions:
    def __init__(self, content):
        self.content = content
        self.requests = []

    async def create(self, **kwargs):
        self.requests.append(kwargs)
        return DummyResponse(self.content)


class DummyClient:
    def __init__(self, content="RESULT"):
        self.chat = type("Chat", (), {})()
        self.chat.completions = DummyCompletions(content)


def make_client(content="RESULT"):
    dummy = DummyClient(content)
    client = LanguageModelClient(
        base_url="https://llm.example/v1", api_key="k", model="deepseek-chat", client=dummy
    )
    return client, dummy.chat.completions


@pytest.mark.asyncio
async def test_summarize_request_shape():
    client, completions = make_client("短摘要")

    result = await client.summarize("测试内容", 100)

    assert result == "短摘要"
    [request] = completions.requests
    assert request["model"] == "deepseek-chat"
    assert request["temperature"] == 0.5
    assert request["timeout"] == 1500.0
    system, user = request["messages"]
    assert system["role"] == "system" and "100 characters" in system["content"]
    assert user == {"role": "user", "content": "测试内容"}


@pytest.mark.asyncio
async def test_translate_request_shape():
    client, completions = make_client("# Title\n\nHello")

    result = await client.translate("# 标题\n\n你好", "Chinese", "English")

    assert result == "# Title\n\nHello"
    system, user = completions.requests[0]["messages"]
    assert "Chinese" in system["content"] and "English" in system["content"]
    assert "Markdown" in system["content"]
    assert user["content"] == "# 标题\n\n你好"


@pytest.mark.parametrize("content", [None, ""])
@pytest.mark.asyncio
async def test_empty_completion_raises(content):
    client, completions = make_client(content)

    with pytest.raises(ModelResponseError, match="empty response"):
        await client.translate("text", "Chinese", "English")

    assert len(completions.requests) == 1


def test_create_llm_client_uses_selected_provider():
    settings = Settings(
        llm=LLMSettings(
            AI_PROVIDER="SILICONFLOW",
            SILICONFLOW_URL="https://sf.example/v1",
            SILICONFLOW_TOKEN="sf-token",
            SILICONFLOW_MODEL="sf-model",
            LLM_TIMEOUT=60,
        )
    )

    client = create_llm_client(settings)

    assert client.model == "sf-model"
    assert client.temperature == 0.5
    assert client.timeout == 60

from typing import Optional

from openai import AsyncOpenAI

from services.processor.prompts import get_summary_prompt, get_translation_prompt
from shared.app_logging.logger import get_logger
from shared.config.settings import Settings, get_settings

logger = get_logger("processor.llm")

DEFAULT_TEMPERATURE = 0.5
DEFAULT_TIMEOUT = 1500.0


class ModelResponseError(Exception):
    """Raised when a completion carries no text."""


class LanguageModelClient:
    """Summarization and translation over an OpenAI-compatible chat-completion API.

    Each call is one blocking request/response round trip; nothing is cached or
    retried here, so failures surface to the job that made the call.
    """

    def __init__(
        self,
        base_url: str,
        api_key: str,
        model: str,
        temperature: float = DEFAULT_TEMPERATURE,
        timeout: float = DEFAULT_TIMEOUT,
        client: Optional[AsyncOpenAI] = None,
    ):
        self.model = model
        self.temperature = temperature
        self.timeout = timeout
        self._client = client or AsyncOpenAI(
            api_key=api_key,
            base_url=base_url or None,
            timeout=timeout,
            max_retries=0,
        )

    async def _complete(self, system_prompt: str, text: str) -> str:
        completion = await self._client.chat.completions.create(
            model=self.model,
            messages=[
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": text},
            ],
            temperature=self.temperature,
            timeout=self.timeout,
        )
        content = completion.choices[0].message.content if completion.choices else None
        if not content:
            raise ModelResponseError("model returned empty response")
        return content

    async def summarize(self, text: str, max_length: int = 100) -> str:
        """Summarize text in at most max_length characters."""
        logger.debug("Requesting summary", extra={"max_length": max_length, "chars": len(text)})
        return await self._complete(get_summary_prompt(max_length), text)

    async def translate(self, text: str, from_language: str, to_language: str) -> str:
        """Translate text, keeping its Markdown formatting."""
        logger.debug(
            "Requesting translation",
            extra={"from_language": from_language, "to_language": to_language, "chars": len(text)},
        )
        return await self._complete(get_translation_prompt(from_language, to_language), text)

    async def close(self) -> None:
        await self._client.close()


def create_llm_client(settings: Optional[Settings] = None) -> LanguageModelClient:
    """Build a client for the provider selected by AI_PROVIDER."""
    settings = settings or get_settings()
    provider = settings.llm.resolve()
    logger.info(f"Using language model provider {provider.name} ({provider.model})")
    return LanguageModelClient(
        base_url=provider.base_url,
        api_key=provider.api_key,
        model=provider.model,
        temperature=settings.llm.temperature,
        timeout=settings.llm.timeout,
    )

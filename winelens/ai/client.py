"""Vision/generation client wrapper.

Constructed once during application startup and handed to the worker
explicitly. When no API key is configured ``build_ai_client`` returns
``None`` and the worker fails jobs with AIClientNotConfiguredError.
"""

import logging
from typing import Optional

from openai import AsyncOpenAI

from winelens.config import Settings

logger = logging.getLogger(__name__)


class AIClient:
    """prompt (+ optional image reference) -> text."""

    def __init__(self, client: AsyncOpenAI, model: str = "gpt-4o"):
        self._client = client
        self.model = model

    async def complete(
        self,
        prompt: str,
        *,
        image_url: Optional[str] = None,
        system: Optional[str] = None,
        json_mode: bool = False,
        max_tokens: int = 800,
        temperature: float = 0.7,
    ) -> str:
        if image_url:
            content = [
                {"type": "text", "text": prompt},
                {"type": "image_url", "image_url": {"url": image_url}},
            ]
        else:
            content = prompt

        messages = []
        if system:
            messages.append({"role": "system", "content": system})
        messages.append({"role": "user", "content": content})

        kwargs = {}
        if json_mode:
            kwargs["response_format"] = {"type": "json_object"}

        response = await self._client.chat.completions.create(
            model=self.model,
            messages=messages,
            max_tokens=max_tokens,
            temperature=temperature,
            **kwargs,
        )
        if not response.choices:
            return ""
        return response.choices[0].message.content or ""

    async def close(self) -> None:
        await self._client.close()


def build_ai_client(settings: Settings) -> Optional[AIClient]:
    if not settings.openai_api_key:
        logger.warning("OPENAI_API_KEY not set; analysis jobs will fail until configured")
        return None
    client = AsyncOpenAI(
        api_key=settings.openai_api_key,
        timeout=settings.openai_timeout_seconds,
    )
    return AIClient(client, model=settings.openai_model)

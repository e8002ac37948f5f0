from __future__ import annotations

import logging
from typing import Optional

from openai import AsyncOpenAI, OpenAIError

from app.core.config import Settings

logger = logging.getLogger(__name__)

OPTIMIZE_TEMPLATE = """Rewrite the following prompt for an AI image generator.
Produce one detailed, creative, high quality image description covering composition, style, lighting, colour and mood.
Keep the language of the original prompt. Output only the rewritten prompt, with no explanation.
Original prompt: "{prompt}\""""


class EmptyCompletionError(RuntimeError):
    """Raised when the completion model streams back no content."""


def build_completion_client(settings: Settings) -> AsyncOpenAI:
    return AsyncOpenAI(
        api_key=settings.completion_api_key or "missing",
        base_url=settings.completion_base_url,
        timeout=settings.request_timeout_seconds,
    )


def fallback_prompt(prompt: str) -> str:
    return f"High quality image: {prompt}, realistic style, bright lighting, enhanced detail, 4K resolution"


class PromptOptimizer:
    """Rewrite user prompts into richer image descriptions."""

    def __init__(self, client: AsyncOpenAI, *, model: str) -> None:
        self._client = client
        self._model = model

    async def optimize(self, prompt: str) -> str:
        """Return the optimized prompt, or a fallback when the model is unavailable."""

        logger.info("Optimizing prompt", extra={"model": self._model})
        try:
            optimized = await self._complete(OPTIMIZE_TEMPLATE.format(prompt=prompt))
        except (OpenAIError, EmptyCompletionError) as exc:
            logger.warning("Prompt optimization failed, using fallback", extra={"error": str(exc)})
            return fallback_prompt(prompt)

        logger.info("Prompt optimized", extra={"optimized_prompt": optimized})
        return optimized

    async def _complete(self, content: str) -> str:
        stream = await self._client.chat.completions.create(
            model=self._model,
            messages=[{"role": "user", "content": content}],
            stream=True,
        )
        parts: list[str] = []
        async for chunk in stream:
            delta: Optional[str] = chunk.choices[0].delta.content if chunk.choices else None
            if delta:
                parts.append(delta)
        optimized = "".join(parts).strip()
        if not optimized:
            raise EmptyCompletionError("Completion model returned an empty response")
        return optimized

"""
OpenAI-backed text generation and metadata extraction stages.

SDK exceptions are converted to the typed provider errors here, so the
rest of the pipeline never inspects SDK error objects.
"""

import json
import time
from typing import Any, Optional

import openai
from openai import AsyncOpenAI

from bedtime.config import config
from bedtime.jobs.errors import (
    AuthInvalidError,
    GenerationFailedError,
    ProviderError,
    provider_error_from,
)
from bedtime.jobs.models import (
    StoryGenerationResult,
    StoryMeta,
    StoryMetaResult,
    StoryMood,
    TokenUsage,
)
from bedtime.utils.logging import provider_logger as logger


STORY_SYSTEM_PROMPT = "You generate bedtime stories."

META_SYSTEM_PROMPT = "Extract structured metadata in Hungarian."

META_USER_PROMPT = """
Extract JSON with:
title (max 6 words),
summary (1 sentence),
setting (1-4 words),
conflict (1-6 words),
tone (nyugodt|vidam|kalandos).

Story:
{story}
"""

VALID_TONES = {mood.value for mood in StoryMood}


def usage_from_response(response: Any) -> TokenUsage:
    """Chat completions report prompt/completion tokens; mirror them as input/output."""
    usage = getattr(response, "usage", None)
    if usage is None:
        return TokenUsage()
    return TokenUsage(
        total_tokens=usage.total_tokens or 0,
        prompt_tokens=usage.prompt_tokens,
        completion_tokens=usage.completion_tokens,
        input_tokens=usage.prompt_tokens,
        output_tokens=usage.completion_tokens,
    )


def parse_story_meta(raw: str) -> StoryMeta:
    try:
        parsed: Any = json.loads(raw or "{}")
    except json.JSONDecodeError as e:
        raise GenerationFailedError(f"Failed to parse story metadata: {e}") from e
    if not isinstance(parsed, dict):
        raise GenerationFailedError("Failed to parse story metadata")

    tone = str(parsed.get("tone") or "").strip()
    if tone and tone not in VALID_TONES:
        raise GenerationFailedError(f"Invalid tone: {tone}")

    return StoryMeta(
        title=str(parsed.get("title") or "").strip(),
        summary=str(parsed.get("summary") or "").strip(),
        setting=str(parsed.get("setting") or "").strip(),
        conflict=str(parsed.get("conflict") or "").strip(),
        tone=tone,
    )


class OpenAIStoryProvider:
    """
    Story text and metadata provider using the OpenAI chat completions API.

    Usage:
        provider = OpenAIStoryProvider()
        story = await provider.generate_story_text(prompt)
        meta = await provider.extract_story_meta(story.text)
    """

    def __init__(
        self,
        client: Optional[AsyncOpenAI] = None,
        model: Optional[str] = None,
        api_key: Optional[str] = None,
    ):
        self._client = client
        self._api_key = api_key or config.OPENAI_API_KEY
        self.model = model or config.OPENAI_MODEL

    @property
    def client(self) -> AsyncOpenAI:
        if self._client is None:
            if not self._api_key:
                raise AuthInvalidError("OPENAI_API_KEY is missing", status_code=401)
            self._client = AsyncOpenAI(api_key=self._api_key)
        return self._client

    async def _complete(self, operation: str, messages: list, **kwargs) -> Any:
        start = time.monotonic()
        try:
            response = await self.client.chat.completions.create(
                model=self.model,
                messages=messages,
                **kwargs,
            )
        except openai.APIStatusError as e:
            logger.error(
                "openai.failed",
                operation=operation,
                model=self.model,
                status_code=e.status_code,
                duration_ms=int((time.monotonic() - start) * 1000),
            )
            raise provider_error_from(e.status_code, e.code, e.message) from e
        except openai.APIError as e:
            logger.error(
                "openai.failed",
                operation=operation,
                model=self.model,
                error=e.message,
                duration_ms=int((time.monotonic() - start) * 1000),
            )
            raise ProviderError(e.message, code=e.code) from e

        usage = usage_from_response(response)
        logger.info(
            "openai.completed",
            operation=operation,
            model=self.model,
            duration_ms=int((time.monotonic() - start) * 1000),
            total_tokens=usage.total_tokens,
        )
        return response

    async def generate_story_text(self, prompt: str) -> StoryGenerationResult:
        response = await self._complete(
            "story.generate_text",
            [
                {"role": "system", "content": STORY_SYSTEM_PROMPT},
                {"role": "user", "content": prompt},
            ],
        )
        content = response.choices[0].message.content if response.choices else None
        return StoryGenerationResult(
            text=(content or "").strip(),
            model=getattr(response, "model", None) or self.model,
            usage=usage_from_response(response),
            request_id=getattr(response, "_request_id", None),
            response_id=response.id,
        )

    async def extract_story_meta(self, text: str) -> StoryMetaResult:
        response = await self._complete(
            "story.extract_meta",
            [
                {"role": "system", "content": META_SYSTEM_PROMPT},
                {"role": "user", "content": META_USER_PROMPT.format(story=text).strip()},
            ],
            response_format={"type": "json_object"},
        )
        content = response.choices[0].message.content if response.choices else None
        return StoryMetaResult(
            meta=parse_story_meta(content or "{}"),
            model=getattr(response, "model", None) or self.model,
            usage=usage_from_response(response),
            request_id=getattr(response, "_request_id", None),
            response_id=response.id,
        )

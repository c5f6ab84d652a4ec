"""Anthropic API engine — vision + JSON answers, no search grounding."""

from __future__ import annotations

import asyncio
import base64
import json
import logging
from collections.abc import AsyncIterator
from dataclasses import dataclass, field
from typing import Any

from pydantic import BaseModel

from plantops.engines.base import EngineResponse
from plantops.errors import EngineError
from plantops.media import MediaInput
from plantops.schemas import engine_json_schema

logger = logging.getLogger(__name__)

JSON_INSTRUCTION = (
    "Respond with a single JSON object and nothing else. "
    "It must match this JSON schema:\n{schema}"
)


def _system_text(system_prompt: str | None, response_schema: type[BaseModel] | None) -> str:
    parts = [system_prompt] if system_prompt else []
    if response_schema is not None:
        schema = json.dumps(engine_json_schema(response_schema), indent=2)
        parts.append(JSON_INSTRUCTION.format(schema=schema))
    return "\n\n".join(parts)


class AnthropicChat:
    """Client-side conversation history over the stateless Messages API."""

    def __init__(self, client: Any, model: str, system_prompt: str, max_tokens: int) -> None:
        self._client = client
        self._model = model
        self._system = system_prompt
        self._max_tokens = max_tokens
        self._messages: list[dict] = []

    async def send_stream(self, message: str) -> AsyncIterator[str]:
        turn = [*self._messages, {"role": "user", "content": message}]
        reply: list[str] = []
        try:
            async with self._client.messages.stream(
                model=self._model,
                max_tokens=self._max_tokens,
                system=self._system,
                messages=turn,
            ) as stream:
                async for text in stream.text_stream:
                    reply.append(text)
                    yield text
        except Exception as e:
            logger.error("Anthropic chat stream error: %s", e)
            raise EngineError(f"Anthropic chat failed: {e}") from e
        # Only completed turns become history.
        self._messages = [*turn, {"role": "assistant", "content": "".join(reply)}]


@dataclass
class AnthropicAPIEngine:
    """Direct Anthropic API via the `anthropic` SDK."""

    model: str = "claude-sonnet-4-5-20250929"
    fast_model: str = "claude-haiku-4-5-20251001"
    max_tokens: int = 4096
    timeout: int = 120
    client: Any = field(default=None, repr=False)
    async_client: Any = field(default=None, repr=False)

    def __post_init__(self) -> None:
        if self.client is not None and self.async_client is not None:
            return
        try:
            import anthropic
        except ImportError:
            raise ImportError(
                "anthropic package required. Install with: uv pip install 'plantops[anthropic]'"
            )
        if self.client is None:
            self.client = anthropic.Anthropic()
        if self.async_client is None:
            self.async_client = anthropic.AsyncAnthropic()

    @property
    def name(self) -> str:
        return "anthropic_api"

    async def generate(
        self,
        message: str,
        *,
        system_prompt: str | None = None,
        media: MediaInput | None = None,
        response_schema: type[BaseModel] | None = None,
        grounding: bool = False,
        thinking_budget: int | None = None,
        fast: bool = False,
    ) -> EngineResponse:
        model = self.fast_model if fast else self.model

        content: list[dict] = []
        if media is not None:
            if not media.mime_type.startswith("image/"):
                raise EngineError(f"Anthropic engine cannot read {media.mime_type} input")
            content.append(
                {
                    "type": "image",
                    "source": {
                        "type": "base64",
                        "media_type": media.mime_type,
                        "data": base64.b64encode(media.data).decode("ascii"),
                    },
                }
            )
        content.append({"type": "text", "text": message})

        kwargs: dict = {
            "model": model,
            "max_tokens": self.max_tokens,
            "messages": [{"role": "user", "content": content}],
        }
        system = _system_text(system_prompt, response_schema)
        if system:
            kwargs["system"] = system

        try:
            response = await asyncio.wait_for(
                asyncio.to_thread(self.client.messages.create, **kwargs),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError as e:
            raise EngineError(f"Anthropic timeout after {self.timeout}s") from e
        except Exception as e:
            logger.error("Anthropic API error: %s", e)
            raise EngineError(f"Anthropic API error: {e}") from e

        text = "".join(
            block.text for block in (response.content or []) if getattr(block, "type", "") == "text"
        )
        return EngineResponse(text=text, model=response.model)

    def start_chat(self, system_prompt: str, *, grounding: bool = False) -> AnthropicChat:
        return AnthropicChat(self.async_client, self.fast_model, system_prompt, self.max_tokens)

    async def health_check(self) -> bool:
        try:
            response = await asyncio.to_thread(
                self.client.messages.create,
                model=self.fast_model,
                max_tokens=10,
                messages=[{"role": "user", "content": "ping"}],
            )
            return bool(response.content)
        except Exception:
            return False

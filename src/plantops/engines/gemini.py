"""Gemini engine — structured analysis, grounded chat and speech via `google-genai`."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator
from dataclasses import dataclass, field
from typing import Any

from google import genai
from google.genai import types
from pydantic import BaseModel

from plantops.engines.base import EngineResponse
from plantops.errors import EngineError
from plantops.media import MediaInput
from plantops.schemas import GroundingSource, engine_json_schema

logger = logging.getLogger(__name__)

DEFAULT_ANALYSIS_MODEL = "gemini-3-pro-preview"
DEFAULT_FAST_MODEL = "gemini-3-flash-preview"
DEFAULT_TTS_MODEL = "gemini-2.5-flash-preview-tts"
DEFAULT_VOICE = "Kore"


def extract_sources(response: Any) -> list[GroundingSource]:
    """Web citations from the first candidate's grounding metadata, in order."""
    candidates = getattr(response, "candidates", None) or []
    if not candidates:
        return []
    metadata = getattr(candidates[0], "grounding_metadata", None)
    chunks = getattr(metadata, "grounding_chunks", None) or []
    sources = []
    for chunk in chunks:
        web = getattr(chunk, "web", None)
        if web is None or not getattr(web, "uri", None):
            continue
        sources.append(GroundingSource(title=web.title or "", uri=web.uri))
    return sources


class GeminiChat:
    """Wraps an ``AsyncChat`` so only text increments leave this module."""

    def __init__(self, chat: Any, timeout: int) -> None:
        self._chat = chat
        self._timeout = timeout

    async def send_stream(self, message: str) -> AsyncIterator[str]:
        """Yield reply text; the timeout applies to opening and to every chunk."""
        try:
            stream = await asyncio.wait_for(
                self._chat.send_message_stream(message), timeout=self._timeout
            )
            chunks = stream.__aiter__()
            while True:
                try:
                    chunk = await asyncio.wait_for(chunks.__anext__(), timeout=self._timeout)
                except StopAsyncIteration:
                    break
                text = getattr(chunk, "text", None)
                if text:
                    yield text
        except asyncio.TimeoutError as e:
            logger.error("Gemini chat stream stalled for %ss", self._timeout)
            raise EngineError(f"Gemini chat timeout after {self._timeout}s") from e
        except Exception as e:
            logger.error("Gemini chat stream error: %s", e)
            raise EngineError(f"Gemini chat failed: {e}") from e


@dataclass
class GeminiEngine:
    """Google Gemini via the `google-genai` SDK."""

    api_key: str | None = None
    analysis_model: str = DEFAULT_ANALYSIS_MODEL
    fast_model: str = DEFAULT_FAST_MODEL
    tts_model: str = DEFAULT_TTS_MODEL
    voice: str = DEFAULT_VOICE
    timeout: int = 300
    client: Any = field(default=None, repr=False)

    def __post_init__(self) -> None:
        if self.client is None:
            if not self.api_key:
                raise EngineError("GEMINI_API_KEY (or API_KEY) not found in environment")
            self.client = genai.Client(api_key=self.api_key)

    @property
    def name(self) -> str:
        return "gemini"

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
        model = self.fast_model if fast else self.analysis_model

        parts: list[Any] = []
        if media is not None:
            parts.append(types.Part.from_bytes(data=media.data, mime_type=media.mime_type))
        parts.append(types.Part.from_text(text=message))

        config_kwargs: dict[str, Any] = {}
        if system_prompt:
            config_kwargs["system_instruction"] = system_prompt
        if grounding:
            config_kwargs["tools"] = [types.Tool(google_search=types.GoogleSearch())]
        if response_schema is not None:
            config_kwargs["response_mime_type"] = "application/json"
            config_kwargs["response_json_schema"] = engine_json_schema(response_schema)
        if thinking_budget:
            config_kwargs["thinking_config"] = types.ThinkingConfig(thinking_budget=thinking_budget)

        logger.debug("Gemini request: model=%s schema=%s", model, response_schema)

        try:
            response = await asyncio.wait_for(
                self.client.aio.models.generate_content(
                    model=model,
                    contents=[types.Content(role="user", parts=parts)],
                    config=types.GenerateContentConfig(**config_kwargs),
                ),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError as e:
            raise EngineError(f"Gemini timeout after {self.timeout}s") from e
        except Exception as e:
            logger.error("Gemini API error: %s", e)
            raise EngineError(f"Gemini API error: {e}") from e

        return EngineResponse(
            text=response.text or "",
            sources=extract_sources(response) if grounding else [],
            model=model,
        )

    def start_chat(self, system_prompt: str, *, grounding: bool = False) -> GeminiChat:
        config_kwargs: dict[str, Any] = {"system_instruction": system_prompt}
        if grounding:
            config_kwargs["tools"] = [types.Tool(google_search=types.GoogleSearch())]
        chat = self.client.aio.chats.create(
            model=self.fast_model,
            config=types.GenerateContentConfig(**config_kwargs),
        )
        return GeminiChat(chat, timeout=self.timeout)

    async def synthesize_speech(self, text: str) -> bytes | None:
        """Raw 24 kHz 16-bit mono PCM for ``text``, or None if no audio came back."""
        try:
            response = await asyncio.wait_for(
                self.client.aio.models.generate_content(
                    model=self.tts_model,
                    contents=text,
                    config=types.GenerateContentConfig(
                        response_modalities=["AUDIO"],
                        speech_config=types.SpeechConfig(
                            voice_config=types.VoiceConfig(
                                prebuilt_voice_config=types.PrebuiltVoiceConfig(
                                    voice_name=self.voice
                                )
                            )
                        ),
                    ),
                ),
                timeout=self.timeout,
            )
        except Exception as e:
            logger.error("Gemini TTS error: %s", e)
            raise EngineError(f"Gemini TTS failed: {e}") from e

        try:
            inline = response.candidates[0].content.parts[0].inline_data
        except (AttributeError, IndexError, TypeError):
            return None
        return inline.data if inline is not None else None

    async def health_check(self) -> bool:
        try:
            response = await self.generate("ping", fast=True)
            return bool(response.text)
        except EngineError:
            return False

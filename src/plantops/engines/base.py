"""Engine protocol and shared types."""

from __future__ import annotations

from collections.abc import AsyncIterator
from dataclasses import dataclass, field
from typing import Protocol, runtime_checkable

from pydantic import BaseModel

from plantops.media import MediaInput
from plantops.schemas import GroundingSource


@dataclass
class EngineResponse:
    """Response from a reasoning engine."""

    text: str
    sources: list[GroundingSource] = field(default_factory=list)
    model: str | None = None
    metadata: dict = field(default_factory=dict)


@runtime_checkable
class ChatHandle(Protocol):
    """A live multi-turn conversation held by the engine."""

    def send_stream(self, message: str) -> AsyncIterator[str]:
        """Send one user turn and yield reply text increments as they arrive."""
        ...


@runtime_checkable
class Engine(Protocol):
    """Protocol that all engine backends must implement.

    Failures are raised as EngineError, never returned as text.
    """

    @property
    def name(self) -> str: ...

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
        """Run one request. ``fast`` selects the engine's low-latency model."""
        ...

    def start_chat(self, system_prompt: str, *, grounding: bool = False) -> ChatHandle:
        """Open a new conversation seeded with ``system_prompt``."""
        ...

    async def health_check(self) -> bool:
        """Check if the engine is available. Returns True if healthy."""
        ...

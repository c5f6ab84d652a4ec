"""PlantOps hub — wires store, memory, context, engines and flows together.

Responsibilities:
1. Own the entity store (one JSON document under one key)
2. Engine registry — primary engine + optional fallback
3. Expose the analysis orchestrator and the chat session manager
4. Plant lifecycle (create / delete) for the CLI and other front ends
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from typing import TYPE_CHECKING, Any

from plantops.chat import ChatSession, ChatSessionManager
from plantops.config import PlantOpsConfig
from plantops.context import ContextAssembler
from plantops.media import MediaInput
from plantops.memory.compactor import ReplaceCompactor
from plantops.models import Entry, Plant
from plantops.orchestrator import AnalysisOrchestrator
from plantops.store import BlobStore, EntityStore, FileBlobStore

if TYPE_CHECKING:
    from plantops.engines.base import Engine

logger = logging.getLogger(__name__)


def build_engine(name: str, config: PlantOpsConfig) -> Engine:
    """Instantiate an engine backend by name."""
    if name == "gemini":
        from plantops.engines.gemini import GeminiEngine

        kwargs: dict[str, Any] = {
            "api_key": config.engine.api_key,
            "timeout": config.engine.timeout,
        }
        if config.engine.analysis_model:
            kwargs["analysis_model"] = config.engine.analysis_model
        if config.engine.fast_model:
            kwargs["fast_model"] = config.engine.fast_model
        return GeminiEngine(**kwargs)
    elif name == "anthropic_api":
        from plantops.engines.anthropic_api import AnthropicAPIEngine

        kwargs = {"timeout": config.engine.timeout}
        if config.engine.analysis_model:
            kwargs["model"] = config.engine.analysis_model
        if config.engine.fast_model:
            kwargs["fast_model"] = config.engine.fast_model
        return AnthropicAPIEngine(**kwargs)
    else:
        raise ValueError(f"Unknown engine: {name}")


class PlantOps:
    """Core hub — routes observations and chat between the store and engines."""

    def __init__(self, config: PlantOpsConfig, blobs: BlobStore | None = None) -> None:
        self.config = config
        if blobs is None:
            blobs = FileBlobStore(config.store.data_dir, keep_versions=config.store.keep_versions)
        self.store = EntityStore(blobs, key=config.store.key)
        self.assembler = ContextAssembler(config.context.history_window)
        self.compactor = ReplaceCompactor(config.context.signature_warn_chars)
        self._engines: dict[str, Engine] = {}
        self._analysis: AnalysisOrchestrator | None = None
        self._chat: ChatSessionManager | None = None

    @classmethod
    def from_config(cls, config: PlantOpsConfig) -> PlantOps:
        """Hub with the configured primary engine and, if it builds, the fallback."""
        hub = cls(config)
        hub.add_engine(build_engine(config.engine.name, config))
        if config.engine.fallback:
            try:
                hub.add_engine(build_engine(config.engine.fallback, config))
            except Exception as e:
                logger.warning("Failed to build fallback engine: %s", e)
        return hub

    # ── Engine management ────────────────────────────────────

    def add_engine(self, engine: Engine) -> None:
        self._engines[engine.name] = engine
        self._analysis = None
        self._chat = None
        logger.info("Registered engine: %s", engine.name)

    def _get_engine(self, name: str | None = None) -> Engine:
        name = name or self.config.engine.name
        engine = self._engines.get(name)
        if not engine:
            raise RuntimeError(
                f"Engine '{name}' not registered. Available: {list(self._engines)}"
            )
        return engine

    def _engine_chain(self) -> list[Engine]:
        if not self._engines:
            raise RuntimeError("No engines registered. Call add_engine() first.")
        chain = [self._get_engine()]
        fallback = self.config.engine.fallback
        if fallback and fallback in self._engines and fallback != chain[0].name:
            chain.append(self._engines[fallback])
        return chain

    # ── Flows ─────────────────────────────────────────────────

    @property
    def analysis(self) -> AnalysisOrchestrator:
        if self._analysis is None:
            self._analysis = AnalysisOrchestrator(
                self.store,
                self._engine_chain(),
                self.assembler,
                self.compactor,
                thinking_budget=self.config.engine.thinking_budget,
                grounding=self.config.engine.grounding,
            )
        return self._analysis

    @property
    def chat(self) -> ChatSessionManager:
        if self._chat is None:
            self._chat = ChatSessionManager(
                self.store,
                self._engine_chain()[0],
                self.assembler,
                grounding=self.config.engine.grounding,
            )
        return self._chat

    async def submit_observation(self, plant_id: str, image: MediaInput, notes: str) -> Entry:
        return await self.analysis.submit_observation(plant_id, image, notes)

    def focus(self, plant: Plant | None) -> ChatSession:
        return self.chat.refocus(plant)

    def send(self, text: str) -> AsyncIterator[str]:
        """Stream a reply in the current session (garden scope if none yet)."""
        session = self.chat.session or self.chat.focus(None)
        return self.chat.send(session, text)

    # ── Plant lifecycle ──────────────────────────────────────

    def add_plant(self, name: str, **attrs: Any) -> Plant:
        plant = Plant.create(name, **attrs)
        self.store.upsert(plant)
        logger.info("Added plant %s (%s)", plant.name, plant.id)
        return plant

    def delete_plant(self, plant_id: str) -> None:
        self.store.delete(plant_id)
        if self._analysis is not None:
            self._analysis.release_lane(plant_id)
        session = self.chat.session if self._chat else None
        if session is not None and session.focus_id == plant_id:
            self.chat.focus(None)

"""Analysis orchestrator — one observation in, one committed entry out.

Round trip for ``submit_observation``:
1. Look up the plant (NotFoundError, nothing created)
2. Assemble the bounded analysis context
3. Call the engine (fallback engine on EngineError); validate the payload
4. Build the Entry
5. Compact the thought signature
6. Commit plant + entry + signature with a single upsert

Nothing is written before step 6, so any failure leaves the store untouched.
Submissions are serialized per plant; different plants run concurrently.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from typing import TypeVar

from pydantic import BaseModel

from plantops.context import ContextAssembler
from plantops.engines.base import Engine
from plantops.errors import EngineError
from plantops.media import MediaInput
from plantops.memory.compactor import MemoryCompactor, ReplaceCompactor
from plantops.models import Entry
from plantops.schemas import (
    AnalysisResult,
    PlantIdentification,
    QuickAnalysisResult,
    parse_structured,
)
from plantops.store import EntityStore

logger = logging.getLogger(__name__)

SchemaT = TypeVar("SchemaT", bound=BaseModel)

ANALYSIS_MESSAGE = "User Observation: {notes}\nRun full 5-level orchestrator analysis."
QUICK_AUDIT_MESSAGE = (
    "Rapid Audit: ID plant, health status, and 3 key care tips. Be concise and professional."
)
IDENTIFY_MESSAGE = "Identify this plant species and suggest settings."
CARE_TIP_MESSAGE = "One short care tip for {species}. Max 15 words."
TRANSCRIBE_MESSAGE = "Transcribe audio."


class AnalysisOrchestrator:
    """Drives engine round trips and commits analysis results atomically."""

    def __init__(
        self,
        store: EntityStore,
        engines: Sequence[Engine],
        assembler: ContextAssembler | None = None,
        compactor: MemoryCompactor | None = None,
        *,
        thinking_budget: int | None = 16384,
        grounding: bool = True,
    ) -> None:
        if not engines:
            raise RuntimeError("AnalysisOrchestrator needs at least one engine")
        self.store = store
        self.engines = list(engines)
        self.assembler = assembler or ContextAssembler()
        self.compactor = compactor or ReplaceCompactor()
        self.thinking_budget = thinking_budget
        self.grounding = grounding
        self._lane_locks: dict[str, asyncio.Lock] = {}  # per-plant serialization

    # ── Lane Queue (per-plant serialization) ─────────────────

    def _get_lane_lock(self, plant_id: str) -> asyncio.Lock:
        if plant_id not in self._lane_locks:
            self._lane_locks[plant_id] = asyncio.Lock()
        return self._lane_locks[plant_id]

    def release_lane(self, plant_id: str) -> None:
        """Forget a deleted plant's lane unless a submission still holds it."""
        lock = self._lane_locks.get(plant_id)
        if lock is not None and not lock.locked():
            del self._lane_locks[plant_id]

    # ── Engine calls with fallback ───────────────────────────

    async def _structured(
        self,
        schema: type[SchemaT],
        message: str,
        *,
        system_prompt: str | None = None,
        media: MediaInput | None = None,
        grounding: bool = False,
        thinking_budget: int | None = None,
        fast: bool = False,
    ) -> SchemaT:
        """Ask each engine in turn for a ``schema`` payload.

        Transport failures move on to the next engine. A malformed payload
        also does: the fallback may well answer cleanly.
        """
        errors: list[EngineError] = []
        for engine in self.engines:
            try:
                response = await engine.generate(
                    message,
                    system_prompt=system_prompt,
                    media=media,
                    response_schema=schema,
                    grounding=grounding,
                    thinking_budget=thinking_budget,
                    fast=fast,
                )
                return parse_structured(schema, response.text, response.sources)
            except EngineError as e:
                logger.warning("Engine %s failed for %s: %s", engine.name, schema.__name__, e)
                errors.append(e)
        raise errors[-1]

    async def _text(self, message: str, *, media: MediaInput | None = None) -> str:
        errors: list[EngineError] = []
        for engine in self.engines:
            try:
                response = await engine.generate(message, media=media, fast=True)
                return response.text.strip()
            except EngineError as e:
                logger.warning("Engine %s failed: %s", engine.name, e)
                errors.append(e)
        raise errors[-1]

    # ── Observation analysis (the core round trip) ───────────

    async def submit_observation(
        self, plant_id: str, image: MediaInput, user_notes: str
    ) -> Entry:
        """Analyze a new observation and commit it as the plant's newest entry."""
        self.store.get(plant_id)  # unknown ids never get a lane
        async with self._get_lane_lock(plant_id):
            plant = self.store.get(plant_id)
            context = self.assembler.build_analysis_context(plant, plant.entries)

            result = await self._structured(
                AnalysisResult,
                ANALYSIS_MESSAGE.format(notes=user_notes or "(no notes)"),
                system_prompt=context.render(),
                media=image,
                grounding=self.grounding,
                thinking_budget=self.thinking_budget,
            )

            entry = Entry.from_analysis(result, image_ref=image.ref, user_notes=user_notes)

            # Re-read: the plant may have been edited while the engine was busy.
            current = self.store.get(plant_id)
            signature = self.compactor.compact(current.thought_signature, result.updated_signature)
            self.store.upsert(current.with_entry(entry, signature))

        logger.info(
            "Committed entry %s for plant %s (health=%d, entries=%d)",
            entry.id,
            plant_id,
            entry.health_score,
            len(current.entries) + 1,
        )
        return entry

    # ── Stateless round trips ────────────────────────────────

    async def quick_audit(self, image: MediaInput) -> QuickAnalysisResult:
        """Rapid audit of a photo; nothing is stored."""
        return await self._structured(
            QuickAnalysisResult,
            QUICK_AUDIT_MESSAGE,
            media=image,
            grounding=self.grounding,
            fast=True,
        )

    async def identify(self, image: MediaInput) -> PlantIdentification:
        """Species and suggested care settings for a new plant."""
        return await self._structured(PlantIdentification, IDENTIFY_MESSAGE, media=image, fast=True)

    async def care_tip(self, species: str) -> str:
        return await self._text(CARE_TIP_MESSAGE.format(species=species))

    async def transcribe(self, audio: MediaInput) -> str:
        """Speech to text for spoken observation notes."""
        return await self._text(TRANSCRIBE_MESSAGE, media=audio)

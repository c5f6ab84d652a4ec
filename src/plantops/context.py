"""Context assembly — the bounded payloads handed to the engine.

Two shapes:
1. Analysis context — plant settings, current thought signature, and the
   last N entries (default 3) as {date, health, notes} facts.
2. Chat context — one summary line per plant in the garden, plus the full
   history of the focused plant when there is one.

Rendering is deterministic: entries ascend by timestamp (ties keep insertion
order), plants keep store order, dates are UTC ISO dates.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime, timezone

from plantops.models import Entry, Plant

DEFAULT_HISTORY_WINDOW = 3

ANALYSIS_PROMPT_TEMPLATE = """\
You are PlantOps Orchestrator. Analyze plant health using 5-Level Deep Reasoning.
Plant: {species}
Environment: {location}, Sun: {sun_exposure}, Watering: {watering_frequency}
Memory: "{signature}"
{history}"""

CHAT_PROMPT_TEMPLATE = """\
You are the PlantOps Orchestrator Assistant.
Your goal is to clear doubts, provide growth optimization methods, and analyze health trajectories.

Current Garden State:
{garden}
{focus}
Instructions:
1. If the user asks about health trajectory, look at the health scores over time and identify trends (improving, declining, or stable).
2. Provide specific, actionable scientific advice for growth improvement.
3. Use search grounding for the latest botanical research if needed.
4. Keep responses helpful, professional, and concise."""


def format_date(timestamp_ms: int) -> str:
    return datetime.fromtimestamp(timestamp_ms / 1000, tz=timezone.utc).date().isoformat()


def chronological(entries: Sequence[Entry]) -> list[Entry]:
    """Entries in ascending timestamp order; stable for equal stamps."""
    return sorted(entries, key=lambda e: e.timestamp)


@dataclass(frozen=True)
class EntryFact:
    """The slice of an entry that is sent back to the engine."""

    date: str
    health_score: int
    notes: str

    @classmethod
    def of(cls, entry: Entry) -> EntryFact:
        return cls(
            date=format_date(entry.timestamp),
            health_score=entry.health_score,
            notes=entry.user_notes,
        )

    def render(self) -> str:
        return f"Date: {self.date}, Health: {self.health_score}, Notes: {self.notes}"


@dataclass(frozen=True)
class AnalysisContext:
    species: str
    location: str
    sun_exposure: str
    watering_frequency: str
    signature: str
    history: tuple[EntryFact, ...] = ()

    def render(self) -> str:
        history = ""
        if self.history:
            lines = "\n".join(f.render() for f in self.history)
            history = f"Recent history (oldest first):\n{lines}"
        return ANALYSIS_PROMPT_TEMPLATE.format(
            species=self.species or "Unknown species",
            location=self.location or "unspecified",
            sun_exposure=self.sun_exposure or "unspecified",
            watering_frequency=self.watering_frequency or "unspecified",
            signature=self.signature or "Fresh start.",
            history=history,
        ).rstrip()


@dataclass(frozen=True)
class PlantSummary:
    name: str
    species: str
    location: str
    latest_score: int | None

    def render(self) -> str:
        score = f"{self.latest_score}" if self.latest_score is not None else "unavailable"
        return f"- {self.name} ({self.species}): Located in {self.location}, Health Score: {score}"


@dataclass(frozen=True)
class ChatContext:
    garden: tuple[PlantSummary, ...] = ()
    focus_id: str | None = None
    focus_name: str = ""
    focus_species: str = ""
    focus_history: tuple[EntryFact, ...] = ()

    def render(self) -> str:
        garden = "\n".join(s.render() for s in self.garden) or "(no plants yet)"
        focus = ""
        if self.focus_id is not None:
            trajectory = "\n".join(
                f"[{f.date}] Health: {f.health_score}% - Notes: {f.notes}"
                for f in self.focus_history
            )
            focus = (
                f"\nCurrently focused on: {self.focus_name} ({self.focus_species})\n"
                f"Health Trajectory Data:\n{trajectory or '(no observations yet)'}\n"
            )
        return CHAT_PROMPT_TEMPLATE.format(garden=garden, focus=focus)


class ContextAssembler:
    """Builds analysis and chat contexts from plant state."""

    def __init__(self, history_window: int = DEFAULT_HISTORY_WINDOW) -> None:
        if history_window < 0:
            raise ValueError("history_window must be >= 0")
        self.history_window = history_window

    def build_analysis_context(
        self, plant: Plant, prior_entries: Sequence[Entry]
    ) -> AnalysisContext:
        ordered = chronological(prior_entries)
        window = ordered[-self.history_window :] if self.history_window else []
        return AnalysisContext(
            species=plant.species,
            location=plant.location,
            sun_exposure=plant.sun_exposure,
            watering_frequency=plant.watering_frequency,
            signature=plant.thought_signature,
            history=tuple(EntryFact.of(e) for e in window),
        )

    def build_chat_context(self, focus: Plant | None, all_plants: Sequence[Plant]) -> ChatContext:
        garden = []
        for plant in all_plants:
            ordered = chronological(plant.entries)
            garden.append(
                PlantSummary(
                    name=plant.name,
                    species=plant.species,
                    location=plant.location,
                    latest_score=ordered[-1].health_score if ordered else None,
                )
            )
        if focus is None:
            return ChatContext(garden=tuple(garden))
        return ChatContext(
            garden=tuple(garden),
            focus_id=focus.id,
            focus_name=focus.name,
            focus_species=focus.species,
            focus_history=tuple(EntryFact.of(e) for e in chronological(focus.entries)),
        )

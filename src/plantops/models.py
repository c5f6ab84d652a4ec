"""Plant / Entry / ChatMessage data model and document (de)serialization."""

from __future__ import annotations

import time
import uuid
from dataclasses import dataclass, field, replace
from typing import Any, Literal

from plantops.schemas import AnalysisResult


def now_ms() -> int:
    """Current instant in epoch milliseconds."""
    return int(time.time() * 1000)


@dataclass(frozen=True)
class Entry:
    """One committed observation. Never mutated after creation."""

    id: str
    timestamp: int
    image_ref: str
    user_notes: str
    health_score: int
    analysis: AnalysisResult

    def __post_init__(self) -> None:
        if not 0 <= self.health_score <= 100:
            raise ValueError(f"health_score out of range: {self.health_score}")

    @classmethod
    def from_analysis(
        cls,
        result: AnalysisResult,
        *,
        image_ref: str,
        user_notes: str,
        timestamp: int | None = None,
    ) -> Entry:
        return cls(
            id=uuid.uuid4().hex,
            timestamp=timestamp if timestamp is not None else now_ms(),
            image_ref=image_ref,
            user_notes=user_notes,
            health_score=result.health_score,
            analysis=result,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "timestamp": self.timestamp,
            "imageUrl": self.image_ref,
            "userNotes": self.user_notes,
            "healthScore": self.health_score,
            "analysis": self.analysis.model_dump(mode="json", by_alias=True),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Entry:
        return cls(
            id=str(data["id"]),
            timestamp=int(data["timestamp"]),
            image_ref=data.get("imageUrl", ""),
            user_notes=data.get("userNotes", ""),
            health_score=int(data["healthScore"]),
            analysis=AnalysisResult.model_validate(data["analysis"]),
        )


@dataclass
class Plant:
    """A tracked plant and its observation history.

    ``entries`` is append-only and kept in insertion (= chronological) order.
    ``thought_signature`` holds only the latest compacted memory.
    """

    id: str
    name: str
    species: str = ""
    location: str = ""
    sun_exposure: str = ""
    watering_frequency: str = ""
    soil_type: str = ""
    created_at: int = 0
    thought_signature: str = ""
    entries: list[Entry] = field(default_factory=list)

    @classmethod
    def create(cls, name: str, **attrs: Any) -> Plant:
        """New plant whose id is its creation instant."""
        created = now_ms()
        return cls(id=str(created), name=name, created_at=created, **attrs)

    @property
    def latest_entry(self) -> Entry | None:
        return self.entries[-1] if self.entries else None

    def with_entry(self, entry: Entry, signature: str) -> Plant:
        """Copy of this plant with ``entry`` appended and ``signature`` set."""
        return replace(self, thought_signature=signature, entries=[*self.entries, entry])

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "species": self.species,
            "location": self.location,
            "sunExposure": self.sun_exposure,
            "wateringFrequency": self.watering_frequency,
            "soilType": self.soil_type,
            "createdAt": self.created_at,
            "thoughtSignature": self.thought_signature,
            "entries": [e.to_dict() for e in self.entries],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Plant:
        return cls(
            id=str(data["id"]),
            name=data.get("name", ""),
            species=data.get("species", ""),
            location=data.get("location", ""),
            sun_exposure=data.get("sunExposure", ""),
            watering_frequency=data.get("wateringFrequency", ""),
            soil_type=data.get("soilType", ""),
            created_at=int(data.get("createdAt", 0)),
            thought_signature=data.get("thoughtSignature", ""),
            entries=[Entry.from_dict(e) for e in data.get("entries", [])],
        )


@dataclass(frozen=True)
class ChatMessage:
    """A finished chat turn."""

    role: Literal["user", "model"]
    text: str

"""Pydantic schemas for structured engine payloads.

Engine output is validated exactly once, here, at the boundary. Everything
downstream works with frozen, fully-typed values. Field names follow the
engine's wire schema; Python-side names are exposed through attributes.
"""

from __future__ import annotations

import json
import logging
import math
from typing import TypeVar

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from plantops.errors import MalformedResponseError

logger = logging.getLogger(__name__)

SchemaT = TypeVar("SchemaT", bound=BaseModel)


class GroundingSource(BaseModel):
    """A web citation attached to an engine result."""

    model_config = ConfigDict(frozen=True)

    title: str = ""
    uri: str


class AnalysisResult(BaseModel):
    """Five-level reasoning output of one observation analysis."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    observation: str = Field(alias="level1_observation")
    hypothesis: str = Field(alias="level2_hypothesis")
    plan: str = Field(alias="level3_plan")
    verification: str = Field(alias="level4_verification")
    comparative_analysis: str = Field(alias="level5_comparative_analysis")
    optimization_tips: tuple[str, ...] = ()
    updated_signature: str = Field(alias="updatedThoughtSignature")
    health_score: int = Field(alias="healthScore", ge=0, le=100)
    summary: str = Field(alias="care_summary")
    sources: tuple[GroundingSource, ...] = ()

    @field_validator("health_score", mode="before")
    @classmethod
    def _round_score(cls, value):
        # Engines emit JSON numbers; 72.0 and 72 mean the same score.
        # Range is checked on the raw number, halves round up.
        if isinstance(value, bool):
            raise ValueError("healthScore must be a number, not a boolean")
        if isinstance(value, float):
            if not 0 <= value <= 100:
                raise ValueError(f"healthScore out of range: {value}")
            return math.floor(value + 0.5)
        return value


class QuickAnalysisResult(BaseModel):
    """Rapid audit of a photo not attached to any plant."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    species: str
    health_status: str = Field(alias="healthStatus")
    urgent_care: str = Field(alias="urgentCare")
    long_term_advice: str = Field(alias="longTermAdvice")
    scientific_insight: str = Field(alias="scientificInsight")
    confidence_score: float = Field(alias="confidenceScore")
    sources: tuple[GroundingSource, ...] = ()


class PlantIdentification(BaseModel):
    """Species guess plus suggested care settings for a new plant."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    species: str
    sun_exposure: str = Field(alias="sunExposure")
    watering_frequency: str = Field(alias="wateringFrequency")
    soil_type: str = Field(alias="soilType")
    care_tip: str


# Fields the engine must produce itself. Sources come from grounding
# metadata, never from the model's JSON body.
ENGINE_FIELDS: dict[type[BaseModel], tuple[str, ...]] = {
    AnalysisResult: (
        "level1_observation",
        "level2_hypothesis",
        "level3_plan",
        "level4_verification",
        "level5_comparative_analysis",
        "optimization_tips",
        "updatedThoughtSignature",
        "healthScore",
        "care_summary",
    ),
    QuickAnalysisResult: (
        "species",
        "healthStatus",
        "urgentCare",
        "longTermAdvice",
        "scientificInsight",
        "confidenceScore",
    ),
    PlantIdentification: ("species", "sunExposure", "wateringFrequency", "soilType", "care_tip"),
}


def _strip_fences(text: str) -> str:
    """Remove a surrounding markdown code fence, if any."""
    cleaned = text.strip()
    if cleaned.startswith("```"):
        first_newline = cleaned.index("\n") if "\n" in cleaned else len(cleaned)
        cleaned = cleaned[first_newline + 1 :]
        if cleaned.endswith("```"):
            cleaned = cleaned[:-3]
        cleaned = cleaned.strip()
    return cleaned


def parse_structured(
    schema: type[SchemaT],
    text: str,
    sources: list[GroundingSource] | None = None,
) -> SchemaT:
    """Validate an engine's JSON text against ``schema``.

    Fails closed: unparseable JSON, a non-object payload, missing required
    fields or out-of-range values all raise MalformedResponseError.
    """
    if not text or not text.strip():
        raise MalformedResponseError(f"Empty response for {schema.__name__}")

    try:
        data = json.loads(_strip_fences(text))
    except json.JSONDecodeError as e:
        raise MalformedResponseError(f"{schema.__name__}: response is not JSON ({e})") from e

    if not isinstance(data, dict):
        raise MalformedResponseError(
            f"{schema.__name__}: expected a JSON object, got {type(data).__name__}"
        )

    missing = [name for name in ENGINE_FIELDS.get(schema, ()) if name not in data]
    if missing:
        raise MalformedResponseError(f"{schema.__name__}: missing fields {missing}")

    data.pop("sources", None)
    if sources and "sources" in schema.model_fields:
        data["sources"] = [s.model_dump() for s in sources]

    try:
        return schema.model_validate(data)
    except ValidationError as e:
        logger.warning("Rejected %s payload: %s", schema.__name__, e)
        raise MalformedResponseError(f"{schema.__name__}: {e}") from e


def engine_json_schema(schema: type[BaseModel]) -> dict:
    """JSON schema of the fields an engine is asked to produce."""
    full = schema.model_json_schema(by_alias=True)
    wanted = ENGINE_FIELDS.get(schema)
    if wanted is None:
        return full
    props = {k: v for k, v in full.get("properties", {}).items() if k in wanted}
    return {"type": "object", "properties": props, "required": list(wanted)}

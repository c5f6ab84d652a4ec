"""Shared fixtures: a scriptable mock engine and engine payload factories."""

from __future__ import annotations

import json

import pytest

from plantops.engines.base import EngineResponse
from plantops.errors import EngineError
from plantops.models import Entry, Plant
from plantops.schemas import AnalysisResult
from plantops.store import EntityStore, MemoryBlobStore


def analysis_dict(score: int = 75, signature: str = "leaf-curl-recovering", **overrides) -> dict:
    data = {
        "level1_observation": "Lower leaves curling inward.",
        "level2_hypothesis": "Mild underwatering during the heatwave.",
        "level3_plan": "Water deeply twice a week.",
        "level4_verification": "Leaves should flatten within 5 days.",
        "level5_comparative_analysis": "Better than last week.",
        "optimization_tips": ["Mist in the morning", "Rotate weekly"],
        "updatedThoughtSignature": signature,
        "healthScore": score,
        "care_summary": "Recovering steadily.",
    }
    data.update(overrides)
    return data


class MockChat:
    def __init__(self, fragments: list[str], error: Exception | None = None):
        self._fragments = fragments
        self._error = error
        self.sent: list[str] = []

    async def send_stream(self, message: str):
        self.sent.append(message)
        for fragment in self._fragments:
            yield fragment
        if self._error is not None:
            raise self._error


class MockEngine:
    def __init__(
        self,
        responses: list[str] | None = None,
        *,
        name: str = "mock",
        fail: bool = False,
        chat_fragments: list[str] | None = None,
        chat_error: Exception | None = None,
    ):
        self._name = name
        self._responses = list(responses or [])
        self.fail = fail
        self.chat_fragments = chat_fragments if chat_fragments is not None else ["Hello", " there"]
        self.chat_error = chat_error
        self.calls: list[dict] = []
        self.chats: list[tuple[str, MockChat]] = []

    @property
    def name(self) -> str:
        return self._name

    async def generate(self, message, **kwargs) -> EngineResponse:
        self.calls.append({"message": message, **kwargs})
        if self.fail:
            raise EngineError("boom")
        text = self._responses.pop(0) if self._responses else json.dumps(analysis_dict())
        return EngineResponse(text=text, model="mock-model")

    def start_chat(self, system_prompt: str, *, grounding: bool = False) -> MockChat:
        chat = MockChat(list(self.chat_fragments), self.chat_error)
        self.chats.append((system_prompt, chat))
        return chat

    async def health_check(self) -> bool:
        return not self.fail


def make_entry(score: int, timestamp: int, notes: str = "") -> Entry:
    result = AnalysisResult.model_validate(analysis_dict(score=score, signature=f"sig-{score}"))
    return Entry(
        id=f"e-{timestamp}",
        timestamp=timestamp,
        image_ref=f"img-{timestamp}",
        user_notes=notes or f"note {timestamp}",
        health_score=score,
        analysis=result,
    )


@pytest.fixture
def store() -> EntityStore:
    return EntityStore(MemoryBlobStore())


@pytest.fixture
def fern() -> Plant:
    return Plant(
        id="1700000000000",
        name="Fern",
        species="Nephrolepis exaltata",
        location="Bathroom",
        sun_exposure="Indirect",
        watering_frequency="Twice a week",
        soil_type="Peat mix",
        created_at=1700000000000,
        thought_signature="leaf-curl-observed",
        entries=[
            make_entry(40, 1700000100000, "curling fronds"),
            make_entry(60, 1700000200000, "some new growth"),
        ],
    )


@pytest.fixture
def mock_engine() -> MockEngine:
    return MockEngine()

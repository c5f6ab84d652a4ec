"""Tests for focus-scoped chat sessions."""

from __future__ import annotations

import pytest
from conftest import MockEngine

from plantops.chat import FALLBACK_NOTICE, ChatSessionManager
from plantops.errors import EngineError, SessionClosedError
from plantops.models import Plant
from plantops.store import EntityStore


async def collect(manager: ChatSessionManager, session, text: str) -> list[str]:
    return [fragment async for fragment in manager.send(session, text)]


@pytest.fixture
def garden(store: EntityStore, fern: Plant) -> tuple[Plant, Plant]:
    cactus = Plant(id="2", name="Cactus", species="Cereus", location="Windowsill")
    store.upsert(fern)
    store.upsert(cactus)
    return fern, cactus


class TestFocus:
    def test_garden_scope(self, store, garden, mock_engine):
        session = ChatSessionManager(store, mock_engine).focus(None)
        assert session.focus_id is None
        prompt, _ = mock_engine.chats[0]
        assert "- Fern (Nephrolepis exaltata)" in prompt
        assert "- Cactus (Cereus)" in prompt
        assert "Currently focused on" not in prompt

    def test_switching_focus_discards_previous_session(self, store, garden, mock_engine):
        fern, cactus = garden
        manager = ChatSessionManager(store, mock_engine)

        first = manager.focus(fern)
        second = manager.focus(cactus)

        assert first.closed
        assert not second.closed
        assert manager.session is second
        assert second.messages == []
        prompt, _ = mock_engine.chats[-1]
        assert "Currently focused on: Cactus" in prompt
        assert "curling fronds" not in prompt

    def test_focus_carries_full_history(self, store, garden, mock_engine):
        fern, _ = garden
        ChatSessionManager(store, mock_engine).focus(fern)
        prompt, _ = mock_engine.chats[0]
        assert "Health: 40% - Notes: curling fronds" in prompt
        assert "Health: 60% - Notes: some new growth" in prompt

    def test_refocus_same_plant_keeps_session(self, store, garden, mock_engine):
        fern, _ = garden
        manager = ChatSessionManager(store, mock_engine)
        session = manager.refocus(fern)
        assert manager.refocus(fern) is session
        assert len(mock_engine.chats) == 1

    def test_refocus_other_plant_resets(self, store, garden, mock_engine):
        fern, cactus = garden
        manager = ChatSessionManager(store, mock_engine)
        session = manager.refocus(fern)
        assert manager.refocus(cactus) is not session
        assert manager.refocus(None).focus_id is None
        assert len(mock_engine.chats) == 3

    @pytest.mark.asyncio
    async def test_failed_focus_keeps_previous_session(self, store, garden, mock_engine):
        fern, _ = garden
        manager = ChatSessionManager(store, mock_engine)
        garden_session = manager.focus(None)

        original = mock_engine.start_chat

        def refuse(system_prompt, *, grounding=False):
            raise EngineError("chat unavailable")

        mock_engine.start_chat = refuse
        with pytest.raises(EngineError):
            manager.focus(fern)
        mock_engine.start_chat = original

        assert manager.session is garden_session
        assert not garden_session.closed
        assert manager.refocus(None) is garden_session
        assert await collect(manager, garden_session, "still here?") == ["Hello", " there"]

    def test_grounding_passed_to_engine(self, store, mock_engine):
        calls = []
        original = mock_engine.start_chat

        def spy(system_prompt, *, grounding=False):
            calls.append(grounding)
            return original(system_prompt, grounding=grounding)

        mock_engine.start_chat = spy
        ChatSessionManager(store, mock_engine, grounding=False).focus(None)
        assert calls == [False]


class TestSend:
    @pytest.mark.asyncio
    async def test_streams_fragments(self, store, mock_engine):
        manager = ChatSessionManager(store, mock_engine)
        session = manager.focus(None)

        fragments = await collect(manager, session, "How is my garden?")

        assert fragments == ["Hello", " there"]
        assert [(m.role, m.text) for m in session.messages] == [
            ("user", "How is my garden?"),
            ("model", "Hello there"),
        ]
        _, chat = mock_engine.chats[0]
        assert chat.sent == ["How is my garden?"]

    @pytest.mark.asyncio
    async def test_engine_error_yields_single_notice(self, store):
        engine = MockEngine(chat_fragments=[], chat_error=EngineError("offline"))
        manager = ChatSessionManager(store, engine)
        session = manager.focus(None)

        fragments = await collect(manager, session, "hi")

        assert fragments == [FALLBACK_NOTICE]
        assert session.messages[-1].text == FALLBACK_NOTICE
        assert not session.closed

    @pytest.mark.asyncio
    async def test_partial_reply_then_error(self, store):
        engine = MockEngine(chat_fragments=["Water it"], chat_error=EngineError("dropped"))
        manager = ChatSessionManager(store, engine)
        session = manager.focus(None)

        fragments = await collect(manager, session, "hi")

        assert fragments == ["Water it", f"\n\n{FALLBACK_NOTICE}"]
        assert session.messages[-1].text == f"Water it\n\n{FALLBACK_NOTICE}"

    @pytest.mark.asyncio
    async def test_session_usable_after_error(self, store):
        engine = MockEngine(chat_fragments=["ok"], chat_error=EngineError("flaky"))
        manager = ChatSessionManager(store, engine)
        session = manager.focus(None)
        await collect(manager, session, "first")

        engine.chat_error = None
        session.handle._error = None
        assert await collect(manager, session, "second") == ["ok"]
        assert len(session.messages) == 4

    @pytest.mark.asyncio
    async def test_replaced_session_rejects_messages(self, store, garden, mock_engine):
        fern, cactus = garden
        manager = ChatSessionManager(store, mock_engine)
        stale = manager.focus(fern)
        manager.focus(cactus)

        with pytest.raises(SessionClosedError):
            await collect(manager, stale, "still there?")
        assert stale.messages == []

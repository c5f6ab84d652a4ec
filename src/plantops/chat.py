"""Chat sessions bound to a focus scope (one plant, or the whole garden).

A session is replaced, never mutated in place, whenever the focus identity
changes. Replies stream as text increments; the finished reply is recorded
only after the stream ends, so no half-built message is ever stored.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import AsyncIterator
from dataclasses import dataclass, field

from plantops.context import ChatContext, ContextAssembler
from plantops.engines.base import ChatHandle, Engine
from plantops.errors import SessionClosedError
from plantops.models import ChatMessage, Plant
from plantops.store import EntityStore

logger = logging.getLogger(__name__)

FALLBACK_NOTICE = "I'm sorry, I encountered an error connecting to my botanical database."


@dataclass
class ChatSession:
    """One conversation. Lives until the focus changes or the process exits."""

    focus_id: str | None
    context: ChatContext
    handle: ChatHandle = field(repr=False)
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    messages: list[ChatMessage] = field(default_factory=list)
    closed: bool = False

    @property
    def system_prompt(self) -> str:
        return self.context.render()


class ChatSessionManager:
    """Owns the current chat session and its reset / streaming protocol."""

    def __init__(
        self,
        store: EntityStore,
        engine: Engine,
        assembler: ContextAssembler | None = None,
        *,
        grounding: bool = True,
    ) -> None:
        self.store = store
        self.engine = engine
        self.assembler = assembler or ContextAssembler()
        self.grounding = grounding
        self._session: ChatSession | None = None

    @property
    def session(self) -> ChatSession | None:
        return self._session

    def focus(self, plant: Plant | None) -> ChatSession:
        """Drop the current session and open a new one scoped to ``plant``.

        The old session is closed only once the new one has opened; if the
        engine refuses the new chat, the old session stays current and usable.
        """
        context = self.assembler.build_chat_context(plant, self.store.list())
        handle = self.engine.start_chat(context.render(), grounding=self.grounding)

        if self._session is not None:
            self._session.closed = True
            logger.debug("Closed chat session %s", self._session.id)
        self._session = ChatSession(
            focus_id=plant.id if plant else None,
            context=context,
            handle=handle,
        )
        logger.info(
            "Opened chat session %s (focus=%s)",
            self._session.id,
            plant.name if plant else "garden",
        )
        return self._session

    def refocus(self, plant: Plant | None) -> ChatSession:
        """Reset only if the focus identity actually changed."""
        focus_id = plant.id if plant else None
        if self._session is not None and self._session.focus_id == focus_id:
            return self._session
        return self.focus(plant)

    async def send(self, session: ChatSession, text: str) -> AsyncIterator[str]:
        """Append a user turn and yield the model reply fragment by fragment.

        Engine failures end the stream with a single notice fragment; the
        session stays usable.
        """
        if session.closed:
            raise SessionClosedError(f"Chat session {session.id} was replaced")

        session.messages.append(ChatMessage(role="user", text=text))
        parts: list[str] = []
        try:
            async for fragment in session.handle.send_stream(text):
                parts.append(fragment)
                yield fragment
        except Exception as e:
            logger.error("Chat stream failed in session %s: %s", session.id, e)
            notice = f"\n\n{FALLBACK_NOTICE}" if parts else FALLBACK_NOTICE
            parts.append(notice)
            yield notice

        session.messages.append(ChatMessage(role="model", text="".join(parts)))

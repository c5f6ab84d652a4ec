"""Thought-signature compaction policy."""

from __future__ import annotations

import logging
from typing import Protocol, runtime_checkable

logger = logging.getLogger(__name__)

SIGNATURE_WARN_THRESHOLD = 2000


@runtime_checkable
class MemoryCompactor(Protocol):
    """Decides a plant's next signature from the old one and the engine's proposal."""

    def compact(self, previous: str, proposed: str) -> str: ...


class ReplaceCompactor:
    """The engine's signature replaces the previous one wholesale.

    An empty proposal means "no update" and keeps ``previous``. The result
    is never a concatenation of the two.
    """

    def __init__(self, warn_threshold: int = SIGNATURE_WARN_THRESHOLD) -> None:
        self.warn_threshold = warn_threshold

    def compact(self, previous: str, proposed: str) -> str:
        candidate = (proposed or "").strip()
        if not candidate:
            logger.info("Engine returned an empty signature, keeping the previous one")
            return previous
        if len(candidate) > self.warn_threshold:
            logger.warning(
                "Thought signature is %d chars (threshold: %d)",
                len(candidate),
                self.warn_threshold,
            )
        return candidate

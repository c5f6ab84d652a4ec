"""Error taxonomy shared by the store, engines and orchestration layers."""

from __future__ import annotations


class PlantOpsError(Exception):
    """Base class for all PlantOps errors."""


class NotFoundError(PlantOpsError):
    """A referenced plant does not exist (stale or wrong id)."""

    def __init__(self, plant_id: str) -> None:
        super().__init__(f"Plant '{plant_id}' not found")
        self.plant_id = plant_id


class EngineError(PlantOpsError):
    """The external reasoning engine failed or timed out.

    Nothing is written before an engine call completes, so retrying the
    same request verbatim is always safe.
    """


class MalformedResponseError(EngineError):
    """The engine answered, but the payload failed schema validation."""


class StoreError(PlantOpsError):
    """The persistence medium is unreadable, corrupt or rejected a write."""


class SessionClosedError(PlantOpsError):
    """A message was sent on a chat session that has since been replaced."""

"""
Error taxonomy for the drill engine.

Only MissingCollaboratorError and CatalogError are raised to callers in
normal operation. The remaining classes describe advisory conditions that
the session reports through events and log lines instead of propagating.
"""

from __future__ import annotations


class DrillError(Exception):
    """Base class for drill engine errors."""


class MissingCollaboratorError(DrillError):
    """Raised at construction when a required collaborator is not supplied."""

    def __init__(self, name: str):
        super().__init__(f"Required collaborator '{name}' was not provided")
        self.name = name


class CatalogError(DrillError):
    """Raised when catalog data cannot be parsed."""


class IncompleteAnswerError(DrillError):
    """Evaluation attempted while answer slots are still empty."""

    def __init__(self, empty_slots: list[int]):
        super().__init__(f"Answer incomplete, empty slots: {empty_slots}")
        self.empty_slots = empty_slots


class PlaybackUnavailableError(DrillError):
    """No audio engine bound, or playback requested while already playing."""


class CollaboratorFailure(DrillError):
    """An external collaborator call raised or rejected."""

    def __init__(self, call: str, cause: BaseException):
        super().__init__(f"{call} failed: {cause!r}")
        self.call = call
        self.cause = cause


class EmptyPoolError(DrillError):
    """The weighted pool has no eligible entries."""

    def __init__(self, level: int, time_signature: str):
        super().__init__(
            f"No eligible items for level {level} in {time_signature}; drill is stalled"
        )
        self.level = level
        self.time_signature = time_signature

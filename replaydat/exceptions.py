"""
Exception types and encode failure records for replay dat transcoding.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class ReplayDatError(Exception):
    """Base class for replaydat errors."""


class RegistryConfigError(ReplayDatError):
    """Raised when a frame handler table is inconsistent."""


class EncodeErrorKind(Enum):
    """Why an encode pass stopped early."""

    UNKNOWN_ACTION = "unknown_action"
    MALFORMED_FIELD = "malformed_field"


@dataclass(frozen=True)
class EncodeFailure:
    """
    Description of the record an encode pass stopped at.

    Attributes:
        kind: Failure category
        message: Human readable diagnostic
        line_number: 1-based line of the failing record in the text input
        tick: Resolved tick of the failing record
        player: Player id of the failing record, None when absent
    """

    kind: EncodeErrorKind
    message: str
    line_number: int
    tick: Optional[int] = None
    player: Optional[int] = None

    @property
    def location(self) -> str:
        if self.tick is None:
            return f"line {self.line_number}"
        if self.player is None:
            return f"@{self.tick}"
        return f"@{self.tick}({self.player})"


class EncodeError(ReplayDatError):
    """Raised by EncodeResult.raise_for_error for callers that want exceptions."""

    def __init__(self, failure: EncodeFailure):
        super().__init__(f"{failure.message} (line {failure.line_number})")
        self.failure = failure

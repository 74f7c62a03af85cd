"""
Queued message and render models.
"""

from enum import IntEnum
from typing import Optional

from pydantic import BaseModel


class Priority(IntEnum):
    BACKGROUND = 0  # non-critical background information
    LOW = 1         # supplementary information
    MEDIUM = 2      # standard notifications
    HIGH = 3        # important events (selection, new markers)
    CRITICAL = 4    # user-initiated actions
    IMMEDIATE = 5   # jumps the queue; never preempts an active reveal


class QueuedMessage(BaseModel):
    id: str
    text: str
    priority: Priority = Priority.MEDIUM
    enqueued_at: int
    source_event_type: Optional[str] = None
    emoji: Optional[str] = None
    survive_on_reselect: bool = False

    @property
    def sort_key(self) -> tuple[int, int]:
        return (-int(self.priority), self.enqueued_at)


class StreamingSession(BaseModel):
    full_text: str
    revealed_length: int = 0
    active: bool = True

    @property
    def revealed_text(self) -> str:
        return self.full_text[: self.revealed_length]

    @property
    def finished(self) -> bool:
        return self.revealed_length >= len(self.full_text)


class AssistantView(BaseModel):
    """Read-only render model for the presentation layer."""
    current_text: str = ""
    is_typing: bool = False
    emoji: str = ""
    visible: bool = False

"""Processing status for AI-assisted editing."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from paperdraft.paper.model import Suggestion


class Phase(str, Enum):
    IDLE = "idle"
    PROCESSING = "processing"
    ERROR = "error"


class InvalidTransition(ValueError):
    pass


@dataclass
class AgentStatus:
    """Current processing state shown alongside the editor."""
    phase: Phase = Phase.IDLE
    current_task: Optional[str] = None
    progress: int = 0
    error: Optional[str] = None
    suggestions: list[Suggestion] = field(default_factory=list)

    @property
    def is_processing(self) -> bool:
        return self.phase is Phase.PROCESSING

    def to_dict(self) -> dict:
        return {
            "phase": self.phase.value,
            "current_task": self.current_task,
            "progress": self.progress,
            "error": self.error,
            "suggestions": [s.to_dict() for s in self.suggestions],
        }


class AgentStatusController:
    """Owns an ``AgentStatus`` and is the only thing that mutates it.

    Allowed transitions: idle -> processing -> idle | error,
    error -> idle (clear_error) and error -> processing (a new task).
    """

    def __init__(self):
        self.status = AgentStatus()

    def start(self, task: str) -> None:
        if self.status.is_processing:
            raise InvalidTransition(
                f"Cannot start {task!r} while {self.status.current_task!r} is running"
            )
        self.status.phase = Phase.PROCESSING
        self.status.current_task = task
        self.status.progress = 0
        self.status.error = None

    def set_progress(self, progress: int) -> None:
        if not self.status.is_processing:
            raise InvalidTransition("No task is running")
        self.status.progress = max(0, min(100, progress))

    def finish(self) -> None:
        if not self.status.is_processing:
            raise InvalidTransition("No task is running")
        self.status.phase = Phase.IDLE
        self.status.current_task = None
        self.status.progress = 0

    def fail(self, error: str) -> None:
        if not self.status.is_processing:
            raise InvalidTransition("No task is running")
        self.status.phase = Phase.ERROR
        self.status.current_task = None
        self.status.progress = 0
        self.status.error = error

    def clear_error(self) -> None:
        if self.status.phase is not Phase.ERROR:
            raise InvalidTransition("No error to clear")
        self.status.phase = Phase.IDLE
        self.status.error = None

    def add_suggestion(self, suggestion: Suggestion) -> None:
        self.status.suggestions.append(suggestion)

    def clear_suggestions(self) -> None:
        self.status.suggestions = []

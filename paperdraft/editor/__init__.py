"""Editing session and processing status."""

from paperdraft.editor.status import AgentStatus, AgentStatusController, InvalidTransition, Phase
from paperdraft.editor.session import EditorSession, NoPaperOpen, PreviewState

__all__ = [
    "AgentStatus",
    "AgentStatusController",
    "InvalidTransition",
    "Phase",
    "EditorSession",
    "NoPaperOpen",
    "PreviewState",
]

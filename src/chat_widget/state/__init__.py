"""State controllers for the widget."""

from .attachments import AttachmentStager, StageResult
from .chat import ChatSession
from .flows import FlowEngine
from .transcript import MessageStore
from .visibility import VisibilityController

__all__ = [
    "AttachmentStager",
    "ChatSession",
    "FlowEngine",
    "MessageStore",
    "StageResult",
    "VisibilityController",
]

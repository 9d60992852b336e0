"""
Headless core of an embeddable conversational widget.

Exports the session controller, data models and the factory that wires the
HTTP collaborators together.
"""

from .apps import create_session
from .models import ChatState, ConversationContext, DefaultOption, Message, WidgetConfig
from .state import ChatSession

__all__ = [
    "ChatSession",
    "ChatState",
    "ConversationContext",
    "DefaultOption",
    "Message",
    "WidgetConfig",
    "create_session",
]

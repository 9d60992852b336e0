"""Data contracts used across the widget."""

from .chat import (
    Attachment,
    AttachmentRejection,
    ChatResponse,
    ChatState,
    ConversationContext,
    DefaultOption,
    Message,
    MessageFlags,
    Product,
    QueryStage,
    Visibility,
)
from .config import ApiSettings, WidgetConfig, WidgetSettings

__all__ = [
    "ApiSettings",
    "Attachment",
    "AttachmentRejection",
    "ChatResponse",
    "ChatState",
    "ConversationContext",
    "DefaultOption",
    "Message",
    "MessageFlags",
    "Product",
    "QueryStage",
    "Visibility",
    "WidgetConfig",
    "WidgetSettings",
]

# Data models for the conversational widget.

from __future__ import annotations

import datetime as _dt
import enum
import mimetypes
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Literal, Mapping, Optional, Tuple

from chat_widget.core.constants import DOCUMENTS_REQUIRED_STAGE

Sender = Literal["user", "bot"]
_UTC = _dt.timezone.utc


def utcnow() -> _dt.datetime:
    return _dt.datetime.now(_UTC)


class ConversationContext(str, enum.Enum):
    """Routes the next free-text submission to a server-side handling path."""

    DEFAULT = "DEFAULT"
    POLICY_INFO = "POLICY_INFO"
    CLAIM_INFO = "CLAIM_INFO"
    CLAIM_SUBMISSION = "CLAIM_SUBMISSION"
    PRODUCT_INFO = "PRODUCT_INFO"


class DefaultOption(str, enum.Enum):
    """Quick actions offered under the welcome message."""

    POLICY_INFO = "POLICY_INFO"
    CLAIM_INFO = "CLAIM_INFO"
    SUBMIT_CLAIM = "SUBMIT_CLAIM"
    PRODUCT_INFO = "PRODUCT_INFO"

    @property
    def label(self) -> str:
        return _OPTION_LABELS[self]

    @property
    def context(self) -> ConversationContext:
        return _OPTION_CONTEXTS[self]


_OPTION_LABELS = {
    DefaultOption.POLICY_INFO: "Policy Info",
    DefaultOption.CLAIM_INFO: "Claim Info",
    DefaultOption.SUBMIT_CLAIM: "Submit Claim",
    DefaultOption.PRODUCT_INFO: "Product Info",
}

_OPTION_CONTEXTS = {
    DefaultOption.POLICY_INFO: ConversationContext.POLICY_INFO,
    DefaultOption.CLAIM_INFO: ConversationContext.CLAIM_INFO,
    DefaultOption.SUBMIT_CLAIM: ConversationContext.CLAIM_SUBMISSION,
    DefaultOption.PRODUCT_INFO: ConversationContext.PRODUCT_INFO,
}


class Visibility(str, enum.Enum):
    CLOSED = "closed"
    OPEN = "open"
    MINIMIZING = "minimizing"


@dataclass(frozen=True, slots=True)
class Attachment:
    """A user-chosen file plus the metadata used for validation and display."""

    name: str
    size: int
    content_type: str
    path: Optional[Path] = None
    content: Optional[bytes] = field(default=None, repr=False)

    @property
    def key(self) -> Tuple[str, int]:
        return (self.name, self.size)

    @classmethod
    def from_path(cls, path: Path | str, *, content_type: str | None = None) -> "Attachment":
        path = Path(path)
        guessed = content_type or mimetypes.guess_type(path.name)[0] or "application/octet-stream"
        return cls(name=path.name, size=path.stat().st_size, content_type=guessed, path=path)

    @classmethod
    def from_bytes(cls, name: str, data: bytes, content_type: str | None = None) -> "Attachment":
        guessed = content_type or mimetypes.guess_type(name)[0] or "application/octet-stream"
        return cls(name=name, size=len(data), content_type=guessed, content=data)

    def read_bytes(self) -> bytes:
        if self.content is not None:
            return self.content
        if self.path is not None:
            return self.path.read_bytes()
        return b""


@dataclass(frozen=True, slots=True)
class MessageFlags:
    """Rendering affordances that never alter the message content."""

    is_welcome: bool = False
    is_error: bool = False
    show_segments: bool = False
    has_products: bool = False


@dataclass(frozen=True, slots=True)
class Message:
    id: int
    sender: Sender
    content: str
    files: Tuple[Attachment, ...] = ()
    created_at: _dt.datetime = field(default_factory=utcnow)
    flags: MessageFlags = field(default_factory=MessageFlags)
    context: ConversationContext = ConversationContext.DEFAULT


@dataclass(frozen=True, slots=True)
class Product:
    name: str
    code: str

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "Product":
        name = payload.get("productName") or payload.get("name")
        code = payload.get("productCode") or payload.get("code")
        if not name or code is None:
            raise ValueError(f"product entry is missing a name or code: {payload!r}")
        return cls(name=str(name), code=str(code))


@dataclass(frozen=True, slots=True)
class QueryStage:
    type: str
    stage: str

    @property
    def requires_documents(self) -> bool:
        return self.type == "CLAIM_SUBMISSION" and self.stage == DOCUMENTS_REQUIRED_STAGE


@dataclass(frozen=True, slots=True)
class ChatResponse:
    """Reply returned by the chat transport."""

    response: str
    source: Optional[str] = None
    query_stage: Optional[QueryStage] = None

    @property
    def enables_attachments(self) -> bool:
        return self.query_stage is not None and self.query_stage.requires_documents


@dataclass(frozen=True, slots=True)
class AttachmentRejection:
    name: str
    reason: str
    message: str


@dataclass(slots=True)
class ChatState:
    """Reactive state container rendered by the host.

    Held in a ``solara.Reactive`` by the session and replaced through
    updater functions, so a value a listener received is never mutated
    afterwards.
    """

    messages: Tuple[Message, ...] = ()
    staged_files: Tuple[Attachment, ...] = ()
    attachment_warnings: Tuple[AttachmentRejection, ...] = ()
    input_text: str = ""
    context: ConversationContext = ConversationContext.DEFAULT
    is_typing: bool = False
    pending_segments: Optional[Tuple[str, ...]] = None
    pending_products: Optional[Tuple[Product, ...]] = None
    attachment_enabled: bool = False
    visibility: Visibility = Visibility.CLOSED
    has_new_message: bool = False
    can_send: bool = False

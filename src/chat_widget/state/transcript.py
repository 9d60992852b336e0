"""Bounded, append-only transcript with a store-owned id counter."""

from __future__ import annotations

from typing import Iterator, List, Optional, Tuple

from chat_widget.models import chat as chat_models

WELCOME_MESSAGE_ID = 1


class MessageStore:
    """Ordered log of transcript entries capped at ``max_messages``.

    The oldest entries are evicted first once the cap is exceeded; the seeded
    welcome message gets no special treatment.
    """

    def __init__(self, welcome_message: str, max_messages: int) -> None:
        if max_messages < 1:
            raise ValueError("max_messages must be at least 1")
        self._welcome_message = welcome_message
        self._max_messages = max_messages
        self._messages: List[chat_models.Message] = []
        self._next_id = WELCOME_MESSAGE_ID
        self.clear()

    @property
    def max_messages(self) -> int:
        return self._max_messages

    @property
    def messages(self) -> Tuple[chat_models.Message, ...]:
        return tuple(self._messages)

    @property
    def last(self) -> Optional[chat_models.Message]:
        return self._messages[-1] if self._messages else None

    def __len__(self) -> int:
        return len(self._messages)

    def __iter__(self) -> Iterator[chat_models.Message]:
        return iter(tuple(self._messages))

    def next_id(self) -> int:
        value = self._next_id
        self._next_id += 1
        return value

    def append(self, message: chat_models.Message) -> chat_models.Message:
        self._messages.append(message)
        overflow = len(self._messages) - self._max_messages
        if overflow > 0:
            del self._messages[:overflow]
        return message

    def clear(self) -> None:
        self._next_id = WELCOME_MESSAGE_ID
        welcome = chat_models.Message(
            id=self.next_id(),
            sender="bot",
            content=self._welcome_message,
            flags=chat_models.MessageFlags(is_welcome=True),
        )
        self._messages = [welcome]

    def create(
        self,
        sender: chat_models.Sender,
        content: str,
        *,
        files: Tuple[chat_models.Attachment, ...] = (),
        flags: chat_models.MessageFlags | None = None,
        context: chat_models.ConversationContext = chat_models.ConversationContext.DEFAULT,
    ) -> chat_models.Message:
        """Build a message with the next id and append it."""

        message = chat_models.Message(
            id=self.next_id(),
            sender=sender,
            content=content,
            files=files,
            flags=flags or chat_models.MessageFlags(),
            context=context,
        )
        return self.append(message)

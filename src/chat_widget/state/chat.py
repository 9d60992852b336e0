"""Chat session controller orchestrating transcript, attachments, flows and visibility."""

from __future__ import annotations

import asyncio
import inspect
from typing import Any, Callable, Coroutine, Dict, Iterable, Mapping, Optional, Set

import solara

from chat_widget.core.constants import GENERAL_ERROR_MESSAGE
from chat_widget.core.errors import MalformedResponseError
from chat_widget.core.scheduling import AsyncioScheduler, Scheduler
from chat_widget.core.text import sanitize_input
from chat_widget.models import chat as chat_models
from chat_widget.models.config import WidgetConfig
from chat_widget.services.catalog import CatalogClient
from chat_widget.services.logging import StructuredLogger
from chat_widget.services.telemetry import telemetry_span
from chat_widget.services.transport import ChatTransport, parse_chat_response

from .attachments import AttachmentStager, StageResult
from .flows import FlowEngine
from .transcript import MessageStore
from .visibility import VisibilityController

StateListener = Callable[[chat_models.ChatState], None]


class ChatSession:
    """High-level orchestrator for one widget instance.

    ``state`` is a ``solara.Reactive[ChatState]``; every change goes through
    an updater so hosts can subscribe to it or render it directly.

    The synchronous entry points (``send``, ``select_option`` ...) return the
    spawned :class:`asyncio.Task` when a loop is running. Without one they
    run the request to completion on a loop the session keeps for its whole
    life, so pooled HTTP connections stay valid between calls. Release it
    with :meth:`close` (or :meth:`aclose` from async hosts).
    """

    def __init__(
        self,
        *,
        config: Optional[WidgetConfig] = None,
        transport: Optional[ChatTransport] = None,
        catalog: Optional[CatalogClient] = None,
        scheduler: Optional[Scheduler] = None,
        logger: Optional[StructuredLogger] = None,
        on_focus: Optional[Callable[[], None]] = None,
    ) -> None:
        self.config = config or WidgetConfig()
        self._logger = logger or StructuredLogger("chat-widget.session")
        self._scheduler = scheduler or AsyncioScheduler()
        self._transport = transport
        self._catalog = catalog
        self._store = MessageStore(self.config.welcome_message, self.config.max_messages)
        self._stager = AttachmentStager(self.config.max_file_size, self.config.allowed_file_types)
        self._visibility = VisibilityController(
            self._scheduler, self.config.timings, on_change=self.changed, on_focus=on_focus
        )
        self._flows = FlowEngine(
            self,
            scheduler=self._scheduler,
            timings=self.config.timings,
            catalog=catalog,
            logger=self._logger,
        )
        # Typing bookkeeping: one unit per running step plus the host's manual flag.
        self._busy = 0
        self._manual_typing = False
        self._send_in_flight = False
        self._tasks: Set[asyncio.Task] = set()
        self._sync_loop: Optional[asyncio.AbstractEventLoop] = None
        initial_state = chat_models.ChatState(**self._derived(""))
        self.state: solara.Reactive[chat_models.ChatState] = solara.reactive(initial_state)

    # ------------------------------------------------------------------ state access
    @property
    def messages(self) -> tuple[chat_models.Message, ...]:
        return self._store.messages

    @property
    def is_typing(self) -> bool:
        return self._busy > 0 or self._manual_typing

    @property
    def context(self) -> chat_models.ConversationContext:
        return self._flows.context

    @property
    def attachment_enabled(self) -> bool:
        return self.state.value.attachment_enabled

    @property
    def can_send(self) -> bool:
        return self.state.value.can_send

    def snapshot(self) -> chat_models.ChatState:
        return self.state.value

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        """Call ``listener`` with the new state after every change; returns the unsubscribe hook."""

        return self.state.subscribe(listener)

    def changed(self) -> None:
        self._apply()

    def _apply(self, **changes: Any) -> None:
        def updater(prev: chat_models.ChatState):
            fields = self._derived(changes.get("input_text", prev.input_text))
            fields.update(changes)
            return fields

        self.state.update(updater)

    def _derived(self, input_text: str) -> Dict[str, Any]:
        has_payload = bool(sanitize_input(input_text)) or len(self._stager) > 0
        return {
            "messages": self._store.messages,
            "staged_files": self._stager.staged,
            "context": self._flows.context,
            "is_typing": self.is_typing,
            "pending_segments": self._flows.pending_segments,
            "pending_products": self._flows.pending_products,
            "visibility": self._visibility.state,
            "has_new_message": self._visibility.has_new_message,
            "can_send": has_payload
            and not self.is_typing
            and not self._send_in_flight
            and self._transport is not None,
        }

    # ------------------------------------------------------------------ input + attachments
    def set_input(self, text: str) -> None:
        self._apply(input_text=text or "")

    def stage_files(self, files: Iterable[chat_models.Attachment]) -> StageResult:
        result = self._stager.stage(files)
        if result.rejected:
            self._logger.warning(
                "attachments.rejected",
                files=[rejection.name for rejection in result.rejected],
                reasons=[rejection.reason for rejection in result.rejected],
            )
        if self.config.report_attachment_errors:
            self._apply(attachment_warnings=tuple(result.rejected))
        else:
            self.changed()
        return result

    def remove_file(self, index: int) -> None:
        if self._stager.remove(index) is not None:
            self.changed()

    def dismiss_attachment_warnings(self) -> None:
        self._apply(attachment_warnings=())

    # ------------------------------------------------------------------ messaging
    def send(self) -> Optional[asyncio.Task]:
        """Send the typed text and staged files as one user message."""

        text = sanitize_input(self.state.value.input_text)
        if not text and len(self._stager) == 0:
            return None
        if self._transport is None:
            self._logger.warning("chat.send.skipped", reason="no transport configured")
            return None
        if self.is_typing or self._send_in_flight:
            self._logger.debug("chat.send.skipped", reason="reply pending")
            return None

        message = self._store.create(
            "user",
            text,
            files=self._stager.drain(),
            context=self._flows.context,
        )
        self._flows.reset_context()
        self._send_in_flight = True
        self._busy += 1
        self._apply(input_text="", attachment_warnings=())
        self._logger.info(
            "chat.send.start",
            message_id=message.id,
            context=message.context.value,
            files=len(message.files),
        )
        return self._spawn(self._deliver(message))

    async def _deliver(self, message: chat_models.Message) -> None:
        transport = self._transport
        try:
            with telemetry_span(self._logger, "chat.send", message_id=message.id):
                result: Any = transport.send(message)
                if inspect.isawaitable(result):
                    result = await result
                response = self._coerce_response(result)
        except Exception as error:  # noqa: BLE001 - every failure degrades to the generic notice
            self._logger.error(
                "chat.send.failed",
                message_id=message.id,
                error=str(error),
                error_type=type(error).__name__,
            )
            self.append_bot(GENERAL_ERROR_MESSAGE, flags=chat_models.MessageFlags(is_error=True))
        else:
            self._apply(attachment_enabled=response.enables_attachments)
            self.append_bot(response.response)
            self._logger.info(
                "chat.send.complete",
                message_id=message.id,
                source=response.source,
                attachment_enabled=response.enables_attachments,
            )
        finally:
            self._send_in_flight = False
            self.end_busy()

    @staticmethod
    def _coerce_response(result: Any) -> chat_models.ChatResponse:
        if isinstance(result, chat_models.ChatResponse):
            if not result.response or not result.response.strip():
                raise MalformedResponseError("empty reply")
            return result
        if isinstance(result, Mapping):
            return parse_chat_response(dict(result))
        raise MalformedResponseError(f"unexpected transport result {type(result).__name__}")

    # ------------------------------------------------------------------ host controls
    def add_bot_response(self, content: str) -> chat_models.Message:
        self._manual_typing = False
        return self.append_bot(content)

    def add_error_response(self, error_message: Optional[str] = None) -> chat_models.Message:
        self._manual_typing = False
        return self.append_bot(error_message or GENERAL_ERROR_MESSAGE, flags=chat_models.MessageFlags(is_error=True))

    def set_typing(self, is_typing: bool) -> None:
        self._manual_typing = bool(is_typing)
        self.changed()

    def set_attachment_enabled(self, enabled: bool) -> None:
        self._apply(attachment_enabled=bool(enabled))

    def clear_chat(self) -> None:
        self._store.clear()
        self._flows.reset()
        self._logger.info("chat.cleared")
        self.changed()

    def open_chat(self) -> None:
        self._visibility.open()

    def close_chat(self) -> None:
        self._visibility.close()

    def toggle_chat(self) -> None:
        self._visibility.toggle()

    def handle_pointer_down(self, inside_widget: bool) -> None:
        self._visibility.handle_pointer_down(inside_widget)

    def handle_key(self, key: str) -> None:
        self._visibility.handle_key(key)

    # ------------------------------------------------------------------ flows
    def select_option(self, option: chat_models.DefaultOption | str) -> Optional[asyncio.Task]:
        return self._run_flow(self._flows.select_option(chat_models.DefaultOption(option)))

    def select_segment(self, segment: str) -> Optional[asyncio.Task]:
        return self._run_flow(self._flows.select_segment(segment))

    def select_product(self, product: chat_models.Product | str) -> Optional[asyncio.Task]:
        return self._run_flow(self._flows.select_product(product))

    def _run_flow(self, coroutine: Optional[Coroutine[Any, Any, None]]) -> Optional[asyncio.Task]:
        self.changed()
        if coroutine is None:
            return None
        return self._spawn(coroutine)

    # ------------------------------------------------------------------ flow host hooks
    def append_bot(self, content: str, *, flags: chat_models.MessageFlags | None = None) -> chat_models.Message:
        message = self._store.create("bot", sanitize_input(content), flags=flags, context=self._flows.context)
        self._visibility.notify_bot_message()
        self.changed()
        return message

    def append_user(self, content: str) -> chat_models.Message:
        message = self._store.create("user", sanitize_input(content), context=self._flows.context)
        self.changed()
        return message

    def begin_busy(self) -> None:
        self._busy += 1
        self.changed()

    def end_busy(self) -> None:
        self._busy = max(0, self._busy - 1)
        self.changed()

    # ------------------------------------------------------------------ lifecycle helpers
    async def aclose(self) -> None:
        """Close the transport and catalog handed to this session."""

        for collaborator in (self._transport, self._catalog):
            closer = getattr(collaborator, "aclose", None)
            if closer is not None:
                await closer()
        self._logger.info("session.closed")

    def close(self) -> None:
        """Synchronous :meth:`aclose` that also releases the session's own loop."""

        self._spawn(self.aclose())
        if self._sync_loop is not None:
            self._sync_loop.close()
            self._sync_loop = None

    def _spawn(self, coroutine: Coroutine[Any, Any, None]) -> Optional[asyncio.Task]:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            self._host_loop().run_until_complete(coroutine)
            return None
        task = loop.create_task(coroutine)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    def _host_loop(self) -> asyncio.AbstractEventLoop:
        if self._sync_loop is None or self._sync_loop.is_closed():
            self._sync_loop = asyncio.new_event_loop()
        return self._sync_loop

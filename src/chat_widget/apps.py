"""
Factory wiring a chat session to the HTTP collaborators described by the settings.
"""

from __future__ import annotations

from pathlib import Path
from typing import Callable, Optional

import httpx

from chat_widget.core.scheduling import Scheduler
from chat_widget.models.config import WidgetSettings
from chat_widget.services.api import ApiClient
from chat_widget.services.catalog import HttpCatalogClient
from chat_widget.services.logging import StructuredLogger
from chat_widget.services.settings import load_settings
from chat_widget.services.transport import HttpChatTransport, MockChatTransport
from chat_widget.state import ChatSession


def create_session(
    settings: Optional[WidgetSettings] = None,
    *,
    config_path: Path | str | None = None,
    offline: bool = False,
    scheduler: Optional[Scheduler] = None,
    logger: Optional[StructuredLogger] = None,
    on_focus: Optional[Callable[[], None]] = None,
    http_transport: Optional[httpx.AsyncBaseTransport] = None,
) -> ChatSession:
    """Build a ready-to-use session.

    ``offline`` swaps the HTTP transport for canned replies and leaves the
    catalog unset, so Product Info reports the fetch failure in the transcript.
    ``http_transport`` is handed to the httpx client (proxies, mounts or an
    in-process transport). The returned session owns the HTTP client;
    release it with ``session.close()`` or ``await session.aclose()``.
    """

    settings = settings or load_settings(config_path)
    logger = logger or StructuredLogger("chat-widget")
    if offline:
        transport = MockChatTransport(settings.widget.timings.typing, jitter_seconds=2.0)
        catalog = None
    else:
        client = ApiClient(settings.api, transport=http_transport)
        transport = HttpChatTransport(client, logger=logger.child("transport"))
        catalog = HttpCatalogClient(client, logger=logger.child("catalog"))
    logger.info(
        "session.created",
        offline=offline,
        base_url=settings.api.base_url,
        max_messages=settings.widget.max_messages,
    )
    return ChatSession(
        config=settings.widget,
        transport=transport,
        catalog=catalog,
        scheduler=scheduler,
        logger=logger,
        on_focus=on_focus,
    )

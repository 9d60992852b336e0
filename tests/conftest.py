"""Test configuration and shared doubles for the widget core."""

from __future__ import annotations

import asyncio
import sys
from pathlib import Path
from typing import Sequence

import httpx
import pytest

PROJECT_ROOT = Path(__file__).resolve().parents[1]
SRC_PATH = PROJECT_ROOT / "src"
if str(SRC_PATH) not in sys.path:
    sys.path.insert(0, str(SRC_PATH))

from chat_widget.core.errors import CatalogError, TransportError  # noqa: E402
from chat_widget.core.scheduling import VirtualClock  # noqa: E402
from chat_widget.models import chat as chat_models  # noqa: E402
from chat_widget.models.config import WidgetConfig  # noqa: E402
from chat_widget.state import ChatSession  # noqa: E402


class StubLogger:
    def __init__(self) -> None:
        self.events: list[tuple[str, dict]] = []

    def info(self, event: str, **fields):
        self.events.append((event, fields))

    debug = warning = error = info

    def child(self, component: str) -> "StubLogger":
        return self

    def names(self) -> list[str]:
        return [event for event, _ in self.events]


class RecordingHttpTransport(httpx.AsyncBaseTransport):
    """In-process httpx transport noting the loop of every request.

    With ``bind_to_first_loop`` it behaves like a pooled connection and
    fails once a request arrives on a different loop than the first one.
    """

    def __init__(self, handler, *, bind_to_first_loop: bool = False) -> None:
        self.handler = handler
        self.bind_to_first_loop = bind_to_first_loop
        self.loops: list[asyncio.AbstractEventLoop] = []
        self.closed = False

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        loop = asyncio.get_running_loop()
        if self.bind_to_first_loop and self.loops and self.loops[0] is not loop:
            raise RuntimeError("Event loop is closed")
        self.loops.append(loop)
        await request.aread()
        return self.handler(request)

    async def aclose(self) -> None:
        self.closed = True


class StubTransport:
    """Records messages and answers with a queued response or error."""

    def __init__(self, *responses) -> None:
        self.responses = list(responses) or [chat_models.ChatResponse(response="Hello from the bot")]
        self.sent: list[chat_models.Message] = []
        self.transcript_lengths: list[int] = []
        self.session: ChatSession | None = None

    async def send(self, message: chat_models.Message):
        self.sent.append(message)
        if self.session is not None:
            self.transcript_lengths.append(len(self.session.messages))
        result = self.responses.pop(0) if len(self.responses) > 1 else self.responses[0]
        if isinstance(result, Exception):
            raise result
        return result


class StubCatalog:
    """Catalog double; an entry in ``gates`` holds that call until released."""

    def __init__(
        self,
        segments: Sequence[str] = ("Health", "Motor"),
        products: dict[str, list[chat_models.Product]] | None = None,
        details: dict[str, str] | None = None,
    ) -> None:
        self.segments = list(segments)
        self.products = products or {
            "Health": [chat_models.Product("Family Floater", "HF-01"), chat_models.Product("Senior Care", "SC-02")],
            "Motor": [chat_models.Product("Comprehensive", "MC-01")],
        }
        self.details = details or {"HF-01": "Family Floater covers the whole family.", "SC-02": "Senior Care."}
        self.calls: list[tuple[str, str | None]] = []
        self.failures: set[str] = set()
        self.gates: dict[str, asyncio.Event] = {}

    async def _wait(self, key: str) -> None:
        gate = self.gates.get(key)
        if gate is not None:
            await gate.wait()
        if key in self.failures:
            raise CatalogError(f"{key} unavailable")

    async def fetch_segments(self):
        self.calls.append(("segments", None))
        await self._wait("segments")
        return list(self.segments)

    async def fetch_products(self, segment: str):
        self.calls.append(("products", segment))
        await self._wait(f"products:{segment}")
        return list(self.products.get(segment, []))

    async def fetch_product_detail(self, code: str):
        self.calls.append(("detail", code))
        await self._wait(f"detail:{code}")
        return self.details[code]


@pytest.fixture
def clock() -> VirtualClock:
    return VirtualClock()


@pytest.fixture
def logger() -> StubLogger:
    return StubLogger()


@pytest.fixture
def make_session(clock, logger):
    sessions: list[ChatSession] = []

    def factory(
        *,
        transport=None,
        catalog=None,
        config: WidgetConfig | None = None,
        with_transport: bool = True,
    ) -> ChatSession:
        if transport is None and with_transport:
            transport = StubTransport()
        session = ChatSession(
            config=config or WidgetConfig(welcome_message="Welcome!"),
            transport=transport,
            catalog=catalog,
            scheduler=clock,
            logger=logger,
        )
        if isinstance(transport, StubTransport):
            transport.session = session
        sessions.append(session)
        return session

    yield factory
    for session in sessions:
        session.close()


@pytest.fixture
def transport_error() -> TransportError:
    return TransportError("connection refused")

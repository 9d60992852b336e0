"""Async HTTP client shared by the chat transport and the product catalog."""

from __future__ import annotations

import asyncio
import json
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional, Sequence, Tuple

import httpx

from chat_widget.models.config import ApiSettings

FilePart = Tuple[str, Tuple[Optional[str], Any, Optional[str]]]


@dataclass
class ApiResponse:
    status_code: int
    payload: Any
    text: str

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300

    @classmethod
    def from_response(cls, response: httpx.Response) -> "ApiResponse":
        try:
            data = response.json()
        except (json.JSONDecodeError, UnicodeDecodeError):
            data = None
        return cls(status_code=response.status_code, payload=data, text=response.text)

class ApiClient:
    """Thin wrapper around :class:`httpx.AsyncClient` rooted at one base URL.

    An owned client belongs to the event loop it was opened on: when calls
    arrive from a different loop a fresh client is opened, because pooled
    connections cannot outlive their loop. A ``session`` passed in is used
    as-is and its owner decides the loop.
    """

    def __init__(
        self,
        settings: ApiSettings,
        *,
        session: Optional[httpx.AsyncClient] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._settings = settings
        self._base_url = settings.base_url.rstrip("/")
        self._transport = transport
        self._session = session
        self._owns_session = session is None
        self._session_loop: Optional[asyncio.AbstractEventLoop] = None

    @property
    def settings(self) -> ApiSettings:
        return self._settings

    def url(self, path: str) -> str:
        return f"{self._base_url}/{path.lstrip('/')}"

    def _client(self) -> httpx.AsyncClient:
        if not self._owns_session:
            return self._session
        loop = asyncio.get_running_loop()
        if self._session is None or self._session.is_closed or self._session_loop is not loop:
            self._session = httpx.AsyncClient(
                timeout=self._settings.timeout,
                verify=self._settings.verify_tls,
                transport=self._transport,
            )
            self._session_loop = loop
        return self._session

    async def get(self, path: str, params: Optional[Dict[str, Any]] = None) -> ApiResponse:
        response = await self._client().get(self.url(path), params=params)
        return ApiResponse.from_response(response)

    async def post_form(
        self,
        path: str,
        data: Mapping[str, str],
        *,
        files: Sequence[FilePart] = (),
        headers: Optional[Mapping[str, str]] = None,
    ) -> ApiResponse:
        # Plain fields travel as filename-less parts so the body is always multipart.
        parts: list[FilePart] = [(key, (None, value.encode("utf-8"), None)) for key, value in data.items()]
        parts.extend(files)
        response = await self._client().post(self.url(path), files=parts, headers=dict(headers or {}))
        return ApiResponse.from_response(response)

    async def aclose(self) -> None:
        session = self._session
        if session is None or session.is_closed:
            return
        # A client left behind by a finished loop has nothing that can still be awaited.
        if self._owns_session and self._session_loop is not asyncio.get_running_loop():
            self._session = None
            return
        await session.aclose()

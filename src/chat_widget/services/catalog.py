"""Product catalog lookups used by the Product Info flow."""

from __future__ import annotations

from typing import Any, List, Optional, Protocol, Sequence

import httpx

from chat_widget.core.errors import CatalogError
from chat_widget.models import chat as chat_models

from .api import ApiClient, ApiResponse
from .logging import StructuredLogger
from .telemetry import telemetry_span


class CatalogClient(Protocol):
    async def fetch_segments(self) -> Sequence[str]: ...

    async def fetch_products(self, segment: str) -> Sequence[chat_models.Product]: ...

    async def fetch_product_detail(self, code: str) -> str: ...


class HttpCatalogClient:
    """Reads segments, products and product details from the REST API."""

    def __init__(self, client: ApiClient, *, logger: Optional[StructuredLogger] = None) -> None:
        self._client = client
        self._logger = logger or StructuredLogger("chat-widget.catalog")

    async def fetch_segments(self) -> List[str]:
        with telemetry_span(self._logger, "catalog.segments"):
            result = await self._get("products/segments")
            items = self._unwrap_list(result, "segments")
            return [str(item) for item in items if str(item).strip()]

    async def fetch_products(self, segment: str) -> List[chat_models.Product]:
        with telemetry_span(self._logger, "catalog.products", segment=segment):
            result = await self._get("products", params={"segment": segment})
            items = self._unwrap_list(result, "products")
            try:
                return [chat_models.Product.from_payload(item) for item in items]
            except (TypeError, ValueError, AttributeError) as error:
                raise CatalogError(f"malformed product list: {error}") from error

    async def fetch_product_detail(self, code: str) -> str:
        with telemetry_span(self._logger, "catalog.product_detail", code=code):
            result = await self._get(f"products/{code}")
            payload = result.payload
            if isinstance(payload, dict):
                for key in ("response", "description", "details"):
                    value = payload.get(key)
                    if isinstance(value, str) and value.strip():
                        return value
                raise CatalogError("product detail has no displayable text")
            if isinstance(payload, str) and payload.strip():
                return payload
            if payload is None and result.text.strip():
                return result.text
            raise CatalogError("product detail is empty")

    async def aclose(self) -> None:
        await self._client.aclose()

    # ------------------------------------------------------------------ helpers
    async def _get(self, path: str, params: Optional[dict[str, Any]] = None) -> ApiResponse:
        try:
            result = await self._client.get(path, params=params)
        except httpx.HTTPError as error:
            raise CatalogError(f"catalog request failed: {error}") from error
        if not result.ok:
            raise CatalogError(f"catalog request to {path} returned {result.status_code}")
        return result

    @staticmethod
    def _unwrap_list(result: ApiResponse, key: str) -> list:
        payload = result.payload
        if isinstance(payload, dict):
            payload = payload.get(key)
        if not isinstance(payload, list):
            raise CatalogError(f"expected a list of {key}")
        return payload

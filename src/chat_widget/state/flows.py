"""Conversation context and the multi-step branches behind the quick actions."""

from __future__ import annotations

from typing import Any, Coroutine, Optional, Protocol, Tuple

from chat_widget.core import constants
from chat_widget.core.errors import CatalogError
from chat_widget.core.scheduling import Scheduler, TimerHandle
from chat_widget.models import chat as chat_models
from chat_widget.services.catalog import CatalogClient
from chat_widget.services.logging import StructuredLogger

_SCRIPTED_PROMPTS = {
    chat_models.DefaultOption.POLICY_INFO: constants.POLICY_NUMBER_PROMPT,
    chat_models.DefaultOption.CLAIM_INFO: constants.CLAIM_NUMBER_PROMPT,
    chat_models.DefaultOption.SUBMIT_CLAIM: constants.CLAIM_SUBMISSION_PROMPT,
}

_ERROR_FLAGS = chat_models.MessageFlags(is_error=True)


class FlowHost(Protocol):
    """What the flow engine needs from the session that owns it."""

    def append_bot(self, content: str, *, flags: chat_models.MessageFlags | None = None) -> chat_models.Message: ...

    def append_user(self, content: str) -> chat_models.Message: ...

    def begin_busy(self) -> None: ...

    def end_busy(self) -> None: ...

    def changed(self) -> None: ...


class FlowEngine:
    """Owns the active conversation context and the pending selection lists.

    Every step that awaits the catalog captures a generation token. Starting
    a new option or selecting an item bumps the generation, so a slower,
    older step finds its token outdated and drops its result. Each step holds
    one busy unit on the host and always releases it.
    """

    def __init__(
        self,
        host: FlowHost,
        *,
        scheduler: Scheduler,
        timings: constants.AnimationTimings,
        catalog: Optional[CatalogClient] = None,
        logger: Optional[StructuredLogger] = None,
    ) -> None:
        self._host = host
        self._scheduler = scheduler
        self._timings = timings
        self._catalog = catalog
        self._logger = logger or StructuredLogger("chat-widget.flows")
        self._context = chat_models.ConversationContext.DEFAULT
        self._pending_segments: Optional[Tuple[str, ...]] = None
        self._pending_products: Optional[Tuple[chat_models.Product, ...]] = None
        self._generation = 0
        self._prompt_timer: Optional[TimerHandle] = None
        self._prompt_pending = False

    # ------------------------------------------------------------------ state
    @property
    def context(self) -> chat_models.ConversationContext:
        return self._context

    @property
    def pending_segments(self) -> Optional[Tuple[str, ...]]:
        return self._pending_segments

    @property
    def pending_products(self) -> Optional[Tuple[chat_models.Product, ...]]:
        return self._pending_products

    def reset_context(self) -> None:
        self._context = chat_models.ConversationContext.DEFAULT

    def reset(self) -> None:
        """Forget pending lists, the scripted prompt and any in-flight results."""

        self._next_generation()
        self._cancel_prompt()
        self._pending_segments = None
        self._pending_products = None
        self._context = chat_models.ConversationContext.DEFAULT

    # ------------------------------------------------------------------ default options
    def select_option(self, option: chat_models.DefaultOption) -> Optional[Coroutine[Any, Any, None]]:
        """Switch context for ``option``.

        Scripted options schedule their prompt and return None. Product Info
        renders the segment prompt and returns the coroutine that loads the
        segments; the caller decides how to run it.
        """

        option = chat_models.DefaultOption(option)
        token = self._next_generation()
        self._cancel_prompt()
        self._pending_segments = None
        self._pending_products = None
        self._context = option.context
        self._logger.info("flow.option.selected", option=option.value, context=self._context.value)

        if option is chat_models.DefaultOption.PRODUCT_INFO:
            self._host.append_bot(constants.SEGMENT_PROMPT, flags=chat_models.MessageFlags(show_segments=True))
            self._host.begin_busy()
            return self._load_segments(token)

        prompt = _SCRIPTED_PROMPTS[option]
        self._host.begin_busy()
        self._prompt_pending = True
        timer = self._scheduler.call_later(self._timings.bot_prompt, lambda: self._deliver_prompt(prompt, token))
        # An immediate scheduler may already have delivered the prompt.
        if self._prompt_pending:
            self._prompt_timer = timer
        self._host.changed()
        return None

    def _deliver_prompt(self, prompt: str, token: int) -> None:
        if not self._prompt_pending:
            return
        self._prompt_pending = False
        self._prompt_timer = None
        try:
            if token == self._generation:
                self._host.append_bot(prompt)
        finally:
            self._host.end_busy()

    def _cancel_prompt(self) -> None:
        if not self._prompt_pending:
            return
        self._prompt_pending = False
        if self._prompt_timer is not None:
            self._prompt_timer.cancel()
            self._prompt_timer = None
        self._host.end_busy()

    # ------------------------------------------------------------------ product browsing
    def select_segment(self, segment: str) -> Optional[Coroutine[Any, Any, None]]:
        if self._pending_segments is None or segment not in self._pending_segments:
            self._logger.warning("flow.segment.ignored", segment=segment)
            return None
        token = self._next_generation()
        self._host.append_user(segment)
        self._pending_segments = None
        self._host.begin_busy()
        return self._load_products(segment, token)

    def select_product(self, product: chat_models.Product | str) -> Optional[Coroutine[Any, Any, None]]:
        selected = self._find_product(product)
        if selected is None:
            self._logger.warning("flow.product.ignored", product=str(product))
            return None
        token = self._next_generation()
        self._host.append_user(selected.name)
        self._host.begin_busy()
        return self._load_product_detail(selected, token)

    async def _load_segments(self, token: int) -> None:
        try:
            try:
                segments = await self._require_catalog().fetch_segments()
            except Exception as error:  # noqa: BLE001 - catalog failures degrade to a notice
                self._fail(token, "flow.segments.failed", constants.SEGMENTS_FAILED, error)
                return
            if self._is_stale(token, "segments"):
                return
            self._pending_segments = tuple(segments)
            self._logger.info("flow.segments.loaded", count=len(segments))
            self._host.changed()
        finally:
            self._host.end_busy()

    async def _load_products(self, segment: str, token: int) -> None:
        try:
            try:
                products = await self._require_catalog().fetch_products(segment)
            except Exception as error:  # noqa: BLE001
                self._fail(token, "flow.products.failed", constants.PRODUCTS_FAILED, error, segment=segment)
                return
            if self._is_stale(token, "products"):
                return
            self._pending_products = tuple(products)
            self._host.append_bot(
                constants.PRODUCTS_PROMPT.format(segment=segment),
                flags=chat_models.MessageFlags(has_products=True),
            )
            self._logger.info("flow.products.loaded", segment=segment, count=len(products))
        finally:
            self._host.end_busy()

    async def _load_product_detail(self, product: chat_models.Product, token: int) -> None:
        try:
            try:
                detail = await self._require_catalog().fetch_product_detail(product.code)
            except Exception as error:  # noqa: BLE001
                self._fail(token, "flow.product_detail.failed", constants.PRODUCT_DETAIL_FAILED, error, code=product.code)
                return
            if self._is_stale(token, "product_detail"):
                return
            self._pending_products = None
            self._host.append_bot(detail)
        finally:
            self._host.end_busy()

    # ------------------------------------------------------------------ helpers
    def _require_catalog(self) -> CatalogClient:
        if self._catalog is None:
            raise CatalogError("no product catalog configured")
        return self._catalog

    def _next_generation(self) -> int:
        self._generation += 1
        return self._generation

    def _is_stale(self, token: int, step: str) -> bool:
        if token == self._generation:
            return False
        self._logger.info("flow.result.discarded", step=step, token=token, current=self._generation)
        return True

    def _fail(self, token: int, event: str, notice: str, error: Exception, **fields: Any) -> None:
        self._logger.error(event, error=str(error), error_type=type(error).__name__, **fields)
        if self._is_stale(token, event):
            return
        self._pending_segments = None
        self._pending_products = None
        self._host.append_bot(notice, flags=_ERROR_FLAGS)

    def _find_product(self, product: chat_models.Product | str) -> Optional[chat_models.Product]:
        if not self._pending_products:
            return None
        code = product.code if isinstance(product, chat_models.Product) else product
        for candidate in self._pending_products:
            if candidate.code == code:
                return candidate
        return None

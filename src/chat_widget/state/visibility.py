"""Open/closed/minimizing state machine with the unread badge."""

from __future__ import annotations

from typing import Callable, Optional

from chat_widget.core.constants import AnimationTimings
from chat_widget.core.scheduling import Scheduler, TimerHandle
from chat_widget.models.chat import Visibility

ESCAPE_KEY = "Escape"


class VisibilityController:
    """Tracks whether the popup is shown and whether a reply went unseen.

    ``close()`` passes through ``MINIMIZING`` for the slide-out duration;
    repeated closes during that window are ignored, and an ``open()`` during
    it cancels the pending close.
    """

    def __init__(
        self,
        scheduler: Scheduler,
        timings: AnimationTimings,
        *,
        on_change: Optional[Callable[[], None]] = None,
        on_focus: Optional[Callable[[], None]] = None,
    ) -> None:
        self._scheduler = scheduler
        self._timings = timings
        self._on_change = on_change
        self._on_focus = on_focus
        self._state = Visibility.CLOSED
        self._has_new_message = False
        self._close_timer: Optional[TimerHandle] = None
        self._focus_timer: Optional[TimerHandle] = None

    @property
    def state(self) -> Visibility:
        return self._state

    @property
    def is_open(self) -> bool:
        return self._state is Visibility.OPEN

    @property
    def has_new_message(self) -> bool:
        return self._has_new_message

    def open(self) -> None:
        if self._state is Visibility.OPEN:
            return
        if self._close_timer is not None:
            self._close_timer.cancel()
            self._close_timer = None
        self._state = Visibility.OPEN
        self._has_new_message = False
        if self._focus_timer is not None:
            self._focus_timer.cancel()
        self._focus_timer = self._scheduler.call_later(self._timings.slide_in, self._request_focus)
        self._changed()

    def close(self) -> None:
        if self._state is not Visibility.OPEN:
            return
        if self._focus_timer is not None:
            self._focus_timer.cancel()
            self._focus_timer = None
        self._state = Visibility.MINIMIZING
        self._close_timer = self._scheduler.call_later(self._timings.slide_out, self._finish_close)
        self._changed()

    def toggle(self) -> None:
        if self._state is Visibility.CLOSED:
            self.open()
        else:
            self.close()

    def handle_pointer_down(self, inside_widget: bool) -> None:
        if not inside_widget and self._state is Visibility.OPEN:
            self.close()

    def handle_key(self, key: str) -> None:
        if key == ESCAPE_KEY and self._state is Visibility.OPEN:
            self.close()

    def notify_bot_message(self) -> None:
        if self._state is not Visibility.OPEN and not self._has_new_message:
            self._has_new_message = True
            self._changed()

    # ------------------------------------------------------------------ timers
    def _finish_close(self) -> None:
        self._close_timer = None
        if self._state is Visibility.MINIMIZING:
            self._state = Visibility.CLOSED
            self._changed()

    def _request_focus(self) -> None:
        self._focus_timer = None
        if self._state is Visibility.OPEN and self._on_focus is not None:
            self._on_focus()

    def _changed(self) -> None:
        if self._on_change is not None:
            self._on_change()

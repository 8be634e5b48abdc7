"""Widget factory backed by the iframe player running in the UI page.

The server cannot host the YouTube player itself, so factory and handle calls
are turned into commands queued for the page (``load_script``, ``create``,
``play``, ``pause``, ``destroy``).  The page drains the queue, applies the
commands to ``YT.Player`` and posts the player's events back, which are
dispatched to the callbacks the controller registered.
"""
from __future__ import annotations

import asyncio
from collections import deque
import itertools
import logging
from typing import Any, Deque, Dict, List

from .models import WidgetEvent, WidgetEventType
from .playback import (
    ErrorCallback,
    PlayerState,
    ReadyCallback,
    StateChangeCallback,
)


IFRAME_API_URL = "https://www.youtube.com/iframe_api"
MAX_QUEUED_COMMANDS = 256

logger = logging.getLogger(__name__)


class BrowserWidget:
    """Handle for one player constructed in the page."""

    def __init__(
        self,
        factory: "BrowserWidgetFactory",
        widget_id: int,
        *,
        on_ready: ReadyCallback,
        on_state_change: StateChangeCallback,
        on_error: ErrorCallback,
    ) -> None:
        self._factory = factory
        self.widget_id = widget_id
        self.on_ready = on_ready
        self.on_state_change = on_state_change
        self.on_error = on_error
        self.destroyed = False

    def play(self) -> None:
        self._factory.emit({"op": "play", "widget": self.widget_id})

    def pause(self) -> None:
        self._factory.emit({"op": "pause", "widget": self.widget_id})

    def destroy(self) -> None:
        if self.destroyed:
            return
        self.destroyed = True
        self._factory.forget(self.widget_id)
        self._factory.emit({"op": "destroy", "widget": self.widget_id})


class BrowserWidgetFactory:
    """Queue player commands for the page and route its events back."""

    def __init__(
        self,
        *,
        script_url: str = IFRAME_API_URL,
        max_queued: int = MAX_QUEUED_COMMANDS,
    ) -> None:
        self._script_url = script_url
        self._commands: Deque[Dict[str, Any]] = deque(maxlen=max_queued)
        self._script_ready = asyncio.Event()
        self._widgets: Dict[int, BrowserWidget] = {}
        self._ids = itertools.count(1)

    @property
    def live_widgets(self) -> List[int]:
        return sorted(self._widgets)

    async def load_script(self) -> None:
        if self._script_ready.is_set():
            return
        self.emit({"op": "load_script", "src": self._script_url})
        await self._script_ready.wait()

    def create(
        self,
        mount_id: str,
        *,
        video_id: str,
        width: int,
        height: int,
        autoplay: bool,
        on_ready: ReadyCallback,
        on_state_change: StateChangeCallback,
        on_error: ErrorCallback,
    ) -> BrowserWidget:
        widget = BrowserWidget(
            self,
            next(self._ids),
            on_ready=on_ready,
            on_state_change=on_state_change,
            on_error=on_error,
        )
        self._widgets[widget.widget_id] = widget
        self.emit(
            {
                "op": "create",
                "widget": widget.widget_id,
                "mount": mount_id,
                "videoId": video_id,
                "width": width,
                "height": height,
                "playerVars": {"autoplay": 1 if autoplay else 0},
            }
        )
        return widget

    def emit(self, command: Dict[str, Any]) -> None:
        if len(self._commands) == self._commands.maxlen:
            logger.warning("Player command queue full, dropping %s", self._commands[0])
        self._commands.append(command)

    def forget(self, widget_id: int) -> None:
        self._widgets.pop(widget_id, None)

    def drain_commands(self) -> List[Dict[str, Any]]:
        commands = list(self._commands)
        self._commands.clear()
        return commands

    def dispatch(self, event: WidgetEvent) -> bool:
        """Route a page event.  Returns False for events nobody listens to.

        Events for widgets that were already destroyed are expected: the page
        may report a state change while a ``destroy`` is still queued.
        """

        if event.type is WidgetEventType.API_READY:
            self._script_ready.set()
            return True

        widget = self._widgets.get(event.widget) if event.widget is not None else None
        if widget is None:
            logger.debug("Ignoring %s for unknown widget %s", event.type.value, event.widget)
            return False

        if event.type is WidgetEventType.READY:
            widget.on_ready()
        elif event.type is WidgetEventType.STATE_CHANGE:
            try:
                state = PlayerState(event.data)
            except ValueError:
                logger.debug("Ignoring unknown player state %s", event.data)
                return False
            widget.on_state_change(state)
        elif event.type is WidgetEventType.ERROR:
            widget.on_error(event.data if event.data is not None else -1)
        return True


__all__ = ["BrowserWidget", "BrowserWidgetFactory", "IFRAME_API_URL"]

"""Playback controller for the mini-player bar.

The controller owns exactly one embedded player widget at a time.  The widget
itself comes from a ``VideoWidgetFactory``; in production that is the browser
bridge in :mod:`musictube.widgets`, in tests a fake.  The factory's player
script is loaded once per process through a shared ``WidgetScriptLoader``.
"""
from __future__ import annotations

import asyncio
from enum import IntEnum
from functools import partial
import logging
import weakref
from typing import Callable, Optional, Protocol

from .failures import FailureKind, FailureReport, FailureReporter
from .models import PlaybackSelection, PlaybackState, PlaybackStatus


DEFAULT_MOUNT_ID = "yt-audio-player"

logger = logging.getLogger(__name__)


class PlayerState(IntEnum):
    """Player states as reported by the YouTube iframe API."""

    UNSTARTED = -1
    ENDED = 0
    PLAYING = 1
    PAUSED = 2
    BUFFERING = 3
    CUED = 5


class WidgetLoadError(RuntimeError):
    """Raised when the player script or the player widget cannot be created."""


class WidgetHandle(Protocol):
    def play(self) -> None: ...

    def pause(self) -> None: ...

    def destroy(self) -> None: ...


ReadyCallback = Callable[[], None]
StateChangeCallback = Callable[[PlayerState], None]
ErrorCallback = Callable[[int], None]


class VideoWidgetFactory(Protocol):
    """Capability to load the player script and construct player widgets."""

    async def load_script(self) -> None: ...

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
    ) -> WidgetHandle: ...


class WidgetScriptLoader:
    """Init-once guard around ``VideoWidgetFactory.load_script``.

    Every controller awaits the same future, so the script is requested at
    most once while it is loading or loaded.  A failed load is forgotten and
    the next caller starts a fresh attempt.
    """

    def __init__(self, factory: VideoWidgetFactory, *, timeout: float | None = None) -> None:
        self._factory = factory
        self._timeout = timeout
        self._future: Optional[asyncio.Future] = None

    @property
    def loaded(self) -> bool:
        future = self._future
        return (
            future is not None
            and future.done()
            and not future.cancelled()
            and future.exception() is None
        )

    async def ensure_loaded(self) -> None:
        future = self._future
        if future is None or (
            future.done() and (future.cancelled() or future.exception() is not None)
        ):
            future = asyncio.ensure_future(self._load())
            self._future = future
        await asyncio.shield(future)

    async def _load(self) -> None:
        logger.info("Loading player script")
        try:
            if self._timeout is None:
                await self._factory.load_script()
            else:
                await asyncio.wait_for(self._factory.load_script(), self._timeout)
        except asyncio.TimeoutError as exc:
            raise WidgetLoadError(
                f"Player script did not report ready within {self._timeout}s"
            ) from exc
        except WidgetLoadError:
            raise
        except Exception as exc:
            raise WidgetLoadError(f"Player script failed to load: {exc!r}") from exc


_SHARED_LOADERS: weakref.WeakKeyDictionary = weakref.WeakKeyDictionary()


def shared_script_loader(
    factory: VideoWidgetFactory, *, timeout: float | None = None
) -> WidgetScriptLoader:
    """Return the process-wide loader for ``factory``, creating it on first use.

    ``timeout`` only applies when the loader is created.
    """

    loader = _SHARED_LOADERS.get(factory)
    if loader is None:
        loader = WidgetScriptLoader(factory, timeout=timeout)
        _SHARED_LOADERS[factory] = loader
    return loader


class PlaybackController:
    """Selection, play/pause state and widget lifecycle for one player bar.

    States move ``IDLE -> LOADING -> READY`` on selection and back to ``IDLE``
    when the widget is released.  Every selection bumps a generation counter;
    callbacks and constructions belonging to an older generation are ignored.
    """

    def __init__(
        self,
        factory: VideoWidgetFactory,
        *,
        loader: WidgetScriptLoader | None = None,
        mount_id: str = DEFAULT_MOUNT_ID,
        reporter: FailureReporter | None = None,
    ) -> None:
        self._factory = factory
        self._loader = loader or shared_script_loader(factory)
        self._mount_id = mount_id
        self._reporter = reporter or FailureReporter()
        self._state = PlaybackState.IDLE
        self._selection: Optional[PlaybackSelection] = None
        self._widget: Optional[WidgetHandle] = None
        self._is_playing = False
        self._failure: Optional[FailureKind] = None
        self._generation = 0
        self._pending: Optional[asyncio.Task] = None

    @property
    def state(self) -> PlaybackState:
        return self._state

    @property
    def selection(self) -> Optional[PlaybackSelection]:
        return self._selection

    @property
    def is_playing(self) -> bool:
        return self._is_playing

    @property
    def failure(self) -> Optional[FailureKind]:
        return self._failure

    def status(self) -> PlaybackStatus:
        return PlaybackStatus(
            state=self._state,
            selection=self._selection,
            is_playing=self._is_playing,
            failure=self._failure,
        )

    async def select(self, external_id: str, title: str) -> PlaybackStatus:
        """Select an item and wait until its widget has been constructed."""

        generation = self._begin(external_id, title)
        await self._construct(generation)
        return self.status()

    def schedule_select(self, external_id: str, title: str) -> asyncio.Task:
        """Select an item and construct its widget in the background.

        The controller is in ``LOADING`` when this returns.
        """

        generation = self._begin(external_id, title)
        self._pending = asyncio.create_task(self._construct(generation))
        return self._pending

    def toggle_playback(self) -> bool:
        """Pause or resume the widget.  Returns False when nothing happened."""

        if self._state is not PlaybackState.READY or self._widget is None:
            return False
        if self._is_playing:
            self._widget.pause()
        else:
            self._widget.play()
        self._is_playing = not self._is_playing
        return True

    def skip_forward(self) -> None:
        # No queue yet; the control is decorative.
        logger.debug("skip_forward ignored")

    def skip_back(self) -> None:
        logger.debug("skip_back ignored")

    def clear(self) -> None:
        """Drop the selection and release the widget."""

        self._generation += 1
        self._release_widget()
        self._selection = None
        self._failure = None

    def dispose(self) -> None:
        self.clear()
        if self._pending is not None and not self._pending.done():
            self._pending.cancel()
        self._pending = None

    def _begin(self, external_id: str, title: str) -> int:
        self._release_widget()
        self._generation += 1
        self._selection = PlaybackSelection(external_id=external_id, title=title)
        self._state = PlaybackState.LOADING
        self._failure = None
        logger.info("Selected %s", external_id)
        return self._generation

    async def _construct(self, generation: int) -> None:
        selection = self._selection
        try:
            await self._loader.ensure_loaded()
            if generation != self._generation or selection is None:
                return
            widget = self._factory.create(
                self._mount_id,
                video_id=selection.external_id,
                width=0,
                height=0,
                autoplay=True,
                on_ready=partial(self._handle_ready, generation),
                on_state_change=partial(self._handle_state_change, generation),
                on_error=partial(self._handle_error, generation),
            )
        except WidgetLoadError as exc:
            if generation == self._generation:
                self._fail(str(exc))
            return
        except Exception as exc:
            if generation == self._generation:
                self._fail(f"Player widget could not be created: {exc!r}")
            return
        if generation != self._generation:
            # An error callback fired while the widget was being created.
            widget.destroy()
            return
        self._widget = widget

    def _release_widget(self) -> None:
        widget, self._widget = self._widget, None
        if widget is not None:
            widget.destroy()
        self._state = PlaybackState.IDLE
        self._is_playing = False

    def _handle_ready(self, generation: int) -> None:
        if generation != self._generation:
            return
        self._state = PlaybackState.READY
        self._is_playing = True

    def _handle_state_change(self, generation: int, state: PlayerState) -> None:
        if generation != self._generation:
            return
        if state == PlayerState.ENDED and self._is_playing:
            self._is_playing = False

    def _handle_error(self, generation: int, code: int) -> None:
        if generation != self._generation:
            return
        self._generation += 1
        self._release_widget()
        self._fail(f"Player reported error {code}")

    def _fail(self, detail: str) -> None:
        self._state = PlaybackState.IDLE
        self._is_playing = False
        self._failure = FailureKind.WIDGET_LOAD_FAILURE
        video_id = self._selection.external_id if self._selection else None
        self._reporter.report(
            FailureReport(kind=FailureKind.WIDGET_LOAD_FAILURE, detail=detail, video_id=video_id)
        )


__all__ = [
    "DEFAULT_MOUNT_ID",
    "PlaybackController",
    "PlayerState",
    "VideoWidgetFactory",
    "WidgetHandle",
    "WidgetLoadError",
    "WidgetScriptLoader",
    "shared_script_loader",
]

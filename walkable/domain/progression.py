"""
Walking-Mode Progression
========================

State machine that walks a user through a tour's stops.

States
------
``IDLE -> PLAYING(i) -> COUNTDOWN(i, n) -> PLAYING(i+1) -> ... -> FINISHED``
and ``CLOSED`` from anywhere.  Pause is a flag on ``PLAYING`` (the media
stays loaded), not a separate state.

Event sources
-------------
* media events (``ended`` / ``error``) from the ``MediaPlayer``,
* position fixes and errors from the ``PositionSource``,
* countdown ticks from the ``Scheduler``.  When none is given, the running
  asyncio loop is looked up the first time a countdown starts, so the
  session may be built and started outside a loop as long as media end
  events are delivered inside one,
* user commands: skip forward / back, skip now, toggle play, close.

Every event is handled synchronously on the loop thread.  Media callbacks
and countdown ticks carry the token they were issued with; a callback
whose token is stale (media released, countdown cancelled) is dropped.

Resources
---------
At most one media asset is loaded at a time.  ``_release_media`` is the
single release point and runs on every exit from a stop: advance, skip,
finish and close.  ``close`` also cancels the countdown timer and the
position subscription, and silences the listener.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Callable, Iterable, Optional, Protocol

from .distance import distance_meters, format_distance
from .entities import Coordinate, EmptyTourError, Stop, StopMedia
from .enums import (
    PlaybackStatus,
    PositionErrorCode,
    PositionStatus,
    SessionState,
)

logger = logging.getLogger(__name__)


# ── Collaborators ─────────────────────────────────────────────────────


class Subscription(Protocol):
    def cancel(self) -> None: ...


class PositionSource(Protocol):
    def watch(
        self,
        on_position: Callable[[Coordinate], None],
        on_error: Callable[[PositionErrorCode], None],
    ) -> Subscription: ...


class MediaPlayer(Protocol):
    def load(
        self,
        media: StopMedia,
        on_ended: Callable[[], None],
        on_error: Callable[[Optional[str]], None],
    ) -> None: ...

    def play(self) -> None: ...

    def pause(self) -> None: ...

    def release(self) -> None: ...


class TimerHandle(Protocol):
    def cancel(self) -> None: ...


class Scheduler(Protocol):
    """Anything with ``call_later``; ``asyncio.AbstractEventLoop`` qualifies."""

    def call_later(self, delay: float, callback: Callable[..., Any]) -> TimerHandle: ...


# ── Snapshot ──────────────────────────────────────────────────────────


@dataclass(frozen=True)
class SessionSnapshot:
    state: SessionState
    stop_index: int
    stop_count: int
    stop_id: Optional[int]
    stop_title: str
    stop_description: str
    next_stop_title: Optional[str]
    countdown: Optional[int]
    is_playing: bool
    playback: PlaybackStatus
    position_status: PositionStatus
    position_error: Optional[str]
    distance_m: Optional[float]
    distance_label: Optional[str]
    can_skip_back: bool
    can_skip_forward: bool
    can_toggle_play: bool


# ── Session ───────────────────────────────────────────────────────────


class WalkingSession:
    """One walking-mode playback of one tour."""

    def __init__(
        self,
        stops: Iterable[Stop],
        media_player: MediaPlayer,
        position_source: Optional[PositionSource] = None,
        scheduler: Optional[Scheduler] = None,
        listener: Optional[Callable[[SessionSnapshot], None]] = None,
        *,
        countdown_seconds: int = 3,
        tick_seconds: float = 1.0,
        on_stop_completed: Optional[Callable[[Stop], None]] = None,
        on_finished: Optional[Callable[[], None]] = None,
    ):
        ordered = sorted(stops, key=lambda s: s.order)
        if not ordered:
            raise EmptyTourError("A walking session needs at least one stop")

        self.stops: tuple[Stop, ...] = tuple(ordered)
        self.player = media_player
        self.position_source = position_source
        self.countdown_seconds = max(1, countdown_seconds)
        self.tick_seconds = tick_seconds

        self._scheduler = scheduler
        self._listener = listener
        self._on_stop_completed = on_stop_completed
        self._on_finished = on_finished

        self.state = SessionState.IDLE
        self.current_index = 0
        self.position: Optional[Coordinate] = None
        self.position_error: Optional[PositionErrorCode] = None
        self.countdown: Optional[int] = None
        self.playback = PlaybackStatus.NO_MEDIA

        self._subscription: Optional[Subscription] = None
        self._timer: Optional[TimerHandle] = None
        self._countdown_token = 0
        self._media_token = 0
        self._media_active = False

    # ── Derived values ────────────────────────────────────────────

    @property
    def current_stop(self) -> Stop:
        return self.stops[self.current_index]

    @property
    def is_last_stop(self) -> bool:
        return self.current_index == len(self.stops) - 1

    @property
    def is_closed(self) -> bool:
        return self.state is SessionState.CLOSED

    @property
    def has_active_media(self) -> bool:
        return self._media_active

    @property
    def position_status(self) -> PositionStatus:
        if self.position_error is not None:
            return PositionStatus.UNAVAILABLE
        if self.position is None:
            return PositionStatus.PENDING
        return PositionStatus.AVAILABLE

    @property
    def distance_to_stop(self) -> Optional[float]:
        """Metres from the last fix to the current stop, or ``None`` if unknown."""
        target = self.current_stop.coordinate
        if self.position_status is not PositionStatus.AVAILABLE or target is None:
            return None
        return distance_meters(
            self.position.latitude,
            self.position.longitude,
            target.latitude,
            target.longitude,
        )

    @property
    def distance_label(self) -> Optional[str]:
        status = self.position_status
        if status is PositionStatus.UNAVAILABLE:
            return self.position_error.message
        if status is PositionStatus.PENDING:
            return None
        meters = self.distance_to_stop
        return format_distance(meters) if meters is not None else None

    def snapshot(self) -> SessionSnapshot:
        stop = self.current_stop
        nxt = None if self.is_last_stop else self.stops[self.current_index + 1]
        live = self.state not in (SessionState.IDLE, SessionState.CLOSED)
        return SessionSnapshot(
            state=self.state,
            stop_index=self.current_index,
            stop_count=len(self.stops),
            stop_id=stop.id,
            stop_title=stop.title,
            stop_description=stop.description,
            next_stop_title=nxt.title if nxt else None,
            countdown=self.countdown,
            is_playing=self.playback is PlaybackStatus.PLAYING,
            playback=self.playback,
            position_status=self.position_status,
            position_error=(
                self.position_error.message if self.position_error else None
            ),
            distance_m=self.distance_to_stop,
            distance_label=self.distance_label,
            can_skip_back=live and self.current_index > 0,
            can_skip_forward=live and not self.is_last_stop,
            can_toggle_play=self._can_toggle(),
        )

    # ── Commands ──────────────────────────────────────────────────

    def start(self) -> None:
        """Enter the first stop and begin watching the user's position."""
        if self.state is not SessionState.IDLE:
            return
        self._enter_stop(0)
        self._watch_position()
        logger.info("Walking session started (%d stops)", len(self.stops))
        self._emit()

    def skip_forward(self) -> None:
        if not self._is_live() or self.is_last_stop:
            return
        self._enter_stop(self.current_index + 1)
        self._emit()

    def skip_back(self) -> None:
        if not self._is_live() or self.current_index == 0:
            return
        self._enter_stop(self.current_index - 1)
        self._emit()

    def skip_now(self) -> None:
        """Cut the countdown short and advance immediately."""
        if self.state is not SessionState.COUNTDOWN:
            return
        self._enter_stop(self.current_index + 1)
        self._emit()

    def toggle_play(self) -> None:
        if not self._can_toggle():
            return
        try:
            if self.playback is PlaybackStatus.PLAYING:
                self.player.pause()
                self.playback = PlaybackStatus.PAUSED
            else:
                self.player.play()
                self.playback = PlaybackStatus.PLAYING
        except Exception:
            logger.exception(
                "Play/pause failed for stop %s", self.current_stop.id
            )
            self._fail_media()
        self._emit()

    def update_position(self, coordinate: Coordinate) -> None:
        if self.is_closed:
            return
        self.position = coordinate
        self.position_error = None
        self._emit()

    def position_failed(self, code: PositionErrorCode) -> None:
        if self.is_closed:
            return
        self.position_error = code
        logger.info("Position unavailable: %s", code.value)
        self._emit()

    def close(self) -> None:
        """Tear everything down.  Safe to call more than once."""
        if self.is_closed:
            return
        self.state = SessionState.CLOSED
        self._listener = None

        self._cancel_countdown()
        self._release_media()

        subscription, self._subscription = self._subscription, None
        if subscription is not None:
            try:
                subscription.cancel()
            except Exception:
                logger.exception("Failed to cancel position subscription")
        logger.info("Walking session closed at stop %d", self.current_index + 1)

    # context-manager support
    def __enter__(self) -> WalkingSession:
        self.start()
        return self

    def __exit__(self, *args) -> None:
        self.close()

    # ── Internals: stops & media ──────────────────────────────────

    def _is_live(self) -> bool:
        return self.state not in (SessionState.IDLE, SessionState.CLOSED)

    def _can_toggle(self) -> bool:
        return (
            self.state is SessionState.PLAYING
            and self._media_active
            and self.playback in (PlaybackStatus.PLAYING, PlaybackStatus.PAUSED)
        )

    def _enter_stop(self, index: int) -> None:
        self._cancel_countdown()
        self._release_media()
        self.current_index = index
        self.state = SessionState.PLAYING
        self._activate_media(self.current_stop.media)

    def _activate_media(self, media: StopMedia) -> None:
        if not media.is_playable:
            self.playback = PlaybackStatus.NO_MEDIA
            return

        self._media_token += 1
        token = self._media_token
        self._media_active = True
        self.playback = PlaybackStatus.PLAYING
        try:
            self.player.load(
                media,
                on_ended=lambda: self._on_media_ended(token),
                on_error=lambda reason=None: self._on_media_error(token, reason),
            )
            # load() may already have reported an error
            if token == self._media_token:
                self.player.play()
        except Exception:
            logger.exception(
                "Could not start %s for stop %s", media.kind.value, self.current_stop.id
            )
            self._fail_media()

    def _release_media(self) -> None:
        if not self._media_active:
            return
        self._media_active = False
        self._media_token += 1  # invalidate callbacks of the released asset
        try:
            self.player.release()
        except Exception:
            logger.exception("Failed to release media")

    def _fail_media(self) -> None:
        self._release_media()
        self.playback = PlaybackStatus.FAILED

    def _on_media_ended(self, token: int) -> None:
        if token != self._media_token or self.state is not SessionState.PLAYING:
            return
        self.playback = PlaybackStatus.ENDED
        self._notify(self._on_stop_completed, self.current_stop)
        if self.is_closed:
            return

        if self.is_last_stop:
            self._release_media()
            self.state = SessionState.FINISHED
            logger.info("Walking session finished")
            self._notify(self._on_finished)
        else:
            self._start_countdown()
        self._emit()

    def _on_media_error(self, token: int, reason: Optional[str]) -> None:
        if token != self._media_token or self.state is not SessionState.PLAYING:
            return
        logger.warning(
            "Media for stop %s failed: %s", self.current_stop.id, reason or "unknown"
        )
        self._fail_media()
        self._emit()

    # ── Internals: countdown ──────────────────────────────────────

    def _start_countdown(self) -> None:
        self.state = SessionState.COUNTDOWN
        self.countdown = self.countdown_seconds
        self._schedule_tick()

    def _schedule_tick(self) -> None:
        if self._scheduler is None:
            # without an explicit scheduler the countdown needs a running loop
            self._scheduler = asyncio.get_running_loop()
        token = self._countdown_token
        self._timer = self._scheduler.call_later(
            self.tick_seconds, lambda: self._tick(token)
        )

    def _cancel_countdown(self) -> None:
        self._countdown_token += 1
        self.countdown = None
        timer, self._timer = self._timer, None
        if timer is not None:
            timer.cancel()

    def _tick(self, token: int) -> None:
        if token != self._countdown_token or self.state is not SessionState.COUNTDOWN:
            return
        if self.countdown > 1:
            self.countdown -= 1
            self._schedule_tick()
        else:
            self._enter_stop(self.current_index + 1)
        self._emit()

    # ── Internals: position & notifications ───────────────────────

    def _watch_position(self) -> None:
        if self.position_source is None:
            self.position_error = PositionErrorCode.UNSUPPORTED
            return
        try:
            self._subscription = self.position_source.watch(
                self.update_position, self.position_failed
            )
        except Exception:
            logger.exception("Could not subscribe to position updates")
            self.position_error = PositionErrorCode.UNSUPPORTED

    def _notify(self, callback: Optional[Callable[..., None]], *args) -> None:
        if callback is None:
            return
        try:
            callback(*args)
        except Exception:
            logger.exception("Session hook %r failed", callback)

    def _emit(self) -> None:
        if self._listener is None:
            return
        try:
            self._listener(self.snapshot())
        except Exception:
            logger.exception("Session listener failed")

"""
Remote collaborators for a server-side walking session.

The browser owns the real media element and geolocation watch.  These
adapters implement the session's ``MediaPlayer`` / ``PositionSource``
protocols by emitting command messages for the client, and route the
client's event messages back into the callbacks the session registered.
"""

from __future__ import annotations

import logging
from typing import Callable, Optional

from pydantic import BaseModel

from walkable.api.schemas import MediaCommandMessage, PositionCommandMessage
from walkable.domain.entities import Coordinate, StopMedia
from walkable.domain.enums import PositionErrorCode

logger = logging.getLogger(__name__)

Send = Callable[[BaseModel], None]


class RemoteMediaPlayer:
    """Mirrors one media element on the client, addressed by load token."""

    def __init__(self, send: Send):
        self._send = send
        self._token = 0
        self._on_ended: Optional[Callable[[], None]] = None
        self._on_error: Optional[Callable[[Optional[str]], None]] = None

    @property
    def token(self) -> int:
        return self._token

    def load(
        self,
        media: StopMedia,
        on_ended: Callable[[], None],
        on_error: Callable[[Optional[str]], None],
    ) -> None:
        self._token += 1
        self._on_ended, self._on_error = on_ended, on_error
        self._send(
            MediaCommandMessage(
                command="load", token=self._token, kind=media.kind, url=media.url
            )
        )

    def play(self) -> None:
        self._send(MediaCommandMessage(command="play", token=self._token))

    def pause(self) -> None:
        self._send(MediaCommandMessage(command="pause", token=self._token))

    def release(self) -> None:
        self._on_ended = self._on_error = None
        self._send(MediaCommandMessage(command="release", token=self._token))

    # ── Client events ─────────────────────────────────────────────

    def ended(self, token: int) -> None:
        if token != self._token or self._on_ended is None:
            logger.debug("Ignoring stale media_ended (token=%d)", token)
            return
        self._on_ended()

    def failed(self, token: int, reason: Optional[str] = None) -> None:
        if token != self._token or self._on_error is None:
            logger.debug("Ignoring stale media_error (token=%d)", token)
            return
        self._on_error(reason)


class _RemoteSubscription:
    def __init__(self, source: RemotePositionSource):
        self._source = source

    def cancel(self) -> None:
        self._source._stop()


class RemotePositionSource:
    """Position stream reported by the client's geolocation watch."""

    def __init__(self, send: Send):
        self._send = send
        self._on_position: Optional[Callable[[Coordinate], None]] = None
        self._on_error: Optional[Callable[[PositionErrorCode], None]] = None

    @property
    def watching(self) -> bool:
        return self._on_position is not None

    def watch(self, on_position, on_error) -> _RemoteSubscription:
        self._on_position, self._on_error = on_position, on_error
        self._send(PositionCommandMessage(command="start"))
        return _RemoteSubscription(self)

    def _stop(self) -> None:
        if not self.watching:
            return
        self._on_position = self._on_error = None
        self._send(PositionCommandMessage(command="stop"))

    # ── Client events ─────────────────────────────────────────────

    def deliver_position(self, coordinate: Coordinate) -> None:
        if self._on_position is not None:
            self._on_position(coordinate)

    def deliver_error(self, code: PositionErrorCode) -> None:
        if self._on_error is not None:
            self._on_error(code)

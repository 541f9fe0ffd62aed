"""
Walking-mode WebSocket
======================

WS /api/v1/tours/{tour_id}/walk?user_id=<id>

Runs a ``WalkingSession`` for the tour on the server.  The client plays
media and reports positions; the server owns the progression state.

Server -> client
----------------
* ``{"type": "state", ...}``                -- snapshot after every transition
* ``{"type": "media", "command": ...}``      -- load / play / pause / release
* ``{"type": "position", "command": ...}``   -- start / stop the geolocation watch
* ``{"type": "error", "detail": ...}``       -- message rejected

Client -> server
----------------
``position``, ``position_error``, ``media_ended``, ``media_error``,
``skip_forward``, ``skip_back``, ``skip_now``, ``toggle_play``, ``close``.

Lifecycle
---------
Outgoing messages go through a queue drained by a sender task, so the
session's synchronous callbacks never await.  Disconnect and ``close``
both end in ``WalkingSession.close``.  When ``user_id`` is given, stops
whose media ends naturally are recorded as progress.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Optional

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect
from pydantic import BaseModel, ValidationError

from walkable.api.dependencies import get_session_factory
from walkable.api.remote import RemoteMediaPlayer, RemotePositionSource
from walkable.api.schemas import (
    CommandMessage,
    ErrorMessage,
    MediaEndedMessage,
    MediaErrorMessage,
    PositionErrorMessage,
    PositionMessage,
    SessionStateMessage,
    client_message_adapter,
)
from walkable.config import settings
from walkable.domain.entities import Coordinate, Stop
from walkable.domain.progression import SessionSnapshot, WalkingSession
from walkable.infrastructure.repositories import (
    ProgressRepository,
    TourRepository,
    stop_from_model,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/tours", tags=["walking"])

WS_TOUR_NOT_FOUND = 4404


class ProgressRecorder:
    """Persists stop / tour completion from session hooks without blocking them."""

    def __init__(self, session_factory, user_id: int, tour_id: int):
        self.session_factory = session_factory
        self.user_id = user_id
        self.tour_id = tour_id
        self._pending: set[asyncio.Task] = set()

    def stop_completed(self, stop: Stop) -> None:
        self._spawn(self._record_stop(stop.id))

    def tour_finished(self) -> None:
        self._spawn(self._record_tour())

    async def drain(self) -> None:
        if self._pending:
            await asyncio.gather(*self._pending, return_exceptions=True)

    def _spawn(self, coro) -> None:
        task = asyncio.create_task(coro)
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _record_stop(self, stop_id: int) -> None:
        try:
            async with self.session_factory() as db:
                await ProgressRepository(db).mark_stop_completed(
                    self.user_id, self.tour_id, stop_id
                )
                await db.commit()
        except Exception:
            logger.exception("Failed to record progress for stop %s", stop_id)

    async def _record_tour(self) -> None:
        try:
            async with self.session_factory() as db:
                await ProgressRepository(db).mark_tour_completed(
                    self.user_id, self.tour_id
                )
                await db.commit()
        except Exception:
            logger.exception("Failed to record completion of tour %s", self.tour_id)


async def _load_stops(session_factory, tour_id: int) -> list[Stop]:
    async with session_factory() as db:
        repo = TourRepository(db)
        if not await repo.get_by_id(tour_id):
            return []
        return [stop_from_model(row) for row in await repo.get_stops(tour_id)]


async def _pump(websocket: WebSocket, outbox: asyncio.Queue) -> None:
    """Send queued messages until the ``None`` sentinel."""
    while True:
        message: Optional[BaseModel] = await outbox.get()
        if message is None:
            return
        await websocket.send_json(message.model_dump(mode="json"))


def _dispatch(
    message,
    session: WalkingSession,
    player: RemoteMediaPlayer,
    positions: RemotePositionSource,
) -> None:
    if isinstance(message, PositionMessage):
        positions.deliver_position(Coordinate(message.latitude, message.longitude))
    elif isinstance(message, PositionErrorMessage):
        positions.deliver_error(message.code)
    elif isinstance(message, MediaEndedMessage):
        player.ended(message.token)
    elif isinstance(message, MediaErrorMessage):
        player.failed(message.token, message.reason)
    elif isinstance(message, CommandMessage):
        commands = {
            "skip_forward": session.skip_forward,
            "skip_back": session.skip_back,
            "skip_now": session.skip_now,
            "toggle_play": session.toggle_play,
            "close": session.close,
        }
        commands[message.type]()


@router.websocket("/{tour_id}/walk")
async def walk_tour(
    websocket: WebSocket,
    tour_id: int,
    user_id: Optional[int] = None,
    session_factory=Depends(get_session_factory),
):
    await websocket.accept()

    stops = await _load_stops(session_factory, tour_id)
    if not stops:
        await websocket.send_json(
            ErrorMessage(detail="Tour not found or has no stops").model_dump()
        )
        await websocket.close(code=WS_TOUR_NOT_FOUND)
        return

    outbox: asyncio.Queue = asyncio.Queue()

    def send(message: BaseModel) -> None:
        outbox.put_nowait(message)

    def publish(snapshot: SessionSnapshot) -> None:
        send(SessionStateMessage.model_validate(snapshot))

    recorder = (
        ProgressRecorder(session_factory, user_id, tour_id) if user_id else None
    )
    player = RemoteMediaPlayer(send)
    positions = RemotePositionSource(send)
    session = WalkingSession(
        stops,
        player,
        positions,
        scheduler=asyncio.get_running_loop(),
        listener=publish,
        countdown_seconds=settings.countdown_seconds,
        tick_seconds=settings.countdown_tick_seconds,
        on_stop_completed=recorder.stop_completed if recorder else None,
        on_finished=recorder.tour_finished if recorder else None,
    )

    sender = asyncio.create_task(_pump(websocket, outbox))
    disconnected = False
    session.start()
    try:
        while not session.is_closed:
            frame = await websocket.receive()
            if frame["type"] == "websocket.disconnect":
                raise WebSocketDisconnect(frame.get("code", 1000))
            raw = frame.get("text")
            if raw is None:
                send(ErrorMessage(detail="Invalid message: expected a text frame"))
                continue
            try:
                message = client_message_adapter.validate_json(raw)
            except ValidationError as exc:
                send(ErrorMessage(detail=f"Invalid message: {exc.error_count()} error(s)"))
                continue
            _dispatch(message, session, player, positions)
    except WebSocketDisconnect:
        disconnected = True
        logger.info("Walking client for tour %s disconnected", tour_id)
    finally:
        session.close()
        outbox.put_nowait(None)
        try:
            await sender
        except Exception:
            logger.debug("Sender for tour %s stopped early", tour_id, exc_info=True)
            disconnected = True
        if recorder:
            await recorder.drain()

    if not disconnected:
        await websocket.close()

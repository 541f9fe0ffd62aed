"""Pydantic request / response schemas for the REST and WebSocket APIs."""

from __future__ import annotations

from datetime import datetime
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, Field, TypeAdapter, field_validator, model_validator

from walkable.domain.entities import Coordinate
from walkable.domain.enums import (
    MediaKind,
    PlaybackStatus,
    PositionErrorCode,
    PositionStatus,
    SessionState,
)


# ── Requests ──────────────────────────────────────────────────────────


class StopCreateRequest(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    description: str = ""
    latitude: str
    longitude: str
    media_type: Literal["audio", "video"] = "audio"
    audio_file_url: Optional[str] = None
    video_file_url: Optional[str] = None
    order: int = Field(..., ge=1)


class TourCreateRequest(BaseModel):
    creator_id: int
    title: str = Field(..., min_length=1, max_length=200)
    description: str
    category: str = Field(..., min_length=1, max_length=80)
    latitude: str
    longitude: str
    duration: Optional[int] = Field(None, ge=0, description="Minutes")
    distance: Optional[str] = None
    cover_image_url: Optional[str] = None
    stops: list[StopCreateRequest] = []

    @model_validator(mode="after")
    def _check_coordinates(self) -> TourCreateRequest:
        points = [(self.latitude, self.longitude)] + [
            (s.latitude, s.longitude) for s in self.stops
        ]
        for lat, lon in points:
            if Coordinate.parse(lat, lon) is None:
                raise ValueError(f"Invalid coordinates: {lat!r}, {lon!r}")
        return self

    @field_validator("stops")
    @classmethod
    def _unique_order(cls, stops: list[StopCreateRequest]) -> list[StopCreateRequest]:
        orders = [s.order for s in stops]
        if len(orders) != len(set(orders)):
            raise ValueError("Stop order values must be unique within a tour")
        return stops


class ProgressRequest(BaseModel):
    user_id: int
    stop_id: int


# ── Responses ─────────────────────────────────────────────────────────


class TourResponse(BaseModel):
    id: int
    title: str
    description: str
    category: str
    latitude: str
    longitude: str
    duration: Optional[int] = None
    distance: Optional[str] = None
    cover_image_url: Optional[str] = None
    creator_id: int
    created_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class StopResponse(BaseModel):
    id: int
    tour_id: int
    title: str
    description: str
    latitude: str
    longitude: str
    media_type: str
    audio_file_url: Optional[str] = None
    video_file_url: Optional[str] = None
    order: int

    model_config = {"from_attributes": True}


class TourDetailsResponse(TourResponse):
    stops: list[StopResponse] = []


class ProgressEntry(BaseModel):
    stop_id: int
    completed_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class ProgressResponse(BaseModel):
    tour_id: int
    user_id: int
    progress: list[ProgressEntry] = []
    is_completed: bool = False


class HealthResponse(BaseModel):
    status: str = "ok"


class ErrorResponse(BaseModel):
    detail: str


# ── Walking WebSocket: client -> server ───────────────────────────────


class PositionMessage(BaseModel):
    type: Literal["position"]
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)


class PositionErrorMessage(BaseModel):
    type: Literal["position_error"]
    code: PositionErrorCode = PositionErrorCode.UNAVAILABLE


class MediaEndedMessage(BaseModel):
    type: Literal["media_ended"]
    token: int


class MediaErrorMessage(BaseModel):
    type: Literal["media_error"]
    token: int
    reason: Optional[str] = None


class CommandMessage(BaseModel):
    type: Literal["skip_forward", "skip_back", "skip_now", "toggle_play", "close"]


ClientMessage = Annotated[
    Union[
        PositionMessage,
        PositionErrorMessage,
        MediaEndedMessage,
        MediaErrorMessage,
        CommandMessage,
    ],
    Field(discriminator="type"),
]

client_message_adapter: TypeAdapter[ClientMessage] = TypeAdapter(ClientMessage)


# ── Walking WebSocket: server -> client ───────────────────────────────


class SessionStateMessage(BaseModel):
    type: Literal["state"] = "state"
    state: SessionState
    stop_index: int
    stop_count: int
    stop_id: Optional[int] = None
    stop_title: str
    stop_description: str
    next_stop_title: Optional[str] = None
    countdown: Optional[int] = None
    is_playing: bool
    playback: PlaybackStatus
    position_status: PositionStatus
    position_error: Optional[str] = None
    distance_m: Optional[float] = None
    distance_label: Optional[str] = None
    can_skip_back: bool
    can_skip_forward: bool
    can_toggle_play: bool

    model_config = {"from_attributes": True}


class MediaCommandMessage(BaseModel):
    type: Literal["media"] = "media"
    command: Literal["load", "play", "pause", "release"]
    token: Optional[int] = None
    kind: Optional[MediaKind] = None
    url: Optional[str] = None


class PositionCommandMessage(BaseModel):
    type: Literal["position"] = "position"
    command: Literal["start", "stop"]


class ErrorMessage(BaseModel):
    type: Literal["error"] = "error"
    detail: str

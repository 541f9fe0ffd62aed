"""Domain enumerations for tours and walking sessions."""

import enum


class MediaKind(str, enum.Enum):
    AUDIO = "audio"
    VIDEO = "video"
    NONE = "none"


class SessionState(str, enum.Enum):
    IDLE = "IDLE"
    PLAYING = "PLAYING"
    COUNTDOWN = "COUNTDOWN"
    FINISHED = "FINISHED"
    CLOSED = "CLOSED"


class PlaybackStatus(str, enum.Enum):
    NO_MEDIA = "NO_MEDIA"
    PLAYING = "PLAYING"
    PAUSED = "PAUSED"
    ENDED = "ENDED"
    FAILED = "FAILED"


class PositionStatus(str, enum.Enum):
    PENDING = "PENDING"  # no fix yet
    AVAILABLE = "AVAILABLE"
    UNAVAILABLE = "UNAVAILABLE"


class PositionErrorCode(str, enum.Enum):
    PERMISSION_DENIED = "permission_denied"
    UNAVAILABLE = "unavailable"
    TIMEOUT = "timeout"
    UNSUPPORTED = "unsupported"

    @property
    def message(self) -> str:
        return POSITION_ERROR_MESSAGES[self]


POSITION_ERROR_MESSAGES: dict[PositionErrorCode, str] = {
    PositionErrorCode.PERMISSION_DENIED: "Location access denied.",
    PositionErrorCode.UNAVAILABLE: "Unable to get location.",
    PositionErrorCode.TIMEOUT: "Location request timed out.",
    PositionErrorCode.UNSUPPORTED: "Location tracking is not supported on this device.",
}

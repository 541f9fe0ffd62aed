"""
Domain entities for tours and walking sessions.

Patterns used
-------------
- **Value Object** ``Coordinate``: immutable, range-checked on parse.  Tour
  and stop coordinates are stored as text upstream, so parsing is the only
  way in and it never raises.
- **Tagged variant** ``StopMedia``: audio / video / none, so callers never
  branch on raw media-type strings.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any, Optional

from .enums import MediaKind


class EmptyTourError(ValueError):
    """Raised when a walking session is created for a tour without stops."""


# ── Value Objects ─────────────────────────────────────────────────────


def _to_degrees(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value.strip() if isinstance(value, str) else value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(number):
        return None
    return number


@dataclass(frozen=True)
class Coordinate:
    latitude: float
    longitude: float

    @classmethod
    def parse(cls, latitude: Any, longitude: Any) -> Optional[Coordinate]:
        """Build a coordinate from text or numbers; ``None`` if either is unusable."""
        lat = _to_degrees(latitude)
        lon = _to_degrees(longitude)
        if lat is None or lon is None:
            return None
        if not (-90.0 <= lat <= 90.0 and -180.0 <= lon <= 180.0):
            return None
        return cls(lat, lon)


@dataclass(frozen=True)
class StopMedia:
    kind: MediaKind = MediaKind.NONE
    url: Optional[str] = None

    @classmethod
    def audio(cls, url: str) -> StopMedia:
        return cls(MediaKind.AUDIO, url)

    @classmethod
    def video(cls, url: str) -> StopMedia:
        return cls(MediaKind.VIDEO, url)

    @classmethod
    def none(cls) -> StopMedia:
        return cls()

    @classmethod
    def from_fields(
        cls,
        media_type: Optional[str],
        audio_url: Optional[str] = None,
        video_url: Optional[str] = None,
    ) -> StopMedia:
        """
        Resolve the stored ``media_type`` tag and URL columns into a variant.

        Unknown tags default to audio (the authoring default).  A kind whose
        URL is blank resolves to no media.
        """
        if (media_type or "").lower() == MediaKind.VIDEO.value:
            return cls.video(video_url) if video_url else cls.none()
        return cls.audio(audio_url) if audio_url else cls.none()

    @property
    def is_playable(self) -> bool:
        return self.kind is not MediaKind.NONE and bool(self.url)


# ── Entities ──────────────────────────────────────────────────────────


@dataclass
class Stop:
    id: Optional[int] = None
    title: str = ""
    description: str = ""
    coordinate: Optional[Coordinate] = None
    order: int = 1
    media: StopMedia = field(default_factory=StopMedia.none)


@dataclass
class Tour:
    id: Optional[int] = None
    title: str = ""
    description: str = ""
    category: str = ""
    latitude: str = ""
    longitude: str = ""
    creator_id: int = 0

    @property
    def coordinate(self) -> Optional[Coordinate]:
        return Coordinate.parse(self.latitude, self.longitude)

"""
SQLAlchemy ORM models.

Tables
------
* ``users``           -- registered walkers / creators
* ``tours``           -- tours with a starting point
* ``tour_stops``      -- ordered stops of a tour, each with optional media
* ``tour_progress``   -- stops a user has completed
* ``completed_tours`` -- tours a user has finished

Coordinates are stored as text, the way tours are authored; they are parsed
(and may fail to parse) at read time.

Indexes
-------
* **B-Tree** on ``tours.h3_cell`` for the proximity pre-filter.  Rows
  without a cell, or with a cell at another resolution, are always loaded
  as candidates.
* **Unique** ``(tour_id, order)`` on stops and ``(user_id, stop_id)`` on progress.
"""

from sqlalchemy import (
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
)

from .database import Base


class UserModel(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    username = Column(String(80), unique=True, nullable=False)
    email = Column(String(255), unique=True, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class TourModel(Base):
    __tablename__ = "tours"

    id = Column(Integer, primary_key=True, autoincrement=True)
    title = Column(Text, nullable=False)
    description = Column(Text, nullable=False)
    category = Column(String(80), nullable=False)
    latitude = Column(Text, nullable=False)
    longitude = Column(Text, nullable=False)
    h3_cell = Column(String(20), nullable=True)  # NULL when coordinates don't parse
    h3_resolution = Column(Integer, nullable=True)  # resolution h3_cell was computed at
    duration = Column(Integer, nullable=True)  # minutes
    distance = Column(Text, nullable=True)  # e.g. "2.3 miles"
    cover_image_url = Column(Text, nullable=True)
    creator_id = Column(Integer, ForeignKey("users.id"), nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    __table_args__ = (
        Index("idx_tours_h3_cell", "h3_cell"),
        Index("idx_tours_creator", "creator_id"),
    )


class TourStopModel(Base):
    __tablename__ = "tour_stops"

    id = Column(Integer, primary_key=True, autoincrement=True)
    tour_id = Column(
        Integer, ForeignKey("tours.id", ondelete="CASCADE"), nullable=False
    )
    title = Column(Text, nullable=False)
    description = Column(Text, nullable=False, default="")
    latitude = Column(Text, nullable=False)
    longitude = Column(Text, nullable=False)
    media_type = Column(String(10), nullable=False, default="audio")
    audio_file_url = Column(Text, nullable=True)
    video_file_url = Column(Text, nullable=True)
    order = Column(Integer, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        UniqueConstraint("tour_id", "order", name="uq_tour_stops_order"),
        Index("idx_tour_stops_tour", "tour_id"),
    )


class TourProgressModel(Base):
    __tablename__ = "tour_progress"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    tour_id = Column(
        Integer, ForeignKey("tours.id", ondelete="CASCADE"), nullable=False
    )
    stop_id = Column(
        Integer, ForeignKey("tour_stops.id", ondelete="CASCADE"), nullable=False
    )
    completed_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        UniqueConstraint("user_id", "stop_id", name="uq_tour_progress_stop"),
        Index("idx_tour_progress_user_tour", "user_id", "tour_id"),
    )


class CompletedTourModel(Base):
    __tablename__ = "completed_tours"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    tour_id = Column(Integer, ForeignKey("tours.id"), nullable=False)
    completed_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        UniqueConstraint("user_id", "tour_id", name="uq_completed_tours"),
    )

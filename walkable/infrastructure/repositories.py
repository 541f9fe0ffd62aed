"""
Repository Pattern -- abstracts DB access so domain logic stays DB-agnostic.

Each repository receives an ``AsyncSession`` (unit-of-work) and exposes
domain-relevant queries only.
"""

from __future__ import annotations

import logging
from typing import Any, Optional, Sequence

from sqlalchemy import and_, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from .models import (
    CompletedTourModel,
    TourModel,
    TourProgressModel,
    TourStopModel,
    UserModel,
)
from walkable.config import settings
from walkable.domain.entities import Coordinate, Stop, StopMedia
from walkable.domain.proximity import covering_cells, tour_h3_cell

logger = logging.getLogger(__name__)


def stop_from_model(row: TourStopModel) -> Stop:
    """Convert a stored stop into the domain ``Stop`` used by walking mode."""
    return Stop(
        id=row.id,
        title=row.title,
        description=row.description or "",
        coordinate=Coordinate.parse(row.latitude, row.longitude),
        order=row.order,
        media=StopMedia.from_fields(
            row.media_type, row.audio_file_url, row.video_file_url
        ),
    )


class TourRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create_tour_with_stops(
        self,
        *,
        creator_id: int,
        title: str,
        description: str,
        category: str,
        latitude: str,
        longitude: str,
        stops: Sequence[dict[str, Any]] = (),
        **extra: Any,
    ) -> TourModel:
        """Insert a tour and its stops; the H3 cell is derived from the start point."""
        cell = tour_h3_cell(
            Coordinate.parse(latitude, longitude), settings.h3_resolution
        )
        tour = TourModel(
            creator_id=creator_id,
            title=title,
            description=description,
            category=category,
            latitude=latitude,
            longitude=longitude,
            h3_cell=cell,
            h3_resolution=settings.h3_resolution if cell else None,
            **extra,
        )
        self.session.add(tour)
        await self.session.flush()

        for stop in stops:
            self.session.add(TourStopModel(tour_id=tour.id, **stop))
        await self.session.flush()
        await self.session.refresh(tour)
        return tour

    async def get_by_id(self, tour_id: int) -> Optional[TourModel]:
        return await self.session.get(TourModel, tour_id)

    async def get_all(self) -> list[TourModel]:
        result = await self.session.execute(select(TourModel).order_by(TourModel.id))
        return list(result.scalars().all())

    async def get_nearby_candidates(
        self, center: Coordinate, radius_km: float
    ) -> list[TourModel]:
        """
        Load tours that may lie within the radius.

        Narrowed by H3 cell when the covering disk is small enough, otherwise
        every tour is returned.  Tours without a cell, or whose cell was
        computed at a different resolution than the current setting, cannot
        be ruled out by the disk and are always included.  Callers still
        apply the Haversine filter.
        """
        cells = None
        if settings.h3_prefilter_enabled:
            cells = covering_cells(
                center, radius_km, settings.h3_resolution, settings.h3_max_ring
            )

        query = select(TourModel).order_by(TourModel.id)
        if cells is not None:
            if not cells:
                return []
            resolution = settings.h3_resolution
            query = query.where(
                or_(
                    and_(
                        TourModel.h3_resolution == resolution,
                        TourModel.h3_cell.in_(cells),
                    ),
                    TourModel.h3_cell.is_(None),
                    TourModel.h3_resolution.is_distinct_from(resolution),
                )
            )
        else:
            logger.debug("Radius %.1f km too wide for H3 pre-filter; full scan", radius_km)

        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def get_stops(self, tour_id: int) -> list[TourStopModel]:
        result = await self.session.execute(
            select(TourStopModel)
            .where(TourStopModel.tour_id == tour_id)
            .order_by(TourStopModel.order, TourStopModel.id)
        )
        return list(result.scalars().all())

    async def get_stop(self, tour_id: int, stop_id: int) -> Optional[TourStopModel]:
        result = await self.session.execute(
            select(TourStopModel).where(
                TourStopModel.tour_id == tour_id, TourStopModel.id == stop_id
            )
        )
        return result.scalar_one_or_none()


class ProgressRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def mark_stop_completed(
        self, user_id: int, tour_id: int, stop_id: int
    ) -> TourProgressModel:
        """Idempotent: completing the same stop twice keeps the first record."""
        result = await self.session.execute(
            select(TourProgressModel).where(
                TourProgressModel.user_id == user_id,
                TourProgressModel.stop_id == stop_id,
            )
        )
        existing = result.scalar_one_or_none()
        if existing:
            return existing

        progress = TourProgressModel(user_id=user_id, tour_id=tour_id, stop_id=stop_id)
        self.session.add(progress)
        await self.session.flush()
        await self.session.refresh(progress)
        return progress

    async def get_progress(self, user_id: int, tour_id: int) -> list[TourProgressModel]:
        result = await self.session.execute(
            select(TourProgressModel)
            .where(
                TourProgressModel.user_id == user_id,
                TourProgressModel.tour_id == tour_id,
            )
            .order_by(TourProgressModel.id)
        )
        return list(result.scalars().all())

    async def is_tour_completed(self, user_id: int, tour_id: int) -> bool:
        """True once every stop of the tour has a progress record."""
        total = await self.session.execute(
            select(func.count())
            .select_from(TourStopModel)
            .where(TourStopModel.tour_id == tour_id)
        )
        done = await self.session.execute(
            select(func.count())
            .select_from(TourProgressModel)
            .where(
                TourProgressModel.user_id == user_id,
                TourProgressModel.tour_id == tour_id,
            )
        )
        n_total = total.scalar() or 0
        return n_total > 0 and (done.scalar() or 0) >= n_total

    async def mark_tour_completed(
        self, user_id: int, tour_id: int
    ) -> CompletedTourModel:
        result = await self.session.execute(
            select(CompletedTourModel).where(
                CompletedTourModel.user_id == user_id,
                CompletedTourModel.tour_id == tour_id,
            )
        )
        existing = result.scalar_one_or_none()
        if existing:
            return existing

        completed = CompletedTourModel(user_id=user_id, tour_id=tour_id)
        self.session.add(completed)
        await self.session.flush()
        await self.session.refresh(completed)
        return completed


class UserRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_id(self, user_id: int) -> Optional[UserModel]:
        return await self.session.get(UserModel, user_id)

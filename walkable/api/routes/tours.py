"""
Tour endpoints
==============

GET  /api/v1/tours                 -- list all tours
GET  /api/v1/tours/nearby          -- tours within a radius of a point
POST /api/v1/tours                 -- create a tour with its stops
GET  /api/v1/tours/{tour_id}          -- tour by id
GET  /api/v1/tours/{tour_id}/details  -- tour with stops ordered for walking
GET  /api/v1/tours/{tour_id}/progress -- stops a user has completed
POST /api/v1/tours/{tour_id}/progress -- mark a stop completed
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from walkable.api.dependencies import get_db
from walkable.api.middleware import limiter
from walkable.api.schemas import (
    ProgressEntry,
    ProgressRequest,
    ProgressResponse,
    StopResponse,
    TourCreateRequest,
    TourDetailsResponse,
    TourResponse,
)
from walkable.config import settings
from walkable.domain.entities import Coordinate
from walkable.domain.proximity import nearby_tours
from walkable.infrastructure.repositories import (
    ProgressRepository,
    TourRepository,
    UserRepository,
)

router = APIRouter(prefix="/tours", tags=["tours"])


@router.get("", response_model=list[TourResponse], summary="List all tours")
@limiter.limit(settings.rate_limit)
async def list_tours(request: Request, db: AsyncSession = Depends(get_db)):
    return await TourRepository(db).get_all()


@router.get(
    "/nearby",
    response_model=list[TourResponse],
    summary="Tours within a radius of a point",
    description=(
        "Haversine radius search around (lat, lon).  The boundary is inclusive "
        "and results keep storage order.  A radius of 0 or less returns an "
        "empty list.  Tours whose stored coordinates are malformed or out of "
        "range (latitude outside -90..90, longitude outside -180..180) are "
        "skipped and logged."
    ),
)
@limiter.limit(settings.rate_limit)
async def get_nearby_tours(
    request: Request,
    lat: float = Query(..., ge=-90, le=90),
    lon: float = Query(..., ge=-180, le=180),
    radius: Optional[float] = Query(None, description="Kilometres"),
    db: AsyncSession = Depends(get_db),
):
    radius_km = settings.default_radius_km if radius is None else radius
    center = Coordinate(lat, lon)
    candidates = await TourRepository(db).get_nearby_candidates(center, radius_km)
    return nearby_tours(candidates, center, radius_km)


@router.post(
    "",
    status_code=201,
    response_model=TourDetailsResponse,
    summary="Create a tour with stops",
)
@limiter.limit(settings.rate_limit)
async def create_tour(
    request: Request,
    body: TourCreateRequest,
    db: AsyncSession = Depends(get_db),
):
    if not await UserRepository(db).get_by_id(body.creator_id):
        raise HTTPException(status_code=404, detail="Creator not found")

    repo = TourRepository(db)
    tour = await repo.create_tour_with_stops(
        **body.model_dump(exclude={"stops"}),
        stops=[s.model_dump() for s in body.stops],
    )
    stops = await repo.get_stops(tour.id)
    return _details(tour, stops)


@router.get("/{tour_id}", response_model=TourResponse, summary="Get a tour")
@limiter.limit(settings.rate_limit)
async def get_tour(
    request: Request,
    tour_id: int,
    db: AsyncSession = Depends(get_db),
):
    tour = await TourRepository(db).get_by_id(tour_id)
    if not tour:
        raise HTTPException(status_code=404, detail="Tour not found")
    return tour


@router.get(
    "/{tour_id}/details",
    response_model=TourDetailsResponse,
    summary="Get a tour with its stops",
)
@limiter.limit(settings.rate_limit)
async def get_tour_details(
    request: Request,
    tour_id: int,
    db: AsyncSession = Depends(get_db),
):
    repo = TourRepository(db)
    tour = await repo.get_by_id(tour_id)
    if not tour:
        raise HTTPException(status_code=404, detail="Tour not found")
    return _details(tour, await repo.get_stops(tour_id))


@router.get(
    "/{tour_id}/progress",
    response_model=ProgressResponse,
    summary="Get a user's progress on a tour",
)
@limiter.limit(settings.rate_limit)
async def get_progress(
    request: Request,
    tour_id: int,
    user_id: int = Query(...),
    db: AsyncSession = Depends(get_db),
):
    if not await TourRepository(db).get_by_id(tour_id):
        raise HTTPException(status_code=404, detail="Tour not found")

    progress_repo = ProgressRepository(db)
    entries = await progress_repo.get_progress(user_id, tour_id)
    return ProgressResponse(
        tour_id=tour_id,
        user_id=user_id,
        progress=[ProgressEntry.model_validate(e) for e in entries],
        is_completed=await progress_repo.is_tour_completed(user_id, tour_id),
    )


@router.post(
    "/{tour_id}/progress",
    status_code=201,
    response_model=ProgressResponse,
    summary="Mark a stop as completed",
)
@limiter.limit(settings.rate_limit)
async def mark_stop_completed(
    request: Request,
    tour_id: int,
    body: ProgressRequest,
    db: AsyncSession = Depends(get_db),
):
    tour_repo = TourRepository(db)
    if not await tour_repo.get_by_id(tour_id):
        raise HTTPException(status_code=404, detail="Tour not found")
    if not await tour_repo.get_stop(tour_id, body.stop_id):
        raise HTTPException(status_code=404, detail="Stop not found on this tour")
    if not await UserRepository(db).get_by_id(body.user_id):
        raise HTTPException(status_code=404, detail="User not found")

    progress_repo = ProgressRepository(db)
    await progress_repo.mark_stop_completed(body.user_id, tour_id, body.stop_id)
    completed = await progress_repo.is_tour_completed(body.user_id, tour_id)
    if completed:
        await progress_repo.mark_tour_completed(body.user_id, tour_id)

    entries = await progress_repo.get_progress(body.user_id, tour_id)
    return ProgressResponse(
        tour_id=tour_id,
        user_id=body.user_id,
        progress=[ProgressEntry.model_validate(e) for e in entries],
        is_completed=completed,
    )


def _details(tour, stops) -> TourDetailsResponse:
    return TourDetailsResponse(
        **TourResponse.model_validate(tour).model_dump(),
        stops=[StopResponse.model_validate(s) for s in stops],
    )

"""
Proximity Search
================

1. **Candidate narrowing** (optional) -- tours carry the H3 cell of their
   starting point.  ``covering_cells`` returns the grid disk around the
   query centre that is wide enough to contain every point within the
   radius, so the repository can load only tours indexed in those cells.
2. **Haversine filter** -- ``nearby_tours`` keeps each candidate whose
   great-circle distance to the centre is ``<= radius_km``.  This step is
   authoritative; narrowing only ever drops tours that are out of range.

Ordering
--------
The filter is stable: results keep the candidate order, they are NOT
re-sorted by distance.

Malformed data
--------------
Tour coordinates are stored as text.  A candidate whose latitude or
longitude does not parse is excluded and logged, never raised, so one
corrupt record cannot break discovery.

Complexity
----------
* ``nearby_tours``:    O(N) for N candidates
* ``covering_cells``:  O(k^2) cells for a ring of size k
"""

from __future__ import annotations

import logging
import math
from typing import Iterable, Optional, Sequence, TypeVar

import h3

from .distance import distance_km
from .entities import Coordinate

logger = logging.getLogger(__name__)

T = TypeVar("T")


def nearby_tours(
    candidates: Iterable[T], center: Coordinate, radius_km: float
) -> list[T]:
    """
    Return the candidates within ``radius_km`` of ``center``, in input order.

    Candidates only need ``latitude`` / ``longitude`` attributes (text or
    numbers), so ORM rows and domain ``Tour`` objects both work.
    """
    if not radius_km > 0:  # also rejects NaN
        return []

    result: list[T] = []
    for candidate in candidates:
        coord = Coordinate.parse(
            getattr(candidate, "latitude", None),
            getattr(candidate, "longitude", None),
        )
        if coord is None:
            logger.warning(
                "Skipping tour %s: unparseable coordinates (%r, %r)",
                getattr(candidate, "id", "?"),
                getattr(candidate, "latitude", None),
                getattr(candidate, "longitude", None),
            )
            continue

        d = distance_km(
            center.latitude, center.longitude, coord.latitude, coord.longitude
        )
        if d <= radius_km:
            result.append(candidate)
    return result


def tour_h3_cell(coordinate: Optional[Coordinate], resolution: int = 7) -> Optional[str]:
    """Map a tour's starting point to an H3 cell index.  O(1)."""
    if coordinate is None:
        return None
    return h3.latlng_to_cell(coordinate.latitude, coordinate.longitude, resolution)


def ring_size(radius_km: float, resolution: int = 7) -> int:
    """
    Grid distance needed to cover ``radius_km`` around a cell centre.

    Neighbouring centres are ~sqrt(3) edge lengths apart, so stepping one
    edge length per ring plus one extra ring leaves a margin for cell size
    variation across the globe.
    """
    edge_km = h3.average_hexagon_edge_length(resolution, unit="km")
    return math.ceil(radius_km / edge_km) + 1


def covering_cells(
    center: Coordinate,
    radius_km: float,
    resolution: int = 7,
    max_ring: int = 20,
) -> Optional[Sequence[str]]:
    """
    Cells whose tours may lie within the radius, or ``None`` when the disk
    would be wider than ``max_ring`` and a full scan is cheaper.
    """
    if not radius_km > 0:
        return []
    k = ring_size(radius_km, resolution)
    if k > max_ring:
        return None
    origin = h3.latlng_to_cell(center.latitude, center.longitude, resolution)
    return sorted(h3.grid_disk(origin, k))

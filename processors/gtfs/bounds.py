# processors/gtfs/bounds.py
# -*- coding: utf-8 -*-
"""
Running geographic bounds of an agency's coordinates.

Only the two corners are ever kept, so the memory used does not grow
with the size of the feed.
"""
import math
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple

Point = Tuple[float, float]


@dataclass(frozen=True)
class Bounds:
    """South-west and north-east corners as (lon, lat); both None until seeded."""
    sw: Optional[Point] = None
    ne: Optional[Point] = None

    @property
    def is_empty(self) -> bool:
        return self.sw is None or self.ne is None

    def as_dict(self) -> Dict[str, List[float]]:
        if self.is_empty:
            return {"sw": [], "ne": []}
        return {"sw": list(self.sw), "ne": list(self.ne)}


EMPTY_BOUNDS = Bounds()


def extend_bounds(bounds: Bounds, point: Sequence[float]) -> Bounds:
    """
    Return `bounds` grown to include `point` ([lon, lat]).

    The first point seeds both corners. A point with a NaN component is
    ignored.
    """
    lon, lat = float(point[0]), float(point[1])
    if math.isnan(lon) or math.isnan(lat):
        return bounds
    if bounds.is_empty:
        return Bounds(sw=(lon, lat), ne=(lon, lat))
    return Bounds(
        sw=(min(bounds.sw[0], lon), min(bounds.sw[1], lat)),
        ne=(max(bounds.ne[0], lon), max(bounds.ne[1], lat)),
    )


def bounds_center(bounds: Bounds) -> Optional[List[float]]:
    """Midpoint of the corners as [lon, lat], or None when nothing was extended."""
    if bounds.is_empty:
        return None
    return [
        (bounds.sw[0] + bounds.ne[0]) / 2,
        (bounds.sw[1] + bounds.ne[1]) / 2,
    ]

"""Point, region and great-circle distance primitives."""

from dataclasses import dataclass
from typing import Iterable, List, Sequence, Union

import numpy as np

from nepal_landslides.errors import InvalidBoundingBox

EARTH_RADIUS_M = 6_371_000.0

ArrayLike = Union[float, np.ndarray]


@dataclass(frozen=True)
class GeoPoint:
    """A WGS84 location in decimal degrees."""

    latitude: float
    longitude: float


@dataclass(frozen=True)
class LandslideRecord:
    """A labelled point: 1 for a catalogued landslide, 0 for a pseudo-absence."""

    point: GeoPoint
    label: int
    trigger: str = "None"

    def __post_init__(self):
        if self.label not in (0, 1):
            raise ValueError(f"Label must be 0 or 1, got {self.label!r}")

    @property
    def latitude(self) -> float:
        return self.point.latitude

    @property
    def longitude(self) -> float:
        return self.point.longitude


@dataclass(frozen=True)
class BoundingBox:
    """Sampling region in degrees (x = longitude, y = latitude)."""

    xmin: float
    ymin: float
    xmax: float
    ymax: float

    def __post_init__(self):
        values = (self.xmin, self.ymin, self.xmax, self.ymax)
        if not all(np.isfinite(v) for v in values):
            raise InvalidBoundingBox(f"Bounding box has non-finite bounds: {values}")
        if self.xmin >= self.xmax:
            raise InvalidBoundingBox(
                f"Bounding box xmin ({self.xmin}) must be less than xmax ({self.xmax})"
            )
        if self.ymin >= self.ymax:
            raise InvalidBoundingBox(
                f"Bounding box ymin ({self.ymin}) must be less than ymax ({self.ymax})"
            )

    @classmethod
    def from_sequence(cls, bounds: Sequence[float]) -> "BoundingBox":
        """Build from [xmin, ymin, xmax, ymax], the order used in config files."""
        if len(bounds) != 4:
            raise InvalidBoundingBox(
                f"Bounding box needs 4 values [xmin, ymin, xmax, ymax], got {list(bounds)}"
            )
        return cls(*(float(v) for v in bounds))

    def contains(self, point: GeoPoint) -> bool:
        return (
            self.xmin <= point.longitude <= self.xmax
            and self.ymin <= point.latitude <= self.ymax
        )

    def as_list(self) -> List[float]:
        return [self.xmin, self.ymin, self.xmax, self.ymax]


def haversine_distance(
    lat1: ArrayLike, lon1: ArrayLike, lat2: ArrayLike, lon2: ArrayLike
) -> ArrayLike:
    """Great-circle distance in metres. Broadcasts over numpy arrays."""
    phi1 = np.radians(lat1)
    phi2 = np.radians(lat2)
    dphi = phi2 - phi1
    dlambda = np.radians(np.asarray(lon2) - np.asarray(lon1))
    a = np.sin(dphi / 2.0) ** 2 + np.cos(phi1) * np.cos(phi2) * np.sin(dlambda / 2.0) ** 2
    return 2.0 * EARTH_RADIUS_M * np.arcsin(np.sqrt(np.clip(a, 0.0, 1.0)))


class DistanceOracle:
    """
    Answers whether a candidate lies within ``min_distance`` metres of any
    reference point.

    The reference set is copied into arrays at construction time. Each query
    compares the candidate against every reference point; at catalog scale
    (a few thousand points) this is fast enough without a spatial index.
    """

    def __init__(self, reference_points: Iterable[GeoPoint], min_distance: float):
        if not min_distance > 0:
            raise ValueError(f"min_distance must be positive, got {min_distance}")
        points = list(reference_points)
        self.min_distance = float(min_distance)
        self._lats = np.array([p.latitude for p in points], dtype=np.float64)
        self._lons = np.array([p.longitude for p in points], dtype=np.float64)

    def __len__(self) -> int:
        return self._lats.size

    def nearest_distance(self, point: GeoPoint) -> float:
        """Distance to the closest reference point, ``inf`` for an empty set."""
        if self._lats.size == 0:
            return float("inf")
        d = haversine_distance(point.latitude, point.longitude, self._lats, self._lons)
        return float(np.min(d))

    def is_too_close(self, point: GeoPoint) -> bool:
        return self.nearest_distance(point) < self.min_distance

    def filter_candidates(self, lats: np.ndarray, lons: np.ndarray) -> np.ndarray:
        """Boolean mask of candidates that are far enough from every reference point."""
        lats = np.asarray(lats, dtype=np.float64)
        lons = np.asarray(lons, dtype=np.float64)
        accepted = np.ones(lats.shape, dtype=bool)
        if self._lats.size == 0:
            return accepted
        for i in range(lats.size):
            d = haversine_distance(lats[i], lons[i], self._lats, self._lons)
            accepted[i] = np.min(d) >= self.min_distance
        return accepted

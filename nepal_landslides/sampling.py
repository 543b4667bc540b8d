"""Pseudo-absence (non-landslide) point generation."""

import logging
from typing import Iterable, List

import numpy as np

from nepal_landslides.errors import InsufficientSamples
from nepal_landslides.geometry import BoundingBox, DistanceOracle, GeoPoint, LandslideRecord

logger = logging.getLogger(__name__)


def sample_pseudo_absences(
    bbox: BoundingBox,
    reference_points: Iterable[GeoPoint],
    min_distance: float,
    target_count: int,
    seed: int,
    candidate_multiplier: int = 10,
    max_batches: int = 20,
) -> List[LandslideRecord]:
    """
    Draw exactly ``target_count`` random points inside ``bbox`` that are at
    least ``min_distance`` metres away from every reference point.

    Candidates are drawn in batches of ``target_count * candidate_multiplier``
    (longitudes first, then latitudes, both uniform) from a generator seeded
    with ``seed``. Accepted candidates are kept in generation order. If
    ``max_batches`` batches do not yield enough accepted points,
    ``InsufficientSamples`` is raised rather than returning a short sample.

    Args:
        bbox: Sampling region.
        reference_points: Known landslide locations. Not modified.
        min_distance: Exclusion radius in metres.
        target_count: Number of points to return.
        seed: Seed for ``numpy.random.default_rng``.
        candidate_multiplier: Batch size as a multiple of ``target_count``.
        max_batches: Candidate generation budget.

    Returns:
        List of records labelled 0 with trigger ``"None"``.
    """
    if target_count <= 0:
        raise ValueError(f"target_count must be positive, got {target_count}")
    if candidate_multiplier < 1:
        raise ValueError(f"candidate_multiplier must be >= 1, got {candidate_multiplier}")
    if max_batches < 1:
        raise ValueError(f"max_batches must be >= 1, got {max_batches}")

    oracle = DistanceOracle(reference_points, min_distance)
    rng = np.random.default_rng(seed)
    batch_size = target_count * candidate_multiplier

    logger.info(
        f"[sample_pseudo_absences] Sampling {target_count} points in {bbox.as_list()} "
        f"(min distance {min_distance:.0f} m from {len(oracle)} reference points, seed={seed})"
    )

    accepted_lats: List[float] = []
    accepted_lons: List[float] = []
    drawn = 0
    for batch in range(max_batches):
        lons = rng.uniform(bbox.xmin, bbox.xmax, batch_size)
        lats = rng.uniform(bbox.ymin, bbox.ymax, batch_size)
        drawn += batch_size

        mask = oracle.filter_candidates(lats, lons)
        accepted_lats.extend(lats[mask].tolist())
        accepted_lons.extend(lons[mask].tolist())
        logger.debug(
            f"[sample_pseudo_absences] Batch {batch + 1}: accepted {int(mask.sum())}/{batch_size}, "
            f"total {len(accepted_lats)}"
        )
        if len(accepted_lats) >= target_count:
            break
    else:
        raise InsufficientSamples(target_count, len(accepted_lats), drawn)

    logger.info(
        f"[sample_pseudo_absences] Accepted {target_count} points after drawing {drawn} candidates"
    )
    return [
        LandslideRecord(point=GeoPoint(latitude=lat, longitude=lon), label=0, trigger="None")
        for lat, lon in zip(accepted_lats[:target_count], accepted_lons[:target_count])
    ]

"""Real-time proximity scan over the current object positions."""
from __future__ import annotations

import logging
from collections.abc import Iterable
from datetime import datetime, timezone

import numpy as np
from scipy.spatial.distance import pdist

from orbwatch.core.objects import CollisionEvent, TrackedObject
from orbwatch.core.risk import build_event, check_threshold
from orbwatch.utils.constants import DEFAULT_THRESHOLD_KM, SCENE_UNITS_PER_KM

logger = logging.getLogger(__name__)


def scene_to_km(values: Iterable[float]) -> np.ndarray:
    """Convert a scene-unit vector to km."""
    return np.asarray(values, dtype=np.float64) / SCENE_UNITS_PER_KM


def km_to_scene(values: Iterable[float]) -> np.ndarray:
    """Convert a km vector to scene units."""
    return np.asarray(values, dtype=np.float64) * SCENE_UNITS_PER_KM


def detect_realtime(
    objects: Iterable[TrackedObject],
    threshold_km: float = DEFAULT_THRESHOLD_KM,
    *,
    scene_units: bool = False,
    now: datetime | None = None,
) -> list[CollisionEvent]:
    """Find every pair of objects currently closer than ``threshold_km``.

    Exhaustive O(N²) comparison over a snapshot of the objects taken at call
    time. Objects without a position are skipped. The time of closest
    approach of every event is the scan time.

    Args:
        objects: Tracked objects with their last-known positions.
        threshold_km: Report pairs with separation strictly below this, in km.
        scene_units: If True, positions and velocities are in scene units and
            are converted to km before thresholding and reporting.
        now: Scan timestamp. Defaults to now (UTC).

    Returns:
        List of CollisionEvent objects sorted by distance.

    Raises:
        InvalidThresholdError: If ``threshold_km`` is not positive.
    """
    threshold_km = check_threshold(threshold_km)
    snapshot = tuple(obj for obj in objects if obj.position_km is not None)
    if len(snapshot) < 2:
        return []

    if now is None:
        now = datetime.now(timezone.utc)

    positions = np.array([obj.position_km for obj in snapshot], dtype=np.float64)
    if scene_units:
        positions = scene_to_km(positions)

    # pdist yields pairs in the same order as triu_indices(k=1)
    distances = pdist(positions)
    rows, cols = np.triu_indices(len(snapshot), k=1)
    close = np.flatnonzero(distances < threshold_km)

    pairs: dict[tuple[str, str], CollisionEvent] = {}
    for idx in close:
        i, j = int(rows[idx]), int(cols[idx])
        a, b = snapshot[i], snapshot[j]
        if a.id == b.id:
            continue

        vel_a, vel_b = a.velocity_km_s, b.velocity_km_s
        if scene_units and vel_a is not None and vel_b is not None:
            vel_a, vel_b = scene_to_km(vel_a), scene_to_km(vel_b)

        event = build_event(
            a, b, float(distances[idx]), now,
            positions[i], positions[j], vel_a, vel_b,
        )
        existing = pairs.get(event.pair_key)
        if existing is None or event.distance_km < existing.distance_km:
            pairs[event.pair_key] = event

    events = sorted(pairs.values(), key=CollisionEvent.sort_key)
    logger.debug("detect_realtime: %d objects, %d events below %.1f km",
                 len(snapshot), len(events), threshold_km)
    return events

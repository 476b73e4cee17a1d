"""Predictive conjunction search over a look-ahead horizon.

Uses a multi-stage algorithm:
1. Altitude-shell prefilter to eliminate pairs that can never meet
2. Coarse time-stepped propagation to find each pair's closest sample
3. Fine refinement by step halving around that sample to pin down TCA
"""
from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Iterable, Sequence
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import TypeVar

import numpy as np
from numpy.typing import NDArray

from orbwatch.core.coverage import (
    DEFAULT_COVERAGE_MODE,
    CoverageConfiguration,
    clip_objects,
    get_coverage_config,
)
from orbwatch.core.objects import (
    CollisionEvent,
    PredictionPhase,
    PredictionProgress,
    StateVector,
    TrackedObject,
)
from orbwatch.core.propagation import Propagator, sample_state, sgp4_propagator
from orbwatch.core.risk import build_event, check_threshold
from orbwatch.exceptions import PredictionCancelled
from orbwatch.utils.constants import (
    DEFAULT_THRESHOLD_KM,
    MAX_PREDICTED_EVENTS,
    PREDICTION_HORIZON_HOURS,
    REFINE_GATE_SAFETY,
    REFINE_MIN_STEP_SECONDS,
)

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[PredictionProgress], None]
T = TypeVar("T")
R = TypeVar("R")

# Progress bands per phase, in percent.
_FILTER_END = 10
_EPHEMERIS_END = 40
_COARSE_END = 80
_REFINE_END = 99


@dataclass(frozen=True)
class Ephemeris:
    """Positions and velocities of one object on the coarse time grid.

    Unavailable samples are NaN rows.
    """

    positions_km: NDArray[np.float64]  # shape (n_times, 3)
    velocities_km_s: NDArray[np.float64]  # shape (n_times, 3)

    @property
    def valid(self) -> NDArray[np.bool_]:
        return ~np.isnan(self.positions_km[:, 0])


@dataclass(frozen=True)
class CoarseResult:
    """Closest coarse sample of one pair.

    Attributes:
        index: Index of the closest sample on the time grid.
        time: Time of the closest sample.
        distance_km: Separation at that sample.
        floor_km: Lower bound on the separation between the neighbouring
            samples, from the largest relative speed across them. ``-inf``
            when velocities are missing, so the pair is always refined.
        valid_samples: Number of samples where both objects were available.
    """

    index: int
    time: datetime
    distance_km: float
    floor_km: float
    valid_samples: int


@dataclass(frozen=True)
class ClosestApproach:
    """Refined time and distance of closest approach for one pair."""

    tca: datetime
    distance_km: float
    state_a: StateVector
    state_b: StateVector


class _ProgressTracker:
    """Forwards progress to a callback, never letting the percentage go backwards."""

    def __init__(self, callback: ProgressCallback | None, cancel_token: threading.Event | None):
        self._callback = callback
        self._cancel_token = cancel_token
        self._lock = threading.Lock()
        self._last: PredictionProgress | None = None

    def check_cancelled(self) -> None:
        if self._cancel_token is not None and self._cancel_token.is_set():
            raise PredictionCancelled("Predictive scan superseded")

    def update(self, phase: PredictionPhase, percent: float, message: str) -> None:
        with self._lock:
            floor = self._last.percent if self._last is not None else 0
            value = max(floor, min(100, int(percent)))
            if phase is not PredictionPhase.COMPLETE:
                value = min(value, _REFINE_END)
            progress = PredictionProgress(phase=phase, percent=value, message=message)
            if progress == self._last:
                return
            self._last = progress
        if self._callback is not None:
            self._callback(progress)

    def complete(self, message: str) -> None:
        self.update(PredictionPhase.COMPLETE, 100, message)


def sample_times(start: datetime, horizon_hours: float, step_minutes: float) -> list[datetime]:
    """Coarse time grid: ``start + k * step`` for every whole step in the horizon."""
    steps = int(round(horizon_hours * 60.0 / step_minutes))
    step = timedelta(minutes=step_minutes)
    return [start + k * step for k in range(steps)]


def prefilter_pairs(
    objects: Sequence[TrackedObject],
    threshold_km: float,
    margin_km: float = 50.0,
    max_pairs: int | None = None,
) -> list[tuple[int, int]]:
    """Fast geometric prefilter based on orbital shell overlap.

    Enumerates pairs ``(i, j)`` with ``i < j`` in input order and drops a
    pair only when both objects carry an altitude range and the radial gap
    between the ranges exceeds ``threshold_km + margin_km``. Two objects are
    always at least that gap apart, so no reachable pair is discarded.
    Objects with no altitude range are always kept.

    Args:
        objects: Objects to pair up.
        threshold_km: Miss distance threshold in km.
        margin_km: Extra slack for short-period oscillation of the shells.
        max_pairs: Stop once this many candidate pairs have been collected.

    Returns:
        Candidate index pairs in enumeration order.
    """
    n = len(objects)
    if n < 2:
        return []

    slack = threshold_km + margin_km
    lo = np.full(n, np.nan)
    hi = np.full(n, np.nan)
    for idx, obj in enumerate(objects):
        if obj.altitude_range_km is not None:
            perigee, apogee = obj.altitude_range_km
            lo[idx] = min(perigee, apogee)
            hi[idx] = max(perigee, apogee)
    known = ~np.isnan(lo)
    ids = np.array([obj.id for obj in objects], dtype=object)

    pairs: list[tuple[int, int]] = []
    for i in range(n - 1):
        rest = slice(i + 1, n)
        keep = ids[rest] != ids[i]
        if known[i]:
            overlap = (lo[i] - slack <= hi[rest]) & (lo[rest] - slack <= hi[i])
            keep &= overlap | ~known[rest]
        for j in np.flatnonzero(keep) + i + 1:
            pairs.append((i, int(j)))
            if max_pairs is not None and len(pairs) >= max_pairs:
                logger.info("prefilter_pairs: candidate budget of %d pairs reached at object %d/%d",
                            max_pairs, i + 1, n)
                return pairs

    return pairs


def propagate_ephemeris(
    obj: TrackedObject,
    times: Sequence[datetime],
    propagator: Propagator = sgp4_propagator,
) -> Ephemeris:
    """Propagate one object across the time grid, skipping unavailable samples."""
    positions = np.full((len(times), 3), np.nan)
    velocities = np.full((len(times), 3), np.nan)
    for k, when in enumerate(times):
        state = sample_state(propagator, obj.state, when)
        if state is None:
            continue
        positions[k] = state.position_km
        if state.velocity_km_s is not None:
            velocities[k] = state.velocity_km_s
    return Ephemeris(positions_km=positions, velocities_km_s=velocities)


def coarse_scan(eph_a: Ephemeris, eph_b: Ephemeris, times: Sequence[datetime]) -> CoarseResult | None:
    """Find the closest sample of a pair on the coarse grid.

    Returns:
        The closest sample, or None if the pair has no sample where both
        objects are available.
    """
    rel = eph_a.positions_km - eph_b.positions_km
    distances = np.linalg.norm(rel, axis=1)
    valid = ~np.isnan(distances)
    count = int(valid.sum())
    if count == 0:
        return None

    k = int(np.nanargmin(distances))
    d_min = float(distances[k])

    # How far the separation could still shrink within one step either side.
    # Bounded only when relative velocity is known at every sample of the bracket.
    reach = np.inf
    bracket = [nb for nb in (k - 1, k, k + 1) if 0 <= nb < len(times)]
    if count > 1 and len(times) > 1 and all(valid[nb] for nb in bracket):
        rel_vel = eph_a.velocities_km_s[bracket] - eph_b.velocities_km_s[bracket]
        if not np.isnan(rel_vel).any():
            step_s = (times[1] - times[0]).total_seconds()
            speed = float(np.linalg.norm(rel_vel, axis=1).max())
            reach = REFINE_GATE_SAFETY * speed * step_s

    return CoarseResult(
        index=k,
        time=times[k],
        distance_km=d_min,
        floor_km=d_min - reach,
        valid_samples=count,
    )


def refine_closest_approach(
    obj_a: TrackedObject,
    obj_b: TrackedObject,
    t_start: datetime,
    t_end: datetime,
    propagator: Propagator = sgp4_propagator,
    initial_step_sec: float = 60.0,
    min_step_sec: float = REFINE_MIN_STEP_SECONDS,
) -> ClosestApproach | None:
    """Refine time of closest approach by step halving.

    Scans ``[t_start, t_end]`` at ``initial_step_sec``, narrows the window to
    one step either side of the best sample and halves the step until it
    drops below ``min_step_sec``.

    Args:
        obj_a: First object.
        obj_b: Second object.
        t_start: Start of search window.
        t_end: End of search window.
        propagator: Propagator adapter.
        initial_step_sec: Initial step size in seconds.
        min_step_sec: Smallest step size in seconds.

    Returns:
        The closest approach found, or None if no sample in the window was available.
    """
    step_sec = initial_step_sec
    best: ClosestApproach | None = None

    while step_sec >= min_step_sec:
        current = t_start
        while current <= t_end:
            state_a = sample_state(propagator, obj_a.state, current)
            if state_a is not None:
                state_b = sample_state(propagator, obj_b.state, current)
                if state_b is not None:
                    distance = float(np.linalg.norm(state_a.position_km - state_b.position_km))
                    if best is None or distance < best.distance_km:
                        best = ClosestApproach(current, distance, state_a, state_b)
            current += timedelta(seconds=step_sec)

        if best is None:
            return None
        t_start = max(t_start, best.tca - timedelta(seconds=step_sec))
        t_end = min(t_end, best.tca + timedelta(seconds=step_sec))
        step_sec /= 2

    return best


def _run_each(
    items: Sequence[T],
    fn: Callable[[T], R],
    max_workers: int | None,
    on_done: Callable[[int], None],
    progress: _ProgressTracker,
) -> list[R]:
    """Apply ``fn`` to every item, optionally on worker threads.

    Results keep input order regardless of completion order.
    """
    if not max_workers or max_workers <= 1 or len(items) < 2:
        results = []
        for n, item in enumerate(items, start=1):
            progress.check_cancelled()
            results.append(fn(item))
            on_done(n)
        return results

    slots: list[R | None] = [None] * len(items)
    with ThreadPoolExecutor(max_workers=max_workers) as pool:
        futures = {pool.submit(fn, item): idx for idx, item in enumerate(items)}
        try:
            for n, future in enumerate(as_completed(futures), start=1):
                slots[futures[future]] = future.result()
                progress.check_cancelled()
                on_done(n)
        except PredictionCancelled:
            for future in futures:
                future.cancel()
            raise
    return slots  # type: ignore[return-value]


def predict_horizon(
    objects: Iterable[TrackedObject],
    threshold_km: float = DEFAULT_THRESHOLD_KM,
    coverage_mode: str | CoverageConfiguration = DEFAULT_COVERAGE_MODE,
    *,
    propagator: Propagator = sgp4_propagator,
    on_progress: ProgressCallback | None = None,
    start: datetime | None = None,
    horizon_hours: float = PREDICTION_HORIZON_HOURS,
    max_results: int = MAX_PREDICTED_EVENTS,
    cancel_token: threading.Event | None = None,
    max_workers: int | None = None,
) -> list[CollisionEvent]:
    """Search the look-ahead horizon for close approaches.

    Args:
        objects: Candidate objects, most important first. Clipped to the
            coverage mode's object cap in the given order.
        threshold_km: Report pairs whose refined miss distance is below this.
        coverage_mode: Coverage mode name or configuration.
        propagator: Adapter mapping (state handle, time) to a state vector.
        on_progress: Called with each PredictionProgress update.
        start: Start of the horizon. Defaults to now (UTC).
        horizon_hours: Length of the look-ahead window.
        max_results: Maximum number of events returned.
        cancel_token: When set, the scan stops with PredictionCancelled.
        max_workers: Run per-object and per-pair work on this many threads.

    Returns:
        Up to ``max_results`` CollisionEvent objects sorted by miss distance.

    Raises:
        UnknownCoverageModeError: If ``coverage_mode`` is not a known mode.
        InvalidThresholdError: If ``threshold_km`` is not positive.
        PredictionCancelled: If ``cancel_token`` was set during the scan.
    """
    threshold_km = check_threshold(threshold_km)
    config = get_coverage_config(coverage_mode)
    snapshot = tuple(clip_objects(list(objects), config))
    progress = _ProgressTracker(on_progress, cancel_token)

    if start is None:
        start = datetime.now(timezone.utc)
    end = start + timedelta(hours=horizon_hours)
    times = sample_times(start, horizon_hours, config.coarse_step_minutes)
    coarse_step = timedelta(minutes=config.coarse_step_minutes)

    logger.info("predict_horizon: %d objects (%s mode), %.0fh window, %.0fmin step, %.1fkm threshold",
                len(snapshot), config.name, horizon_hours, config.coarse_step_minutes, threshold_km)

    # Step 1: prefilter
    progress.update(PredictionPhase.FILTERING, 0, f"Pre-filtering {len(snapshot)} orbits...")
    candidates = prefilter_pairs(snapshot, threshold_km, config.shell_margin_km, config.max_candidate_pairs)
    progress.check_cancelled()
    progress.update(PredictionPhase.FILTERING, _FILTER_END,
                    f"{len(candidates)} candidate pairs after pre-filter")

    if not candidates or not times:
        progress.complete("No candidate pairs")
        return []

    # Step 2: coarse scan
    involved = sorted({i for pair in candidates for i in pair})

    def _on_ephemeris(n: int) -> None:
        pct = _FILTER_END + (_EPHEMERIS_END - _FILTER_END) * n / len(involved)
        progress.update(PredictionPhase.COARSE, pct,
                        f"Coarse scan ({config.coarse_step_minutes:g}-min intervals): propagated {n}/{len(involved)} objects")

    ephemerides = dict(zip(
        involved,
        _run_each(involved, lambda i: propagate_ephemeris(snapshot[i], times, propagator),
                  max_workers, _on_ephemeris, progress),
    ))

    def _on_pair(n: int) -> None:
        pct = _EPHEMERIS_END + (_COARSE_END - _EPHEMERIS_END) * n / len(candidates)
        progress.update(PredictionPhase.COARSE, pct,
                        f"Coarse scan ({config.coarse_step_minutes:g}-min intervals): {n}/{len(candidates)} pairs")

    coarse = _run_each(candidates, lambda p: coarse_scan(ephemerides[p[0]], ephemerides[p[1]], times),
                       max_workers, _on_pair, progress)

    # Step 3: refine pairs whose coarse minimum could dip below threshold
    to_refine = [
        (pair, result) for pair, result in zip(candidates, coarse)
        if result is not None and result.floor_km < threshold_km
    ]
    logger.debug("predict_horizon: %d/%d pairs need refinement", len(to_refine), len(candidates))
    progress.update(PredictionPhase.REFINING, _COARSE_END, f"Fine refinement of {len(to_refine)} pairs...")

    def _refine(item: tuple[tuple[int, int], CoarseResult]) -> ClosestApproach | None:
        (i, j), result = item
        return refine_closest_approach(
            snapshot[i], snapshot[j],
            max(start, result.time - coarse_step),
            min(end, result.time + coarse_step),
            propagator,
            initial_step_sec=config.refine_step_seconds,
        )

    def _on_refined(n: int) -> None:
        pct = _COARSE_END + (_REFINE_END - _COARSE_END) * n / len(to_refine)
        progress.update(PredictionPhase.REFINING, pct, f"Fine refinement: {n}/{len(to_refine)} pairs")

    refined = _run_each(to_refine, _refine, max_workers, _on_refined, progress)

    pairs: dict[tuple[str, str], CollisionEvent] = {}
    for ((i, j), _result), approach in zip(to_refine, refined):
        if approach is None or approach.distance_km >= threshold_km:
            continue
        event = build_event(
            snapshot[i], snapshot[j], approach.distance_km, approach.tca,
            approach.state_a.position_km, approach.state_b.position_km,
            approach.state_a.velocity_km_s, approach.state_b.velocity_km_s,
            predicted=True,
        )
        existing = pairs.get(event.pair_key)
        if existing is None or event.sort_key() < existing.sort_key():
            pairs[event.pair_key] = event

    events = sorted(pairs.values(), key=CollisionEvent.sort_key)[:max_results]
    progress.complete(f"Found {len(events)} close approaches among {len(snapshot)} objects")
    logger.info("predict_horizon: found %d close pairs (%d candidates)", len(events), len(candidates))
    return events

"""Background execution of predictive scans.

A new submission supersedes any scan still in flight: the older scan is
asked to stop and anything it produces afterwards is discarded, so the
published progress and result never go backwards.
"""
from __future__ import annotations

import logging
import threading
from collections.abc import Iterable
from concurrent.futures import Future, ThreadPoolExecutor

from orbwatch.core.coverage import DEFAULT_COVERAGE_MODE, CoverageConfiguration, get_coverage_config
from orbwatch.core.objects import CollisionEvent, PredictionProgress, TrackedObject
from orbwatch.core.prediction import ProgressCallback, predict_horizon
from orbwatch.core.propagation import Propagator, sgp4_propagator
from orbwatch.core.risk import check_threshold
from orbwatch.exceptions import PredictionCancelled
from orbwatch.utils.constants import DEFAULT_THRESHOLD_KM

logger = logging.getLogger(__name__)


class PredictionRunner:
    """Runs ``predict_horizon`` on a background thread.

    Args:
        propagator: Propagator adapter handed to every scan.
        max_workers: Per-scan worker threads for pair evaluation.

    Example::

        runner = PredictionRunner()
        future = runner.submit(objects, coverage_mode="quick")
        events = future.result()  # None if superseded
    """

    def __init__(self, propagator: Propagator = sgp4_propagator, max_workers: int | None = None):
        self._propagator = propagator
        self._max_workers = max_workers
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="orbwatch-predict")
        self._lock = threading.Lock()
        self._generation = 0
        self._cancel_token: threading.Event | None = None
        self._latest_progress: PredictionProgress | None = None
        self._latest_result: list[CollisionEvent] | None = None
        self._result_generation = 0

    @property
    def generation(self) -> int:
        """Number of the most recent submission."""
        with self._lock:
            return self._generation

    @property
    def latest_progress(self) -> PredictionProgress | None:
        """Progress of the most recent submission, or None before its first update."""
        with self._lock:
            return self._latest_progress

    @property
    def latest_result(self) -> list[CollisionEvent] | None:
        """Events of the newest scan that ran to completion without being superseded."""
        with self._lock:
            return None if self._latest_result is None else list(self._latest_result)

    @property
    def result_generation(self) -> int:
        """Generation that produced ``latest_result`` (0 if none yet)."""
        with self._lock:
            return self._result_generation

    def submit(
        self,
        objects: Iterable[TrackedObject],
        threshold_km: float = DEFAULT_THRESHOLD_KM,
        coverage_mode: str | CoverageConfiguration = DEFAULT_COVERAGE_MODE,
        *,
        on_progress: ProgressCallback | None = None,
        **kwargs,
    ) -> Future:
        """Start a new scan, superseding any scan still running.

        Invalid settings fail here, before anything is queued. Extra keyword
        arguments are passed to ``predict_horizon``.

        Returns:
            A Future resolving to the event list, or to None if this scan
            was superseded before it finished.

        Raises:
            UnknownCoverageModeError: If ``coverage_mode`` is not a known mode.
            InvalidThresholdError: If ``threshold_km`` is not positive.
        """
        threshold_km = check_threshold(threshold_km)
        config = get_coverage_config(coverage_mode)
        snapshot = tuple(objects)

        with self._lock:
            if self._cancel_token is not None:
                self._cancel_token.set()
            self._generation += 1
            generation = self._generation
            token = threading.Event()
            self._cancel_token = token
            self._latest_progress = None

        def _publish_progress(progress: PredictionProgress) -> None:
            with self._lock:
                if generation != self._generation:
                    return
                self._latest_progress = progress
            if on_progress is not None:
                on_progress(progress)

        def _run() -> list[CollisionEvent] | None:
            if token.is_set():
                logger.debug("Prediction %d superseded before start", generation)
                return None
            try:
                events = predict_horizon(
                    snapshot,
                    threshold_km,
                    config,
                    propagator=self._propagator,
                    on_progress=_publish_progress,
                    cancel_token=token,
                    max_workers=self._max_workers,
                    **kwargs,
                )
            except PredictionCancelled:
                logger.debug("Prediction %d cancelled", generation)
                return None
            with self._lock:
                if generation != self._generation:
                    logger.debug("Discarding result of superseded prediction %d", generation)
                    return None
                self._latest_result = events
                self._result_generation = generation
            return events

        logger.debug("Submitted prediction %d (%d objects, %s mode)", generation, len(snapshot), config.name)
        return self._executor.submit(_run)

    def cancel(self) -> None:
        """Ask the running scan, if any, to stop."""
        with self._lock:
            if self._cancel_token is not None:
                self._cancel_token.set()

    def shutdown(self, wait: bool = True) -> None:
        self.cancel()
        self._executor.shutdown(wait=wait)

    def __enter__(self) -> PredictionRunner:
        return self

    def __exit__(self, *exc_info) -> None:
        self.shutdown()

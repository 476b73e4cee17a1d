"""Tests for background prediction with superseding submissions."""
from __future__ import annotations

import threading
from datetime import datetime, timedelta, timezone

import numpy as np
import pytest

from orbwatch.core.objects import PredictionPhase, StateVector, TrackedObject
from orbwatch.core.runner import PredictionRunner
from orbwatch.exceptions import InvalidThresholdError, UnknownCoverageModeError

START = datetime(2024, 2, 14, 0, 0, tzinfo=timezone.utc)
TIMEOUT = 30


class GatedPropagator:
    """Stationary objects; the handle ``"block"`` stalls until released."""

    def __init__(self):
        self.started = threading.Event()
        self.release = threading.Event()

    def __call__(self, handle, when):
        if handle == "block":
            self.started.set()
            self.release.wait(TIMEOUT)
            return StateVector(position_km=np.array([9000.0, 0.0, 0.0]), epoch=when)
        x = float(handle)
        return StateVector(position_km=np.array([x, 0.0, 0.0]), velocity_km_s=np.zeros(3), epoch=when)


def _objects(*handles) -> list[TrackedObject]:
    return [TrackedObject(id=f"obj-{i}", state=h) for i, h in enumerate(handles)]


@pytest.fixture
def propagator() -> GatedPropagator:
    return GatedPropagator()


@pytest.fixture
def runner(propagator):
    r = PredictionRunner(propagator=propagator)
    yield r
    propagator.release.set()
    r.shutdown()


def test_submit_returns_events(runner):
    future = runner.submit(_objects(7000.0, 7003.0), 50.0, "quick", start=START, horizon_hours=1.0)
    events = future.result(TIMEOUT)

    assert len(events) == 1
    assert events[0].distance_km == pytest.approx(3.0)
    assert runner.latest_result == events
    assert runner.result_generation == 1
    assert runner.latest_progress.phase == PredictionPhase.COMPLETE
    assert runner.latest_progress.percent == 100


def test_newer_submission_supersedes(runner, propagator):
    seen_old = []
    first = runner.submit(
        _objects("block", 7000.0, 7001.0), 50.0, "quick",
        start=START, horizon_hours=1.0, on_progress=seen_old.append,
    )
    assert propagator.started.wait(TIMEOUT)

    second = runner.submit(_objects(7000.0, 7002.0), 50.0, "quick", start=START, horizon_hours=1.0)
    assert runner.generation == 2
    propagator.release.set()

    assert first.result(TIMEOUT) is None
    newer = second.result(TIMEOUT)
    assert [e.distance_km for e in newer] == [pytest.approx(2.0)]

    assert runner.latest_result == newer
    assert runner.result_generation == 2
    assert runner.latest_progress.percent == 100
    assert all(p.phase != PredictionPhase.COMPLETE for p in seen_old)


def test_results_never_go_backwards(runner, propagator):
    propagator.release.set()
    futures = [
        runner.submit(_objects(7000.0, 7000.0 + gap), 50.0, "quick", start=START, horizon_hours=1.0)
        for gap in (1.0, 2.0, 3.0)
    ]
    results = [f.result(TIMEOUT) for f in futures]

    assert results[-1] is not None
    assert runner.latest_result[0].distance_km == pytest.approx(3.0)
    assert runner.result_generation == 3


def test_misconfiguration_fails_at_submit(runner):
    with pytest.raises(UnknownCoverageModeError):
        runner.submit(_objects(7000.0), 50.0, "bogus")
    with pytest.raises(InvalidThresholdError):
        runner.submit(_objects(7000.0), 0.0, "quick")
    assert runner.generation == 0


def test_cancel_discards_running_scan(runner, propagator):
    future = runner.submit(_objects("block", 7000.0, 7001.0), 50.0, "quick", start=START, horizon_hours=1.0)
    assert propagator.started.wait(TIMEOUT)
    runner.cancel()
    propagator.release.set()

    assert future.result(TIMEOUT) is None
    assert runner.latest_result is None


def test_snapshot_taken_at_submit(runner, propagator):
    propagator.release.set()
    objects = _objects(7000.0, 7004.0)
    future = runner.submit(objects, 50.0, "quick", start=START, horizon_hours=1.0)
    objects.clear()
    assert len(future.result(TIMEOUT)) == 1

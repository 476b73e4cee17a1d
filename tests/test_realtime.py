"""Tests for the real-time proximity scanner."""
from __future__ import annotations

from datetime import datetime, timezone
from itertools import combinations

import numpy as np
import pytest

from orbwatch.core.objects import RiskLevel, TrackedObject
from orbwatch.core.realtime import detect_realtime, km_to_scene, scene_to_km
from orbwatch.exceptions import InvalidThresholdError

NOW = datetime(2024, 2, 14, 12, 0, tzinfo=timezone.utc)


def _obj(obj_id: str, position, **kwargs) -> TrackedObject:
    pos = None if position is None else tuple(float(v) for v in position)
    return TrackedObject(id=obj_id, name=f"SAT-{obj_id}", position_km=pos, **kwargs)


@pytest.fixture
def cluster() -> list[TrackedObject]:
    """Forty objects scattered in a 120 km cube around a LEO point."""
    rng = np.random.default_rng(7)
    base = np.array([6800.0, 0.0, 0.0])
    points = base + rng.uniform(-60.0, 60.0, size=(40, 3))
    return [_obj(f"{i:03d}", p) for i, p in enumerate(points)]


def test_half_km_pair_is_critical():
    """Two objects 0.5 km apart produce one critical event."""
    a = _obj("A", (7000.0, 0.0, 0.0))
    b = _obj("B", (7000.5, 0.0, 0.0))
    events = detect_realtime([a, b], 50.0, now=NOW)

    assert len(events) == 1
    event = events[0]
    assert event.distance_km == pytest.approx(0.50)
    assert event.risk_level == RiskLevel.CRITICAL
    assert event.tca == NOW
    assert event.pair_key == ("A", "B")
    assert not event.predicted


@pytest.mark.parametrize(
    "gap, expected",
    [(1.004, RiskLevel.HIGH), (10.004, RiskLevel.MEDIUM), (25.004, RiskLevel.LOW)],
)
def test_risk_just_past_band_edge(gap, expected):
    """A separation that rounds onto a band edge keeps the band of the true distance."""
    a = _obj("A", (0.0, 0.0, 0.0))
    b = _obj("B", (gap, 0.0, 0.0))
    [event] = detect_realtime([a, b], 50.0, now=NOW)

    assert event.distance_km == round(gap, 2)
    assert event.risk_level == expected


def test_sorted_by_distance(cluster):
    events = detect_realtime(cluster, 50.0, now=NOW)
    assert events
    distances = [e.distance_km for e in events]
    assert distances == sorted(distances)


def test_no_duplicate_pairs(cluster):
    events = detect_realtime(cluster, 50.0, now=NOW)
    keys = [frozenset(e.pair_key) for e in events]
    assert len(keys) == len(set(keys))
    for event in events:
        assert event.object_a_id < event.object_b_id


def test_matches_brute_force(cluster):
    """Every pair below threshold is reported with its true separation."""
    events = {e.pair_key: e for e in detect_realtime(cluster, 50.0, now=NOW)}
    expected = {}
    for a, b in combinations(cluster, 2):
        d = float(np.linalg.norm(np.subtract(a.position_km, b.position_km)))
        if d < 50.0:
            expected[(a.id, b.id)] = d

    assert set(events) == set(expected)
    for key, distance in expected.items():
        assert events[key].distance_km == pytest.approx(distance, abs=0.005)


def test_threshold_is_strict():
    a = _obj("A", (7000.0, 0.0, 0.0))
    b = _obj("B", (7050.0, 0.0, 0.0))
    assert detect_realtime([a, b], 50.0, now=NOW) == []
    assert len(detect_realtime([a, b], 50.01, now=NOW)) == 1


def test_missing_positions_skipped():
    a = _obj("A", (7000.0, 0.0, 0.0))
    b = _obj("B", None)
    c = _obj("C", (7001.0, 0.0, 0.0))
    events = detect_realtime([a, b, c], now=NOW)
    assert [e.pair_key for e in events] == [("A", "C")]


def test_empty_and_single():
    assert detect_realtime([], now=NOW) == []
    assert detect_realtime([_obj("A", (1.0, 2.0, 3.0))], now=NOW) == []


def test_all_positions_missing():
    assert detect_realtime([_obj("A", None), _obj("B", None)], now=NOW) == []


def test_same_id_not_paired():
    a = _obj("A", (7000.0, 0.0, 0.0))
    a_again = _obj("A", (7000.1, 0.0, 0.0))
    assert detect_realtime([a, a_again], now=NOW) == []


def test_scene_units_converted():
    """Scene positions are converted back to km before thresholding."""
    a = _obj("A", km_to_scene([7000.0, 0.0, 0.0]))
    b = _obj("B", km_to_scene([7000.5, 0.0, 0.0]))
    events = detect_realtime([a, b], 50.0, scene_units=True, now=NOW)
    assert len(events) == 1
    assert events[0].distance_km == pytest.approx(0.5)
    np.testing.assert_allclose(events[0].position_b_km, [7000.5, 0.0, 0.0])


def test_scene_unit_helpers():
    np.testing.assert_allclose(scene_to_km([7.0, 0.0, 0.0]), [7000.0, 0.0, 0.0])
    np.testing.assert_allclose(km_to_scene([7000.0, 0.0, 0.0]), [7.0, 0.0, 0.0])


def test_inputs_not_mutated(cluster):
    before = list(cluster)
    detect_realtime(cluster, now=NOW)
    assert cluster == before


def test_accepts_generator(cluster):
    events = detect_realtime((obj for obj in cluster), now=NOW)
    assert events == detect_realtime(cluster, now=NOW)


def test_relative_velocity_reported():
    a = _obj("A", (7000.0, 0.0, 0.0), velocity_km_s=(0.0, 7.5, 0.0))
    b = _obj("B", (7002.0, 0.0, 0.0), velocity_km_s=(0.0, 0.0, 7.5))
    event = detect_realtime([a, b], now=NOW)[0]
    assert event.relative_velocity_km_s == pytest.approx(7.5 * np.sqrt(2), abs=1e-4)


def test_stale_flag():
    old = _obj("OLD", (7000.0, 0.0, 0.0), element_age_hours=200.0)
    fresh = _obj("FRESH", (7003.0, 0.0, 0.0), element_age_hours=50.0)
    far = _obj("FAR", (9000.0, 0.0, 0.0), element_age_hours=10.0)
    near_fresh = _obj("NEAR", (7004.0, 0.0, 0.0), element_age_hours=10.0)

    events = {e.pair_key: e for e in detect_realtime([old, fresh, far, near_fresh], now=NOW)}
    assert events[("FRESH", "OLD")].stale_data
    assert events[("NEAR", "OLD")].stale_data
    assert not events[("FRESH", "NEAR")].stale_data


def test_probability_from_element_age():
    a = _obj("A", (7000.0, 0.0, 0.0), element_age_hours=24.0)
    b = _obj("B", (7001.0, 0.0, 0.0), element_age_hours=24.0)
    c = _obj("C", (7002.0, 0.0, 0.0))

    events = {e.pair_key: e for e in detect_realtime([a, b, c], now=NOW)}
    assert events[("A", "B")].uncertainty_a_km == pytest.approx(3.0)
    assert 0.0 < events[("A", "B")].collision_probability <= 1.0
    assert events[("A", "C")].collision_probability is None


def test_default_now_is_utc():
    a = _obj("A", (7000.0, 0.0, 0.0))
    b = _obj("B", (7000.5, 0.0, 0.0))
    event = detect_realtime([a, b])[0]
    assert event.tca.tzinfo is not None


@pytest.mark.parametrize("threshold", [0.0, -5.0])
def test_invalid_threshold(threshold):
    with pytest.raises(InvalidThresholdError):
        detect_realtime([], threshold)

from __future__ import annotations

import math
from collections.abc import Sequence
from datetime import datetime

import numpy as np

from orbwatch.core.objects import CollisionEvent, RiskLevel, TrackedObject, as_vector
from orbwatch.core.probability import collision_probability
from orbwatch.exceptions import InvalidThresholdError
from orbwatch.utils.constants import (
    BASE_POSITION_SIGMA_KM,
    CRITICAL_DISTANCE_KM,
    DISTANCE_DECIMALS,
    HIGH_DISTANCE_KM,
    MEDIUM_DISTANCE_KM,
    SIGMA_GROWTH_KM_PER_DAY,
    STALE_ELEMENT_AGE_HOURS,
)

_RISK_COLORS = {
    RiskLevel.CRITICAL: "#ff0000",
    RiskLevel.HIGH: "#ff4444",
    RiskLevel.MEDIUM: "#ffaa00",
    RiskLevel.LOW: "#ffdd00",
}


def risk_level(distance_km: float) -> RiskLevel:
    """
    Classify a miss distance into a discrete risk level.

    Band upper bounds are inclusive: exactly 1 km is CRITICAL,
    exactly 10 km is HIGH, exactly 25 km is MEDIUM.

    Args:
        distance_km: Minimum separation in kilometers

    Returns:
        The RiskLevel for that distance
    """
    if distance_km <= CRITICAL_DISTANCE_KM:
        return RiskLevel.CRITICAL
    elif distance_km <= HIGH_DISTANCE_KM:
        return RiskLevel.HIGH
    elif distance_km <= MEDIUM_DISTANCE_KM:
        return RiskLevel.MEDIUM
    else:
        return RiskLevel.LOW


def is_stale(element_age_hours: float | None, max_age_hours: float = STALE_ELEMENT_AGE_HOURS) -> bool:
    """True if the element set is older than ``max_age_hours``. Unknown age is not stale."""
    if element_age_hours is None:
        return False
    return element_age_hours > max_age_hours


def any_stale(*ages: float | None) -> bool:
    return any(is_stale(age) for age in ages)


def position_uncertainty_km(element_age_hours: float | None) -> float | None:
    """
    Estimate 1-sigma position uncertainty from element age.

    Propagation error grows roughly linearly with time since epoch:
    a fresh element set starts at BASE_POSITION_SIGMA_KM and gains
    SIGMA_GROWTH_KM_PER_DAY per day of age.

    Returns:
        Uncertainty in km, or None if the age is unknown
    """
    if element_age_hours is None:
        return None
    age_days = max(0.0, element_age_hours) / 24.0
    return round(BASE_POSITION_SIGMA_KM + SIGMA_GROWTH_KM_PER_DAY * age_days, 3)


def resolve_uncertainty(obj: TrackedObject) -> float | None:
    """Explicit uncertainty of a tracked object, else the age-based estimate."""
    if obj.position_uncertainty_km is not None:
        return obj.position_uncertainty_km
    return position_uncertainty_km(obj.element_age_hours)


def risk_color(level: RiskLevel) -> str:
    """Display color for a risk level."""
    return _RISK_COLORS[RiskLevel(level)]


def check_threshold(threshold_km: float) -> float:
    """Validate a proximity threshold.

    Raises:
        InvalidThresholdError: If the threshold is not a positive finite number.
    """
    try:
        value = float(threshold_km)
    except (TypeError, ValueError):
        raise InvalidThresholdError(f"Threshold must be a number, got {threshold_km!r}") from None
    if not math.isfinite(value) or value <= 0:
        raise InvalidThresholdError(f"Threshold must be positive, got {threshold_km!r}")
    return value


def build_event(
    obj_a: TrackedObject,
    obj_b: TrackedObject,
    distance_km: float,
    tca: datetime,
    position_a_km: Sequence[float],
    position_b_km: Sequence[float],
    velocity_a_km_s: Sequence[float] | None = None,
    velocity_b_km_s: Sequence[float] | None = None,
    predicted: bool = False,
) -> CollisionEvent:
    """Label a close approach with risk, probability and data-quality flags.

    The pair is stored in canonical id order regardless of argument order.
    """
    if obj_a.id > obj_b.id:
        obj_a, obj_b = obj_b, obj_a
        position_a_km, position_b_km = position_b_km, position_a_km
        velocity_a_km_s, velocity_b_km_s = velocity_b_km_s, velocity_a_km_s

    reported = round(float(distance_km), DISTANCE_DECIMALS)

    rel_vel = None
    if velocity_a_km_s is not None and velocity_b_km_s is not None:
        diff = np.asarray(velocity_a_km_s, dtype=np.float64) - np.asarray(velocity_b_km_s, dtype=np.float64)
        rel_vel = round(float(np.linalg.norm(diff)), 4)

    sigma_a = resolve_uncertainty(obj_a)
    sigma_b = resolve_uncertainty(obj_b)

    return CollisionEvent(
        object_a_id=obj_a.id,
        object_b_id=obj_b.id,
        object_a_name=obj_a.name,
        object_b_name=obj_b.name,
        distance_km=reported,
        tca=tca,
        risk_level=risk_level(distance_km),
        position_a_km=as_vector(position_a_km),
        position_b_km=as_vector(position_b_km),
        relative_velocity_km_s=rel_vel,
        collision_probability=collision_probability(distance_km, sigma_a, sigma_b),
        uncertainty_a_km=sigma_a,
        uncertainty_b_km=sigma_b,
        element_age_a_hours=obj_a.element_age_hours,
        element_age_b_hours=obj_b.element_age_hours,
        stale_data=any_stale(obj_a.element_age_hours, obj_b.element_age_hours),
        predicted=predicted,
    )

"""Propagator adapter interface and the reference SGP4 adapter."""
from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from datetime import datetime, timezone
from typing import Any

import numpy as np
from sgp4.api import WGS72, Satrec, jday
from sgp4.conveniences import sat_epoch_datetime

from orbwatch.core.objects import OrbitRegime, StateVector, TrackedObject
from orbwatch.utils.constants import (
    EARTH_MU_KM3_S2 as MU,
    EARTH_RADIUS_KM as RE,
    GEO_ALT_KM,
    GEO_BAND_KM,
    HEO_MIN_ECCENTRICITY,
    LEO_MAX_ALT_KM,
)

logger = logging.getLogger(__name__)

Propagator = Callable[[Any, datetime], "StateVector | None"]
"""Maps (orbital state handle, UTC time) to a state vector, or None if unavailable."""


def sgp4_propagator(satrec: Satrec, when: datetime) -> StateVector | None:
    """Propagate an sgp4 ``Satrec`` to a UTC datetime.

    Returns None when SGP4 reports an error (e.g. decayed orbit) or produces
    a non-finite position, so callers can skip the sample.
    """
    jd, fr = jday(when.year, when.month, when.day, when.hour, when.minute,
                  when.second + when.microsecond / 1e6)
    error_code, pos, vel = satrec.sgp4(jd, fr)
    if error_code != 0:
        logger.debug("SGP4 error code %d for satnum %s at %s", error_code, satrec.satnum, when)
        return None
    position = np.array(pos, dtype=np.float64)
    if not np.all(np.isfinite(position)):
        return None
    return StateVector(
        position_km=position,
        velocity_km_s=np.array(vel, dtype=np.float64),
        epoch=when,
    )


def sample_state(propagator: Propagator, handle: Any, when: datetime) -> StateVector | None:
    """Call a propagator for one sample, treating any failure as unavailable.

    Adapters may signal failure either by returning None or by raising
    ValueError/ArithmeticError; both exclude only this sample.
    """
    if handle is None:
        return None
    try:
        state = propagator(handle, when)
    except (ValueError, ArithmeticError) as exc:
        logger.debug("Propagation unavailable at %s: %s", when, exc)
        return None
    if state is None:
        return None
    if not np.all(np.isfinite(state.position_km)):
        return None
    return state


def refresh_positions(
    objects: Iterable[TrackedObject],
    when: datetime,
    propagator: Propagator = sgp4_propagator,
) -> list[TrackedObject]:
    """Return copies of ``objects`` with positions propagated to ``when``.

    Objects whose state cannot be propagated come back with no position.
    """
    refreshed = [obj.with_state_vector(sample_state(propagator, obj.state, when)) for obj in objects]
    missing = sum(1 for obj in refreshed if obj.position_km is None)
    if missing:
        logger.debug("refresh_positions: %d/%d objects unavailable at %s", missing, len(refreshed), when)
    return refreshed


def altitude_range(mean_motion_rad_min: float, eccentricity: float) -> tuple[float, float]:
    """Compute perigee and apogee altitude in km from mean motion and eccentricity.

    Args:
        mean_motion_rad_min: Mean motion in radians per minute (sgp4 convention).
        eccentricity: Orbital eccentricity.

    Returns:
        Tuple of (perigee_altitude_km, apogee_altitude_km).
    """
    n_rad_per_sec = mean_motion_rad_min / 60.0
    a = (MU / (n_rad_per_sec ** 2)) ** (1.0 / 3.0)
    return a * (1 - eccentricity) - RE, a * (1 + eccentricity) - RE


def classify_regime(perigee_km: float, apogee_km: float, eccentricity: float) -> OrbitRegime:
    """Classify an orbit as LEO, MEO, GEO or HEO from its altitude shell."""
    if eccentricity >= HEO_MIN_ECCENTRICITY:
        return OrbitRegime.HEO
    if apogee_km <= LEO_MAX_ALT_KM:
        return OrbitRegime.LEO
    mean_alt = (perigee_km + apogee_km) / 2.0
    if abs(mean_alt - GEO_ALT_KM) <= GEO_BAND_KM:
        return OrbitRegime.GEO
    return OrbitRegime.MEO


def tracked_object_from_tle(
    line1: str,
    line2: str,
    name: str = "",
    now: datetime | None = None,
) -> TrackedObject:
    """Build a TrackedObject backed by an SGP4 ``Satrec``.

    Args:
        line1: TLE line 1.
        line2: TLE line 2.
        name: Optional display name (line 0).
        now: Reference time for element age and initial position. Defaults to now (UTC).

    Returns:
        A TrackedObject with regime, altitude shell, element age and a
        position at ``now`` (None if SGP4 cannot propagate it).

    Raises:
        ValueError: If the TLE lines are malformed.
    """
    line1 = line1.strip()
    line2 = line2.strip()
    if len(line1) != 69 or not line1.startswith("1"):
        raise ValueError(f"Invalid TLE line 1: {line1!r}")
    if len(line2) != 69 or not line2.startswith("2"):
        raise ValueError(f"Invalid TLE line 2: {line2!r}")

    if now is None:
        now = datetime.now(timezone.utc)

    sat = Satrec.twoline2rv(line1, line2, WGS72)
    epoch = sat_epoch_datetime(sat)
    age_hours = (now - epoch).total_seconds() / 3600.0

    perigee, apogee = altitude_range(sat.no_kozai, sat.ecco)
    catalog_number = int(line1[2:7].strip())

    obj = TrackedObject(
        id=str(catalog_number),
        name=name.strip() or str(catalog_number),
        catalog_number=catalog_number,
        state=sat,
        regime=classify_regime(perigee, apogee, sat.ecco),
        element_age_hours=round(age_hours, 3),
        altitude_range_km=(perigee, apogee),
    )
    logger.debug("Tracked NORAD %d (%s, age %.1f h, %.0f-%.0f km)",
                 catalog_number, obj.regime.value, age_hours, perigee, apogee)
    return obj.with_state_vector(sgp4_propagator(sat, now))

"""Data model shared by the real-time and predictive scanners."""
from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime
from enum import Enum
from typing import Any

import numpy as np
from numpy.typing import NDArray

Vector3 = tuple[float, float, float]


class OrbitRegime(str, Enum):
    """Orbit classification tag."""

    LEO = "LEO"
    MEO = "MEO"
    GEO = "GEO"
    HEO = "HEO"
    UNKNOWN = "UNKNOWN"


class RiskLevel(str, Enum):
    """Discrete collision risk, ordered from least to most severe."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class PredictionPhase(str, Enum):
    """Phase tag reported while a predictive scan runs."""

    FILTERING = "filtering"
    COARSE = "coarse"
    REFINING = "refining"
    COMPLETE = "complete"


def as_vector(values: Any) -> Vector3:
    """Convert any 3-element sequence into an immutable float tuple."""
    x, y, z = (float(v) for v in values)
    return (x, y, z)


@dataclass(frozen=True)
class StateVector:
    """Position and optional velocity returned by a propagator.

    Attributes:
        position_km: [x, y, z] position in km, inertial frame.
        velocity_km_s: [vx, vy, vz] velocity in km/s, if the propagator provides it.
        epoch: Time of this state vector.
    """

    position_km: NDArray[np.float64]  # shape (3,)
    velocity_km_s: NDArray[np.float64] | None = None  # shape (3,)
    epoch: datetime | None = None


@dataclass(frozen=True)
class TrackedObject:
    """An orbiting object as seen by the scanners.

    The orbital ``state`` handle is the source of truth; ``position_km`` and
    ``velocity_km_s`` are a derived cache refreshed by an external loop.

    Attributes:
        id: Unique identifier.
        name: Display name.
        catalog_number: NORAD catalog number, if known.
        state: Opaque handle understood by the propagator.
        regime: Orbit regime classification.
        position_km: Last-known position in km, or None if unresolved.
        velocity_km_s: Last-known velocity in km/s.
        element_age_hours: Hours since the orbital state was refreshed.
        altitude_range_km: (perigee, apogee) altitude in km, for pre-filtering.
        position_uncertainty_km: 1-sigma position uncertainty in km.
    """

    id: str
    name: str = ""
    catalog_number: int | None = None
    state: Any = None
    regime: OrbitRegime = OrbitRegime.UNKNOWN
    position_km: Vector3 | None = None
    velocity_km_s: Vector3 | None = None
    element_age_hours: float | None = None
    altitude_range_km: tuple[float, float] | None = None
    position_uncertainty_km: float | None = None

    def with_state_vector(self, state: StateVector | None) -> TrackedObject:
        """Return a copy carrying a freshly propagated position.

        A ``None`` state clears the cached position.
        """
        if state is None:
            return replace(self, position_km=None, velocity_km_s=None)
        velocity = None if state.velocity_km_s is None else as_vector(state.velocity_km_s)
        return replace(self, position_km=as_vector(state.position_km), velocity_km_s=velocity)


@dataclass(frozen=True)
class CollisionEvent:
    """A close approach between two tracked objects.

    Pair identity is order independent: ``object_a_id`` always sorts before
    ``object_b_id``.

    Attributes:
        object_a_id: Id of the first object of the pair.
        object_b_id: Id of the second object of the pair.
        object_a_name: Display name of the first object.
        object_b_name: Display name of the second object.
        distance_km: Minimum separation found, in km.
        tca: Time of closest approach.
        risk_level: Discrete risk derived from distance_km.
        position_a_km: Position of the first object at TCA.
        position_b_km: Position of the second object at TCA.
        relative_velocity_km_s: Relative speed at TCA, if velocities are known.
        collision_probability: Probability in [0, 1], None when uncertainty is unknown.
        uncertainty_a_km: 1-sigma position uncertainty of the first object.
        uncertainty_b_km: 1-sigma position uncertainty of the second object.
        element_age_a_hours: Element age of the first object.
        element_age_b_hours: Element age of the second object.
        stale_data: True if either object's elements exceed the staleness age.
        predicted: True for events produced by the look-ahead scan.
    """

    object_a_id: str
    object_b_id: str
    object_a_name: str
    object_b_name: str
    distance_km: float
    tca: datetime
    risk_level: RiskLevel
    position_a_km: Vector3
    position_b_km: Vector3
    relative_velocity_km_s: float | None = None
    collision_probability: float | None = None
    uncertainty_a_km: float | None = None
    uncertainty_b_km: float | None = None
    element_age_a_hours: float | None = None
    element_age_b_hours: float | None = None
    stale_data: bool = False
    predicted: bool = False

    @property
    def pair_key(self) -> tuple[str, str]:
        return (self.object_a_id, self.object_b_id)

    @property
    def event_id(self) -> str:
        suffix = "-pred" if self.predicted else ""
        return f"{self.object_a_id}-{self.object_b_id}{suffix}"

    def sort_key(self) -> tuple[float, str, str]:
        return (self.distance_km, self.object_a_id, self.object_b_id)


@dataclass(frozen=True)
class PredictionProgress:
    """Progress snapshot of one predictive scan.

    Attributes:
        phase: Current phase.
        percent: Percent complete, 0-100.
        message: Human-readable status.
    """

    phase: PredictionPhase
    percent: int
    message: str

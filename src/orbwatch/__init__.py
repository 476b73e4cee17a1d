"""
orbwatch — Conjunction assessment for tracked constellations.

Real-time proximity scanning and 24-hour predictive close-approach
search over a set of orbiting objects, with risk levels, collision
probability and stale-data flags on every event.
"""

from __future__ import annotations

__version__ = "0.1.0-dev"

from orbwatch.core.objects import (
    CollisionEvent,
    OrbitRegime,
    PredictionPhase,
    PredictionProgress,
    RiskLevel,
    StateVector,
    TrackedObject,
)
from orbwatch.core.propagation import Propagator, refresh_positions, sgp4_propagator, tracked_object_from_tle
from orbwatch.core.realtime import detect_realtime
from orbwatch.core.prediction import predict_horizon
from orbwatch.core.risk import is_stale, position_uncertainty_km, risk_level
from orbwatch.core.probability import PcMethod, collision_probability, format_probability, probability_color
from orbwatch.core.coverage import (
    COVERAGE_CONFIGS,
    CoverageConfiguration,
    effective_object_count,
    get_coverage_config,
)
from orbwatch.core.runner import PredictionRunner
from orbwatch.exceptions import (
    ConfigurationError,
    InvalidThresholdError,
    OrbwatchError,
    PredictionCancelled,
    UnknownCoverageModeError,
)

__all__ = [
    "__version__",
    "CollisionEvent",
    "OrbitRegime",
    "PredictionPhase",
    "PredictionProgress",
    "RiskLevel",
    "StateVector",
    "TrackedObject",
    "Propagator",
    "refresh_positions",
    "sgp4_propagator",
    "tracked_object_from_tle",
    "detect_realtime",
    "predict_horizon",
    "is_stale",
    "position_uncertainty_km",
    "risk_level",
    "PcMethod",
    "collision_probability",
    "format_probability",
    "probability_color",
    "COVERAGE_CONFIGS",
    "CoverageConfiguration",
    "effective_object_count",
    "get_coverage_config",
    "PredictionRunner",
    "ConfigurationError",
    "InvalidThresholdError",
    "OrbwatchError",
    "PredictionCancelled",
    "UnknownCoverageModeError",
]

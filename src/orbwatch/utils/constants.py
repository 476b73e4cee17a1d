from __future__ import annotations

"""Physical constants and default thresholds for conjunction assessment.

Distances in km and times in hours/minutes/seconds as named.
"""

# --- Earth parameters (WGS-84) ---
EARTH_RADIUS_KM: float = 6378.137
"""Equatorial radius of Earth in km."""

EARTH_MU_KM3_S2: float = 398600.4418
"""Earth gravitational parameter (GM) in km³/s²."""

# --- Rendering units ---
SCENE_UNITS_PER_KM: float = 1.0 / 1000.0
"""Scene (rendering) units per km. A scene position of 1.0 is 1000 km."""

# --- Default screening thresholds ---
DEFAULT_THRESHOLD_KM: float = 50.0
"""Default proximity threshold for both scanners in km."""

PREDICTION_HORIZON_HOURS: float = 24.0
"""Look-ahead window for the predictive scan."""

COARSE_STEP_MINUTES: float = 15.0
"""Coarse sampling interval (96 samples across 24 hours)."""

REFINE_STEP_SECONDS: float = 60.0
"""Initial step of the fine refinement search."""

REFINE_MIN_STEP_SECONDS: float = 1.0
"""Refinement stops once the step falls below this."""

REFINE_GATE_SAFETY: float = 2.0
"""Margin on the relative-speed bound used to skip refinement of distant pairs."""

MAX_PREDICTED_EVENTS: int = 50
"""Maximum number of events returned by a predictive scan."""

DISTANCE_DECIMALS: int = 2
"""Reported distances are rounded to this many decimals."""

# --- Risk bands (inclusive upper bounds) ---
CRITICAL_DISTANCE_KM: float = 1.0
HIGH_DISTANCE_KM: float = 10.0
MEDIUM_DISTANCE_KM: float = 25.0

# --- Element age ---
STALE_ELEMENT_AGE_HOURS: float = 168.0
"""Element sets older than this (7 days) are flagged as stale."""

BASE_POSITION_SIGMA_KM: float = 1.0
"""1-sigma position uncertainty of a freshly updated element set."""

SIGMA_GROWTH_KM_PER_DAY: float = 2.0
"""Growth of the 1-sigma position uncertainty per day of element age."""

# --- Orbit regime boundaries ---
LEO_MAX_ALT_KM: float = 2000.0
"""Maximum altitude for Low Earth Orbit in km."""

GEO_ALT_KM: float = 35786.0
"""Geostationary orbit altitude in km."""

GEO_BAND_KM: float = 500.0
"""Half-width of the altitude band treated as geosynchronous."""

HEO_MIN_ECCENTRICITY: float = 0.25
"""Orbits at or above this eccentricity are classed as highly elliptical."""

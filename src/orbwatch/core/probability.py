"""Collision probability estimation.

Maps a miss distance and the 1-sigma position uncertainty of both objects
to a probability in [0, 1]. Unknown uncertainty yields ``None``, which is
distinct from a negligible probability.
"""

from __future__ import annotations

import logging
import math
from enum import Enum

import numpy as np
from scipy.integrate import dblquad
from scipy.stats import rayleigh

logger = logging.getLogger(__name__)


class PcMethod(Enum):
    """Collision probability calculation methods."""

    GAUSSIAN_OVERLAP = "gaussian_overlap"
    FOSTER_1992 = "foster_1992"


def combined_sigma(sigma_a_km: float, sigma_b_km: float) -> float:
    """Combined 1-sigma uncertainty of two independent position errors."""
    return math.hypot(sigma_a_km, sigma_b_km)


def gaussian_overlap_pc(miss_distance_km: float, sigma_km: float) -> float:
    """Probability that the error ellipses overlap at the given miss distance.

    With an isotropic 2D Gaussian of combined sigma, the chance that the
    relative position error is at least as large as the miss distance is
    the Rayleigh survival function, ``exp(-d² / 2σ²)``. It is 1 at zero miss
    and grows with sigma for any fixed miss distance.

    Args:
        miss_distance_km: Miss distance (km)
        sigma_km: Combined 1-sigma uncertainty (km)

    Returns:
        Probability (0 to 1)
    """
    miss = max(0.0, float(miss_distance_km))
    if sigma_km <= 0:
        return 1.0 if miss == 0 else 0.0
    return float(np.clip(rayleigh.sf(miss, scale=sigma_km), 0.0, 1.0))


def compute_pc_foster(
    miss_distance_km: float,
    sigma_km: float,
    hard_body_radius_km: float,
) -> float:
    """Compute Pc via numerical integration of bivariate normal over hard-body disk.

    The combined covariance is isotropic (``sigma_km²`` on both axes) and the
    miss vector lies along the first B-plane axis.

    Args:
        miss_distance_km: Miss distance (km)
        sigma_km: Combined 1-sigma uncertainty (km)
        hard_body_radius_km: Combined hard-body radius (km)

    Returns:
        Collision probability (0 to 1)
    """
    if sigma_km <= 0:
        return 1.0 if miss_distance_km <= hard_body_radius_km else 0.0

    variance = sigma_km ** 2
    norm_factor = 1.0 / (2.0 * np.pi * variance)

    def integrand_polar(theta, r):
        x = r * np.cos(theta) - miss_distance_km
        y = r * np.sin(theta)
        return norm_factor * np.exp(-0.5 * (x * x + y * y) / variance) * r

    result, _error = dblquad(
        integrand_polar,
        0.0, hard_body_radius_km,
        lambda r: 0.0, lambda r: 2.0 * np.pi,
        epsabs=1e-12, epsrel=1e-6,
    )
    return float(np.clip(result, 0.0, 1.0))


def collision_probability(
    miss_distance_km: float,
    sigma_a_km: float | None,
    sigma_b_km: float | None,
    method: PcMethod = PcMethod.GAUSSIAN_OVERLAP,
    hard_body_radius_m: float = 20.0,
) -> float | None:
    """Main entry point. Compute collision probability for a close approach.

    Args:
        miss_distance_km: Miss distance (km)
        sigma_a_km: 1-sigma position uncertainty of the first object, or None
        sigma_b_km: 1-sigma position uncertainty of the second object, or None
        method: Calculation method
        hard_body_radius_m: Combined hard-body radius in meters (Foster only)

    Returns:
        Probability in [0, 1], or None when either uncertainty is unknown.
    """
    if sigma_a_km is None or sigma_b_km is None:
        return None

    sigma = combined_sigma(sigma_a_km, sigma_b_km)

    if method == PcMethod.GAUSSIAN_OVERLAP:
        pc = gaussian_overlap_pc(miss_distance_km, sigma)
    elif method == PcMethod.FOSTER_1992:
        pc = compute_pc_foster(miss_distance_km, sigma, hard_body_radius_m / 1000.0)
    else:
        raise ValueError(f"Unknown method: {method}")

    logger.debug("Pc computation complete: method=%s, miss=%.3f km, sigma=%.3f km, Pc=%.2e",
                 method.value, miss_distance_km, sigma, pc)
    return pc


def format_probability(probability: float | None) -> str:
    """Format a probability for display."""
    if probability is None:
        return "N/A"
    if probability < 1e-6:
        return "<1e-6"
    if probability >= 0.01:
        return f"{probability * 100:.1f}%"
    return f"{probability:.1e}"


def probability_color(probability: float | None) -> str:
    """Display color for a collision probability.

    Bands follow common operator practice: 1e-4 and above calls for a
    maneuver decision, 1e-5 and above for closer monitoring.
    """
    if probability is None:
        return "#888888"
    if probability >= 1e-4:
        return "#ff0000"
    if probability >= 1e-5:
        return "#ffaa00"
    return "#00cc66"

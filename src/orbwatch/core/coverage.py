"""Coverage modes bounding the cost of a predictive scan."""
from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from typing import TypeVar

from orbwatch.exceptions import UnknownCoverageModeError
from orbwatch.utils.constants import COARSE_STEP_MINUTES, REFINE_STEP_SECONDS

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_COVERAGE_MODE = "standard"


@dataclass(frozen=True)
class CoverageConfiguration:
    """A named predictive-scan policy.

    Attributes:
        name: Lookup key.
        label: Short display label.
        description: Human-readable description.
        max_objects: Maximum number of input objects, or None for no cap.
        max_candidate_pairs: Pair budget after pre-filtering.
        coarse_step_minutes: Coarse sampling interval.
        refine_step_seconds: Initial step of the refinement search.
        shell_margin_km: Extra slack added to altitude shells in the pre-filter.
    """

    name: str
    label: str
    description: str
    max_objects: int | None
    max_candidate_pairs: int
    coarse_step_minutes: float = COARSE_STEP_MINUTES
    refine_step_seconds: float = REFINE_STEP_SECONDS
    shell_margin_km: float = 50.0

    @property
    def is_capped(self) -> bool:
        return self.max_objects is not None


COVERAGE_CONFIGS: dict[str, CoverageConfiguration] = {
    "quick": CoverageConfiguration(
        name="quick",
        label="Quick",
        description="Fast scan of the first 100 objects",
        max_objects=100,
        max_candidate_pairs=5_000,
    ),
    "standard": CoverageConfiguration(
        name="standard",
        label="Standard",
        description="Balanced scan of up to 200 objects",
        max_objects=200,
        max_candidate_pairs=20_000,
    ),
    "extended": CoverageConfiguration(
        name="extended",
        label="Extended",
        description="Broad scan of up to 500 objects",
        max_objects=500,
        max_candidate_pairs=125_000,
    ),
    "full": CoverageConfiguration(
        name="full",
        label="Full",
        description="Every tracked object; may take several minutes",
        max_objects=None,
        max_candidate_pairs=2_000_000,
    ),
}


def get_coverage_config(mode: str | CoverageConfiguration) -> CoverageConfiguration:
    """Resolve a coverage mode name.

    Raises:
        UnknownCoverageModeError: If ``mode`` is not a known mode name.
    """
    if isinstance(mode, CoverageConfiguration):
        return mode
    try:
        return COVERAGE_CONFIGS[mode]
    except (KeyError, TypeError):
        raise UnknownCoverageModeError(str(mode), list(COVERAGE_CONFIGS)) from None


def effective_object_count(mode: str | CoverageConfiguration, total: int) -> int:
    """Number of objects a predictive scan will process out of ``total``."""
    config = get_coverage_config(mode)
    if config.max_objects is None:
        return total
    return min(config.max_objects, total)


def clip_objects(objects: Sequence[T], mode: str | CoverageConfiguration) -> list[T]:
    """Keep at most the mode's object cap, preserving the caller's order."""
    count = effective_object_count(mode, len(objects))
    if count < len(objects):
        logger.debug("Coverage mode %r clipped %d objects to %d",
                     get_coverage_config(mode).name, len(objects), count)
    return list(objects[:count])

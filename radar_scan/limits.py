"""
Validation of spatial limits shared by the projector and the region generator.

Invalid limits are replaced by a safe default and reported as a warning;
they are never passed through.
"""
import logging
from typing import Sequence, Tuple
import numpy as np

logger = logging.getLogger(__name__)

DEFAULT_CROSS_RANGE_LIMITS: Tuple[float, float] = (-20.0, 20.0)
DEFAULT_DOWN_RANGE_LIMITS: Tuple[float, float] = (1.0, 30.0)


def limits_are_valid(limits) -> bool:
    """True for a finite pair (min, max) with min < max."""
    try:
        values = np.asarray(limits, dtype=float)
    except (TypeError, ValueError):
        return False
    if values.shape != (2,):
        return False
    return bool(np.all(np.isfinite(values)) and values[0] < values[1])


def validate_limits(limits: Sequence[float],
                    default: Tuple[float, float],
                    name: str = "limits") -> Tuple[float, float]:
    """
    Return limits as a (min, max) pair, substituting the default if invalid.

    Args:
        limits: Candidate [min, max] pair
        default: Pair used when ``limits`` is not a finite, increasing pair
        name: Label used in the warning

    Returns:
        Tuple of (min, max)
    """
    if limits_are_valid(limits):
        lo, hi = np.asarray(limits, dtype=float)
        return float(lo), float(hi)

    logger.warning("Invalid %s %r, defaulting to [%g, %g]", name, limits, default[0], default[1])
    return float(default[0]), float(default[1])

"""
Coordinate transformation functions for automotive radar detections.

Sensor frame: y is down-range along the boresight, x is cross-range. The
sensor reports azimuth positive to the left, so cross-range is
``x = -range * tan(azimuth)``.
"""
import numpy as np
from typing import Tuple


def polar_to_cartesian(range_m, azimuth_rad, azimuth_shift_rad: float = 0.0) -> Tuple[np.ndarray, np.ndarray]:
    """
    Convert sensor polar measurements to scene Cartesian coordinates.

    Args:
        range_m: Range distance(s) in meters
        azimuth_rad: Azimuth angle(s) in radians
        azimuth_shift_rad: Mounting offset added to every azimuth (radians)

    Returns:
        Tuple of (x, y) in meters; x is cross-range, y is down-range

    Note:
        Down-range is the measured range itself, not its projection on the
        boresight.
    """
    range_m = np.asarray(range_m, dtype=float)
    azimuth_rad = np.asarray(azimuth_rad, dtype=float)
    with np.errstate(invalid='ignore', over='ignore'):
        x = -range_m * np.tan(azimuth_rad + azimuth_shift_rad)
    y = range_m.copy()
    return x, y


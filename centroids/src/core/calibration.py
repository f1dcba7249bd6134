"""Summed intensity to photon count conversion."""

from __future__ import annotations

import math
from typing import Optional

from centroids.src.core.types import ParameterSet


def _truncated_count(signal: float, divisor: float) -> int:
    # int() truncates toward zero
    return int(signal / divisor)


class PhotonCalibrator:
    def calibrate(self, total: float, params: ParameterSet) -> Optional[int]:
        """
        Photon count for a window sum, or None to reject the event.
        Bounds are inclusive; sums at or below the window background floor
        are rejected rather than accepted with zero photons.
        """
        if math.isnan(total) or total < params.sum_min or total > params.sum_max:
            return None
        signal = total - params.background_floor
        if signal <= 0.0:
            return None
        count = _truncated_count(signal, params.com_photon_num)
        if count <= 0:
            return None
        return count

    def pixel_count(self, value: float, params: ParameterSet) -> int:
        """Single-pixel calibration of a peak value (never negative)."""
        signal = float(value) - params.pixel_bgnd_num
        if signal <= 0.0:
            return 0
        return _truncated_count(signal, params.pixel_photon_num)

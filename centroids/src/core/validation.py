"""Consistency checks for a ParameterSet; never touches pixel data."""

from __future__ import annotations

import math
import numbers
from typing import Optional

import numpy as np

from centroids.src.core.fitting import FIT_ESTIMATORS
from centroids.src.core.types import ParameterSet, PixelStore, ValidationResult

OK = ValidationResult(True)

_INTEGER_FIELDS = ("box", "search_box", "overlap_max", "n", "x", "y")
_REAL_FIELDS = ("threshold", "com_photon_num", "pixel_photon_num", "pixel_bgnd_num", "sum_min", "sum_max")


def _error(msg: str) -> ValidationResult:
    return ValidationResult(False, msg)


def _is_integer(value) -> bool:
    return isinstance(value, (int, np.integer)) and not isinstance(value, bool)


def _is_real(value) -> bool:
    return isinstance(value, (numbers.Real, np.number)) and not isinstance(value, bool)


class ParameterValidator:
    def validate(self, params: ParameterSet, frame: Optional[np.ndarray] = None) -> ValidationResult:
        """
        Check parameters (and optionally the frame geometry) before any scan.
        Malformed input is reported through the result, never raised.
        """
        for name in _INTEGER_FIELDS:
            value = getattr(params, name)
            if not _is_integer(value):
                return _error(f"{name} must be an integer (got {value!r})")
        for name in _REAL_FIELDS:
            value = getattr(params, name)
            if not _is_real(value):
                return _error(f"{name} must be a number (got {value!r})")

        if params.box <= 0 or params.search_box <= 0:
            return _error(f"box ({params.box}) and search_box ({params.search_box}) must be positive")
        if params.box > params.search_box:
            return _error(f"box ({params.box}) must not exceed search_box ({params.search_box})")
        if params.x <= 0 or params.y <= 0:
            return _error(f"frame dimensions must be positive (x={params.x}, y={params.y})")
        if params.n < 1:
            return _error(f"n must be at least 1 (got {params.n})")
        if math.isnan(params.sum_min) or math.isnan(params.sum_max):
            return _error("sum_min/sum_max must be numbers")
        if params.sum_min > params.sum_max:
            return _error(f"sum_min ({params.sum_min}) exceeds sum_max ({params.sum_max})")
        if params.com_photon_num <= 0 or params.pixel_photon_num <= 0:
            return _error("photon calibration divisors must be positive")
        if params.pixel_bgnd_num < 0:
            return _error(f"pixel_bgnd_num must be non-negative (got {params.pixel_bgnd_num})")
        if params.overlap_max < 1:
            return _error(f"overlap_max must be at least 1 (got {params.overlap_max})")

        try:
            unknown = [m for m in params.fit_pixels if m not in FIT_ESTIMATORS]
        except TypeError:
            return _error(f"fit_pixels must be a set of fit modes or a bitmask (got {params.fit_pixels!r})")
        if unknown:
            return _error(f"no fit routine available for {unknown}")
        try:
            PixelStore(params.return_pixels)
        except ValueError:
            return _error(f"unknown pixel store mode {params.return_pixels!r}")

        if frame is not None:
            return self.validate_frame(params, frame)
        return OK

    @staticmethod
    def validate_frame(params: ParameterSet, frame: np.ndarray) -> ValidationResult:
        if frame.ndim == 2:
            expected = (params.y, params.x)
            if params.n != 1:
                return _error(f"2D frame given but n={params.n}")
        elif frame.ndim == 3:
            expected = (params.n, params.y, params.x)
        else:
            return _error(f"expected a 2D frame or 3D stack, got {frame.ndim}D")
        if tuple(frame.shape) != expected:
            return _error(f"frame shape {tuple(frame.shape)} does not match {expected}")
        if not (np.issubdtype(frame.dtype, np.integer) or np.issubdtype(frame.dtype, np.floating)):
            return _error(f"unsupported pixel type {frame.dtype}")
        return OK

"""Window extraction and sub-pixel position estimates around a seed."""

from __future__ import annotations

from typing import Callable, Optional

import numpy as np

from centroids.src.core.types import (
    FIT_MODE_ORDER,
    EventCandidate,
    FitEstimate,
    FitMode,
    ParameterSet,
    Seed,
)


def _weighted_mean(profile: np.ndarray) -> Optional[float]:
    total = float(profile.sum(dtype=np.float64))
    if total <= 0.0:
        return None
    idx = np.arange(profile.size, dtype=np.float64)
    return float(np.dot(profile, idx) / total)


def com_2d(window: np.ndarray) -> tuple[Optional[float], Optional[float]]:
    """Intensity weighted centre of mass over the whole window (local coords)."""
    total = float(window.sum(dtype=np.float64))
    if total <= 0.0:
        return None, None
    h, w = window.shape
    cx = float(np.dot(window.sum(axis=0, dtype=np.float64), np.arange(w, dtype=np.float64)) / total)
    cy = float(np.dot(window.sum(axis=1, dtype=np.float64), np.arange(h, dtype=np.float64)) / total)
    return cx, cy


def marginal_x(window: np.ndarray) -> tuple[Optional[float], Optional[float]]:
    return _weighted_mean(window.sum(axis=0, dtype=np.float64)), None


def marginal_y(window: np.ndarray) -> tuple[Optional[float], Optional[float]]:
    return None, _weighted_mean(window.sum(axis=1, dtype=np.float64))


FIT_ESTIMATORS: dict[FitMode, Callable[[np.ndarray], tuple[Optional[float], Optional[float]]]] = {
    FitMode.COM_2D: com_2d,
    FitMode.MARGINAL_1D_X: marginal_x,
    FitMode.MARGINAL_1D_Y: marginal_y,
}


def window_bounds(seed: Seed, box: int, shape: tuple[int, int]) -> Optional[tuple[int, int, int, int]]:
    """(x0, y0, x1, y1) of the fitting window, or None if it leaves the frame."""
    h, w = shape
    x0, y0 = seed.x - box, seed.y - box
    x1, y1 = seed.x + box + 1, seed.y + box + 1
    if x0 < 0 or y0 < 0 or x1 > w or y1 > h:
        return None
    return x0, y0, x1, y1


class CentroidFitter:
    def fit(self, img: np.ndarray, seed: Seed, params: ParameterSet) -> Optional[EventCandidate]:
        """
        Fit one seed. Returns None when the window would be clipped by the
        frame edge; edge events are never partially fit.
        """
        bounds = window_bounds(seed, params.box, img.shape)
        if bounds is None:
            return None
        x0, y0, x1, y1 = bounds
        window = img[y0:y1, x0:x1]
        weights = window.astype(np.float64)
        total = float(weights.sum(dtype=np.float64))

        estimates = []
        for mode in FIT_MODE_ORDER:
            if mode not in params.fit_pixels:
                continue
            lx, ly = FIT_ESTIMATORS[mode](weights)
            if mode is FitMode.COM_2D:
                # Empty window: fall back to the seed pixel centre.
                lx = params.box if lx is None else lx
                ly = params.box if ly is None else ly
            elif mode is FitMode.MARGINAL_1D_X and lx is None:
                lx = params.box
            elif mode is FitMode.MARGINAL_1D_Y and ly is None:
                ly = params.box
            estimates.append(
                FitEstimate(
                    mode,
                    None if lx is None else x0 + lx,
                    None if ly is None else y0 + ly,
                )
            )

        x, y = self.primary_position(seed, estimates)
        return EventCandidate(seed, x, y, total, tuple(estimates), window)

    @staticmethod
    def primary_position(seed: Seed, estimates: list[FitEstimate]) -> tuple[float, float]:
        """2D estimate if present, else per-axis 1D estimates, else the seed pixel."""
        x, y = float(seed.x), float(seed.y)
        by_mode = {est.mode: est for est in estimates}
        if FitMode.COM_2D in by_mode:
            est = by_mode[FitMode.COM_2D]
            return est.x, est.y
        if FitMode.MARGINAL_1D_X in by_mode:
            x = by_mode[FitMode.MARGINAL_1D_X].x
        if FitMode.MARGINAL_1D_Y in by_mode:
            y = by_mode[FitMode.MARGINAL_1D_Y].y
        return x, y

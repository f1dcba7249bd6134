"""Non-maximum suppression pass that turns a frame into candidate seeds."""

from __future__ import annotations

from typing import Iterator, Optional

import numpy as np

from centroids.src.core.types import ParameterSet, Seed


def local_maxima_mask(img: np.ndarray, threshold: float, radius: int) -> np.ndarray:
    """
    Boolean map of pixels >= threshold that are the strict maximum of the
    (2*radius+1)^2 square around them. On plateaus the first pixel in
    row-major order wins: earlier neighbours must be strictly lower, later
    ones lower or equal. The neighbourhood is clipped at the frame edges.
    """
    h, w = img.shape
    data = img.astype(np.float64, copy=False)
    mask = data >= threshold
    if radius <= 0 or not mask.any():
        return mask

    r = int(radius)
    padded = np.full((h + 2 * r, w + 2 * r), -np.inf, dtype=np.float64)
    padded[r:r + h, r:r + w] = data

    for dy in range(-r, r + 1):
        for dx in range(-r, r + 1):
            if dy == 0 and dx == 0:
                continue
            nb = padded[r + dy:r + dy + h, r + dx:r + dx + w]
            if (dy, dx) < (0, 0):
                mask &= nb < data
            else:
                mask &= nb <= data
    return mask


class SeedSequence:
    """Lazy, restartable view of the seeds of one frame."""

    def __init__(self, img: np.ndarray, threshold: float, radius: int, frame: int = 0):
        self._img = img
        self._threshold = threshold
        self._radius = radius
        self._frame = frame
        self._coords: Optional[tuple[np.ndarray, np.ndarray]] = None

    def _locate(self) -> tuple[np.ndarray, np.ndarray]:
        if self._coords is None:
            # np.nonzero walks the mask in row-major order
            self._coords = np.nonzero(local_maxima_mask(self._img, self._threshold, self._radius))
        return self._coords

    def __iter__(self) -> Iterator[Seed]:
        ys, xs = self._locate()
        for y, x in zip(ys.tolist(), xs.tolist()):
            yield Seed(x, y, float(self._img[y, x]), self._frame)

    def __len__(self) -> int:
        return int(self._locate()[0].size)


class NeighborhoodScanner:
    def scan(self, img: np.ndarray, params: ParameterSet, frame: int = 0) -> SeedSequence:
        return SeedSequence(img, params.threshold, params.search_box, frame)

import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional

import numpy as np

from centroids.config import Config

logger = logging.getLogger(__name__)


class FrameSource(ABC):
    @abstractmethod
    def get_frame(self) -> Optional[np.ndarray]: pass
    @abstractmethod
    def close(self) -> None: pass
    @property
    @abstractmethod
    def frames_delivered(self) -> int: pass


class MockDetector(FrameSource):
    """Electron-counting sensor simulation: sparse Gaussian footprints on read noise."""

    def __init__(self, config: Config = Config(), seed: Optional[int] = None):
        logger.info("Initializing MOCK detector (%dx%d)", config.SIM_WIDTH, config.SIM_HEIGHT)
        self.config = config
        self.rng = np.random.default_rng(seed)
        self.width = int(config.SIM_WIDTH)
        self.height = int(config.SIM_HEIGHT)
        self.yy, self.xx = np.mgrid[0:self.height, 0:self.width]
        self._count = 0
        self.last_truth: np.ndarray = np.empty((0, 2))

    @property
    def frames_delivered(self) -> int: return self._count

    def get_frame(self) -> Optional[np.ndarray]:
        cfg = self.config
        n_events = self.rng.poisson(cfg.SIM_EVENTS_PER_FRAME)
        xs = self.rng.uniform(0, self.width - 1, n_events)
        ys = self.rng.uniform(0, self.height - 1, n_events)
        self.last_truth = np.column_stack([xs, ys])

        img = np.zeros((self.height, self.width), dtype=np.float64)
        sigma = max(float(cfg.SIM_SPOT_SIGMA_PX), 1e-3)
        norm = 1.0 / (2.0 * np.pi * sigma ** 2)
        half = int(np.ceil(4 * sigma))
        for cx, cy in self.last_truth:
            # Only evaluate a small patch per event
            x0, x1 = max(0, int(cx) - half), min(self.width, int(cx) + half + 1)
            y0, y1 = max(0, int(cy) - half), min(self.height, int(cy) + half + 1)
            dx = self.xx[y0:y1, x0:x1] - cx
            dy = self.yy[y0:y1, x0:x1] - cy
            img[y0:y1, x0:x1] += cfg.SIM_ADU_PER_PHOTON * norm * np.exp(-(dx ** 2 + dy ** 2) / (2 * sigma ** 2))

        img += cfg.SIM_OFFSET + self.rng.normal(0, cfg.SIM_READ_NOISE, img.shape)
        self._count += 1
        return np.clip(img, 0, np.iinfo(np.uint16).max).astype(np.uint16)

    def close(self) -> None:
        logger.info("MOCK detector closed after %d frames.", self._count)


class NpyFrameSource(FrameSource):
    """Replays a (n, y, x) or (y, x) stack saved with numpy.save."""

    def __init__(self, path: Path, loop: bool = False):
        self.path = Path(path)
        data = np.load(self.path, mmap_mode="r")
        self.stack = data if data.ndim == 3 else data[np.newaxis]
        self.loop = loop
        self._index = 0
        self._count = 0
        logger.info("Loaded %d frames from %s", len(self.stack), self.path)

    @property
    def frames_delivered(self) -> int: return self._count

    def get_frame(self) -> Optional[np.ndarray]:
        if self._index >= len(self.stack):
            if not self.loop or len(self.stack) == 0:
                return None
            self._index = 0
        frame = np.array(self.stack[self._index])
        self._index += 1
        self._count += 1
        return frame

    def close(self) -> None:
        pass

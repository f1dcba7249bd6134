"""Application configuration with simple JSON persistence."""

from __future__ import annotations

import json
import logging
from dataclasses import asdict, dataclass, fields
from pathlib import Path
from typing import Optional

from centroids.src.core.types import FitMode, ParameterSet, PixelStore

logger = logging.getLogger(__name__)

_TRUE_STRINGS = {"1", "true", "yes", "on"}
_FALSE_STRINGS = {"0", "false", "no", "off"}


@dataclass
class Config:
    # Detection
    THRESHOLD: int = 100
    BOX: int = 2
    SEARCH_BOX: int = 3
    OVERLAP_MAX: int = 1

    # Photon calibration (ADU)
    PIXEL_PHOTON: int = 300
    PIXEL_BGND: int = 0
    PIXEL_COM: int = 800
    SUM_MIN: float = 0.0
    SUM_MAX: float = 1.0e9

    # Fit modes
    FIT_2D: bool = True
    FIT_1D_X: bool = False
    FIT_1D_Y: bool = False

    # Output
    RETURN_MAP: bool = True
    RETURN_PIXELS: bool = False

    # Simulated detector
    SIM_WIDTH: int = 256
    SIM_HEIGHT: int = 256
    SIM_EVENTS_PER_FRAME: float = 20.0
    SIM_ADU_PER_PHOTON: float = 1000.0
    SIM_SPOT_SIGMA_PX: float = 0.7
    SIM_READ_NOISE: float = 3.0
    SIM_OFFSET: int = 0

    @staticmethod
    def default_path() -> Path:
        return Path.home() / ".centroids_config.json"

    @classmethod
    def load(cls, path: Optional[Path] = None) -> "Config":
        cfg = cls()
        cfg_path = path or cls.default_path()
        if not cfg_path.exists():
            return cfg

        try:
            data = json.loads(cfg_path.read_text())
        except Exception:
            logger.exception("Failed to read config file: %s", cfg_path)
            return cfg

        for f in fields(cfg):
            if f.name not in data:
                continue
            try:
                setattr(cfg, f.name, cls.coerce(f.name, data[f.name]))
            except (TypeError, ValueError):
                logger.warning("Ignoring invalid config value for %s", f.name)

        cfg.normalize()
        return cfg

    @classmethod
    def coerce(cls, name: str, raw):
        types = {f.name: f.type for f in fields(cls)}
        if name not in types:
            raise KeyError(name)
        # Annotations are strings under postponed evaluation.
        ftype = types[name]
        if ftype in (bool, "bool"):
            return cls._parse_bool(raw)
        if ftype in (int, "int"):
            return int(raw)
        if ftype in (float, "float"):
            return float(raw)
        return raw

    @staticmethod
    def _parse_bool(raw) -> bool:
        if isinstance(raw, str):
            text = raw.strip().lower()
            if text in _TRUE_STRINGS:
                return True
            if text in _FALSE_STRINGS:
                return False
            raise ValueError(f"not a boolean: {raw!r}")
        return bool(raw)

    def save(self, path: Optional[Path] = None) -> None:
        cfg_path = path or self.default_path()
        cfg_path.write_text(json.dumps(asdict(self), indent=2, sort_keys=True))

    def normalize(self) -> None:
        if self.SUM_MIN > self.SUM_MAX:
            self.SUM_MIN, self.SUM_MAX = self.SUM_MAX, self.SUM_MIN
        self.THRESHOLD = max(0, self.THRESHOLD)
        self.PIXEL_BGND = max(0, self.PIXEL_BGND)

    def fit_modes(self) -> frozenset:
        modes = set()
        if self.FIT_2D:
            modes.add(FitMode.COM_2D)
        if self.FIT_1D_X:
            modes.add(FitMode.MARGINAL_1D_X)
        if self.FIT_1D_Y:
            modes.add(FitMode.MARGINAL_1D_Y)
        return frozenset(modes)

    def to_params(self, width: int, height: int, n: int = 1) -> ParameterSet:
        """Immutable snapshot for one engine call."""
        return ParameterSet(
            threshold=float(self.THRESHOLD),
            box=int(self.BOX),
            search_box=int(self.SEARCH_BOX),
            com_photon_num=float(self.PIXEL_COM),
            pixel_photon_num=float(self.PIXEL_PHOTON),
            pixel_bgnd_num=float(self.PIXEL_BGND),
            overlap_max=int(self.OVERLAP_MAX),
            sum_min=float(self.SUM_MIN),
            sum_max=float(self.SUM_MAX),
            fit_pixels=self.fit_modes(),
            n=int(n),
            x=int(width),
            y=int(height),
            return_map=bool(self.RETURN_MAP),
            return_pixels=PixelStore.WINDOW if self.RETURN_PIXELS else PixelStore.NONE,
        )

"""Shared core data structures used across detection stages."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum, IntEnum
from typing import Iterator, NamedTuple, Optional

import numpy as np


class FitMode(Enum):
    """Position estimators that can be enabled per frame."""

    COM_2D = "2d"
    MARGINAL_1D_X = "1d_x"
    MARGINAL_1D_Y = "1d_y"

    @property
    def bit(self) -> int:
        return _FIT_BITS[self]


_FIT_BITS = {FitMode.COM_2D: 0x01, FitMode.MARGINAL_1D_X: 0x02, FitMode.MARGINAL_1D_Y: 0x04}

# Stable ordering used for per-event estimates and table columns.
FIT_MODE_ORDER = (FitMode.COM_2D, FitMode.MARGINAL_1D_X, FitMode.MARGINAL_1D_Y)


def fit_modes_from_mask(mask: int) -> frozenset:
    """Decode a FIT_2D | FIT_1D_X | FIT_1D_Y bitmask."""
    return frozenset(mode for mode in FIT_MODE_ORDER if mask & mode.bit)


class PixelStore(IntEnum):
    NONE = 0
    WINDOW = 1


class Status(IntEnum):
    OK = 0
    PARAMETER_INVALID = 1


@dataclass(frozen=True)
class ParameterSet:
    """Immutable snapshot of the detection configuration for one call."""

    threshold: float = 0.0
    box: int = 2
    search_box: int = 2
    com_photon_num: float = 1.0
    pixel_photon_num: float = 1.0
    pixel_bgnd_num: float = 0.0
    overlap_max: int = 1
    sum_min: float = 0.0
    sum_max: float = float("inf")
    fit_pixels: frozenset = field(default_factory=lambda: frozenset({FitMode.COM_2D}))
    n: int = 1
    x: int = 0
    y: int = 0
    return_map: bool = True
    return_pixels: PixelStore = PixelStore.NONE

    def __post_init__(self):
        # Accept the FIT_2D | FIT_1D_X | FIT_1D_Y bitmask form as well.
        mask = self.fit_pixels
        if isinstance(mask, (int, np.integer)) and not isinstance(mask, bool):
            object.__setattr__(self, "fit_pixels", fit_modes_from_mask(int(mask)))

    @property
    def box_width(self) -> int:
        return 2 * self.box + 1

    @property
    def box_area(self) -> int:
        return self.box_width * self.box_width

    @property
    def background_floor(self) -> float:
        """Background expected in a full fitting window."""
        return float(self.pixel_bgnd_num) * self.box_area


class ValidationResult(NamedTuple):
    ok: bool
    message: str = ""


class Seed(NamedTuple):
    """Local maximum surviving non-maximum suppression."""

    x: int
    y: int
    value: float
    frame: int = 0


class FitEstimate(NamedTuple):
    """Result of one fit mode; the axis a 1D mode does not measure is None."""

    mode: FitMode
    x: Optional[float]
    y: Optional[float]


class EventCandidate(NamedTuple):
    seed: Seed
    x: float
    y: float
    sum: float
    estimates: tuple
    window: np.ndarray


class Event(NamedTuple):
    """Accepted photon record."""

    frame: int
    x: float
    y: float
    sum: float
    n_photons: int
    pixel_photons: int
    seed_x: int
    seed_y: int
    estimates: tuple = ()
    pixels: Optional[np.ndarray] = None

    def estimate(self, mode: FitMode) -> Optional[FitEstimate]:
        for est in self.estimates:
            if est.mode is mode:
                return est
        return None


TABLE_DTYPE = np.dtype(
    [
        ("frame", np.int32),
        ("x", np.float64),
        ("y", np.float64),
        ("sum", np.float64),
        ("n_photons", np.int64),
        ("pixel_photons", np.int64),
        ("com_x", np.float64),
        ("com_y", np.float64),
        ("fit_x", np.float64),
        ("fit_y", np.float64),
    ]
)


class PhotonTable:
    """Ordered, read-only sequence of accepted events (scan order)."""

    def __init__(self, events=()):
        self._events = tuple(events)

    def __len__(self) -> int:
        return len(self._events)

    def __iter__(self) -> Iterator[Event]:
        return iter(self._events)

    def __getitem__(self, idx):
        return self._events[idx]

    def __bool__(self) -> bool:
        return bool(self._events)

    def __repr__(self) -> str:
        return f"PhotonTable({len(self._events)} events)"

    def as_array(self) -> np.ndarray:
        """Flatten the table to a numpy structured array; NaN marks disabled fit modes."""
        out = np.zeros(len(self._events), dtype=TABLE_DTYPE)
        for i, ev in enumerate(self._events):
            com = ev.estimate(FitMode.COM_2D)
            fx = ev.estimate(FitMode.MARGINAL_1D_X)
            fy = ev.estimate(FitMode.MARGINAL_1D_Y)
            out[i] = (
                ev.frame,
                ev.x,
                ev.y,
                ev.sum,
                ev.n_photons,
                ev.pixel_photons,
                com.x if com else np.nan,
                com.y if com else np.nan,
                fx.x if fx else np.nan,
                fy.y if fy else np.nan,
            )
        return out


EMPTY_TABLE = PhotonTable()


class CentroidResult(NamedTuple):
    """Outcome of one engine call."""

    output: Optional[np.ndarray]
    photons: PhotonTable
    status: Status
    message: str = ""
    n_seeds: int = 0
    n_edge_rejected: int = 0
    n_calibration_rejected: int = 0
    n_overlap_rejected: int = 0

    @property
    def n_photons(self) -> int:
        return len(self.photons)

    @property
    def ok(self) -> bool:
        return self.status == Status.OK

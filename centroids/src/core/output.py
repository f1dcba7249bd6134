"""Annotated output frame and photon table assembly."""

from __future__ import annotations

from typing import Optional, Sequence

import numpy as np

from centroids.src.core.types import Event, ParameterSet, PhotonTable, PixelStore


def _accumulate(out: np.ndarray, idx: tuple, count: int) -> None:
    if np.issubdtype(out.dtype, np.integer):
        out[idx] = min(int(out[idx]) + count, int(np.iinfo(out.dtype).max))
    else:
        out[idx] += count


class OutputAssembler:
    def assemble(
        self, shape: tuple, events: Sequence[Event], params: ParameterSet, dtype=np.uint16
    ) -> tuple[Optional[np.ndarray], PhotonTable]:
        """
        Build (output_map, table). The map is a fresh zeroed buffer of the
        input shape with each event's photon count added at its rounded
        position; it is None when return_map is off.
        """
        table = PhotonTable(events)
        if not params.return_map:
            return None, table

        out = np.zeros(shape, dtype=dtype)
        h, w = shape[-2], shape[-1]
        for ev in table:
            ix = min(max(int(np.floor(ev.x + 0.5)), 0), w - 1)
            iy = min(max(int(np.floor(ev.y + 0.5)), 0), h - 1)
            idx = (iy, ix) if out.ndim == 2 else (ev.frame, iy, ix)
            _accumulate(out, idx, ev.n_photons)
        return out, table


def retained_pixels(window: np.ndarray, params: ParameterSet) -> Optional[np.ndarray]:
    """Read-only copy of a fitting window when pixel retention is requested."""
    if params.return_pixels != PixelStore.WINDOW:
        return None
    pixels = np.array(window, copy=True)
    pixels.setflags(write=False)
    return pixels

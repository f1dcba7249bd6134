"""Photon table export and frame previews for the host application."""

from __future__ import annotations

import csv
from pathlib import Path
from typing import Iterable

import matplotlib
import matplotlib.pyplot as plt
import numpy as np

from centroids.src.core.types import TABLE_DTYPE, CentroidResult, PhotonTable

matplotlib.use("Agg")


def save_photon_table(tables: Iterable[PhotonTable], path: Path, start_index: int = 0) -> int:
    """Write one CSV row per event; `image` numbers the tables. Returns rows written."""
    path = Path(path)
    rows = 0
    with path.open("w", newline="") as f:
        writer = csv.writer(f)
        writer.writerow(["image"] + list(TABLE_DTYPE.names))
        for idx, table in enumerate(tables, start=start_index):
            for rec in table.as_array():
                writer.writerow([idx] + [rec[name].item() for name in TABLE_DTYPE.names])
                rows += 1
    return rows


def save_preview(frame: np.ndarray, result: CentroidResult, path: Path) -> Path:
    path = Path(path)
    fig, (ax1, ax2) = plt.subplots(1, 2, figsize=(12, 6))

    ax1.imshow(frame, cmap="gray", origin="upper")
    if result.photons:
        xs = [ev.x for ev in result.photons]
        ys = [ev.y for ev in result.photons]
        ax1.plot(xs, ys, "r+", ms=8, mew=1.2, label=f"{len(xs)} events")
        ax1.legend(loc="upper right")
    ax1.set_title("Frame with accepted events")

    if result.output is not None:
        ax2.imshow(result.output, cmap="viridis", origin="upper", interpolation="nearest")
    ax2.set_title("Photon map")

    plt.tight_layout()
    plt.savefig(path)
    plt.close(fig)
    return path

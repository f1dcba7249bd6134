"""Per-frame centroiding: validate, scan, fit, calibrate, resolve, assemble."""

from __future__ import annotations

import logging
from typing import NamedTuple

import numpy as np

from centroids.src.core.calibration import PhotonCalibrator
from centroids.src.core.fitting import CentroidFitter
from centroids.src.core.output import OutputAssembler, retained_pixels
from centroids.src.core.overlap import OverlapResolver
from centroids.src.core.scanner import NeighborhoodScanner
from centroids.src.core.types import (
    EMPTY_TABLE,
    CentroidResult,
    Event,
    EventCandidate,
    ParameterSet,
    Seed,
    Status,
)
from centroids.src.core.validation import ParameterValidator

logger = logging.getLogger(__name__)


class _Calibrated(NamedTuple):
    seed: Seed
    candidate: EventCandidate
    n_photons: int


class CentroidEngine:
    """
    Stateless orchestrator. Each call is fully determined by the frame and
    the parameter snapshot, so one engine may serve many threads.
    """

    def __init__(self):
        self.validator = ParameterValidator()
        self.scanner = NeighborhoodScanner()
        self.fitter = CentroidFitter()
        self.calibrator = PhotonCalibrator()
        self.resolver = OverlapResolver()
        self.assembler = OutputAssembler()

    def process(self, frame: np.ndarray, params: ParameterSet) -> CentroidResult:
        frame = np.asarray(frame)
        check = self.validator.validate(params, frame)
        if not check.ok:
            logger.warning("Invalid centroid parameters: %s", check.message)
            return CentroidResult(None, EMPTY_TABLE, Status.PARAMETER_INVALID, check.message)

        stack = frame if frame.ndim == 3 else frame[np.newaxis]
        n_seeds = 0
        n_edge = 0
        n_cal = 0
        calibrated: list[_Calibrated] = []

        for k, img in enumerate(stack):
            for seed in self.scanner.scan(img, params, frame=k):
                n_seeds += 1
                cand = self.fitter.fit(img, seed, params)
                if cand is None:
                    n_edge += 1
                    continue
                count = self.calibrator.calibrate(cand.sum, params)
                if count is None:
                    n_cal += 1
                    continue
                calibrated.append(_Calibrated(seed, cand, count))

        accepted = self.resolver.resolve(calibrated, params)
        events = [self._to_event(item, params) for item in accepted]
        output, table = self.assembler.assemble(frame.shape, events, params, dtype=frame.dtype)

        n_overlap = len(calibrated) - len(accepted)
        logger.debug(
            "Centroids: %d seeds, %d edge, %d calibration, %d overlap rejects -> %d photons",
            n_seeds, n_edge, n_cal, n_overlap, len(table),
        )
        return CentroidResult(
            output,
            table,
            Status.OK,
            "",
            n_seeds=n_seeds,
            n_edge_rejected=n_edge,
            n_calibration_rejected=n_cal,
            n_overlap_rejected=n_overlap,
        )

    def _to_event(self, item: _Calibrated, params: ParameterSet) -> Event:
        seed, cand = item.seed, item.candidate
        return Event(
            frame=seed.frame,
            x=cand.x,
            y=cand.y,
            sum=cand.sum,
            n_photons=item.n_photons,
            pixel_photons=self.calibrator.pixel_count(seed.value, params),
            seed_x=seed.x,
            seed_y=seed.y,
            estimates=cand.estimates,
            pixels=retained_pixels(cand.window, params),
        )


_ENGINE = CentroidEngine()


def process_frame(frame: np.ndarray, params: ParameterSet) -> CentroidResult:
    """Run the full detection chain on one frame (or an (n, y, x) stack)."""
    return _ENGINE.process(frame, params)

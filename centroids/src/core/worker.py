"""Background pipeline stage that feeds detector frames through the engine."""

from __future__ import annotations

import logging
import queue
import threading
import time
from typing import Any, Optional

import numpy as np
from PyQt5 import QtCore

from centroids.config import Config
from centroids.src.core.engine import CentroidEngine
from centroids.src.core.types import CentroidResult, ParameterSet
from centroids.src.drivers.detector import FrameSource

logger = logging.getLogger(__name__)


class WorkerState:
    LIVE = "LIVE"
    PAUSED = "PAUSED"
    IDLE = "IDLE"
    ERROR = "ERROR"


class CentroidWorker(QtCore.QThread):
    new_image = QtCore.pyqtSignal(object)
    photons_update = QtCore.pyqtSignal(int)
    table_ready = QtCore.pyqtSignal(object)
    status_msg = QtCore.pyqtSignal(str)
    state_changed = QtCore.pyqtSignal(str)

    def __init__(self, source: FrameSource, config: Config, max_frames: Optional[int] = None):
        super().__init__()
        self.source = source
        self.config = config
        self.max_frames = max_frames
        self.running = True
        self.paused = False
        self.state = WorkerState.IDLE

        self.command_queue: queue.Queue[tuple[str, Any]] = queue.Queue()
        self.engine = CentroidEngine()
        self.last_result: Optional[CentroidResult] = None
        self.last_frame: Optional[np.ndarray] = None

        # Guards config and the published statistics, never the engine call.
        self._lock = threading.Lock()
        self.n_photons = 0
        self.total_photons = 0
        self.frames_processed = 0
        self.frames_dropped = 0

    def _set_state(self, state: str) -> None:
        if self.state != state:
            self.state = state
            self.state_changed.emit(state)

    def set_param(self, name: str, value: Any) -> None:
        self.command_queue.put(("SET", (name, value)))

    def reset_stats(self) -> None:
        self.command_queue.put(("RESET", None))

    def pause(self) -> None:
        self.command_queue.put(("PAUSE", None))

    def resume(self) -> None:
        self.command_queue.put(("RESUME", None))

    def stop(self) -> None:
        self.running = False
        self.wait()

    def run(self) -> None:
        self._set_state(WorkerState.LIVE)
        while self.running:
            try:
                self._drain_commands()
                if self.paused:
                    self._set_state(WorkerState.PAUSED)
                    time.sleep(0.05)
                    continue
                self._set_state(WorkerState.LIVE)
                if not self._live_loop():
                    break
            except Exception:
                self._set_state(WorkerState.ERROR)
                self.status_msg.emit("Worker error. Check logs for details.")
                logger.exception("Centroid worker crashed on a frame")
                time.sleep(0.05)
        self._set_state(WorkerState.IDLE)

    def _drain_commands(self) -> None:
        while not self.command_queue.empty():
            cmd, val = self.command_queue.get_nowait()
            if cmd == "SET":
                self._handle_set(*val)
            elif cmd == "RESET":
                with self._lock:
                    self.n_photons = 0
                    self.total_photons = 0
                    self.frames_processed = 0
                    self.frames_dropped = 0
            elif cmd == "PAUSE":
                self.paused = True
            elif cmd == "RESUME":
                self.paused = False

    def _handle_set(self, name: str, value: Any) -> None:
        try:
            coerced = Config.coerce(name, value)
        except (KeyError, TypeError, ValueError):
            logger.warning("Ignoring invalid setting %s=%r", name, value)
            self.status_msg.emit(f"Invalid setting {name}")
            return
        with self._lock:
            setattr(self.config, name, coerced)
        logger.info("Set %s = %r", name, coerced)

    def _live_loop(self) -> bool:
        if self.max_frames is not None and self.frames_processed + self.frames_dropped >= self.max_frames:
            return False
        frame = self.source.get_frame()
        if frame is None:
            self.status_msg.emit("Frame source exhausted.")
            return False
        self.process_frame(frame)
        return True

    def snapshot_params(self, frame: np.ndarray) -> ParameterSet:
        h, w = frame.shape[-2:]
        n = frame.shape[0] if frame.ndim == 3 else 1
        with self._lock:
            return self.config.to_params(w, h, n)

    def process_frame(self, frame: np.ndarray) -> Optional[CentroidResult]:
        """
        Snapshot parameters under the lock, run the engine with the lock
        released, then re-take the lock only to publish the photon count.
        """
        if frame.ndim != 2:
            logger.error("Please use 2D images for centroiding (got %dD)", frame.ndim)
            with self._lock:
                self.frames_dropped += 1
            return None

        params = self.snapshot_params(frame)
        result = self.engine.process(frame, params)

        with self._lock:
            if result.ok:
                self.n_photons = result.n_photons
                self.total_photons += result.n_photons
                self.frames_processed += 1
            else:
                self.frames_dropped += 1
        self.last_result = result
        self.last_frame = frame

        if not result.ok:
            self.status_msg.emit(f"Error in parameters: {result.message}")
            return result

        if result.output is not None:
            self.new_image.emit(result.output)
        self.table_ready.emit(result.photons)
        self.photons_update.emit(result.n_photons)
        return result

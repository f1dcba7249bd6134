import sys
import argparse
import logging
from pathlib import Path

from PyQt5 import QtCore

from centroids.config import Config
from centroids.src.core.report import save_photon_table, save_preview
from centroids.src.core.worker import CentroidWorker
from centroids.src.drivers.detector import FrameSource, MockDetector, NpyFrameSource

logger = logging.getLogger("centroids")


class Session(QtCore.QObject):
    """Collects worker output on the main thread."""

    def __init__(self, worker: CentroidWorker, keep_tables: bool):
        super().__init__()
        self.worker = worker
        self.keep_tables = keep_tables
        self.tables = []
        worker.table_ready.connect(self.on_table)
        worker.status_msg.connect(self.on_status)

    def on_table(self, table):
        if self.keep_tables:
            self.tables.append(table)

    def on_status(self, msg: str):
        logger.info(msg)


def build_source(args, config: Config) -> FrameSource:
    if args.frames:
        return NpyFrameSource(Path(args.frames))
    return MockDetector(config, seed=args.seed)


def main():
    parser = argparse.ArgumentParser(description="Photon centroiding of detector frames")
    src = parser.add_mutually_exclusive_group()
    src.add_argument("--sim", action="store_true", help="Use the simulated detector (default)")
    src.add_argument("--frames", help="Replay frames from a .npy stack")
    parser.add_argument("--config", help="JSON config file")
    parser.add_argument("--count", type=int, default=10, help="Number of frames to process")
    parser.add_argument("--seed", type=int, default=None, help="Simulation RNG seed")
    parser.add_argument("--csv", help="Write the photon table to this CSV file")
    parser.add_argument("--preview", help="Write a PNG preview of the last frame")
    parser.add_argument("--log-level", default="INFO")
    args = parser.parse_args()

    logging.basicConfig(
        level=getattr(logging, args.log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    config = Config.load(Path(args.config) if args.config else None)
    source = build_source(args, config)

    app = QtCore.QCoreApplication(sys.argv)
    worker = CentroidWorker(source, config, max_frames=args.count)
    session = Session(worker, keep_tables=bool(args.csv))
    worker.finished.connect(app.quit)
    worker.start()
    app.exec_()

    source.close()
    logger.info(
        "Processed %d frames (%d dropped), %d photons total",
        worker.frames_processed, worker.frames_dropped, worker.total_photons,
    )

    if args.csv:
        rows = save_photon_table(session.tables, Path(args.csv))
        logger.info("Wrote %d events to %s", rows, args.csv)
    if args.preview and worker.last_result is not None and worker.last_frame is not None:
        save_preview(worker.last_frame, worker.last_result, Path(args.preview))
        logger.info("Preview saved to %s", args.preview)

    return 0 if worker.frames_processed else 1


if __name__ == "__main__":
    sys.exit(main())

#!/usr/bin/env python3
"""
PPG Vitals – command-line entry point.

Usage
-----
    python main.py [OPTIONS]

Options
-------
    --source SRC         Camera index or path to a video file (default: 0)
    --fps INT            Target frame rate for live cameras (default: 30)
    --resolution WxH     Camera resolution (default: 640x480)
    --mode MODE          Smoothing mode, Logic1 or Logic2 (default: Logic1)
    --iso FLOAT          Camera ISO passed to the BP estimator (default: 600)
    --duration FLOAT     Stop after this many seconds (default: run until EOF / Ctrl-C)
    --csv-prefix PATH    Write <PATH>_IBI_data.csv and <PATH>_Green.csv on exit
    --log-level LEVEL    Logging level (default: INFO)

Place a fingertip over the lens (flash on) and keep still; heart rate
appears after a few seconds, blood pressure after the first beats.
"""

from __future__ import annotations

import argparse
import logging
import sys
import threading
import time
from pathlib import Path

from ppg_vitals.camera import VideoSource
from ppg_vitals.conditioner import Mode
from ppg_vitals.export import RecordingLog
from ppg_vitals.proxy import ChromaProxyExtractor
from ppg_vitals.session import PpgResult, Session
from ppg_vitals.worker import SessionWorker

logger = logging.getLogger("ppg_vitals")


# ---------------------------------------------------------------------------
# CLI
# ---------------------------------------------------------------------------

def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Heart rate and blood pressure from a camera PPG proxy",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    parser.add_argument("--source", default="0",
                        help="Camera index or video file path")
    parser.add_argument("--fps", type=int, default=30,
                        help="Target capture frame rate")
    parser.add_argument("--resolution", default="640x480",
                        help="Camera resolution, e.g. 640x480")
    parser.add_argument("--mode", default=Mode.LOGIC1.value,
                        choices=[m.value for m in Mode],
                        help="Signal conditioning mode")
    parser.add_argument("--iso", type=float, default=600.0,
                        help="Camera ISO used by the blood-pressure estimate")
    parser.add_argument("--duration", type=float, default=None,
                        help="Stop after this many seconds")
    parser.add_argument("--csv-prefix", type=Path, default=None,
                        help="Write CSV recordings with this path prefix on exit")
    parser.add_argument("--log-level", default="INFO",
                        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
                        help="Logging verbosity")
    return parser.parse_args(argv)


# ---------------------------------------------------------------------------
# Main loop
# ---------------------------------------------------------------------------

def run(args: argparse.Namespace) -> int:
    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s [%(levelname)s] %(name)s – %(message)s",
        datefmt="%H:%M:%S",
    )

    try:
        res_w, res_h = (int(v) for v in args.resolution.lower().split("x"))
    except ValueError:
        logger.error("Invalid --resolution format.  Use WxH, e.g. 640x480.")
        return 1

    source = VideoSource(args.source, fps=args.fps, resolution=(res_w, res_h))
    extractor = ChromaProxyExtractor()
    recording = RecordingLog() if args.csv_prefix else None

    latest: dict[str, PpgResult] = {}
    latest_lock = threading.Lock()

    def on_result(result: PpgResult, session: Session) -> None:
        with latest_lock:
            latest["result"] = result
        if recording is not None:
            recording.append(result, session)

    try:
        source.open()
    except RuntimeError as exc:
        logger.error("%s", exc)
        return 1

    fps = source.actual_fps
    session = Session(mode=args.mode, fps=fps, iso=args.iso)
    worker = SessionWorker(session, on_result=on_result)
    status_interval = max(1, int(round(fps)))   # log about once per second
    started = time.monotonic()

    logger.info("Starting PPG session in %s mode.  Press Ctrl-C to stop.", args.mode)

    frame_idx = 0
    try:
        with worker:
            for frame in source.frames():
                # Recorded files are replayed on their own time base.
                # They are not real-time, so every frame is kept.
                ts = None if source.is_live else frame_idx * 1000.0 / fps
                worker.submit_sample(
                    extractor.extract(frame), timestamp_ms=ts, block=not source.is_live
                )

                if frame_idx % status_interval == 0:
                    with latest_lock:
                        result = latest.get("result")
                    _log_status(result, session)

                frame_idx += 1
                if args.duration is not None and time.monotonic() - started >= args.duration:
                    logger.info("Duration reached.")
                    break
    except KeyboardInterrupt:
        logger.info("Interrupted.")
    finally:
        source.close()

    if recording is not None:
        ibi_path, proxy_path = recording.save(args.csv_prefix)
        logger.info("Saved recording: %s, %s", ibi_path, proxy_path)

    return 0


def _log_status(result: PpgResult | None, session: Session) -> None:
    ts = time.strftime("%H:%M:%S")
    if result is None or result.heart_rate <= 0:
        print(f"[{ts}] Waiting for signal…")
        return
    bp = session.blood_pressure
    print(
        f"[{ts}] HR={result.heart_rate:.1f}  IBI={result.ibi_ms:.0f}ms  "
        f"SD={result.bpm_sd:.2f}  BP={bp.sbp_avg:.0f}/{bp.dbp_avg:.0f}"
    )


def main() -> None:
    sys.exit(run(parse_args()))


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

if __name__ == "__main__":
    main()

#!/usr/bin/env python3
"""bbox_overlay.main — draw a detection log onto a video

    bbox-overlay in.mp4 out.mp4 -f detections.txt -t 0.5 -c red -w 2
    bbox-overlay in.mp4 out.mp4 --config configs/overlay.json --csv logs/drawn.csv

Options given on the command line override the --config JSON.
"""

from __future__ import annotations

import argparse
import dataclasses
import logging
from pathlib import Path
from typing import List, Optional

import cv2

from .config import StreamConfig, load_config
from .errors import OverlayError
from .expressions import FrameGeometry
from .logging_utils import CsvLogger, rate_limited_log, setup_logging
from .stream import AnnotationStream

logger = logging.getLogger("bbox_overlay")


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Overlay pre-computed detections onto a video")
    p.add_argument("input", help="input video")
    p.add_argument("output", help="output video (mp4v)")
    p.add_argument("-f", "--filename", dest="log_path", default=None, help="detection log")
    p.add_argument("-t", "--threshold", dest="threshold_expr", default=None,
                   help="minimum probability to draw (expression)")
    p.add_argument("-w", "--width", dest="line_width_expr", default=None, help="line width (expression)")
    p.add_argument("-c", "--color", default=None, help="box color, or 'invert'")
    p.add_argument("-o", "--offset", dest="frame_offset", type=int, default=None, help="frame offset")
    p.add_argument("--config", default="configs/overlay.json", help="optional config JSON")
    p.add_argument("--csv", default="", help="optional CSV export of drawn detections")
    p.add_argument("--max-frames", type=int, default=0, help="stop after N frames (0 = all)")
    p.add_argument("--print_hz", type=float, default=1.0, help="limit progress lines")
    p.add_argument("--debug", action="store_true", help="verbose debug output")
    return p.parse_args(argv)


def build_config(args: argparse.Namespace) -> StreamConfig:
    cfg = load_config(Path(args.config))
    overrides = {
        name: getattr(args, name)
        for name in ("log_path", "threshold_expr", "line_width_expr", "color", "frame_offset")
        if getattr(args, name) is not None
    }
    return dataclasses.replace(cfg, **overrides)


def run(args: argparse.Namespace) -> int:
    try:
        cfg = build_config(args)
        stream = AnnotationStream(cfg)
    except OverlayError as e:
        logger.error("%s: %s", type(e).__name__, e)
        return 2

    cap = cv2.VideoCapture(str(args.input))
    if not cap.isOpened():
        logger.error("cannot open video: %s", args.input)
        stream.close()
        return 1

    fps = cap.get(cv2.CAP_PROP_FPS) or 25.0
    width = int(cap.get(cv2.CAP_PROP_FRAME_WIDTH))
    height = int(cap.get(cv2.CAP_PROP_FRAME_HEIGHT))
    out = cv2.VideoWriter(str(args.output), cv2.VideoWriter_fourcc(*"mp4v"), fps, (width, height))

    csv_log = CsvLogger(Path(args.csv), enabled=bool(args.csv))
    csv_log.open()

    frames = drawn = 0
    progress: dict = {}
    try:
        with stream:
            params = stream.configure(FrameGeometry(width=width, height=height))
            logger.info("threshold=%g line_width=%g", params.threshold, params.line_width)

            while True:
                frame_number = int(cap.get(cv2.CAP_PROP_POS_FRAMES))
                ok, frame = cap.read()
                if not ok:
                    break

                for record in stream.process_frame(frame_number, frame):
                    csv_log.log(frame_number, record)
                    drawn += 1
                out.write(frame)
                frames += 1

                rate_limited_log(logger, f"frame {frame_number}: {drawn} boxes drawn so far", args.print_hz, progress)
                if args.max_frames and frames >= args.max_frames:
                    break
    except OverlayError as e:
        logger.error("%s: %s", type(e).__name__, e)
        return 2
    finally:
        csv_log.close()
        out.release()
        cap.release()

    logger.info("%d frames written to %s, %d boxes drawn, %d malformed log lines",
                frames, args.output, drawn, stream.malformed_lines)
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    setup_logging(args.debug)
    return run(args)


if __name__ == "__main__":
    raise SystemExit(main())

"""Command-line entry point: ``python -m tag_pose.run`` or ``tag-pose-demo``."""

import argparse
import logging
import signal
import sys
from typing import Optional, Sequence

from .config import DemoConfig, load_config, load_intrinsics
from .errors import ConfigError, FrameSourceError, UnknownTagFamilyError
from .factory import WorkerFactory
from .families import family_names, parse_family
from .logging_utils import add_file_handler, setup_logger

EXIT_OK = 0
EXIT_FAILURE = -1
EXIT_ERROR = 1

UNKNOWN_FAMILY_MESSAGE = 'Unrecognized tag family name. Use e.g. "tag36h11".'
SOURCE_FAILED_MESSAGE = "Couldn't open video capture device"


def _build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(
        prog="tag-pose-demo",
        description="Detect AprilTags in a video stream and report their 3D pose",
    )
    ap.add_argument("-d", "--debug", action="store_true", default=None,
                    help="Enable debugging output (slow)")
    ap.add_argument("-q", "--quiet", action="store_true", default=None,
                    help="Reduce output")
    ap.add_argument("-f", "--family",
                    help=f"Tag family to use: {', '.join(family_names())} (default tag36h11)")
    ap.add_argument("-t", "--threads", type=int, help="Use this many CPU threads")
    ap.add_argument("-x", "--decimate", type=float,
                    help="Decimate input image by this factor")
    ap.add_argument("-b", "--blur", type=float, help="Apply low-pass blur to input")
    ap.add_argument("-0", "--refine-edges", action=argparse.BooleanOptionalAction, default=None,
                    help="Spend more time trying to align edges of tags (default on)")

    ap.add_argument("--config", help="Path to JSON/YAML config")
    ap.add_argument("--device", help="Camera index or device path")
    ap.add_argument("--video", help="Read frames from a video file instead of a camera")
    ap.add_argument("--dry-run", action="store_true", help="Use blank synthetic frames")
    ap.add_argument("--fps", type=int)
    ap.add_argument("--width", type=int)
    ap.add_argument("--height", type=int)
    ap.add_argument("--calib", help="OpenCV calibration YAML with camera_matrix")
    ap.add_argument("--tag-size", type=float, help="Tag edge length in metres")
    ap.add_argument("--pose-method", choices=["apriltag", "pnp"])
    ap.add_argument("--max-frames", type=int)
    ap.add_argument("--no-display", action="store_true", help="Run without a window")
    ap.add_argument("--csv", help="Append per-tag pose rows to this CSV file")
    ap.add_argument("--log-file")
    return ap


def _apply_args(cfg: DemoConfig, args: argparse.Namespace) -> DemoConfig:
    cfg.detector = cfg.detector.with_overrides(
        family=args.family,
        threads=args.threads,
        decimate=args.decimate,
        blur=args.blur,
        refine_edges=args.refine_edges,
        debug=args.debug,
    )

    # --calib is read in main() once the family has been validated
    cfg.intrinsics = cfg.intrinsics.with_overrides(tag_size=args.tag_size)

    src = cfg.source
    if args.dry_run:
        src.type = "synthetic"
    elif args.video:
        src.type = "video"
        src.path = args.video
    elif args.device is not None:
        device = args.device
        if isinstance(device, str) and device.isdigit():
            device = int(device)
        src.type = "device"
        src.device = device
    for key in ("fps", "width", "height"):
        value = getattr(args, key)
        if value is not None:
            setattr(src, key, value)

    cfg.apply_overrides(
        pose_method=args.pose_method,
        quiet=args.quiet,
        max_frames=args.max_frames,
        csv_path=args.csv,
        log_file=args.log_file,
        display=False if args.no_display else None,
    )
    return cfg


def _log_level(cfg: DemoConfig) -> int:
    if cfg.detector.debug:
        return logging.DEBUG
    if cfg.quiet:
        return logging.WARNING
    return logging.INFO


def main(argv: Optional[Sequence[str]] = None) -> int:
    ap = _build_parser()
    args = ap.parse_args(argv)

    try:
        cfg = load_config(args.config) if args.config else DemoConfig()
        cfg = _apply_args(cfg, args)
    except (ConfigError, FileNotFoundError) as exc:
        print(f"Invalid configuration: {exc}", file=sys.stderr)
        return EXIT_ERROR

    try:
        family = parse_family(cfg.detector.family)
    except UnknownTagFamilyError:
        print(UNKNOWN_FAMILY_MESSAGE)
        return EXIT_FAILURE

    if args.calib:
        try:
            cfg.intrinsics = load_intrinsics(args.calib, cfg.intrinsics.tag_size)
        except (ConfigError, FileNotFoundError) as exc:
            print(f"Invalid configuration: {exc}", file=sys.stderr)
            return EXIT_ERROR

    logger = setup_logger(family.value, _log_level(cfg))
    if cfg.log_file:
        add_file_handler(logger, family.value, cfg.log_file)
    logger.debug("config: %s", cfg.as_dict())

    try:
        worker = WorkerFactory.from_config(cfg)
    except ConfigError as exc:
        print(f"Invalid configuration: {exc}", file=sys.stderr)
        return EXIT_ERROR

    def _handle_signal(_sig, _frame):
        worker.stop()

    previous = {signal.SIGINT: signal.signal(signal.SIGINT, _handle_signal)}
    if hasattr(signal, "SIGTERM"):
        previous[signal.SIGTERM] = signal.signal(signal.SIGTERM, _handle_signal)

    try:
        summary = worker.run()
    except FrameSourceError as exc:
        logger.error("%s", exc)
        print(SOURCE_FAILED_MESSAGE, file=sys.stderr)
        return EXIT_FAILURE
    except Exception:
        logger.exception("tag pose loop failed")
        return EXIT_ERROR
    finally:
        for sig, handler in previous.items():
            if handler is not None:
                signal.signal(sig, handler)

    logger.info("%s", summary)
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())

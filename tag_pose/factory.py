from __future__ import annotations

from typing import Optional, TextIO

from .config import CameraIntrinsics, DemoConfig, SourceConfig
from .detect import TagDetector
from .display import Display, NullDisplay, WindowDisplay
from .errors import ConfigError
from .frame_source import DeviceCameraSource, FrameSource, SyntheticSource, VideoFileSource
from .output import ConsoleOutput, CsvOutput, OutputSink
from .pose import LibraryPoseEstimator, PnPPoseEstimator, PoseEstimator
from .worker import TagPoseWorker


def build_source(src: SourceConfig) -> FrameSource:
    if src.type == "synthetic":
        return SyntheticSource(src.fps or 30, src.width or 640, src.height or 480)
    if src.type == "video":
        if not src.path:
            raise ConfigError("source.path is required for a video source")
        return VideoFileSource(src.path)
    if src.type == "device":
        return DeviceCameraSource(src.device, src.fps, src.width, src.height)
    raise ConfigError(f"Unknown source type: {src.type!r}")


def build_pose_estimator(method: str, intrinsics: CameraIntrinsics) -> PoseEstimator:
    if method == "apriltag":
        return LibraryPoseEstimator()
    if method == "pnp":
        return PnPPoseEstimator(intrinsics)
    raise ConfigError(f"Unknown pose method: {method!r}")


def build_display(cfg: DemoConfig) -> Display:
    if not cfg.display:
        return NullDisplay()
    return WindowDisplay(cfg.window_name, cfg.quit_key, cfg.wait_ms)


def build_outputs(cfg: DemoConfig, stream: Optional[TextIO] = None) -> list[OutputSink]:
    outputs: list[OutputSink] = [ConsoleOutput(stream=stream, quiet=cfg.quiet)]
    if cfg.csv_path:
        outputs.append(CsvOutput(cfg.csv_path))
    return outputs


class WorkerFactory:
    @staticmethod
    def from_config(cfg: DemoConfig, stream: Optional[TextIO] = None) -> TagPoseWorker:
        source = build_source(cfg.source)
        estimator = build_pose_estimator(cfg.pose_method, cfg.intrinsics)
        detector = TagDetector(
            cfg.detector,
            intrinsics=cfg.intrinsics if estimator.needs_library_pose else None,
        )
        return TagPoseWorker(
            source,
            detector,
            estimator,
            display=build_display(cfg),
            outputs=build_outputs(cfg, stream),
            max_frames=cfg.max_frames,
            max_read_failures=cfg.max_read_failures,
        )

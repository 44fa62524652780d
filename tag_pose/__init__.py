"""AprilTag detection and pose demo."""

from .config import CameraIntrinsics, DemoConfig, DetectorConfig
from .families import TagFamily
from .worker import TagPoseWorker

__all__ = ["CameraIntrinsics", "DemoConfig", "DetectorConfig", "TagFamily", "TagPoseWorker"]

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional


@dataclass
class Frame:
    idx: int
    timestamp_ns: int
    image: Any  # BGR ndarray


@dataclass
class PoseEstimate:
    R: Any  # (3,3) ndarray, row-major
    t: Any  # (3,) ndarray
    error: float


@dataclass
class Detection:
    tag_id: int
    corners: Any  # (4,2) ndarray, library order p0..p3
    center: Any  # (2,) ndarray
    family: str = ""
    hamming: int = 0
    decision_margin: float = 0.0
    library_pose: Optional[PoseEstimate] = None


@dataclass
class PoseReport:
    roll: float  # degrees, about x
    pitch: float  # degrees, about y
    yaw: float  # degrees, about z
    camera_position: Any  # (3,) ndarray in tag coordinates


@dataclass
class TagObservation:
    detection: Detection
    pose: PoseEstimate
    report: PoseReport


@dataclass
class FrameResult:
    frame_idx: int
    observations: list[TagObservation] = field(default_factory=list)
    latency_ms: float = 0.0

    @property
    def tag_count(self) -> int:
        return len(self.observations)

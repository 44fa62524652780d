from __future__ import annotations

import logging
from typing import Any, Iterable, Optional

import numpy as np
from pupil_apriltags import Detector

from .config import CameraIntrinsics, DetectorConfig
from .tag_types import Detection, PoseEstimate

logger = logging.getLogger(__name__)


def _family_name(raw: Any) -> str:
    if isinstance(raw, bytes):
        return raw.decode("utf-8", "replace")
    return str(raw)


def to_detection(raw: Any) -> Detection:
    """Copy a ``pupil_apriltags`` detection into a :class:`Detection`."""
    library_pose = None
    if getattr(raw, "pose_R", None) is not None and getattr(raw, "pose_t", None) is not None:
        library_pose = PoseEstimate(
            R=np.asarray(raw.pose_R, dtype=np.float64).reshape(3, 3),
            t=np.asarray(raw.pose_t, dtype=np.float64).reshape(3),
            error=float(raw.pose_err),
        )
    return Detection(
        tag_id=int(raw.tag_id),
        corners=np.asarray(raw.corners, dtype=np.float64).reshape(4, 2),
        center=np.asarray(raw.center, dtype=np.float64).reshape(2),
        family=_family_name(getattr(raw, "tag_family", "")),
        hamming=int(getattr(raw, "hamming", 0)),
        decision_margin=float(getattr(raw, "decision_margin", 0.0)),
        library_pose=library_pose,
    )


def sort_detections(detections: Iterable[Detection]) -> list[Detection]:
    return sorted(detections, key=lambda d: d.tag_id)


class TagDetector:
    """Owns one ``pupil_apriltags.Detector`` for a single tag family.

    The library detector is created in ``__init__`` and released by
    :meth:`close` (or on leaving a ``with`` block).

    When ``intrinsics`` is given the library also estimates each tag's pose
    and the result is attached as ``Detection.library_pose``.
    """

    def __init__(
        self,
        config: DetectorConfig,
        intrinsics: Optional[CameraIntrinsics] = None,
    ):
        self.config = config
        self.family = config.tag_family
        self.intrinsics = intrinsics
        self._detector: Optional[Detector] = Detector(
            families=self.family.library_name,
            nthreads=config.threads,
            quad_decimate=config.decimate,
            quad_sigma=config.blur,
            refine_edges=int(config.refine_edges),
            decode_sharpening=config.decode_sharpening,
            debug=int(config.debug),
        )
        logger.info(
            "detector created family=%s threads=%d decimate=%.2f blur=%.2f refine_edges=%s",
            self.family.value,
            config.threads,
            config.decimate,
            config.blur,
            config.refine_edges,
        )

    @property
    def closed(self) -> bool:
        return self._detector is None

    def detect(self, gray: np.ndarray) -> list[Detection]:
        """Detect tags in a single-channel 8-bit image."""
        if self._detector is None:
            raise RuntimeError("TagDetector is closed")
        if gray.ndim != 2:
            raise ValueError(f"expected a single-channel image, got shape {gray.shape}")
        img = np.ascontiguousarray(gray, dtype=np.uint8)
        if self.intrinsics is not None:
            raw = self._detector.detect(
                img,
                estimate_tag_pose=True,
                camera_params=self.intrinsics.camera_params,
                tag_size=self.intrinsics.tag_size,
            )
        else:
            raw = self._detector.detect(img)
        return [to_detection(r) for r in raw]

    def close(self) -> None:
        if self._detector is not None:
            # pupil_apriltags frees the native detector and family on __del__
            self._detector = None
            logger.info("detector destroyed family=%s", self.family.value)

    def __enter__(self) -> "TagDetector":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

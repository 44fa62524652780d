from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Optional

import cv2
import numpy as np

from .config import CameraIntrinsics
from .errors import PoseEstimationError
from .tag_types import Detection, PoseEstimate
from .transforms import rvec_tvec_to_matrix


class PoseEstimator(ABC):
    #: whether the detector must be asked to compute poses itself
    needs_library_pose = False

    @abstractmethod
    def estimate(self, detection: Detection) -> PoseEstimate: ...


class LibraryPoseEstimator(PoseEstimator):
    """Returns the pose the tag library computed while detecting.

    Pose error is the library's object-space residual.
    """

    needs_library_pose = True

    def estimate(self, detection: Detection) -> PoseEstimate:
        if detection.library_pose is None:
            raise PoseEstimationError(
                f"tag {detection.tag_id} carries no library pose; "
                "create the detector with camera intrinsics"
            )
        return detection.library_pose


def tag_object_points(tag_size: float) -> np.ndarray:
    """Tag corners in the tag frame (x right, y down, z into the tag).

    Ordered to match the detector's p0..p3 corners, which is also the order
    ``cv2.SOLVEPNP_IPPE_SQUARE`` expects.
    """
    h = tag_size / 2.0
    return np.array(
        [[-h, h, 0.0], [h, h, 0.0], [h, -h, 0.0], [-h, -h, 0.0]],
        dtype=np.float64,
    )


class PnPPoseEstimator(PoseEstimator):
    """Pose from the four tag corners via OpenCV's IPPE square solver.

    Pose error is the RMS reprojection error in pixels.
    """

    def __init__(self, intrinsics: CameraIntrinsics, dist_coeffs: Optional[np.ndarray] = None):
        self.intrinsics = intrinsics
        self.K = intrinsics.camera_matrix()
        self.dist = np.zeros((5, 1)) if dist_coeffs is None else np.asarray(dist_coeffs)
        self.object_points = tag_object_points(intrinsics.tag_size)

    def estimate(self, detection: Detection) -> PoseEstimate:
        image_points = np.asarray(detection.corners, dtype=np.float64).reshape(4, 1, 2)
        ok, rvec, tvec = cv2.solvePnP(
            self.object_points,
            image_points,
            self.K,
            self.dist,
            flags=cv2.SOLVEPNP_IPPE_SQUARE,
        )
        if not ok:
            raise PoseEstimationError(f"solvePnP failed for tag {detection.tag_id}")

        projected, _ = cv2.projectPoints(self.object_points, rvec, tvec, self.K, self.dist)
        residual = projected.reshape(4, 2) - image_points.reshape(4, 2)
        err = float(np.sqrt(np.mean(np.sum(residual ** 2, axis=1))))

        T = rvec_tvec_to_matrix(rvec, tvec)
        return PoseEstimate(R=T[:3, :3].copy(), t=T[:3, 3].copy(), error=err)

"""Rotation and SE(3) helpers used to post-process tag poses."""

import math
from typing import Tuple

import cv2
import numpy as np

from .tag_types import PoseEstimate, PoseReport


def rvec_tvec_to_matrix(rvec: np.ndarray, tvec: np.ndarray) -> np.ndarray:
    """
    Convert rotation vector and translation vector to 4x4 transformation matrix.

    Args:
        rvec: Rotation vector (3,) or (3,1)
        tvec: Translation vector (3,) or (3,1)

    Returns:
        4x4 homogeneous transformation matrix
    """
    rvec = np.asarray(rvec, dtype=np.float64).reshape(3)
    tvec = np.asarray(tvec, dtype=np.float64).reshape(3)

    R, _ = cv2.Rodrigues(rvec)

    T = np.eye(4)
    T[:3, :3] = R
    T[:3, 3] = tvec

    return T


def pose_to_matrix(R: np.ndarray, t: np.ndarray) -> np.ndarray:
    T = np.eye(4)
    T[:3, :3] = np.asarray(R, dtype=np.float64).reshape(3, 3)
    T[:3, 3] = np.asarray(t, dtype=np.float64).reshape(3)
    return T


def invert_transform(T: np.ndarray) -> np.ndarray:
    """
    Invert a 4x4 homogeneous transformation matrix.

    For SE(3): T^-1 = [R^T, -R^T * t; 0, 1]

    Args:
        T: 4x4 transformation matrix

    Returns:
        4x4 inverted transformation matrix
    """
    T_inv = np.eye(4)
    R = T[:3, :3]
    t = T[:3, 3]

    R_T = R.T
    T_inv[:3, :3] = R_T
    T_inv[:3, 3] = -R_T @ t

    return T_inv


def rotation_to_euler(R: np.ndarray) -> Tuple[float, float, float]:
    """
    Decompose a rotation matrix into (roll, pitch, yaw) in degrees.

    Uses the ZYX convention, R = Rz(yaw) @ Ry(pitch) @ Rx(roll):

        roll  = atan2(R[2,1], R[2,2])
        pitch = atan2(-R[2,0], sqrt(R[2,1]^2 + R[2,2]^2))
        yaw   = atan2(R[1,0], R[0,0])

    Gimbal lock (pitch = +/-90 deg) is not special-cased; the result there is
    whatever atan2 returns. A non-orthonormal input yields meaningless angles.
    """
    R = np.asarray(R, dtype=np.float64).reshape(3, 3)
    roll = math.atan2(R[2, 1], R[2, 2])
    pitch = math.atan2(-R[2, 0], math.sqrt(R[2, 1] ** 2 + R[2, 2] ** 2))
    yaw = math.atan2(R[1, 0], R[0, 0])
    return math.degrees(roll), math.degrees(pitch), math.degrees(yaw)


def euler_to_rotation(roll: float, pitch: float, yaw: float) -> np.ndarray:
    """Build R = Rz(yaw) @ Ry(pitch) @ Rx(roll) from angles in degrees."""
    a, b, c = (math.radians(v) for v in (roll, pitch, yaw))
    Rx = np.array(
        [[1.0, 0.0, 0.0], [0.0, math.cos(a), -math.sin(a)], [0.0, math.sin(a), math.cos(a)]]
    )
    Ry = np.array(
        [[math.cos(b), 0.0, math.sin(b)], [0.0, 1.0, 0.0], [-math.sin(b), 0.0, math.cos(b)]]
    )
    Rz = np.array(
        [[math.cos(c), -math.sin(c), 0.0], [math.sin(c), math.cos(c), 0.0], [0.0, 0.0, 1.0]]
    )
    return Rz @ Ry @ Rx


def camera_position_in_tag(R: np.ndarray, t: np.ndarray) -> np.ndarray:
    """
    Position of the camera origin expressed in the tag frame.

    The pose maps tag coordinates into the camera frame (x_cam = R x_tag + t),
    so the camera origin sits at R^T (-t) in tag coordinates. This is the
    translation part of the inverted transform.
    """
    T_tag_cam = invert_transform(pose_to_matrix(R, t))
    return T_tag_cam[:3, 3].copy()


def summarize_pose(pose: PoseEstimate) -> PoseReport:
    roll, pitch, yaw = rotation_to_euler(pose.R)
    return PoseReport(
        roll=roll,
        pitch=pitch,
        yaw=yaw,
        camera_position=camera_position_in_tag(pose.R, pose.t),
    )

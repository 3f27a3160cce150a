"""
Pose and rotation helpers.

Poses are 7-element sequences ``[x, y, z, qx, qy, qz, qw]`` (scalar-last
quaternions, the same convention as ``scipy.spatial.transform.Rotation``).
"""
from typing import List, Sequence

import numpy as np
from scipy.spatial.transform import Rotation as R


def quaternion_to_matrix(quat: Sequence[float]) -> np.ndarray:
    """
    Convert a quaternion [qx, qy, qz, qw] into a 3x3 rotation matrix.
    """
    return R.from_quat(quat).as_matrix()


def matrix_to_quaternion(matrix) -> np.ndarray:
    """Rotation matrix (3x3 or the rotation block of a 4x4) to [x, y, z, w]."""
    m = np.asarray(matrix, dtype=float)[:3, :3]
    return R.from_matrix(m).as_quat()


def pose_to_matrix(pose: Sequence[float]) -> np.ndarray:
    """
    :param pose, Sequence[float]: [x, y, z, qx, qy, qz, qw]
    :return: np.ndarray, 4x4 homogeneous transform
    """
    T = np.eye(4)
    T[:3, :3] = quaternion_to_matrix(pose[3:7])
    T[:3, 3] = pose[:3]
    return T


def matrix_to_pose(T) -> List[float]:
    """
    :param T, np.ndarray: 4x4 homogeneous transform
    :return: List[float], [x, y, z, qx, qy, qz, qw]
    """
    T = np.asarray(T, dtype=float)
    quat = matrix_to_quaternion(T)
    return [float(v) for v in T[:3, 3]] + [float(q) for q in quat]


def rotate_pose_local(pose: Sequence[float], axis: str, angle_rad: float) -> List[float]:
    """
    Rotate the orientation of ``pose`` about one of its own axes.

    :param pose, Sequence[float]: [x, y, z, qx, qy, qz, qw]
    :param axis, str: 'x', 'y' or 'z'
    :param angle_rad, float: rotation angle (rad)
    :return: List[float], the rotated pose, position unchanged
    """
    if axis not in ('x', 'y', 'z'):
        raise ValueError(f"axis must be 'x', 'y' or 'z', got '{axis}'")
    rot = R.from_quat(pose[3:7]) * R.from_euler(axis, angle_rad)
    return [float(p) for p in pose[:3]] + [float(q) for q in rot.as_quat()]


def joint_distance(q_a: Sequence[float], q_b: Sequence[float]) -> float:
    """
    L1 distance between two joint vectors of equal length.
    """
    if len(q_a) != len(q_b):
        raise ValueError(f"Joint vectors differ in length: {len(q_a)} != {len(q_b)}")
    return float(np.sum(np.abs(np.asarray(q_a, dtype=float) - np.asarray(q_b, dtype=float))))

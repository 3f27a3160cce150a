# validation.py - argument checks for poses and joint vectors

import numbers
from typing import List, Optional, Sequence, Union

import numpy as np


def _is_number(x) -> bool:
    return isinstance(x, numbers.Real) and not isinstance(x, bool)


def validate_pose(pose: Union[List[float], tuple, np.ndarray]):
    """
    Check that a target pose has 7 numeric entries and a unit quaternion.

    Args:
        pose: [x, y, z, qx, qy, qz, qw]

    Raises:
        TypeError, ValueError
    """
    if not isinstance(pose, (list, tuple, np.ndarray)):
        raise TypeError("Target pose must be a list / tuple / ndarray")

    if len(pose) != 7:
        raise ValueError("Target pose must have 7 entries: [x, y, z, qx, qy, qz, qw]")

    if not all(_is_number(x) for x in pose):
        raise ValueError("Every entry of the target pose must be numeric")

    quat = np.array(pose[3:], dtype=np.float64)
    norm = np.linalg.norm(quat)
    if not 0.99 <= norm <= 1.01:
        raise ValueError(f"Quaternion is not normalized (norm = {norm:.4f})")


def validate_joint_list(joints: Union[List[float], tuple, np.ndarray], dof: Optional[int] = None):
    """
    Check a joint vector: numeric entries and, if given, the expected length.

    Args:
        joints: joint values (rad)
        dof: expected number of joints

    Raises:
        TypeError, ValueError
    """
    if not isinstance(joints, (list, tuple, np.ndarray)):
        raise TypeError("Joint input must be a list / tuple / ndarray")

    if len(joints) == 0:
        raise ValueError("Joint input must not be empty")

    if dof is not None and len(joints) != dof:
        raise ValueError(f"Joint input must have {dof} entries, got {len(joints)}")

    if not all(_is_number(x) for x in joints):
        raise ValueError("Joint input must be numeric")


def validate_scale(name: str, value: float):
    """
    Check that a scaling factor lies in (0, 1].
    """
    if not _is_number(value) or not 0.0 < value <= 1.0:
        raise ValueError(f"{name} must be in (0, 1], got {value}")


def is_degenerate_state(state: Optional[Sequence[float]], eps: float = 1e-9) -> bool:
    """
    True for a missing, non-finite or all-zero joint vector, which IK solvers
    return when they fail silently.
    """
    if state is None or len(state) == 0:
        return True
    arr = np.asarray(state, dtype=float)
    if not np.all(np.isfinite(arr)):
        return True
    return bool(np.all(np.abs(arr) < eps))

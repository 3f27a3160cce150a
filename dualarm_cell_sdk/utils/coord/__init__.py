from .validation import (validate_pose, validate_joint_list,
                         validate_scale, is_degenerate_state)
from .transform import (quaternion_to_matrix, matrix_to_quaternion,
                        pose_to_matrix, matrix_to_pose, rotate_pose_local,
                        joint_distance)

__all__ = [
    "validate_pose",
    "validate_joint_list",
    "validate_scale",
    "is_degenerate_state",
    "quaternion_to_matrix",
    "matrix_to_quaternion",
    "pose_to_matrix",
    "matrix_to_pose",
    "rotate_pose_local",
    "joint_distance"
]

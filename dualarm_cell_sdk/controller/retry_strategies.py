# controller/retry_strategies.py

"""
Fallback strategies used when a Cartesian move cannot be planned from the
current joint configuration.

Both strategies try to put the arm into a different configuration with the
same (or a nearby) end-effector pose, from which the straight-line path may
become feasible.
"""

from typing import List, Optional, Sequence

import numpy as np

from ..planning import IPlanningService
from ..utils.coord import is_degenerate_state, joint_distance, rotate_pose_local


def randomized_seed(current_state: Sequence[float], offset_range: Sequence[float],
                    rng: np.random.Generator) -> List[float]:
    """
    Shift every joint of ``current_state`` by a random amount in
    ``offset_range`` with a random sign.
    """
    low, high = float(offset_range[0]), float(offset_range[1])
    offsets = rng.uniform(low, high, size=len(current_state))
    signs = rng.choice([-1.0, 1.0], size=len(current_state))
    return [float(q + s * o) for q, s, o in zip(current_state, signs, offsets)]


def candidate_seeds(fixed_seeds: Sequence[Sequence[float]],
                    current_state: Sequence[float],
                    offset_range: Sequence[float],
                    rng: np.random.Generator) -> List[List[float]]:
    """
    Ordered IK seeds: the fixed seeds matching the joint count, a randomized
    copy of the current state, then the current state itself.
    """
    dof = len(current_state)
    seeds = [[float(q) for q in seed] for seed in fixed_seeds if len(seed) == dof]
    seeds.append(randomized_seed(current_state, offset_range, rng))
    seeds.append([float(q) for q in current_state])
    return seeds


def equivalent_state(planner: IPlanningService,
                     component_id: str,
                     pose: Sequence[float],
                     current_state: Sequence[float],
                     fixed_seeds: Sequence[Sequence[float]],
                     min_distance: float,
                     offset_range: Sequence[float],
                     rng: np.random.Generator) -> Optional[List[float]]:
    """
    Search a joint configuration reaching ``pose`` that differs from
    ``current_state``.

    :param planner, IPlanningService: provides inverse kinematics
    :param component_id, str: planning component
    :param pose, Sequence[float]: end-effector pose the configuration must reach
    :param current_state, Sequence[float]: joint values the arm is in now
    :param fixed_seeds, Sequence: configured IK seeds, tried first and in order
    :param min_distance, float: minimum L1 joint distance from ``current_state``
    :param offset_range, Sequence[float]: [low, high] joint offset of the randomized seed (rad)
    :param rng, np.random.Generator: random source
    :return: List[float]|None, the first acceptable IK solution
    """
    for seed in candidate_seeds(fixed_seeds, current_state, offset_range, rng):
        solution = planner.inverse_kinematics(component_id, pose, seed)
        if is_degenerate_state(solution) or len(solution) != len(current_state):
            continue
        if joint_distance(solution, current_state) > min_distance:
            return [float(q) for q in solution]
    return None


def random_nearby_pose(pose: Sequence[float],
                       side_shift: float,
                       angle_range_deg: Sequence[float],
                       rng: np.random.Generator) -> List[float]:
    """
    Perturb ``pose``: shift x or y by ``side_shift`` in a random direction and
    rotate the orientation about its local z or y axis by a random angle from
    ``angle_range_deg``.

    :return: List[float], [x, y, z, qx, qy, qz, qw]
    """
    perturbed = [float(v) for v in pose]
    index = int(rng.integers(0, 2))
    perturbed[index] += side_shift if rng.integers(0, 2) else -side_shift

    angle = np.radians(rng.uniform(float(angle_range_deg[0]), float(angle_range_deg[1])))
    axis = 'z' if rng.integers(0, 2) == 0 else 'y'
    return rotate_pose_local(perturbed, axis, angle)

"""
Velocity Verifier

Checks applied to velocity IK results:
- joint rates within symmetric velocity limits
- achieved twist equal to the target twist
- achieved twist a direction-preserving scaling of the target twist
"""

from dataclasses import dataclass
from typing import Tuple

import numpy as np


# Below this norm an achieved vector has no direction
ZERO_NORM = 1e-12


@dataclass
class VelocityCheck:
    """Outcome of the velocity checks for one trial."""
    success: bool
    scaled_success: bool
    in_bounds: bool
    scale: float


def within_velocity_bounds(velocity: np.ndarray, limits: np.ndarray) -> bool:
    """
    True iff every joint rate lies in [-limit, +limit].

    Args:
        velocity: Candidate joint velocity [n_joints]
        limits: Velocity limit magnitudes [n_joints]
    """
    velocity = np.asarray(velocity, dtype=np.float64)
    limits = np.asarray(limits, dtype=np.float64)
    return bool(np.all((velocity >= -limits) & (velocity <= limits)))


def twists_match(target: np.ndarray, achieved: np.ndarray, eps: float) -> bool:
    """Element-wise equality of two twists within ``eps``."""
    return bool(np.all(np.abs(np.asarray(target) - np.asarray(achieved)) <= eps))


def _colinear(a: np.ndarray, b: np.ndarray, a_norm: float, b_norm: float, eps: float) -> bool:
    # Only the target norm is compared against eps
    if a_norm <= eps:
        return b_norm <= eps
    if b_norm <= ZERO_NORM:
        return False
    # |â - b̂|² = 2(1 - cos θ), so this is cos θ >= 1 - eps²/2 without round-off
    return bool(np.linalg.norm(a / a_norm - b / b_norm) <= eps)


def is_proportionally_scaled(
    target: np.ndarray,
    achieved: np.ndarray,
    eps: float,
) -> Tuple[bool, float]:
    """
    Check whether ``achieved`` preserves the direction of ``target`` at a
    common scale for its linear and angular parts.

    The scale is |v_achieved| / |v_target|. Linear directions must satisfy
    cos(angle) >= 1 - eps²/2. When |w_target| > eps the angular scale must
    match the linear scale within eps and the angular directions must pass
    the same test. Short achieved parts are fine; an achieved part that
    vanishes (norm <= ZERO_NORM) while its target does not fails.

    A target linear part with norm <= eps has no usable direction: it only
    passes when the achieved linear part is also <= eps, and the scale is
    then taken from the angular parts (1.0 if those vanish too).

    Args:
        target: Requested twist [6] (linear, angular)
        achieved: Resulting twist [6]
        eps: Tolerance

    Returns:
        (is_scaled, scale)
    """
    target = np.asarray(target, dtype=np.float64)
    achieved = np.asarray(achieved, dtype=np.float64)

    v1, w1 = target[:3], target[3:]
    v2, w2 = achieved[:3], achieved[3:]
    v1_norm, v2_norm = np.linalg.norm(v1), np.linalg.norm(v2)
    w1_norm, w2_norm = np.linalg.norm(w1), np.linalg.norm(w2)

    rot_scale = w2_norm / w1_norm if w1_norm > eps else None
    if v1_norm > eps:
        scale = v2_norm / v1_norm
    elif rot_scale is not None:
        scale = rot_scale
    else:
        scale = 1.0

    if not _colinear(v1, v2, v1_norm, v2_norm, eps):
        return False, scale

    if w1_norm > eps:
        if abs(scale - rot_scale) > eps:
            return False, scale
        if not _colinear(w1, w2, w1_norm, w2_norm, eps):
            return False, scale

    return True, scale


def verify_velocity_result(
    status: int,
    velocity: np.ndarray,
    velocity_limits: np.ndarray,
    target_twist: np.ndarray,
    achieved_twist: np.ndarray,
    eps: float,
) -> VelocityCheck:
    """
    Combine the checks for one velocity trial.

    success        = status >= 0 and in bounds and twists match
    scaled_success = status >= 0 and in bounds and proportionally scaled
    """
    in_bounds = within_velocity_bounds(velocity, velocity_limits)
    solved = status >= 0 and in_bounds
    scaled, scale = is_proportionally_scaled(target_twist, achieved_twist, eps)

    return VelocityCheck(
        success=solved and twists_match(target_twist, achieved_twist, eps),
        scaled_success=solved and scaled,
        in_bounds=in_bounds,
        scale=scale,
    )

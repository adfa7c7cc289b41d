"""
Solver contracts and adapters.

The benchmark only talks to solvers through two narrow interfaces:

    PositionSolver.solve(seed, target_pose) -> (status, configuration)
    VelocitySolver.solve(configuration, target_twist) -> (status, velocity)

A non-negative status means success. Position solvers flagged ``iterative``
perform a single refinement step per call and are wrapped in a timed retry
loop by the trial runner; all other solvers bound their own run time.
"""

import time
from abc import ABC, abstractmethod
from typing import Callable, Tuple

import numpy as np
import torch

from .urdf import KinematicChain, JointLimits, clip_to_limits
from .forward_kinematics import ForwardKinematics
from .inverse_kinematics import InverseKinematics
from .velocity_ik import VelocityIK, VelocitySolveType, FAILURE


class PositionSolver(ABC):
    """Position IK contract."""

    iterative = False

    @abstractmethod
    def solve(self, seed: np.ndarray, target_pose: np.ndarray) -> Tuple[int, np.ndarray]:
        ...


class VelocitySolver(ABC):
    """Velocity IK contract."""

    @abstractmethod
    def solve(self, configuration: np.ndarray,
              target_twist: np.ndarray) -> Tuple[int, np.ndarray]:
        ...


def quaternion_error(target_quat: np.ndarray, current_quat: np.ndarray) -> np.ndarray:
    """
    Rotation vector taking the current orientation to the target one.

    Args:
        target_quat: Target quaternion [4] (w, x, y, z)
        current_quat: Current quaternion [4] (w, x, y, z)

    Returns:
        Rotation vector [3] in the base frame
    """
    w1, x1, y1, z1 = target_quat
    w2, x2, y2, z2 = current_quat[0], -current_quat[1], -current_quat[2], -current_quat[3]

    w = w1*w2 - x1*x2 - y1*y2 - z1*z2
    v = np.array([
        w1*x2 + x1*w2 + y1*z2 - z1*y2,
        w1*y2 - x1*z2 + y1*w2 + z1*x2,
        w1*z2 + x1*y2 - y1*x2 + z1*w2,
    ])
    if w < 0:
        w, v = -w, -v

    norm = np.linalg.norm(v)
    if norm < 1e-12:
        return 2.0 * v
    return 2.0 * np.arctan2(norm, w) * v / norm


class NumericalIKSolver(PositionSolver):
    """
    Damped least squares / pseudo-inverse position IK with an internal
    iteration and time budget. One call is one complete solve.
    """

    def __init__(self, chain: KinematicChain, method: str = 'dls', timeout: float = 0.005,
                 tolerance: float = 1e-5, max_iter: int = 100, damping: float = 0.01,
                 device: str = 'cpu', clock: Callable[[], float] = time.perf_counter):
        self.ik = InverseKinematics(chain, device)
        self.method = method
        self.timeout = timeout
        self.tolerance = tolerance
        self.max_iter = max_iter
        self.damping = damping
        self.clock = clock

    def solve(self, seed, target_pose):
        target = torch.as_tensor(np.array(target_pose, dtype=np.float64))
        q = torch.as_tensor(np.array(seed, dtype=np.float64))

        start = self.clock()
        for _ in range(self.max_iter):
            q_next, converged = self.ik.step(target[:3], target[3:], q, method=self.method,
                                             tolerance=self.tolerance, damping=self.damping)
            if bool(converged):
                return 0, q.cpu().numpy()
            if not torch.all(torch.isfinite(q_next)):
                return FAILURE, q.cpu().numpy()
            q = q_next
            if self.clock() - start >= self.timeout:
                break
        return FAILURE, q.cpu().numpy()


class JacobianStepSolver(PositionSolver):
    """
    Joint-limited Newton-Raphson solver performing one iteration per call.

    A call succeeds only when the seed already reaches the target; otherwise
    it returns the refined configuration with a negative status so the trial
    runner can feed it back in.
    """

    iterative = True

    def __init__(self, chain: KinematicChain, tolerance: float = 1e-5, device: str = 'cpu'):
        self.ik = InverseKinematics(chain, device)
        self.tolerance = tolerance

    def solve(self, seed, target_pose):
        target = torch.as_tensor(np.array(target_pose, dtype=np.float64))
        q = torch.as_tensor(np.array(seed, dtype=np.float64))

        q_next, converged = self.ik.step(target[:3], target[3:], q, method='jacobian',
                                         tolerance=self.tolerance)
        if bool(converged):
            return 0, q.cpu().numpy()
        return FAILURE, q_next.cpu().numpy()


class LimitedVelocitySolver(VelocitySolver):
    """Velocity IK under symmetric joint velocity limits."""

    def __init__(self, fk: ForwardKinematics, limits: JointLimits,
                 solve_type: VelocitySolveType = VelocitySolveType.SATURATION):
        self.fk = fk
        self.limits = limits
        self.vik = VelocityIK(solve_type)

    def solve(self, configuration, target_twist):
        J = self.fk.jacobian(configuration)
        return self.vik.solve(J, target_twist, -self.limits.velocity, self.limits.velocity)


class VelocityIKPositionSolver(PositionSolver):
    """
    Position IK built on a velocity IK solver.

    Each iteration turns the pose error into a bounded twist, solves for joint
    velocities whose per-step bounds also keep the joints inside their
    position limits, and integrates over ``dt``.
    """

    def __init__(self, fk: ForwardKinematics, limits: JointLimits,
                 solve_type: VelocitySolveType = VelocitySolveType.SATURATION,
                 timeout: float = 0.005, tolerance: float = 1e-5, max_iter: int = 150,
                 dt: float = 0.2, linear_max_step: float = 0.05,
                 angular_max_step: float = 0.05,
                 clock: Callable[[], float] = time.perf_counter):
        self.fk = fk
        self.limits = limits
        self.vik = VelocityIK(solve_type)
        self.timeout = timeout
        self.tolerance = tolerance
        self.max_iter = max_iter
        self.dt = dt
        self.linear_max_step = linear_max_step
        self.angular_max_step = angular_max_step
        self.clock = clock

    def solve(self, seed, target_pose):
        target_pose = np.asarray(target_pose, dtype=np.float64)
        lower, upper = self.limits.lower, self.limits.upper
        q = clip_to_limits(np.asarray(seed, dtype=np.float64), self.limits)

        start = self.clock()
        for _ in range(self.max_iter):
            pose = self.fk.solve_pose(q)
            linear = target_pose[:3] - pose[:3]
            angular = quaternion_error(target_pose[3:], pose[3:])

            linear_norm = np.linalg.norm(linear)
            angular_norm = np.linalg.norm(angular)
            if linear_norm < self.tolerance and angular_norm < self.tolerance:
                return 0, q
            if self.clock() - start >= self.timeout:
                break

            if linear_norm > self.linear_max_step:
                linear = linear * self.linear_max_step / linear_norm
            if angular_norm > self.angular_max_step:
                angular = angular * self.angular_max_step / angular_norm
            twist = np.concatenate([linear, angular]) / self.dt

            qdot_lower = np.maximum(-self.limits.velocity, (lower - q) / self.dt)
            qdot_upper = np.minimum(self.limits.velocity, (upper - q) / self.dt)

            status, qdot = self.vik.solve(self.fk.jacobian(q), twist, qdot_lower, qdot_upper)
            if status < 0:
                return status, q
            q = clip_to_limits(q + qdot * self.dt, self.limits)

        return FAILURE, q

"""
Trial Runner

Executes one solver call (or one timed retry loop) per trial and measures the
wall-clock time spent inside solver calls.
"""

import time
from dataclasses import dataclass
from typing import Callable, Optional

import numpy as np

from ..robot.solvers import PositionSolver, VelocitySolver


@dataclass
class TrialOutcome:
    """Result of a single trial."""
    success: bool
    elapsed_seconds: float
    result: Optional[np.ndarray]
    status: int


def run_position_trial(
    solver: PositionSolver,
    seed: np.ndarray,
    target_pose: np.ndarray,
    timeout: float,
    clock: Callable[[], float] = time.perf_counter,
) -> TrialOutcome:
    """
    Run one position IK trial.

    Iterative solvers are called repeatedly, each call seeded with the
    previous result, until they report success or the elapsed time reaches
    ``timeout``. Other solvers are called once.

    Args:
        solver: Position solver under test
        seed: Initial guess [n_joints]
        target_pose: Target end-effector pose
        timeout: Time budget in seconds for the retry loop
        clock: Monotonic clock

    Returns:
        TrialOutcome; a timeout is reported as a miss
    """
    result = seed
    start = clock()
    if getattr(solver, "iterative", False):
        while True:
            status, result = solver.solve(result, target_pose)
            elapsed = clock() - start
            if status >= 0 or elapsed >= timeout:
                break
    else:
        status, result = solver.solve(seed, target_pose)
        elapsed = clock() - start

    return TrialOutcome(
        success=status >= 0,
        elapsed_seconds=elapsed,
        result=result,
        status=status,
    )


def run_velocity_trial(
    solver: VelocitySolver,
    configuration: np.ndarray,
    target_twist: np.ndarray,
    clock: Callable[[], float] = time.perf_counter,
) -> TrialOutcome:
    """
    Run one velocity IK trial (single call).

    ``success`` only reflects the returned status here; the velocity checks
    are applied by the caller.
    """
    start = clock()
    status, velocity = solver.solve(configuration, target_twist)
    elapsed = clock() - start

    return TrialOutcome(
        success=status >= 0,
        elapsed_seconds=elapsed,
        result=velocity,
        status=status,
    )

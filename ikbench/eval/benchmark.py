"""
Benchmark Orchestrator

Drives the position sweep and then the velocity sweep over every configured
solver variant. The sample set is generated once and shared, read-only, by
both phases and all variants.
"""

from collections import OrderedDict
from dataclasses import dataclass
from typing import Dict, Mapping, Optional, Tuple

import numpy as np
from tqdm import tqdm

from ..data.sampling import ConfigSampler, ConfigurationError, SampleSet
from ..robot.urdf import ChainError, JointLimits, KinematicChain
from ..robot.forward_kinematics import ForwardKinematics
from ..robot.velocity_ik import VelocitySolveType
from ..robot.solvers import (
    PositionSolver,
    VelocitySolver,
    NumericalIKSolver,
    JacobianStepSolver,
    LimitedVelocitySolver,
    VelocityIKPositionSolver,
)
from .metrics import BenchmarkResults, VariantStatistics, POSITION, VELOCITY
from .seeds import SeedStrategy, select_seed
from .trials import run_position_trial, run_velocity_trial
from .verification import verify_velocity_result
from .visualization import format_variant_line


@dataclass
class BenchmarkConfig:
    """Configuration for one benchmark run."""

    # Samples
    num_position_samples: int = 100
    num_velocity_samples: int = 1000
    seed: Optional[int] = None  # None draws a fresh sample set each run
    close_seed_delta: float = 0.2  # rad

    # Solvers
    timeout: float = 0.005  # seconds per position trial
    position_eps: float = 1e-5
    velocity_eps: float = 1e-3
    device: str = "cpu"

    # Mechanism
    chain_start: Optional[str] = None
    chain_end: Optional[str] = None

    # Seed strategy flags
    random_position_seed: bool = False
    close_position_seed: bool = False

    def __post_init__(self):
        """Validate configuration."""
        if self.num_position_samples < 1:
            raise ConfigurationError("num_position_samples must be positive")
        if self.num_velocity_samples < 1:
            raise ConfigurationError("num_velocity_samples must be positive")
        if self.timeout <= 0:
            raise ConfigurationError("timeout must be positive")
        if self.position_eps <= 0 or self.velocity_eps <= 0:
            raise ConfigurationError("tolerances must be positive")
        if self.close_seed_delta < 0:
            raise ConfigurationError("close_seed_delta must be non-negative")

    @property
    def seed_strategy(self) -> SeedStrategy:
        return SeedStrategy.from_flags(self.random_position_seed, self.close_position_seed)

    @classmethod
    def quick_test(cls) -> "BenchmarkConfig":
        """Small run for smoke testing."""
        config = cls()
        config.num_position_samples = 10
        config.num_velocity_samples = 20
        config.timeout = 0.05
        config.seed = 0
        return config


VELOCITY_VARIANTS = OrderedDict([
    ("SNS Saturation", VelocitySolveType.SATURATION),
    ("Uniform Scale", VelocitySolveType.UNIFORM_SCALE),
    ("Clamp", VelocitySolveType.CLAMP),
])


def build_default_solvers(
    chain: KinematicChain,
    config: BenchmarkConfig,
) -> Tuple[ForwardKinematics, JointLimits,
           Dict[str, PositionSolver], Dict[str, VelocitySolver]]:
    """
    Build the forward kinematics, limits and solver variants for a chain.

    Position variants run one velocity-IK-driven solver per velocity variant,
    followed by the Jacobian (single step, timed retry) and DLS baselines.
    Velocity variants are followed by the unconstrained pseudo-inverse.

    Raises:
        ChainError: the chain has no valid joint limits
    """
    fk = ForwardKinematics(chain, device=config.device)
    limits = chain.limits

    position_solvers = OrderedDict()
    velocity_solvers = OrderedDict()

    for name, solve_type in VELOCITY_VARIANTS.items():
        position_solvers[name] = VelocityIKPositionSolver(
            fk, limits, solve_type, timeout=config.timeout, tolerance=config.position_eps)
        velocity_solvers[name] = LimitedVelocitySolver(fk, limits, solve_type)

    position_solvers["Jacobian"] = JacobianStepSolver(
        chain, tolerance=config.position_eps, device=config.device)
    position_solvers["DLS"] = NumericalIKSolver(
        chain, method='dls', timeout=config.timeout, tolerance=config.position_eps,
        device=config.device)
    velocity_solvers["Pseudo-inverse"] = LimitedVelocitySolver(fk, limits, VelocitySolveType.PINV)

    return fk, limits, position_solvers, velocity_solvers


class Benchmark:
    """
    IK benchmark over a fixed random sample set.

    ``fk`` must provide ``n_joints``, ``solve_pose(q)`` and
    ``solve_twist(q, qdot)``.
    """

    def __init__(
        self,
        fk,
        limits: JointLimits,
        position_solvers: Mapping[str, PositionSolver],
        velocity_solvers: Mapping[str, VelocitySolver],
        config: BenchmarkConfig,
        verbose: bool = True,
        rng: Optional[np.random.Generator] = None,
    ):
        """
        Args:
            fk: Forward kinematics for pose and twist targets
            limits: Joint limits of the chain
            position_solvers: Position variants, in sweep order
            velocity_solvers: Velocity variants, in sweep order
            config: Run configuration
            verbose: Print progress and per-variant lines
            rng: Random generator for the sample set (defaults to config.seed)

        Raises:
            ChainError: joint count of the chain and limits differ
        """
        if fk.n_joints != limits.n_joints:
            raise ChainError(f"Chain has {fk.n_joints} joints but limits "
                             f"describe {limits.n_joints}")

        self.fk = fk
        self.limits = limits
        self.position_solvers = position_solvers
        self.velocity_solvers = velocity_solvers
        self.config = config
        self.verbose = verbose
        self.rng = rng
        self.nominal = limits.midpoint()

        # TensorBoard (optional)
        self.writer = None

    def generate_samples(self) -> SampleSet:
        """Generate the shared sample set."""
        sampler = ConfigSampler(self.limits, rng=self.rng, seed=self.config.seed)
        return sampler.build_sample_set(
            self.config.num_position_samples,
            self.config.num_velocity_samples,
            delta=self.config.close_seed_delta,
        )

    def _check_samples(self, samples: SampleSet, n: int):
        if n < 1:
            raise ConfigurationError("Sweep needs at least one sample")
        if len(samples) < n:
            raise ConfigurationError(f"Sample set has {len(samples)} entries, sweep needs {n}")
        if samples.n_joints != self.limits.n_joints:
            raise ChainError(f"Samples have {samples.n_joints} joints, "
                             f"chain has {self.limits.n_joints}")

    def _log(self, message: str):
        if self.verbose:
            print(message)

    def _log_scalars(self, phase: str, stats: VariantStatistics):
        if self.writer is None:
            return
        self.writer.add_scalar(f"{phase}/{stats.name}/success_rate", stats.success_rate)
        self.writer.add_scalar(f"{phase}/{stats.name}/avg_time_ms",
                               1000.0 * stats.average_elapsed_seconds)
        if phase == VELOCITY:
            self.writer.add_scalar(f"{phase}/{stats.name}/scaled_success_rate",
                                   stats.scaled_success_rate)
            self.writer.add_scalar(f"{phase}/{stats.name}/average_scale", stats.average_scale)

    def run_position_sweep(self, samples: SampleSet) -> Dict[str, VariantStatistics]:
        """
        Run every position variant over the first ``num_position_samples``
        configurations, seeding each trial with the configured strategy.
        """
        n = self.config.num_position_samples
        self._check_samples(samples, n)

        strategy = self.config.seed_strategy
        targets = [self.fk.solve_pose(samples.positions[i]) for i in range(n)]
        results = OrderedDict()

        for name, solver in self.position_solvers.items():
            self._log(f"*** Testing {name} with {n} random samples")
            stats = VariantStatistics(name)

            for i in tqdm(range(n), desc=name, disable=not self.verbose, leave=False):
                seed = select_seed(i, strategy, samples, self.nominal)
                outcome = run_position_trial(solver, seed, targets[i], self.config.timeout)
                stats.record(outcome)

            self._log(format_variant_line(stats, POSITION))
            self._log_scalars(POSITION, stats)
            results[name] = stats

        return results

    def run_velocity_sweep(self, samples: SampleSet) -> Dict[str, VariantStatistics]:
        """
        Run every velocity variant over the first ``num_velocity_samples``
        (configuration, velocity) pairs and verify each result.
        """
        n = self.config.num_velocity_samples
        self._check_samples(samples, n)

        eps = self.config.velocity_eps
        targets = [self.fk.solve_twist(samples.positions[i], samples.velocities[i])
                   for i in range(n)]
        results = OrderedDict()

        for name, solver in self.velocity_solvers.items():
            self._log(f"*** Testing {name} velocities with {n} random samples")
            stats = VariantStatistics(name)

            for i in tqdm(range(n), desc=name, disable=not self.verbose, leave=False):
                q = samples.positions[i]
                outcome = run_velocity_trial(solver, q, targets[i])
                achieved = self.fk.solve_twist(q, outcome.result)
                check = verify_velocity_result(outcome.status, outcome.result,
                                               self.limits.velocity, targets[i], achieved, eps)
                stats.record(outcome, success=check.success,
                             scaled_success=check.scaled_success, scale=check.scale)

            self._log(format_variant_line(stats, VELOCITY))
            self._log_scalars(VELOCITY, stats)
            results[name] = stats

        return results

    def run(self, samples: Optional[SampleSet] = None) -> BenchmarkResults:
        """Generate samples (unless given), then run both sweeps in order."""
        if samples is None:
            samples = self.generate_samples()

        results = BenchmarkResults()
        results.position = self.run_position_sweep(samples)
        results.velocity = self.run_velocity_sweep(samples)
        return results

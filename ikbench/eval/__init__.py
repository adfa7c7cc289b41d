"""
Eval Module - Benchmark methodology for IK solvers.

This module provides seed selection, trial execution with timeouts,
velocity result verification, statistics aggregation, reporting and the
benchmark orchestrator.
"""

from .seeds import SeedStrategy, select_seed
from .trials import TrialOutcome, run_position_trial, run_velocity_trial
from .verification import (
    within_velocity_bounds,
    twists_match,
    is_proportionally_scaled,
    verify_velocity_result,
)
from .metrics import VariantStatistics, BenchmarkResults
from .benchmark import Benchmark, BenchmarkConfig, build_default_solvers

__all__ = [
    "SeedStrategy",
    "select_seed",
    "TrialOutcome",
    "run_position_trial",
    "run_velocity_trial",
    "within_velocity_bounds",
    "twists_match",
    "is_proportionally_scaled",
    "verify_velocity_result",
    "VariantStatistics",
    "BenchmarkResults",
    "Benchmark",
    "BenchmarkConfig",
    "build_default_solvers",
]

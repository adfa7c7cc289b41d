"""
Seed selection for position IK trials.

The strategy is chosen once per run and applied identically to every solver
variant, so all variants start from the same initial guesses.
"""

from enum import Enum

import numpy as np

from ..data.sampling import SampleSet


class SeedStrategy(str, Enum):
    """Initial guess strategy."""

    NOMINAL = "nominal"
    CLOSE = "close"
    CHAINED_RANDOM = "chained_random"

    @classmethod
    def from_flags(cls, random_seed: bool = False, close_seed: bool = False) -> "SeedStrategy":
        """Map the two boolean run parameters to a strategy. Close wins over random."""
        if close_seed:
            return cls.CLOSE
        if random_seed:
            return cls.CHAINED_RANDOM
        return cls.NOMINAL


def select_seed(
    index: int,
    strategy: SeedStrategy,
    samples: SampleSet,
    nominal: np.ndarray,
) -> np.ndarray:
    """
    Choose the seed configuration for one trial.

    Args:
        index: Trial index
        strategy: Seed strategy for the run
        samples: Shared sample set
        nominal: Joint-limit midpoint configuration

    Returns:
        Seed configuration [n_joints]
    """
    if strategy == SeedStrategy.CLOSE:
        return samples.close_seeds[index]
    if strategy == SeedStrategy.CHAINED_RANDOM and index > 0:
        # Solution of the previous target, unrelated to this one
        return samples.positions[index - 1]
    return nominal

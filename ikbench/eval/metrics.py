"""
Benchmark Metrics

Per-variant accumulation of trial outcomes:
- Success rate
- Scaled success rate (velocity phase)
- Average solve time
"""

from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Dict, Optional

from ..data.sampling import ConfigurationError
from .trials import TrialOutcome


POSITION = "position"
VELOCITY = "velocity"


@dataclass
class VariantStatistics:
    """Running statistics for one solver variant in one phase."""

    name: str
    sample_count: int = 0
    success_count: int = 0
    scaled_success_count: int = 0
    total_elapsed_seconds: float = 0.0
    total_scale: float = 0.0

    def record(self, outcome: TrialOutcome, success: Optional[bool] = None,
               scaled_success: bool = False, scale: Optional[float] = None):
        """
        Add one trial.

        Args:
            outcome: Trial outcome (provides the elapsed time)
            success: Overrides ``outcome.success`` when the caller applied
                extra checks
            scaled_success: Whether the trial counts as a scaled success
            scale: Achieved-to-target twist scale, summed over scaled successes
        """
        if success is None:
            success = outcome.success
        self.sample_count += 1
        self.total_elapsed_seconds += outcome.elapsed_seconds
        if success:
            self.success_count += 1
        if scaled_success:
            self.scaled_success_count += 1
            if scale is not None:
                self.total_scale += scale

    def _require_samples(self):
        if self.sample_count == 0:
            raise ConfigurationError(f"No samples recorded for variant '{self.name}'")

    @property
    def success_rate(self) -> float:
        self._require_samples()
        return self.success_count / self.sample_count

    @property
    def scaled_success_rate(self) -> float:
        self._require_samples()
        return self.scaled_success_count / self.sample_count

    @property
    def average_elapsed_seconds(self) -> float:
        self._require_samples()
        return self.total_elapsed_seconds / self.sample_count

    @property
    def average_scale(self) -> float:
        """Mean twist scale of the scaled successes (0.0 when there are none)."""
        if self.scaled_success_count == 0:
            return 0.0
        return self.total_scale / self.scaled_success_count

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "sample_count": self.sample_count,
            "success_count": self.success_count,
            "scaled_success_count": self.scaled_success_count,
            "success_rate": self.success_rate,
            "scaled_success_rate": self.scaled_success_rate,
            "average_elapsed_seconds": self.average_elapsed_seconds,
            "average_scale": self.average_scale,
        }


@dataclass
class BenchmarkResults:
    """Statistics of a full run, keyed by variant name in sweep order."""

    position: Dict[str, VariantStatistics] = field(default_factory=OrderedDict)
    velocity: Dict[str, VariantStatistics] = field(default_factory=OrderedDict)

    def phase(self, name: str) -> Dict[str, VariantStatistics]:
        if name == POSITION:
            return self.position
        if name == VELOCITY:
            return self.velocity
        raise ValueError(f"Unknown phase: {name}")

    def to_dict(self) -> dict:
        return {
            POSITION: [s.to_dict() for s in self.position.values()],
            VELOCITY: [s.to_dict() for s in self.velocity.values()],
        }

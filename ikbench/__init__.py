"""
ikbench - benchmark harness for inverse kinematics solvers.

Subpackages:
- robot: kinematic chain, forward kinematics and the solvers under test
- data: random sample generation
- eval: seeds, trials, verification, statistics, reporting, orchestration
"""

__version__ = "0.1.0"

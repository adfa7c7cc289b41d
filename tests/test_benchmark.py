"""
Unit tests for the benchmark orchestrator
"""

import unittest
import os
import sys

import numpy as np

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from ikbench.data import ConfigSampler, ConfigurationError
from ikbench.robot import ChainError, JointLimits, JointSpec, extract_chain
from ikbench.robot.solvers import PositionSolver, VelocitySolver
from ikbench.eval import Benchmark, BenchmarkConfig, SeedStrategy, build_default_solvers
from ikbench.eval.metrics import POSITION, VELOCITY


class LineKinematics:
    """Single prismatic joint along x; the pose is the joint value."""

    n_joints = 1

    def solve_pose(self, q):
        pose = np.zeros(7)
        pose[0] = q[0]
        pose[3] = 1.0
        return pose

    def solve_twist(self, q, qdot):
        twist = np.zeros(6)
        twist[0] = qdot[0]
        return twist


class IdentityPositionSolver(PositionSolver):

    def __init__(self):
        self.seeds = []

    def solve(self, seed, target_pose):
        self.seeds.append(np.array(seed))
        return 0, np.array(target_pose[:1])


class ExactVelocitySolver(VelocitySolver):

    def solve(self, configuration, target_twist):
        return 0, np.array(target_twist[:1])


class TripleLimitVelocitySolver(VelocitySolver):

    def __init__(self, limits):
        self.limits = limits

    def solve(self, configuration, target_twist):
        return 0, 3.0 * self.limits.velocity


class RecordingWriter:

    def __init__(self):
        self.scalars = {}

    def add_scalar(self, tag, value):
        self.scalars[tag] = value


def make_line_benchmark(position_solvers=None, velocity_solvers=None, **config_kwargs):
    limits = JointLimits([-1.0], [1.0], [0.5])
    config_kwargs.setdefault('num_position_samples', 10)
    config_kwargs.setdefault('num_velocity_samples', 10)
    config_kwargs.setdefault('seed', 0)
    config = BenchmarkConfig(**config_kwargs)
    if position_solvers is None:
        position_solvers = {'Identity': IdentityPositionSolver()}
    if velocity_solvers is None:
        velocity_solvers = {'Exact': ExactVelocitySolver(),
                            'Triple': TripleLimitVelocitySolver(limits)}
    return Benchmark(LineKinematics(), limits, position_solvers, velocity_solvers,
                     config, verbose=False)


def make_planar_chain():
    def offset(x):
        T = np.eye(4)
        T[0, 3] = x
        return T

    z = np.array([0.0, 0.0, 1.0])
    joints = [
        JointSpec('joint1', 'revolute', 'base_link', 'link1', z, offset(0.0), -2.5, 2.5, 2.0),
        JointSpec('joint2', 'revolute', 'link1', 'link2', z, offset(1.0), -2.5, 2.5, 2.0),
        JointSpec('joint3', 'revolute', 'link2', 'link3', z, offset(1.0), -2.5, 2.5, 2.0),
        JointSpec('tool_joint', 'fixed', 'link3', 'tool', z, offset(1.0)),
    ]
    return extract_chain(joints, 'base_link', 'tool')


class TestBenchmarkConfig(unittest.TestCase):
    """Test benchmark configuration."""

    def test_defaults(self):
        config = BenchmarkConfig()
        self.assertEqual(config.num_position_samples, 100)
        self.assertEqual(config.num_velocity_samples, 1000)
        self.assertEqual(config.timeout, 0.005)
        self.assertEqual(config.seed_strategy, SeedStrategy.NOMINAL)

    def test_seed_strategy(self):
        config = BenchmarkConfig(random_position_seed=True, close_position_seed=True)
        self.assertEqual(config.seed_strategy, SeedStrategy.CLOSE)

    def test_invalid_values(self):
        with self.assertRaises(ConfigurationError):
            BenchmarkConfig(num_position_samples=0)
        with self.assertRaises(ConfigurationError):
            BenchmarkConfig(num_velocity_samples=-5)
        with self.assertRaises(ConfigurationError):
            BenchmarkConfig(timeout=0.0)
        with self.assertRaises(ConfigurationError):
            BenchmarkConfig(velocity_eps=0.0)

    def test_quick_test(self):
        config = BenchmarkConfig.quick_test()
        self.assertEqual(config.num_position_samples, 10)
        self.assertEqual(config.seed, 0)


class TestBenchmark(unittest.TestCase):
    """Test the sweeps with stand-in kinematics and solvers."""

    def test_identity_position_solver(self):
        benchmark = make_line_benchmark()
        results = benchmark.run()

        stats = results.position['Identity']
        self.assertEqual(stats.sample_count, 10)
        self.assertEqual(stats.success_rate, 1.0)

    def test_velocity_success_and_bounds(self):
        results = make_line_benchmark().run()

        exact = results.velocity['Exact']
        self.assertEqual(exact.sample_count, 10)
        self.assertEqual(exact.success_rate, 1.0)
        self.assertEqual(exact.scaled_success_rate, 1.0)
        self.assertAlmostEqual(exact.average_scale, 1.0)

        triple = results.velocity['Triple']
        self.assertEqual(triple.success_rate, 0.0)
        self.assertEqual(triple.scaled_success_rate, 0.0)

    def test_variant_order(self):
        velocity_solvers = {'Triple': TripleLimitVelocitySolver(JointLimits([-1.0], [1.0], [0.5])),
                            'Exact': ExactVelocitySolver()}
        results = make_line_benchmark(velocity_solvers=velocity_solvers).run()
        self.assertEqual(list(results.velocity), ['Triple', 'Exact'])

    def test_shared_seeds(self):
        """Every variant receives the same seeds."""
        first, second = IdentityPositionSolver(), IdentityPositionSolver()
        benchmark = make_line_benchmark(position_solvers={'first': first, 'second': second},
                                        random_position_seed=True)
        samples = benchmark.generate_samples()
        benchmark.run_position_sweep(samples)

        self.assertEqual(len(first.seeds), 10)
        np.testing.assert_array_equal(first.seeds[0], benchmark.nominal)
        for i in range(1, 10):
            np.testing.assert_array_equal(first.seeds[i], samples.positions[i - 1])
        for a, b in zip(first.seeds, second.seeds):
            np.testing.assert_array_equal(a, b)

    def test_sample_set_size(self):
        benchmark = make_line_benchmark(num_position_samples=4, num_velocity_samples=7)
        samples = benchmark.generate_samples()
        self.assertEqual(len(samples), 7)

        results = benchmark.run(samples)
        self.assertEqual(results.position['Identity'].sample_count, 4)
        self.assertEqual(results.velocity['Exact'].sample_count, 7)

    def test_short_sample_set(self):
        benchmark = make_line_benchmark(num_position_samples=10)
        samples = ConfigSampler(benchmark.limits, seed=0).build_sample_set(3, 3)
        with self.assertRaises(ConfigurationError):
            benchmark.run_position_sweep(samples)

    def test_joint_count_mismatch(self):
        limits = JointLimits([-1.0, -1.0], [1.0, 1.0], [0.5, 0.5])
        with self.assertRaises(ChainError):
            Benchmark(LineKinematics(), limits, {}, {}, BenchmarkConfig(), verbose=False)

    def test_writer_scalars(self):
        benchmark = make_line_benchmark()
        benchmark.writer = RecordingWriter()
        benchmark.run()

        scalars = benchmark.writer.scalars
        self.assertEqual(scalars['position/Identity/success_rate'], 1.0)
        self.assertEqual(scalars['velocity/Triple/scaled_success_rate'], 0.0)
        self.assertIn('velocity/Exact/avg_time_ms', scalars)
        self.assertAlmostEqual(scalars['velocity/Exact/average_scale'], 1.0)


class TestDefaultSolvers(unittest.TestCase):
    """End-to-end run on a planar arm with the bundled solvers."""

    @classmethod
    def setUpClass(cls):
        cls.chain = make_planar_chain()
        cls.config = BenchmarkConfig.quick_test()

    def test_build_default_solvers(self):
        fk, limits, position_solvers, velocity_solvers = build_default_solvers(
            self.chain, self.config)

        self.assertEqual(fk.n_joints, 3)
        self.assertEqual(limits.n_joints, 3)
        self.assertEqual(list(position_solvers),
                         ['SNS Saturation', 'Uniform Scale', 'Clamp', 'Jacobian', 'DLS'])
        self.assertEqual(list(velocity_solvers),
                         ['SNS Saturation', 'Uniform Scale', 'Clamp', 'Pseudo-inverse'])
        self.assertTrue(position_solvers['Jacobian'].iterative)
        self.assertFalse(position_solvers['DLS'].iterative)

    def test_missing_limits(self):
        joints = [JointSpec('joint1', 'revolute', 'base', 'link1', velocity=None)]
        with self.assertRaises(ChainError):
            build_default_solvers(extract_chain(joints), self.config)

    def test_run(self):
        fk, limits, position_solvers, velocity_solvers = build_default_solvers(
            self.chain, self.config)
        benchmark = Benchmark(fk, limits, position_solvers, velocity_solvers, self.config,
                              verbose=False)
        results = benchmark.run()

        for phase, expected in ((POSITION, self.config.num_position_samples),
                                (VELOCITY, self.config.num_velocity_samples)):
            for stats in results.phase(phase).values():
                self.assertEqual(stats.sample_count, expected)
                self.assertGreaterEqual(stats.success_rate, 0.0)
                self.assertLessEqual(stats.success_rate, 1.0)
                self.assertGreater(stats.average_elapsed_seconds, 0.0)

        # Sampled velocities are within limits, so the unclamped solution is exact
        self.assertGreaterEqual(results.velocity['SNS Saturation'].success_rate, 0.9)
        self.assertGreaterEqual(results.velocity['Pseudo-inverse'].success_rate, 0.9)

        data = results.to_dict()
        self.assertEqual(len(data['position']), 5)
        self.assertEqual(len(data['velocity']), 4)


if __name__ == '__main__':
    unittest.main()

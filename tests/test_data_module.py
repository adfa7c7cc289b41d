"""
测试 Data 模块功能
"""

import os
import sys
import numpy as np
import pytest

# 添加项目路径
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from ikbench.robot.urdf import JointLimits
from ikbench.data import ConfigurationError, SampleSet, ConfigSampler


class FixedRandom:
    """每次返回固定值的随机数生成器"""

    def __init__(self, value):
        self.value = value

    def random(self):
        return self.value


def make_limits():
    return JointLimits(
        lower=[-1.0, -2.0, 0.0],
        upper=[1.0, 0.5, 0.1],
        velocity=[1.0, 2.0, 0.5],
    )


def test_sample_uniform():
    """测试均匀采样"""
    sampler = ConfigSampler(make_limits(), seed=0)
    values = np.array([sampler.sample_uniform(-0.3, 0.7) for _ in range(1000)])

    assert np.all(values >= -0.3)
    assert np.all(values <= 0.7)
    # 均值应接近区间中点
    assert abs(values.mean() - 0.2) < 0.05

    assert sampler.sample_uniform(0.4, 0.4) == 0.4

    # 舍入可能超出上限时结果被截断
    assert ConfigSampler(make_limits(), rng=FixedRandom(1.0)).sample_uniform(0.1, 0.3) <= 0.3


def test_bounded_delta_sides():
    """测试硬币选择和另一侧回退"""
    upper = ConfigSampler(make_limits(), rng=FixedRandom(0.7))
    lower = ConfigSampler(make_limits(), rng=FixedRandom(0.3))

    assert upper.sample_bounded_delta(0.0, 0.2, -1.0, 1.0) == pytest.approx(0.2)
    assert lower.sample_bounded_delta(0.0, 0.2, -1.0, 1.0) == pytest.approx(-0.2)

    # 选中的一侧越界时使用另一侧
    assert upper.sample_bounded_delta(0.9, 0.2, -1.0, 1.0) == pytest.approx(0.7)
    assert lower.sample_bounded_delta(-0.9, 0.2, -1.0, 1.0) == pytest.approx(-0.7)

    # 恰好落在边界上是允许的
    assert upper.sample_bounded_delta(0.8, 0.2, -1.0, 1.0) == pytest.approx(1.0)


def test_bounded_delta_narrow_range():
    """两侧都越界时结果仍在限位内"""
    upper = ConfigSampler(make_limits(), rng=FixedRandom(0.7))
    lower = ConfigSampler(make_limits(), rng=FixedRandom(0.3))

    assert upper.sample_bounded_delta(0.05, 0.2, 0.0, 0.1) == pytest.approx(0.0)
    assert lower.sample_bounded_delta(0.05, 0.2, 0.0, 0.1) == pytest.approx(0.1)


def test_close_seeds():
    """测试扰动初值在限位内且幅度有界"""
    limits = make_limits()
    sampler = ConfigSampler(limits, seed=1)

    for _ in range(200):
        q = sampler.sample_configuration()
        seed = sampler.sample_close_seed(q, magnitude=0.2)

        assert np.all(seed >= limits.lower)
        assert np.all(seed <= limits.upper)
        assert np.all(np.abs(seed - q) <= 0.2 + 1e-12)
        # 前两个关节范围足够大, 扰动幅度应恰好为 0.2
        np.testing.assert_allclose(np.abs(seed - q)[:2], 0.2)


def test_build_sample_set():
    """测试样本集生成"""
    limits = make_limits()
    samples = ConfigSampler(limits, seed=42).build_sample_set(5, 12, delta=0.2)
    print(f"样本数量: {len(samples)}, 关节数量: {samples.n_joints}")

    assert len(samples) == 12
    assert samples.n_joints == 3
    assert samples.positions.shape == samples.velocities.shape == samples.close_seeds.shape

    assert np.all(samples.positions >= limits.lower)
    assert np.all(samples.positions <= limits.upper)
    assert np.all(np.abs(samples.velocities) <= limits.velocity)
    assert np.all(samples.close_seeds >= limits.lower)
    assert np.all(samples.close_seeds <= limits.upper)


def test_sample_set_reproducible():
    """相同种子生成相同样本集"""
    a = ConfigSampler(make_limits(), seed=7).build_sample_set(10, 10)
    b = ConfigSampler(make_limits(), seed=7).build_sample_set(10, 10)
    c = ConfigSampler(make_limits(), seed=8).build_sample_set(10, 10)

    np.testing.assert_array_equal(a.positions, b.positions)
    np.testing.assert_array_equal(a.velocities, b.velocities)
    np.testing.assert_array_equal(a.close_seeds, b.close_seeds)
    assert not np.array_equal(a.positions, c.positions)


def test_sample_set_read_only():
    """样本集在生成后不可修改"""
    samples = ConfigSampler(make_limits(), seed=0).build_sample_set(3, 3)

    with pytest.raises(ValueError):
        samples.positions[0, 0] = 10.0
    with pytest.raises(ValueError):
        samples.velocities[1] = 0.0


def test_sample_set_shape_mismatch():
    with pytest.raises(ConfigurationError):
        SampleSet(np.zeros((3, 2)), np.zeros((3, 2)), np.zeros((2, 2)))


def test_zero_samples():
    """样本数量为零时报错"""
    sampler = ConfigSampler(make_limits(), seed=0)

    with pytest.raises(ConfigurationError):
        sampler.build_sample_set(0, 10)
    with pytest.raises(ConfigurationError):
        sampler.build_sample_set(10, 0)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])

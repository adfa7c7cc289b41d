"""
采样策略模块

生成基准测试使用的随机样本集:
1. 关节限位内均匀采样的关节配置
2. 速度限位内均匀采样的关节速度
3. 靠近真实解的有界扰动初值 ("close seed")

随机数生成器由调用者注入, 固定种子即可复现整个样本集。
"""

from dataclasses import dataclass
from typing import Optional

import numpy as np

from ..robot.urdf import JointLimits


class ConfigurationError(ValueError):
    """基准测试配置无效 (例如样本数量为零)"""
    pass


@dataclass(frozen=True)
class SampleSet:
    """
    固定样本集

    Attributes:
        positions: 关节配置 [N, n_joints]
        velocities: 关节速度 [N, n_joints]
        close_seeds: 每个配置对应的有界扰动初值 [N, n_joints]
    """
    positions: np.ndarray
    velocities: np.ndarray
    close_seeds: np.ndarray

    def __post_init__(self):
        for name in ('positions', 'velocities', 'close_seeds'):
            array = np.array(getattr(self, name), dtype=np.float64)
            array.setflags(write=False)
            object.__setattr__(self, name, array)

        if not (self.positions.shape == self.velocities.shape == self.close_seeds.shape):
            raise ConfigurationError("Sample arrays must share the same shape")

    def __len__(self) -> int:
        return len(self.positions)

    @property
    def n_joints(self) -> int:
        return self.positions.shape[1]


class ConfigSampler:
    """
    关节空间采样器

    在关节限位内生成均匀随机配置、随机速度和有界扰动。
    """

    def __init__(self, limits: JointLimits, rng: Optional[np.random.Generator] = None,
                 seed: Optional[int] = None):
        """
        Args:
            limits: 关节限位
            rng: 随机数生成器 (优先于 seed)
            seed: 随机种子
        """
        self.limits = limits
        self.rng = rng if rng is not None else np.random.default_rng(seed)

    def sample_uniform(self, low: float, high: float) -> float:
        """在 [low, high] 内均匀采样"""
        value = low + self.rng.random() * (high - low)
        # 舍入可能使结果略超上限
        return min(value, high)

    def sample_bounded_delta(self, value: float, magnitude: float,
                             low: float, high: float) -> float:
        """
        有界扰动采样

        以公平的硬币决定在 value 上加还是减 magnitude;
        若选中的一侧超出 [low, high], 则无条件使用另一侧。
        两侧都越界时, 将另一侧裁剪到限位内。

        Args:
            value: 原始值 (low <= value <= high)
            magnitude: 期望扰动幅度
            low, high: 限位

        Returns:
            限位内的扰动值
        """
        lower_value = value - magnitude
        upper_value = value + magnitude
        upper_side = self.rng.random() >= 0.5

        if upper_side:
            result = upper_value if upper_value <= high else lower_value
        else:
            result = lower_value if lower_value >= low else upper_value

        return min(max(result, low), high)

    def sample_configuration(self) -> np.ndarray:
        """采样一个关节配置 [n_joints]"""
        return np.array([self.sample_uniform(l, u)
                         for l, u in zip(self.limits.lower, self.limits.upper)])

    def sample_velocity(self) -> np.ndarray:
        """采样一个关节速度 [n_joints], 每个关节在 [-v, v] 内"""
        return np.array([self.sample_uniform(-v, v) for v in self.limits.velocity])

    def sample_close_seed(self, q: np.ndarray, magnitude: float = 0.2) -> np.ndarray:
        """对关节配置的每个关节做有界扰动"""
        return np.array([self.sample_bounded_delta(value, magnitude, l, u)
                         for value, l, u in zip(q, self.limits.lower, self.limits.upper)])

    def build_sample_set(self, num_position_samples: int, num_velocity_samples: int,
                         delta: float = 0.2) -> SampleSet:
        """
        生成样本集

        样本数量为 max(num_position_samples, num_velocity_samples);
        速度样本 i 与位置样本 i 配对使用。

        Args:
            num_position_samples: 位置测试样本数
            num_velocity_samples: 速度测试样本数
            delta: close seed 扰动幅度 (rad)

        Returns:
            SampleSet

        Raises:
            ConfigurationError: 样本数量为零或负数
        """
        if num_position_samples < 1 or num_velocity_samples < 1:
            raise ConfigurationError(
                f"Sample counts must be positive, got {num_position_samples} position "
                f"and {num_velocity_samples} velocity samples")

        n = max(num_position_samples, num_velocity_samples)
        positions, velocities, close_seeds = [], [], []
        for _ in range(n):
            q = self.sample_configuration()
            positions.append(q)
            close_seeds.append(self.sample_close_seed(q, delta))
            velocities.append(self.sample_velocity())

        return SampleSet(np.stack(positions), np.stack(velocities), np.stack(close_seeds))

"""
Data 模块：基准样本生成

提供关节配置、关节速度和有界扰动初值的随机采样, 以及不可变的样本集。
"""

from .sampling import (
    ConfigurationError,
    SampleSet,
    ConfigSampler,
)

__all__ = [
    'ConfigurationError',
    'SampleSet',
    'ConfigSampler',
]

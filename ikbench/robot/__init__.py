"""
Robot 模块：机器人运动学

该模块提供运动学链提取、正运动学、位置/速度逆运动学以及求解器接口。

子模块:
- urdf: URDF文件解析与关节限位
- forward_kinematics: 基于PyTorch的正运动学 (位姿、雅可比、速度旋量)
- inverse_kinematics: 数值迭代逆运动学求解器
- velocity_ik: 带限位的速度逆运动学
- solvers: 基准测试使用的求解器接口和适配器
"""

from .urdf import (
    ChainError,
    JointSpec,
    JointLimits,
    KinematicChain,
    get_kinematic_chain,
    extract_chain,
    clip_to_limits,
)

from .forward_kinematics import ForwardKinematics

from .inverse_kinematics import InverseKinematics

from .velocity_ik import VelocityIK, VelocitySolveType

from .solvers import (
    PositionSolver,
    VelocitySolver,
    NumericalIKSolver,
    JacobianStepSolver,
    LimitedVelocitySolver,
    VelocityIKPositionSolver,
)

__all__ = [
    # URDF
    'ChainError',
    'JointSpec',
    'JointLimits',
    'KinematicChain',
    'get_kinematic_chain',
    'extract_chain',
    'clip_to_limits',
    # Kinematics
    'ForwardKinematics',
    'InverseKinematics',
    'VelocityIK',
    'VelocitySolveType',
    # Solvers
    'PositionSolver',
    'VelocitySolver',
    'NumericalIKSolver',
    'JacobianStepSolver',
    'LimitedVelocitySolver',
    'VelocityIKPositionSolver',
]

"""
URDF 解析模块

提供URDF文件解析、运动学链提取和关节限位裁剪功能。
URDF读取依赖于 yourdfpy 库,本模块只负责从中提取基座到末端的串联链。
"""

import os
from dataclasses import dataclass, field
from typing import Dict, List, Optional

import numpy as np
import yourdfpy


class ChainError(ValueError):
    """运动学链或关节限位无效"""
    pass


# 可动关节类型
ACTUATED_TYPES = ('revolute', 'continuous', 'prismatic')


@dataclass
class JointSpec:
    """单个关节的描述

    Attributes:
        name: 关节名称
        joint_type: 关节类型 ('revolute', 'prismatic', 'continuous', 'fixed')
        parent: 父链接名称
        child: 子链接名称
        axis: 关节轴向 [3]
        origin: 相对于父链接的变换矩阵 [4, 4]
        lower, upper: 位置限位 (continuous 关节为 [-π, π])
        velocity: 速度限位 (None 表示URDF中未给出)
    """
    name: str
    joint_type: str
    parent: str = ''
    child: str = ''
    axis: np.ndarray = field(default_factory=lambda: np.array([0.0, 0.0, 1.0]))
    origin: np.ndarray = field(default_factory=lambda: np.eye(4))
    lower: float = -np.pi
    upper: float = np.pi
    velocity: Optional[float] = None

    @property
    def actuated(self) -> bool:
        return self.joint_type in ACTUATED_TYPES


@dataclass
class JointLimits:
    """关节限位

    位置下限/上限、速度限位和加速度限位, 每个数组长度等于关节数量。
    加速度限位目前未被使用, 仅为对称性保留。
    """
    lower: np.ndarray
    upper: np.ndarray
    velocity: np.ndarray
    acceleration: Optional[np.ndarray] = None

    def __post_init__(self):
        self.lower = np.asarray(self.lower, dtype=np.float64)
        self.upper = np.asarray(self.upper, dtype=np.float64)
        self.velocity = np.asarray(self.velocity, dtype=np.float64)
        if self.acceleration is None:
            self.acceleration = np.full(self.lower.shape, np.inf)
        self.acceleration = np.asarray(self.acceleration, dtype=np.float64)

        n = len(self.lower)
        for name in ('upper', 'velocity', 'acceleration'):
            if len(getattr(self, name)) != n:
                raise ChainError(f"Joint limit '{name}' has {len(getattr(self, name))} "
                                 f"entries, expected {n}")
        if np.any(self.lower > self.upper):
            raise ChainError("Lower position limit exceeds upper limit")
        if np.any(~np.isfinite(self.lower)) or np.any(~np.isfinite(self.upper)):
            raise ChainError("Position limits must be finite")
        if np.any(self.velocity < 0) or np.any(~np.isfinite(self.velocity)):
            raise ChainError("Velocity limits must be finite and non-negative")
        if np.any(self.acceleration < 0):
            raise ChainError("Acceleration limits must be non-negative")

    @property
    def n_joints(self) -> int:
        return len(self.lower)

    def midpoint(self) -> np.ndarray:
        """关节限位中点 (名义配置)"""
        return (self.lower + self.upper) / 2.0


class KinematicChain:
    """运动学链数据结构

    存储从基座到末端执行器的关节序列(包括固定关节)和相关信息。

    Attributes:
        joints: 链上所有关节 (按基座到末端的顺序)
        actuated_joints: 可动关节列表
        joint_names: 可动关节名称列表
        joint_types: 可动关节类型列表
        base_link: 基座链接名称
        end_link: 末端链接名称
    """

    def __init__(self, joints: List[JointSpec], base_link: Optional[str] = None,
                 end_link: Optional[str] = None):
        if not joints:
            raise ChainError("There was no valid kinematic chain found")

        self.joints = list(joints)
        self.base_link = base_link or self.joints[0].parent
        self.end_link = end_link or self.joints[-1].child

        self.actuated_joints = [j for j in self.joints if j.actuated]
        if not self.actuated_joints:
            raise ChainError(f"Chain {self.base_link} -> {self.end_link} has no actuated joints")

        self.joint_names = [j.name for j in self.actuated_joints]
        self.joint_types = [j.joint_type for j in self.actuated_joints]

    @property
    def n_joints(self) -> int:
        """可动关节数量"""
        return len(self.actuated_joints)

    @property
    def lower_limits(self) -> np.ndarray:
        """关节下限数组"""
        return np.array([j.lower for j in self.actuated_joints], dtype=np.float64)

    @property
    def upper_limits(self) -> np.ndarray:
        """关节上限数组"""
        return np.array([j.upper for j in self.actuated_joints], dtype=np.float64)

    @property
    def velocity_limits(self) -> np.ndarray:
        """关节速度限位数组 (缺失的限位为 NaN)"""
        return np.array([np.nan if j.velocity is None else j.velocity
                         for j in self.actuated_joints], dtype=np.float64)

    @property
    def limits(self) -> JointLimits:
        """
        获取关节限位

        Raises:
            ChainError: 存在没有速度限位的关节
        """
        velocity = self.velocity_limits
        missing = [name for name, v in zip(self.joint_names, velocity) if np.isnan(v)]
        if missing:
            raise ChainError(f"There were no valid joint limits found for: {', '.join(missing)}")
        return JointLimits(self.lower_limits, self.upper_limits, velocity)

    def print_tree(self):
        """打印运动学链树形结构"""
        print(f"Kinematic Chain: {self.base_link} -> {self.end_link}")
        print(f"Number of joints: {self.n_joints}\n")

        for i, joint in enumerate(self.actuated_joints):
            print(f"Joint {i}: {joint.name}")
            print(f"  Type: {joint.joint_type}")
            print(f"  Parent link: {joint.parent}")
            print(f"  Child link: {joint.child}")
            print(f"  Axis: {joint.axis}")
            print(f"  Limits: [{joint.lower}, {joint.upper}], velocity: {joint.velocity}")
            print()


def _joint_from_urdf(joint) -> JointSpec:
    """将 yourdfpy 关节转换为 JointSpec"""
    axis = np.array([1.0, 0.0, 0.0]) if joint.axis is None else np.asarray(joint.axis, dtype=np.float64)
    origin = np.eye(4) if joint.origin is None else np.asarray(joint.origin, dtype=np.float64)

    lower, upper, velocity = -np.pi, np.pi, None
    if joint.limit is not None:
        velocity = joint.limit.velocity
        # continuous 关节没有位置限位
        if joint.type != 'continuous':
            if joint.limit.lower is not None:
                lower = float(joint.limit.lower)
            if joint.limit.upper is not None:
                upper = float(joint.limit.upper)

    return JointSpec(
        name=joint.name,
        joint_type=joint.type,
        parent=joint.parent,
        child=joint.child,
        axis=axis,
        origin=origin,
        lower=lower,
        upper=upper,
        velocity=None if velocity is None else float(velocity),
    )


def extract_chain(joints: List[JointSpec], base_link: Optional[str] = None,
                  end_link: Optional[str] = None) -> KinematicChain:
    """
    从关节树中提取基座到末端的串联链

    Args:
        joints: 机器人所有关节
        base_link: 基座链接名称(None表示使用根链接)
        end_link: 末端链接名称(None表示使用第一个叶子链接)

    Returns:
        KinematicChain: 运动学链对象

    Raises:
        ChainError: 找不到从 base_link 到 end_link 的路径
    """
    by_child: Dict[str, JointSpec] = {j.child: j for j in joints}
    parents = {j.parent for j in joints}

    if base_link is None:
        roots = [j.parent for j in joints if j.parent not in by_child]
        if not roots:
            raise ChainError("There was no valid kinematic chain found: no root link")
        base_link = roots[0]
    if end_link is None:
        leaves = [j.child for j in joints if j.child not in parents]
        if not leaves:
            raise ChainError("There was no valid kinematic chain found: no end link")
        end_link = leaves[0]

    path = []
    link = end_link
    while link != base_link:
        if link not in by_child:
            raise ChainError(f"There was no valid kinematic chain found "
                             f"from '{base_link}' to '{end_link}'")
        joint = by_child[link]
        path.append(joint)
        link = joint.parent

    return KinematicChain(list(reversed(path)), base_link, end_link)


def get_kinematic_chain(urdf_path: str, base_link: Optional[str] = None,
                       end_link: Optional[str] = None) -> KinematicChain:
    """
    获取运动学链

    Args:
        urdf_path: URDF文件路径
        base_link: 基座链接名称
        end_link: 末端链接名称

    Returns:
        KinematicChain: 运动学链对象
    """
    if not os.path.exists(urdf_path):
        raise FileNotFoundError(f"URDF file not found: {urdf_path}")

    try:
        urdf = yourdfpy.URDF.load(urdf_path, build_scene_graph=False, load_meshes=False,
                                  build_collision_scene_graph=False,
                                  load_collision_meshes=False)
    except Exception as e:
        raise ChainError(f"Failed to parse URDF file: {e}") from e

    joints = [_joint_from_urdf(j) for j in urdf.robot.joints]
    return extract_chain(joints, base_link, end_link)


def clip_to_limits(q: np.ndarray, limits: JointLimits) -> np.ndarray:
    """
    将关节角度裁剪到限位范围内

    Args:
        q: 关节角度, shape: [..., n_joints]
        limits: 关节限位

    Returns:
        裁剪后的关节角度, shape: [..., n_joints]
    """
    return np.clip(np.asarray(q), limits.lower, limits.upper)

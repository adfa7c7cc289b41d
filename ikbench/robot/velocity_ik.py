"""
速度逆运动学模块

给定雅可比矩阵和期望末端速度旋量, 求解满足关节速度限位的关节速度。

提供以下求解模式:
- pinv: 雅可比伪逆, 不考虑限位
- saturation: 零空间饱和 (SNS) 算法, 逐个饱和越限关节, 必要时按比例缩小任务速度
- uniform_scale: 伪逆解整体等比缩放到限位以内
- clamp: 伪逆解逐关节裁剪 (不保持末端速度方向)

返回状态码: 0 表示精确实现期望速度, 1 表示任务被缩放, 负数表示失败。
"""

from enum import Enum
from typing import Tuple

import numpy as np


SUCCESS = 0
SCALED = 1
FAILURE = -1


class VelocitySolveType(str, Enum):
    """速度求解模式"""
    PINV = 'pinv'
    SATURATION = 'saturation'
    UNIFORM_SCALE = 'uniform_scale'
    CLAMP = 'clamp'


def max_task_scale(task: np.ndarray, offset: np.ndarray,
                   lower: np.ndarray, upper: np.ndarray) -> Tuple[float, int]:
    """
    计算最大任务缩放因子

    求 s in [0, 1] 的最大值, 使得 lower <= s * task + offset <= upper。

    Args:
        task: 任务相关的关节速度分量 [n]
        offset: 与缩放无关的关节速度分量 [n]
        lower, upper: 关节速度上下界 [n]

    Returns:
        scale: 缩放因子
        critical: 限制缩放的关节索引 (没有约束时为 -1)
    """
    scale = 1.0
    critical = -1
    for i, (a, b) in enumerate(zip(task, offset)):
        if a > 0:
            s_i = (upper[i] - b) / a
        elif a < 0:
            s_i = (lower[i] - b) / a
        else:
            continue
        if s_i < scale:
            scale = s_i
            critical = i
    return max(scale, 0.0), critical


class VelocityIK:
    """
    速度逆运动学求解器

    Attributes:
        solve_type: 求解模式
        rank_tolerance: 判断雅可比秩亏的奇异值阈值
    """

    def __init__(self, solve_type: VelocitySolveType = VelocitySolveType.SATURATION,
                 rank_tolerance: float = 1e-9):
        self.solve_type = VelocitySolveType(solve_type)
        self.rank_tolerance = rank_tolerance

    def solve(self, J: np.ndarray, twist: np.ndarray,
              lower: np.ndarray, upper: np.ndarray) -> Tuple[int, np.ndarray]:
        """
        求解关节速度

        Args:
            J: 雅可比矩阵 [6, n]
            twist: 期望末端速度旋量 [6]
            lower, upper: 关节速度上下界 [n] (lower <= 0 <= upper)

        Returns:
            status: 状态码
            qdot: 关节速度 [n]
        """
        J = np.asarray(J, dtype=np.float64)
        twist = np.asarray(twist, dtype=np.float64)

        if self.solve_type == VelocitySolveType.PINV:
            status, qdot = SUCCESS, np.linalg.pinv(J, rcond=self.rank_tolerance) @ twist
        elif self.solve_type == VelocitySolveType.SATURATION:
            status, qdot = self._saturation(J, twist, lower, upper)
        elif self.solve_type == VelocitySolveType.UNIFORM_SCALE:
            status, qdot = self._uniform_scale(J, twist, lower, upper)
        else:
            qdot = np.linalg.pinv(J, rcond=self.rank_tolerance) @ twist
            status = SUCCESS if np.all((qdot >= lower) & (qdot <= upper)) else SCALED
            qdot = np.clip(qdot, lower, upper)

        if not np.all(np.isfinite(qdot)):
            return FAILURE, np.zeros(J.shape[1])
        return status, qdot

    def _uniform_scale(self, J, twist, lower, upper):
        qdot = np.linalg.pinv(J, rcond=self.rank_tolerance) @ twist
        scale, _ = max_task_scale(qdot, np.zeros_like(qdot), lower, upper)
        if scale < 1.0:
            # 消除舍入误差造成的微小越限
            return SCALED, np.clip(scale * qdot, lower, upper)
        return SUCCESS, qdot

    def _saturation(self, J, twist, lower, upper):
        """
        零空间饱和算法 (Flacco et al., 2012)

        每轮计算当前可用关节的伪逆解; 若有关节越限, 记录当前最优缩放因子,
        将最关键的关节饱和到其限位并从任务中移除, 直到解可行或无可用关节。
        """
        n = J.shape[1]
        m = np.linalg.matrix_rank(J, tol=self.rank_tolerance)
        if m == 0:
            return FAILURE, np.zeros(n)

        active = np.ones(n, dtype=bool)
        q_null = np.zeros(n)

        best_scale = -1.0
        best = None

        while True:
            J_active = J * active  # 移除饱和关节的列
            P = np.linalg.pinv(J_active, rcond=self.rank_tolerance)
            task = P @ twist
            offset = q_null - P @ (J @ q_null)
            qdot = task + offset

            if np.all((qdot >= lower - 1e-12) & (qdot <= upper + 1e-12)):
                return SUCCESS, qdot

            scale, critical = max_task_scale(task, offset, lower, upper)
            if scale > best_scale:
                best_scale = scale
                best = (task, offset)

            if critical < 0 or not active[critical]:
                break

            active[critical] = False
            q_null[critical] = upper[critical] if qdot[critical] > upper[critical] else lower[critical]

            if not np.any(active) or np.linalg.matrix_rank(J * active, tol=self.rank_tolerance) < m:
                break

        task, offset = best
        return SCALED, np.clip(best_scale * task + offset, lower, upper)

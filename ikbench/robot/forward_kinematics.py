"""
正运动学模块

基于PyTorch实现的正运动学计算,提供末端位姿、几何雅可比矩阵和末端速度旋量(twist)。
内部统一使用 float64 计算,以满足基准测试中 1e-5 量级的精度要求。
"""

import numpy as np
import torch
from typing import Tuple

from .urdf import KinematicChain


class ForwardKinematics:
    """
    正运动学计算器

    支持批量计算; 对外提供基于 numpy 的 solve_pose / solve_twist 接口,
    供基准测试编排器和求解器使用。
    """

    def __init__(self, chain: KinematicChain, device: str = 'cpu'):
        """
        初始化FK计算器

        Args:
            chain: 运动学链对象
            device: 计算设备 ('cpu' 或 'cuda')
        """
        self.chain = chain
        self.device = device
        self.dtype = torch.float64
        self.n_joints = chain.n_joints

        # 预计算关节轴向和原点变换
        self._precompute_transforms()

    def _precompute_transforms(self):
        """预计算关节的固定变换"""
        n = len(self.chain.joints)
        self.joint_axes = torch.zeros(n, 3, device=self.device, dtype=self.dtype)
        self.joint_origins = torch.zeros(n, 4, 4, device=self.device, dtype=self.dtype)

        for i, joint in enumerate(self.chain.joints):
            axis = torch.tensor(joint.axis, dtype=self.dtype)
            norm = torch.norm(axis)
            # 固定关节的轴向无意义
            self.joint_axes[i] = axis / norm if norm > 0 else axis
            self.joint_origins[i] = torch.tensor(joint.origin, dtype=self.dtype)

    def compute(self, q: torch.Tensor) -> Tuple[torch.Tensor, torch.Tensor]:
        """
        计算正运动学

        Args:
            q: 关节角度, shape: [batch_size, n_joints] 或 [n_joints]

        Returns:
            position: 位置 [batch_size, 3] 或 [3]
            quaternion: 四元数姿态 [batch_size, 4] 或 [4] (w, x, y, z)
        """
        if q.dim() == 1:
            q = q.unsqueeze(0)
            squeeze_output = True
        else:
            squeeze_output = False

        q = q.to(device=self.device, dtype=self.dtype)

        T, _, _ = self._forward_kinematics(q)

        position = T[:, :3, 3]
        quaternion = self._rotation_matrix_to_quaternion(T[:, :3, :3])

        if squeeze_output:
            position = position.squeeze(0)
            quaternion = quaternion.squeeze(0)

        return position, quaternion

    def _forward_kinematics(self, q: torch.Tensor
                            ) -> Tuple[torch.Tensor, torch.Tensor, torch.Tensor]:
        """
        计算整条链的累积变换

        Args:
            q: 关节角度 [batch_size, n_joints]

        Returns:
            T: 末端变换矩阵 [batch_size, 4, 4]
            axes: 各可动关节在基座系下的轴向 [batch_size, n_joints, 3]
            points: 各可动关节在基座系下的原点 [batch_size, n_joints, 3]
        """
        batch_size = q.shape[0]

        T = torch.eye(4, device=self.device, dtype=q.dtype).unsqueeze(0).repeat(batch_size, 1, 1)
        axes = []
        points = []

        k = 0
        for i, joint in enumerate(self.chain.joints):
            T_origin = self.joint_origins[i].unsqueeze(0).expand(batch_size, -1, -1)
            T = torch.bmm(T, T_origin)

            if not joint.actuated:
                # 固定关节只有原点变换
                continue

            axis = self.joint_axes[i]
            axes.append(torch.matmul(T[:, :3, :3], axis))
            points.append(T[:, :3, 3])

            if joint.joint_type == 'prismatic':
                T_joint = self._translation_transform(axis, q[:, k])
            else:
                T_joint = self._rotation_transform(axis, q[:, k])

            T = torch.bmm(T, T_joint)
            k += 1

        return T, torch.stack(axes, dim=1), torch.stack(points, dim=1)

    def _rotation_transform(self, axis: torch.Tensor, angle: torch.Tensor) -> torch.Tensor:
        """
        根据轴角表示计算旋转变换矩阵(Rodrigues公式)

        Args:
            axis: 单位旋转轴 [3]
            angle: 旋转角度 [batch_size]

        Returns:
            T: 旋转变换矩阵 [batch_size, 4, 4]
        """
        batch_size = angle.shape[0]

        # 反对称矩阵
        K = torch.zeros(3, 3, device=self.device, dtype=angle.dtype)
        K[0, 1] = -axis[2]
        K[0, 2] = axis[1]
        K[1, 0] = axis[2]
        K[1, 2] = -axis[0]
        K[2, 0] = -axis[1]
        K[2, 1] = axis[0]

        # Rodrigues公式: R = I + sin(θ)K + (1-cos(θ))K²
        I = torch.eye(3, device=self.device, dtype=angle.dtype)
        sin_angle = torch.sin(angle).view(-1, 1, 1)
        cos_angle = torch.cos(angle).view(-1, 1, 1)

        R = I + sin_angle * K + (1 - cos_angle) * torch.mm(K, K)

        T = torch.eye(4, device=self.device, dtype=angle.dtype).unsqueeze(0).repeat(batch_size, 1, 1)
        T[:, :3, :3] = R

        return T

    def _translation_transform(self, axis: torch.Tensor, distance: torch.Tensor) -> torch.Tensor:
        """
        计算平移变换矩阵

        Args:
            axis: 单位平移轴 [3]
            distance: 平移距离 [batch_size]

        Returns:
            T: 平移变换矩阵 [batch_size, 4, 4]
        """
        batch_size = distance.shape[0]

        T = torch.eye(4, device=self.device, dtype=distance.dtype).unsqueeze(0).repeat(batch_size, 1, 1)
        T[:, :3, 3] = axis.unsqueeze(0) * distance.unsqueeze(1)

        return T

    def _rotation_matrix_to_quaternion(self, R: torch.Tensor) -> torch.Tensor:
        """
        将旋转矩阵转换为四元数

        Args:
            R: 旋转矩阵 [batch_size, 3, 3]

        Returns:
            q: 四元数 [batch_size, 4] (w, x, y, z)
        """
        batch_size = R.shape[0]
        q = torch.zeros(batch_size, 4, device=self.device, dtype=R.dtype)

        # Shepperd's method for numerical stability
        trace = R[:, 0, 0] + R[:, 1, 1] + R[:, 2, 2]

        # Case 1: trace > 0
        mask1 = trace > 0
        s = torch.sqrt(trace[mask1] + 1.0) * 2
        q[mask1, 0] = 0.25 * s
        q[mask1, 1] = (R[mask1, 2, 1] - R[mask1, 1, 2]) / s
        q[mask1, 2] = (R[mask1, 0, 2] - R[mask1, 2, 0]) / s
        q[mask1, 3] = (R[mask1, 1, 0] - R[mask1, 0, 1]) / s

        # Case 2: R[0,0] is maximum
        mask2 = (~mask1) & (R[:, 0, 0] > R[:, 1, 1]) & (R[:, 0, 0] > R[:, 2, 2])
        s = torch.sqrt(1.0 + R[mask2, 0, 0] - R[mask2, 1, 1] - R[mask2, 2, 2]) * 2
        q[mask2, 0] = (R[mask2, 2, 1] - R[mask2, 1, 2]) / s
        q[mask2, 1] = 0.25 * s
        q[mask2, 2] = (R[mask2, 0, 1] + R[mask2, 1, 0]) / s
        q[mask2, 3] = (R[mask2, 0, 2] + R[mask2, 2, 0]) / s

        # Case 3: R[1,1] is maximum
        mask3 = (~mask1) & (~mask2) & (R[:, 1, 1] > R[:, 2, 2])
        s = torch.sqrt(1.0 + R[mask3, 1, 1] - R[mask3, 0, 0] - R[mask3, 2, 2]) * 2
        q[mask3, 0] = (R[mask3, 0, 2] - R[mask3, 2, 0]) / s
        q[mask3, 1] = (R[mask3, 0, 1] + R[mask3, 1, 0]) / s
        q[mask3, 2] = 0.25 * s
        q[mask3, 3] = (R[mask3, 1, 2] + R[mask3, 2, 1]) / s

        # Case 4: R[2,2] is maximum
        mask4 = (~mask1) & (~mask2) & (~mask3)
        s = torch.sqrt(1.0 + R[mask4, 2, 2] - R[mask4, 0, 0] - R[mask4, 1, 1]) * 2
        q[mask4, 0] = (R[mask4, 1, 0] - R[mask4, 0, 1]) / s
        q[mask4, 1] = (R[mask4, 0, 2] + R[mask4, 2, 0]) / s
        q[mask4, 2] = (R[mask4, 1, 2] + R[mask4, 2, 1]) / s
        q[mask4, 3] = 0.25 * s

        # 归一化
        q = q / torch.norm(q, dim=1, keepdim=True)

        return q

    def jacobian_batch(self, q: torch.Tensor) -> torch.Tensor:
        """
        计算几何雅可比矩阵 (基座系, 线速度在前, 角速度在后)

        Args:
            q: 关节角度 [batch_size, n_joints]

        Returns:
            J: 雅可比矩阵 [batch_size, 6, n_joints]
        """
        q = q.to(device=self.device, dtype=self.dtype)
        T, axes, points = self._forward_kinematics(q)
        p_end = T[:, :3, 3].unsqueeze(1)  # [B, 1, 3]

        linear = torch.linalg.cross(axes, p_end - points, dim=2)  # [B, n, 3]
        angular = axes.clone()

        for k, joint_type in enumerate(self.chain.joint_types):
            if joint_type == 'prismatic':
                linear[:, k] = axes[:, k]
                angular[:, k] = 0.0

        return torch.cat([linear, angular], dim=2).transpose(1, 2)

    def solve_pose(self, q: np.ndarray) -> np.ndarray:
        """
        计算末端位姿

        Args:
            q: 关节配置 [n_joints]

        Returns:
            pose: [7] (x, y, z, qw, qx, qy, qz)
        """
        q_t = torch.as_tensor(np.array(q, dtype=np.float64), device=self.device)
        with torch.no_grad():
            position, quaternion = self.compute(q_t)
        return torch.cat([position, quaternion]).cpu().numpy()

    def jacobian(self, q: np.ndarray) -> np.ndarray:
        """
        计算单个配置的几何雅可比矩阵

        Args:
            q: 关节配置 [n_joints]

        Returns:
            J: [6, n_joints]
        """
        q_t = torch.as_tensor(np.array(q, dtype=np.float64), device=self.device).unsqueeze(0)
        with torch.no_grad():
            J = self.jacobian_batch(q_t)
        return J.squeeze(0).cpu().numpy()

    def solve_twist(self, q: np.ndarray, qdot: np.ndarray) -> np.ndarray:
        """
        计算末端速度旋量

        Args:
            q: 关节配置 [n_joints]
            qdot: 关节速度 [n_joints]

        Returns:
            twist: [6] (线速度, 角速度), 基座系
        """
        return self.jacobian(q) @ np.asarray(qdot, dtype=np.float64)

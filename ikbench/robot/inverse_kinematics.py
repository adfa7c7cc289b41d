"""
逆运动学模块

基于PyTorch实现的数值迭代IK求解器,支持雅可比伪逆法和阻尼最小二乘法。
使用自动微分(Autograd)计算误差雅可比矩阵。
每次调用 step 只做一次更新, 迭代次数和时间预算由调用者控制。
求解过程中关节始终被限制在位置限位内。
"""

import torch
from typing import Optional, Tuple

from .urdf import KinematicChain
from .forward_kinematics import ForwardKinematics


class InverseKinematics:
    """
    逆运动学求解器

    使用数值迭代方法求解IK,支持:
    - 雅可比伪逆法 (Jacobian pseudo-inverse)
    - 阻尼最小二乘法 (Damped Least Squares)
    """

    def __init__(self, chain: KinematicChain, device: str = 'cpu'):
        """
        初始化IK求解器

        Args:
            chain: 运动学链对象
            device: 计算设备 ('cpu' 或 'cuda')
        """
        self.chain = chain
        self.device = device
        self.dtype = torch.float64
        self.fk = ForwardKinematics(chain, device)
        self.n_joints = chain.n_joints

        self.lower = torch.as_tensor(chain.lower_limits, device=device, dtype=self.dtype)
        self.upper = torch.as_tensor(chain.upper_limits, device=device, dtype=self.dtype)

    def _prepare(self, target_pos: torch.Tensor, target_quat: Optional[torch.Tensor],
                 q: torch.Tensor):
        """统一输入维度和数据类型"""
        if target_pos.dim() == 1:
            target_pos = target_pos.unsqueeze(0)
            squeeze_output = True
        else:
            squeeze_output = False

        target_pos = target_pos.to(device=self.device, dtype=self.dtype)

        if target_quat is not None:
            if target_quat.dim() == 1:
                target_quat = target_quat.unsqueeze(0)
            target_quat = target_quat.to(device=self.device, dtype=self.dtype)

        if q.dim() == 1:
            q = q.unsqueeze(0).expand(target_pos.shape[0], -1).clone()
        else:
            q = q.clone()
        q = q.to(device=self.device, dtype=self.dtype)

        return target_pos, target_quat, q, squeeze_output

    def step(self,
             target_pos: torch.Tensor,
             target_quat: Optional[torch.Tensor],
             q: torch.Tensor,
             method: str = 'jacobian',
             tolerance: float = 1e-6,
             damping: float = 0.01,
             step_size: float = 1.0) -> Tuple[torch.Tensor, torch.Tensor]:
        """
        单步迭代 (一次误差评估和一次更新)

        用于外部限时循环: 调用者把上一步的结果作为下一步的初值。

        Args:
            target_pos: 目标位置 [3] 或 [batch_size, 3]
            target_quat: 目标四元数 [4] 或 [batch_size, 4] (w,x,y,z), None表示仅位置
            q: 当前关节角度 [n_joints] 或 [batch_size, n_joints]
            method: 求解方法 ('jacobian' 或 'dls')
            tolerance: 收敛阈值 (位置误差 m, 姿态误差 rad)
            damping: 阻尼系数 (用于DLS方法)
            step_size: 步长因子

        Returns:
            q: 更新后的关节角度
            converged: 更新前的配置是否已经收敛 (已收敛时不更新)
        """
        if method not in ('jacobian', 'dls'):
            raise ValueError(f"Unknown method: {method}")

        target_pos, target_quat, q, squeeze_output = self._prepare(target_pos, target_quat, q)
        q, converged = self._iterate(q, target_pos, target_quat, method,
                                     tolerance, damping, step_size)
        if squeeze_output:
            q = q.squeeze(0)
            converged = converged.squeeze(0)
        return q, converged

    def _iterate(self, q, target_pos, target_quat, method, tolerance, damping, step_size):
        q = q.detach().requires_grad_(True)
        current_pos, current_quat = self.fk.compute(q)

        if target_quat is not None:
            error = self._compute_pose_error(current_pos, current_quat, target_pos, target_quat)
        else:
            error = self._compute_position_error(current_pos, target_pos)

        with torch.no_grad():
            converged = self._error_converged(error, tolerance)
        if torch.all(converged):
            return q.detach(), converged

        J_err = self._compute_jacobian_autograd(q, error)

        with torch.no_grad():
            if method == 'jacobian':
                delta_q = self._jacobian_step(J_err, error)
            else:
                delta_q = self._dls_step(J_err, error, damping)

            # 已收敛的样本保持不变
            delta_q[converged] = 0.0
            q_new = torch.clamp(q - step_size * delta_q, self.lower, self.upper)

        return q_new.detach(), converged

    def _error_converged(self, error: torch.Tensor, tolerance: float) -> torch.Tensor:
        converged = torch.norm(error[:, :3], dim=1) < tolerance
        if error.shape[1] > 3:
            converged &= torch.norm(error[:, 3:], dim=1) < tolerance
        return converged

    def _compute_position_error(self, current_pos: torch.Tensor,
                                target_pos: torch.Tensor) -> torch.Tensor:
        return current_pos - target_pos

    def _compute_pose_error(self, current_pos: torch.Tensor, current_quat: torch.Tensor,
                           target_pos: torch.Tensor, target_quat: torch.Tensor) -> torch.Tensor:
        pos_error = current_pos - target_pos

        # 姿态误差 (取 w >= 0 的半球, 避免 q 与 -q 的二义性)
        quat_error = self._quaternion_multiply(current_quat,
                                               self._quaternion_conjugate(target_quat))
        sign = torch.where(quat_error[:, :1] < 0, -1.0, 1.0).to(quat_error.dtype)
        ori_error = 2.0 * sign * quat_error[:, 1:]

        return torch.cat([pos_error, ori_error], dim=1)

    def _compute_jacobian_autograd(self, q: torch.Tensor, error: torch.Tensor) -> torch.Tensor:
        """
        使用Autograd计算雅可比矩阵
        Returns: [batch_size, error_dim, n_joints]
        """
        batch_size, error_dim = error.shape
        n_joints = q.shape[1]

        jacobian = torch.zeros(batch_size, error_dim, n_joints, device=self.device, dtype=q.dtype)

        for i in range(error_dim):
            grad_output = torch.zeros_like(error)
            grad_output[:, i] = 1.0

            grads = torch.autograd.grad(outputs=error, inputs=q,
                                        grad_outputs=grad_output,
                                        retain_graph=(i < error_dim - 1),
                                        create_graph=False,
                                        allow_unused=True)[0]

            if grads is not None:
                jacobian[:, i, :] = grads

        return jacobian

    def _jacobian_step(self, J: torch.Tensor, error: torch.Tensor) -> torch.Tensor:
        """
        计算雅可比伪逆更新量
        solve J * dq = -error => dq = -pinv(J) * error
        Here we return pinv(J) * error, caller does subtraction.
        """
        J_pinv = torch.linalg.pinv(J)  # [B, N, E]
        return torch.bmm(J_pinv, error.unsqueeze(2)).squeeze(2)

    def _dls_step(self, J: torch.Tensor, error: torch.Tensor, damping: float) -> torch.Tensor:
        """
        计算DLS更新量
        (J^T J + lambda^2 I) dq = J^T error
        """
        n_joints = J.shape[2]

        Jt = J.transpose(1, 2)  # [B, N, E]
        JtJ = torch.bmm(Jt, J)  # [B, N, N]

        damping_matrix = (damping ** 2) * torch.eye(n_joints, device=self.device, dtype=J.dtype).unsqueeze(0)
        g = torch.bmm(Jt, error.unsqueeze(2))  # [B, N, 1]

        return torch.linalg.solve(JtJ + damping_matrix, g).squeeze(2)

    def _quaternion_multiply(self, q1: torch.Tensor, q2: torch.Tensor) -> torch.Tensor:
        w1, x1, y1, z1 = q1[:, 0], q1[:, 1], q1[:, 2], q1[:, 3]
        w2, x2, y2, z2 = q2[:, 0], q2[:, 1], q2[:, 2], q2[:, 3]

        w = w1*w2 - x1*x2 - y1*y2 - z1*z2
        x = w1*x2 + x1*w2 + y1*z2 - z1*y2
        y = w1*y2 - x1*z2 + y1*w2 + z1*x2
        z = w1*z2 + x1*y2 - y1*x2 + z1*w2

        return torch.stack([w, x, y, z], dim=1)

    def _quaternion_conjugate(self, q: torch.Tensor) -> torch.Tensor:
        q_conj = q.clone()
        q_conj[:, 1:] = -q_conj[:, 1:]
        return q_conj

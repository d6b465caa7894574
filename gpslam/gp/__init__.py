"""
Gaussian Process motion prior and interpolation for SE(2) trajectories.

Main components:
    - kernels: Φ(t), Q(t), Q(t)⁻¹ and interpolation weights Λ(τ), Ψ(τ)
    - GaussianProcessInterpolatorPose2: pose/velocity at τ between two
      support states, with Jacobians
    - GaussianProcessPriorPose2: constant-velocity GP prior factor

Example usage:
    >>> from gpslam.gp import GaussianProcessInterpolatorPose2
    >>> interp = GaussianProcessInterpolatorPose2(0.01 * np.eye(3), 0.5, 0.25)
    >>> result = interp.interpolate(pose1, vel1, pose2, vel2)
    >>> result.pose, result.J_pose1.pose
"""

from gpslam.gp.kernels import (
    calc_lambda_psi,
    calc_phi,
    calc_q,
    calc_q_inv,
    validate_interval,
    validate_qc,
)
from gpslam.gp.interpolator import (
    GaussianProcessInterpolatorPose2,
    InterpolationJacobian,
    InterpolationResult,
)
from gpslam.gp.prior import GaussianProcessPriorPose2

__all__ = [
    # Kernel matrices
    "calc_phi",
    "calc_q",
    "calc_q_inv",
    "calc_lambda_psi",
    "validate_qc",
    "validate_interval",
    # Interpolation
    "GaussianProcessInterpolatorPose2",
    "InterpolationJacobian",
    "InterpolationResult",
    # Factors
    "GaussianProcessPriorPose2",
]

"""
Range measurement to a landmark taken between two support states.

A range sensor fires at time t₁ + τ, between the support states at t₁ and
t₁ + Δt. Rather than adding a new pose variable for every measurement time,
the pose at the measurement time is GP-interpolated from the two neighbouring
support states and the range residual is evaluated there:

    poseτ = interpolate(pose1, vel1, pose2, vel2)
    e     = ‖landmark - t(poseτ)‖ - measurement

Jacobians follow by the chain rule, ∂e/∂x = ∂range/∂poseτ · ∂poseτ/∂x for
the four support variables, and ∂e/∂landmark from the range directly.
"""

from typing import Dict, Hashable, Optional, Union

import numpy as np

from ..estimators.factor_graph import Factor
from ..estimators.noise_model import GaussianNoiseModel
from ..geometry.se2 import se2_range
from ..geometry.types import Point2, Velocity2, as_vector
from ..gp.interpolator import GaussianProcessInterpolatorPose2


class GPInterpolatedRangeFactorPose2(Factor):
    """
    Range factor at a GP-interpolated pose between two SE(2) support states.

    Args:
        measurement: Observed range (meters).
        noise_model: 1D noise model of the range measurement.
        qc: Power spectral density Qc of the GP prior (3×3) or a noise model
            with that covariance.
        pose1_key, vel1_key: Keys of the earlier support state.
        pose2_key, vel2_key: Keys of the later support state.
        point_key: Key of the landmark.
        delta_t: Time between the support states.
        tau: Measurement time offset from the earlier support state.

    Raises:
        GPConfigurationError: If Δt, τ or Qc are invalid.
        ValueError: If the noise model is not one-dimensional.

    Examples:
        >>> factor = GPInterpolatedRangeFactorPose2(
        ...     10.0, GaussianNoiseModel.from_sigma(1, 0.1), 0.001 * np.eye(3),
        ...     'x1', 'v1', 'x2', 'v2', 'l1', delta_t=0.1, tau=0.04)
        >>> v = np.array([1.0, 0.0, 0.0])
        >>> factor.evaluate_error(np.array([-0.04, 0.0, 0.0]), v,
        ...                       np.array([0.06, 0.0, 0.0]), v,
        ...                       np.array([0.0, 10.0]))
        array([0.])
    """

    slots = ("pose1", "vel1", "pose2", "vel2", "point")

    def __init__(
        self,
        measurement: float,
        noise_model: GaussianNoiseModel,
        qc: Union[np.ndarray, GaussianNoiseModel],
        pose1_key: Hashable,
        vel1_key: Hashable,
        pose2_key: Hashable,
        vel2_key: Hashable,
        point_key: Hashable,
        delta_t: float,
        tau: float,
    ):
        super().__init__(
            (pose1_key, vel1_key, pose2_key, vel2_key, point_key), noise_model
        )
        if self.noise_model.dim != 1:
            raise ValueError(
                f"Range noise model must be 1D, got dim={self.noise_model.dim}"
            )
        self.measurement = float(measurement)
        self.interpolator = GaussianProcessInterpolatorPose2(qc, delta_t, tau)

    @property
    def delta_t(self) -> float:
        return self.interpolator.delta_t

    @property
    def tau(self) -> float:
        return self.interpolator.tau

    def evaluate_error(
        self,
        pose1: np.ndarray,
        vel1: Velocity2,
        pose2: np.ndarray,
        vel2: Velocity2,
        point: Point2,
        jacobians: Optional[Dict[str, Optional[np.ndarray]]] = None,
    ) -> np.ndarray:
        """
        Range residual at the interpolated pose.

        Args:
            pose1, vel1, pose2, vel2: Support states.
            point: Landmark position [x, y].
            jacobians: Optional request dict keyed by "pose1", "vel1",
                "pose2", "vel2", "point"; requested entries are set to the
                1×3 (or 1×2 for "point") Jacobians.

        Returns:
            Residual of shape (1,).

        Raises:
            JacobianRequestError: If the request names an unknown slot.
            NumericalDegeneracyError: If Jacobians are requested and the
                interpolated position coincides with the landmark.
        """
        self._check_request(jacobians)
        point = as_vector(point, 2, "point")

        if not jacobians:
            pose_tau = self.interpolator.interpolate_pose(pose1, vel1, pose2, vel2)
            return np.array([se2_range(pose_tau, point) - self.measurement])

        # Interpolation blocks are only needed for the support-state slots
        support_requested = any(slot != "point" for slot in jacobians)
        interp = self.interpolator.interpolate(
            pose1, vel1, pose2, vel2, compute_jacobians=support_requested
        )
        r, H_range_pose, H_range_point = se2_range(
            interp.pose, point, return_jacobians=True
        )

        if "point" in jacobians:
            jacobians["point"] = H_range_point
        if support_requested:
            interp_blocks = {
                "pose1": interp.J_pose1.pose,
                "vel1": interp.J_vel1.pose,
                "pose2": interp.J_pose2.pose,
                "vel2": interp.J_vel2.pose,
            }
            for slot in jacobians:
                if slot != "point":
                    jacobians[slot] = H_range_pose @ interp_blocks[slot]

        return np.array([r - self.measurement])

    def __repr__(self) -> str:
        return (
            f"GPInterpolatedRangeFactorPose2(keys={self.keys}, "
            f"measurement={self.measurement}, delta_t={self.delta_t}, tau={self.tau})"
        )

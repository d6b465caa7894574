"""
GP motion prior between two consecutive SE(2) support states.

Under the white-noise-on-acceleration model the local state [ξ; ξ̇] evolves
as x(Δt) = Φ(Δt) x(0) + w with w ~ N(0, Q(Δt)). With the tangent space
anchored at pose1 the error is

    e = [Log(pose1⁻¹ · pose2) - Δt · vel1;
         vel2 - vel1]

whitened by Q(Δt). This is the factor that ties consecutive support states
together; interpolated measurement factors assume it is present.
"""

from typing import Dict, Hashable, Optional, Union

import numpy as np

from ..estimators.factor_graph import Factor
from ..estimators.noise_model import GaussianNoiseModel
from ..geometry.se2 import se2_logmap, se2_relative
from ..geometry.types import Velocity2, as_pose_array, as_vector
from .kernels import DOF, calc_q, validate_interval, validate_qc


class GaussianProcessPriorPose2(Factor):
    """
    Constant-velocity GP prior factor on (pose1, vel1, pose2, vel2).

    Args:
        pose1_key, vel1_key: Keys of the first support state.
        pose2_key, vel2_key: Keys of the second support state.
        delta_t: Time between the support states (Δt > 0).
        qc: Power spectral density Qc (3×3) or a noise model with that
            covariance.

    Raises:
        GPConfigurationError: If Δt or Qc are invalid.
    """

    slots = ("pose1", "vel1", "pose2", "vel2")

    def __init__(
        self,
        pose1_key: Hashable,
        vel1_key: Hashable,
        pose2_key: Hashable,
        vel2_key: Hashable,
        delta_t: float,
        qc: Union[np.ndarray, GaussianNoiseModel],
    ):
        validate_interval(delta_t)
        self.qc = validate_qc(qc)
        self.delta_t = float(delta_t)
        super().__init__(
            (pose1_key, vel1_key, pose2_key, vel2_key),
            GaussianNoiseModel.from_covariance(calc_q(self.qc, self.delta_t)),
        )

    def evaluate_error(
        self,
        pose1: np.ndarray,
        vel1: Velocity2,
        pose2: np.ndarray,
        vel2: Velocity2,
        jacobians: Optional[Dict[str, Optional[np.ndarray]]] = None,
    ) -> np.ndarray:
        self._check_request(jacobians)
        pose1 = as_pose_array(pose1, "pose1")
        pose2 = as_pose_array(pose2, "pose2")
        vel1 = as_vector(vel1, DOF, "vel1")
        vel2 = as_vector(vel2, DOF, "vel2")

        between, H_between_1, _ = se2_relative(pose1, pose2, return_jacobians=True)
        r, H_log = se2_logmap(between, return_jacobian=True)
        error = np.concatenate([r - self.delta_t * vel1, vel2 - vel1])

        if jacobians:
            I = np.eye(DOF)
            Z = np.zeros((DOF, DOF))
            blocks = {
                "pose1": np.vstack([H_log @ H_between_1, Z]),
                "vel1": np.vstack([-self.delta_t * I, -I]),
                "pose2": np.vstack([H_log, Z]),
                "vel2": np.vstack([Z, I]),
            }
            for slot in jacobians:
                jacobians[slot] = blocks[slot]
        return error

    def __repr__(self) -> str:
        return (
            f"GaussianProcessPriorPose2(keys={self.keys}, delta_t={self.delta_t}, "
            f"qc_diag={np.diag(self.qc)})"
        )
